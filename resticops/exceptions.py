# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
resticops Exceptions - Error taxonomy for the orchestration engine.

Every failure the engine can report derives from ResticOpsError. Backend
failures always carry the restic operation, its exit code and an excerpt
of its stderr so that the command line can print a single useful line.
"""


class ResticOpsError(Exception):
    """Base exception for all resticops errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(ResticOpsError):
    """Raised when configuration is invalid or the target cannot be resolved."""

    pass


class PolicyError(ConfigurationError):
    """Raised when a retention policy would make forget/prune ambiguous."""

    pass


class BackendError(ResticOpsError):
    """
    Raised when a restic invocation exits non-zero (or never finishes).

    Attributes:
        operation: restic sub-command that failed (e.g. "backup")
        exit_code: process exit status, None on timeout
        stderr_excerpt: tail of restic's stderr
    """

    def __init__(
        self,
        operation: str,
        exit_code: int | None,
        stderr_excerpt: str = "",
        message: str | None = None,
    ):
        self.operation = operation
        self.exit_code = exit_code
        self.stderr_excerpt = stderr_excerpt
        if message is None:
            message = f"restic {operation} failed with exit code {exit_code}"
        super().__init__(
            message,
            details={
                "operation": operation,
                "exit_code": exit_code,
                "stderr": stderr_excerpt,
            },
        )

    def __str__(self) -> str:
        if self.stderr_excerpt:
            return f"{self.message}: {self.stderr_excerpt}"
        return self.message


class LockError(BackendError):
    """Raised when restic reports that the repository is already locked."""

    pass


class RepositoryNotFoundError(BackendError):
    """Raised when restic reports that no repository exists at the target."""

    pass


class OrchestrationError(ResticOpsError):
    """Raised when a lifecycle or command invariant would be violated."""

    pass


class LifecycleFailure(ResticOpsError):
    """
    Raised by the backup command when the lifecycle ended in FAILED.

    Attributes:
        stage: lifecycle stage that failed (e.g. "verifying")
        cause: the error recorded for that stage
        exit_code: process exit code to report
    """

    def __init__(self, stage: str, cause: ResticOpsError | None, exit_code: int = 1):
        self.stage = stage
        self.cause = cause
        self.exit_code = exit_code
        super().__init__(f"{stage} failed: {cause}", details={"stage": stage})

    def __str__(self) -> str:
        return self.message
