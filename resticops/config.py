# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
resticops Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation so the repository
target and retention policy cannot change in the middle of a run.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Tuple
import re


_RESTIC_HOME = Path.home() / ".restic"


@dataclass(frozen=True)
class RetentionPolicy:
    """
    How many snapshots restic keeps per time granularity.

    A policy where every count is 0 is representable but degenerate; the
    policy engine refuses to turn it into a forget/prune call.
    """

    keep_daily: int = 7
    keep_weekly: int = 4
    keep_monthly: int = 6
    keep_yearly: int = 2

    def __post_init__(self) -> None:
        errors = [
            f"{name} must be >= 0, got {value}"
            for name, value in self.as_dict().items()
            if not isinstance(value, int) or value < 0
        ]
        if errors:
            from resticops.exceptions import ConfigurationError

            raise ConfigurationError(
                "Retention policy validation failed",
                details={"errors": errors},
            )

    @property
    def is_degenerate(self) -> bool:
        return not any(self.as_dict().values())

    def as_dict(self) -> dict:
        return {
            "keep_daily": self.keep_daily,
            "keep_weekly": self.keep_weekly,
            "keep_monthly": self.keep_monthly,
            "keep_yearly": self.keep_yearly,
        }


def _validate_repo_name(name: str) -> bool:
    """Repository names become a path component on the target."""
    if not name:
        return False
    return re.match(r"^[A-Za-z0-9][A-Za-z0-9._-]*$", name) is not None


@dataclass(frozen=True)
class ResticOpsConfig:
    """
    Immutable configuration for one host's backup lifecycle.

    Constructed once at process start (see resticops.env) and passed by
    reference to the repository locator, policy engine and command surface.
    """

    # Logical repository name, appended to the remote base dir / mount point
    repo_name: str = "my-backup"

    # Remote (SFTP) target: all three must be set for a remote repository
    sftp_host: str | None = None
    sftp_basedir: str | None = None
    sftp_user: str | None = None

    # Local target: an external disk mounted at this path
    mount_point: Path | None = None

    # restic password files per target kind
    remote_password_file: Path = field(default_factory=lambda: _RESTIC_HOME / ".store_remote")
    local_password_file: Path = field(default_factory=lambda: _RESTIC_HOME / ".store_local")

    # Include / exclude lists handed to restic backup
    files_from: Path = field(default_factory=lambda: _RESTIC_HOME / "files.txt")
    exclude_file: Path | None = field(default_factory=lambda: _RESTIC_HOME / "excludes.txt")

    # Flags passed to every restic invocation
    global_flags: Tuple[str, ...] = ("--verbose=2",)

    retention: RetentionPolicy = field(default_factory=RetentionPolicy)

    # Restore / list defaults
    restore_target: Path = field(default_factory=lambda: Path("/tmp/restic_restore"))
    snapshot_ref: str = "latest"

    # restic executable and per-invocation timeout in seconds (None = wait)
    restic_binary: str = "restic"
    command_timeout: float | None = None

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not _validate_repo_name(self.repo_name):
            errors.append(f"Invalid repo_name: {self.repo_name!r}")

        if not self.snapshot_ref or self.snapshot_ref.startswith("-"):
            errors.append(f"Invalid snapshot_ref: {self.snapshot_ref!r}")

        if not self.restic_binary:
            errors.append("restic_binary must not be empty")

        if self.command_timeout is not None and self.command_timeout <= 0:
            errors.append(f"command_timeout must be > 0, got {self.command_timeout}")

        if not isinstance(self.retention, RetentionPolicy):
            errors.append("retention must be a RetentionPolicy")

        if errors:
            from resticops.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    @property
    def has_remote_target(self) -> bool:
        """True when the complete SFTP triple is present and non-empty."""
        return all(
            value and value.strip()
            for value in (self.sftp_host, self.sftp_basedir, self.sftp_user)
        )

    def with_updates(self, **kwargs) -> "ResticOpsConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        return replace(self, **kwargs)
