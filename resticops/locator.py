# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Repository Locator - Resolve the one repository this run talks to.

Precedence:
1. Complete SFTP triple (host, base dir, user) -> remote repository
2. Existing local mount point                   -> local repository
3. Anything else                                -> ConfigurationError

There is no best-effort fallback: an incomplete configuration is fatal
before restic is ever invoked.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import structlog

from resticops.config import ResticOpsConfig
from resticops.errors import explain_missing_password_file, explain_unresolved_target
from resticops.exceptions import ConfigurationError

logger = structlog.get_logger()


class TargetKind(str, Enum):
    """Where the repository lives."""

    REMOTE = "remote"
    LOCAL = "local"


@dataclass(frozen=True)
class RepositoryTarget:
    """A resolved restic repository plus the password file that opens it."""

    kind: TargetKind
    address: str
    credentials_ref: Path


def _remote_address(config: ResticOpsConfig) -> str:
    basedir = config.sftp_basedir.strip().rstrip("/")
    return f"sftp:{config.sftp_user.strip()}@{config.sftp_host.strip()}:{basedir}/{config.repo_name}"


def _local_address(config: ResticOpsConfig) -> str:
    return str(config.mount_point / "restic" / config.repo_name)


def resolve_target(config: ResticOpsConfig) -> RepositoryTarget:
    """
    Resolve the repository target for this run.

    Args:
        config: Validated configuration

    Returns:
        The single RepositoryTarget to use

    Raises:
        ConfigurationError: If no target can be chosen or its password
            file is missing
    """
    if config.has_remote_target:
        target = RepositoryTarget(
            kind=TargetKind.REMOTE,
            address=_remote_address(config),
            credentials_ref=config.remote_password_file,
        )
    elif config.mount_point is not None and config.mount_point.is_dir():
        target = RepositoryTarget(
            kind=TargetKind.LOCAL,
            address=_local_address(config),
            credentials_ref=config.local_password_file,
        )
    else:
        raise ConfigurationError(
            explain_unresolved_target(config.mount_point),
            details={
                "sftp_host": bool(config.sftp_host),
                "sftp_basedir": bool(config.sftp_basedir),
                "sftp_user": bool(config.sftp_user),
                "mount_point": str(config.mount_point) if config.mount_point else None,
            },
        )

    if not target.credentials_ref.is_file():
        raise ConfigurationError(
            explain_missing_password_file(target.kind.value, target.credentials_ref)
        )

    logger.info(
        "repository_target_resolved",
        kind=target.kind.value,
        address=target.address,
    )
    return target
