# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
resticops Builder - Functional builder pattern for configuration.

This module provides pure functions for building ResticOpsConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

import shlex
from pathlib import Path
from typing import Any, Dict, Sequence

from resticops.config import ResticOpsConfig, RetentionPolicy
from resticops.errors import explain_invalid_global_flags_env
from resticops.exceptions import ConfigurationError


# Type alias for configuration dictionaries
ConfigDict = Dict[str, Any]


def create_empty_config() -> ConfigDict:
    """
    Create an initial configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    defaults = ResticOpsConfig()
    return {
        "repo_name": defaults.repo_name,
        "sftp_host": None,
        "sftp_basedir": None,
        "sftp_user": None,
        "mount_point": None,
        "remote_password_file": defaults.remote_password_file,
        "local_password_file": defaults.local_password_file,
        "files_from": defaults.files_from,
        "exclude_file": defaults.exclude_file,
        "global_flags": defaults.global_flags,
        "retention": defaults.retention,
        "restore_target": defaults.restore_target,
        "snapshot_ref": defaults.snapshot_ref,
        "restic_binary": defaults.restic_binary,
        "command_timeout": None,
    }


def with_repo_name(config: ConfigDict, repo_name: str) -> ConfigDict:
    """
    Set the logical repository name.

    Args:
        config: Current configuration dictionary
        repo_name: Name appended to the remote base dir or mount point

    Returns:
        New configuration dictionary with the repository name set
    """
    return {**config, "repo_name": repo_name}


def with_sftp_target(
    config: ConfigDict,
    host: str,
    basedir: str,
    user: str,
) -> ConfigDict:
    """
    Configure a remote SFTP repository.

    All three values are required for the remote target to be chosen.

    Args:
        config: Current configuration dictionary
        host: SFTP host name
        basedir: Base directory on the host; repo_name is appended
        user: SFTP user

    Returns:
        New configuration dictionary with the SFTP triple set
    """
    return {**config, "sftp_host": host, "sftp_basedir": basedir, "sftp_user": user}


def with_mount_point(config: ConfigDict, mount_point: Path | str) -> ConfigDict:
    """
    Configure a local repository on a mounted disk.

    Args:
        config: Current configuration dictionary
        mount_point: Directory the backup disk is mounted at

    Returns:
        New configuration dictionary with the mount point set
    """
    return {**config, "mount_point": Path(mount_point)}


def with_password_files(
    config: ConfigDict,
    remote: Path | str | None = None,
    local: Path | str | None = None,
) -> ConfigDict:
    """Set the restic password files for the remote and/or local target."""
    updated = dict(config)
    if remote is not None:
        updated["remote_password_file"] = Path(remote)
    if local is not None:
        updated["local_password_file"] = Path(local)
    return updated


def with_file_lists(
    config: ConfigDict,
    files_from: Path | str,
    exclude_file: Path | str | None = None,
) -> ConfigDict:
    """
    Set the include and exclude list files.

    Args:
        config: Current configuration dictionary
        files_from: File with one path or pattern to back up per line
        exclude_file: File with one exclude pattern per line (optional)

    Returns:
        New configuration dictionary with the file lists set
    """
    return {
        **config,
        "files_from": Path(files_from),
        "exclude_file": Path(exclude_file) if exclude_file is not None else None,
    }


def with_global_flags(config: ConfigDict, flags: str | Sequence[str]) -> ConfigDict:
    """
    Set the flags passed to every restic invocation.

    A string is split the way a shell would split it.

    Raises:
        ConfigurationError: If the string cannot be split (unclosed quote)
    """
    if isinstance(flags, str):
        try:
            parsed = tuple(shlex.split(flags))
        except ValueError as e:
            raise ConfigurationError(
                explain_invalid_global_flags_env(flags),
                details={"error": str(e)},
            ) from e
    else:
        parsed = tuple(flags)
    return {**config, "global_flags": parsed}


def keep_snapshots(
    config: ConfigDict,
    daily: int = 7,
    weekly: int = 4,
    monthly: int = 6,
    yearly: int = 2,
) -> ConfigDict:
    """
    Set the retention policy used by forget/prune.

    Args:
        config: Current configuration dictionary
        daily: Daily snapshots to keep
        weekly: Weekly snapshots to keep
        monthly: Monthly snapshots to keep
        yearly: Yearly snapshots to keep

    Returns:
        New configuration dictionary with the retention policy set
    """
    policy = RetentionPolicy(
        keep_daily=daily,
        keep_weekly=weekly,
        keep_monthly=monthly,
        keep_yearly=yearly,
    )
    return {**config, "retention": policy}


def restore_into(
    config: ConfigDict,
    target: Path | str,
    snapshot_ref: str = "latest",
) -> ConfigDict:
    """Set where --restore writes files and which snapshot it (and --list) reads."""
    return {**config, "restore_target": Path(target), "snapshot_ref": snapshot_ref}


def build_config(config: ConfigDict) -> ResticOpsConfig:
    """
    Build an immutable ResticOpsConfig from a configuration dictionary.

    Args:
        config: Configuration dictionary built with the helpers above

    Returns:
        Validated, frozen ResticOpsConfig

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    return ResticOpsConfig(**config)


def create_config(
    repo_name: str | None = None,
    sftp_host: str | None = None,
    sftp_basedir: str | None = None,
    sftp_user: str | None = None,
    mount_point: Path | str | None = None,
    files_from: Path | str | None = None,
    exclude_file: Path | str | None = None,
    global_flags: str | Sequence[str] | None = None,
    retention: RetentionPolicy | None = None,
    **kwargs: Any,
) -> ResticOpsConfig:
    """
    Create a ResticOpsConfig in one call.

    Unset arguments keep the defaults of the original backup script
    (repository "my-backup", lists under ~/.restic, keep 7/4/6/2).

    Example:
        # Remote repository
        config = create_config(
            sftp_host="nas.local",
            sftp_basedir="/volume1/backups",
            sftp_user="backup",
        )

        # External disk, custom retention
        config = create_config(
            mount_point="/Volumes/Backup",
            retention=RetentionPolicy(keep_daily=14, keep_weekly=8,
                                      keep_monthly=12, keep_yearly=5),
        )
    """
    config_dict = create_empty_config()

    if repo_name:
        config_dict = with_repo_name(config_dict, repo_name)

    if sftp_host or sftp_basedir or sftp_user:
        # Partial triples are kept as-is; the locator decides what they mean
        config_dict = {
            **config_dict,
            "sftp_host": sftp_host,
            "sftp_basedir": sftp_basedir,
            "sftp_user": sftp_user,
        }

    if mount_point:
        config_dict = with_mount_point(config_dict, mount_point)

    if files_from:
        config_dict = with_file_lists(
            config_dict,
            files_from,
            exclude_file if exclude_file is not None else config_dict["exclude_file"],
        )
    elif exclude_file is not None:
        config_dict = {**config_dict, "exclude_file": Path(exclude_file)}

    if global_flags is not None:
        config_dict = with_global_flags(config_dict, global_flags)

    if retention is not None:
        config_dict = {**config_dict, "retention": retention}

    # Apply any additional kwargs
    for key, value in kwargs.items():
        if key in config_dict:
            config_dict[key] = value

    return build_config(config_dict)
