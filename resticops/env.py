# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

The configuration is read exactly once, before any command is dispatched:

- read_environment() merges the process environment with the optional
  ~/.restic/.env file (values from the file win)
- create_config_from_env() turns that mapping into a validated, frozen
  ResticOpsConfig

Nothing here writes back to os.environ.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Mapping

import structlog
from dotenv import dotenv_values

from resticops.builder import (
    build_config,
    create_empty_config,
    keep_snapshots,
    restore_into,
    with_file_lists,
    with_global_flags,
    with_mount_point,
    with_password_files,
    with_repo_name,
    with_sftp_target,
)
from resticops.config import ResticOpsConfig
from resticops.errors import explain_invalid_count_env, explain_invalid_timeout_env
from resticops.exceptions import ConfigurationError

logger = structlog.get_logger()

DEFAULT_ENV_FILE = Path.home() / ".restic" / ".env"


def default_env_file(environ: Mapping[str, str] | None = None) -> Path:
    """Return RESTICOPS_ENV_FILE if set, else ~/.restic/.env."""
    source = os.environ if environ is None else environ
    override = source.get("RESTICOPS_ENV_FILE")
    return Path(override).expanduser() if override else DEFAULT_ENV_FILE


def read_environment(env_file: Path | None = None) -> Dict[str, str]:
    """
    Snapshot the process environment with the .env overrides applied.

    Args:
        env_file: dotenv file to layer on top (default: default_env_file())

    Returns:
        A new dict; os.environ is left untouched
    """
    environ: Dict[str, str] = dict(os.environ)
    path = env_file if env_file is not None else default_env_file(environ)

    if path.is_file():
        overrides = {k: v for k, v in dotenv_values(path).items() if v is not None}
        environ.update(overrides)
        logger.debug("env_file_loaded", path=str(path), keys=sorted(overrides))
    else:
        logger.debug("env_file_absent", path=str(path))

    return environ


def _get(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_count(name: str, value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        count = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_count_env(name, value)) from exc
    if count < 0:
        raise ConfigurationError(explain_invalid_count_env(name, value))
    return count


def _parse_timeout(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        timeout = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_timeout_env(value)) from exc
    if timeout <= 0:
        raise ConfigurationError(explain_invalid_timeout_env(value))
    return timeout


def _path(value: str) -> Path:
    return Path(os.path.expandvars(value)).expanduser()


def create_config_from_env(environ: Mapping[str, str] | None = None) -> ResticOpsConfig:
    """
    Create a ResticOpsConfig from environment variables.

    Target selection (the locator applies the precedence):
        - SFTP_HOST, SFTP_BASEDIR, RESTIC_USER: remote SFTP repository
        - MOUNT_POINT: local repository on a mounted disk

    Optional environment variables:
        - REPO_NAME: Repository name (default: my-backup)
        - GLOBAL_FLAGS: Flags for every restic call (default: --verbose=2)
        - FILES: Include list file (default: ~/.restic/files.txt)
        - EXCLUDES: Exclude list file (default: ~/.restic/excludes.txt)
        - RESTIC_REMOTE_PASSWORD_FILE / RESTIC_LOCAL_PASSWORD_FILE
        - RESTIC_PASSWORD_FILE: Overrides both password files
        - KEEP_DAILY, KEEP_WEEKLY, KEEP_MONTHLY, KEEP_YEARLY (default: 7/4/6/2)
        - RESTORE_TARGET: Restore directory (default: /tmp/restic_restore)
        - SNAPSHOT_REF: Snapshot for --list/--restore (default: latest)
        - RESTIC_BINARY: restic executable (default: restic)
        - RESTIC_TIMEOUT: Per-invocation timeout in seconds (default: none)

    Args:
        environ: Mapping to read from (default: read_environment())
    """
    if environ is None:
        environ = read_environment()

    config = create_empty_config()

    repo_name = _get(environ, "REPO_NAME")
    if repo_name:
        config = with_repo_name(config, repo_name)

    host = _get(environ, "SFTP_HOST")
    basedir = _get(environ, "SFTP_BASEDIR")
    user = _get(environ, "RESTIC_USER")
    if host or basedir or user:
        config = with_sftp_target(config, host, basedir, user)

    mount_point = _get(environ, "MOUNT_POINT")
    if mount_point:
        config = with_mount_point(config, _path(mount_point))

    shared_password = _get(environ, "RESTIC_PASSWORD_FILE")
    remote_password = shared_password or _get(environ, "RESTIC_REMOTE_PASSWORD_FILE")
    local_password = shared_password or _get(environ, "RESTIC_LOCAL_PASSWORD_FILE")
    config = with_password_files(
        config,
        remote=_path(remote_password) if remote_password else None,
        local=_path(local_password) if local_password else None,
    )

    files = _get(environ, "FILES")
    excludes = _get(environ, "EXCLUDES")
    config = with_file_lists(
        config,
        _path(files) if files else config["files_from"],
        _path(excludes) if excludes else config["exclude_file"],
    )

    flags = environ.get("GLOBAL_FLAGS")
    if flags is not None:
        config = with_global_flags(config, flags)

    default_policy = config["retention"]
    config = keep_snapshots(
        config,
        daily=_parse_count("KEEP_DAILY", _get(environ, "KEEP_DAILY"), default_policy.keep_daily),
        weekly=_parse_count("KEEP_WEEKLY", _get(environ, "KEEP_WEEKLY"), default_policy.keep_weekly),
        monthly=_parse_count("KEEP_MONTHLY", _get(environ, "KEEP_MONTHLY"), default_policy.keep_monthly),
        yearly=_parse_count("KEEP_YEARLY", _get(environ, "KEEP_YEARLY"), default_policy.keep_yearly),
    )

    restore_target = _get(environ, "RESTORE_TARGET")
    snapshot_ref = _get(environ, "SNAPSHOT_REF")
    config = restore_into(
        config,
        _path(restore_target) if restore_target else config["restore_target"],
        snapshot_ref or config["snapshot_ref"],
    )

    binary = _get(environ, "RESTIC_BINARY")
    if binary:
        config = {**config, "restic_binary": binary}

    config = {**config, "command_timeout": _parse_timeout(_get(environ, "RESTIC_TIMEOUT"))}

    return build_config(config)
