# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for resticops.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""

from pathlib import Path


def explain_unresolved_target(mount_point: Path | None) -> str:
    """
    Explain that neither a remote nor a local repository could be chosen.
    """

    return (
        "No backup target could be resolved. "
        "Set SFTP_HOST, SFTP_BASEDIR and RESTIC_USER for a remote repository, "
        f"or point MOUNT_POINT at an existing directory (got {str(mount_point) if mount_point else 'nothing'!r})."
    )


def explain_missing_password_file(kind: str, path: Path) -> str:
    """
    Explain that the password file for the resolved target is missing.
    """

    return (
        f"Password file for the {kind} repository does not exist: {str(path)!r}. "
        f"Create it or set RESTIC_{kind.upper()}_PASSWORD_FILE / RESTIC_PASSWORD_FILE."
    )


def explain_degenerate_policy() -> str:
    """
    Explain that an all-zero retention policy is refused.
    """

    return (
        "Retention policy keeps no snapshots at all (daily, weekly, monthly and "
        "yearly are all 0). Refusing to forget/prune: this would delete every snapshot. "
        "Set at least one of KEEP_DAILY, KEEP_WEEKLY, KEEP_MONTHLY or KEEP_YEARLY above 0."
    )


def explain_invalid_count_env(name: str, value: str | None) -> str:
    """
    Explain that a KEEP_* variable is invalid.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        "It must be a non-negative integer number of snapshots."
    )


def explain_invalid_timeout_env(value: str | None) -> str:
    """
    Explain that RESTIC_TIMEOUT is invalid.
    """

    return (
        f"Invalid RESTIC_TIMEOUT value: {value!r}. "
        "It must be a positive number of seconds, or unset to wait indefinitely."
    )


def explain_missing_file_list(path: Path) -> str:
    return (
        f"File list {str(path)!r} does not exist. "
        "Set FILES to a file with one path or pattern per line."
    )


def explain_empty_file_list(path: Path) -> str:
    return (
        f"File list {str(path)!r} contains no paths. "
        "Refusing to create an empty backup."
    )


def explain_locked_repository() -> str:
    """
    Explain how to recover from a stale restic lock.
    """

    return (
        "The repository is locked by another restic process. "
        "If no other backup is running, remove the stale lock with --unlock."
    )


def explain_invalid_global_flags_env(value: str) -> str:
    """
    Explain that GLOBAL_FLAGS cannot be split into arguments.
    """

    return (
        f"Invalid GLOBAL_FLAGS value: {value!r}. "
        "It must split like a shell command line; check for an unclosed quote."
    )
