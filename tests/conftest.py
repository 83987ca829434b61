# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for resticops tests.

Provides a recording fake backend, file-list fixtures and test
configuration helpers.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest
import structlog

from resticops.config import ResticOpsConfig, RetentionPolicy
from resticops.selection import FileSelection

from tests.fakes import FakeBackend, existing_snapshot


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """The CLI configures structlog globally; undo it after every test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_backend() -> FakeBackend:
    """Backend for an empty (not yet initialized) repository."""
    return FakeBackend()


@pytest.fixture
def existing_backend() -> FakeBackend:
    """Backend for a repository that already holds one snapshot."""
    return FakeBackend(snapshots=[existing_snapshot()])


@pytest.fixture
def file_lists(temp_dir: Path) -> tuple:
    """Write include and exclude lists; returns (files_from, exclude_file)."""
    files_from = temp_dir / "files.txt"
    files_from.write_text(
        "# what to back up\n/home/user/Documents\n\n/home/user/Projects\n",
        encoding="utf-8",
    )
    exclude_file = temp_dir / "excludes.txt"
    exclude_file.write_text("*.tmp\nnode_modules\n", encoding="utf-8")
    return files_from, exclude_file


@pytest.fixture
def selection(file_lists: tuple) -> FileSelection:
    files_from, exclude_file = file_lists
    return FileSelection(
        include_paths=("/home/user/Documents", "/home/user/Projects"),
        exclude_paths=("*.tmp", "node_modules"),
        files_from=files_from,
        exclude_file=exclude_file,
    )


@pytest.fixture
def policy() -> RetentionPolicy:
    return RetentionPolicy(keep_daily=7, keep_weekly=4, keep_monthly=6, keep_yearly=2)


@pytest.fixture
def password_file(temp_dir: Path) -> Path:
    path = temp_dir / ".store"
    path.write_text("correct horse battery staple\n", encoding="utf-8")
    return path


@pytest.fixture
def mount_point(temp_dir: Path) -> Path:
    path = temp_dir / "Volumes" / "Backup"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def local_config(mount_point: Path, password_file: Path, file_lists: tuple) -> ResticOpsConfig:
    """Configuration for a local repository on an existing mount point."""
    files_from, exclude_file = file_lists
    return ResticOpsConfig(
        repo_name="test-backup",
        mount_point=mount_point,
        local_password_file=password_file,
        remote_password_file=password_file,
        files_from=files_from,
        exclude_file=exclude_file,
    )
