# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backend interface - What the orchestrator needs from a backup engine.

Every operation maps to exactly one engine invocation. Implementations
raise BackendError (or a subclass) for any failed invocation; they never
report failure by returning text for the caller to interpret.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Protocol, Tuple, runtime_checkable

from resticops.policy import ForgetSpec
from resticops.selection import FileSelection


class Operation(str, Enum):
    """restic sub-commands issued by the adapter."""

    INIT = "init"
    BACKUP = "backup"
    CHECK = "check"
    STATS = "stats"
    LIST_FILES = "ls"
    SNAPSHOTS = "snapshots"
    FORGET = "forget"
    RESTORE = "restore"
    UNLOCK = "unlock"


@dataclass(frozen=True)
class Snapshot:
    """A point-in-time backup set, as reported by the engine."""

    id: str
    timestamp: datetime | None = None
    size_bytes: int | None = None
    short_id: str | None = None
    paths: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RunResult:
    """Outcome of one stage or backend operation."""

    stage: str
    succeeded: bool
    diagnostics: str = ""
    exit_code: int | None = 0


@runtime_checkable
class Backend(Protocol):
    """Capability set of a backup engine."""

    async def initialize(self) -> RunResult: ...

    async def backup(self, selection: FileSelection) -> Snapshot: ...

    async def check(self, read_data: bool = False) -> RunResult: ...

    async def stats(self) -> RunResult: ...

    async def list_files(self, snapshot_ref: str = "latest") -> List[str]: ...

    async def list_snapshots(self) -> List[Snapshot]: ...

    async def prune(self, spec: ForgetSpec) -> RunResult: ...

    async def restore(self, snapshot_ref: str, target_dir: Path) -> RunResult: ...

    async def unlock(self) -> RunResult: ...
