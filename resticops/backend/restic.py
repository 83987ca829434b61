# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
restic Backend - Subprocess adapter for the restic CLI.

Each Backend operation runs exactly one restic process. Success is decided
by the exit status alone; stdout is only parsed (JSON where restic offers
it) after a zero exit. The repository and password file reach restic via
the child environment (RESTIC_REPOSITORY / RESTIC_PASSWORD_FILE).
"""

import asyncio
import json
import os
import re
from dataclasses import dataclass
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Sequence

import structlog

from resticops.backend.base import Operation, RunResult, Snapshot
from resticops.exceptions import BackendError, LockError, RepositoryNotFoundError
from resticops.locator import RepositoryTarget
from resticops.policy import ForgetSpec
from resticops.selection import FileSelection

logger = structlog.get_logger()

STDERR_EXCERPT_CHARS = 2000

# restic >= 0.17 exit codes
EXIT_REPOSITORY_MISSING = 10
EXIT_LOCK_FAILED = 11

EXIT_BINARY_MISSING = 127

_LOCKED_MARKERS = ("repository is already locked", "unable to create lock")
_MISSING_MARKERS = (
    "is there a repository at the following location",
    "repository does not exist",
)
_ALREADY_INITIALIZED_MARKERS = (
    "config file already exists",
    "repository master key and config already initialized",
)

# restic prints up to nanoseconds; datetime wants exactly microseconds
_FRACTION_RE = re.compile(r"\.(\d+)")


@dataclass(frozen=True)
class ProcessOutput:
    """Raw result of one restic process."""

    exit_code: int
    stdout: str
    stderr: str


def _excerpt(stderr: str) -> str:
    return stderr.strip()[-STDERR_EXCERPT_CHARS:]


def _classify_failure(operation: Operation, output: ProcessOutput) -> BackendError:
    """Map a non-zero restic exit to the matching BackendError subclass."""
    lowered = output.stderr.lower()
    excerpt = _excerpt(output.stderr)

    if output.exit_code == EXIT_LOCK_FAILED or any(m in lowered for m in _LOCKED_MARKERS):
        return LockError(operation.value, output.exit_code, excerpt)
    if output.exit_code == EXIT_REPOSITORY_MISSING or any(m in lowered for m in _MISSING_MARKERS):
        return RepositoryNotFoundError(operation.value, output.exit_code, excerpt)
    return BackendError(operation.value, output.exit_code, excerpt)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a restic RFC 3339 timestamp (nanosecond precision, Z or offset)."""
    if not value:
        return None
    normalized = _FRACTION_RE.sub(
        lambda m: "." + (m.group(1) + "000000")[:6],
        value.replace("Z", "+00:00"),
    )
    try:
        return datetime.fromisoformat(normalized)
    except ValueError:
        logger.debug("timestamp_unparseable", value=value)
        return None


def _json_lines(stdout: str) -> Iterator[Any]:
    """Yield every stdout line that is a JSON document; skip the rest."""
    for line in stdout.splitlines():
        line = line.strip()
        if not line or line[0] not in "[{":
            continue
        try:
            yield json.loads(line)
        except json.JSONDecodeError:
            continue


def _snapshot_from_json(item: Dict[str, Any]) -> Snapshot:
    summary = item.get("summary") or {}
    return Snapshot(
        id=item["id"],
        timestamp=parse_timestamp(item.get("time")),
        size_bytes=summary.get("total_bytes_processed"),
        short_id=item.get("short_id") or item["id"][:8],
        paths=tuple(item.get("paths") or ()),
    )


class ResticBackend:
    """
    Backend implementation that shells out to restic.

    Args:
        target: Resolved repository and password file
        binary: restic executable name or path
        global_flags: Flags placed before every sub-command (e.g. --verbose=2)
        timeout: Seconds to wait for one invocation; None waits forever
        env: Base environment for the child (default: os.environ)
    """

    def __init__(
        self,
        target: RepositoryTarget,
        binary: str = "restic",
        global_flags: Sequence[str] = (),
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
    ):
        self.target = target
        self.binary = binary
        self.global_flags = tuple(global_flags)
        self.timeout = timeout
        self._base_env = dict(os.environ if env is None else env)

    def command(self, operation: Operation, *args: str) -> List[str]:
        """Build the argv for one invocation."""
        return [self.binary, *self.global_flags, operation.value, *args]

    def environment(self) -> Dict[str, str]:
        child_env = dict(self._base_env)
        child_env["RESTIC_REPOSITORY"] = self.target.address
        child_env["RESTIC_PASSWORD_FILE"] = str(self.target.credentials_ref)
        return child_env

    async def _execute(self, operation: Operation, *args: str) -> ProcessOutput:
        """
        Run restic and wait for it.

        Raises:
            BackendError: On non-zero exit, missing binary or timeout
        """
        argv = self.command(operation, *args)
        logger.debug("restic_command_started", operation=operation.value, argv=argv)
        started = datetime.now(UTC)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.environment(),
            )
        except FileNotFoundError as e:
            raise BackendError(
                operation.value,
                EXIT_BINARY_MISSING,
                f"restic executable not found: {self.binary}",
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise BackendError(
                operation.value,
                None,
                f"timed out after {self.timeout} seconds",
                message=f"restic {operation.value} timed out",
            ) from e

        output = ProcessOutput(
            exit_code=process.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

        logger.debug(
            "restic_command_finished",
            operation=operation.value,
            exit_code=output.exit_code,
            duration=(datetime.now(UTC) - started).total_seconds(),
        )

        if output.exit_code != 0:
            raise _classify_failure(operation, output)
        return output

    def _result(self, operation: Operation, output: ProcessOutput) -> RunResult:
        return RunResult(
            stage=operation.value,
            succeeded=True,
            diagnostics=output.stdout.strip(),
            exit_code=output.exit_code,
        )

    async def initialize(self) -> RunResult:
        """Run `restic init`; an already-initialised repository counts as success."""
        try:
            output = await self._execute(Operation.INIT)
        except BackendError as e:
            if any(m in e.stderr_excerpt.lower() for m in _ALREADY_INITIALIZED_MARKERS):
                logger.info("repository_already_initialized", address=self.target.address)
                return RunResult(
                    stage=Operation.INIT.value,
                    succeeded=True,
                    diagnostics="repository already initialized",
                    exit_code=e.exit_code,
                )
            raise
        logger.info("repository_initialized", address=self.target.address)
        return self._result(Operation.INIT, output)

    async def backup(self, selection: FileSelection) -> Snapshot:
        args = ["--json", "--files-from", str(selection.files_from)]
        if selection.exclude_file is not None:
            args.extend(["--exclude-file", str(selection.exclude_file)])

        output = await self._execute(Operation.BACKUP, *args)

        summary: Dict[str, Any] = {}
        for message in _json_lines(output.stdout):
            if isinstance(message, dict) and message.get("message_type") == "summary":
                summary = message

        snapshot_id = summary.get("snapshot_id")
        if not snapshot_id:
            logger.warning("backup_summary_missing", operation=Operation.BACKUP.value)
            snapshot_id = "latest"

        return Snapshot(
            id=snapshot_id,
            timestamp=parse_timestamp(summary.get("backup_end")) or datetime.now(UTC),
            size_bytes=summary.get("total_bytes_processed"),
            short_id=snapshot_id[:8],
            paths=selection.include_paths,
        )

    async def check(self, read_data: bool = False) -> RunResult:
        args = ["--read-data"] if read_data else []
        return self._result(Operation.CHECK, await self._execute(Operation.CHECK, *args))

    async def stats(self) -> RunResult:
        return self._result(Operation.STATS, await self._execute(Operation.STATS))

    async def list_files(self, snapshot_ref: str = "latest") -> List[str]:
        output = await self._execute(Operation.LIST_FILES, "--json", snapshot_ref)
        return [
            node["path"]
            for node in _json_lines(output.stdout)
            if isinstance(node, dict) and node.get("struct_type") == "node" and "path" in node
        ]

    async def list_snapshots(self) -> List[Snapshot]:
        output = await self._execute(Operation.SNAPSHOTS, "--json")
        for document in _json_lines(output.stdout):
            if isinstance(document, list):
                return [_snapshot_from_json(item) for item in document]
        return []

    async def prune(self, spec: ForgetSpec) -> RunResult:
        return self._result(Operation.FORGET, await self._execute(Operation.FORGET, *spec.to_args()))

    async def restore(self, snapshot_ref: str, target_dir: Path) -> RunResult:
        output = await self._execute(Operation.RESTORE, snapshot_ref, "--target", str(target_dir))
        return self._result(Operation.RESTORE, output)

    async def unlock(self) -> RunResult:
        return self._result(Operation.UNLOCK, await self._execute(Operation.UNLOCK))
