# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for the restic subprocess adapter.

Most tests replace asyncio.create_subprocess_exec with a scripted fake
process; one test runs a real executable standing in for restic.
"""

import asyncio
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List

import pytest

from resticops.backend import Backend, Operation, ResticBackend, parse_timestamp
from resticops.backend import restic as restic_module
from resticops.exceptions import BackendError, LockError, RepositoryNotFoundError
from resticops.locator import RepositoryTarget, TargetKind
from resticops.policy import ForgetSpec


SNAPSHOT_ID = "4f1b2c3d" + "0" * 56


class FakeProcess:
    """Minimal stand-in for asyncio.subprocess.Process."""

    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "", hang: bool = False):
        self.returncode = returncode
        self._stdout = stdout.encode("utf-8")
        self._stderr = stderr.encode("utf-8")
        self._hang = hang
        self.killed = False

    async def communicate(self):
        if self._hang:
            await asyncio.sleep(3600)
        return self._stdout, self._stderr

    def kill(self):
        self.killed = True
        self.returncode = -9

    async def wait(self):
        return self.returncode


class Launcher:
    """Records every launch and hands out scripted processes in order."""

    def __init__(self, *processes: FakeProcess):
        self.processes = list(processes)
        self.argvs: List[List[str]] = []
        self.envs: List[dict] = []

    async def __call__(self, *argv, stdout=None, stderr=None, env=None):
        self.argvs.append(list(argv))
        self.envs.append(env)
        return self.processes.pop(0)


@pytest.fixture
def target(temp_dir: Path) -> RepositoryTarget:
    return RepositoryTarget(
        kind=TargetKind.LOCAL,
        address=str(temp_dir / "restic" / "test-backup"),
        credentials_ref=temp_dir / ".store",
    )


@pytest.fixture
def backend(target) -> ResticBackend:
    return ResticBackend(target, global_flags=("--verbose=2",), env={"PATH": "/usr/bin"})


def _launch(monkeypatch, *processes: FakeProcess) -> Launcher:
    launcher = Launcher(*processes)
    monkeypatch.setattr(restic_module.asyncio, "create_subprocess_exec", launcher)
    return launcher


# ============================================================================
# Invocation
# ============================================================================

def test_backend_satisfies_protocol(backend):
    assert isinstance(backend, Backend)


@pytest.mark.asyncio
async def test_repository_and_password_passed_via_environment(monkeypatch, backend, target):
    launcher = _launch(monkeypatch, FakeProcess(stdout="no errors were found\n"))

    result = await backend.check()

    assert launcher.argvs == [["restic", "--verbose=2", "check"]]
    env = launcher.envs[0]
    assert env["RESTIC_REPOSITORY"] == target.address
    assert env["RESTIC_PASSWORD_FILE"] == str(target.credentials_ref)
    assert env["PATH"] == "/usr/bin"
    assert result.succeeded
    assert result.diagnostics == "no errors were found"


@pytest.mark.asyncio
async def test_check_read_data(monkeypatch, backend):
    launcher = _launch(monkeypatch, FakeProcess())

    await backend.check(read_data=True)

    assert launcher.argvs[0][-2:] == ["check", "--read-data"]


@pytest.mark.asyncio
async def test_forget_argv_matches_policy(monkeypatch, backend):
    launcher = _launch(monkeypatch, FakeProcess())
    spec = ForgetSpec(keep_daily=7, keep_weekly=4, keep_monthly=6, keep_yearly=2)

    await backend.prune(spec)

    assert launcher.argvs[0] == [
        "restic", "--verbose=2", "forget",
        "--keep-daily", "7",
        "--keep-weekly", "4",
        "--keep-monthly", "6",
        "--keep-yearly", "2",
        "--prune",
    ]


@pytest.mark.asyncio
async def test_restore_argv(monkeypatch, backend, temp_dir):
    launcher = _launch(monkeypatch, FakeProcess())

    await backend.restore("latest", temp_dir / "restore")

    assert launcher.argvs[0][2:] == ["restore", "latest", "--target", str(temp_dir / "restore")]


@pytest.mark.asyncio
async def test_unlock_and_stats(monkeypatch, backend):
    launcher = _launch(
        monkeypatch,
        FakeProcess(stdout="successfully removed 1 locks\n"),
        FakeProcess(stdout="Total File Count:  12\nTotal Size:  4.000 KiB\n"),
    )

    unlocked = await backend.unlock()
    stats = await backend.stats()

    assert [argv[2] for argv in launcher.argvs] == ["unlock", "stats"]
    assert unlocked.stage == Operation.UNLOCK.value
    assert "Total Size" in stats.diagnostics


# ============================================================================
# Output parsing
# ============================================================================

@pytest.mark.asyncio
async def test_backup_parses_json_summary(monkeypatch, backend, selection):
    stdout = "\n".join([
        json.dumps({"message_type": "status", "percent_done": 0.5}),
        "some unrelated text",
        json.dumps({
            "message_type": "summary",
            "snapshot_id": SNAPSHOT_ID,
            "total_bytes_processed": 8192,
            "backup_end": "2026-01-05T03:00:12.123456789+01:00",
        }),
    ])
    launcher = _launch(monkeypatch, FakeProcess(stdout=stdout))

    snapshot = await backend.backup(selection)

    assert launcher.argvs[0] == [
        "restic", "--verbose=2", "backup", "--json",
        "--files-from", str(selection.files_from),
        "--exclude-file", str(selection.exclude_file),
    ]
    assert snapshot.id == SNAPSHOT_ID
    assert snapshot.short_id == "4f1b2c3d"
    assert snapshot.size_bytes == 8192
    assert snapshot.paths == selection.include_paths
    assert snapshot.timestamp.microsecond == 123456


@pytest.mark.asyncio
async def test_backup_without_summary_still_succeeds(monkeypatch, backend, selection):
    _launch(monkeypatch, FakeProcess(stdout="snapshot saved\n"))

    snapshot = await backend.backup(selection)

    assert snapshot.id == "latest"


@pytest.mark.asyncio
async def test_list_snapshots_parses_nanosecond_times(monkeypatch, backend):
    document = [
        {
            "id": SNAPSHOT_ID,
            "short_id": "4f1b2c3d",
            "time": "2026-01-05T03:00:00.987654321Z",
            "paths": ["/home/user/Documents"],
            "summary": {"total_bytes_processed": 2048},
        },
        {"id": "b" * 64, "time": "2026-01-06T03:00:00+01:00", "paths": []},
    ]
    _launch(monkeypatch, FakeProcess(stdout=json.dumps(document)))

    snapshots = await backend.list_snapshots()

    assert len(snapshots) == 2
    assert snapshots[0].timestamp == datetime(2026, 1, 5, 3, 0, 0, 987654, tzinfo=timezone.utc)
    assert snapshots[0].size_bytes == 2048
    assert snapshots[0].paths == ("/home/user/Documents",)
    assert snapshots[1].short_id == "bbbbbbbb"
    assert snapshots[1].size_bytes is None


@pytest.mark.asyncio
async def test_list_snapshots_empty_repository(monkeypatch, backend):
    _launch(monkeypatch, FakeProcess(stdout="[]\n"))

    assert await backend.list_snapshots() == []


@pytest.mark.asyncio
async def test_list_files_keeps_nodes_only(monkeypatch, backend):
    stdout = "\n".join([
        json.dumps({"struct_type": "snapshot", "id": SNAPSHOT_ID}),
        json.dumps({"struct_type": "node", "path": "/home/user/Documents", "type": "dir"}),
        json.dumps({"struct_type": "node", "path": "/home/user/Documents/notes.txt", "type": "file"}),
    ])
    launcher = _launch(monkeypatch, FakeProcess(stdout=stdout))

    paths = await backend.list_files("latest")

    assert launcher.argvs[0][2:] == ["ls", "--json", "latest"]
    assert paths == ["/home/user/Documents", "/home/user/Documents/notes.txt"]


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2026-01-05T03:00:00Z", datetime(2026, 1, 5, 3, 0, tzinfo=timezone.utc)),
        ("2026-01-05T03:00:00.5Z", datetime(2026, 1, 5, 3, 0, 0, 500000, tzinfo=timezone.utc)),
        (None, None),
        ("yesterday", None),
    ],
)
def test_parse_timestamp(value, expected):
    assert parse_timestamp(value) == expected


# ============================================================================
# Failure classification
# ============================================================================

@pytest.mark.asyncio
async def test_non_zero_exit_raises_with_code_and_stderr(monkeypatch, backend, selection):
    _launch(
        monkeypatch,
        FakeProcess(returncode=3, stderr="error: open /home/user/Projects/x: permission denied\n"),
    )

    with pytest.raises(BackendError) as exc_info:
        await backend.backup(selection)

    assert exc_info.value.operation == "backup"
    assert exc_info.value.exit_code == 3
    assert "permission denied" in exc_info.value.stderr_excerpt


@pytest.mark.asyncio
async def test_stderr_excerpt_is_bounded(monkeypatch, backend):
    _launch(monkeypatch, FakeProcess(returncode=1, stderr="x" * 10_000 + "tail"))

    with pytest.raises(BackendError) as exc_info:
        await backend.check()

    excerpt = exc_info.value.stderr_excerpt
    assert len(excerpt) == restic_module.STDERR_EXCERPT_CHARS
    assert excerpt.endswith("tail")


@pytest.mark.asyncio
async def test_locked_repository_raises_lock_error(monkeypatch, backend):
    _launch(
        monkeypatch,
        FakeProcess(
            returncode=1,
            stderr="Fatal: unable to create lock in backend: repository is already locked by PID 4242\n",
        ),
    )

    with pytest.raises(LockError):
        await backend.check()


@pytest.mark.asyncio
async def test_missing_repository_raises_not_found(monkeypatch, backend):
    _launch(
        monkeypatch,
        FakeProcess(returncode=10, stderr="Fatal: repository does not exist: unable to open config file\n"),
    )

    with pytest.raises(RepositoryNotFoundError) as exc_info:
        await backend.list_snapshots()

    assert exc_info.value.exit_code == 10


@pytest.mark.asyncio
async def test_init_on_existing_repository_is_success(monkeypatch, backend):
    _launch(
        monkeypatch,
        FakeProcess(returncode=1, stderr="Fatal: create repository failed: config file already exists\n"),
    )

    result = await backend.initialize()

    assert result.succeeded
    assert result.diagnostics == "repository already initialized"


@pytest.mark.asyncio
async def test_init_other_failure_propagates(monkeypatch, backend):
    _launch(monkeypatch, FakeProcess(returncode=1, stderr="Fatal: unable to open repository\n"))

    with pytest.raises(BackendError):
        await backend.initialize()


@pytest.mark.asyncio
async def test_timeout_kills_process(monkeypatch, target):
    process = FakeProcess(hang=True)
    _launch(monkeypatch, process)
    backend = ResticBackend(target, timeout=0.05, env={})

    with pytest.raises(BackendError) as exc_info:
        await backend.check()

    assert process.killed
    assert exc_info.value.exit_code is None
    assert "timed out" in str(exc_info.value)


@pytest.mark.asyncio
async def test_missing_binary_maps_to_127(target, temp_dir):
    backend = ResticBackend(target, binary=str(temp_dir / "no-such-restic"), env={})

    with pytest.raises(BackendError) as exc_info:
        await backend.unlock()

    assert exc_info.value.exit_code == restic_module.EXIT_BINARY_MISSING
    assert "not found" in exc_info.value.stderr_excerpt


# ============================================================================
# Real subprocess
# ============================================================================

@pytest.mark.skipif(sys.platform == "win32", reason="uses a shebang script")
@pytest.mark.asyncio
async def test_real_process_round_trip(target, temp_dir):
    """A stand-in executable sees the environment and argv restic would."""
    script = temp_dir / "fake-restic"
    script.write_text(
        f"#!{sys.executable}\n"
        "import json, os, sys\n"
        "if sys.argv[-1] == 'unlock':\n"
        "    sys.stderr.write('Fatal: boom\\n')\n"
        "    sys.exit(12)\n"
        "print(json.dumps({'argv': sys.argv[1:], 'repo': os.environ['RESTIC_REPOSITORY']}))\n",
        encoding="utf-8",
    )
    script.chmod(0o755)
    backend = ResticBackend(target, binary=str(script), global_flags=("--no-cache",), env={})

    result = await backend.stats()
    with pytest.raises(BackendError) as exc_info:
        await backend.unlock()

    reported = json.loads(result.diagnostics)
    assert reported == {"argv": ["--no-cache", "stats"], "repo": target.address}
    assert exc_info.value.exit_code == 12
    assert exc_info.value.stderr_excerpt == "Fatal: boom"
