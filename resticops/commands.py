# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Command Surface - Map command tokens to orchestrator operations.

`backup` runs the full lifecycle; every other command is a single backend
operation (prune and restore carry their own safety checks). Handlers
return a CommandOutcome; errors propagate to the caller untouched.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List

import structlog

from resticops.backend.base import Backend, Snapshot
from resticops.config import ResticOpsConfig
from resticops.core import require_success, run_lifecycle
from resticops.exceptions import BackendError, LifecycleFailure, OrchestrationError
from resticops.policy import compute_forget_args, describe_policy
from resticops.selection import load_file_selection

logger = structlog.get_logger()


class Command(str, Enum):
    """Commands accepted on the command line."""

    HELP = "help"
    BACKUP = "backup"
    CHECK = "check"
    INFO = "info"
    LIST = "list"
    PRUNE = "prune"
    RESTORE = "restore"
    REPAIR = "repair"
    UNLOCK = "unlock"
    SNAPSHOTS = "snapshots"


@dataclass
class CommandContext:
    """Everything a command needs; built once per process."""

    config: ResticOpsConfig
    backend: Backend


@dataclass
class CommandOutcome:
    """What a command printed and how the process should exit."""

    command: Command
    exit_code: int = 0
    lines: List[str] = field(default_factory=list)


def format_snapshot(snapshot: Snapshot) -> str:
    """Compact one-line rendering, similar to `restic snapshots -c`."""
    when = snapshot.timestamp.strftime("%Y-%m-%d %H:%M:%S") if snapshot.timestamp else "-"
    size = f"{snapshot.size_bytes} B" if snapshot.size_bytes is not None else "-"
    paths = ", ".join(snapshot.paths) if snapshot.paths else "-"
    return f"{snapshot.short_id or snapshot.id[:8]}  {when}  {size}  {paths}"


async def _backup(ctx: CommandContext) -> CommandOutcome:
    selection = await load_file_selection(ctx.config.files_from, ctx.config.exclude_file)
    result = await run_lifecycle(ctx.backend, selection, ctx.config.retention)

    if result.succeeded:
        snapshot_id = result.snapshot.id if result.snapshot else "unknown"
        line = f"Backup completed: snapshot {snapshot_id} ({result.duration_seconds:.1f}s)"
        return CommandOutcome(Command.BACKUP, 0, [line])

    # Let the caller print the stage diagnostic
    raise LifecycleFailure(result.failed_stage.value, result.error, result.exit_code)


async def _check(ctx: CommandContext) -> CommandOutcome:
    result = require_success(await ctx.backend.check(read_data=False))
    return CommandOutcome(Command.CHECK, 0, [result.diagnostics or "Repository check passed"])


async def _info(ctx: CommandContext) -> CommandOutcome:
    result = require_success(await ctx.backend.stats())
    return CommandOutcome(Command.INFO, 0, result.diagnostics.splitlines())


async def _list(ctx: CommandContext) -> CommandOutcome:
    paths = await ctx.backend.list_files(ctx.config.snapshot_ref)
    return CommandOutcome(Command.LIST, 0, paths)


async def _prune(ctx: CommandContext) -> CommandOutcome:
    """Standalone prune: verify, forget/prune, verify again."""
    spec = compute_forget_args(ctx.config.retention)

    require_success(await ctx.backend.check(read_data=False))
    logger.info("pruning_snapshots", policy=describe_policy(ctx.config.retention))
    require_success(await ctx.backend.prune(spec))
    require_success(await ctx.backend.check(read_data=False))

    return CommandOutcome(
        Command.PRUNE, 0, [f"Pruned snapshots ({describe_policy(ctx.config.retention)})"]
    )


def _snapshot_matches(snapshot: Snapshot, ref: str) -> bool:
    """restic accepts a full id or any unique id prefix."""
    return snapshot.id.startswith(ref) or snapshot.short_id == ref


async def _restore(ctx: CommandContext) -> CommandOutcome:
    ref = ctx.config.snapshot_ref
    snapshots = await ctx.backend.list_snapshots()
    if not snapshots:
        raise OrchestrationError(
            "Refusing to restore: the repository has no snapshots",
            details={"snapshot_ref": ref},
        )
    if ref != "latest" and not any(_snapshot_matches(s, ref) for s in snapshots):
        raise OrchestrationError(
            f"Refusing to restore: snapshot {ref} is not in the repository",
            details={"snapshot_ref": ref, "snapshots": len(snapshots)},
        )

    target = ctx.config.restore_target
    require_success(await ctx.backend.restore(ref, target))
    return CommandOutcome(Command.RESTORE, 0, [f"Restored {ref} into {target}"])


async def _repair(ctx: CommandContext) -> CommandOutcome:
    result = require_success(await ctx.backend.check(read_data=True))
    return CommandOutcome(Command.REPAIR, 0, [result.diagnostics or "Repository data verified"])


async def _unlock(ctx: CommandContext) -> CommandOutcome:
    require_success(await ctx.backend.unlock())
    return CommandOutcome(Command.UNLOCK, 0, ["Repository unlocked"])


async def _snapshots(ctx: CommandContext) -> CommandOutcome:
    snapshots = await ctx.backend.list_snapshots()
    lines = [format_snapshot(s) for s in snapshots]
    lines.append(f"{len(snapshots)} snapshots")
    return CommandOutcome(Command.SNAPSHOTS, 0, lines)


HANDLERS: Dict[Command, Callable[[CommandContext], Awaitable[CommandOutcome]]] = {
    Command.BACKUP: _backup,
    Command.CHECK: _check,
    Command.INFO: _info,
    Command.LIST: _list,
    Command.PRUNE: _prune,
    Command.RESTORE: _restore,
    Command.REPAIR: _repair,
    Command.UNLOCK: _unlock,
    Command.SNAPSHOTS: _snapshots,
}


async def dispatch(command: Command, ctx: CommandContext) -> CommandOutcome:
    """
    Run one command.

    Raises:
        ResticOpsError: From the backend or configuration
        LifecycleFailure: When the backup lifecycle ends in FAILED
    """
    if command == Command.HELP:
        raise OrchestrationError("help is handled by the command line parser")

    logger.info("command_started", command=command.value)
    try:
        outcome = await HANDLERS[command](ctx)
    except BackendError as e:
        logger.error("command_failed", command=command.value, operation=e.operation, exit_code=e.exit_code)
        raise
    logger.info("command_completed", command=command.value)
    return outcome
