# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
resticops Core - Backup lifecycle state machine.

The lifecycle is:

    idle -> preparing -> backing_up -> verifying -> pruning -> final_verify -> done

with `failed` reachable from every non-terminal state. Transitions and
per-stage prerequisites are data (TRANSITIONS, PREREQUISITES); the
orchestrator refuses to run a stage whose prerequisites have not succeeded
earlier in the same run, so pruning can never follow a failed or skipped
backup/verification regardless of how the machine is driven.
"""

from dataclasses import dataclass
from datetime import datetime, UTC
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Tuple

import structlog
from ulid import ULID

from resticops.backend.base import Backend, RunResult, Snapshot
from resticops.config import RetentionPolicy
from resticops.exceptions import (
    BackendError,
    OrchestrationError,
    RepositoryNotFoundError,
    ResticOpsError,
)
from resticops.policy import compute_forget_args, describe_policy
from resticops.selection import FileSelection

logger = structlog.get_logger()


class LifecycleState(str, Enum):
    """States of one backup lifecycle run."""

    IDLE = "idle"
    PREPARING = "preparing"
    BACKING_UP = "backing_up"
    VERIFYING = "verifying"
    PRUNING = "pruning"
    FINAL_VERIFY = "final_verify"
    DONE = "done"
    FAILED = "failed"


# Next state after a stage succeeds
TRANSITIONS: Dict[LifecycleState, LifecycleState] = {
    LifecycleState.IDLE: LifecycleState.PREPARING,
    LifecycleState.PREPARING: LifecycleState.BACKING_UP,
    LifecycleState.BACKING_UP: LifecycleState.VERIFYING,
    LifecycleState.VERIFYING: LifecycleState.PRUNING,
    LifecycleState.PRUNING: LifecycleState.FINAL_VERIFY,
    LifecycleState.FINAL_VERIFY: LifecycleState.DONE,
}

TERMINAL_STATES = frozenset({LifecycleState.DONE, LifecycleState.FAILED})

# Stages that must have succeeded earlier in the same run
PREREQUISITES: Dict[LifecycleState, Tuple[LifecycleState, ...]] = {
    LifecycleState.PREPARING: (),
    LifecycleState.BACKING_UP: (LifecycleState.PREPARING,),
    LifecycleState.VERIFYING: (LifecycleState.BACKING_UP,),
    LifecycleState.PRUNING: (LifecycleState.BACKING_UP, LifecycleState.VERIFYING),
    LifecycleState.FINAL_VERIFY: (LifecycleState.PRUNING,),
}


def next_state(current: LifecycleState, succeeded: bool) -> LifecycleState:
    """
    Transition function of the lifecycle.

    Args:
        current: State whose stage just finished
        succeeded: Whether that stage succeeded

    Returns:
        The following state (FAILED on any failure)

    Raises:
        OrchestrationError: If current is already terminal
    """
    if current in TERMINAL_STATES:
        raise OrchestrationError(
            f"No transition out of terminal state {current.value}",
            details={"state": current.value},
        )
    if not succeeded:
        return LifecycleState.FAILED
    return TRANSITIONS[current]


@dataclass
class LifecycleResult:
    """Result of a backup lifecycle run."""

    run_id: str  # ULID
    state: LifecycleState
    results: List[RunResult]
    started_at: datetime
    duration_seconds: float = 0.0
    failed_stage: LifecycleState | None = None
    error: ResticOpsError | None = None
    snapshot: Snapshot | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == LifecycleState.DONE

    @property
    def exit_code(self) -> int:
        """
        0 on success, the backend's exit code when it is positive, else 1.

        Negative codes (restic killed by a signal) and timeouts map to 1.
        """
        if self.succeeded:
            return 0
        if isinstance(self.error, BackendError) and self.error.exit_code and self.error.exit_code > 0:
            return self.error.exit_code
        return 1


def require_success(result: RunResult) -> RunResult:
    """Turn a failed RunResult from a backend into a BackendError."""
    if not result.succeeded:
        raise BackendError(result.stage, result.exit_code, result.diagnostics)
    return result


class Orchestrator:
    """
    Drives one backup lifecycle against a backend.

    Only the orchestrator mutates `state`; each call to advance() runs
    exactly one stage and awaits every backend call before transitioning.
    """

    def __init__(
        self,
        backend: Backend,
        selection: FileSelection,
        policy: RetentionPolicy,
    ):
        self.backend = backend
        self.selection = selection
        self.policy = policy
        self.run_id = str(ULID())
        self.state = LifecycleState.IDLE
        self.results: List[RunResult] = []
        self.failed_stage: LifecycleState | None = None
        self.error: ResticOpsError | None = None
        self.snapshot: Snapshot | None = None
        self._log = logger.bind(run_id=self.run_id)
        self._stages: Dict[LifecycleState, Callable[[], Awaitable[str]]] = {
            LifecycleState.PREPARING: self._prepare,
            LifecycleState.BACKING_UP: self._backup,
            LifecycleState.VERIFYING: self._verify,
            LifecycleState.PRUNING: self._prune,
            LifecycleState.FINAL_VERIFY: self._verify,
        }

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def _succeeded_stages(self) -> set:
        return {r.stage for r in self.results if r.succeeded}

    def _check_prerequisites(self, stage: LifecycleState) -> None:
        done = self._succeeded_stages()
        missing = [s.value for s in PREREQUISITES[stage] if s.value not in done]
        if missing:
            raise OrchestrationError(
                f"Refusing to run {stage.value}: required stages did not succeed in this run",
                details={"stage": stage.value, "missing": missing},
            )

    async def advance(self) -> LifecycleState:
        """
        Run the current stage and transition.

        From IDLE this first moves to PREPARING. Stage failures move the
        machine to FAILED; they are recorded, not raised.

        Raises:
            OrchestrationError: If the machine is already finished or the
                current stage's prerequisites are unmet
        """
        if self.state == LifecycleState.IDLE:
            self.state = next_state(self.state, True)
        if self.finished:
            raise OrchestrationError(
                f"Lifecycle already finished in state {self.state.value}",
                details={"run_id": self.run_id},
            )

        stage = self.state
        self._check_prerequisites(stage)
        self._log.info("stage_started", stage=stage.value)

        try:
            diagnostics = await self._stages[stage]()
        except ResticOpsError as e:
            exit_code = e.exit_code if isinstance(e, BackendError) else None
            self.results.append(
                RunResult(stage=stage.value, succeeded=False, diagnostics=str(e), exit_code=exit_code)
            )
            self.failed_stage = stage
            self.error = e
            self.state = next_state(stage, False)
            self._log.error(
                "stage_failed",
                stage=stage.value,
                error_type=type(e).__name__,
                error=str(e),
            )
            return self.state

        self.results.append(RunResult(stage=stage.value, succeeded=True, diagnostics=diagnostics))
        self.state = next_state(stage, True)
        self._log.info("stage_completed", stage=stage.value, next_state=self.state.value)
        return self.state

    async def run(self) -> LifecycleResult:
        """Advance until DONE or FAILED."""
        start_time = datetime.now(UTC)
        self._log.info("lifecycle_started", started_at=start_time.isoformat())

        while not self.finished:
            await self.advance()

        duration = (datetime.now(UTC) - start_time).total_seconds()
        result = LifecycleResult(
            run_id=self.run_id,
            state=self.state,
            results=list(self.results),
            started_at=start_time,
            duration_seconds=duration,
            failed_stage=self.failed_stage,
            error=self.error,
            snapshot=self.snapshot,
        )

        if result.succeeded:
            self._log.info(
                "lifecycle_completed",
                snapshot_id=self.snapshot.id if self.snapshot else None,
                duration=duration,
            )
        else:
            self._log.error(
                "lifecycle_failed",
                failed_stage=self.failed_stage.value if self.failed_stage else None,
                duration=duration,
            )
        return result

    # ------------------------------------------------------------------
    # Stage actions
    # ------------------------------------------------------------------

    async def _prepare(self) -> str:
        try:
            snapshots = await self.backend.list_snapshots()
        except RepositoryNotFoundError:
            self._log.info("repository_missing")
            snapshots = []

        if not snapshots:
            self._log.info("repository_initializing")
            require_success(await self.backend.initialize())
            return "repository initialized"

        # Existing repository: never back up over one that fails its check
        require_success(await self.backend.check(read_data=False))
        return f"repository checked ({len(snapshots)} snapshots)"

    async def _backup(self) -> str:
        self.snapshot = await self.backend.backup(self.selection)
        return f"snapshot {self.snapshot.id} saved"

    async def _verify(self) -> str:
        result = require_success(await self.backend.check(read_data=False))
        return result.diagnostics or "no errors were found"

    async def _prune(self) -> str:
        # PolicyError surfaces here, before any backend call
        spec = compute_forget_args(self.policy)
        self._log.info("pruning_snapshots", policy=describe_policy(self.policy))
        require_success(await self.backend.prune(spec))
        return f"pruned with {describe_policy(self.policy)}"


async def run_lifecycle(
    backend: Backend,
    selection: FileSelection,
    policy: RetentionPolicy,
) -> LifecycleResult:
    """
    Run the complete backup lifecycle.

    This is the main entry point behind `--backup`. It:
    1. Initializes an empty repository, or checks an existing one
    2. Backs up the file selection
    3. Checks the repository
    4. Forgets/prunes snapshots outside the retention policy
    5. Checks the repository again

    Stage failures end the run in FAILED; nothing is retried.

    Args:
        backend: Backup engine adapter
        selection: Files to back up
        policy: Retention policy for pruning

    Returns:
        LifecycleResult with the final state and per-stage results
    """
    return await Orchestrator(backend, selection, policy).run()
