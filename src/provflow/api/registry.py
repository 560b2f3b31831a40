# src/provflow/api/registry.py
from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from provflow.config import Settings
from provflow.domain.errors import ConflictError, NotFoundError
from provflow.domain.models import FlowSpec, RunView
from provflow.domain.states import RunPhase
from provflow.engine.command_flow import CommandContext, build_command_runner, probe_existing
from provflow.engine.runner import FlowRunner
from provflow.logging import get_logger

_LOG = get_logger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class HostedRun:
    id: str
    spec: FlowSpec
    runner: FlowRunner[CommandContext]
    created_at: int
    phase: RunPhase = RunPhase.PROBING
    started_at: Optional[int] = None
    finished_at: Optional[int] = None
    probe_error: Optional[str] = None
    error: Optional[str] = None
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self.phase in (RunPhase.PROBING, RunPhase.RUNNING)

    def view(self) -> RunView:
        return RunView(
            id=self.id,
            name=self.spec.name,
            phase=self.phase,
            created_at=self.created_at,
            started_at=self.started_at,
            finished_at=self.finished_at,
            probe_error=self.probe_error,
            error=self.error,
            snapshot=self.runner.snapshot(),
        )


class RunRegistry:
    """
    In-memory registry of runs hosted by the API process.

    Each run executes as one asyncio task on the server loop: probe, then the
    engine. Nothing survives a restart.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._runs: dict[str, HostedRun] = {}

    def active_count(self) -> int:
        return sum(1 for r in self._runs.values() if r.active)

    def get(self, run_id: str) -> HostedRun:
        run = self._runs.get(run_id)
        if run is None:
            raise NotFoundError(f"Run not found: {run_id}", details={"id": run_id})
        return run

    def list(self, limit: int = 200, offset: int = 0) -> tuple[list[HostedRun], int]:
        runs = sorted(self._runs.values(), key=lambda r: r.created_at)
        return runs[offset : offset + limit], len(runs)

    def start(self, spec: FlowSpec) -> HostedRun:
        """
        Builds the runner (definition errors surface here, synchronously) and
        schedules it on the running loop.
        """
        active = self.active_count()
        if active >= self._settings.max_active_runs:
            raise ConflictError(
                f"{active} run(s) already active (max {self._settings.max_active_runs})",
                details={"active": active, "max_active_runs": self._settings.max_active_runs},
            )

        runner = build_command_runner(spec, default_timeout_ms=self._settings.command_timeout_ms)
        run = HostedRun(id=uuid.uuid4().hex, spec=spec, runner=runner, created_at=now_ms())
        self._runs[run.id] = run

        run.task = asyncio.get_running_loop().create_task(self._execute(run), name=f"provflow-run-{run.id}")
        run.task.add_done_callback(self._on_run_done(run))
        self._evict_finished()
        _LOG.info("Accepted run %s (%s): %d task(s)", run.id, spec.name or "unnamed", len(spec.tasks))
        return run

    async def _execute(self, run: HostedRun) -> None:
        try:
            await probe_existing(run.runner, run.spec, timeout_ms=self._settings.check_timeout_ms)
        except Exception as e:
            _LOG.exception("Probe failed for run %s", run.id)
            run.probe_error = str(e) or type(e).__name__
            run.phase = RunPhase.FAILED
            run.finished_at = now_ms()
            return

        run.phase = RunPhase.RUNNING
        run.started_at = now_ms()
        error = await run.runner.run()

        run.phase = RunPhase.FAILED if error is not None else RunPhase.COMPLETED
        run.finished_at = now_ms()
        _LOG.info("Run %s finished: %s", run.id, run.phase)

    def _on_run_done(self, run: HostedRun):
        def _cb(task: asyncio.Task) -> None:
            try:
                task.result()
            except asyncio.CancelledError:
                _LOG.warning("Run %s was cancelled", run.id)
                run.error = "Run was cancelled"
            except Exception as e:
                _LOG.exception("Run %s execution raised: %r", run.id, e)
                run.error = str(e) or type(e).__name__

            # A crashed run must not keep holding an active slot.
            if run.active:
                run.phase = RunPhase.FAILED
                run.finished_at = now_ms()

        return _cb

    def _evict_finished(self) -> None:
        """Drops the oldest finished runs once more than max_retained_runs are held."""
        excess = len(self._runs) - self._settings.max_retained_runs
        if excess <= 0:
            return
        finished = sorted((r for r in self._runs.values() if not r.active), key=lambda r: r.created_at)
        for r in finished[:excess]:
            del self._runs[r.id]
        _LOG.debug("Evicted %d finished run(s); retained=%d", min(excess, len(finished)), len(self._runs))

    async def shutdown(self) -> None:
        """
        Runs have no cancellation point; anything still active is left to the
        loop teardown and only reported here.
        """
        still_active = [r.id for r in self._runs.values() if r.active]
        if still_active:
            _LOG.warning("Shutting down with %d active run(s): %s", len(still_active), ", ".join(still_active))
        self._runs.clear()
