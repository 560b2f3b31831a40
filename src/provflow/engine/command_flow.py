# src/provflow/engine/command_flow.py
from __future__ import annotations

import asyncio
from typing import Any, Optional

from provflow.commands import run_command, run_command_with_output
from provflow.domain.definitions import RUN, Group, Skip, SkipDecision, Task
from provflow.domain.errors import TaskActionError
from provflow.domain.models import CommandTaskSpec, FlowSpec
from provflow.logging import get_logger

from .completion import CompletionCallback
from .context import FlowContext
from .runner import FlowRunner

_LOG = get_logger(__name__)

CommandContext = dict[str, Any]


def initial_context() -> CommandContext:
    """
    - existing: task key -> whether its check command succeeded
    - completed: task keys whose command ran successfully this run, in order
    - outputs: task key -> combined command output
    """
    return {"existing": {}, "completed": [], "outputs": {}}


def _skip_for(spec: CommandTaskSpec):
    def _skip(ctx: CommandContext) -> SkipDecision:
        if ctx["existing"].get(spec.key):
            return Skip(spec.skip_reason)
        return RUN

    return _skip


def _action_for(spec: CommandTaskSpec, default_timeout_ms: int):
    timeout_ms = spec.timeout_ms or default_timeout_ms

    async def _run(ctx: FlowContext[CommandContext]) -> None:
        result = await run_command_with_output(spec.command, timeout_ms=timeout_ms)
        if not result.success:
            raise TaskActionError(
                spec.failure_message or f"Command failed: {spec.command}",
                task_key=spec.key,
                details={"output": result.output, "exit_code": result.exit_code, "timed_out": result.timed_out},
            )
        ctx.update(
            lambda prev: {
                "completed": [*prev["completed"], spec.key],
                "outputs": {**prev["outputs"], spec.key: result.output},
            }
        )

    return _run


def build_command_tasks(
    spec: FlowSpec, *, default_timeout_ms: int
) -> tuple[list[Task[CommandContext]], list[Group]]:
    groups = [Group(key=g.key, title=g.title) for g in spec.groups]
    tasks: list[Task[CommandContext]] = [
        Task(
            key=t.key,
            title=t.title,
            group=t.group,
            run=_action_for(t, default_timeout_ms),
            skip=_skip_for(t) if t.check else None,
        )
        for t in spec.tasks
    ]
    return tasks, groups


def build_command_runner(
    spec: FlowSpec,
    *,
    default_timeout_ms: int,
    on_complete: Optional[CompletionCallback] = None,
) -> FlowRunner[CommandContext]:
    tasks, groups = build_command_tasks(spec, default_timeout_ms=default_timeout_ms)
    return FlowRunner(
        tasks,
        groups,
        initial_context(),
        exit_on_error=spec.exit_on_error,
        on_complete=on_complete,
    )


async def probe_existing(
    runner: FlowRunner[CommandContext],
    spec: FlowSpec,
    *,
    timeout_ms: int,
) -> dict[str, bool]:
    """
    Runs every task's check command (concurrently; checks are read-only) and
    records which targets already exist in the runner's context.

    Must complete before `runner.run()`, since skip predicates only read the
    context.
    """
    checked = [t for t in spec.tasks if t.check]
    if not checked:
        return {}

    results = await asyncio.gather(*(run_command(t.check, timeout_ms=timeout_ms) for t in checked))
    existing = {t.key: ok for t, ok in zip(checked, results)}

    runner.context.update(lambda prev: {"existing": {**prev["existing"], **existing}})
    _LOG.info("Probe found %d of %d checked target(s) already present.", sum(existing.values()), len(existing))
    return existing
