# tests/test_command_flow.py
import asyncio

import pytest
from pydantic import ValidationError

from provflow.domain.errors import TaskActionError
from provflow.domain.models import FlowSpec
from provflow.domain.states import TaskStatus
from provflow.engine.command_flow import build_command_runner, probe_existing


def _spec(**overrides) -> FlowSpec:
    payload = {
        "name": "infra",
        "groups": [{"key": "storage", "title": "Storage"}, {"key": "pipeline", "title": "Pipeline"}],
        "tasks": [
            {"key": "bucket", "title": "Create bucket", "group": "storage", "command": "echo bucket", "check": "true"},
            {
                "key": "catalog",
                "title": "Enable catalog",
                "group": "storage",
                "command": "echo catalog",
                "check": "false",
                "skip_reason": "Already enabled",
            },
            {"key": "stream", "title": "Create stream", "group": "pipeline", "command": "echo stream"},
        ],
    }
    payload.update(overrides)
    return FlowSpec.model_validate(payload)


async def _probe_and_run(spec: FlowSpec):
    runner = build_command_runner(spec, default_timeout_ms=5000)
    existing = await probe_existing(runner, spec, timeout_ms=5000)
    error = await runner.run()
    return runner, existing, error


def test_existing_targets_are_skipped():
    runner, existing, error = asyncio.run(_probe_and_run(_spec()))

    assert error is None
    assert existing == {"bucket": True, "catalog": False}
    assert runner.task_states["bucket"].status == TaskStatus.SKIPPED
    assert runner.task_states["bucket"].message == "Already exists"
    assert runner.task_states["catalog"].status == TaskStatus.SUCCESS
    assert runner.task_states["stream"].status == TaskStatus.SUCCESS

    ctx = runner.context.value
    assert ctx["completed"] == ["catalog", "stream"]
    assert ctx["outputs"]["stream"] == "stream\n"
    assert ctx["existing"] == {"bucket": True, "catalog": False}


def test_failed_command_halts_with_failure_message():
    spec = _spec(
        tasks=[
            {"key": "a", "title": "A", "group": "storage", "command": "exit 4", "failure_message": "Failed to create A"},
            {"key": "b", "title": "B", "group": "pipeline", "command": "echo b"},
        ]
    )
    runner, _, error = asyncio.run(_probe_and_run(spec))

    assert isinstance(error, TaskActionError)
    assert error.message == "Failed to create A"
    assert error.details["exit_code"] == 4
    assert runner.task_states["a"].message == "Failed to create A"
    assert runner.task_states["b"].status == TaskStatus.PENDING


def test_teardown_style_continue_on_error():
    spec = _spec(
        exit_on_error=False,
        tasks=[
            {"key": "pipeline", "title": "Delete pipeline", "group": "pipeline", "command": "exit 1"},
            {"key": "bucket", "title": "Delete bucket", "group": "storage", "command": "echo deleted"},
        ],
    )
    runner, _, error = asyncio.run(_probe_and_run(spec))

    assert error is None
    assert runner.task_states["pipeline"].status == TaskStatus.ERROR
    assert runner.task_states["pipeline"].message == "Command failed: exit 1"
    assert runner.task_states["bucket"].status == TaskStatus.SUCCESS


def test_task_timeout_is_a_failure():
    spec = _spec(
        tasks=[{"key": "slow", "title": "Slow", "group": "storage", "command": "sleep 5", "timeout_ms": 100}],
    )
    runner, _, error = asyncio.run(_probe_and_run(spec))

    assert error is not None
    assert error.details["timed_out"] is True
    assert runner.task_states["slow"].status == TaskStatus.ERROR


def test_no_checks_means_no_probe():
    spec = _spec(tasks=[{"key": "s", "title": "S", "group": "storage", "command": "true"}])
    runner, existing, error = asyncio.run(_probe_and_run(spec))

    assert existing == {}
    assert error is None
    assert runner.context.revision == 1  # only the action's own update


@pytest.mark.parametrize(
    "tasks",
    [
        [
            {"key": "x", "title": "X", "group": "storage", "command": "true"},
            {"key": "x", "title": "X2", "group": "storage", "command": "true"},
        ],
        [{"key": "x", "title": "X", "group": "cache", "command": "true"}],
        [{"key": "x", "title": "X", "group": "storage", "command": "true", "unexpected": 1}],
    ],
)
def test_invalid_specs_are_rejected(tasks):
    with pytest.raises(ValidationError):
        _spec(tasks=tasks)
