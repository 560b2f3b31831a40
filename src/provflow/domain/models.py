from __future__ import annotations

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .states import GroupStatus, RunPhase, TaskStatus


Key = Annotated[str, Field(min_length=1, max_length=128)]
Title = Annotated[str, Field(min_length=1, max_length=256)]


class GroupSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: Key
    title: Title


class CommandTaskSpec(BaseModel):
    """
    A task whose action is a shell command.

    If `check` is set it is run before the flow starts; a zero exit status means
    the target already exists and the task is skipped with `skip_reason`.
    """
    model_config = ConfigDict(extra="forbid")

    key: Key
    title: Title
    group: Key
    command: Annotated[str, Field(min_length=1)]
    check: Optional[str] = None
    skip_reason: Annotated[str, Field(min_length=1)] = "Already exists"
    failure_message: Optional[str] = None
    timeout_ms: Optional[Annotated[int, Field(gt=0, le=3_600_000)]] = None  # up to 1h


class FlowSpec(BaseModel):
    """
    API input model for a command flow.

    Strict mode:
    - task keys and group keys are unique
    - every task names a declared group
    """
    model_config = ConfigDict(extra="forbid")

    name: Optional[Annotated[str, Field(max_length=256)]] = None
    groups: list[GroupSpec] = Field(default_factory=list)
    tasks: list[CommandTaskSpec] = Field(default_factory=list)
    exit_on_error: bool = True

    @model_validator(mode="after")
    def _validate_keys(self):
        task_keys = [t.key for t in self.tasks]
        if len(task_keys) != len(set(task_keys)):
            raise ValueError("flow contains duplicate task keys")

        group_keys = [g.key for g in self.groups]
        if len(group_keys) != len(set(group_keys)):
            raise ValueError("flow contains duplicate group keys")

        declared = set(group_keys)
        missing = sorted({t.group for t in self.tasks if t.group not in declared})
        if missing:
            raise ValueError(f"tasks reference undeclared groups: {', '.join(missing)}")
        return self


class TaskStateView(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: str
    title: str
    group: str
    status: TaskStatus
    message: Optional[str] = None


class GroupView(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: str
    title: str
    status: GroupStatus


class FlowSnapshot(BaseModel):
    """
    Read-only picture of a run, for rendering collaborators.
    """
    model_config = ConfigDict(extra="forbid")

    tasks: list[TaskStateView]
    groups: list[GroupView]
    current_index: int
    current_group: Optional[str] = None
    is_complete: bool
    exit_on_error: bool
    error: Optional[str] = None

    def task(self, key: str) -> TaskStateView:
        for t in self.tasks:
            if t.key == key:
                return t
        raise KeyError(key)

    def group(self, key: str) -> GroupView:
        for g in self.groups:
            if g.key == key:
                return g
        raise KeyError(key)


class RunCreateResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")
    id: str


class RunView(BaseModel):
    """
    API output model for a single hosted run.
    """
    model_config = ConfigDict(extra="forbid")

    id: str
    name: Optional[str] = None
    phase: RunPhase

    created_at: int
    started_at: Optional[int] = None
    finished_at: Optional[int] = None

    # Set when probing itself failed (before any task ran)
    probe_error: Optional[str] = None
    # Set when the engine task itself crashed or was cancelled
    error: Optional[str] = None

    snapshot: FlowSnapshot


class RunListResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    runs: list[RunView]
    total: int


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    error: str
    code: str
    details: dict = Field(default_factory=dict)
