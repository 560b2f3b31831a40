"""
Domain layer for provflow.

- states: TaskStatus / GroupStatus / RunPhase enums
- definitions: Task, Group and skip decisions (RUN / Skip)
- models: Pydantic models for API input/output and snapshots
- errors: domain-level exceptions
"""

from .states import GroupStatus, RunPhase, TaskStatus
from .definitions import RUN, Group, Run, Skip, SkipDecision, Task, validate_definitions
from .models import (
    CommandTaskSpec,
    ErrorResponse,
    FlowSnapshot,
    FlowSpec,
    GroupSpec,
    GroupView,
    RunCreateResponse,
    RunListResponse,
    RunView,
    TaskStateView,
)
from .errors import (
    ConflictError,
    DuplicateTaskKeyError,
    EngineMisuseError,
    FlowBaseError,
    IllegalTransitionError,
    NotFoundError,
    TaskActionError,
    UnknownGroupError,
)

__all__ = [
    "TaskStatus",
    "GroupStatus",
    "RunPhase",
    "RUN",
    "Run",
    "Skip",
    "SkipDecision",
    "Task",
    "Group",
    "validate_definitions",
    "GroupSpec",
    "CommandTaskSpec",
    "FlowSpec",
    "TaskStateView",
    "GroupView",
    "FlowSnapshot",
    "RunCreateResponse",
    "RunView",
    "RunListResponse",
    "ErrorResponse",
    "FlowBaseError",
    "NotFoundError",
    "ConflictError",
    "EngineMisuseError",
    "DuplicateTaskKeyError",
    "UnknownGroupError",
    "IllegalTransitionError",
    "TaskActionError",
]
