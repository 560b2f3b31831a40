# src/provflow/domain/errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class FlowBaseError(Exception):
    """
    Base domain error.

    The API layer can map these to HTTP responses consistently.
    """
    message: str
    code: str = "FLOW_ERROR"
    details: Optional[dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message


@dataclass
class NotFoundError(FlowBaseError):
    code: str = "NOT_FOUND"


@dataclass
class ConflictError(FlowBaseError):
    code: str = "CONFLICT"


@dataclass
class EngineMisuseError(FlowBaseError):
    """
    The caller handed the engine definitions it cannot run, or drove it wrongly
    (e.g. running the same runner twice).
    """
    code: str = "ENGINE_MISUSE"


@dataclass
class DuplicateTaskKeyError(EngineMisuseError):
    code: str = "DUPLICATE_TASK_KEY"


@dataclass
class UnknownGroupError(EngineMisuseError):
    code: str = "UNKNOWN_GROUP"


@dataclass
class IllegalTransitionError(FlowBaseError):
    code: str = "ILLEGAL_TRANSITION"


@dataclass
class TaskActionError(FlowBaseError):
    """
    Raised by (or on behalf of) a task action. Its message is what ends up in
    the task's state.
    """
    code: str = "TASK_ACTION_ERROR"
    task_key: Optional[str] = None

    @classmethod
    def from_exception(cls, task_key: str, exc: BaseException) -> "TaskActionError":
        if isinstance(exc, TaskActionError):
            if exc.task_key is None:
                exc.task_key = task_key
            return exc
        message = str(exc) or type(exc).__name__
        err = cls(message, task_key=task_key, details={"exception": type(exc).__name__})
        err.__cause__ = exc
        return err
