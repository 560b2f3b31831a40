# src/provflow/domain/states.py
from __future__ import annotations

from enum import StrEnum


class TaskStatus(StrEnum):
    """
    Per-task status owned by the engine.

    Legal transitions:
      - PENDING -> RUNNING -> SUCCESS | ERROR
      - PENDING -> SKIPPED
    """

    PENDING = "pending"
    RUNNING = "running"
    SKIPPED = "skipped"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.SKIPPED, TaskStatus.SUCCESS, TaskStatus.ERROR)

    @property
    def is_done(self) -> bool:
        # done without failure
        return self in (TaskStatus.SKIPPED, TaskStatus.SUCCESS)


class GroupStatus(StrEnum):
    """
    Display status of a group. Always derived from task statuses, never stored.
    """

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETE = "complete"
    ERROR = "error"


class RunPhase(StrEnum):
    """
    Lifecycle of a run hosted by the API.

      - PROBING: check commands are being evaluated, no task has started
      - RUNNING: the engine is stepping through tasks
      - COMPLETED: the engine signalled completion without an error
      - FAILED: the engine halted on a task error, or probing blew up
    """

    PROBING = "probing"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
