# src/provflow/engine/state.py
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from provflow.domain.errors import IllegalTransitionError
from provflow.domain.states import TaskStatus


@dataclass(frozen=True)
class TaskState:
    status: TaskStatus = TaskStatus.PENDING
    message: Optional[str] = None


# Anything not listed here is illegal.
_ALLOWED: frozenset[tuple[TaskStatus, TaskStatus]] = frozenset(
    {
        (TaskStatus.PENDING, TaskStatus.RUNNING),
        (TaskStatus.PENDING, TaskStatus.SKIPPED),
        (TaskStatus.RUNNING, TaskStatus.SUCCESS),
        (TaskStatus.RUNNING, TaskStatus.ERROR),
    }
)


class TaskStateTable:
    """
    Per-task state, owned by one engine run.

    Invariants enforced on every transition:
    - only the transitions in _ALLOWED are accepted
    - at most one task is RUNNING
    - nothing changes once the table is frozen (run complete)
    """

    def __init__(self, keys: Iterable[str]) -> None:
        self._states: dict[str, TaskState] = {k: TaskState() for k in keys}
        self._running: Optional[str] = None
        self._frozen = False

    def __getitem__(self, key: str) -> TaskState:
        return self._states[key]

    @property
    def running_key(self) -> Optional[str]:
        return self._running

    def view(self) -> Mapping[str, TaskState]:
        """Read-only live view."""
        return MappingProxyType(self._states)

    def count(self, status: TaskStatus) -> int:
        return sum(1 for s in self._states.values() if s.status == status)

    def transition(self, key: str, status: TaskStatus, message: Optional[str] = None) -> TaskState:
        if self._frozen:
            raise IllegalTransitionError(
                f"Run is complete; cannot move task {key!r} to {status}",
                details={"task": key, "to": str(status)},
            )
        if key not in self._states:
            raise IllegalTransitionError(f"Unknown task: {key}", details={"task": key})

        current = self._states[key].status
        if (current, status) not in _ALLOWED:
            raise IllegalTransitionError(
                f"Illegal transition for task {key!r}: {current} -> {status}",
                details={"task": key, "from": str(current), "to": str(status)},
            )

        if status == TaskStatus.RUNNING:
            if self._running is not None:
                raise IllegalTransitionError(
                    f"Task {self._running!r} is still running; cannot start {key!r}",
                    details={"task": key, "running": self._running},
                )
            self._running = key
        elif current == TaskStatus.RUNNING:
            self._running = None

        new_state = TaskState(status=status, message=message)
        self._states[key] = new_state
        return new_state

    def freeze(self) -> None:
        self._frozen = True
