# src/provflow/engine/groups.py
"""
Group status derivation.

Everything here is a pure function of (groups, tasks, task states); group
status is never stored.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from provflow.domain.definitions import Group, Task
from provflow.domain.states import GroupStatus, TaskStatus

from .state import TaskState


def _status_of(key: str, states: Mapping[str, TaskState]) -> TaskStatus:
    state = states.get(key)
    return state.status if state is not None else TaskStatus.PENDING


def derive_group_status(
    group_key: str,
    tasks: Sequence[Task[Any]],
    states: Mapping[str, TaskState],
) -> GroupStatus:
    statuses = [_status_of(t.key, states) for t in tasks if t.group == group_key]
    if not statuses:
        return GroupStatus.PENDING

    if any(s == TaskStatus.ERROR for s in statuses):
        return GroupStatus.ERROR
    if any(s == TaskStatus.RUNNING for s in statuses):
        return GroupStatus.ACTIVE
    if all(s.is_done for s in statuses):
        return GroupStatus.COMPLETE
    if any(s.is_done for s in statuses):
        # partial progress
        return GroupStatus.ACTIVE
    return GroupStatus.PENDING


def group_statuses(
    groups: Sequence[Group],
    tasks: Sequence[Task[Any]],
    states: Mapping[str, TaskState],
) -> dict[str, GroupStatus]:
    return {g.key: derive_group_status(g.key, tasks, states) for g in groups}


def current_group_key(
    groups: Sequence[Group],
    tasks: Sequence[Task[Any]],
    states: Mapping[str, TaskState],
) -> Optional[str]:
    """First group, in declared order, that is not complete."""
    for g in groups:
        if derive_group_status(g.key, tasks, states) != GroupStatus.COMPLETE:
            return g.key
    return None

