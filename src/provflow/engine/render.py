# src/provflow/engine/render.py
"""
Plain-text rendering of a FlowSnapshot.

    ● Storage → ◉ Pipeline → ○ Cache

    ┌─ ✓ Storage ──────────────────────────────────────────┐
    │ ✓ Create bucket                                      │
    │ ○ Enable catalog (Already enabled)                   │
    └──────────────────────────────────────────────────────┘
"""
from __future__ import annotations

from provflow.domain.models import FlowSnapshot, GroupView, TaskStateView
from provflow.domain.states import GroupStatus, TaskStatus

PHASE_ICONS = {
    GroupStatus.PENDING: "○",
    GroupStatus.ACTIVE: "◉",
    GroupStatus.COMPLETE: "●",
    GroupStatus.ERROR: "✗",
}

GROUP_ICONS = {
    GroupStatus.PENDING: "○",
    GroupStatus.ACTIVE: "◉",
    GroupStatus.COMPLETE: "✓",
    GroupStatus.ERROR: "✗",
}

TASK_ICONS = {
    TaskStatus.PENDING: "○",
    TaskStatus.RUNNING: "⠋",
    TaskStatus.SUCCESS: "✓",
    TaskStatus.ERROR: "✗",
    TaskStatus.SKIPPED: "○",
}

MIN_GROUP_WIDTH = 50


def render_pipeline(snapshot: FlowSnapshot) -> str:
    return " → ".join(f"{PHASE_ICONS[g.status]} {g.title}" for g in snapshot.groups)


def _task_line(task: TaskStateView) -> str:
    line = f"{TASK_ICONS[task.status]} {task.title}"
    if task.message:
        line += f" ({task.message})"
    return line


def render_group(group: GroupView, tasks: list[TaskStateView], *, min_width: int = MIN_GROUP_WIDTH) -> str:
    lines = [_task_line(t) for t in tasks] or ["(no tasks)"]
    width = max([len(line) for line in lines] + [len(group.title) + 4, min_width])

    heading = f"{GROUP_ICONS[group.status]} {group.title} "
    top = f"┌─ {heading}{'─' * max(0, width - len(heading))}┐"
    body = [f"│ {line.ljust(width)} │" for line in lines]
    bottom = f"└{'─' * (width + 2)}┘"
    return "\n".join([top, *body, bottom])


def visible_groups(snapshot: FlowSnapshot, *, show_completed_groups: bool = True) -> list[GroupView]:
    current = snapshot.current_group
    if not show_completed_groups:
        return [g for g in snapshot.groups if g.key == current]
    return [g for g in snapshot.groups if g.status != GroupStatus.PENDING or g.key == current]


def render_flow(snapshot: FlowSnapshot, *, show_completed_groups: bool = True) -> str:
    blocks = [render_pipeline(snapshot)]
    for group in visible_groups(snapshot, show_completed_groups=show_completed_groups):
        members = [t for t in snapshot.tasks if t.group == group.key]
        blocks.append(render_group(group, members))
    if snapshot.error:
        blocks.append(f"✗ {snapshot.error}")
    return "\n\n".join(blocks) + "\n"
