# src/provflow/engine/__init__.py
"""
Execution engine for provflow.

- runner: sequential stepper, failure policies, snapshots
- state: per-task state table and transition rules
- groups: derived group status / current group
- context: functional context updates
- completion: one-shot completion signal
- command_flow: shell-command flows built from a FlowSpec
- render: plain-text rendering of snapshots
"""

from .context import FlowContext
from .groups import current_group_key, derive_group_status, group_statuses
from .runner import FlowRunner
from .state import TaskState, TaskStateTable

__all__ = [
    "FlowRunner",
    "FlowContext",
    "TaskState",
    "TaskStateTable",
    "derive_group_status",
    "group_statuses",
    "current_group_key",
]
