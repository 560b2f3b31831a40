"""
provflow: ordered, resumable provisioning / teardown task runner.
"""

from provflow.domain.definitions import RUN, Group, Skip, Task
from provflow.engine.context import FlowContext
from provflow.engine.runner import FlowRunner

__all__ = ["FlowRunner", "FlowContext", "Task", "Group", "Skip", "RUN"]
