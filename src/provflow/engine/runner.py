# src/provflow/engine/runner.py
from __future__ import annotations

import inspect
from typing import Callable, Generic, Mapping, Optional, Sequence, TypeVar

from provflow.domain.definitions import Group, Skip, Task, validate_definitions
from provflow.domain.errors import EngineMisuseError, TaskActionError
from provflow.domain.models import FlowSnapshot, GroupView, TaskStateView
from provflow.domain.states import GroupStatus, TaskStatus
from provflow.logging import get_logger

from .completion import CompletionCallback, CompletionSignal
from .context import FlowContext
from .groups import current_group_key, group_statuses
from .state import TaskState, TaskStateTable

_LOG = get_logger(__name__)

C = TypeVar("C")

SnapshotListener = Callable[[FlowSnapshot], None]


class FlowRunner(Generic[C]):
    """
    Sequential task runner.

    - Tasks run strictly in list order; groups only affect display.
    - For each task the skip predicate is consulted first. Skip(reason) records
      SKIPPED and moves on without calling the action.
    - An action that returns is SUCCESS; one that raises is ERROR.
    - exit_on_error=True: the first ERROR halts the run, later tasks stay
      PENDING and on_complete receives the error.
    - exit_on_error=False: every task is attempted and on_complete is called
      without an error; failures are only visible in the task states.

    `run()` is the only thing that advances the runner and may be awaited once.
    """

    def __init__(
        self,
        tasks: Sequence[Task[C]],
        groups: Sequence[Group],
        context: C,
        *,
        exit_on_error: bool = True,
        on_complete: Optional[CompletionCallback] = None,
    ) -> None:
        validate_definitions(tasks, groups)

        self._tasks: tuple[Task[C], ...] = tuple(tasks)
        self._groups: tuple[Group, ...] = tuple(groups)
        self._exit_on_error = exit_on_error

        self._context: FlowContext[C] = FlowContext(context)
        self._states = TaskStateTable(t.key for t in self._tasks)
        self._completion = CompletionSignal(on_complete)

        self._index = 0
        self._is_complete = False
        self._terminal_error: Optional[TaskActionError] = None
        self._started = False

        self._listeners: list[SnapshotListener] = []

    # -------------------------
    # Read side
    # -------------------------

    @property
    def tasks(self) -> tuple[Task[C], ...]:
        return self._tasks

    @property
    def groups(self) -> tuple[Group, ...]:
        return self._groups

    @property
    def context(self) -> FlowContext[C]:
        return self._context

    @property
    def exit_on_error(self) -> bool:
        return self._exit_on_error

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def is_complete(self) -> bool:
        return self._is_complete

    @property
    def terminal_error(self) -> Optional[TaskActionError]:
        return self._terminal_error

    @property
    def task_states(self) -> Mapping[str, TaskState]:
        return self._states.view()

    def group_statuses(self) -> dict[str, GroupStatus]:
        return group_statuses(self._groups, self._tasks, self._states.view())

    def current_group(self) -> Optional[str]:
        return current_group_key(self._groups, self._tasks, self._states.view())

    def snapshot(self) -> FlowSnapshot:
        states = self._states.view()
        statuses = self.group_statuses()
        return FlowSnapshot(
            tasks=[
                TaskStateView(
                    key=t.key,
                    title=t.title,
                    group=t.group,
                    status=states[t.key].status,
                    message=states[t.key].message,
                )
                for t in self._tasks
            ],
            groups=[GroupView(key=g.key, title=g.title, status=statuses[g.key]) for g in self._groups],
            current_index=self._index,
            current_group=self.current_group(),
            is_complete=self._is_complete,
            exit_on_error=self._exit_on_error,
            error=self._terminal_error.message if self._terminal_error else None,
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Registers a listener called with a fresh snapshot after every transition.
        Returns an unsubscribe function.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def wait(self) -> Optional[TaskActionError]:
        """Blocks until the run has signalled completion; returns the terminal error, if any."""
        return await self._completion.wait()

    # -------------------------
    # Execution
    # -------------------------

    async def run(self) -> Optional[TaskActionError]:
        """
        Runs every task in order and returns the terminal error (halt-on-error)
        or None.
        """
        if self._started:
            raise EngineMisuseError("FlowRunner.run() may only be called once", details={"started": True})
        self._started = True

        _LOG.info(
            "Starting flow: tasks=%d groups=%d exit_on_error=%s",
            len(self._tasks),
            len(self._groups),
            self._exit_on_error,
        )

        while self._index < len(self._tasks) and not self._is_complete:
            await self._step()

        if not self._is_complete:
            self._finish(None)

        return await self._completion.wait()

    async def _step(self) -> None:
        task = self._tasks[self._index]

        try:
            decision = task.decide(self._context.value)
        except Exception as e:
            self._fail(task, TaskActionError.from_exception(task.key, e))
            return

        if isinstance(decision, Skip):
            self._set(task.key, TaskStatus.SKIPPED, decision.reason)
            _LOG.info("Skipped task %s: %s", task.key, decision.reason)
            self._advance()
            return

        self._set(task.key, TaskStatus.RUNNING)
        _LOG.info("Running task %s (%s)", task.key, task.title)

        try:
            outcome = task.run(self._context)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            self._fail(task, TaskActionError.from_exception(task.key, e))
            return

        self._set(task.key, TaskStatus.SUCCESS)
        _LOG.info("Completed task %s", task.key)
        self._advance()

    def _fail(self, task: Task[C], err: TaskActionError) -> None:
        # A skip predicate that blew up never moved the task to RUNNING.
        if self._states[task.key].status == TaskStatus.PENDING:
            self._set(task.key, TaskStatus.RUNNING)
        self._set(task.key, TaskStatus.ERROR, err.message)
        _LOG.warning("Task %s failed: %s", task.key, err.message)

        if self._exit_on_error:
            self._terminal_error = err
            self._finish(err)
            return
        self._advance()

    def _advance(self) -> None:
        self._index += 1

    def _finish(self, error: Optional[TaskActionError]) -> None:
        self._is_complete = True
        self._states.freeze()
        if error is None:
            _LOG.info(
                "Flow complete: success=%d skipped=%d error=%d",
                self._states.count(TaskStatus.SUCCESS),
                self._states.count(TaskStatus.SKIPPED),
                self._states.count(TaskStatus.ERROR),
            )
        else:
            _LOG.error("Flow halted at task %s: %s", error.task_key, error.message)
        self._notify()
        self._completion.fire(error)

    def _set(self, key: str, status: TaskStatus, message: Optional[str] = None) -> None:
        self._states.transition(key, status, message)
        self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                _LOG.exception("Snapshot listener raised (continuing).")
