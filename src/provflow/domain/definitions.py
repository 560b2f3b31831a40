# src/provflow/domain/definitions.py
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Generic, Optional, Sequence, TypeVar, Union

from .errors import DuplicateTaskKeyError, EngineMisuseError, UnknownGroupError

if TYPE_CHECKING:
    from provflow.engine.context import FlowContext

C = TypeVar("C")

DEFAULT_SKIP_REASON = "Skipped"


@dataclass(frozen=True)
class Run:
    """Skip decision: proceed with the task's action."""

    def __repr__(self) -> str:
        return "RUN"


RUN = Run()


@dataclass(frozen=True)
class Skip:
    """Skip decision: do not run the action, record `reason` instead."""
    reason: str = DEFAULT_SKIP_REASON

    def __post_init__(self) -> None:
        if not self.reason:
            object.__setattr__(self, "reason", DEFAULT_SKIP_REASON)


SkipDecision = Union[Run, Skip]

SkipPredicate = Callable[[C], SkipDecision]
TaskAction = Callable[["FlowContext[C]"], Union[Awaitable[Any], Any]]


@dataclass(frozen=True)
class Group:
    key: str
    title: str


@dataclass(frozen=True)
class Task(Generic[C]):
    """
    One orderable unit of work.

    `skip` receives the current context value and must be synchronous and free
    of side effects. `run` receives the FlowContext; it may be a coroutine
    function. Returning normally means success, raising means failure.
    """
    key: str
    title: str
    group: str
    run: TaskAction
    skip: Optional[SkipPredicate] = None

    def decide(self, value: C) -> SkipDecision:
        if self.skip is None:
            return RUN
        decision = self.skip(value)
        if not isinstance(decision, (Run, Skip)):
            raise TypeError(
                f"skip predicate of task {self.key!r} returned {decision!r}; expected RUN or Skip(...)"
            )
        return decision


def validate_definitions(tasks: Sequence[Task[Any]], groups: Sequence[Group]) -> None:
    """
    Rejects definitions the engine cannot run faithfully:
    - duplicate task keys (state is keyed by task key)
    - duplicate group keys
    - tasks naming a group that was not declared (they would never show up in
      any group's derived status)

    An empty task list is valid.
    """
    seen: set[str] = set()
    dupes: list[str] = []
    for t in tasks:
        if t.key in seen:
            dupes.append(t.key)
        seen.add(t.key)
    if dupes:
        raise DuplicateTaskKeyError(
            f"Duplicate task keys: {', '.join(sorted(set(dupes)))}",
            details={"duplicates": sorted(set(dupes))},
        )

    group_keys = [g.key for g in groups]
    if len(group_keys) != len(set(group_keys)):
        dup_groups = sorted({k for k in group_keys if group_keys.count(k) > 1})
        raise EngineMisuseError(
            f"Duplicate group keys: {', '.join(dup_groups)}",
            code="DUPLICATE_GROUP_KEY",
            details={"duplicates": dup_groups},
        )

    declared = set(group_keys)
    unknown = {t.key: t.group for t in tasks if t.group not in declared}
    if unknown:
        raise UnknownGroupError(
            f"Tasks reference undeclared groups: {', '.join(f'{k}->{g}' for k, g in unknown.items())}",
            details={"tasks": unknown},
        )
