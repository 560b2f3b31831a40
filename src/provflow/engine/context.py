# src/provflow/engine/context.py
from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any, Callable, Generic, TypeVar

from pydantic import BaseModel

C = TypeVar("C")


class FlowContext(Generic[C]):
    """
    The single shared value threaded through every task of a run.

    Tasks never assign fields on the value they were handed. They call
    `update(fn)` where `fn(prev)` returns the fields that change, and the
    result is merged into whatever the value is *now*. A partial built from a
    snapshot taken earlier in the task therefore cannot drop fields written
    since.

    Supported value shapes:
    - Mapping (merged as {**prev, **partial})
    - pydantic model (model_copy(update=partial))
    - dataclass instance (dataclasses.replace(prev, **partial))
    `fn` may also return a whole new value of the same type, or None for
    "no change".
    """

    def __init__(self, initial: C) -> None:
        self._value = initial
        self._revision = 0

    @property
    def value(self) -> C:
        return self._value

    @property
    def revision(self) -> int:
        """Number of updates applied so far."""
        return self._revision

    def update(self, fn: Callable[[C], Any]) -> C:
        partial = fn(self._value)
        if partial is None:
            return self._value
        self._value = merge_context(self._value, partial)
        self._revision += 1
        return self._value

    def __repr__(self) -> str:
        return f"FlowContext(revision={self._revision}, value={self._value!r})"


def merge_context(prev: Any, partial: Any) -> Any:
    if type(partial) is type(prev) and not isinstance(prev, Mapping):
        return partial

    if not isinstance(partial, Mapping):
        raise TypeError(
            f"context update must return a mapping of changed fields or a {type(prev).__name__}, "
            f"got {type(partial).__name__}"
        )

    if isinstance(prev, Mapping):
        return {**prev, **partial}
    if isinstance(prev, BaseModel):
        return prev.model_copy(update=dict(partial))
    if dataclasses.is_dataclass(prev) and not isinstance(prev, type):
        return dataclasses.replace(prev, **partial)

    raise TypeError(f"cannot merge a partial update into a {type(prev).__name__} context")
