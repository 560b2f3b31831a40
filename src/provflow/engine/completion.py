# src/provflow/engine/completion.py
from __future__ import annotations

import asyncio
from typing import Callable, Optional

from provflow.domain.errors import TaskActionError
from provflow.logging import get_logger

_LOG = get_logger(__name__)

CompletionCallback = Callable[..., None]


class CompletionSignal:
    """
    One-shot end-of-run notification.

    - `fire()` means success (or a continue-on-error run that exhausted its tasks)
    - `fire(error)` means a fatal halt
    Only the first fire counts; later ones are logged and ignored.
    """

    def __init__(self, callback: Optional[CompletionCallback] = None) -> None:
        self._callback = callback
        self._fired = False
        self._error: Optional[TaskActionError] = None
        self._event = asyncio.Event()

    def fire(self, error: Optional[TaskActionError] = None) -> bool:
        if self._fired:
            _LOG.debug("Completion already signalled; ignoring repeat (error=%r).", error)
            return False

        self._fired = True
        self._error = error
        self._event.set()

        if self._callback is not None:
            try:
                if error is None:
                    self._callback()
                else:
                    self._callback(error)
            except Exception:
                _LOG.exception("on_complete callback raised.")
        return True

    async def wait(self) -> Optional[TaskActionError]:
        await self._event.wait()
        return self._error
