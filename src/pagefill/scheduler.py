# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Mutation filtering and single-flight rescan scheduling.

DOM churn arrives in bursts. ``should_rescan`` drops mutation batches that
cannot introduce a form; ``RescanScheduler`` coalesces the rest into one
pass per debounce window and never lets two passes overlap. A trigger that
lands while a pass is running arms exactly one follow-up pass.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from contextlib import suppress
from dataclasses import dataclass

from .config import DetectionConfig
from .dom import tag_of
from .eligibility import count_fillable

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_S = 0.1


@dataclass(frozen=True, slots=True)
class MutationRecord:
    """A subtree mutation notification: the elements it added."""

    added: Sequence = ()


def introduces_form(el, config: DetectionConfig | None = None) -> bool:
    """An added <form>, or an added subtree holding two or more fillable controls."""
    if not isinstance(el.tag, str):
        return False
    if tag_of(el) == "form":
        return True
    return count_fillable(el, config or DetectionConfig(), limit=2) >= 2


def should_rescan(records: Iterable[MutationRecord], config: DetectionConfig | None = None) -> bool:
    return any(introduces_form(el, config) for record in records for el in record.added)


class RescanScheduler:
    """Debounced, single-flight runner for detection passes.

    State is a pending flag plus at most one armed timer. The window is fixed
    from the first trigger of a burst, so continuous churn still rescans
    every ``debounce_s``.
    """

    def __init__(self, callback: Callable[[], Awaitable[object]], *, debounce_s: float = DEFAULT_DEBOUNCE_S) -> None:
        self._callback = callback
        self._debounce_s = debounce_s
        self._pending = False
        self._running = False
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task | None = None
        self._closed = False
        self.runs = 0

    @property
    def pending(self) -> bool:
        return self._pending

    @property
    def running(self) -> bool:
        return self._running

    def trigger(self) -> None:
        """Request a pass. Cheap; safe to call for every mutation batch."""
        if self._closed:
            return
        self._pending = True
        if self._running or self._timer is not None:
            return
        self._arm()

    def _arm(self) -> None:
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce_s, self._fire)

    def _fire(self) -> None:
        self._timer = None
        if self._closed or self._running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        self._pending = False
        self._running = True
        try:
            await self._callback()
        except Exception:
            logger.exception("Rescan failed")
        finally:
            self._running = False
            self.runs += 1
        if self._pending and not self._closed:
            self._arm()

    async def wait_idle(self) -> None:
        """Wait until no timer is armed and no pass is running."""
        while self._timer is not None or self._running or (self._task is not None and not self._task.done()):
            if self._task is not None and not self._task.done():
                await self._task
            else:
                await asyncio.sleep(self._debounce_s / 2 or 0.001)

    async def close(self) -> None:
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
