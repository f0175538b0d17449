# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Per-region fill trigger state machine.

    idle ──activate──▶ processing ──▶ success ─┐
                                  └─▶ failure ─┴─(revert_after)──▶ idle

A trigger only accepts activation while idle, which is what keeps two fills
of the same region from overlapping. The revert to idle is timer-driven
and ignores further activations. Triggers are keyed by region key (the
root's XPath), so equivalent regions on one page each get their own.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_REVERT_AFTER_S = 2.0


class TriggerState(StrEnum):
    IDLE = "idle"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILURE = "failure"


class Trigger:
    """Fill affordance for a single region."""

    def __init__(
        self,
        region_key: str,
        *,
        revert_after: float = DEFAULT_REVERT_AFTER_S,
        on_change: Callable[[Trigger], None] | None = None,
    ) -> None:
        self.region_key = region_key
        self._revert_after = revert_after
        self._on_change = on_change
        self._state = TriggerState.IDLE
        self._revert_handle: asyncio.TimerHandle | None = None
        self.last_error: BaseException | None = None
        self.last_result: Any = None

    @property
    def state(self) -> TriggerState:
        return self._state

    @property
    def disabled(self) -> bool:
        return self._state is not TriggerState.IDLE

    def _set_state(self, state: TriggerState) -> None:
        self._state = state
        if self._on_change is not None:
            self._on_change(self)

    async def run(self, action: Callable[[], Awaitable[Any]]) -> bool:
        """Run *action* if idle. Returns True when the action was started.

        A failing action moves the trigger to ``failure``; the exception is
        kept on ``last_error`` and logged, never re-raised, so one region's
        failure cannot disturb the others.
        """
        if self.disabled:
            logger.debug("Trigger %s busy (%s); activation ignored", self.region_key, self._state)
            return False

        self._set_state(TriggerState.PROCESSING)
        self.last_error = None
        try:
            self.last_result = await action()
        except Exception as e:
            self.last_error = e
            logger.error("Autofill failed for region %s: %s", self.region_key, e, exc_info=True)
            self._set_state(TriggerState.FAILURE)
        else:
            self._set_state(TriggerState.SUCCESS)
        self._schedule_revert()
        return True

    def _schedule_revert(self) -> None:
        if self._revert_handle is not None:
            self._revert_handle.cancel()
        loop = asyncio.get_running_loop()
        self._revert_handle = loop.call_later(self._revert_after, self._revert)

    def _revert(self) -> None:
        self._revert_handle = None
        self._set_state(TriggerState.IDLE)

    def close(self) -> None:
        if self._revert_handle is not None:
            self._revert_handle.cancel()
            self._revert_handle = None


class TriggerRegistry:
    """At most one trigger per region key."""

    def __init__(
        self,
        *,
        revert_after: float = DEFAULT_REVERT_AFTER_S,
        on_change: Callable[[Trigger], None] | None = None,
    ) -> None:
        self._revert_after = revert_after
        self._on_change = on_change
        self._triggers: dict[str, Trigger] = {}

    def ensure(self, region_key: str) -> tuple[Trigger, bool]:
        """Existing trigger for *region_key*, or a new one. Second item: created."""
        trigger = self._triggers.get(region_key)
        if trigger is not None:
            return trigger, False
        trigger = Trigger(region_key, revert_after=self._revert_after, on_change=self._on_change)
        self._triggers[region_key] = trigger
        return trigger, True

    def get(self, region_key: str) -> Trigger | None:
        return self._triggers.get(region_key)

    def prune(self, keep: Iterable[str]) -> list[str]:
        """Drop triggers whose key is not in *keep*, except ones mid-fill. Returns the dropped keys."""
        keep = set(keep)
        dropped = [
            key
            for key, trigger in self._triggers.items()
            if key not in keep and trigger.state is not TriggerState.PROCESSING
        ]
        for key in dropped:
            self._triggers.pop(key).close()
        return dropped

    def __contains__(self, region_key: object) -> bool:
        return region_key in self._triggers

    def __len__(self) -> int:
        return len(self._triggers)

    def keys(self) -> list[str]:
        return list(self._triggers)

    def close(self) -> None:
        for trigger in self._triggers.values():
            trigger.close()
