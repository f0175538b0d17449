# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page-side coordinator: detection passes, triggers, fills, rescans.

One controller per page. ``scan()`` snapshots the page, runs detection, and
makes sure every region has exactly one trigger. ``activate()`` runs a fill
behind that region's trigger. Mutation batches go through
``notify_mutations()`` into the single-flight scheduler. Everything is gated
by the run's ``Settings.enabled`` and the store's autofill-enabled flag;
the run setting never writes through to the store.

With ``auto_fill`` on, each newly detected region is filled once without
waiting for activation; a failed auto fill drops the region's processed
mark so the next pass may retry it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from . import Region
from .config import Settings
from .detector import detect_regions
from .dom import HtmlDocument, PageSource
from .filler import FillReport, autofill_region
from .logging_config import region_context
from .oracle import MappingOracle
from .repository import ProfileStoreProtocol
from .scheduler import MutationRecord, RescanScheduler, should_rescan
from .trigger import Trigger, TriggerRegistry, TriggerState

logger = logging.getLogger(__name__)


class AutofillController:
    """Detection and fill orchestration for a single page."""

    def __init__(
        self,
        source: PageSource,
        *,
        oracle: MappingOracle,
        store: ProfileStoreProtocol,
        settings: Settings | None = None,
    ) -> None:
        self._source = source
        self._oracle = oracle
        self._store = store
        self._settings = settings or Settings()
        self._config = self._settings.detection
        self.document: HtmlDocument | None = None
        self.regions: dict[str, Region] = {}
        self.triggers = TriggerRegistry(revert_after=self._settings.trigger_revert_s)
        self._scheduler = RescanScheduler(self.scan, debounce_s=self._settings.rescan_debounce_s)
        self._auto_filled: set[str] = set()
        self._tasks: set[asyncio.Task] = set()

    @property
    def scheduler(self) -> RescanScheduler:
        return self._scheduler

    async def start(self) -> list[Region]:
        """Initial pass, then subscribe to the page's mutations when it reports them."""
        regions = await self.scan()
        observe = getattr(self._source, "observe_mutations", None)
        if observe is not None:
            await observe(self.notify_mutations)
        return regions

    async def scan(self) -> list[Region]:
        """Snapshot, detect, and attach triggers. Returns the regions found."""
        if not self._settings.enabled or not await self._store.get_enabled():
            logger.debug("Autofill disabled; skipping detection")
            return []

        document = await self._source.snapshot()
        result = detect_regions(document, self._config)
        self.document = document
        self.regions = {r.key: r for r in result.regions}

        created = 0
        for region in result.regions:
            _, is_new = self.triggers.ensure(region.key)
            created += is_new
        if created:
            logger.info("Detected %d region(s), %d new trigger(s)", len(result.regions), created)
        dropped = self.triggers.prune(self.regions)
        if dropped:
            logger.debug("Dropped %d trigger(s) for vanished regions", len(dropped))

        if self._settings.auto_fill:
            for region in result.regions:
                if region.key not in self._auto_filled:
                    self._auto_filled.add(region.key)
                    self._spawn(self._auto_fill(region.key))
        return result.regions

    def trigger_for(self, region_key: str) -> Trigger | None:
        return self.triggers.get(region_key)

    async def activate(self, region_key: str) -> FillReport | None:
        """Fill *region_key* behind its trigger.

        Returns the fill report, or None when the region is unknown, its
        trigger is busy, or the fill failed (the trigger then shows failure).
        """
        region = self.regions.get(region_key)
        trigger = self.triggers.get(region_key)
        if region is None or trigger is None or self.document is None:
            logger.warning("No detected region %s", region_key)
            return None

        document = self.document
        with region_context(region_key):
            started = await trigger.run(lambda: self._fill(document, region))
        if not started or trigger.state is not TriggerState.SUCCESS:
            return None
        return trigger.last_result

    async def _fill(self, document: HtmlDocument, region: Region) -> FillReport:
        return await autofill_region(
            document,
            region,
            oracle=self._oracle,
            store=self._store,
            writer=self._source,
            delay_s=self._settings.fill_delay_s,
            config=self._config,
        )

    async def _auto_fill(self, region_key: str) -> None:
        await self.activate(region_key)
        trigger = self.triggers.get(region_key)
        if trigger is not None and trigger.state is TriggerState.FAILURE:
            self._auto_filled.discard(region_key)
            region = self.regions.get(region_key)
            if region is not None:
                region.root.attrib.pop(self._config.marker_attribute, None)

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def notify_mutations(self, records: Iterable[MutationRecord]) -> bool:
        """Feed a mutation batch. Returns True if it scheduled a rescan."""
        if not should_rescan(records, self._config):
            return False
        self._scheduler.trigger()
        return True

    async def wait_idle(self) -> None:
        """Wait for pending rescans and auto fills to finish."""
        await self._scheduler.wait_idle()
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        await self._scheduler.close()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self.triggers.close()
