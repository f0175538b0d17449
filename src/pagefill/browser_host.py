# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Live page host over Playwright.

Detection runs on an lxml snapshot of ``page.content()``. Element XPaths
from the snapshot are used as locators on the live page for writes and
event dispatch, so both sides agree on which control is which as long as
the page has not reshuffled between snapshot and fill.

Subtree mutations are reported by an in-page MutationObserver. Each added
element's outer HTML is sent back through an exposed binding, parsed, and
handed to the mutation callback as ``MutationRecord`` batches.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import lxml.html
from lxml import etree
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from . import ControlNode
from .dom import HtmlDocument
from .errors import PageFillError
from .scheduler import MutationRecord

logger = logging.getLogger(__name__)

BINDING_NAME = "__pagefillMutations"

# Added subtrees larger than this are truncated before crossing the binding.
_MAX_ADDED_HTML = 200_000

_OBSERVER_JS = """((binding, maxLen) => {
  if (window.__pagefillObserver) return false;
  const root = document.body || document.documentElement;
  if (!root) return false;
  const observer = new MutationObserver((mutations) => {
    const added = [];
    for (const m of mutations) {
      for (const node of m.addedNodes) {
        if (node.nodeType !== 1) continue;
        const html = node.outerHTML || '';
        added.push(html.length > maxLen ? html.slice(0, maxLen) : html);
      }
    }
    if (added.length) window[binding](added);
  });
  observer.observe(root, { childList: true, subtree: true });
  window.__pagefillObserver = observer;
  return true;
})"""

_SET_VALUE_JS = """(el, value) => {
  const tag = el.tagName.toLowerCase();
  if (tag === 'select') {
    for (const opt of el.options) opt.selected = (opt.value === value);
  } else {
    el.value = value;
  }
}"""


def parse_added(fragments: list[str]) -> list:
    """Parse outer-HTML strings into detached elements; junk is dropped."""
    elements = []
    for html in fragments:
        if not isinstance(html, str) or not html.strip():
            continue
        try:
            nodes = lxml.html.fragments_fromstring(html)
        except (etree.ParserError, ValueError):
            logger.debug("Unparseable mutation fragment dropped", exc_info=True)
            continue
        elements.extend(n for n in nodes if not isinstance(n, str))
    return elements


class LivePage:
    """``PageSource`` backed by a Playwright page."""

    def __init__(self, page: Page) -> None:
        self._page = page
        self._observing = False

    @property
    def page(self) -> Page:
        return self._page

    async def snapshot(self) -> HtmlDocument:
        try:
            html = await self._page.content()
        except PlaywrightError as e:
            raise PageFillError(f"Could not read page content: {e}") from e
        return HtmlDocument.from_html(html)

    def _locate(self, control: ControlNode):
        return self._page.locator(f"xpath={control.xpath}")

    async def set_value(self, control: ControlNode, value: str) -> None:
        await self._locate(control).evaluate(_SET_VALUE_JS, value)

    async def dispatch(self, control: ControlNode, event: str) -> None:
        await self._locate(control).dispatch_event(event, {"bubbles": True})

    async def observe_mutations(self, callback: Callable[[list[MutationRecord]], object]) -> bool:
        """Install the in-page observer. Returns False if it was already running."""
        if self._observing:
            return False

        def _on_added(fragments: list[str]) -> None:
            added = parse_added(fragments)
            if added:
                callback([MutationRecord(added=tuple(added))])

        try:
            await self._page.expose_function(BINDING_NAME, _on_added)
            installed = await self._page.evaluate(
                f"{_OBSERVER_JS}({BINDING_NAME!r}, {_MAX_ADDED_HTML})"
            )
        except PlaywrightError as e:
            raise PageFillError(f"Could not install mutation observer: {e}") from e
        self._observing = True
        logger.debug("Mutation observer installed: %s", installed)
        return True
