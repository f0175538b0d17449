# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Host tree abstraction over lxml.

``HtmlDocument`` owns a parsed page and hands out stable integer handles for
its elements, so detection passes and trigger bookkeeping never rely on
proxy object identity. It also acts as the in-memory control writer: values
land in the tree and dispatched notifications are appended to an event log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import lxml.html
from lxml import etree

if TYPE_CHECKING:
    from . import ControlNode

logger = logging.getLogger(__name__)

_EMPTY_DOCUMENT = "<html><head></head><body></body></html>"


def tag_of(el) -> str:
    """Lowercase tag name, or "" for comments / processing instructions."""
    tag = el.tag
    return tag.lower() if isinstance(tag, str) else ""


def is_element(el) -> bool:
    return isinstance(el.tag, str)


@dataclass(frozen=True, slots=True)
class DispatchedEvent:
    """A notification delivered to a control, in dispatch order."""

    handle: int
    event: str


@runtime_checkable
class ControlWriter(Protocol):
    """Writes values into controls and notifies the host page."""

    async def set_value(self, control: ControlNode, value: str) -> None: ...

    async def dispatch(self, control: ControlNode, event: str) -> None: ...


@runtime_checkable
class PageSource(ControlWriter, Protocol):
    """A page that can be snapshotted for detection and written to."""

    async def snapshot(self) -> HtmlDocument: ...


class HtmlDocument:
    """A parsed page with stable element handles and an in-memory writer."""

    def __init__(self, root: lxml.html.HtmlElement) -> None:
        self._root = root
        self._tree = root.getroottree()
        # Keeping every handed-out proxy alive pins lxml's node → proxy mapping,
        # so the same element always hashes to the same handle.
        self._elements: list = []
        self._handles: dict = {}
        self.events: list[DispatchedEvent] = []

    @classmethod
    def from_html(cls, html: str | bytes) -> HtmlDocument:
        """Parse a full document. Empty input yields an empty <html><body>."""
        if not html or not html.strip():
            html = _EMPTY_DOCUMENT
        try:
            root = lxml.html.document_fromstring(html)
        except (etree.ParserError, ValueError):
            logger.debug("Unparseable document; using empty tree", exc_info=True)
            root = lxml.html.document_fromstring(_EMPTY_DOCUMENT)
        return cls(root)

    @property
    def root(self) -> lxml.html.HtmlElement:
        return self._root

    @property
    def body(self) -> lxml.html.HtmlElement:
        body = self._root.find("body")
        return body if body is not None else self._root

    # ── Handles ───────────────────────────────────────────────────

    def handle_of(self, el) -> int:
        """Stable handle for *el*; issued on first sight, never reused."""
        handle = self._handles.get(el)
        if handle is None:
            handle = len(self._elements)
            self._elements.append(el)
            self._handles[el] = handle
        return handle

    def element(self, handle: int):
        """Element for a previously issued handle."""
        return self._elements[handle]

    def xpath_of(self, el) -> str:
        return self._tree.getpath(el)

    def find_xpath(self, xpath: str):
        """First element at *xpath*, or None."""
        try:
            found = self._tree.xpath(xpath)
        except etree.XPathError:
            return None
        return found[0] if found else None

    def iter_elements(self, start=None):
        """Elements under *start* (inclusive) in document order."""
        start = self._root if start is None else start
        for el in start.iter():
            if is_element(el):
                yield el

    def count_elements(self) -> int:
        return sum(1 for _ in self.iter_elements())

    # ── Mutation helpers ──────────────────────────────────────────

    def insert_fragment(self, parent, html: str) -> list:
        """Append parsed *html* under *parent*; returns the added top-level elements."""
        added = []
        for node in lxml.html.fragments_fromstring(html):
            if isinstance(node, str):
                # Leading text before the first element
                if len(parent):
                    last = parent[-1]
                    last.tail = (last.tail or "") + node
                else:
                    parent.text = (parent.text or "") + node
                continue
            parent.append(node)
            added.append(node)
        return added

    def to_html(self) -> str:
        return lxml.html.tostring(self._root, encoding="unicode", doctype="<!DOCTYPE html>")

    async def snapshot(self) -> HtmlDocument:
        """In-memory documents are their own live view."""
        return self

    # ── ControlWriter ─────────────────────────────────────────────

    async def set_value(self, control: ControlNode, value: str) -> None:
        el = control.element if control.element is not None else self.element(control.handle)
        tag = tag_of(el)
        if tag == "textarea":
            for child in list(el):
                el.remove(child)
            el.text = value
        elif tag == "select":
            for option in el.iter("option"):
                option_value = option.get("value")
                if option_value is None:
                    option_value = (option.text or "").strip()
                if option_value == value:
                    option.set("selected", "selected")
                elif "selected" in option.attrib:
                    del option.attrib["selected"]
        else:
            el.set("value", value)

    async def dispatch(self, control: ControlNode, event: str) -> None:
        self.events.append(DispatchedEvent(control.handle, event))
