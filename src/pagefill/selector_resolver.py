# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Oracle selector parsing and resolution back onto live controls.

Selectors have the form ``<kind>:<value>`` with kind ∈ {id, name, index}.
Resolution never raises: an unknown kind logs a warning, anything else that
cannot be matched simply resolves to None and the caller skips the entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from . import ControlNode, Region
from .config import DetectionConfig
from .dom import HtmlDocument
from .eligibility import build_control, control_kind, scan_controls

logger = logging.getLogger(__name__)


class SelectorKind(StrEnum):
    ID = "id"
    NAME = "name"
    INDEX = "index"


@dataclass(frozen=True, slots=True)
class Selector:
    """A parsed oracle selector. ``kind`` is kept raw so unknown kinds survive parsing."""

    kind: str
    value: str

    @classmethod
    def parse(cls, raw: str) -> Selector:
        """Split on the first ':'; a missing colon yields an empty value."""
        kind, _, value = raw.partition(":")
        return cls(kind.strip().lower(), value)

    def __str__(self) -> str:
        return f"{self.kind}:{self.value}"


def _find_descendant(region: Region, attr: str, value: str):
    for el in region.root.iter():
        if el is region.root or not isinstance(el.tag, str):
            continue
        if el.get(attr) == value and control_kind(el) is not None:
            return el
    return None


def _as_control(document: HtmlDocument, region: Region, el) -> ControlNode:
    handle = document.handle_of(el)
    for control in region.controls:
        if control.handle == handle:
            return control
    return build_control(document, el, order=-1)


def _parse_index(value: str) -> int | None:
    try:
        index = int(value.strip())
    except ValueError:
        return None
    return index if index >= 0 else None


def resolve_selector(
    document: HtmlDocument,
    region: Region,
    selector: Selector | str,
    config: DetectionConfig | None = None,
) -> ControlNode | None:
    """Resolve *selector* to a control inside *region*, or None."""
    if isinstance(selector, str):
        selector = Selector.parse(selector)

    if selector.kind == SelectorKind.ID:
        el = _find_descendant(region, "id", selector.value)
        return _as_control(document, region, el) if el is not None else None

    if selector.kind == SelectorKind.NAME:
        el = _find_descendant(region, "name", selector.value)
        return _as_control(document, region, el) if el is not None else None

    if selector.kind == SelectorKind.INDEX:
        index = _parse_index(selector.value)
        if index is None:
            return None
        # Same scan, same order as the descriptors the oracle saw
        controls = scan_controls(document, region.root, config or DetectionConfig())
        if index >= len(controls):
            return None
        return controls[index]

    logger.warning("Unknown selector kind %r in %r", selector.kind, str(selector))
    return None
