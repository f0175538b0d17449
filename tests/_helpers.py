# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared helper utilities for pagefill test files.

Underscore prefix prevents pytest collection.
These are plain utility functions (not fixtures; conftest.py is reserved
for fixtures).
"""

from __future__ import annotations

import lxml.html

from pagefill import ControlKind, ControlNode, Region
from pagefill.config import DetectionConfig
from pagefill.detector import detect_regions
from pagefill.dom import HtmlDocument


def page(body: str) -> HtmlDocument:
    """Parse *body* as the contents of <body>."""
    return HtmlDocument.from_html(f"<html><head></head><body>{body}</body></html>")


def parse_el(fragment: str):
    """Parse a single detached element."""
    return lxml.html.fragment_fromstring(fragment)


def control(name: str = "", *, id: str = "", placeholder: str = "", aria_label: str = "", handle: int = 0) -> ControlNode:
    """Bare ControlNode for heuristic tests."""
    return ControlNode(
        handle=handle,
        kind=ControlKind.INPUT,
        type="text",
        order=handle,
        xpath=f"/html/body/input[{handle + 1}]",
        name=name,
        id=id,
        placeholder=placeholder,
        aria_label=aria_label,
    )


def only_region(document: HtmlDocument, config: DetectionConfig | None = None) -> Region:
    """Run detection and assert exactly one region was found."""
    regions = detect_regions(document, config).regions
    assert len(regions) == 1, [r.key for r in regions]
    return regions[0]


def names(region: Region) -> list[str]:
    return [c.name for c in region.controls]


SIGNUP_FORM = """
<form id="signup">
  <label for="fn">First name</label><input id="fn" name="first_name">
  <label for="em">Email</label><input id="em" name="email" type="email">
  <input type="submit" value="Go">
</form>
"""
