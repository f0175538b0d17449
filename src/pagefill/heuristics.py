# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Form-likeness scoring for control groups found outside <form> elements.

A group is accepted when at least one control looks like personal data
entry and the group is not unanimously search/filter-like. One strong
positive signal is enough; a filter signal only vetoes when every control
carries it.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from . import ControlNode

FORM_LIKE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"name",
        r"email",
        r"phone",
        r"address",
        r"city",
        r"state",
        r"zip",
        r"postal",
        r"first",
        r"last",
        r"company",
        r"job",
        r"birth",
        r"date",
        r"passport",
        r"license",
        r"id",
        r"ssn",
        r"tax",
        r"card",
        r"member",
        r"payment",
        r"billing",
        r"shipping",
        r"account",
        r"user",
        r"login",
        r"register",
        r"signup",
    )
)

FILTER_LIKE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE) for p in (r"filter", r"search", r"query", r"find", r"sort", r"tag")
)


def composite_text(control: ControlNode) -> str:
    """name + id + placeholder + aria-label, concatenated without separators."""
    return f"{control.name}{control.id}{control.placeholder}{control.aria_label}"


def _matches_any(text: str, patterns: Sequence[re.Pattern[str]]) -> bool:
    return any(p.search(text) for p in patterns)


def is_form_like_text(text: str) -> bool:
    return _matches_any(text, FORM_LIKE_PATTERNS)


def is_filter_like_text(text: str) -> bool:
    return _matches_any(text, FILTER_LIKE_PATTERNS)


def is_form_like(controls: Sequence[ControlNode]) -> bool:
    """Accept *controls* as genuine data entry rather than a search/filter widget."""
    if not controls:
        return False
    texts = [composite_text(c) for c in controls]
    has_form_like = any(is_form_like_text(t) for t in texts)
    all_filter_like = all(is_filter_like_text(t) for t in texts)
    return has_form_like and not all_filter_like
