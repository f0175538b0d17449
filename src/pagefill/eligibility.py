# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Fillable-control classification.

A node is a fill target iff it is a visible, enabled free-text control:
a textarea, or an input whose effective type is one of the configured
personal-data types. Choice controls (radio/checkbox/select) and
action controls (submit/button) are never targets; selects only qualify
when ``DetectionConfig.include_select`` is set.
"""

from __future__ import annotations

from . import ControlKind, ControlNode
from .config import DetectionConfig
from .dom import HtmlDocument, tag_of
from .navigation import matches_navigation_signal

_DEFAULT_CONFIG = DetectionConfig()

_TAG_KINDS: dict[str, ControlKind] = {
    "input": ControlKind.INPUT,
    "textarea": ControlKind.TEXTAREA,
    "select": ControlKind.SELECT,
}

# Every type value a browser recognises. Anything else (typos, custom
# values) falls back to "text", exactly as HTMLInputElement.type reports.
_KNOWN_INPUT_TYPES = frozenset(
    {
        "button",
        "checkbox",
        "color",
        "date",
        "datetime-local",
        "email",
        "file",
        "hidden",
        "image",
        "month",
        "number",
        "password",
        "radio",
        "range",
        "reset",
        "search",
        "submit",
        "tel",
        "text",
        "time",
        "url",
        "week",
    }
)


def control_kind(el) -> ControlKind | None:
    """Variant for a control element, or None for any other node."""
    return _TAG_KINDS.get(tag_of(el))


def effective_input_type(el) -> str:
    """The input's type as the browser sees it ("text" when absent or unknown)."""
    raw = (el.get("type") or "").strip().lower()
    if raw in _KNOWN_INPUT_TYPES:
        return raw
    return "text"


def effective_type(el) -> str:
    kind = control_kind(el)
    if kind is ControlKind.INPUT:
        return effective_input_type(el)
    if kind is ControlKind.SELECT:
        return "select-multiple" if el.get("multiple") is not None else "select-one"
    if kind is ControlKind.TEXTAREA:
        return "textarea"
    return ""


def is_hidden(el) -> bool:
    return el.get("hidden") is not None


def is_disabled(el) -> bool:
    return el.get("disabled") is not None


def is_fillable_control(el, config: DetectionConfig = _DEFAULT_CONFIG) -> bool:
    """True if *el* is a visible, enabled free-text control."""
    kind = control_kind(el)
    if kind is None or is_hidden(el) or is_disabled(el):
        return False
    if kind is ControlKind.TEXTAREA:
        return True
    if kind is ControlKind.SELECT:
        return config.include_select
    return effective_input_type(el) in config.eligible_input_types


def _parse_maxlength(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    return value if value >= 0 else None


def build_control(document: HtmlDocument, el, order: int) -> ControlNode:
    """Capture *el*'s structural attributes. Never reads its current value."""
    kind = control_kind(el)
    if kind is None:
        raise ValueError(f"not a control element: <{tag_of(el)}>")
    return ControlNode(
        handle=document.handle_of(el),
        kind=kind,
        type=effective_type(el),
        order=order,
        xpath=document.xpath_of(el),
        name=el.get("name") or "",
        id=el.get("id") or "",
        placeholder=el.get("placeholder") or "",
        aria_label=el.get("aria-label") or "",
        aria_describedby=el.get("aria-describedby") or "",
        classes=tuple((el.get("class") or "").split()),
        required=el.get("required") is not None,
        hidden=is_hidden(el),
        disabled=is_disabled(el),
        maxlength=_parse_maxlength(el.get("maxlength")),
        pattern=el.get("pattern") or "",
        element=el,
    )


def scan_controls(
    document: HtmlDocument,
    root,
    config: DetectionConfig = _DEFAULT_CONFIG,
) -> list[ControlNode]:
    """Fillable controls under *root* in document order, skipping pruned subtrees.

    This is the ordering that ``index:`` selectors refer to. *root* itself is
    not tested against the navigation signals; it already passed detection.
    """
    controls: list[ControlNode] = []
    stack = [iter(root)]
    while stack:
        child = next(stack[-1], None)
        if child is None:
            stack.pop()
            continue
        if not isinstance(child.tag, str) or matches_navigation_signal(child):
            continue
        if is_fillable_control(child, config):
            controls.append(build_control(document, child, len(controls)))
            continue
        stack.append(iter(child))
    return controls


def count_fillable(root, config: DetectionConfig = _DEFAULT_CONFIG, *, limit: int | None = None) -> int:
    """Count fillable controls under *root* (inclusive), stopping early at *limit*."""
    count = 0
    for el in root.iter():
        if isinstance(el.tag, str) and is_fillable_control(el, config):
            count += 1
            if limit is not None and count >= limit:
                break
    return count
