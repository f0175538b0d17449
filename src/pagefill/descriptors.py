# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Value-free field descriptors: the canonical oracle payload for a region.

One descriptor per control, in the region's control order, which is the
order ``index:`` selectors address. Descriptors carry structure only:
current values, textarea content and option display text never appear.
"""

from __future__ import annotations

import json

from pydantic import BaseModel, Field

from . import ControlKind, ControlNode, Region
from .dom import HtmlDocument, tag_of
from .sanitizer import sanitize_text

_LABEL_MAX_LEN = 200
_ATTR_MAX_LEN = 256

# Text under these never counts toward a label (it is user state or code)
_OPAQUE_TAGS = frozenset({"textarea", "select", "option", "script", "style", "input", "button"})


class FieldDescriptor(BaseModel):
    """Structural description of one control, safe to send to the oracle."""

    index: int = Field(..., description="Position within the region; target of index: selectors")
    tag: str = Field(..., description="input, textarea, or select")
    type: str = Field(..., description="Effective control type")
    name: str | None = None
    id: str | None = None
    placeholder: str | None = None
    aria_label: str | None = Field(None, serialization_alias="aria-label")
    aria_describedby: str | None = Field(None, serialization_alias="aria-describedby")
    description: str | None = Field(None, description="Text of the aria-describedby targets")
    class_name: str | None = Field(None, serialization_alias="class")
    required: bool = False
    maxlength: int | None = None
    pattern: str | None = None
    label: str | None = None
    options: list[str] | None = Field(None, description="Option values only (select)")

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def _text_of(el) -> str:
    """Visible text of *el*, skipping control content and code."""
    parts: list[str] = []

    def walk(node) -> None:
        if node.text:
            parts.append(node.text)
        for child in node:
            if isinstance(child.tag, str) and tag_of(child) not in _OPAQUE_TAGS:
                walk(child)
            if child.tail:
                parts.append(child.tail)

    walk(el)
    return " ".join("".join(parts).split())


def resolve_label(document: HtmlDocument, el) -> str:
    """Label text for control *el*.

    An explicit ``<label for=id>`` wins. Otherwise walk up the ancestors and
    take the first ``<label>`` found under each one, nearest level first.
    """
    el_id = el.get("id")
    if el_id:
        for label in document.root.iter("label"):
            if label.get("for") == el_id:
                return _text_of(label)

    parent = el.getparent()
    while parent is not None:
        label = next(parent.iter("label"), None)
        if label is not None:
            return _text_of(label)
        parent = parent.getparent()
    return ""


def _described_by(document: HtmlDocument, ids: str) -> str:
    texts = []
    for ref in ids.split():
        for el in document.root.iter():
            if isinstance(el.tag, str) and el.get("id") == ref:
                texts.append(_text_of(el))
                break
    return " ".join(t for t in texts if t)


def _option_values(el) -> list[str]:
    values = []
    for option in el.iter("option"):
        value = option.get("value")
        if value is not None and value != "":
            values.append(sanitize_text(value, _ATTR_MAX_LEN))
    return values


def _clean(value: str, max_len: int = _ATTR_MAX_LEN) -> str | None:
    cleaned = sanitize_text(value, max_len) if value else ""
    return cleaned or None


def _identifier(value: str) -> str | None:
    """Raw id/name attribute. Selectors built from it must match the element exactly."""
    return value or None


def build_field_descriptor(document: HtmlDocument, control: ControlNode, index: int) -> FieldDescriptor:
    el = control.element if control.element is not None else document.element(control.handle)
    return FieldDescriptor(
        index=index,
        tag=control.kind.value,
        type=control.type,
        name=_identifier(control.name),
        id=_identifier(control.id),
        placeholder=_clean(control.placeholder),
        aria_label=_clean(control.aria_label),
        aria_describedby=_clean(control.aria_describedby),
        description=_clean(_described_by(document, control.aria_describedby), _LABEL_MAX_LEN)
        if control.aria_describedby
        else None,
        class_name=_clean(" ".join(control.classes)),
        required=control.required,
        maxlength=control.maxlength,
        pattern=_clean(control.pattern),
        label=_clean(resolve_label(document, el), _LABEL_MAX_LEN),
        options=_option_values(el) if control.kind is ControlKind.SELECT else None,
    )


def build_field_descriptors(document: HtmlDocument, region: Region) -> list[FieldDescriptor]:
    """Descriptors for every control in *region*, in index order."""
    return [build_field_descriptor(document, c, i) for i, c in enumerate(region.controls)]


def serialize_descriptors(descriptors: list[FieldDescriptor]) -> str:
    """JSON array used verbatim in the oracle prompt."""
    return json.dumps([d.to_payload() for d in descriptors], ensure_ascii=False, indent=2)
