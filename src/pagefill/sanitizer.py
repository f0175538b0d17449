"""Privacy and injection scrubbing for everything sent to the mapping oracle.

Oracle payloads are built from page text the user does not control (labels,
placeholders, aria text). This module provides two layers:

1. sanitize_text(): short descriptor strings: strips hidden Unicode, ANSI
   escapes and role-prefix injection, collapses whitespace, truncates
2. sanitize_markup(): value-free HTML of a region, the lower-fidelity
   alternative payload (loses explicit label association)
"""

from __future__ import annotations

import copy
import re

import lxml.html
from lxml import etree

from . import Region
from .config import PROCESSED_MARKER

# Unicode control characters that can be used for prompt injection
# Zero-width chars, bidi overrides, interlinear annotations
_CONTROL_CHAR_RE = re.compile(
    r"[\u200B-\u200F\u202A-\u202E\u2060-\u2069\uFEFF\uFFF9-\uFFFB"
    r"\u0000-\u0008\u000B\u000C\u000E-\u001F\u007F-\u009F]"
)

# ANSI escape sequences
_ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*[a-zA-Z]")

# Role prefix patterns that could trick the oracle
# Matches both line-start and mid-text patterns like "[SYSTEM: ...]"
_ROLE_PREFIX_RE = re.compile(
    r"\[?\s*(?:SYSTEM|ASSISTANT|USER|HUMAN|AI|ADMIN|INSTRUCTION|OVERRIDE"
    r"|IMPORTANT|IGNORE|HACK|COMMAND)\s*[:\]]\s*",
    re.IGNORECASE,
)

_WHITESPACE_RE = re.compile(r"\s{2,}")

# Elements whose content is never part of the structural payload
_STRIP_TAGS = ("script", "style", "noscript", "template", "iframe", "object", "embed")

# Attributes that carry user state rather than structure
_STATE_ATTRS = ("value", "checked", "selected", "data-value", "data-initial-value")


def sanitize_text(text: str, max_len: int = 256) -> str:
    """Sanitize a short text field (labels, placeholders, aria text).

    - Strips Unicode control characters (zero-width, bidi overrides)
    - Removes ANSI escape sequences
    - Removes role-prefix patterns that could inject instructions
    - Collapses newlines into spaces
    - Truncates to max_len
    """
    if not text:
        return text

    text = _ANSI_ESCAPE_RE.sub("", text)
    text = _CONTROL_CHAR_RE.sub("", text)

    # Collapse newlines to prevent multi-line injection
    text = text.replace("\n", " ").replace("\r", " ")

    text = _ROLE_PREFIX_RE.sub("", text)
    text = _WHITESPACE_RE.sub(" ", text).strip()

    if len(text) > max_len:
        text = text[:max_len]

    return text


def sanitize_markup(region: Region, max_len: int = 50_000) -> str:
    """Value-free, script-free HTML for *region*'s root.

    Works on a deep copy; the live tree is never touched. Removes current
    values and selection state, textarea content, option display text,
    script-like elements, inline event handlers and the processed marker.
    Option values stay; their display text does not.
    """
    clone = copy.deepcopy(region.root)

    for tag in _STRIP_TAGS:
        for el in list(clone.iter(tag)):
            _drop_keep_tail(el)

    for el in clone.iter():
        if not isinstance(el.tag, str):
            continue
        for attr in list(el.attrib):
            lowered = attr.lower()
            if lowered == "value" and el.tag == "option":
                continue
            if lowered.startswith("on") or lowered in _STATE_ATTRS or lowered == "style":
                del el.attrib[attr]
        if el.get(PROCESSED_MARKER) is not None:
            del el.attrib[PROCESSED_MARKER]
        if el.tag in ("textarea", "option"):
            for child in list(el):
                el.remove(child)
            el.text = None

    # Comments can hold prefilled data in server-rendered pages
    for comment in list(clone.iter(etree.Comment)):
        _drop_keep_tail(comment)

    clone.tail = None
    html = lxml.html.tostring(clone, encoding="unicode")
    html = _CONTROL_CHAR_RE.sub("", html)
    if len(html) > max_len:
        html = html[:max_len]
    return html


def _drop_keep_tail(el) -> None:
    """Remove *el* but keep the text that follows it."""
    parent = el.getparent()
    if parent is None:
        return
    tail = el.tail
    previous = el.getprevious()
    parent.remove(el)
    if tail:
        if previous is not None:
            previous.tail = (previous.tail or "") + tail
        else:
            parent.text = (parent.text or "") + tail
