# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Navigation / search / filter chrome pruning.

Site-wide menus and search or filter widgets routinely hold two or more
text inputs. Any subtree rooted at (or nested inside) such chrome
contributes nothing to detection.
"""

from __future__ import annotations

from .dom import tag_of

NAVIGATION_TAGS = frozenset({"nav", "header"})

# Substrings searched in class and id values (case-insensitive)
NAVIGATION_TOKENS = ("nav", "menu", "filter", "search")


def matches_navigation_signal(el) -> bool:
    """True if *el* itself looks like navigation, search, or filter chrome."""
    if tag_of(el) in NAVIGATION_TAGS:
        return True
    haystack = f"{el.get('class') or ''} {el.get('id') or ''}".lower()
    if not haystack.strip():
        return False
    return any(token in haystack for token in NAVIGATION_TOKENS)


def is_pruned(el) -> bool:
    """True if *el* or any ancestor matches a navigation signal."""
    node = el
    while node is not None:
        if isinstance(node.tag, str) and matches_navigation_signal(node):
            return True
        node = node.getparent()
    return False
