# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Bottom-up form aggregation.

One post-order walk over the tree. Each node hands its parent the list of
unclaimed controls found beneath it:

  1. pruned chrome (nav/header/menu/search/filter) → nothing, no descent
  2. a fillable control → itself, no descent
  3. anything else → concatenation of its children's lists

A node holding two or more pending controls becomes an aggregation point
when it is a <form>, or a configured container tag whose group passes the
form-likeness heuristic. It then claims the whole group and hands up an
empty list, so the tightest qualifying root always wins and no control is
counted twice. Ancestors of an emitted region are blocked from aggregating,
which keeps regions from nesting.

The claimed set lives on the per-pass ``_PassState``; nothing is shared
between passes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from . import ControlNode, Region, RegionKind
from .config import DetectionConfig
from .dom import HtmlDocument, is_element, tag_of
from .eligibility import build_control, is_fillable_control
from .errors import ResourceExhaustionError
from .heuristics import is_form_like
from .navigation import is_pruned, matches_navigation_signal

logger = logging.getLogger(__name__)

_MIN_REGION_CONTROLS = 2


@dataclass(frozen=True, slots=True)
class DetectionResult:
    """Output of one detection pass."""

    regions: list[Region]
    claimed: frozenset[int]  # control handles owned by some region
    visited: int
    pruned: int

    @property
    def keys(self) -> list[str]:
        return [r.key for r in self.regions]


@dataclass(slots=True)
class _Outcome:
    pending: list[ControlNode]
    blocked: bool = False  # a region was emitted somewhere below


@dataclass(slots=True)
class _Frame:
    node: object
    children: object
    pending: list[ControlNode] = field(default_factory=list)
    blocked: bool = False

    def absorb(self, outcome: _Outcome) -> None:
        self.pending.extend(outcome.pending)
        self.blocked = self.blocked or outcome.blocked


class _PassState:
    """Accumulators for a single pass: claimed handles, emitted regions, counters."""

    def __init__(self, document: HtmlDocument, config: DetectionConfig) -> None:
        self.document = document
        self.config = config
        self.claimed: set[int] = set()
        self.regions: list[Region] = []
        self.order = 0
        self.visited = 0
        self.pruned = 0

    def enter(self, el) -> _Outcome | None:
        """Leaf outcome for *el*, or None when its children must be walked."""
        self.visited += 1
        if matches_navigation_signal(el):
            self.pruned += 1
            return _Outcome([])
        if is_fillable_control(el, self.config):
            control = build_control(self.document, el, self.order)
            self.order += 1
            return _Outcome([control])
        return None

    def leave(self, frame: _Frame) -> _Outcome:
        """Decide whether *frame*'s node aggregates its pending controls."""
        pending = frame.pending
        if frame.blocked or len(pending) < _MIN_REGION_CONTROLS:
            return _Outcome(pending, frame.blocked)

        tag = tag_of(frame.node)
        if tag == "form":
            kind = RegionKind.FORM
        elif tag in self.config.container_tags and is_form_like(pending):
            kind = RegionKind.CONTAINER
        else:
            return _Outcome(pending)

        self._emit(frame.node, kind, pending)
        return _Outcome([], blocked=True)

    def _emit(self, node, kind: RegionKind, controls: list[ControlNode]) -> None:
        marker = self.config.marker_attribute
        consumed = node.get(marker) is not None
        if self.config.mark_processed and not consumed:
            node.set(marker, "true")
        self.claimed.update(c.handle for c in controls)
        self.regions.append(
            Region(
                root=node,
                root_handle=self.document.handle_of(node),
                kind=kind,
                controls=list(controls),
                key=self.document.xpath_of(node),
                consumed=consumed,
            )
        )

    def result(self) -> DetectionResult:
        return DetectionResult(
            regions=self.regions,
            claimed=frozenset(self.claimed),
            visited=self.visited,
            pruned=self.pruned,
        )


def detect_regions(
    document: HtmlDocument,
    config: DetectionConfig | None = None,
    *,
    start=None,
) -> DetectionResult:
    """Run one detection pass from *start* (default: <body>).

    Raises:
        ResourceExhaustionError: If the document exceeds ``config.max_nodes`` elements.
    """
    config = config or DetectionConfig()
    total = document.count_elements()
    if total > config.max_nodes:
        raise ResourceExhaustionError(f"Document has {total} elements (limit {config.max_nodes})")

    start = document.body if start is None else start
    state = _PassState(document, config)
    if is_pruned(start):
        logger.debug("Detection start node is inside navigation chrome; nothing to do")
        return state.result()

    root_outcome = state.enter(start)
    if root_outcome is None:
        stack = [_Frame(start, iter(start))]
        while stack:
            frame = stack[-1]
            child = next(frame.children, None)
            if child is None:
                stack.pop()
                outcome = state.leave(frame)
                if stack:
                    stack[-1].absorb(outcome)
                continue
            if not is_element(child):
                continue
            child_outcome = state.enter(child)
            if child_outcome is None:
                stack.append(_Frame(child, iter(child)))
            else:
                frame.absorb(child_outcome)

    result = state.result()
    logger.debug(
        "Detection pass: %d region(s), %d control(s) claimed, %d node(s) visited, %d pruned",
        len(result.regions),
        len(result.claimed),
        result.visited,
        result.pruned,
    )
    return result
