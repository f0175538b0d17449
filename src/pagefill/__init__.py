# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page Fill: form detection and oracle-driven autofill for arbitrary pages.

Finds the regions of a page that behave like data-entry forms, describes them
to a mapping oracle without leaking field values, and writes profile values
back into the live controls:
- controls: fillable input/textarea(/select) nodes with structural metadata
- regions: non-overlapping groups of controls, one per detected form
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

__version__ = "0.3.0"


class ControlKind(StrEnum):
    """Closed set of control variants a region can hold."""

    INPUT = "input"
    TEXTAREA = "textarea"
    SELECT = "select"


class RegionKind(StrEnum):
    """How a region's root qualified as an aggregation point."""

    FORM = "form"  # a <form> element
    CONTAINER = "container"  # a generic container accepted by the heuristic


@dataclass(frozen=True, slots=True)
class ControlNode:
    """A single fillable control captured during a detection pass."""

    handle: int  # stable per-document element handle
    kind: ControlKind
    type: str  # effective type ("text" when absent, "textarea", "select-one")
    order: int  # document order index within the pass
    xpath: str  # absolute XPath, used to reach the live element
    name: str = ""
    id: str = ""
    placeholder: str = ""
    aria_label: str = ""
    aria_describedby: str = ""
    classes: tuple[str, ...] = ()
    required: bool = False
    hidden: bool = False
    disabled: bool = False
    maxlength: int | None = None
    pattern: str = ""
    element: Any = field(default=None, repr=False, compare=False, hash=False)


@dataclass(slots=True)
class Region:
    """A detected form: the tightest qualifying root and the controls it owns."""

    root: Any = field(repr=False, compare=False)  # lxml element
    root_handle: int
    kind: RegionKind
    controls: list[ControlNode]
    key: str  # scoped identity (root XPath), stable across passes on an unchanged tree
    consumed: bool = False  # root already carried the processed marker

    def __len__(self) -> int:
        return len(self.controls)

    @property
    def control_handles(self) -> frozenset[int]:
        return frozenset(c.handle for c in self.controls)
