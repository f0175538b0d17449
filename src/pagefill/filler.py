# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Mapping application: profile values into resolved controls.

Entries are applied strictly in mapping order, one at a time, with a short
pause after each write so host-page debounced validators see one change
at a time. Each write is followed by ``input`` → ``change`` → ``blur``.
An entry with no profile value, or whose selector does not resolve, is
skipped silently; nothing already written is rolled back if a later step
raises.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from . import ControlNode, Region
from .config import DetectionConfig
from .descriptors import build_field_descriptors
from .dom import ControlWriter, HtmlDocument
from .oracle import FormMapping, MappingOracle, MappingRequest
from .profiles import UserProfile, lookup_value, profile_keys
from .repository import ProfileStoreProtocol
from .selector_resolver import resolve_selector

logger = logging.getLogger(__name__)

FILL_EVENTS = ("input", "change", "blur")

DEFAULT_FILL_DELAY_S = 0.05


@dataclass(slots=True)
class FillReport:
    """What happened to each mapping entry of one fill."""

    region_key: str
    filled: list[str] = field(default_factory=list)  # selectors written
    skipped_empty: list[str] = field(default_factory=list)  # no profile value
    unresolved: list[str] = field(default_factory=list)  # selector matched nothing

    @property
    def total(self) -> int:
        return len(self.filled) + len(self.skipped_empty) + len(self.unresolved)


async def fill_control(
    writer: ControlWriter,
    control: ControlNode,
    value: str,
    *,
    delay_s: float = DEFAULT_FILL_DELAY_S,
) -> None:
    """Write *value* and notify the page as if the user typed it."""
    await writer.set_value(control, value)
    for event in FILL_EVENTS:
        await writer.dispatch(control, event)
    if delay_s > 0:
        await asyncio.sleep(delay_s)


async def apply_mapping(
    document: HtmlDocument,
    region: Region,
    mapping: FormMapping | Mapping[str, str],
    profile: UserProfile | Mapping[str, Any],
    writer: ControlWriter | None = None,
    *,
    delay_s: float = DEFAULT_FILL_DELAY_S,
    config: DetectionConfig | None = None,
) -> FillReport:
    """Fill *region* from *profile* following *mapping* order."""
    if not isinstance(mapping, FormMapping):
        mapping = FormMapping.from_dict(mapping)
    writer = writer or document
    report = FillReport(region_key=region.key)

    for selector, key in mapping:
        value = lookup_value(profile, key)
        if not value:
            report.skipped_empty.append(selector)
            continue
        control = resolve_selector(document, region, selector, config)
        if control is None:
            report.unresolved.append(selector)
            continue
        await fill_control(writer, control, value, delay_s=delay_s)
        report.filled.append(selector)

    logger.info(
        "Filled region %s: %d written, %d empty, %d unresolved",
        region.key,
        len(report.filled),
        len(report.skipped_empty),
        len(report.unresolved),
    )
    return report


async def autofill_region(
    document: HtmlDocument,
    region: Region,
    *,
    oracle: MappingOracle,
    store: ProfileStoreProtocol,
    writer: ControlWriter | None = None,
    delay_s: float = DEFAULT_FILL_DELAY_S,
    config: DetectionConfig | None = None,
) -> FillReport:
    """Describe → active profile → oracle → apply, awaited in sequence.

    Raises:
        OracleError: If the oracle fails; nothing is written in that case.
    """
    descriptors = build_field_descriptors(document, region)
    profile = await store.get_active_profile()
    request = MappingRequest(fields=descriptors, profile_keys=profile_keys(profile))
    mapping = await oracle.get_form_mapping(request)
    return await apply_mapping(document, region, mapping, profile, writer, delay_s=delay_s, config=config)
