# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Mapping oracle boundary.

The oracle turns a region's field descriptors plus the available profile
keys into an ordered selector → profile-key mapping. Any failure surfaces
as a single ``OracleError``; a partial mapping is never returned.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from pagefill.descriptors import FieldDescriptor, serialize_descriptors


@dataclass(frozen=True, slots=True)
class MappingRequest:
    """What the oracle sees: structure only, never values."""

    fields: list[FieldDescriptor]
    profile_keys: list[str]

    def fields_json(self) -> str:
        return serialize_descriptors(self.fields)


@dataclass(frozen=True, slots=True)
class FormMapping:
    """Ordered (selector, profile key) pairs. Order is the fill order."""

    entries: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Mapping[str, str]) -> FormMapping:
        return cls(tuple((str(k), str(v)) for k, v in data.items()))

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def as_dict(self) -> dict[str, str]:
        return dict(self.entries)


@runtime_checkable
class MappingOracle(Protocol):
    """Anything that can answer a mapping request."""

    async def get_form_mapping(self, request: MappingRequest) -> FormMapping: ...


class StaticOracle:
    """Oracle that always answers with a fixed mapping (offline fills, tests)."""

    def __init__(self, mapping: FormMapping | Mapping[str, str]) -> None:
        self._mapping = mapping if isinstance(mapping, FormMapping) else FormMapping.from_dict(mapping)
        self.requests: list[MappingRequest] = []

    async def get_form_mapping(self, request: MappingRequest) -> FormMapping:
        self.requests.append(request)
        return self._mapping
