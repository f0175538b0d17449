# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""PageFill exception hierarchy.

All PageFill-specific errors inherit from PageFillError, allowing callers
to catch the base class for any PageFill failure or specific subclasses
for targeted handling.

Per-field misses during a fill (unresolved selector, empty profile value)
are not errors and never raise.
"""

from __future__ import annotations


class PageFillError(Exception):
    """Base exception for all PageFill errors."""


class ConfigError(PageFillError):
    """Invalid settings or oracle configuration."""


class ResourceExhaustionError(PageFillError):
    """Document exceeds resource limits (element count)."""


class OracleError(PageFillError):
    """Mapping oracle failure: transport, non-success status, or missing credentials."""

    def __init__(self, message: str, *, provider: str = "", status_code: int = 0) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class InvalidOracleResponse(OracleError):
    """Oracle content was empty, irreparable, or not a flat selector→key object."""


class ProfileStoreError(PageFillError):
    """Profile or settings storage failure."""


class ProfileNotFoundError(ProfileStoreError):
    """Referenced profile id does not exist."""

    def __init__(self, profile_id: str) -> None:
        super().__init__(f"Profile not found: {profile_id}")
        self.profile_id = profile_id
