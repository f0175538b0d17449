# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import pagefill  # noqa: F401
except ImportError:
    raise ImportError("pagefill is not installed. Run: pip install -e '.[dev]'") from None

import pytest

from pagefill.profiles import new_profile, set_field_value
from pagefill.repository import InMemoryProfileStore


@pytest.fixture
def profile():
    """Default-layout profile with a few values filled in."""
    p = new_profile("Test Profile")
    set_field_value(p, "first_name", "Ada")
    set_field_value(p, "last_name", "Lovelace")
    set_field_value(p, "email", "ada@example.com")
    set_field_value(p, "passport_num", "X1234567")
    return p


@pytest.fixture
def store(profile):
    """In-memory store whose active profile is ``profile``."""
    return InMemoryProfileStore([profile])
