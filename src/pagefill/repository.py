# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Profile store abstraction: protocol-based data access layer.

Defines ``ProfileStoreProtocol`` for profile CRUD, the active-profile
pointer, and the settings the page side reads (autofill enabled flag,
oracle configuration). ``InMemoryProfileStore`` serves tests and one-shot
CLI runs; ``repository_sqlite.SqliteProfileStore`` persists.

Shared rules live in ``ProfileStoreBase`` so both backends agree:
- the first profile created becomes active
- deleting the active profile activates the first remaining one
- saving a flat legacy mapping updates the active profile, or creates
  "Default Profile" from it when none is active
- autofill is enabled unless explicitly switched off
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from .config import OracleConfig
from .errors import ProfileNotFoundError
from .profiles import (
    UserProfile,
    apply_legacy_values,
    is_legacy_profile,
    new_profile,
    upgrade_legacy_profile,
)

# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ProfileStoreProtocol(Protocol):
    """Interface for profile and settings storage, in-memory or SQLite."""

    async def get_active_profile(self) -> UserProfile: ...

    async def list_profiles(self) -> list[UserProfile]: ...

    async def create_profile(self, name: str) -> UserProfile: ...

    async def update_profile(self, profile: UserProfile) -> None: ...

    async def delete_profile(self, profile_id: str) -> None: ...

    async def set_active_profile(self, profile_id: str) -> None: ...

    async def save_profile(self, profile: UserProfile | Mapping[str, Any]) -> UserProfile: ...

    async def get_enabled(self) -> bool: ...

    async def set_enabled(self, enabled: bool) -> None: ...

    async def get_oracle_config(self) -> OracleConfig: ...

    async def save_oracle_config(self, config: OracleConfig) -> None: ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Shared semantics
# ---------------------------------------------------------------------------


class ProfileStoreBase:
    """Store semantics over five storage primitives implemented by subclasses."""

    # ── Primitives ────────────────────────────────────────────────

    async def _load_profiles(self) -> list[UserProfile]:
        raise NotImplementedError

    async def _write_profile(self, profile: UserProfile, position: int | None = None) -> None:
        raise NotImplementedError

    async def _remove_profile(self, profile_id: str) -> None:
        raise NotImplementedError

    async def _get_setting(self, key: str) -> str | None:
        raise NotImplementedError

    async def _set_setting(self, key: str, value: str | None) -> None:
        raise NotImplementedError

    # ── ProfileStoreProtocol ──────────────────────────────────────

    async def list_profiles(self) -> list[UserProfile]:
        return await self._load_profiles()

    async def _find(self, profile_id: str | None) -> UserProfile | None:
        if not profile_id:
            return None
        for profile in await self._load_profiles():
            if profile.id == profile_id:
                return profile
        return None

    async def get_active_profile(self) -> UserProfile:
        """Active profile, or an unsaved default profile when none is active."""
        active = await self._find(await self._get_setting("active_profile_id"))
        return active if active is not None else new_profile("Default Profile")

    async def create_profile(self, name: str) -> UserProfile:
        profile = new_profile(name)
        existing = await self._load_profiles()
        await self._write_profile(profile, position=len(existing))
        if not existing:
            await self._set_setting("active_profile_id", profile.id)
        return profile

    async def update_profile(self, profile: UserProfile) -> None:
        if await self._find(profile.id) is None:
            raise ProfileNotFoundError(profile.id)
        profile.touch()
        await self._write_profile(profile)

    async def delete_profile(self, profile_id: str) -> None:
        await self._remove_profile(profile_id)
        if await self._get_setting("active_profile_id") == profile_id:
            remaining = await self._load_profiles()
            await self._set_setting("active_profile_id", remaining[0].id if remaining else None)

    async def set_active_profile(self, profile_id: str) -> None:
        if await self._find(profile_id) is None:
            raise ProfileNotFoundError(profile_id)
        await self._set_setting("active_profile_id", profile_id)

    async def save_profile(self, profile: UserProfile | Mapping[str, Any]) -> UserProfile:
        """Persist a categorized profile, or merge a flat legacy mapping."""
        if not is_legacy_profile(profile):
            if not isinstance(profile, UserProfile):
                profile = UserProfile.from_dict(profile)
            await self.update_profile(profile)
            return profile

        active = await self._find(await self._get_setting("active_profile_id"))
        if active is not None:
            apply_legacy_values(active, profile)
            await self.update_profile(active)
            return active

        upgraded = upgrade_legacy_profile(profile)
        existing = await self._load_profiles()
        await self._write_profile(upgraded, position=len(existing))
        await self._set_setting("active_profile_id", upgraded.id)
        return upgraded

    async def get_enabled(self) -> bool:
        raw = await self._get_setting("enabled")
        return raw != "false"

    async def set_enabled(self, enabled: bool) -> None:
        await self._set_setting("enabled", "true" if enabled else "false")

    async def get_oracle_config(self) -> OracleConfig:
        raw = await self._get_setting("oracle_config")
        if not raw:
            return OracleConfig()
        return OracleConfig.model_validate_json(raw)

    async def save_oracle_config(self, config: OracleConfig) -> None:
        await self._set_setting("oracle_config", config.model_dump_json())

    async def close(self) -> None:
        """No-op unless the backend holds a connection."""


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class InMemoryProfileStore(ProfileStoreBase):
    """In-memory store. Profiles are copied on the way in and out, like a real backend."""

    def __init__(self, profiles: list[UserProfile] | None = None, *, active_profile_id: str | None = None) -> None:
        self._profiles: list[UserProfile] = [copy.deepcopy(p) for p in profiles or []]
        self._settings: dict[str, str] = {}
        if active_profile_id is None and self._profiles:
            active_profile_id = self._profiles[0].id
        if active_profile_id is not None:
            self._settings["active_profile_id"] = active_profile_id

    async def _load_profiles(self) -> list[UserProfile]:
        return [copy.deepcopy(p) for p in self._profiles]

    async def _write_profile(self, profile: UserProfile, position: int | None = None) -> None:
        stored = copy.deepcopy(profile)
        for i, existing in enumerate(self._profiles):
            if existing.id == profile.id:
                self._profiles[i] = stored
                return
        self._profiles.append(stored)

    async def _remove_profile(self, profile_id: str) -> None:
        self._profiles = [p for p in self._profiles if p.id != profile_id]

    async def _get_setting(self, key: str) -> str | None:
        return self._settings.get(key)

    async def _set_setting(self, key: str, value: str | None) -> None:
        if value is None:
            self._settings.pop(key, None)
        else:
            self._settings[key] = value
