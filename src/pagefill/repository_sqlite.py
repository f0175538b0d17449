# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""SQLite-backed profile store: persistent profiles and settings.

Uses ``aiosqlite`` with a single long-lived connection. WAL journal mode
enables concurrent reads with serialized writes. Schema versioned via
``PRAGMA user_version``. Profiles are stored as JSON documents so the
categorized shape can grow without migrations.

Dependencies: profiles.py (UserProfile), repository.py (ProfileStoreBase).
"""

from __future__ import annotations

import json
from contextlib import suppress
from pathlib import Path

import aiosqlite

from .errors import ProfileStoreError
from .profiles import UserProfile
from .repository import ProfileStoreBase

_SCHEMA_VERSION = 1

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_CREATE_PROFILES = """
CREATE TABLE IF NOT EXISTS profiles (
    id         TEXT PRIMARY KEY,
    position   INTEGER NOT NULL,
    document   TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

_CREATE_SETTINGS = """
CREATE TABLE IF NOT EXISTS settings (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""

_CREATE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_profiles_position ON profiles(position)",
]


# ---------------------------------------------------------------------------
# SqliteProfileStore
# ---------------------------------------------------------------------------


class SqliteProfileStore(ProfileStoreBase):
    """SQLite-backed store implementing ``ProfileStoreProtocol``.

    Use the ``create()`` async classmethod factory; never instantiate directly.
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    @classmethod
    async def create(cls, db_path: str | Path) -> SqliteProfileStore:
        """Open (or create) a SQLite database and initialise the schema.

        Resolves ``~`` and creates parent directories automatically.

        Raises:
            ProfileStoreError: If the existing database has a newer schema version.
        """
        path = Path(db_path).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)

        db = await aiosqlite.connect(str(path))
        try:
            await db.execute("PRAGMA journal_mode = WAL")

            cursor = await db.execute("PRAGMA user_version")
            row = await cursor.fetchone()
            current_version = row[0] if row else 0

            if current_version > _SCHEMA_VERSION:
                raise ProfileStoreError(
                    f"Database schema version {current_version} is newer than supported version {_SCHEMA_VERSION}"
                )

            if current_version < _SCHEMA_VERSION:
                await db.execute(_CREATE_PROFILES)
                await db.execute(_CREATE_SETTINGS)
                for idx_sql in _CREATE_INDEXES:
                    await db.execute(idx_sql)
                await db.execute(f"PRAGMA user_version = {_SCHEMA_VERSION}")
                await db.commit()
        except BaseException:
            await db.close()
            raise

        return cls(db)

    # ── Storage primitives ────────────────────────────────────────

    async def _load_profiles(self) -> list[UserProfile]:
        cursor = await self._db.execute("SELECT id, document FROM profiles ORDER BY position, id")
        rows = await cursor.fetchall()
        profiles = []
        for row in rows:
            try:
                profiles.append(UserProfile.from_dict(json.loads(row[1])))
            except (ValueError, KeyError, TypeError) as e:
                raise ProfileStoreError(f"Corrupt profile document: {row[0]}") from e
        return profiles

    async def _write_profile(self, profile: UserProfile, position: int | None = None) -> None:
        document = json.dumps(profile.to_dict(), ensure_ascii=False)
        if position is None:
            cursor = await self._db.execute(
                "UPDATE profiles SET document = ?, updated_at = ? WHERE id = ?",
                (document, profile.updated_at.isoformat(), profile.id),
            )
            if cursor.rowcount > 0:
                await self._db.commit()
                return
            cursor = await self._db.execute("SELECT COALESCE(MAX(position), -1) + 1 FROM profiles")
            row = await cursor.fetchone()
            position = row[0]
        await self._db.execute(
            "INSERT OR REPLACE INTO profiles (id, position, document, updated_at) VALUES (?, ?, ?, ?)",
            (profile.id, position, document, profile.updated_at.isoformat()),
        )
        await self._db.commit()

    async def _remove_profile(self, profile_id: str) -> None:
        await self._db.execute("DELETE FROM profiles WHERE id = ?", (profile_id,))
        await self._db.commit()

    async def _get_setting(self, key: str) -> str | None:
        cursor = await self._db.execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = await cursor.fetchone()
        return None if row is None else row[0]

    async def _set_setting(self, key: str, value: str | None) -> None:
        if value is None:
            await self._db.execute("DELETE FROM settings WHERE key = ?", (key,))
        else:
            await self._db.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (key, value),
            )
        await self._db.commit()

    async def close(self) -> None:
        """Close the database connection. Idempotent."""
        with suppress(Exception):
            await self._db.close()
