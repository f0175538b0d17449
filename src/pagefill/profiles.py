# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""User profiles: categorized key/value data the filler draws from.

Field keys are unique across all categories of a profile. Collisions are
resolved when a field is created (``email`` → ``email_2``), never when a
value is read. Flat legacy profiles (``{"email": "a@b.com"}``) are
recognised structurally and upgraded or read transparently.
"""

from __future__ import annotations

import re
import secrets
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

_KEY_STRIP_RE = re.compile(r"[^a-z0-9]+")

OTHER_CATEGORY_ID = "other"

# (category id, category name, [(key, label), ...])
_DEFAULT_LAYOUT: tuple[tuple[str, str, tuple[tuple[str, str], ...]], ...] = (
    (
        "personal",
        "Personal Information",
        (
            ("first_name", "First Name"),
            ("last_name", "Last Name"),
            ("email", "Email"),
            ("phone", "Phone"),
        ),
    ),
    (
        "address",
        "Address",
        (
            ("addr_line1", "Address Line 1"),
            ("addr_line2", "Address Line 2"),
            ("city", "City"),
            ("state", "State"),
            ("postal_code", "Postal Code"),
            ("country", "Country"),
        ),
    ),
    (
        "passport",
        "Passport",
        (
            ("passport_num", "Passport Number"),
            ("passport_country", "Passport Country"),
            ("nationality", "Nationality"),
            ("passport_issue_place", "Place of Issue"),
            ("passport_issue_date", "Issue Date"),
            ("passport_expiry_date", "Expiry Date"),
        ),
    ),
)


@dataclass(slots=True)
class ProfileField:
    key: str
    value: str = ""
    label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"key": self.key, "value": self.value}
        if self.label is not None:
            data["label"] = self.label
        return data


@dataclass(slots=True)
class ProfileCategory:
    id: str
    name: str
    fields: list[ProfileField] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "fields": [f.to_dict() for f in self.fields]}


@dataclass(slots=True)
class UserProfile:
    id: str
    name: str
    categories: list[ProfileCategory] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "categories": [c.to_dict() for c in self.categories],
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> UserProfile:
        categories = [
            ProfileCategory(
                id=str(c.get("id", "")),
                name=str(c.get("name", "")),
                fields=[
                    ProfileField(
                        key=str(f.get("key", "")),
                        value=str(f.get("value") or ""),
                        label=f.get("label"),
                    )
                    for f in c.get("fields", [])
                ],
            )
            for c in data.get("categories", [])
        ]
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            categories=categories,
            created_at=_parse_timestamp(data.get("createdAt")),
            updated_at=_parse_timestamp(data.get("updatedAt")),
        )

    def category(self, category_id: str) -> ProfileCategory | None:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    def touch(self) -> None:
        self.updated_at = datetime.now(UTC)


def _parse_timestamp(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, str) and raw:
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return datetime.now(UTC)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return datetime.now(UTC)


# ── Construction ─────────────────────────────────────────────────────


def generate_id() -> str:
    """Short sortable id: base36 millisecond clock + random suffix."""
    millis = int(time.time() * 1000)
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while millis:
        millis, rem = divmod(millis, 36)
        out = digits[rem] + out
    return out + secrets.token_hex(5)


def default_categories() -> list[ProfileCategory]:
    return [
        ProfileCategory(
            id=cat_id,
            name=cat_name,
            fields=[ProfileField(key=key, value="", label=label) for key, label in fields],
        )
        for cat_id, cat_name, fields in _DEFAULT_LAYOUT
    ]


def new_profile(name: str) -> UserProfile:
    return UserProfile(id=generate_id(), name=name, categories=default_categories())


def generate_field_key(label: str) -> str:
    """``"Passport Number"`` → ``"passport_number"``."""
    return _KEY_STRIP_RE.sub("_", label.lower()).strip("_")


def is_field_key_taken(profile: UserProfile, key: str) -> bool:
    return any(f.key == key for c in profile.categories for f in c.fields)


def unique_field_key(profile: UserProfile, key: str) -> str:
    """*key*, or the first free ``key_2``, ``key_3``, ... in *profile*."""
    if not is_field_key_taken(profile, key):
        return key
    suffix = 2
    while is_field_key_taken(profile, f"{key}_{suffix}"):
        suffix += 1
    return f"{key}_{suffix}"


def add_field(profile: UserProfile, category_id: str, label: str, value: str = "") -> ProfileField | None:
    """Create a field under *category_id*. Returns None for an unknown category or empty key."""
    category = profile.category(category_id)
    base_key = generate_field_key(label)
    if category is None or not base_key:
        return None
    new_field = ProfileField(key=unique_field_key(profile, base_key), value=value, label=label)
    category.fields.append(new_field)
    profile.touch()
    return new_field


def remove_field(profile: UserProfile, category_id: str, key: str) -> bool:
    category = profile.category(category_id)
    if category is None:
        return False
    before = len(category.fields)
    category.fields = [f for f in category.fields if f.key != key]
    removed = len(category.fields) != before
    if removed:
        profile.touch()
    return removed


def set_field_value(profile: UserProfile, key: str, value: str) -> bool:
    for category in profile.categories:
        for f in category.fields:
            if f.key == key:
                f.value = value
                profile.touch()
                return True
    return False


# ── Reading ──────────────────────────────────────────────────────────


def profile_keys(profile: UserProfile | Mapping[str, Any]) -> list[str]:
    """Every field key, category order then field order."""
    if is_legacy_profile(profile):
        return [str(k) for k in profile]
    return [f.key for c in _as_profile(profile).categories for f in c.fields]


def lookup_value(profile: UserProfile | Mapping[str, Any], key: str) -> str | None:
    """First value stored under *key*; flat legacy mappings are read directly."""
    if is_legacy_profile(profile):
        value = profile.get(key)
        return None if value is None else str(value)
    for category in _as_profile(profile).categories:
        for f in category.fields:
            if f.key == key:
                return f.value
    return None


def to_legacy(profile: UserProfile) -> dict[str, str]:
    flat: dict[str, str] = {}
    for category in profile.categories:
        for f in category.fields:
            flat.setdefault(f.key, f.value)
    return flat


# ── Legacy upgrade ───────────────────────────────────────────────────


def is_legacy_profile(data: Any) -> bool:
    """Flat key→value mapping: neither ``categories`` nor ``id`` present."""
    if isinstance(data, UserProfile):
        return False
    return isinstance(data, Mapping) and "categories" not in data and "id" not in data


def _as_profile(profile: UserProfile | Mapping[str, Any]) -> UserProfile:
    if isinstance(profile, UserProfile):
        return profile
    return UserProfile.from_dict(profile)


def apply_legacy_values(profile: UserProfile, legacy: Mapping[str, Any]) -> None:
    """Copy flat values onto matching keys of *profile*; unmatched keys go to "Other"."""
    for key, value in legacy.items():
        if not set_field_value(profile, str(key), "" if value is None else str(value)):
            other = profile.category(OTHER_CATEGORY_ID)
            if other is None:
                other = ProfileCategory(id=OTHER_CATEGORY_ID, name="Other")
                profile.categories.append(other)
            other.fields.append(ProfileField(key=str(key), value="" if value is None else str(value), label=str(key)))
    profile.touch()


def upgrade_legacy_profile(legacy: Mapping[str, Any], name: str = "Default Profile") -> UserProfile:
    profile = new_profile(name)
    apply_legacy_values(profile, legacy)
    return profile


def coerce_profile(data: UserProfile | Mapping[str, Any]) -> UserProfile:
    """Categorized profile from any accepted shape."""
    if isinstance(data, UserProfile):
        return data
    if is_legacy_profile(data):
        return upgrade_legacy_profile(data)
    return UserProfile.from_dict(data)
