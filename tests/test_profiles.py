# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for the categorized profile model and legacy upgrade."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from pagefill.profiles import (
    OTHER_CATEGORY_ID,
    ProfileField,
    UserProfile,
    add_field,
    coerce_profile,
    default_categories,
    generate_field_key,
    generate_id,
    is_legacy_profile,
    lookup_value,
    new_profile,
    profile_keys,
    remove_field,
    set_field_value,
    to_legacy,
    upgrade_legacy_profile,
)


class TestDefaults:
    def test_default_layout(self):
        categories = default_categories()
        assert [c.id for c in categories] == ["personal", "address", "passport"]
        assert [f.key for f in categories[0].fields] == ["first_name", "last_name", "email", "phone"]
        assert all(f.value == "" for c in categories for f in c.fields)

    def test_ids_unique(self):
        assert len({generate_id() for _ in range(200)}) == 200

    def test_new_profile(self):
        p = new_profile("Work")
        assert p.name == "Work"
        assert p.created_at.tzinfo is not None


class TestFieldKeys:
    @pytest.mark.parametrize(
        ("label", "key"),
        [
            ("Passport Number", "passport_number"),
            ("  E-mail address!! ", "e_mail_address"),
            ("Zip/Postal", "zip_postal"),
            ("***", ""),
        ],
    )
    def test_generate_field_key(self, label, key):
        assert generate_field_key(label) == key

    def test_collision_suffixing(self):
        p = new_profile("x")
        first = add_field(p, "personal", "Email")
        second = add_field(p, "address", "Email")
        assert first.key == "email_2"
        assert second.key == "email_3"

    def test_add_field_unknown_category(self):
        assert add_field(new_profile("x"), "nope", "Thing") is None

    def test_add_field_empty_key(self):
        assert add_field(new_profile("x"), "personal", "!!!") is None

    def test_remove_field(self):
        p = new_profile("x")
        assert remove_field(p, "personal", "phone")
        assert not remove_field(p, "personal", "phone")
        assert "phone" not in profile_keys(p)


class TestLookup:
    def test_first_match_across_categories(self):
        p = new_profile("x")
        p.categories[1].fields.append(ProfileField(key="email", value="second@x"))
        set_field_value(p, "email", "first@x")
        assert lookup_value(p, "email") == "first@x"

    def test_missing_key(self):
        assert lookup_value(new_profile("x"), "nope") is None

    def test_legacy_flat(self):
        assert lookup_value({"email": "a@b.com"}, "email") == "a@b.com"

    def test_dict_shaped_categorized(self):
        p = new_profile("x")
        set_field_value(p, "city", "Paris")
        assert lookup_value(p.to_dict(), "city") == "Paris"

    def test_profile_keys_order(self):
        keys = profile_keys(new_profile("x"))
        assert keys[:2] == ["first_name", "last_name"]
        assert keys[-1] == "passport_expiry_date"

    def test_to_legacy(self):
        p = new_profile("x")
        set_field_value(p, "email", "a@b.com")
        assert to_legacy(p)["email"] == "a@b.com"


class TestLegacyUpgrade:
    def test_detection(self):
        assert is_legacy_profile({"email": "a@b.com"})
        assert not is_legacy_profile({"id": "1", "email": "a@b.com"})
        assert not is_legacy_profile({"categories": []})
        assert not is_legacy_profile(new_profile("x"))
        assert not is_legacy_profile(["email"])

    def test_known_keys_land_in_their_category(self):
        p = upgrade_legacy_profile({"email": "a@b.com", "city": "Oslo"})
        assert p.name == "Default Profile"
        assert p.category("personal").fields[2].value == "a@b.com"
        assert lookup_value(p, "city") == "Oslo"

    def test_unknown_keys_go_to_other(self):
        p = upgrade_legacy_profile({"loyalty_no": "77"})
        other = p.category(OTHER_CATEGORY_ID)
        assert other is not None
        assert [(f.key, f.value) for f in other.fields] == [("loyalty_no", "77")]

    def test_coerce(self):
        assert isinstance(coerce_profile({"email": "a@b.com"}), UserProfile)
        p = new_profile("x")
        assert coerce_profile(p) is p
        assert coerce_profile(p.to_dict()).id == p.id


class TestSerialization:
    def test_round_trip(self):
        p = new_profile("x")
        set_field_value(p, "email", "a@b.com")
        restored = UserProfile.from_dict(p.to_dict())
        assert restored.to_dict() == p.to_dict()

    def test_camel_case_timestamps(self):
        data = new_profile("x").to_dict()
        assert "createdAt" in data and "updatedAt" in data

    def test_zulu_timestamp(self):
        p = UserProfile.from_dict({"id": "1", "name": "n", "createdAt": "2024-01-02T03:04:05Z"})
        assert p.created_at == datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
