# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for form-likeness scoring of control groups."""

from __future__ import annotations

import pytest

from pagefill.heuristics import composite_text, is_filter_like_text, is_form_like, is_form_like_text
from tests._helpers import control


class TestCompositeText:
    def test_concatenates_without_separator(self):
        c = control("first", id="fn", placeholder="Your first", aria_label="First name")
        assert composite_text(c) == "firstfnYour firstFirst name"

    def test_empty(self):
        assert composite_text(control()) == ""


class TestPatterns:
    @pytest.mark.parametrize("text", ["Email", "PHONE_number", "zipcode", "billingAddr", "signupUser"])
    def test_form_like(self, text):
        assert is_form_like_text(text)

    @pytest.mark.parametrize("text", ["q", "keywords", "price_min"])
    def test_not_form_like(self, text):
        assert not is_form_like_text(text)

    @pytest.mark.parametrize("text", ["searchbox", "FilterBy", "query", "findIt", "sort_order", "tags"])
    def test_filter_like(self, text):
        assert is_filter_like_text(text)


class TestIsFormLike:
    def test_one_positive_signal_is_enough(self):
        group = [control("passport_number"), control("q1"), control("q2")]
        assert is_form_like(group)

    def test_unanimous_filter_without_positive_rejected(self):
        group = [control("search_query"), control("filter_tag")]
        assert not is_form_like(group)

    def test_no_signals_rejected(self):
        assert not is_form_like([control("q1"), control("q2")])

    def test_unanimous_filter_vetoes_even_with_positive(self):
        """Every control filter-like → rejected, whatever else matches."""
        group = [control("search_name"), control("filter_city")]
        assert not is_form_like(group)

    def test_partial_filter_does_not_veto(self):
        group = [control("email"), control("sort")]
        assert is_form_like(group)

    def test_signal_from_placeholder(self):
        group = [control("f1", placeholder="Your email"), control("f2")]
        assert is_form_like(group)

    def test_empty_group(self):
        assert not is_form_like([])
