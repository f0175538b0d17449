# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Property-based fuzz tests using Hypothesis.

Verifies detection invariants and descriptor value-freeness hold for
arbitrary generated page trees.
"""

from __future__ import annotations

try:
    from hypothesis import HealthCheck, given, settings
    from hypothesis import strategies as st
except ImportError:
    import pytest

    pytest.skip("hypothesis not installed", allow_module_level=True)

import pytest

from pagefill.descriptors import build_field_descriptors, serialize_descriptors
from pagefill.detector import detect_regions
from pagefill.navigation import is_pruned
from pagefill.sanitizer import sanitize_text
from tests._helpers import page

# ---------------------------------------------------------------------------
# Module-level strategies
# ---------------------------------------------------------------------------

CONTAINER_TAGS = st.sampled_from(["div", "form", "section", "p", "span", "nav", "header", "fieldset"])

NAME = st.sampled_from(["email", "first_name", "q", "search_query", "filter_tag", "phone", "city", "note", "x1"])

CLASS_ATTR = st.sampled_from(["", ' class="row"', ' class="main-menu"', ' id="search"', ' class="checkout"'])

INPUT_TYPE = st.sampled_from(["text", "email", "tel", "checkbox", "submit", "hidden", "password", "bogus"])

# Values look like nothing else in the generated markup
SECRET = st.from_regex(r"SECRET[a-z0-9]{6,12}", fullmatch=True)


@st.composite
def controls(draw):
    name = draw(NAME)
    value = draw(SECRET)
    if draw(st.booleans()):
        return f'<textarea name="{name}">{value}</textarea>'
    return f'<input type="{draw(INPUT_TYPE)}" name="{name}" value="{value}">'


def _wrap(children_and_tag):
    children, tag, attrs = children_and_tag
    return f"<{tag}{attrs}>{''.join(children)}</{tag}>"


TREES = st.recursive(
    controls(),
    lambda inner: st.tuples(st.lists(inner, min_size=1, max_size=4), CONTAINER_TAGS, CLASS_ATTR).map(_wrap),
    max_leaves=25,
)

PAGES = st.lists(TREES, min_size=1, max_size=4).map("".join)

# ---------------------------------------------------------------------------
# Shared settings
# ---------------------------------------------------------------------------

_fuzz_settings = settings(
    max_examples=150,
    suppress_health_check=[HealthCheck.too_slow],
    deadline=None,
)


# ---------------------------------------------------------------------------
# TestFuzzDetection
# ---------------------------------------------------------------------------


@pytest.mark.fuzz
class TestFuzzDetection:
    """Detection invariants over generated trees."""

    @_fuzz_settings
    @given(body=PAGES)
    def test_no_double_claim(self, body):
        result = detect_regions(page(body))
        seen: set[int] = set()
        for region in result.regions:
            assert not (region.control_handles & seen)
            seen |= region.control_handles

    @_fuzz_settings
    @given(body=PAGES)
    def test_minimality(self, body):
        regions = detect_regions(page(body)).regions
        roots = [r.root for r in regions]
        for region in regions:
            ancestor = region.root.getparent()
            while ancestor is not None:
                assert all(ancestor is not other for other in roots)
                ancestor = ancestor.getparent()

    @_fuzz_settings
    @given(body=PAGES)
    def test_pruning_totality(self, body):
        doc = page(body)
        for region in detect_regions(doc).regions:
            for control in region.controls:
                assert not is_pruned(doc.element(control.handle))

    @_fuzz_settings
    @given(body=PAGES)
    def test_idempotence(self, body):
        doc = page(body)
        first = detect_regions(doc)
        second = detect_regions(doc)
        assert first.keys == second.keys
        assert first.claimed == second.claimed

    @_fuzz_settings
    @given(body=PAGES)
    def test_every_region_has_two_controls(self, body):
        for region in detect_regions(page(body)).regions:
            assert len(region) >= 2


# ---------------------------------------------------------------------------
# TestFuzzValueFreeness
# ---------------------------------------------------------------------------


@pytest.mark.fuzz
class TestFuzzValueFreeness:
    @_fuzz_settings
    @given(body=PAGES)
    def test_descriptors_never_carry_values(self, body):
        doc = page(body)
        for region in detect_regions(doc).regions:
            text = serialize_descriptors(build_field_descriptors(doc, region))
            assert "SECRET" not in text


@pytest.mark.fuzz
class TestFuzzSanitizeText:
    @_fuzz_settings
    @given(text=st.text(max_size=2000), max_len=st.integers(1, 500))
    def test_length_and_newlines(self, text, max_len):
        out = sanitize_text(text, max_len=max_len)
        assert len(out) <= max_len
        assert "\n" not in out
        assert "\r" not in out
