# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Prompt text for the mapping oracle."""

from __future__ import annotations

from pagefill.oracle import MappingRequest

SYSTEM_PROMPT = (
    "You are a form field mapping assistant. Analyze form field descriptions and "
    "map fields to profile keys. Return only valid JSON."
)

_PROMPT_TEMPLATE = """\
Analyze these form input fields and map them to profile keys.

Available profile keys: {keys}

Form Fields (JSON):
{fields}

Instructions:
1. Each field has an 'index' number, use this if no id or name is available
2. Map form input fields to the most appropriate profile key based on field attributes \
(name, id, placeholder, label, aria-label, etc.)
3. Use field identifiers in this priority: id > name > index
4. Return ONLY a raw JSON object - no markdown, no code blocks, no explanation
5. Format: {{"id:fieldId": "profile_key"}} or {{"name:fieldName": "profile_key"}} or {{"index:0": "profile_key"}}
6. Skip fields that don't match any profile key

Example output:
{{
  "id:passport_number": "passport_num",
  "name:firstName": "first_name",
  "name:email": "email",
  "index:2": "phone"
}}

Return the JSON mapping now:"""


def build_prompt(request: MappingRequest) -> str:
    return _PROMPT_TEMPLATE.format(keys=", ".join(request.profile_keys), fields=request.fields_json())
