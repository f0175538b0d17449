# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Oracle response repair and parsing.

Models often wrap the JSON object in prose or code fences, or leave it
slightly malformed. ``json_repair`` restores the structure; the result
must be a flat object of string → string, otherwise the whole response
is rejected.
"""

from __future__ import annotations

import json
import logging

from json_repair import repair_json

from pagefill.errors import InvalidOracleResponse
from pagefill.oracle import FormMapping

logger = logging.getLogger(__name__)


def parse_mapping_response(content: str | None, provider: str = "oracle") -> FormMapping:
    """Repair and parse *content* into a mapping.

    Raises:
        InvalidOracleResponse: On empty content, irreparable JSON, or a payload
            that is not a flat selector → profile-key object.
    """
    if not content or not content.strip():
        raise InvalidOracleResponse(f"No response content from {provider}", provider=provider)

    try:
        repaired = repair_json(content.strip())
        data = json.loads(repaired)
    except (ValueError, TypeError, RecursionError) as e:
        logger.error("Failed to repair and parse JSON from %s", provider)
        raise InvalidOracleResponse(f"Invalid JSON response from {provider}: {e}", provider=provider) from e

    if not isinstance(data, dict):
        logger.error("Oracle %s returned %s instead of an object", provider, type(data).__name__)
        raise InvalidOracleResponse(f"Invalid JSON response from {provider}: expected an object", provider=provider)

    for selector, key in data.items():
        if not isinstance(key, str):
            raise InvalidOracleResponse(
                f"Invalid JSON response from {provider}: value for {selector!r} is not a string",
                provider=provider,
            )

    return FormMapping.from_dict(data)
