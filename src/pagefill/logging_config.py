# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""structlog + stdlib bridge. CLI: ConsoleRenderer, --json-logs: JSONRenderer.

Fill logs carry the region they belong to: ``region_context()`` binds the
region key as structlog context, and stdlib records emitted inside it pick
the key up through ``merge_contextvars``. Profile values must never reach a
log line, so any ``value``/``values`` key bound to an event is dropped
before rendering.

Leaf module with no pagefill imports. Safe to call early in startup.
"""

from __future__ import annotations

import logging
import sys
from contextlib import AbstractContextManager

import structlog

_NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite", "asyncio")

REGION_KEY = "region"

_VALUE_KEYS = frozenset({"value", "values", "profile_value"})


def region_context(region_key: str) -> AbstractContextManager:
    """Bind *region_key* to every log line emitted in this context."""
    return structlog.contextvars.bound_contextvars(**{REGION_KEY: region_key})


def drop_field_values(logger, method_name: str, event_dict: dict) -> dict:
    """structlog processor: strip keys that could hold profile values."""
    for key in _VALUE_KEYS.intersection(event_dict):
        del event_dict[key]
    return event_dict


def configure(*, json_output: bool = False, level: str = "INFO") -> None:
    """Configure structlog with stdlib bridge.

    Args:
        json_output: True for JSON lines, False for human-readable console output.
        level: Root logger level (default INFO).
    """
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        drop_field_values,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(sort_keys=False)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Request-level chatter from HTTP/DB clients drowns out fill summaries
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.WARNING))
