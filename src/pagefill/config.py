# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Detection parameters, oracle credentials, and runtime settings.

Leaf module (errors only). Runtime settings follow the CLI pattern:
argparse defaults first, then ``PAGEFILL_*`` environment variable overrides.
"""

from __future__ import annotations

import argparse
import os
from collections.abc import Mapping, Sequence
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError

# Input types that carry free-text personal data. Everything else
# (submit/button/radio/checkbox/hidden/file/...) is never a fill target.
DEFAULT_INPUT_TYPES = frozenset({"text", "email", "tel", "password", "number", "url", "date"})

# Generic containers allowed to become aggregation points besides <form>
DEFAULT_CONTAINER_TAGS = frozenset({"div"})

PROCESSED_MARKER = "data-llm-autofill-processed"

DEFAULT_DB_PATH = "~/.pagefill/pagefill.db"

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


@dataclass(frozen=True, slots=True)
class DetectionConfig:
    """Knobs for a detection pass. Defaults reproduce the canonical behaviour."""

    container_tags: frozenset[str] = DEFAULT_CONTAINER_TAGS
    eligible_input_types: frozenset[str] = DEFAULT_INPUT_TYPES
    include_select: bool = False
    mark_processed: bool = True
    marker_attribute: str = PROCESSED_MARKER
    max_nodes: int = 200_000


class OracleConfig(BaseModel):
    """Credentials and model choice for the remote mapping oracle."""

    provider: Literal["openai", "anthropic", "google"] = Field("openai", description="Oracle provider")
    api_key: str = Field("", description="Provider API key", repr=False)
    model: str = Field("", description="Model name; provider default when empty")
    timeout: float = Field(30.0, gt=0, description="HTTP timeout in seconds")
    base_url: str = Field("", description="Override the provider endpoint base URL")


@dataclass(frozen=True, slots=True)
class Settings:
    """Process-wide runtime settings."""

    enabled: bool = True
    db_path: str = ""
    fill_delay_s: float = 0.05
    rescan_debounce_s: float = 0.1
    trigger_revert_s: float = 2.0
    auto_fill: bool = False
    log_level: str = "INFO"
    json_logs: bool = False
    oracle: OracleConfig = field(default_factory=OracleConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)


def _env_flag(environ: Mapping[str, str], name: str) -> bool | None:
    raw = environ.get(name, "").strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    return None


def build_parser(parser: argparse.ArgumentParser | None = None) -> argparse.ArgumentParser:
    """Add the shared settings options to *parser* (or a fresh one)."""
    parser = parser or argparse.ArgumentParser(add_help=False)
    parser.add_argument("--db-path", default="", help=f"Profile database (default: {DEFAULT_DB_PATH})")
    parser.add_argument("--provider", default=None, help="Oracle provider: openai, anthropic, google")
    parser.add_argument("--model", default=None, help="Oracle model name")
    parser.add_argument("--fill-delay-ms", type=int, default=50, help="Delay between field writes (default: 50)")
    parser.add_argument(
        "--container-tag",
        action="append",
        default=None,
        help="Tag allowed to aggregate a form-like group. Repeatable (default: div)",
    )
    parser.add_argument("--auto-fill", action="store_true", default=False, help="Fill new regions without a click")
    parser.add_argument(
        "--disabled",
        action="store_true",
        default=False,
        help="Skip detection for this run (stored setting untouched)",
    )
    parser.add_argument("--log-level", default="INFO", help="Root log level (default: INFO)")
    parser.add_argument("--json-logs", action="store_true", default=False, help="Emit JSON log lines")
    return parser


def load_settings(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Parse settings from *argv* with ``PAGEFILL_*`` environment overrides.

    Raises:
        ConfigError: If the oracle configuration does not validate.
    """
    environ = os.environ if environ is None else environ
    args, _ = build_parser().parse_known_args(list(argv) if argv is not None else [])

    enabled = not args.disabled
    env_enabled = _env_flag(environ, "PAGEFILL_ENABLED")
    if env_enabled is not None and not args.disabled:
        enabled = env_enabled

    db_path = args.db_path or environ.get("PAGEFILL_DB_PATH", "").strip()

    fill_delay_ms = args.fill_delay_ms
    env_delay = environ.get("PAGEFILL_FILL_DELAY_MS", "").strip()
    if env_delay:
        with suppress(ValueError):
            fill_delay_ms = max(0, int(env_delay))

    log_level = environ.get("PAGEFILL_LOG_LEVEL", "").strip() or args.log_level
    json_logs = args.json_logs or bool(_env_flag(environ, "PAGEFILL_JSON_LOGS"))
    auto_fill = args.auto_fill or bool(_env_flag(environ, "PAGEFILL_AUTO_FILL"))

    detection = DetectionConfig()
    if args.container_tag:
        detection = DetectionConfig(container_tags=frozenset(t.strip().lower() for t in args.container_tag))

    try:
        oracle = OracleConfig(
            provider=args.provider or environ.get("PAGEFILL_PROVIDER", "").strip() or "openai",
            api_key=environ.get("PAGEFILL_API_KEY", "").strip(),
            model=args.model or environ.get("PAGEFILL_MODEL", "").strip(),
            base_url=environ.get("PAGEFILL_BASE_URL", "").strip(),
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid oracle configuration: {e}") from e

    return Settings(
        enabled=enabled,
        db_path=db_path,
        fill_delay_s=fill_delay_ms / 1000.0,
        auto_fill=auto_fill,
        log_level=log_level,
        json_logs=json_logs,
        oracle=oracle,
        detection=detection,
    )
