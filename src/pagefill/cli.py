# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""PageFill CLI: detect, describe, fill, fill-url commands.

Usage:
    python -m pagefill detect FILE
    python -m pagefill describe FILE [--markup]
    python -m pagefill fill FILE --mapping MAPPING.json --profile PROFILE.json [--region KEY] [--output OUT]
    python -m pagefill fill-url URL [--headed]

Every command also accepts the shared settings options (``--db-path``,
``--provider``, ``--container-tag``, ...) and ``PAGEFILL_*`` overrides.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from .config import DEFAULT_DB_PATH, Settings, build_parser, load_settings
from .descriptors import build_field_descriptors
from .detector import detect_regions
from .dom import HtmlDocument
from .errors import PageFillError
from .filler import apply_mapping
from .profiles import coerce_profile
from .sanitizer import sanitize_markup

logger = logging.getLogger(__name__)


def _read_document(path_str: str) -> HtmlDocument:
    path = Path(path_str)
    if not path.is_file():
        raise PageFillError(f"No such file: {path}")
    return HtmlDocument.from_html(path.read_bytes())


def _read_json(path_str: str, what: str):
    path = Path(path_str)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise PageFillError(f"Cannot read {what} {path}: {e.strerror}") from e
    except json.JSONDecodeError as e:
        raise PageFillError(f"{what.capitalize()} {path} is not valid JSON: {e.msg}") from e


def _dump(data) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


def cmd_detect(args: argparse.Namespace, settings: Settings) -> int:
    """List the form-like regions of a saved page."""
    document = _read_document(args.file)
    result = detect_regions(document, settings.detection)
    _dump(
        [
            {
                "key": region.key,
                "kind": str(region.kind),
                "controls": len(region),
                "consumed": region.consumed,
            }
            for region in result.regions
        ]
    )
    return 0


def cmd_describe(args: argparse.Namespace, settings: Settings) -> int:
    """Print what the oracle would see for each region."""
    document = _read_document(args.file)
    result = detect_regions(document, settings.detection)
    out = []
    for region in result.regions:
        if args.markup:
            out.append({"key": region.key, "markup": sanitize_markup(region)})
        else:
            fields = build_field_descriptors(document, region)
            out.append({"key": region.key, "fields": [f.to_payload() for f in fields]})
    _dump(out)
    return 0


def cmd_fill(args: argparse.Namespace, settings: Settings) -> int:
    """Offline fill: apply a saved mapping to one region of a saved page."""
    document = _read_document(args.file)
    mapping = _read_json(args.mapping, "mapping")
    if not isinstance(mapping, dict):
        raise PageFillError("Mapping must be a JSON object of selector → profile key")
    profile_data = _read_json(args.profile, "profile")
    if not isinstance(profile_data, dict):
        raise PageFillError("Profile must be a JSON object")
    profile = coerce_profile(profile_data)

    result = detect_regions(document, settings.detection)
    if not result.regions:
        print("No form-like region found.", file=sys.stderr)
        return 1
    if args.region:
        region = next((r for r in result.regions if r.key == args.region), None)
        if region is None:
            raise PageFillError(f"No detected region {args.region}; try one of: {', '.join(result.keys)}")
    else:
        region = result.regions[0]

    report = asyncio.run(
        apply_mapping(
            document,
            region,
            {str(k): str(v) for k, v in mapping.items()},
            profile,
            delay_s=0,
            config=settings.detection,
        )
    )

    html = document.to_html()
    if args.output:
        Path(args.output).write_text(html, encoding="utf-8")
        print(f"Filled page saved to {args.output}", file=sys.stderr)
    else:
        print(html)
    print(
        f"Filled {len(report.filled)}, empty {len(report.skipped_empty)}, unresolved {len(report.unresolved)}",
        file=sys.stderr,
    )
    return 0


async def _fill_live(url: str, settings: Settings, *, headed: bool = False) -> list[dict]:
    from playwright.async_api import async_playwright

    from .browser_host import LivePage
    from .controller import AutofillController
    from .oracle.providers import create_provider
    from .repository_sqlite import SqliteProfileStore

    store = await SqliteProfileStore.create(settings.db_path or DEFAULT_DB_PATH)
    try:
        oracle_config = settings.oracle
        if not oracle_config.api_key:
            oracle_config = await store.get_oracle_config()
        oracle = create_provider(oracle_config)

        async with async_playwright() as pw:
            browser = await pw.chromium.launch(headless=not headed)
            try:
                page = await browser.new_page()
                await page.goto(url, wait_until="domcontentloaded")
                controller = AutofillController(LivePage(page), oracle=oracle, store=store, settings=settings)
                try:
                    regions = await controller.start()
                    results = []
                    for region in regions:
                        report = await controller.activate(region.key)
                        trigger = controller.trigger_for(region.key)
                        results.append(
                            {
                                "key": region.key,
                                "state": str(trigger.state) if trigger else "missing",
                                "filled": report.filled if report else [],
                                "error": str(trigger.last_error) if trigger and trigger.last_error else None,
                            }
                        )
                    return results
                finally:
                    await controller.close()
            finally:
                await browser.close()
    finally:
        await store.close()


def cmd_fill_url(args: argparse.Namespace, settings: Settings) -> int:
    """Open a live page, detect regions, and fill each through the oracle."""
    results = asyncio.run(_fill_live(args.url, settings, headed=args.headed))
    _dump(results)
    return 0 if all(r["error"] is None for r in results) else 1


def build_cli_parser() -> argparse.ArgumentParser:
    common = build_parser()
    parser = argparse.ArgumentParser(description="PageFill CLI", prog="python -m pagefill")
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_detect = subparsers.add_parser("detect", parents=[common], help="List form-like regions of an HTML file")
    p_detect.add_argument("file", metavar="FILE")

    p_describe = subparsers.add_parser("describe", parents=[common], help="Show field descriptors per region")
    p_describe.add_argument("file", metavar="FILE")
    p_describe.add_argument("--markup", action="store_true", help="Print sanitized region markup instead")

    p_fill = subparsers.add_parser(
        "fill",
        parents=[common],
        help="Apply a mapping to a saved page",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  %(prog)s page.html --mapping map.json --profile me.json            Print filled HTML
  %(prog)s page.html --mapping map.json --profile me.json -o out.html Save filled HTML""",
    )
    p_fill.add_argument("file", metavar="FILE")
    p_fill.add_argument("--mapping", required=True, metavar="MAPPING", help="JSON object: selector → profile key")
    p_fill.add_argument("--profile", required=True, metavar="PROFILE", help="Profile JSON (categorized or flat)")
    p_fill.add_argument("--region", default=None, metavar="KEY", help="Region key (default: first region)")
    p_fill.add_argument("-o", "--output", default=None, metavar="OUT", help="Write filled HTML here")

    p_fill_url = subparsers.add_parser("fill-url", parents=[common], help="Fill a live page through the oracle")
    p_fill_url.add_argument("url", metavar="URL")
    p_fill_url.add_argument("--headed", action="store_true", help="Show the browser window")
    return parser


_COMMANDS = {
    "detect": cmd_detect,
    "describe": cmd_describe,
    "fill": cmd_fill,
    "fill-url": cmd_fill_url,
}


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    from .logging_config import configure

    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_cli_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(argv)
    except PageFillError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    configure(json_output=settings.json_logs, level="DEBUG" if args.verbose else settings.log_level)

    try:
        return _COMMANDS[args.command](args, settings)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130
    except PageFillError as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    sys.exit(main())
