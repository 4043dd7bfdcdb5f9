"""One-shot trigger entry point.

Usage:
    python -m swap_alert_pipeline                      # discovered mode
    python -m swap_alert_pipeline --swap-json '{...}'  # direct mode
    python -m swap_alert_pipeline --swap-file swap.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from swap_alert_pipeline.config import get_settings
from swap_alert_pipeline.ingestor.models import InvalidSwapError
from swap_alert_pipeline.pipeline import error_run, handle_trigger


def configure_logging(level: int | str) -> None:
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="swap_alert_pipeline",
        description="Run the swap alert pipeline once and print the outcome as JSON.",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--swap-json", help="Swap object to inject (direct mode)")
    source.add_argument("--swap-file", type=Path, help="File holding the swap object")
    return parser.parse_args(argv)


def _build_body(args: argparse.Namespace) -> dict[str, Any] | None:
    if args.swap_json:
        return {"swap": json.loads(args.swap_json)}
    if args.swap_file:
        return {"swap": json.loads(args.swap_file.read_text(encoding="utf-8"))}
    return None


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    configure_logging(settings.get_logging_level())
    logging.getLogger(__name__).debug("Settings: %s", settings.redacted_summary())

    try:
        body = _build_body(args)
    except (OSError, ValueError) as e:
        run = error_run("direct", InvalidSwapError.kind, f"could not read swap: {e}")
    else:
        run = asyncio.run(handle_trigger(body, settings=settings))
    print(json.dumps(run.to_dict(), indent=2))
    return 0 if run.ok else 1


if __name__ == "__main__":
    sys.exit(main())
