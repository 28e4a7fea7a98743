"""Command-line interface for rendering feed digests."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional

from .cache import RenderCache
from .config import parse_app_config
from .errors import DigestError
from .runner import (
    RenderSettings,
    error_payload,
    invalidate_digest,
    render_html,
    render_rss,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Render daily digests of RSS and Atom feeds as RSS or HTML."
    )
    parser.add_argument(
        "--config",
        default="configs/config.xml",
        help="Path to the main configuration XML file.",
    )

    # Overrides for logging/debugging
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g. DEBUG, INFO, WARNING). Overrides config.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to a log file. Overrides config.",
    )

    parser.add_argument("--digest", metavar="ID", help="Identifier of the digest to render.")
    parser.add_argument(
        "--date",
        metavar="YYYY-MM-DD",
        help="Render the HTML page for this date instead of the RSS feed.",
    )
    parser.add_argument("--name", default="", help="Title override for the rendered output.")
    parser.add_argument(
        "--output",
        metavar="PATH",
        help="Write the rendered output to PATH instead of stdout.",
    )
    parser.add_argument(
        "--invalidate",
        action="store_true",
        help="Remove every cached render of the digest and exit.",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List the configured digests and exit.",
    )

    return parser


def configure_logging(level_name: str, log_file: Optional[str] = None) -> None:
    """Initialise logging according to options."""
    log_level = getattr(logging, level_name.upper(), None)
    if not isinstance(log_level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(log_level)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if log_file:
        log_path = Path(log_file)
        if log_path.parent and not log_path.parent.exists():
            log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        logger.debug(
            "Logger initialised with level %s and file output to %s",
            level_name.upper(),
            log_path,
        )
    else:
        logger.debug(
            "Logger initialised with console output at level %s", level_name.upper()
        )


def _parse_date_argument(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValueError("A valid date is required (YYYY-MM-DD).") from exc


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = parse_app_config(args.config)

        # Determine logging settings (CLI overrides Config)
        log_level = args.log_level or app_config.logging.level
        log_file = args.log_file or app_config.logging.file

        configure_logging(log_level, log_file)

        if args.list:
            for digest in app_config.digests:
                print(f"{digest.identity}\t{digest.name or ''}\t{digest.feed_url}")
            return 0

        if not args.digest:
            raise ValueError("--digest is required.")
        digest = app_config.find_digest(args.digest)
        if digest is None:
            raise ValueError(f"Unknown digest: {args.digest}")

        cache = RenderCache(app_config.cache.directory, app_config.cache.ttl_seconds)

        if args.invalidate:
            removed = invalidate_digest(cache, digest.identity)
            print(f"Removed {removed} cached artifacts for {digest.identity}")
            return 0

        settings = RenderSettings(
            base_url=app_config.base_url,
            app_name=app_config.app_name,
            fetch_timeout=app_config.fetch_timeout,
        )

        if args.date:
            target_date = _parse_date_argument(args.date)
            artifact = render_html(digest, target_date, settings, cache, args.name)
        else:
            artifact = render_rss(digest, settings, cache, args.name)
    except ValueError as exc:
        parser.error(str(exc))
    except DigestError as exc:
        logger.error("Failed to render digest: %s", exc)
        print(json.dumps(error_payload(exc)), file=sys.stderr)
        return 1
    except (RuntimeError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1

    if args.output:
        output_path = Path(args.output)
        if output_path.parent and not output_path.parent.exists():
            output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(artifact.body)
        logger.info("Wrote %s output to %s", artifact.content_type, output_path)
    else:
        print(artifact.text)
    return 0
