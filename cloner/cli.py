"""Command-line interface for the website cloner."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .cli_config import CONFIG_DIR, CONFIG_ENV_FILE, load_config


def _load_config() -> None:
    load_config(
        config_dir=CONFIG_DIR,
        config_env_file=CONFIG_ENV_FILE,
        cwd=Path.cwd(),
        load_env=load_dotenv,
        copy_file=shutil.copy,
    )


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _parse_clone_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="siteclone",
        description="Clone a web page and its assets into an offline zip archive.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # Clone into the current directory
  siteclone https://example.com

  # Clone into a directory
  siteclone https://example.com -o clones/

  # Skip images and scripts
  siteclone https://example.com --no-images --no-js

  # Tune the download pool
  siteclone https://example.com --concurrency 4 --timeout 30

  # Print a JSON summary instead of the archive path
  siteclone https://example.com --json
""",
    )

    parser.add_argument("url", help="URL of the page to clone")
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Output directory for the archive (default: $SITECLONE_OUTPUT_DIR or .)",
    )
    parser.add_argument(
        "--no-images",
        action="store_false",
        dest="include_images",
        help="Do not download images or icons",
    )
    parser.add_argument(
        "--no-fonts",
        action="store_false",
        dest="include_fonts",
        help="Do not download fonts referenced by stylesheets",
    )
    parser.add_argument(
        "--no-js",
        action="store_false",
        dest="include_js",
        help="Do not download scripts",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum simultaneous downloads (default: $SITECLONE_CONCURRENCY or 8)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds (default: $SITECLONE_TIMEOUT or 15)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Print a JSON summary (stats, archive path, failed resources)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def _summary(outcome) -> Dict[str, Any]:
    result = outcome.result
    return {
        "url": result.root_url,
        "final_url": result.final_url,
        "archive_path": str(outcome.archive_path),
        "total_files": result.total_files,
        "cancelled": result.cancelled,
        "stats": result.stats.to_dict(),
        "failed": [
            {
                "url": res.source_url,
                "path": res.offline_path,
                "error": res.fetch_error.cause if res.fetch_error else None,
            }
            for res in result.failures
        ],
    }


async def _run_clone_async(args: argparse.Namespace) -> int:
    """Main async entry point for clone."""
    from . import build_clone_options, clone_site_async
    from .config import OptionOverrides

    options = build_clone_options(
        OptionOverrides(
            include_images=args.include_images,
            include_fonts=args.include_fonts,
            include_js=args.include_js,
            concurrency=args.concurrency,
            timeout=args.timeout,
        )
    )

    last_logged = -1

    def on_progress(fraction: float) -> None:
        nonlocal last_logged
        percent = int(fraction * 100)
        if percent // 10 != last_logged // 10 or percent == 100:
            last_logged = percent
            logging.info("Progress: %d%%", percent)

    logging.info("Cloning: %s", args.url)
    outcome = await clone_site_async(
        args.url,
        output_dir=args.output,
        options=options,
        on_progress=on_progress,
    )

    for res in outcome.result.failures:
        cause = res.fetch_error.cause if res.fetch_error else "unknown"
        logging.warning("Missing: %s - %s", res.source_url, cause)

    logging.info(
        "Clone complete: %d files (%d resources succeeded, %d failed)",
        outcome.result.total_files,
        outcome.result.stats.succeeded,
        outcome.result.stats.failed,
    )

    if args.json_output:
        print(json.dumps(_summary(outcome), indent=2, ensure_ascii=False))
    else:
        print(outcome.archive_path)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the clone command."""
    from .errors import CrawlError

    _load_config()
    args = _parse_clone_args(argv)
    _setup_logging(args.verbose)

    try:
        return asyncio.run(_run_clone_async(args))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except CrawlError as exc:
        logging.error("Clone failed: %s", exc)
        return 1
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1
