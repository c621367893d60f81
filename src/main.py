# src/main.py — v1
"""CLI entry point — batch, status, refresh commands.

Usage:
    bizimages batch <entities.json> [--ids ID ...] [-c N] [--force] [--cache-only]
    bizimages status <entities.json> <entity_id>
    bizimages refresh <entities.json> <entity_id> [--cache-only]

Exit codes: 0 on success, 1 on errors, 130 when interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from bizimages.version import __version__

if TYPE_CHECKING:
    from bizimages.api.facade import ImagePipeline
    from bizimages.config.settings import Settings

logger = logging.getLogger(__name__)

# How often the batch command reports progress while waiting.
_POLL_INTERVAL_S = 2.0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    from pydantic import ValidationError as PydanticValidationError

    from bizimages.config.settings import ConfigurationError, Settings

    try:
        settings = Settings()
    except (ConfigurationError, PydanticValidationError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="bizimages",
        description=f"bizimages v{__version__} — business image acquisition and caching",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- batch ---
    p_batch = subparsers.add_parser(
        "batch", help="Acquire images for many businesses",
    )
    p_batch.add_argument("entities", type=Path, help="Business export (JSON)")
    p_batch.add_argument(
        "--ids", nargs="+", default=None,
        help="Only these business ids (default: every business in the file)",
    )
    p_batch.add_argument(
        "-c", "--concurrency", type=int, default=None,
        help="Businesses processed concurrently (default: BATCH_CONCURRENCY)",
    )
    p_batch.add_argument(
        "--force", action="store_true",
        help="Ignore cached images and download again",
    )
    p_batch.add_argument(
        "--cache-only", action="store_true",
        help="Send no places API request (cache, durable store and fallbacks only)",
    )
    p_batch.set_defaults(func=_cmd_batch)

    # --- status ---
    p_status = subparsers.add_parser(
        "status", help="Show cache status of one business",
    )
    p_status.add_argument("entities", type=Path, help="Business export (JSON)")
    p_status.add_argument("entity_id", help="Business id")
    p_status.set_defaults(func=_cmd_status)

    # --- refresh ---
    p_refresh = subparsers.add_parser(
        "refresh", help="Clear and re-acquire the images of one business",
    )
    p_refresh.add_argument("entities", type=Path, help="Business export (JSON)")
    p_refresh.add_argument("entity_id", help="Business id")
    p_refresh.add_argument(
        "--cache-only", action="store_true",
        help="Send no places API request (cache, durable store and fallbacks only)",
    )
    p_refresh.set_defaults(func=_cmd_refresh)

    return parser


def _open_pipeline(entities_path: Path, settings: Settings, cache_only: bool = False) -> ImagePipeline:
    from bizimages.api.facade import ImagePipeline
    from bizimages.entities.json_repository import JsonEntityRepository

    repository = JsonEntityRepository(entities_path)
    pipeline = ImagePipeline.from_settings(repository, settings=settings)
    if cache_only:
        pipeline.disable_remote_api("--cache-only")
    return pipeline


async def _cmd_batch(args: argparse.Namespace, settings: Settings) -> int:
    """Run a batch and report progress until it settles."""
    if not args.entities.is_file():
        logger.error("File not found: %s", args.entities)
        return 1

    async with _open_pipeline(args.entities, settings, args.cache_only) as pipeline:
        handle = await pipeline.start_batch(
            args.ids, concurrency=args.concurrency, force_refresh=args.force
        )
        waiter = asyncio.ensure_future(handle.wait())
        try:
            while not waiter.done():
                done, _ = await asyncio.wait({waiter}, timeout=_POLL_INTERVAL_S)
                if not done:
                    snap = handle.snapshot()
                    eta = f"{snap.eta_s:.0f}s" if snap.eta_s is not None else "?"
                    print(f"  {snap.processed}/{snap.total} processed, ETA {eta}")
        except asyncio.CancelledError:
            pipeline.stop_batch()
            raise
        snapshot = waiter.result()
        cost = pipeline.get_api_status()

    print("\nBatch complete:")
    print(f"  Job:              {snapshot.job_id}")
    print(f"  State:            {snapshot.state}")
    print(f"  Processed:        {snapshot.processed}/{snapshot.total}")
    print(f"  Succeeded:        {snapshot.succeeded}")
    print(f"  Failed:           {snapshot.failed}")
    print(f"  Skipped:          {snapshot.skipped}")
    print(f"  Remote API calls: {snapshot.remote_api_calls}")
    spent = snapshot.remote_api_calls * cost["cost_per_call_usd"]
    print(f"  Places API:       {cost['mode']}, est. ${spent:.2f}")
    print(f"  Origins:          {json.dumps(snapshot.origins, sort_keys=True)}")
    print(f"  Duration:         {snapshot.elapsed_s:.1f}s")
    for error in snapshot.errors[:10]:
        print(f"  ! {error}")

    return 0 if snapshot.state == "completed" and snapshot.failed == 0 else 1


async def _cmd_status(args: argparse.Namespace, settings: Settings) -> int:
    """Print the cache status of one business."""
    if not args.entities.is_file():
        logger.error("File not found: %s", args.entities)
        return 1

    async with _open_pipeline(args.entities, settings) as pipeline:
        status = await pipeline.get_status(args.entity_id)

    print(json.dumps(status.model_dump(), indent=2))
    return 0


async def _cmd_refresh(args: argparse.Namespace, settings: Settings) -> int:
    """Force re-acquisition of one business's images."""
    if not args.entities.is_file():
        logger.error("File not found: %s", args.entities)
        return 1

    async with _open_pipeline(args.entities, settings, args.cache_only) as pipeline:
        results = await pipeline.force_refresh(args.entity_id)

    for result in results:
        print(f"  {result.slot.key:<40} {result.origin}")
        for error in result.errors:
            print(f"      ! {error.source}: {error.message}")
    return 1 if any(r.is_placeholder for r in results) else 0


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from bizimages.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
