"""Command-line entry point: python -m mangavault {run,seed,sources,scrape}."""

import argparse
import asyncio
import json
import logging
import sys

from .app import Runtime, serve
from .config import config, configure_logging
from .database import Database
from .exceptions import ScraperError
from .seed import seed_sources
from .services import JobKind

logger = logging.getLogger("mangavault.cli")


def parse_page_range(value: str) -> tuple[int, int]:
    """'3-5' -> (3, 5); '4' -> (4, 4)"""
    start, _, end = value.partition("-")
    try:
        first = int(start)
        last = int(end) if end else first
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid page range: {value!r}") from None
    if first < 1 or last < first:
        raise argparse.ArgumentTypeError(f"Invalid page range: {value!r}")
    return first, last


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mangavault",
        description="Scrape manga series, episodes and images from Themesia, Madara and Uzay sites.",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run", help="Run workers and the scheduler until interrupted")
    subparsers.add_parser("seed", help="Insert the built-in source catalogue (inactive)")
    subparsers.add_parser("sources", help="List configured sources")

    scrape = subparsers.add_parser("scrape", help="Run one scrape and wait for it to finish")
    scrape.add_argument("source_id", help="Source id, e.g. adumanga-com")
    target = scrape.add_mutually_exclusive_group()
    target.add_argument("--pages", type=parse_page_range, help="Full index pages, e.g. 3-5")
    target.add_argument("--series", metavar="URL", help="Scrape a single series")
    target.add_argument("--episode", metavar="URL", help="Re-fetch images of a known episode")
    scrape.add_argument("--activate", action="store_true", help="Mark the source active first")
    return parser


def cmd_seed(db: Database) -> int:
    added = seed_sources(db)
    print(f"Added {added} sources")
    return 0


def cmd_sources(db: Database) -> int:
    for source in db.get_sources():
        status = "active" if source.is_active else "inactive"
        print(f"{source.id:<32} {source.theme:<9} {status:<9} every {source.scan_interval}m  {source.domain}")
    return 0


async def cmd_scrape(args: argparse.Namespace, db: Database) -> int:
    source = db.get_source(args.source_id)
    if source is None:
        print(f"Unknown source: {args.source_id}", file=sys.stderr)
        return 1

    runtime = Runtime(db=db)
    if args.activate and not source.is_active:
        runtime.set_source_active(source.id, True)

    async with runtime.running(auto_schedule=False):
        if args.pages:
            runtime.enqueue_page_range(source.id, *args.pages)
        elif args.series:
            runtime.enqueue_job(source.id, JobKind.SINGLE_SERIES, url=args.series)
        elif args.episode:
            runtime.enqueue_job(source.id, JobKind.SINGLE_EPISODE, url=args.episode)
        else:
            runtime.enqueue_job(source.id, JobKind.RECENT, page=1)

        await runtime.queue.join()
        snapshot = runtime.get_queue_snapshot()

    print(json.dumps(snapshot, indent=2))
    for job in runtime.queue.failed_jobs():
        print(f"Failed: {job.describe()}: {job.error}", file=sys.stderr)
    return 0 if snapshot["failed"] == 0 else 2


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        if args.command == "run":
            asyncio.run(serve())
            return 0

        db = Database(config.DB_PATH)
        if args.command == "seed":
            return cmd_seed(db)
        if args.command == "sources":
            return cmd_sources(db)
        return asyncio.run(cmd_scrape(args, db))
    except ScraperError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
