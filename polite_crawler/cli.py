"""Minimal CLI entrypoint for polite-crawler."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Sequence

from core.config import CrawlConfig
from core.structured_logging import emit_json_event
from fetcher import HostFairScheduler, HttpContentFetcher
from storage import SQLiteJobStore
from worker import run_workers


def _emit_cli_event(
    event_type: str,
    *,
    command: str,
    **payload: Any,
) -> str:
    """Emit one structured CLI event line with standard fields."""
    return emit_json_event(
        event_type=event_type,
        component="cli",
        command=command,
        **payload,
    )


def _cmd_init_db(args: argparse.Namespace) -> int:
    """Create the crawl database schema."""
    SQLiteJobStore(args.db)
    _emit_cli_event("cli_init_db_completed", command="init-db", db=str(args.db))
    return 0


def _cmd_seed(args: argparse.Namespace) -> int:
    """Register starting URLs (and their robots.txt jobs)."""
    store = SQLiteJobStore(args.db)
    created = 0
    for url in args.urls:
        created += len(store.add_seed(url))
    _emit_cli_event(
        "cli_seed_completed",
        command="seed",
        db=str(args.db),
        seeds=len(args.urls),
        jobs_created=created,
    )
    return 0


def _cmd_whitelist(args: argparse.Namespace) -> int:
    """Admit host suffixes for discovered links."""
    store = SQLiteJobStore(args.db)
    for suffix in args.suffixes:
        store.add_host_whitelist(suffix)
    _emit_cli_event("cli_whitelist_completed", command="whitelist", db=str(args.db), added=len(args.suffixes))
    return 0


def _cmd_blacklist_host(args: argparse.Namespace) -> int:
    """Exclude exact host names."""
    store = SQLiteJobStore(args.db)
    for host in args.hosts:
        store.add_host_blacklist(host)
    _emit_cli_event(
        "cli_blacklist_host_completed",
        command="blacklist-host",
        db=str(args.db),
        added=len(args.hosts),
    )
    return 0


def _cmd_blacklist_extension(args: argparse.Namespace) -> int:
    """Exclude path extensions."""
    store = SQLiteJobStore(args.db)
    for extension in args.extensions:
        store.add_extension_blacklist(extension)
    _emit_cli_event(
        "cli_blacklist_extension_completed",
        command="blacklist-extension",
        db=str(args.db),
        added=len(args.extensions),
    )
    return 0


def _cmd_crawl(args: argparse.Namespace) -> int:
    """Crawl every pending job with a pool of polite workers."""
    db_path = Path(args.db)
    if not db_path.exists():
        raise FileNotFoundError(f"Database file not found: {db_path}")

    store = SQLiteJobStore(db_path, initialize=False)
    scheduler = HostFairScheduler(store, crawl_delay_seconds=args.delay)
    fetcher = HttpContentFetcher()

    emit_json_event(
        "crawl_started",
        component="cli",
        db=str(db_path),
        workers=args.workers,
        delay_seconds=args.delay,
        pending=scheduler.pending_count(),
    )
    reports = run_workers(scheduler, fetcher, args.workers)
    failed = [report for report in reports if report.error_type is not None]
    emit_json_event(
        "crawl_completed",
        component="cli",
        db=str(db_path),
        workers=len(reports),
        failed_workers=len(failed),
        robots=sum(report.robots_count for report in reports),
        html=sum(report.html_count for report in reports),
        cancelled=sum(report.cancelled_count for report in reports),
    )
    _emit_cli_event(
        "cli_crawl_completed",
        command="crawl",
        db=str(db_path),
        status="FAILED" if failed else "COMPLETED",
    )
    return 1 if failed else 0


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _non_negative_float(value: str) -> float:
    number = float(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be non-negative, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Create argument parser for the polite-crawler CLI."""
    parser = argparse.ArgumentParser(
        prog="polite-crawler",
        description="Host-fair, robots-respecting web crawler",
    )
    parser.add_argument("--version", action="version", version="polite-crawler 0.1.0")

    subparsers = parser.add_subparsers(dest="command")

    init_parser = subparsers.add_parser("init-db", help="Create the crawl database schema")
    init_parser.add_argument("--db", default=CrawlConfig.DEFAULT_DB_PATH, help="SQLite DB path")
    init_parser.set_defaults(func=_cmd_init_db)

    seed_parser = subparsers.add_parser("seed", help="Add starting URLs")
    seed_parser.add_argument("urls", nargs="+", help="Absolute http(s) URLs")
    seed_parser.add_argument("--db", default=CrawlConfig.DEFAULT_DB_PATH, help="SQLite DB path")
    seed_parser.set_defaults(func=_cmd_seed)

    whitelist_parser = subparsers.add_parser("whitelist", help="Admit host suffixes for discovered links")
    whitelist_parser.add_argument("suffixes", nargs="+", help="Host suffix, e.g. example.edu")
    whitelist_parser.add_argument("--db", default=CrawlConfig.DEFAULT_DB_PATH, help="SQLite DB path")
    whitelist_parser.set_defaults(func=_cmd_whitelist)

    blacklist_host_parser = subparsers.add_parser("blacklist-host", help="Exclude exact host names")
    blacklist_host_parser.add_argument("hosts", nargs="+", help="Host name, e.g. calendar.example.edu")
    blacklist_host_parser.add_argument("--db", default=CrawlConfig.DEFAULT_DB_PATH, help="SQLite DB path")
    blacklist_host_parser.set_defaults(func=_cmd_blacklist_host)

    blacklist_ext_parser = subparsers.add_parser("blacklist-extension", help="Exclude path extensions")
    blacklist_ext_parser.add_argument("extensions", nargs="+", help="Extension, e.g. .pdf")
    blacklist_ext_parser.add_argument("--db", default=CrawlConfig.DEFAULT_DB_PATH, help="SQLite DB path")
    blacklist_ext_parser.set_defaults(func=_cmd_blacklist_extension)

    crawl_parser = subparsers.add_parser("crawl", help="Crawl all pending jobs")
    crawl_parser.add_argument("--db", default=CrawlConfig.DEFAULT_DB_PATH, help="SQLite DB path")
    crawl_parser.add_argument(
        "--workers",
        type=_positive_int,
        default=CrawlConfig.DEFAULT_WORKER_COUNT,
        help="Number of worker threads",
    )
    crawl_parser.add_argument(
        "--delay",
        type=_non_negative_float,
        default=CrawlConfig.DEFAULT_CRAWL_DELAY_SECONDS,
        help="Minimum seconds between requests to one host",
    )
    crawl_parser.set_defaults(func=_cmd_crawl)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Execute CLI and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 0

    try:
        return int(args.func(args))
    except Exception as exc:
        _emit_cli_event(
            "cli_error",
            command=str(getattr(args, "command", "unknown")),
            level="error",
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return 1


def cli() -> None:
    """Console-script entrypoint."""
    raise SystemExit(main())


if __name__ == "__main__":
    raise SystemExit(main())
