#!/usr/bin/env python3
"""Competitor content crawl worker.

Runs one incremental crawl (or scheduled):
- discover content URLs from the sitemap (link crawl fallback)
- fetch + classify new pages (all pages with --force)
- merge into the JSON corpus with periodic checkpoints

Exit code is non-zero on a fatal error or when too many pages failed.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from typing import List, Optional

import schedule
from dotenv import load_dotenv

from contentscout.config import CrawlConfig
from contentscout.crawl.orchestrator import FATAL_ERRORS, CrawlOrchestrator, RunStats

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

MAX_LISTED_FAILURES = 20


def print_summary(stats: RunStats, *, threshold: float) -> None:
    print(
        f"[crawl] discovered={stats.discovered} new={stats.new} known_kept={stats.known_kept} "
        f"fetched={stats.fetched} failed={stats.failed} skipped_over_cap={stats.skipped_over_cap} "
        f"source={stats.discovery_source or '-'}"
    )
    if not stats.failed:
        return
    print(f"[crawl] failure_rate={stats.failure_rate:.1%} threshold={threshold:.0%}")
    if len(stats.failed_urls) <= MAX_LISTED_FAILURES:
        for url in stats.failed_urls:
            print(f"[crawl]   failed: {url} ({stats.failure_reasons.get(url, 'error')})")
    else:
        print(f"[crawl] {len(stats.failed_urls)} failed URLs (too many to list)")


def run_once(config: Optional[CrawlConfig] = None) -> int:
    load_dotenv()
    try:
        config = config or CrawlConfig.from_env()
    except ValueError as e:
        print(f"[crawl] FAILED: {e}")
        return 2

    orchestrator = CrawlOrchestrator.from_config(config)
    try:
        stats = orchestrator.run()
    except FATAL_ERRORS as e:
        print(f"[crawl] FAILED: {e}")
        return 1

    print_summary(stats, threshold=config.failure_rate_threshold)
    code = stats.exit_code(config.failure_rate_threshold)
    if code:
        print(f"[crawl] failure rate {stats.failure_rate:.1%} exceeds {config.failure_rate_threshold:.0%}")
    return code


def run_scheduled(config: Optional[CrawlConfig] = None) -> None:
    load_dotenv()
    config = config or CrawlConfig.from_env()
    # Run once on start, then every CRAWL_INTERVAL_HOURS
    run_once(config)
    schedule.every(config.crawl_interval_hours).hours.do(run_once, config)
    while True:
        schedule.run_pending()
        time.sleep(60)


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Crawl and classify competitor content into the JSON corpus")
    ap.add_argument("--force", action="store_true", help="Refetch every discovered URL (keeps firstSeen)")
    ap.add_argument("--max-items", type=int, default=None, help="Cap the number of pages fetched this run")
    args = ap.parse_args(argv)

    load_dotenv()
    try:
        config = CrawlConfig.from_env()
    except ValueError as e:
        print(f"[crawl] FAILED: {e}")
        return 2
    if args.force:
        config.force_refresh = True
    if args.max_items is not None:
        if args.max_items < 0:
            print("[crawl] FAILED: --max-items must be >= 0")
            return 2
        config.max_items = args.max_items

    mode = (os.environ.get("CRAWL_MODE") or "once").lower().strip()
    if mode in ("scheduled", "daemon"):
        run_scheduled(config)
        return 0
    return run_once(config)


if __name__ == "__main__":
    sys.exit(main())
