"""Crawl run orchestration.

One run: load the previous corpus, discover URLs, select what to fetch, fetch
and classify one page at a time with a fixed delay, checkpoint every N items,
then persist the merged corpus.

Failure policy:
- A manifest, robots or corpus read/write failure is fatal: state FAILED, re-raised.
- A single page failure is recorded in RunStats and the loop continues; the run
  is only unhealthy when failed/attempted exceeds the configured threshold.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import logging
import time
from typing import Callable, Dict, List, Optional, Sequence

from contentscout.analytics.summary import build_summary
from contentscout.config import CrawlConfig
from contentscout.extraction.page_metadata import PageExtractor, RequestsPageFetcher
from contentscout.ingestion.content_types import ContentRecord, DiscoveredUrl
from contentscout.ingestion.discovery import (
    BaseDiscovery,
    DiscoveryError,
    LinkCrawlDiscovery,
    RobotsDisallowedError,
    SitemapDiscovery,
)
from contentscout.merge.incremental import MergePlan, build_record, index_by_url, merge_corpus, plan_merge
from contentscout.storage.corpus_store import CorpusLoadError, CorpusStore, CorpusWriteError

logger = logging.getLogger(__name__)


FATAL_ERRORS = (DiscoveryError, RobotsDisallowedError, CorpusLoadError, CorpusWriteError)


class RunState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    DISCOVERING = "discovering"
    SELECTING = "selecting"
    FETCHING = "fetching"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunStats:
    discovered: int = 0
    new: int = 0
    known_kept: int = 0
    fetched: int = 0
    failed: int = 0
    skipped_over_cap: int = 0
    checkpoints: int = 0
    discovery_source: str = ""
    failed_urls: List[str] = field(default_factory=list)
    failure_reasons: Dict[str, str] = field(default_factory=dict)

    @property
    def attempted(self) -> int:
        return self.fetched + self.failed

    @property
    def failure_rate(self) -> float:
        return self.failed / self.attempted if self.attempted else 0.0

    def exit_code(self, threshold: float = 0.20) -> int:
        """1 when strictly more than `threshold` of the attempted pages failed."""
        # Rounded so exactly 20/100 against 0.20 is not decided by float error
        return 1 if self.failed > round(threshold * self.attempted, 9) else 0

    def as_dict(self) -> Dict[str, object]:
        return {
            "discovered": self.discovered,
            "new": self.new,
            "known_kept": self.known_kept,
            "fetched": self.fetched,
            "failed": self.failed,
            "skipped_over_cap": self.skipped_over_cap,
            "attempted": self.attempted,
            "failure_rate": round(self.failure_rate, 4),
            "checkpoints": self.checkpoints,
            "discovery_source": self.discovery_source,
        }


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CrawlOrchestrator:
    """Runs one incremental crawl. Collaborators are injectable for tests."""

    def __init__(
        self,
        config: CrawlConfig,
        *,
        store: CorpusStore,
        discovery: BaseDiscovery,
        extractor: PageExtractor,
        fallback_discovery: Optional[BaseDiscovery] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.config = config
        self.store = store
        self.discovery = discovery
        self.fallback_discovery = fallback_discovery
        self.extractor = extractor
        self.sleep = sleep
        self.clock = clock
        self.state = RunState.IDLE
        self.stats = RunStats()

    @classmethod
    def from_config(cls, config: CrawlConfig) -> "CrawlOrchestrator":
        fetcher = RequestsPageFetcher(user_agent=config.user_agent, timeout=config.request_timeout)
        fallback = None
        if config.fallback_seed_url:
            fallback = LinkCrawlDiscovery(
                seed_url=config.fallback_seed_url,
                prefixes=tuple(config.content_path_prefixes),
                user_agent=config.user_agent,
                timeout=config.request_timeout,
                delay_seconds=config.request_delay,
                max_depth=config.crawl_max_depth,
                max_pages=config.crawl_max_pages,
                respect_robots=config.respect_robots,
            )
        return cls(
            config,
            store=CorpusStore(config.corpus_path, backup_dir=config.backup_dir if config.backup_old_data else None),
            discovery=SitemapDiscovery(
                sitemap_url=config.sitemap_url,
                prefixes=tuple(config.content_path_prefixes),
                user_agent=config.user_agent,
                timeout=config.request_timeout,
            ),
            extractor=PageExtractor(fetcher),
            fallback_discovery=fallback,
        )

    def _enter(self, state: RunState) -> None:
        logger.debug(f"Run state {self.state.value} -> {state.value}")
        self.state = state

    def run(self) -> RunStats:
        self.stats = RunStats()
        started = self.clock()
        now = started.isoformat()
        try:
            self._enter(RunState.LOADING)
            previous = self.store.load()

            self._enter(RunState.DISCOVERING)
            discovered = self._discover()

            self._enter(RunState.SELECTING)
            plan = plan_merge(
                previous,
                discovered,
                force_refresh=self.config.force_refresh,
                max_items=self.config.max_items,
            )
            self.stats.discovered = len(plan.discovered)
            self.stats.new = len(plan.new_urls)
            self.stats.skipped_over_cap = len(plan.skipped_over_cap)
            logger.info(
                f"Selected {len(plan.to_fetch)} of {len(plan.discovered)} URLs "
                f"({len(plan.new_urls)} new, {len(plan.known_urls)} known, "
                f"{len(plan.skipped_over_cap)} over cap, force_refresh={plan.force_refresh})"
            )

            if previous and self.store.backup_dir:
                self.store.backup(now=started)

            self._enter(RunState.FETCHING)
            fetched = self._fetch_all(previous, plan, now=now, started=started)

            self._enter(RunState.PERSISTING)
            merged = merge_corpus(previous, plan, fetched, now=now)
            self.stats.known_kept = sum(1 for u in plan.known_urls if u not in fetched)
            self._save(merged, now=now, started=started)
        except FATAL_ERRORS:
            self._enter(RunState.FAILED)
            raise

        self._enter(RunState.DONE)
        logger.info(f"Run complete: {self.stats.as_dict()}")
        return self.stats

    def _discover(self) -> List[DiscoveredUrl]:
        discovered = self.discovery.discover()
        self.stats.discovery_source = self.discovery.name
        if not discovered and self.fallback_discovery is not None:
            logger.info(f"No content URLs from {self.discovery.name}; falling back to {self.fallback_discovery.name}")
            discovered = self.fallback_discovery.discover()
            self.stats.discovery_source = self.fallback_discovery.name
        return discovered

    def _fetch_all(
        self,
        previous: Sequence[ContentRecord],
        plan: MergePlan,
        *,
        now: str,
        started: datetime,
    ) -> Dict[str, ContentRecord]:
        known = index_by_url(previous)
        fetched: Dict[str, ContentRecord] = {}
        total = len(plan.to_fetch)
        for i, item in enumerate(plan.to_fetch, start=1):
            if i > 1:
                self.sleep(self.config.request_delay)
            result = self.extractor.extract(item.url)
            if result.ok:
                fetched[item.url] = build_record(
                    item,
                    result.metadata,
                    now=now,
                    previous=known.get(item.url),
                    b2b_content_types=self.config.b2b_content_types,
                )
                self.stats.fetched += 1
            else:
                self.stats.failed += 1
                self.stats.failed_urls.append(item.url)
                self.stats.failure_reasons[item.url] = result.status

            if i % self.config.checkpoint_every == 0 and i < total:
                self._save(merge_corpus(previous, plan, fetched, now=now), now=now, started=started)
                self.stats.checkpoints += 1
                logger.info(f"Checkpoint {i}/{total} fetched={self.stats.fetched} failed={self.stats.failed}")
        return fetched

    def _save(self, records: Sequence[ContentRecord], *, now: str, started: datetime) -> None:
        summary = build_summary(records, now=started, recent_days=self.config.recent_content_days)
        self.store.save(records, last_updated=now, summary=summary)
