"""Run configuration loaded from the environment (.env supported by the workers)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from contentscout.classification.rules import DEFAULT_B2B_CONTENT_TYPES
from contentscout.ingestion.url_utils import DEFAULT_CONTENT_PATH_PREFIXES


DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; ContentMonitor/1.0)"

TOPIC_MATCH_MODES = ("substring", "word")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: Tuple[str, ...]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return list(default)
    return [p.strip() for p in raw.split(",") if p.strip()]


@dataclass
class CrawlConfig:
    """Crawl configuration with validation"""

    sitemap_url: str = "https://www.hingehealth.com/sitemap-0.xml"
    content_path_prefixes: List[str] = field(default_factory=lambda: list(DEFAULT_CONTENT_PATH_PREFIXES))
    fallback_seed_url: Optional[str] = "https://www.hingehealth.com/resources/"

    # Persistence
    corpus_path: str = "data/content-corpus.json"
    backup_dir: str = "data/backups"
    backup_old_data: bool = True

    # Selection
    max_items: int = 0  # 0 = no cap
    force_refresh: bool = False

    # Politeness
    request_delay: float = 1.0
    request_timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    respect_robots: bool = True
    crawl_max_depth: int = 3
    crawl_max_pages: int = 300

    # Run policy
    checkpoint_every: int = 50
    failure_rate_threshold: float = 0.20

    # Classification
    b2b_content_types: List[str] = field(default_factory=lambda: list(DEFAULT_B2B_CONTENT_TYPES))
    topic_match_mode: str = "substring"

    # Summary / scheduling
    recent_content_days: int = 7
    crawl_interval_hours: float = 24.0

    @classmethod
    def from_env(cls) -> "CrawlConfig":
        """Load and validate configuration from environment variables"""
        config = cls(
            sitemap_url=os.getenv("SITEMAP_URL", "https://www.hingehealth.com/sitemap-0.xml"),
            content_path_prefixes=_env_list("CONTENT_PATH_PREFIXES", DEFAULT_CONTENT_PATH_PREFIXES),
            fallback_seed_url=os.getenv("FALLBACK_SEED_URL", "https://www.hingehealth.com/resources/") or None,
            corpus_path=os.getenv("CORPUS_PATH", "data/content-corpus.json"),
            backup_dir=os.getenv("BACKUP_DIR", "data/backups"),
            backup_old_data=_env_bool("BACKUP_OLD_DATA", "true"),
            max_items=int(os.getenv("MAX_ITEMS", "0")),
            force_refresh=_env_bool("FORCE_REFRESH", "false"),
            request_delay=float(os.getenv("REQUEST_DELAY", "1.0")),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "10")),
            user_agent=os.getenv("USER_AGENT", DEFAULT_USER_AGENT),
            respect_robots=_env_bool("RESPECT_ROBOTS", "true"),
            crawl_max_depth=int(os.getenv("CRAWL_MAX_DEPTH", "3")),
            crawl_max_pages=int(os.getenv("CRAWL_MAX_PAGES", "300")),
            checkpoint_every=int(os.getenv("CHECKPOINT_EVERY", "50")),
            failure_rate_threshold=float(os.getenv("FAILURE_RATE_THRESHOLD", "0.20")),
            b2b_content_types=_env_list("B2B_CONTENT_TYPES", DEFAULT_B2B_CONTENT_TYPES),
            topic_match_mode=os.getenv("TOPIC_MATCH_MODE", "substring").strip().lower(),
            recent_content_days=int(os.getenv("RECENT_CONTENT_DAYS", "7")),
            crawl_interval_hours=float(os.getenv("CRAWL_INTERVAL_HOURS", "24")),
        )
        config._validate()
        return config

    def _validate(self) -> None:
        """Validate configuration values"""
        errors = []

        if not self.sitemap_url.startswith(("http://", "https://")):
            errors.append("SITEMAP_URL must be an http(s) URL")
        if self.fallback_seed_url and not self.fallback_seed_url.startswith(("http://", "https://")):
            errors.append("FALLBACK_SEED_URL must be an http(s) URL")
        if not self.content_path_prefixes:
            errors.append("CONTENT_PATH_PREFIXES must list at least one path fragment")
        if not self.corpus_path:
            errors.append("CORPUS_PATH is required")
        if self.max_items < 0:
            errors.append("MAX_ITEMS must be >= 0")
        if self.request_delay < 0:
            errors.append("REQUEST_DELAY must be >= 0")
        if self.request_timeout <= 0:
            errors.append("REQUEST_TIMEOUT must be > 0")
        if self.checkpoint_every < 1:
            errors.append("CHECKPOINT_EVERY must be >= 1")
        if not 0.0 <= self.failure_rate_threshold <= 1.0:
            errors.append("FAILURE_RATE_THRESHOLD must be between 0 and 1")
        if self.crawl_max_depth < 0 or self.crawl_max_pages < 1:
            errors.append("CRAWL_MAX_DEPTH must be >= 0 and CRAWL_MAX_PAGES >= 1")
        if self.topic_match_mode not in TOPIC_MATCH_MODES:
            errors.append(f"TOPIC_MATCH_MODE must be one of {', '.join(TOPIC_MATCH_MODES)}")
        if self.crawl_interval_hours <= 0:
            errors.append("CRAWL_INTERVAL_HOURS must be > 0")

        if errors:
            raise ValueError("Configuration errors: " + "; ".join(errors))
