"""Incremental merge of freshly discovered URLs into the persisted corpus.

The corpus only grows: URLs that vanish from the site are kept. `firstSeen` is
carried forward from the previous corpus for every URL that already had one,
including refetches under force-refresh.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from contentscout.classification.rules import classify_audience, classify_content_type
from contentscout.extraction.page_metadata import PageMetadata
from contentscout.ingestion.content_types import ContentRecord, DiscoveredUrl
from contentscout.ingestion.url_utils import canonicalize_url, content_id


@dataclass(frozen=True)
class MergePlan:
    discovered: List[DiscoveredUrl]
    new_urls: List[str]
    known_urls: List[str]
    to_fetch: List[DiscoveredUrl]
    skipped_over_cap: List[str] = field(default_factory=list)
    force_refresh: bool = False


def index_by_url(records: Iterable[ContentRecord]) -> Dict[str, ContentRecord]:
    """Canonical URL -> record; the first record wins if an old corpus holds duplicates."""
    out: Dict[str, ContentRecord] = {}
    for r in records:
        out.setdefault(canonicalize_url(r.url), r)
    return out


def plan_merge(
    previous: Sequence[ContentRecord],
    discovered: Sequence[DiscoveredUrl],
    *,
    force_refresh: bool = False,
    max_items: int = 0,
) -> MergePlan:
    """Partition discovered URLs into new/known and choose what to fetch.

    `max_items` caps the fetch list in discovery order (0 = no cap).
    """
    known_index = index_by_url(previous)
    seen = set()
    items: List[DiscoveredUrl] = []
    for d in discovered:
        canon = canonicalize_url(d.url)
        if not canon or canon in seen:
            continue
        seen.add(canon)
        items.append(DiscoveredUrl(url=canon, lastmod=d.lastmod))

    new_urls = [d.url for d in items if d.url not in known_index]
    known_urls = [d.url for d in items if d.url in known_index]

    candidates = items if force_refresh else [d for d in items if d.url not in known_index]
    skipped: List[str] = []
    if max_items and len(candidates) > max_items:
        skipped = [d.url for d in candidates[max_items:]]
        candidates = candidates[:max_items]

    return MergePlan(
        discovered=items,
        new_urls=new_urls,
        known_urls=known_urls,
        to_fetch=list(candidates),
        skipped_over_cap=skipped,
        force_refresh=force_refresh,
    )


def build_record(
    item: DiscoveredUrl,
    meta: PageMetadata,
    *,
    now: str,
    previous: Optional[ContentRecord] = None,
    b2b_content_types: Optional[Iterable[str]] = None,
) -> ContentRecord:
    """Classify fetched metadata into a record, inheriting identity from `previous`."""
    content_type = classify_content_type(item.url, meta.title)
    audience = classify_audience(
        title=meta.title,
        description=meta.description,
        categories=meta.categories,
        url=item.url,
        content_type=content_type,
        b2b_content_types=b2b_content_types,
    )
    # The sitemap lastmod is preferred over the page's own date
    publish_date = item.lastmod or meta.publish_date
    return ContentRecord(
        id=previous.id if previous and previous.id else content_id(item.url),
        url=item.url,
        title=meta.title,
        description=meta.description,
        publish_date=publish_date,
        content_type=content_type,
        categories=list(meta.categories),
        target_audience=audience,
        featured_image=meta.featured_image,
        first_seen=previous.first_seen if previous and previous.first_seen else now,
        last_checked=now,
        extra=dict(previous.extra) if previous else {},
        is_new=previous is None,
    )


def merge_corpus(
    previous: Sequence[ContentRecord],
    plan: MergePlan,
    fetched: Mapping[str, ContentRecord],
    *,
    now: str,
) -> List[ContentRecord]:
    """Combine the old corpus with this run's fetched records.

    - old records keep their position; a refetched one is replaced in place
    - old records that were rediscovered but not refetched get lastChecked=now
    - old records not rediscovered are kept unchanged (isNew reset)
    - fetched new URLs are appended in discovery order
    """
    discovered = {d.url for d in plan.discovered}
    out: List[ContentRecord] = []
    placed = set()
    for old in previous:
        canon = canonicalize_url(old.url)
        if canon in placed:
            continue
        placed.add(canon)
        fresh = fetched.get(canon)
        if fresh is not None:
            out.append(_inherit_identity(fresh, old, now=now))
        elif canon in discovered:
            out.append(old.checked(now))
        elif old.is_new:
            out.append(replace(old, is_new=False))
        else:
            out.append(old)

    for d in plan.discovered:
        if d.url in placed:
            continue
        fresh = fetched.get(d.url)
        if fresh is None:
            continue
        placed.add(d.url)
        out.append(fresh)
    return out


def _inherit_identity(fresh: ContentRecord, old: ContentRecord, *, now: str) -> ContentRecord:
    return replace(
        fresh,
        id=old.id or fresh.id,
        first_seen=old.first_seen or fresh.first_seen or now,
        last_checked=now,
        extra={**old.extra, **fresh.extra},
        is_new=False,
    )
