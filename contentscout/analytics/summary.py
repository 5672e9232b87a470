"""Aggregate statistics stored alongside the corpus."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Sequence

from contentscout.ingestion.content_types import ContentRecord


TOP_CATEGORIES_LIMIT = 20


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    s = str(value).strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError:
        return None
    # Normalize naive to UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _count(counter: Dict[str, int], key: str) -> None:
    counter[key] = counter.get(key, 0) + 1


def build_summary(
    records: Sequence[ContentRecord],
    *,
    now: Optional[datetime] = None,
    recent_days: int = 7,
) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=recent_days)

    by_type: Dict[str, int] = {}
    by_audience: Dict[str, int] = {}
    categories: Dict[str, int] = {}
    recent = 0
    for r in records:
        _count(by_type, r.content_type)
        for a in r.target_audience:
            _count(by_audience, a)
        for c in r.categories:
            _count(categories, c)
        seen = parse_timestamp(r.first_seen)
        if seen is not None and seen > cutoff:
            recent += 1

    # sorted() is stable, so ties keep first-appearance order
    top = sorted(categories.items(), key=lambda kv: kv[1], reverse=True)[:TOP_CATEGORIES_LIMIT]
    return {
        "totalContent": len(records),
        "newContentCount": sum(1 for r in records if r.is_new),
        "recentContent": recent,
        "contentByType": by_type,
        "contentByAudience": by_audience,
        "topCategories": dict(top),
    }
