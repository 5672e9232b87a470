"""Strategic topic trend + gap computations.

We compute simple, explainable figures over the classified corpus:
- topic share shift: percentage of dated items mentioning a phrase in the
  recent window minus the same percentage in the older items
- coverage gaps: phrases with no or few matching items
Undated items are left out of the trend split; they still count for coverage.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from dateutil.relativedelta import relativedelta

from contentscout.classification.rules import STRATEGIC_TOPICS, extract_strategic_topics, topic_text
from contentscout.ingestion.content_types import ContentRecord


def compute_topic_counts(
    records: Sequence[ContentRecord],
    *,
    match_mode: str = "substring",
) -> Dict[str, Dict[str, int]]:
    """Per category, phrase -> number of records whose title+description contains it."""
    counts: Dict[str, Dict[str, int]] = {c: {} for c in STRATEGIC_TOPICS}
    for r in records:
        found = extract_strategic_topics(topic_text(r.title, r.description), match_mode=match_mode)
        for category, phrases in found.items():
            bucket = counts.setdefault(category, {})
            for p in phrases:
                bucket[p] = bucket.get(p, 0) + 1
    return counts


@dataclass(frozen=True)
class TopicTrend:
    topic: str
    change: float
    recent_count: int
    older_count: int


def _publish_day(record: ContentRecord) -> Optional[date]:
    if not record.publish_date:
        return None
    try:
        return date.fromisoformat(record.publish_date)
    except ValueError:
        return None


def split_by_recency(
    records: Sequence[ContentRecord],
    *,
    now: Optional[datetime] = None,
    recent_months: int = 3,
) -> Tuple[List[ContentRecord], List[ContentRecord]]:
    now = now or datetime.now(timezone.utc)
    cutoff = (now - relativedelta(months=recent_months)).date()
    recent: List[ContentRecord] = []
    older: List[ContentRecord] = []
    for r in records:
        day = _publish_day(r)
        if day is None:
            continue
        (recent if day > cutoff else older).append(r)
    return recent, older


def _phrase_counts(records: Sequence[ContentRecord], match_mode: str) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for r in records:
        found = extract_strategic_topics(topic_text(r.title, r.description), match_mode=match_mode)
        for phrases in found.values():
            for p in phrases:
                counts[p] = counts.get(p, 0) + 1
    return counts


def compute_topic_trends(
    records: Sequence[ContentRecord],
    *,
    now: Optional[datetime] = None,
    recent_months: int = 3,
    min_count: int = 5,
    min_change: float = 0.5,
    match_mode: str = "substring",
) -> Dict[str, List[TopicTrend]]:
    """Return {"trending": [...], "declining": [...]} sorted by magnitude of change."""
    recent, older = split_by_recency(records, now=now, recent_months=recent_months)
    recent_counts = _phrase_counts(recent, match_mode)
    older_counts = _phrase_counts(older, match_mode)

    trending: List[TopicTrend] = []
    declining: List[TopicTrend] = []
    for topic in list(dict.fromkeys([*recent_counts, *older_counts])):
        rc = recent_counts.get(topic, 0)
        oc = older_counts.get(topic, 0)
        recent_pct = (rc / len(recent)) * 100 if recent else 0.0
        older_pct = (oc / len(older)) * 100 if older else 0.0
        change = round(recent_pct - older_pct, 1)
        if change > min_change and rc >= min_count:
            trending.append(TopicTrend(topic=topic, change=change, recent_count=rc, older_count=oc))
        elif change < -min_change and oc >= min_count:
            declining.append(TopicTrend(topic=topic, change=change, recent_count=rc, older_count=oc))

    trending.sort(key=lambda t: t.change, reverse=True)
    declining.sort(key=lambda t: t.change)
    return {"trending": trending, "declining": declining}


GAP_OPPORTUNITY = {
    "clinical": "Clinical content opportunity",
    "business": "Business differentiation opportunity",
    "technology": "Technology positioning gap",
    "market": "Market positioning opportunity",
}


def find_content_gaps(
    topic_counts: Dict[str, Dict[str, int]],
    *,
    limited_below: int = 5,
    max_zero: int = 15,
    max_limited: int = 10,
) -> Dict[str, List[Dict[str, object]]]:
    zero: List[Dict[str, object]] = []
    limited: List[Dict[str, object]] = []
    for category, phrases in STRATEGIC_TOPICS.items():
        counts = topic_counts.get(category, {})
        for phrase in phrases:
            n = counts.get(phrase, 0)
            if n == 0:
                zero.append({"topic": phrase, "category": category, "count": 0,
                             "opportunity": GAP_OPPORTUNITY.get(category, "Coverage gap")})
            elif n < limited_below:
                plural = "" if n == 1 else "s"
                limited.append({"topic": phrase, "category": category, "count": n,
                                "opportunity": f"Only {n} piece{plural} - room to expand"})
    return {"zeroCoverage": zero[:max_zero], "limitedCoverage": limited[:max_limited]}
