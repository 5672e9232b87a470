#!/usr/bin/env python3
"""Compute strategic topic counts, trends and coverage gaps from the content corpus."""

from __future__ import annotations

import argparse
from dataclasses import asdict
from datetime import datetime, timezone
import json
import os
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from contentscout.analytics.trends import compute_topic_counts, compute_topic_trends, find_content_gaps
from contentscout.config import CrawlConfig
from contentscout.storage.corpus_store import CorpusLoadError, CorpusStore


def build_report(records, *, now: datetime, match_mode: str = "substring") -> Dict[str, Any]:
    counts = compute_topic_counts(records, match_mode=match_mode)
    trends = compute_topic_trends(records, now=now, match_mode=match_mode)
    return {
        "generatedAt": now.isoformat(),
        "totalContent": len(records),
        "datedContent": sum(1 for r in records if r.publish_date),
        "topicCounts": counts,
        "trending": [asdict(t) for t in trends["trending"][:10]],
        "declining": [asdict(t) for t in trends["declining"][:10]],
        "gaps": find_content_gaps(counts),
    }


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    try:
        config = CrawlConfig.from_env()
    except ValueError as e:
        print(f"[trends] FAILED: {e}")
        return 2

    ap = argparse.ArgumentParser(description="Topic trends + content gaps from the content corpus")
    ap.add_argument("--corpus", default=config.corpus_path)
    ap.add_argument("--out", default=os.environ.get("TRENDS_PATH", "data/content-trends.json"))
    args = ap.parse_args(argv)

    try:
        records = CorpusStore(args.corpus).load()
    except CorpusLoadError as e:
        print(f"[trends] FAILED: {e}")
        return 1

    report = build_report(records, now=datetime.now(timezone.utc), match_mode=config.topic_match_mode)
    os.makedirs(os.path.dirname(os.path.abspath(args.out)), exist_ok=True)
    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(report, f, ensure_ascii=False, indent=2)
    print(
        f"[trends] records={len(records)} trending={len(report['trending'])} "
        f"declining={len(report['declining'])} zero_coverage={len(report['gaps']['zeroCoverage'])} -> {args.out}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
