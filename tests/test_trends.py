import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from datetime import datetime, timezone
from unittest import mock

import compute_content_trends_worker
from compute_content_trends_worker import build_report
from contentscout.analytics.summary import build_summary
from contentscout.analytics.trends import compute_topic_counts, compute_topic_trends, find_content_gaps
from contentscout.ingestion.content_types import ContentRecord
from contentscout.storage.corpus_store import CorpusStore


NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)


def _rec(i, title, publish_date=None, **kw):
    return ContentRecord(
        id=f"id{i}",
        url=f"https://www.example.com/resources/articles/p{i}/",
        title=title,
        publish_date=publish_date,
        first_seen=kw.pop("first_seen", "2026-05-30T00:00:00+00:00"),
        last_checked="2026-06-01T00:00:00+00:00",
        **kw,
    )


def _corpus():
    recent = [_rec(i, "Telehealth for knees", "2026-05-01") for i in range(5)]
    older = [_rec(10 + i, "Quarterly update", "2025-01-01") for i in range(5)]
    undated = [_rec(20, "Telehealth roundup")]
    return recent + older + undated


class TestTopicTrends(unittest.TestCase):
    def test_trending_topic(self):
        trends = compute_topic_trends(_corpus(), now=NOW)
        tele = [t for t in trends["trending"] if t.topic == "telehealth"]
        self.assertEqual(len(tele), 1)
        self.assertEqual(tele[0].change, 100.0)
        # undated records do not count
        self.assertEqual(tele[0].recent_count, 5)
        self.assertEqual(tele[0].older_count, 0)

    def test_declining_topic(self):
        records = [_rec(i, "Telehealth for knees", "2025-01-01") for i in range(5)]
        records += [_rec(10 + i, "Quarterly update", "2026-05-01") for i in range(5)]
        trends = compute_topic_trends(records, now=NOW)
        self.assertEqual([t.topic for t in trends["declining"]], ["telehealth"])
        self.assertEqual(trends["declining"][0].change, -100.0)

    def test_min_count(self):
        trends = compute_topic_trends(_corpus(), now=NOW, min_count=6)
        self.assertEqual(trends["trending"], [])

    def test_topic_counts_include_undated(self):
        counts = compute_topic_counts(_corpus())
        self.assertEqual(counts["technology"]["telehealth"], 6)

    def test_gaps(self):
        counts = compute_topic_counts([_rec(1, "Back pain basics")])
        gaps = find_content_gaps(counts)
        self.assertLessEqual(len(gaps["zeroCoverage"]), 15)
        self.assertLessEqual(len(gaps["limitedCoverage"]), 10)
        limited = {g["topic"]: g["count"] for g in gaps["limitedCoverage"]}
        self.assertEqual(limited["back pain"], 1)
        self.assertEqual(gaps["zeroCoverage"][0]["topic"], "chronic pain")

    def test_report(self):
        report = build_report(_corpus(), now=NOW)
        self.assertEqual(report["totalContent"], 11)
        self.assertEqual(report["datedContent"], 10)
        self.assertEqual(report["trending"][0]["topic"], "telehealth")


class TestSummary(unittest.TestCase):
    def test_counts(self):
        records = [
            _rec(1, "a", content_type="article", categories=["Back pain", "Exercise"], target_audience=["members"], is_new=True),
            _rec(2, "b", content_type="article", categories=["Back pain"], target_audience=["members", "employers"]),
            _rec(3, "c", content_type="case-study", first_seen="2025-01-01T00:00:00+00:00", target_audience=["employers"]),
        ]
        summary = build_summary(records, now=NOW, recent_days=7)
        self.assertEqual(summary["totalContent"], 3)
        self.assertEqual(summary["newContentCount"], 1)
        self.assertEqual(summary["recentContent"], 2)
        self.assertEqual(summary["contentByType"], {"article": 2, "case-study": 1})
        self.assertEqual(summary["contentByAudience"], {"members": 2, "employers": 2})
        self.assertEqual(list(summary["topCategories"].items()), [("Back pain", 2), ("Exercise", 1)])

    def test_top_categories_limited(self):
        records = [_rec(1, "a", categories=[f"c{i}" for i in range(30)])]
        self.assertEqual(len(build_summary(records, now=NOW)["topCategories"]), 20)

    def test_empty(self):
        summary = build_summary([], now=NOW)
        self.assertEqual(summary["totalContent"], 0)
        self.assertEqual(summary["topCategories"], {})


class TestTrendsWorker(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.corpus = os.path.join(self.tmp.name, "content-corpus.json")
        self.out = os.path.join(self.tmp.name, "content-trends.json")
        records = [_rec(1, "Chair exercises for desk workers", "2026-05-01")]
        CorpusStore(self.corpus).save(
            records, last_updated=NOW.isoformat(), summary=build_summary(records, now=NOW)
        )

    def tearDown(self):
        self.tmp.cleanup()

    def _main(self, env):
        env = dict(env, CORPUS_PATH=self.corpus, TRENDS_PATH=self.out)
        buf = io.StringIO()
        with mock.patch.dict(os.environ, env, clear=True), \
                mock.patch.object(compute_content_trends_worker, "load_dotenv"), \
                redirect_stdout(buf):
            code = compute_content_trends_worker.main([])
        return code, buf.getvalue()

    def _technology_counts(self):
        with open(self.out, "r", encoding="utf-8") as f:
            return json.load(f)["topicCounts"]["technology"]

    def test_invalid_match_mode_exits_two(self):
        code, out = self._main({"TOPIC_MATCH_MODE": "words"})
        self.assertEqual(code, 2)
        self.assertIn("[trends] FAILED", out)
        self.assertIn("TOPIC_MATCH_MODE", out)
        self.assertFalse(os.path.exists(self.out))

    def test_substring_mode_by_default(self):
        code, _ = self._main({})
        self.assertEqual(code, 0)
        self.assertEqual(self._technology_counts().get("ai"), 1)

    def test_word_mode_from_env(self):
        code, _ = self._main({"TOPIC_MATCH_MODE": "word"})
        self.assertEqual(code, 0)
        self.assertNotIn("ai", self._technology_counts())


if __name__ == "__main__":
    unittest.main()
