import unittest

import requests

from contentscout.ingestion.content_types import DiscoveredUrl
from contentscout.ingestion.discovery import (
    DiscoveryError,
    LinkCrawlDiscovery,
    RobotsDisallowedError,
    SitemapDiscovery,
    check_robots,
    filter_content_urls,
    parse_sitemap_xml,
)


SITEMAP_URL = "https://www.example.com/sitemap-0.xml"

SITEMAP = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://www.example.com/resources/</loc></url>
  <url><loc>https://www.example.com/resources/articles/back-pain/</loc><lastmod>2024-01-02T00:00:00+00:00</lastmod></url>
  <url><loc>https://www.example.com/resources/articles/knee-pain/</loc></url>
  <url><loc>https://www.example.com/resources/articles/back-pain/</loc></url>
  <url><loc>https://www.example.com/resources/articles/?page=2</loc></url>
  <url><loc>https://www.example.com/about/</loc></url>
  <url><loc>https://www.example.com/for-individuals</loc></url>
</urlset>
"""

SITEMAP_INDEX = """<?xml version="1.0" encoding="UTF-8"?>
<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <sitemap><loc>https://www.example.com/sitemap-articles.xml</loc></sitemap>
  <sitemap><loc>https://www.example.com/sitemap-missing.xml</loc></sitemap>
</sitemapindex>
"""

CHILD_SITEMAP = """<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://www.example.com/resources/articles/hip-pain/</loc><lastmod>2023-05-06</lastmod></url>
</urlset>
"""


class FakeResponse:
    def __init__(self, text="", status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """URL -> body (str), or an exception to raise; unknown URLs return 404."""

    def __init__(self, pages):
        self.pages = pages
        self.headers = {}
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append(url)
        body = self.pages.get(url)
        if isinstance(body, Exception):
            raise body
        if body is None:
            return FakeResponse("", 404)
        return FakeResponse(body)


class TestSitemapParsing(unittest.TestCase):
    def test_lastmod_is_optional(self):
        entries, children = parse_sitemap_xml(SITEMAP)
        self.assertEqual(children, [])
        self.assertIn(("https://www.example.com/resources/articles/knee-pain/", None), entries)
        self.assertIn(
            ("https://www.example.com/resources/articles/back-pain/", "2024-01-02T00:00:00+00:00"),
            entries,
        )

    def test_filter_dedupes_and_excludes(self):
        entries, _ = parse_sitemap_xml(SITEMAP)
        found = filter_content_urls(entries, ["/resources/", "/for-individuals/"])
        self.assertEqual(
            found,
            [
                DiscoveredUrl("https://www.example.com/resources/articles/back-pain/", "2024-01-02"),
                DiscoveredUrl("https://www.example.com/resources/articles/knee-pain/", None),
            ],
        )

    def test_later_duplicate_fills_missing_lastmod(self):
        entries = [
            ("https://www.example.com/resources/articles/a/", None),
            ("https://www.example.com/resources/articles/a/", "2024-02-03"),
        ]
        found = filter_content_urls(entries, ["/resources/"])
        self.assertEqual(found, [DiscoveredUrl("https://www.example.com/resources/articles/a/", "2024-02-03")])

    def test_malformed_xml_raises(self):
        with self.assertRaises(Exception):
            parse_sitemap_xml("<urlset><url>")


class TestSitemapDiscovery(unittest.TestCase):
    def test_discover(self):
        session = FakeSession({SITEMAP_URL: SITEMAP})
        found = SitemapDiscovery(sitemap_url=SITEMAP_URL, session=session).discover()
        self.assertEqual([d.url for d in found], [
            "https://www.example.com/resources/articles/back-pain/",
            "https://www.example.com/resources/articles/knee-pain/",
        ])
        self.assertEqual(session.headers["User-Agent"], "Mozilla/5.0 (compatible; ContentMonitor/1.0)")

    def test_sitemap_index_skips_failed_child(self):
        session = FakeSession({
            SITEMAP_URL: SITEMAP_INDEX,
            "https://www.example.com/sitemap-articles.xml": CHILD_SITEMAP,
        })
        found = SitemapDiscovery(sitemap_url=SITEMAP_URL, session=session).discover()
        self.assertEqual(found, [DiscoveredUrl("https://www.example.com/resources/articles/hip-pain/", "2023-05-06")])
        self.assertIn("https://www.example.com/sitemap-missing.xml", session.calls)

    def test_unreachable_sitemap_is_fatal(self):
        session = FakeSession({SITEMAP_URL: requests.ConnectionError("refused")})
        with self.assertRaises(DiscoveryError):
            SitemapDiscovery(sitemap_url=SITEMAP_URL, session=session).discover()

    def test_http_error_is_fatal(self):
        with self.assertRaises(DiscoveryError):
            SitemapDiscovery(sitemap_url=SITEMAP_URL, session=FakeSession({})).discover()

    def test_malformed_sitemap_is_fatal(self):
        session = FakeSession({SITEMAP_URL: "<urlset><url><loc>x"})
        with self.assertRaises(DiscoveryError):
            SitemapDiscovery(sitemap_url=SITEMAP_URL, session=session).discover()


SEED = "https://www.example.com/resources/"

SEED_HTML = """
<a href="/resources/articles/">All articles</a>
<a href="/resources/articles/a-post">A</a>
<a href="https://other.example.org/resources/articles/x">Elsewhere</a>
<a href="/about/team">Team</a>
<a href="mailto:hello@example.com">Mail</a>
"""

ARTICLES_HTML = """
<a href="/resources/articles/b-post?ref=nav">B</a>
<a href="/resources/articles/a-post#top">A again</a>
<a href="/resources/">Back</a>
"""


class TestLinkCrawlDiscovery(unittest.TestCase):
    def _crawl(self, pages, **kw):
        sleeps = []
        session = FakeSession(pages)
        kw.setdefault("respect_robots", False)
        crawler = LinkCrawlDiscovery(seed_url=SEED, session=session, sleep=sleeps.append, **kw)
        return crawler.discover(), session, sleeps

    def test_collects_content_pages_through_listings(self):
        found, session, sleeps = self._crawl({SEED: SEED_HTML, SEED + "articles/": ARTICLES_HTML})
        self.assertEqual([d.url for d in found], [
            "https://www.example.com/resources/articles/a-post",
            "https://www.example.com/resources/articles/b-post",
        ])
        self.assertEqual(session.calls, [SEED, SEED + "articles/"])
        self.assertEqual(len(sleeps), 1)

    def test_depth_bound(self):
        found, session, _ = self._crawl({SEED: SEED_HTML, SEED + "articles/": ARTICLES_HTML}, max_depth=0)
        self.assertEqual(session.calls, [SEED])
        self.assertEqual([d.url for d in found], ["https://www.example.com/resources/articles/a-post"])

    def test_page_bound(self):
        html = "".join(f'<a href="/resources/section-{i}/">s{i}</a>' for i in range(20))
        _, session, _ = self._crawl({SEED: html}, max_pages=3)
        self.assertEqual(len(session.calls), 3)

    def test_failed_listing_page_is_skipped(self):
        found, _, _ = self._crawl({SEED: SEED_HTML})
        self.assertEqual([d.url for d in found], ["https://www.example.com/resources/articles/a-post"])

    def test_robots_disallow_stops_crawl(self):
        pages = {
            "https://www.example.com/robots.txt": "User-agent: *\nDisallow: /resources/\n",
            SEED: SEED_HTML,
        }
        with self.assertRaises(RobotsDisallowedError):
            self._crawl(pages, respect_robots=True)


class TestRobots(unittest.TestCase):
    def test_allowed(self):
        session = FakeSession({"https://www.example.com/robots.txt": "User-agent: *\nDisallow: /private/\n"})
        check_robots(SEED, "test-agent", session=session)

    def test_missing_robots_is_allowed(self):
        check_robots(SEED, "test-agent", session=FakeSession({}))

    def test_unreachable_robots_is_allowed(self):
        session = FakeSession({"https://www.example.com/robots.txt": requests.ConnectionError("down")})
        check_robots(SEED, "test-agent", session=session)


if __name__ == "__main__":
    unittest.main()
