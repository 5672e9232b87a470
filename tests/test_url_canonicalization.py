import unittest

from contentscout.ingestion.url_utils import (
    canonicalize_url,
    content_id,
    is_content_page,
    is_content_url,
    resolve_link,
)


class TestUrlCanonicalization(unittest.TestCase):
    def test_canonicalize_drops_query_and_fragment(self):
        raw = "HTTPS://WWW.Example.com/resources/articles/Back-Pain/?utm_source=x&id=1#section"
        canon = canonicalize_url(raw)
        self.assertEqual(canon, "https://www.example.com/resources/articles/Back-Pain/")

    def test_id_is_stable_for_equivalent_urls(self):
        a = "https://example.com/resources/articles/a?utm_source=x"
        b = "https://EXAMPLE.com/resources/articles/a#top"
        self.assertEqual(content_id(a), content_id(b))
        self.assertEqual(len(content_id(a)), 16)

    def test_id_differs_for_different_paths(self):
        self.assertNotEqual(
            content_id("https://example.com/resources/articles/a"),
            content_id("https://example.com/resources/articles/b"),
        )


class TestContentUrlFilter(unittest.TestCase):
    def test_listing_pages_are_excluded(self):
        self.assertFalse(is_content_url("https://example.com/resources/"))
        self.assertFalse(is_content_url("https://example.com/resources"))
        self.assertFalse(is_content_url("https://example.com/for-individuals/"))

    def test_content_paths_are_kept(self):
        self.assertTrue(is_content_url("https://example.com/resources/articles/knee-pain/"))
        self.assertTrue(is_content_url("https://example.com/for-organizations/state-of-msk-report/"))
        self.assertTrue(is_content_url("https://example.com/events/spring-webinar/"))

    def test_query_or_fragment_is_excluded(self):
        self.assertFalse(is_content_url("https://example.com/resources/articles/?page=2"))
        self.assertFalse(is_content_url("https://example.com/resources/articles/a#comments"))

    def test_other_paths_are_excluded(self):
        self.assertFalse(is_content_url("https://example.com/about/"))

    def test_custom_prefixes(self):
        self.assertTrue(is_content_url("https://example.com/blog/post-1", ["/blog/"]))
        self.assertFalse(is_content_url("https://example.com/resources/articles/a", ["/blog/"]))

    def test_content_page_vs_listing_page(self):
        self.assertTrue(is_content_page("https://example.com/resources/articles/back-pain"))
        self.assertFalse(is_content_page("https://example.com/resources/articles/"))
        self.assertFalse(is_content_page("https://example.com/resources/"))

    def test_resolve_link_drops_non_http(self):
        self.assertIsNone(resolve_link("mailto:hi@example.com", "https://example.com/"))
        self.assertIsNone(resolve_link("javascript:void(0)", "https://example.com/"))
        self.assertEqual(
            resolve_link("/resources/articles/a", "https://example.com/resources/"),
            "https://example.com/resources/articles/a",
        )


if __name__ == "__main__":
    unittest.main()
