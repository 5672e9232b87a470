"""URL canonicalization helpers for discovery/dedup."""

from __future__ import annotations

import hashlib
from typing import Iterable, List, Optional
from urllib.parse import urljoin, urlparse, urlunparse


DEFAULT_CONTENT_PATH_PREFIXES = (
    "/resources/",
    "/for-organizations/",
    "/acquisition/",
    "/for-individuals/",
    "-webinar/",
)


def canonicalize_url(url: str) -> str:
    """Canonicalize a URL for dedup.

    - Lowercase scheme + hostname
    - Remove query string and fragment
    - Keep the path as published (trailing slash included)
    """
    if not url:
        return ""
    p = urlparse(url.strip())
    scheme = (p.scheme or "https").lower()
    netloc = (p.netloc or "").lower()
    path = p.path or "/"
    return urlunparse((scheme, netloc, path, "", "", ""))


def content_id(url: str) -> str:
    """Stable 16-char id for a canonicalized URL."""
    canon = canonicalize_url(url)
    return hashlib.md5(canon.encode("utf-8")).hexdigest()[:16]


def path_segments(url: str) -> List[str]:
    return [s for s in (urlparse(url).path or "").split("/") if s]


def has_query_or_fragment(url: str) -> bool:
    p = urlparse((url or "").strip())
    return bool(p.query or p.fragment) or url.rstrip().endswith(("?", "#"))


def is_listing_path(path: str, prefixes: Iterable[str]) -> bool:
    """True when `path` is exactly one of the prefix paths (with or without trailing slash)."""
    for prefix in prefixes:
        if not prefix.startswith("/"):
            continue
        bare = prefix.rstrip("/")
        if path == prefix or path == bare or path == bare + "/":
            return True
    return False


def is_content_url(url: str, prefixes: Optional[Iterable[str]] = None) -> bool:
    """Sitemap filter: content-bearing path, not a listing page, no query/fragment."""
    if not url or has_query_or_fragment(url):
        return False
    prefs = list(prefixes) if prefixes is not None else list(DEFAULT_CONTENT_PATH_PREFIXES)
    path = urlparse(url.strip()).path or "/"
    if is_listing_path(path, prefs):
        return False
    return any(prefix in path for prefix in prefs)


def is_content_page(url: str, prefixes: Optional[Iterable[str]] = None, *, min_segments: int = 3) -> bool:
    """Link-crawl classification: an item page rather than a listing page.

    /resources/articles/some-title is content; /resources/articles/ is a listing.
    """
    prefs = list(prefixes) if prefixes is not None else list(DEFAULT_CONTENT_PATH_PREFIXES)
    path = urlparse(url).path or "/"
    if is_listing_path(path, prefs):
        return False
    return len(path_segments(url)) >= min_segments


def same_origin(a: str, b: str) -> bool:
    pa, pb = urlparse(a), urlparse(b)
    return (pa.scheme.lower(), pa.netloc.lower()) == (pb.scheme.lower(), pb.netloc.lower())


def resolve_link(href: str, base_url: str) -> Optional[str]:
    """Resolve an href against the page URL; only http(s) results are kept."""
    href = (href or "").strip()
    if not href or href.startswith(("mailto:", "tel:", "javascript:")):
        return None
    try:
        absolute = urljoin(base_url, href)
    except ValueError:
        return None
    if urlparse(absolute).scheme not in ("http", "https"):
        return None
    return absolute
