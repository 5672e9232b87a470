"""Page fetch + metadata extraction.

Policy:
- One GET per URL, no retries; a failed page becomes a non-ok ExtractionResult.
- Each field is read from a priority list of selectors because article, press
  release and glossary templates carry their metadata in different places.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, UnicodeDammit
from dateutil import parser as date_parser
import requests

logger = logging.getLogger(__name__)


DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}

TITLE_SELECTORS = ("h1", "title")

DESCRIPTION_SELECTORS = (
    'meta[name="description"]',
    'meta[property="og:description"]',
)

# (selector, attributes to read before falling back to element text)
PUBLISH_DATE_SELECTORS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ('meta[property="article:published_time"]', ("content",)),
    ('meta[name="publish-date"]', ("content",)),
    ('meta[name="date"]', ("content",)),
    ("time[datetime]", ("datetime",)),
    (".publish-date", ()),
    (".post-date", ()),
    (".article-date", ()),
)

CATEGORY_SELECTORS = (".category", ".tag", ".topic", '[rel="category tag"]')

IMAGE_SELECTORS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ('meta[property="og:image"]', ("content",)),
    ('meta[name="twitter:image"]', ("content",)),
    (".featured-image img", ("src", "data-src")),
    ("article img", ("src", "data-src")),
    (".hero-image img", ("src", "data-src")),
)


class FetchError(Exception):
    """A single page could not be fetched."""

    def __init__(self, status: str, message: str):
        super().__init__(message)
        self.status = status


@dataclass(frozen=True)
class PageMetadata:
    title: str = ""
    description: str = ""
    publish_date: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    featured_image: Optional[str] = None


@dataclass(frozen=True)
class ExtractionResult:
    url: str
    status: str
    metadata: Optional[PageMetadata] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok" and self.metadata is not None


_DATE_DEFAULT = datetime(1, 1, 1)


def normalize_date(value: Optional[str]) -> Optional[str]:
    """Normalize any recognisable date/datetime string to YYYY-MM-DD; None if unparsable."""
    if not value:
        return None
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    s = str(value).strip()
    if not s:
        return None
    try:
        parsed = date_parser.parse(s, default=_DATE_DEFAULT)
    except (ValueError, OverflowError):
        return None
    # Missing month/day become January 1st; a missing year means no usable date
    if parsed.year == _DATE_DEFAULT.year:
        return None
    return parsed.date().isoformat()


_CHARSET_RE = re.compile(r"charset=[\"']?([^\"';\s]+)", re.I)


def declared_charset(headers) -> Optional[str]:
    """Charset named in the Content-Type header, or None when the header names none."""
    m = _CHARSET_RE.search((headers or {}).get("Content-Type") or "")
    return m.group(1) if m else None


def decode_html(content: bytes, charset: Optional[str] = None) -> str:
    """Decode page bytes with the header charset; otherwise (or if Python does not know it)
    let UnicodeDammit read <meta charset> or sniff the bytes."""
    if charset:
        try:
            return content.decode(charset, errors="replace")
        except LookupError:
            logger.debug(f"Unknown charset {charset!r}; detecting from markup")
    dammit = UnicodeDammit(content, is_html=True)
    if dammit.unicode_markup is not None:
        return dammit.unicode_markup
    return content.decode("utf-8", errors="replace")


def _validate_fetch_url(url: str) -> Optional[str]:
    """Return error string if URL should not be fetched."""
    try:
        p = urlparse(url)
    except ValueError:
        return "invalid_url"
    if p.scheme not in ("http", "https"):
        return "bad_scheme"
    if not (p.hostname or "").strip():
        return "missing_host"
    return None


class PageFetcher:
    """Fetch strategy contract: return the HTML for a URL or raise FetchError."""

    def fetch(self, url: str) -> str:
        raise NotImplementedError


class RequestsPageFetcher(PageFetcher):
    """Static-HTML fetcher over one requests.Session."""

    def __init__(
        self,
        *,
        user_agent: str,
        timeout: float = 10.0,
        max_bytes: int = 5_000_000,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = float(timeout)
        self.max_bytes = int(max_bytes)
        self.session = session or requests.Session()
        self.session.headers.update(dict(DEFAULT_HEADERS))
        self.session.headers.update(headers or {})
        self.session.headers["User-Agent"] = user_agent

    def fetch(self, url: str) -> str:
        err = _validate_fetch_url(url)
        if err:
            raise FetchError("blocked", err)
        try:
            resp = self.session.get(url, timeout=self.timeout, allow_redirects=True, stream=True)
        except requests.Timeout as e:
            raise FetchError("timeout", f"timeout after {self.timeout:g}s: {e}") from e
        except requests.RequestException as e:
            raise FetchError("error", str(e)) from e
        try:
            if resp.status_code >= 400:
                raise FetchError(f"http_{resp.status_code}", f"http_{resp.status_code}")
            # Size guardrail: read up to max_bytes
            content = b""
            for chunk in resp.iter_content(chunk_size=64 * 1024):
                if not chunk:
                    continue
                content += chunk
                if len(content) > self.max_bytes:
                    raise FetchError("too_large", "too_large")
            return decode_html(content, declared_charset(resp.headers))
        except requests.RequestException as e:
            raise FetchError("error", str(e)) from e
        finally:
            resp.close()

    def close(self) -> None:
        self.session.close()


def _first_text(soup: BeautifulSoup, selectors: Sequence[str]) -> str:
    for sel in selectors:
        el = soup.select_one(sel)
        if el is None:
            continue
        text = el.get_text(" ", strip=True)
        if text:
            return text
    return ""


def _first_content(soup: BeautifulSoup, selectors: Sequence[str]) -> str:
    for sel in selectors:
        el = soup.select_one(sel)
        if el is None:
            continue
        value = (el.get("content") or "").strip()
        if value:
            return value
    return ""


def _first_attr_or_text(
    soup: BeautifulSoup,
    candidates: Sequence[Tuple[str, Tuple[str, ...]]],
    *,
    use_text: bool,
) -> Optional[str]:
    for sel, attrs in candidates:
        el = soup.select_one(sel)
        if el is None:
            continue
        for attr in attrs:
            value = el.get(attr)
            if isinstance(value, str) and value.strip():
                return value.strip()
        if use_text:
            text = el.get_text(" ", strip=True)
            if text:
                return text
    return None


def _categories(soup: BeautifulSoup) -> List[str]:
    out: List[str] = []
    seen = set()
    # Document order across all selectors
    for el in soup.select(", ".join(CATEGORY_SELECTORS)):
        text = el.get_text(" ", strip=True)
        if text and text not in seen:
            seen.add(text)
            out.append(text)
    return out


def extract_metadata(html: str, url: str) -> PageMetadata:
    """Parse the fixed field set out of a page's HTML. Pure; never fetches."""
    soup = BeautifulSoup(html or "", "lxml")
    raw_date = _first_attr_or_text(soup, PUBLISH_DATE_SELECTORS, use_text=True)
    image = _first_attr_or_text(soup, IMAGE_SELECTORS, use_text=False)
    return PageMetadata(
        title=_first_text(soup, TITLE_SELECTORS),
        description=_first_content(soup, DESCRIPTION_SELECTORS),
        publish_date=normalize_date(raw_date),
        categories=_categories(soup),
        featured_image=urljoin(url, image) if image else None,
    )


class PageExtractor:
    """Fetch one URL and extract its metadata; per-item failures are returned, not raised."""

    def __init__(self, fetcher: PageFetcher):
        self.fetcher = fetcher

    def extract(self, url: str) -> ExtractionResult:
        try:
            html = self.fetcher.fetch(url)
        except FetchError as e:
            logger.warning(f"Fetch failed for {url}: {e.status} ({e})")
            return ExtractionResult(url=url, status=e.status, error=str(e))
        if not (html or "").strip():
            logger.warning(f"Empty HTML for {url}")
            return ExtractionResult(url=url, status="empty", error="empty_html")
        try:
            meta = extract_metadata(html, url)
        except Exception as e:
            logger.warning(f"Parse failed for {url}: {e}")
            return ExtractionResult(url=url, status="error", error=f"parse_error: {e}")
        return ExtractionResult(url=url, status="ok", metadata=meta)
