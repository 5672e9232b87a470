"""URL discovery for a target site.

Primary: the sitemap (optionally a sitemap index of child sitemaps).
Fallback: a bounded breadth-first walk of the listing pages under a seed URL,
used only when the site exposes no sitemap content.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
import logging
import time
from typing import Callable, Deque, Dict, List, Optional, Sequence, Set, Tuple
from urllib import robotparser
from urllib.parse import urljoin, urlparse
from xml.etree import ElementTree as ET

from bs4 import BeautifulSoup
import requests

from contentscout.extraction.page_metadata import normalize_date
from contentscout.ingestion.content_types import DiscoveredUrl
from contentscout.ingestion.url_utils import (
    DEFAULT_CONTENT_PATH_PREFIXES,
    canonicalize_url,
    is_content_page,
    is_content_url,
    path_segments,
    resolve_link,
    same_origin,
)

logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """The URL manifest could not be fetched or parsed; nothing to process."""


class RobotsDisallowedError(Exception):
    """robots.txt forbids crawling the target."""


def _local(tag: str) -> str:
    # "{http://www.sitemaps.org/schemas/sitemap/0.9}loc" -> "loc"
    return tag.rsplit("}", 1)[-1] if tag else ""


def _child_text(elem: ET.Element, name: str) -> Optional[str]:
    for child in elem:
        if _local(child.tag) == name:
            text = (child.text or "").strip()
            return text or None
    return None


def parse_sitemap_xml(xml_text: str) -> Tuple[List[Tuple[str, Optional[str]]], List[str]]:
    """Parse a sitemap or sitemap index.

    Returns ([(loc, lastmod)], [child sitemap locs]). `<lastmod>` is optional per entry.
    Raises ET.ParseError on malformed XML.
    """
    root = ET.fromstring(xml_text.strip().encode("utf-8"))
    entries: List[Tuple[str, Optional[str]]] = []
    children: List[str] = []
    kind = _local(root.tag)
    for elem in root:
        name = _local(elem.tag)
        loc = _child_text(elem, "loc")
        if not loc:
            continue
        if kind == "sitemapindex" and name == "sitemap":
            children.append(loc)
        elif name == "url":
            entries.append((loc, _child_text(elem, "lastmod")))
    return entries, children


def filter_content_urls(
    entries: Sequence[Tuple[str, Optional[str]]],
    prefixes: Sequence[str],
) -> List[DiscoveredUrl]:
    """Keep content-bearing URLs, canonicalized and deduplicated (first occurrence wins)."""
    out: List[DiscoveredUrl] = []
    index: Dict[str, int] = {}
    for loc, lastmod in entries:
        if not is_content_url(loc, prefixes):
            continue
        canon = canonicalize_url(loc)
        day = normalize_date(lastmod)
        if canon in index:
            pos = index[canon]
            # A later duplicate only fills a missing lastmod
            if out[pos].lastmod is None and day:
                out[pos] = DiscoveredUrl(url=canon, lastmod=day)
            continue
        index[canon] = len(out)
        out.append(DiscoveredUrl(url=canon, lastmod=day))
    return out


def _session(user_agent: str, session: Optional[requests.Session]) -> requests.Session:
    s = session or requests.Session()
    s.headers["User-Agent"] = user_agent
    return s


class BaseDiscovery:
    name: str = "base"

    def discover(self) -> List[DiscoveredUrl]:
        raise NotImplementedError


@dataclass
class SitemapDiscovery(BaseDiscovery):
    sitemap_url: str
    prefixes: Sequence[str] = DEFAULT_CONTENT_PATH_PREFIXES
    user_agent: str = "Mozilla/5.0 (compatible; ContentMonitor/1.0)"
    timeout: float = 10.0
    session: Optional[requests.Session] = None
    max_child_sitemaps: int = 50

    name: str = "sitemap"

    def discover(self) -> List[DiscoveredUrl]:
        s = _session(self.user_agent, self.session)
        entries, children = self._fetch_and_parse(s, self.sitemap_url)
        for child in children[: self.max_child_sitemaps]:
            try:
                child_entries, _ = self._fetch_and_parse(s, child)
            except DiscoveryError as e:
                logger.warning(f"Skipping child sitemap {child}: {e}")
                continue
            entries.extend(child_entries)

        found = filter_content_urls(entries, self.prefixes)
        with_dates = sum(1 for d in found if d.lastmod)
        logger.info(f"Found {len(found)} content URLs in sitemap ({with_dates} with dates)")
        return found

    def _fetch_and_parse(self, s: requests.Session, url: str) -> Tuple[List[Tuple[str, Optional[str]]], List[str]]:
        try:
            resp = s.get(url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise DiscoveryError(f"Cannot fetch sitemap {url}: {e}") from e
        try:
            return parse_sitemap_xml(resp.text)
        except ET.ParseError as e:
            raise DiscoveryError(f"Cannot parse sitemap {url}: {e}") from e


def check_robots(
    url: str,
    user_agent: str,
    *,
    timeout: float = 10.0,
    session: Optional[requests.Session] = None,
) -> None:
    """Raise RobotsDisallowedError when robots.txt forbids `url`.

    An unreachable robots.txt is logged and treated as allowed.
    """
    robots_url = urljoin(url, "/robots.txt")
    s = _session(user_agent, session)
    try:
        resp = s.get(robots_url, timeout=timeout)
    except requests.RequestException as e:
        logger.warning(f"Could not check robots.txt ({e}); proceeding with caution")
        return
    if resp.status_code >= 400:
        logger.warning(f"robots.txt returned HTTP {resp.status_code}; proceeding with caution")
        return
    parser = robotparser.RobotFileParser()
    parser.set_url(robots_url)
    parser.parse(resp.text.splitlines())
    if not parser.can_fetch(user_agent, url):
        raise RobotsDisallowedError(f"robots.txt disallows crawling {url}")
    logger.info("robots.txt check passed")


def extract_links(html: str, page_url: str) -> List[str]:
    soup = BeautifulSoup(html or "", "lxml")
    out: List[str] = []
    for a in soup.select("a[href]"):
        link = resolve_link(a.get("href"), page_url)
        if link:
            out.append(link)
    return out


@dataclass
class LinkCrawlDiscovery(BaseDiscovery):
    """Bounded BFS over listing pages; only listing pages are expanded."""

    seed_url: str
    prefixes: Sequence[str] = DEFAULT_CONTENT_PATH_PREFIXES
    user_agent: str = "Mozilla/5.0 (compatible; ContentMonitor/1.0)"
    timeout: float = 10.0
    delay_seconds: float = 1.0
    max_depth: int = 3
    max_pages: int = 300
    respect_robots: bool = True
    session: Optional[requests.Session] = None
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    name: str = "link_crawl"

    def discover(self) -> List[DiscoveredUrl]:
        s = _session(self.user_agent, self.session)
        if self.respect_robots:
            check_robots(self.seed_url, self.user_agent, timeout=self.timeout, session=s)

        seed = canonicalize_url(self.seed_url)
        base_depth = len(path_segments(seed))
        content_prefix = urlparse(seed).path or "/"
        queue: Deque[str] = deque([seed])
        queued: Set[str] = {seed}
        content: List[str] = []
        content_seen: Set[str] = set()
        visited = 0

        while queue and visited < self.max_pages:
            url = queue.popleft()
            if visited:
                self.sleep(self.delay_seconds)
            visited += 1
            try:
                resp = s.get(url, timeout=self.timeout)
                resp.raise_for_status()
                html = resp.text
            except requests.RequestException as e:
                logger.warning(f"Skipping {url}: {e}")
                continue

            for link in extract_links(html, url):
                if not same_origin(link, seed):
                    continue
                canon = canonicalize_url(link)
                if not (urlparse(canon).path or "/").startswith(content_prefix):
                    continue
                if is_content_page(canon, self.prefixes):
                    if canon not in content_seen:
                        content_seen.add(canon)
                        content.append(canon)
                    continue
                depth = len(path_segments(canon)) - base_depth
                if canon in queued or depth > self.max_depth:
                    continue
                queued.add(canon)
                queue.append(canon)

            logger.debug(f"[crawl] {len(content)} content pages, {visited} visited | {url}")

        logger.info(f"Link crawl visited {visited} pages, found {len(content)} content pages")
        return [DiscoveredUrl(url=u) for u in content]
