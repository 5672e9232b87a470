"""Shared content data types.

`ContentRecord.from_dict` migrates older corpora one way: `metaDescription`
becomes `description` and an empty `featuredImage` string becomes null. Any
other key it does not know (e.g. `updateDate`) is kept in `extra` and written
back unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional


_RECORD_KEYS = frozenset({
    "id", "title", "url", "description", "metaDescription", "publishDate", "contentType",
    "categories", "targetAudience", "featuredImage", "firstSeen", "lastChecked", "isNew",
})


@dataclass(frozen=True)
class DiscoveredUrl:
    """A canonical content URL found by discovery, with the sitemap lastmod when present."""

    url: str
    lastmod: Optional[str] = None


@dataclass(frozen=True)
class ContentRecord:
    """One classified content item, keyed by canonical URL.

    Timestamps are ISO-8601 UTC strings; `publish_date` is a bare YYYY-MM-DD date.
    """

    id: str
    url: str
    title: str = ""
    description: str = ""
    publish_date: Optional[str] = None
    content_type: str = "other"
    categories: List[str] = field(default_factory=list)
    target_audience: List[str] = field(default_factory=lambda: ["general"])
    featured_image: Optional[str] = None
    first_seen: str = ""
    last_checked: str = ""
    is_new: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = dict(self.extra)
        d.update({
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "description": self.description,
            "publishDate": self.publish_date,
            "contentType": self.content_type,
            "categories": list(self.categories),
            "targetAudience": list(self.target_audience),
            "featuredImage": self.featured_image,
            "firstSeen": self.first_seen,
            "lastChecked": self.last_checked,
            "isNew": self.is_new,
        })
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ContentRecord":
        description = d.get("description")
        if description is None:
            description = d.get("metaDescription") or ""
        audience = [a for a in (d.get("targetAudience") or []) if a] or ["general"]
        return cls(
            id=str(d.get("id") or ""),
            url=str(d.get("url") or ""),
            title=str(d.get("title") or ""),
            description=str(description),
            publish_date=d.get("publishDate") or None,
            content_type=str(d.get("contentType") or "other"),
            categories=list(d.get("categories") or []),
            target_audience=audience,
            featured_image=d.get("featuredImage") or None,
            first_seen=str(d.get("firstSeen") or ""),
            last_checked=str(d.get("lastChecked") or ""),
            is_new=bool(d.get("isNew", False)),
            extra={k: v for k, v in d.items() if k not in _RECORD_KEYS},
        )

    def checked(self, now: str) -> "ContentRecord":
        """Copy reconfirmed at `now`; everything else verbatim."""
        return replace(self, last_checked=now, is_new=False)
