"""Shared data models for feed_digest."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

UNCATEGORIZED = "Uncategorized"


@dataclass
class FeedEntry:
    """Normalized feed entry shared by RSS and Atom sources."""

    title: str = ""
    link: str = ""
    summary: str = ""
    published_at: Optional[datetime] = None
    categories: List[str] = field(default_factory=list)
    author: str = ""
    guid: str = ""
    image: Optional[str] = None

    @property
    def primary_category(self) -> str:
        return self.categories[0] if self.categories else UNCATEGORIZED

    @property
    def published_iso(self) -> str:
        if self.published_at is None:
            return ""
        return self.published_at.isoformat(timespec="seconds")


@dataclass
class ParsedFeed:
    """Feed title plus its entries in document order."""

    title: str
    entries: List[FeedEntry]


@dataclass
class FilterConfig:
    """Compiled filter expressions for a digest."""

    include_categories: List[str] = field(default_factory=list)
    exclude_categories: List[str] = field(default_factory=list)
    include_authors: List[str] = field(default_factory=list)
    exclude_authors: List[str] = field(default_factory=list)
    include_summary: List[str] = field(default_factory=list)
    exclude_summary: List[str] = field(default_factory=list)
    include_summary_regex: List[str] = field(default_factory=list)
    exclude_summary_regex: List[str] = field(default_factory=list)
    # (is_regex, value) pairs in the order they were supplied.
    removals: List[Tuple[bool, str]] = field(default_factory=list)

    @property
    def remove_text(self) -> List[str]:
        return [value for is_regex, value in self.removals if not is_regex]

    @property
    def remove_regex(self) -> List[str]:
        return [value for is_regex, value in self.removals if is_regex]


@dataclass
class DigestConfig:
    """Read-only digest definition supplied by the owning configuration store."""

    identity: str
    feed_url: str
    timezone: str = "UTC"
    filters: List[str] = field(default_factory=list)
    only_prior_to_today: bool = True
    max_days: Optional[int] = None
    name: Optional[str] = None
    freshness_token: str = "0"


@dataclass
class RenderedArtifact:
    """Rendered output ready to be served."""

    body: bytes
    content_type: str
    cache_key: Optional[str] = None

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")
