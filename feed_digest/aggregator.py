"""High-level digest aggregation: fetch, select, filter and group entries."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Union
from zoneinfo import ZoneInfo

from .fetcher import DEFAULT_TIMEOUT, fetch_feed
from .filters import apply_filters, compile_filters, remove_content
from .models import FeedEntry, FilterConfig, ParsedFeed
from .parser import parse_feed

logger = logging.getLogger(__name__)

CategoryGroups = Dict[str, List[FeedEntry]]

_DIGITS = re.compile(r"(\d+)")


@dataclass
class DateDigest:
    """Entries for a single day, grouped by primary category."""

    title: str
    groups: CategoryGroups

    @property
    def has_entries(self) -> bool:
        return any(self.groups.values())


@dataclass
class RangeDigest:
    """Entries for every available day, grouped by date then category."""

    title: str
    groups_by_date: Dict[str, CategoryGroups]

    @property
    def has_entries(self) -> bool:
        return any(any(groups.values()) for groups in self.groups_by_date.values())


def natural_key(value: str) -> List[Union[int, str]]:
    """Case-insensitive sort key that orders embedded numbers numerically."""
    return [
        int(part) if part.isdecimal() else part
        for part in _DIGITS.split(value.lower())
    ]


def aggregate_for_date(
    feed_url: str,
    target_date: date,
    timezone: str,
    filters: Optional[Sequence[str]] = None,
    only_prior_to_today: bool = True,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    now: Optional[datetime] = None,
) -> DateDigest:
    """Build the category groups for target_date."""
    parsed = _load_feed(feed_url, timezone, timeout)
    entries = parsed.entries

    if only_prior_to_today:
        entries = filter_prior_to_today(entries, timezone, now)

    wanted = target_date.isoformat()
    entries = [
        entry
        for entry in entries
        if entry.published_at is not None
        and entry.published_at.date().isoformat() == wanted
    ]

    config = compile_filters(filters)
    entries = apply_filters(entries, config)
    groups = group_by_category(entries, config)

    logger.info(
        "Aggregated %d entries in %d categories for %s",
        sum(len(items) for items in groups.values()),
        len(groups),
        wanted,
    )
    return DateDigest(title=parsed.title, groups=groups)


def aggregate_by_date(
    feed_url: str,
    timezone: str,
    filters: Optional[Sequence[str]] = None,
    only_prior_to_today: bool = True,
    max_days: Optional[int] = None,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    now: Optional[datetime] = None,
) -> RangeDigest:
    """Build category groups for every date present in the feed, newest first.

    When max_days is positive only the newest max_days dates are kept.
    """
    parsed = _load_feed(feed_url, timezone, timeout)
    config = compile_filters(filters)
    entries = parsed.entries

    if only_prior_to_today:
        entries = filter_prior_to_today(entries, timezone, now)

    entries = apply_filters(entries, config)

    buckets: Dict[str, List[FeedEntry]] = {}
    for entry in entries:
        if entry.published_at is None:
            continue
        buckets.setdefault(entry.published_at.date().isoformat(), []).append(entry)

    dates = sorted(buckets, key=natural_key, reverse=True)
    if max_days is not None and max_days > 0:
        dates = dates[:max_days]

    groups_by_date = {day: group_by_category(buckets[day], config) for day in dates}

    logger.info("Aggregated entries across %d dates", len(groups_by_date))
    return RangeDigest(title=parsed.title, groups_by_date=groups_by_date)


def filter_prior_to_today(
    entries: Iterable[FeedEntry], timezone: str, now: Optional[datetime] = None
) -> List[FeedEntry]:
    """Keep dated entries published strictly before today in timezone."""
    tz = ZoneInfo(timezone)
    if now is None:
        current = datetime.now(tz)
    elif now.tzinfo is None:
        current = now.replace(tzinfo=tz)
    else:
        current = now.astimezone(tz)
    start_of_today = current.replace(hour=0, minute=0, second=0, microsecond=0)

    return [
        entry
        for entry in entries
        if entry.published_at is not None and entry.published_at < start_of_today
    ]


def group_by_category(
    entries: Iterable[FeedEntry], config: FilterConfig
) -> CategoryGroups:
    """Group dated entries by primary category, applying content removals."""
    grouped: CategoryGroups = {}
    for entry in entries:
        if entry.published_at is None:
            continue
        cleaned = replace(entry, summary=remove_content(entry.summary, config))
        grouped.setdefault(entry.primary_category, []).append(cleaned)

    return {
        category: _newest_first(grouped[category])
        for category in sorted(grouped, key=lambda value: (natural_key(value), value))
    }


def _newest_first(entries: List[FeedEntry]) -> List[FeedEntry]:
    # Secondary ordering keeps the result independent of input order.
    ordered = sorted(entries, key=lambda entry: (entry.title, entry.link, entry.guid))
    return sorted(ordered, key=lambda entry: entry.published_iso, reverse=True)


def _load_feed(feed_url: str, timezone: str, timeout: float) -> ParsedFeed:
    raw = fetch_feed(feed_url, timeout=timeout)
    return parse_feed(raw, timezone)
