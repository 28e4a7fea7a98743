"""Rendering helpers for RSS and HTML digest outputs."""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from email.utils import format_datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urlencode
from zoneinfo import ZoneInfo

from markupsafe import Markup

from .models import FeedEntry
from .templating import get_environment

logger = logging.getLogger(__name__)

CHANNEL_DESCRIPTION = "Daily feed digest"


def render_digest_html(groups: Mapping[str, Sequence[FeedEntry]]) -> str:
    """Render category groups as a self-contained, inline-styled HTML fragment."""
    env = get_environment()
    template = env.get_template("digest.html.j2")
    sections = [
        (category, [_entry_view(entry) for entry in entries])
        for category, entries in groups.items()
    ]
    return template.render(sections=sections)


def render_html_page(title: str, body_html: str) -> str:
    """Wrap an HTML fragment in a minimal standalone document."""
    env = get_environment()
    template = env.get_template("page.html.j2")
    return template.render(title=title, body=Markup(body_html))


def render_rss(
    title: str,
    link_base: str,
    groups_by_date: Mapping[str, Mapping[str, Sequence[FeedEntry]]],
    digest_identity: str,
    timezone: str = "UTC",
    name_override: str = "",
    now: Optional[datetime] = None,
) -> str:
    """Render one RSS item per date, each embedding that day's HTML digest."""
    tz = ZoneInfo(timezone)
    if now is None:
        rendered_at = datetime.now(tz)
    elif now.tzinfo is None:
        rendered_at = now.replace(tzinfo=tz)
    else:
        rendered_at = now
    latest: Optional[datetime] = None
    items: List[Dict[str, Any]] = []

    for day, groups in groups_by_date.items():
        try:
            day_start = datetime.combine(date.fromisoformat(day), time.min, tzinfo=tz)
        except ValueError:
            logger.warning("Skipping digest item with invalid date key %r", day)
            continue

        categories: List[str] = []
        for entries in groups.values():
            for entry in entries:
                if entry.published_at is not None and (
                    latest is None or entry.published_at > latest
                ):
                    latest = entry.published_at
                for category in entry.categories:
                    if category not in categories:
                        categories.append(category)

        items.append(
            {
                "title": f"{title} | {day}",
                "link": build_date_link(link_base, digest_identity, day, name_override),
                "guid": f"{digest_identity}:{day}",
                "pub_date": format_datetime(day_start),
                "categories": categories,
                "html": render_digest_html(groups),
            }
        )

    channel = {
        "title": f"{title} | Daily Digest",
        "link": build_feed_link(link_base, digest_identity, name_override),
        "description": CHANNEL_DESCRIPTION,
        "pub_date": format_datetime(latest or rendered_at),
        "last_build_date": format_datetime(rendered_at),
    }

    env = get_environment()
    template = env.get_template("rss.xml.j2")
    logger.debug("Rendering RSS digest with %d items", len(items))
    return template.render(channel=channel, items=items)


def build_feed_link(link_base: str, digest_identity: str, name_override: str = "") -> str:
    return _with_name(f"{link_base.rstrip('/')}/feed/{digest_identity}", name_override)


def build_date_link(
    link_base: str, digest_identity: str, day: str, name_override: str = ""
) -> str:
    return _with_name(
        f"{link_base.rstrip('/')}/feed/{digest_identity}/{day}", name_override
    )


def _with_name(link: str, name_override: str) -> str:
    if not name_override:
        return link
    return f"{link}?{urlencode({'name': name_override})}"


def _entry_view(entry: FeedEntry) -> Dict[str, Any]:
    meta: List[str] = []
    if entry.published_iso:
        meta.append(entry.published_iso)
    if entry.author.strip():
        meta.append(f"by {entry.author.strip()}")
    if entry.categories:
        meta.append("categories: " + ", ".join(entry.categories))

    return {
        "title": entry.title,
        "link": entry.link,
        "summary": entry.summary,
        "image": (entry.image or "").strip(),
        "meta": meta,
    }
