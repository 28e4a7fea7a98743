"""High-level render entry points for digests."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Optional

from . import renderers
from .aggregator import aggregate_by_date, aggregate_for_date
from .cache import RenderCache
from .fetcher import DEFAULT_TIMEOUT
from .models import DigestConfig, RenderedArtifact

logger = logging.getLogger(__name__)

RSS_CONTENT_TYPE = "application/rss+xml; charset=UTF-8"
HTML_CONTENT_TYPE = "text/html; charset=UTF-8"
DEFAULT_APP_NAME = "Daily Feed Aggregator"


@dataclass
class RenderSettings:
    """Runtime options shared by every render."""

    base_url: str = "http://localhost"
    app_name: str = DEFAULT_APP_NAME
    fetch_timeout: float = DEFAULT_TIMEOUT


def render_rss(
    digest: DigestConfig,
    settings: RenderSettings,
    cache: Optional[RenderCache] = None,
    name_override: str = "",
    now: Optional[datetime] = None,
) -> RenderedArtifact:
    """Render the multi-date RSS digest, serving a fresh cached copy if present."""
    name_override = (name_override or "").strip()

    key = None
    if cache is not None and cache.enabled:
        key = cache.key(
            digest.identity, digest.freshness_token, "rss", {"name": name_override}
        )
        cached = cache.get(key)
        if cached is not None:
            logger.info("Serving cached RSS for digest %s", digest.identity)
            return RenderedArtifact(cached, RSS_CONTENT_TYPE, key)

    result = aggregate_by_date(
        digest.feed_url,
        digest.timezone,
        digest.filters,
        digest.only_prior_to_today,
        digest.max_days,
        timeout=settings.fetch_timeout,
        now=now,
    )
    title = _base_title(digest, settings, name_override, result.title)

    body = renderers.render_rss(
        title,
        settings.base_url,
        result.groups_by_date,
        digest.identity,
        timezone=digest.timezone,
        name_override=name_override,
        now=now,
    ).encode("utf-8")

    if key is not None and result.has_entries:
        cache.put(key, body)

    logger.info(
        "Rendered RSS for digest %s (%d dates)",
        digest.identity,
        len(result.groups_by_date),
    )
    return RenderedArtifact(body, RSS_CONTENT_TYPE, key)


def render_html(
    digest: DigestConfig,
    target_date: date,
    settings: RenderSettings,
    cache: Optional[RenderCache] = None,
    name_override: str = "",
    now: Optional[datetime] = None,
) -> RenderedArtifact:
    """Render the HTML page for a single date, serving a fresh cached copy if present."""
    name_override = (name_override or "").strip()
    day = target_date.isoformat()

    key = None
    if cache is not None and cache.enabled:
        key = cache.key(
            digest.identity,
            digest.freshness_token,
            "html",
            {"date": day, "name": name_override},
        )
        cached = cache.get(key)
        if cached is not None:
            logger.info("Serving cached HTML for digest %s on %s", digest.identity, day)
            return RenderedArtifact(cached, HTML_CONTENT_TYPE, key)

    result = aggregate_for_date(
        digest.feed_url,
        target_date,
        digest.timezone,
        digest.filters,
        digest.only_prior_to_today,
        timeout=settings.fetch_timeout,
        now=now,
    )
    title = _base_title(digest, settings, name_override, result.title)

    body = renderers.render_html_page(
        f"{title} | {day}", renderers.render_digest_html(result.groups)
    ).encode("utf-8")

    if key is not None and result.has_entries:
        cache.put(key, body)

    logger.info("Rendered HTML for digest %s on %s", digest.identity, day)
    return RenderedArtifact(body, HTML_CONTENT_TYPE, key)


def invalidate_digest(cache: Optional[RenderCache], identity: str) -> int:
    """Drop cached renders after the digest was updated or deleted."""
    if cache is None:
        return 0
    return cache.invalidate(identity)


def error_payload(exc: BaseException) -> Dict[str, str]:
    """Client-facing error body for a failed render."""
    message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
    return {"message": message}


def _base_title(
    digest: DigestConfig, settings: RenderSettings, name_override: str, feed_title: str
) -> str:
    return (
        name_override
        or (digest.name or "").strip()
        or feed_title
        or settings.app_name
    )
