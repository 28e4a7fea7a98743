"""Retrieval of raw feed documents."""

from __future__ import annotations

import logging

import requests

from .errors import EmptyBodyError, FetchError, HttpStatusError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def fetch_feed(url: str, timeout: float = DEFAULT_TIMEOUT) -> bytes:
    """Download the feed at url and return its raw body."""
    logger.info("Fetching feed %s", url)
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning("Failed to fetch feed %s: %s", url, exc)
        raise FetchError("Unable to fetch the feed.") from exc

    if not 200 <= response.status_code < 300:
        logger.warning("Feed %s answered with HTTP %s", url, response.status_code)
        raise HttpStatusError("Unable to fetch the feed.", response.status_code)

    content = response.content or b""
    if not content.strip():
        logger.warning("Feed %s returned an empty body", url)
        raise EmptyBodyError("Feed response was empty.")

    logger.debug("Fetched %d bytes from %s", len(content), url)
    return content
