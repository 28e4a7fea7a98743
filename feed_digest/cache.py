"""Disk cache for rendered digest artifacts.

Artifacts live under ``<directory>/<slug>/`` so that everything belonging to
one digest can be purged at once. The slug is the identity with unsafe
characters replaced, plus a short hash of the raw identity, so distinct
identities never share a directory and none can point outside the cache.
File names encode the render kind, slug, optional date, freshness token and
a hash of the remaining render parameters:

    rss_<slug>_<token>_<hash>.xml
    html_<slug>_<date>_<token>_<hash>.html
"""

from __future__ import annotations

import contextlib
import hashlib
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Callable, Mapping, Optional, Union
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

EXTENSIONS = {"rss": "xml", "html": "html"}

_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")


def _safe(value: str) -> str:
    return _UNSAFE.sub("_", value) or "_"


def identity_slug(identity: str) -> str:
    """Directory name for identity: readable prefix plus a hash of the raw value."""
    digest = hashlib.sha1(identity.encode("utf-8")).hexdigest()[:12]
    return f"{_safe(identity)}-{digest}"


def hash_params(params: Mapping[str, str]) -> str:
    """Stable digest of render parameters (the title override, for example)."""
    encoded = urlencode(sorted((key, str(value)) for key, value in params.items()))
    return hashlib.sha1(encoded.encode("utf-8")).hexdigest()


class RenderCache:
    """TTL-bound cache of rendered bytes keyed by digest identity."""

    def __init__(
        self,
        directory: Union[str, Path],
        ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = Path(directory)
        self.ttl_seconds = int(ttl_seconds)
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def key(
        self,
        identity: str,
        freshness_token: str,
        kind: str,
        params: Optional[Mapping[str, str]] = None,
    ) -> str:
        params = dict(params or {})
        day = params.pop("date", "")

        slug = identity_slug(identity)
        parts = [kind, slug]
        if day:
            parts.append(_safe(day))
        parts.append(_safe(str(freshness_token)))
        parts.append(hash_params(params))

        extension = EXTENSIONS.get(kind, "bin")
        return f"{slug}/{'_'.join(parts)}.{extension}"

    def now(self) -> float:
        return self._clock()

    def path_for(self, key: str) -> Path:
        return self.directory / key

    def stored_at(self, key: str) -> Optional[float]:
        """Return when key was written, or None if it is absent or unreadable."""
        try:
            return self.path_for(key).stat().st_mtime
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Unable to stat cache entry %s: %s", key, exc)
            return None

    def is_fresh(self, key: str) -> bool:
        if not self.enabled:
            return False
        stored = self.stored_at(key)
        return stored is not None and stored >= self.now() - self.ttl_seconds

    def get(self, key: str) -> Optional[bytes]:
        if not self.is_fresh(key):
            logger.debug("Cache miss for %s", key)
            return None
        try:
            data = self.path_for(key).read_bytes()
        except OSError as exc:
            logger.warning("Unable to read cache entry %s: %s", key, exc)
            return None
        logger.debug("Cache hit for %s", key)
        return data

    def put(self, key: str, data: bytes) -> None:
        if not self.enabled:
            return

        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                stamp = self.now()
                os.utime(tmp_name, (stamp, stamp))
                os.replace(tmp_name, path)
            except OSError:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            logger.warning("Unable to write cache entry %s: %s", key, exc)
            return

        logger.debug("Stored %d bytes in cache entry %s", len(data), key)

    def invalidate(self, identity: str) -> int:
        """Remove every artifact stored for identity, regardless of age."""
        target = self.directory / identity_slug(identity)
        if not target.is_dir():
            return 0

        removed = 0
        for path in target.iterdir():
            try:
                path.unlink()
                removed += 1
            except OSError as exc:
                logger.warning("Unable to remove cache entry %s: %s", path, exc)
        with contextlib.suppress(OSError):
            target.rmdir()

        logger.info("Invalidated %d cached artifacts for digest %s", removed, identity)
        return removed
