"""Configuration loading for digests and rendering options."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from xml.etree import ElementTree as ET
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .fetcher import DEFAULT_TIMEOUT
from .models import DigestConfig
from .runner import DEFAULT_APP_NAME

logger = logging.getLogger(__name__)

_TTL_UNITS = {
    "minute": 60,
    "minutes": 60,
    "hour": 3600,
    "hours": 3600,
    "day": 86400,
    "days": 86400,
}


@dataclass
class CacheConfig:
    directory: str = "storage/digests"
    ttl: int = 0
    unit: str = "minutes"

    @property
    def ttl_seconds(self) -> int:
        return cache_ttl_seconds(self.ttl, self.unit)


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class AppConfig:
    base_url: str = "http://localhost"
    app_name: str = DEFAULT_APP_NAME
    timezone: str = "UTC"
    fetch_timeout: float = DEFAULT_TIMEOUT
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    digests: List[DigestConfig] = field(default_factory=list)

    def find_digest(self, identity: str) -> Optional[DigestConfig]:
        for digest in self.digests:
            if digest.identity == identity:
                return digest
        return None


def cache_ttl_seconds(value: int, unit: str = "minutes") -> int:
    """Convert a TTL expressed in minutes, hours or days to seconds."""
    if value <= 0:
        return 0
    return value * _TTL_UNITS.get(unit.strip().lower(), 60)


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the base config file if it's not absolute."""
    target = Path(target_path)
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _validate_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc
    return name


def _parse_digest(node: ET.Element, default_timezone: str) -> DigestConfig:
    identity = node.attrib.get("id", "").strip()
    if not identity:
        raise ValueError("Digest definition is missing the 'id' attribute.")

    feed_url = (node.findtext("feed-url") or "").strip()
    if not feed_url:
        raise ValueError(f"Digest '{identity}' is missing <feed-url>.")

    max_days_raw = node.attrib.get("max-days", "").strip()
    timezone = node.attrib.get("timezone", "").strip() or default_timezone

    return DigestConfig(
        identity=identity,
        feed_url=feed_url,
        timezone=_validate_timezone(timezone),
        filters=[item.text for item in node.findall("filter") if item.text],
        only_prior_to_today=_parse_bool(node.attrib.get("only-prior-to-today"), True),
        max_days=int(max_days_raw) if max_days_raw else None,
        name=node.attrib.get("name", "").strip() or None,
        freshness_token=node.attrib.get("updated-at", "").strip() or "0",
    )


def parse_app_config(path: str) -> AppConfig:
    """Parse the main application configuration XML."""
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    logger.info("Loading application configuration from %s", config_path)
    tree = ET.parse(config_path)
    root = tree.getroot()

    base_url = root.findtext("base-url", "http://localhost").strip()
    app_name = root.findtext("app-name", DEFAULT_APP_NAME).strip()
    timezone = _validate_timezone(root.findtext("timezone", "UTC").strip() or "UTC")
    fetch_timeout = float(root.findtext("fetch-timeout", str(DEFAULT_TIMEOUT)))

    # Cache
    cache_node = root.find("cache")
    cache = CacheConfig()
    if cache_node is not None:
        directory = cache_node.findtext("directory")
        if directory:
            cache.directory = _resolve_path(config_path, directory.strip())
        cache.ttl = int(cache_node.findtext("ttl", "0"))
        cache.unit = cache_node.findtext("unit", "minutes")
    else:
        cache.directory = _resolve_path(config_path, cache.directory)

    # Logging
    log_node = root.find("logging")
    logging_config = LoggingConfig()
    if log_node is not None:
        logging_config.level = log_node.findtext("level", "INFO")
        log_file = log_node.findtext("file")
        if log_file:
            logging_config.file = _resolve_path(config_path, log_file)

    # Digests
    digests: List[DigestConfig] = []
    digests_node = root.find("digests")
    if digests_node is not None:
        for node in digests_node.findall("digest"):
            digest = _parse_digest(node, timezone)
            if any(existing.identity == digest.identity for existing in digests):
                raise ValueError(f"Duplicate digest id: {digest.identity}")
            digests.append(digest)
            logger.debug("Registered digest '%s' (%s)", digest.identity, digest.feed_url)

    logger.info("Loaded %d digests from configuration", len(digests))
    return AppConfig(
        base_url=base_url,
        app_name=app_name,
        timezone=timezone,
        fetch_timeout=fetch_timeout,
        cache=cache,
        logging=logging_config,
        digests=digests,
    )
