"""Normalization of RSS 2.0 and Atom 1.0 documents into feed entries."""

from __future__ import annotations

import enum
import io
import logging
from datetime import datetime, tzinfo
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union
from xml.etree import ElementTree as ET
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser

from .errors import MalformedFeedError, UnsupportedFormatError
from .models import FeedEntry, ParsedFeed

logger = logging.getLogger(__name__)

# Used when a feed uses an extension without declaring the usual prefix.
WELL_KNOWN_NAMESPACES = {
    "content": "http://purl.org/rss/1.0/modules/content/",
    "dc": "http://purl.org/dc/elements/1.1/",
    "media": "http://search.yahoo.com/mrss/",
}


class FeedDialect(enum.Enum):
    RSS = "rss"
    ATOM = "atom"


def parse_feed(raw: Union[bytes, str], timezone: str) -> ParsedFeed:
    """Parse a raw RSS or Atom document into a title and normalized entries.

    Dates are converted to ``timezone``. Entries whose date cannot be parsed
    are kept with ``published_at`` set to None.
    """
    root, namespaces = _load_xml(raw)
    target_tz = ZoneInfo(timezone)

    dialect, nodes = _detect_dialect(root, namespaces)
    extract = _EXTRACTORS[dialect]
    entries = [extract(node, namespaces, target_tz) for node in nodes]
    title = _extract_feed_title(root, namespaces)

    logger.info(
        "Parsed %d entries from %s feed '%s'", len(entries), dialect.value, title
    )
    return ParsedFeed(title=title, entries=entries)


def parse_date(value: str, target_tz: tzinfo) -> Optional[datetime]:
    """Parse a feed date string, interpreting naive values in target_tz."""
    if not value:
        return None
    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError) as exc:
        logger.debug("Ignoring unparsable date %r: %s", value, exc)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=target_tz)
    return parsed.astimezone(target_tz)


def _load_xml(raw: Union[bytes, str]) -> Tuple[ET.Element, Dict[str, str]]:
    if isinstance(raw, str):
        raw = raw.encode("utf-8")

    namespaces: Dict[str, str] = {}
    root: Optional[ET.Element] = None
    try:
        for event, node in ET.iterparse(
            io.BytesIO(raw.strip()), events=("start", "start-ns")
        ):
            if event == "start-ns":
                prefix, uri = node
                namespaces.setdefault(prefix, uri)
            elif root is None:
                root = node
    except ET.ParseError as exc:
        logger.warning("Feed XML could not be parsed: %s", exc)
        raise MalformedFeedError("Feed XML could not be parsed.") from exc

    if root is None:
        raise MalformedFeedError("Feed XML could not be parsed.")
    return root, namespaces


def _detect_dialect(
    root: ET.Element, namespaces: Dict[str, str]
) -> Tuple[FeedDialect, List[ET.Element]]:
    channel = root.find("channel")
    if channel is not None:
        return FeedDialect.RSS, channel.findall("item")

    feed_ns = _feed_namespace(namespaces)
    if feed_ns:
        entries = root.findall(_q(feed_ns, "entry"))
        if entries:
            return FeedDialect.ATOM, entries

    entries = root.findall("entry")
    if entries:
        return FeedDialect.ATOM, entries

    raise UnsupportedFormatError("Unsupported feed format.")


def _extract_feed_title(root: ET.Element, namespaces: Dict[str, str]) -> str:
    channel = root.find("channel")
    if channel is not None and channel.find("title") is not None:
        return _child_text(channel, "title")

    feed_ns = _feed_namespace(namespaces)
    if feed_ns and root.find(_q(feed_ns, "title")) is not None:
        return _child_text(root, _q(feed_ns, "title"))

    if root.find("title") is not None:
        return _child_text(root, "title")

    return ""


def _extract_rss_entry(
    item: ET.Element, namespaces: Dict[str, str], target_tz: tzinfo
) -> FeedEntry:
    content_ns = _namespace(namespaces, "content")
    dc_ns = _namespace(namespaces, "dc")

    summary = _child_text(item, "description") or _child_text(
        item, _q(content_ns, "encoded")
    )
    published = _child_text(item, "pubDate") or _child_text(item, _q(dc_ns, "date"))
    author = _child_text(item, "author") or _child_text(item, _q(dc_ns, "creator"))

    return FeedEntry(
        title=_child_text(item, "title"),
        link=_child_text(item, "link"),
        summary=summary,
        published_at=parse_date(published, target_tz),
        categories=_unique(_text(node) for node in item.findall("category")),
        author=author,
        guid=_child_text(item, "guid"),
        image=_rss_image(item, namespaces),
    )


def _extract_atom_entry(
    entry: ET.Element, namespaces: Dict[str, str], target_tz: tzinfo
) -> FeedEntry:
    ns = _namespace_of(entry)

    summary = _child_text(entry, _q(ns, "summary")) or _child_text(
        entry, _q(ns, "content")
    )
    published = _child_text(entry, _q(ns, "updated")) or _child_text(
        entry, _q(ns, "published")
    )
    author = _child_text(entry, _q(ns, "author") + "/" + _q(ns, "name"))
    categories = _unique(
        _attr(node, "term") or _attr(node, "label") or _text(node)
        for node in entry.findall(_q(ns, "category"))
    )

    return FeedEntry(
        title=_child_text(entry, _q(ns, "title")),
        link=_atom_link(entry, ns),
        summary=summary,
        published_at=parse_date(published, target_tz),
        categories=categories,
        author=author,
        guid=_child_text(entry, _q(ns, "id")),
        image=_media_image(entry, namespaces),
    )


_EXTRACTORS: Dict[
    FeedDialect, Callable[[ET.Element, Dict[str, str], tzinfo], FeedEntry]
] = {
    FeedDialect.RSS: _extract_rss_entry,
    FeedDialect.ATOM: _extract_atom_entry,
}


def _atom_link(entry: ET.Element, ns: Optional[str]) -> str:
    links = entry.findall(_q(ns, "link"))
    for link in links:
        href = _attr(link, "href")
        if not href:
            continue
        if _attr(link, "rel") in ("", "alternate"):
            return href
    return _attr(links[0], "href") if links else ""


def _rss_image(item: ET.Element, namespaces: Dict[str, str]) -> Optional[str]:
    enclosure = item.find("enclosure")
    if enclosure is not None:
        url = _attr(enclosure, "url")
        if url and _is_image_type(_attr(enclosure, "type")):
            return url
    return _media_image(item, namespaces)


def _media_image(node: ET.Element, namespaces: Dict[str, str]) -> Optional[str]:
    media_ns = _namespace(namespaces, "media")

    content = node.find(_q(media_ns, "content"))
    if content is not None:
        url = _attr(content, "url")
        if url and _is_image_type(_attr(content, "type")):
            return url

    thumbnail = node.find(_q(media_ns, "thumbnail"))
    return _attr(thumbnail, "url") or None


def _is_image_type(value: str) -> bool:
    return value == "" or value.startswith("image/")


def _feed_namespace(namespaces: Dict[str, str]) -> Optional[str]:
    return namespaces.get("") or namespaces.get("atom")


def _namespace(namespaces: Dict[str, str], prefix: str) -> str:
    return namespaces.get(prefix) or WELL_KNOWN_NAMESPACES[prefix]


def _namespace_of(element: ET.Element) -> Optional[str]:
    tag = element.tag
    if isinstance(tag, str) and tag.startswith("{"):
        return tag[1 : tag.index("}")]
    return None


def _q(namespace: Optional[str], name: str) -> str:
    return f"{{{namespace}}}{name}" if namespace else name


def _text(element: Optional[ET.Element]) -> str:
    if element is None:
        return ""
    if len(element):
        # Inline XHTML content; keep the readable text.
        return "".join(element.itertext()).strip()
    return (element.text or "").strip()


def _child_text(parent: ET.Element, tag: str) -> str:
    return _text(parent.find(tag))


def _attr(element: Optional[ET.Element], name: str) -> str:
    if element is None:
        return ""
    return (element.get(name) or "").strip()


def _unique(values: Iterable[str]) -> List[str]:
    seen = set()
    result: List[str] = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result
