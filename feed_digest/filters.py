"""Digest filter language: compilation and application.

Filters are plain strings such as ``+#"gaming"``, ``-author:bob``,
``-summary-regex:"ban(ned)?"`` or ``remove:"Sponsored"``. Each string is
tested against an ordered table of patterns; the first match wins and
anything unrecognised is dropped.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, List, Optional, Pattern, Sequence, Tuple

from .models import FeedEntry, FilterConfig

logger = logging.getLogger(__name__)

_Setter = Callable[[FilterConfig, "re.Match[str]", str], None]

# Quoted values stop at the first closing quote, except for regex values,
# which may themselves contain quotes.
_VALUE = r'(?:"(?P<quoted>[^"]+)"|(?P<bare>.+))'
_GREEDY_VALUE = r'(?:"(?P<quoted>.+)"|(?P<bare>.+))'


def _signed(include_field: str, exclude_field: str) -> _Setter:
    def setter(config: FilterConfig, match: "re.Match[str]", value: str) -> None:
        field_name = include_field if match.group("sign") == "+" else exclude_field
        getattr(config, field_name).append(value)

    return setter


def _removal(is_regex: bool) -> _Setter:
    def setter(config: FilterConfig, match: "re.Match[str]", value: str) -> None:
        config.removals.append((is_regex, value))

    return setter


_RULES: List[Tuple[Pattern[str], _Setter]] = [
    (
        re.compile(r"(?P<sign>[+-])\s*#" + _VALUE),
        _signed("include_categories", "exclude_categories"),
    ),
    (
        re.compile(r"(?P<sign>[+-])\s*author:" + _VALUE, re.IGNORECASE),
        _signed("include_authors", "exclude_authors"),
    ),
    (
        re.compile(r"(?P<sign>[+-])\s*summary-regex:" + _GREEDY_VALUE, re.IGNORECASE),
        _signed("include_summary_regex", "exclude_summary_regex"),
    ),
    (
        re.compile(r"(?P<sign>[+-])\s*summary:" + _VALUE, re.IGNORECASE),
        _signed("include_summary", "exclude_summary"),
    ),
    (re.compile(r"remove:" + _VALUE, re.IGNORECASE), _removal(False)),
    (re.compile(r"remove-regex:" + _GREEDY_VALUE, re.IGNORECASE), _removal(True)),
]


def compile_filters(raw_filters: Optional[Iterable[object]]) -> FilterConfig:
    """Compile raw filter strings into a FilterConfig. Never raises."""
    config = FilterConfig()

    for raw in raw_filters or []:
        if not isinstance(raw, str):
            logger.debug("Ignoring non-string filter %r", raw)
            continue

        token = raw.strip()
        if not token:
            logger.debug("Ignoring empty filter")
            continue

        for pattern, setter in _RULES:
            match = pattern.fullmatch(token)
            if match is None:
                continue
            value = (match.group("quoted") or match.group("bare") or "").strip()
            if value:
                setter(config, match, value)
            break
        else:
            logger.debug("Ignoring unrecognised filter %r", token)

    return config


def apply_filters(
    entries: Iterable[FeedEntry], config: FilterConfig
) -> List[FeedEntry]:
    """Return the entries accepted by config, preserving their order."""
    include_categories = _normalize(config.include_categories)
    exclude_categories = _normalize(config.exclude_categories)
    include_authors = _normalize(config.include_authors)
    exclude_authors = _normalize(config.exclude_authors)
    include_summary = _normalize(config.include_summary)
    exclude_summary = _normalize(config.exclude_summary)
    include_summary_regex = config.include_summary_regex
    exclude_summary_regex = config.exclude_summary_regex

    require_summary_match = bool(include_summary or include_summary_regex)

    kept: List[FeedEntry] = []
    for entry in entries:
        categories = [value.lower() for value in entry.categories]
        author = entry.author.lower()
        summary = entry.summary.lower()

        if include_categories and not _matches_any(categories, include_categories):
            continue
        if exclude_categories and _matches_any(categories, exclude_categories):
            continue
        if include_authors and not _matches_text_any(author, include_authors):
            continue
        if exclude_authors and _matches_text_any(author, exclude_authors):
            continue
        if require_summary_match and not _matches_summary(
            summary, include_summary, include_summary_regex
        ):
            continue
        if _matches_summary(summary, exclude_summary, exclude_summary_regex):
            continue

        kept.append(entry)

    logger.debug("Filters kept %d entries", len(kept))
    return kept


def remove_content(summary: str, config: FilterConfig) -> str:
    """Strip every configured removal from summary, in supplied order."""
    result = summary
    for is_regex, value in config.removals:
        if is_regex:
            try:
                result = re.sub(value, "", result, flags=re.IGNORECASE)
            except re.error as exc:
                logger.debug("Skipping invalid removal regex %r: %s", value, exc)
        else:
            result = re.sub(re.escape(value), "", result, flags=re.IGNORECASE)
    return result


def _normalize(values: Sequence[str]) -> List[str]:
    return [value.strip().lower() for value in values if value.strip()]


def _matches_any(haystack: Sequence[str], needles: Sequence[str]) -> bool:
    return any(needle in value for needle in needles for value in haystack)


def _matches_text_any(haystack: str, needles: Sequence[str]) -> bool:
    return any(needle and needle in haystack for needle in needles)


def _matches_summary(
    summary: str, terms: Sequence[str], patterns: Sequence[str]
) -> bool:
    if _matches_text_any(summary, terms):
        return True
    return any(_regex_search(pattern, summary) for pattern in patterns)


def _regex_search(pattern: str, text: str) -> bool:
    pattern = pattern.strip()
    if not pattern:
        return False
    try:
        return re.search(pattern, text, re.IGNORECASE) is not None
    except re.error as exc:
        logger.debug("Treating invalid regex %r as non-matching: %s", pattern, exc)
        return False
