from datetime import date, datetime, timezone

import pytest

from feed_digest import aggregator
from feed_digest.errors import HttpStatusError
from feed_digest.models import FeedEntry

NOW = datetime(2026, 2, 26, 12, 0, tzinfo=timezone.utc)


def _serve(monkeypatch, raw):
    calls = []

    def fake_fetch(url, timeout=None):
        calls.append((url, timeout))
        return raw

    monkeypatch.setattr(aggregator, "fetch_feed", fake_fetch)
    return calls


def _sample_items(rss_item):
    return [
        rss_item(
            "Late story",
            "https://example.com/late",
            pub_date="Wed, 25 Feb 2026 20:00:00 +0000",
            categories=["Tech"],
        ),
        rss_item(
            "Early story",
            "https://example.com/early",
            pub_date="Wed, 25 Feb 2026 08:00:00 +0000",
            categories=["Tech"],
        ),
        rss_item(
            "AI story",
            "https://example.com/ai",
            pub_date="Wed, 25 Feb 2026 10:00:00 +0000",
            categories=["AI", "Tech"],
        ),
        rss_item(
            "Yesterday story",
            "https://example.com/yesterday",
            pub_date="Tue, 24 Feb 2026 10:00:00 +0000",
            categories=["news10"],
        ),
        rss_item(
            "Today story",
            "https://example.com/today",
            pub_date="Thu, 26 Feb 2026 09:00:00 +0000",
            categories=["Tech"],
        ),
        rss_item("Undated story", "https://example.com/undated"),
    ]


def test_natural_key_orders_numbers_numerically_and_ignores_case():
    values = ["tech", "AI", "news10", "news2"]

    assert sorted(values, key=aggregator.natural_key) == [
        "AI",
        "news2",
        "news10",
        "tech",
    ]


def test_natural_key_tolerates_non_decimal_digit_characters():
    values = ["b", "a1\u00b2", "a10", "a2"]

    assert sorted(values, key=aggregator.natural_key) == ["a1\u00b2", "a2", "a10", "b"]


def test_superscript_category_does_not_break_grouping(
    monkeypatch, rss_document, rss_item
):
    raw = rss_document(
        [
            rss_item(
                "Squared",
                "https://example.com/squared",
                pub_date="Wed, 25 Feb 2026 10:00:00 +0000",
                categories=["m\u00b2 prices"],
            ),
            rss_item(
                "Plain",
                "https://example.com/plain",
                pub_date="Wed, 25 Feb 2026 11:00:00 +0000",
                categories=["m2 prices"],
            ),
        ]
    )
    _serve(monkeypatch, raw)

    digest = aggregator.aggregate_for_date(
        "https://example.com/feed.xml", date(2026, 2, 25), "UTC", now=NOW
    )

    assert list(digest.groups) == ["m2 prices", "m\u00b2 prices"]


def test_aggregate_for_date_groups_by_primary_category(
    monkeypatch, rss_document, rss_item
):
    calls = _serve(monkeypatch, rss_document(_sample_items(rss_item)))

    digest = aggregator.aggregate_for_date(
        "https://example.com/feed.xml",
        date(2026, 2, 25),
        "UTC",
        timeout=3.0,
        now=NOW,
    )

    assert calls == [("https://example.com/feed.xml", 3.0)]
    assert digest.title == "Example Feed"
    assert list(digest.groups) == ["AI", "Tech"]
    assert [entry.title for entry in digest.groups["AI"]] == ["AI story"]
    assert [entry.title for entry in digest.groups["Tech"]] == [
        "Late story",
        "Early story",
    ]
    assert digest.has_entries


def test_aggregate_for_date_without_matches_is_empty(
    monkeypatch, rss_document, rss_item
):
    _serve(monkeypatch, rss_document(_sample_items(rss_item)))

    digest = aggregator.aggregate_for_date(
        "https://example.com/feed.xml", date(2026, 1, 1), "UTC", now=NOW
    )

    assert digest.groups == {}
    assert not digest.has_entries


def test_aggregate_for_date_today_requires_disabling_prior_filter(
    monkeypatch, rss_document, rss_item
):
    _serve(monkeypatch, rss_document(_sample_items(rss_item)))

    hidden = aggregator.aggregate_for_date(
        "https://example.com/feed.xml", date(2026, 2, 26), "UTC", now=NOW
    )
    shown = aggregator.aggregate_for_date(
        "https://example.com/feed.xml",
        date(2026, 2, 26),
        "UTC",
        only_prior_to_today=False,
        now=NOW,
    )

    assert hidden.groups == {}
    assert [entry.title for entry in shown.groups["Tech"]] == ["Today story"]


def test_aggregate_for_date_uses_the_digest_timezone(
    monkeypatch, rss_document, rss_item
):
    raw = rss_document(
        [
            rss_item(
                "Near midnight",
                "https://example.com/midnight",
                pub_date="Tue, 24 Feb 2026 23:30:00 +0000",
            )
        ]
    )
    _serve(monkeypatch, raw)

    berlin = aggregator.aggregate_for_date(
        "https://example.com/feed.xml", date(2026, 2, 25), "Europe/Berlin", now=NOW
    )
    utc = aggregator.aggregate_for_date(
        "https://example.com/feed.xml", date(2026, 2, 25), "UTC", now=NOW
    )

    assert [entry.title for entry in berlin.groups["Uncategorized"]] == [
        "Near midnight"
    ]
    assert utc.groups == {}


def test_aggregate_for_date_applies_filters_and_removals(
    monkeypatch, rss_document, rss_item
):
    raw = rss_document(
        [
            rss_item(
                "Game news",
                "https://example.com/game",
                pub_date="Wed, 25 Feb 2026 10:00:00 +0000",
                categories=["Gaming"],
                description="Sponsored: a new game",
            ),
            rss_item(
                "Other news",
                "https://example.com/other",
                pub_date="Wed, 25 Feb 2026 11:00:00 +0000",
                categories=["Politics"],
                description="Sponsored: politics",
            ),
        ]
    )
    _serve(monkeypatch, raw)

    digest = aggregator.aggregate_for_date(
        "https://example.com/feed.xml",
        date(2026, 2, 25),
        "UTC",
        filters=['+#"gaming"', 'remove:"Sponsored: "'],
        now=NOW,
    )

    assert list(digest.groups) == ["Gaming"]
    assert digest.groups["Gaming"][0].summary == "a new game"


def test_group_order_does_not_depend_on_input_order(
    monkeypatch, rss_document, rss_item
):
    items = _sample_items(rss_item)
    _serve(monkeypatch, rss_document(items))
    forward = aggregator.aggregate_by_date(
        "https://example.com/feed.xml", "UTC", now=NOW
    )

    _serve(monkeypatch, rss_document(list(reversed(items))))
    backward = aggregator.aggregate_by_date(
        "https://example.com/feed.xml", "UTC", now=NOW
    )

    assert list(forward.groups_by_date.items()) == list(
        backward.groups_by_date.items()
    )
    for day in forward.groups_by_date:
        assert list(forward.groups_by_date[day].items()) == list(
            backward.groups_by_date[day].items()
        )


def test_aggregate_by_date_orders_dates_newest_first(
    monkeypatch, rss_document, rss_item
):
    _serve(monkeypatch, rss_document(_sample_items(rss_item)))

    digest = aggregator.aggregate_by_date(
        "https://example.com/feed.xml", "UTC", now=NOW
    )

    assert list(digest.groups_by_date) == ["2026-02-25", "2026-02-24"]
    assert list(digest.groups_by_date["2026-02-24"]) == ["news10"]
    assert digest.has_entries


def test_aggregate_by_date_omits_dates_removed_by_filters(
    monkeypatch, rss_document, rss_item
):
    _serve(monkeypatch, rss_document(_sample_items(rss_item)))

    digest = aggregator.aggregate_by_date(
        "https://example.com/feed.xml", "UTC", filters=["-#news"], now=NOW
    )

    assert list(digest.groups_by_date) == ["2026-02-25"]


def test_aggregate_by_date_limits_to_newest_days(
    monkeypatch, rss_document, rss_item
):
    _serve(monkeypatch, rss_document(_sample_items(rss_item)))

    limited = aggregator.aggregate_by_date(
        "https://example.com/feed.xml", "UTC", max_days=1, now=NOW
    )
    unlimited = aggregator.aggregate_by_date(
        "https://example.com/feed.xml", "UTC", max_days=0, now=NOW
    )

    assert list(limited.groups_by_date) == ["2026-02-25"]
    assert list(unlimited.groups_by_date) == ["2026-02-25", "2026-02-24"]


def test_aggregate_by_date_includes_today_when_allowed(
    monkeypatch, rss_document, rss_item
):
    _serve(monkeypatch, rss_document(_sample_items(rss_item)))

    digest = aggregator.aggregate_by_date(
        "https://example.com/feed.xml", "UTC", only_prior_to_today=False, now=NOW
    )

    assert list(digest.groups_by_date) == ["2026-02-26", "2026-02-25", "2026-02-24"]


def test_aggregate_propagates_fetch_errors(monkeypatch):
    def failing_fetch(url, timeout=None):
        raise HttpStatusError("Unable to fetch the feed.", status_code=500)

    monkeypatch.setattr(aggregator, "fetch_feed", failing_fetch)

    with pytest.raises(HttpStatusError):
        aggregator.aggregate_by_date("https://example.com/feed.xml", "UTC", now=NOW)


def test_filter_prior_to_today_drops_undated_and_current_day():
    tz_now = datetime(2026, 2, 26, 0, 30, tzinfo=timezone.utc)
    entries = [
        FeedEntry(title="old", published_at=datetime(2026, 2, 25, 23, 59, tzinfo=timezone.utc)),
        FeedEntry(title="today", published_at=datetime(2026, 2, 26, 0, 0, tzinfo=timezone.utc)),
        FeedEntry(title="undated"),
    ]

    kept = aggregator.filter_prior_to_today(entries, "UTC", now=tz_now)

    assert [entry.title for entry in kept] == ["old"]


def test_group_by_category_skips_undated_entries():
    entries = [
        FeedEntry(title="dated", published_at=NOW),
        FeedEntry(title="undated"),
    ]

    groups = aggregator.group_by_category(entries, aggregator.FilterConfig())

    assert {key: [e.title for e in value] for key, value in groups.items()} == {
        "Uncategorized": ["dated"]
    }
