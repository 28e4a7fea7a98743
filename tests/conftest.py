import pytest


def _rss_item(
    title,
    link,
    pub_date=None,
    categories=(),
    author=None,
    description=None,
    guid=None,
    extra="",
):
    parts = [f"<title>{title}</title>", f"<link>{link}</link>"]
    if pub_date is not None:
        parts.append(f"<pubDate>{pub_date}</pubDate>")
    for category in categories:
        parts.append(f"<category>{category}</category>")
    if author is not None:
        parts.append(f"<author>{author}</author>")
    if description is not None:
        parts.append(f"<description><![CDATA[{description}]]></description>")
    if guid is not None:
        parts.append(f"<guid>{guid}</guid>")
    if extra:
        parts.append(extra)
    return "<item>" + "".join(parts) + "</item>"


def _rss_document(items, title="Example Feed", namespaces=""):
    body = "\n".join(items)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<rss version="2.0" {namespaces}>\n'
        f"<channel>\n<title>{title}</title>\n{body}\n</channel>\n"
        "</rss>\n"
    ).encode("utf-8")


@pytest.fixture
def rss_item():
    """Builder for a single RSS <item> element."""
    return _rss_item


@pytest.fixture
def rss_document():
    """Builder for a complete RSS 2.0 document as bytes."""
    return _rss_document
