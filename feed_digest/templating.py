"""Jinja2 environment for feed_digest templates."""

from __future__ import annotations

from importlib import resources

from bs4 import BeautifulSoup
from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

_ENV: Environment | None = None

SUMMARY_IMAGE_STYLE = (
    "max-width: 25rem; width: 100%; height: auto; border-radius: 4px; "
    "border: 1px solid #1f2937;"
)
SUMMARY_LINK_STYLE = "color: #9ca3af; text-decoration: underline;"


def _cdata(value: str | None) -> Markup:
    """Make a string safe to embed inside a CDATA section."""
    if not value:
        return Markup("")
    return Markup(str(value).replace("]]>", "]]]]><![CDATA[>"))


def _append_style(tag, style: str) -> None:
    existing = (tag.get("style") or "").rstrip().rstrip(";")
    tag["style"] = f"{existing}; {style}" if existing else style


def _styled_summary(value: str | None) -> Markup:
    """Pass summary HTML through, adding inline styles to images and links."""
    if not value:
        return Markup("")

    soup = BeautifulSoup(value, "html.parser")
    for tag in soup.find_all("img"):
        _append_style(tag, SUMMARY_IMAGE_STYLE)
    for tag in soup.find_all("a"):
        _append_style(tag, SUMMARY_LINK_STYLE)

    return Markup(str(soup))


def get_environment() -> Environment:
    """Return a cached Jinja environment configured for package templates."""
    global _ENV
    if _ENV is None:
        template_dir = resources.files(__package__) / "templates"
        loader = FileSystemLoader(str(template_dir))
        _ENV = Environment(
            loader=loader,
            autoescape=select_autoescape(["html", "xml", "html.j2", "xml.j2"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        _ENV.filters["cdata"] = _cdata
        _ENV.filters["styled_summary"] = _styled_summary
    return _ENV
