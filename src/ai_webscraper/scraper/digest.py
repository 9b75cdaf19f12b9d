"""Plain-text rendering of a page digest produced by the headless browser.

:meth:`~ai_webscraper.scraper.playwright_fetcher.PlaywrightFetcher.fetch_comprehensive`
returns a mapping with these keys (all optional)::

    title, url
    meta           {description, keywords}
    eventContent   {cards, schedule, sessions, speakers, times}
    headings       {h1, h2, h3, h4, h5, h6}
    contentSections [text, ...]
    links          [{text, href}, ...]
    stats          {name: value}
    bodyText

List items may be plain strings or mappings with a ``text`` key.
:func:`format_digest` turns that mapping into one document whose sections
appear in a fixed order; absent or empty sections are left out entirely.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ai_webscraper.scraper.config import (
    DIGEST_MAX_BODY_CHARS,
    DIGEST_MAX_LINKS,
    DIGEST_MAX_LIST_ITEMS,
    DIGEST_MAX_SECTION_CHARS,
    DIGEST_MAX_SECTIONS,
)

_EVENT_GROUPS: tuple[tuple[str, str], ...] = (
    ("cards", "Cards"),
    ("schedule", "Schedule"),
    ("sessions", "Sessions"),
    ("speakers", "Speakers"),
    ("times", "Times"),
)

_HEADING_LEVELS: tuple[str, ...] = ("h1", "h2", "h3", "h4", "h5", "h6")


def truncate(text: str, limit: int) -> str:
    """Cut *text* at *limit* characters, marking the cut with ``...``."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def _item_text(item: Any) -> str:
    if isinstance(item, Mapping):
        item = item.get("text", "")
    return "" if item is None else str(item).strip()


def _item_texts(items: Any) -> list[str]:
    if not isinstance(items, Iterable) or isinstance(items, (str, bytes, Mapping)):
        return []
    return [text for text in (_item_text(item) for item in items) if text]


def _sub_list(title: str, items: Any) -> list[str]:
    texts = _item_texts(items)[:DIGEST_MAX_LIST_ITEMS]
    if not texts:
        return []
    return [f"{title}:"] + [f"  - {text}" for text in texts]


def _section(header: str, lines: list[str]) -> str | None:
    if not lines:
        return None
    return "\n".join([f"=== {header} ===", *lines])


def _mapping(digest: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = digest.get(key)
    return value if isinstance(value, Mapping) else {}


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def _page_information(digest: Mapping[str, Any]) -> list[str]:
    lines = []
    for key, label in (("title", "Title"), ("url", "URL")):
        value = _item_text(digest.get(key))
        if value:
            lines.append(f"{label}: {value}")
    return lines


def _meta_data(digest: Mapping[str, Any]) -> list[str]:
    meta = _mapping(digest, "meta")
    lines = []
    for key, label in (("description", "Description"), ("keywords", "Keywords")):
        value = _item_text(meta.get(key))
        if value:
            lines.append(f"{label}: {value}")
    return lines


def _event_content(digest: Mapping[str, Any]) -> list[str]:
    events = _mapping(digest, "eventContent")
    lines: list[str] = []
    for key, title in _EVENT_GROUPS:
        lines.extend(_sub_list(title, events.get(key)))
    return lines


def _headings(digest: Mapping[str, Any]) -> list[str]:
    headings = _mapping(digest, "headings")
    lines: list[str] = []
    for level in _HEADING_LEVELS:
        lines.extend(_sub_list(level.upper(), headings.get(level)))
    return lines


def _content_sections(digest: Mapping[str, Any]) -> list[str]:
    texts = _item_texts(digest.get("contentSections"))[:DIGEST_MAX_SECTIONS]
    return [
        f"[{index}] {truncate(text, DIGEST_MAX_SECTION_CHARS)}"
        for index, text in enumerate(texts, start=1)
    ]


def _links(digest: Mapping[str, Any]) -> list[str]:
    links = digest.get("links")
    if not isinstance(links, list):
        return []
    lines = []
    for link in links:
        if not isinstance(link, Mapping):
            continue
        text = _item_text(link.get("text"))
        href = _item_text(link.get("href"))
        if text or href:
            lines.append(f"{text} -> {href}")
        if len(lines) >= DIGEST_MAX_LINKS:
            break
    return lines


def _statistics(digest: Mapping[str, Any]) -> list[str]:
    return [f"{key}: {value}" for key, value in _mapping(digest, "stats").items()]


def _full_text(digest: Mapping[str, Any]) -> list[str]:
    body = _item_text(digest.get("bodyText"))
    return [truncate(body, DIGEST_MAX_BODY_CHARS)] if body else []


_SECTIONS = (
    ("PAGE INFORMATION", _page_information),
    ("META DATA", _meta_data),
    ("EVENT CONTENT", _event_content),
    ("HEADINGS", _headings),
    ("CONTENT SECTIONS", _content_sections),
    ("LINKS", _links),
    ("PAGE STATISTICS", _statistics),
    ("FULL PAGE TEXT", _full_text),
)


def format_digest(digest: Mapping[str, Any]) -> str:
    """Render *digest* as a sectioned plain-text document.

    Sections are separated by one blank line.  Sub-lists keep their first
    ten entries, content sections their first twenty (each cut at 500
    characters), links their first fifty, and the full page text is cut at
    5000 characters.

    Args:
        digest: Mapping returned by the comprehensive browser fetch.

    Returns:
        The rendered document, or an empty string if every section is empty.
    """
    rendered = (_section(header, build(digest)) for header, build in _SECTIONS)
    return "\n\n".join(section for section in rendered if section)
