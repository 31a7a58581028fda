"""Parse RSS/Atom feeds into fetch items and filter them for relevance."""

from __future__ import annotations

import re
from typing import Any, Iterable

import feedparser
from selectolax.parser import HTMLParser

from ..state import FetchItem

_WHITESPACE = re.compile(r"\s+")


def clean_text(value: str | None) -> str:
    """Strip markup and entities, collapse whitespace."""

    if not value or not value.strip():
        return ""
    if "<" in value or "&" in value:
        value = HTMLParser(value).text(separator=" ")
    return _WHITESPACE.sub(" ", value).strip()


def _first(entry: Any, *keys: str) -> str | None:
    for key in keys:
        value = entry.get(key)
        if value:
            return str(value)
    return None


def _entry_link(entry: Any) -> str | None:
    link = entry.get("link")
    if link:
        return str(link)
    for candidate in entry.get("links") or []:
        href = candidate.get("href")
        if href:
            return str(href)
    guid = entry.get("id")
    if guid and str(guid).startswith("http"):
        return str(guid)
    return None


def _entry_image(entry: Any, raw_description: str | None) -> str | None:
    for media in entry.get("media_content") or []:
        url = media.get("url")
        if url:
            return str(url)
    for enclosure in entry.get("enclosures") or []:
        if str(enclosure.get("type", "")).startswith("image/") and enclosure.get("href"):
            return str(enclosure["href"])
    if raw_description and "<img" in raw_description:
        node = HTMLParser(raw_description).css_first("img")
        if node is not None and node.attributes.get("src"):
            return node.attributes["src"]
    return None


def parse_feed(payload: str | bytes) -> list[FetchItem]:
    """Extract items from an RSS ``<item>`` or Atom ``<entry>`` document.

    Items lacking a title, a link or a date are dropped.
    """

    # Bytes keep feedparser from treating the payload as a URL
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    parsed = feedparser.parse(payload)
    items: list[FetchItem] = []
    for entry in parsed.entries:
        title = clean_text(_first(entry, "title"))
        url = _entry_link(entry)
        published = _first(entry, "published", "updated", "pubDate", "dc_date")
        if not title or not url or not published:
            continue
        raw_description = _first(entry, "summary", "description")
        description = clean_text(raw_description) or None
        items.append(
            FetchItem(
                title=title,
                url=url.strip(),
                published_at=published.strip(),
                description=description,
                image_url=_entry_image(entry, raw_description),
            )
        )
    return items


def is_relevant(item: FetchItem, subject: str) -> bool:
    """Keep items mentioning the full name, the surname, or both name parts."""

    haystack = f"{item.title} {item.description or ''}".lower()
    name = subject.strip().lower()
    if not name:
        return False
    if name in haystack:
        return True
    parts = name.split()
    if len(parts) < 2:
        return False
    first, last = parts[0], parts[-1]
    if len(last) > 2 and last in haystack:
        return True
    return first in haystack and last in haystack


def filter_relevant(items: Iterable[FetchItem], subject: str) -> list[FetchItem]:
    return [item for item in items if is_relevant(item, subject)]


__all__ = ["clean_text", "filter_relevant", "is_relevant", "parse_feed"]
