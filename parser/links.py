"""Outbound link extraction from fetched HTML documents."""

from __future__ import annotations

from html.parser import HTMLParser

from core.models import HtmlDocument, Locator
from quality.urlnorm import canonicalize_link


class _AnchorCollector(HTMLParser):
    """Collect anchor href values and the first <base href>, in document order."""

    def __init__(self) -> None:
        super().__init__()
        self.hrefs: list[str] = []
        self.base_href: str | None = None

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        tag_lower = tag.lower()
        if tag_lower not in {"a", "base"}:
            return
        attrs_map = {k.lower(): (v or "").strip() for k, v in attrs}
        href = attrs_map.get("href", "")
        if not href:
            return
        if tag_lower == "base":
            if self.base_href is None:
                self.base_href = href
            return
        self.hrefs.append(href)


def extract_links(document: HtmlDocument) -> set[Locator]:
    """Return the distinct crawlable links of a document; malformed links are skipped."""
    collector = _AnchorCollector()
    collector.feed(document.content)
    collector.close()

    base_url = document.url
    if collector.base_href:
        base_locator = canonicalize_link(document.url, collector.base_href)
        if base_locator is not None:
            base_url = base_locator.url

    links: set[Locator] = set()
    for href in collector.hrefs:
        locator = canonicalize_link(base_url, href)
        if locator is not None:
            links.add(locator)
    return links
