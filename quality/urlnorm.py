"""Link canonicalization for crawl-job deduplication."""

from __future__ import annotations

from urllib.parse import urljoin, urlsplit

from core.config import CrawlConfig
from core.models import Locator


def canonicalize_link(base_url: str, href: str) -> Locator | None:
    """
    Resolve one link against its page and canonicalize it for crawling.

    Rules:
    - Resolve relative references against `base_url`
    - Keep only http/https
    - Drop links with an explicit non-default port
    - Empty path becomes "/"
    - Keep the query, drop the fragment
    - Lowercase scheme and host

    Returns None for links that are out of scope or cannot be parsed.
    """
    try:
        parsed = urlsplit(urljoin(base_url, href.strip()))
        port = parsed.port
    except ValueError:
        return None

    scheme = parsed.scheme.lower()
    if scheme not in CrawlConfig.ALLOWED_PROTOCOLS:
        return None

    hostname = (parsed.hostname or "").lower()
    if not hostname:
        return None

    if port is not None and port != CrawlConfig.DEFAULT_PORTS.get(scheme):
        return None

    path = parsed.path or "/"
    if not path.startswith("/"):
        path = "/" + path
    if parsed.query:
        path = f"{path}?{parsed.query}"

    return Locator(protocol=scheme, host=hostname, path=path)
