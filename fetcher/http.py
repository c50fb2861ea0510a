"""HTTP content fetcher for robots.txt files and HTML documents."""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import urljoin, urlparse

import requests

from core.config import CrawlConfig
from core.models import FetchErrorCode, FetchLog, HtmlDocument, Locator
from core.pipeline import ContentFetcher
from core.structured_logging import emit_json_event


class RedirectLimitExceeded(Exception):
    """Raised when a URL exceeds the configured redirect limit."""


class BodyLimitExceeded(Exception):
    """Raised when response body exceeds configured limits."""


def _is_html(content_type: str | None) -> bool:
    return bool(content_type) and "html" in content_type.lower()


def _read_body_with_limit(response: requests.Response, max_bytes: int) -> bytes:
    """Read response body up to the configured maximum size."""
    chunks: list[bytes] = []
    total = 0
    for chunk in response.iter_content(chunk_size=8192):
        if not chunk:
            continue
        total += len(chunk)
        if total > max_bytes:
            raise BodyLimitExceeded(f"response exceeds {max_bytes} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


def _decode_body(body: bytes, content_type: str | None) -> str:
    """Decode body bytes using content-type charset hints with safe fallback."""
    encodings = []
    charset_match = re.search(r"charset=([a-zA-Z0-9._-]+)", content_type or "")
    if charset_match:
        encodings.append(charset_match.group(1))
    encodings.append("utf-8")

    for encoding in encodings:
        try:
            return body.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue

    # latin-1 maps every byte, so this never fails.
    return body.decode("latin-1")


def _follow_redirects(
    session: requests.Session,
    url: str,
    timeout_seconds: int,
    max_redirects: int,
    user_agent: str,
) -> tuple[requests.Response, str]:
    """Fetch a URL while enforcing redirect constraints."""
    current_url = url

    for hop in range(max_redirects + 1):
        response = session.get(
            current_url,
            headers={"User-Agent": user_agent},
            timeout=timeout_seconds,
            allow_redirects=False,
            stream=True,
        )

        if 300 <= response.status_code < 400 and response.headers.get("location"):
            response.close()
            if hop >= max_redirects:
                raise RedirectLimitExceeded(f"redirects exceeded {max_redirects}")

            next_url = urljoin(current_url, response.headers["location"])
            if urlparse(next_url).scheme.lower() not in CrawlConfig.ALLOWED_PROTOCOLS:
                raise RedirectLimitExceeded("redirected to disallowed protocol")
            current_url = next_url
            continue

        return response, current_url

    raise RedirectLimitExceeded(f"redirects exceeded {max_redirects}")


class HttpContentFetcher(ContentFetcher):
    """ContentFetcher backed by requests, emitting one fetch_log event per fetch."""

    def __init__(
        self,
        session: requests.Session | None = None,
        user_agent: str = CrawlConfig.USER_AGENT,
        timeout_seconds: int = CrawlConfig.FETCH_TIMEOUT_SECONDS,
        max_redirects: int = CrawlConfig.MAX_REDIRECTS,
        max_body_bytes: int = CrawlConfig.MAX_BODY_BYTES,
        event_logger: Callable[[str, dict[str, Any]], None] | None = None,
    ) -> None:
        """Initialize HTTP settings and the fetch-log sink."""
        self.session = session or requests.Session()
        self.user_agent = user_agent
        self.timeout_seconds = timeout_seconds
        self.max_redirects = max_redirects
        self.max_body_bytes = max_body_bytes
        self.event_logger = event_logger or self._default_event_logger

    @staticmethod
    def _default_event_logger(event_type: str, payload: dict[str, Any]) -> None:
        """Default event sink writing to structured JSON stdout."""
        emit_json_event(event_type, component="fetcher", **payload)

    def fetch_robots_text(self, locator: Locator) -> list[str] | None:
        """Return robots.txt lines, or None when the file cannot be read."""
        fetched = self._get(locator.url, require_html=False)
        if fetched is None:
            return None
        _, text, _ = fetched
        return text.splitlines()

    def fetch_html(self, locator: Locator) -> HtmlDocument | None:
        """Return the HTML document, or None if unreachable or not HTML."""
        fetched = self._get(locator.url, require_html=True)
        if fetched is None:
            return None
        response, text, final_url = fetched
        return HtmlDocument(
            url=final_url,
            status_code=response.status_code,
            content_type=response.headers.get("content-type"),
            content=text,
        )

    def _get(
        self,
        url: str,
        require_html: bool,
    ) -> tuple[requests.Response, str, str] | None:
        """GET one URL; return (response, decoded text, final URL) or None on any failure."""
        start = time.monotonic()

        def _log(
            status_code: int | None = None,
            bytes_received: int | None = None,
            error_code: FetchErrorCode | None = None,
        ) -> None:
            fetch_log = FetchLog(
                url=url,
                status_code=status_code,
                latency_ms=int((time.monotonic() - start) * 1000),
                bytes_received=bytes_received,
                error_code=error_code,
            )
            self.event_logger("fetch_log", fetch_log.model_dump(mode="json"))

        try:
            response, final_url = _follow_redirects(
                self.session,
                url,
                timeout_seconds=self.timeout_seconds,
                max_redirects=self.max_redirects,
                user_agent=self.user_agent,
            )
        except RedirectLimitExceeded:
            _log(error_code=FetchErrorCode.REDIRECT_LIMIT)
            return None
        except requests.Timeout:
            _log(error_code=FetchErrorCode.TIMEOUT)
            return None
        except requests.RequestException:
            _log(error_code=FetchErrorCode.FETCH_ERROR)
            return None

        try:
            if not 200 <= response.status_code < 300:
                _log(status_code=response.status_code, error_code=FetchErrorCode.NOT_FOUND)
                return None

            if require_html and not _is_html(response.headers.get("content-type")):
                _log(status_code=response.status_code, error_code=FetchErrorCode.NOT_HTML)
                return None

            try:
                body = _read_body_with_limit(response, self.max_body_bytes)
            except BodyLimitExceeded:
                _log(status_code=response.status_code, error_code=FetchErrorCode.BODY_TOO_LARGE)
                return None
            except requests.RequestException:
                _log(status_code=response.status_code, error_code=FetchErrorCode.FETCH_ERROR)
                return None

            _log(status_code=response.status_code, bytes_received=len(body))
            text = _decode_body(body, response.headers.get("content-type"))
            return response, text, final_url
        finally:
            response.close()
