"""
Core models for polite-crawler.

Design principles:
- Scheduling values (Locator, Job, RobotsRule) are immutable and hashable so
  they can be shared between worker threads without locking
- Records that cross a boundary (fetched documents, fetch logs, worker
  reports) are explicitly typed and validated Pydantic models
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from functools import total_ordering
from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from core.config import CrawlConfig


# ============================================================================
# Enums
# ============================================================================

class FetchErrorCode(str, Enum):
    """Why did a fetch fail?"""
    TIMEOUT = "TIMEOUT"
    FETCH_ERROR = "FETCH_ERROR"  # Network error
    NOT_FOUND = "NOT_FOUND"  # Non-2xx response
    NOT_HTML = "NOT_HTML"  # Content-type is not HTML
    BODY_TOO_LARGE = "BODY_TOO_LARGE"
    REDIRECT_LIMIT = "REDIRECT_LIMIT"


class WorkerStatus(str, Enum):
    """Status of one worker's run."""
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# ============================================================================
# Scheduling Values
# ============================================================================

@dataclass(frozen=True, slots=True)
class Locator:
    """Protocol, host and path (including any query) of one crawl target."""

    protocol: str
    host: str
    path: str

    @classmethod
    def from_url(cls, url: str) -> "Locator":
        """
        Parse an absolute URL into a Locator.

        Raises:
            ValueError: If the URL has no scheme or host.
        """
        parts = urlsplit(url.strip())
        protocol = parts.scheme.lower()
        host = (parts.hostname or "").lower()
        if not protocol or not host:
            raise ValueError(f"Not an absolute URL: {url!r}")
        path = parts.path or "/"
        if parts.query:
            path = f"{path}?{parts.query}"
        return cls(protocol=protocol, host=host, path=path)

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.host}{self.path}"

    @property
    def is_robots(self) -> bool:
        """True when this locator points at the host's robots file."""
        return self.path.lower() == CrawlConfig.ROBOTS_PATH

    def robots_locator(self) -> "Locator":
        """Locator of the robots file governing this one."""
        return Locator(self.protocol, self.host, CrawlConfig.ROBOTS_PATH)

    def __str__(self) -> str:
        return self.url


@total_ordering
@dataclass(frozen=True, slots=True, eq=False)
class Job:
    """
    A URL that needs to be crawled, with its store-assigned ID.

    Ordering (used by per-host queues):
      1. robots.txt jobs before everything else
      2. http before any other protocol
      3. lower id first

    Identity is the id alone: two Job objects with the same id are the same job.
    """

    id: int
    locator: Locator

    def __post_init__(self) -> None:
        if self.id < 0:
            raise ValueError(f"Job id must be non-negative, got {self.id}")

    @property
    def host(self) -> str:
        return self.locator.host

    @property
    def sort_key(self) -> tuple[bool, bool, int]:
        return (
            not self.locator.is_robots,
            self.locator.protocol != "http",
            self.id,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Job):
            return NotImplemented
        return self.id == other.id

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Job):
            return NotImplemented
        if self.id == other.id:
            return False
        return self.sort_key < other.sort_key

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        return f"{self.id} {self.locator.url}"


@dataclass(frozen=True, slots=True)
class RobotsRule:
    """One allow/disallow directive for a protocol + host + path prefix."""

    protocol: str
    host: str
    path_prefix: str
    allowed: bool

    def matches(self, path: str) -> bool:
        return path.startswith(self.path_prefix)

    def __str__(self) -> str:
        return f"{self.protocol}://{self.host}{self.path_prefix} {str(self.allowed).lower()}"


RobotsRuleSet = frozenset[RobotsRule]


# ============================================================================
# Fetch Records
# ============================================================================

class HtmlDocument(BaseModel):
    """
    An HTML resource returned by a ContentFetcher.

    `url` is the final URL after redirects and is the base for relative links.
    """
    url: str
    status_code: int = 200
    content_type: Optional[str] = None
    content: str = ""


class FetchLog(BaseModel):
    """
    Log entry for a single fetch operation.
    """
    url: str

    status_code: Optional[int] = None  # HTTP status
    latency_ms: Optional[int] = None  # Time to response
    bytes_received: Optional[int] = None

    error_code: Optional[FetchErrorCode] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


# ============================================================================
# Worker Reporting
# ============================================================================

class WorkerReport(BaseModel):
    """
    Outcome of one worker's crawl loop.

    Store failures end the loop and are recorded here rather than raised out
    of the worker thread.
    """
    worker_id: str

    status: WorkerStatus = WorkerStatus.RUNNING
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    ended_at: Optional[datetime] = None

    robots_count: int = 0
    html_count: int = 0
    cancelled_count: int = 0

    error_type: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def jobs_processed(self) -> int:
        return self.robots_count + self.html_count + self.cancelled_count
