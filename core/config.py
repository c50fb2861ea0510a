"""
Default crawl configuration for polite-crawler.

Design: everything defaults to "polite + slow". A host is never hit more often
than once per DEFAULT_CRAWL_DELAY_SECONDS, and robots.txt is always read before
any page on that host.

Values here are defaults; the CLI may override the delay and worker count per
run, but never the robots or protocol constraints.
"""

from typing import Set


class CrawlConfig:
    """
    Crawl settings shared by the scheduler, workers and fetcher.
    """

    # ========================================================================
    # Scheduling
    # ========================================================================

    # Minimum gap between two job releases for the same host
    DEFAULT_CRAWL_DELAY_SECONDS: float = 10.0
    """Politeness delay between releases for one host."""

    # Added on top of the delay so clock granularity never lets a release land early
    DELAY_SAFETY_MARGIN_SECONDS: float = 0.005
    """Fixed safety margin added to every politeness wait."""

    DEFAULT_WORKER_COUNT: int = 10
    """Number of concurrent worker threads for a crawl."""

    # ========================================================================
    # Robots.txt
    # ========================================================================

    ROBOTS_PATH: str = "/robots.txt"
    """Path of the robots file on every host."""

    ROBOTS_USER_AGENT_LINE: str = "User-agent: *"
    """Record header whose directives apply to this crawler."""

    # ========================================================================
    # Fetch-Layer Constraints
    # ========================================================================

    ALLOWED_PROTOCOLS: Set[str] = {"http", "https"}
    """Only HTTP(S) links become jobs."""

    DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}
    """Ports that may appear explicitly in a link without excluding it."""

    USER_AGENT: str = "polite-crawler/0.1 (+https://example.org/polite-crawler)"
    """User-Agent header (must be descriptive)."""

    FETCH_TIMEOUT_SECONDS: int = 30
    """Maximum time to wait for a single fetch (seconds)."""

    MAX_REDIRECTS: int = 5
    """Maximum redirect hops per fetch."""

    MAX_BODY_BYTES: int = 5_000_000
    """Maximum body size read for any fetched resource."""

    # ========================================================================
    # Storage
    # ========================================================================

    DEFAULT_DB_PATH: str = "crawler.db"
    """SQLite database used when --db is not given."""

    @classmethod
    def validate(cls) -> None:
        """
        Validate configuration at startup.

        Raises:
            AssertionError: If any constraint is violated.
        """
        assert (
            cls.DEFAULT_CRAWL_DELAY_SECONDS >= 0
        ), "DEFAULT_CRAWL_DELAY_SECONDS must be ≥0"

        assert (
            cls.DELAY_SAFETY_MARGIN_SECONDS >= 0
        ), "DELAY_SAFETY_MARGIN_SECONDS must be ≥0"

        assert (
            cls.DEFAULT_WORKER_COUNT >= 1
        ), "DEFAULT_WORKER_COUNT must be ≥1"

        assert (
            cls.ROBOTS_PATH.startswith("/")
        ), "ROBOTS_PATH must be absolute"

        assert (
            cls.ALLOWED_PROTOCOLS <= {"http", "https"}
        ), "ALLOWED_PROTOCOLS may only contain http and https"

        assert (
            cls.MAX_REDIRECTS >= 0
        ), "MAX_REDIRECTS must be ≥0"

        assert (
            cls.MAX_BODY_BYTES > 0
        ), "MAX_BODY_BYTES must be > 0"


# Validate at module import time
CrawlConfig.validate()
