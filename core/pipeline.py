"""
Collaborator interfaces for polite-crawler.

Defines the contract between the scheduler/workers and the two external
collaborators:
- JobStore: durable job, rule and document state plus host/extension policy
- ContentFetcher: network retrieval of robots.txt files and HTML documents

This is intentionally minimal:
- No retries (a failed store operation is fatal to the calling worker)
- No partial writes (a failing store operation records nothing)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from core.models import HtmlDocument, Job, Locator, RobotsRule


class StoreError(Exception):
    """
    Raised by every JobStore operation on any backing-storage failure.

    Wraps whatever the backend natively raised (sqlite3.Error, OSError, ...)
    so callers handle a single error type.
    """

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.cause = cause
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown failure"
        super().__init__(f"{operation} failed ({detail})")


# ============================================================================
# Collaborator Interfaces
# ============================================================================

class JobStore(ABC):
    """
    Persistence collaborator consumed by the scheduler.

    Responsibilities:
    - Track which jobs are pending and which are complete
    - Persist robots rules and decide which pending jobs they disallow
    - Filter discovered links (dedup, whitelist, blacklists, robots)
    - Persist document content
    """

    @abstractmethod
    def load_pending_jobs(self) -> set[Job]:
        """
        Get every job that has not been completed yet.

        Raises:
            StoreError: On any backing-storage failure
        """
        pass

    @abstractmethod
    def complete_robots(self, job: Job, rules: Iterable[RobotsRule]) -> set[Job]:
        """
        Record rules from a robots.txt file and mark that file complete.

        Args:
            job: The robots.txt job that was crawled
            rules: Rules parsed from the file (a root allow rule is added if missing)

        Returns:
            Previously pending jobs the new rules disallow; they have been deleted

        Raises:
            StoreError: On any backing-storage failure
        """
        pass

    @abstractmethod
    def complete_html(self, job: Job, links: Iterable[Locator], content: str) -> set[Job]:
        """
        Record a crawled HTML document and admit the links it contains.

        Args:
            job: The HTML job that was crawled
            links: Canonical outbound links found in the document
            content: Raw document content

        Returns:
            Newly created jobs, including robots.txt jobs for hosts seen for the first time

        Raises:
            StoreError: On any backing-storage failure
        """
        pass

    @abstractmethod
    def cancel_html(self, job: Job) -> None:
        """
        Mark an HTML job complete without content.

        Raises:
            StoreError: On any backing-storage failure
        """
        pass


class ContentFetcher(ABC):
    """
    Network collaborator consumed by workers.

    Never raises for "not found" or "not applicable"; returns None instead.
    """

    @abstractmethod
    def fetch_robots_text(self, locator: Locator) -> Optional[list[str]]:
        """Return the lines of a robots.txt file, or None when there is none."""
        pass

    @abstractmethod
    def fetch_html(self, locator: Locator) -> Optional[HtmlDocument]:
        """Return the HTML document, or None if unreachable or not HTML."""
        pass
