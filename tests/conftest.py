"""
Shared pytest fixtures and configuration for polite-crawler tests.
"""

from __future__ import annotations

import json
from typing import Iterable, Optional

import pytest

from core.models import HtmlDocument, Job, Locator, RobotsRule
from core.pipeline import ContentFetcher, JobStore, StoreError


def make_job(job_id: int, url: str) -> Job:
    """Build a Job from an absolute URL."""
    return Job(id=job_id, locator=Locator.from_url(url))


def parse_json_lines(captured: str) -> list[dict[str, object]]:
    """Decode structured log lines emitted to stdout."""
    lines = [line for line in captured.splitlines() if line.strip()]
    return [json.loads(line) for line in lines]


# ============================================================================
# Fakes: collaborators
# ============================================================================

class FakeJobStore(JobStore):
    """
    In-memory JobStore driven by per-job canned results.

    `robots_results[job_id]` is what complete_robots returns for that job,
    `html_results[job_id]` is what complete_html returns.
    Operations listed in `fail_on` raise StoreError.
    """

    def __init__(
        self,
        pending: Iterable[Job] = (),
        robots_results: Optional[dict[int, set[Job]]] = None,
        html_results: Optional[dict[int, set[Job]]] = None,
        fail_on: Iterable[str] = (),
    ) -> None:
        self.pending = set(pending)
        self.robots_results = robots_results or {}
        self.html_results = html_results or {}
        self.fail_on = set(fail_on)
        self.calls: list[tuple[str, int]] = []
        self.rules: dict[int, frozenset[RobotsRule]] = {}
        self.links: dict[int, set[Locator]] = {}
        self.contents: dict[int, str] = {}

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise StoreError(operation, RuntimeError("backing store unavailable"))

    def load_pending_jobs(self) -> set[Job]:
        self._check("load_pending_jobs")
        return set(self.pending)

    def complete_robots(self, job: Job, rules: Iterable[RobotsRule]) -> set[Job]:
        self._check("complete_robots")
        self.calls.append(("complete_robots", job.id))
        self.rules[job.id] = frozenset(rules)
        return set(self.robots_results.get(job.id, set()))

    def complete_html(self, job: Job, links: Iterable[Locator], content: str) -> set[Job]:
        self._check("complete_html")
        self.calls.append(("complete_html", job.id))
        self.links[job.id] = set(links)
        self.contents[job.id] = content
        return set(self.html_results.get(job.id, set()))

    def cancel_html(self, job: Job) -> None:
        self._check("cancel_html")
        self.calls.append(("cancel_html", job.id))


class FakeFetcher(ContentFetcher):
    """Dictionary-backed ContentFetcher keyed by URL; missing keys mean absent."""

    def __init__(
        self,
        robots: Optional[dict[str, list[str]]] = None,
        pages: Optional[dict[str, str]] = None,
    ) -> None:
        self.robots = robots or {}
        self.pages = pages or {}
        self.requested: list[str] = []

    def fetch_robots_text(self, locator: Locator) -> Optional[list[str]]:
        self.requested.append(locator.url)
        return self.robots.get(locator.url)

    def fetch_html(self, locator: Locator) -> Optional[HtmlDocument]:
        self.requested.append(locator.url)
        content = self.pages.get(locator.url)
        if content is None:
            return None
        return HtmlDocument(url=locator.url, content_type="text/html", content=content)


class FakeClock:
    """
    Manual clock with a sleep that may wake early.

    The first `early_wakeups` sleeps advance time by only half of what was
    requested; later sleeps advance by the full amount.
    """

    def __init__(self, start: float = 0.0, early_wakeups: int = 0) -> None:
        self.now = start
        self.early_wakeups = early_wakeups
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if self.early_wakeups > 0:
            self.early_wakeups -= 1
            self.now += seconds / 2
        else:
            self.now += seconds


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def temp_db(tmp_path):
    """Temporary SQLite database path for testing."""
    return tmp_path / "crawler.db"


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "contract: value and interface contract tests")
    config.addinivalue_line("markers", "integration: component tests with fake or temporary collaborators")
