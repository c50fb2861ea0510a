"""Host-fair job scheduling with per-host politeness delay."""

from __future__ import annotations

import heapq
import threading
import time
from collections import deque
from typing import Callable, Iterable

from core.config import CrawlConfig
from core.models import Job, Locator, RobotsRule
from core.pipeline import JobStore


class HostFairScheduler:
    """
    Hand out crawl jobs to concurrent workers.

    Guarantees:
    - Per host, jobs leave in Job order (robots.txt first, http first, lowest id)
    - Across hosts, jobs leave round-robin: one job per populated host per round
    - Two releases for the same host are at least `crawl_delay_seconds` apart

    Every public method runs under one lock, including the politeness wait in
    acquire_job, so a worker waiting out one host's delay blocks all others.
    """

    def __init__(
        self,
        store: JobStore,
        crawl_delay_seconds: float = CrawlConfig.DEFAULT_CRAWL_DELAY_SECONDS,
        safety_margin_seconds: float = CrawlConfig.DELAY_SAFETY_MARGIN_SECONDS,
        sleep_fn: Callable[[float], None] | None = None,
        clock_fn: Callable[[], float] | None = None,
    ) -> None:
        """Load all pending work from the store into per-host queues."""
        if crawl_delay_seconds < 0:
            raise ValueError("crawl_delay_seconds must be >= 0")
        if safety_margin_seconds < 0:
            raise ValueError("safety_margin_seconds must be >= 0")

        self.store = store
        self.crawl_delay_seconds = crawl_delay_seconds
        self.safety_margin_seconds = safety_margin_seconds

        self._sleep = sleep_fn or time.sleep
        self._clock = clock_fn or time.monotonic

        self._lock = threading.Lock()
        self._host_queues: dict[str, list[Job]] = {}
        self._round: deque[Job] = deque()
        self._last_release: dict[str, float] = {}

        for job in store.load_pending_jobs():
            self._enqueue(job)

    def acquire_job(self) -> Job | None:
        """
        Release the next job, waiting out the host's politeness delay if needed.

        Returns None once no work remains anywhere.
        """
        with self._lock:
            if not self._round:
                self._refill_round()
            if not self._round:
                return None

            job = self._round.popleft()
            previous = self._last_release.get(job.host)
            if previous is not None:
                self._wait_for_host(previous)
            self._last_release[job.host] = self._clock()
            return job

    def finish_robots(self, job: Job, rules: Iterable[RobotsRule]) -> None:
        """Persist robots rules and drop every held job they disallow."""
        with self._lock:
            disallowed = self.store.complete_robots(job, frozenset(rules))
            if disallowed:
                self._discard(disallowed)

    def finish_html(self, job: Job, links: Iterable[Locator], content: str) -> None:
        """Persist a document and queue the jobs its links produced."""
        with self._lock:
            for new_job in self.store.complete_html(job, set(links), content):
                self._enqueue(new_job)

    def cancel_html(self, job: Job) -> None:
        """Record that a job's document could not be obtained."""
        with self._lock:
            self.store.cancel_html(job)

    def pending_count(self) -> int:
        """Number of jobs held by the scheduler (queued or in the current round)."""
        with self._lock:
            return len(self._round) + sum(len(queue) for queue in self._host_queues.values())

    def last_release(self, host: str) -> float | None:
        """Clock reading of the last release for `host`, if any."""
        with self._lock:
            return self._last_release.get(host)

    def _wait_for_host(self, previous_release: float) -> None:
        """Block until the delay since `previous_release` has fully elapsed."""
        ready_at = previous_release + self.crawl_delay_seconds + self.safety_margin_seconds
        remaining = ready_at - self._clock()
        # A sleep may return early; only the clock decides when the wait is over.
        while remaining > 0:
            self._sleep(remaining)
            remaining = ready_at - self._clock()

    def _refill_round(self) -> None:
        """Move the head job of every host queue into the round buffer."""
        for host, queue in list(self._host_queues.items()):
            self._round.append(heapq.heappop(queue))
            if not queue:
                del self._host_queues[host]

    def _enqueue(self, job: Job) -> None:
        heapq.heappush(self._host_queues.setdefault(job.host, []), job)

    def _discard(self, jobs: Iterable[Job]) -> None:
        """Remove jobs from the round buffer and host queues, rebuilding what changed."""
        doomed = set(jobs)
        if any(job in doomed for job in self._round):
            self._round = deque(job for job in self._round if job not in doomed)

        for host in {job.host for job in doomed}:
            queue = self._host_queues.get(host)
            if queue is None:
                continue
            kept = [job for job in queue if job not in doomed]
            if not kept:
                del self._host_queues[host]
            elif len(kept) != len(queue):
                heapq.heapify(kept)
                self._host_queues[host] = kept
