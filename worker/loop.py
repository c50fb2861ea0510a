"""Crawl worker loop: acquire a job, fetch it, report the result back."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Any, Optional
from uuid import uuid4

from core.models import Job, WorkerReport, WorkerStatus
from core.pipeline import ContentFetcher, StoreError
from core.structured_logging import EventLogger, component_logger
from fetcher.politeness import HostFairScheduler
from fetcher.robots import RobotsPolicy
from parser.links import extract_links


class CrawlWorker:
    """
    One crawl loop sharing a scheduler and fetcher with its sibling workers.

    The loop ends normally when the scheduler has nothing left to hand out.
    A StoreError (or any other unexpected error) ends this worker only; it is
    logged and recorded on the returned report instead of being raised.
    """

    def __init__(
        self,
        scheduler: HostFairScheduler,
        fetcher: ContentFetcher,
        policy: RobotsPolicy | None = None,
        worker_id: str | None = None,
        event_logger: EventLogger | None = None,
    ) -> None:
        self.scheduler = scheduler
        self.fetcher = fetcher
        self.policy = policy or RobotsPolicy()
        self.worker_id = worker_id or str(uuid4())
        self.event_logger = event_logger or component_logger("worker")

    def _emit(self, event_type: str, **payload: Any) -> None:
        self.event_logger(event_type, {"worker_id": self.worker_id, **payload})

    def run(self) -> WorkerReport:
        """Process jobs until none remain or a failure ends the loop."""
        report = WorkerReport(worker_id=self.worker_id)
        job: Optional[Job] = None
        try:
            while True:
                job = self.scheduler.acquire_job()
                if job is None:
                    break
                self.process(job, report)
            report.status = WorkerStatus.COMPLETED
        except StoreError as exc:
            self._emit(
                "worker_store_error",
                level="error",
                url=job.locator.url if job else None,
                operation=exc.operation,
                error_type=type(exc.cause).__name__ if exc.cause is not None else type(exc).__name__,
                error=str(exc),
            )
            report.status = WorkerStatus.FAILED
            report.error_type = type(exc).__name__
            report.error_message = str(exc)
        except Exception as exc:
            self._emit(
                "worker_run_error",
                level="error",
                url=job.locator.url if job else None,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            report.status = WorkerStatus.FAILED
            report.error_type = type(exc).__name__
            report.error_message = str(exc)

        report.ended_at = datetime.now(UTC)
        self._emit(
            "worker_finished",
            status=report.status.value,
            robots=report.robots_count,
            html=report.html_count,
            cancelled=report.cancelled_count,
        )
        return report

    def process(self, job: Job, report: WorkerReport | None = None) -> None:
        """
        Handle one acquired job.

        Robots jobs: a missing file parses as empty input (allow everything).
        HTML jobs: a missing or non-HTML document cancels the job.
        """
        self._emit("worker_job_started", job_id=job.id, url=job.locator.url)
        locator = job.locator

        if locator.is_robots:
            lines = self.fetcher.fetch_robots_text(locator)
            rules = self.policy.parse(lines or [], locator.protocol, locator.host)
            self.scheduler.finish_robots(job, rules)
            if report is not None:
                report.robots_count += 1
            return

        document = self.fetcher.fetch_html(locator)
        if document is None:
            self.scheduler.cancel_html(job)
            if report is not None:
                report.cancelled_count += 1
            return

        links = extract_links(document)
        self.scheduler.finish_html(job, links, document.content)
        if report is not None:
            report.html_count += 1


def run_workers(
    scheduler: HostFairScheduler,
    fetcher: ContentFetcher,
    worker_count: int,
    policy: RobotsPolicy | None = None,
    event_logger: EventLogger | None = None,
) -> list[WorkerReport]:
    """
    Run `worker_count` CrawlWorkers on their own threads and wait for all of them.

    Returns one report per worker, in worker order.
    """
    if worker_count < 1:
        raise ValueError(f"worker_count must be at least 1, got {worker_count}")

    shared_policy = policy or RobotsPolicy()
    workers = [
        CrawlWorker(
            scheduler,
            fetcher,
            policy=shared_policy,
            worker_id=f"worker-{index}",
            event_logger=event_logger,
        )
        for index in range(worker_count)
    ]
    reports: list[Optional[WorkerReport]] = [None] * worker_count

    def _target(index: int) -> None:
        reports[index] = workers[index].run()

    threads = [
        threading.Thread(target=_target, args=(index,), name=workers[index].worker_id)
        for index in range(worker_count)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    return [report for report in reports if report is not None]
