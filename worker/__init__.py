"""Worker module."""

from worker.loop import CrawlWorker, run_workers

__all__ = ["CrawlWorker", "run_workers"]
