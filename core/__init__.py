"""Core module for polite-crawler."""

from core.models import (
    FetchErrorCode,
    FetchLog,
    HtmlDocument,
    Job,
    Locator,
    RobotsRule,
    WorkerReport,
    WorkerStatus,
)
from core.config import CrawlConfig
from core.pipeline import ContentFetcher, JobStore, StoreError

__all__ = [
    "FetchErrorCode",
    "FetchLog",
    "HtmlDocument",
    "Job",
    "Locator",
    "RobotsRule",
    "WorkerReport",
    "WorkerStatus",
    "CrawlConfig",
    "ContentFetcher",
    "JobStore",
    "StoreError",
]
