"""Fetcher subsystem: host-fair scheduling, robots policy, and HTTP retrieval."""

from fetcher.http import HttpContentFetcher
from fetcher.politeness import HostFairScheduler
from fetcher.robots import RobotsPolicy, is_path_allowed, with_root_rule

__all__ = [
    "HttpContentFetcher",
    "HostFairScheduler",
    "RobotsPolicy",
    "is_path_allowed",
    "with_root_rule",
]
