"""Storage module."""

from storage.sqlite import SQLiteJobStore

__all__ = ["SQLiteJobStore"]
