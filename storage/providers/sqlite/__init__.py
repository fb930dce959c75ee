"""SQLite storage provider implementations."""

from .history_repo import SQLiteHistoryRepo
from .tag_index_repo import SQLiteTagIndexRepo

__all__ = [
    "SQLiteTagIndexRepo",
    "SQLiteHistoryRepo",
]
