"""Storage repository contracts."""

from __future__ import annotations

from typing import Protocol

from storage.models import FileRecord, HistoryRecord


class TagIndexRepo(Protocol):
    """Persistence contract for per-file tag metadata."""

    async def find_by_path(self, path: str) -> FileRecord | None:
        """Load the record for ``path`` or None."""

    async def find_by_tags(self, tags: set[str] | list[str]) -> list[FileRecord]:
        """Records carrying any of ``tags`` (union, not intersection)."""

    async def all_tags(self) -> list[str]:
        """Deduplicated tag vocabulary across all records."""

    async def insert(self, record: FileRecord) -> FileRecord:
        """Insert a new record. Raises UniqueKeyViolation if ``path`` exists."""

    async def remove(self, path: str) -> bool:
        """Delete the record for ``path``; True when a row was removed."""

    async def count(self) -> int:
        """Number of indexed files."""

    async def close(self) -> None:
        """Release the underlying connection."""


class HistoryRepo(Protocol):
    """Persistence contract for agent action history."""

    async def append(self, description: str, file_paths: list[str]) -> HistoryRecord:
        """Create one immutable history record."""

    async def list_recent(self, limit: int = 20) -> list[HistoryRecord]:
        """Most recent records, newest first."""

    async def close(self) -> None:
        """Release the underlying connection."""
