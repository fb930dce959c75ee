"""Shared storage domain models, provider-neutral data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Operation(str, Enum):
    """Canonical operation names written to the audit log."""

    WRITE = "WRITE"
    READ = "READ"
    LIST_DIR = "LIST_DIR"
    DELETE = "DELETE"
    RENAME = "RENAME/MOVE"
    MKDIR = "MKDIR"
    COPY = "COPY"
    PROPERTIES = "PROPERTIES"
    SEARCH = "SEARCH"
    OPEN = "OPEN"
    LIST_TREE = "LIST_TREE"
    SCREEN_AGENT = "SCREEN_AGENT"


@dataclass
class FileRecord:
    """One indexed file. ``path`` is the unique key."""

    path: str
    name: str
    type: str
    description: str = ""
    tags: list[str] = field(default_factory=list)
    size: int = 0
    last_modified: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Candidate:
    """Path/description pair shown to the relevance judge and the planner."""

    path: str
    description: str = ""

    @classmethod
    def from_record(cls, record: FileRecord) -> Candidate:
        return cls(path=record.path, description=record.description)


@dataclass(frozen=True)
class OperationLogEntry:
    timestamp: str
    operation: str
    target: str | None = None


@dataclass
class HistoryRecord:
    id: str
    description: str
    file_paths: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
