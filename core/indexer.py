"""Recursive indexer: walk the sandbox and tag every file not yet indexed."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from core.classifier import Classifier, FileMetadata
from core.errors import CollaboratorFailure, IOFailure, UniqueKeyViolation
from storage.contracts import TagIndexRepo
from storage.models import FileRecord

logger = logging.getLogger(__name__)


@dataclass
class IndexReport:
    root: str
    indexed: list[str] = field(default_factory=list)
    skipped: int = 0
    degraded: list[str] = field(default_factory=list)
    failed_dirs: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class _Entry:
    name: str
    path: str
    is_dir: bool
    size: int
    mtime: float


def _scan(directory: str) -> list[_Entry]:
    entries: list[_Entry] = []
    with os.scandir(directory) as it:
        for entry in sorted(it, key=lambda e: e.name):
            if entry.is_symlink():
                continue
            st = entry.stat()
            entries.append(
                _Entry(
                    name=entry.name,
                    path=entry.path,
                    is_dir=entry.is_dir(),
                    size=st.st_size,
                    mtime=st.st_mtime,
                )
            )
    return entries


def file_type(name: str) -> str:
    """Extension without the dot, or "unknown"."""
    ext = os.path.splitext(name)[1].lstrip(".")
    return ext or "unknown"


class RecursiveIndexer:
    """Idempotent depth-first walk that populates the tag index.

    - files already in the index are skipped without a classifier call
    - the tag vocabulary is snapshotted once per run
    - a classifier failure indexes the file with empty metadata
    - an unreadable subdirectory is skipped; an unreadable root raises IOFailure
    - concurrent runs over the same root are single-flight: the later call returns None
    """

    def __init__(
        self,
        tag_index: TagIndexRepo,
        classifier: Classifier,
        *,
        exclude: list[str | Path] | None = None,
    ):
        self.tag_index = tag_index
        self.classifier = classifier
        self.exclude = {os.path.realpath(p) for p in (exclude or [])}
        self._running: set[str] = set()

    def is_running(self, root_dir: str | Path) -> bool:
        return os.path.realpath(root_dir) in self._running

    async def reindex(self, root_dir: str | Path) -> IndexReport | None:
        key = os.path.realpath(root_dir)
        # check-and-add happens without an await in between, so it is atomic on the event loop
        if key in self._running:
            logger.info("Indexing already in progress for %s; skipping", key)
            return None
        self._running.add(key)
        try:
            logger.info("Starting recursive file indexer for %s", root_dir)
            vocabulary = await self.tag_index.all_tags()
            report = IndexReport(root=str(root_dir))
            try:
                top = await asyncio.to_thread(_scan, str(root_dir))
            except OSError as e:
                raise IOFailure(str(root_dir), e.strerror or str(e)) from e
            await self._index_entries(top, vocabulary, report)
            logger.info(
                "File indexing complete: %d indexed, %d skipped, %d degraded",
                len(report.indexed),
                report.skipped,
                len(report.degraded),
            )
            return report
        finally:
            self._running.discard(key)

    async def _index_directory(self, directory: str, vocabulary: list[str], report: IndexReport) -> None:
        try:
            entries = await asyncio.to_thread(_scan, directory)
        except OSError as e:
            logger.warning("Skipping unreadable directory %s: %s", directory, e)
            report.failed_dirs.append(directory)
            return
        await self._index_entries(entries, vocabulary, report)

    async def _index_entries(self, entries: list[_Entry], vocabulary: list[str], report: IndexReport) -> None:
        for entry in entries:
            if os.path.realpath(entry.path) in self.exclude:
                continue
            if entry.is_dir:
                await self._index_directory(entry.path, vocabulary, report)
                continue
            await self._index_file(entry, vocabulary, report)

    async def _index_file(self, entry: _Entry, vocabulary: list[str], report: IndexReport) -> None:
        if await self.tag_index.find_by_path(entry.path) is not None:
            report.skipped += 1
            return

        logger.info("Indexing file: %s", entry.path)
        try:
            metadata = await self.classifier.classify_file(entry.name, vocabulary)
        except CollaboratorFailure as e:
            logger.warning("Error generating file metadata for %s: %s", entry.name, e)
            metadata = FileMetadata()
            report.degraded.append(entry.path)

        record = FileRecord(
            path=entry.path,
            name=entry.name,
            type=file_type(entry.name),
            description=metadata.description,
            tags=list(metadata.tags),
            size=entry.size,
            last_modified=datetime.fromtimestamp(entry.mtime),
        )
        try:
            await self.tag_index.insert(record)
        except UniqueKeyViolation:
            # indexed concurrently by another writer between the lookup and the insert
            report.skipped += 1
            return
        report.indexed.append(entry.path)
        logger.info("Indexed: %s -> [%s]", entry.name, ", ".join(record.tags))
