"""Guarded filesystem operations inside the sandbox root.

Every public method resolves its input through PathResolver, performs the
filesystem work off the event loop, and writes exactly one audit line on
success. Failures surface as the core.errors taxonomy; nothing is logged
to the audit file for a failed call.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import stat
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

from core.errors import (
    InvalidOperationError,
    IOFailure,
    NotADirectoryFailure,
    NotFoundError,
    SeeqError,
    UniqueKeyViolation,
)
from sandbox.audit import AuditLog
from sandbox.opener import Opener, open_with_default_app
from sandbox.paths import PathResolver
from storage.contracts import TagIndexRepo
from storage.models import Operation

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class FileProperties:
    size: int
    is_file: bool
    is_directory: bool
    created: datetime
    modified: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "size": self.size,
            "isFile": self.is_file,
            "isDirectory": self.is_directory,
            "created": self.created.isoformat(),
            "modified": self.modified.isoformat(),
        }


async def _in_thread(target: str, fn: Callable[..., T], *args: Any) -> T:
    """Run blocking filesystem work in a worker thread, mapping OSError to the taxonomy."""
    try:
        return await asyncio.to_thread(fn, *args)
    except SeeqError:
        raise
    except FileNotFoundError as e:
        raise NotFoundError(target) from e
    except NotADirectoryError as e:
        raise NotADirectoryFailure(target) from e
    except OSError as e:
        raise IOFailure(target, e.strerror or str(e)) from e


def _sorted_entries(directory: str) -> list[os.DirEntry]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda e: e.name)


def _is_within(child: str, parent: str) -> bool:
    """True when ``child`` is ``parent`` itself or lies below it."""
    rel = os.path.relpath(os.path.realpath(child), os.path.realpath(parent))
    return rel == "." or not (rel == ".." or rel.startswith(".." + os.sep) or os.path.isabs(rel))


def _require_dir(target: str) -> None:
    if not os.path.exists(target):
        raise NotFoundError(target, f"Directory not found: {target}")
    if not os.path.isdir(target):
        raise NotADirectoryFailure(target)


class OperationExecutor:
    """Read/write/delete/rename/copy/list/properties/open within one sandbox."""

    def __init__(
        self,
        resolver: PathResolver,
        audit: AuditLog,
        tag_index: TagIndexRepo | None = None,
        *,
        opener: Opener | None = None,
    ):
        self.resolver = resolver
        self.audit = audit
        self.tag_index = tag_index
        self.opener = opener or open_with_default_app

    @property
    def root(self) -> Path:
        return self.resolver.root

    def confined(self) -> OperationExecutor:
        """Executor sharing this one's audit log, index and opener, rejecting absolute paths outside the root."""
        if self.resolver.strict:
            return self
        return OperationExecutor(
            PathResolver(self.root, strict=True), self.audit, self.tag_index, opener=self.opener
        )

    # ── Read / write ──

    async def write(self, path: str, content: str) -> str:
        target = self.resolver.resolve(path)

        def _write() -> None:
            Path(target).parent.mkdir(parents=True, exist_ok=True)
            with open(target, "w", encoding="utf-8") as f:
                f.write(content)

        await _in_thread(target, _write)
        await self._log(Operation.WRITE, target)
        return target

    async def read(self, path: str) -> str:
        target = self.resolver.resolve(path)

        def _read() -> str:
            if not os.path.isfile(target):
                raise NotFoundError(target, f"File not found: {target}")
            try:
                return Path(target).read_text(encoding="utf-8")
            except UnicodeDecodeError as e:
                raise IOFailure(target, "not valid UTF-8") from e

        content = await _in_thread(target, _read)
        await self._log(Operation.READ, target)
        return content

    # ── Directory listing ──

    async def list_dir(self, path: str = "") -> list[str]:
        target = self.resolver.resolve(path) if path else str(self.root)

        def _list() -> list[str]:
            _require_dir(target)
            return os.listdir(target)

        entries = await _in_thread(target, _list)
        await self._log(Operation.LIST_DIR, target)
        return sorted(entries)

    async def mkdir(self, path: str) -> str:
        target = self.resolver.resolve(path)
        await _in_thread(target, lambda: os.makedirs(target, exist_ok=True))
        await self._log(Operation.MKDIR, target)
        return target

    async def one_level_tree(self, path: str = "") -> dict[str, Any]:
        """Immediate children plus one level of grandchildren names.

        Shape: ``{"name", "rootFiles": [...], "folders": [{"name", "files", "folders"}]}``.
        """
        target = self.resolver.resolve(path) if path else str(self.root)

        def _build() -> dict[str, Any]:
            _require_dir(target)
            root_files: list[str] = []
            folders: list[dict[str, Any]] = []
            for entry in _sorted_entries(target):
                if entry.is_dir():
                    child_files: list[str] = []
                    child_folders: list[str] = []
                    for child in _sorted_entries(entry.path):
                        if child.is_dir():
                            child_folders.append(child.name)
                        elif child.is_file():
                            child_files.append(child.name)
                    folders.append({"name": entry.name, "files": child_files, "folders": child_folders})
                elif entry.is_file():
                    root_files.append(entry.name)
            return {
                "name": os.path.basename(target.rstrip(os.sep)) or self.root.name,
                "rootFiles": root_files,
                "folders": folders,
            }

        tree = await _in_thread(target, _build)
        await self._log(Operation.LIST_TREE, target)
        return tree

    # ── Mutations ──

    async def delete(self, path: str) -> str:
        target = self.resolver.resolve(path)

        def _check() -> None:
            if not os.path.lexists(target):
                raise NotFoundError(target, f"File not found: {target}")
            if os.path.isdir(target) and not os.path.islink(target):
                raise InvalidOperationError(f"Refusing to delete a directory: {target}")

        await _in_thread(target, _check)

        # @@@index-then-unlink - index row goes first; restored if the unlink itself fails.
        removed = None
        if self.tag_index is not None:
            removed = await self.tag_index.find_by_path(target)
            if removed is not None:
                await self.tag_index.remove(target)
        try:
            await _in_thread(target, os.unlink, target)
        except SeeqError:
            if removed is not None:
                await self._restore_index_row(removed)
            raise
        await self._log(Operation.DELETE, target)
        return target

    async def rename(self, old_path: str, new_path: str) -> str:
        source = self.resolver.resolve(old_path)
        dest = self.resolver.resolve(new_path)
        def _rename() -> None:
            if not os.path.lexists(source):
                raise NotFoundError(source, f"Source file not found: {source}")
            Path(dest).parent.mkdir(parents=True, exist_ok=True)
            os.rename(source, dest)

        await _in_thread(source, _rename)
        await self._log(Operation.RENAME, f"{source} -> {dest}")
        return dest

    async def copy(self, src: str, dest: str) -> str:
        source = self.resolver.resolve(src)
        target = self.resolver.resolve(dest)
        def _copy() -> str:
            if not os.path.exists(source):
                raise NotFoundError(source, f"Source not found: {source}")
            dest_path = target
            if os.path.isdir(dest_path):
                dest_path = os.path.join(dest_path, os.path.basename(source.rstrip(os.sep)))
            source_is_dir = os.path.isdir(source)
            if source_is_dir and _is_within(dest_path, source):
                raise InvalidOperationError("Cannot copy a folder into itself or its subfolder.")

            Path(dest_path).parent.mkdir(parents=True, exist_ok=True)
            if source_is_dir:
                shutil.copytree(source, dest_path, dirs_exist_ok=True)
            else:
                shutil.copy2(source, dest_path)
            return dest_path

        target = await _in_thread(source, _copy)
        await self._log(Operation.COPY, f"{source} -> {target}")
        return target

    # ── Metadata / search ──

    async def properties(self, path: str) -> FileProperties:
        target = self.resolver.resolve(path)
        def _stat() -> FileProperties:
            if not os.path.exists(target):
                raise NotFoundError(target, f"Target not found: {target}")
            st = os.stat(target)
            created = getattr(st, "st_birthtime", None) or st.st_ctime
            return FileProperties(
                size=st.st_size,
                is_file=stat.S_ISREG(st.st_mode),
                is_directory=stat.S_ISDIR(st.st_mode),
                created=datetime.fromtimestamp(created),
                modified=datetime.fromtimestamp(st.st_mtime),
            )

        props = await _in_thread(target, _stat)
        await self._log(Operation.PROPERTIES, target)
        return props

    async def search(self, query: str) -> list[str]:
        """Case-insensitive substring match over entry names, depth-first from the root."""
        needle = query.lower()
        root = str(self.root)

        def _walk() -> list[str]:
            results: list[str] = []

            def _visit(directory: str) -> None:
                for entry in _sorted_entries(directory):
                    if needle in entry.name.lower():
                        results.append(entry.path)
                    if entry.is_dir(follow_symlinks=False):
                        _visit(entry.path)

            _visit(root)
            return results

        results = await _in_thread(root, _walk)
        await self._log(Operation.SEARCH, query)
        return results

    async def open(self, path: str) -> str:
        """Open ``path`` with the host's default application."""
        target = self.resolver.resolve(path)
        if not await asyncio.to_thread(os.path.exists, target):
            raise NotFoundError(target, f"Target not found: {target}")
        logger.info("Opening %s with default application", target)
        await self.opener(target)
        await self._log(Operation.OPEN, target)
        return target

    # ── Helpers ──

    async def _log(self, operation: Operation, target: str) -> None:
        await asyncio.to_thread(self.audit.append, operation, target)

    async def _restore_index_row(self, record) -> None:
        try:
            await self.tag_index.insert(record)
        except UniqueKeyViolation:
            pass
        except Exception:
            logger.exception("Failed to restore index row for %s after unlink failure", record.path)
