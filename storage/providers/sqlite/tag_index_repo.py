"""SQLite repository for the file tag index."""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import datetime

import aiosqlite

from core.errors import UniqueKeyViolation
from storage.models import FileRecord
from storage.providers.sqlite.connection import AsyncSQLiteRepo


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _clean_tags(tags: list[str]) -> list[str]:
    seen: dict[str, None] = {}
    for tag in tags:
        tag = str(tag).strip()
        if tag:
            seen.setdefault(tag, None)
    return list(seen)


class SQLiteTagIndexRepo(AsyncSQLiteRepo):
    """Repository boundary for the files / file_tags tables.

    ``files.path`` is the unique key; ``file_tags`` carries the secondary
    index used for any-of tag membership queries.
    """

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS files (
            path TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            type TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            size INTEGER NOT NULL DEFAULT 0,
            last_modified TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        CREATE TABLE IF NOT EXISTS file_tags (
            path TEXT NOT NULL REFERENCES files(path) ON DELETE CASCADE,
            tag TEXT NOT NULL,
            PRIMARY KEY (path, tag)
        );
        CREATE INDEX IF NOT EXISTS idx_file_tags_tag ON file_tags(tag);
    """

    async def find_by_path(self, path: str) -> FileRecord | None:
        conn = await self._get_conn()
        async with conn.execute("SELECT * FROM files WHERE path = ?", (path,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        async with conn.execute("SELECT tag FROM file_tags WHERE path = ? ORDER BY rowid ASC", (path,)) as cursor:
            tag_rows = await cursor.fetchall()
        return self._row_to_record(row, [tag_row["tag"] for tag_row in tag_rows])

    async def find_by_tags(self, tags: set[str] | list[str]) -> list[FileRecord]:
        wanted = _clean_tags(list(tags))
        if not wanted:
            return []
        conn = await self._get_conn()
        placeholders = ",".join("?" * len(wanted))
        # @@@param_sql - tags come from model output; keep the IN-clause parameterized.
        async with conn.execute(
            f"""
            SELECT * FROM files
            WHERE path IN (SELECT DISTINCT path FROM file_tags WHERE tag IN ({placeholders}))
            ORDER BY path ASC
            """,
            wanted,
        ) as cursor:
            rows = await cursor.fetchall()
        async with conn.execute(
            f"""
            SELECT path, tag FROM file_tags
            WHERE path IN (SELECT DISTINCT path FROM file_tags WHERE tag IN ({placeholders}))
            ORDER BY rowid ASC
            """,
            wanted,
        ) as cursor:
            tag_rows = await cursor.fetchall()
        tag_map: dict[str, list[str]] = {}
        for tag_row in tag_rows:
            tag_map.setdefault(tag_row["path"], []).append(tag_row["tag"])
        return [self._row_to_record(row, tag_map.get(row["path"], [])) for row in rows]

    async def all_tags(self) -> list[str]:
        conn = await self._get_conn()
        async with conn.execute(
            "SELECT tag FROM file_tags GROUP BY tag ORDER BY MIN(rowid) ASC"
        ) as cursor:
            rows = await cursor.fetchall()
        return [row["tag"] for row in rows]

    async def insert(self, record: FileRecord) -> FileRecord:
        now = datetime.now()
        record = replace(
            record,
            tags=_clean_tags(record.tags),
            created_at=record.created_at or now,
            updated_at=now,
        )
        conn = await self._get_conn()
        async with self._write_lock:
            try:
                await conn.execute(
                    """
                    INSERT INTO files
                    (path, name, type, description, size, last_modified, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.path,
                        record.name,
                        record.type,
                        record.description,
                        record.size,
                        _ts(record.last_modified),
                        _ts(record.created_at),
                        _ts(record.updated_at),
                    ),
                )
            except sqlite3.IntegrityError as e:
                await conn.rollback()
                raise UniqueKeyViolation(record.path) from e
            await conn.executemany(
                "INSERT INTO file_tags (path, tag) VALUES (?, ?)",
                [(record.path, tag) for tag in record.tags],
            )
            await conn.commit()
        return record

    async def remove(self, path: str) -> bool:
        conn = await self._get_conn()
        async with self._write_lock:
            cursor = await conn.execute("DELETE FROM files WHERE path = ?", (path,))
            await conn.commit()
            return cursor.rowcount > 0

    async def count(self) -> int:
        conn = await self._get_conn()
        async with conn.execute("SELECT COUNT(*) FROM files") as cursor:
            row = await cursor.fetchone()
        return int(row[0])

    def _row_to_record(self, row: aiosqlite.Row, tags: list[str]) -> FileRecord:
        return FileRecord(
            path=row["path"],
            name=row["name"],
            type=row["type"],
            description=row["description"],
            tags=tags,
            size=row["size"],
            last_modified=_parse_ts(row["last_modified"]),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )
