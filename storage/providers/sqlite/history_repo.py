"""SQLite repository for agent action history."""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from pathlib import Path

import aiosqlite

from storage.models import HistoryRecord
from storage.providers.sqlite.connection import AsyncSQLiteRepo

MAX_DESCRIPTION_LENGTH = 50


class SQLiteHistoryRepo(AsyncSQLiteRepo):
    """Write-once history records: one row per completed action run."""

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS agent_history (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            id TEXT NOT NULL UNIQUE,
            description TEXT NOT NULL,
            file_paths TEXT NOT NULL DEFAULT '[]',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
    """

    def __init__(self, db_path: Path | str | None = None, max_description_length: int = MAX_DESCRIPTION_LENGTH) -> None:
        super().__init__(db_path)
        self.max_description_length = max_description_length

    async def append(self, description: str, file_paths: list[str]) -> HistoryRecord:
        description = (description or "").strip()[: self.max_description_length].strip()
        if not description:
            raise ValueError("History description must not be empty")
        now = datetime.now()
        record = HistoryRecord(
            id=uuid.uuid4().hex,
            description=description,
            file_paths=list(file_paths),
            created_at=now,
            updated_at=now,
        )
        conn = await self._get_conn()
        async with self._write_lock:
            await conn.execute(
                """
                INSERT INTO agent_history (id, description, file_paths, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.description,
                    json.dumps(record.file_paths),
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
            await conn.commit()
        return record

    async def list_recent(self, limit: int = 20) -> list[HistoryRecord]:
        if limit <= 0:
            return []
        conn = await self._get_conn()
        async with conn.execute(
            "SELECT * FROM agent_history ORDER BY seq DESC LIMIT ?",
            (limit,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_record(row) for row in rows]

    def _row_to_record(self, row: aiosqlite.Row) -> HistoryRecord:
        return HistoryRecord(
            id=row["id"],
            description=row["description"],
            file_paths=json.loads(row["file_paths"]) if row["file_paths"] else [],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
