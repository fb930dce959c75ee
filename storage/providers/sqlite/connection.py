"""Shared aiosqlite connection handling for the sqlite repos."""

from __future__ import annotations

import asyncio
from pathlib import Path

import aiosqlite

DEFAULT_DB_PATH = Path.home() / ".seeq" / "seeq.db"


class AsyncSQLiteRepo:
    """Lazily opens one connection per repo and serializes write transactions.

    Subclasses provide ``_SCHEMA`` (executed once on first connect).
    """

    _SCHEMA = ""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self.db_path = Path(db_path) if db_path is not None else DEFAULT_DB_PATH
        self._conn: aiosqlite.Connection | None = None
        self._connect_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    async def _get_conn(self) -> aiosqlite.Connection:
        if self._conn is not None:
            return self._conn
        async with self._connect_lock:
            if self._conn is not None:
                return self._conn
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = await aiosqlite.connect(str(self.db_path))
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA synchronous=NORMAL")
            await conn.execute("PRAGMA foreign_keys=ON")
            if self._SCHEMA:
                await conn.executescript(self._SCHEMA)
                await conn.commit()
            self._conn = conn
            return conn

    async def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        await conn.close()
