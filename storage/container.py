"""Storage container: composition root for the sqlite repos."""

from __future__ import annotations

from pathlib import Path

from storage.contracts import HistoryRepo, TagIndexRepo
from storage.providers.sqlite.connection import DEFAULT_DB_PATH


class StorageContainer:
    """Builds each repo once and owns their connections.

    Both repos share one database file; each keeps its own connection.
    """

    _REPO_NAMES = ("tag_index_repo", "history_repo")

    def __init__(
        self,
        main_db_path: str | Path | None = None,
        *,
        max_history_description: int | None = None,
    ) -> None:
        self._main_db = Path(main_db_path) if main_db_path else DEFAULT_DB_PATH
        self._max_history_description = max_history_description
        self._repos: dict[str, object] = {}

    @property
    def db_path(self) -> Path:
        return self._main_db

    def tag_index_repo(self) -> TagIndexRepo:
        return self._build_repo("tag_index_repo", self._sqlite_tag_index_repo)

    def history_repo(self) -> HistoryRepo:
        return self._build_repo("history_repo", self._sqlite_history_repo)

    async def aclose(self) -> None:
        """Close every repo built so far."""
        repos, self._repos = self._repos, {}
        for repo in repos.values():
            await repo.close()

    def _build_repo(self, name: str, factory):
        if name not in self._REPO_NAMES:
            supported = ", ".join(self._REPO_NAMES)
            raise ValueError(f"Unknown repo name: {name}. Supported repo names: {supported}")
        repo = self._repos.get(name)
        if repo is None:
            repo = factory()
            self._repos[name] = repo
        return repo

    def _sqlite_tag_index_repo(self):
        from storage.providers.sqlite.tag_index_repo import SQLiteTagIndexRepo
        return SQLiteTagIndexRepo(db_path=self._main_db)

    def _sqlite_history_repo(self):
        from storage.providers.sqlite.history_repo import SQLiteHistoryRepo
        if self._max_history_description is None:
            return SQLiteHistoryRepo(db_path=self._main_db)
        return SQLiteHistoryRepo(db_path=self._main_db, max_description_length=self._max_history_description)
