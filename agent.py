"""
Seeq - file retrieval and action agent for a single sandbox directory

Wiring:
- config: three-tier SeeqSettings (defaults < user < project < env < overrides)
- storage: SQLite tag index + agent history behind StorageContainer
- sandbox: PathResolver, AuditLog and OperationExecutor over the sandbox root
- core: RecursiveIndexer, RetrievalPipeline, ActionExecutor, ScreenRecommender

Every filesystem mutation goes through the OperationExecutor and is
restricted to paths the retrieval pipeline verified against the index.
"""

import asyncio
import logging
import os
import threading
from pathlib import Path
from typing import Any

from config import SeeqSettings, load_config

# Load .env file
_env_file = Path(__file__).parent / ".env"
if _env_file.exists():
    for line in _env_file.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            key, value = line.split("=", 1)
            os.environ.setdefault(key, value)

from core.actions import ActionExecutor, ActionOutcome
from core.classifier import (
    ActionPlanner,
    Classifier,
    LLMActionPlanner,
    LLMClassifier,
    LLMRecommender,
    LLMRelevanceJudge,
    Recommendation,
    Recommender,
    RelevanceJudge,
)
from core.indexer import IndexReport, RecursiveIndexer
from core.model_params import create_chat_model
from core.recommend import ScreenRecommender
from core.retrieval import RetrievalPipeline
from sandbox import AuditLog, OperationExecutor, PathResolver
from sandbox.opener import Opener
from storage.container import StorageContainer
from storage.models import HistoryRecord, OperationLogEntry

logger = logging.getLogger(__name__)

GENERIC_ERROR_REPLY = "Error processing request"


class SeeqAgent:
    """
    Seeq Agent - natural-language file retrieval over a sandbox

    Flow for a chat request:
    1. RetrievalPipeline: text -> vocabulary keywords -> tag candidates -> verified subset
    2. ActionExecutor: planner open/delete calls restricted to that subset
    3. HistoryRecord with a five-word summary and the touched paths

    Collaborators default to LangChain chat models built from ``settings.model``;
    pass them explicitly to run without a model provider.
    """

    def __init__(
        self,
        sandbox_root: str | Path | None = None,
        *,
        settings: SeeqSettings | None = None,
        storage_container: StorageContainer | None = None,
        classifier: Classifier | None = None,
        relevance_judge: RelevanceJudge | None = None,
        planner: ActionPlanner | None = None,
        recommender: Recommender | None = None,
        opener: Opener | None = None,
        **overrides: Any,
    ):
        """
        Initialize Seeq Agent

        Args:
            sandbox_root: Sandbox directory (all relative paths resolve under it)
            settings: Pre-loaded settings; skips the config loader when given
            storage_container: Optional pre-built storage container
            classifier / relevance_judge / planner / recommender: collaborator overrides
            opener: Default-application opener override
            **overrides: Nested config overrides, e.g. ``model={"model": "gpt-5"}``
        """
        self.settings = settings or load_config(sandbox_root, overrides or None)

        sandbox_cfg = self.settings.sandbox
        self.root = sandbox_cfg.root_path
        self.root.mkdir(parents=True, exist_ok=True)

        self.storage = storage_container or StorageContainer(
            self.settings.storage.db_file,
            max_history_description=self.settings.history.max_description_length,
        )
        self.tag_index = self.storage.tag_index_repo()
        self.history = self.storage.history_repo()

        self.resolver = PathResolver(self.root, strict=sandbox_cfg.strict_paths)
        self.audit = AuditLog(sandbox_cfg.audit_log_path)
        self.operations = OperationExecutor(self.resolver, self.audit, self.tag_index, opener=opener)
        # HTTP callers never reach absolute paths outside the root, whatever strict_paths says
        self.confined_operations = self.operations.confined()

        classifier, relevance_judge, planner, recommender = self._init_collaborators(
            classifier, relevance_judge, planner, recommender
        )
        self.classifier = classifier

        # relative excludes are sandbox paths, not CWD paths
        extra = [Path(p).expanduser() for p in self.settings.indexer.exclude]
        exclude = [
            self.audit.log_path.parent,
            self.root / ".seeq",
            *(p if p.is_absolute() else self.root / p for p in extra),
        ]
        self.indexer = RecursiveIndexer(self.tag_index, classifier, exclude=exclude)
        self.pipeline = RetrievalPipeline(self.tag_index, classifier, relevance_judge)
        self.actions = ActionExecutor(self.operations, planner, classifier, self.history)
        self.screen = ScreenRecommender(self.pipeline, recommender, self.audit)

        logger.info("Seeq agent ready: root=%s db=%s", self.root, self.storage.db_path)

    def _init_collaborators(
        self,
        classifier: Classifier | None,
        relevance_judge: RelevanceJudge | None,
        planner: ActionPlanner | None,
        recommender: Recommender | None,
    ) -> tuple[Classifier, RelevanceJudge, ActionPlanner, Recommender]:
        """Build LLM-backed collaborators for any role not supplied by the caller."""
        model_cfg = self.settings.model
        temps = model_cfg.temperatures
        models: dict[float, Any] = {}

        def _model(temperature: float) -> Any:
            # roles sharing a temperature share one client
            if temperature not in models:
                models[temperature] = create_chat_model(model_cfg, temperature=temperature)
            return models[temperature]

        if classifier is None:
            classifier = LLMClassifier(_model(temps.indexing), summary_model=_model(temps.summary))
        if relevance_judge is None:
            relevance_judge = LLMRelevanceJudge(_model(temps.retrieval))
        if planner is None:
            planner = LLMActionPlanner(_model(temps.retrieval))
        if recommender is None:
            recommender = LLMRecommender(_model(temps.recommendation))
        return classifier, relevance_judge, planner, recommender

    # ── Public API ──

    async def aquery(self, text: str) -> str:
        """Handle a chat request end to end; failures become a generic reply."""
        try:
            outcome = await self.arun(text)
        except Exception:
            logger.exception("Error processing request: %r", text)
            return GENERIC_ERROR_REPLY
        return outcome.reply

    async def arun(self, text: str) -> ActionOutcome:
        """Retrieval followed by action execution; errors propagate."""
        result = await self.pipeline.run(text)
        return await self.actions.execute(text, result.selected)

    async def areindex(self) -> IndexReport | None:
        """Walk the sandbox and index new files; None when a run is already active."""
        return await self.indexer.reindex(self.root)

    async def arecommend(self, screen_text: str) -> Recommendation:
        return await self.screen.recommend(screen_text)

    async def ahistory(self, limit: int | None = None) -> list[HistoryRecord]:
        return await self.history.list_recent(limit or self.settings.history.list_limit)

    def operations_log(self, limit: int = 50) -> list[OperationLogEntry]:
        return self.audit.tail(limit)

    async def aclose(self) -> None:
        await self.storage.aclose()

    def close(self) -> None:
        """Release storage connections from sync code."""
        self._run_async_cleanup(self.aclose, "storage")

    @staticmethod
    def _run_async_cleanup(coro_factory, label: str) -> None:
        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        if running_loop is None:
            asyncio.run(coro_factory())
            return

        error: list[Exception] = []

        def _runner() -> None:
            try:
                asyncio.run(coro_factory())
            except Exception as exc:
                error.append(exc)

        thread = threading.Thread(target=_runner, daemon=True)
        thread.start()
        thread.join()
        if error:
            raise RuntimeError(f"{label} cleanup failed: {error[0]}") from error[0]


def create_seeq_agent(
    sandbox_root: str | Path | None = None,
    model_name: str | None = None,
    api_key: str | None = None,
    **kwargs: Any,
) -> SeeqAgent:
    """Create Seeq Agent.

    Args:
        sandbox_root: Sandbox directory
        model_name: Model name (defaults to DEFAULT_MODEL via config)
        api_key: API key
        **kwargs: Passed through to SeeqAgent

    Examples:
        agent = create_seeq_agent()
        agent = create_seeq_agent(sandbox_root="~/Documents/uni", model_name="claude-sonnet-4-5-20250929")
    """
    model_overrides = {k: v for k, v in {"model": model_name, "api_key": api_key}.items() if v}
    if model_overrides:
        existing = kwargs.pop("model", {}) or {}
        kwargs["model"] = {**existing, **model_overrides}
    return SeeqAgent(sandbox_root=sandbox_root, **kwargs)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seeq_agent = create_seeq_agent()

    async def _demo() -> None:
        try:
            report = await seeq_agent.areindex()
            if report is not None:
                print(f"Indexed {len(report.indexed)} file(s), skipped {report.skipped}")
            print(await seeq_agent.aquery("open my math lecture notes"))
        finally:
            await seeq_agent.aclose()

    asyncio.run(_demo())
