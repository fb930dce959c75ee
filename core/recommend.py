"""Screen-share recommendations from OCR text."""

from __future__ import annotations

import asyncio
import logging

from core.classifier import NO_SCREEN_MATCH_REPLY, Recommendation, Recommender
from core.retrieval import RetrievalPipeline
from sandbox.audit import AuditLog
from storage.models import Operation

logger = logging.getLogger(__name__)

SCREEN_TARGET = "Current Tab"


class ScreenRecommender:
    """Suggest indexed files relevant to what is on the user's screen.

    Read-only: it never calls the OperationExecutor. Returned paths pass the
    same verbatim filter as retrieval, so only indexed candidates come back.
    """

    def __init__(self, pipeline: RetrievalPipeline, recommender: Recommender, audit: AuditLog):
        self.pipeline = pipeline
        self.recommender = recommender
        self.audit = audit

    async def recommend(self, screen_text: str) -> Recommendation:
        await asyncio.to_thread(self.audit.append, Operation.SCREEN_AGENT, SCREEN_TARGET)
        logger.info("Screen text received (%d chars)", len(screen_text))

        result = await self.pipeline.run(screen_text)
        if not result.selected:
            return Recommendation(output=NO_SCREEN_MATCH_REPLY, file_paths=[])

        raw = await self.recommender.recommend(screen_text, result.selected)
        allowed = {c.path for c in result.selected}
        paths: list[str] = []
        for path in raw.file_paths:
            if path not in allowed:
                logger.warning("Dropping fabricated path from recommender: %r", path)
                continue
            if path not in paths:
                paths.append(path)
        logger.info("Recommended files: %s", paths)
        return Recommendation(output=raw.output, file_paths=paths)
