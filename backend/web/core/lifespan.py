"""Application lifespan management."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

logger = logging.getLogger(__name__)


async def _index_in_background(agent) -> None:
    try:
        await agent.areindex()
    except Exception:
        logger.exception("Startup indexing failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown."""
    owns_agent = getattr(app.state, "agent", None) is None
    if owns_agent:
        from agent import create_seeq_agent

        app.state.agent = create_seeq_agent()

    agent = app.state.agent
    app.state.index_task: asyncio.Task | None = None
    if agent.settings.indexer.index_on_startup:
        app.state.index_task = asyncio.create_task(_index_in_background(agent))

    try:
        yield
    finally:
        task = app.state.index_task
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if owns_agent:
            try:
                await agent.aclose()
            except Exception as e:
                logger.warning("Agent cleanup error: %s", e)
            app.state.agent = None
