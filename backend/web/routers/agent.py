"""Agent endpoints: chat query, screen recommendation, reindex."""

from dataclasses import asdict
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from agent import SeeqAgent
from backend.web.core.dependencies import get_agent
from backend.web.models.requests import QueryRequest, ScreenRequest

router = APIRouter(prefix="/api", tags=["agent"])


@router.post("/agent/query")
async def query_agent(
    payload: QueryRequest,
    agent: Annotated[SeeqAgent, Depends(get_agent)],
) -> dict[str, Any]:
    """Retrieve and act on files; failures come back as a generic reply."""
    reply = await agent.aquery(payload.message)
    return {"reply": reply}


@router.post("/agent/screen")
async def recommend_for_screen(
    payload: ScreenRequest,
    agent: Annotated[SeeqAgent, Depends(get_agent)],
) -> dict[str, Any]:
    recommendation = await agent.arecommend(payload.text)
    return {"output": recommendation.output, "filePaths": recommendation.file_paths}


@router.post("/index")
async def reindex(agent: Annotated[SeeqAgent, Depends(get_agent)]) -> dict[str, Any]:
    report = await agent.areindex()
    if report is None:
        return {"status": "already_running"}
    return {"status": "done", **asdict(report)}
