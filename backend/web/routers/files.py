"""Sandbox browsing endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from agent import SeeqAgent
from backend.web.core.dependencies import get_agent
from backend.web.models.requests import OpenFileRequest

router = APIRouter(prefix="/api/files", tags=["files"])


@router.get("/tree")
async def file_tree(
    agent: Annotated[SeeqAgent, Depends(get_agent)],
    path: str | None = Query(default=None),
) -> dict[str, Any]:
    """Immediate children of ``path`` (default: sandbox root) plus one level of grandchildren.

    Absolute paths outside the sandbox root are rejected with 400.
    """
    return await agent.confined_operations.one_level_tree(path or "")


@router.post("/open")
async def open_file(
    payload: OpenFileRequest,
    agent: Annotated[SeeqAgent, Depends(get_agent)],
) -> dict[str, Any]:
    target = await agent.confined_operations.open(payload.path)
    return {"opened": target}
