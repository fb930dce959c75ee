"""Read-only views: operations log and agent history."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from agent import SeeqAgent
from backend.web.core.dependencies import get_agent

router = APIRouter(prefix="/api", tags=["history"])


@router.get("/operations")
async def list_operations(
    agent: Annotated[SeeqAgent, Depends(get_agent)],
    limit: int = Query(default=50, ge=1, le=1000),
) -> dict[str, Any]:
    entries = agent.operations_log(limit)
    return {
        "entries": [
            {"timestamp": e.timestamp, "operation": e.operation, "target": e.target}
            for e in entries
        ]
    }


@router.get("/history")
async def list_history(
    agent: Annotated[SeeqAgent, Depends(get_agent)],
    limit: int | None = Query(default=None, ge=1, le=500),
) -> dict[str, Any]:
    records = await agent.ahistory(limit)
    return {
        "records": [
            {
                "id": r.id,
                "description": r.description,
                "filePaths": r.file_paths,
                "createdAt": r.created_at.isoformat() if r.created_at else None,
            }
            for r in records
        ]
    }
