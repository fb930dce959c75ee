"""FastAPI dependencies."""

from fastapi import HTTPException, Request

from agent import SeeqAgent


def get_agent(request: Request) -> SeeqAgent:
    agent = getattr(request.app.state, "agent", None)
    if agent is None:
        raise HTTPException(503, "Agent not initialized")
    return agent
