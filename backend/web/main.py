"""Seeq Web Backend - FastAPI Application."""

import os
import subprocess

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.web.core.errors import register_error_handlers
from backend.web.core.lifespan import lifespan
from backend.web.routers import agent as agent_router
from backend.web.routers import files, history

# browser clients are served from the same host
LOCAL_ORIGIN_RE = r"https?://(localhost|127\.0\.0\.1|\[::1\])(:\d+)?"


def create_app(agent=None) -> FastAPI:
    """Build the app; ``agent`` is used as-is, otherwise the lifespan creates one from config."""
    app = FastAPI(title="Seeq Web Backend", lifespan=lifespan)
    app.state.agent = agent

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=LOCAL_ORIGIN_RE,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(agent_router.router)
    app.include_router(files.router)
    app.include_router(history.router)
    return app


app = create_app()


def _resolve_port() -> int:
    """Resolve backend port: env var > git worktree config > default 8001."""
    port = os.environ.get("SEEQ_BACKEND_PORT") or os.environ.get("PORT")
    if port:
        return int(port)
    try:
        result = subprocess.run(
            ["git", "config", "--worktree", "--get", "worktree.ports.backend"],
            capture_output=True, text=True, timeout=3,
        )
        if result.returncode == 0 and result.stdout.strip():
            return int(result.stdout.strip())
    except (subprocess.TimeoutExpired, ValueError, FileNotFoundError):
        pass
    return 8001


def main() -> None:
    # @@@port-precedence - SEEQ_BACKEND_PORT > PORT > git worktree config > 8001
    port = _resolve_port()
    # @@@loopback-default - the API opens and lists host files; SEEQ_BACKEND_HOST widens the bind explicitly.
    host = os.environ.get("SEEQ_BACKEND_HOST", "127.0.0.1")
    # @@@module-launch-target - Package-qualified target keeps module launch (`python -m backend.web.main`) import-safe.
    uvicorn.run("backend.web.main:app", host=host, port=port)


if __name__ == "__main__":
    main()
