"""Hand a file to the host's default application."""

from __future__ import annotations

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from core.errors import IOFailure

Opener = Callable[[str], Awaitable[None]]


def _command_for(path: str) -> list[str]:
    if sys.platform == "darwin":
        return ["open", path]
    return ["xdg-open", path]


async def open_with_default_app(path: str) -> None:
    """Open ``path`` with whatever the desktop associates with it."""
    if sys.platform == "win32":
        try:
            await asyncio.to_thread(os.startfile, path)  # type: ignore[attr-defined]
        except OSError as e:
            raise IOFailure(path, str(e)) from e
        return

    try:
        proc = await asyncio.create_subprocess_exec(
            *_command_for(path),
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise IOFailure(path, f"default-application launcher unavailable: {e}") from e

    _, stderr = await proc.communicate()
    if proc.returncode != 0:
        detail = stderr.decode("utf-8", errors="replace").strip() or f"exit code {proc.returncode}"
        raise IOFailure(path, detail)
