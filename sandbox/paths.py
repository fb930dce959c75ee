"""Map user-supplied path strings onto the sandbox root."""

from __future__ import annotations

import os
from pathlib import Path

from core.errors import PathEscapeError


class PathResolver:
    """Resolve relative inputs against a single sandbox root.

    Rules:
    - absolute input is returned unchanged (``strict=True`` additionally
      rejects absolute input outside the root)
    - input already prefixed with the root is returned unchanged
    - anything else is joined onto the root
    - any ``..`` segment is rejected before the prefix check
    """

    def __init__(self, root: str | Path, *, strict: bool = False):
        self.root = Path(root).expanduser().resolve()
        self.strict = strict

    def resolve(self, raw: str) -> str:
        if not raw or not raw.strip():
            raise PathEscapeError(raw, "empty path")

        # @@@dotdot-reject - no normalization happens below, so a ".." segment could walk out of the root.
        parts = raw.replace("\\", "/").split("/")
        if ".." in parts:
            raise PathEscapeError(raw)

        root = str(self.root)
        if os.path.isabs(raw):
            if self.strict and not self.contains(raw):
                raise PathEscapeError(raw, "absolute path outside sandbox root")
            return raw
        if raw.startswith(root):
            return raw
        return os.path.join(root, raw)

    def contains(self, path: str | Path) -> bool:
        """Whether ``path`` lies at or under the sandbox root."""
        try:
            Path(path).relative_to(self.root)
        except ValueError:
            return False
        return True

