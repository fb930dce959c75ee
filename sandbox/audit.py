"""Append-only operations log.

One line per operation::

    [2025-01-01T10:00:00.000Z] OPEN -> /home/me/sandbox/notes/lecture1.pdf
    [2025-01-01T10:00:01.000Z] SCREEN_AGENT -> Current Tab

Lines are never rewritten. Readers skip anything that does not match the
pattern instead of failing.
"""

from __future__ import annotations

import logging
import re
import threading
from datetime import datetime, timezone
from pathlib import Path

from storage.models import Operation, OperationLogEntry

logger = logging.getLogger(__name__)

_LINE_RE = re.compile(r"^\[(?P<timestamp>[^\]]+)\] (?P<operation>\S+)(?: -> (?P<target>.*))?$")
_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\r": "\\r"}
_UNESCAPE_RE = re.compile(r"\\([\\nr])")
_UNESCAPES = {v[1]: k for k, v in _ESCAPES.items()}


def _iso_now() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def _escape(target: str) -> str:
    return "".join(_ESCAPES.get(ch, ch) for ch in target)


def _unescape(target: str) -> str:
    return _UNESCAPE_RE.sub(lambda m: _UNESCAPES[m.group(1)], target)


class AuditLog:
    """Serialized writer for the operations log file."""

    def __init__(self, log_path: str | Path):
        self.log_path = Path(log_path)
        # appends arrive from event-loop tasks and asyncio.to_thread workers alike
        self._lock = threading.Lock()

    def append(self, operation: Operation | str, target: str | None = None) -> None:
        op = operation.value if isinstance(operation, Operation) else str(operation)
        line = f"[{_iso_now()}] {op}"
        if target:
            # a target must never span lines
            line += f" -> {_escape(target)}"
        with self._lock:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")

    def read_entries(self) -> list[OperationLogEntry]:
        """All well-formed entries in append order."""
        if not self.log_path.exists():
            return []
        with self._lock:
            text = self.log_path.read_text(encoding="utf-8", errors="replace")
        return list(parse_lines(text.split("\n")))

    def tail(self, limit: int = 50) -> list[OperationLogEntry]:
        """Newest ``limit`` entries, newest first."""
        entries = self.read_entries()
        if limit <= 0:
            return []
        return list(reversed(entries[-limit:]))


def parse_lines(lines):
    skipped = 0
    for raw in lines:
        line = raw.strip()
        if not line:
            continue
        match = _LINE_RE.match(line)
        if not match:
            skipped += 1
            continue
        target = match.group("target")
        yield OperationLogEntry(
            timestamp=match.group("timestamp"),
            operation=match.group("operation"),
            target=_unescape(target) if target is not None else None,
        )
    if skipped:
        logger.debug("Skipped %d malformed operations log line(s)", skipped)
