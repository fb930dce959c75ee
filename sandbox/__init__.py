"""Sandbox: guarded filesystem layer confined to one root.

Usage:
    from sandbox import AuditLog, OperationExecutor, PathResolver

    resolver = PathResolver("~/seeq/sandbox")
    ops = OperationExecutor(resolver, AuditLog(resolver.root / "logs" / "operations.log"))
    await ops.write("notes/todo.txt", "buy milk")
"""

from __future__ import annotations

from sandbox.audit import AuditLog
from sandbox.operations import FileProperties, OperationExecutor
from sandbox.paths import PathResolver

__all__ = [
    "AuditLog",
    "FileProperties",
    "OperationExecutor",
    "PathResolver",
]
