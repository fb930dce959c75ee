"""Error taxonomy shared by the sandbox, storage and pipeline layers."""

from __future__ import annotations


class SeeqError(Exception):
    """Base class for every failure surfaced by seeq."""


class NotFoundError(SeeqError):
    """Resolved path or target does not exist."""

    def __init__(self, target: str, message: str | None = None):
        self.target = target
        super().__init__(message or f"Not found: {target}")


class NotADirectoryFailure(SeeqError):
    """Resolved path exists but is not a directory."""

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"Path is not a directory: {target}")


class UniqueKeyViolation(SeeqError):
    """Index insert collided with an existing record for the same path."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Record already exists for path: {path}")


AlreadyExistsError = UniqueKeyViolation


class InvalidOperationError(SeeqError):
    """Operation is well-formed but not allowed (e.g. copying a folder into itself)."""


class PathEscapeError(InvalidOperationError):
    """Input tried to leave the sandbox root."""

    def __init__(self, raw: str, reason: str = "path escapes sandbox root"):
        self.raw = raw
        super().__init__(f"{reason}: {raw}")


class CollaboratorFailure(SeeqError):
    """Classifier, relevance judge or planner failed or answered malformed output."""

    def __init__(self, collaborator: str, detail: str):
        self.collaborator = collaborator
        self.detail = detail
        super().__init__(f"{collaborator} failed: {detail}")


class IOFailure(SeeqError):
    """Underlying filesystem error."""

    def __init__(self, target: str, detail: str):
        self.target = target
        self.detail = detail
        super().__init__(f"I/O failure on {target}: {detail}")
