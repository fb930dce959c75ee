"""Map the seeq error taxonomy onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from core.errors import (
    CollaboratorFailure,
    InvalidOperationError,
    IOFailure,
    NotADirectoryFailure,
    NotFoundError,
    SeeqError,
    UniqueKeyViolation,
)

logger = logging.getLogger(__name__)

# most specific first; PathEscapeError is caught through InvalidOperationError
STATUS_BY_ERROR: list[tuple[type[SeeqError], int]] = [
    (NotFoundError, 404),
    (UniqueKeyViolation, 409),
    (InvalidOperationError, 400),
    (NotADirectoryFailure, 400),
    (CollaboratorFailure, 502),
    (IOFailure, 500),
]


def status_for(exc: SeeqError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


async def seeq_error_handler(request: Request, exc: SeeqError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"error": type(exc).__name__, "detail": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SeeqError, seeq_error_handler)
