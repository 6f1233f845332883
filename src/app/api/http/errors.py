"""Mapping of release errors onto HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from src.app.api.http.schemas.releases import ReleaseErrorResponse
from src.app.core.errors import (
    ApplyFailureError,
    HookFailureError,
    InvalidArgumentError,
    InvalidStateError,
    OperationTimeoutError,
    ReleaseAlreadyExistsError,
    ReleaseBusyError,
    ReleaseError,
    ReleaseNotFoundError,
)

# Most specific class first; PartialFailureError is an ApplyFailureError
STATUS_CODES: list[tuple[type[ReleaseError], int]] = [
    (ReleaseNotFoundError, 404),
    (ReleaseAlreadyExistsError, 409),
    (ReleaseBusyError, 423),
    (InvalidStateError, 409),
    (InvalidArgumentError, 400),
    (OperationTimeoutError, 504),
    (HookFailureError, 502),
    (ApplyFailureError, 502),
]


def status_code_for(error: ReleaseError) -> int:
    for error_type, status_code in STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


async def release_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a ReleaseError as a ReleaseErrorResponse."""
    assert isinstance(exc, ReleaseError)
    body = ReleaseErrorResponse(
        error=exc.code,
        message=exc.message,
        details=exc.details,
        release=exc.release,
    )
    return JSONResponse(
        status_code=status_code_for(exc),
        content=body.model_dump(mode="json"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReleaseError, release_error_handler)
