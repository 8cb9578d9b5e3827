"""Mapping of service exceptions onto the HTTP error surface."""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .logger import get_logger
from .validation import NotFoundError, ValidationException

# purpose: one structured error body per failure class: validation, not found, internal
# status: active

logger = get_logger(__name__)


def validation_error_body(exc: ValidationException) -> dict:
    return {
        "message": exc.message,
        "errorType": "ValidationError",
        "extensions": {"problems": list(exc.problems)},
    }


async def handle_validation_exception(request: Request, exc: ValidationException) -> JSONResponse:
    logger.info(
        "request.rejected",
        path=request.url.path,
        problems=len(exc.problems),
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=validation_error_body(exc),
    )


async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"message": str(exc), "errorType": "NotFound"},
    )


async def handle_internal_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request.failed", path=request.url.path, error=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error", "errorType": "InternalError"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationException, handle_validation_exception)
    app.add_exception_handler(NotFoundError, handle_not_found)
    app.add_exception_handler(Exception, handle_internal_error)
