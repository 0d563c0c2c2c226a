"""
Response Envelopes

Success: {"status": "success", "data": ...}
Failure: {"status": "error", "error": {"code": ..., "message": ...}}
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from fleetsync.common.exceptions import (
    FleetSyncError,
    InternalError,
    UnauthorizedError,
    ValidationFailedError,
)
from fleetsync.common.logging_setup import get_service_logger

logger = get_service_logger("hub.api")


def success(data: Any) -> dict[str, Any]:
    return {"status": "success", "data": data}


def failure(error: FleetSyncError) -> dict[str, Any]:
    return {"status": "error", "error": error.to_dict()}


def error_response(error: FleetSyncError) -> JSONResponse:
    headers = None
    if isinstance(error, UnauthorizedError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=error.http_status,
        content=failure(error),
        headers=headers,
    )


async def fleetsync_error_handler(request: Request, exc: FleetSyncError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(
            f"{request.method} {request.url.path} rejected: {exc.code}",
            extra={"code": exc.code},
        )
    return error_response(exc)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
        for err in exc.errors()
    )
    return error_response(ValidationFailedError(details or "Invalid request body"))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=failure(InternalError()),
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FleetSyncError, fleetsync_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
