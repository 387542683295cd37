from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.app.dependencies import get_settings
from backend.app.models.api_contracts import ApiEnvelope
from backend.app.services.errors import RateLimitedError, TubeToolsError
from backend.app.services.sanitize import sanitize_error_message

LOGGER = logging.getLogger("tubetools.api")

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


def _error_response(
    *,
    status_code: int,
    message: str,
    code: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    envelope = ApiEnvelope(success=False, data=None, message=message, code=code)
    return JSONResponse(status_code=status_code, content=envelope.model_dump(), headers=headers)


async def handle_tubetools_error(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, TubeToolsError):
        return await handle_unexpected_error(request, exc)
    headers: dict[str, str] | None = None
    if isinstance(exc, RateLimitedError) and exc.retry_after_seconds is not None:
        headers = {"Retry-After": str(exc.retry_after_seconds)}

    if exc.http_status >= 500:
        LOGGER.error(
            "request failed path=%s code=%s error_type=%s error=%s",
            request.url.path,
            exc.code,
            type(exc).__name__,
            exc.message,
        )
        message = exc.message if get_settings().expose_error_details else GENERIC_ERROR_MESSAGE
    else:
        LOGGER.info(
            "request rejected path=%s code=%s status=%s",
            request.url.path,
            exc.code,
            exc.http_status,
        )
        message = exc.message
    return _error_response(
        status_code=exc.http_status,
        message=message,
        code=exc.code,
        headers=headers,
    )


async def handle_validation_error(request: Request, exc: Exception) -> JSONResponse:
    error_count = len(exc.errors()) if isinstance(exc, RequestValidationError) else 0
    LOGGER.info("request validation failed path=%s errors=%s", request.url.path, error_count)
    return _error_response(status_code=400, message="Invalid input data", code="VALIDATION_ERROR")


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.exception(
        "unhandled error path=%s error_type=%s", request.url.path, type(exc).__name__
    )
    message = (
        sanitize_error_message(exc) if get_settings().expose_error_details else GENERIC_ERROR_MESSAGE
    )
    return _error_response(status_code=500, message=message, code="INTERNAL_ERROR")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TubeToolsError, handle_tubetools_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
