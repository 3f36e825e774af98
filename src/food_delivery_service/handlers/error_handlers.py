"""Structured error responses and request correlation for the HTTP API.

Every error response has the same envelope:

    {"success": false,
     "error": {"type": ..., "message": ..., "code": ..., "requestId": ...,
               "timestamp": ..., "details": ...}}
"""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from food_delivery_service.errors import ServiceError
from food_delivery_service.observability.context import (
    REQUEST_ID_HEADER,
    get_request_id,
    new_request_id,
    reset_request_id,
    set_request_id,
)

logger = logging.getLogger(__name__)

_HTTP_ERROR_KINDS = {
    400: "BAD_REQUEST",
    401: "AUTH_ERROR",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None) or get_request_id()


def error_response(
    request: Request,
    status_code: int,
    kind: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    """Build the JSON error envelope."""
    request_id = _request_id(request)
    error: dict[str, Any] = {
        "type": kind,
        "message": message,
        "code": status_code,
        "requestId": request_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }
    if details is not None:
        error["details"] = details

    headers = {REQUEST_ID_HEADER: request_id} if request_id else None
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
        headers=headers,
    )


def _log_error(request: Request, status_code: int, message: str, exc: Exception) -> None:
    where = f"{request.method} {request.url.path}"
    if status_code >= 500:
        logger.error(f"{where} failed with {status_code}: {message}", exc_info=exc)
    else:
        logger.warning(f"{where} rejected with {status_code}: {message}")


def register_error_handlers(app: FastAPI, expose_details: bool = True) -> None:
    """Install the request id middleware and exception handlers on an app.

    Args:
        app: Application to configure
        expose_details: Include details of server errors in responses;
            disabled in production
    """

    @app.middleware("http")
    async def bind_request_id(request: Request, call_next: Any) -> Any:
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
        request.state.request_id = request_id
        token = set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
        _log_error(request, exc.status_code, exc.message, exc)
        details = exc.details
        if exc.status_code >= 500 and not expose_details:
            details = None
        return error_response(request, exc.status_code, exc.kind, exc.message, details)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = [
            {
                "field": ".".join(str(part) for part in error["loc"][1:]) or str(error["loc"][0]),
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        _log_error(request, 400, "Request validation failed", exc)
        return error_response(request, 400, "VALIDATION_ERROR", "Validation failed", details)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        kind = _HTTP_ERROR_KINDS.get(
            exc.status_code, "INTERNAL_ERROR" if exc.status_code >= 500 else "HTTP_ERROR"
        )
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        _log_error(request, exc.status_code, message, exc)
        return error_response(request, exc.status_code, kind, message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        _log_error(request, 500, str(exc), exc)
        details = str(exc) if expose_details else None
        return error_response(
            request, 500, "INTERNAL_ERROR", "An unexpected error occurred", details
        )
