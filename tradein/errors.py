"""
Error types shared by providers, stores and routes, plus the FastAPI
handlers that turn them into JSON.

Every error body has the shape::

    {"error": "<message>", "code": "<machine code>", "details": {...} | null}
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


class AppError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = int(status_code)
        self.code = str(code)
        self.message = str(message)
        self.details = details
        self.headers = headers


class BadRequestError(AppError):
    def __init__(self, *, code: str = "bad_request", message: str = "Bad request", details: dict[str, Any] | None = None):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, code=code, message=message, details=details)


class NotFoundError(AppError):
    def __init__(self, *, code: str = "not_found", message: str = "Not found", details: dict[str, Any] | None = None):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, code=code, message=message, details=details)


class RateLimitedError(AppError):
    def __init__(self, *, retry_after: float = 60.0):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            code="rate_limited",
            message="Rate limit exceeded. Try again later.",
            headers={"Retry-After": str(max(1, int(round(retry_after))))},
        )


class UpstreamError(AppError):
    """A third-party API or page answered with something unusable."""

    def __init__(self, *, source: str, message: str, upstream_status: int | None = None,
                 status_code: int = status.HTTP_502_BAD_GATEWAY):
        details: dict[str, Any] = {"source": source}
        if upstream_status is not None:
            details["upstream_status"] = upstream_status
        super().__init__(status_code=status_code, code="upstream_error", message=message, details=details)


class ConfigurationError(AppError):
    def __init__(self, *, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code="configuration_error",
            message=message,
            details=details,
        )


class DatabaseError(AppError):
    def __init__(self, *, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code="database_error",
            message=message,
            details=details,
        )


def _error_payload(*, code: str, message: str, details: dict[str, Any] | None) -> dict[str, Any]:
    return {"error": message, "code": code, "details": details}


def _json_error(
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=int(status_code),
        content=_error_payload(code=code, message=message, details=details),
        headers=dict(headers or {}),
    )


def register_exception_handlers(app: FastAPI, allow_origin: str = "*") -> None:
    @app.exception_handler(AppError)
    async def _handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code)
        return _json_error(
            status_code=exc.status_code,
            code=exc.code,
            message=exc.message,
            details=exc.details,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _json_error(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Request validation failed",
            details={"errors": exc.errors()},
        )

    @app.exception_handler(HTTPException)
    async def _handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return _json_error(
            status_code=exc.status_code,
            code="http_exception",
            message=message,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(httpx.HTTPStatusError)
    async def _handle_upstream_status(request: Request, exc: httpx.HTTPStatusError) -> JSONResponse:
        host = exc.request.url.host
        logger.warning("Upstream %s answered %s", host, exc.response.status_code)
        return _json_error(
            status_code=status.HTTP_502_BAD_GATEWAY,
            code="upstream_error",
            message=f"Request failed with status: {exc.response.status_code}",
            details={"source": host, "upstream_status": exc.response.status_code},
        )

    @app.exception_handler(httpx.HTTPError)
    async def _handle_upstream_transport(request: Request, exc: httpx.HTTPError) -> JSONResponse:
        logger.warning("Upstream request failed: %s", exc)
        return _json_error(
            status_code=status.HTTP_502_BAD_GATEWAY,
            code="upstream_unreachable",
            message=str(exc) or exc.__class__.__name__,
        )

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception", exc_info=exc)
        return _json_error(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code="internal_error",
            message="Internal server error",
            # sent by ServerErrorMiddleware, which sits outside CORSMiddleware
            headers={"Access-Control-Allow-Origin": allow_origin},
        )
