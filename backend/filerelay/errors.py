"""Relay errors and their JSON rendering.

Every failure leaves the service as ``{"success": false, "error": "..."}``.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """Base error carrying the HTTP status and client-facing message."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class InvalidUploadError(RelayError):
    status_code = 400


class LinkNotFoundError(RelayError):
    status_code = 404

    def __init__(self, message: str = "File not found"):
        super().__init__(message)


class UpstreamError(RelayError):
    status_code = 500


def json_error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
    )


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    return json_error(exc.message, exc.status_code)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Unknown path and known path with the wrong method are both "not found"
    if exc.status_code in (404, 405):
        return json_error("Not found", 404)
    return json_error(str(exc.detail), exc.status_code)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return json_error("Internal server error", 500)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
