"""Translate service failures into ``{"error": ...}`` JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..domain.errors import AuthenticationError, IdentityError

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


async def _identity_error(request: Request, exc: IdentityError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return _error(exc.status_code, exc.message, headers)


async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = exc.errors()
    if any(problem.get("type") == "json_invalid" for problem in problems):
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid JSON body")
    if any(problem.get("type") == "string_unicode" for problem in problems):
        return _error(status.HTTP_400_BAD_REQUEST, "Fields must be valid UTF-8 text")
    if any("email" in problem.get("loc", ()) for problem in problems):
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid email address")
    return _error(status.HTTP_400_BAD_REQUEST, "Invalid request body")


async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    """Install the JSON error handlers on ``app``."""
    app.add_exception_handler(IdentityError, _identity_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.add_exception_handler(Exception, _unexpected_error)
