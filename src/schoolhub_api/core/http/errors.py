"""Exception handlers translating domain errors into Problem Details responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from schoolhub_api.common.logging import log_context
from schoolhub_api.common.problem_details import (
    PROBLEM_MEDIA_TYPE,
    ProblemDetailsErrorItem,
    build_problem_details,
    error_items_from_pydantic,
)

from ..errors import AuthenticationError, InternalError, SchoolHubError

_UNHANDLED_LOGGER = logging.getLogger("schoolhub_api.errors")
_HTTP_LOGGER = logging.getLogger("schoolhub_api.http")


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None)


def _problem_response(
    *,
    request: Request,
    status_code: int,
    detail: str | None,
    code: str | None = None,
    errors: list[ProblemDetailsErrorItem] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    problem = build_problem_details(
        status_code=status_code,
        instance=str(request.url.path),
        request_id=_request_id(request),
        detail=detail,
        code=code,
        errors=errors,
    )
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(mode="json", by_alias=True, exclude_none=True),
        media_type=PROBLEM_MEDIA_TYPE,
        headers=headers,
    )


def schoolhub_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a :class:`SchoolHubError` with its status and code."""

    assert isinstance(exc, SchoolHubError)
    if exc.status_code >= 500:
        _UNHANDLED_LOGGER.error(
            "domain_error",
            extra=log_context(
                path=str(request.url.path),
                method=request.method,
                code=exc.code,
                detail=exc.message,
            ),
        )
        detail = "Internal server error"
    else:
        detail = exc.message
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return _problem_response(
        request=request,
        status_code=exc.status_code,
        detail=detail,
        code=exc.code,
        headers=headers,
    )


def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for FastAPI and Starlette HTTP exceptions."""

    assert isinstance(exc, StarletteHTTPException)
    if exc.status_code >= 500:
        _HTTP_LOGGER.error(
            "http_exception",
            extra=log_context(
                path=str(request.url.path),
                method=request.method,
                status_code=exc.status_code,
                detail=exc.detail,
            ),
        )
    detail = exc.detail if isinstance(exc.detail, str) else None
    if exc.status_code == 500:
        detail = "Internal server error"
    return _problem_response(
        request=request,
        status_code=exc.status_code,
        detail=detail,
        headers=getattr(exc, "headers", None),
    )


def request_validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    return _problem_response(
        request=request,
        status_code=422,
        detail="Invalid request",
        code="validation_failed",
        errors=error_items_from_pydantic(exc.errors()),
    )


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler: log the stack trace and return an opaque 500."""

    _UNHANDLED_LOGGER.exception(
        "unhandled_exception",
        extra=log_context(
            path=str(request.url.path),
            method=request.method,
            exception_type=type(exc).__name__,
        ),
    )
    error = InternalError()
    return _problem_response(
        request=request,
        status_code=error.status_code,
        detail=error.message,
        code=error.code,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the Problem Details handlers to ``app``."""

    app.add_exception_handler(SchoolHubError, schoolhub_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = [
    "http_exception_handler",
    "register_exception_handlers",
    "request_validation_exception_handler",
    "schoolhub_error_handler",
    "unhandled_exception_handler",
]
