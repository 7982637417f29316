"""HTTP middleware: request correlation and CORS."""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from schoolhub_api.settings import Settings

from .ids import generate_ulid
from .logging import bind_request_context, clear_request_context

REQUEST_ID_HEADER = "X-Request-ID"

logger = logging.getLogger("schoolhub_api.request")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Give every HTTP request a correlation id and log its outcome.

    A client-supplied ``X-Request-ID`` is reused; otherwise a ULID is minted.
    The id is bound for log lines, stored on ``request.state.correlation_id``
    (Problem+JSON ``requestId``) and echoed on the response.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_ulid()
        request.state.correlation_id = request_id
        bind_request_context(request_id)
        started = time.perf_counter()
        fields = {"method": request.method, "path": request.url.path}
        try:
            response = await call_next(request)
        except Exception:
            fields["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
            logger.exception("request.error", extra=fields)
            raise
        finally:
            clear_request_context()

        fields["status_code"] = response.status_code
        fields["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
        logger.info("request.complete", extra=fields)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def register_middleware(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(RequestContextMiddleware)
    if settings.server_cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.server_cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )


__all__ = ["REQUEST_ID_HEADER", "RequestContextMiddleware", "register_middleware"]
