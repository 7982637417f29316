"""RFC 7807 Problem Details payloads.

Every error response of the HTTP API is a ``ProblemDetails`` document served
as ``application/problem+json``. ``type`` is a stable slug per HTTP status,
``code`` the SchoolHub error code (``forbidden``, ``invalid_token`` ...), and
``requestId`` the correlation id of the request.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any, NamedTuple

from pydantic import ConfigDict, Field

from .schema import BaseSchema

PROBLEM_MEDIA_TYPE = "application/problem+json"


class ProblemType(NamedTuple):
    slug: str
    title: str


PROBLEM_TYPES: dict[int, ProblemType] = {
    400: ProblemType("bad_request", "Bad request"),
    401: ProblemType("unauthenticated", "Unauthenticated"),
    403: ProblemType("forbidden", "Forbidden"),
    404: ProblemType("not_found", "Not found"),
    405: ProblemType("method_not_allowed", "Method not allowed"),
    409: ProblemType("conflict", "Conflict"),
    422: ProblemType("validation_failed", "Validation failed"),
    500: ProblemType("internal_error", "Internal server error"),
}


def problem_type(status_code: int) -> ProblemType:
    return PROBLEM_TYPES.get(status_code, ProblemType("error", "Error"))


class ProblemDetailsErrorItem(BaseSchema):
    """One field-level failure inside a ``validation_failed`` problem."""

    path: str | None = None
    message: str
    code: str | None = None


class ProblemDetails(BaseSchema):
    model_config = ConfigDict(alias_generator=None, populate_by_name=True)

    type: str
    title: str
    status: int
    code: str | None = None
    detail: str | None = None
    instance: str
    request_id: str | None = Field(default=None, alias="requestId")
    errors: list[ProblemDetailsErrorItem] | None = None


_LOCATION_ROOTS = frozenset({"body", "query", "path", "header", "cookie"})


def _dotted_path(loc: Sequence[Any]) -> str | None:
    # ("body", "records", 0, "studentId") -> "records[0].studentId"
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        elif part not in _LOCATION_ROOTS:
            path += f".{part}" if path else str(part)
    return path or None


def error_items_from_pydantic(errors: Iterable[dict[str, Any]]) -> list[ProblemDetailsErrorItem]:
    items = []
    for entry in errors:
        loc = entry.get("loc")
        kind = entry.get("type")
        items.append(
            ProblemDetailsErrorItem(
                path=_dotted_path(loc) if isinstance(loc, (list, tuple)) else None,
                message=str(entry.get("msg") or "Invalid value"),
                code=str(kind) if kind else None,
            )
        )
    return items


def build_problem_details(
    *,
    status_code: int,
    instance: str,
    request_id: str | None,
    detail: str | None = None,
    code: str | None = None,
    errors: list[ProblemDetailsErrorItem] | None = None,
) -> ProblemDetails:
    kind = problem_type(status_code)
    return ProblemDetails(
        type=kind.slug,
        title=kind.title,
        status=status_code,
        code=code or kind.slug,
        detail=detail,
        instance=instance,
        request_id=request_id,
        errors=errors,
    )


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "PROBLEM_TYPES",
    "ProblemDetails",
    "ProblemDetailsErrorItem",
    "build_problem_details",
    "error_items_from_pydantic",
    "problem_type",
]
