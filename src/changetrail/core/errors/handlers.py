"""Problem Details (RFC 7807) responses for the query endpoint.

Every error leaves the API as ``application/problem+json`` with a
``urn:changetrail:problem:<error_code>`` type. Audit errors add their
``details`` as extension members.
"""

from typing import TYPE_CHECKING, Any, cast

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from changetrail.core.errors.exceptions import AuditException


if TYPE_CHECKING:
    from starlette.types import ExceptionHandler


log = structlog.get_logger()

PROBLEM_MEDIA_TYPE = "application/problem+json"
PROBLEM_TYPE_BASE = "urn:changetrail:problem"


class InvalidParameter(BaseModel):
    field: str
    message: str
    type: str | None = None


class Problem(BaseModel):
    """Problem Details body; unknown keys are extension members."""

    model_config = {"extra": "allow"}

    type: str
    title: str
    status: int
    detail: str
    instance: str | None = None
    request_id: str | None = None
    errors: list[InvalidParameter] | None = None


def problem_response(
    request: Request,
    status_code: int,
    error_code: str,
    detail: str,
    extensions: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build a Problem Details response for ``request``."""
    problem = Problem(
        type=f"{PROBLEM_TYPE_BASE}:{error_code}",
        title=error_code.replace("_", " ").title(),
        status=status_code,
        detail=detail,
        instance=request.url.path,
        request_id=getattr(request.state, "request_id", None),
        **(extensions or {}),
    )
    return JSONResponse(
        status_code=status_code,
        content=problem.model_dump(mode="json", exclude_none=True),
        media_type=PROBLEM_MEDIA_TYPE,
    )


async def handle_audit_exception(request: Request, exc: AuditException) -> JSONResponse:
    log.warning(
        "audit_error_response",
        error_code=exc.error_code,
        status_code=exc.status_code,
        path=request.url.path,
    )
    reserved = set(Problem.model_fields)
    extensions = {k: v for k, v in exc.details.items() if k not in reserved}
    return problem_response(request, exc.status_code, exc.error_code, exc.message, extensions)


async def handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    invalid = [
        InvalidParameter(
            # Location is ("query", "<name>"); keep the parameter part
            field=".".join(str(part) for part in error.get("loc", ())[1:]) or "unknown",
            message=error.get("msg", "Invalid value"),
            type=error.get("type"),
        )
        for error in exc.errors()
    ]
    log.info("request_rejected", path=request.url.path, fields=[p.field for p in invalid])
    return problem_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "validation_error",
        "Request validation failed",
        {"errors": invalid},
    )


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled_exception", path=request.url.path, error_type=type(exc).__name__)
    return problem_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "internal_error",
        "An unexpected error occurred",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the Problem Details handlers on ``app``."""
    app.add_exception_handler(AuditException, cast("ExceptionHandler", handle_audit_exception))
    app.add_exception_handler(
        RequestValidationError, cast("ExceptionHandler", handle_request_validation)
    )
    app.add_exception_handler(Exception, handle_unexpected)
