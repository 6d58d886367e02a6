"""RFC 7807 Problem Details exception handlers for FastAPI.

The core raises typed domain errors and never chooses a status code. This
module is the single place where that choice is made:

    AuthenticationError (incl. malformed claims)  401 + WWW-Authenticate
    SecurityViolationError, TenantViolationError  403
    NotFoundError                                 404
    ConflictError, InvalidStateTransitionError    409
    ValidationError, BusinessRuleViolationError   422
    ResourceLimitExceededError                    429
    any other exception                           500, generic body

All responses use Content-Type: application/problem+json.

Usage:
    from vectura.infra.fastapi.error_handlers import register_exception_handlers

    app = FastAPI()
    register_exception_handlers(app)
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from vectura.foundation.domain.exceptions import (
    AuthenticationError,
    BusinessRuleViolationError,
    ConflictError,
    DomainError,
    NotFoundError,
    ResourceLimitExceededError,
    SecurityViolationError,
    TenantViolationError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"
CORRELATION_HEADER = "X-Request-ID"


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details response model.

    Extension fields:
    - error_code: Machine-readable error code for client handling
    - context: Structured debugging information, sanitized
    - correlation_id: Request correlation ID (5xx errors only)
    """

    type: str = Field(..., examples=["/errors/not-found", "/errors/tenant-violation"])
    title: str = Field(..., examples=["Resource Not Found", "Forbidden"])
    status: int = Field(..., ge=400, le=599)
    detail: str
    instance: str | None = Field(default=None, description="Request path")
    error_code: str | None = Field(default=None, examples=["RESOURCE_NOT_FOUND"])
    context: dict[str, Any] | None = None
    correlation_id: str | None = None


_SENSITIVE_PATTERNS = [
    (
        re.compile(r"bearer\s+[A-Za-z0-9\-_\.=]+", re.IGNORECASE),
        "Bearer [REDACTED]",
    ),
    (
        re.compile(r"password\s*=\s*['\"]?[^'\"\s]+['\"]?", re.IGNORECASE),
        "password=[REDACTED]",
    ),
    (
        re.compile(r"token\s*=\s*['\"]?[^'\"\s]+['\"]?", re.IGNORECASE),
        "token=[REDACTED]",
    ),
]

_SENSITIVE_KEYS = frozenset(
    {"password", "secret", "token", "claims", "authorization", "credential"}
)


def _create_problem_response(problem: ProblemDetail) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(exclude_none=True),
        media_type=PROBLEM_MEDIA_TYPE,
    )


def _get_correlation_id(request: Request) -> str:
    """Correlation id of the request.

    Prefers the id the tenant context dependency stored on ``request.state``,
    then the inbound ``X-Request-ID`` header.
    """
    correlation_id = getattr(request.state, "correlation_id", None)
    if correlation_id:
        return str(correlation_id)
    return request.headers.get(CORRELATION_HEADER) or "unknown"


def _sanitize_context(context: dict[str, Any] | None) -> dict[str, Any] | None:
    """Drop sensitive keys and make values JSON-safe."""
    if context is None:
        return None
    sanitized = {
        key: _sanitize_value(value)
        for key, value in context.items()
        if key.lower() not in _SENSITIVE_KEYS
    }
    return sanitized or None


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, str):
        return _redact_sensitive_strings(value)
    if isinstance(value, dict):
        return _sanitize_context(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_sanitize_value(v) for v in value]
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


def _redact_sensitive_strings(text: str) -> str:
    result = text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def _domain_problem(
    request: Request, exc: DomainError, *, type_: str, title: str, status: int
) -> ProblemDetail:
    return ProblemDetail(
        type=type_,
        title=title,
        status=status,
        detail=str(exc),
        instance=str(request.url.path),
        error_code=exc.error_code,
        context=_sanitize_context(exc.context),
    )


async def authentication_error_handler(
    request: Request,
    exc: AuthenticationError,
) -> JSONResponse:
    """Translate AuthenticationError to 401 with WWW-Authenticate header.

    Per RFC 6750 Section 3, every 401 for a Bearer token error carries a
    WWW-Authenticate header. The context is omitted: it may describe the
    rejected claims.
    """
    problem = ProblemDetail(
        type=f"/errors/{exc.error_code.lower().replace('_', '-')}",
        title="Unauthorized",
        status=401,
        detail=exc.message,
        instance=str(request.url.path),
        error_code=exc.error_code,
    )
    response = _create_problem_response(problem)
    response.headers["WWW-Authenticate"] = f'Bearer realm="API", error="{exc.auth_error}"'
    return response


async def security_violation_handler(
    request: Request,
    exc: SecurityViolationError,
) -> JSONResponse:
    """Translate SecurityViolationError (and TenantViolationError) to 403.

    Cross-tenant attempts keep their own type and error code so audit
    consumers can tell them apart.
    """
    tenant_violation = isinstance(exc, TenantViolationError)
    if tenant_violation:
        logger.warning(
            "tenant_violation",
            extra={
                "path": str(request.url.path),
                "correlation_id": _get_correlation_id(request),
                "operation": exc.context.get("operation"),
            },
        )
    problem = _domain_problem(
        request,
        exc,
        type_="/errors/tenant-violation" if tenant_violation else "/errors/forbidden",
        title="Forbidden",
        status=403,
    )
    return _create_problem_response(problem)


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    problem = _domain_problem(
        request, exc, type_="/errors/not-found", title="Resource Not Found", status=404
    )
    return _create_problem_response(problem)


async def conflict_error_handler(request: Request, exc: ConflictError) -> JSONResponse:
    """Translate ConflictError and InvalidStateTransitionError to 409."""
    problem = _domain_problem(
        request,
        exc,
        type_=f"/errors/{exc.error_code.lower().replace('_', '-')}",
        title="Conflict",
        status=409,
    )
    return _create_problem_response(problem)


async def business_rule_handler(
    request: Request,
    exc: BusinessRuleViolationError,
) -> JSONResponse:
    """Translate BusinessRuleViolationError and ValidationError to 422."""
    problem = _domain_problem(
        request,
        exc,
        type_=f"/errors/{exc.error_code.lower().replace('_', '-')}",
        title="Unprocessable Entity",
        status=422,
    )
    return _create_problem_response(problem)


async def resource_limit_handler(
    request: Request,
    exc: ResourceLimitExceededError,
) -> JSONResponse:
    """Translate ResourceLimitExceededError to 429 with rate-limit headers."""
    problem = _domain_problem(
        request,
        exc,
        type_="/errors/resource-limit-exceeded",
        title="Resource Limit Exceeded",
        status=429,
    )
    response = _create_problem_response(problem)
    response.headers["X-RateLimit-Limit"] = str(exc.limit)
    response.headers["X-RateLimit-Remaining"] = str(max(0, exc.limit - exc.current))
    return response


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Fallback for DomainError subclasses without a dedicated handler."""
    problem = _domain_problem(
        request, exc, type_="/errors/domain-error", title="Bad Request", status=400
    )
    return _create_problem_response(problem)


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Translate FastAPI's own request validation failures to 422."""
    errors = [
        {
            "loc": list(error.get("loc", [])),
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    problem = ProblemDetail(
        type="/errors/request-validation-error",
        title="Request Validation Error",
        status=422,
        detail="Request validation failed",
        instance=str(request.url.path),
        error_code="REQUEST_VALIDATION_ERROR",
        context={"errors": errors},
    )
    return _create_problem_response(problem)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log everything, return nothing internal.

    The response only carries the correlation id so support can find the
    logged entry.
    """
    correlation_id = _get_correlation_id(request)
    logger.exception(
        "unhandled_exception",
        extra={
            "correlation_id": correlation_id,
            "path": str(request.url.path),
            "method": request.method,
            "exception_type": type(exc).__name__,
        },
    )
    problem = ProblemDetail(
        type="/errors/internal-error",
        title="Internal Server Error",
        status=500,
        detail="An internal error occurred. Please contact support with the correlation ID.",
        instance=str(request.url.path),
        error_code="INTERNAL_ERROR",
        correlation_id=correlation_id,
    )
    return _create_problem_response(problem)


def register_exception_handlers(app: FastAPI) -> None:
    """Register every handler on ``app``.

    Starlette picks the handler of the closest class in the exception's
    MRO, so subclasses without their own entry fall back to their parent's
    status (InvalidStateTransitionError -> 409, ValidationError -> 422,
    TenantViolationError -> 403).
    """
    # Type ignores: Starlette types handlers as taking plain Exception.
    app.add_exception_handler(
        AuthenticationError,
        authentication_error_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        SecurityViolationError,
        security_violation_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        NotFoundError,
        not_found_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        ConflictError,
        conflict_error_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        ResourceLimitExceededError,
        resource_limit_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        BusinessRuleViolationError,
        business_rule_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        DomainError,
        domain_error_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        RequestValidationError,
        request_validation_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, unhandled_exception_handler)
