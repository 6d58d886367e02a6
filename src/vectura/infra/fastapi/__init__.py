"""Vectura Infra FastAPI: boundary adapters for the HTTP layer."""

from vectura.infra.fastapi.dependencies import (
    CurrentSecurityContext,
    CurrentTenantContext,
    get_security_context,
    get_tenant_context,
    require_actor_type,
)
from vectura.infra.fastapi.error_handlers import ProblemDetail, register_exception_handlers

__all__ = [
    "CurrentSecurityContext",
    "CurrentTenantContext",
    "ProblemDetail",
    "get_security_context",
    "get_tenant_context",
    "register_exception_handlers",
    "require_actor_type",
]
