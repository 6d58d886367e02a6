"""FastAPI dependency functions for the request's security and tenant context.

Token verification happens upstream: the verifier places the verified
claim set on ``request.state.claims``. These dependencies only resolve it,
once per request, into the typed contexts the core works with.

Usage:
    from vectura.infra.fastapi.dependencies import (
        CurrentSecurityContext,
        CurrentTenantContext,
        require_actor_type,
    )

    @router.post("/shipments")
    def create_shipment(
        tenant: CurrentTenantContext,
        _: Annotated[None, Depends(require_actor_type(ActorType.AGENCY_EMPLOYEE))],
    ):
        ...
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Request

from vectura.foundation.application.context import TenantContext
from vectura.foundation.application.security import resolve_security_context
from vectura.foundation.domain.exceptions import (
    AuthenticationMalformedError,
    SecurityViolationError,
)
from vectura.foundation.domain.security_context import ActorType, SecurityContext
from vectura.infra.observability.logging import bind_request_context

if TYPE_CHECKING:
    from collections.abc import Callable

CORRELATION_HEADER = "X-Request-ID"


def get_security_context(request: Request) -> SecurityContext:
    """Resolve the principal from the verified claims on ``request.state``.

    The result is cached on ``request.state`` so every dependency of the
    same request sees one principal.

    Raises:
        AuthenticationMalformedError: If no claims were attached or they
            cannot be resolved.
    """
    cached = getattr(request.state, "security_context", None)
    if isinstance(cached, SecurityContext):
        return cached
    claims = getattr(request.state, "claims", None)
    if not isinstance(claims, Mapping):
        raise AuthenticationMalformedError("Missing verified claims on request")
    context = resolve_security_context(claims)
    request.state.security_context = context
    return context


CurrentSecurityContext = Annotated[SecurityContext, Depends(get_security_context)]


def get_tenant_context(request: Request, principal: CurrentSecurityContext) -> TenantContext:
    """Build the per-request TenantContext and bind it to the log context.

    Reuses the inbound ``X-Request-ID`` header as correlation id when present.
    """
    cached = getattr(request.state, "tenant_context", None)
    if isinstance(cached, TenantContext) and cached.principal is principal:
        return cached
    tenant = TenantContext.for_principal(
        principal, correlation_id=request.headers.get(CORRELATION_HEADER)
    )
    request.state.tenant_context = tenant
    request.state.correlation_id = tenant.correlation_id
    bind_request_context(tenant.correlation_id, principal.user_id, principal.agency_id)
    return tenant


CurrentTenantContext = Annotated[TenantContext, Depends(get_tenant_context)]


def require_actor_type(*actor_types: ActorType) -> Callable[..., None]:
    """Factory returning a dependency that admits only the given actor types.

    Usage:
        @router.post("/customer/shipments")
        def create_customer_shipment(
            _: Annotated[None, Depends(require_actor_type(ActorType.CUSTOMER))],
        ):
            ...
    """
    allowed = frozenset(actor_types)

    def _check_actor_type(principal: CurrentSecurityContext) -> None:
        if principal.actor_type not in allowed:
            raise SecurityViolationError(
                f"Actor type {principal.actor_type} is not allowed here",
                actor_type=principal.actor_type.value,
                allowed=sorted(a.value for a in allowed),
            )

    return _check_actor_type
