"""Request-scoped tenant context.

``TenantContext`` is an explicit value built once per request from the
resolved security context and passed to every operation that needs tenant
scoping. Nothing is stored in globals or context variables, so concurrent
requests cannot observe each other's tenant and tests need no lifecycle
simulation.

Usage:
    from vectura.foundation.application.context import TenantContext

    tenant = TenantContext.for_principal(security_context, correlation_id="req-1")
    agency_id = tenant.current_agency_id()
    tenant.validate_agency_access(shipment.agency_id)
    tenant.validate_resource_tenant(parcel.agency_id)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import uuid4

from vectura.foundation.domain.exceptions import TenantViolationError

if TYPE_CHECKING:
    from uuid import UUID

    from vectura.foundation.domain.security_context import SecurityContext


def _new_correlation_id() -> str:
    return uuid4().hex


@dataclass(frozen=True, slots=True)
class TenantContext:
    """Immutable per-request carrier of the principal and its current agency.

    Attributes:
        principal: Security context resolved from the request's token.
        agency_id: Current agency for the request. None for platform
            administrators and customers.
        correlation_id: Identifier used to correlate logs of one request.
    """

    principal: SecurityContext
    agency_id: UUID | None = None
    correlation_id: str = field(default_factory=_new_correlation_id)

    @classmethod
    def for_principal(
        cls,
        principal: SecurityContext,
        correlation_id: str | None = None,
    ) -> TenantContext:
        """Derive the tenant context from a freshly resolved principal."""
        return cls(
            principal=principal,
            agency_id=principal.agency_id,
            correlation_id=correlation_id or _new_correlation_id(),
        )

    @property
    def has_tenant(self) -> bool:
        return self.agency_id is not None

    def current_agency_id(self) -> UUID:
        """Get the current agency id.

        Raises:
            TenantViolationError: If the request carries no tenant.
        """
        if self.agency_id is None:
            raise TenantViolationError(
                "No tenant context found",
                user_id=str(self.principal.user_id),
                actor_type=self.principal.actor_type.value,
            )
        return self.agency_id

    def validate_agency_access(self, resource_agency_id: UUID | None) -> None:
        """Ensure a resource belongs to the current agency.

        Raises:
            TenantViolationError: If there is no tenant or the ids differ.
        """
        current = self.current_agency_id()
        if current != resource_agency_id:
            raise TenantViolationError(
                f"Tenant mismatch: expected {current} but got {resource_agency_id}",
                expected_agency_id=str(current),
                actual_agency_id=str(resource_agency_id),
            )

    def validate_resource_tenant(self, resource_agency_id: UUID | None) -> None:
        """Cross-check a tenant-owned resource against an agency-scoped request.

        Agency employees only ever touch their own agency's resources.
        Platform administrators and customers carry no tenant, so for them
        the access policies alone decide.

        Raises:
            TenantViolationError: If an employee request reaches another agency.
        """
        if self.principal.is_agency_employee:
            self.validate_agency_access(resource_agency_id)
