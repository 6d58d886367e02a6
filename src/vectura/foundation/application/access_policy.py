"""Shared decision logic for tenant-scoped access policies.

Every resource family (agency, location, shipment, parcel, user) follows
the same attribute-based pattern:

- PLATFORM_ADMIN is allowed.
- AGENCY_EMPLOYEE is allowed only inside its own agency, and only when it
  holds one of the roles the operation requires. Tenant match is always
  evaluated before role match, so a correct role in the wrong tenant never
  grants anything.
- CUSTOMER is denied on direct resource access.

Policies are stateless decision objects. The ``can_*`` predicates return
booleans; the ``validate_*`` variants raise ``TenantViolationError`` for a
cross-tenant attempt and ``SecurityViolationError`` for any other denial.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, ClassVar

from vectura.foundation.domain.exceptions import SecurityViolationError, TenantViolationError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from vectura.foundation.domain.security_context import SecurityContext

logger = logging.getLogger(__name__)


class TenantScopedPolicy:
    """Base class for resource-family access policies.

    Subclasses set ``resource_type`` and use the helpers to express their
    rule table.
    """

    resource_type: ClassVar[str] = "resource"

    @staticmethod
    def is_same_tenant(context: SecurityContext, agency_id: UUID | None) -> bool:
        """True only for an agency employee whose agency equals ``agency_id``.

        An employee without an agency id is an internal inconsistency and
        never matches.
        """
        return context.belongs_to_agency(agency_id)

    def tenant_access(self, context: SecurityContext, agency_id: UUID | None) -> bool:
        """Admin, or employee of the owning agency."""
        if context.is_platform_admin:
            return True
        return self.is_same_tenant(context, agency_id)

    def tenant_role_access(
        self,
        context: SecurityContext,
        agency_id: UUID | None,
        roles: Iterable[str],
    ) -> bool:
        """Admin, or employee of the owning agency holding one of ``roles``."""
        if context.is_platform_admin:
            return True
        if not self.is_same_tenant(context, agency_id):
            return False
        return context.has_any_role(*roles)

    def deny(
        self,
        context: SecurityContext,
        operation: str,
        agency_id: UUID | None = None,
        resource_id: UUID | str | None = None,
    ) -> SecurityViolationError:
        """Build (and log) the error for a denied operation.

        A cross-tenant attempt by an agency employee yields
        ``TenantViolationError`` so audit consumers can tell it apart.
        """
        cross_tenant = (
            context.is_agency_employee
            and agency_id is not None
            and not self.is_same_tenant(context, agency_id)
        )
        logger.info(
            "access_denied",
            extra={
                "resource_type": self.resource_type,
                "operation": operation,
                "user_id": str(context.user_id),
                "actor_type": context.actor_type.value,
                "principal_agency_id": str(context.agency_id) if context.agency_id else None,
                "resource_agency_id": str(agency_id) if agency_id else None,
                "cross_tenant": cross_tenant,
            },
        )
        context_fields: dict[str, str] = {
            "operation": operation,
            "resource_type": self.resource_type,
        }
        if resource_id is not None:
            context_fields["resource_id"] = str(resource_id)
        if cross_tenant:
            return TenantViolationError(
                f"Access denied: {self.resource_type} belongs to another agency",
                **context_fields,
            )
        return SecurityViolationError(
            f"Access denied: cannot {operation} {self.resource_type}",
            **context_fields,
        )

    def check(
        self,
        allowed: bool,
        context: SecurityContext,
        operation: str,
        agency_id: UUID | None = None,
        resource_id: UUID | str | None = None,
    ) -> None:
        """Raise the denial error unless ``allowed``."""
        if not allowed:
            raise self.deny(context, operation, agency_id, resource_id)
