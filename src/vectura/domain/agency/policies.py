"""Access policies for agencies and their locations.

Agency rule table::

    operation     PLATFORM_ADMIN   AGENCY_EMPLOYEE                  CUSTOMER
    access        allow            own agency                       deny
    create        allow            deny                             deny
    modify        allow            own agency + AGENCY_ADMIN        deny
    suspend       allow            deny                             deny
    list all      allow            deny                             deny

Location rule table::

    access        allow            own agency                       deny
    create        allow            own agency + manager role        deny
    modify        allow            own agency + manager role        deny

where the location manager roles are AGENCY_ADMIN and LOCATION_MANAGER.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from vectura.foundation.application.access_policy import TenantScopedPolicy
from vectura.foundation.domain.role_codes import RoleCode

if TYPE_CHECKING:
    from uuid import UUID

    from vectura.domain.agency.agency import AgencyLocation
    from vectura.foundation.domain.security_context import SecurityContext

AGENCY_MODIFY_ROLES = frozenset({RoleCode.AGENCY_ADMIN})
LOCATION_MODIFY_ROLES = frozenset({RoleCode.AGENCY_ADMIN, RoleCode.LOCATION_MANAGER})


class AgencyAccessPolicy(TenantScopedPolicy):
    """Decisions on agency records."""

    resource_type = "agency"

    def can_access(self, context: SecurityContext, agency_id: UUID) -> bool:
        return self.tenant_access(context, agency_id)

    def can_create(self, context: SecurityContext) -> bool:
        return context.is_platform_admin

    def can_modify(self, context: SecurityContext, agency_id: UUID) -> bool:
        return self.tenant_role_access(context, agency_id, AGENCY_MODIFY_ROLES)

    def can_suspend(self, context: SecurityContext) -> bool:
        return context.is_platform_admin

    def can_list_all(self, context: SecurityContext) -> bool:
        return context.is_platform_admin

    def validate_access(self, context: SecurityContext, agency_id: UUID) -> None:
        self.check(self.can_access(context, agency_id), context, "access", agency_id, agency_id)

    def validate_create(self, context: SecurityContext) -> None:
        self.check(self.can_create(context), context, "create")

    def validate_modify(self, context: SecurityContext, agency_id: UUID) -> None:
        self.check(self.can_modify(context, agency_id), context, "modify", agency_id, agency_id)

    def validate_suspend(
        self, context: SecurityContext, agency_id: UUID, operation: str = "suspend"
    ) -> None:
        """Guard suspend/unsuspend/activate/deactivate. PLATFORM_ADMIN only."""
        self.check(self.can_suspend(context), context, operation, agency_id, agency_id)

    def validate_list_all(self, context: SecurityContext) -> None:
        self.check(self.can_list_all(context), context, "list")


class LocationAccessPolicy(TenantScopedPolicy):
    """Decisions on agency locations."""

    resource_type = "location"

    def can_access(self, context: SecurityContext, agency_id: UUID) -> bool:
        return self.tenant_access(context, agency_id)

    def can_create(self, context: SecurityContext, agency_id: UUID) -> bool:
        return self.tenant_role_access(context, agency_id, LOCATION_MODIFY_ROLES)

    def can_modify(self, context: SecurityContext, location: AgencyLocation) -> bool:
        return self.tenant_role_access(context, location.agency_id, LOCATION_MODIFY_ROLES)

    def validate_access(self, context: SecurityContext, agency_id: UUID) -> None:
        self.check(self.can_access(context, agency_id), context, "access", agency_id)

    def validate_create(self, context: SecurityContext, agency_id: UUID) -> None:
        self.check(self.can_create(context, agency_id), context, "create", agency_id)

    def validate_modify(self, context: SecurityContext, location: AgencyLocation) -> None:
        self.check(
            self.can_modify(context, location),
            context,
            "modify",
            location.agency_id,
            location.id,
        )
