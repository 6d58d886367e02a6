"""Access policies for users and roles.

User rule table (AGENCY_ADMIN means an agency employee holding that role,
acting on an employee of its own agency)::

    operation       PLATFORM_ADMIN           AGENCY_ADMIN            anyone
    access          allow                    any own-agency employee self
    create          allow                    AGENCY_EMPLOYEE only    deny
    modify          allow                    allow                   self
    assign roles    allow                    allow                   deny
    deactivate      allow, never self        allow, never self       deny
    change agency   employees only           deny                    deny
    list agency     allow                    own agency (any employee)

Role rule table::

    create/modify   PLATFORM_ADMIN only
    assign          PLATFORM_ADMIN any role; AGENCY_ADMIN AGENCY-scoped roles
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from vectura.foundation.application.access_policy import TenantScopedPolicy
from vectura.foundation.domain.role_codes import RoleCode
from vectura.foundation.domain.security_context import ActorType

if TYPE_CHECKING:
    from uuid import UUID

    from vectura.domain.identity.user import Role, User
    from vectura.foundation.domain.security_context import SecurityContext

USER_ADMIN_ROLES = frozenset({RoleCode.AGENCY_ADMIN})


class UserAccessPolicy(TenantScopedPolicy):
    """Decisions on user accounts."""

    resource_type = "user"

    def _is_agency_admin_of(self, context: SecurityContext, target: User) -> bool:
        return target.is_agency_employee and self.tenant_role_access(
            context, target.agency_id, USER_ADMIN_ROLES
        )

    def can_access(self, context: SecurityContext, target: User) -> bool:
        if context.is_platform_admin or context.user_id == target.id:
            return True
        return target.is_agency_employee and self.is_same_tenant(context, target.agency_id)

    def can_create(
        self, context: SecurityContext, actor_type: ActorType, agency_id: UUID | None
    ) -> bool:
        if context.is_platform_admin:
            return True
        return actor_type == ActorType.AGENCY_EMPLOYEE and self.tenant_role_access(
            context, agency_id, USER_ADMIN_ROLES
        )

    def can_modify(self, context: SecurityContext, target: User) -> bool:
        if context.is_platform_admin or context.user_id == target.id:
            return True
        return self._is_agency_admin_of(context, target)

    def can_assign_roles(self, context: SecurityContext, target: User) -> bool:
        return context.is_platform_admin or self._is_agency_admin_of(context, target)

    def can_deactivate(self, context: SecurityContext, target: User) -> bool:
        if context.user_id == target.id:
            return False
        return context.is_platform_admin or self._is_agency_admin_of(context, target)

    def can_change_agency(self, context: SecurityContext, target: User) -> bool:
        return context.is_platform_admin and target.is_agency_employee

    def can_list_agency_users(self, context: SecurityContext, agency_id: UUID) -> bool:
        return self.tenant_access(context, agency_id)

    def validate_access(self, context: SecurityContext, target: User) -> None:
        self.check(
            self.can_access(context, target), context, "access", target.agency_id, target.id
        )

    def validate_create(
        self, context: SecurityContext, actor_type: ActorType, agency_id: UUID | None
    ) -> None:
        self.check(self.can_create(context, actor_type, agency_id), context, "create", agency_id)

    def validate_modify(self, context: SecurityContext, target: User) -> None:
        self.check(
            self.can_modify(context, target), context, "modify", target.agency_id, target.id
        )

    def validate_assign_roles(self, context: SecurityContext, target: User) -> None:
        self.check(
            self.can_assign_roles(context, target),
            context,
            "assign_roles",
            target.agency_id,
            target.id,
        )

    def validate_deactivate(self, context: SecurityContext, target: User) -> None:
        self.check(
            self.can_deactivate(context, target),
            context,
            "deactivate",
            target.agency_id,
            target.id,
        )

    def validate_change_agency(self, context: SecurityContext, target: User) -> None:
        self.check(
            self.can_change_agency(context, target),
            context,
            "change_agency",
            target.agency_id,
            target.id,
        )

    def validate_list_agency_users(self, context: SecurityContext, agency_id: UUID) -> None:
        self.check(self.can_list_agency_users(context, agency_id), context, "list", agency_id)


class RoleAccessPolicy(TenantScopedPolicy):
    """Decisions on role definitions and their assignment."""

    resource_type = "role"

    def can_create(self, context: SecurityContext) -> bool:
        return context.is_platform_admin

    def can_modify(self, context: SecurityContext, role: Role) -> bool:
        return context.is_platform_admin

    def can_assign(self, context: SecurityContext, role: Role) -> bool:
        if context.is_platform_admin:
            return True
        return (
            context.is_agency_employee
            and context.has_role(RoleCode.AGENCY_ADMIN)
            and role.is_agency_scope
        )

    def validate_create(self, context: SecurityContext) -> None:
        self.check(self.can_create(context), context, "create")

    def validate_modify(self, context: SecurityContext, role: Role) -> None:
        self.check(self.can_modify(context, role), context, "modify", resource_id=role.code)

    def validate_assign(self, context: SecurityContext, role: Role) -> None:
        self.check(self.can_assign(context, role), context, "assign", resource_id=role.code)
