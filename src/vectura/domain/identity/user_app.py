"""Application service for users and roles.

Roles are referenced by code. A user's role set is what the external
identity provider later puts into the ``roles`` claim; nothing here
issues tokens.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from vectura.domain.agency.services import AgencyDomainService
from vectura.domain.identity.events import (
    RoleAssigned,
    RoleRevoked,
    UserAgencyChanged,
    UserCreated,
    UserDeactivated,
)
from vectura.domain.identity.policies import RoleAccessPolicy, UserAccessPolicy
from vectura.domain.identity.services import RoleDomainService, UserDomainService
from vectura.domain.identity.user import Role, RoleScope, User
from vectura.foundation.domain.exceptions import ConflictError, NotFoundError
from vectura.foundation.domain.security_context import ActorType

if TYPE_CHECKING:
    from uuid import UUID

    from vectura.domain.agency.agency import Agency
    from vectura.domain.agency.ports import AgencyRepositoryPort
    from vectura.domain.identity.ports import RoleRepositoryPort, UserRepositoryPort
    from vectura.foundation.application.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class UserApplication:
    """User provisioning, role management and agency moves.

    Attributes:
        users: User persistence port.
        roles: Role persistence port.
        agencies: Agency persistence port, read for user limits and agency moves.
    """

    def __init__(
        self,
        users: UserRepositoryPort,
        roles: RoleRepositoryPort,
        agencies: AgencyRepositoryPort,
    ) -> None:
        self.users = users
        self.roles = roles
        self.agencies = agencies
        self._user_policy = UserAccessPolicy()
        self._role_policy = RoleAccessPolicy()
        self._user_service = UserDomainService()
        self._role_service = RoleDomainService()
        self._agency_service = AgencyDomainService()

    # -- Users -------------------------------------------------------------

    def register_user(
        self,
        uow: UnitOfWork,
        *,
        email: str,
        first_name: str,
        last_name: str,
        actor_type: ActorType,
        agency_id: UUID | None = None,
        **details: Any,
    ) -> User:
        """Create a user account.

        Raises:
            SecurityViolationError: If the actor may not create this kind of user.
            ValidationError: If a required field is missing or malformed.
            BusinessRuleViolationError: If the actor/agency pairing is inconsistent.
            ResourceLimitExceededError: If the agency's user limit is reached.
            ConflictError: If the email is already registered.
        """
        principal = uow.tenant.principal
        actor_type = ActorType(actor_type)
        self._user_policy.validate_create(principal, actor_type, agency_id)

        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            actor_type=actor_type,
            agency_id=agency_id,
            **details,
        )
        self._user_service.validate_user(user)
        if self.users.exists_by_email(user.email):
            raise ConflictError("User email already registered", email=user.email)
        if agency_id is not None:
            agency = self._load_agency(agency_id)
            self._agency_service.validate_can_add_user(
                agency, self.users.count_by_agency(agency_id)
            )

        version = uow.register(self.users, user)
        uow.collect(
            UserCreated(
                originator_id=user.id,
                originator_version=version,
                timestamp=user.updated_at,
                agency_id=user.agency_id,
                actor_id=principal.user_id,
                user_id=user.id,
                email=user.email,
                actor_type=str(user.actor_type),
            )
        )
        logger.info(
            "user_created",
            extra={"user_id": str(user.id), "actor_type": str(user.actor_type)},
        )
        return user

    def get_user(self, uow: UnitOfWork, user_id: UUID) -> User:
        user = self._load_user(user_id)
        self._user_policy.validate_access(uow.tenant.principal, user)
        uow.tenant.validate_resource_tenant(user.agency_id)
        return user

    def list_agency_users(
        self, uow: UnitOfWork, agency_id: UUID, *, include_deleted: bool = False
    ) -> list[User]:
        self._user_policy.validate_list_agency_users(uow.tenant.principal, agency_id)
        uow.tenant.validate_resource_tenant(agency_id)
        return self.users.list_by_agency(agency_id, include_deleted=include_deleted)

    def deactivate_user(self, uow: UnitOfWork, user_id: UUID) -> User:
        principal = uow.tenant.principal
        user = self._load_user(user_id)
        self._user_policy.validate_deactivate(principal, user)
        self._user_service.deactivate(user)
        version = uow.register(self.users, user)
        uow.collect(
            UserDeactivated(
                originator_id=user.id,
                originator_version=version,
                timestamp=user.updated_at,
                agency_id=user.agency_id,
                actor_id=principal.user_id,
                user_id=user.id,
            )
        )
        return user

    def activate_user(self, uow: UnitOfWork, user_id: UUID) -> User:
        user = self._load_user(user_id)
        self._user_policy.validate_deactivate(uow.tenant.principal, user)
        self._user_service.activate(user)
        uow.register(self.users, user)
        return user

    def change_user_agency(self, uow: UnitOfWork, user_id: UUID, new_agency_id: UUID) -> User:
        """Move an agency employee to another agency. PLATFORM_ADMIN only."""
        principal = uow.tenant.principal
        user = self._load_user(user_id)
        self._user_policy.validate_change_agency(principal, user)
        self._load_agency(new_agency_id)
        old_agency_id = self._user_service.change_agency(user, new_agency_id)
        version = uow.register(self.users, user)
        uow.collect(
            UserAgencyChanged(
                originator_id=user.id,
                originator_version=version,
                timestamp=user.updated_at,
                agency_id=new_agency_id,
                actor_id=principal.user_id,
                user_id=user.id,
                old_agency_id=old_agency_id,
                new_agency_id=new_agency_id,
            )
        )
        logger.info(
            "user_agency_changed",
            extra={
                "user_id": str(user.id),
                "old_agency_id": str(old_agency_id) if old_agency_id else None,
                "new_agency_id": str(new_agency_id),
            },
        )
        return user

    # -- Roles -------------------------------------------------------------

    def create_role(
        self,
        uow: UnitOfWork,
        *,
        code: str,
        name: str,
        scope: RoleScope = RoleScope.AGENCY,
        description: str | None = None,
    ) -> Role:
        self._role_policy.validate_create(uow.tenant.principal)
        role = Role(code=code, name=name, scope=RoleScope(scope), description=description)
        self._role_service.validate_role(role)
        if self.roles.exists_by_code(role.code):
            raise ConflictError("Role code already exists", code=role.code)
        uow.register(self.roles, role)
        return role

    def deactivate_role(self, uow: UnitOfWork, code: str) -> Role:
        role = self._load_role(code)
        self._role_policy.validate_modify(uow.tenant.principal, role)
        self._role_service.deactivate(role)
        uow.register(self.roles, role)
        return role

    def activate_role(self, uow: UnitOfWork, code: str) -> Role:
        role = self._load_role(code)
        self._role_policy.validate_modify(uow.tenant.principal, role)
        self._role_service.activate(role)
        uow.register(self.roles, role)
        return role

    def assign_role(self, uow: UnitOfWork, user_id: UUID, role_code: str) -> User:
        """Grant a role to a user.

        Both the target user (tenant) and the role (scope) are checked.
        """
        principal = uow.tenant.principal
        user = self._load_user(user_id)
        self._user_policy.validate_assign_roles(principal, user)
        role = self._load_role(role_code)
        self._role_policy.validate_assign(principal, role)
        self._user_service.assign_role(user, role)
        version = uow.register(self.users, user)
        uow.collect(
            RoleAssigned(
                originator_id=user.id,
                originator_version=version,
                timestamp=user.updated_at,
                agency_id=user.agency_id,
                actor_id=principal.user_id,
                user_id=user.id,
                role_code=role.code,
            )
        )
        return user

    def revoke_role(self, uow: UnitOfWork, user_id: UUID, role_code: str) -> User:
        principal = uow.tenant.principal
        user = self._load_user(user_id)
        self._user_policy.validate_assign_roles(principal, user)
        role = self._load_role(role_code)
        self._role_policy.validate_assign(principal, role)
        self._user_service.revoke_role(user, role)
        version = uow.register(self.users, user)
        uow.collect(
            RoleRevoked(
                originator_id=user.id,
                originator_version=version,
                timestamp=user.updated_at,
                agency_id=user.agency_id,
                actor_id=principal.user_id,
                user_id=user.id,
                role_code=role.code,
            )
        )
        return user

    # -- Internals ---------------------------------------------------------

    def _load_user(self, user_id: UUID) -> User:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def _load_role(self, code: str) -> Role:
        role = self.roles.find_by_code(code)
        if role is None:
            raise NotFoundError("Role", code)
        return role

    def _load_agency(self, agency_id: UUID) -> Agency:
        agency = self.agencies.find_by_id(agency_id)
        if agency is None:
            raise NotFoundError("Agency", agency_id)
        return agency
