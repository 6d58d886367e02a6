"""User and Role entities.

A user's ``actor_type`` fixes which kind of principal the user becomes
once authenticated. The agency pairing mirrors the security context
invariant: an AGENCY_EMPLOYEE always has an ``agency_id`` and no other
actor type ever has one.

Roles are platform-wide definitions identified by an upper-snake ``code``.
A role's ``scope`` decides which actor type may hold it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from vectura.foundation.domain.entities import Entity
from vectura.foundation.domain.security_context import ActorType

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


class RoleScope(StrEnum):
    """Which actor type a role may be assigned to."""

    AGENCY = "AGENCY"
    PLATFORM = "PLATFORM"
    CUSTOMER = "CUSTOMER"


# Actor type allowed to hold a role of each scope.
SCOPE_ACTOR_TYPES: dict[RoleScope, ActorType] = {
    RoleScope.PLATFORM: ActorType.PLATFORM_ADMIN,
    RoleScope.AGENCY: ActorType.AGENCY_EMPLOYEE,
    RoleScope.CUSTOMER: ActorType.CUSTOMER,
}


@dataclass(kw_only=True)
class Role(Entity):
    code: str
    name: str
    description: str | None = None
    scope: RoleScope = RoleScope.AGENCY
    active: bool = True

    @property
    def is_platform_scope(self) -> bool:
        return self.scope == RoleScope.PLATFORM

    @property
    def is_agency_scope(self) -> bool:
        return self.scope == RoleScope.AGENCY

    @property
    def is_customer_scope(self) -> bool:
        return self.scope == RoleScope.CUSTOMER


@dataclass(kw_only=True)
class User(Entity):
    """Platform user.

    Attributes:
        email: Unique, lowercased address.
        actor_type: Principal class this user authenticates as.
        agency_id: Employing agency. Set only for AGENCY_EMPLOYEE.
        external_auth_id: Subject at the external identity provider.
        role_codes: Codes of the roles currently held.
    """

    email: str
    first_name: str
    last_name: str
    actor_type: ActorType
    agency_id: UUID | None = None
    phone: str | None = None
    external_auth_id: str | None = None
    username: str | None = None
    job_title: str | None = None
    department: str | None = None
    active: bool = True
    email_verified: bool = False
    role_codes: set[str] = field(default_factory=set)
    last_login_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_platform_admin(self) -> bool:
        return self.actor_type == ActorType.PLATFORM_ADMIN

    @property
    def is_agency_employee(self) -> bool:
        return self.actor_type == ActorType.AGENCY_EMPLOYEE

    @property
    def is_customer(self) -> bool:
        return self.actor_type == ActorType.CUSTOMER

    def has_role(self, role_code: str) -> bool:
        return role_code in self.role_codes
