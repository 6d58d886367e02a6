"""Security context value object representing the request's principal.

Pure domain object with no external dependencies. Immutable (frozen dataclass).
Built from verified token claims by the security context resolver and
discarded when the request ends.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID


class ActorType(StrEnum):
    """Class of actor behind a request."""

    PLATFORM_ADMIN = "PLATFORM_ADMIN"
    AGENCY_EMPLOYEE = "AGENCY_EMPLOYEE"
    CUSTOMER = "CUSTOMER"


@dataclass(frozen=True, slots=True)
class SecurityContext:
    """Trusted identity of the actor performing a request.

    Invariant: ``agency_id`` is set if and only if ``actor_type`` is
    AGENCY_EMPLOYEE.

    Attributes:
        user_id: UUID parsed from the token subject.
        actor_type: PLATFORM_ADMIN, AGENCY_EMPLOYEE or CUSTOMER.
        agency_id: Tenant of an agency employee. None for other actors.
        roles: Role codes granted to the actor. Order is irrelevant.
    """

    user_id: UUID
    actor_type: ActorType
    agency_id: UUID | None = None
    roles: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.actor_type == ActorType.AGENCY_EMPLOYEE and self.agency_id is None:
            msg = "AGENCY_EMPLOYEE security context requires an agency_id"
            raise ValueError(msg)
        if self.actor_type != ActorType.AGENCY_EMPLOYEE and self.agency_id is not None:
            msg = f"{self.actor_type} security context must not carry an agency_id"
            raise ValueError(msg)

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
        return role_code in self.roles

    def has_any_role(self, *role_codes: str) -> bool:
        return any(code in self.roles for code in role_codes)

    def belongs_to_agency(self, agency_id: UUID | None) -> bool:
        """Check tenant membership.

        Only agency employees belong to an agency; a missing id on either
        side never matches.
        """
        if not self.is_agency_employee or self.agency_id is None or agency_id is None:
            return False
        return self.agency_id == agency_id
