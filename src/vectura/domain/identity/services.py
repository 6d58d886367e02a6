"""Stateless rules for users and roles."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from vectura.domain.identity.user import SCOPE_ACTOR_TYPES
from vectura.foundation.domain.exceptions import (
    BusinessRuleViolationError,
    ConflictError,
    InvalidStateTransitionError,
    ValidationError,
)
from vectura.foundation.domain.security_context import ActorType
from vectura.foundation.domain.value_objects import Email, RoleCodeFormat

if TYPE_CHECKING:
    from uuid import UUID

    from vectura.domain.identity.user import Role, User

logger = logging.getLogger(__name__)


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


class UserDomainService:
    """User invariants, activation and role membership."""

    def validate_user(self, user: User) -> None:
        """Check required fields and the actor/agency pairing.

        Normalizes the email address in place.

        Raises:
            ValidationError: If a required field is missing or the email is invalid.
            BusinessRuleViolationError: If the agency pairing is inconsistent.
        """
        try:
            user.email = Email(user.email or "").value
        except ValueError as exc:
            raise ValidationError("email", str(exc)) from exc
        if _is_blank(user.first_name):
            raise ValidationError("first_name", "First name is required")
        if _is_blank(user.last_name):
            raise ValidationError("last_name", "Last name is required")
        self.validate_agency_id_consistency(user)

    def validate_agency_id_consistency(self, user: User) -> None:
        if user.actor_type == ActorType.AGENCY_EMPLOYEE:
            if user.agency_id is None:
                raise BusinessRuleViolationError(
                    "AGENCY_EMPLOYEE must have an agency_id", user_id=str(user.id)
                )
        elif user.agency_id is not None:
            raise BusinessRuleViolationError(
                f"{user.actor_type} must NOT have an agency_id", user_id=str(user.id)
            )

    def deactivate(self, user: User) -> None:
        if not user.active:
            raise InvalidStateTransitionError("User is already inactive", user_id=str(user.id))
        user.active = False
        logger.info("user_deactivated", extra={"user_id": str(user.id)})

    def activate(self, user: User) -> None:
        if user.active:
            raise InvalidStateTransitionError("User is already active", user_id=str(user.id))
        user.active = True

    def assign_role(self, user: User, role: Role) -> None:
        """Grant ``role`` to ``user``.

        Raises:
            BusinessRuleViolationError: If the role's scope does not match the
                user's actor type, or the role is inactive.
            ConflictError: If the user already holds the role.
        """
        required = SCOPE_ACTOR_TYPES[role.scope]
        if user.actor_type != required:
            raise BusinessRuleViolationError(
                f"{role.scope}-scoped roles can only be assigned to {required}",
                user_id=str(user.id),
                role_code=role.code,
            )
        if not role.active:
            raise BusinessRuleViolationError(
                "Cannot assign inactive role", user_id=str(user.id), role_code=role.code
            )
        if user.has_role(role.code):
            raise ConflictError(
                "User already has this role", user_id=str(user.id), role_code=role.code
            )
        user.role_codes.add(role.code)

    def revoke_role(self, user: User, role: Role) -> None:
        if not user.has_role(role.code):
            raise BusinessRuleViolationError(
                "User does not have this role", user_id=str(user.id), role_code=role.code
            )
        user.role_codes.discard(role.code)

    def change_agency(self, user: User, new_agency_id: UUID | None) -> UUID | None:
        """Move an agency employee to another agency. Returns the old agency id."""
        if user.actor_type != ActorType.AGENCY_EMPLOYEE:
            raise BusinessRuleViolationError(
                "Only AGENCY_EMPLOYEE can change agency", user_id=str(user.id)
            )
        if new_agency_id is None:
            raise ValidationError("agency_id", "New agency ID cannot be null")
        if user.agency_id == new_agency_id:
            raise BusinessRuleViolationError(
                "User is already in this agency", user_id=str(user.id)
            )
        old_agency_id = user.agency_id
        user.agency_id = new_agency_id
        return old_agency_id

    def can_login(self, user: User) -> bool:
        return user.active and user.email_verified and not user.is_deleted

    def validate_can_login(self, user: User) -> None:
        if not user.active or user.is_deleted:
            raise BusinessRuleViolationError("User account is inactive", user_id=str(user.id))
        if not user.email_verified:
            raise BusinessRuleViolationError(
                "Email must be verified before login", user_id=str(user.id)
            )


class RoleDomainService:
    """Role definition rules."""

    def validate_role(self, role: Role) -> None:
        if _is_blank(role.code):
            raise ValidationError("code", "Role code is required")
        if _is_blank(role.name):
            raise ValidationError("name", "Role name is required")
        try:
            RoleCodeFormat(role.code)
        except ValueError as exc:
            raise ValidationError(
                "code", "Role code must be uppercase letters and underscores only"
            ) from exc

    def deactivate(self, role: Role) -> None:
        if not role.active:
            raise InvalidStateTransitionError("Role is already inactive", role_code=role.code)
        role.active = False

    def activate(self, role: Role) -> None:
        if role.active:
            raise InvalidStateTransitionError("Role is already active", role_code=role.code)
        role.active = True
