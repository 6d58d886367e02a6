"""Security context resolution from verified token claims.

The token verifier (an external collaborator) guarantees the claims are
authentic. This module only turns them into a typed ``SecurityContext`` and
fails closed when they are missing or inconsistent. It never consults the
data store: the token is the sole source of identity, and every downstream
check re-derives authorization from the resolved context.

Usage:
    from vectura.foundation.application.security import resolve_security_context

    context = resolve_security_context(verified_claims)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from uuid import UUID

from vectura.foundation.domain.exceptions import AuthenticationMalformedError
from vectura.foundation.domain.security_context import ActorType, SecurityContext

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

SUBJECT_CLAIM = "sub"
ACTOR_TYPE_CLAIM = "actor_type"
AGENCY_ID_CLAIM = "agency_id"
ROLES_CLAIM = "roles"


def _parse_uuid(value: Any) -> UUID | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _parse_roles(value: Any) -> frozenset[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise AuthenticationMalformedError(
            "Roles claim must be a list of role codes", claim=ROLES_CLAIM
        )
    return frozenset(str(role) for role in value if role)


def resolve_security_context(claims: Mapping[str, Any]) -> SecurityContext:
    """Build the request's SecurityContext from verified claims.

    Rules:
        - ``sub`` must be present and UUID-shaped.
        - ``actor_type`` must be one of the known actor types.
        - AGENCY_EMPLOYEE requires a UUID-shaped ``agency_id``.
        - CUSTOMER and PLATFORM_ADMIN must not carry an ``agency_id``.
        - A missing ``roles`` claim yields an empty role set.

    Args:
        claims: Claims of a token already verified by the caller.

    Returns:
        Immutable SecurityContext for the current request.

    Raises:
        AuthenticationMalformedError: If any rule above is violated.
    """
    subject = claims.get(SUBJECT_CLAIM)
    if not subject:
        raise AuthenticationMalformedError("Missing subject claim", claim=SUBJECT_CLAIM)
    user_id = _parse_uuid(subject)
    if user_id is None:
        raise AuthenticationMalformedError(
            "Subject claim is not a valid UUID", claim=SUBJECT_CLAIM
        )

    raw_actor_type = claims.get(ACTOR_TYPE_CLAIM)
    if not raw_actor_type:
        raise AuthenticationMalformedError(
            "Missing actor type claim", claim=ACTOR_TYPE_CLAIM
        )
    try:
        actor_type = ActorType(str(raw_actor_type))
    except ValueError:
        raise AuthenticationMalformedError(  # noqa: B904
            f"Unknown actor type: {raw_actor_type}", claim=ACTOR_TYPE_CLAIM
        )

    raw_agency_id = claims.get(AGENCY_ID_CLAIM)
    agency_id: UUID | None = None
    if actor_type == ActorType.AGENCY_EMPLOYEE:
        agency_id = _parse_uuid(raw_agency_id)
        if agency_id is None:
            raise AuthenticationMalformedError(
                "Agency employee requires a valid agency_id claim",
                claim=AGENCY_ID_CLAIM,
                actor_type=actor_type.value,
            )
    elif raw_agency_id not in (None, ""):
        raise AuthenticationMalformedError(
            f"{actor_type.value} must not carry an agency_id claim",
            claim=AGENCY_ID_CLAIM,
            actor_type=actor_type.value,
        )

    context = SecurityContext(
        user_id=user_id,
        actor_type=actor_type,
        agency_id=agency_id,
        roles=_parse_roles(claims.get(ROLES_CLAIM)),
    )
    logger.debug(
        "security_context_resolved",
        extra={
            "user_id": str(user_id),
            "actor_type": actor_type.value,
            "agency_id": str(agency_id) if agency_id else None,
            "role_count": len(context.roles),
        },
    )
    return context
