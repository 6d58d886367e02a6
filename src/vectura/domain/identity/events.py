"""Domain events of the identity bounded context.

``agency_id`` is None for users that belong to no agency (platform admins
and customers).
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from vectura.foundation.domain.events import BaseEvent


@dataclass(frozen=True, kw_only=True)
class UserCreated(BaseEvent):
    user_id: UUID
    email: str
    actor_type: str


@dataclass(frozen=True, kw_only=True)
class RoleAssigned(BaseEvent):
    user_id: UUID
    role_code: str


@dataclass(frozen=True, kw_only=True)
class RoleRevoked(BaseEvent):
    user_id: UUID
    role_code: str


@dataclass(frozen=True, kw_only=True)
class UserDeactivated(BaseEvent):
    user_id: UUID


@dataclass(frozen=True, kw_only=True)
class UserAgencyChanged(BaseEvent):
    user_id: UUID
    old_agency_id: UUID | None
    new_agency_id: UUID
