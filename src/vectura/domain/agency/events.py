"""Domain events of the agency bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from vectura.foundation.domain.events import BaseEvent


@dataclass(frozen=True, kw_only=True)
class AgencyCreated(BaseEvent):
    agency_code: str
    agency_name: str


@dataclass(frozen=True, kw_only=True)
class AgencySuspended(BaseEvent):
    reason: str


@dataclass(frozen=True, kw_only=True)
class AgencyUnsuspended(BaseEvent):
    pass


@dataclass(frozen=True, kw_only=True)
class AgencyLocationAdded(BaseEvent):
    location_id: UUID
    location_code: str
    city: str
