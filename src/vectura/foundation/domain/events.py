"""Base event class for domain events.

Extends the eventsourcing library's DomainEvent with tenant attribution,
a unique event id and generic serialization. Events are immutable records
of facts; they only reach the event sink after the owning unit of work
commits.

Example:
    Define a domain event by subclassing BaseEvent::

        from dataclasses import dataclass
        from vectura.foundation.domain.events import BaseEvent

        @dataclass(frozen=True, kw_only=True)
        class ShipmentCreated(BaseEvent):
            shipment_id: UUID
            shipment_number: str

        ShipmentCreated.get_topic()
        # Returns: "vectura.domain.shipping.events:ShipmentCreated"

Field mapping onto DomainEvent:
    - ``originator_id``: id of the entity the event describes.
    - ``originator_version``: entity version after the change.
    - ``timestamp``: when the fact occurred (UTC).
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from functools import cached_property
from typing import Any
from uuid import UUID, uuid4

from eventsourcing.domain import DomainEvent


def _serialize(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True, kw_only=True)
class BaseEvent(DomainEvent):
    """Base class for all domain events.

    Attributes:
        agency_id: Tenant the fact belongs to. None only for platform-level
            events (e.g. a customer or admin user being created).
        actor_id: User who initiated the action, for the audit trail. None
            only for system-initiated facts.

    Note:
        No field here has a default. eventsourcing re-applies
        ``dataclass(frozen=True)`` without ``kw_only`` to every subclass, so a
        defaulted base field would forbid required fields on concrete events.
    """

    agency_id: UUID | None
    actor_id: UUID | None

    @cached_property
    def event_id(self) -> UUID:
        """Unique identifier of this event occurrence, fixed on first read."""
        return uuid4()

    @property
    def event_type(self) -> str:
        """Short event name used by consumers for routing."""
        return type(self).__name__

    @property
    def occurred_at(self) -> datetime:
        return self.timestamp

    @classmethod
    def get_topic(cls) -> str:
        """Get fully-qualified topic for event routing.

        Returns:
            Topic string in format "module:class".
        """
        return f"{cls.__module__}:{cls.__qualname__}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to a JSON-compatible dictionary.

        Includes every dataclass field of the concrete event plus
        ``event_id`` and ``event_type``. UUIDs become strings, datetimes
        ISO 8601 strings and enums their values.
        """
        data = {f.name: _serialize(getattr(self, f.name)) for f in dataclasses.fields(self)}
        data["event_id"] = str(self.event_id)
        data["event_type"] = self.event_type
        return data
