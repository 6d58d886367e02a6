"""Domain events of the shipping bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from vectura.foundation.domain.events import BaseEvent


@dataclass(frozen=True, kw_only=True)
class ShipmentCreated(BaseEvent):
    shipment_id: UUID
    shipment_number: str


@dataclass(frozen=True, kw_only=True)
class ShipmentConfirmed(BaseEvent):
    shipment_id: UUID
    shipment_number: str
    parcel_count: int


@dataclass(frozen=True, kw_only=True)
class ShipmentValidated(BaseEvent):
    """A customer shipment was accepted by an agency employee."""

    shipment_id: UUID
    shipment_number: str
    customer_id: UUID | None
    validated_by_id: UUID
    pickup_location_id: UUID | None


@dataclass(frozen=True, kw_only=True)
class ShipmentRejected(BaseEvent):
    shipment_id: UUID
    shipment_number: str
    customer_id: UUID | None
    rejected_by_id: UUID
    rejection_reason: str


@dataclass(frozen=True, kw_only=True)
class ParcelCreated(BaseEvent):
    parcel_id: UUID
    tracking_number: str
    shipment_id: UUID


@dataclass(frozen=True, kw_only=True)
class ParcelStatusChanged(BaseEvent):
    parcel_id: UUID
    tracking_number: str
    old_status: str
    new_status: str
    location_id: UUID | None = None


@dataclass(frozen=True, kw_only=True)
class ParcelDelivered(BaseEvent):
    parcel_id: UUID
    tracking_number: str
    delivered_at: datetime
    received_by: str | None = None
