"""Parcel entity and its status transition table.

Parcel state machine (no other transitions are permitted)::

    from                to
    REGISTERED          IN_TRANSIT, IN_SORTING
    IN_TRANSIT          IN_SORTING, OUT_FOR_DELIVERY, FAILED
    IN_SORTING          IN_TRANSIT, OUT_FOR_DELIVERY
    OUT_FOR_DELIVERY    DELIVERED, FAILED, IN_TRANSIT
    FAILED              RETURNED, IN_TRANSIT
    DELIVERED           (terminal)
    RETURNED            (terminal)

A parcel's lifecycle is independent of its shipment's state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from vectura.foundation.domain.entities import Entity

if TYPE_CHECKING:
    from datetime import datetime
    from decimal import Decimal
    from uuid import UUID


class ParcelStatus(StrEnum):
    """Lifecycle state of a parcel."""

    REGISTERED = "REGISTERED"
    IN_TRANSIT = "IN_TRANSIT"
    IN_SORTING = "IN_SORTING"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"
    RETURNED = "RETURNED"


ALLOWED_TRANSITIONS: dict[ParcelStatus, frozenset[ParcelStatus]] = {
    ParcelStatus.REGISTERED: frozenset({ParcelStatus.IN_TRANSIT, ParcelStatus.IN_SORTING}),
    ParcelStatus.IN_TRANSIT: frozenset(
        {ParcelStatus.IN_SORTING, ParcelStatus.OUT_FOR_DELIVERY, ParcelStatus.FAILED}
    ),
    ParcelStatus.IN_SORTING: frozenset({ParcelStatus.IN_TRANSIT, ParcelStatus.OUT_FOR_DELIVERY}),
    ParcelStatus.OUT_FOR_DELIVERY: frozenset(
        {ParcelStatus.DELIVERED, ParcelStatus.FAILED, ParcelStatus.IN_TRANSIT}
    ),
    ParcelStatus.DELIVERED: frozenset(),
    ParcelStatus.FAILED: frozenset({ParcelStatus.RETURNED, ParcelStatus.IN_TRANSIT}),
    ParcelStatus.RETURNED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


@dataclass(kw_only=True)
class Parcel(Entity):
    """Single physical item inside a shipment.

    Attributes:
        agency_id: Owning agency (tenant key), copied from the shipment.
        shipment_id: Owning shipment.
        tracking_number: Generated ``TRK-YYYYMMDD-XXXXXXXX-C`` number.
        current_location_id: Location of the last scan.
        notes: Free text. Failure reasons are appended, never replaced.
    """

    agency_id: UUID
    shipment_id: UUID
    tracking_number: str = ""
    status: ParcelStatus = ParcelStatus.REGISTERED

    weight: Decimal | None = None
    length: Decimal | None = None
    width: Decimal | None = None
    height: Decimal | None = None
    description: str = ""
    declared_value: Decimal | None = None
    currency: str | None = None

    specific_receiver_name: str | None = None
    specific_receiver_phone: str | None = None
    specific_receiver_address: str | None = None

    current_location_id: UUID | None = None
    last_scan_at: datetime | None = None
    notes: str | None = None
    delivered_at: datetime | None = None
    received_by: str | None = None


PARCEL_CONTENT_FIELDS = frozenset(
    {
        "weight",
        "length",
        "width",
        "height",
        "description",
        "declared_value",
        "currency",
        "specific_receiver_name",
        "specific_receiver_phone",
        "specific_receiver_address",
        "notes",
    }
)
