"""Shipment entity and its lifecycle states.

Shipment state machine::

    agency path                     customer path
    -----------                     -------------
       OPEN                      PENDING_VALIDATION
         |                          |           |
         | confirm()      validate()|           |reject(reason)
         |                          v           v
         |                      VALIDATED    REJECTED
         |                          |
         |                 confirm()|
         v                          v
      CONFIRMED  <------------------+

    cancel / customer edit: only while PENDING_VALIDATION
    add parcel:             only while OPEN or VALIDATED

Parcels are not attached to the entity; they reference the shipment
through ``shipment_id`` and are counted through the parcel repository.
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


class ShipmentStatus(StrEnum):
    """Lifecycle state of a shipment."""

    OPEN = "OPEN"
    PENDING_VALIDATION = "PENDING_VALIDATION"
    VALIDATED = "VALIDATED"
    REJECTED = "REJECTED"
    CONFIRMED = "CONFIRMED"


@dataclass(kw_only=True)
class Shipment(Entity):
    """Grouped consignment owned by one agency.

    Attributes:
        agency_id: Owning agency (tenant key).
        shipment_number: Generated ``SHP-YYYYMMDD-XXX-NNNNNN`` number.
        customer_id: Set only for customer-created shipments.
        pickup_location_id: Drop-off location chosen by the customer.
        validated_by_id: Employee who validated or rejected a customer shipment.
    """

    agency_id: UUID
    shipment_number: str = ""
    status: ShipmentStatus = ShipmentStatus.OPEN

    customer_id: UUID | None = None
    pickup_location_id: UUID | None = None
    validated_by_id: UUID | None = None
    validated_at: datetime | None = None
    rejection_reason: str | None = None

    sender_name: str = ""
    sender_phone: str | None = None
    sender_email: str | None = None
    sender_address_line1: str | None = None
    sender_address_line2: str | None = None
    sender_city: str | None = None
    sender_postal_code: str | None = None
    sender_country: str = ""

    receiver_name: str = ""
    receiver_phone: str | None = None
    receiver_email: str | None = None
    receiver_address_line1: str | None = None
    receiver_address_line2: str | None = None
    receiver_city: str | None = None
    receiver_postal_code: str | None = None
    receiver_country: str = ""

    total_weight: Decimal | None = None
    declared_value: Decimal | None = None
    currency: str | None = None
    notes: str | None = None
    confirmed_at: datetime | None = None

    @property
    def is_customer_created(self) -> bool:
        return self.customer_id is not None


# Fields a shipment update (agency or customer) may change.
SHIPMENT_CONTENT_FIELDS = frozenset(
    {
        "sender_name",
        "sender_phone",
        "sender_email",
        "sender_address_line1",
        "sender_address_line2",
        "sender_city",
        "sender_postal_code",
        "sender_country",
        "receiver_name",
        "receiver_phone",
        "receiver_email",
        "receiver_address_line1",
        "receiver_address_line2",
        "receiver_city",
        "receiver_postal_code",
        "receiver_country",
        "total_weight",
        "declared_value",
        "currency",
        "notes",
    }
)
