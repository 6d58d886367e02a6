"""Stateless lifecycle rules for shipments and parcels.

These services hold the state machines; entities stay plain data. Each
transition checks the current state first and raises before touching any
field, so a rejected call never leaves a half-applied change.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from vectura.domain.shipping.parcel import ALLOWED_TRANSITIONS, TERMINAL_STATUSES, ParcelStatus
from vectura.domain.shipping.shipment import ShipmentStatus
from vectura.foundation.domain.entities import utc_now
from vectura.foundation.domain.exceptions import (
    BusinessRuleViolationError,
    InvalidStateTransitionError,
    ValidationError,
)
from vectura.foundation.domain.value_objects import CountryCode

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from vectura.domain.shipping.parcel import Parcel
    from vectura.domain.shipping.shipment import Shipment

logger = logging.getLogger(__name__)

PARCEL_ATTACHABLE_STATUSES = frozenset({ShipmentStatus.OPEN, ShipmentStatus.VALIDATED})
CONFIRMABLE_STATUSES = frozenset({ShipmentStatus.OPEN, ShipmentStatus.VALIDATED})


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _append_note(existing: str | None, line: str) -> str:
    if not existing:
        return line
    return f"{existing}\n{line}"


class ShipmentDomainService:
    """Shipment lifecycle for the agency and customer creation paths."""

    # -- Invariants --------------------------------------------------------

    def validate_shipment_data(self, shipment: Shipment) -> None:
        """Check the fields every shipment needs.

        Raises:
            ValidationError: If a party name is blank or a country is not a
                2-letter ISO code.
        """
        if _is_blank(shipment.sender_name):
            raise ValidationError("sender_name", "Sender name is required")
        if _is_blank(shipment.receiver_name):
            raise ValidationError("receiver_name", "Receiver name is required")
        for field in ("sender_country", "receiver_country"):
            try:
                normalized = CountryCode(getattr(shipment, field) or "").value
            except ValueError as exc:
                raise ValidationError(
                    field, "Valid country code (ISO 3166-1 alpha-2) is required"
                ) from exc
            setattr(shipment, field, normalized)

    def can_add_parcel(self, shipment: Shipment) -> bool:
        return shipment.status in PARCEL_ATTACHABLE_STATUSES and not shipment.is_deleted

    def validate_can_add_parcel(self, shipment: Shipment) -> None:
        if not self.can_add_parcel(shipment):
            raise BusinessRuleViolationError(
                f"Cannot add parcel to {shipment.status} shipment",
                shipment_id=str(shipment.id),
                status=str(shipment.status),
            )

    def count_parcels(self, parcels: Iterable[Parcel]) -> int:
        return sum(1 for parcel in parcels if not parcel.is_deleted)

    def is_modifiable(self, shipment: Shipment) -> bool:
        return shipment.status == ShipmentStatus.OPEN

    def validate_modifiable(self, shipment: Shipment) -> None:
        if not self.is_modifiable(shipment):
            raise BusinessRuleViolationError(
                f"Cannot modify {shipment.status} shipment",
                shipment_id=str(shipment.id),
                status=str(shipment.status),
            )

    # -- Agency path -------------------------------------------------------

    def confirm(self, shipment: Shipment, parcel_count: int) -> None:
        """OPEN or VALIDATED -> CONFIRMED. No parcel may be added afterwards.

        Raises:
            InvalidStateTransitionError: If the shipment is in another state.
            BusinessRuleViolationError: If it has no parcels.
        """
        if shipment.status not in CONFIRMABLE_STATUSES:
            raise InvalidStateTransitionError(
                f"Cannot confirm {shipment.status} shipment",
                shipment_id=str(shipment.id),
                current_state=str(shipment.status),
                target_state=ShipmentStatus.CONFIRMED.value,
            )
        if parcel_count < 1:
            raise BusinessRuleViolationError(
                "Cannot confirm shipment without parcels", shipment_id=str(shipment.id)
            )
        shipment.status = ShipmentStatus.CONFIRMED
        shipment.confirmed_at = utc_now()
        logger.info(
            "shipment_confirmed",
            extra={
                "shipment_id": str(shipment.id),
                "agency_id": str(shipment.agency_id),
                "parcel_count": parcel_count,
            },
        )

    # -- Customer path -----------------------------------------------------

    def initialize_customer_shipment(
        self, shipment: Shipment, customer_id: UUID, pickup_location_id: UUID
    ) -> None:
        shipment.customer_id = customer_id
        shipment.pickup_location_id = pickup_location_id
        shipment.status = ShipmentStatus.PENDING_VALIDATION

    def validate_customer_shipment(
        self, shipment: Shipment, validator_id: UUID, notes: str | None = None
    ) -> None:
        """PENDING_VALIDATION -> VALIDATED.

        Validation notes are appended to the shipment notes as
        ``[Validation] <notes>``.
        """
        self._require_pending_customer_shipment(shipment, "validated", ShipmentStatus.VALIDATED)
        shipment.status = ShipmentStatus.VALIDATED
        shipment.validated_by_id = validator_id
        shipment.validated_at = utc_now()
        if not _is_blank(notes):
            shipment.notes = _append_note(shipment.notes, f"[Validation] {notes}")
        logger.info(
            "customer_shipment_validated",
            extra={"shipment_id": str(shipment.id), "validated_by_id": str(validator_id)},
        )

    def reject_customer_shipment(
        self, shipment: Shipment, rejected_by_id: UUID, reason: str | None
    ) -> None:
        """PENDING_VALIDATION -> REJECTED. A non-blank reason is required."""
        self._require_pending_customer_shipment(shipment, "rejected", ShipmentStatus.REJECTED)
        if _is_blank(reason):
            raise BusinessRuleViolationError(
                "Rejection reason is required", shipment_id=str(shipment.id)
            )
        shipment.status = ShipmentStatus.REJECTED
        shipment.validated_by_id = rejected_by_id
        shipment.validated_at = utc_now()
        shipment.rejection_reason = reason
        logger.info(
            "customer_shipment_rejected",
            extra={"shipment_id": str(shipment.id), "rejected_by_id": str(rejected_by_id)},
        )

    def is_pending_validation(self, shipment: Shipment) -> bool:
        return shipment.status == ShipmentStatus.PENDING_VALIDATION

    def validate_customer_can_modify(self, shipment: Shipment) -> None:
        if not self.is_pending_validation(shipment):
            raise BusinessRuleViolationError(
                "Shipment no longer modifiable: customer can only modify "
                "PENDING_VALIDATION shipments",
                shipment_id=str(shipment.id),
                status=str(shipment.status),
            )

    def validate_customer_can_cancel(self, shipment: Shipment) -> None:
        if not self.is_pending_validation(shipment):
            raise BusinessRuleViolationError(
                "Shipment no longer modifiable: customer can only cancel "
                "PENDING_VALIDATION shipments",
                shipment_id=str(shipment.id),
                status=str(shipment.status),
            )

    def _require_pending_customer_shipment(
        self, shipment: Shipment, verb: str, target: ShipmentStatus
    ) -> None:
        if shipment.status != ShipmentStatus.PENDING_VALIDATION:
            raise InvalidStateTransitionError(
                f"Only PENDING_VALIDATION shipments can be {verb}",
                shipment_id=str(shipment.id),
                current_state=str(shipment.status),
                target_state=target.value,
            )
        if not shipment.is_customer_created:
            raise BusinessRuleViolationError(
                "This shipment was not created by a customer", shipment_id=str(shipment.id)
            )


class ParcelDomainService:
    """Parcel state machine. See ``ALLOWED_TRANSITIONS``."""

    def change_status(
        self, parcel: Parcel, new_status: ParcelStatus, location_id: UUID | None = None
    ) -> ParcelStatus:
        """Move the parcel along the transition table and return the old status.

        Stamps ``last_scan_at`` and ``current_location_id``; reaching
        DELIVERED also stamps ``delivered_at``.

        Raises:
            InvalidStateTransitionError: On a self-transition or a pair that
                is not in the table. Nothing is mutated.
        """
        current = parcel.status
        if current == new_status:
            raise InvalidStateTransitionError(
                f"Parcel is already in status {new_status}",
                parcel_id=str(parcel.id),
                current_state=str(current),
                target_state=str(new_status),
            )
        if new_status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidStateTransitionError(
                f"Invalid status transition: {current} -> {new_status}",
                parcel_id=str(parcel.id),
                current_state=str(current),
                target_state=str(new_status),
            )
        now = utc_now()
        parcel.status = new_status
        parcel.current_location_id = location_id
        parcel.last_scan_at = now
        if new_status == ParcelStatus.DELIVERED:
            parcel.delivered_at = now
        logger.debug(
            "parcel_status_changed",
            extra={
                "parcel_id": str(parcel.id),
                "old_status": str(current),
                "new_status": str(new_status),
            },
        )
        return current

    def mark_as_delivered(
        self,
        parcel: Parcel,
        received_by: str | None = None,
        location_id: UUID | None = None,
    ) -> None:
        """OUT_FOR_DELIVERY -> DELIVERED, recording who received the parcel."""
        if parcel.status != ParcelStatus.OUT_FOR_DELIVERY:
            raise InvalidStateTransitionError(
                "Only OUT_FOR_DELIVERY parcels can be marked as delivered",
                parcel_id=str(parcel.id),
                current_state=str(parcel.status),
                target_state=ParcelStatus.DELIVERED.value,
            )
        now = utc_now()
        parcel.status = ParcelStatus.DELIVERED
        parcel.delivered_at = now
        parcel.last_scan_at = now
        parcel.received_by = received_by
        if location_id is not None:
            parcel.current_location_id = location_id

    def mark_as_failed(self, parcel: Parcel, reason: str | None) -> ParcelStatus:
        """Move a non-terminal parcel to FAILED and return the old status.

        The reason is appended to ``notes`` as ``Failed: <reason>``; earlier
        notes are kept.
        """
        if self.is_in_terminal_state(parcel):
            raise InvalidStateTransitionError(
                "Cannot mark terminal state parcel as failed",
                parcel_id=str(parcel.id),
                current_state=str(parcel.status),
                target_state=ParcelStatus.FAILED.value,
            )
        if _is_blank(reason):
            raise BusinessRuleViolationError(
                "Failure reason is required", parcel_id=str(parcel.id)
            )
        previous = parcel.status
        parcel.status = ParcelStatus.FAILED
        parcel.last_scan_at = utc_now()
        parcel.notes = _append_note(parcel.notes, f"Failed: {reason}")
        return previous

    def is_in_terminal_state(self, parcel: Parcel) -> bool:
        return parcel.status in TERMINAL_STATUSES

    def is_modifiable(self, parcel: Parcel) -> bool:
        return parcel.status == ParcelStatus.REGISTERED

    def validate_modifiable(self, parcel: Parcel) -> None:
        if not self.is_modifiable(parcel):
            raise BusinessRuleViolationError(
                f"Cannot modify parcel in status {parcel.status}", parcel_id=str(parcel.id)
            )

    def validate_parcel_data(self, parcel: Parcel) -> None:
        if parcel.weight is None or parcel.weight <= 0:
            raise ValidationError("weight", "Parcel weight must be positive")
        if _is_blank(parcel.description):
            raise ValidationError("description", "Parcel description is required")
