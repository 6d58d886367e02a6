"""Unit tests for vectura.domain.shipping.services."""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from vectura.domain.shipping.parcel import ALLOWED_TRANSITIONS, Parcel, ParcelStatus
from vectura.domain.shipping.services import ParcelDomainService, ShipmentDomainService
from vectura.domain.shipping.shipment import Shipment, ShipmentStatus
from vectura.foundation.domain.exceptions import (
    BusinessRuleViolationError,
    InvalidStateTransitionError,
    ValidationError,
)


def _shipment(**overrides: object) -> Shipment:
    fields: dict[str, object] = {
        "agency_id": uuid4(),
        "sender_name": "Claire Martin",
        "sender_country": "FR",
        "receiver_name": "Jonas Weber",
        "receiver_country": "DE",
    }
    fields.update(overrides)
    return Shipment(**fields)  # type: ignore[arg-type]


def _customer_shipment(**overrides: object) -> Shipment:
    return _shipment(
        customer_id=uuid4(),
        pickup_location_id=uuid4(),
        status=ShipmentStatus.PENDING_VALIDATION,
        **overrides,
    )


def _parcel(status: ParcelStatus = ParcelStatus.REGISTERED, **overrides: object) -> Parcel:
    fields: dict[str, object] = {
        "agency_id": uuid4(),
        "shipment_id": uuid4(),
        "status": status,
        "weight": Decimal("2.5"),
        "description": "Books",
    }
    fields.update(overrides)
    return Parcel(**fields)  # type: ignore[arg-type]


ALL_PAIRS = [(a, b) for a in ParcelStatus for b in ParcelStatus if a != b]
ALLOWED_PAIRS = [(a, b) for a, b in ALL_PAIRS if b in ALLOWED_TRANSITIONS[a]]
FORBIDDEN_PAIRS = [(a, b) for a, b in ALL_PAIRS if b not in ALLOWED_TRANSITIONS[a]]


# ---------------------------------------------------------------------------
# Shipment: agency path
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestShipmentData:
    def test_countries_are_normalized(self) -> None:
        shipment = _shipment(sender_country="fr", receiver_country=" de ")
        ShipmentDomainService().validate_shipment_data(shipment)
        assert (shipment.sender_country, shipment.receiver_country) == ("FR", "DE")

    @pytest.mark.parametrize(
        ("overrides", "field"),
        [
            ({"sender_name": " "}, "sender_name"),
            ({"receiver_name": ""}, "receiver_name"),
            ({"sender_country": "France"}, "sender_country"),
            ({"receiver_country": ""}, "receiver_country"),
        ],
    )
    def test_invalid_data(self, overrides: dict[str, str], field: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ShipmentDomainService().validate_shipment_data(_shipment(**overrides))
        assert exc_info.value.field == field


@pytest.mark.unit
class TestShipmentConfirm:
    @pytest.mark.parametrize("status", [ShipmentStatus.OPEN, ShipmentStatus.VALIDATED])
    def test_confirm(self, status: ShipmentStatus) -> None:
        shipment = _shipment(status=status)
        ShipmentDomainService().confirm(shipment, parcel_count=2)
        assert shipment.status == ShipmentStatus.CONFIRMED
        assert shipment.confirmed_at is not None

    def test_confirm_without_parcels(self) -> None:
        shipment = _shipment()
        with pytest.raises(BusinessRuleViolationError, match="without parcels"):
            ShipmentDomainService().confirm(shipment, parcel_count=0)
        assert shipment.status == ShipmentStatus.OPEN

    @pytest.mark.parametrize(
        "status",
        [ShipmentStatus.CONFIRMED, ShipmentStatus.PENDING_VALIDATION, ShipmentStatus.REJECTED],
    )
    def test_confirm_from_wrong_state(self, status: ShipmentStatus) -> None:
        with pytest.raises(InvalidStateTransitionError):
            ShipmentDomainService().confirm(_shipment(status=status), parcel_count=1)

    def test_parcels_only_before_confirmation(self) -> None:
        service = ShipmentDomainService()
        assert service.can_add_parcel(_shipment())
        assert service.can_add_parcel(_shipment(status=ShipmentStatus.VALIDATED))
        for status in (
            ShipmentStatus.CONFIRMED,
            ShipmentStatus.PENDING_VALIDATION,
            ShipmentStatus.REJECTED,
        ):
            with pytest.raises(BusinessRuleViolationError):
                service.validate_can_add_parcel(_shipment(status=status))

    def test_deleted_shipment_takes_no_parcels(self) -> None:
        shipment = _shipment()
        shipment.mark_deleted()
        assert not ShipmentDomainService().can_add_parcel(shipment)

    def test_count_parcels_skips_tombstones(self) -> None:
        deleted = _parcel()
        deleted.mark_deleted()
        assert ShipmentDomainService().count_parcels([_parcel(), deleted]) == 1

    def test_only_open_is_modifiable(self) -> None:
        service = ShipmentDomainService()
        service.validate_modifiable(_shipment())
        with pytest.raises(BusinessRuleViolationError):
            service.validate_modifiable(_shipment(status=ShipmentStatus.CONFIRMED))


# ---------------------------------------------------------------------------
# Shipment: customer path
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestCustomerShipment:
    def test_initialize(self) -> None:
        shipment = _shipment()
        customer_id, location_id = uuid4(), uuid4()
        ShipmentDomainService().initialize_customer_shipment(shipment, customer_id, location_id)
        assert shipment.status == ShipmentStatus.PENDING_VALIDATION
        assert shipment.customer_id == customer_id
        assert shipment.pickup_location_id == location_id

    def test_validate_appends_notes(self) -> None:
        shipment = _customer_shipment(notes="Fragile")
        validator = uuid4()
        ShipmentDomainService().validate_customer_shipment(shipment, validator, "Checked at desk")
        assert shipment.status == ShipmentStatus.VALIDATED
        assert shipment.validated_by_id == validator
        assert shipment.validated_at is not None
        assert shipment.notes == "Fragile\n[Validation] Checked at desk"

    def test_reject_records_reason(self) -> None:
        shipment = _customer_shipment()
        ShipmentDomainService().reject_customer_shipment(shipment, uuid4(), "Prohibited goods")
        assert shipment.status == ShipmentStatus.REJECTED
        assert shipment.rejection_reason == "Prohibited goods"

    def test_reject_requires_reason(self) -> None:
        shipment = _customer_shipment()
        with pytest.raises(BusinessRuleViolationError, match="reason is required"):
            ShipmentDomainService().reject_customer_shipment(shipment, uuid4(), "  ")
        assert shipment.status == ShipmentStatus.PENDING_VALIDATION

    def test_validate_twice(self) -> None:
        service = ShipmentDomainService()
        shipment = _customer_shipment()
        service.validate_customer_shipment(shipment, uuid4())
        with pytest.raises(InvalidStateTransitionError, match="PENDING_VALIDATION"):
            service.validate_customer_shipment(shipment, uuid4())

    def test_agency_shipment_cannot_be_validated(self) -> None:
        shipment = _shipment(status=ShipmentStatus.PENDING_VALIDATION)
        with pytest.raises(BusinessRuleViolationError, match="not created by a customer"):
            ShipmentDomainService().validate_customer_shipment(shipment, uuid4())

    def test_customer_edit_window(self) -> None:
        service = ShipmentDomainService()
        service.validate_customer_can_modify(_customer_shipment())
        service.validate_customer_can_cancel(_customer_shipment())
        validated = _customer_shipment()
        service.validate_customer_shipment(validated, uuid4())
        with pytest.raises(BusinessRuleViolationError, match="no longer modifiable"):
            service.validate_customer_can_modify(validated)
        with pytest.raises(BusinessRuleViolationError, match="no longer modifiable"):
            service.validate_customer_can_cancel(validated)


# ---------------------------------------------------------------------------
# Parcel state machine
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestParcelTransitions:
    @pytest.mark.parametrize(("current", "target"), ALLOWED_PAIRS)
    def test_allowed(self, current: ParcelStatus, target: ParcelStatus) -> None:
        parcel = _parcel(current)
        location_id = uuid4()
        old = ParcelDomainService().change_status(parcel, target, location_id)
        assert old == current
        assert parcel.status == target
        assert parcel.current_location_id == location_id
        assert parcel.last_scan_at is not None

    @pytest.mark.parametrize(("current", "target"), FORBIDDEN_PAIRS)
    def test_forbidden(self, current: ParcelStatus, target: ParcelStatus) -> None:
        parcel = _parcel(current)
        with pytest.raises(InvalidStateTransitionError, match="Invalid status transition"):
            ParcelDomainService().change_status(parcel, target)
        assert parcel.status == current
        assert parcel.last_scan_at is None

    @pytest.mark.parametrize("status", list(ParcelStatus))
    def test_self_transition(self, status: ParcelStatus) -> None:
        with pytest.raises(InvalidStateTransitionError, match="already in status"):
            ParcelDomainService().change_status(_parcel(status), status)

    def test_delivered_stamps_delivery_time(self) -> None:
        parcel = _parcel(ParcelStatus.OUT_FOR_DELIVERY)
        ParcelDomainService().change_status(parcel, ParcelStatus.DELIVERED)
        assert parcel.delivered_at == parcel.last_scan_at

    def test_terminal_states_have_no_exit(self) -> None:
        service = ParcelDomainService()
        assert service.is_in_terminal_state(_parcel(ParcelStatus.DELIVERED))
        assert service.is_in_terminal_state(_parcel(ParcelStatus.RETURNED))
        assert not service.is_in_terminal_state(_parcel(ParcelStatus.FAILED))


@pytest.mark.unit
class TestParcelDeliveryAndFailure:
    def test_mark_as_delivered(self) -> None:
        parcel = _parcel(ParcelStatus.OUT_FOR_DELIVERY)
        ParcelDomainService().mark_as_delivered(parcel, received_by="Concierge")
        assert parcel.status == ParcelStatus.DELIVERED
        assert parcel.received_by == "Concierge"
        assert parcel.delivered_at is not None

    def test_mark_as_delivered_requires_out_for_delivery(self) -> None:
        with pytest.raises(InvalidStateTransitionError):
            ParcelDomainService().mark_as_delivered(_parcel(ParcelStatus.IN_TRANSIT))

    def test_mark_as_failed_appends_reason(self) -> None:
        parcel = _parcel(ParcelStatus.OUT_FOR_DELIVERY, notes="Leave at door")
        old = ParcelDomainService().mark_as_failed(parcel, "Nobody home")
        assert old == ParcelStatus.OUT_FOR_DELIVERY
        assert parcel.status == ParcelStatus.FAILED
        assert parcel.notes == "Leave at door\nFailed: Nobody home"

    def test_mark_as_failed_from_registered(self) -> None:
        parcel = _parcel()
        ParcelDomainService().mark_as_failed(parcel, "Damaged at intake")
        assert parcel.notes == "Failed: Damaged at intake"

    @pytest.mark.parametrize("status", [ParcelStatus.DELIVERED, ParcelStatus.RETURNED])
    def test_mark_as_failed_rejects_terminal(self, status: ParcelStatus) -> None:
        with pytest.raises(InvalidStateTransitionError, match="terminal"):
            ParcelDomainService().mark_as_failed(_parcel(status), "late")

    def test_mark_as_failed_requires_reason(self) -> None:
        parcel = _parcel(ParcelStatus.IN_TRANSIT)
        with pytest.raises(BusinessRuleViolationError, match="reason is required"):
            ParcelDomainService().mark_as_failed(parcel, "")
        assert parcel.status == ParcelStatus.IN_TRANSIT


@pytest.mark.unit
class TestParcelData:
    @pytest.mark.parametrize("weight", [None, Decimal("0"), Decimal("-1")])
    def test_weight_must_be_positive(self, weight: Decimal | None) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ParcelDomainService().validate_parcel_data(_parcel(weight=weight))
        assert exc_info.value.field == "weight"

    def test_description_required(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ParcelDomainService().validate_parcel_data(_parcel(description=" "))
        assert exc_info.value.field == "description"

    def test_only_registered_is_modifiable(self) -> None:
        service = ParcelDomainService()
        service.validate_modifiable(_parcel())
        with pytest.raises(BusinessRuleViolationError):
            service.validate_modifiable(_parcel(ParcelStatus.IN_TRANSIT))
