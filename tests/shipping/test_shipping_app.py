"""Tests for ShippingApplication against the in-memory stores."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from vectura.domain.shipping.events import (
    ParcelCreated,
    ParcelDelivered,
    ParcelStatusChanged,
    ShipmentConfirmed,
    ShipmentCreated,
    ShipmentRejected,
    ShipmentValidated,
)
from vectura.domain.shipping.generators import ShipmentNumberGenerator, agency_prefix
from vectura.domain.shipping.parcel import ParcelStatus
from vectura.domain.shipping.shipment import ShipmentStatus
from vectura.domain.shipping.shipping_app import ShippingApplication
from vectura.foundation.domain.exceptions import (
    BusinessRuleViolationError,
    ConflictError,
    InvalidStateTransitionError,
    NotFoundError,
    ResourceLimitExceededError,
    SecurityViolationError,
    TenantViolationError,
    ValidationError,
)
from vectura.foundation.domain.role_codes import RoleCode
from vectura.foundation.domain.security_context import ActorType, SecurityContext

if TYPE_CHECKING:
    from collections.abc import Callable

    from vectura.domain.agency.agency import Agency, AgencyLocation
    from vectura.domain.agency.agency_app import AgencyApplication
    from vectura.domain.shipping.parcel import Parcel
    from vectura.domain.shipping.shipment import Shipment
    from vectura.infra.persistence.memory import (
        InMemoryAgencyRepository,
        InMemoryEventSink,
        InMemoryLocationRepository,
        InMemoryParcelRepository,
        InMemoryShipmentRepository,
    )

    Run = Callable[..., Any]

PARCEL = {"weight": Decimal("2.5"), "description": "Books"}


@pytest.fixture()
def open_shipment(
    run: Run,
    shipping_app: ShippingApplication,
    shipment_manager_a: SecurityContext,
    shipment_payload: dict[str, Any],
) -> Shipment:
    return run(
        shipment_manager_a, lambda uow: shipping_app.create_shipment(uow, **shipment_payload)
    )


@pytest.fixture()
def customer_shipment(
    run: Run,
    shipping_app: ShippingApplication,
    customer: SecurityContext,
    headquarters_a: AgencyLocation,
    shipment_payload: dict[str, Any],
) -> Shipment:
    return run(
        customer,
        lambda uow: shipping_app.create_customer_shipment(
            uow, pickup_location_id=headquarters_a.id, **shipment_payload
        ),
    )


def _add_parcel(
    run: Run, app: ShippingApplication, principal: SecurityContext, shipment: Shipment
) -> Parcel:
    return run(principal, lambda uow: app.add_parcel(uow, shipment.id, **PARCEL))


# ---------------------------------------------------------------------------
# Agency path
# ---------------------------------------------------------------------------


class TestCreateShipment:
    def test_created_open_with_number(
        self,
        open_shipment: Shipment,
        agency_a: Agency,
        shipments: InMemoryShipmentRepository,
        event_sink: InMemoryEventSink,
    ) -> None:
        assert open_shipment.status == ShipmentStatus.OPEN
        assert open_shipment.agency_id == agency_a.id
        assert open_shipment.sender_country == "FR"
        assert ShipmentNumberGenerator.is_valid_format(open_shipment.shipment_number)
        assert open_shipment.shipment_number.endswith(f"-{agency_prefix(agency_a.id)}-000001")

        stored = shipments.find_by_id(open_shipment.id)
        assert stored is not None
        assert stored.shipment_number == open_shipment.shipment_number

        (event,) = event_sink.of_type(ShipmentCreated)
        assert event.shipment_id == open_shipment.id
        assert event.agency_id == agency_a.id

    def test_numbers_follow_daily_sequence(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        shipment_payload: dict[str, Any],
        open_shipment: Shipment,
    ) -> None:
        second = run(
            shipment_manager_a, lambda uow: shipping_app.create_shipment(uow, **shipment_payload)
        )
        assert second.shipment_number.endswith("-000002")
        assert second.shipment_number[:-6] == open_shipment.shipment_number[:-6]

    def test_admin_must_name_the_agency(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        admin: SecurityContext,
        agency_a: Agency,
        shipment_payload: dict[str, Any],
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            run(admin, lambda uow: shipping_app.create_shipment(uow, **shipment_payload))
        assert exc_info.value.field == "agency_id"

        created = run(
            admin,
            lambda uow: shipping_app.create_shipment(
                uow, agency_id=agency_a.id, **shipment_payload
            ),
        )
        assert created.agency_id == agency_a.id

    def test_employee_cannot_create_for_other_agency(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        agency_b: Agency,
        shipment_payload: dict[str, Any],
        event_sink: InMemoryEventSink,
    ) -> None:
        with pytest.raises(TenantViolationError):
            run(
                shipment_manager_a,
                lambda uow: shipping_app.create_shipment(
                    uow, agency_id=agency_b.id, **shipment_payload
                ),
            )
        assert event_sink.of_type(ShipmentCreated) == []

    def test_unknown_field_rejected(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        shipment_payload: dict[str, Any],
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            run(
                shipment_manager_a,
                lambda uow: shipping_app.create_shipment(
                    uow, status=ShipmentStatus.CONFIRMED, **shipment_payload
                ),
            )
        assert exc_info.value.field == "status"

    def test_invalid_country(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        shipment_payload: dict[str, Any],
        shipments: InMemoryShipmentRepository,
        agency_a: Agency,
    ) -> None:
        shipment_payload["receiver_country"] = "Germany"
        with pytest.raises(ValidationError):
            run(
                shipment_manager_a,
                lambda uow: shipping_app.create_shipment(uow, **shipment_payload),
            )
        assert shipments.list_by_agency(agency_a.id) == []

    def test_suspended_agency_cannot_create(
        self,
        run: Run,
        agency_app: AgencyApplication,
        shipments: InMemoryShipmentRepository,
        parcels: InMemoryParcelRepository,
        agencies: InMemoryAgencyRepository,
        locations: InMemoryLocationRepository,
        event_sink: InMemoryEventSink,
        admin: SecurityContext,
        shipment_manager_a: SecurityContext,
        agency_a: Agency,
        shipment_payload: dict[str, Any],
    ) -> None:
        numbers = MagicMock(spec=ShipmentNumberGenerator)
        app = ShippingApplication(
            shipments, parcels, agencies, locations, number_generator=numbers
        )
        run(admin, lambda uow: agency_app.suspend_agency(uow, agency_a.id, "Audit"))

        with pytest.raises(BusinessRuleViolationError, match="inactive or suspended"):
            run(
                shipment_manager_a,
                lambda uow: app.create_shipment(uow, **shipment_payload),
            )
        numbers.generate_unique_number.assert_not_called()
        assert shipments.list_by_agency(agency_a.id) == []
        assert event_sink.of_type(ShipmentCreated) == []

    def test_monthly_limit(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        agency_a: Agency,
        agencies: InMemoryAgencyRepository,
        shipment_payload: dict[str, Any],
        open_shipment: Shipment,
    ) -> None:
        agency = agencies.find_by_id(agency_a.id)
        assert agency is not None
        agency.max_shipments_per_month = 1
        agencies.save(agency)

        with pytest.raises(ResourceLimitExceededError) as exc_info:
            run(
                shipment_manager_a,
                lambda uow: shipping_app.create_shipment(uow, **shipment_payload),
            )
        assert exc_info.value.limit == 1


class TestShipmentReads:
    def test_cross_tenant_read_is_tenant_violation(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        make_employee: Callable[..., SecurityContext],
        agency_b: Agency,
        open_shipment: Shipment,
    ) -> None:
        intruder = make_employee(agency_b.id, RoleCode.AGENCY_ADMIN)
        with pytest.raises(TenantViolationError):
            run(intruder, lambda uow: shipping_app.get_shipment(uow, open_shipment.id))
        with pytest.raises(TenantViolationError):
            run(intruder, lambda uow: shipping_app.list_parcels(uow, open_shipment.id))

    def test_tenant_cross_check_backs_the_policy(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        make_employee: Callable[..., SecurityContext],
        agency_b: Agency,
        open_shipment: Shipment,
    ) -> None:
        shipping_app._shipment_policy = MagicMock()
        intruder = make_employee(agency_b.id, RoleCode.AGENCY_ADMIN)
        with pytest.raises(TenantViolationError, match="Tenant mismatch"):
            run(intruder, lambda uow: shipping_app.get_shipment(uow, open_shipment.id))
        with pytest.raises(TenantViolationError, match="Tenant mismatch"):
            run(intruder, lambda uow: shipping_app.list_shipments(uow, open_shipment.agency_id))
        shipping_app._shipment_policy.validate_access.assert_called()

    def test_customer_reads_own_shipment_only(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        customer: SecurityContext,
        customer_shipment: Shipment,
        open_shipment: Shipment,
    ) -> None:
        found = run(customer, lambda uow: shipping_app.get_shipment(uow, customer_shipment.id))
        assert found.id == customer_shipment.id
        assert run(customer, lambda uow: shipping_app.list_parcels(uow, customer_shipment.id)) == []
        with pytest.raises(SecurityViolationError) as exc_info:
            run(customer, lambda uow: shipping_app.get_shipment(uow, open_shipment.id))
        assert type(exc_info.value) is SecurityViolationError
        assert exc_info.value.context["operation"] == "customer_access"

    def test_unknown_shipment(
        self, run: Run, shipping_app: ShippingApplication, admin: SecurityContext
    ) -> None:
        with pytest.raises(NotFoundError, match="Shipment not found"):
            run(admin, lambda uow: shipping_app.get_shipment(uow, uuid4()))

    def test_list_filters_by_status(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        open_shipment: Shipment,
        customer_shipment: Shipment,
    ) -> None:
        everything = run(shipment_manager_a, lambda uow: shipping_app.list_shipments(uow))
        pending = run(shipment_manager_a, lambda uow: shipping_app.list_pending_validation(uow))
        assert {s.id for s in everything} == {open_shipment.id, customer_shipment.id}
        assert [s.id for s in pending] == [customer_shipment.id]

    def test_deleted_shipment_hidden(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        agency_admin_a: SecurityContext,
        shipment_manager_a: SecurityContext,
        open_shipment: Shipment,
    ) -> None:
        with pytest.raises(SecurityViolationError):
            run(shipment_manager_a, lambda uow: shipping_app.delete_shipment(uow, open_shipment.id))
        run(agency_admin_a, lambda uow: shipping_app.delete_shipment(uow, open_shipment.id))

        with pytest.raises(NotFoundError):
            run(agency_admin_a, lambda uow: shipping_app.get_shipment(uow, open_shipment.id))
        deleted = run(
            agency_admin_a,
            lambda uow: shipping_app.get_shipment(uow, open_shipment.id, include_deleted=True),
        )
        assert deleted.is_deleted


class TestUpdateAndConfirm:
    def test_update_open_shipment(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        shipments: InMemoryShipmentRepository,
        open_shipment: Shipment,
    ) -> None:
        run(
            shipment_manager_a,
            lambda uow: shipping_app.update_shipment(
                uow, open_shipment.id, receiver_city="Hamburg"
            ),
        )
        stored = shipments.find_by_id(open_shipment.id)
        assert stored is not None
        assert stored.receiver_city == "Hamburg"
        assert stored.version == open_shipment.version + 1

    def test_confirm_requires_parcels(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        shipments: InMemoryShipmentRepository,
        open_shipment: Shipment,
    ) -> None:
        with pytest.raises(BusinessRuleViolationError, match="without parcels"):
            run(
                shipment_manager_a,
                lambda uow: shipping_app.confirm_shipment(uow, open_shipment.id),
            )
        stored = shipments.find_by_id(open_shipment.id)
        assert stored is not None
        assert stored.status == ShipmentStatus.OPEN

    def test_confirm_locks_the_shipment(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        event_sink: InMemoryEventSink,
        open_shipment: Shipment,
    ) -> None:
        _add_parcel(run, shipping_app, shipment_manager_a, open_shipment)
        confirmed = run(
            shipment_manager_a, lambda uow: shipping_app.confirm_shipment(uow, open_shipment.id)
        )
        assert confirmed.status == ShipmentStatus.CONFIRMED
        (event,) = event_sink.of_type(ShipmentConfirmed)
        assert event.parcel_count == 1

        with pytest.raises(BusinessRuleViolationError, match="Cannot add parcel"):
            _add_parcel(run, shipping_app, shipment_manager_a, open_shipment)
        with pytest.raises(BusinessRuleViolationError, match="Cannot modify"):
            run(
                shipment_manager_a,
                lambda uow: shipping_app.update_shipment(uow, open_shipment.id, notes="late"),
            )
        with pytest.raises(InvalidStateTransitionError):
            run(
                shipment_manager_a,
                lambda uow: shipping_app.confirm_shipment(uow, open_shipment.id),
            )


# ---------------------------------------------------------------------------
# Customer path
# ---------------------------------------------------------------------------


class TestCustomerShipments:
    def test_created_pending_in_location_agency(
        self,
        customer_shipment: Shipment,
        customer: SecurityContext,
        agency_a: Agency,
        headquarters_a: AgencyLocation,
    ) -> None:
        assert customer_shipment.status == ShipmentStatus.PENDING_VALIDATION
        assert customer_shipment.agency_id == agency_a.id
        assert customer_shipment.customer_id == customer.user_id
        assert customer_shipment.pickup_location_id == headquarters_a.id

    def test_employee_cannot_use_customer_path(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        headquarters_a: AgencyLocation,
        shipment_payload: dict[str, Any],
    ) -> None:
        with pytest.raises(SecurityViolationError):
            run(
                shipment_manager_a,
                lambda uow: shipping_app.create_customer_shipment(
                    uow, pickup_location_id=headquarters_a.id, **shipment_payload
                ),
            )

    def test_unknown_pickup_location(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        customer: SecurityContext,
        shipment_payload: dict[str, Any],
    ) -> None:
        with pytest.raises(NotFoundError, match="AgencyLocation"):
            run(
                customer,
                lambda uow: shipping_app.create_customer_shipment(
                    uow, pickup_location_id=uuid4(), **shipment_payload
                ),
            )

    def test_closed_pickup_location(
        self,
        run: Run,
        agency_app: AgencyApplication,
        shipping_app: ShippingApplication,
        admin: SecurityContext,
        customer: SecurityContext,
        headquarters_a: AgencyLocation,
        shipment_payload: dict[str, Any],
    ) -> None:
        run(admin, lambda uow: agency_app.close_location(uow, headquarters_a.id, "Renovation"))
        with pytest.raises(BusinessRuleViolationError, match="not operational"):
            run(
                customer,
                lambda uow: shipping_app.create_customer_shipment(
                    uow, pickup_location_id=headquarters_a.id, **shipment_payload
                ),
            )

    def test_customer_lists_only_own_shipments(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        customer: SecurityContext,
        customer_shipment: Shipment,
        open_shipment: Shipment,
    ) -> None:
        found = run(customer, lambda uow: shipping_app.list_shipments(uow))
        assert [s.id for s in found] == [customer_shipment.id]

    def test_customer_edits_and_cancels_while_pending(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        customer: SecurityContext,
        shipments: InMemoryShipmentRepository,
        customer_shipment: Shipment,
    ) -> None:
        updated = run(
            customer,
            lambda uow: shipping_app.update_customer_shipment(
                uow, customer_shipment.id, receiver_phone="+49 30 1234"
            ),
        )
        assert updated.receiver_phone == "+49 30 1234"

        run(customer, lambda uow: shipping_app.cancel_customer_shipment(uow, customer_shipment.id))
        assert shipments.find_by_id(customer_shipment.id) is None

    def test_other_customer_cannot_edit(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        customer_shipment: Shipment,
    ) -> None:
        stranger = SecurityContext(user_id=uuid4(), actor_type=ActorType.CUSTOMER)
        with pytest.raises(SecurityViolationError):
            run(
                stranger,
                lambda uow: shipping_app.cancel_customer_shipment(uow, customer_shipment.id),
            )
        with pytest.raises(SecurityViolationError):
            run(stranger, lambda uow: shipping_app.get_shipment(uow, customer_shipment.id))

    def test_validate(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        customer: SecurityContext,
        event_sink: InMemoryEventSink,
        customer_shipment: Shipment,
    ) -> None:
        validated = run(
            shipment_manager_a,
            lambda uow: shipping_app.validate_shipment(uow, customer_shipment.id, "ID checked"),
        )
        assert validated.status == ShipmentStatus.VALIDATED
        assert validated.validated_by_id == shipment_manager_a.user_id
        (event,) = event_sink.of_type(ShipmentValidated)
        assert event.customer_id == customer.user_id

        with pytest.raises(BusinessRuleViolationError, match="no longer modifiable"):
            run(
                customer,
                lambda uow: shipping_app.update_customer_shipment(
                    uow, customer_shipment.id, notes="changed my mind"
                ),
            )

    def test_reject(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        event_sink: InMemoryEventSink,
        customer_shipment: Shipment,
    ) -> None:
        with pytest.raises(BusinessRuleViolationError, match="reason is required"):
            run(
                shipment_manager_a,
                lambda uow: shipping_app.reject_shipment(uow, customer_shipment.id, ""),
            )
        rejected = run(
            shipment_manager_a,
            lambda uow: shipping_app.reject_shipment(uow, customer_shipment.id, "Hazardous"),
        )
        assert rejected.status == ShipmentStatus.REJECTED
        (event,) = event_sink.of_type(ShipmentRejected)
        assert event.rejection_reason == "Hazardous"

    def test_other_agency_cannot_validate(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        make_employee: Callable[..., SecurityContext],
        agency_b: Agency,
        customer_shipment: Shipment,
    ) -> None:
        intruder = make_employee(agency_b.id, RoleCode.SHIPMENT_MANAGER)
        with pytest.raises(TenantViolationError):
            run(intruder, lambda uow: shipping_app.validate_shipment(uow, customer_shipment.id))


# ---------------------------------------------------------------------------
# Parcels
# ---------------------------------------------------------------------------


class TestParcels:
    def test_add_parcel(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        parcels: InMemoryParcelRepository,
        event_sink: InMemoryEventSink,
        open_shipment: Shipment,
    ) -> None:
        parcel = _add_parcel(run, shipping_app, shipment_manager_a, open_shipment)

        assert parcel.status == ParcelStatus.REGISTERED
        assert parcel.agency_id == open_shipment.agency_id
        assert parcels.find_by_tracking_number(parcel.tracking_number) is not None
        (event,) = event_sink.of_type(ParcelCreated)
        assert event.tracking_number == parcel.tracking_number
        assert event.shipment_id == open_shipment.id

    def test_parcel_data_validated(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        open_shipment: Shipment,
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            run(
                shipment_manager_a,
                lambda uow: shipping_app.add_parcel(
                    uow, open_shipment.id, weight=Decimal("0"), description="Books"
                ),
            )
        assert exc_info.value.field == "weight"

    def test_parcel_on_pending_customer_shipment_refused(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        customer_shipment: Shipment,
    ) -> None:
        with pytest.raises(BusinessRuleViolationError, match="Cannot add parcel"):
            _add_parcel(run, shipping_app, shipment_manager_a, customer_shipment)

    def test_tracking_collision_is_retried(
        self,
        run: Run,
        shipments: InMemoryShipmentRepository,
        parcels: InMemoryParcelRepository,
        agencies: InMemoryAgencyRepository,
        locations: InMemoryLocationRepository,
        shipment_manager_a: SecurityContext,
        open_shipment: Shipment,
    ) -> None:
        tracking = MagicMock()
        tracking.generate.side_effect = [
            "TRK-20260118-AAAAAAAA-A",
            "TRK-20260118-AAAAAAAA-A",
            "TRK-20260118-BBBBBBBB-B",
        ]
        app = ShippingApplication(
            shipments, parcels, agencies, locations, tracking_generator=tracking
        )

        first = _add_parcel(run, app, shipment_manager_a, open_shipment)
        second = _add_parcel(run, app, shipment_manager_a, open_shipment)

        assert first.tracking_number == "TRK-20260118-AAAAAAAA-A"
        assert second.tracking_number == "TRK-20260118-BBBBBBBB-B"
        assert parcels.count_by_shipment(open_shipment.id) == 2

    def test_tracking_collision_gives_up(
        self,
        run: Run,
        shipments: InMemoryShipmentRepository,
        parcels: InMemoryParcelRepository,
        agencies: InMemoryAgencyRepository,
        locations: InMemoryLocationRepository,
        shipment_manager_a: SecurityContext,
        event_sink: InMemoryEventSink,
        open_shipment: Shipment,
    ) -> None:
        tracking = MagicMock()
        tracking.generate.return_value = "TRK-20260118-AAAAAAAA-A"
        app = ShippingApplication(
            shipments,
            parcels,
            agencies,
            locations,
            tracking_generator=tracking,
            tracking_max_attempts=2,
        )
        _add_parcel(run, app, shipment_manager_a, open_shipment)

        with pytest.raises(ConflictError):
            _add_parcel(run, app, shipment_manager_a, open_shipment)
        assert tracking.generate.call_count == 3
        assert parcels.count_by_shipment(open_shipment.id) == 1
        assert len(event_sink.of_type(ParcelCreated)) == 1

    def test_other_conflict_is_not_retried(
        self,
        run: Run,
        shipments: InMemoryShipmentRepository,
        parcels: InMemoryParcelRepository,
        agencies: InMemoryAgencyRepository,
        locations: InMemoryLocationRepository,
        shipment_manager_a: SecurityContext,
        event_sink: InMemoryEventSink,
        open_shipment: Shipment,
    ) -> None:
        failing = MagicMock(wraps=parcels)
        failing.save.side_effect = ConflictError(
            "parcels barcode already exists", key="barcode", value="0042"
        )
        tracking = MagicMock()
        tracking.generate.return_value = "TRK-20260118-AAAAAAAA-A"
        app = ShippingApplication(
            shipments,
            failing,
            agencies,
            locations,
            tracking_generator=tracking,
            tracking_max_attempts=3,
        )

        with pytest.raises(ConflictError, match="barcode") as exc_info:
            _add_parcel(run, app, shipment_manager_a, open_shipment)
        assert exc_info.value.context["key"] == "barcode"
        tracking.generate.assert_called_once_with()
        assert failing.save.call_count == 1
        assert parcels.count_by_shipment(open_shipment.id) == 0
        assert event_sink.of_type(ParcelCreated) == []

    def test_status_flow_to_delivery(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        make_employee: Callable[..., SecurityContext],
        headquarters_a: AgencyLocation,
        parcels: InMemoryParcelRepository,
        event_sink: InMemoryEventSink,
        open_shipment: Shipment,
    ) -> None:
        driver = make_employee(open_shipment.agency_id, RoleCode.DELIVERY_DRIVER)
        parcel = _add_parcel(run, shipping_app, shipment_manager_a, open_shipment)

        for status in (ParcelStatus.IN_TRANSIT, ParcelStatus.OUT_FOR_DELIVERY):
            run(
                driver,
                lambda uow, s=status: shipping_app.change_parcel_status(
                    uow, parcel.id, s, headquarters_a.id
                ),
            )
        run(
            driver,
            lambda uow: shipping_app.mark_parcel_delivered(uow, parcel.id, "Front desk"),
        )

        stored = parcels.find_by_id(parcel.id)
        assert stored is not None
        assert stored.status == ParcelStatus.DELIVERED
        assert stored.received_by == "Front desk"
        changes = event_sink.of_type(ParcelStatusChanged)
        assert [(e.old_status, e.new_status) for e in changes] == [
            ("REGISTERED", "IN_TRANSIT"),
            ("IN_TRANSIT", "OUT_FOR_DELIVERY"),
            ("OUT_FOR_DELIVERY", "DELIVERED"),
        ]
        (delivered,) = event_sink.of_type(ParcelDelivered)
        assert delivered.received_by == "Front desk"

    def test_invalid_transition_leaves_parcel_untouched(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        agency_admin_a: SecurityContext,
        parcels: InMemoryParcelRepository,
        open_shipment: Shipment,
    ) -> None:
        parcel = _add_parcel(run, shipping_app, agency_admin_a, open_shipment)
        with pytest.raises(InvalidStateTransitionError):
            run(
                agency_admin_a,
                lambda uow: shipping_app.change_parcel_status(
                    uow, parcel.id, ParcelStatus.DELIVERED
                ),
            )
        stored = parcels.find_by_id(parcel.id)
        assert stored is not None
        assert stored.status == ParcelStatus.REGISTERED
        assert stored.version == parcel.version

    def test_shipment_manager_cannot_scan(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        open_shipment: Shipment,
    ) -> None:
        parcel = _add_parcel(run, shipping_app, shipment_manager_a, open_shipment)
        with pytest.raises(SecurityViolationError):
            run(
                shipment_manager_a,
                lambda uow: shipping_app.mark_parcel_failed(uow, parcel.id, "Lost"),
            )

    def test_update_parcel_only_while_registered(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        agency_admin_a: SecurityContext,
        open_shipment: Shipment,
    ) -> None:
        parcel = _add_parcel(run, shipping_app, agency_admin_a, open_shipment)
        updated = run(
            agency_admin_a,
            lambda uow: shipping_app.update_parcel(uow, parcel.id, description="Atlases"),
        )
        assert updated.description == "Atlases"

        run(
            agency_admin_a,
            lambda uow: shipping_app.change_parcel_status(
                uow, parcel.id, ParcelStatus.IN_SORTING
            ),
        )
        with pytest.raises(BusinessRuleViolationError, match="Cannot modify parcel"):
            run(
                agency_admin_a,
                lambda uow: shipping_app.update_parcel(uow, parcel.id, description="Maps"),
            )


class TestTracking:
    def test_customer_tracks_own_parcel(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        customer: SecurityContext,
        customer_shipment: Shipment,
    ) -> None:
        run(
            shipment_manager_a,
            lambda uow: shipping_app.validate_shipment(uow, customer_shipment.id),
        )
        parcel = _add_parcel(run, shipping_app, shipment_manager_a, customer_shipment)

        tracked = run(customer, lambda uow: shipping_app.track_parcel(uow, parcel.tracking_number))
        assert tracked.id == parcel.id
        fetched = run(customer, lambda uow: shipping_app.get_parcel(uow, parcel.id))
        assert fetched.id == parcel.id

    def test_customer_cannot_track_agency_parcel(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        customer: SecurityContext,
        open_shipment: Shipment,
    ) -> None:
        parcel = _add_parcel(run, shipping_app, shipment_manager_a, open_shipment)
        with pytest.raises(SecurityViolationError):
            run(customer, lambda uow: shipping_app.track_parcel(uow, parcel.tracking_number))

    def test_cross_tenant_tracking(
        self,
        run: Run,
        shipping_app: ShippingApplication,
        shipment_manager_a: SecurityContext,
        make_employee: Callable[..., SecurityContext],
        agency_b: Agency,
        open_shipment: Shipment,
    ) -> None:
        parcel = _add_parcel(run, shipping_app, shipment_manager_a, open_shipment)
        intruder = make_employee(agency_b.id)
        with pytest.raises(TenantViolationError):
            run(intruder, lambda uow: shipping_app.track_parcel(uow, parcel.tracking_number))

    def test_unknown_tracking_number(
        self, run: Run, shipping_app: ShippingApplication, admin: SecurityContext
    ) -> None:
        with pytest.raises(NotFoundError):
            run(admin, lambda uow: shipping_app.track_parcel(uow, "TRK-20260118-ZZZZZZZZ-Z"))
