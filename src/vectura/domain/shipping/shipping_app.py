"""Application service for shipments and parcels.

Orchestrates both creation paths:

- Agency path: an employee (or platform admin) opens a shipment, adds
  parcels and confirms it.
- Customer path: a customer drops a shipment at an operational pickup
  location; an employee of that location's agency validates or rejects it.

Entities are always loaded before the policy check so that a cross-tenant
read is reported as a tenant violation instead of a generic denial.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from vectura.domain.agency.services import AgencyDomainService
from vectura.domain.shipping.events import (
    ParcelCreated,
    ParcelDelivered,
    ParcelStatusChanged,
    ShipmentConfirmed,
    ShipmentCreated,
    ShipmentRejected,
    ShipmentValidated,
)
from vectura.domain.shipping.generators import ShipmentNumberGenerator, TrackingNumberGenerator
from vectura.domain.shipping.parcel import PARCEL_CONTENT_FIELDS, Parcel, ParcelStatus
from vectura.domain.shipping.policies import ParcelAccessPolicy, ShipmentAccessPolicy
from vectura.domain.shipping.services import ParcelDomainService, ShipmentDomainService
from vectura.domain.shipping.shipment import SHIPMENT_CONTENT_FIELDS, Shipment, ShipmentStatus
from vectura.foundation.application.settings import get_generator_settings
from vectura.foundation.domain.entities import utc_now
from vectura.foundation.domain.exceptions import (
    BusinessRuleViolationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from vectura.domain.agency.agency import Agency
    from vectura.domain.agency.ports import AgencyRepositoryPort, LocationRepositoryPort
    from vectura.domain.shipping.ports import ParcelRepositoryPort, ShipmentRepositoryPort
    from vectura.foundation.application.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def _reject_unknown_fields(changes: Iterable[str], allowed: frozenset[str]) -> None:
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(", ".join(sorted(unknown)), "Field cannot be set on this resource")


class ShippingApplication:
    """Shipment and parcel use cases.

    Attributes:
        shipments: Shipment persistence port.
        parcels: Parcel persistence port.
        agencies: Agency persistence port, read for the creation guard.
        locations: Location persistence port, read for the customer path.
    """

    def __init__(
        self,
        shipments: ShipmentRepositoryPort,
        parcels: ParcelRepositoryPort,
        agencies: AgencyRepositoryPort,
        locations: LocationRepositoryPort,
        *,
        number_generator: ShipmentNumberGenerator | None = None,
        tracking_generator: TrackingNumberGenerator | None = None,
        tracking_max_attempts: int | None = None,
    ) -> None:
        self.shipments = shipments
        self.parcels = parcels
        self.agencies = agencies
        self.locations = locations
        self._number_generator = number_generator or ShipmentNumberGenerator(shipments)
        self._tracking_generator = tracking_generator or TrackingNumberGenerator()
        self._tracking_max_attempts = (
            tracking_max_attempts or get_generator_settings().tracking_number_max_attempts
        )
        self._shipment_policy = ShipmentAccessPolicy()
        self._parcel_policy = ParcelAccessPolicy()
        self._agency_service = AgencyDomainService()
        self._shipment_service = ShipmentDomainService()
        self._parcel_service = ParcelDomainService()

    # -- Agency path -------------------------------------------------------

    def create_shipment(
        self, uow: UnitOfWork, *, agency_id: UUID | None = None, **fields: Any
    ) -> Shipment:
        """Open a shipment for an agency. Starts in OPEN.

        Employees create in their own agency; a platform admin must name
        the agency.

        Raises:
            SecurityViolationError: If the actor may not create in the agency.
            BusinessRuleViolationError: If the agency is inactive or suspended.
            ResourceLimitExceededError: If the monthly limit is reached.
            ValidationError: If sender or receiver data is invalid.
        """
        principal = uow.tenant.principal
        target_agency_id = agency_id or uow.tenant.agency_id
        self._shipment_policy.validate_create(principal, target_agency_id)
        if target_agency_id is None:
            raise ValidationError("agency_id", "Agency is required to create a shipment")
        _reject_unknown_fields(fields, SHIPMENT_CONTENT_FIELDS)

        agency = self._load_agency(target_agency_id)
        self._guard_shipment_creation(agency)

        shipment = Shipment(agency_id=target_agency_id, **fields)
        self._shipment_service.validate_shipment_data(shipment)
        shipment.shipment_number = self._number_generator.generate_unique_number(
            target_agency_id
        )
        self._stage_created(uow, shipment)
        return shipment

    def get_shipment(
        self, uow: UnitOfWork, shipment_id: UUID, *, include_deleted: bool = False
    ) -> Shipment:
        shipment = self._load_shipment(shipment_id, include_deleted=include_deleted)
        self._validate_shipment_read(uow, shipment)
        return shipment

    def list_shipments(
        self,
        uow: UnitOfWork,
        agency_id: UUID | None = None,
        *,
        status: ShipmentStatus | None = None,
        include_deleted: bool = False,
    ) -> list[Shipment]:
        """List an agency's shipments, or a customer's own shipments."""
        principal = uow.tenant.principal
        if principal.is_customer:
            found = self.shipments.list_by_customer(
                principal.user_id, include_deleted=include_deleted
            )
        else:
            target_agency_id = agency_id or uow.tenant.agency_id
            self._shipment_policy.validate_list(principal, target_agency_id)
            if target_agency_id is None:
                raise ValidationError("agency_id", "Agency is required to list shipments")
            uow.tenant.validate_resource_tenant(target_agency_id)
            found = self.shipments.list_by_agency(
                target_agency_id, include_deleted=include_deleted
            )
        if status is not None:
            found = [s for s in found if s.status == status]
        return found

    def list_pending_validation(
        self, uow: UnitOfWork, agency_id: UUID | None = None
    ) -> list[Shipment]:
        return self.list_shipments(uow, agency_id, status=ShipmentStatus.PENDING_VALIDATION)

    def update_shipment(self, uow: UnitOfWork, shipment_id: UUID, **changes: Any) -> Shipment:
        """Edit an OPEN shipment's content."""
        shipment = self._load_shipment(shipment_id)
        self._shipment_policy.validate_modify(uow.tenant.principal, shipment)
        self._shipment_service.validate_modifiable(shipment)
        self._apply_content_changes(shipment, changes)
        uow.register(self.shipments, shipment)
        return shipment

    def confirm_shipment(self, uow: UnitOfWork, shipment_id: UUID) -> Shipment:
        """Confirm a shipment. No parcel can be attached afterwards."""
        principal = uow.tenant.principal
        shipment = self._load_shipment(shipment_id)
        self._shipment_policy.validate_confirm(principal, shipment)
        parcel_count = self.parcels.count_by_shipment(shipment.id)
        self._shipment_service.confirm(shipment, parcel_count)
        version = uow.register(self.shipments, shipment)
        uow.collect(
            ShipmentConfirmed(
                originator_id=shipment.id,
                originator_version=version,
                timestamp=shipment.updated_at,
                agency_id=shipment.agency_id,
                actor_id=principal.user_id,
                shipment_id=shipment.id,
                shipment_number=shipment.shipment_number,
                parcel_count=parcel_count,
            )
        )
        return shipment

    def delete_shipment(self, uow: UnitOfWork, shipment_id: UUID) -> Shipment:
        """Soft-delete a shipment. AGENCY_ADMIN or platform admin."""
        shipment = self._load_shipment(shipment_id)
        self._shipment_policy.validate_delete(uow.tenant.principal, shipment)
        shipment.mark_deleted()
        uow.register(self.shipments, shipment)
        logger.info(
            "shipment_deleted",
            extra={"shipment_id": str(shipment.id), "agency_id": str(shipment.agency_id)},
        )
        return shipment

    # -- Customer path -----------------------------------------------------

    def create_customer_shipment(
        self, uow: UnitOfWork, *, pickup_location_id: UUID, **fields: Any
    ) -> Shipment:
        """Create a customer shipment at a pickup location. Starts in PENDING_VALIDATION.

        The owning agency is the pickup location's agency; the customer
        never names it.

        Raises:
            SecurityViolationError: If the actor is not a customer.
            NotFoundError: If the pickup location does not exist.
            BusinessRuleViolationError: If the location is not operational or
                its agency cannot take shipments.
        """
        principal = uow.tenant.principal
        self._shipment_policy.validate_create_as_customer(principal)
        _reject_unknown_fields(fields, SHIPMENT_CONTENT_FIELDS)

        location = self.locations.find_by_id(pickup_location_id)
        if location is None:
            raise NotFoundError("AgencyLocation", pickup_location_id)
        if not location.operational:
            raise BusinessRuleViolationError(
                "Pickup location is not operational", location_id=str(location.id)
            )
        agency = self._load_agency(location.agency_id)
        self._guard_shipment_creation(agency)

        shipment = Shipment(agency_id=location.agency_id, **fields)
        self._shipment_service.initialize_customer_shipment(
            shipment, principal.user_id, location.id
        )
        self._shipment_service.validate_shipment_data(shipment)
        shipment.shipment_number = self._number_generator.generate_unique_number(
            location.agency_id
        )
        self._stage_created(uow, shipment)
        return shipment

    def update_customer_shipment(
        self, uow: UnitOfWork, shipment_id: UUID, **changes: Any
    ) -> Shipment:
        shipment = self._load_shipment(shipment_id)
        self._shipment_policy.validate_customer_modify(uow.tenant.principal, shipment)
        self._shipment_service.validate_customer_can_modify(shipment)
        self._apply_content_changes(shipment, changes)
        uow.register(self.shipments, shipment)
        return shipment

    def cancel_customer_shipment(self, uow: UnitOfWork, shipment_id: UUID) -> Shipment:
        """Cancel (soft-delete) a customer's own shipment while it awaits validation."""
        shipment = self._load_shipment(shipment_id)
        self._shipment_policy.validate_customer_modify(uow.tenant.principal, shipment, "cancel")
        self._shipment_service.validate_customer_can_cancel(shipment)
        shipment.mark_deleted()
        uow.register(self.shipments, shipment)
        logger.info("customer_shipment_cancelled", extra={"shipment_id": str(shipment.id)})
        return shipment

    def validate_shipment(
        self, uow: UnitOfWork, shipment_id: UUID, notes: str | None = None
    ) -> Shipment:
        """Accept a customer shipment: PENDING_VALIDATION -> VALIDATED."""
        principal = uow.tenant.principal
        shipment = self._load_shipment(shipment_id)
        self._shipment_policy.validate_validate(principal, shipment)
        self._shipment_service.validate_customer_shipment(shipment, principal.user_id, notes)
        version = uow.register(self.shipments, shipment)
        uow.collect(
            ShipmentValidated(
                originator_id=shipment.id,
                originator_version=version,
                timestamp=shipment.updated_at,
                agency_id=shipment.agency_id,
                actor_id=principal.user_id,
                shipment_id=shipment.id,
                shipment_number=shipment.shipment_number,
                customer_id=shipment.customer_id,
                validated_by_id=principal.user_id,
                pickup_location_id=shipment.pickup_location_id,
            )
        )
        return shipment

    def reject_shipment(self, uow: UnitOfWork, shipment_id: UUID, reason: str | None) -> Shipment:
        """Refuse a customer shipment: PENDING_VALIDATION -> REJECTED."""
        principal = uow.tenant.principal
        shipment = self._load_shipment(shipment_id)
        self._shipment_policy.validate_validate(principal, shipment, "reject")
        self._shipment_service.reject_customer_shipment(shipment, principal.user_id, reason)
        version = uow.register(self.shipments, shipment)
        uow.collect(
            ShipmentRejected(
                originator_id=shipment.id,
                originator_version=version,
                timestamp=shipment.updated_at,
                agency_id=shipment.agency_id,
                actor_id=principal.user_id,
                shipment_id=shipment.id,
                shipment_number=shipment.shipment_number,
                customer_id=shipment.customer_id,
                rejected_by_id=principal.user_id,
                rejection_reason=shipment.rejection_reason or "",
            )
        )
        return shipment

    # -- Parcels -----------------------------------------------------------

    def add_parcel(self, uow: UnitOfWork, shipment_id: UUID, **fields: Any) -> Parcel:
        """Attach a new parcel to an OPEN or VALIDATED shipment.

        The tracking number is regenerated when the store reports a
        tracking number conflict, up to the configured number of attempts.
        Any other conflict propagates at once.

        Raises:
            BusinessRuleViolationError: If the shipment no longer accepts parcels.
            ValidationError: If weight or description is invalid.
            ConflictError: If every generated tracking number collided, or on
                any other uniqueness conflict.
        """
        principal = uow.tenant.principal
        shipment = self._load_shipment(shipment_id)
        self._parcel_policy.validate_create(principal, shipment)
        self._shipment_service.validate_can_add_parcel(shipment)
        _reject_unknown_fields(fields, PARCEL_CONTENT_FIELDS)

        parcel = Parcel(agency_id=shipment.agency_id, shipment_id=shipment.id, **fields)
        self._parcel_service.validate_parcel_data(parcel)

        for attempt in range(1, self._tracking_max_attempts + 1):
            parcel.tracking_number = self._tracking_generator.generate()
            version = uow.register(self.parcels, parcel)
            try:
                uow.flush()
            except ConflictError as exc:
                retryable = exc.context.get("key") == "tracking_number"
                if not retryable or attempt == self._tracking_max_attempts:
                    raise
                logger.warning(
                    "tracking_number_collision",
                    extra={"tracking_number": parcel.tracking_number, "attempt": attempt},
                )
                continue
            break

        uow.collect(
            ParcelCreated(
                originator_id=parcel.id,
                originator_version=version,
                timestamp=parcel.updated_at,
                agency_id=parcel.agency_id,
                actor_id=principal.user_id,
                parcel_id=parcel.id,
                tracking_number=parcel.tracking_number,
                shipment_id=shipment.id,
            )
        )
        return parcel

    def list_parcels(
        self, uow: UnitOfWork, shipment_id: UUID, *, include_deleted: bool = False
    ) -> list[Parcel]:
        shipment = self._load_shipment(shipment_id)
        self._validate_shipment_read(uow, shipment)
        return self.parcels.list_by_shipment(shipment.id, include_deleted=include_deleted)

    def get_parcel(self, uow: UnitOfWork, parcel_id: UUID) -> Parcel:
        parcel = self._load_parcel(parcel_id)
        self._validate_parcel_read(uow, parcel, "access")
        return parcel

    def track_parcel(self, uow: UnitOfWork, tracking_number: str) -> Parcel:
        parcel = self.parcels.find_by_tracking_number(tracking_number)
        if parcel is None:
            raise NotFoundError("Parcel", tracking_number)
        self._validate_parcel_read(uow, parcel, "track")
        return parcel

    def update_parcel(self, uow: UnitOfWork, parcel_id: UUID, **changes: Any) -> Parcel:
        """Edit a parcel's content while it is still REGISTERED."""
        parcel = self._load_parcel(parcel_id)
        self._parcel_policy.validate_modify(uow.tenant.principal, parcel)
        self._parcel_service.validate_modifiable(parcel)
        _reject_unknown_fields(changes, PARCEL_CONTENT_FIELDS)
        for field, value in changes.items():
            setattr(parcel, field, value)
        self._parcel_service.validate_parcel_data(parcel)
        uow.register(self.parcels, parcel)
        return parcel

    def change_parcel_status(
        self,
        uow: UnitOfWork,
        parcel_id: UUID,
        new_status: ParcelStatus,
        location_id: UUID | None = None,
    ) -> Parcel:
        parcel = self._load_parcel(parcel_id)
        self._parcel_policy.validate_update_status(uow.tenant.principal, parcel)
        old_status = self._parcel_service.change_status(parcel, new_status, location_id)
        self._stage_status_change(uow, parcel, old_status)
        return parcel

    def mark_parcel_delivered(
        self,
        uow: UnitOfWork,
        parcel_id: UUID,
        received_by: str | None = None,
        location_id: UUID | None = None,
    ) -> Parcel:
        parcel = self._load_parcel(parcel_id)
        self._parcel_policy.validate_update_status(uow.tenant.principal, parcel)
        old_status = parcel.status
        self._parcel_service.mark_as_delivered(parcel, received_by, location_id)
        self._stage_status_change(uow, parcel, old_status)
        return parcel

    def mark_parcel_failed(self, uow: UnitOfWork, parcel_id: UUID, reason: str | None) -> Parcel:
        parcel = self._load_parcel(parcel_id)
        self._parcel_policy.validate_update_status(uow.tenant.principal, parcel)
        old_status = self._parcel_service.mark_as_failed(parcel, reason)
        self._stage_status_change(uow, parcel, old_status)
        return parcel

    # -- Internals ---------------------------------------------------------

    def _guard_shipment_creation(self, agency: Agency) -> None:
        month_start = utc_now().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        current = self.shipments.count_created_since(agency.id, month_start)
        self._agency_service.validate_can_create_shipment(agency, current)

    def _apply_content_changes(self, shipment: Shipment, changes: dict[str, Any]) -> None:
        _reject_unknown_fields(changes, SHIPMENT_CONTENT_FIELDS)
        for field, value in changes.items():
            setattr(shipment, field, value)
        self._shipment_service.validate_shipment_data(shipment)

    def _stage_created(self, uow: UnitOfWork, shipment: Shipment) -> None:
        version = uow.register(self.shipments, shipment)
        uow.collect(
            ShipmentCreated(
                originator_id=shipment.id,
                originator_version=version,
                timestamp=shipment.updated_at,
                agency_id=shipment.agency_id,
                actor_id=uow.tenant.principal.user_id,
                shipment_id=shipment.id,
                shipment_number=shipment.shipment_number,
            )
        )
        logger.info(
            "shipment_created",
            extra={
                "shipment_id": str(shipment.id),
                "shipment_number": shipment.shipment_number,
                "agency_id": str(shipment.agency_id),
                "status": str(shipment.status),
            },
        )

    def _stage_status_change(
        self, uow: UnitOfWork, parcel: Parcel, old_status: ParcelStatus
    ) -> None:
        actor_id = uow.tenant.principal.user_id
        version = uow.register(self.parcels, parcel)
        uow.collect(
            ParcelStatusChanged(
                originator_id=parcel.id,
                originator_version=version,
                timestamp=parcel.updated_at,
                agency_id=parcel.agency_id,
                actor_id=actor_id,
                parcel_id=parcel.id,
                tracking_number=parcel.tracking_number,
                old_status=str(old_status),
                new_status=str(parcel.status),
                location_id=parcel.current_location_id,
            )
        )
        if parcel.status == ParcelStatus.DELIVERED and parcel.delivered_at is not None:
            uow.collect(
                ParcelDelivered(
                    originator_id=parcel.id,
                    originator_version=version,
                    timestamp=parcel.delivered_at,
                    agency_id=parcel.agency_id,
                    actor_id=actor_id,
                    parcel_id=parcel.id,
                    tracking_number=parcel.tracking_number,
                    delivered_at=parcel.delivered_at,
                    received_by=parcel.received_by,
                )
            )

    def _validate_shipment_read(self, uow: UnitOfWork, shipment: Shipment) -> None:
        principal = uow.tenant.principal
        if principal.is_customer:
            self._shipment_policy.validate_customer_access(principal, shipment)
        else:
            self._shipment_policy.validate_access(principal, shipment)
        uow.tenant.validate_resource_tenant(shipment.agency_id)

    def _validate_parcel_read(self, uow: UnitOfWork, parcel: Parcel, operation: str) -> None:
        principal = uow.tenant.principal
        if principal.is_customer:
            # Ownership is proven through the parcel's shipment.
            owner = self.shipments.find_by_id(parcel.shipment_id)
            self._parcel_policy.validate_customer_access(principal, parcel, owner, operation)
        elif operation == "track":
            self._parcel_policy.validate_track(principal, parcel)
        else:
            self._parcel_policy.validate_access(principal, parcel)
        uow.tenant.validate_resource_tenant(parcel.agency_id)

    def _load_agency(self, agency_id: UUID) -> Agency:
        agency = self.agencies.find_by_id(agency_id)
        if agency is None:
            raise NotFoundError("Agency", agency_id)
        return agency

    def _load_shipment(self, shipment_id: UUID, *, include_deleted: bool = False) -> Shipment:
        shipment = self.shipments.find_by_id(shipment_id, include_deleted=include_deleted)
        if shipment is None:
            raise NotFoundError("Shipment", shipment_id)
        return shipment

    def _load_parcel(self, parcel_id: UUID) -> Parcel:
        parcel = self.parcels.find_by_id(parcel_id)
        if parcel is None:
            raise NotFoundError("Parcel", parcel_id)
        return parcel
