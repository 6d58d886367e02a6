"""Application service for agency and location operations.

Every operation follows the same order: access policy guard, lifecycle or
invariant check, mutation, then staging of entities and events on the
caller's unit of work. Nothing becomes visible until the unit commits.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from vectura.domain.agency.agency import Agency, AgencyLocation, LocationType
from vectura.domain.agency.events import (
    AgencyCreated,
    AgencyLocationAdded,
    AgencySuspended,
    AgencyUnsuspended,
)
from vectura.domain.agency.generators import AgencyCodeGenerator
from vectura.domain.agency.policies import AgencyAccessPolicy, LocationAccessPolicy
from vectura.domain.agency.services import AgencyDomainService, LocationDomainService
from vectura.foundation.domain.exceptions import ConflictError, NotFoundError, ValidationError
from vectura.foundation.domain.value_objects import CountryCode, Email

if TYPE_CHECKING:
    from uuid import UUID

    from vectura.domain.agency.ports import AgencyRepositoryPort, LocationRepositoryPort
    from vectura.foundation.application.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

HEADQUARTERS_CODE = "HQ"

# Fields an agency admin may change through update_agency.
EDITABLE_AGENCY_FIELDS = frozenset(
    {
        "name",
        "legal_name",
        "phone",
        "website",
        "address_line1",
        "address_line2",
        "city",
        "state_region",
        "postal_code",
        "default_currency",
        "timezone",
        "locale",
        "tax_id",
        "vat_number",
        "transport_license_number",
    }
)


class AgencyApplication:
    """Agency lifecycle and location management.

    Attributes:
        agencies: Agency persistence port.
        locations: Location persistence port.
    """

    def __init__(
        self,
        agencies: AgencyRepositoryPort,
        locations: LocationRepositoryPort,
        code_generator: AgencyCodeGenerator | None = None,
    ) -> None:
        self.agencies = agencies
        self.locations = locations
        self._code_generator = code_generator or AgencyCodeGenerator(agencies)
        self._agency_policy = AgencyAccessPolicy()
        self._location_policy = LocationAccessPolicy()
        self._agency_service = AgencyDomainService()
        self._location_service = LocationDomainService()

    # -- Agencies ----------------------------------------------------------

    def create_agency(
        self,
        uow: UnitOfWork,
        *,
        name: str,
        email: str,
        country: str,
        city: str = "",
        address_line1: str = "",
        postal_code: str = "",
        **details: Any,
    ) -> Agency:
        """Create an agency with its headquarters location. PLATFORM_ADMIN only.

        Raises:
            SecurityViolationError: If the actor is not a platform admin.
            ValidationError: If name, email or country is invalid.
            ConflictError: If the email is already registered.
        """
        principal = uow.tenant.principal
        self._agency_policy.validate_create(principal)

        if not name or not name.strip():
            raise ValidationError("name", "Agency name is required")
        try:
            normalized_email = Email(email).value
        except ValueError as exc:
            raise ValidationError("email", str(exc)) from exc
        try:
            normalized_country = CountryCode(country).value
        except ValueError as exc:
            raise ValidationError("country", str(exc)) from exc
        if self.agencies.exists_by_email(normalized_email):
            raise ConflictError("Agency email already registered", email=normalized_email)

        agency = Agency(
            code=self._code_generator.generate_unique_code(),
            name=name.strip(),
            email=normalized_email,
            country=normalized_country,
            city=city,
            address_line1=address_line1,
            postal_code=postal_code,
            **details,
        )
        version = uow.register(self.agencies, agency)
        uow.collect(
            AgencyCreated(
                originator_id=agency.id,
                originator_version=version,
                timestamp=agency.updated_at,
                agency_id=agency.id,
                actor_id=principal.user_id,
                agency_code=agency.code,
                agency_name=agency.name,
            )
        )

        headquarters = AgencyLocation(
            agency_id=agency.id,
            code=HEADQUARTERS_CODE,
            name=f"{agency.name} - Headquarters",
            location_type=LocationType.HEADQUARTERS,
            address_line1=address_line1,
            city=city,
            postal_code=postal_code,
            country=normalized_country,
            phone=agency.phone,
        )
        self._stage_location(uow, headquarters)

        logger.info(
            "agency_created",
            extra={"agency_id": str(agency.id), "agency_code": agency.code},
        )
        return agency

    def get_agency(
        self, uow: UnitOfWork, agency_id: UUID, *, include_deleted: bool = False
    ) -> Agency:
        self._agency_policy.validate_access(uow.tenant.principal, agency_id)
        uow.tenant.validate_resource_tenant(agency_id)
        return self._load_agency(agency_id, include_deleted=include_deleted)

    def list_agencies(self, uow: UnitOfWork, *, include_deleted: bool = False) -> list[Agency]:
        self._agency_policy.validate_list_all(uow.tenant.principal)
        return self.agencies.list_all(include_deleted=include_deleted)

    def update_agency(self, uow: UnitOfWork, agency_id: UUID, **changes: Any) -> Agency:
        """Update descriptive agency fields.

        Raises:
            ValidationError: If a field outside EDITABLE_AGENCY_FIELDS is given.
        """
        self._agency_policy.validate_modify(uow.tenant.principal, agency_id)
        agency = self._load_agency(agency_id)
        unknown = set(changes) - EDITABLE_AGENCY_FIELDS
        if unknown:
            raise ValidationError(
                ", ".join(sorted(unknown)), "Field cannot be changed through update"
            )
        for field, value in changes.items():
            setattr(agency, field, value)
        uow.register(self.agencies, agency)
        return agency

    def suspend_agency(self, uow: UnitOfWork, agency_id: UUID, reason: str | None) -> Agency:
        principal = uow.tenant.principal
        self._agency_policy.validate_suspend(principal, agency_id)
        agency = self._load_agency(agency_id)
        self._agency_service.suspend(agency, reason)
        version = uow.register(self.agencies, agency)
        uow.collect(
            AgencySuspended(
                originator_id=agency.id,
                originator_version=version,
                timestamp=agency.updated_at,
                agency_id=agency.id,
                actor_id=principal.user_id,
                reason=agency.suspension_reason or "",
            )
        )
        return agency

    def unsuspend_agency(self, uow: UnitOfWork, agency_id: UUID) -> Agency:
        principal = uow.tenant.principal
        self._agency_policy.validate_suspend(principal, agency_id, "unsuspend")
        agency = self._load_agency(agency_id)
        self._agency_service.unsuspend(agency)
        version = uow.register(self.agencies, agency)
        uow.collect(
            AgencyUnsuspended(
                originator_id=agency.id,
                originator_version=version,
                timestamp=agency.updated_at,
                agency_id=agency.id,
                actor_id=principal.user_id,
            )
        )
        return agency

    def activate_agency(self, uow: UnitOfWork, agency_id: UUID) -> Agency:
        self._agency_policy.validate_suspend(uow.tenant.principal, agency_id, "activate")
        agency = self._load_agency(agency_id)
        self._agency_service.activate(agency)
        uow.register(self.agencies, agency)
        return agency

    def deactivate_agency(self, uow: UnitOfWork, agency_id: UUID) -> Agency:
        self._agency_policy.validate_suspend(uow.tenant.principal, agency_id, "deactivate")
        agency = self._load_agency(agency_id)
        self._agency_service.deactivate(agency)
        uow.register(self.agencies, agency)
        return agency

    # -- Locations ---------------------------------------------------------

    def add_location(
        self,
        uow: UnitOfWork,
        agency_id: UUID,
        *,
        code: str,
        name: str,
        location_type: LocationType = LocationType.BRANCH,
        **details: Any,
    ) -> AgencyLocation:
        """Add a location to an agency.

        Raises:
            SecurityViolationError: If the actor may not manage the agency's locations.
            BusinessRuleViolationError: If the agency is inactive or suspended.
            ConflictError: If the code is already used within the agency.
        """
        self._location_policy.validate_create(uow.tenant.principal, agency_id)
        agency = self._load_agency(agency_id)
        existing = self.locations.list_by_agency(agency_id)
        self._location_service.validate_can_add_location(agency, existing, code)

        location = AgencyLocation(
            agency_id=agency_id,
            code=code,
            name=name,
            location_type=location_type,
            **details,
        )
        self._stage_location(uow, location)
        return location

    def list_locations(
        self, uow: UnitOfWork, agency_id: UUID, *, include_deleted: bool = False
    ) -> list[AgencyLocation]:
        self._location_policy.validate_access(uow.tenant.principal, agency_id)
        uow.tenant.validate_resource_tenant(agency_id)
        return self.locations.list_by_agency(agency_id, include_deleted=include_deleted)

    def close_location(
        self, uow: UnitOfWork, location_id: UUID, reason: str | None
    ) -> AgencyLocation:
        location = self._load_location(location_id)
        self._location_policy.validate_modify(uow.tenant.principal, location)
        self._location_service.temporary_close(location, reason)
        uow.register(self.locations, location)
        return location

    def reopen_location(self, uow: UnitOfWork, location_id: UUID) -> AgencyLocation:
        location = self._load_location(location_id)
        self._location_policy.validate_modify(uow.tenant.principal, location)
        self._location_service.reopen(location)
        uow.register(self.locations, location)
        return location

    def activate_location(self, uow: UnitOfWork, location_id: UUID) -> AgencyLocation:
        location = self._load_location(location_id)
        self._location_policy.validate_modify(uow.tenant.principal, location)
        self._location_service.activate(location)
        uow.register(self.locations, location)
        return location

    def deactivate_location(self, uow: UnitOfWork, location_id: UUID) -> AgencyLocation:
        location = self._load_location(location_id)
        self._location_policy.validate_modify(uow.tenant.principal, location)
        self._location_service.deactivate(location)
        uow.register(self.locations, location)
        return location

    # -- Internals ---------------------------------------------------------

    def _stage_location(self, uow: UnitOfWork, location: AgencyLocation) -> None:
        version = uow.register(self.locations, location)
        uow.collect(
            AgencyLocationAdded(
                originator_id=location.id,
                originator_version=version,
                timestamp=location.updated_at,
                agency_id=location.agency_id,
                actor_id=uow.tenant.principal.user_id,
                location_id=location.id,
                location_code=location.code,
                city=location.city,
            )
        )

    def _load_agency(self, agency_id: UUID, *, include_deleted: bool = False) -> Agency:
        agency = self.agencies.find_by_id(agency_id, include_deleted=include_deleted)
        if agency is None:
            raise NotFoundError("Agency", agency_id)
        return agency

    def _load_location(self, location_id: UUID) -> AgencyLocation:
        location = self.locations.find_by_id(location_id)
        if location is None:
            raise NotFoundError("AgencyLocation", location_id)
        return location
