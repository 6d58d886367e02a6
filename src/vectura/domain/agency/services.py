"""Stateless lifecycle rules for agencies and locations.

Agency state machine (two independent flags)::

                 suspend(reason)
      suspended=False ---------> suspended=True
                      <---------
                      unsuspend()

                   deactivate()
      active=True   ---------->  active=False
                    <----------
                    activate()   (also clears any suspension)

Re-applying a transition to an entity already in the target state is a
business error, never a silent no-op: re-suspending a suspended agency
raises, and so does unsuspending one that is not suspended.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from vectura.domain.agency.agency import LocationType
from vectura.foundation.domain.exceptions import (
    BusinessRuleViolationError,
    ConflictError,
    InvalidStateTransitionError,
    ResourceLimitExceededError,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from vectura.domain.agency.agency import Agency, AgencyLocation

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


class AgencyDomainService:
    """Agency lifecycle transitions and derived predicates."""

    # -- Queries -----------------------------------------------------------

    def has_active_headquarters(self, locations: Iterable[AgencyLocation]) -> bool:
        return any(
            loc.location_type == LocationType.HEADQUARTERS and loc.active and not loc.is_deleted
            for loc in locations
        )

    def count_active_locations(self, locations: Iterable[AgencyLocation]) -> int:
        return sum(1 for loc in locations if loc.active and not loc.is_deleted)

    def get_operational_locations(
        self, locations: Iterable[AgencyLocation]
    ) -> list[AgencyLocation]:
        return [loc for loc in locations if loc.operational and not loc.is_deleted]

    def can_perform_operations(self, agency: Agency) -> bool:
        return agency.can_create_shipment()

    def has_reached_user_limit(self, agency: Agency, current_user_count: int) -> bool:
        return agency.max_users is not None and current_user_count >= agency.max_users

    def has_reached_shipment_limit(self, agency: Agency, current_month_shipments: int) -> bool:
        limit = agency.max_shipments_per_month
        return limit is not None and current_month_shipments >= limit

    # -- Guards ------------------------------------------------------------

    def validate_can_create_shipment(self, agency: Agency, current_month_shipments: int) -> None:
        """Ensure the agency may open another shipment.

        Must run before a shipment number is allocated.

        Raises:
            BusinessRuleViolationError: If the agency is inactive or suspended.
            ResourceLimitExceededError: If the monthly shipment limit is reached.
        """
        if not self.can_perform_operations(agency):
            raise BusinessRuleViolationError(
                "Agency cannot perform operations (inactive or suspended)",
                agency_id=str(agency.id),
                active=agency.active,
                suspended=agency.suspended,
            )
        limit = agency.max_shipments_per_month
        if limit is not None and current_month_shipments >= limit:
            raise ResourceLimitExceededError(
                "shipments per month",
                limit=limit,
                current=current_month_shipments,
                agency_id=str(agency.id),
            )

    def validate_can_add_user(self, agency: Agency, current_user_count: int) -> None:
        """Raises ResourceLimitExceededError if the user limit is reached."""
        limit = agency.max_users
        if limit is not None and current_user_count >= limit:
            raise ResourceLimitExceededError(
                "users",
                limit=limit,
                current=current_user_count,
                agency_id=str(agency.id),
            )

    # -- Transitions -------------------------------------------------------

    def suspend(self, agency: Agency, reason: str | None) -> None:
        """Suspend the agency. suspended=False -> suspended=True.

        Raises:
            InvalidStateTransitionError: If already suspended.
            BusinessRuleViolationError: If the reason is blank.
        """
        if agency.suspended:
            raise InvalidStateTransitionError(
                "Agency is already suspended", agency_id=str(agency.id)
            )
        if _is_blank(reason):
            raise BusinessRuleViolationError(
                "Suspension reason is required", agency_id=str(agency.id)
            )
        agency.suspended = True
        agency.suspension_reason = reason
        logger.info(
            "agency_suspended",
            extra={"agency_id": str(agency.id), "reason": reason},
        )

    def unsuspend(self, agency: Agency) -> None:
        """Lift a suspension. suspended=True -> suspended=False."""
        if not agency.suspended:
            raise InvalidStateTransitionError("Agency is not suspended", agency_id=str(agency.id))
        agency.suspended = False
        agency.suspension_reason = None
        logger.info("agency_unsuspended", extra={"agency_id": str(agency.id)})

    def deactivate(self, agency: Agency) -> None:
        if not agency.active:
            raise InvalidStateTransitionError(
                "Agency is already inactive", agency_id=str(agency.id)
            )
        agency.active = False
        logger.info("agency_deactivated", extra={"agency_id": str(agency.id)})

    def activate(self, agency: Agency) -> None:
        """Reactivate the agency and clear any suspension."""
        if agency.active:
            raise InvalidStateTransitionError("Agency is already active", agency_id=str(agency.id))
        agency.active = True
        agency.suspended = False
        agency.suspension_reason = None
        logger.info("agency_activated", extra={"agency_id": str(agency.id)})


class LocationDomainService:
    """Location lifecycle transitions and geography helpers."""

    def validate_can_add_location(
        self,
        agency: Agency,
        existing: Iterable[AgencyLocation] = (),
        code: str | None = None,
    ) -> None:
        """Ensure a location may be added to the agency.

        Raises:
            BusinessRuleViolationError: If the agency is inactive or suspended.
            ConflictError: If ``code`` is already used by a live location of
                the agency.
        """
        if not agency.active:
            raise BusinessRuleViolationError(
                "Cannot add location to inactive agency", agency_id=str(agency.id)
            )
        if agency.suspended:
            raise BusinessRuleViolationError(
                "Cannot add location to suspended agency", agency_id=str(agency.id)
            )
        if code is not None and any(
            loc.code == code and not loc.is_deleted for loc in existing
        ):
            raise ConflictError(
                f"Location code already exists in agency: {code}",
                agency_id=str(agency.id),
                code=code,
            )

    def is_operational(self, location: AgencyLocation) -> bool:
        return location.operational

    def has_reached_daily_capacity(
        self, location: AgencyLocation, current_daily_parcels: int
    ) -> bool:
        limit = location.max_daily_parcels
        return limit is not None and current_daily_parcels >= limit

    def temporary_close(self, location: AgencyLocation, reason: str | None) -> None:
        if location.temporarily_closed:
            raise InvalidStateTransitionError(
                "Location is already temporarily closed", location_id=str(location.id)
            )
        if _is_blank(reason):
            raise BusinessRuleViolationError(
                "Closure reason is required", location_id=str(location.id)
            )
        location.temporarily_closed = True
        location.closure_reason = reason

    def reopen(self, location: AgencyLocation) -> None:
        if not location.temporarily_closed:
            raise InvalidStateTransitionError(
                "Location is not temporarily closed", location_id=str(location.id)
            )
        location.temporarily_closed = False
        location.closure_reason = None

    def deactivate(self, location: AgencyLocation) -> None:
        if not location.active:
            raise InvalidStateTransitionError(
                "Location is already inactive", location_id=str(location.id)
            )
        location.active = False

    def activate(self, location: AgencyLocation) -> None:
        """Reactivate the location and clear any temporary closure."""
        if location.active:
            raise InvalidStateTransitionError(
                "Location is already active", location_id=str(location.id)
            )
        location.active = True
        location.temporarily_closed = False
        location.closure_reason = None

    def calculate_distance_km(
        self, origin: AgencyLocation, destination: AgencyLocation
    ) -> float | None:
        """Great-circle distance (Haversine). None if a coordinate is missing."""
        coordinates = (
            origin.latitude,
            origin.longitude,
            destination.latitude,
            destination.longitude,
        )
        if any(c is None for c in coordinates):
            return None
        lat1, lon1, lat2, lon2 = (math.radians(c) for c in coordinates)  # type: ignore[arg-type]
        d_lat = lat2 - lat1
        d_lon = lon2 - lon1
        a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
        return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
