"""Agency (tenant root) and AgencyLocation entities.

Plain data holders. Lifecycle rules live in
``vectura.domain.agency.services``.

Agency flags::

    active     (activate / deactivate)   soft-delete-adjacent, reversible
    suspended  (suspend / unsuspend)     punitive or compliance, reversible

The two flags are independent. Shipment creation requires
``active and not suspended``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from vectura.foundation.domain.entities import Entity

if TYPE_CHECKING:
    from uuid import UUID


class SubscriptionTier(StrEnum):
    """Commercial tier of an agency."""

    BASIC = "BASIC"
    PROFESSIONAL = "PROFESSIONAL"
    ENTERPRISE = "ENTERPRISE"
    CUSTOM = "CUSTOM"


class LocationType(StrEnum):
    """Kind of physical site an agency operates."""

    HEADQUARTERS = "HEADQUARTERS"
    BRANCH = "BRANCH"
    WAREHOUSE = "WAREHOUSE"
    PICKUP_POINT = "PICKUP_POINT"
    SORTING_CENTER = "SORTING_CENTER"


@dataclass(kw_only=True)
class Agency(Entity):
    """Tenant root.

    Attributes:
        code: Unique generated code (``AGY-YYYY-NNNNN``).
        name: Display name.
        email: Unique contact email.
        max_shipments_per_month: Subscription limit. None means unlimited.
        max_users: Subscription limit. None means unlimited.
        active: False once deactivated.
        suspended: True while suspended; ``suspension_reason`` holds why.
    """

    code: str = ""
    name: str
    email: str
    legal_name: str | None = None
    phone: str | None = None
    website: str | None = None
    address_line1: str = ""
    address_line2: str | None = None
    city: str = ""
    state_region: str | None = None
    postal_code: str = ""
    country: str = ""
    default_currency: str = "USD"
    timezone: str = "UTC"
    locale: str = "en_US"
    tax_id: str | None = None
    vat_number: str | None = None
    transport_license_number: str | None = None
    max_shipments_per_month: int | None = None
    max_users: int | None = None
    subscription_tier: SubscriptionTier = SubscriptionTier.BASIC
    active: bool = True
    suspended: bool = False
    suspension_reason: str | None = None

    @property
    def agency_id(self) -> UUID:
        """An agency is its own tenant."""
        return self.id

    def can_create_shipment(self) -> bool:
        return self.active and not self.suspended


@dataclass(kw_only=True)
class AgencyLocation(Entity):
    """Physical site owned by exactly one agency.

    Attributes:
        agency_id: Owning agency. Never changes after creation.
        code: Unique within the agency (``HQ`` for the headquarters).
        max_daily_parcels: Daily handling capacity. None means unlimited.
        temporarily_closed: True while closed; ``closure_reason`` holds why.
    """

    agency_id: UUID
    code: str
    name: str
    location_type: LocationType = LocationType.BRANCH
    address_line1: str = ""
    address_line2: str | None = None
    city: str = ""
    postal_code: str = ""
    country: str = ""
    latitude: float | None = None
    longitude: float | None = None
    phone: str | None = None
    max_daily_parcels: int | None = None
    active: bool = True
    temporarily_closed: bool = False
    closure_reason: str | None = None

    @property
    def operational(self) -> bool:
        return self.active and not self.temporarily_closed
