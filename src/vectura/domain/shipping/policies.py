"""Access policies for shipments and parcels.

Shipment rule table::

    operation     PLATFORM_ADMIN   AGENCY_EMPLOYEE                  CUSTOMER
    access        allow            own agency                       deny
    cust. access  deny             deny                             own shipment
    create        allow            own agency                       customer path only
    modify        allow            own agency + SHIPMENT roles      deny
    confirm       allow            own agency + SHIPMENT roles      deny
    validate      allow            own agency + SHIPMENT roles      deny
    delete        allow            own agency + AGENCY_ADMIN        deny
    edit/cancel   deny             deny                             own shipment

Parcel rule table::

    access/track  allow            own agency                       deny
    cust. access  deny             deny                             parcels of own shipment
    create        allow            own agency                       deny
    modify        allow            own agency + PARCEL roles        deny
    status        allow            own agency + operational roles   deny
    delete        allow            own agency + AGENCY_ADMIN        deny

Direct access is purely tenant-based: a customer never passes ``can_access``.
Customers read through the separate ``can_customer_access`` predicates,
which hold when ``shipment.customer_id`` equals the customer's user id.
Ownership never grants an employee-style operation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from vectura.foundation.application.access_policy import TenantScopedPolicy
from vectura.foundation.domain.role_codes import RoleCode

if TYPE_CHECKING:
    from uuid import UUID

    from vectura.domain.shipping.parcel import Parcel
    from vectura.domain.shipping.shipment import Shipment
    from vectura.foundation.domain.security_context import SecurityContext

SHIPMENT_MODIFY_ROLES = frozenset({RoleCode.AGENCY_ADMIN, RoleCode.SHIPMENT_MANAGER})
SHIPMENT_DELETE_ROLES = frozenset({RoleCode.AGENCY_ADMIN})
PARCEL_MODIFY_ROLES = frozenset({RoleCode.AGENCY_ADMIN, RoleCode.PARCEL_MANAGER})
PARCEL_STATUS_ROLES = frozenset(
    {
        RoleCode.AGENCY_ADMIN,
        RoleCode.PARCEL_MANAGER,
        RoleCode.SORTING_OPERATOR,
        RoleCode.DELIVERY_DRIVER,
    }
)
PARCEL_DELETE_ROLES = frozenset({RoleCode.AGENCY_ADMIN})


def is_shipment_owner(context: SecurityContext, shipment: Shipment | None) -> bool:
    """True when ``context`` is the customer who created ``shipment``."""
    return (
        context.is_customer
        and shipment is not None
        and shipment.customer_id is not None
        and shipment.customer_id == context.user_id
    )


class ShipmentAccessPolicy(TenantScopedPolicy):
    """Decisions on shipments, for both the agency and the customer path."""

    resource_type = "shipment"

    def can_access(self, context: SecurityContext, shipment: Shipment) -> bool:
        return self.tenant_access(context, shipment.agency_id)

    def can_customer_access(self, context: SecurityContext, shipment: Shipment) -> bool:
        """Read access for the customer who created the shipment."""
        return is_shipment_owner(context, shipment)

    def can_create(self, context: SecurityContext, agency_id: UUID | None) -> bool:
        return self.tenant_access(context, agency_id)

    def can_list(self, context: SecurityContext, agency_id: UUID | None) -> bool:
        return self.tenant_access(context, agency_id)

    def can_create_as_customer(self, context: SecurityContext) -> bool:
        return context.is_customer

    def can_modify(self, context: SecurityContext, shipment: Shipment) -> bool:
        return self.tenant_role_access(context, shipment.agency_id, SHIPMENT_MODIFY_ROLES)

    def can_confirm(self, context: SecurityContext, shipment: Shipment) -> bool:
        return self.tenant_role_access(context, shipment.agency_id, SHIPMENT_MODIFY_ROLES)

    def can_validate(self, context: SecurityContext, shipment: Shipment) -> bool:
        """Accept or reject a customer shipment."""
        return self.tenant_role_access(context, shipment.agency_id, SHIPMENT_MODIFY_ROLES)

    def can_delete(self, context: SecurityContext, shipment: Shipment) -> bool:
        return self.tenant_role_access(context, shipment.agency_id, SHIPMENT_DELETE_ROLES)

    def can_customer_modify(self, context: SecurityContext, shipment: Shipment) -> bool:
        return is_shipment_owner(context, shipment)

    def validate_access(self, context: SecurityContext, shipment: Shipment) -> None:
        self.check(
            self.can_access(context, shipment), context, "access", shipment.agency_id, shipment.id
        )

    def validate_customer_access(self, context: SecurityContext, shipment: Shipment) -> None:
        self.check(
            self.can_customer_access(context, shipment),
            context,
            "customer_access",
            shipment.agency_id,
            shipment.id,
        )

    def validate_create(self, context: SecurityContext, agency_id: UUID | None) -> None:
        self.check(self.can_create(context, agency_id), context, "create", agency_id)

    def validate_list(self, context: SecurityContext, agency_id: UUID | None) -> None:
        self.check(self.can_list(context, agency_id), context, "list", agency_id)

    def validate_create_as_customer(self, context: SecurityContext) -> None:
        self.check(self.can_create_as_customer(context), context, "create_customer_shipment")

    def validate_modify(self, context: SecurityContext, shipment: Shipment) -> None:
        self.check(
            self.can_modify(context, shipment), context, "modify", shipment.agency_id, shipment.id
        )

    def validate_confirm(self, context: SecurityContext, shipment: Shipment) -> None:
        self.check(
            self.can_confirm(context, shipment), context, "confirm", shipment.agency_id, shipment.id
        )

    def validate_validate(
        self, context: SecurityContext, shipment: Shipment, operation: str = "validate"
    ) -> None:
        self.check(
            self.can_validate(context, shipment),
            context,
            operation,
            shipment.agency_id,
            shipment.id,
        )

    def validate_delete(self, context: SecurityContext, shipment: Shipment) -> None:
        self.check(
            self.can_delete(context, shipment), context, "delete", shipment.agency_id, shipment.id
        )

    def validate_customer_modify(
        self, context: SecurityContext, shipment: Shipment, operation: str = "customer_modify"
    ) -> None:
        self.check(
            self.can_customer_modify(context, shipment),
            context,
            operation,
            shipment.agency_id,
            shipment.id,
        )


class ParcelAccessPolicy(TenantScopedPolicy):
    """Decisions on parcels.

    Customer reads need the owning shipment to establish ownership.
    """

    resource_type = "parcel"

    def can_access(self, context: SecurityContext, parcel: Parcel) -> bool:
        return self.tenant_access(context, parcel.agency_id)

    def can_customer_access(
        self, context: SecurityContext, parcel: Parcel, shipment: Shipment | None
    ) -> bool:
        """Read and track access for the customer who owns ``shipment``."""
        return (
            shipment is not None
            and shipment.id == parcel.shipment_id
            and is_shipment_owner(context, shipment)
        )

    def can_create(self, context: SecurityContext, shipment: Shipment) -> bool:
        return self.tenant_access(context, shipment.agency_id)

    def can_modify(self, context: SecurityContext, parcel: Parcel) -> bool:
        return self.tenant_role_access(context, parcel.agency_id, PARCEL_MODIFY_ROLES)

    def can_update_status(self, context: SecurityContext, parcel: Parcel) -> bool:
        return self.tenant_role_access(context, parcel.agency_id, PARCEL_STATUS_ROLES)

    def can_track(self, context: SecurityContext, parcel: Parcel) -> bool:
        return self.can_access(context, parcel)

    def can_delete(self, context: SecurityContext, parcel: Parcel) -> bool:
        return self.tenant_role_access(context, parcel.agency_id, PARCEL_DELETE_ROLES)

    def validate_access(self, context: SecurityContext, parcel: Parcel) -> None:
        self.check(
            self.can_access(context, parcel), context, "access", parcel.agency_id, parcel.id
        )

    def validate_customer_access(
        self,
        context: SecurityContext,
        parcel: Parcel,
        shipment: Shipment | None,
        operation: str = "customer_access",
    ) -> None:
        resource_id = parcel.tracking_number if operation == "track" else parcel.id
        self.check(
            self.can_customer_access(context, parcel, shipment),
            context,
            operation,
            parcel.agency_id,
            resource_id,
        )

    def validate_create(self, context: SecurityContext, shipment: Shipment) -> None:
        self.check(
            self.can_create(context, shipment), context, "create", shipment.agency_id, shipment.id
        )

    def validate_modify(self, context: SecurityContext, parcel: Parcel) -> None:
        self.check(
            self.can_modify(context, parcel), context, "modify", parcel.agency_id, parcel.id
        )

    def validate_update_status(self, context: SecurityContext, parcel: Parcel) -> None:
        self.check(
            self.can_update_status(context, parcel),
            context,
            "update_status",
            parcel.agency_id,
            parcel.id,
        )

    def validate_track(self, context: SecurityContext, parcel: Parcel) -> None:
        self.check(
            self.can_track(context, parcel),
            context,
            "track",
            parcel.agency_id,
            parcel.tracking_number,
        )

    def validate_delete(self, context: SecurityContext, parcel: Parcel) -> None:
        self.check(
            self.can_delete(context, parcel), context, "delete", parcel.agency_id, parcel.id
        )
