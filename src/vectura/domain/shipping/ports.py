"""Persistence ports of the shipping bounded context."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from vectura.domain.shipping.parcel import Parcel
from vectura.domain.shipping.shipment import Shipment
from vectura.foundation.domain.ports.repository import RepositoryPort

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@runtime_checkable
class ShipmentRepositoryPort(RepositoryPort[Shipment], Protocol):
    """Shipments. Unique key: ``shipment_number`` (global, not per agency)."""

    def exists_by_shipment_number(self, shipment_number: str) -> bool: ...

    def count_by_prefix(self, agency_id: UUID, prefix: str) -> int:
        """Count the agency's shipments, tombstoned included, numbered ``prefix``*."""
        ...

    def count_created_since(self, agency_id: UUID, since: datetime) -> int:
        """Count the agency's shipments created at or after ``since``."""
        ...

    def list_by_agency(
        self, agency_id: UUID, *, include_deleted: bool = False
    ) -> list[Shipment]: ...

    def list_by_customer(
        self, customer_id: UUID, *, include_deleted: bool = False
    ) -> list[Shipment]: ...


@runtime_checkable
class ParcelRepositoryPort(RepositoryPort[Parcel], Protocol):
    """Parcels. Unique key: ``tracking_number``."""

    def exists_by_tracking_number(self, tracking_number: str) -> bool: ...

    def find_by_tracking_number(
        self, tracking_number: str, *, include_deleted: bool = False
    ) -> Parcel | None: ...

    def list_by_shipment(
        self, shipment_id: UUID, *, include_deleted: bool = False
    ) -> list[Parcel]: ...

    def count_by_shipment(self, shipment_id: UUID) -> int:
        """Count live parcels of a shipment."""
        ...
