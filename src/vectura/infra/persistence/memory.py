"""Dict-backed persistence adapters.

Implements every repository port plus ``TransactionPort`` and
``EventSinkPort`` in process memory, for tests and local wiring.

- Entities are deep-copied on the way in and out, so callers never share
  state with the store (mutating a loaded entity changes nothing until it
  is saved again).
- Unique keys are checked on ``save`` against every stored row, tombstoned
  rows included, and a collision raises ``ConflictError``, the way a
  database unique constraint would.
- A transaction snapshots all tables on ``begin`` and restores the
  snapshot on ``rollback``. The database is single-writer: one
  transaction at a time, so each unit of work needs its own database or
  must finish before the next begins.

Usage:
    database = InMemoryDatabase()
    shipments = InMemoryShipmentRepository(database)
    sink = InMemoryEventSink()

    with UnitOfWork(tenant, sink, transaction=database) as uow:
        ...
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

from vectura.domain.agency.agency import Agency, AgencyLocation
from vectura.domain.identity.user import Role, User
from vectura.domain.shipping.parcel import Parcel
from vectura.domain.shipping.shipment import Shipment
from vectura.foundation.domain.entities import Entity
from vectura.foundation.domain.exceptions import ConflictError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from datetime import datetime
    from uuid import UUID

    from vectura.foundation.domain.events import BaseEvent

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=Entity)


class InMemoryDatabase:
    """Tables of entities keyed by id, with snapshot transactions.

    Single-writer: there is one snapshot, so at most one transaction may be
    open. ``begin`` while a transaction is open raises RuntimeError and
    leaves that transaction untouched. Reads and saves outside a
    transaction are serialised by ``lock`` but are not isolated.
    """

    def __init__(self) -> None:
        self.tables: dict[str, dict[UUID, Entity]] = {}
        self.lock = threading.RLock()
        self._snapshot: dict[str, dict[UUID, Entity]] | None = None

    def table(self, name: str) -> dict[UUID, Entity]:
        return self.tables.setdefault(name, {})

    @property
    def in_transaction(self) -> bool:
        return self._snapshot is not None

    def begin(self) -> None:
        with self.lock:
            if self._snapshot is not None:
                msg = "A transaction is already open on this single-writer database"
                raise RuntimeError(msg)
            self._snapshot = copy.deepcopy(self.tables)

    def commit(self) -> None:
        with self.lock:
            self._snapshot = None

    def rollback(self) -> None:
        with self.lock:
            if self._snapshot is not None:
                self.tables = self._snapshot
                self._snapshot = None


class InMemoryRepository(Generic[EntityT]):
    """Generic repository over one table.

    Subclasses set ``table_name`` and list their unique keys in
    ``unique_keys``: each entry is a key name and a function extracting the
    key value from an entity (None means "no value, nothing to enforce").
    """

    table_name: ClassVar[str] = "entities"
    unique_keys: ClassVar[tuple[tuple[str, Callable[[Any], Any]], ...]] = ()

    def __init__(self, database: InMemoryDatabase) -> None:
        self._db = database

    @property
    def _rows(self) -> dict[UUID, Entity]:
        return self._db.table(self.table_name)

    def _iter(self, *, include_deleted: bool) -> Iterator[EntityT]:
        for entity in list(self._rows.values()):
            if include_deleted or not entity.is_deleted:
                yield entity  # type: ignore[misc]

    def _select(
        self, predicate: Callable[[EntityT], bool], *, include_deleted: bool
    ) -> list[EntityT]:
        with self._db.lock:
            rows = self._iter(include_deleted=include_deleted)
            return [copy.deepcopy(e) for e in rows if predicate(e)]

    def _count(self, predicate: Callable[[EntityT], bool], *, include_deleted: bool) -> int:
        with self._db.lock:
            return sum(1 for e in self._iter(include_deleted=include_deleted) if predicate(e))

    def find_by_id(self, entity_id: UUID, *, include_deleted: bool = False) -> EntityT | None:
        with self._db.lock:
            entity = self._rows.get(entity_id)
            if entity is None or (entity.is_deleted and not include_deleted):
                return None
            return copy.deepcopy(entity)  # type: ignore[return-value]

    def find_by_tenant_and_id(
        self,
        agency_id: UUID,
        entity_id: UUID,
        *,
        include_deleted: bool = False,
    ) -> EntityT | None:
        entity = self.find_by_id(entity_id, include_deleted=include_deleted)
        if entity is None or getattr(entity, "agency_id", None) != agency_id:
            return None
        return entity

    def save(self, entity: EntityT) -> None:
        with self._db.lock:
            for key_name, extract in self.unique_keys:
                value = extract(entity)
                if value is None:
                    continue
                for other in self._rows.values():
                    if other.id != entity.id and extract(other) == value:
                        logger.debug(
                            "unique_key_conflict",
                            extra={"table": self.table_name, "key": key_name},
                        )
                        raise ConflictError(
                            f"{self.table_name} {key_name} already exists",
                            key=key_name,
                            value=str(value),
                        )
            self._rows[entity.id] = copy.deepcopy(entity)


class InMemoryAgencyRepository(InMemoryRepository[Agency]):
    table_name = "agencies"
    unique_keys = (
        ("code", lambda a: a.code or None),
        ("email", lambda a: a.email or None),
    )

    def exists_by_code(self, code: str) -> bool:
        return self._count(lambda a: a.code == code, include_deleted=True) > 0

    def exists_by_email(self, email: str) -> bool:
        return self._count(lambda a: a.email == email, include_deleted=True) > 0

    def count_by_code_prefix(self, prefix: str) -> int:
        return self._count(lambda a: a.code.startswith(prefix), include_deleted=True)

    def list_all(self, *, include_deleted: bool = False) -> list[Agency]:
        return self._select(lambda _: True, include_deleted=include_deleted)


class InMemoryLocationRepository(InMemoryRepository[AgencyLocation]):
    table_name = "agency_locations"
    unique_keys = (("code", lambda loc: (loc.agency_id, loc.code)),)

    def list_by_agency(
        self, agency_id: UUID, *, include_deleted: bool = False
    ) -> list[AgencyLocation]:
        return self._select(lambda loc: loc.agency_id == agency_id, include_deleted=include_deleted)

    def exists_by_agency_and_code(self, agency_id: UUID, code: str) -> bool:
        return (
            self._count(
                lambda loc: loc.agency_id == agency_id and loc.code == code,
                include_deleted=True,
            )
            > 0
        )


class InMemoryShipmentRepository(InMemoryRepository[Shipment]):
    table_name = "shipments"
    unique_keys = (("shipment_number", lambda s: s.shipment_number or None),)

    def exists_by_shipment_number(self, shipment_number: str) -> bool:
        return self._count(lambda s: s.shipment_number == shipment_number, include_deleted=True) > 0

    def count_by_prefix(self, agency_id: UUID, prefix: str) -> int:
        return self._count(
            lambda s: s.agency_id == agency_id and s.shipment_number.startswith(prefix),
            include_deleted=True,
        )

    def count_created_since(self, agency_id: UUID, since: datetime) -> int:
        return self._count(
            lambda s: s.agency_id == agency_id and s.created_at >= since,
            include_deleted=True,
        )

    def list_by_agency(self, agency_id: UUID, *, include_deleted: bool = False) -> list[Shipment]:
        return self._select(lambda s: s.agency_id == agency_id, include_deleted=include_deleted)

    def list_by_customer(
        self, customer_id: UUID, *, include_deleted: bool = False
    ) -> list[Shipment]:
        return self._select(lambda s: s.customer_id == customer_id, include_deleted=include_deleted)


class InMemoryParcelRepository(InMemoryRepository[Parcel]):
    table_name = "parcels"
    unique_keys = (("tracking_number", lambda p: p.tracking_number or None),)

    def exists_by_tracking_number(self, tracking_number: str) -> bool:
        return self._count(lambda p: p.tracking_number == tracking_number, include_deleted=True) > 0

    def find_by_tracking_number(
        self, tracking_number: str, *, include_deleted: bool = False
    ) -> Parcel | None:
        found = self._select(
            lambda p: p.tracking_number == tracking_number, include_deleted=include_deleted
        )
        return found[0] if found else None

    def list_by_shipment(self, shipment_id: UUID, *, include_deleted: bool = False) -> list[Parcel]:
        return self._select(lambda p: p.shipment_id == shipment_id, include_deleted=include_deleted)

    def count_by_shipment(self, shipment_id: UUID) -> int:
        return self._count(lambda p: p.shipment_id == shipment_id, include_deleted=False)


class InMemoryUserRepository(InMemoryRepository[User]):
    table_name = "users"
    unique_keys = (("email", lambda u: u.email or None),)

    def exists_by_email(self, email: str) -> bool:
        return self._count(lambda u: u.email == email, include_deleted=True) > 0

    def find_by_email(self, email: str, *, include_deleted: bool = False) -> User | None:
        found = self._select(lambda u: u.email == email, include_deleted=include_deleted)
        return found[0] if found else None

    def list_by_agency(self, agency_id: UUID, *, include_deleted: bool = False) -> list[User]:
        return self._select(lambda u: u.agency_id == agency_id, include_deleted=include_deleted)

    def count_by_agency(self, agency_id: UUID) -> int:
        return self._count(lambda u: u.agency_id == agency_id, include_deleted=False)


class InMemoryRoleRepository(InMemoryRepository[Role]):
    table_name = "roles"
    unique_keys = (("code", lambda r: r.code or None),)

    def exists_by_code(self, code: str) -> bool:
        return self._count(lambda r: r.code == code, include_deleted=True) > 0

    def find_by_code(self, code: str, *, include_deleted: bool = False) -> Role | None:
        found = self._select(lambda r: r.code == code, include_deleted=include_deleted)
        return found[0] if found else None

    def list_all(self, *, include_deleted: bool = False) -> list[Role]:
        return self._select(lambda _: True, include_deleted=include_deleted)


class InMemoryEventSink:
    """Event sink that records published events in order."""

    def __init__(self) -> None:
        self.published: list[BaseEvent] = []

    def publish(self, event: BaseEvent) -> None:
        self.published.append(event)

    def of_type(self, event_type: type[BaseEvent]) -> list[BaseEvent]:
        return [e for e in self.published if isinstance(e, event_type)]

    def clear(self) -> None:
        self.published.clear()
