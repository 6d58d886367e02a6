"""Unit of work: one isolated scope per inbound operation.

A unit of work carries the request's ``TenantContext``, stages entity saves
and collects domain events. Events only reach the event sink after the
storage transaction commits, so consumers never observe a fact before it is
durable. Abandoning the unit (an exception inside the ``with`` block, or an
explicit ``rollback``) leaves no partial state and publishes nothing.

Units are single-use. Build a new one, with a freshly resolved tenant
context, for every request.

Usage:
    with UnitOfWork(tenant, event_sink, transaction=database) as uow:
        shipping.create_shipment(uow, draft)
    # committed and events published here
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from types import TracebackType

    from vectura.foundation.application.context import TenantContext
    from vectura.foundation.domain.entities import Entity
    from vectura.foundation.domain.events import BaseEvent
    from vectura.foundation.domain.ports import EventSinkPort, RepositoryPort, TransactionPort

logger = logging.getLogger(__name__)


class UnitOfWorkClosedError(RuntimeError):
    """Raised when a committed or rolled back unit of work is used again."""

    def __init__(self) -> None:
        super().__init__(
            "Unit of work is already closed. Start a new unit of work for each request."
        )


class UnitOfWork:
    """Stages writes and events for one operation.

    Attributes:
        tenant: Tenant context resolved for the request.
    """

    def __init__(
        self,
        tenant: TenantContext,
        event_sink: EventSinkPort,
        transaction: TransactionPort | None = None,
    ) -> None:
        self.tenant = tenant
        self._event_sink = event_sink
        self._transaction = transaction
        self._pending: list[tuple[RepositoryPort[Any], Entity]] = []
        self._touched: set[Any] = set()
        self._events: list[BaseEvent] = []
        self._begun = False
        self._closed = False

    # -- Context manager ---------------------------------------------------

    def __enter__(self) -> UnitOfWork:
        self._begin()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._closed:
            return
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()

    # -- Staging -----------------------------------------------------------

    @property
    def pending_events(self) -> tuple[BaseEvent, ...]:
        return tuple(self._events)

    def register(self, repository: RepositoryPort[Any], entity: Entity) -> int:
        """Stage an entity for saving and return its new version.

        The version is bumped once per unit of work, however many times the
        entity is registered. Tenant-owned entities are cross-checked against
        the request's tenant before anything is staged.

        Raises:
            TenantViolationError: If an agency employee's unit stages another
                agency's entity.
        """
        self._ensure_open()
        if hasattr(entity, "agency_id"):
            self.tenant.validate_resource_tenant(entity.agency_id)
        self._begin()
        key = (id(repository), entity.id)
        if key not in self._touched:
            self._touched.add(key)
            entity.touch()
        if not any(e is entity for _, e in self._pending):
            self._pending.append((repository, entity))
        return entity.version

    def collect(self, event: BaseEvent) -> None:
        """Hold an event until commit."""
        self._ensure_open()
        self._events.append(event)

    def flush(self) -> None:
        """Write staged entities inside the open transaction.

        Unique-key conflicts surface here, so callers that regenerate
        identifiers can catch them before commit. An entity whose save
        fails stays staged.
        """
        self._ensure_open()
        self._begin()
        while self._pending:
            repository, entity = self._pending[0]
            repository.save(entity)
            self._pending.pop(0)

    # -- Completion --------------------------------------------------------

    def commit(self) -> None:
        """Persist staged entities, commit, then publish collected events."""
        try:
            self.flush()
        except Exception:
            self.rollback()
            raise
        if self._transaction is not None:
            self._transaction.commit()
        self._closed = True

        events, self._events = self._events, []
        for event in events:
            self._event_sink.publish(event)
        logger.debug(
            "unit_of_work_committed",
            extra={
                "correlation_id": self.tenant.correlation_id,
                "event_count": len(events),
            },
        )

    def rollback(self) -> None:
        """Discard staged entities and events. Nothing is published."""
        if self._closed:
            return
        if self._transaction is not None and self._begun:
            self._transaction.rollback()
        discarded = len(self._events)
        self._pending.clear()
        self._events.clear()
        self._closed = True
        logger.debug(
            "unit_of_work_rolled_back",
            extra={
                "correlation_id": self.tenant.correlation_id,
                "discarded_events": discarded,
            },
        )

    # -- Internals ---------------------------------------------------------

    def _begin(self) -> None:
        if self._begun:
            return
        self._begun = True
        if self._transaction is not None:
            self._transaction.begin()

    def _ensure_open(self) -> None:
        if self._closed:
            raise UnitOfWorkClosedError()
