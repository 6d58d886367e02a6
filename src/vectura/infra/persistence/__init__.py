"""Vectura Infra Persistence: in-memory adapters for every persistence port."""

from vectura.infra.persistence.memory import (
    InMemoryAgencyRepository,
    InMemoryDatabase,
    InMemoryEventSink,
    InMemoryLocationRepository,
    InMemoryParcelRepository,
    InMemoryRoleRepository,
    InMemoryShipmentRepository,
    InMemoryUserRepository,
)

__all__ = [
    "InMemoryAgencyRepository",
    "InMemoryDatabase",
    "InMemoryEventSink",
    "InMemoryLocationRepository",
    "InMemoryParcelRepository",
    "InMemoryRoleRepository",
    "InMemoryShipmentRepository",
    "InMemoryUserRepository",
]
