"""Generic persistence port shared by every entity family.

Family-specific ports (shipments, parcels, agencies, ...) extend this
protocol with their unique-key and listing queries. Every read takes an
explicit ``include_deleted`` flag; there is no implicit tombstone filter.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, TypeVar, runtime_checkable

from vectura.foundation.domain.entities import Entity

if TYPE_CHECKING:
    from uuid import UUID

EntityT = TypeVar("EntityT", bound=Entity)


@runtime_checkable
class RepositoryPort(Protocol[EntityT]):
    """Port for loading and storing one entity family."""

    def find_by_id(self, entity_id: UUID, *, include_deleted: bool = False) -> EntityT | None:
        """Load an entity by id, or None when absent (or tombstoned and excluded)."""
        ...

    def find_by_tenant_and_id(
        self,
        agency_id: UUID,
        entity_id: UUID,
        *,
        include_deleted: bool = False,
    ) -> EntityT | None:
        """Load an entity only if it belongs to the given agency."""
        ...

    def save(self, entity: EntityT) -> None:
        """Persist the entity.

        Raises:
            ConflictError: If a unique key of the entity is already taken.
        """
        ...
