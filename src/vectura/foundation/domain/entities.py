"""Base entity class for tenant data holders.

Entities are plain mutable dataclasses. Lifecycle and invariant logic lives
in stateless domain services that operate on them; entities only hold data
and a few derived predicates.

Every tenant-owned entity carries an explicit ``agency_id`` so persistence
queries and policy checks can filter by tenant without walking object graphs.

Soft deletion is a ``deleted_at`` tombstone. Repositories never filter
tombstoned rows implicitly; every read states whether it includes them.

Example:
    >>> from dataclasses import dataclass
    >>> @dataclass(kw_only=True)
    ... class Dock(Entity):
    ...     name: str
    >>> dock = Dock(name="North")
    >>> dock.version
    0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


@dataclass(kw_only=True)
class Entity:
    """Base class for all persisted entities.

    Attributes:
        id: Entity identifier (UUID4, generated on construction).
        version: Incremented each time the entity is staged for saving.
        created_at: Creation timestamp (UTC).
        updated_at: Timestamp of the last staged change (UTC).
        deleted_at: Soft-delete tombstone. None while the entity is live.
    """

    id: UUID = field(default_factory=uuid4)
    version: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def mark_deleted(self, when: datetime | None = None) -> None:
        """Tombstone the entity. Calling it twice keeps the first timestamp."""
        if self.deleted_at is None:
            self.deleted_at = when or utc_now()

    def touch(self) -> None:
        """Record a new version of the entity."""
        self.version += 1
        self.updated_at = utc_now()
