"""Persistence ports of the agency bounded context."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from vectura.domain.agency.agency import Agency, AgencyLocation
from vectura.foundation.domain.ports.repository import RepositoryPort

if TYPE_CHECKING:
    from uuid import UUID


@runtime_checkable
class AgencyRepositoryPort(RepositoryPort[Agency], Protocol):
    """Agencies. Unique keys: ``code`` and ``email``."""

    def exists_by_code(self, code: str) -> bool: ...

    def exists_by_email(self, email: str) -> bool: ...

    def count_by_code_prefix(self, prefix: str) -> int:
        """Count agencies (tombstoned included) whose code starts with ``prefix``."""
        ...

    def list_all(self, *, include_deleted: bool = False) -> list[Agency]: ...


@runtime_checkable
class LocationRepositoryPort(RepositoryPort[AgencyLocation], Protocol):
    """Agency locations. Unique key: ``(agency_id, code)``."""

    def list_by_agency(
        self, agency_id: UUID, *, include_deleted: bool = False
    ) -> list[AgencyLocation]: ...

    def exists_by_agency_and_code(self, agency_id: UUID, code: str) -> bool: ...
