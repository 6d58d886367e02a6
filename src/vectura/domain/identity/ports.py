"""Persistence ports of the identity bounded context."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from vectura.domain.identity.user import Role, User
from vectura.foundation.domain.ports.repository import RepositoryPort

if TYPE_CHECKING:
    from uuid import UUID


@runtime_checkable
class UserRepositoryPort(RepositoryPort[User], Protocol):
    """Users. Unique key: ``email``."""

    def exists_by_email(self, email: str) -> bool: ...

    def find_by_email(self, email: str, *, include_deleted: bool = False) -> User | None: ...

    def list_by_agency(self, agency_id: UUID, *, include_deleted: bool = False) -> list[User]: ...

    def count_by_agency(self, agency_id: UUID) -> int:
        """Count live users employed by the agency."""
        ...


@runtime_checkable
class RoleRepositoryPort(RepositoryPort[Role], Protocol):
    """Role definitions. Unique key: ``code``."""

    def exists_by_code(self, code: str) -> bool: ...

    def find_by_code(self, code: str, *, include_deleted: bool = False) -> Role | None: ...

    def list_all(self, *, include_deleted: bool = False) -> list[Role]: ...
