"""Port interface for the storage transaction behind a unit of work."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TransactionPort(Protocol):
    """Port for an atomic storage transaction.

    ``begin`` opens the transaction, ``commit`` makes every write since
    ``begin`` durable and ``rollback`` discards them.
    """

    def begin(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
