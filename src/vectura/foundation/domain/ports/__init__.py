"""Domain port interfaces for hexagonal architecture.

Ports define abstract interfaces that the domain layer uses to interact
with external collaborators. Implementations (adapters) live in infrastructure.
"""

from vectura.foundation.domain.ports.event_sink import EventSinkPort
from vectura.foundation.domain.ports.repository import RepositoryPort
from vectura.foundation.domain.ports.transaction import TransactionPort

__all__ = ["EventSinkPort", "RepositoryPort", "TransactionPort"]
