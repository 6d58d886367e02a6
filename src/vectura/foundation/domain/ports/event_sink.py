"""Port interface for publishing domain events.

The event sink is the transport-facing collaborator. The core only hands it
events after the owning unit of work has committed, so implementations may
deliver immediately.

Example:
    >>> from vectura.foundation.domain.ports import EventSinkPort
    >>> class PrintingSink:
    ...     def publish(self, event: BaseEvent) -> None:
    ...         print(event.event_type)
    >>> isinstance(PrintingSink(), EventSinkPort)
    True
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from vectura.foundation.domain.events import BaseEvent


@runtime_checkable
class EventSinkPort(Protocol):
    """Port for delivering committed domain events to consumers."""

    def publish(self, event: BaseEvent) -> None:
        """Deliver one event.

        Args:
            event: Immutable event describing a committed fact.
        """
        ...
