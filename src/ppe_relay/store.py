"""Abstract persistence interface for stored events.

Defines the EventStore Protocol that the admission gate and the relay host
depend on. The bundled implementation lives in ``ppe_relay.stores``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ppe_relay.event import Event, Filter


class StoreError(Exception):
    """Any failure of the backing store."""


class DuplicateEventError(StoreError):
    """An event with the same id is already stored."""


@runtime_checkable
class EventStore(Protocol):
    """Async event persistence.

    The admission gate only ever calls ``count_events``; the other methods
    are used by the relay host.
    """

    async def save_event(self, event: Event) -> None: ...

    async def query_events(self, filter: Filter) -> list[Event]: ...

    async def count_events(self, filter: Filter) -> int: ...

    async def delete_event(self, event_id: str) -> None: ...
