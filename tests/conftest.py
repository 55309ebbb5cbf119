"""Shared fakes: relay pool, invoice valuator, signer and event store."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Sequence

import pytest

from ppe_relay.config import RelayConfig
from ppe_relay.constants import Kind
from ppe_relay.event import Event, Filter
from ppe_relay.relay_pool import RelayEvent
from ppe_relay.store import DuplicateEventError, StoreError
from ppe_relay.zaps import InvoiceError

OPERATOR = "a1" * 32
BOT = "b2" * 32
ALICE = "c3" * 32
BOB = "d4" * 32

RELAY_A = "wss://relay-a.example"
RELAY_B = "wss://relay-b.example"


# ---------------------------------------------------------------------------
# Event builders
# ---------------------------------------------------------------------------


def make_zap(
    zap_id: str,
    payer: str,
    invoice: str | None,
    *,
    recipient: str = OPERATOR,
    description: str | None = None,
) -> Event:
    """Zap receipt whose embedded zap request is authored by ``payer``."""
    tags = [["p", recipient]]
    if invoice is not None:
        tags.append(["bolt11", invoice])
    if description is None:
        description = json.dumps({
            "pubkey": payer,
            "content": "",
            "id": f"req-{zap_id}",
            "created_at": 1_700_000_000,
            "sig": "",
            "kind": 9734,
            "tags": [["p", recipient]],
        })
    tags.append(["description", description])
    return Event(
        pubkey="ee" * 32,
        id=zap_id,
        kind=Kind.ZAP_RECEIPT,
        created_at=1_700_000_100,
        tags=tags,
    )


def make_note(
    note_id: str, author: str, content: str, *, mention: str = OPERATOR
) -> Event:
    return Event(
        pubkey=author,
        id=note_id,
        kind=Kind.TEXT_NOTE,
        content=content,
        created_at=1_700_000_200,
        tags=[["p", mention]],
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakePool:
    """In-memory stand-in for RelayPool.

    ``stored`` maps relay url to the events it holds. Unlike the real pool
    it does not deduplicate, so the same id on two relays is delivered
    twice. Successful broadcasts are appended to ``stored``.
    """

    def __init__(
        self,
        stored: dict[str, list[Event]] | None = None,
        live: list[Event] | None = None,
        failing: Sequence[str] = (),
    ) -> None:
        self.stored = stored if stored is not None else {RELAY_A: [], RELAY_B: []}
        self.live = live or []
        self.failing = set(failing)
        self.published: list[Event] = []
        self.queries: list[list[Filter]] = []

    @property
    def urls(self) -> tuple[str, ...]:
        return tuple(self.stored)

    async def _gen(self, items: list[RelayEvent]) -> AsyncIterator[RelayEvent]:
        for item in items:
            yield item

    def query(self, filters, *, timeout=None) -> AsyncIterator[RelayEvent]:
        self.queries.append(list(filters))
        items = [
            RelayEvent(url, event)
            for url, events in self.stored.items()
            for event in events
            if any(f.matches(event) for f in filters)
        ]
        return self._gen(items)

    def subscribe(self, filters) -> AsyncIterator[RelayEvent]:
        return self._gen([RelayEvent(RELAY_A, e) for e in self.live])

    async def broadcast(self, event: Event) -> dict[str, bool]:
        self.published.append(event)
        results = {}
        for url in self.stored:
            ok = url not in self.failing
            if ok:
                self.stored[url].append(event)
            results[url] = ok
        return results


class FakeValuator:
    """Invoices are looked up in a table; anything else is malformed."""

    def __init__(self, amounts: dict[str, int]) -> None:
        self.amounts = amounts

    def amount_msats(self, invoice: str) -> int:
        if invoice not in self.amounts:
            raise InvoiceError(f"unknown invoice {invoice}")
        return self.amounts[invoice]


class FakeSigner:
    def __init__(self, public_key: str = BOT) -> None:
        self._public_key = public_key

    @property
    def public_key(self) -> str:
        return self._public_key

    def sign(self, event: Event) -> Event:
        event.pubkey = self._public_key
        event.id = event.compute_id()
        event.sig = "00" * 64
        return event


class FakeStore:
    def __init__(self, events: list[Event] | None = None, fail: bool = False) -> None:
        self.events = list(events or [])
        self.fail = fail

    async def save_event(self, event: Event) -> None:
        if self.fail:
            raise StoreError("disk on fire")
        if any(e.id == event.id for e in self.events):
            raise DuplicateEventError(event.id)
        self.events.append(event)

    async def query_events(self, filter: Filter) -> list[Event]:
        if self.fail:
            raise StoreError("disk on fire")
        return [e for e in self.events if filter.matches(e)]

    async def count_events(self, filter: Filter) -> int:
        return len(await self.query_events(filter))

    async def delete_event(self, event_id: str) -> None:
        self.events = [e for e in self.events if e.id != event_id]


def stored_notes(author: str, count: int) -> list[Event]:
    return [make_note(f"stored-{author[:4]}-{i}", author, f"note {i}") for i in range(count)]


@pytest.fixture
def config() -> RelayConfig:
    return RelayConfig(
        operator_pubkey=OPERATOR,
        bot_secret_key="unused",
        relays=(RELAY_A, RELAY_B),
        query_timeout_secs=1.0,
    )
