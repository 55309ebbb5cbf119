"""Relay host glue: reject-hook chain, event store and command bot task.

The network server that accepts client connections sits outside this
package; it hands each submitted event to ``Relay.add_event`` and each
subscription filter to ``Relay.query_events``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

from ppe_relay.bot import CommandBot
from ppe_relay.config import RelayConfig
from ppe_relay.event import Event, Filter
from ppe_relay.gate import AdmissionGate
from ppe_relay.policies import RejectEventHook, reject_base64_media, restrict_to_kinds
from ppe_relay.store import DuplicateEventError, EventStore

logger = logging.getLogger(__name__)


class Relay:
    """Composes the hooks a submitted event must pass before it is stored.

    - Hooks run in order; the first rejection wins.
    - With ``serialize_admissions`` the hooks and the save for one author
      run under a per-author lock, so a burst from one author is checked
      against an up-to-date stored count.
    - ``start()``/``stop()`` manage the command bot background task.
    """

    def __init__(
        self,
        config: RelayConfig,
        store: EventStore,
        gate: AdmissionGate,
        bot: CommandBot | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._bot = bot
        self.reject_event: list[RejectEventHook] = [
            restrict_to_kinds(*config.allowed_kinds),
            reject_base64_media,
            gate.reject_event,
        ]
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._bot_task: asyncio.Task[None] | None = None

    def info(self) -> dict[str, Any]:
        """NIP-11 relay information document."""
        return {
            "name": self._config.relay_name,
            "description": self._config.relay_description,
            "pubkey": self._config.relay_pubkey,
            "supported_nips": [1, 11],
            "software": "ppe-relay",
            "limitation": {"payment_required": True},
        }

    @contextlib.asynccontextmanager
    async def _author_lock(self, pubkey: str) -> AsyncIterator[None]:
        """Hold the per-author lock; the entry is dropped when its last user leaves."""
        lock = self._locks.setdefault(pubkey, asyncio.Lock())
        self._lock_users[pubkey] = self._lock_users.get(pubkey, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[pubkey] -= 1
            if not self._lock_users[pubkey]:
                del self._lock_users[pubkey]
                del self._locks[pubkey]

    async def _admit_and_save(self, event: Event, ctx: dict[str, Any]) -> tuple[bool, str]:
        for hook in self.reject_event:
            reject, reason = await hook(ctx, event)
            if reject:
                return False, f"blocked: {reason}"
        try:
            await self._store.save_event(event)
        except DuplicateEventError:
            return False, "duplicate: already have this event"
        return True, ""

    async def add_event(
        self, event: Event, ctx: dict[str, Any] | None = None
    ) -> tuple[bool, str]:
        """Run the hook chain and store ``event``. Returns (saved, message)."""
        ctx = ctx if ctx is not None else {}
        if not self._config.serialize_admissions:
            return await self._admit_and_save(event, ctx)
        async with self._author_lock(event.pubkey):
            return await self._admit_and_save(event, ctx)

    async def query_events(self, filter: Filter) -> list[Event]:
        return await self._store.query_events(filter)

    async def delete_event(self, event_id: str) -> None:
        await self._store.delete_event(event_id)

    # -- command bot lifecycle ------------------------------------------------

    async def start(self) -> None:
        """Start the command bot background task."""
        if self._bot is None or self._bot_task is not None:
            return
        self._bot_task = asyncio.create_task(self._bot.run())

    async def stop(self) -> None:
        if self._bot_task is not None:
            self._bot_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._bot_task
            self._bot_task = None

    async def wait(self) -> None:
        """Block until the command bot task finishes."""
        if self._bot_task is not None:
            await self._bot_task

    def health(self) -> dict[str, object]:
        return {
            "relays": len(self._config.relays),
            "bot_running": self._bot_task is not None and not self._bot_task.done(),
            "author_locks": len(self._locks),
        }
