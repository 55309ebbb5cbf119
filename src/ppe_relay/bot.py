"""Command bot: answers "balance" notes addressed to the operator.

Runs as one long-lived task over a single multi-relay subscription and
handles notes strictly one at a time. A note is answered at most once:
before replying, the bot looks upstream for an existing reply to it.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from contextlib import aclosing

from ppe_relay.config import RelayConfig
from ppe_relay.constants import BALANCE_COMMAND, BALANCE_REPLY_TEMPLATE, Kind
from ppe_relay.event import Event, Filter
from ppe_relay.gate import AdmissionGate
from ppe_relay.relay_pool import RelayPool
from ppe_relay.signer import EventSigner, SignerError
from ppe_relay.store import StoreError

logger = logging.getLogger(__name__)


def is_balance_command(content: str) -> bool:
    return BALANCE_COMMAND.search(content) is not None


class CommandBot:
    def __init__(
        self,
        config: RelayConfig,
        pool: RelayPool,
        gate: AdmissionGate,
        signer: EventSigner,
        answered_cache_size: int = 1_000,
    ) -> None:
        self._config = config
        self._pool = pool
        self._gate = gate
        self._signer = signer
        self._answered_cache_size = answered_cache_size
        self._answered: OrderedDict[str, None] = OrderedDict()

    def command_filter(self) -> Filter:
        return Filter(
            kinds=[Kind.TEXT_NOTE],
            tags={"p": [self._config.operator_pubkey]},
        )

    def _reply_authors(self) -> list[str]:
        authors = [self._config.operator_pubkey]
        if self._signer.public_key not in authors:
            authors.append(self._signer.public_key)
        return authors

    def _mark_answered(self, event_id: str) -> None:
        self._answered[event_id] = None
        self._answered.move_to_end(event_id)
        while len(self._answered) > self._answered_cache_size:
            self._answered.popitem(last=False)

    async def is_answered(self, event_id: str) -> bool:
        """True if this bot (or the operator) already replied to ``event_id``."""
        if event_id in self._answered:
            return True

        reply_filter = Filter(
            kinds=[Kind.TEXT_NOTE],
            tags={"e": [event_id]},
            authors=self._reply_authors(),
            limit=1,
        )
        async with aclosing(
            self._pool.query([reply_filter], timeout=self._config.query_timeout_secs)
        ) as stream:
            async for _ in stream:
                self._mark_answered(event_id)
                return True
        return False

    def build_reply(self, query: Event, content: str) -> Event:
        reply = Event(
            created_at=int(time.time()),
            kind=Kind.TEXT_NOTE,
            content=content,
            tags=[["e", query.id], ["p", query.pubkey]],
        )
        return self._signer.sign(reply)

    async def handle(self, event: Event) -> Event | None:
        """Answer one note if it is an unanswered balance command.

        Returns the published reply, or None when nothing was sent.
        """
        if event.pubkey == self._signer.public_key:
            return None
        if not is_balance_command(event.content):
            return None
        if await self.is_answered(event.id):
            logger.debug("Command %s already answered.", event.id)
            return None

        try:
            remaining = await self._gate.remaining_balance(event.pubkey)
        except StoreError as e:
            logger.error("Cannot compute balance for %s: %s", event.pubkey, e)
            return None

        try:
            reply = self.build_reply(
                event, BALANCE_REPLY_TEMPLATE.format(remaining=remaining)
            )
        except SignerError as e:
            logger.error("Cannot sign reply to %s: %s", event.id, e)
            return None

        results = await self._pool.broadcast(reply)
        if not any(results.values()):
            logger.warning("Reply to %s reached no relay.", event.id)
            return None
        self._mark_answered(event.id)
        return reply

    async def run(self) -> None:
        """Consume the command subscription until every relay disconnects."""
        logger.info("Command bot listening on %d relay(s).", len(self._pool.urls))
        async with aclosing(self._pool.subscribe([self.command_filter()])) as stream:
            async for item in stream:
                await self.handle(item.event)
        logger.warning("Command subscription ended; all relays disconnected.")
