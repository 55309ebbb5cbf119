"""Pay-per-event admission gate.

Every stored event costs one sat. A new event from ``pubkey`` is admitted
only when the sats it has zapped to the operator cover all of its already
stored events plus this one. Both sides are recomputed on every call; there
is no running ledger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ppe_relay.config import RelayConfig
from ppe_relay.constants import REJECT_INSUFFICIENT_BALANCE, REJECT_UNVERIFIABLE_BALANCE
from ppe_relay.event import Event, Filter
from ppe_relay.payments import BalanceCalculator
from ppe_relay.store import EventStore, StoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdmissionDecision:
    accepted: bool
    reason: str = ""
    credit: int = 0
    used: int = 0


class UsageCounter:
    """Number of events already stored for an author (read-only)."""

    def __init__(self, store: EventStore) -> None:
        self._store = store

    async def stored_count(self, pubkey: str) -> int:
        return await self._store.count_events(Filter(authors=[pubkey]))


class AdmissionGate:
    """Accept/reject decision for a candidate event.

    ``reject_event`` is the hook the relay host runs before storing. A
    store failure while counting usage is fatal unless
    ``fail_closed_on_store_error`` is set, in which case the event is
    rejected as unverifiable.
    """

    def __init__(
        self,
        config: RelayConfig,
        calculator: BalanceCalculator,
        usage: UsageCounter,
    ) -> None:
        self._config = config
        self._calculator = calculator
        self._usage = usage

    async def _stored_count(self, pubkey: str) -> int:
        try:
            return await self._usage.stored_count(pubkey)
        except StoreError as e:
            if self._config.fail_closed_on_store_error:
                raise
            logger.critical("Failed to query events: %s", e)
            raise SystemExit(1) from e

    async def remaining_balance(self, pubkey: str) -> int:
        """Paid sats minus stored events. Negative when over-admitted."""
        paid = await self._calculator.total_paid(pubkey)
        used = await self._stored_count(pubkey)
        return paid - used

    async def check(self, event: Event) -> AdmissionDecision:
        credit = await self._calculator.total_paid(event.pubkey)
        try:
            used = await self._stored_count(event.pubkey)
        except StoreError as e:
            logger.error("Cannot verify balance for %s: %s", event.pubkey, e)
            return AdmissionDecision(False, REJECT_UNVERIFIABLE_BALANCE, credit=credit)

        if credit < used + 1:
            logger.info(
                "Rejecting %s from %s: paid %d, stored %d.",
                event.id, event.pubkey, credit, used,
            )
            return AdmissionDecision(False, REJECT_INSUFFICIENT_BALANCE, credit, used)
        return AdmissionDecision(True, "", credit, used)

    async def reject_event(self, ctx: dict[str, Any], event: Event) -> tuple[bool, str]:
        decision = await self.check(event)
        return (not decision.accepted, decision.reason)
