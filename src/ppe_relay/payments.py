"""Zap aggregation and paid-total calculation.

Nothing here is cached or persisted: each call re-reads every upstream
relay, so a payer's total always reflects what the relays hold right now.
"""

from __future__ import annotations

import logging

from ppe_relay.config import RelayConfig
from ppe_relay.constants import Kind
from ppe_relay.event import Event, Filter
from ppe_relay.relay_pool import RelayPool
from ppe_relay.zaps import (
    Bolt11Valuator,
    InvoiceValuator,
    ZapRequestError,
    extract_zap_request,
    msats_to_sats,
    receipt_amount_msats,
)

logger = logging.getLogger(__name__)


class PaymentAggregator:
    """Collects zap receipts to the operator, grouped by payer."""

    def __init__(self, config: RelayConfig, pool: RelayPool) -> None:
        self._config = config
        self._pool = pool

    def receipt_filter(self) -> Filter:
        return Filter(
            kinds=[Kind.ZAP_RECEIPT],
            tags={"p": [self._config.operator_pubkey]},
        )

    async def zaps_from(self, payer: str) -> dict[str, Event]:
        """Return zap receipts paid by ``payer``, keyed by receipt id."""
        receipts: dict[str, Event] = {}
        async for item in self._pool.query(
            [self.receipt_filter()], timeout=self._config.query_timeout_secs
        ):
            receipt = item.event
            try:
                zap_request = extract_zap_request(receipt)
            except ZapRequestError as e:
                logger.debug("Skipping zap %s from %s: %s", receipt.id, item.relay, e)
                continue
            if zap_request.pubkey == payer:
                receipts[receipt.id] = receipt
        return receipts


class BalanceCalculator:
    """Turns a payer's zap receipts into whole sats of credit."""

    def __init__(
        self,
        aggregator: PaymentAggregator,
        valuator: InvoiceValuator | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._valuator = valuator or Bolt11Valuator()

    async def total_paid(self, payer: str) -> int:
        receipts = await self._aggregator.zaps_from(payer)
        total_msats = sum(
            receipt_amount_msats(receipt, self._valuator)
            for receipt in receipts.values()
        )
        return msats_to_sats(total_msats)
