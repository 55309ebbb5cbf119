"""Zap receipt decoding: embedded zap requests and BOLT11 invoice amounts.

A zap receipt (kind 9735) never names the payer directly. The payer is the
author of the zap request JSON carried in the receipt's ``description``
tag, and the amount is encoded in the invoice carried in its ``bolt11``
tag. Every failure here is a recoverable skip for the caller.
"""

from __future__ import annotations

import json
import logging
from typing import Protocol, runtime_checkable

import bolt11

from ppe_relay.constants import MSATS_PER_SAT
from ppe_relay.event import Event

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception hierarchy
# ---------------------------------------------------------------------------


class ZapRequestError(Exception):
    """Base exception for zap request extraction."""


class DescriptionNotFoundError(ZapRequestError):
    """The receipt carries no ``description`` tag."""


class DescriptionParseError(ZapRequestError):
    """The ``description`` tag is not a JSON zap request."""


class InvoiceError(Exception):
    """The invoice string is malformed or carries no amount."""


# ---------------------------------------------------------------------------
# Zap request extraction
# ---------------------------------------------------------------------------


def extract_zap_request(receipt: Event) -> Event:
    """Return the zap request embedded in ``receipt``.

    Raises DescriptionNotFoundError when the tag is missing or empty, and
    DescriptionParseError when its value is not an event object with a
    string ``pubkey``.
    """
    description = receipt.tag_value("description")
    if not description:
        raise DescriptionNotFoundError("description tag not found")

    try:
        data = json.loads(description)
    except (json.JSONDecodeError, TypeError) as e:
        raise DescriptionParseError(f"error parsing description: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("pubkey"), str):
        raise DescriptionParseError("description has no payer pubkey")

    try:
        return Event.from_dict(data)
    except ValueError as e:
        raise DescriptionParseError(f"error parsing description: {e}") from e


# ---------------------------------------------------------------------------
# Invoice valuation
# ---------------------------------------------------------------------------


@runtime_checkable
class InvoiceValuator(Protocol):
    """Decodes an invoice string into its amount in millisatoshis."""

    def amount_msats(self, invoice: str) -> int: ...


class Bolt11Valuator:
    """InvoiceValuator backed by the ``bolt11`` library."""

    def amount_msats(self, invoice: str) -> int:
        try:
            decoded = bolt11.decode(invoice)
        except Exception as e:
            raise InvoiceError(f"invalid bolt11 invoice: {e}") from e

        amount = decoded.amount_msat
        if amount is None:
            raise InvoiceError("bolt11 invoice has no amount")
        return int(amount)


def msats_to_sats(msats: int) -> int:
    """Whole sats in ``msats``; sub-sat remainders are dropped."""
    return msats // MSATS_PER_SAT


def receipt_amount_msats(receipt: Event, valuator: InvoiceValuator) -> int:
    """Amount paid by ``receipt`` in msats, or 0 if it has no usable invoice."""
    invoice = receipt.tag_value("bolt11")
    if not invoice:
        logger.debug("Zap %s has no bolt11 tag; skipping.", receipt.id)
        return 0
    try:
        amount = valuator.amount_msats(invoice)
    except InvoiceError as e:
        logger.debug("Zap %s has an unusable invoice: %s", receipt.id, e)
        return 0
    return max(0, amount)
