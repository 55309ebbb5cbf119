"""Constants for pay-per-event admission gating."""

import re
from enum import IntEnum


MSATS_PER_SAT = 1_000  # invoices are denominated in millisatoshis

REJECT_INSUFFICIENT_BALANCE = "no sufficient balance; top up"
REJECT_UNVERIFIABLE_BALANCE = "could not verify balance; try again later"

BALANCE_REPLY_TEMPLATE = "Your balance is {remaining} sats."

# Whole word, case-insensitive, anywhere in a multi-line note.
BALANCE_COMMAND = re.compile(r"\bbalance\b", re.IGNORECASE | re.MULTILINE)

DEFAULT_RELAYS: tuple[str, ...] = (
    "wss://relay.snort.social",
    "wss://nos.lol",
    "wss://nostr.mom",
    "wss://nostr.wine",
    "wss://relay.damus.io",
    "wss://relay.nostr.band",
    "wss://purplepag.es",
    "wss://relay.nostr.land",
    "wss://relay.primal.net",
)


class Kind(IntEnum):
    """Nostr event kinds this relay reads or stores."""

    TEXT_NOTE = 1
    ZAP_RECEIPT = 9735
    LONG_FORM = 30023


DEFAULT_ALLOWED_KINDS: tuple[int, ...] = (Kind.TEXT_NOTE, Kind.LONG_FORM)
