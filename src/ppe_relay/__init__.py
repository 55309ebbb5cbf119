"""PPE Relay — Pay-Per-Event admission for Nostr relays.

Events are admitted only while the author's Lightning zaps to the operator
cover every event already stored for them, one sat per event.
"""

__version__ = "0.1.0"

from ppe_relay.bot import CommandBot, is_balance_command
from ppe_relay.config import RelayConfig
from ppe_relay.constants import Kind, DEFAULT_RELAYS, MSATS_PER_SAT
from ppe_relay.event import Event, Filter
from ppe_relay.gate import AdmissionDecision, AdmissionGate, UsageCounter
from ppe_relay.payments import BalanceCalculator, PaymentAggregator
from ppe_relay.relay import Relay
from ppe_relay.relay_pool import RelayPool, RelayError
from ppe_relay.signer import EventSigner, NostrSdkSigner, SignerError
from ppe_relay.store import EventStore, StoreError, DuplicateEventError
from ppe_relay.stores import SQLiteEventStore
from ppe_relay.zaps import Bolt11Valuator, InvoiceValuator, InvoiceError, ZapRequestError, extract_zap_request

__all__ = [
    "CommandBot",
    "is_balance_command",
    "RelayConfig",
    "Kind",
    "DEFAULT_RELAYS",
    "MSATS_PER_SAT",
    "Event",
    "Filter",
    "AdmissionDecision",
    "AdmissionGate",
    "UsageCounter",
    "BalanceCalculator",
    "PaymentAggregator",
    "Relay",
    "RelayPool",
    "RelayError",
    "EventSigner",
    "NostrSdkSigner",
    "SignerError",
    "EventStore",
    "StoreError",
    "DuplicateEventError",
    "SQLiteEventStore",
    "Bolt11Valuator",
    "InvoiceValuator",
    "InvoiceError",
    "ZapRequestError",
    "extract_zap_request",
]
