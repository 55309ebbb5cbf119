"""Relay configuration — plain frozen dataclass, no pydantic.

The process entry point builds this from its settings (see
``ppe_relay.settings``) and passes it to every component explicitly.
"""

from dataclasses import dataclass

from ppe_relay.constants import DEFAULT_ALLOWED_KINDS, DEFAULT_RELAYS


@dataclass(frozen=True)
class RelayConfig:
    operator_pubkey: str
    bot_secret_key: str = ""
    relays: tuple[str, ...] = DEFAULT_RELAYS
    query_timeout_secs: float | None = 15.0
    publish_timeout_secs: float = 10.0
    fail_closed_on_store_error: bool = False
    serialize_admissions: bool = False
    allowed_kinds: tuple[int, ...] = DEFAULT_ALLOWED_KINDS
    relay_name: str = "PPE Relay"
    relay_description: str = "Pay-Per-Event Relay."
    relay_pubkey: str = "f1f9b0996d4ff1bf75e79e4cc8577c89eb633e68415c7faf74cf17a07bf80bd8"
    database_path: str = "./db/db"
