"""Event signing boundary.

The core only needs "fill in pubkey, id and sig". ``NostrSdkSigner`` does
the Schnorr part with ``nostr-sdk``; tests substitute any object with the
same two members.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from nostr_sdk import Keys

from ppe_relay.event import Event


class SignerError(Exception):
    """Raised when a key cannot be parsed or an event cannot be signed."""


@runtime_checkable
class EventSigner(Protocol):
    @property
    def public_key(self) -> str: ...

    def sign(self, event: Event) -> Event: ...


class NostrSdkSigner:
    """Signs events with a secret key in hex or ``nsec`` bech32 form."""

    def __init__(self, secret_key: str) -> None:
        try:
            self._keys = Keys.parse(secret_key)
        except Exception as e:
            raise SignerError(f"Invalid secret key: {e}") from e
        self._public_key = self._keys.public_key().to_hex()

    @property
    def public_key(self) -> str:
        return self._public_key

    def sign(self, event: Event) -> Event:
        """Set ``pubkey``, ``id`` and ``sig`` on ``event`` and return it."""
        event.pubkey = self._public_key
        event.id = event.compute_id()
        try:
            event.sig = self._keys.sign_schnorr(bytes.fromhex(event.id))
        except Exception as e:
            raise SignerError(f"Could not sign event: {e}") from e
        return event


def public_key_from_secret(secret_key: str) -> str:
    """Hex public key for a hex or ``nsec`` secret key."""
    return NostrSdkSigner(secret_key).public_key
