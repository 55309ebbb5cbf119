"""Tests for the nostr-sdk signing adapter."""

import types

import nostr_sdk
import pytest

from ppe_relay import signer as signer_module
from ppe_relay.event import Event
from ppe_relay.signer import EventSigner, NostrSdkSigner, SignerError, public_key_from_secret


# ---------------------------------------------------------------------------
# Adapter wiring (library replaced by a stub)
# ---------------------------------------------------------------------------


class _StubKeys:
    def __init__(self, secret: str) -> None:
        self._secret = secret
        self.signed: list[bytes] = []

    @classmethod
    def parse(cls, secret: str) -> "_StubKeys":
        if not secret.startswith("nsec1"):
            raise ValueError("invalid secret key")
        return cls(secret)

    def public_key(self):
        return types.SimpleNamespace(to_hex=lambda: "ab" * 32)

    def sign_schnorr(self, message: bytes) -> str:
        self.signed.append(message)
        return "5a" * 64


@pytest.fixture
def stub_keys(monkeypatch):
    monkeypatch.setattr(signer_module, "Keys", _StubKeys)


@pytest.mark.usefixtures("stub_keys")
class TestNostrSdkSigner:
    def test_public_key(self) -> None:
        signer = NostrSdkSigner("nsec1secret")
        assert signer.public_key == "ab" * 32
        assert isinstance(signer, EventSigner)

    def test_sign_sets_pubkey_id_and_sig(self) -> None:
        signer = NostrSdkSigner("nsec1secret")
        event = signer.sign(Event(kind=1, content="Your balance is 7 sats.", created_at=5))
        assert event.pubkey == "ab" * 32
        assert event.id == event.compute_id()
        assert event.sig == "5a" * 64
        assert signer._keys.signed == [bytes.fromhex(event.id)]

    def test_invalid_key(self) -> None:
        with pytest.raises(SignerError, match="Invalid secret key"):
            NostrSdkSigner("not-a-key")

    def test_public_key_from_secret(self) -> None:
        assert public_key_from_secret("nsec1secret") == "ab" * 32


# ---------------------------------------------------------------------------
# Real Schnorr signatures
# ---------------------------------------------------------------------------


class TestNostrSdkSignatures:
    def test_signed_event_verifies(self) -> None:
        keys = nostr_sdk.Keys.generate()
        signer = NostrSdkSigner(keys.secret_key().to_hex())
        event = signer.sign(Event(
            kind=1,
            content="Your balance is 7 sats.",
            created_at=1_700_000_000,
            tags=[["e", "aa" * 32], ["p", "bb" * 32]],
        ))

        parsed = nostr_sdk.Event.from_json(event.to_json())
        assert parsed.verify()
        assert parsed.id().to_hex() == event.id
        assert parsed.author().to_hex() == keys.public_key().to_hex()

    def test_accepts_nsec(self) -> None:
        keys = nostr_sdk.Keys.generate()
        signer = NostrSdkSigner(keys.secret_key().to_bech32())
        assert signer.public_key == keys.public_key().to_hex()

    def test_rejects_malformed_key(self) -> None:
        with pytest.raises(SignerError, match="Invalid secret key"):
            NostrSdkSigner("nsec1notakey")
