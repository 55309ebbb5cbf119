"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from ppe_relay import settings as settings_module
from ppe_relay.constants import DEFAULT_RELAYS
from ppe_relay.settings import Settings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """No stray .env or key variables leak into these tests."""
    monkeypatch.chdir(tmp_path)
    for name in ("BOT_PRIVATE_KEY", "GM_BOT_PRIVATE_KEY", "RELAYS", "SERIALIZE_ADMISSIONS"):
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    def test_both_keys_required(self) -> None:
        with pytest.raises(ValidationError):
            Settings()

    def test_gm_key_required(self, monkeypatch) -> None:
        monkeypatch.setenv("BOT_PRIVATE_KEY", "nsec1operator")
        with pytest.raises(ValidationError):
            Settings()

    def test_blank_key_rejected(self, monkeypatch) -> None:
        monkeypatch.setenv("BOT_PRIVATE_KEY", "  ")
        monkeypatch.setenv("GM_BOT_PRIVATE_KEY", "nsec1bot")
        with pytest.raises(ValidationError):
            Settings()

    def test_defaults(self, monkeypatch) -> None:
        monkeypatch.setenv("BOT_PRIVATE_KEY", "nsec1operator")
        monkeypatch.setenv("GM_BOT_PRIVATE_KEY", "nsec1bot")
        s = Settings()
        assert s.relays == list(DEFAULT_RELAYS)
        assert s.database_path == "./db/db"
        assert s.fail_closed_on_store_error is False

    def test_reads_dotenv(self, tmp_path) -> None:
        (tmp_path / ".env").write_text(
            "BOT_PRIVATE_KEY=nsec1operator\nGM_BOT_PRIVATE_KEY=nsec1bot\n"
            'RELAYS=["wss://one.example"]\n'
        )
        s = Settings()
        assert s.bot_private_key == "nsec1operator"
        assert s.relays == ["wss://one.example"]

    def test_to_config_derives_operator_pubkey(self, monkeypatch) -> None:
        monkeypatch.setenv("BOT_PRIVATE_KEY", "nsec1operator")
        monkeypatch.setenv("GM_BOT_PRIVATE_KEY", "nsec1bot")
        monkeypatch.setenv("SERIALIZE_ADMISSIONS", "true")
        monkeypatch.setattr(
            settings_module, "public_key_from_secret", lambda secret: f"pub-of-{secret}"
        )
        config = Settings().to_config()
        assert config.operator_pubkey == "pub-of-nsec1operator"
        assert config.bot_secret_key == "nsec1bot"
        assert config.relays == DEFAULT_RELAYS
        assert config.serialize_admissions is True
