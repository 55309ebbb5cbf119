"""Process settings — environment variables and ``.env`` via pydantic-settings.

Only the entry point reads these; every component receives the derived
``RelayConfig`` instead.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ppe_relay.config import RelayConfig
from ppe_relay.constants import DEFAULT_RELAYS
from ppe_relay.signer import public_key_from_secret


class Settings(BaseSettings):
    """Relay settings from environment variables.

    ``BOT_PRIVATE_KEY`` is the operator identity that receives zaps and
    commands; ``GM_BOT_PRIVATE_KEY`` signs the bot's replies. Both are
    required.
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    bot_private_key: str
    gm_bot_private_key: str

    relays: list[str] = list(DEFAULT_RELAYS)
    query_timeout_secs: float | None = 15.0
    publish_timeout_secs: float = 10.0
    fail_closed_on_store_error: bool = False
    serialize_admissions: bool = False

    database_path: str = "./db/db"
    log_level: str = "INFO"

    @field_validator("bot_private_key", "gm_bot_private_key")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    def to_config(self) -> RelayConfig:
        return RelayConfig(
            operator_pubkey=public_key_from_secret(self.bot_private_key),
            bot_secret_key=self.gm_bot_private_key,
            relays=tuple(self.relays),
            query_timeout_secs=self.query_timeout_secs,
            publish_timeout_secs=self.publish_timeout_secs,
            fail_closed_on_store_error=self.fail_closed_on_store_error,
            serialize_admissions=self.serialize_admissions,
            database_path=self.database_path,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
