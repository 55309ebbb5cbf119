"""Run the pay-per-event relay core: open the store and start the command bot."""

from __future__ import annotations

import asyncio
import logging
import sys

from pydantic import ValidationError

from ppe_relay.bot import CommandBot
from ppe_relay.config import RelayConfig
from ppe_relay.gate import AdmissionGate, UsageCounter
from ppe_relay.payments import BalanceCalculator, PaymentAggregator
from ppe_relay.relay import Relay
from ppe_relay.relay_pool import RelayPool
from ppe_relay.settings import get_settings
from ppe_relay.signer import EventSigner, NostrSdkSigner, SignerError
from ppe_relay.store import StoreError
from ppe_relay.stores import SQLiteEventStore

logger = logging.getLogger("ppe_relay")


def build_relay(
    config: RelayConfig, store: SQLiteEventStore, signer: EventSigner
) -> tuple[Relay, RelayPool]:
    """Wire pool, gate and bot for ``config`` around an initialized store."""
    pool = RelayPool(config.relays, publish_timeout=config.publish_timeout_secs)
    calculator = BalanceCalculator(PaymentAggregator(config, pool))
    gate = AdmissionGate(config, calculator, UsageCounter(store))
    bot = CommandBot(config, pool, gate, signer)
    return Relay(config, store, gate, bot), pool


async def _serve(config: RelayConfig, signer: EventSigner) -> None:
    store = SQLiteEventStore(config.database_path)
    store.init()
    relay, pool = build_relay(config, store, signer)

    for url, status in (await pool.status()).items():
        if status["reachable"]:
            logger.info("Upstream %s reachable (%s).", url, status.get("name", ""))
        else:
            logger.warning("Upstream %s unreachable: %s", url, status.get("error"))

    await relay.start()
    logger.info("%s command bot started as %s.", config.relay_name, signer.public_key)
    try:
        await relay.wait()
    finally:
        await relay.stop()
        store.close()


def main() -> None:
    try:
        settings = get_settings()
    except ValidationError as e:
        missing = ", ".join(str(err["loc"][0]).upper() for err in e.errors())
        print(f"Environment variable(s) not set or invalid: {missing}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = settings.to_config()
        signer = NostrSdkSigner(config.bot_secret_key)
    except SignerError as e:
        logger.critical("Invalid key configuration: %s", e)
        sys.exit(1)

    try:
        asyncio.run(_serve(config, signer))
    except StoreError as e:
        logger.critical("Event store unavailable: %s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
