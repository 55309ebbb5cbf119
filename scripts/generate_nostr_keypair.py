#!/usr/bin/env python3
"""Generate the two Nostr keypairs a PPE relay needs.

Prints ready-to-paste ``.env`` lines:

  - BOT_PRIVATE_KEY: operator identity; users zap this npub and tag it
    with "balance" questions
  - GM_BOT_PRIVATE_KEY: signs the bot's balance replies

Requires: pip install nostr-sdk
"""

from __future__ import annotations

import sys

try:
    from nostr_sdk import Keys
except ImportError:
    print("Error: nostr-sdk not installed. Run: pip install nostr-sdk", file=sys.stderr)
    sys.exit(1)


def main() -> None:
    operator = Keys.generate()
    replier = Keys.generate()

    print("# Operator identity — zap this npub to top up:")
    print(f"#   {operator.public_key().to_bech32()}")
    print(f"BOT_PRIVATE_KEY={operator.secret_key().to_hex()}")
    print()
    print("# Reply signer:")
    print(f"#   {replier.public_key().to_bech32()}")
    print(f"GM_BOT_PRIVATE_KEY={replier.secret_key().to_hex()}")
    print()
    print("Back up both private keys securely; never commit them to git.", file=sys.stderr)


if __name__ == "__main__":
    main()
