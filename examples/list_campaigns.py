#!/usr/bin/env python3
"""
FreeForHumans campaign listing

Prints every claimable campaign across World Chain and Base, and the
relayer's native balance on each chain when a key is configured.

Usage:
    python examples/list_campaigns.py [chain_id]

Environment Variables:
    RELAYER_PRIVATE_KEY: Relayer key (optional, only for balances)
    WORLD_CHAIN_RPC_URL / BASE_RPC_URL: RPC overrides
    FFH_LOG_LEVEL: Log level (default: INFO)
"""

import asyncio
import sys

from web3 import AsyncWeb3

from freeforhumans import ConfigurationError, Relayer, RelayerConfig
from freeforhumans.utils import configure_logging


async def main() -> None:
    configure_logging()
    config = RelayerConfig.from_env()
    relayer = Relayer.from_config(config)
    chain_id = sys.argv[1] if len(sys.argv) > 1 else None

    listing = await relayer.list_campaigns(chain_id)
    campaigns = listing["campaigns"]

    print(f"{len(campaigns)} claimable campaign(s)")
    for c in campaigns:
        remaining = int(c["remainingBudget"]) / 10 ** c["tokenDecimals"]
        print(
            f"  {c['chainId']}-{c['id']:<4} {c['title'][:32]:<32} "
            f"{remaining:>14,.2f} {c['tokenSymbol']}"
        )

    try:
        for descriptor in relayer.registry.configured():
            balance = await relayer.relayer_balance(descriptor.chain_id)
            print(f"Relayer balance on {descriptor.name}: {AsyncWeb3.from_wei(balance, 'ether')} ETH")
    except ConfigurationError as e:
        print(f"Skipping balances: {e.message}")


if __name__ == "__main__":
    asyncio.run(main())
