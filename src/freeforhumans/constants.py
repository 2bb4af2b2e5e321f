"""Constants for the FreeForHumans relayer.

This module defines the constant values shared across the relayer,
including ABI encoding sizes, gas parameters, timeouts, verification
group identifiers and serialization defaults.
"""

# ABI Encoding Constants
ABI_SELECTOR_LENGTH = 4
ABI_WORD_LENGTH = 32
REVERT_SELECTOR = "0x08c379a0"

# Ethereum Constants
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"
UINT256_MAX = 2**256 - 1

# Proof payload: ABI-encoded uint256[8], always 8 static words
PROOF_LENGTH = 8
PROOF_BYTE_LENGTH = PROOF_LENGTH * ABI_WORD_LENGTH

# Verification groups. Shared with the on-chain contract's group scheme;
# changing either value requires a contract upgrade.
ORB_GROUP_ID = 1
DEVICE_GROUP_ID = 2

# Gas Constants (OP-stack L2s)
GAS_ESTIMATION_BUFFER = 1.15
MAX_FEE_MULTIPLIER = 2
MIN_MAX_FEE_GWEI = "0.01"
PRIORITY_FEE_GWEI = "0.001"
MAX_GAS_LIMIT = 1_000_000

# Network Constants
PROVIDER_TIMEOUT_SECONDS = 30
CONFIRMATION_TIMEOUT_SECONDS = 120
CONFIRMATION_POLL_SECONDS = 1.0

# Campaign cache
CAMPAIGN_CACHE_TTL_SECONDS = 30

# Token metadata placeholders when symbol()/decimals() cannot be read
UNKNOWN_TOKEN_SYMBOL = "UNKNOWN"
DEFAULT_TOKEN_DECIMALS = 18

# Name service
DEFAULT_NAME_SUFFIX = "world.id"
NAME_SIGIL = "@"

__all__ = [
    "ABI_SELECTOR_LENGTH",
    "ABI_WORD_LENGTH",
    "REVERT_SELECTOR",
    "ZERO_ADDRESS",
    "ADDRESS_PATTERN",
    "UINT256_MAX",
    "PROOF_LENGTH",
    "PROOF_BYTE_LENGTH",
    "ORB_GROUP_ID",
    "DEVICE_GROUP_ID",
    "GAS_ESTIMATION_BUFFER",
    "MAX_FEE_MULTIPLIER",
    "MIN_MAX_FEE_GWEI",
    "PRIORITY_FEE_GWEI",
    "MAX_GAS_LIMIT",
    "PROVIDER_TIMEOUT_SECONDS",
    "CONFIRMATION_TIMEOUT_SECONDS",
    "CONFIRMATION_POLL_SECONDS",
    "CAMPAIGN_CACHE_TTL_SECONDS",
    "UNKNOWN_TOKEN_SYMBOL",
    "DEFAULT_TOKEN_DECIMALS",
    "DEFAULT_NAME_SUFFIX",
    "NAME_SIGIL",
]
