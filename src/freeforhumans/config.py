"""
Chain registry and process configuration.

The relayer serves exactly two chains. Each chain is described by an
immutable ChainDescriptor; a descriptor whose contract address is the
zero address is known but unconfigured and is left out of aggregation.
"""

import os
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Any, ClassVar, Dict, List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .constants import (
    CAMPAIGN_CACHE_TTL_SECONDS,
    CONFIRMATION_TIMEOUT_SECONDS,
    DEFAULT_NAME_SUFFIX,
    PROVIDER_TIMEOUT_SECONDS,
    ZERO_ADDRESS,
)
from .errors import ConfigurationError, UnsupportedChainError

__all__ = [
    "ChainId",
    "ChainDescriptor",
    "CHAINS",
    "ChainRegistry",
    "parse_chain_id",
    "CircuitBreakerConfig",
    "RelayerConfig",
]


class ChainId(IntEnum):
    WORLD_CHAIN = 480
    BASE = 8453


@dataclass(frozen=True)
class ChainDescriptor:
    chain_id: ChainId
    name: str
    contract_address: str
    rpc_url: str
    explorer_url: str
    world_id_router: str

    @property
    def is_configured(self) -> bool:
        return bool(self.contract_address) and self.contract_address.lower() != ZERO_ADDRESS

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"


CHAINS: Dict[ChainId, ChainDescriptor] = {
    ChainId.WORLD_CHAIN: ChainDescriptor(
        chain_id=ChainId.WORLD_CHAIN,
        name="World Chain",
        contract_address="0x3f332A60A32F57d77D9834c4B11dB63999387f8f",
        rpc_url="https://worldchain-mainnet.g.alchemy.com/public",
        explorer_url="https://worldscan.org",
        world_id_router="0x17B354dD2595411ff79041f930e491A4Df39A278",
    ),
    ChainId.BASE: ChainDescriptor(
        chain_id=ChainId.BASE,
        name="Base",
        contract_address="0x36A9dD08A1703e63139DFaa3FFA6C6a44f47AA09",
        rpc_url="https://mainnet.base.org",
        explorer_url="https://basescan.org",
        world_id_router="0xBCC7e5910178AFFEEeBA573ba6903E9869594163",
    ),
}


def parse_chain_id(value: Any) -> ChainId:
    """Coerce a raw chain id (int or numeric string) into ChainId.

    Raises:
        UnsupportedChainError: If the value is not one of the supported chains
    """
    try:
        return ChainId(int(value))
    except (TypeError, ValueError):
        raise UnsupportedChainError(value) from None


class CircuitBreakerConfig(BaseModel):
    """Per-chain circuit breaker settings for campaign aggregation."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Enable circuit breaker")
    failure_threshold: int = Field(
        default=3,
        ge=1,
        description="Number of failures before opening circuit",
    )
    reset_timeout_ms: int = Field(
        default=60000,
        ge=1000,
        description="Cooldown period in ms before attempting reset",
    )
    failure_window_ms: int = Field(
        default=300000,
        ge=1000,
        description="Time window in ms for counting failures",
    )
    success_threshold: int = Field(
        default=1,
        ge=1,
        description="Number of successes in half-open to close circuit",
    )


class RelayerConfig(BaseModel):
    """
    Process configuration for the relayer core.

    Example:
        ```python
        config = RelayerConfig.from_env()
        relayer = Relayer.from_config(config)
        ```
    """

    model_config = ConfigDict(frozen=True)

    relayer_private_key: Optional[str] = Field(
        default=None,
        repr=False,
        description="Hex private key of the relayer that pays gas. SECURITY: keep in env",
    )
    world_chain_rpc_url: Optional[str] = Field(default=None, description="World Chain RPC override")
    base_rpc_url: Optional[str] = Field(default=None, description="Base RPC override")
    world_chain_contract_address: Optional[str] = Field(
        default=None,
        description="Campaign contract on World Chain (zero address disables the chain)",
    )
    base_contract_address: Optional[str] = Field(
        default=None,
        description="Campaign contract on Base (zero address disables the chain)",
    )
    ens_rpc_url: str = Field(
        default="https://eth.llamarpc.com",
        description="Ethereum mainnet RPC used for username resolution",
    )
    name_suffix: str = Field(
        default=DEFAULT_NAME_SUFFIX,
        min_length=1,
        description="Namespace appended to bare usernames",
    )
    cache_ttl_seconds: float = Field(default=CAMPAIGN_CACHE_TTL_SECONDS, ge=0)
    rpc_timeout_seconds: float = Field(default=PROVIDER_TIMEOUT_SECONDS, gt=0)
    confirmation_timeout_seconds: float = Field(default=CONFIRMATION_TIMEOUT_SECONDS, gt=0)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)

    ENV_VARS: ClassVar[Dict[str, str]] = {
        "relayer_private_key": "RELAYER_PRIVATE_KEY",
        "world_chain_rpc_url": "WORLD_CHAIN_RPC_URL",
        "base_rpc_url": "BASE_RPC_URL",
        "world_chain_contract_address": "WORLD_CHAIN_CONTRACT_ADDRESS",
        "base_contract_address": "BASE_CONTRACT_ADDRESS",
        "ens_rpc_url": "ENS_RPC_URL",
        "name_suffix": "WORLD_ID_NAME_SUFFIX",
        "cache_ttl_seconds": "CAMPAIGN_CACHE_TTL_SECONDS",
        "rpc_timeout_seconds": "RPC_TIMEOUT_SECONDS",
        "confirmation_timeout_seconds": "CONFIRMATION_TIMEOUT_SECONDS",
    }

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        dotenv_path: Optional[str] = None,
    ) -> "RelayerConfig":
        """Build configuration from environment variables.

        A ``.env`` file is loaded first (without overriding variables that are
        already set) unless an explicit ``environ`` mapping is supplied.

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        if environ is None:
            load_dotenv(dotenv_path)
            environ = os.environ

        values = {
            field: environ[var]
            for field, var in cls.ENV_VARS.items()
            if environ.get(var)
        }
        try:
            return cls(**values)
        except PydanticValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
            raise ConfigurationError(
                f"Invalid relayer configuration: {', '.join(fields) or 'unknown field'}",
                details={"fields": fields},
            ) from None


class ChainRegistry:
    """
    Read-only view over the supported chains.

    Example:
        >>> registry = ChainRegistry()
        >>> registry.describe(8453).name
        'Base'
    """

    def __init__(self, descriptors: Optional[Mapping[ChainId, ChainDescriptor]] = None) -> None:
        self._chains: Dict[ChainId, ChainDescriptor] = dict(descriptors or CHAINS)

    @classmethod
    def from_config(cls, config: RelayerConfig) -> "ChainRegistry":
        overrides = {
            ChainId.WORLD_CHAIN: (config.world_chain_rpc_url, config.world_chain_contract_address),
            ChainId.BASE: (config.base_rpc_url, config.base_contract_address),
        }
        chains = {}
        for chain_id, descriptor in CHAINS.items():
            rpc_url, contract = overrides[chain_id]
            chains[chain_id] = replace(
                descriptor,
                rpc_url=rpc_url or descriptor.rpc_url,
                contract_address=contract or descriptor.contract_address,
            )
        return cls(chains)

    def describe(self, chain_id: Any) -> ChainDescriptor:
        """Return the descriptor for a supported chain.

        Raises:
            UnsupportedChainError: If the chain id is not supported
        """
        return self._chains[parse_chain_id(chain_id)]

    def require_configured(self, chain_id: Any) -> ChainDescriptor:
        """Like describe(), but also rejects chains without a deployed contract."""
        descriptor = self.describe(chain_id)
        if not descriptor.is_configured:
            raise UnsupportedChainError(chain_id, reason="contract not configured for this chain")
        return descriptor

    def configured(self) -> List[ChainDescriptor]:
        return [d for d in self._chains.values() if d.is_configured]

    def explorer_tx_url(self, chain_id: Any, tx_hash: str) -> str:
        return self.describe(chain_id).tx_url(tx_hash)

    def __iter__(self):
        return iter(self._chains.values())

    def __len__(self) -> int:
        return len(self._chains)

