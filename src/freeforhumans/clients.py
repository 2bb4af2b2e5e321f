"""
Per-chain web3 clients backed by the single relayer key.

Read clients and signing clients are built lazily on first use and shared
by every request; they hold no request-scoped state.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.contract import AsyncContract

from freeforhumans.abis import load_abi
from freeforhumans.config import ChainDescriptor, ChainRegistry
from freeforhumans.constants import (
    GAS_ESTIMATION_BUFFER,
    MAX_FEE_MULTIPLIER,
    MAX_GAS_LIMIT,
    MIN_MAX_FEE_GWEI,
    PRIORITY_FEE_GWEI,
    PROVIDER_TIMEOUT_SECONDS,
)
from freeforhumans.errors import ConfigurationError
from freeforhumans.utils.logging import get_logger

__all__ = ["SigningClient", "ClientPool"]

_logger = get_logger(__name__)

Web3Factory = Callable[[str], AsyncWeb3]


class SigningClient:
    """
    Signs and broadcasts transactions for one chain.

    Nonce lookup and broadcast run under a per-chain lock so two claims
    sent concurrently from the relayer key never share a nonce. Gas
    estimation happens before the lock; a call that would revert fails
    there without holding up other senders.
    """

    def __init__(self, w3: AsyncWeb3, account: LocalAccount, chain_id: int) -> None:
        self._w3 = w3
        self._account = account
        self._chain_id = chain_id
        self._lock = asyncio.Lock()

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def chain_id(self) -> int:
        return self._chain_id

    async def estimate_gas(self, function: Any, buffer: float = GAS_ESTIMATION_BUFFER) -> int:
        """Estimate gas for a contract call with a safety buffer, capped at MAX_GAS_LIMIT."""
        base = await function.estimate_gas({"from": self.address})
        return min(int(base * buffer), MAX_GAS_LIMIT)

    async def fee_fields(self) -> Dict[str, int]:
        """EIP-1559 fee fields from the latest block.

        maxFeePerGas is twice the base fee (floored at MIN_MAX_FEE_GWEI);
        the priority tip is the small fixed PRIORITY_FEE_GWEI typical of
        OP-stack chains.
        """
        latest_block = await self._w3.eth.get_block("latest")
        base_fee = latest_block.get("baseFeePerGas", 0)
        return {
            "maxFeePerGas": max(
                base_fee * MAX_FEE_MULTIPLIER,
                AsyncWeb3.to_wei(MIN_MAX_FEE_GWEI, "gwei"),
            ),
            "maxPriorityFeePerGas": AsyncWeb3.to_wei(PRIORITY_FEE_GWEI, "gwei"),
        }

    async def send(self, function: Any) -> str:
        """Build, sign and broadcast a contract call.

        Returns:
            Transaction hash as a 0x-prefixed hex string
        """
        gas = await self.estimate_gas(function)
        fees = await self.fee_fields()

        async with self._lock:
            nonce = await self._w3.eth.get_transaction_count(self.address, "pending")
            tx = await function.build_transaction(
                {
                    "from": self.address,
                    "nonce": nonce,
                    "chainId": self._chain_id,
                    "gas": gas,
                    **fees,
                }
            )
            signed = self._account.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)

        tx_hex = AsyncWeb3.to_hex(tx_hash)
        _logger.debug(
            "Transaction broadcast",
            extra={"chain_id": self._chain_id, "nonce": nonce, "gas": gas, "tx_hash": tx_hex},
        )
        return tx_hex


class ClientPool:
    """
    Lazily constructed read and signing clients, one of each per chain.

    Example:
        ```python
        pool = ClientPool(ChainRegistry(), private_key=os.environ["RELAYER_PRIVATE_KEY"])
        campaigns = pool.contract(8453)
        next_id = await campaigns.functions.nextCampaignId().call()
        ```
    """

    def __init__(
        self,
        registry: ChainRegistry,
        *,
        private_key: Optional[str] = None,
        rpc_timeout: float = PROVIDER_TIMEOUT_SECONDS,
        web3_factory: Optional[Web3Factory] = None,
    ) -> None:
        self.registry = registry
        self._private_key = private_key
        self._rpc_timeout = rpc_timeout
        self._web3_factory = web3_factory or self._default_web3
        self._account: Optional[LocalAccount] = None
        self._public: Dict[int, AsyncWeb3] = {}
        self._signers: Dict[int, SigningClient] = {}
        self._contracts: Dict[int, AsyncContract] = {}

    def _default_web3(self, rpc_url: str) -> AsyncWeb3:
        return AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": self._rpc_timeout})
        )

    @property
    def account(self) -> LocalAccount:
        """The relayer account, loaded from the private key on first use.

        Raises:
            ConfigurationError: If the key is missing or malformed
        """
        if self._account is None:
            if not self._private_key:
                raise ConfigurationError("RELAYER_PRIVATE_KEY not configured")
            # Key material must never reach a traceback
            try:
                self._account = Account.from_key(self._private_key)
            except Exception:
                raise ConfigurationError(
                    "Invalid relayer private key format (key not shown for security)"
                ) from None
        return self._account

    @property
    def relayer_address(self) -> str:
        return self.account.address

    def public(self, chain_id: Any) -> AsyncWeb3:
        descriptor = self.registry.describe(chain_id)
        key = int(descriptor.chain_id)
        if key not in self._public:
            self._public[key] = self._web3_factory(descriptor.rpc_url)
        return self._public[key]

    def signer(self, chain_id: Any) -> SigningClient:
        descriptor = self.registry.require_configured(chain_id)
        key = int(descriptor.chain_id)
        if key not in self._signers:
            self._signers[key] = SigningClient(self.public(key), self.account, key)
        return self._signers[key]

    def contract(self, chain_id: Any) -> AsyncContract:
        """The campaign contract on a configured chain."""
        descriptor: ChainDescriptor = self.registry.require_configured(chain_id)
        key = int(descriptor.chain_id)
        if key not in self._contracts:
            self._contracts[key] = self.public(key).eth.contract(
                address=AsyncWeb3.to_checksum_address(descriptor.contract_address),
                abi=load_abi("free_for_humans.json"),
            )
        return self._contracts[key]

    def token(self, chain_id: Any, address: str) -> AsyncContract:
        return self.public(chain_id).eth.contract(
            address=AsyncWeb3.to_checksum_address(address),
            abi=load_abi("erc20.json"),
        )

    async def relayer_balance(self, chain_id: Any) -> int:
        """Native balance of the relayer key in wei."""
        return await self.public(chain_id).eth.get_balance(self.relayer_address)
