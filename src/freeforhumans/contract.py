"""
Campaign contract gateway.

CampaignContract is the only component that talks to the chains. Every
call is bounded by ``asyncio.wait_for`` and every failure is translated
into the relayer's exception hierarchy:

- timeouts become RpcTimeoutError
- contract reverts become ContractRevertError (classified)
- arguments the ABI rejects become ValidationError
- anything else becomes RpcError

Reads are retried with jittered backoff on infrastructure errors. Writes
(the broadcast itself) are never retried.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

from web3.exceptions import (
    ContractLogicError,
    MismatchedABI,
    TimeExhausted,
    TransactionNotFound,
    Web3ValidationError,
)

from freeforhumans.clients import ClientPool
from freeforhumans.constants import (
    CONFIRMATION_POLL_SECONDS,
    CONFIRMATION_TIMEOUT_SECONDS,
    PROVIDER_TIMEOUT_SECONDS,
    ZERO_ADDRESS,
)
from freeforhumans.errors import (
    ConfirmationTimeoutError,
    ContractRevertError,
    RelayerError,
    RpcError,
    RpcTimeoutError,
    ValidationError,
)
from freeforhumans.models import Campaign, TokenMetadata
from freeforhumans.revert import describe_revert
from freeforhumans.utils.logging import get_logger
from freeforhumans.utils.retry import RetryConfig, retry_async

__all__ = ["ClaimCall", "CampaignContract", "READ_RETRY"]

T = TypeVar("T")

_logger = get_logger(__name__)

READ_RETRY = RetryConfig(
    max_attempts=3,
    base_delay_ms=250,
    max_delay_ms=2000,
    retryable_errors=(RpcError, RpcTimeoutError),
)


@dataclass(frozen=True)
class ClaimCall:
    """Arguments of ``claim(campaignId, recipient, root, nullifierHash, proof, groupId)``."""

    campaign_id: int
    recipient: str
    root: int
    nullifier_hash: int
    proof: Tuple[int, ...]
    group_id: int

    def args(self) -> Tuple[Any, ...]:
        return (
            self.campaign_id,
            self.recipient,
            self.root,
            self.nullifier_hash,
            list(self.proof),
            self.group_id,
        )


def _is_revert_payload(exc: ValueError) -> bool:
    if not exc.args or not isinstance(exc.args[0], dict):
        return False
    message = str(exc.args[0].get("message", "")).lower()
    return "revert" in message


class CampaignContract:
    """
    Typed, bounded access to the campaign contract on both chains.

    Example:
        ```python
        gateway = CampaignContract(pool)
        campaign = await gateway.get_campaign(8453, 3)
        if campaign is not None:
            remaining = await gateway.get_remaining_budget(8453, 3)
        ```
    """

    def __init__(
        self,
        pool: ClientPool,
        *,
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
        confirmation_timeout: float = CONFIRMATION_TIMEOUT_SECONDS,
        poll_interval: float = CONFIRMATION_POLL_SECONDS,
        retry: Optional[RetryConfig] = None,
    ) -> None:
        self.pool = pool
        self.timeout = timeout
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval
        self.retry = retry or READ_RETRY

    @property
    def relayer_address(self) -> str:
        return self.pool.relayer_address

    # ------------------------------------------------------------------
    # Call plumbing
    # ------------------------------------------------------------------
    async def _call(
        self,
        chain_id: int,
        operation: str,
        fn: Callable[[], Awaitable[T]],
    ) -> T:
        try:
            return await asyncio.wait_for(fn(), self.timeout)
        except asyncio.TimeoutError:
            raise RpcTimeoutError(operation, self.timeout, chain_id=chain_id) from None
        except RelayerError:
            raise
        except (MismatchedABI, Web3ValidationError) as e:
            raise ValidationError(
                f"Invalid arguments for {operation}",
                details={"chain_id": chain_id, "operation": operation, "reason": str(e)},
            ) from e
        except ContractLogicError as e:
            raise ContractRevertError(
                describe_revert(e),
                details={"chain_id": chain_id, "operation": operation},
            ) from e
        except ValueError as e:
            # Some providers surface reverts as a raw JSON-RPC error dict
            if _is_revert_payload(e):
                raise ContractRevertError(
                    describe_revert(e),
                    details={"chain_id": chain_id, "operation": operation},
                ) from e
            raise RpcError(f"{operation} failed: {e}", chain_id=chain_id) from e
        except Exception as e:
            raise RpcError(f"{operation} failed: {e}", chain_id=chain_id) from e

    async def _read(
        self,
        chain_id: int,
        operation: str,
        fn: Callable[[], Awaitable[T]],
    ) -> T:
        return await retry_async(
            lambda: self._call(chain_id, operation, fn),
            self.retry,
            operation=f"{operation}@{chain_id}",
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def next_campaign_id(self, chain_id: int) -> int:
        """Number of campaigns ever created on the chain (ids are 0..n-1)."""
        contract = self.pool.contract(chain_id)
        return int(
            await self._read(
                chain_id,
                "nextCampaignId",
                lambda: contract.functions.nextCampaignId().call(),
            )
        )

    async def get_campaign(self, chain_id: int, campaign_id: int) -> Optional[Campaign]:
        """Fetch one campaign; None when the id was never used."""
        contract = self.pool.contract(chain_id)
        raw = await self._read(
            chain_id,
            "getCampaign",
            lambda: contract.functions.getCampaign(campaign_id).call(),
        )
        if str(raw[1]).lower() == ZERO_ADDRESS:
            return None
        return Campaign.from_tuple(chain_id, raw)

    async def get_remaining_budget(self, chain_id: int, campaign_id: int) -> int:
        contract = self.pool.contract(chain_id)
        return int(
            await self._read(
                chain_id,
                "getRemainingBudget",
                lambda: contract.functions.getRemainingBudget(campaign_id).call(),
            )
        )

    async def get_token_metadata(self, chain_id: int, token: str) -> TokenMetadata:
        """Symbol and decimals of an ERC-20; placeholders if either read fails."""
        async def read_both() -> Tuple[str, int]:
            erc20 = self.pool.token(chain_id, token)
            return await asyncio.gather(
                erc20.functions.symbol().call(),
                erc20.functions.decimals().call(),
            )

        try:
            symbol, decimals = await self._call(chain_id, "tokenMetadata", read_both)
        except RelayerError as e:
            _logger.debug(
                "Token metadata unavailable",
                extra={"chain_id": chain_id, "token": token, "error": e.message},
            )
            return TokenMetadata.unknown()
        return TokenMetadata(symbol=str(symbol), decimals=int(decimals))

    async def can_claim(
        self,
        chain_id: int,
        nullifier_hash: int,
        campaign_id: int,
        group_id: int,
    ) -> Tuple[bool, int]:
        """Contract-side eligibility check.

        Returns:
            (eligible, next_claim_time) where next_claim_time is a unix
            timestamp for recurring campaigns and 0 otherwise
        """
        contract = self.pool.contract(chain_id)
        eligible, next_claim_time = await self._read(
            chain_id,
            "canClaim",
            lambda: contract.functions.canClaim(nullifier_hash, campaign_id, group_id).call(),
        )
        return bool(eligible), int(next_claim_time)

    async def get_receipt(self, chain_id: int, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Look up a receipt without waiting; None while the tx is unmined."""
        w3 = self.pool.public(chain_id)

        async def lookup() -> Optional[Dict[str, Any]]:
            try:
                return await w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                return None

        return await self._read(chain_id, "getTransactionReceipt", lookup)

    async def relayer_balance(self, chain_id: int) -> int:
        return await self._read(
            chain_id,
            "getBalance",
            lambda: self.pool.relayer_balance(chain_id),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def simulate_claim(
        self,
        chain_id: int,
        call: ClaimCall,
        *,
        block_identifier: Any = "latest",
    ) -> None:
        """Dry-run ``claim`` from the relayer address.

        Raises:
            ContractRevertError: If the contract would revert
            ValidationError: If the arguments do not fit the ABI
        """
        contract = self.pool.contract(chain_id)

        async def simulate() -> Any:
            function = contract.functions.claim(*call.args())
            return await function.call(
                {"from": self.relayer_address}, block_identifier=block_identifier
            )

        await self._call(chain_id, "simulateClaim", simulate)

    async def send_claim(self, chain_id: int, call: ClaimCall) -> str:
        """Sign and broadcast ``claim``. Never retried."""
        contract = self.pool.contract(chain_id)
        signer = self.pool.signer(chain_id)

        async def send() -> str:
            return await signer.send(contract.functions.claim(*call.args()))

        return await self._call(chain_id, "sendClaim", send)

    async def wait_for_confirmation(self, chain_id: int, tx_hash: str) -> Dict[str, Any]:
        """Wait for a receipt, bounded by the confirmation timeout.

        Raises:
            ConfirmationTimeoutError: If no receipt appears in time; the
                transaction may still be mined later
        """
        w3 = self.pool.public(chain_id)
        timeout = self.confirmation_timeout
        try:
            return await asyncio.wait_for(
                w3.eth.wait_for_transaction_receipt(
                    tx_hash, timeout=timeout, poll_latency=self.poll_interval
                ),
                timeout,
            )
        except (asyncio.TimeoutError, TimeExhausted):
            raise ConfirmationTimeoutError(tx_hash, timeout, chain_id=chain_id) from None
        except Exception as e:
            raise RpcError(
                f"waitForTransactionReceipt failed: {e}",
                chain_id=chain_id,
                tx_hash=tx_hash,
            ) from e
