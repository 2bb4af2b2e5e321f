"""
Claim submission state machine.

A claim moves VALIDATING -> SIMULATING -> SUBMITTED -> CONFIRMED and
stops at REJECTED when it is refused before anything is broadcast, or at
FAILED once a broadcast has been attempted. Every outcome is returned as a
ClaimResult; contract, precondition and infrastructure failures never
escape submit() as exceptions.
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from eth_utils import to_checksum_address

from freeforhumans.config import ChainRegistry
from freeforhumans.contract import CampaignContract, ClaimCall
from freeforhumans.errors import (
    CampaignExpiredError,
    CampaignInactiveError,
    CampaignNotFoundError,
    ContractRevertError,
    InfrastructureError,
    RelayerError,
    ValidationError,
    VerificationLevelUnsupportedError,
)
from freeforhumans.models import ClaimCommand, ClaimResult, ClaimState
from freeforhumans.proof import decode_proof, group_id_for
from freeforhumans.revert import FailureCategory, failure_message
from freeforhumans.utils.logging import get_logger

__all__ = ["ClaimSubmitter"]

_logger = get_logger(__name__)

_REVERTED_ON_CHAIN = "Transaction reverted"
_MAYBE_BROADCAST = (
    "Claim may have been submitted; check your balance before claiming again"
)


class ClaimSubmitter:
    """
    Validates, simulates, broadcasts and confirms claims.

    The relayer never deduplicates nullifiers itself; the contract is the
    authority on "already claimed" and its revert is classified like any
    other.

    Example:
        ```python
        submitter = ClaimSubmitter(gateway, registry)
        result = await submitter.submit(command)
        if result.outcome_unknown:
            result = await submitter.reconcile(result)
        ```
    """

    def __init__(
        self,
        gateway: CampaignContract,
        registry: ChainRegistry,
        *,
        now: Callable[[], float] = time.time,
    ) -> None:
        self._gateway = gateway
        self._registry = registry
        self._now = now

    async def submit(self, command: ClaimCommand) -> ClaimResult:
        self._transition(command, ClaimState.VALIDATING)

        try:
            call = await self._validate(command)
        except RelayerError as e:
            return self._finish(command, ClaimState.REJECTED, error=e)

        chain_id = int(command.chain_id)

        self._transition(command, ClaimState.SIMULATING)
        try:
            await self._gateway.simulate_claim(chain_id, call)
        except RelayerError as e:
            return self._finish(command, ClaimState.REJECTED, error=e)

        try:
            tx_hash = await self._gateway.send_claim(chain_id, call)
        except InfrastructureError as e:
            # The raw transaction may have reached the node before the error
            return self._finish(
                command,
                ClaimState.FAILED,
                category=FailureCategory.OUTCOME_UNKNOWN,
                message=_MAYBE_BROADCAST,
                details={"cause": e.code, "call": call},
            )
        except RelayerError as e:
            return self._finish(command, ClaimState.FAILED, error=e)
        self._transition(command, ClaimState.SUBMITTED, tx_hash=tx_hash)

        try:
            receipt = await self._gateway.wait_for_confirmation(chain_id, tx_hash)
        except InfrastructureError as e:
            # Broadcast succeeded; the claim may still land
            return self._finish(
                command,
                ClaimState.FAILED,
                tx_hash=tx_hash,
                category=FailureCategory.OUTCOME_UNKNOWN,
                message=failure_message(FailureCategory.OUTCOME_UNKNOWN),
                details={"cause": e.code, "call": call},
            )

        if receipt.get("status") != 1:
            error = await self._explain_revert(chain_id, call, receipt)
            return self._finish(
                command,
                ClaimState.FAILED,
                tx_hash=tx_hash,
                error=error,
                block_number=receipt.get("blockNumber"),
            )

        return self._finish(
            command,
            ClaimState.CONFIRMED,
            tx_hash=tx_hash,
            block_number=receipt.get("blockNumber"),
        )

    async def reconcile(self, result: ClaimResult) -> ClaimResult:
        """Settle a claim whose confirmation timed out.

        Looks the receipt up once. A mined transaction upgrades the result
        to CONFIRMED or FAILED; otherwise the result is returned unchanged.
        """
        if not result.outcome_unknown or not result.tx_hash:
            return result

        try:
            receipt = await self._gateway.get_receipt(result.chain_id, result.tx_hash)
        except RelayerError as e:
            _logger.warning(
                "Receipt lookup failed during reconcile",
                extra={"tx_hash": result.tx_hash, "error": e.message},
            )
            return result

        if receipt is None:
            return result

        block_number = receipt.get("blockNumber")
        if receipt.get("status") == 1:
            reconciled = replace(
                result,
                state=ClaimState.CONFIRMED,
                category=None,
                error=None,
                block_number=block_number,
            )
        else:
            call = result.details.get("call")
            if isinstance(call, ClaimCall):
                error = await self._explain_revert(result.chain_id, call, receipt)
            else:
                error = ContractRevertError(_REVERTED_ON_CHAIN)
            reconciled = replace(
                result,
                category=error.category,
                error=error.user_message,
                block_number=block_number,
                details={**result.details, "code": error.code, "reason": error.reason},
            )
        _logger.info(
            "Claim reconciled",
            extra={
                "state": reconciled.state.value,
                "chain_id": reconciled.chain_id,
                "tx_hash": reconciled.tx_hash,
            },
        )
        return reconciled

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    async def _validate(self, command: ClaimCommand) -> ClaimCall:
        descriptor = self._registry.require_configured(command.chain_id)
        chain_id = int(descriptor.chain_id)

        # Local checks first: no network call for malformed input
        proof = decode_proof(command.proof)
        group_id = group_id_for(command.verification_level)
        try:
            recipient = to_checksum_address(command.recipient)
        except (TypeError, ValueError):
            raise ValidationError("Invalid recipient address", field="recipient") from None

        campaign = await self._gateway.get_campaign(chain_id, command.campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(chain_id, command.campaign_id)
        if not campaign.is_active:
            raise CampaignInactiveError(chain_id, command.campaign_id)
        if campaign.is_expired(int(self._now())):
            raise CampaignExpiredError(chain_id, command.campaign_id, campaign.expires_at)
        if campaign.claim_amount_for(group_id) == 0:
            raise VerificationLevelUnsupportedError(chain_id, command.campaign_id, group_id)

        return ClaimCall(
            campaign_id=command.campaign_id,
            recipient=recipient,
            root=command.merkle_root,
            nullifier_hash=command.nullifier_hash,
            proof=proof,
            group_id=group_id,
        )

    async def _explain_revert(
        self,
        chain_id: int,
        call: ClaimCall,
        receipt: Dict[str, Any],
    ) -> ContractRevertError:
        """Recover a revert reason by replaying the call at the mined block."""
        block_number = receipt.get("blockNumber")
        try:
            await self._gateway.simulate_claim(chain_id, call, block_identifier=block_number)
        except ContractRevertError as e:
            return e
        except RelayerError as e:
            _logger.debug(
                "Revert replay failed",
                extra={"chain_id": chain_id, "block": block_number, "error": e.message},
            )
        return ContractRevertError(_REVERTED_ON_CHAIN)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------
    def _transition(self, command: ClaimCommand, state: ClaimState, **extra: Any) -> None:
        _logger.debug(
            "Claim state",
            extra={
                "state": state.value,
                "chain_id": command.chain_id,
                "campaign_id": command.campaign_id,
                **extra,
            },
        )

    def _finish(
        self,
        command: ClaimCommand,
        state: ClaimState,
        *,
        error: Optional[RelayerError] = None,
        tx_hash: Optional[str] = None,
        category: Optional[FailureCategory] = None,
        message: Optional[str] = None,
        block_number: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> ClaimResult:
        details = dict(details or {})
        if error is not None:
            category = category or error.category
            message = message or error.user_message
            details.setdefault("code", error.code)
            if isinstance(error, ContractRevertError):
                details["reason"] = error.reason
                if not error.is_classified:
                    _logger.warning(
                        "Unclassified contract revert",
                        extra={
                            "chain_id": command.chain_id,
                            "campaign_id": command.campaign_id,
                            "reason": error.reason,
                        },
                    )

        explorer_url = None
        if tx_hash:
            explorer_url = self._registry.explorer_tx_url(command.chain_id, tx_hash)

        result = ClaimResult(
            state=state,
            chain_id=int(command.chain_id),
            campaign_id=command.campaign_id,
            tx_hash=tx_hash,
            explorer_url=explorer_url,
            category=category,
            error=message,
            block_number=block_number,
            details=details,
        )
        log = _logger.info if state is ClaimState.CONFIRMED else _logger.warning
        log(
            "Claim finished",
            extra={
                "state": state.value,
                "chain_id": command.chain_id,
                "campaign_id": command.campaign_id,
                "category": category.value if category else None,
                "tx_hash": tx_hash,
            },
        )
        return result
