"""
Tests for the claim submission state machine.
"""

import pytest

from conftest import NOW, PROOF_HEX, RECIPIENT, TX_HASH
from freeforhumans.config import ChainRegistry, RelayerConfig
from freeforhumans.constants import DEVICE_GROUP_ID, ORB_GROUP_ID, ZERO_ADDRESS
from freeforhumans.errors import (
    ConfirmationTimeoutError,
    ContractRevertError,
    RpcError,
    RpcTimeoutError,
)
from freeforhumans.models import ClaimCommand, ClaimState
from freeforhumans.revert import FailureCategory
from freeforhumans.submitter import ClaimSubmitter


@pytest.fixture()
def submitter(gateway, registry) -> ClaimSubmitter:
    return ClaimSubmitter(gateway, registry, now=lambda: NOW)


@pytest.fixture()
def command():
    def _make(**overrides) -> ClaimCommand:
        values = dict(
            chain_id=8453,
            campaign_id=0,
            recipient=RECIPIENT,
            merkle_root=0x1234,
            nullifier_hash=0x5678,
            proof=PROOF_HEX,
            verification_level="orb",
        )
        values.update(overrides)
        return ClaimCommand(**values)

    return _make


# =============================================================================
# Happy Path
# =============================================================================


class TestConfirmedClaim:
    """Tests for a claim that goes all the way through."""

    @pytest.mark.asyncio
    async def test_confirmed(self, submitter, gateway, command, make_campaign) -> None:
        gateway.add(make_campaign(8453, 0))

        result = await submitter.submit(command())

        assert result.state is ClaimState.CONFIRMED
        assert result.success
        assert result.tx_hash == TX_HASH
        assert result.explorer_url == f"https://basescan.org/tx/{TX_HASH}"
        assert result.block_number == 123
        assert result.to_response() == {
            "success": True,
            "transactionHash": TX_HASH,
            "explorerUrl": f"https://basescan.org/tx/{TX_HASH}",
        }

    @pytest.mark.asyncio
    async def test_call_arguments(self, submitter, gateway, command, make_campaign) -> None:
        gateway.add(make_campaign(8453, 0))

        await submitter.submit(command(verification_level="passport"))

        (_, chain_id, call) = next(c for c in gateway.calls if c[0] == "send_claim")
        assert chain_id == 8453
        assert call.campaign_id == 0
        assert call.recipient == RECIPIENT
        assert call.root == 0x1234
        assert call.nullifier_hash == 0x5678
        assert call.proof == (1, 2, 3, 4, 5, 6, 7, 8)
        assert call.group_id == DEVICE_GROUP_ID

    @pytest.mark.asyncio
    async def test_simulates_before_sending(self, submitter, gateway, command, make_campaign) -> None:
        gateway.add(make_campaign(8453, 0))

        await submitter.submit(command())

        names = [c[0] for c in gateway.calls]
        assert names == ["get_campaign", "simulate_claim", "send_claim", "wait_for_confirmation"]


# =============================================================================
# Validation (no chain write)
# =============================================================================


class TestRejectedBeforeSimulation:
    """Tests for claims refused before any dry run."""

    @pytest.mark.asyncio
    async def test_unsupported_chain(self, submitter, gateway, command) -> None:
        result = await submitter.submit(command(chain_id=1))

        assert result.state is ClaimState.REJECTED
        assert result.category is FailureCategory.UNSUPPORTED_CHAIN
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_unconfigured_chain(self, gateway, command) -> None:
        registry = ChainRegistry.from_config(RelayerConfig(base_contract_address=ZERO_ADDRESS))
        submitter = ClaimSubmitter(gateway, registry, now=lambda: NOW)

        result = await submitter.submit(command(chain_id=8453))

        assert result.category is FailureCategory.UNSUPPORTED_CHAIN
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_malformed_proof_makes_no_network_call(self, submitter, gateway, command) -> None:
        result = await submitter.submit(command(proof="0x1234"))

        assert result.state is ClaimState.REJECTED
        assert result.category is FailureCategory.INVALID_REQUEST
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_unknown_level(self, submitter, gateway, command) -> None:
        result = await submitter.submit(command(verification_level="phone"))

        assert result.category is FailureCategory.INVALID_GROUP
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_campaign_not_found(self, submitter, gateway, command) -> None:
        result = await submitter.submit(command(campaign_id=7))

        assert result.state is ClaimState.REJECTED
        assert result.category is FailureCategory.CAMPAIGN_NOT_FOUND
        assert gateway.count("simulate_claim") == 0

    @pytest.mark.asyncio
    async def test_inactive_campaign_never_simulated(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        gateway.add(make_campaign(8453, 0, is_active=False))

        result = await submitter.submit(command())

        assert result.state is ClaimState.REJECTED
        assert result.category is FailureCategory.CAMPAIGN_INACTIVE
        assert gateway.count("simulate_claim") == 0

    @pytest.mark.asyncio
    async def test_expired_campaign_never_simulated(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        gateway.add(make_campaign(8453, 0, expires_at=NOW))

        result = await submitter.submit(command())

        assert result.category is FailureCategory.CAMPAIGN_EXPIRED
        assert result.error == "Campaign has expired"
        assert gateway.count("simulate_claim") == 0

    @pytest.mark.asyncio
    async def test_device_proof_on_orb_only_campaign(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        gateway.add(make_campaign(8453, 0, nfc_claim_amount=0))

        result = await submitter.submit(command(verification_level="device"))

        assert result.state is ClaimState.REJECTED
        assert result.category is FailureCategory.LEVEL_UNSUPPORTED
        assert result.error == "This verification level is not supported for this campaign"
        assert gateway.count("simulate_claim") == 0

    @pytest.mark.asyncio
    async def test_orb_proof_on_orb_only_campaign_is_accepted(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        gateway.add(make_campaign(8453, 0, nfc_claim_amount=0))

        result = await submitter.submit(command(verification_level="orb"))

        assert result.state is ClaimState.CONFIRMED
        call = next(c for c in gateway.calls if c[0] == "send_claim")[2]
        assert call.group_id == ORB_GROUP_ID

    @pytest.mark.asyncio
    async def test_campaign_read_failure(self, submitter, gateway, command) -> None:
        gateway.failing_chains.add(8453)

        result = await submitter.submit(command())

        assert result.state is ClaimState.REJECTED
        assert result.category is FailureCategory.RPC_ERROR
        assert gateway.count("send_claim") == 0


# =============================================================================
# Simulation
# =============================================================================


class TestSimulation:
    """Tests for dry-run rejections."""

    @pytest.mark.asyncio
    async def test_already_claimed_on_second_submission(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        gateway.add(make_campaign(8453, 0))

        first = await submitter.submit(command())
        gateway.simulate_error = ContractRevertError("AlreadyClaimed()")
        second = await submitter.submit(command())

        assert first.state is ClaimState.CONFIRMED
        assert second.state is ClaimState.REJECTED
        assert second.category is FailureCategory.ALREADY_CLAIMED
        assert second.error == "You have already claimed from this campaign"
        assert second.to_response() == {
            "success": False,
            "error": "You have already claimed from this campaign",
            "category": "ALREADY_CLAIMED",
        }
        assert gateway.count("send_claim") == 1

    @pytest.mark.asyncio
    async def test_unclassified_revert_forwards_reason(
        self, submitter, gateway, command, make_campaign, caplog
    ) -> None:
        gateway.add(make_campaign(8453, 0))
        gateway.simulate_error = ContractRevertError("Pausable: paused")

        result = await submitter.submit(command())

        assert result.category is FailureCategory.UNCLASSIFIED
        assert result.error == "Pausable: paused"
        assert "Unclassified contract revert" in caplog.text

    @pytest.mark.asyncio
    async def test_simulation_timeout_rejects(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        gateway.add(make_campaign(8453, 0))
        gateway.simulate_error = RpcTimeoutError("simulateClaim", 30, chain_id=8453)

        result = await submitter.submit(command())

        assert result.state is ClaimState.REJECTED
        assert result.category is FailureCategory.TIMEOUT
        assert gateway.count("send_claim") == 0


# =============================================================================
# Broadcast and Confirmation
# =============================================================================


class TestBroadcast:
    """Tests for failures after a broadcast was attempted."""

    @pytest.mark.asyncio
    async def test_send_failure_is_outcome_unknown(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        gateway.add(make_campaign(8453, 0))
        gateway.send_error = RpcError("connection reset", chain_id=8453)

        result = await submitter.submit(command())

        assert result.state is ClaimState.FAILED
        assert result.category is FailureCategory.OUTCOME_UNKNOWN
        assert result.tx_hash is None
        assert result.details["cause"] == "RPC_ERROR"
        assert "may have been submitted" in result.error

    @pytest.mark.asyncio
    async def test_send_timeout_does_not_invite_retry(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        gateway.add(make_campaign(8453, 0))
        gateway.send_error = RpcTimeoutError("sendClaim", 30, chain_id=8453)

        result = await submitter.submit(command())

        assert result.state is ClaimState.FAILED
        assert result.category is FailureCategory.OUTCOME_UNKNOWN
        assert "may have been submitted" in result.error
        assert "try again" not in result.error.lower()
        assert gateway.count("send_claim") == 1

    @pytest.mark.asyncio
    async def test_send_failure_without_hash_is_not_reconciled(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        gateway.add(make_campaign(8453, 0))
        gateway.send_error = RpcError("connection reset", chain_id=8453)
        result = await submitter.submit(command())

        assert await submitter.reconcile(result) is result
        assert gateway.count("get_receipt") == 0

    @pytest.mark.asyncio
    async def test_confirmation_timeout_is_outcome_unknown(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        gateway.add(make_campaign(8453, 0))
        gateway.confirm_error = ConfirmationTimeoutError(TX_HASH, 120, chain_id=8453)

        result = await submitter.submit(command())

        assert result.state is ClaimState.FAILED
        assert result.category is FailureCategory.OUTCOME_UNKNOWN
        assert result.outcome_unknown
        assert result.tx_hash == TX_HASH
        response = result.to_response()
        assert response["success"] is False
        assert response["transactionHash"] == TX_HASH
        assert response["category"] == "OUTCOME_UNKNOWN"

    @pytest.mark.asyncio
    async def test_reverted_receipt_is_classified_by_replay(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        gateway.add(make_campaign(8453, 0))
        gateway.receipt = {"status": 0, "blockNumber": 456, "transactionHash": TX_HASH}
        gateway.replay_error = ContractRevertError("InsufficientBudget()")

        result = await submitter.submit(command())

        assert result.state is ClaimState.FAILED
        assert result.category is FailureCategory.BUDGET_EXHAUSTED
        assert result.block_number == 456
        replay = [c for c in gateway.calls if c[0] == "simulate_claim"][-1]
        assert replay[3] == 456

    @pytest.mark.asyncio
    async def test_reverted_receipt_without_reason(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        gateway.add(make_campaign(8453, 0))
        gateway.receipt = {"status": 0, "blockNumber": 456}

        result = await submitter.submit(command())

        assert result.state is ClaimState.FAILED
        assert result.category is FailureCategory.UNCLASSIFIED
        assert result.error == "Transaction reverted"


# =============================================================================
# Reconciliation
# =============================================================================


class TestReconcile:
    """Tests for settling unknown outcomes."""

    async def _timed_out(self, submitter, gateway, command, make_campaign):
        gateway.add(make_campaign(8453, 0))
        gateway.confirm_error = ConfirmationTimeoutError(TX_HASH, 120, chain_id=8453)
        return await submitter.submit(command())

    @pytest.mark.asyncio
    async def test_mined_success_upgrades_to_confirmed(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        result = await self._timed_out(submitter, gateway, command, make_campaign)
        gateway.lookup_receipt = {"status": 1, "blockNumber": 789}

        reconciled = await submitter.reconcile(result)

        assert reconciled.state is ClaimState.CONFIRMED
        assert reconciled.category is None
        assert reconciled.block_number == 789
        assert reconciled.to_response()["success"] is True

    @pytest.mark.asyncio
    async def test_mined_revert_stays_failed(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        result = await self._timed_out(submitter, gateway, command, make_campaign)
        gateway.lookup_receipt = {"status": 0, "blockNumber": 789}

        reconciled = await submitter.reconcile(result)

        assert reconciled.state is ClaimState.FAILED
        assert reconciled.category is FailureCategory.UNCLASSIFIED

    @pytest.mark.asyncio
    async def test_mined_revert_is_classified_by_replay(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        result = await self._timed_out(submitter, gateway, command, make_campaign)
        gateway.lookup_receipt = {"status": 0, "blockNumber": 789}
        gateway.replay_error = ContractRevertError("AlreadyClaimed()")

        reconciled = await submitter.reconcile(result)

        assert reconciled.state is ClaimState.FAILED
        assert reconciled.category is FailureCategory.ALREADY_CLAIMED
        assert reconciled.block_number == 789
        assert reconciled.details["reason"] == "AlreadyClaimed()"
        replay = [c for c in gateway.calls if c[0] == "simulate_claim"][-1]
        assert replay[3] == 789

    @pytest.mark.asyncio
    async def test_still_pending_is_unchanged(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        result = await self._timed_out(submitter, gateway, command, make_campaign)

        assert await submitter.reconcile(result) is result

    @pytest.mark.asyncio
    async def test_lookup_failure_is_unchanged(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        result = await self._timed_out(submitter, gateway, command, make_campaign)
        gateway.lookup_error = RpcError("unavailable", chain_id=8453)

        assert await submitter.reconcile(result) is result

    @pytest.mark.asyncio
    async def test_known_outcomes_are_not_looked_up(
        self, submitter, gateway, command, make_campaign
    ) -> None:
        gateway.add(make_campaign(8453, 0))
        result = await submitter.submit(command())

        assert await submitter.reconcile(result) is result
        assert gateway.count("get_receipt") == 0
