"""
Tests for revert decoding and classification.
"""

import pytest
from eth_abi import encode
from eth_utils import keccak
from web3.exceptions import ContractLogicError

from freeforhumans.errors import ContractRevertError
from freeforhumans.revert import (
    CUSTOM_ERRORS,
    FAILURE_MESSAGES,
    FailureCategory,
    classify_revert,
    decode_revert_reason,
    describe_revert,
    failure_message,
)


def _selector(signature: str) -> str:
    return "0x" + keccak(text=signature)[:4].hex()


def _error_string(reason: str) -> str:
    return "0x08c379a0" + encode(["string"], [reason]).hex()


class TestClassifyRevert:
    """Tests for the ordered classification table."""

    @pytest.mark.parametrize(
        "reason,expected",
        [
            ("AlreadyClaimed()", FailureCategory.ALREADY_CLAIMED),
            ("execution reverted: CampaignExpired", FailureCategory.CAMPAIGN_EXPIRED),
            ("InsufficientBudget()", FailureCategory.BUDGET_EXHAUSTED),
            ("ClaimIntervalNotPassed()", FailureCategory.CLAIM_INTERVAL_NOT_ELAPSED),
            ("InvalidGroupId()", FailureCategory.INVALID_GROUP),
            ("InvalidClaimAmounts()", FailureCategory.LEVEL_UNSUPPORTED),
            ("CampaignNotActive()", FailureCategory.CAMPAIGN_INACTIVE),
            ("out of gas", FailureCategory.UNCLASSIFIED),
            ("", FailureCategory.UNCLASSIFIED),
        ],
    )
    def test_table(self, reason, expected) -> None:
        assert classify_revert(reason) is expected

    def test_first_match_wins(self) -> None:
        assert classify_revert("AlreadyClaimed and CampaignExpired") is FailureCategory.ALREADY_CLAIMED

    def test_messages(self) -> None:
        assert failure_message(FailureCategory.ALREADY_CLAIMED) == (
            "You have already claimed from this campaign"
        )
        assert failure_message(FailureCategory.LEVEL_UNSUPPORTED) == (
            "This verification level is not supported for this campaign"
        )
        # Unclassified reverts forward the raw reason
        assert failure_message(FailureCategory.UNCLASSIFIED, "weird revert") == "weird revert"
        assert failure_message(FailureCategory.UNCLASSIFIED) == "Failed to submit claim"

    def test_every_category_has_a_message(self) -> None:
        assert set(FAILURE_MESSAGES) == set(FailureCategory)


class TestDecodeRevertReason:
    """Tests for revert data decoding."""

    def test_custom_error_selector(self) -> None:
        assert CUSTOM_ERRORS[_selector("AlreadyClaimed()")] == "AlreadyClaimed()"
        assert decode_revert_reason(_selector("InsufficientBudget()")) == "InsufficientBudget()"

    def test_error_string_payload(self) -> None:
        assert decode_revert_reason(_error_string("Campaign paused")) == "Campaign paused"

    @pytest.mark.parametrize("raw", [None, "", "not hex", "0xdeadbeef", 123])
    def test_unrecognised(self, raw) -> None:
        assert decode_revert_reason(raw) is None


class TestDescribeRevert:
    """Tests for extracting failure text from exceptions."""

    def test_contract_logic_error_with_custom_error_data(self) -> None:
        exc = ContractLogicError("execution reverted", data=_selector("AlreadyClaimed()"))
        assert describe_revert(exc) == "AlreadyClaimed()"

    def test_contract_logic_error_message_only(self) -> None:
        exc = ContractLogicError("execution reverted: InvalidGroupId")
        assert classify_revert(describe_revert(exc)) is FailureCategory.INVALID_GROUP

    def test_json_rpc_error_dict(self) -> None:
        exc = ValueError(
            {"code": 3, "message": "execution reverted", "data": _selector("CampaignExpired()")}
        )
        assert describe_revert(exc) == "CampaignExpired()"

    def test_falls_back_to_str(self) -> None:
        assert describe_revert(RuntimeError("boom")) == "boom"
        assert describe_revert(RuntimeError()) == "RuntimeError"


class TestContractRevertError:
    """Tests for the classified revert exception."""

    def test_classified(self) -> None:
        err = ContractRevertError("InsufficientBudget()")

        assert err.category is FailureCategory.BUDGET_EXHAUSTED
        assert err.is_classified
        assert err.user_message == "Campaign has run out of tokens"
        assert err.to_dict()["category"] == "BUDGET_EXHAUSTED"

    def test_unclassified_forwards_reason(self) -> None:
        err = ContractRevertError("Pausable: paused")

        assert err.category is FailureCategory.UNCLASSIFIED
        assert not err.is_classified
        assert err.user_message == "Pausable: paused"
