"""
Revert classification for claim transactions.

Every call site that can receive a contract revert (the dry run and the
post-broadcast receipt check) funnels the raw failure text through
:func:`classify_revert`, which walks a single ordered table of known
contract error identifiers and maps the first match to a stable,
user-facing :class:`FailureCategory`.

Unknown reverts fall through to ``UNCLASSIFIED`` and keep their raw
reason so the message can be forwarded and the table extended later.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from eth_utils import keccak

from freeforhumans.abis import load_abi
from freeforhumans.constants import (
    ABI_SELECTOR_LENGTH,
    ABI_WORD_LENGTH,
    REVERT_SELECTOR,
)


class FailureCategory(str, Enum):
    """Stable failure categories surfaced to the calling layer."""

    # Contract reverts
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    CAMPAIGN_EXPIRED = "CAMPAIGN_EXPIRED"
    BUDGET_EXHAUSTED = "BUDGET_EXHAUSTED"
    CLAIM_INTERVAL_NOT_ELAPSED = "CLAIM_INTERVAL_NOT_ELAPSED"
    INVALID_GROUP = "INVALID_GROUP"
    LEVEL_UNSUPPORTED = "LEVEL_UNSUPPORTED"
    UNCLASSIFIED = "UNCLASSIFIED"

    # Input validation and state preconditions
    INVALID_REQUEST = "INVALID_REQUEST"
    UNSUPPORTED_CHAIN = "UNSUPPORTED_CHAIN"
    CAMPAIGN_NOT_FOUND = "CAMPAIGN_NOT_FOUND"
    CAMPAIGN_INACTIVE = "CAMPAIGN_INACTIVE"
    RECIPIENT_UNRESOLVED = "RECIPIENT_UNRESOLVED"

    # Infrastructure
    RPC_ERROR = "RPC_ERROR"
    TIMEOUT = "TIMEOUT"
    OUTCOME_UNKNOWN = "OUTCOME_UNKNOWN"


FAILURE_MESSAGES: Dict[FailureCategory, str] = {
    FailureCategory.ALREADY_CLAIMED: "You have already claimed from this campaign",
    FailureCategory.CAMPAIGN_EXPIRED: "This campaign has expired",
    FailureCategory.BUDGET_EXHAUSTED: "Campaign has run out of tokens",
    FailureCategory.CLAIM_INTERVAL_NOT_ELAPSED: "Please wait before claiming again",
    FailureCategory.INVALID_GROUP: "Invalid verification level",
    FailureCategory.LEVEL_UNSUPPORTED: "This verification level is not supported for this campaign",
    FailureCategory.UNCLASSIFIED: "Failed to submit claim",
    FailureCategory.INVALID_REQUEST: "Invalid claim request",
    FailureCategory.UNSUPPORTED_CHAIN: "Unsupported chain",
    FailureCategory.CAMPAIGN_NOT_FOUND: "Campaign not found",
    FailureCategory.CAMPAIGN_INACTIVE: "Campaign is not active",
    FailureCategory.RECIPIENT_UNRESOLVED: "Could not resolve recipient",
    FailureCategory.RPC_ERROR: "Blockchain request failed, please try again",
    FailureCategory.TIMEOUT: "Blockchain request timed out, please try again",
    FailureCategory.OUTCOME_UNKNOWN: (
        "Claim was submitted but not yet confirmed; "
        "check the transaction before claiming again"
    ),
}

# Checked top to bottom, first substring match wins.
REVERT_CLASSIFICATIONS: Tuple[Tuple[str, FailureCategory], ...] = (
    ("AlreadyClaimed", FailureCategory.ALREADY_CLAIMED),
    ("CampaignExpired", FailureCategory.CAMPAIGN_EXPIRED),
    ("InsufficientBudget", FailureCategory.BUDGET_EXHAUSTED),
    ("ClaimIntervalNotPassed", FailureCategory.CLAIM_INTERVAL_NOT_ELAPSED),
    ("InvalidGroupId", FailureCategory.INVALID_GROUP),
    ("InvalidClaimAmounts", FailureCategory.LEVEL_UNSUPPORTED),
    ("CampaignNotActive", FailureCategory.CAMPAIGN_INACTIVE),
)


def classify_revert(reason: str) -> FailureCategory:
    """Map a raw revert reason to its failure category.

    Args:
        reason: Raw failure text (decoded revert reason or RPC message)

    Returns:
        First matching category, or ``FailureCategory.UNCLASSIFIED``
    """
    for needle, category in REVERT_CLASSIFICATIONS:
        if needle in reason:
            return category
    return FailureCategory.UNCLASSIFIED


def failure_message(category: FailureCategory, raw: Optional[str] = None) -> str:
    """Human-readable message for a category.

    Unclassified failures forward the raw reason when one is available.
    """
    if category is FailureCategory.UNCLASSIFIED and raw:
        return raw
    return FAILURE_MESSAGES[category]


def error_selectors(abi: Iterable[Dict[str, Any]]) -> Dict[str, str]:
    """Build a ``{selector: "Name(types)"}`` map from the ABI's error entries."""
    selectors: Dict[str, str] = {}
    for entry in abi:
        if entry.get("type") != "error":
            continue
        types = ",".join(arg["type"] for arg in entry.get("inputs", []))
        signature = f"{entry['name']}({types})"
        selector = "0x" + keccak(text=signature)[:ABI_SELECTOR_LENGTH].hex()
        selectors[selector] = signature
    return selectors


CUSTOM_ERRORS: Dict[str, str] = error_selectors(load_abi("free_for_humans.json"))


def decode_revert_reason(raw: str) -> Optional[str]:
    """Decode revert data into a reason string.

    Handles the standard Solidity ``Error(string)`` payload and custom
    errors declared in the campaign contract ABI.

    Args:
        raw: Hex-encoded error data string

    Returns:
        Decoded reason, or None if the data is not recognised
    """
    if not isinstance(raw, str) or not raw.startswith("0x"):
        return None

    selector = raw[: 2 + ABI_SELECTOR_LENGTH * 2].lower()
    if selector in CUSTOM_ERRORS:
        return CUSTOM_ERRORS[selector]

    if selector == REVERT_SELECTOR and len(raw) >= 10:
        try:
            data = bytes.fromhex(raw[2:])
            if len(data) >= ABI_SELECTOR_LENGTH + ABI_WORD_LENGTH + ABI_WORD_LENGTH:
                offset = ABI_SELECTOR_LENGTH + ABI_WORD_LENGTH
                strlen = int.from_bytes(data[offset : offset + ABI_WORD_LENGTH], "big")
                reason_start = offset + ABI_WORD_LENGTH
                return data[reason_start : reason_start + strlen].decode(errors="ignore")
        except (ValueError, UnicodeDecodeError):
            return None
    return None


def describe_revert(exc: BaseException) -> str:
    """Extract the most specific failure text available from an exception.

    Looks at web3's ``ContractLogicError.data`` / ``.message`` and at the
    JSON-RPC error dict some providers put in ``args[0]``.
    """
    message = getattr(exc, "message", None)
    data = getattr(exc, "data", None)

    if exc.args and isinstance(exc.args[0], dict):
        payload = exc.args[0]
        message = payload.get("message") or payload.get("reason") or message
        data = payload.get("data", data)

    if isinstance(data, dict):
        data = data.get("data")

    if isinstance(data, str):
        decoded = decode_revert_reason(data)
        if decoded:
            return decoded

    if isinstance(message, str) and message:
        decoded = decode_revert_reason(message)
        return decoded or message
    return str(exc) or exc.__class__.__name__


__all__ = [
    "FailureCategory",
    "FAILURE_MESSAGES",
    "REVERT_CLASSIFICATIONS",
    "CUSTOM_ERRORS",
    "classify_revert",
    "failure_message",
    "error_selectors",
    "decode_revert_reason",
    "describe_revert",
]
