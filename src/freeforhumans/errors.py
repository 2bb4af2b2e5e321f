"""
Exception hierarchy for the FreeForHumans relayer.

All relayer exceptions inherit from RelayerError, which carries a
machine-readable code, an optional transaction hash and a details dict.

Categories:
- ValidationError: malformed input, rejected before any network call
- ClaimRejectedError: campaign state precondition failed after a fresh read
- ContractRevertError: the contract rejected the call (classified)
- InfrastructureError: RPC failure or timeout; outcome may be unknown
- ResolutionError: recipient handle could not be turned into an address
- ConfigurationError: missing or invalid process configuration
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from freeforhumans.revert import FailureCategory, classify_revert, failure_message

__all__ = [
    "RelayerError",
    "ConfigurationError",
    "ValidationError",
    "UnsupportedChainError",
    "MalformedProofError",
    "UnknownVerificationLevelError",
    "ClaimRejectedError",
    "CampaignNotFoundError",
    "CampaignInactiveError",
    "CampaignExpiredError",
    "VerificationLevelUnsupportedError",
    "ContractRevertError",
    "InfrastructureError",
    "RpcError",
    "RpcTimeoutError",
    "ConfirmationTimeoutError",
    "ResolutionError",
    "UnresolvableIdentifierError",
    "ResolutionFailedError",
]


class RelayerError(Exception):
    """
    Base exception for all relayer errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code (e.g., "CAMPAIGN_NOT_FOUND").
        tx_hash: Optional transaction hash related to the error.
        details: Optional dictionary with additional error context.
        category: Failure category reported to the calling layer.
    """

    category: FailureCategory = FailureCategory.UNCLASSIFIED

    def __init__(
        self,
        message: str,
        *,
        code: str = "RELAYER_ERROR",
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.tx_hash = tx_hash
        self.details = details or {}

    def __str__(self) -> str:
        parts = [f"[{self.code}] {self.message}"]
        if self.tx_hash:
            parts.append(f"(tx: {self.tx_hash[:10]}...)")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"tx_hash={self.tx_hash!r}, "
            f"details={self.details!r})"
        )

    @property
    def user_message(self) -> str:
        """Message safe to show to the claimer."""
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
            "tx_hash": self.tx_hash,
            "details": self.details,
        }


class ConfigurationError(RelayerError):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR", details=details)


# ----------------------------------------------------------------------
# Input validation
# ----------------------------------------------------------------------


class ValidationError(RelayerError):
    """Raised when request input fails validation."""

    category = FailureCategory.INVALID_REQUEST

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        code: str = "VALIDATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, code=code, details=details)
        self.field = field


class UnsupportedChainError(ValidationError):
    """Raised for chain ids outside the supported set or without a deployed contract."""

    category = FailureCategory.UNSUPPORTED_CHAIN

    def __init__(self, chain_id: Any, *, reason: Optional[str] = None) -> None:
        message = f"Unsupported chain ID: {chain_id}"
        if reason:
            message += f" ({reason})"
        super().__init__(
            message,
            field="chainId",
            code="UNSUPPORTED_CHAIN",
            details={"chain_id": chain_id},
        )
        self.chain_id = chain_id


class MalformedProofError(ValidationError):
    """Raised when the proof payload is not an ABI-encoded uint256[8]."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Malformed proof: {reason}", field="proof", code="MALFORMED_PROOF")


class UnknownVerificationLevelError(ValidationError):
    """Raised for verification level tags with no group id."""

    category = FailureCategory.INVALID_GROUP

    def __init__(self, level: Any) -> None:
        super().__init__(
            f"Unknown verification level: {level}",
            field="verification_level",
            code="UNKNOWN_VERIFICATION_LEVEL",
        )
        self.level = level


# ----------------------------------------------------------------------
# State preconditions
# ----------------------------------------------------------------------


class ClaimRejectedError(RelayerError):
    """Raised when campaign state rules out a claim before any chain write."""

    def __init__(
        self,
        message: str,
        *,
        chain_id: int,
        campaign_id: int,
        code: str = "CLAIM_REJECTED",
    ) -> None:
        super().__init__(
            message,
            code=code,
            details={"chain_id": chain_id, "campaign_id": campaign_id},
        )
        self.chain_id = chain_id
        self.campaign_id = campaign_id


class CampaignNotFoundError(ClaimRejectedError):
    category = FailureCategory.CAMPAIGN_NOT_FOUND

    def __init__(self, chain_id: int, campaign_id: int) -> None:
        super().__init__(
            "Campaign not found",
            chain_id=chain_id,
            campaign_id=campaign_id,
            code="CAMPAIGN_NOT_FOUND",
        )


class CampaignInactiveError(ClaimRejectedError):
    category = FailureCategory.CAMPAIGN_INACTIVE

    def __init__(self, chain_id: int, campaign_id: int) -> None:
        super().__init__(
            "Campaign is not active",
            chain_id=chain_id,
            campaign_id=campaign_id,
            code="CAMPAIGN_INACTIVE",
        )


class CampaignExpiredError(ClaimRejectedError):
    category = FailureCategory.CAMPAIGN_EXPIRED

    def __init__(self, chain_id: int, campaign_id: int, expires_at: int) -> None:
        super().__init__(
            "Campaign has expired",
            chain_id=chain_id,
            campaign_id=campaign_id,
            code="CAMPAIGN_EXPIRED",
        )
        self.details["expires_at"] = expires_at


class VerificationLevelUnsupportedError(ClaimRejectedError):
    """Raised when the campaign pays nothing for the proof's verification tier."""

    category = FailureCategory.LEVEL_UNSUPPORTED

    def __init__(self, chain_id: int, campaign_id: int, group_id: int) -> None:
        super().__init__(
            failure_message(FailureCategory.LEVEL_UNSUPPORTED),
            chain_id=chain_id,
            campaign_id=campaign_id,
            code="VERIFICATION_LEVEL_UNSUPPORTED",
        )
        self.details["group_id"] = group_id


# ----------------------------------------------------------------------
# Contract rejections
# ----------------------------------------------------------------------


class ContractRevertError(RelayerError):
    """
    Raised when the campaign contract reverts a call.

    The raw reason is classified once, here, so the dry run and the
    receipt check report identical categories.
    """

    def __init__(
        self,
        reason: str,
        *,
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            f"Contract reverted: {reason}",
            code="CONTRACT_REVERT",
            tx_hash=tx_hash,
            details=details,
        )
        self.reason = reason
        self.category = classify_revert(reason)

    @property
    def is_classified(self) -> bool:
        return self.category is not FailureCategory.UNCLASSIFIED

    @property
    def user_message(self) -> str:
        return failure_message(self.category, self.reason)


# ----------------------------------------------------------------------
# Infrastructure
# ----------------------------------------------------------------------


class InfrastructureError(RelayerError):
    """Raised when an RPC endpoint misbehaves; safe to retry reads, not writes."""

    category = FailureCategory.RPC_ERROR

    @property
    def user_message(self) -> str:
        return failure_message(self.category)


class RpcError(InfrastructureError):
    """Raised when an RPC/provider request fails."""

    def __init__(
        self,
        message: str,
        *,
        chain_id: Optional[int] = None,
        tx_hash: Optional[str] = None,
    ) -> None:
        details = {"chain_id": chain_id} if chain_id is not None else None
        super().__init__(message, code="RPC_ERROR", tx_hash=tx_hash, details=details)
        self.chain_id = chain_id


class RpcTimeoutError(InfrastructureError):
    """Raised when an external call exceeds its bounded wait."""

    category = FailureCategory.TIMEOUT

    def __init__(self, operation: str, timeout: float, *, chain_id: Optional[int] = None) -> None:
        super().__init__(
            f"{operation} timed out after {timeout:g}s",
            code="RPC_TIMEOUT",
            details={"operation": operation, "timeout_seconds": timeout, "chain_id": chain_id},
        )
        self.operation = operation
        self.timeout = timeout
        self.chain_id = chain_id


class ConfirmationTimeoutError(InfrastructureError):
    """
    Raised when a broadcast claim is not observed in a block in time.

    The transaction may still land. Callers should reconcile by looking up
    the receipt or re-checking eligibility instead of blindly retrying.
    """

    category = FailureCategory.OUTCOME_UNKNOWN

    def __init__(self, tx_hash: str, timeout: float, *, chain_id: Optional[int] = None) -> None:
        super().__init__(
            f"Transaction not confirmed after {timeout:g}s",
            code="CONFIRMATION_TIMEOUT",
            tx_hash=tx_hash,
            details={"timeout_seconds": timeout, "chain_id": chain_id},
        )
        self.timeout = timeout
        self.chain_id = chain_id


# ----------------------------------------------------------------------
# Recipient resolution
# ----------------------------------------------------------------------


class ResolutionError(RelayerError):
    category = FailureCategory.RECIPIENT_UNRESOLVED


class UnresolvableIdentifierError(ResolutionError):
    """Raised when a handle has no address record."""

    def __init__(self, identifier: str, *, name: Optional[str] = None) -> None:
        super().__init__(
            f"Could not resolve username: {identifier}",
            code="UNRESOLVABLE_IDENTIFIER",
            details={"identifier": identifier, "name": name},
        )
        self.identifier = identifier
        self.name = name


class ResolutionFailedError(ResolutionError):
    """Raised when the name-service lookup itself errors."""

    def __init__(self, identifier: str, reason: str) -> None:
        super().__init__(
            f'Failed to resolve username "{identifier}": {reason}',
            code="RESOLUTION_FAILED",
            details={"identifier": identifier},
        )
        self.identifier = identifier
        self.reason = reason
