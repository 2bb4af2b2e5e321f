from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from freeforhumans.constants import (
    DEFAULT_TOKEN_DECIMALS,
    ORB_GROUP_ID,
    UINT256_MAX,
    UNKNOWN_TOKEN_SYMBOL,
)
from freeforhumans.revert import FailureCategory

__all__ = [
    "Campaign",
    "TokenMetadata",
    "CampaignView",
    "CampaignSnapshot",
    "ClaimCommand",
    "ClaimState",
    "ClaimResult",
    "ClaimRequest",
]


@dataclass(frozen=True)
class Campaign:
    """On-chain campaign record as returned by ``getCampaign``.

    Attributes:
        chain_id: Chain the campaign lives on (ids are only unique per chain)
        id: Campaign id on that chain
        creator: Creator address; the zero address means "no such campaign"
        token: ERC-20 token paid out
        orb_claim_amount: Amount paid to orb-verified claimers (group 1)
        nfc_claim_amount: Amount paid to device/document-verified claimers (group 2)
        total_budget: Total tokens deposited
        total_claimed: Tokens paid out so far
        expires_at: Unix timestamp after which claims are refused
        is_recurring: Whether the same human may claim again after the interval
        claim_interval: Seconds between recurring claims
        is_active: Creator-controlled on/off switch
    """

    chain_id: int
    id: int
    creator: str
    token: str
    orb_claim_amount: int
    nfc_claim_amount: int
    total_budget: int
    total_claimed: int
    expires_at: int
    is_recurring: bool
    claim_interval: int
    is_active: bool
    title: str
    description: str
    image_url: str

    @classmethod
    def from_tuple(cls, chain_id: int, raw: Sequence[Any]) -> "Campaign":
        return cls(
            chain_id=int(chain_id),
            id=int(raw[0]),
            creator=raw[1],
            token=raw[2],
            orb_claim_amount=int(raw[3]),
            nfc_claim_amount=int(raw[4]),
            total_budget=int(raw[5]),
            total_claimed=int(raw[6]),
            expires_at=int(raw[7]),
            is_recurring=bool(raw[8]),
            claim_interval=int(raw[9]),
            is_active=bool(raw[10]),
            title=raw[11],
            description=raw[12],
            image_url=raw[13],
        )

    def claim_amount_for(self, group_id: int) -> int:
        return self.orb_claim_amount if group_id == ORB_GROUP_ID else self.nfc_claim_amount

    def is_expired(self, now: int) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class TokenMetadata:
    symbol: str
    decimals: int

    @classmethod
    def unknown(cls) -> "TokenMetadata":
        return cls(symbol=UNKNOWN_TOKEN_SYMBOL, decimals=DEFAULT_TOKEN_DECIMALS)


@dataclass(frozen=True)
class CampaignView:
    """A campaign joined with its remaining budget and token metadata."""

    campaign: Campaign
    remaining_budget: int
    token: TokenMetadata

    @property
    def chain_id(self) -> int:
        return self.campaign.chain_id

    @property
    def campaign_id(self) -> int:
        return self.campaign.id

    def is_listable(self, now: int) -> bool:
        """Active, not expired and still funded."""
        return (
            self.campaign.is_active
            and self.campaign.expires_at > now
            and self.remaining_budget > 0
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the request layer.

        Token amounts are decimal strings so they survive JSON number
        precision limits; timestamps and intervals stay integers.
        """
        c = self.campaign
        return {
            "id": str(c.id),
            "chainId": c.chain_id,
            "creator": c.creator,
            "token": c.token,
            "orbClaimAmount": str(c.orb_claim_amount),
            "nfcClaimAmount": str(c.nfc_claim_amount),
            "totalBudget": str(c.total_budget),
            "totalClaimed": str(c.total_claimed),
            "remainingBudget": str(self.remaining_budget),
            "expiresAt": c.expires_at,
            "isRecurring": c.is_recurring,
            "claimInterval": c.claim_interval,
            "isActive": c.is_active,
            "title": c.title,
            "description": c.description,
            "imageUrl": c.image_url,
            "tokenSymbol": self.token.symbol,
            "tokenDecimals": self.token.decimals,
        }


@dataclass(frozen=True)
class CampaignSnapshot:
    """Cross-chain campaign listing captured at one point in time.

    Attributes:
        version: Increments on every refresh
        captured_at: Monotonic clock reading when the refresh completed
        campaigns: Listable campaigns, remaining budget descending
    """

    version: int
    captured_at: float
    campaigns: Tuple[CampaignView, ...] = ()


@dataclass(frozen=True)
class ClaimCommand:
    chain_id: int
    campaign_id: int
    recipient: str
    merkle_root: int
    nullifier_hash: int
    proof: Union[str, bytes]
    verification_level: str


class ClaimState(str, Enum):
    VALIDATING = "validating"
    SIMULATING = "simulating"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ClaimState.CONFIRMED, ClaimState.REJECTED, ClaimState.FAILED)


@dataclass(frozen=True)
class ClaimResult:
    """Terminal outcome of a claim submission.

    ``REJECTED`` means nothing was broadcast. ``FAILED`` means a
    transaction was (or may have been) broadcast; when ``category`` is
    ``OUTCOME_UNKNOWN`` the transaction may still land and ``tx_hash``
    should be reconciled before the claimer retries.
    """

    state: ClaimState
    chain_id: int
    campaign_id: int
    tx_hash: Optional[str] = None
    explorer_url: Optional[str] = None
    category: Optional[FailureCategory] = None
    error: Optional[str] = None
    block_number: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def success(self) -> bool:
        return self.state is ClaimState.CONFIRMED

    @property
    def outcome_unknown(self) -> bool:
        return self.category is FailureCategory.OUTCOME_UNKNOWN

    def to_response(self) -> Dict[str, Any]:
        if self.success:
            return {
                "success": True,
                "transactionHash": self.tx_hash,
                "explorerUrl": self.explorer_url,
            }
        response: Dict[str, Any] = {"success": False, "error": self.error}
        if self.category is not None:
            response["category"] = self.category.value
        if self.tx_hash:
            response["transactionHash"] = self.tx_hash
            response["explorerUrl"] = self.explorer_url
        return response


class ClaimRequest(BaseModel):
    """Claim payload as posted by the client (IDKit field names)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, str_strip_whitespace=True)

    campaign_id: int = Field(alias="campaignId", ge=0, le=UINT256_MAX)
    chain_id: int = Field(alias="chainId")
    recipient: str = Field(min_length=1)
    merkle_root: str = Field(min_length=1)
    nullifier_hash: str = Field(min_length=1)
    proof: str = Field(min_length=1)
    verification_level: str = Field(min_length=1)
