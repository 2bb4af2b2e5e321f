"""
Relayer facade.

Wires the chain registry, clients, contract gateway, campaign store,
claim submitter and recipient resolver from one RelayerConfig, and
exposes request-shaped operations for an outer HTTP layer.

Listing and lookup operations raise RelayerError subclasses for the
request layer to map to status codes. Claim and username resolution
return ``{"success": ...}`` envelopes, matching what the claim flow
consumes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from freeforhumans.clients import ClientPool, Web3Factory
from freeforhumans.config import ChainRegistry, RelayerConfig
from freeforhumans.contract import CampaignContract
from freeforhumans.errors import RelayerError, ValidationError
from freeforhumans.models import ClaimCommand, ClaimRequest
from freeforhumans.proof import decode_proof, group_id_for, parse_field_element
from freeforhumans.resolver import EnsNameLookup, NameLookup, RecipientResolver
from freeforhumans.store import CampaignStore
from freeforhumans.submitter import ClaimSubmitter
from freeforhumans.utils.logging import get_logger

__all__ = ["Relayer", "parse_campaign_reference"]

_logger = get_logger(__name__)


def parse_campaign_reference(reference: str) -> Tuple[int, int]:
    """Split a ``"<chainId>-<campaignId>"`` reference (e.g. ``"8453-3"``).

    Raises:
        ValidationError: If the reference is not two non-negative integers
    """
    chain_part, sep, campaign_part = str(reference).partition("-")
    if not sep or not chain_part.isdigit() or not campaign_part.isdigit():
        raise ValidationError(
            "Invalid campaign ID format. Expected: chainId-campaignId",
            field="id",
        )
    return int(chain_part), int(campaign_part)


def _request_error(e: PydanticValidationError) -> ValidationError:
    err = e.errors()[0]
    loc = err.get("loc") or ()
    field = str(loc[0]) if loc else "request"
    if err["type"] == "missing" or err.get("input") in (None, ""):
        return ValidationError(f"Missing {field}", field=field)
    if err["type"] == "string_too_short":
        return ValidationError(f"Missing {field}", field=field)
    return ValidationError(f"Invalid {field}", field=field)


def _failure(error: RelayerError) -> Dict[str, Any]:
    return {
        "success": False,
        "error": error.user_message,
        "category": error.category.value,
    }


class Relayer:
    """
    Entry point for the request layer.

    Example:
        ```python
        relayer = Relayer.from_config(RelayerConfig.from_env())

        listing = await relayer.list_campaigns()
        response = await relayer.claim({
            "campaignId": 3,
            "chainId": 8453,
            "recipient": "@alice",
            "merkle_root": "0x...",
            "nullifier_hash": "0x...",
            "proof": "0x...",
            "verification_level": "orb",
        })
        ```
    """

    def __init__(
        self,
        registry: ChainRegistry,
        gateway: CampaignContract,
        store: CampaignStore,
        submitter: ClaimSubmitter,
        resolver: RecipientResolver,
    ) -> None:
        self.registry = registry
        self.gateway = gateway
        self.store = store
        self.submitter = submitter
        self.resolver = resolver

    @classmethod
    def from_config(
        cls,
        config: Optional[RelayerConfig] = None,
        *,
        lookup: Optional[NameLookup] = None,
        web3_factory: Optional[Web3Factory] = None,
    ) -> "Relayer":
        """Build a relayer with every component wired from configuration."""
        config = config or RelayerConfig.from_env()
        registry = ChainRegistry.from_config(config)
        pool = ClientPool(
            registry,
            private_key=config.relayer_private_key,
            rpc_timeout=config.rpc_timeout_seconds,
            web3_factory=web3_factory,
        )
        gateway = CampaignContract(
            pool,
            timeout=config.rpc_timeout_seconds,
            confirmation_timeout=config.confirmation_timeout_seconds,
        )
        store = CampaignStore(
            gateway,
            registry,
            ttl=config.cache_ttl_seconds,
            breaker_config=config.circuit_breaker,
        )
        resolver = RecipientResolver(
            lookup or EnsNameLookup(config.ens_rpc_url, timeout=config.rpc_timeout_seconds),
            suffix=config.name_suffix,
            timeout=config.rpc_timeout_seconds,
        )
        return cls(registry, gateway, store, ClaimSubmitter(gateway, registry), resolver)

    async def list_campaigns(self, chain_id: Any = None) -> Dict[str, List[Dict[str, Any]]]:
        views = await self.store.list_active(chain_id)
        return {"campaigns": [view.to_dict() for view in views]}

    async def get_campaign(self, reference: str) -> Dict[str, Dict[str, Any]]:
        """Fetch one campaign by ``"<chainId>-<campaignId>"``, bypassing the cache."""
        chain_id, campaign_id = parse_campaign_reference(reference)
        view = await self.store.get_one(chain_id, campaign_id)
        return {"campaign": view.to_dict()}

    async def claim(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Validate, resolve and submit a claim.

        Returns:
            ``{"success": True, "transactionHash", "explorerUrl"}`` or
            ``{"success": False, "error", "category", ...}``
        """
        try:
            request = ClaimRequest.model_validate(payload)
        except PydanticValidationError as e:
            return _failure(_request_error(e))

        try:
            # Every local check runs before the name lookup
            self.registry.require_configured(request.chain_id)
            decode_proof(request.proof)
            group_id_for(request.verification_level)
            merkle_root = parse_field_element(request.merkle_root, "merkle_root")
            nullifier_hash = parse_field_element(request.nullifier_hash, "nullifier_hash")
            recipient = await self.resolver.resolve(request.recipient)
        except RelayerError as e:
            _logger.info(
                "Claim request rejected",
                extra={"code": e.code, "chain_id": request.chain_id, "campaign_id": request.campaign_id},
            )
            return _failure(e)

        command = ClaimCommand(
            chain_id=request.chain_id,
            campaign_id=request.campaign_id,
            recipient=recipient,
            merkle_root=merkle_root,
            nullifier_hash=nullifier_hash,
            proof=request.proof,
            verification_level=request.verification_level,
        )
        result = await self.submitter.submit(command)
        if result.success:
            # Remaining budget changed; the next listing must not serve it stale
            self.store.invalidate()
        return result.to_response()

    async def resolve_username(self, username: Optional[str]) -> Dict[str, Any]:
        if not username or not str(username).strip():
            return _failure(ValidationError("Missing username", field="username"))
        try:
            address = await self.resolver.resolve(str(username))
        except RelayerError as e:
            return {"success": False, "error": e.message, "category": e.category.value}
        return {"success": True, "address": address}

    async def relayer_balance(self, chain_id: Any) -> int:
        """Native gas balance of the relayer key on a configured chain, in wei."""
        descriptor = self.registry.require_configured(chain_id)
        return await self.gateway.relayer_balance(int(descriptor.chain_id))
