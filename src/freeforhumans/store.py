"""
Cross-chain campaign aggregation with a short-lived snapshot cache.

The store scans every configured chain, keeps only listable campaigns
(active, unexpired, funded), joins token metadata and sorts the result by
remaining budget. The result is held as an immutable CampaignSnapshot for
``ttl`` seconds; concurrent readers that find it stale coalesce into a
single refresh.

Single-campaign lookups are never served from the snapshot because claim
decisions need fresh state.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from freeforhumans.config import ChainDescriptor, ChainRegistry, CircuitBreakerConfig
from freeforhumans.constants import CAMPAIGN_CACHE_TTL_SECONDS
from freeforhumans.contract import CampaignContract
from freeforhumans.errors import CampaignNotFoundError, RelayerError
from freeforhumans.models import CampaignSnapshot, CampaignView, TokenMetadata
from freeforhumans.utils.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError
from freeforhumans.utils.logging import get_logger

__all__ = ["CampaignStore"]

_logger = get_logger(__name__)


class CampaignStore:
    """
    Aggregated campaign listing for both chains.

    Args:
        gateway: Contract gateway used for all reads
        registry: Chain registry; only configured chains are scanned
        ttl: Snapshot lifetime in seconds
        breaker_config: Per-chain circuit breaker settings
        clock: Monotonic clock used for the TTL
        now: Wall clock (unix seconds) used for expiry checks

    Example:
        ```python
        store = CampaignStore(gateway, registry)
        for view in await store.list_active(chain_id=8453):
            print(view.campaign.title, view.remaining_budget)
        ```
    """

    def __init__(
        self,
        gateway: CampaignContract,
        registry: ChainRegistry,
        *,
        ttl: float = CAMPAIGN_CACHE_TTL_SECONDS,
        breaker_config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], float] = time.time,
    ) -> None:
        self._gateway = gateway
        self._registry = registry
        self._ttl = ttl
        self._clock = clock
        self._now = now
        self._breakers: Dict[int, CircuitBreaker] = {
            int(d.chain_id): CircuitBreaker(breaker_config, name=d.name, clock=clock)
            for d in registry
        }
        self._snapshot: Optional[CampaignSnapshot] = None
        self._version = 0
        self._lock = asyncio.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    def breaker(self, chain_id: Any) -> CircuitBreaker:
        return self._breakers[int(self._registry.describe(chain_id).chain_id)]

    def _is_fresh(self, snapshot: Optional[CampaignSnapshot]) -> bool:
        return snapshot is not None and self._clock() - snapshot.captured_at < self._ttl

    async def snapshot(self) -> CampaignSnapshot:
        """Return the current snapshot, refreshing it if older than the TTL."""
        snapshot = self._snapshot
        if self._is_fresh(snapshot):
            return snapshot

        async with self._lock:
            # Another caller may have refreshed while we waited
            snapshot = self._snapshot
            if self._is_fresh(snapshot):
                return snapshot
            snapshot = await self._refresh()
            self._snapshot = snapshot
            return snapshot

    async def list_active(self, chain_id: Any = None) -> Tuple[CampaignView, ...]:
        """Listable campaigns ordered by remaining budget, highest first.

        Args:
            chain_id: Restrict to one chain (the snapshot itself always
                covers every configured chain)

        Raises:
            UnsupportedChainError: If chain_id is not a supported chain
        """
        wanted = None if chain_id is None else int(self._registry.describe(chain_id).chain_id)
        snapshot = await self.snapshot()
        if wanted is None:
            return snapshot.campaigns
        return tuple(v for v in snapshot.campaigns if v.chain_id == wanted)

    async def get_one(self, chain_id: Any, campaign_id: int) -> CampaignView:
        """Fetch one campaign straight from the chain, bypassing the snapshot.

        No activity filtering is applied; the caller sees inactive, expired
        and drained campaigns as they are.

        Raises:
            UnsupportedChainError: If the chain is unsupported or unconfigured
            CampaignNotFoundError: If the id was never used
        """
        descriptor = self._registry.require_configured(chain_id)
        cid = int(descriptor.chain_id)
        campaign = await self._gateway.get_campaign(cid, campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(cid, campaign_id)
        remaining = await self._gateway.get_remaining_budget(cid, campaign_id)
        token = await self._gateway.get_token_metadata(cid, campaign.token)
        return CampaignView(campaign=campaign, remaining_budget=remaining, token=token)

    def invalidate(self) -> None:
        """Drop the snapshot so the next listing reads fresh chain state."""
        self._snapshot = None

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------
    async def _refresh(self) -> CampaignSnapshot:
        now = int(self._now())
        chains = self._registry.configured()
        per_chain = await asyncio.gather(*(self._refresh_chain(d, now) for d in chains))

        views: List[CampaignView] = [view for views in per_chain for view in views]
        # Stable: ties keep chain order, then campaign id order
        views.sort(key=lambda v: v.remaining_budget, reverse=True)

        self._version += 1
        snapshot = CampaignSnapshot(
            version=self._version,
            captured_at=self._clock(),
            campaigns=tuple(views),
        )
        _logger.info(
            "Campaign snapshot refreshed",
            extra={
                "version": snapshot.version,
                "campaigns": len(snapshot.campaigns),
                "chains": len(chains),
            },
        )
        return snapshot

    async def _refresh_chain(self, descriptor: ChainDescriptor, now: int) -> List[CampaignView]:
        chain_id = int(descriptor.chain_id)
        breaker = self._breakers[chain_id]
        try:
            return await breaker.execute(lambda: self._scan_chain(chain_id, now))
        except CircuitBreakerOpenError:
            _logger.info(
                "Skipping chain while its circuit is open",
                extra={"chain_id": chain_id},
            )
        except RelayerError as e:
            _logger.warning(
                "Failed to fetch campaigns from chain",
                extra={"chain_id": chain_id, "code": e.code, "error": e.message},
            )
        return []

    async def _scan_chain(self, chain_id: int, now: int) -> List[CampaignView]:
        count = await self._gateway.next_campaign_id(chain_id)
        tokens: Dict[str, TokenMetadata] = {}
        views: List[CampaignView] = []

        for campaign_id in range(count):
            try:
                campaign = await self._gateway.get_campaign(chain_id, campaign_id)
                if campaign is None or not campaign.is_active or campaign.is_expired(now):
                    continue
                remaining = await self._gateway.get_remaining_budget(chain_id, campaign_id)
            except RelayerError as e:
                # One unreadable campaign must not hide the rest of the chain
                _logger.warning(
                    "Failed to fetch campaign",
                    extra={
                        "chain_id": chain_id,
                        "campaign_id": campaign_id,
                        "code": e.code,
                        "error": e.message,
                    },
                )
                continue

            if remaining <= 0:
                continue

            key = campaign.token.lower()
            if key not in tokens:
                tokens[key] = await self._gateway.get_token_metadata(chain_id, campaign.token)

            views.append(
                CampaignView(campaign=campaign, remaining_budget=remaining, token=tokens[key])
            )

        _logger.debug(
            "Chain scanned",
            extra={"chain_id": chain_id, "scanned": count, "listable": len(views)},
        )
        return views
