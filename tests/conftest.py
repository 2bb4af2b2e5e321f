"""
Shared fixtures for relayer tests.

The stubs here stand in for the contract gateway, the wall/monotonic
clocks and the name service so tests never touch a network.
"""

import asyncio
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

from freeforhumans.config import ChainRegistry
from freeforhumans.errors import RpcError
from freeforhumans.models import Campaign, TokenMetadata
from freeforhumans.proof import encode_proof

# =============================================================================
# Test Constants
# =============================================================================

NOW = 1_700_000_000
CREATOR = "0x1234567890123456789012345678901234567890"
TOKEN = "0xabcdefABCDEFabcdefABCDEFabcdefABCDEFabcd"
RECIPIENT = "0x9876543210987654321098765432109876543210"
RELAYER = "0x19E7E376E7C213B7E7e7e46cc70A5dD086DAff2A"
TX_HASH = "0x" + "ab" * 32
PROOF_HEX = encode_proof([1, 2, 3, 4, 5, 6, 7, 8])


# =============================================================================
# Stubs
# =============================================================================


class FakeClock:
    """Manually advanced clock usable wherever a ``() -> float`` is expected."""

    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class StubGateway:
    """In-memory CampaignContract replacement.

    Campaigns are held per chain as a list indexed by campaign id; ``None``
    entries model ids whose creator is the zero address.
    """

    def __init__(self) -> None:
        self.campaigns: Dict[int, List[Optional[Campaign]]] = {}
        self.budgets: Dict[Tuple[int, int], int] = {}
        self.tokens: Dict[str, TokenMetadata] = {}
        self.failing_chains: Set[int] = set()
        self.failing_campaigns: Set[Tuple[int, int]] = set()
        self.scan_delay = 0.0
        self.calls: List[Tuple[Any, ...]] = []

        self.simulate_error: Optional[Exception] = None
        self.replay_error: Optional[Exception] = None
        self.send_error: Optional[Exception] = None
        self.confirm_error: Optional[Exception] = None
        self.receipt: Dict[str, Any] = {"status": 1, "blockNumber": 123, "transactionHash": TX_HASH}
        self.lookup_receipt: Optional[Dict[str, Any]] = None
        self.lookup_error: Optional[Exception] = None
        self.tx_hash = TX_HASH
        self.relayer_address = RELAYER

    def add(self, campaign: Campaign, remaining: Optional[int] = None) -> Campaign:
        entries = self.campaigns.setdefault(campaign.chain_id, [])
        while len(entries) <= campaign.id:
            entries.append(None)
        entries[campaign.id] = campaign
        if remaining is None:
            remaining = campaign.total_budget - campaign.total_claimed
        self.budgets[(campaign.chain_id, campaign.id)] = remaining
        return campaign

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def _check_chain(self, chain_id: int) -> None:
        if chain_id in self.failing_chains:
            raise RpcError("connection refused", chain_id=chain_id)

    async def next_campaign_id(self, chain_id: int) -> int:
        self.calls.append(("next_campaign_id", chain_id))
        if self.scan_delay:
            await asyncio.sleep(self.scan_delay)
        self._check_chain(chain_id)
        return len(self.campaigns.get(chain_id, []))

    async def get_campaign(self, chain_id: int, campaign_id: int) -> Optional[Campaign]:
        self.calls.append(("get_campaign", chain_id, campaign_id))
        self._check_chain(chain_id)
        if (chain_id, campaign_id) in self.failing_campaigns:
            raise RpcError("execution timeout", chain_id=chain_id)
        entries = self.campaigns.get(chain_id, [])
        return entries[campaign_id] if campaign_id < len(entries) else None

    async def get_remaining_budget(self, chain_id: int, campaign_id: int) -> int:
        self.calls.append(("get_remaining_budget", chain_id, campaign_id))
        self._check_chain(chain_id)
        return self.budgets.get((chain_id, campaign_id), 0)

    async def get_token_metadata(self, chain_id: int, token: str) -> TokenMetadata:
        self.calls.append(("get_token_metadata", chain_id, token))
        return self.tokens.get(token.lower(), TokenMetadata.unknown())

    async def simulate_claim(self, chain_id: int, call: Any, *, block_identifier: Any = "latest") -> None:
        self.calls.append(("simulate_claim", chain_id, call, block_identifier))
        if block_identifier != "latest":
            if self.replay_error:
                raise self.replay_error
            return
        if self.simulate_error:
            raise self.simulate_error

    async def send_claim(self, chain_id: int, call: Any) -> str:
        self.calls.append(("send_claim", chain_id, call))
        if self.send_error:
            raise self.send_error
        return self.tx_hash

    async def wait_for_confirmation(self, chain_id: int, tx_hash: str) -> Dict[str, Any]:
        self.calls.append(("wait_for_confirmation", chain_id, tx_hash))
        if self.confirm_error:
            raise self.confirm_error
        return self.receipt

    async def get_receipt(self, chain_id: int, tx_hash: str) -> Optional[Dict[str, Any]]:
        self.calls.append(("get_receipt", chain_id, tx_hash))
        if self.lookup_error:
            raise self.lookup_error
        return self.lookup_receipt

    async def relayer_balance(self, chain_id: int) -> int:
        self.calls.append(("relayer_balance", chain_id))
        return 10**18


class StubLookup:
    """NameLookup replacement keyed by normalised name."""

    def __init__(self, records: Optional[Dict[str, Optional[str]]] = None) -> None:
        self.records = records or {}
        self.queries: List[str] = []
        self.error: Optional[Exception] = None
        self.delay = 0.0

    async def address(self, name: str) -> Optional[str]:
        self.queries.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.records.get(name)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture()
def make_campaign():
    """Factory for campaigns that are listable at NOW unless overridden."""

    def _make(chain_id: int = 8453, campaign_id: int = 0, **overrides: Any) -> Campaign:
        values = dict(
            chain_id=chain_id,
            id=campaign_id,
            creator=CREATOR,
            token=TOKEN,
            orb_claim_amount=100 * 10**18,
            nfc_claim_amount=50 * 10**18,
            total_budget=1_000 * 10**18,
            total_claimed=0,
            expires_at=NOW + 86_400,
            is_recurring=False,
            claim_interval=0,
            is_active=True,
            title=f"Campaign {campaign_id}",
            description="Free tokens for verified humans",
            image_url="",
        )
        values.update(overrides)
        return Campaign(**values)

    return _make


@pytest.fixture()
def registry() -> ChainRegistry:
    return ChainRegistry()


@pytest.fixture()
def gateway() -> StubGateway:
    return StubGateway()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def lookup() -> StubLookup:
    return StubLookup()
