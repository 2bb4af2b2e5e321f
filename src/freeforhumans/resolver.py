"""
Recipient resolution for World ID usernames.

Claimers may give a wallet address, a bare username (``alice``), a sigil
form (``@alice``) or a full name (``alice.world.id``). Everything that is
not already an address is normalised (ENSIP-15) and resolved with one
bounded forward lookup on Ethereum mainnet.
"""

from __future__ import annotations

import asyncio
import re
from typing import Optional, Protocol

from ens import AsyncENS
from ens.exceptions import InvalidName
from ens.utils import normalize_name
from web3 import AsyncWeb3

from freeforhumans.constants import (
    ADDRESS_PATTERN,
    DEFAULT_NAME_SUFFIX,
    NAME_SIGIL,
    PROVIDER_TIMEOUT_SECONDS,
    ZERO_ADDRESS,
)
from freeforhumans.errors import ResolutionFailedError, UnresolvableIdentifierError
from freeforhumans.utils.logging import get_logger

__all__ = ["NameLookup", "EnsNameLookup", "RecipientResolver", "is_address"]

_logger = get_logger(__name__)

_ADDRESS_RE = re.compile(ADDRESS_PATTERN)


def is_address(value: str) -> bool:
    """True for ``0x`` followed by exactly 40 hex digits (checksum not enforced)."""
    return bool(_ADDRESS_RE.match(value))


class NameLookup(Protocol):
    async def address(self, name: str) -> Optional[str]:
        """Forward-resolve a normalised name; None when it has no record."""
        ...


class EnsNameLookup:
    """NameLookup backed by web3's AsyncENS on a mainnet RPC."""

    def __init__(self, rpc_url: str, *, timeout: float = PROVIDER_TIMEOUT_SECONDS) -> None:
        self._rpc_url = rpc_url
        self._timeout = timeout
        self._ns: Optional[AsyncENS] = None

    def _ens(self) -> AsyncENS:
        if self._ns is None:
            w3 = AsyncWeb3(
                AsyncWeb3.AsyncHTTPProvider(self._rpc_url, request_kwargs={"timeout": self._timeout})
            )
            self._ns = AsyncENS.from_web3(w3)
        return self._ns

    async def address(self, name: str) -> Optional[str]:
        return await self._ens().address(name)


class RecipientResolver:
    """
    Turn a claimer-supplied identifier into a wallet address.

    Example:
        >>> resolver = RecipientResolver(EnsNameLookup("https://eth.llamarpc.com"))
        >>> resolver.to_name("@alice")
        'alice.world.id'
    """

    def __init__(
        self,
        lookup: NameLookup,
        *,
        suffix: str = DEFAULT_NAME_SUFFIX,
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
    ) -> None:
        self._lookup = lookup
        self._suffix = suffix.lstrip(".")
        self._timeout = timeout

    def to_name(self, identifier: str) -> str:
        """Expand a username into a full name (no normalisation)."""
        name = identifier.strip()
        if name.startswith(NAME_SIGIL):
            name = name[len(NAME_SIGIL):]
        if name and "." not in name:
            name = f"{name}.{self._suffix}"
        return name

    async def resolve(self, identifier: str) -> str:
        """Resolve an identifier to an address.

        Well-formed addresses are returned unchanged without a lookup.

        Raises:
            UnresolvableIdentifierError: If the name is invalid or has no address record
            ResolutionFailedError: If the lookup errors or times out
        """
        identifier = identifier.strip()
        if is_address(identifier):
            return identifier

        name = self.to_name(identifier)
        if not name:
            raise UnresolvableIdentifierError(identifier)
        try:
            normalized = normalize_name(name)
        except InvalidName:
            # ENSIP-15 rejects the name outright; a lookup cannot succeed
            raise UnresolvableIdentifierError(identifier, name=name) from None

        try:
            address = await asyncio.wait_for(self._lookup.address(normalized), self._timeout)
        except asyncio.TimeoutError:
            raise ResolutionFailedError(
                identifier, f"lookup timed out after {self._timeout:g}s"
            ) from None
        except Exception as e:
            raise ResolutionFailedError(identifier, str(e) or e.__class__.__name__) from e

        if not address or str(address).lower() == ZERO_ADDRESS:
            raise UnresolvableIdentifierError(identifier, name=normalized)

        _logger.debug("Username resolved", extra={"ens_name": normalized, "address": address})
        return str(address)
