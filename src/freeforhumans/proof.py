"""
Proof payload and verification-level helpers.

A World ID proof reaches the relayer as the ABI encoding of a static
``uint256[8]``: exactly eight 32-byte words, no offset or length prefix.
"""

from __future__ import annotations

from typing import Any, Dict, Sequence, Tuple, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError

from freeforhumans.constants import (
    DEVICE_GROUP_ID,
    ORB_GROUP_ID,
    PROOF_BYTE_LENGTH,
    PROOF_LENGTH,
    UINT256_MAX,
)
from freeforhumans.errors import (
    MalformedProofError,
    UnknownVerificationLevelError,
    ValidationError,
)

__all__ = [
    "PROOF_ABI_TYPE",
    "VERIFICATION_GROUPS",
    "decode_proof",
    "encode_proof",
    "group_id_for",
    "parse_field_element",
]

PROOF_ABI_TYPE = f"uint256[{PROOF_LENGTH}]"

VERIFICATION_GROUPS: Dict[str, int] = {
    "orb": ORB_GROUP_ID,
    "device": DEVICE_GROUP_ID,
    "nfc": DEVICE_GROUP_ID,
    "passport": DEVICE_GROUP_ID,
}


def _to_bytes(payload: Union[str, bytes], field: str) -> bytes:
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    if not isinstance(payload, str):
        raise MalformedProofError(f"{field} must be a hex string or bytes")
    text = payload[2:] if payload[:2] in ("0x", "0X") else payload
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise MalformedProofError(f"{field} is not valid hex") from None


def decode_proof(payload: Union[str, bytes]) -> Tuple[int, ...]:
    """Decode an ABI-encoded ``uint256[8]`` proof.

    Args:
        payload: Hex string (``0x`` prefix optional) or raw bytes

    Returns:
        Tuple of eight integers, in order

    Raises:
        MalformedProofError: If the payload is not exactly eight words
    """
    data = _to_bytes(payload, "proof")
    if len(data) != PROOF_BYTE_LENGTH:
        raise MalformedProofError(
            f"expected {PROOF_BYTE_LENGTH} bytes, got {len(data)}"
        )
    try:
        (words,) = decode([PROOF_ABI_TYPE], data)
    except DecodingError as e:
        raise MalformedProofError(str(e)) from None
    return tuple(int(w) for w in words)


def encode_proof(vector: Sequence[int]) -> str:
    """Encode eight integers as the ``0x``-prefixed proof payload."""
    if len(vector) != PROOF_LENGTH:
        raise MalformedProofError(f"expected {PROOF_LENGTH} elements, got {len(vector)}")
    for value in vector:
        if not isinstance(value, int) or value < 0 or value > UINT256_MAX:
            raise MalformedProofError("proof elements must be uint256")
    return "0x" + encode([PROOF_ABI_TYPE], [list(vector)]).hex()


def group_id_for(level: Any) -> int:
    """Map a verification level tag to the contract's group id.

    Raises:
        UnknownVerificationLevelError: For tags outside the closed set
    """
    if not isinstance(level, str):
        raise UnknownVerificationLevelError(level)
    try:
        return VERIFICATION_GROUPS[level.strip().lower()]
    except KeyError:
        raise UnknownVerificationLevelError(level) from None


def parse_field_element(value: Any, field: str) -> int:
    """Parse a merkle root or nullifier hash into a uint256.

    Accepts ``0x``-prefixed hex, plain decimal strings and non-negative ints.

    Raises:
        ValidationError: If the value is not a uint256
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}", field=field)
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            if text[:2] in ("0x", "0X"):
                parsed = int(text, 16)
            else:
                parsed = int(text, 10)
        except ValueError:
            raise ValidationError(f"Invalid {field}", field=field) from None
    else:
        raise ValidationError(f"Invalid {field}", field=field)

    if parsed < 0 or parsed > UINT256_MAX:
        raise ValidationError(f"{field} out of uint256 range", field=field)
    return parsed
