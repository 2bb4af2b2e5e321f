"""Contract ABIs bundled with the relayer."""

import json
from pathlib import Path

__all__ = ["ABI_DIR", "load_abi"]

ABI_DIR = Path(__file__).parent

_ABI_CACHE: dict[str, list] = {}


def load_abi(name: str) -> list:
    """Load ABI JSON with caching.

    Args:
        name: ABI filename (e.g., "free_for_humans.json")

    Returns:
        Parsed ABI list
    """
    if name not in _ABI_CACHE:
        _ABI_CACHE[name] = json.loads((ABI_DIR / name).read_text())
    return _ABI_CACHE[name]
