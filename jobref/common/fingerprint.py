"""
Content fingerprinting for cache keys.

The generation cache only needs collision avoidance within one process
lifetime, not cryptographic strength, so a fast rolling hash is enough.
Cache-key construction goes through fingerprint() only, so the algorithm
can be swapped (e.g. for fnv1a_32) without touching callers.

Credentials are different: two keys that share a fingerprint would share a
completion client and a cache scope, so they go through credential_digest().
"""

import hashlib
from typing import Callable

_INT32_MASK = 0xFFFFFFFF

# Characters of a description that participate in the generation cache key
DESCRIPTION_PREFIX_LENGTH = 1000


def _to_int32(value: int) -> int:
    value &= _INT32_MASK
    return value - (1 << 32) if value & 0x80000000 else value


def rolling_hash(text: str) -> int:
    """Multiply-and-add rolling hash (hash * 31 + char) wrapped to signed 32 bits."""
    h = 0
    for char in text:
        h = _to_int32((h << 5) - h + ord(char))
    return h


def fnv1a_32(text: str) -> int:
    """32-bit FNV-1a over the UTF-8 bytes of text."""
    h = 0x811C9DC5
    for byte in text.encode("utf-8"):
        h ^= byte
        h = (h * 0x01000193) & _INT32_MASK
    return h


_HASH: Callable[[str], int] = rolling_hash


def fingerprint(text: str) -> str:
    """Stable token for text, used as a cache key component."""
    return str(_HASH(text or ""))


def description_fingerprint(description: str) -> str:
    """Fingerprint of the description prefix that identifies a posting's content."""
    return fingerprint((description or "")[:DESCRIPTION_PREFIX_LENGTH])


def credential_digest(api_key: str) -> str:
    """SHA-256 hex digest of an API key, used wherever a credential partitions state."""
    return hashlib.sha256(api_key.encode()).hexdigest()
