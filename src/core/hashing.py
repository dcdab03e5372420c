"""
Fingerprints of game state
----

The runtime's crypto is injected as a small capability (`Crypto`) instead of being reached for globally,
so the game / protocol can be tested (and run) anywhere.
"""

import hashlib
import json
from typing import Any, Protocol
from uuid import uuid4

# hex length of a SHA-256 digest
HASH_HEX_LENGTH = 64


class Crypto(Protocol):
    """Just the parts the game and the protocol need"""

    def digest(self, data: bytes) -> bytes: ...
    def random_id(self) -> str: ...


class Sha256Crypto:
    def digest(self, data: bytes) -> bytes:
        return hashlib.sha256(data).digest()

    def random_id(self) -> str:
        return str(uuid4())


def get_hash(crypto: Crypto, data: str) -> str:
    """Digest of the utf-8 encoded string, rendered as lowercase hex."""
    return crypto.digest(data.encode("utf-8")).hex()


def serialize(data: Any) -> str:
    """Deterministic JSON: compact, keys in insertion order (the hash depends on it)."""
    return json.dumps(data, separators=(",", ":"))
