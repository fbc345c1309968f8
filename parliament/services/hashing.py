"""Content digests."""

import hashlib
import json
from typing import Any


def sha256_hex(data: bytes) -> str:
    """SHA-256 of a byte buffer as lowercase hex."""
    return hashlib.sha256(data).hexdigest()


def canonical_json_hash(payload: dict[str, Any]) -> str:
    """SHA-256 of a deterministic JSON rendering of ``payload``."""
    hash_string = json.dumps(payload, sort_keys=True, default=str)
    return sha256_hex(hash_string.encode())
