"""
Small utilities shared by the contract and the reference substrate.
"""

from __future__ import annotations

import hashlib
import json
import os
import time
from datetime import datetime, timezone
from typing import Any


_CROCKFORD32 = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_TX_ID_LENGTH = 26


def _encode_crockford_base32(value: int, length: int) -> str:
    """Encode a transaction-id integer as fixed-width Crockford base32, most significant digit first."""
    digits = [""] * length
    for position in range(length - 1, -1, -1):
        value, digit = divmod(value, 32)
        digits[position] = _CROCKFORD32[digit]
    return "".join(digits)


def new_ulid(*, timestamp_ms: int | None = None) -> str:
    """
    Mint a gateway transaction id.

    A ULID: 48-bit millisecond timestamp then 80 random bits, so ids minted
    later sort after earlier ones in the block log.
    """
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    if not 0 <= timestamp_ms < 1 << 48:
        raise ValueError("timestamp_ms out of range for a transaction id")

    value = timestamp_ms << 80 | int.from_bytes(os.urandom(10), "big")
    return _encode_crockford_base32(value, _TX_ID_LENGTH)


def canonical_json(data: Any) -> bytes:
    """Serialize to compact, key-sorted UTF-8 JSON (byte-identical across peers)."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sha256_hex(content: bytes | str) -> str:
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def format_rfc3339(ts: datetime) -> str:
    """
    Format a transaction timestamp as RFC 3339 UTC with second precision.

    Naive datetimes are taken to be UTC.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
