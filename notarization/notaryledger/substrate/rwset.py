"""
Read/write sets and transaction envelopes.

A simulation produces a ReadWriteSet; the gateway wraps it, together with the
proposal and the set of endorsing organizations, into a TransactionEnvelope
that the world state validates and commits.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..util import sha256_hex
from .stub import Credential

Version = int  # block number of the committing transaction


def _b64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


def _unb64(value: str) -> bytes:
    return base64.b64decode(value)


@dataclass(frozen=True)
class RangeRead:
    start_key: str
    end_key: str
    results: tuple[tuple[str, Version], ...]


@dataclass
class ReadWriteSet:
    """Everything one simulation read and wrote."""

    reads: dict[str, Version | None] = field(default_factory=dict)
    range_reads: list[RangeRead] = field(default_factory=list)
    writes: dict[str, bytes | None] = field(default_factory=dict)
    metadata_writes: dict[str, bytes] = field(default_factory=dict)
    private_writes: dict[tuple[str, str], bytes] = field(default_factory=dict)
    event: tuple[str, bytes] | None = None

    def is_read_only(self) -> bool:
        return not (self.writes or self.metadata_writes or self.private_writes or self.event)

    def written_keys(self) -> set[str]:
        return set(self.writes) | set(self.metadata_writes)

    def to_dict(self) -> dict[str, Any]:
        """
        Public form written to the block log.

        Private values appear only as hashes.
        """
        return {
            "reads": [{"key": k, "version": v} for k, v in sorted(self.reads.items())],
            "range_reads": [
                {
                    "start_key": r.start_key,
                    "end_key": r.end_key,
                    "results": [{"key": k, "version": v} for k, v in r.results],
                }
                for r in self.range_reads
            ],
            "writes": [
                {"key": k, "value": (_b64(v) if v is not None else None), "is_delete": v is None}
                for k, v in self.writes.items()
            ],
            "metadata_writes": [{"key": k, "policy": _b64(v)} for k, v in self.metadata_writes.items()],
            "private_writes": [
                {"collection": c, "key_hash": sha256_hex(k), "value_hash": sha256_hex(v)}
                for (c, k), v in sorted(self.private_writes.items())
            ],
            "event": (
                {"name": self.event[0], "payload": _b64(self.event[1])} if self.event is not None else None
            ),
        }

    @staticmethod
    def decode_writes(data: dict[str, Any]) -> tuple[dict[str, bytes | None], dict[str, bytes]]:
        writes = {
            w["key"]: (None if w.get("is_delete") else _unb64(w["value"]))
            for w in data.get("writes", [])
        }
        metadata = {m["key"]: _unb64(m["policy"]) for m in data.get("metadata_writes", [])}
        return writes, metadata

    @staticmethod
    def decode_event(data: dict[str, Any]) -> tuple[str, bytes] | None:
        event = data.get("event")
        if not event:
            return None
        return event["name"], _unb64(event["payload"])


@dataclass(frozen=True)
class Proposal:
    """A signed invocation request, as handed over by the transport."""

    tx_id: str
    timestamp: datetime
    creator: Credential
    function: str
    args: tuple[str, ...] = ()
    transient: dict[str, bytes] = field(default_factory=dict)


@dataclass
class TransactionEnvelope:
    proposal: Proposal
    rwset: ReadWriteSet
    endorsers: frozenset[str]
    response: bytes

    @property
    def tx_id(self) -> str:
        return self.proposal.tx_id
