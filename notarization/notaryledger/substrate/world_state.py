"""
Append-only block log and the world state derived from it.

The block log is the source of truth. Each committed transaction, valid or
not, is one JSON line in blocks.jsonl and is never modified. Current state,
key metadata and key history are computed by folding the valid transactions.

Private partition values never enter the block log; they are kept in one
JSONL file per partition under private/ and only their hashes are logged.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from ..errors import CorruptState
from .endorsement import ValidationPolicy
from .rwset import RangeRead, ReadWriteSet, TransactionEnvelope, Version
from .stub import ChaincodeEvent, KeyModification

logger = logging.getLogger(__name__)

# Validation codes
VALID = "VALID"
MVCC_READ_CONFLICT = "MVCC_READ_CONFLICT"
PHANTOM_READ_CONFLICT = "PHANTOM_READ_CONFLICT"
ENDORSEMENT_POLICY_FAILURE = "ENDORSEMENT_POLICY_FAILURE"
DUPLICATE_TXID = "DUPLICATE_TXID"


@dataclass(frozen=True)
class VersionedValue:
    value: bytes
    version: Version


@dataclass(frozen=True)
class CommitResult:
    tx_id: str
    block_number: int
    validation_code: str
    reason: str = ""

    @property
    def valid(self) -> bool:
        return self.validation_code == VALID


class WorldState:
    """
    File-backed ledger peer state.

    INVARIANT: blocks.jsonl is only ever appended to. commit() is the
    only write operation.
    """

    def __init__(self, ledger_dir: Path, *, channel_orgs: frozenset[str] = frozenset()):
        """
        Initialize world state.

        Args:
            ledger_dir: Directory holding blocks.jsonl and private/
            channel_orgs: Channel members. Empty means any organization.
        """
        self.ledger_dir = ledger_dir
        self.blocks_path = ledger_dir / "blocks.jsonl"
        self.private_dir = ledger_dir / "private"
        self.channel_orgs = channel_orgs

        self._state: dict[str, VersionedValue] = {}
        self._metadata: dict[str, bytes] = {}
        self._history: dict[str, list[KeyModification]] = {}
        self._private: dict[tuple[str, str], bytes] = {}
        self._events: list[ChaincodeEvent] = []
        self._tx_ids: set[str] = set()
        self._height = 0
        self._loaded = False

    def _ensure_dir(self) -> None:
        self.private_dir.mkdir(parents=True, exist_ok=True)

    def _ensure_loaded(self) -> None:
        """Fold the block log into in-memory state on first use."""
        if self._loaded:
            return

        valid_tx_ids: set[str] = set()
        for block in self.iter_blocks():
            self._apply_block(block)
            if block["validation_code"] == VALID:
                valid_tx_ids.add(block["tx_id"])

        # Private values of transactions that never committed are ignored.
        if self.private_dir.exists():
            for path in sorted(self.private_dir.glob("*.jsonl")):
                with path.open("r", encoding="utf-8") as f:
                    for line in f:
                        line = line.strip()
                        if not line:
                            continue
                        entry = json.loads(line)
                        if entry["tx_id"] in valid_tx_ids:
                            key = (entry["collection"], entry["key"])
                            self._private[key] = base64.b64decode(entry["value"])

        self._loaded = True

    def iter_blocks(self) -> Iterator[dict[str, Any]]:
        """Iterate over raw block records in commit order."""
        if not self.blocks_path.exists():
            return
        with self.blocks_path.open("r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except ValueError as e:
                    raise CorruptState(f"{self.blocks_path}:{lineno}: unreadable block: {e}") from e

    def _apply_block(self, block: dict[str, Any]) -> None:
        number = int(block["block"])
        tx_id = block["tx_id"]
        self._height = max(self._height, number + 1)
        self._tx_ids.add(tx_id)
        if block["validation_code"] != VALID:
            return

        timestamp = datetime.fromisoformat(block["timestamp"])
        rwset = block.get("rwset", {})
        writes, metadata = ReadWriteSet.decode_writes(rwset)

        for key, value in writes.items():
            if value is None:
                self._state.pop(key, None)
            else:
                self._state[key] = VersionedValue(value=value, version=number)
            self._history.setdefault(key, []).append(
                KeyModification(tx_id=tx_id, timestamp=timestamp, value=value or b"", is_delete=value is None)
            )

        self._metadata.update(metadata)

        event = ReadWriteSet.decode_event(rwset)
        if event is not None:
            self._events.append(
                ChaincodeEvent(name=event[0], tx_id=tx_id, payload=event[1], block_number=number)
            )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @property
    def height(self) -> int:
        self._ensure_loaded()
        return self._height

    def get_state(self, key: str) -> VersionedValue | None:
        self._ensure_loaded()
        return self._state.get(key)

    def get_metadata(self, key: str) -> bytes | None:
        self._ensure_loaded()
        return self._metadata.get(key)

    def get_range(self, start_key: str, end_key: str) -> list[tuple[str, VersionedValue]]:
        """Keys in [start_key, end_key), sorted."""
        self._ensure_loaded()
        return [
            (k, self._state[k])
            for k in sorted(self._state)
            if start_key <= k < end_key
        ]

    def get_history(self, key: str) -> list[KeyModification]:
        self._ensure_loaded()
        return list(self._history.get(key, []))

    def get_private(self, collection: str, key: str) -> bytes | None:
        self._ensure_loaded()
        return self._private.get((collection, key))

    def events(self, start_block: int = 0) -> Iterator[ChaincodeEvent]:
        """Committed chaincode events from `start_block` onward, in block order."""
        self._ensure_loaded()
        for event in self._events:
            if event.block_number >= start_block:
                yield event

    # -------------------------------------------------------------------------
    # Commit
    # -------------------------------------------------------------------------

    def validate(self, envelope: TransactionEnvelope) -> tuple[str, str]:
        """
        Validate a transaction against committed state.

        Returns:
            (validation_code, reason)
        """
        self._ensure_loaded()
        rwset = envelope.rwset

        if envelope.tx_id in self._tx_ids:
            return DUPLICATE_TXID, f"transaction {envelope.tx_id} already recorded"

        for key, version in rwset.reads.items():
            current = self._state.get(key)
            current_version = current.version if current is not None else None
            if current_version != version:
                return MVCC_READ_CONFLICT, f"key {key!r} changed since it was read"

        for range_read in rwset.range_reads:
            if not self._range_unchanged(range_read):
                return PHANTOM_READ_CONFLICT, f"range starting {range_read.start_key!r} changed since it was read"

        for key in sorted(rwset.written_keys()):
            ok, reason = self._endorsement_satisfied(key, envelope.endorsers)
            if not ok:
                return ENDORSEMENT_POLICY_FAILURE, reason

        if rwset.private_writes:
            ok, reason = self._default_policy_satisfied(envelope.endorsers)
            if not ok:
                return ENDORSEMENT_POLICY_FAILURE, reason

        return VALID, ""

    def _range_unchanged(self, range_read: RangeRead) -> bool:
        current = tuple((k, v.version) for k, v in self.get_range(range_read.start_key, range_read.end_key))
        return current == range_read.results

    def _endorsement_satisfied(self, key: str, endorsers: frozenset[str]) -> tuple[bool, str]:
        # The policy in force before this transaction governs its writes.
        raw = self._metadata.get(key)
        if raw is None:
            return self._default_policy_satisfied(endorsers)
        policy = ValidationPolicy.from_bytes(raw)
        if policy.is_satisfied_by(endorsers):
            return True, ""
        return False, f"key {key!r} requires endorsement from {', '.join(policy.missing(endorsers))}"

    def _default_policy_satisfied(self, endorsers: frozenset[str]) -> tuple[bool, str]:
        members = {org for org in endorsers if not self.channel_orgs or org in self.channel_orgs}
        if members:
            return True, ""
        return False, "no endorsement from a channel member"

    def commit(self, envelope: TransactionEnvelope) -> CommitResult:
        """
        Validate and append a transaction.

        Invalid transactions are appended too, with their validation code,
        but none of their writes are applied.
        """
        code, reason = self.validate(envelope)
        block_number = self._height
        proposal = envelope.proposal

        block: dict[str, Any] = {
            "block": block_number,
            "tx_id": proposal.tx_id,
            "timestamp": proposal.timestamp.isoformat(),
            "creator": proposal.creator.to_dict(),
            "function": proposal.function,
            "args": list(proposal.args),
            "endorsers": sorted(envelope.endorsers),
            "validation_code": code,
            "rwset": envelope.rwset.to_dict(),
            "response": base64.b64encode(envelope.response).decode("ascii"),
        }
        if reason:
            block["reason"] = reason

        self._ensure_dir()
        if code == VALID:
            self._write_private(proposal.tx_id, envelope.rwset)
        with self.blocks_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(block, separators=(",", ":"), sort_keys=True) + "\n")

        self._apply_block(block)
        if code == VALID:
            self._private.update(envelope.rwset.private_writes)
        else:
            logger.info("transaction %s invalidated: %s (%s)", proposal.tx_id, code, reason)

        return CommitResult(tx_id=proposal.tx_id, block_number=block_number, validation_code=code, reason=reason)

    def _write_private(self, tx_id: str, rwset: ReadWriteSet) -> None:
        by_collection: dict[str, list[dict[str, Any]]] = {}
        for (collection, key), value in rwset.private_writes.items():
            by_collection.setdefault(collection, []).append({
                "tx_id": tx_id,
                "collection": collection,
                "key": key,
                "value": base64.b64encode(value).decode("ascii"),
            })
        for collection, entries in by_collection.items():
            path = self.private_dir / f"{collection}.jsonl"
            with path.open("a", encoding="utf-8") as f:
                for entry in entries:
                    f.write(json.dumps(entry, separators=(",", ":")) + "\n")
