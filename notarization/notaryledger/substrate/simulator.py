"""
Transaction simulator: the ChaincodeStub an endorsing peer hands the contract.

Reads go to committed world state and are recorded with their versions;
writes are buffered into a ReadWriteSet. A simulation sees its own buffered
writes when it reads them back. Nothing reaches the world state until the
resulting envelope is committed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterator, Mapping

from ..errors import PrivateDataAccessDenied, ValidationError
from .rwset import Proposal, RangeRead, ReadWriteSet
from .stub import (
    ChaincodeStub,
    Credential,
    KeyModification,
    _MAX_UNICODE_RUNE,
    create_composite_key,
    implicit_collection,
)
from .world_state import WorldState


class TransactionSimulator(ChaincodeStub):
    def __init__(self, world_state: WorldState, proposal: Proposal, *, peer_org: str):
        """
        Args:
            world_state: Committed state to simulate against
            proposal: The invocation being simulated
            peer_org: Organization of the endorsing peer running the simulation
        """
        self.world_state = world_state
        self.proposal = proposal
        self.peer_org = peer_org
        self.rwset = ReadWriteSet()

    # -------------------------------------------------------------------------
    # Proposal context
    # -------------------------------------------------------------------------

    def get_tx_id(self) -> str:
        return self.proposal.tx_id

    def get_tx_timestamp(self) -> datetime:
        return self.proposal.timestamp

    def get_creator(self) -> Credential | None:
        return self.proposal.creator

    def get_transient(self) -> Mapping[str, bytes]:
        return dict(self.proposal.transient)

    # -------------------------------------------------------------------------
    # Public state
    # -------------------------------------------------------------------------

    def get_state(self, key: str) -> bytes | None:
        _require_key(key)
        if key in self.rwset.writes:
            return self.rwset.writes[key]
        current = self.world_state.get_state(key)
        if key not in self.rwset.reads:
            self.rwset.reads[key] = current.version if current is not None else None
        return current.value if current is not None else None

    def put_state(self, key: str, value: bytes) -> None:
        _require_key(key)
        if not isinstance(value, (bytes, bytearray)) or not value:
            raise ValidationError(f"value for key {key!r} must be non-empty bytes")
        self.rwset.writes[key] = bytes(value)

    def get_state_by_partial_composite_key(
        self, object_type: str, attributes: list[str]
    ) -> Iterator[tuple[str, bytes]]:
        start_key = create_composite_key(object_type, attributes)
        end_key = start_key + _MAX_UNICODE_RUNE
        results = self.world_state.get_range(start_key, end_key)
        self.rwset.range_reads.append(
            RangeRead(
                start_key=start_key,
                end_key=end_key,
                results=tuple((k, v.version) for k, v in results),
            )
        )
        for key, versioned in results:
            yield key, versioned.value

    def get_history_for_key(self, key: str) -> Iterator[KeyModification]:
        # History is not part of the read set, as with the ledger peer.
        _require_key(key)
        yield from self.world_state.get_history(key)

    def set_state_validation_parameter(self, key: str, policy: bytes) -> None:
        _require_key(key)
        self.rwset.metadata_writes[key] = bytes(policy)

    def get_state_validation_parameter(self, key: str) -> bytes | None:
        _require_key(key)
        if key in self.rwset.metadata_writes:
            return self.rwset.metadata_writes[key]
        return self.world_state.get_metadata(key)

    # -------------------------------------------------------------------------
    # Private partitions
    # -------------------------------------------------------------------------

    def get_private_data(self, collection: str, key: str) -> bytes | None:
        _require_key(key)
        if collection != implicit_collection(self.peer_org):
            raise PrivateDataAccessDenied(
                f"peer of {self.peer_org} cannot read private partition {collection}"
            )
        if (collection, key) in self.rwset.private_writes:
            return self.rwset.private_writes[(collection, key)]
        return self.world_state.get_private(collection, key)

    def put_private_data(self, collection: str, key: str, value: bytes) -> None:
        _require_key(key)
        if not collection.startswith(implicit_collection("")):
            raise PrivateDataAccessDenied(f"unknown private partition {collection}")
        if not isinstance(value, (bytes, bytearray)) or not value:
            raise ValidationError(f"private value for key {key!r} must be non-empty bytes")
        self.rwset.private_writes[(collection, key)] = bytes(value)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def set_event(self, name: str, payload: bytes) -> None:
        if not name:
            raise ValidationError("event name must not be empty")
        self.rwset.event = (name, bytes(payload))

    def get_event(self) -> tuple[str, bytes] | None:
        return self.rwset.event


def _require_key(key: str) -> None:
    if not isinstance(key, str) or not key:
        raise ValidationError("state key must be a non-empty string")
