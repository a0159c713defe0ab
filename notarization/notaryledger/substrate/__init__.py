"""
Reference ledger substrate.

An in-process stand-in for the ledger peer the contract is deployed on:

- Append-only block log (blocks.jsonl), never rewritten
- World state, key metadata and key history folded from valid blocks
- MVCC read/range validation and per-key validation policies at commit
- Per-organization private partitions, logged by hash only
- Deterministic transaction clock carried by each proposal

It is not a consensus implementation; ordering is the order of commit() calls.
"""

from .endorsement import ValidationPolicy
from .rwset import Proposal, ReadWriteSet, TransactionEnvelope
from .simulator import TransactionSimulator
from .stub import (
    ChaincodeEvent,
    ChaincodeStub,
    Credential,
    KeyModification,
    create_composite_key,
    implicit_collection,
    split_composite_key,
)
from .world_state import (
    ENDORSEMENT_POLICY_FAILURE,
    MVCC_READ_CONFLICT,
    PHANTOM_READ_CONFLICT,
    VALID,
    CommitResult,
    WorldState,
)

__all__ = [
    # Contract-facing
    "ChaincodeStub",
    "Credential",
    "KeyModification",
    "ChaincodeEvent",
    "ValidationPolicy",
    "create_composite_key",
    "split_composite_key",
    "implicit_collection",
    # Peer-side
    "Proposal",
    "ReadWriteSet",
    "TransactionEnvelope",
    "TransactionSimulator",
    "WorldState",
    "CommitResult",
    # Validation codes
    "VALID",
    "MVCC_READ_CONFLICT",
    "PHANTOM_READ_CONFLICT",
    "ENDORSEMENT_POLICY_FAILURE",
]
