"""
Substrate contract consumed by the contract code.

The contract only ever talks to a ChaincodeStub. Everything behind it
(storage, ordering, commit, endorsement) belongs to the ledger substrate.
"""

from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, Mapping

from ..errors import ValidationError

COMPOSITE_KEY_NAMESPACE = "\x00"
_MIN_UNICODE_RUNE = "\x00"
_MAX_UNICODE_RUNE = "\U0010ffff"


def implicit_collection(org: str) -> str:
    """Name of an organization's private partition."""
    return f"_implicit_org_{org}"


def create_composite_key(object_type: str, attributes: list[str]) -> str:
    """
    Build a composite key.

    Layout: NUL + object_type + NUL + attr1 + NUL + ... so that a partial
    key over the leading attributes is a strict prefix of every full key.
    """
    _validate_composite_part(object_type)
    for attr in attributes:
        _validate_composite_part(attr)
    key = COMPOSITE_KEY_NAMESPACE + object_type + _MIN_UNICODE_RUNE
    for attr in attributes:
        key += attr + _MIN_UNICODE_RUNE
    return key


def split_composite_key(key: str) -> tuple[str, list[str]]:
    if not key.startswith(COMPOSITE_KEY_NAMESPACE):
        raise ValidationError(f"not a composite key: {key!r}")
    parts = key[1:].split(_MIN_UNICODE_RUNE)
    # trailing delimiter leaves an empty final element
    return parts[0], parts[1:-1]


def _validate_composite_part(part: str) -> None:
    if _MIN_UNICODE_RUNE in part or _MAX_UNICODE_RUNE in part:
        raise ValidationError(f"composite key part contains a reserved character: {part!r}")


@dataclass(frozen=True)
class Credential:
    """
    Verified creator of a proposal, as attested by the transport.

    The transport has already checked the certificate chain and signature;
    the substrate hands the result to the contract unchanged.
    """

    msp_id: str
    attributes: Mapping[str, Any] = field(default_factory=dict)
    subject: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"msp_id": self.msp_id, "attributes": dict(self.attributes), "subject": self.subject}


@dataclass(frozen=True)
class KeyModification:
    """One committed write to a key, as returned by history queries."""

    tx_id: str
    timestamp: datetime
    value: bytes
    is_delete: bool


@dataclass(frozen=True)
class ChaincodeEvent:
    """
    Notification delivered to subscribers.

    Delivered as (name, originating transaction id, payload). Ordering across
    different records is not guaranteed and delivery may repeat.
    """

    name: str
    tx_id: str
    payload: bytes
    block_number: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "originatingTransactionId": self.tx_id,
            "payload": base64.b64encode(self.payload).decode("ascii"),
        }


class ChaincodeStub(ABC):
    """
    Per-invocation view of the ledger.

    Reads see the snapshot taken when the invocation started; writes are
    buffered and only take effect if the substrate commits the transaction.
    """

    # -------------------------------------------------------------------------
    # Proposal context
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_tx_id(self) -> str:
        ...

    @abstractmethod
    def get_tx_timestamp(self) -> datetime:
        """Deterministic transaction clock, identical for every endorser."""
        ...

    @abstractmethod
    def get_creator(self) -> Credential | None:
        ...

    @abstractmethod
    def get_transient(self) -> Mapping[str, bytes]:
        """Out-of-band proposal data. Never written to the block log."""
        ...

    # -------------------------------------------------------------------------
    # Public state
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_state(self, key: str) -> bytes | None:
        ...

    @abstractmethod
    def put_state(self, key: str, value: bytes) -> None:
        ...

    @abstractmethod
    def get_state_by_partial_composite_key(
        self, object_type: str, attributes: list[str]
    ) -> Iterator[tuple[str, bytes]]:
        ...

    @abstractmethod
    def get_history_for_key(self, key: str) -> Iterator[KeyModification]:
        ...

    @abstractmethod
    def set_state_validation_parameter(self, key: str, policy: bytes) -> None:
        ...

    @abstractmethod
    def get_state_validation_parameter(self, key: str) -> bytes | None:
        ...

    # -------------------------------------------------------------------------
    # Private partitions
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_private_data(self, collection: str, key: str) -> bytes | None:
        ...

    @abstractmethod
    def put_private_data(self, collection: str, key: str, value: bytes) -> None:
        ...

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    @abstractmethod
    def set_event(self, name: str, payload: bytes) -> None:
        ...

    @abstractmethod
    def get_event(self) -> tuple[str, bytes] | None:
        ...

    # Composite key helpers are pure and shared by every stub.

    def create_composite_key(self, object_type: str, attributes: list[str]) -> str:
        return create_composite_key(object_type, attributes)

    def split_composite_key(self, key: str) -> tuple[str, list[str]]:
        return split_composite_key(key)
