"""
Event emitter.

A state-changing transaction attaches at most one named notification.
Delivery to subscribers is the substrate's job (at least once, possibly
duplicated, unordered across records).
"""

from __future__ import annotations

from typing import Any

from .errors import ValidationError
from .substrate.stub import ChaincodeStub
from .util import canonical_json

# Event names
INSTRUMENT_ISSUED = "instrument.issued"
INSTRUMENT_REVOKED = "instrument.revoked"

EVENT_NAMES = frozenset({INSTRUMENT_ISSUED, INSTRUMENT_REVOKED})

# Payload field documentation for each event
EVENT_PAYLOAD_FIELDS = {
    INSTRUMENT_ISSUED: {
        "id": "Instrument id",
        "instrumentNo": "Human-facing instrument number",
        "issuingOrganization": "Organization that issued the instrument",
        "issuedAt": "Transaction timestamp of issuance (RFC 3339)",
    },
    INSTRUMENT_REVOKED: {
        "id": "Instrument id",
        "reason": "Reason given by the revoking caller (may be empty)",
    },
}


def emit(stub: ChaincodeStub, name: str, payload: dict[str, Any]) -> None:
    """Attach `name` with a canonical-JSON payload to the current transaction."""
    if name not in EVENT_NAMES:
        raise ValidationError(f"unknown event: {name}")
    existing = stub.get_event()
    if existing is not None:
        raise ValidationError(f"event {existing[0]} already emitted in this transaction")
    stub.set_event(name, canonical_json(payload))
