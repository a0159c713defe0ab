"""
Secondary index: instrument number -> instrument id.

Entries are composite keys over (lower(instrumentNo), id). Numbers are not
unique on their own; the pair is. Entries are never removed.
"""

from __future__ import annotations

from .substrate.stub import ChaincodeStub

INDEX_NAME = "instrument~no"
INDEX_VALUE = b"\x00"


def normalize_number(instrument_no: str) -> str:
    return instrument_no.lower()


def add_index_entry(stub: ChaincodeStub, instrument_no: str, instrument_id: str) -> str:
    """Write the index entry and return its key."""
    key = stub.create_composite_key(INDEX_NAME, [normalize_number(instrument_no), instrument_id])
    stub.put_state(key, INDEX_VALUE)
    return key


def lookup_ids(stub: ChaincodeStub, instrument_no: str) -> list[str]:
    """Ids indexed under `instrument_no` (case-insensitive), in key order."""
    ids: list[str] = []
    for key, _ in stub.get_state_by_partial_composite_key(INDEX_NAME, [normalize_number(instrument_no)]):
        _, attributes = stub.split_composite_key(key)
        if len(attributes) == 2:
            ids.append(attributes[1])
    return ids
