"""Tests for the instrument-number index and key history."""

from __future__ import annotations

import pytest

from notaryledger.errors import AuthorizationError, NotFound, ValidationError
from notaryledger.index import INDEX_NAME, INDEX_VALUE, add_index_entry, lookup_ids, normalize_number


class TestIndex:
    def test_entry_key_layout(self, make_stub, notary):
        stub = make_stub(notary)
        key = add_index_entry(stub, "HN-2024/07", "INS-7")

        assert key == f"\x00{INDEX_NAME}\x00hn-2024/07\x00INS-7\x00"
        assert stub.rwset.writes[key] == INDEX_VALUE

    def test_normalization_is_lowercase(self):
        assert normalize_number("ABC-01") == "abc-01"

    def test_lookup_sees_only_committed_entries(self, make_stub, notary):
        stub = make_stub(notary)
        add_index_entry(stub, "N-1", "INS-1")

        assert lookup_ids(stub, "N-1") == []

    def test_find_by_number_case_insensitive(self, gateway, notary, make_payload):
        gateway.submit(notary, "InstrumentIssue", make_payload(id="INS-B", instrumentNo="No-7"), False)
        gateway.submit(notary, "InstrumentIssue", make_payload(id="INS-A", instrumentNo="NO-7"), False)
        gateway.submit(notary, "InstrumentIssue", make_payload(id="INS-C", instrumentNo="NO-70"), False)

        assert gateway.evaluate_json(notary, "InstrumentFindByNumber", "no-7") == ["INS-A", "INS-B"]
        assert gateway.evaluate_json(notary, "InstrumentFindByNumber", "NO-70") == ["INS-C"]

    def test_find_unknown_number(self, gateway, notary):
        assert gateway.evaluate_json(notary, "InstrumentFindByNumber", "N-404") == []

    def test_find_requires_number(self, gateway, notary):
        with pytest.raises(ValidationError):
            gateway.evaluate(notary, "InstrumentFindByNumber", "")

    def test_entries_survive_revocation(self, gateway, notary, supervisor, make_payload):
        gateway.submit(notary, "InstrumentIssue", make_payload(), False)
        gateway.submit(supervisor, "InstrumentRevoke", "INS-1", "error")

        assert gateway.evaluate_json(notary, "InstrumentFindByNumber", "N-1") == ["INS-1"]


class TestHistory:
    def test_issue_and_revoke(self, gateway, notary, supervisor, make_payload):
        issued = gateway.submit(notary, "InstrumentIssue", make_payload(), False)
        revoked = gateway.submit(supervisor, "InstrumentRevoke", "INS-1", "error")

        history = gateway.evaluate_json(notary, "InstrumentHistory", "INS-1")

        assert history == [
            {"txId": issued.tx_id, "timestamp": "2024-05-01T09:30:00Z", "isDelete": False, "status": "ISSUED"},
            {"txId": revoked.tx_id, "timestamp": "2024-05-01T09:30:01Z", "isDelete": False, "status": "REVOKED"},
        ]

    def test_unknown_instrument(self, gateway, notary):
        with pytest.raises(NotFound):
            gateway.evaluate(notary, "InstrumentHistory", "INS-404")

    def test_failed_transactions_absent(self, gateway, notary, other_supervisor, make_payload):
        gateway.submit(notary, "InstrumentIssue", make_payload(), False)
        with pytest.raises(AuthorizationError):
            gateway.submit(other_supervisor, "InstrumentRevoke", "INS-1", "nope")

        assert len(gateway.evaluate_json(notary, "InstrumentHistory", "INS-1")) == 1
