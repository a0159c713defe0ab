"""Tests for organization-private records."""

from __future__ import annotations

import base64

import pytest

from notaryledger.contract import private_key
from notaryledger.errors import MissingPayload, NotFound, PrivateDataAccessDenied, ValidationError
from notaryledger.substrate.stub import implicit_collection
from notaryledger.substrate.world_state import WorldState

ORG1 = "Org1MSP"
ORG2 = "Org2MSP"

BLOB = b"scanned-deed-page-1: 123 Main St"


class TestPutPrivateRecord:
    def test_stored_in_callers_partition(self, gateway, notary):
        result = gateway.submit(notary, "PutPrivateRecord", "C-1", transient={"private": BLOB})

        assert result.response == b""
        assert gateway.world_state.get_private(implicit_collection(ORG1), private_key("C-1")) == BLOB

    def test_any_role_may_write_own_partition(self, gateway, clerk):
        gateway.submit(clerk, "PutPrivateRecord", "C-1", transient={"private": BLOB})

        data = gateway.evaluate_json(clerk, "GetPrivateRecord", "C-1")
        assert data == {"caseId": "C-1", "data": base64.b64encode(BLOB).decode("ascii")}

    @pytest.mark.parametrize("transient", [None, {}, {"private": b""}, {"other": BLOB}])
    def test_missing_blob(self, gateway, notary, transient):
        with pytest.raises(MissingPayload, match="transient private missing"):
            gateway.submit(notary, "PutPrivateRecord", "C-1", transient=transient)

        assert gateway.world_state.height == 0

    def test_accepts_legacy_transient_key(self, gateway, notary):
        gateway.submit(notary, "PutPrivateRecord", "C-1", transient={"pii": BLOB})
        assert gateway.world_state.get_private(implicit_collection(ORG1), private_key("C-1")) == BLOB

    def test_configured_key_wins_over_legacy_key(self, gateway, notary):
        gateway.submit(notary, "PutPrivateRecord", "C-1", transient={"private": BLOB, "pii": b"stale"})
        assert gateway.world_state.get_private(implicit_collection(ORG1), private_key("C-1")) == BLOB

    def test_missing_case_id(self, gateway, notary):
        with pytest.raises(ValidationError):
            gateway.submit(notary, "PutPrivateRecord", "", transient={"private": BLOB})

    def test_blob_never_in_block_log(self, gateway, notary):
        gateway.submit(notary, "PutPrivateRecord", "C-1", transient={"private": BLOB})

        log = gateway.world_state.blocks_path.read_text(encoding="utf-8")
        assert BLOB.decode() not in log
        assert base64.b64encode(BLOB).decode("ascii") not in log
        assert "private_writes" in log


class TestPartitionIsolation:
    def test_other_org_sees_only_its_own_partition(self, gateway, notary, other_notary):
        gateway.submit(notary, "PutPrivateRecord", "C-1", transient={"private": BLOB})

        with pytest.raises(NotFound):
            gateway.evaluate(other_notary, "GetPrivateRecord", "C-1")

    def test_same_case_id_per_org(self, gateway, notary, other_notary):
        gateway.submit(notary, "PutPrivateRecord", "C-1", transient={"private": b"org1 copy"})
        gateway.submit(other_notary, "PutPrivateRecord", "C-1", transient={"private": b"org2 copy"})

        org1 = gateway.evaluate_json(notary, "GetPrivateRecord", "C-1")
        org2 = gateway.evaluate_json(other_notary, "GetPrivateRecord", "C-1")
        assert base64.b64decode(org1["data"]) == b"org1 copy"
        assert base64.b64decode(org2["data"]) == b"org2 copy"

    def test_peer_cannot_read_foreign_partition(self, make_stub, notary):
        stub = make_stub(notary, peer_org=ORG2)

        with pytest.raises(PrivateDataAccessDenied):
            stub.get_private_data(implicit_collection(ORG1), private_key("C-1"))

    def test_private_values_survive_reload(self, gateway, notary, ledger_dir):
        gateway.submit(notary, "PutPrivateRecord", "C-1", transient={"private": BLOB})

        reloaded = WorldState(ledger_dir)
        assert reloaded.get_private(implicit_collection(ORG1), private_key("C-1")) == BLOB
