"""Tests for caller identity resolution."""

from __future__ import annotations

import pytest

from notaryledger.errors import IdentityError
from notaryledger.identity import CallerIdentity, resolve_caller
from notaryledger.substrate.stub import Credential

ORG1 = "Org1MSP"


class TestResolveCaller:
    def test_resolves_org_and_attributes(self, make_stub, notary):
        caller = resolve_caller(make_stub(notary))

        assert caller == CallerIdentity(organization=ORG1, attributes={"role": "NOTARY"})
        assert caller.attribute("role") == "NOTARY"
        assert caller.attribute("missing") is None

    def test_no_creator_is_identity_error(self, make_stub):
        with pytest.raises(IdentityError):
            resolve_caller(make_stub(None))

    @pytest.mark.parametrize("msp_id", ["", "   "])
    def test_empty_organization_is_identity_error(self, make_stub, msp_id):
        stub = make_stub(Credential(msp_id=msp_id), peer_org=ORG1)
        with pytest.raises(IdentityError, match="organization"):
            resolve_caller(stub)

    def test_non_string_attribute_is_identity_error(self, make_stub):
        stub = make_stub(Credential(msp_id=ORG1, attributes={"role": ["NOTARY"]}))
        with pytest.raises(IdentityError, match="role"):
            resolve_caller(stub)

    def test_malformed_attribute_container_is_identity_error(self, make_stub):
        stub = make_stub(Credential(msp_id=ORG1, attributes=["role=NOTARY"]))  # type: ignore[arg-type]
        with pytest.raises(IdentityError, match="malformed"):
            resolve_caller(stub)

    def test_resolved_fresh_per_invocation(self, make_stub, notary, supervisor):
        first = resolve_caller(make_stub(notary))
        second = resolve_caller(make_stub(supervisor))

        assert first.attribute("role") == "NOTARY"
        assert second.attribute("role") == "SUPERVISOR"
