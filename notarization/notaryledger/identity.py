"""
Caller identity for the current invocation.

The transport has already verified the caller's credential; this module only
turns what the substrate attests into an {organization, attributes} value.
Resolve it fresh inside every transaction function. One process may serve
different callers back to back, so nothing here is cached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from .errors import IdentityError
from .substrate.stub import ChaincodeStub


@dataclass(frozen=True)
class CallerIdentity:
    organization: str
    attributes: Mapping[str, str] = field(default_factory=dict)

    def attribute(self, name: str) -> str | None:
        return self.attributes.get(name)


def resolve_caller(stub: ChaincodeStub) -> CallerIdentity:
    """
    Resolve the invoking organization and its role attributes.

    Raises:
        IdentityError: no verified creator, empty organization, or
            attributes that are not a string-to-string mapping.
    """
    creator = stub.get_creator()
    if creator is None:
        raise IdentityError("no verified caller identity on this invocation")

    org = creator.msp_id
    if not isinstance(org, str) or not org.strip():
        raise IdentityError("caller organization identifier is missing")

    raw_attrs = creator.attributes
    if raw_attrs is None:
        raw_attrs = {}
    if not isinstance(raw_attrs, Mapping):
        raise IdentityError("caller attributes are malformed")
    for key, value in raw_attrs.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise IdentityError(f"caller attribute {key!r} is malformed")

    return CallerIdentity(organization=org.strip(), attributes=dict(raw_attrs))
