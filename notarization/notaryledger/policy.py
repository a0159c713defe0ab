"""
Authorization engine.

Two independent axes:
- role: an attribute on the caller's credential, checked before a transition
- organization quorum: a ValidationPolicy attached to a record key after a
  transition, checked by the substrate on every later write to that key

Policies are recomputed wholesale on every state-changing transition, never
merged. Tightening over a record's lifetime is the lifecycle manager's
convention; this module installs whatever it is asked for.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, Iterable

from .errors import AuthorizationError
from .identity import CallerIdentity
from .models import Instrument
from .substrate.endorsement import ValidationPolicy
from .substrate.stub import ChaincodeStub

logger = logging.getLogger(__name__)

ROLE_ATTRIBUTE = "role"


def require_role(
    caller: CallerIdentity,
    allowed_roles: AbstractSet[str],
    *,
    attribute: str = ROLE_ATTRIBUTE,
) -> None:
    """
    Require the caller's role attribute to be one of `allowed_roles`.

    Organization is not checked here.
    """
    role = caller.attribute(attribute)
    if role is None:
        raise AuthorizationError(f"missing attribute: {attribute}")
    if role not in allowed_roles:
        raise AuthorizationError(f"forbidden: role {role} not in {sorted(allowed_roles)}")


def require_revoke_authority(
    caller: CallerIdentity,
    instrument: Instrument,
    *,
    oversight_org: str,
    supervisor_roles: AbstractSet[str],
    attribute: str = ROLE_ATTRIBUTE,
) -> None:
    """
    Dual-path revocation check.

    Oversight organization callers pass without a role check. Everyone else
    must hold a supervisor role inside the instrument's issuing organization.
    """
    if caller.organization == oversight_org:
        logger.debug("revoke of %s authorized by oversight org %s", instrument.id, oversight_org)
        return
    require_role(caller, supervisor_roles, attribute=attribute)
    if caller.organization != instrument.issuing_organization:
        raise AuthorizationError(
            f"forbidden: {caller.organization} did not issue instrument {instrument.id}"
        )


def compute_validation_policy(issuing_org: str, extra_required_orgs: Iterable[str] = ()) -> ValidationPolicy:
    """
    Build the quorum requirement for a record.

    The issuing organization is always required; each extra organization is
    additionally required.
    """
    if not issuing_org:
        raise AuthorizationError("issuing organization is required for a validation policy")
    return ValidationPolicy.of([issuing_org, *extra_required_orgs])


def attach_validation_policy(stub: ChaincodeStub, key: str, policy: ValidationPolicy) -> None:
    """Replace the validation policy on `key`."""
    stub.set_state_validation_parameter(key, policy.to_bytes())


def current_validation_policy(stub: ChaincodeStub, key: str) -> ValidationPolicy | None:
    raw = stub.get_state_validation_parameter(key)
    if raw is None:
        return None
    return ValidationPolicy.from_bytes(raw)


__all__ = [
    "ValidationPolicy",
    "require_role",
    "require_revoke_authority",
    "compute_validation_policy",
    "attach_validation_policy",
    "current_validation_policy",
]
