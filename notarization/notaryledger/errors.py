"""
Error taxonomy.

Every failure surfaces to the caller with a stable ``kind`` and a message.
Any of these aborts the whole invocation: nothing from a failed invocation
is ever committed.
"""

from __future__ import annotations

from typing import Any


class NotaryError(Exception):
    """Base class for all errors raised by the contract and the substrate."""

    kind = "NotaryError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(NotaryError):
    """Malformed or missing input. Caller error."""

    kind = "ValidationError"

    def __init__(self, message: str, *, fields: list[str] | None = None):
        super().__init__(message)
        self.fields = list(fields or [])

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.fields:
            result["fields"] = list(self.fields)
        return result


class AuthorizationError(NotaryError):
    """Role or organization check failed."""

    kind = "AuthorizationError"


class NotFound(NotaryError):
    """Referenced record is absent."""

    kind = "NotFound"


class MissingPayload(NotaryError):
    """Required out-of-band (transient) data is absent."""

    kind = "MissingPayload"


class IdentityError(NotaryError):
    """Caller identity cannot be resolved. Not retryable without re-authentication."""

    kind = "IdentityError"


class CorruptState(NotaryError):
    """Stored data exists but does not decode. A data-integrity signal."""

    kind = "CorruptState"


# -----------------------------------------------------------------------------
# Substrate failures
# -----------------------------------------------------------------------------


class LedgerError(NotaryError):
    """Raised by the reference substrate, never by contract logic."""

    kind = "LedgerError"


class MVCCConflict(LedgerError):
    """A key or range read during simulation changed before commit."""

    kind = "MVCCConflict"


class EndorsementPolicyFailure(LedgerError):
    """Endorsing organizations do not satisfy a written key's validation policy."""

    kind = "EndorsementPolicyFailure"


class EndorsementMismatch(LedgerError):
    """Endorsing peers produced different simulation results for one proposal."""

    kind = "EndorsementMismatch"


class PrivateDataAccessDenied(LedgerError):
    """A peer touched a private partition its organization does not own."""

    kind = "PrivateDataAccessDenied"
