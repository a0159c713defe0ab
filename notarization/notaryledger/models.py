"""
Instrument data model.

An Instrument is the on-ledger record of a notarized document. Wire format is
camelCase JSON; stored bytes are canonical JSON so every endorsing peer
produces byte-identical writes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from .errors import CorruptState, ValidationError
from .util import canonical_json

# Lifecycle states
STATUS_ISSUED = "ISSUED"
STATUS_REVOKED = "REVOKED"

REQUIRED_ISSUE_FIELDS = ("id", "caseId", "instrumentNo", "contentHash")

# Field names accepted from payloads written for the earlier chaincode.
# The canonical name wins when both are present.
_PAYLOAD_ALIASES = {
    "contentHash": "docHash",
    "offchainLocator": "offchainUri",
    "jurisdictionCode": "province",
    "sequenceNumber": "journalSeq",
    "qrPayload": "qr",
}
_PARTY_ALIASES = {"displayName": "name"}
_SIGNATURE_ALIASES = {
    "subjectName": "subject",
    "certificateSerial": "certSn",
    "algorithm": "algo",
    "timestamp": "time",
}


def _pick(data: dict[str, Any], name: str, aliases: dict[str, str], default: Any = "") -> Any:
    if name in data:
        return data[name]
    alias = aliases.get(name)
    if alias is not None and alias in data:
        return data[alias]
    return default


def _as_str(value: Any, name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string", fields=[name])
    return value


@dataclass(frozen=True)
class PartyRef:
    """Opaque reference to a party external to the ledger."""

    id: str
    role: str = ""
    display_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "role": self.role, "displayName": self.display_name}

    @classmethod
    def from_dict(cls, data: Any) -> PartyRef:
        if not isinstance(data, dict):
            raise ValidationError("parties entries must be objects", fields=["parties"])
        return cls(
            id=_as_str(data.get("id"), "parties.id"),
            role=_as_str(data.get("role"), "parties.role"),
            display_name=_as_str(_pick(data, "displayName", _PARTY_ALIASES), "parties.displayName"),
        )


@dataclass(frozen=True)
class Signature:
    """Attestation attached at issuance. Pre-validated off-chain."""

    subject_name: str
    certificate_serial: str = ""
    algorithm: str = ""
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "subjectName": self.subject_name,
            "certificateSerial": self.certificate_serial,
            "algorithm": self.algorithm,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Signature:
        if not isinstance(data, dict):
            raise ValidationError("signatures entries must be objects", fields=["signatures"])
        values = {
            name: _as_str(_pick(data, name, _SIGNATURE_ALIASES), f"signatures.{name}")
            for name in _SIGNATURE_ALIASES
        }
        return cls(
            subject_name=values["subjectName"],
            certificate_serial=values["certificateSerial"],
            algorithm=values["algorithm"],
            timestamp=values["timestamp"],
        )


@dataclass(frozen=True)
class IssuePayload:
    """Caller-supplied fields of an issue request."""

    id: str
    case_id: str
    instrument_no: str
    content_hash: str
    jurisdiction_code: str = ""
    parties: tuple[PartyRef, ...] = ()
    offchain_locator: str = ""
    sequence_number: int = 0
    qr_payload: str = ""
    signatures: tuple[Signature, ...] = ()

    @classmethod
    def parse(cls, payload_json: str) -> IssuePayload:
        """
        Parse and validate an issue payload.

        Raises:
            ValidationError: invalid JSON, wrongly typed fields, or any of
                id/caseId/instrumentNo/contentHash missing (all are listed).
        """
        try:
            data = json.loads(payload_json)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"invalid payload: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError("invalid payload: expected a JSON object")

        values = {
            name: _as_str(_pick(data, name, _PAYLOAD_ALIASES), name)
            for name in (*REQUIRED_ISSUE_FIELDS, "jurisdictionCode", "offchainLocator", "qrPayload")
        }
        missing = [name for name in REQUIRED_ISSUE_FIELDS if not values[name].strip()]
        if missing:
            raise ValidationError(f"missing required fields: {', '.join(missing)}", fields=missing)

        sequence_number = _pick(data, "sequenceNumber", _PAYLOAD_ALIASES, 0)
        if sequence_number is None:
            sequence_number = 0
        if isinstance(sequence_number, bool) or not isinstance(sequence_number, int):
            raise ValidationError("sequenceNumber must be an integer", fields=["sequenceNumber"])

        parties = data.get("parties") or []
        signatures = data.get("signatures") or []
        if not isinstance(parties, list):
            raise ValidationError("parties must be a list", fields=["parties"])
        if not isinstance(signatures, list):
            raise ValidationError("signatures must be a list", fields=["signatures"])

        return cls(
            id=values["id"],
            case_id=values["caseId"],
            instrument_no=values["instrumentNo"],
            content_hash=values["contentHash"],
            jurisdiction_code=values["jurisdictionCode"],
            parties=tuple(PartyRef.from_dict(p) for p in parties),
            offchain_locator=values["offchainLocator"],
            sequence_number=sequence_number,
            qr_payload=values["qrPayload"],
            signatures=tuple(Signature.from_dict(s) for s in signatures),
        )


@dataclass
class Instrument:
    """
    The record of truth for a notarized document.

    id, content_hash and issuing_organization never change after issuance;
    status only moves ISSUED -> REVOKED.
    """

    id: str
    case_id: str
    instrument_no: str
    issuing_organization: str
    content_hash: str
    issued_at: str
    status: str = STATUS_ISSUED
    jurisdiction_code: str = ""
    parties: list[PartyRef] = field(default_factory=list)
    offchain_locator: str = ""
    revoked_at: str | None = None
    revoked_reason: str | None = None
    sequence_number: int = 0
    qr_payload: str = ""
    signatures: list[Signature] = field(default_factory=list)

    @classmethod
    def issue(cls, payload: IssuePayload, *, organization: str, issued_at: str) -> Instrument:
        return cls(
            id=payload.id,
            case_id=payload.case_id,
            instrument_no=payload.instrument_no,
            issuing_organization=organization,
            content_hash=payload.content_hash,
            issued_at=issued_at,
            status=STATUS_ISSUED,
            jurisdiction_code=payload.jurisdiction_code,
            parties=list(payload.parties),
            offchain_locator=payload.offchain_locator,
            sequence_number=payload.sequence_number,
            qr_payload=payload.qr_payload,
            signatures=list(payload.signatures),
        )

    def is_revoked(self) -> bool:
        return self.status == STATUS_REVOKED

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible dict. Empty optional fields are omitted."""
        result: dict[str, Any] = {
            "id": self.id,
            "caseId": self.case_id,
            "instrumentNo": self.instrument_no,
            "issuingOrganization": self.issuing_organization,
            "jurisdictionCode": self.jurisdiction_code,
            "contentHash": self.content_hash,
            "offchainLocator": self.offchain_locator,
            "issuedAt": self.issued_at,
            "status": self.status,
            "sequenceNumber": self.sequence_number,
            "qrPayload": self.qr_payload,
        }
        if self.parties:
            result["parties"] = [p.to_dict() for p in self.parties]
        if self.signatures:
            result["signatures"] = [s.to_dict() for s in self.signatures]
        if self.revoked_at:
            result["revokedAt"] = self.revoked_at
        if self.revoked_reason:
            result["revokedReason"] = self.revoked_reason
        return result

    def to_bytes(self) -> bytes:
        return canonical_json(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Instrument:
        """
        Build from a stored record.

        Raises:
            ValueError: a stored field has the wrong type.
        """
        def text(name: str) -> str:
            value = data.get(name, "")
            if not isinstance(value, str):
                raise ValueError(f"{name} must be a string, got {type(value).__name__}")
            return value

        def optional_text(name: str) -> str | None:
            value = data.get(name)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{name} must be a string, got {type(value).__name__}")
            return value

        sequence_number = data.get("sequenceNumber", 0)
        if isinstance(sequence_number, bool) or not isinstance(sequence_number, int):
            raise ValueError("sequenceNumber must be an integer")

        return cls(
            id=text("id"),
            case_id=text("caseId"),
            instrument_no=text("instrumentNo"),
            issuing_organization=text("issuingOrganization"),
            content_hash=text("contentHash"),
            issued_at=text("issuedAt"),
            status=text("status"),
            jurisdiction_code=text("jurisdictionCode"),
            parties=[PartyRef.from_dict(p) for p in data.get("parties", [])],
            offchain_locator=text("offchainLocator"),
            revoked_at=optional_text("revokedAt"),
            revoked_reason=optional_text("revokedReason"),
            sequence_number=sequence_number,
            qr_payload=text("qrPayload"),
            signatures=[Signature.from_dict(s) for s in data.get("signatures", [])],
        )

    @classmethod
    def from_bytes(cls, raw: bytes, *, key: str = "") -> Instrument:
        """
        Decode stored bytes.

        Raises:
            CorruptState: bytes are not a JSON object carrying an instrument.
        """
        try:
            data = json.loads(raw)
            if not isinstance(data, dict) or not isinstance(data.get("id"), str):
                raise ValueError("not an instrument object")
            return cls.from_dict(data)
        except (ValueError, TypeError, KeyError, ValidationError) as e:
            raise CorruptState(f"stored instrument {key or '?'} is unreadable: {e}") from e


@dataclass(frozen=True)
class VerificationResult:
    id: str
    instrument_no: str
    status: str
    issuing_organization: str
    issued_at: str
    hash_match: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "instrumentNo": self.instrument_no,
            "status": self.status,
            "issuingOrganization": self.issuing_organization,
            "issuedAt": self.issued_at,
            "hashMatch": self.hash_match,
        }


@dataclass(frozen=True)
class HistoryEntry:
    """One committed modification of an instrument key."""

    tx_id: str
    timestamp: str
    is_delete: bool
    status: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "txId": self.tx_id,
            "timestamp": self.timestamp,
            "isDelete": self.is_delete,
            "status": self.status,
        }
