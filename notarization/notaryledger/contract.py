"""
Instrument lifecycle manager.

States: ISSUED -> REVOKED. ISSUED is only reachable through issue();
REVOKED is terminal. Every transaction function is a deterministic function
of (snapshot, caller, arguments): timestamps come from the transaction clock
and nothing here reads a wall clock or a random source.

Transactions are registered by name and dispatched through invoke(), which
takes string arguments and returns JSON bytes.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from .config import NotaryConfig
from .errors import AuthorizationError, NotFound, MissingPayload, ValidationError
from .events import INSTRUMENT_ISSUED, INSTRUMENT_REVOKED, emit
from .identity import resolve_caller
from .index import add_index_entry, lookup_ids
from .models import (
    STATUS_REVOKED,
    HistoryEntry,
    Instrument,
    IssuePayload,
    VerificationResult,
)
from .policy import (
    attach_validation_policy,
    compute_validation_policy,
    current_validation_policy,
    require_revoke_authority,
    require_role,
)
from .substrate.stub import ChaincodeStub, implicit_collection
from .util import canonical_json, format_rfc3339

logger = logging.getLogger(__name__)

INSTRUMENT_KEY_PREFIX = "INS|"
PRIVATE_KEY_PREFIX = "PRIVATE|"

# Transient key used by clients of the earlier chaincode.
LEGACY_PRIVATE_TRANSIENT_KEY = "pii"


def instrument_key(instrument_id: str) -> str:
    return INSTRUMENT_KEY_PREFIX + instrument_id


def private_key(case_id: str) -> str:
    return PRIVATE_KEY_PREFIX + case_id


@dataclass(frozen=True)
class TransactionContext:
    """What one invocation may touch: the stub and the deployed configuration."""

    stub: ChaincodeStub
    config: NotaryConfig


class NotarizationContract:
    name = "NotarizationContract"

    # -------------------------------------------------------------------------
    # Private partition
    # -------------------------------------------------------------------------

    def put_private_record(self, ctx: TransactionContext, case_id: str) -> None:
        """
        Store the transient blob in the caller organization's own partition.

        The partition is derived from the caller's organization, so a caller
        can never address another organization's partition.
        """
        caller = resolve_caller(ctx.stub)
        if not case_id:
            raise ValidationError("missing required fields: caseId", fields=["caseId"])

        transient_key = ctx.config.private_transient_key
        transient = ctx.stub.get_transient()
        blob = transient.get(transient_key) or transient.get(LEGACY_PRIVATE_TRANSIENT_KEY)
        if not blob:
            raise MissingPayload(f"transient {transient_key} missing")

        collection = implicit_collection(caller.organization)
        ctx.stub.put_private_data(collection, private_key(case_id), blob)
        logger.info("private record for case %s stored in %s", case_id, collection)

    def get_private_record(self, ctx: TransactionContext, case_id: str) -> bytes:
        caller = resolve_caller(ctx.stub)
        if not case_id:
            raise ValidationError("missing required fields: caseId", fields=["caseId"])
        blob = ctx.stub.get_private_data(implicit_collection(caller.organization), private_key(case_id))
        if blob is None:
            raise NotFound(f"private record for case {case_id} not found")
        return blob

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def issue(self, ctx: TransactionContext, payload_json: str, require_extra_approval: bool) -> Instrument:
        stub, config = ctx.stub, ctx.config
        caller = resolve_caller(stub)
        require_role(caller, config.notary_roles, attribute=config.role_attribute)

        payload = IssuePayload.parse(payload_json)
        key = instrument_key(payload.id)

        existing_raw = stub.get_state(key)
        if existing_raw is not None:
            self._check_reissue(ctx, Instrument.from_bytes(existing_raw, key=key), payload, caller.organization)

        instrument = Instrument.issue(
            payload,
            organization=caller.organization,
            issued_at=format_rfc3339(stub.get_tx_timestamp()),
        )
        stub.put_state(key, instrument.to_bytes())
        add_index_entry(stub, instrument.instrument_no, instrument.id)

        extra = {config.oversight_org} if require_extra_approval else set()
        policy = compute_validation_policy(caller.organization, extra)
        previous = current_validation_policy(stub, key)
        if previous is not None and not policy.includes(previous):
            # A re-issue never loosens the quorum already on the record.
            policy = compute_validation_policy(caller.organization, extra | previous.orgs)
        attach_validation_policy(stub, key, policy)

        emit(stub, INSTRUMENT_ISSUED, {
            "id": instrument.id,
            "instrumentNo": instrument.instrument_no,
            "issuingOrganization": instrument.issuing_organization,
            "issuedAt": instrument.issued_at,
        })
        logger.info(
            "issued instrument %s (%s) by %s; policy %s",
            instrument.id,
            instrument.instrument_no,
            instrument.issuing_organization,
            sorted(policy.orgs),
        )
        return instrument

    def _check_reissue(
        self,
        ctx: TransactionContext,
        existing: Instrument,
        payload: IssuePayload,
        organization: str,
    ) -> None:
        if not ctx.config.allow_reissue:
            raise ValidationError(f"instrument {existing.id} already exists", fields=["id"])
        if existing.is_revoked():
            raise ValidationError(f"instrument {existing.id} is revoked and cannot be re-issued", fields=["id"])
        if existing.issuing_organization != organization:
            raise AuthorizationError(
                f"forbidden: instrument {existing.id} was issued by {existing.issuing_organization}"
            )
        if existing.content_hash != payload.content_hash:
            raise ValidationError(
                f"contentHash of instrument {existing.id} cannot change", fields=["contentHash"]
            )

    def get(self, ctx: TransactionContext, instrument_id: str) -> Instrument:
        resolve_caller(ctx.stub)
        return self._load(ctx.stub, instrument_id)

    def _load(self, stub: ChaincodeStub, instrument_id: str) -> Instrument:
        if not instrument_id:
            raise ValidationError("missing required fields: id", fields=["id"])
        key = instrument_key(instrument_id)
        raw = stub.get_state(key)
        if raw is None:
            raise NotFound(f"instrument {instrument_id} not found")
        return Instrument.from_bytes(raw, key=key)

    def verify(self, ctx: TransactionContext, instrument_id: str, candidate_hash: str) -> VerificationResult:
        """Compare a candidate hash with the stored one. A mismatch is a result, not an error."""
        instrument = self.get(ctx, instrument_id)
        return VerificationResult(
            id=instrument.id,
            instrument_no=instrument.instrument_no,
            status=instrument.status,
            issuing_organization=instrument.issuing_organization,
            issued_at=instrument.issued_at,
            hash_match=instrument.content_hash.casefold() == (candidate_hash or "").casefold(),
        )

    def revoke(self, ctx: TransactionContext, instrument_id: str, reason: str) -> Instrument:
        stub, config = ctx.stub, ctx.config
        caller = resolve_caller(stub)
        instrument = self._load(stub, instrument_id)
        require_revoke_authority(
            caller,
            instrument,
            oversight_org=config.oversight_org,
            supervisor_roles=config.supervisor_roles,
            attribute=config.role_attribute,
        )

        if instrument.is_revoked():
            logger.info("instrument %s already revoked; nothing to do", instrument.id)
            return instrument

        instrument.status = STATUS_REVOKED
        instrument.revoked_at = format_rfc3339(stub.get_tx_timestamp())
        if reason:
            instrument.revoked_reason = reason

        key = instrument_key(instrument.id)
        stub.put_state(key, instrument.to_bytes())

        # From here on the oversight organization must endorse every write.
        policy = compute_validation_policy(instrument.issuing_organization, {config.oversight_org})
        attach_validation_policy(stub, key, policy)

        emit(stub, INSTRUMENT_REVOKED, {"id": instrument.id, "reason": reason})
        logger.info("revoked instrument %s by %s", instrument.id, caller.organization)
        return instrument

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def history(self, ctx: TransactionContext, instrument_id: str) -> list[HistoryEntry]:
        resolve_caller(ctx.stub)
        if not instrument_id:
            raise ValidationError("missing required fields: id", fields=["id"])
        key = instrument_key(instrument_id)

        entries: list[HistoryEntry] = []
        for mod in ctx.stub.get_history_for_key(key):
            status = "" if mod.is_delete else Instrument.from_bytes(mod.value, key=key).status
            entries.append(
                HistoryEntry(
                    tx_id=mod.tx_id,
                    timestamp=format_rfc3339(mod.timestamp),
                    is_delete=mod.is_delete,
                    status=status,
                )
            )
        if not entries:
            raise NotFound(f"instrument {instrument_id} not found")
        return entries

    def find_by_number(self, ctx: TransactionContext, instrument_no: str) -> list[str]:
        resolve_caller(ctx.stub)
        if not instrument_no:
            raise ValidationError("missing required fields: instrumentNo", fields=["instrumentNo"])
        return lookup_ids(ctx.stub, instrument_no)


# -----------------------------------------------------------------------------
# Invocation surface
# -----------------------------------------------------------------------------

TransactionFn = Callable[[NotarizationContract, TransactionContext, list[str]], bytes]


@dataclass(frozen=True)
class TransactionSpec:
    name: str
    arity: int
    read_only: bool
    fn: TransactionFn


def _parse_bool(value: str, name: str) -> bool:
    text = str(value).strip().lower()
    if text in {"true", "1"}:
        return True
    if text in {"false", "0", ""}:
        return False
    raise ValidationError(f"{name} must be true or false", fields=[name])


def _put_private_record(c: NotarizationContract, ctx: TransactionContext, args: list[str]) -> bytes:
    c.put_private_record(ctx, args[0])
    return b""


def _get_private_record(c: NotarizationContract, ctx: TransactionContext, args: list[str]) -> bytes:
    blob = c.get_private_record(ctx, args[0])
    return canonical_json({"caseId": args[0], "data": base64.b64encode(blob).decode("ascii")})


def _issue(c: NotarizationContract, ctx: TransactionContext, args: list[str]) -> bytes:
    require_extra = _parse_bool(args[1], "requireExtraApproval")
    return c.issue(ctx, args[0], require_extra).to_bytes()


def _get(c: NotarizationContract, ctx: TransactionContext, args: list[str]) -> bytes:
    return c.get(ctx, args[0]).to_bytes()


def _verify(c: NotarizationContract, ctx: TransactionContext, args: list[str]) -> bytes:
    return canonical_json(c.verify(ctx, args[0], args[1]).to_dict())


def _revoke(c: NotarizationContract, ctx: TransactionContext, args: list[str]) -> bytes:
    return c.revoke(ctx, args[0], args[1]).to_bytes()


def _history(c: NotarizationContract, ctx: TransactionContext, args: list[str]) -> bytes:
    return canonical_json([e.to_dict() for e in c.history(ctx, args[0])])


def _find_by_number(c: NotarizationContract, ctx: TransactionContext, args: list[str]) -> bytes:
    return canonical_json(c.find_by_number(ctx, args[0]))


_TRANSACTIONS: dict[str, TransactionSpec] = {
    spec.name: spec
    for spec in (
        TransactionSpec("PutPrivateRecord", 1, False, _put_private_record),
        TransactionSpec("InstrumentIssue", 2, False, _issue),
        TransactionSpec("InstrumentGet", 1, True, _get),
        TransactionSpec("InstrumentVerify", 2, True, _verify),
        TransactionSpec("InstrumentRevoke", 2, False, _revoke),
        TransactionSpec("InstrumentHistory", 1, True, _history),
        TransactionSpec("InstrumentFindByNumber", 1, True, _find_by_number),
        TransactionSpec("GetPrivateRecord", 1, True, _get_private_record),
    )
}


def get_transaction(name: str) -> TransactionSpec | None:
    return _TRANSACTIONS.get(name)


def list_transactions() -> list[str]:
    return list(_TRANSACTIONS.keys())


def invoke(
    ctx: TransactionContext,
    name: str,
    args: Sequence[str],
    *,
    contract: NotarizationContract | None = None,
) -> bytes:
    """
    Dispatch one invocation by transaction name.

    Raises:
        ValidationError: unknown name or wrong number of arguments
        NotaryError: whatever the transaction function raises
    """
    spec = get_transaction(name)
    if spec is None:
        raise ValidationError(f"unknown transaction: {name}")
    if len(args) != spec.arity:
        raise ValidationError(f"{name} expects {spec.arity} argument(s), got {len(args)}")
    return spec.fn(contract or NotarizationContract(), ctx, [str(a) for a in args])
