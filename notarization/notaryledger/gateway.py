"""
Gateway: single entry point for submitting and evaluating transactions.

Orchestrates: proposal -> simulate on each endorsing peer -> compare -> commit

Key invariants:
- Every endorsing peer simulates against the same snapshot with the same
  transaction clock; any divergence rejects the proposal
- A contract error on simulation aborts the proposal; nothing is committed
- Commit rejections are recorded in the block log before being raised
- evaluate() never commits
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Mapping

from rich.console import Console

from .config import NotaryConfig, configure_logging
from .contract import NotarizationContract, TransactionContext, get_transaction, invoke
from .errors import (
    EndorsementMismatch,
    EndorsementPolicyFailure,
    LedgerError,
    MVCCConflict,
    ValidationError,
)
from .substrate.endorsement import ValidationPolicy
from .substrate.rwset import Proposal, ReadWriteSet, TransactionEnvelope
from .substrate.simulator import TransactionSimulator
from .substrate.stub import ChaincodeEvent, Credential
from .substrate.world_state import (
    ENDORSEMENT_POLICY_FAILURE,
    MVCC_READ_CONFLICT,
    PHANTOM_READ_CONFLICT,
    CommitResult,
    WorldState,
)
from .util import new_ulid

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TransactionResult:
    """Result of a committed submit()."""

    tx_id: str
    block_number: int
    response: bytes
    endorsers: frozenset[str]

    def json(self) -> Any:
        return json.loads(self.response) if self.response else None


class Gateway:
    """
    Client-side entry point to the reference substrate.

    The transaction clock and transaction ids are assigned here, outside the
    contract, once per proposal.
    """

    def __init__(
        self,
        world_state: WorldState,
        *,
        config: NotaryConfig | None = None,
        console: Console | None = None,
        clock: Callable[[], datetime] | None = None,
        contract: NotarizationContract | None = None,
    ):
        self.world_state = world_state
        self.config = config or NotaryConfig()
        self.console = console or Console(stderr=True)
        self.clock = clock or _utc_now
        self.contract = contract or NotarizationContract()

    @classmethod
    def open(cls, ledger_dir: Path, *, config: NotaryConfig | None = None, **kwargs: Any) -> Gateway:
        config = config or NotaryConfig()
        configure_logging(config.log_level)
        return cls(WorldState(ledger_dir, channel_orgs=config.channel_orgs), config=config, **kwargs)

    # -------------------------------------------------------------------------
    # Proposal and simulation
    # -------------------------------------------------------------------------

    def _proposal(
        self,
        creator: Credential,
        function: str,
        args: Iterable[Any],
        *,
        transient: Mapping[str, bytes] | None,
        timestamp: datetime | None,
        tx_id: str | None,
    ) -> Proposal:
        if get_transaction(function) is None:
            raise ValidationError(f"unknown transaction: {function}")
        return Proposal(
            tx_id=tx_id or new_ulid(),
            timestamp=timestamp or self.clock(),
            creator=creator,
            function=function,
            args=tuple(_encode_arg(a) for a in args),
            transient=dict(transient or {}),
        )

    def _simulate(self, proposal: Proposal, peer_org: str) -> tuple[ReadWriteSet, bytes]:
        stub = TransactionSimulator(self.world_state, proposal, peer_org=peer_org)
        ctx = TransactionContext(stub=stub, config=self.config)
        response = invoke(ctx, proposal.function, proposal.args, contract=self.contract)
        return stub.rwset, response

    def _discover_endorsers(self, caller_org: str, rwset: ReadWriteSet) -> set[str]:
        """Caller's organization plus every organization a written key's policy names."""
        required = {caller_org}
        for key in rwset.written_keys():
            raw = self.world_state.get_metadata(key)
            if raw is not None:
                required |= ValidationPolicy.from_bytes(raw).orgs
        members = {org for org in required if self.config.is_channel_member(org)}
        return members or {caller_org}

    # -------------------------------------------------------------------------
    # evaluate(): read-only
    # -------------------------------------------------------------------------

    def evaluate(
        self,
        creator: Credential,
        function: str,
        *args: Any,
        transient: Mapping[str, bytes] | None = None,
        timestamp: datetime | None = None,
    ) -> bytes:
        """
        Simulate on the caller's own peer and return the response.

        Only read-only transactions may be evaluated.

        Raises:
            ValidationError: the transaction changes state and must be submitted.
        """
        spec = get_transaction(function)
        if spec is not None and not spec.read_only:
            raise ValidationError(f"{function} changes state; submit it instead")
        proposal = self._proposal(creator, function, args, transient=transient, timestamp=timestamp, tx_id=None)
        _, response = self._simulate(proposal, creator.msp_id)
        return response

    def evaluate_json(self, creator: Credential, function: str, *args: Any, **kwargs: Any) -> Any:
        response = self.evaluate(creator, function, *args, **kwargs)
        return json.loads(response) if response else None

    # -------------------------------------------------------------------------
    # endorse() / commit() / submit()
    # -------------------------------------------------------------------------

    def endorse(
        self,
        creator: Credential,
        function: str,
        *args: Any,
        transient: Mapping[str, bytes] | None = None,
        endorsing_orgs: Iterable[str] | None = None,
        timestamp: datetime | None = None,
        tx_id: str | None = None,
    ) -> TransactionEnvelope:
        """
        Collect endorsements for a proposal.

        Args:
            creator: Verified caller credential
            function: Transaction name (e.g., "InstrumentIssue")
            args: Positional string arguments
            transient: Out-of-band data, never written to the block log
            endorsing_orgs: Peers to simulate on. Defaults to discovery.
            timestamp: Transaction clock value. Defaults to now.
            tx_id: Transaction id. Defaults to a fresh ULID.

        Returns:
            TransactionEnvelope ready for commit()
        """
        proposal = self._proposal(creator, function, args, transient=transient, timestamp=timestamp, tx_id=tx_id)
        self.console.print(f"Endorsing {function} ({proposal.tx_id})...", style="dim")

        if endorsing_orgs is not None:
            orgs = sorted(set(endorsing_orgs))
            if not orgs:
                raise ValidationError("at least one endorsing organization is required")
            first = orgs[0]
            rwset, response = self._simulate(proposal, first)
        else:
            first = creator.msp_id
            rwset, response = self._simulate(proposal, first)
            orgs = sorted(self._discover_endorsers(creator.msp_id, rwset))

        reference = rwset.to_dict()
        for org in orgs:
            if org == first:
                continue
            other_rwset, other_response = self._simulate(proposal, org)
            if other_rwset.to_dict() != reference or other_response != response:
                self.console.print(f"endorsement mismatch from {org}", style="bold red")
                raise EndorsementMismatch(f"peer of {org} produced a different result for {proposal.tx_id}")

        logger.debug("proposal %s endorsed by %s", proposal.tx_id, orgs)
        return TransactionEnvelope(
            proposal=proposal,
            rwset=rwset,
            endorsers=frozenset(orgs),
            response=response,
        )

    def commit(self, envelope: TransactionEnvelope) -> TransactionResult:
        """
        Order and commit an endorsed transaction.

        Raises:
            MVCCConflict: something it read changed after simulation
            EndorsementPolicyFailure: endorsers do not satisfy a key's policy
            LedgerError: any other invalidation
        """
        result = self.world_state.commit(envelope)
        if not result.valid:
            self.console.print(
                f"{envelope.proposal.function} ({result.tx_id}) invalidated: {result.validation_code}",
                style="bold red",
            )
            raise _commit_error(result)

        self.console.print(
            f"{envelope.proposal.function} committed in block {result.block_number}",
            style="dim",
        )
        return TransactionResult(
            tx_id=result.tx_id,
            block_number=result.block_number,
            response=envelope.response,
            endorsers=envelope.endorsers,
        )

    def submit(
        self,
        creator: Credential,
        function: str,
        *args: Any,
        transient: Mapping[str, bytes] | None = None,
        endorsing_orgs: Iterable[str] | None = None,
        timestamp: datetime | None = None,
    ) -> TransactionResult:
        """Endorse then commit; all or nothing."""
        envelope = self.endorse(
            creator,
            function,
            *args,
            transient=transient,
            endorsing_orgs=endorsing_orgs,
            timestamp=timestamp,
        )
        return self.commit(envelope)

    # -------------------------------------------------------------------------
    # Event feed
    # -------------------------------------------------------------------------

    def events(self, start_block: int = 0) -> Iterator[ChaincodeEvent]:
        """Committed events from `start_block` on. Subscribers must tolerate replays."""
        return self.world_state.events(start_block)


def _encode_arg(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"))
    return str(value)


def _commit_error(result: CommitResult) -> LedgerError:
    message = f"transaction {result.tx_id} invalidated ({result.validation_code}): {result.reason}"
    if result.validation_code in {MVCC_READ_CONFLICT, PHANTOM_READ_CONFLICT}:
        return MVCCConflict(message)
    if result.validation_code == ENDORSEMENT_POLICY_FAILURE:
        return EndorsementPolicyFailure(message)
    return LedgerError(message)
