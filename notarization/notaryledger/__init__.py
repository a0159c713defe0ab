"""
Notarization ledger contract.

Records notarized instruments on a permissioned ledger shared by several
organizations. Each instrument carries its document's content hash, who
issued it, and whether it has been revoked. The contract enforces role-based
issuance, dual-path revocation, and per-record endorsement quorums.

Entry points:
- NotarizationContract / invoke(): the contract itself, run by each peer
- Gateway: submit and evaluate transactions against the reference substrate
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import NotaryConfig, configure_logging, load_config
from .contract import (
    NotarizationContract,
    TransactionContext,
    get_transaction,
    invoke,
    list_transactions,
)
from .errors import (
    AuthorizationError,
    CorruptState,
    EndorsementMismatch,
    EndorsementPolicyFailure,
    IdentityError,
    LedgerError,
    MissingPayload,
    MVCCConflict,
    NotaryError,
    NotFound,
    PrivateDataAccessDenied,
    ValidationError,
)
from .gateway import Gateway, TransactionResult
from .models import Instrument, PartyRef, Signature, VerificationResult
from .substrate import Credential, WorldState

__all__ = [
    "__version__",
    # Contract
    "NotarizationContract",
    "TransactionContext",
    "get_transaction",
    "invoke",
    "list_transactions",
    # Models
    "Instrument",
    "PartyRef",
    "Signature",
    "VerificationResult",
    # Gateway
    "Gateway",
    "TransactionResult",
    "Credential",
    "WorldState",
    # Config
    "NotaryConfig",
    "configure_logging",
    "load_config",
    # Errors
    "NotaryError",
    "ValidationError",
    "AuthorizationError",
    "NotFound",
    "MissingPayload",
    "IdentityError",
    "CorruptState",
    "LedgerError",
    "MVCCConflict",
    "EndorsementPolicyFailure",
    "EndorsementMismatch",
    "PrivateDataAccessDenied",
]
