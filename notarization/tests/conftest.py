"""Pytest configuration and fixtures."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterator

import pytest
from rich.console import Console

from notaryledger.config import NotaryConfig
from notaryledger.gateway import Gateway
from notaryledger.substrate.rwset import Proposal
from notaryledger.substrate.simulator import TransactionSimulator
from notaryledger.substrate.stub import Credential
from notaryledger.substrate.world_state import WorldState

ORG1 = "Org1MSP"
ORG2 = "Org2MSP"
OVERSIGHT = "MOJMSP"

BASE_TIME = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


class StepClock:
    """Transaction clock that advances one second per proposal."""

    def __init__(self, start: datetime = BASE_TIME):
        self.current = start - timedelta(seconds=1)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def ledger_dir(tmp_path: Path) -> Path:
    return tmp_path / "ledger"


@pytest.fixture
def world_state(ledger_dir: Path) -> WorldState:
    """Fresh, empty world state."""
    return WorldState(ledger_dir)


@pytest.fixture
def config() -> NotaryConfig:
    return NotaryConfig()


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def gateway(world_state: WorldState, config: NotaryConfig, clock: StepClock) -> Gateway:
    """Gateway over the fresh world state, with console output silenced."""
    return Gateway(world_state, config=config, console=Console(quiet=True), clock=clock)


@pytest.fixture
def package_logger() -> Iterator[logging.Logger]:
    """The package logger, with its handlers and level restored afterwards."""
    logger = logging.getLogger("notaryledger")
    saved_handlers = list(logger.handlers)
    saved_level = logger.level
    yield logger
    logger.handlers = saved_handlers
    logger.setLevel(saved_level)


# -----------------------------------------------------------------------------
# Callers
# -----------------------------------------------------------------------------


@pytest.fixture
def notary() -> Credential:
    return Credential(msp_id=ORG1, attributes={"role": "NOTARY"}, subject="CN=notary1")


@pytest.fixture
def supervisor() -> Credential:
    return Credential(msp_id=ORG1, attributes={"role": "SUPERVISOR"}, subject="CN=supervisor1")


@pytest.fixture
def clerk() -> Credential:
    return Credential(msp_id=ORG1, attributes={"role": "CLERK"}, subject="CN=clerk1")


@pytest.fixture
def oversight() -> Credential:
    """Oversight organization caller; deliberately carries no role attribute."""
    return Credential(msp_id=OVERSIGHT, attributes={}, subject="CN=inspector")


@pytest.fixture
def other_supervisor() -> Credential:
    return Credential(msp_id=ORG2, attributes={"role": "SUPERVISOR"}, subject="CN=supervisor2")


@pytest.fixture
def other_notary() -> Credential:
    return Credential(msp_id=ORG2, attributes={"role": "NOTARY"}, subject="CN=notary2")


# -----------------------------------------------------------------------------
# Builders
# -----------------------------------------------------------------------------


@pytest.fixture
def make_payload() -> Callable[..., str]:
    """Build an issue payload JSON string; keyword overrides replace fields, None drops them."""

    def _make(**overrides: Any) -> str:
        data: dict[str, Any] = {
            "id": "INS-1",
            "caseId": "C-1",
            "instrumentNo": "N-1",
            "contentHash": "h1",
        }
        for name, value in overrides.items():
            if value is None:
                data.pop(name, None)
            else:
                data[name] = value
        return json.dumps(data)

    return _make


@pytest.fixture
def make_stub(world_state: WorldState) -> Callable[..., TransactionSimulator]:
    """Build a simulator stub for direct contract and module tests."""
    counter = {"n": 0}

    def _make(
        creator: Credential | None,
        *,
        transient: dict[str, bytes] | None = None,
        peer_org: str | None = None,
        function: str = "Test",
    ) -> TransactionSimulator:
        counter["n"] += 1
        proposal = Proposal(
            tx_id=f"tx-{counter['n']}",
            timestamp=BASE_TIME,
            creator=creator,  # type: ignore[arg-type]
            function=function,
            transient=dict(transient or {}),
        )
        org = peer_org or (creator.msp_id if creator is not None else ORG1)
        return TransactionSimulator(world_state, proposal, peer_org=org)

    return _make
