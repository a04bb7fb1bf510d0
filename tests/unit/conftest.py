"""Unit-test fixtures: an in-memory ledger and checkpoint store.

FakeLedger implements LedgerGatewayProtocol with the contract semantics the
keeper relies on: one sequence number per account, strictly increasing round
ids, settle-once, claim-once and a pari-mutuel payout with a protocol fee.
"""

from dataclasses import dataclass, replace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.pm_common.enums import BetSide
from src.pm_common.errors import LedgerRejectedError
from src.pm_ledger.application.signer_lock import SignerLocks
from src.pm_ledger.application.submitter import TransactionSubmitter
from src.pm_ledger.domain.models import (
    STALE_SEQUENCE_SIGNATURE,
    Bet,
    EntryCall,
    KeeperIdentity,
    Round,
)
from src.pm_oracle.application.service import PriceOracleService
from src.pm_round.application.service import RoundLifecycleService
from src.pm_round.domain.models import AdvanceCheckpoint

KEEPER_ADDRESS = "0xkeeper"
START_TIME = 1_700_000_000


@dataclass
class FakeTransaction:
    call: EntryCall
    sender: str
    sequence_number: int


class FakeLedger:
    def __init__(self, fee_bps: int = 200) -> None:
        self.now = START_TIME
        self.fee_bps = fee_bps
        self.initialized = False
        self.rounds: dict[int, Round] = {}
        self.bets: dict[tuple[int, str], Bet] = {}
        self.sequence_number = 0
        self.submitted: list[EntryCall] = []
        self.stale_failures = 0      # next N submissions are rejected as stale
        self.fail_next: str | None = None  # next submission is rejected with this vm_status

    # --- test helpers ---

    def add_round(self, start_price: int, duration_secs: int, settled: bool = False,
                  end_price: int | None = None) -> Round:
        round_id = len(self.rounds) + 1
        r = Round(round_id, start_price, self.now + duration_secs, settled, end_price)
        self.rounds[round_id] = r
        return r

    def place_bet(self, round_id: int, user: str, amount: int, side: BetSide) -> None:
        self.bets[(round_id, user)] = Bet(round_id, user, amount, side, claimed=False)

    def calls(self, function: str) -> list[EntryCall]:
        return [c for c in self.submitted if c.function == function]

    # --- views ---

    async def get_current_round_id(self) -> int:
        return len(self.rounds)

    async def get_round(self, round_id: int) -> Round | None:
        return self.rounds.get(round_id)

    async def get_user_bet(self, round_id: int, user: str) -> Bet | None:
        return self.bets.get((round_id, user))

    async def calculate_potential_payout(self, round_id: int, user: str) -> int:
        r = self.rounds.get(round_id)
        bet = self.bets.get((round_id, user))
        if r is None or bet is None or bet.claimed or not r.settled or r.end_price is None:
            return 0
        if r.end_price == r.start_price:
            return bet.amount  # tie: stake refunded
        winner = BetSide.UP if r.end_price > r.start_price else BetSide.DOWN
        if bet.side is not winner:
            return 0
        pool = [b for (rid, _), b in self.bets.items() if rid == round_id]
        total = sum(b.amount for b in pool)
        winning = sum(b.amount for b in pool if b.side is winner)
        return total * bet.amount // winning * (10_000 - self.fee_bps) // 10_000

    async def is_initialized(self) -> bool:
        return self.initialized

    # --- transactions ---

    async def build_transaction(self, sender: str, call: EntryCall) -> FakeTransaction:
        return FakeTransaction(call, sender, self.sequence_number)

    async def sign_and_submit(self, signer: KeeperIdentity, transaction: Any) -> str:
        signer.observe_sequence_number(transaction.sequence_number)
        if self.stale_failures > 0:
            self.stale_failures -= 1
            self.sequence_number += 1  # someone else used it
            raise LedgerRejectedError(f"Transaction rejected: {STALE_SEQUENCE_SIGNATURE}")
        if transaction.sequence_number != self.sequence_number:
            raise LedgerRejectedError(f"Transaction rejected: {STALE_SEQUENCE_SIGNATURE}")
        if self.fail_next is not None:
            status, self.fail_next = self.fail_next, None
            raise LedgerRejectedError(status)
        self._execute(transaction.call)
        self.sequence_number += 1
        self.submitted.append(transaction.call)
        return f"0x{self.sequence_number:064x}"

    async def wait_for_transaction(self, transaction_hash: str, timeout_secs: float) -> dict:
        return {"success": True, "vm_status": "Executed successfully", "version": "1",
                "gas_used": "12"}

    def _execute(self, call: EntryCall) -> None:
        args = call.arguments
        if call.function == "init":
            self.initialized = True
        elif call.function == "start_round":
            self.add_round(int(args[0]), int(args[1]))
        elif call.function == "settle":
            r = self.rounds[int(args[0])]
            if r.settled:
                raise LedgerRejectedError("Move abort: E_ALREADY_SETTLED")
            self.rounds[r.round_id] = replace(r, settled=True, end_price=int(args[1]))
        elif call.function == "claim":
            key = (int(args[0]), str(args[1]))
            self.bets[key] = replace(self.bets[key], claimed=True)


class InMemoryCheckpoints:
    def __init__(self) -> None:
        self.rows: dict[int, AdvanceCheckpoint] = {}
        self.history: list[tuple[int, str]] = []

    async def get(self, db: Any, round_id: int) -> AdvanceCheckpoint | None:
        row = self.rows.get(round_id)
        return replace(row) if row is not None else None

    async def save(self, db: Any, checkpoint: AdvanceCheckpoint) -> None:
        self.rows[checkpoint.round_id] = replace(checkpoint)
        self.history.append((checkpoint.round_id, checkpoint.stage.value))

    async def list_unfinished(self, db: Any) -> list[AdvanceCheckpoint]:
        return [replace(c) for c in sorted(self.rows.values(), key=lambda c: -c.round_id)
                if not c.is_finished]

    async def delete(self, db: Any, round_id: int) -> None:
        self.rows.pop(round_id, None)
        self.history.append((round_id, "DELETED"))


def pyth_feed(mantissa: str, expo: int = -8, publish_time: int = START_TIME) -> list[dict]:
    return [{"id": "feed", "price": {"price": mantissa, "expo": expo, "conf": "1",
                                     "publish_time": publish_time}}]


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def checkpoints() -> InMemoryCheckpoints:
    return InMemoryCheckpoints()


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def signer() -> KeeperIdentity:
    return KeeperIdentity(address=KEEPER_ADDRESS, credential=MagicMock())


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(secs: float) -> None:
        sleeps.append(secs)
    return _sleep


@pytest.fixture
def price_source() -> MagicMock:
    """Oracle source; set ``price_source.fetch_latest_price_feeds.return_value``."""
    source = MagicMock()
    source.fetch_latest_price_feeds = AsyncMock(return_value=pyth_feed("850000000"))
    return source


@pytest.fixture
def oracle(price_source) -> PriceOracleService:
    return PriceOracleService(price_source, cache_ttl_secs=0)


@pytest.fixture
def submitter(ledger, fake_sleep) -> TransactionSubmitter:
    return TransactionSubmitter(ledger, max_attempts=3, backoff_secs=1.0, sleep=fake_sleep)


@pytest.fixture
def lifecycle(ledger, submitter, oracle, signer, checkpoints, fake_sleep) -> RoundLifecycleService:
    return RoundLifecycleService(
        ledger,
        submitter,
        oracle,
        signer,
        checkpoints,
        SignerLocks(),
        round_duration_secs=300,
        cooldown_secs=5.0,
        fee_bps=200,
        clock=lambda: ledger.now,
        sleep=fake_sleep,
    )


@pytest.fixture
def set_oracle_price(price_source):
    """Make the oracle answer ``mantissa * 10^expo`` from now on."""
    def _set(mantissa: str, expo: int = -8) -> None:
        price_source.fetch_latest_price_feeds.side_effect = None
        price_source.fetch_latest_price_feeds.return_value = pyth_feed(mantissa, expo)
    return _set
