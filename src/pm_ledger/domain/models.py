"""Domain models for pm_ledger — pure dataclasses, no I/O.

Round and Bet mirror the contract's view functions. The keeper never caches
them beyond one evaluation pass; every decision re-reads the ledger.
"""

from dataclasses import dataclass, field
from typing import Any

from src.pm_common.enums import BetSide

# Node error signature for a transaction whose declared sequence number the
# ledger has already consumed.
STALE_SEQUENCE_SIGNATURE = "SEQUENCE_NUMBER_TOO_OLD"


@dataclass(frozen=True)
class Round:
    round_id: int
    start_price: int          # micro-units
    expiry_time_secs: int     # absolute Unix seconds
    settled: bool
    end_price: int | None     # micro-units, None until settled

    def is_expired(self, now: int) -> bool:
        return now >= self.expiry_time_secs

    def remaining_secs(self, now: int) -> int:
        return max(0, self.expiry_time_secs - now)


@dataclass(frozen=True)
class Bet:
    round_id: int
    user: str
    amount: int               # octas
    side: BetSide
    claimed: bool


@dataclass(frozen=True)
class EntryCall:
    """One contract entry point invocation: ``betting::<function>(*arguments)``."""

    function: str
    arguments: tuple[int | str, ...]


@dataclass
class KeeperIdentity:
    """Signing credential plus the last sequence number we saw the ledger expect.

    ``last_sequence_number`` is advisory only; the ledger may already be past it.
    """

    address: str
    credential: Any
    last_sequence_number: int | None = None

    def observe_sequence_number(self, sequence_number: int) -> None:
        self.last_sequence_number = sequence_number


@dataclass(frozen=True)
class Receipt:
    transaction_hash: str
    execution_result: dict[str, Any] = field(default_factory=dict)


@dataclass
class PendingTransactionAttempt:
    """One try inside the submitter retry loop. Never persisted."""

    payload: Any
    attempt: int
    previous_error: Exception | None = None


def is_stale_sequence_error(exc: BaseException) -> bool:
    detail = getattr(exc, "detail", None)
    text = detail if isinstance(detail, str) else str(exc)
    return STALE_SEQUENCE_SIGNATURE in text
