"""Domain models for pm_round — saga checkpoint, phase derivation, results."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.pm_common.enums import AdvanceOutcome, CheckpointStage, RoundPhase
from src.pm_ledger.domain.models import Round


@dataclass
class AdvanceCheckpoint:
    """Durable progress marker of one settle -> cooldown -> start advance."""

    round_id: int
    stage: CheckpointStage
    end_price: int
    settle_tx_hash: str | None = None
    start_tx_hash: str | None = None
    next_start_price: int | None = None
    updated_at: datetime | None = None

    @property
    def is_finished(self) -> bool:
        return self.stage == CheckpointStage.COMPLETED


def derive_phase(
    current: Round | None, now: int, checkpoint: AdvanceCheckpoint | None = None
) -> RoundPhase:
    """Re-derive the lifecycle phase from ledger state; nothing is remembered locally."""
    if current is None:
        return RoundPhase.NO_ROUND
    if current.settled:
        return RoundPhase.SETTLED
    if checkpoint is not None and checkpoint.stage == CheckpointStage.SETTLE_SUBMITTED:
        return RoundPhase.SETTLING
    if current.is_expired(now):
        return RoundPhase.EXPIRED_UNSETTLED
    return RoundPhase.ACTIVE


@dataclass(frozen=True)
class RoundStatus:
    round_id: int
    phase: RoundPhase
    round: Round | None
    time_remaining: int


@dataclass(frozen=True)
class StartedRound:
    start_price: Decimal
    start_price_micro: int
    duration_secs: int
    transaction_hash: str


@dataclass(frozen=True)
class SettledRound:
    round_id: int
    end_price_micro: int
    transaction_hash: str | None


@dataclass(frozen=True)
class AdvanceResult:
    outcome: AdvanceOutcome
    round_id: int
    settled_round: SettledRound | None = None
    next_round: StartedRound | None = None
    cooldown_secs: float = 0.0


@dataclass(frozen=True)
class InitResult:
    already_initialized: bool
    transaction_hash: str | None = None
