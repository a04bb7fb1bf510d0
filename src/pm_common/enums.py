"""Global enums — stage values must match DB CHECK constraints exactly."""

from enum import Enum


class BetSide(str, Enum):
    UP = "UP"      # favors price increase
    DOWN = "DOWN"  # favors price decrease


class RoundPhase(str, Enum):
    """Lifecycle phase, always re-derived from ledger state."""
    NO_ROUND = "NO_ROUND"
    ACTIVE = "ACTIVE"
    EXPIRED_UNSETTLED = "EXPIRED_UNSETTLED"
    SETTLING = "SETTLING"
    SETTLED = "SETTLED"


class CheckpointStage(str, Enum):
    """Saga stages of one settle -> cooldown -> start advance."""
    SETTLE_SUBMITTED = "SETTLE_SUBMITTED"
    SETTLED_AWAITING_START = "SETTLED_AWAITING_START"
    COMPLETED = "COMPLETED"


class AdvanceOutcome(str, Enum):
    SETTLED_AND_STARTED = "SETTLED_AND_STARTED"
    ALREADY_SETTLED = "ALREADY_SETTLED"
    RESUMED_AND_STARTED = "RESUMED_AND_STARTED"


class AutoManageAction(str, Enum):
    ALREADY_SETTLED = "already_settled"
    STILL_ACTIVE = "still_active"
    SETTLED_AND_STARTED = "settled_and_started"
    RESUMED_AND_STARTED = "resumed_and_started"


class ClaimOutcome(str, Enum):
    CLAIMED = "CLAIMED"
    NO_WINNINGS = "NO_WINNINGS"
