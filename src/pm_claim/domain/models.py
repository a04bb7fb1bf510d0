"""Domain models for pm_claim — pure dataclasses, no I/O."""

from dataclasses import dataclass, field

from src.pm_common.enums import BetSide, ClaimOutcome


@dataclass(frozen=True)
class ClaimResult:
    outcome: ClaimOutcome
    round_id: int
    user_address: str
    payout: int = 0                     # octas
    transaction_hash: str | None = None


@dataclass(frozen=True)
class ClaimableReward:
    round_id: int
    bet_amount: int                     # octas
    side: BetSide
    payout: int                         # octas
    start_price: int                    # micro-units
    end_price: int | None               # micro-units

    @property
    def profit(self) -> int:
        return self.payout - self.bet_amount


@dataclass(frozen=True)
class ClaimableSummary:
    user_address: str
    items: list[ClaimableReward] = field(default_factory=list)  # newest round first

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def total_amount(self) -> int:
        return sum(i.payout for i in self.items)


@dataclass(frozen=True)
class ClaimAllItem:
    round_id: int
    success: bool
    payout: int = 0
    transaction_hash: str | None = None
    error: str | None = None
