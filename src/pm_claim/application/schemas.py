"""Pydantic schemas for pm_claim API requests and responses."""

from pydantic import BaseModel, Field

from src.pm_claim.domain.models import ClaimableSummary, ClaimAllItem, ClaimResult
from src.pm_common.micro_units import octas_to_display

# Aptos account address: 0x + 1..64 hex digits (short form allowed)
_ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{1,64}$"

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ClaimRequest(BaseModel):
    round_id: int = Field(..., gt=0)
    user_address: str = Field(..., pattern=_ADDRESS_PATTERN)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ClaimResponse(BaseModel):
    outcome: str
    round_id: int
    user_address: str
    payout: int
    payout_display: str
    transaction_hash: str | None

    @classmethod
    def from_domain(cls, r: ClaimResult) -> "ClaimResponse":
        return cls(
            outcome=r.outcome.value,
            round_id=r.round_id,
            user_address=r.user_address,
            payout=r.payout,
            payout_display=octas_to_display(r.payout),
            transaction_hash=r.transaction_hash,
        )


class ClaimableRewardOut(BaseModel):
    round_id: int
    bet_amount: int
    side: str
    payout: int
    profit: int
    start_price: int
    end_price: int | None


class ClaimableSummaryResponse(BaseModel):
    user_address: str
    count: int
    total_amount: int
    total_amount_display: str
    items: list[ClaimableRewardOut]

    @classmethod
    def from_domain(cls, s: ClaimableSummary) -> "ClaimableSummaryResponse":
        return cls(
            user_address=s.user_address,
            count=s.count,
            total_amount=s.total_amount,
            total_amount_display=octas_to_display(s.total_amount),
            items=[
                ClaimableRewardOut(
                    round_id=i.round_id,
                    bet_amount=i.bet_amount,
                    side=i.side.value,
                    payout=i.payout,
                    profit=i.profit,
                    start_price=i.start_price,
                    end_price=i.end_price,
                )
                for i in s.items
            ],
        )


class ClaimAllItemOut(BaseModel):
    round_id: int
    success: bool
    payout: int
    transaction_hash: str | None
    error: str | None


class ClaimAllResponse(BaseModel):
    user_address: str
    claimed_count: int
    failed_count: int
    total_claimed: int
    results: list[ClaimAllItemOut]

    @classmethod
    def from_domain(cls, user_address: str, items: list[ClaimAllItem]) -> "ClaimAllResponse":
        return cls(
            user_address=user_address,
            claimed_count=sum(1 for i in items if i.success),
            failed_count=sum(1 for i in items if not i.success),
            total_claimed=sum(i.payout for i in items if i.success),
            results=[
                ClaimAllItemOut(
                    round_id=i.round_id,
                    success=i.success,
                    payout=i.payout,
                    transaction_hash=i.transaction_hash,
                    error=i.error,
                )
                for i in items
            ],
        )
