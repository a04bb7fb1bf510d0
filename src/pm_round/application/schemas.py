"""Pydantic schemas for pm_round API requests and responses.

Prices cross the API as decimal strings (``"8.123456"``) next to their
micro-unit integers; the ledger only ever sees the integers.
"""

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from src.pm_common.micro_units import micro_units_to_display, to_micro_units
from src.pm_ledger.domain.models import Round
from src.pm_round.domain.models import (
    AdvanceResult,
    InitResult,
    RoundStatus,
    SettledRound,
    StartedRound,
)

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class SettleRequest(BaseModel):
    round_id: int = Field(..., gt=0)
    end_price: Decimal = Field(..., gt=0, description="End price in quote currency, e.g. 8.5")

    @field_validator("end_price")
    @classmethod
    def at_least_one_micro_unit(cls, v: Decimal) -> Decimal:
        if to_micro_units(v) <= 0:
            raise ValueError("end_price must be at least 0.000001")
        return v


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class InitContractResponse(BaseModel):
    already_initialized: bool
    transaction_hash: str | None

    @classmethod
    def from_domain(cls, r: InitResult) -> "InitContractResponse":
        return cls(already_initialized=r.already_initialized, transaction_hash=r.transaction_hash)


class StartRoundResponse(BaseModel):
    start_price: str
    start_price_micro_units: int
    duration_secs: int
    transaction_hash: str

    @classmethod
    def from_domain(cls, s: StartedRound) -> "StartRoundResponse":
        return cls(
            start_price=str(s.start_price),
            start_price_micro_units=s.start_price_micro,
            duration_secs=s.duration_secs,
            transaction_hash=s.transaction_hash,
        )


class SettledRoundOut(BaseModel):
    round_id: int
    end_price_micro_units: int
    transaction_hash: str | None

    @classmethod
    def from_domain(cls, s: SettledRound) -> "SettledRoundOut":
        return cls(
            round_id=s.round_id,
            end_price_micro_units=s.end_price_micro,
            transaction_hash=s.transaction_hash,
        )


class AdvanceResponse(BaseModel):
    outcome: str
    round_id: int
    settled_round: SettledRoundOut | None
    next_round: StartRoundResponse | None
    cooldown_secs: float

    @classmethod
    def from_domain(cls, r: AdvanceResult) -> "AdvanceResponse":
        return cls(
            outcome=r.outcome.value,
            round_id=r.round_id,
            settled_round=SettledRoundOut.from_domain(r.settled_round) if r.settled_round else None,
            next_round=StartRoundResponse.from_domain(r.next_round) if r.next_round else None,
            cooldown_secs=r.cooldown_secs,
        )


class RoundOut(BaseModel):
    round_id: int
    start_price_micro_units: int
    start_price_display: str
    expiry_time_secs: int
    settled: bool
    end_price_micro_units: int | None
    end_price_display: str | None

    @classmethod
    def from_domain(cls, r: Round) -> "RoundOut":
        return cls(
            round_id=r.round_id,
            start_price_micro_units=r.start_price,
            start_price_display=micro_units_to_display(r.start_price),
            expiry_time_secs=r.expiry_time_secs,
            settled=r.settled,
            end_price_micro_units=r.end_price,
            end_price_display=(
                micro_units_to_display(r.end_price) if r.end_price is not None else None
            ),
        )


class CurrentRoundResponse(BaseModel):
    round_id: int
    phase: str
    round: RoundOut | None
    time_remaining: int

    @classmethod
    def from_domain(cls, s: RoundStatus) -> "CurrentRoundResponse":
        return cls(
            round_id=s.round_id,
            phase=s.phase.value,
            round=RoundOut.from_domain(s.round) if s.round else None,
            time_remaining=s.time_remaining,
        )
