"""Pydantic response schema for POST /keeper/auto-manage."""

from pydantic import BaseModel

from src.pm_keeper.domain.models import AutoManageResult
from src.pm_round.application.schemas import AdvanceResponse


class AutoManageResponse(BaseModel):
    action: str
    round_id: int
    time_remaining: int
    expiry_time_secs: int | None
    advance: AdvanceResponse | None

    @classmethod
    def from_domain(cls, r: AutoManageResult) -> "AutoManageResponse":
        return cls(
            action=r.action.value,
            round_id=r.round_id,
            time_remaining=r.time_remaining,
            expiry_time_secs=r.expiry_time_secs,
            advance=AdvanceResponse.from_domain(r.advance) if r.advance else None,
        )
