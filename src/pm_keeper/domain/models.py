"""Auto-manager evaluation result."""

from dataclasses import dataclass

from src.pm_common.enums import AutoManageAction
from src.pm_round.domain.models import AdvanceResult


@dataclass(frozen=True)
class AutoManageResult:
    action: AutoManageAction
    round_id: int
    time_remaining: int = 0
    expiry_time_secs: int | None = None
    advance: AdvanceResult | None = None  # set when a settle/start happened
