"""AutoManagerService — one poll of the keeper loop.

Reads the current round from the ledger and, once it has expired, hands the
oracle's current price to RoundLifecycleService.advance_to_next_round. A
second evaluation right after a successful advance reports STILL_ACTIVE for
the freshly started round, so external triggers may fire as often as they
like.
"""

import logging
from collections.abc import Callable
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.datetime_utils import unix_now
from src.pm_common.enums import AdvanceOutcome, AutoManageAction
from src.pm_common.errors import NoRoundsExistError, RoundNotFoundError
from src.pm_keeper.domain.models import AutoManageResult
from src.pm_ledger.application.service import get_keeper_identity, get_ledger_gateway
from src.pm_ledger.domain.gateway import LedgerViewProtocol
from src.pm_ledger.domain.models import KeeperIdentity
from src.pm_oracle.application.service import PriceOracleService, get_price_oracle
from src.pm_round.application.service import RoundLifecycleService, build_round_service

logger = logging.getLogger(__name__)

_ADVANCE_TO_ACTION = {
    AdvanceOutcome.SETTLED_AND_STARTED: AutoManageAction.SETTLED_AND_STARTED,
    AdvanceOutcome.ALREADY_SETTLED: AutoManageAction.ALREADY_SETTLED,
    AdvanceOutcome.RESUMED_AND_STARTED: AutoManageAction.RESUMED_AND_STARTED,
}


class AutoManagerService:
    def __init__(
        self,
        ledger: LedgerViewProtocol,
        lifecycle: RoundLifecycleService,
        oracle: PriceOracleService,
        clock: Callable[[], int] = unix_now,
    ) -> None:
        self._ledger = ledger
        self._lifecycle = lifecycle
        self._oracle = oracle
        self._clock = clock

    async def evaluate(self, db: AsyncSession) -> AutoManageResult:
        round_id = await self._ledger.get_current_round_id()
        if round_id == 0:
            raise NoRoundsExistError()

        current = await self._ledger.get_round(round_id)
        if current is None:
            raise RoundNotFoundError(round_id)

        if current.settled:
            resumed = await self._lifecycle.resume_pending_advance(db)
            if resumed is not None:
                logger.info("Auto-manage: resumed advance of round %d", resumed.round_id)
                return AutoManageResult(
                    action=AutoManageAction.RESUMED_AND_STARTED,
                    round_id=resumed.round_id,
                    advance=resumed,
                )
            return AutoManageResult(
                action=AutoManageAction.ALREADY_SETTLED,
                round_id=round_id,
                expiry_time_secs=current.expiry_time_secs,
            )

        now = self._clock()
        if not current.is_expired(now):
            remaining = current.remaining_secs(now)
            logger.debug("Auto-manage: round %d active, %ds remaining", round_id, remaining)
            return AutoManageResult(
                action=AutoManageAction.STILL_ACTIVE,
                round_id=round_id,
                time_remaining=remaining,
                expiry_time_secs=current.expiry_time_secs,
            )

        logger.info("Auto-manage: round %d expired, settling and advancing", round_id)
        quote = await self._oracle.fetch_current_price()
        advance = await self._lifecycle.advance_to_next_round(db, round_id, quote.micro_units)
        return AutoManageResult(
            action=_ADVANCE_TO_ACTION[advance.outcome],
            round_id=round_id,
            expiry_time_secs=current.expiry_time_secs,
            advance=advance,
        )


def build_auto_manager(signer: KeeperIdentity) -> AutoManagerService:
    return AutoManagerService(get_ledger_gateway(), build_round_service(signer), get_price_oracle())


def get_auto_manager(
    signer: Annotated[KeeperIdentity, Depends(get_keeper_identity)],
) -> AutoManagerService:
    """FastAPI dependency."""
    return build_auto_manager(signer)
