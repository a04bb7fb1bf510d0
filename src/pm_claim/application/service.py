"""ClaimService — evaluate and submit per-user claims.

The keeper account submits ``claim(round_id, user)`` on the user's behalf;
the contract pays the user, not the sender. Every precondition is read from
the ledger views immediately before submitting, under the keeper's signer
lock, so two concurrent claims for the same bet cannot both reach the
ledger.
"""

import logging
from typing import Annotated

from fastapi import Depends

from src.pm_claim.domain.models import (
    ClaimableReward,
    ClaimableSummary,
    ClaimAllItem,
    ClaimResult,
)
from src.pm_common.enums import ClaimOutcome
from src.pm_common.errors import (
    AlreadyClaimedError,
    AppError,
    BetNotFoundError,
    KeeperNotConfiguredError,
    RoundNotFoundError,
    RoundNotSettledError,
)
from src.pm_ledger.application.service import (
    get_keeper_identity,
    get_ledger_gateway,
    get_submitter,
)
from src.pm_ledger.application.signer_lock import SignerLocks, get_signer_locks
from src.pm_ledger.application.submitter import TransactionSubmitter
from src.pm_ledger.domain.gateway import LedgerViewProtocol
from src.pm_ledger.domain.models import EntryCall, KeeperIdentity

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_ROUNDS = 20


class ClaimService:
    def __init__(
        self,
        ledger: LedgerViewProtocol,
        submitter: TransactionSubmitter,
        signer: KeeperIdentity | None,
        locks: SignerLocks | None = None,
    ) -> None:
        self._ledger = ledger
        self._submitter = submitter
        self._signer = signer
        self._locks = locks or get_signer_locks()

    async def _check_claimable(self, round_id: int, user_address: str) -> int:
        """Return the potential payout; raises when the claim is not possible at all."""
        current = await self._ledger.get_round(round_id)
        if current is None:
            raise RoundNotFoundError(round_id)
        if not current.settled:
            raise RoundNotSettledError(round_id)
        bet = await self._ledger.get_user_bet(round_id, user_address)
        if bet is None:
            raise BetNotFoundError(round_id, user_address)
        if bet.claimed:
            raise AlreadyClaimedError(round_id, user_address)
        return await self._ledger.calculate_potential_payout(round_id, user_address)

    async def claim(self, round_id: int, user_address: str) -> ClaimResult:
        """NO_WINNINGS (losing side) is a normal outcome, not an error."""
        if self._signer is None:
            raise KeeperNotConfiguredError()
        async with self._locks.for_signer(self._signer.address):
            payout = await self._check_claimable(round_id, user_address)
            if payout <= 0:
                logger.info("No winnings for %s in round %d", user_address, round_id)
                return ClaimResult(
                    outcome=ClaimOutcome.NO_WINNINGS, round_id=round_id, user_address=user_address
                )
            receipt = await self._submitter.submit_call(
                EntryCall("claim", (round_id, user_address)), self._signer
            )
        logger.info(
            "Claimed %d octas for %s in round %d: %s",
            payout,
            user_address,
            round_id,
            receipt.transaction_hash,
        )
        return ClaimResult(
            outcome=ClaimOutcome.CLAIMED,
            round_id=round_id,
            user_address=user_address,
            payout=payout,
            transaction_hash=receipt.transaction_hash,
        )

    async def list_claimable(
        self, user_address: str, lookback: int = DEFAULT_LOOKBACK_ROUNDS
    ) -> ClaimableSummary:
        """Scan the last ``lookback`` rounds, newest first. Read-only."""
        current_round_id = await self._ledger.get_current_round_id()
        first = max(1, current_round_id - lookback + 1)
        items: list[ClaimableReward] = []
        for round_id in range(current_round_id, first - 1, -1):
            bet = await self._ledger.get_user_bet(round_id, user_address)
            if bet is None or bet.claimed:
                continue
            current = await self._ledger.get_round(round_id)
            if current is None or not current.settled:
                continue
            payout = await self._ledger.calculate_potential_payout(round_id, user_address)
            if payout <= 0:
                continue
            items.append(
                ClaimableReward(
                    round_id=round_id,
                    bet_amount=bet.amount,
                    side=bet.side,
                    payout=payout,
                    start_price=current.start_price,
                    end_price=current.end_price,
                )
            )
        return ClaimableSummary(user_address=user_address, items=items)

    async def claim_all(
        self, user_address: str, lookback: int = DEFAULT_LOOKBACK_ROUNDS
    ) -> list[ClaimAllItem]:
        """Claim every claimable round one at a time; one failure does not stop the rest."""
        summary = await self.list_claimable(user_address, lookback)
        results: list[ClaimAllItem] = []
        for reward in summary.items:
            try:
                result = await self.claim(reward.round_id, user_address)
            except AppError as exc:
                logger.warning(
                    "claim-all: round %d for %s failed: %s", reward.round_id, user_address, exc
                )
                results.append(
                    ClaimAllItem(round_id=reward.round_id, success=False, error=exc.message)
                )
                continue
            results.append(
                ClaimAllItem(
                    round_id=reward.round_id,
                    success=result.outcome is ClaimOutcome.CLAIMED,
                    payout=result.payout,
                    transaction_hash=result.transaction_hash,
                    error=None if result.outcome is ClaimOutcome.CLAIMED else "No winnings",
                )
            )
        return results


def get_claim_service(
    signer: Annotated[KeeperIdentity, Depends(get_keeper_identity)],
) -> ClaimService:
    """FastAPI dependency."""
    return ClaimService(get_ledger_gateway(), get_submitter(), signer)


def get_claim_query_service() -> ClaimService:
    """FastAPI dependency for read-only listing; works without a keeper key."""
    return ClaimService(get_ledger_gateway(), get_submitter(), None)
