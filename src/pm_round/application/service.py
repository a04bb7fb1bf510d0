"""RoundLifecycleService — start, settle and advance rounds on the ledger.

Round state is never remembered here: every operation re-reads the ledger
before acting. All mutating operations hold the keeper's signer lock for
their whole duration, so an advance (settle, cooldown, start) is never
interleaved with another keeper transaction from this process.

advance_to_next_round is a two-step saga over two ledger transactions. The
checkpoint row records how far it got so resume_pending_advance can finish
the start step after a crash between settle and start.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_common.datetime_utils import unix_now
from src.pm_common.enums import AdvanceOutcome, CheckpointStage, RoundPhase
from src.pm_common.errors import (
    LedgerRejectedError,
    RoundAlreadySettledError,
    RoundNotExpiredError,
    RoundNotFoundError,
    RoundStillActiveError,
    StaleSequenceNumberError,
)
from src.pm_ledger.application.service import (
    get_keeper_identity,
    get_ledger_gateway,
    get_submitter,
)
from src.pm_ledger.application.signer_lock import SignerLocks, get_signer_locks
from src.pm_ledger.application.submitter import TransactionSubmitter
from src.pm_ledger.domain.gateway import LedgerViewProtocol
from src.pm_ledger.domain.models import EntryCall, KeeperIdentity, Receipt, Round
from src.pm_oracle.application.service import PriceOracleService, get_price_oracle
from src.pm_round.domain.models import (
    AdvanceCheckpoint,
    AdvanceResult,
    InitResult,
    RoundStatus,
    SettledRound,
    StartedRound,
    derive_phase,
)
from src.pm_round.domain.repository import CheckpointRepositoryProtocol
from src.pm_round.infrastructure.persistence import CheckpointRepository

logger = logging.getLogger(__name__)


class RoundQueryService:
    """Read-only round status; needs no signing key."""

    def __init__(
        self,
        ledger: LedgerViewProtocol,
        checkpoints: CheckpointRepositoryProtocol,
        clock: Callable[[], int] = unix_now,
    ) -> None:
        self._ledger = ledger
        self._checkpoints = checkpoints
        self._clock = clock

    async def describe_current_round(self, db: AsyncSession) -> RoundStatus:
        round_id = await self._ledger.get_current_round_id()
        if round_id == 0:
            return RoundStatus(
                round_id=0, phase=RoundPhase.NO_ROUND, round=None, time_remaining=0
            )
        current = await self._ledger.get_round(round_id)
        if current is None:
            raise RoundNotFoundError(round_id)
        now = self._clock()
        checkpoint = await self._checkpoints.get(db, round_id)
        return RoundStatus(
            round_id=round_id,
            phase=derive_phase(current, now, checkpoint),
            round=current,
            time_remaining=0 if current.settled else current.remaining_secs(now),
        )


class RoundLifecycleService:
    def __init__(
        self,
        ledger: LedgerViewProtocol,
        submitter: TransactionSubmitter,
        oracle: PriceOracleService,
        signer: KeeperIdentity,
        checkpoints: CheckpointRepositoryProtocol,
        locks: SignerLocks | None = None,
        *,
        round_duration_secs: int = 300,
        cooldown_secs: float = 5.0,
        fee_bps: int = 200,
        treasury_address: str = "",
        clock: Callable[[], int] = unix_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._ledger = ledger
        self._submitter = submitter
        self._oracle = oracle
        self._signer = signer
        self._checkpoints = checkpoints
        self._locks = locks or get_signer_locks()
        self._round_duration_secs = round_duration_secs
        self._cooldown_secs = cooldown_secs
        self._fee_bps = fee_bps
        self._treasury_address = treasury_address or signer.address
        self._clock = clock
        self._sleep = sleep

    def _signer_lock(self) -> asyncio.Lock:
        return self._locks.for_signer(self._signer.address)

    # ------------------------------------------------------------------
    # Contract bootstrap
    # ------------------------------------------------------------------

    async def init_contract(self) -> InitResult:
        """Idempotent: an initialized contract is a success without a transaction."""
        async with self._signer_lock():
            if await self._ledger.is_initialized():
                logger.info("Contract already initialized")
                return InitResult(already_initialized=True)
            call = EntryCall(
                "init", (self._signer.address, self._fee_bps, self._treasury_address)
            )
            receipt = await self._submitter.submit_call(call, self._signer)
            logger.info("Contract initialized: %s", receipt.transaction_hash)
            return InitResult(already_initialized=False, transaction_hash=receipt.transaction_hash)

    # ------------------------------------------------------------------
    # Start / settle
    # ------------------------------------------------------------------

    async def _ensure_startable(self) -> None:
        round_id = await self._ledger.get_current_round_id()
        if round_id == 0:
            return
        current = await self._ledger.get_round(round_id)
        if current is not None and not current.settled:
            raise RoundStillActiveError(round_id)

    async def _submit_start(self, start_price: int, duration_secs: int) -> Receipt:
        receipt = await self._submitter.submit_call(
            EntryCall("start_round", (start_price, duration_secs)), self._signer
        )
        logger.info(
            "Round started at %d micro-units for %ds: %s",
            start_price,
            duration_secs,
            receipt.transaction_hash,
        )
        return receipt

    async def start_round(self, start_price: int, duration_secs: int | None = None) -> Receipt:
        """Valid only with no round yet or the current round settled."""
        duration = duration_secs or self._round_duration_secs
        async with self._signer_lock():
            await self._ensure_startable()
            return await self._submit_start(start_price, duration)

    async def start_round_at_market(self) -> StartedRound:
        async with self._signer_lock():
            await self._ensure_startable()
            quote = await self._oracle.fetch_current_price()
            receipt = await self._submit_start(quote.micro_units, self._round_duration_secs)
            return StartedRound(
                start_price=quote.price,
                start_price_micro=quote.micro_units,
                duration_secs=self._round_duration_secs,
                transaction_hash=receipt.transaction_hash,
            )

    async def _load_settleable(self, round_id: int) -> Round:
        current = await self._ledger.get_round(round_id)
        if current is None:
            raise RoundNotFoundError(round_id)
        if current.settled:
            raise RoundAlreadySettledError(round_id)
        now = self._clock()
        if not current.is_expired(now):
            raise RoundNotExpiredError(round_id, current.remaining_secs(now))
        return current

    async def _submit_settle(self, round_id: int, end_price: int) -> Receipt:
        receipt = await self._submitter.submit_call(
            EntryCall("settle", (round_id, end_price)), self._signer
        )
        logger.info(
            "Round %d settled at %d micro-units: %s", round_id, end_price, receipt.transaction_hash
        )
        return receipt

    async def settle_round(self, round_id: int, end_price: int) -> Receipt:
        """Raises RoundAlreadySettledError (non-fatal) when there is nothing to settle."""
        async with self._signer_lock():
            await self._load_settleable(round_id)
            return await self._submit_settle(round_id, end_price)

    # ------------------------------------------------------------------
    # Advance saga
    # ------------------------------------------------------------------

    async def _save_checkpoint(self, db: AsyncSession, checkpoint: AdvanceCheckpoint) -> None:
        await self._checkpoints.save(db, checkpoint)
        await db.commit()

    async def _start_next(self, db: AsyncSession, checkpoint: AdvanceCheckpoint) -> StartedRound:
        quote = await self._oracle.fetch_current_price()
        receipt = await self._submit_start(quote.micro_units, self._round_duration_secs)
        checkpoint.stage = CheckpointStage.COMPLETED
        checkpoint.start_tx_hash = receipt.transaction_hash
        checkpoint.next_start_price = quote.micro_units
        await self._save_checkpoint(db, checkpoint)
        return StartedRound(
            start_price=quote.price,
            start_price_micro=quote.micro_units,
            duration_secs=self._round_duration_secs,
            transaction_hash=receipt.transaction_hash,
        )

    async def _resume(
        self, db: AsyncSession, checkpoint: AdvanceCheckpoint, current_round_id: int
    ) -> AdvanceResult | None:
        if checkpoint.round_id != current_round_id:
            # A newer round exists, so the start step already happened elsewhere
            logger.info("Checkpoint for round %d superseded by round %d",
                        checkpoint.round_id, current_round_id)
            checkpoint.stage = CheckpointStage.COMPLETED
            await self._save_checkpoint(db, checkpoint)
            return None

        logger.warning("Resuming interrupted advance of round %d", checkpoint.round_id)
        checkpoint.stage = CheckpointStage.SETTLED_AWAITING_START
        next_round = await self._start_next(db, checkpoint)
        return AdvanceResult(
            outcome=AdvanceOutcome.RESUMED_AND_STARTED,
            round_id=checkpoint.round_id,
            settled_round=SettledRound(
                round_id=checkpoint.round_id,
                end_price_micro=checkpoint.end_price,
                transaction_hash=checkpoint.settle_tx_hash,
            ),
            next_round=next_round,
        )

    async def _resume_if_pending(self, db: AsyncSession, settled: Round) -> AdvanceResult | None:
        checkpoint = await self._checkpoints.get(db, settled.round_id)
        if checkpoint is None or checkpoint.is_finished:
            return None
        # Ledger says settled, so a SETTLE_SUBMITTED checkpoint did commit
        return await self._resume(db, checkpoint, await self._ledger.get_current_round_id())

    async def advance_to_next_round(
        self, db: AsyncSession, round_id: int, end_price: int
    ) -> AdvanceResult:
        """settle (confirmed) -> cooldown -> oracle price -> start_round.

        An already settled round short-circuits with ALREADY_SETTLED, unless
        its checkpoint shows the start step never happened, in which case the
        start is completed and RESUMED_AND_STARTED is returned.
        """
        async with self._signer_lock():
            current = await self._ledger.get_round(round_id)
            if current is None:
                raise RoundNotFoundError(round_id)
            if current.settled:
                resumed = await self._resume_if_pending(db, current)
                if resumed is not None:
                    return resumed
                logger.info("Round %d already settled; nothing to advance", round_id)
                return AdvanceResult(outcome=AdvanceOutcome.ALREADY_SETTLED, round_id=round_id)

            now = self._clock()
            if not current.is_expired(now):
                raise RoundNotExpiredError(round_id, current.remaining_secs(now))

            checkpoint = AdvanceCheckpoint(
                round_id=round_id, stage=CheckpointStage.SETTLE_SUBMITTED, end_price=end_price
            )
            await self._save_checkpoint(db, checkpoint)

            try:
                settle_receipt = await self._submit_settle(round_id, end_price)
            except (LedgerRejectedError, StaleSequenceNumberError):
                # Settle did not commit, so the round is not settling any more
                await self._checkpoints.delete(db, round_id)
                await db.commit()
                raise
            checkpoint.stage = CheckpointStage.SETTLED_AWAITING_START
            checkpoint.settle_tx_hash = settle_receipt.transaction_hash
            await self._save_checkpoint(db, checkpoint)

            logger.info("Starting %gs cooldown...", self._cooldown_secs)
            await self._sleep(self._cooldown_secs)

            next_round = await self._start_next(db, checkpoint)
            return AdvanceResult(
                outcome=AdvanceOutcome.SETTLED_AND_STARTED,
                round_id=round_id,
                settled_round=SettledRound(
                    round_id=round_id,
                    end_price_micro=end_price,
                    transaction_hash=settle_receipt.transaction_hash,
                ),
                next_round=next_round,
                cooldown_secs=self._cooldown_secs,
            )

    async def resume_pending_advance(self, db: AsyncSession) -> AdvanceResult | None:
        """Crash recovery: finish any advance whose start step never ran."""
        async with self._signer_lock():
            unfinished = await self._checkpoints.list_unfinished(db)
            if not unfinished:
                return None
            current_round_id = await self._ledger.get_current_round_id()
            result: AdvanceResult | None = None
            for checkpoint in unfinished:
                current = await self._ledger.get_round(checkpoint.round_id)
                if current is None or not current.settled:
                    # Settle never committed; the next poll settles it normally
                    continue
                resumed = await self._resume(db, checkpoint, current_round_id)
                if resumed is not None:
                    result = resumed
            return result


def build_round_service(signer: KeeperIdentity) -> RoundLifecycleService:
    """Wire the service from the process-wide ledger / oracle singletons."""
    return RoundLifecycleService(
        get_ledger_gateway(),
        get_submitter(),
        get_price_oracle(),
        signer,
        CheckpointRepository(),
        round_duration_secs=settings.ROUND_DURATION_SECS,
        cooldown_secs=settings.ROUND_COOLDOWN_SECS,
        fee_bps=settings.FEE_BPS,
        treasury_address=settings.TREASURY_ADDRESS,
    )


def get_round_service(
    signer: Annotated[KeeperIdentity, Depends(get_keeper_identity)],
) -> RoundLifecycleService:
    """FastAPI dependency."""
    return build_round_service(signer)


def get_round_query_service() -> RoundQueryService:
    """FastAPI dependency for the unauthenticated status endpoint."""
    return RoundQueryService(get_ledger_gateway(), CheckpointRepository())
