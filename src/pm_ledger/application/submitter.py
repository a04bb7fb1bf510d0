"""TransactionSubmitter — build, sign, submit and confirm one ledger transaction.

Retry-by-rebuild: the caller hands over a *builder* rather than a built
transaction. Each retry calls the builder again, so the gateway reads the
signer's current sequence number and the stale signed payload is never
resubmitted.

Only the stale-sequence signature is retried, at a fixed backoff and at most
``max_attempts`` submissions in total. Everything else (rejections, failed
execution, confirmation timeouts) propagates unchanged after one submission;
resubmitting after a timeout could double-apply if the original commits late.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from src.pm_common.errors import AppError, StaleSequenceNumberError
from src.pm_ledger.domain.gateway import LedgerGatewayProtocol
from src.pm_ledger.domain.models import (
    EntryCall,
    KeeperIdentity,
    PendingTransactionAttempt,
    Receipt,
    is_stale_sequence_error,
)

logger = logging.getLogger(__name__)

TransactionBuilder = Callable[[str], Awaitable[Any]]


class TransactionSubmitter:
    def __init__(
        self,
        gateway: LedgerGatewayProtocol,
        max_attempts: int = 3,
        backoff_secs: float = 1.0,
        confirm_timeout_secs: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._max_attempts = max_attempts
        self._backoff_secs = backoff_secs
        self._confirm_timeout_secs = confirm_timeout_secs
        self._sleep = sleep

    async def submit(
        self,
        build_fn: TransactionBuilder,
        signer: KeeperIdentity,
        max_attempts: int | None = None,
        backoff_secs: float | None = None,
    ) -> Receipt:
        limit = self._max_attempts if max_attempts is None else max_attempts
        backoff = self._backoff_secs if backoff_secs is None else backoff_secs
        if limit < 1:
            raise ValueError(f"max_attempts must be >= 1, got {limit}")

        pending = PendingTransactionAttempt(payload=None, attempt=0)
        while True:
            pending.attempt += 1
            pending.payload = await build_fn(signer.address)
            try:
                transaction_hash = await self._gateway.sign_and_submit(signer, pending.payload)
            except AppError as exc:
                if not is_stale_sequence_error(exc):
                    raise
                if pending.attempt >= limit:
                    logger.error(
                        "Sequence number still stale after %d attempts for %s",
                        pending.attempt,
                        signer.address,
                    )
                    raise StaleSequenceNumberError(
                        pending.attempt, exc.detail or exc.message
                    ) from exc
                logger.warning(
                    "Sequence number too old, retrying (%d/%d)...", pending.attempt, limit
                )
                pending.previous_error = exc
                await self._sleep(backoff)
                continue

            execution_result = await self._gateway.wait_for_transaction(
                transaction_hash, self._confirm_timeout_secs
            )
            logger.info(
                "Transaction %s confirmed after %d attempt(s)", transaction_hash, pending.attempt
            )
            return Receipt(transaction_hash=transaction_hash, execution_result=execution_result)

    async def submit_call(self, call: EntryCall, signer: KeeperIdentity) -> Receipt:
        async def build(sender: str) -> Any:
            return await self._gateway.build_transaction(sender, call)

        logger.info("Submitting %s%s from %s", call.function, call.arguments, signer.address)
        return await self.submit(build, signer)
