"""AutoManageScheduler — optional in-process trigger for AutoManagerService.

Started from the application lifespan when AUTO_MANAGE_INTERVAL_SECS > 0.
Each tick opens its own DB session; a failed tick is logged and the loop
carries on with the next one.
"""

import asyncio
import logging
from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.pm_common.enums import AutoManageAction
from src.pm_common.errors import AppError, NoRoundsExistError
from src.pm_keeper.application.service import AutoManagerService
from src.pm_keeper.domain.models import AutoManageResult

logger = logging.getLogger(__name__)


class AutoManageScheduler:
    def __init__(
        self,
        manager_factory: Callable[[], AutoManagerService],
        session_factory: async_sessionmaker[AsyncSession],
        interval_secs: float,
    ) -> None:
        if interval_secs <= 0:
            raise ValueError("interval_secs must be positive")
        self._manager_factory = manager_factory
        self._session_factory = session_factory
        self._interval_secs = interval_secs
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        logger.info("Auto-manage scheduler started (every %gs)", self._interval_secs)
        self._task = asyncio.create_task(self._run(), name="auto-manage-scheduler")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Auto-manage scheduler stopped")

    async def tick(self) -> AutoManageResult | None:
        """Run one evaluation; returns None when it failed."""
        async with self._session_factory() as db:
            try:
                result = await self._manager_factory().evaluate(db)
            except NoRoundsExistError:
                logger.warning("Auto-manage: no rounds exist; start the first round manually")
                return None
            except AppError as exc:
                await db.rollback()
                logger.error("Auto-manage tick failed: [%d] %s", exc.code, exc.message)
                return None
            except Exception:
                await db.rollback()
                logger.exception("Auto-manage tick crashed")
                return None
        if result.action is not AutoManageAction.STILL_ACTIVE:
            logger.info("Auto-manage: %s (round %d)", result.action.value, result.round_id)
        return result

    async def _run(self) -> None:
        while True:
            await self.tick()
            await asyncio.sleep(self._interval_secs)
