# src/pm_round/domain/repository.py
"""Checkpoint repository Protocol — unit tests inject a mock or in-memory store."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_round.domain.models import AdvanceCheckpoint


class CheckpointRepositoryProtocol(Protocol):
    async def get(self, db: AsyncSession, round_id: int) -> AdvanceCheckpoint | None: ...

    async def save(self, db: AsyncSession, checkpoint: AdvanceCheckpoint) -> None: ...

    async def list_unfinished(self, db: AsyncSession) -> list[AdvanceCheckpoint]: ...

    async def delete(self, db: AsyncSession, round_id: int) -> None: ...
