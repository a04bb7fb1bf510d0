"""CheckpointRepository — concrete implementation of CheckpointRepositoryProtocol.

Raw text() SQL against round_advance_checkpoints (alembic 001 is the DDL).
save() is an upsert keyed by round_id; save() and delete() leave the commit
to the caller.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import CheckpointStage
from src.pm_round.domain.models import AdvanceCheckpoint

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_COLUMNS = (
    "round_id, stage, end_price, settle_tx_hash, start_tx_hash,"
    " next_start_price, updated_at"
)

_GET_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM round_advance_checkpoints
    WHERE round_id = :round_id
""")

_LIST_UNFINISHED_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM round_advance_checkpoints
    WHERE stage <> 'COMPLETED'
    ORDER BY round_id DESC
""")

_DELETE_SQL = text("""
    DELETE FROM round_advance_checkpoints
    WHERE round_id = :round_id
""")

_UPSERT_SQL = text("""
    INSERT INTO round_advance_checkpoints
        (round_id, stage, end_price, settle_tx_hash, start_tx_hash,
         next_start_price, created_at, updated_at)
    VALUES
        (:round_id, :stage, :end_price, :settle_tx_hash, :start_tx_hash,
         :next_start_price, :now, :now)
    ON CONFLICT (round_id) DO UPDATE
    SET stage = EXCLUDED.stage,
        end_price = EXCLUDED.end_price,
        settle_tx_hash = COALESCE(EXCLUDED.settle_tx_hash, round_advance_checkpoints.settle_tx_hash),
        start_tx_hash = COALESCE(EXCLUDED.start_tx_hash, round_advance_checkpoints.start_tx_hash),
        next_start_price = COALESCE(EXCLUDED.next_start_price, round_advance_checkpoints.next_start_price),
        updated_at = EXCLUDED.updated_at
""")

# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_checkpoint(row: Any) -> AdvanceCheckpoint:
    return AdvanceCheckpoint(
        round_id=row.round_id,
        stage=CheckpointStage(row.stage),
        end_price=row.end_price,
        settle_tx_hash=row.settle_tx_hash,
        start_tx_hash=row.start_tx_hash,
        next_start_price=row.next_start_price,
        updated_at=row.updated_at,
    )


class CheckpointRepository:
    async def get(self, db: AsyncSession, round_id: int) -> AdvanceCheckpoint | None:
        row = (await db.execute(_GET_SQL, {"round_id": round_id})).fetchone()
        return _row_to_checkpoint(row) if row is not None else None

    async def save(self, db: AsyncSession, checkpoint: AdvanceCheckpoint) -> None:
        now = utc_now()
        await db.execute(
            _UPSERT_SQL,
            {
                "round_id": checkpoint.round_id,
                "stage": checkpoint.stage.value,
                "end_price": checkpoint.end_price,
                "settle_tx_hash": checkpoint.settle_tx_hash,
                "start_tx_hash": checkpoint.start_tx_hash,
                "next_start_price": checkpoint.next_start_price,
                "now": now,
            },
        )
        checkpoint.updated_at = now

    async def list_unfinished(self, db: AsyncSession) -> list[AdvanceCheckpoint]:
        rows = (await db.execute(_LIST_UNFINISHED_SQL)).fetchall()
        return [_row_to_checkpoint(r) for r in rows]

    async def delete(self, db: AsyncSession, round_id: int) -> None:
        await db.execute(_DELETE_SQL, {"round_id": round_id})
