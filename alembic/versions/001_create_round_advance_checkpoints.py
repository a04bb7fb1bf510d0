"""001: create round_advance_checkpoints table

Revision ID: 001
Revises: 
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE round_advance_checkpoints (
            round_id            BIGINT          PRIMARY KEY,
            stage               VARCHAR(30)     NOT NULL,
            end_price           BIGINT          NOT NULL,
            settle_tx_hash      VARCHAR(66),
            start_tx_hash       VARCHAR(66),
            next_start_price    BIGINT,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_checkpoint_stage CHECK (
                stage IN (
                    'SETTLE_SUBMITTED',
                    'SETTLED_AWAITING_START',
                    'COMPLETED'
                )
            ),
            CONSTRAINT ck_checkpoint_end_price CHECK (end_price > 0)
        );
    """)
    op.execute(
        "CREATE INDEX idx_checkpoint_unfinished ON round_advance_checkpoints (round_id)"
        " WHERE stage <> 'COMPLETED';"
    )
    op.execute(
        "COMMENT ON TABLE round_advance_checkpoints IS"
        " 'Settle -> cooldown -> start saga progress, one row per advanced round';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS round_advance_checkpoints CASCADE;")
