"""003: create forecast_periods table

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE forecast_periods (
            id              VARCHAR(32) PRIMARY KEY,
            target_id       VARCHAR(64) NOT NULL REFERENCES forecast_settings (target_id),
            period_key      VARCHAR(8)  NOT NULL,
            state           VARCHAR(10) NOT NULL DEFAULT 'OPEN',
            starts_at       TIMESTAMPTZ NOT NULL,
            ends_at         TIMESTAMPTZ NOT NULL,
            baseline_mrr    BIGINT      NOT NULL,
            ending_mrr      BIGINT,
            void_reason     VARCHAR(16),
            claimed_at      TIMESTAMPTZ,
            resolved_at     TIMESTAMPTZ,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_forecast_periods_state CHECK (
                state IN ('OPEN', 'LOCKED', 'RESOLVING', 'RESOLVED')
            ),
            CONSTRAINT ck_forecast_periods_void_reason CHECK (
                void_reason IS NULL
                OR void_reason IN ('DISCONNECTED', 'NO_MRR', 'ZERO_BASELINE')
            ),
            CONSTRAINT ck_forecast_periods_window CHECK (starts_at < ends_at),
            CONSTRAINT uq_forecast_periods_target_key UNIQUE (target_id, period_key)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_forecast_periods_updated_at
            BEFORE UPDATE ON forecast_periods
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    # At most one unsettled period per target; the next one opens after RESOLVED
    op.execute("""
        CREATE UNIQUE INDEX uq_forecast_periods_one_unsettled
        ON forecast_periods (target_id)
        WHERE state IN ('OPEN', 'LOCKED', 'RESOLVING');
    """)
    op.execute("""
        CREATE INDEX idx_forecast_periods_lockable
        ON forecast_periods (ends_at)
        WHERE state = 'OPEN';
    """)
    op.execute("""
        CREATE INDEX idx_forecast_periods_unsettled
        ON forecast_periods (state, claimed_at)
        WHERE state IN ('LOCKED', 'RESOLVING');
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS forecast_periods CASCADE;")
