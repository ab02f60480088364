"""004: create bets table

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE bets (
            id                  VARCHAR(32) PRIMARY KEY,
            client_bet_id       VARCHAR(64),
            bettor_id           VARCHAR(64) NOT NULL,
            target_id           VARCHAR(64) NOT NULL REFERENCES forecast_settings (target_id),
            target_kind         VARCHAR(10) NOT NULL,
            period_id           VARCHAR(32) NOT NULL REFERENCES forecast_periods (id),
            direction           VARCHAR(5)  NOT NULL,
            target_bps          INTEGER     NOT NULL,
            stake_coins         BIGINT      NOT NULL,
            house_fee_coins     BIGINT      NOT NULL,
            net_stake_coins     BIGINT      NOT NULL,
            status              VARCHAR(10) NOT NULL DEFAULT 'PENDING',
            actual_bps          INTEGER,
            winnings            BIGINT,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            resolved_at         TIMESTAMPTZ,
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_bets_direction CHECK (direction IN ('LONG', 'SHORT')),
            CONSTRAINT ck_bets_status CHECK (
                status IN ('PENDING', 'WON', 'LOST', 'CANCELLED', 'VOID')
            ),
            CONSTRAINT ck_bets_stake_positive CHECK (stake_coins > 0),
            CONSTRAINT ck_bets_fee_split CHECK (
                house_fee_coins >= 0
                AND net_stake_coins >= 0
                AND net_stake_coins + house_fee_coins = stake_coins
            )
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_bets_updated_at
            BEFORE UPDATE ON bets
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    # One PENDING bet per bettor per (target, period)
    op.execute("""
        CREATE UNIQUE INDEX uq_bets_one_pending
        ON bets (bettor_id, target_id, period_id)
        WHERE status = 'PENDING';
    """)
    # Idempotency key for placement retries
    op.execute("""
        CREATE UNIQUE INDEX uq_bets_client_bet_id
        ON bets (bettor_id, client_bet_id)
        WHERE client_bet_id IS NOT NULL;
    """)
    # History pages order by the numeric value of the snowflake id
    op.execute("CREATE INDEX idx_bets_bettor ON bets (bettor_id, (CAST(id AS BIGINT)) DESC);")
    op.execute("CREATE INDEX idx_bets_target ON bets (target_id, status);")
    op.execute("CREATE INDEX idx_bets_period_pending ON bets (period_id) WHERE status = 'PENDING';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bets CASCADE;")
