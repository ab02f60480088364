"""002: create forecast_settings table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE forecast_settings (
            target_id           VARCHAR(64) PRIMARY KEY,
            target_kind         VARCHAR(10) NOT NULL,
            owner_user_id       VARCHAR(64) NOT NULL,
            is_active           BOOLEAN     NOT NULL DEFAULT TRUE,
            min_stake           INTEGER     NOT NULL,
            max_stake           INTEGER     NOT NULL,
            connection_status   VARCHAR(12) NOT NULL DEFAULT 'DISCONNECTED',
            cached_mrr          BIGINT,
            cached_mrr_at       TIMESTAMPTZ,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_forecast_settings_kind CHECK (target_kind IN ('COMPANY', 'USER')),
            CONSTRAINT ck_forecast_settings_connection CHECK (
                connection_status IN ('DISCONNECTED', 'CONNECTED')
            ),
            CONSTRAINT ck_forecast_settings_bounds CHECK (min_stake >= 1 AND min_stake <= max_stake),
            CONSTRAINT ck_forecast_settings_mrr_gte_0 CHECK (cached_mrr IS NULL OR cached_mrr >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_forecast_settings_updated_at
            BEFORE UPDATE ON forecast_settings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("CREATE INDEX idx_forecast_settings_owner ON forecast_settings (owner_user_id);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS forecast_settings CASCADE;")
