"""001: create shared trigger function, coin_accounts and coin_ledger_entries

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_update_timestamp()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TABLE coin_accounts (
            user_id     VARCHAR(64) PRIMARY KEY,
            balance     BIGINT      NOT NULL DEFAULT 0,
            version     BIGINT      NOT NULL DEFAULT 0,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_coin_accounts_balance_gte_0 CHECK (balance >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_coin_accounts_updated_at
            BEFORE UPDATE ON coin_accounts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE coin_ledger_entries (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            entry_type      VARCHAR(30)     NOT NULL,
            amount          BIGINT          NOT NULL,
            balance_after   BIGINT          NOT NULL,
            reference_type  VARCHAR(30),
            reference_id    VARCHAR(64),
            description     VARCHAR(500),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_coin_entry_type CHECK (
                entry_type IN (
                    'GRANT', 'WELCOME_BONUS', 'DAILY_BONUS',
                    'BET_STAKE', 'BET_CANCEL_REFUND',
                    'BET_VOID_REFUND', 'BET_PAYOUT'
                )
            ),
            CONSTRAINT ck_coin_entry_balance_gte_0 CHECK (balance_after >= 0)
        );
    """)
    op.execute(
        "CREATE INDEX idx_coin_ledger_user ON coin_ledger_entries (user_id, id DESC);"
    )
    op.execute("""
        CREATE INDEX idx_coin_ledger_reference
        ON coin_ledger_entries (reference_type, reference_id)
        WHERE reference_id IS NOT NULL;
    """)
    # One welcome bonus per user, enforced by storage
    op.execute("""
        CREATE UNIQUE INDEX uq_coin_ledger_welcome_bonus
        ON coin_ledger_entries (user_id)
        WHERE entry_type = 'WELCOME_BONUS';
    """)
    op.execute(
        "COMMENT ON TABLE coin_ledger_entries IS "
        "'Coin movements — append-only, never updated or deleted';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS coin_ledger_entries CASCADE;")
    op.execute("DROP TABLE IF EXISTS coin_accounts CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_update_timestamp();")
