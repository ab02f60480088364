"""Unit tests for CoinRepository — SQL call order and parameters on a mocked session."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.fm_coin.domain.models import LedgerRef
from src.fm_coin.infrastructure.persistence import CoinRepository
from src.fm_common.errors import InsufficientBalanceError, InvalidAmountError


def _account_row(balance: int, version: int = 1) -> MagicMock:
    return MagicMock(user_id="u1", balance=balance, version=version, created_at=None, updated_at=None)


def _entry_row(amount: int, balance_after: int, entry_type: str = "BET_STAKE") -> MagicMock:
    return MagicMock(
        id=7,
        user_id="u1",
        entry_type=entry_type,
        amount=amount,
        balance_after=balance_after,
        reference_type="BET",
        reference_id="b-1",
        description="stake",
        created_at=None,
    )


def _result(row: object) -> MagicMock:
    result = MagicMock()
    result.fetchone.return_value = row
    return result


class TestDebit:
    async def test_debit_writes_negative_entry(self) -> None:
        db = AsyncMock()
        db.execute.side_effect = [
            MagicMock(),                      # ensure account
            _result(_account_row(400)),       # conditional debit
            _result(_entry_row(-100, 400)),   # ledger insert
        ]
        account, entry = await CoinRepository().debit(
            db, "u1", 100, "BET_STAKE", LedgerRef("BET", "b-1", "stake")
        )
        assert account.balance == 400
        assert entry.amount == -100
        ledger_params = db.execute.call_args_list[2].args[1]
        assert ledger_params["amount"] == -100
        assert ledger_params["balance_after"] == 400
        assert ledger_params["reference_id"] == "b-1"

    async def test_insufficient_balance_reports_available(self) -> None:
        db = AsyncMock()
        db.execute.side_effect = [
            MagicMock(),                   # ensure account
            _result(None),                 # debit matched no row
            _result(_account_row(30)),     # get_account for the message
        ]
        with pytest.raises(InsufficientBalanceError) as exc_info:
            await CoinRepository().debit(db, "u1", 100, "BET_STAKE", LedgerRef())
        assert "available 30" in exc_info.value.message
        assert db.execute.call_count == 3

    async def test_non_positive_amount_rejected_before_sql(self) -> None:
        db = AsyncMock()
        with pytest.raises(InvalidAmountError):
            await CoinRepository().debit(db, "u1", 0, "BET_STAKE", LedgerRef())
        db.execute.assert_not_called()


class TestCredit:
    async def test_credit_writes_positive_entry(self) -> None:
        db = AsyncMock()
        db.execute.side_effect = [
            MagicMock(),
            _result(_account_row(680)),
            _result(_entry_row(180, 680, "BET_PAYOUT")),
        ]
        account, entry = await CoinRepository().credit(
            db, "u1", 180, "BET_PAYOUT", LedgerRef("BET", "b-1", "Bet won")
        )
        assert account.balance == 680
        assert entry.amount == 180
        assert db.execute.call_args_list[1].args[1] == {"user_id": "u1", "amount": 180}

    async def test_negative_amount_rejected(self) -> None:
        with pytest.raises(InvalidAmountError):
            await CoinRepository().credit(AsyncMock(), "u1", -1, "GRANT", LedgerRef())


class TestQueries:
    async def test_get_account_missing_returns_none(self) -> None:
        db = AsyncMock()
        db.execute.return_value = _result(None)
        assert await CoinRepository().get_account(db, "nobody") is None

    async def test_has_entry_passes_since(self) -> None:
        db = AsyncMock()
        result = MagicMock()
        result.scalar_one.return_value = True
        db.execute.return_value = result
        assert await CoinRepository().has_entry(db, "u1", "DAILY_BONUS", None) is True
        assert db.execute.call_args.args[1]["since"] is None

    async def test_list_entries_params(self) -> None:
        db = AsyncMock()
        result = MagicMock()
        result.fetchall.return_value = [_entry_row(-100, 400)]
        db.execute.return_value = result
        entries = await CoinRepository().list_entries(db, "u1", 50, 21, "BET_STAKE")
        assert len(entries) == 1
        params = db.execute.call_args.args[1]
        assert params == {"user_id": "u1", "cursor_id": 50, "entry_type": "BET_STAKE", "limit": 21}
