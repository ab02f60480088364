"""In-memory stand-ins for the PostgreSQL repositories.

Each fake mirrors the conditional semantics of its SQL counterpart (CAS on
status/state, ON CONFLICT behaviour, affordability check on debit), so the
services and the settlement engine can be driven end to end without a
database. FakeSession snapshots the store and restores it on rollback or
when closed without a commit, like a real transaction.
"""

import copy
from dataclasses import dataclass, field, replace
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from src.fm_bet.application.service import BetApplicationService
from src.fm_bet.domain.models import Bet, BettorStats, TargetMarketStats
from src.fm_coin.application.service import CoinApplicationService
from src.fm_coin.domain.models import CoinAccount, CoinLedgerEntry, LedgerRef
from src.fm_common.datetime_utils import utc_now
from src.fm_common.enums import ISSUANCE_ENTRY_TYPES, BetStatus, ConnectionStatus, PeriodState
from src.fm_common.errors import InsufficientBalanceError, InvalidAmountError
from src.fm_period.application.service import PeriodApplicationService
from src.fm_period.domain.models import ForecastPeriod
from src.fm_settlement.application.service import SettlementEngine
from src.fm_target.application.service import SettingsApplicationService
from src.fm_target.domain.models import ForecastSettings

_ACTIVE_STATES = (PeriodState.OPEN, PeriodState.LOCKED)
_UNSETTLED_STATES = (PeriodState.OPEN, PeriodState.LOCKED, PeriodState.RESOLVING)


@dataclass
class StoreState:
    accounts: dict[str, CoinAccount] = field(default_factory=dict)
    entries: list[CoinLedgerEntry] = field(default_factory=list)
    targets: dict[str, ForecastSettings] = field(default_factory=dict)
    periods: dict[str, ForecastPeriod] = field(default_factory=dict)
    bets: dict[str, Bet] = field(default_factory=dict)


class FakeStore:
    def __init__(self) -> None:
        self.state = StoreState()

    def session(self) -> "FakeSession":
        return FakeSession(self)


class FakeSession:
    def __init__(self, store: FakeStore) -> None:
        self._store = store
        self._snapshot = copy.deepcopy(store.state)
        self.commits = 0
        self.rollbacks = 0

    async def commit(self) -> None:
        self._snapshot = copy.deepcopy(self._store.state)
        self.commits += 1

    async def rollback(self) -> None:
        self._store.state = copy.deepcopy(self._snapshot)
        self.rollbacks += 1

    async def close(self) -> None:
        self._store.state = copy.deepcopy(self._snapshot)

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc_info: object) -> bool:
        await self.close()
        return False


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class FakeCoinRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store
        self.fail_credit_for: set[str] = set()

    def _ensure(self, user_id: str) -> CoinAccount:
        accounts = self._store.state.accounts
        if user_id not in accounts:
            accounts[user_id] = CoinAccount(user_id=user_id, balance=0, version=0)
        return accounts[user_id]

    def _write(self, account: CoinAccount, amount: int, entry_type: str, ref: LedgerRef) -> CoinLedgerEntry:
        entries = self._store.state.entries
        entry = CoinLedgerEntry(
            id=len(entries) + 1,
            user_id=account.user_id,
            entry_type=str(getattr(entry_type, "value", entry_type)),
            amount=amount,
            balance_after=account.balance,
            reference_type=ref.reference_type,
            reference_id=ref.reference_id,
            description=ref.description,
            created_at=utc_now(),
        )
        entries.append(entry)
        return replace(entry)

    async def get_account(self, db, user_id):  # type: ignore[no-untyped-def]
        account = self._store.state.accounts.get(user_id)
        return replace(account) if account else None

    async def lock_account(self, db, user_id):  # type: ignore[no-untyped-def]
        return replace(self._ensure(user_id))

    async def debit(self, db, user_id, amount, entry_type, ref):  # type: ignore[no-untyped-def]
        if amount <= 0:
            raise InvalidAmountError(amount)
        account = self._ensure(user_id)
        if account.balance < amount:
            raise InsufficientBalanceError(amount, account.balance)
        account.balance -= amount
        account.version += 1
        return replace(account), self._write(account, -amount, entry_type, ref)

    async def credit(self, db, user_id, amount, entry_type, ref):  # type: ignore[no-untyped-def]
        if amount < 0:
            raise InvalidAmountError(amount)
        if ref.reference_id in self.fail_credit_for:
            self.fail_credit_for.discard(ref.reference_id)
            raise RuntimeError(f"injected credit failure for {ref.reference_id}")
        account = self._ensure(user_id)
        account.balance += amount
        account.version += 1
        return replace(account), self._write(account, amount, entry_type, ref)

    async def has_entry(self, db, user_id, entry_type, since):  # type: ignore[no-untyped-def]
        return any(
            e.user_id == user_id
            and e.entry_type == entry_type
            and (since is None or e.created_at >= since)
            for e in self._store.state.entries
        )

    async def list_entries(self, db, user_id, cursor_id, limit, entry_type):  # type: ignore[no-untyped-def]
        rows = [
            e for e in reversed(self._store.state.entries)
            if e.user_id == user_id
            and (cursor_id is None or e.id < cursor_id)
            and (entry_type is None or e.entry_type == entry_type)
        ]
        return [replace(e) for e in rows[:limit]]


class FakeSettingsRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    def _update(self, target_id: str, **changes: object) -> ForecastSettings | None:
        targets = self._store.state.targets
        if target_id not in targets:
            return None
        targets[target_id] = replace(targets[target_id], **changes)
        return replace(targets[target_id])

    async def get(self, db, target_id):  # type: ignore[no-untyped-def]
        target = self._store.state.targets.get(target_id)
        return replace(target) if target else None

    async def enable(self, db, target_id, target_kind, owner_user_id, min_stake, max_stake):  # type: ignore[no-untyped-def]
        targets = self._store.state.targets
        current = targets.get(target_id)
        if current is None:
            targets[target_id] = ForecastSettings(
                target_id=target_id,
                target_kind=str(getattr(target_kind, "value", target_kind)),
                owner_user_id=owner_user_id,
                is_active=True,
                min_stake=min_stake,
                max_stake=max_stake,
                connection_status=ConnectionStatus.DISCONNECTED.value,
            )
            return replace(targets[target_id])
        if current.owner_user_id != owner_user_id:
            return None
        return self._update(target_id, is_active=True, min_stake=min_stake, max_stake=max_stake)

    async def set_active(self, db, target_id, is_active):  # type: ignore[no-untyped-def]
        return self._update(target_id, is_active=is_active)

    async def set_stake_bounds(self, db, target_id, min_stake, max_stake):  # type: ignore[no-untyped-def]
        return self._update(target_id, min_stake=min_stake, max_stake=max_stake)

    async def update_mrr(self, db, target_id, mrr, observed_at):  # type: ignore[no-untyped-def]
        return self._update(
            target_id,
            cached_mrr=mrr,
            cached_mrr_at=observed_at,
            connection_status=ConnectionStatus.CONNECTED.value,
        )

    async def set_connection_status(self, db, target_id, status):  # type: ignore[no-untyped-def]
        return self._update(target_id, connection_status=str(getattr(status, "value", status)))

    async def list_open_markets(self, db, viewer_id, target_kind, cursor, limit):  # type: ignore[no-untyped-def]
        rows = [
            t for t in sorted(self._store.state.targets.values(), key=lambda t: t.target_id)
            if t.accepts_bets
            and t.owner_user_id != viewer_id
            and (target_kind is None or t.target_kind == target_kind)
            and (cursor is None or t.target_id > cursor)
        ]
        return [replace(t) for t in rows[:limit]]


class FakePeriodRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    @property
    def _periods(self) -> dict[str, ForecastPeriod]:
        return self._store.state.periods

    def _cas(self, period_id: str, expected: str, **changes: object) -> ForecastPeriod | None:
        period = self._periods.get(period_id)
        if period is None or period.state != expected:
            return None
        self._periods[period_id] = replace(period, **changes)
        return replace(self._periods[period_id])

    async def insert(self, db, period):  # type: ignore[no-untyped-def]
        for p in self._periods.values():
            if p.target_id != period.target_id:
                continue
            if p.state in _UNSETTLED_STATES or p.period_key == period.period_key:
                return None
        self._periods[period.id] = replace(period, state=PeriodState.OPEN.value)
        return replace(self._periods[period.id])

    async def get_by_id(self, db, period_id):  # type: ignore[no-untyped-def]
        period = self._periods.get(period_id)
        return replace(period) if period else None

    async def get_active(self, db, target_id):  # type: ignore[no-untyped-def]
        for p in self._periods.values():
            if p.target_id == target_id and p.state in _ACTIVE_STATES:
                return replace(p)
        return None

    async def get_unsettled(self, db, target_id):  # type: ignore[no-untyped-def]
        for p in self._periods.values():
            if p.target_id == target_id and p.state in _UNSETTLED_STATES:
                return replace(p)
        return None

    async def get_open_for_share(self, db, target_id):  # type: ignore[no-untyped-def]
        for p in self._periods.values():
            if p.target_id == target_id and p.state == PeriodState.OPEN:
                return replace(p)
        return None

    async def get_for_share(self, db, period_id):  # type: ignore[no-untyped-def]
        return await self.get_by_id(db, period_id)

    async def list_for_target(self, db, target_id, limit):  # type: ignore[no-untyped-def]
        rows = sorted(
            (p for p in self._periods.values() if p.target_id == target_id),
            key=lambda p: p.starts_at,
            reverse=True,
        )
        return [replace(p) for p in rows[:limit]]

    async def lock_expired(self, db, now):  # type: ignore[no-untyped-def]
        expired = [
            p.id for p in self._periods.values()
            if p.state == PeriodState.OPEN and p.ends_at <= now
        ]
        return [self._cas(pid, PeriodState.OPEN, state=PeriodState.LOCKED.value) for pid in expired]

    async def claim(self, db, period_id, now, ending_mrr, void_reason):  # type: ignore[no-untyped-def]
        return self._cas(
            period_id,
            PeriodState.LOCKED,
            state=PeriodState.RESOLVING.value,
            claimed_at=now,
            ending_mrr=ending_mrr,
            void_reason=void_reason,
        )

    async def reclaim_stale(self, db, period_id, now, stale_before):  # type: ignore[no-untyped-def]
        period = self._periods.get(period_id)
        if period is None or period.claimed_at is None or period.claimed_at >= stale_before:
            return None
        return self._cas(period_id, PeriodState.RESOLVING, claimed_at=now)

    async def list_locked_ids(self, db):  # type: ignore[no-untyped-def]
        rows = sorted(
            (p for p in self._periods.values() if p.state == PeriodState.LOCKED),
            key=lambda p: p.ends_at,
        )
        return [p.id for p in rows]

    async def list_stale_resolving_ids(self, db, stale_before):  # type: ignore[no-untyped-def]
        return [
            p.id for p in self._periods.values()
            if p.state == PeriodState.RESOLVING
            and p.claimed_at is not None
            and p.claimed_at < stale_before
        ]

    async def finalize(self, db, period_id, now):  # type: ignore[no-untyped-def]
        if any(
            b.period_id == period_id and b.status == BetStatus.PENDING
            for b in self._store.state.bets.values()
        ):
            return None
        return self._cas(
            period_id, PeriodState.RESOLVING, state=PeriodState.RESOLVED.value, resolved_at=now
        )


def _unique_violation(constraint: str) -> IntegrityError:
    return IntegrityError("INSERT INTO bets", {}, Exception(f'violates "{constraint}"'))


class FakeBetRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    @property
    def _bets(self) -> dict[str, Bet]:
        return self._store.state.bets

    async def insert(self, db, bet):  # type: ignore[no-untyped-def]
        for b in self._bets.values():
            if (
                b.status == BetStatus.PENDING
                and b.bettor_id == bet.bettor_id
                and b.target_id == bet.target_id
                and b.period_id == bet.period_id
            ):
                raise _unique_violation("uq_bets_one_pending")
            if (
                bet.client_bet_id is not None
                and b.bettor_id == bet.bettor_id
                and b.client_bet_id == bet.client_bet_id
            ):
                raise _unique_violation("uq_bets_client_bet_id")
        self._bets[bet.id] = replace(bet, status=BetStatus.PENDING.value, created_at=utc_now())
        return replace(self._bets[bet.id])

    async def get_by_id(self, db, bet_id):  # type: ignore[no-untyped-def]
        bet = self._bets.get(bet_id)
        return replace(bet) if bet else None

    async def get_by_client_bet_id(self, db, bettor_id, client_bet_id):  # type: ignore[no-untyped-def]
        for b in self._bets.values():
            if b.bettor_id == bettor_id and b.client_bet_id == client_bet_id:
                return replace(b)
        return None

    async def get_pending(self, db, bettor_id, target_id, period_id):  # type: ignore[no-untyped-def]
        for b in self._bets.values():
            if (
                b.bettor_id == bettor_id
                and b.target_id == target_id
                and b.period_id == period_id
                and b.status == BetStatus.PENDING
            ):
                return replace(b)
        return None

    async def list_pending_for_period(self, db, period_id):  # type: ignore[no-untyped-def]
        return [
            replace(b) for b in sorted(self._bets.values(), key=lambda b: int(b.id))
            if b.period_id == period_id and b.status == BetStatus.PENDING
        ]

    async def cancel(self, db, bet_id, now):  # type: ignore[no-untyped-def]
        bet = self._bets.get(bet_id)
        if bet is None or bet.status != BetStatus.PENDING:
            return None
        self._bets[bet_id] = replace(bet, status=BetStatus.CANCELLED.value, resolved_at=now)
        return replace(self._bets[bet_id])

    async def resolve(self, db, bet):  # type: ignore[no-untyped-def]
        current = self._bets.get(bet.id)
        if current is None or current.status != BetStatus.PENDING:
            return None
        self._bets[bet.id] = replace(
            current,
            status=bet.status,
            actual_bps=bet.actual_bps,
            winnings=bet.winnings,
            resolved_at=bet.resolved_at,
        )
        return replace(self._bets[bet.id])

    async def list_by_bettor(self, db, bettor_id, status, cursor_id, limit, target_id=None):  # type: ignore[no-untyped-def]
        rows = [
            b for b in sorted(self._bets.values(), key=lambda b: int(b.id), reverse=True)
            if b.bettor_id == bettor_id
            and (status is None or b.status == status)
            and (target_id is None or b.target_id == target_id)
            and (cursor_id is None or int(b.id) < int(cursor_id))
        ]
        return [replace(b) for b in rows[:limit]]

    async def get_target_stats(self, db, target_id):  # type: ignore[no-untyped-def]
        bets = [b for b in self._bets.values() if b.target_id == target_id]
        return TargetMarketStats(
            target_id=target_id,
            total_bets=len(bets),
            total_staked=sum(
                b.net_stake_coins for b in bets
                if b.status in (BetStatus.PENDING, BetStatus.WON, BetStatus.LOST)
            ),
            active_bets=sum(1 for b in bets if b.status == BetStatus.PENDING),
        )

    def _stats(self, bettor_id: str) -> BettorStats:
        mine = [b for b in self._bets.values() if b.bettor_id == bettor_id]
        return BettorStats(
            bettor_id=bettor_id,
            total_bets=len(mine),
            pending=sum(1 for b in mine if b.status == BetStatus.PENDING),
            won=sum(1 for b in mine if b.status == BetStatus.WON),
            lost=sum(1 for b in mine if b.status == BetStatus.LOST),
            total_staked=sum(
                b.stake_coins for b in mine
                if b.status in (BetStatus.PENDING, BetStatus.WON, BetStatus.LOST)
            ),
            total_winnings=sum(b.winnings or 0 for b in mine if b.status == BetStatus.WON),
        )

    async def get_stats(self, db, bettor_id):  # type: ignore[no-untyped-def]
        return self._stats(bettor_id)

    async def leaderboard(self, db, limit):  # type: ignore[no-untyped-def]
        stats = [self._stats(uid) for uid in {b.bettor_id for b in self._bets.values()}]
        stats = [s for s in stats if s.won + s.lost > 0]
        stats.sort(key=lambda s: (-s.total_winnings, -s.win_rate_pct, s.bettor_id))
        return stats[:limit]


# ---------------------------------------------------------------------------
# Wired services
# ---------------------------------------------------------------------------


class Market:
    """Every service wired to one in-memory store."""

    def __init__(self) -> None:
        self.store = FakeStore()
        self.coin_repo = FakeCoinRepository(self.store)
        self.settings_repo = FakeSettingsRepository(self.store)
        self.period_repo = FakePeriodRepository(self.store)
        self.bet_repo = FakeBetRepository(self.store)

        self.coins = CoinApplicationService(repo=self.coin_repo)
        self.periods = PeriodApplicationService(
            repo=self.period_repo, settings_repo=self.settings_repo
        )
        self.targets = SettingsApplicationService(repo=self.settings_repo, periods=self.periods)
        self.bets = BetApplicationService(
            repo=self.bet_repo,
            coins=self.coin_repo,
            periods=self.period_repo,
            targets=self.settings_repo,
        )
        self.engine = SettlementEngine(
            session_factory=self.store.session,
            periods=self.periods,
            period_repo=self.period_repo,
            bet_repo=self.bet_repo,
            coin_repo=self.coin_repo,
        )

    def db(self) -> FakeSession:
        return self.store.session()

    # -- inspection helpers ------------------------------------------------

    def balance(self, user_id: str) -> int:
        account = self.store.state.accounts.get(user_id)
        return account.balance if account else 0

    def bet(self, bet_id: str) -> Bet:
        return self.store.state.bets[bet_id]

    def period(self, period_id: str) -> ForecastPeriod:
        return self.store.state.periods[period_id]

    def active_period(self, target_id: str) -> ForecastPeriod | None:
        for p in self.store.state.periods.values():
            if p.target_id == target_id and p.state in _ACTIVE_STATES:
                return p
        return None

    def entries_for(self, bet_id: str) -> list[CoinLedgerEntry]:
        return [e for e in self.store.state.entries if e.reference_id == bet_id]

    def conservation_gap(self) -> int:
        """held - created; zero when no coin was minted or burned by accident."""
        state = self.store.state
        bets = list(state.bets.values())
        balances = sum(a.balance for a in state.accounts.values())
        pending = sum(b.stake_coins for b in bets if b.status == BetStatus.PENDING)
        fees = sum(b.house_fee_coins for b in bets if b.status in (BetStatus.WON, BetStatus.LOST))
        lost_net = sum(b.net_stake_coins for b in bets if b.status == BetStatus.LOST)
        won_profit = sum(
            (b.winnings or 0) - b.net_stake_coins for b in bets if b.status == BetStatus.WON
        )
        issuance = sum(e.amount for e in state.entries if e.entry_type in ISSUANCE_ENTRY_TYPES)
        return (balances + pending + fees + lost_net) - (issuance + won_profit)

    # -- scenario helpers --------------------------------------------------

    async def open_target(
        self,
        target_id: str,
        owner_id: str,
        baseline_mrr: int,
        now: datetime,
        min_stake: int = 10,
        max_stake: int = 100,
    ) -> ForecastPeriod:
        await self.targets.enable_forecasting(
            self.db(), target_id, "COMPANY", owner_id, min_stake, max_stake, now=now
        )
        await self.targets.update_verified_mrr(self.db(), target_id, baseline_mrr, now, now=now)
        period = self.active_period(target_id)
        assert period is not None
        return period

    async def fund(self, user_id: str, amount: int) -> None:
        await self.coins.grant(self.db(), "admin-1", user_id, amount, "test funding")
