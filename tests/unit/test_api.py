"""HTTP-level tests: routing, auth, envelopes and error mapping.

Routers run against the in-memory market (their module-level services are
swapped for ones wired to the fake store), so no database is needed.
"""

from collections.abc import AsyncGenerator, Iterator
from unittest.mock import patch

import pytest
from httpx import AsyncClient

from config.settings import settings
from src.fm_admin.application.service import AdminService
from src.fm_common.database import get_db_session
from src.fm_gateway.auth.jwt_handler import create_access_token
from src.fm_gateway.middleware.rate_limit import bet_placement_limiter
from src.main import app
from tests.unit.fakes import FakeSession, Market

COLLABORATOR = {"X-Collaborator-Token": settings.COLLABORATOR_TOKEN}


def _auth(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def wired(market: Market) -> Iterator[Market]:
    async def _db() -> AsyncGenerator[FakeSession, None]:
        yield market.db()

    async def _no_limit() -> None:
        return None

    app.dependency_overrides[get_db_session] = _db
    app.dependency_overrides[bet_placement_limiter] = _no_limit
    with (
        patch("src.fm_coin.api.router._service", market.coins),
        patch("src.fm_target.api.router._service", market.targets),
        patch("src.fm_target.api.revenue_router._service", market.targets),
        patch("src.fm_period.api.router._service", market.periods),
        patch("src.fm_bet.api.router._service", market.bets),
        patch(
            "src.fm_admin.api.router._service",
            AdminService(engine=market.engine, coins=market.coins),
        ),
    ):
        yield market
    app.dependency_overrides.clear()


async def _open_target(client: AsyncClient) -> None:
    resp = await client.post(
        "/api/v1/targets",
        json={"target_id": "co-1", "target_kind": "COMPANY"},
        headers=_auth("owner-1"),
    )
    assert resp.status_code == 200
    resp = await client.post(
        "/api/v1/revenue/co-1/mrr",
        json={"mrr_cents": 100000, "observed_at": "2026-11-03T12:00:00Z"},
        headers=COLLABORATOR,
    )
    assert resp.status_code == 200


class TestHealth:
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestAuth:
    async def test_unauthenticated_returns_401(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/coins/balance")
        assert resp.status_code == 401

    async def test_bad_token_returns_401(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/bets", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    async def test_collaborator_token_required(self, client: AsyncClient, wired: Market) -> None:
        resp = await client.post(
            "/api/v1/revenue/co-1/connect", headers={"X-Collaborator-Token": "wrong"}
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == 1007

    async def test_admin_only(self, client: AsyncClient, wired: Market) -> None:
        resp = await client.get("/api/v1/admin/invariants", headers=_auth("u1"))
        assert resp.status_code == 403
        assert resp.json()["code"] == 1006


class TestEnvelope:
    async def test_success_envelope(self, client: AsyncClient, wired: Market) -> None:
        resp = await client.get("/api/v1/coins/balance", headers=_auth("u1"))
        assert resp.status_code == 200
        body = resp.json()
        assert body["code"] == 0
        assert body["data"] == {"user_id": "u1", "balance": 0, "balance_display": "0 coins"}
        assert body["request_id"] == resp.headers["X-Request-ID"]

    async def test_app_error_envelope(self, client: AsyncClient, wired: Market) -> None:
        resp = await client.get("/api/v1/targets/nope", headers=_auth("u1"))
        assert resp.status_code == 404
        body = resp.json()
        assert body["code"] == 3001
        assert body["data"] is None
        assert body["request_id"] == resp.headers["X-Request-ID"]


class TestForecastFlow:
    async def test_enable_push_mrr_and_bet(self, client: AsyncClient, wired: Market) -> None:
        await _open_target(client)

        current = await client.get("/api/v1/targets/co-1/periods/current", headers=_auth("alice"))
        assert current.json()["data"]["baseline_mrr_display"] == "$1,000.00"

        bonus = await client.post("/api/v1/coins/welcome-bonus", headers=_auth("alice"))
        assert bonus.json()["data"]["balance"] == 100

        resp = await client.post(
            "/api/v1/bets",
            json={
                "target_id": "co-1",
                "direction": "LONG",
                "target_percentage_bps": 1000,
                "stake_coins": 50,
            },
            headers=_auth("alice"),
        )
        assert resp.status_code == 200
        bet = resp.json()["data"]
        assert bet["status"] == "PENDING"
        assert bet["house_fee_coins"] == 5
        assert bet["net_stake_coins"] == 45

        balance = await client.get("/api/v1/coins/balance", headers=_auth("alice"))
        assert balance.json()["data"]["balance"] == 50

        listed = await client.get("/api/v1/bets", headers=_auth("alice"))
        assert [b["id"] for b in listed.json()["data"]["items"]] == [bet["id"]]

    async def test_stake_out_of_range_mapped(self, client: AsyncClient, wired: Market) -> None:
        await _open_target(client)
        await client.post("/api/v1/coins/welcome-bonus", headers=_auth("alice"))
        resp = await client.post(
            "/api/v1/bets",
            json={
                "target_id": "co-1",
                "direction": "LONG",
                "target_percentage_bps": 1000,
                "stake_coins": 5,
            },
            headers=_auth("alice"),
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == 5001

    async def test_invalid_direction_is_validation_error(
        self, client: AsyncClient, wired: Market
    ) -> None:
        resp = await client.post(
            "/api/v1/bets",
            json={
                "target_id": "co-1",
                "direction": "SIDEWAYS",
                "target_percentage_bps": 1000,
                "stake_coins": 50,
            },
            headers=_auth("alice"),
        )
        assert resp.status_code == 422

    async def test_cancel_over_http(self, client: AsyncClient, wired: Market) -> None:
        await _open_target(client)
        await client.post("/api/v1/coins/welcome-bonus", headers=_auth("alice"))
        placed = await client.post(
            "/api/v1/bets",
            json={
                "target_id": "co-1",
                "direction": "SHORT",
                "target_percentage_bps": -500,
                "stake_coins": 20,
            },
            headers=_auth("alice"),
        )
        bet_id = placed.json()["data"]["id"]
        resp = await client.post(f"/api/v1/bets/{bet_id}/cancel", headers=_auth("alice"))
        assert resp.json()["data"]["status"] == "CANCELLED"
        balance = await client.get("/api/v1/coins/balance", headers=_auth("alice"))
        assert balance.json()["data"]["balance"] == 100


class TestDiscovery:
    async def test_open_markets_exclude_own_target(
        self, client: AsyncClient, wired: Market
    ) -> None:
        await _open_target(client)
        listed = await client.get("/api/v1/targets", headers=_auth("alice"))
        assert listed.status_code == 200
        data = listed.json()["data"]
        assert [t["target_id"] for t in data["items"]] == ["co-1"]
        assert data["has_more"] is False
        own = await client.get("/api/v1/targets", headers=_auth("owner-1"))
        assert own.json()["data"]["items"] == []

    async def test_target_market_activity(self, client: AsyncClient, wired: Market) -> None:
        await _open_target(client)
        await client.post("/api/v1/coins/welcome-bonus", headers=_auth("alice"))
        await client.post(
            "/api/v1/bets",
            json={
                "target_id": "co-1",
                "direction": "LONG",
                "target_percentage_bps": 1000,
                "stake_coins": 50,
            },
            headers=_auth("alice"),
        )
        resp = await client.get("/api/v1/bets/targets/co-1", headers=_auth("alice"))
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert (data["total_bets"], data["total_staked"], data["active_bets"]) == (1, 45, 1)
        assert [b["stake_coins"] for b in data["my_bets"]] == [50]

        filtered = await client.get("/api/v1/bets?target_id=co-2", headers=_auth("alice"))
        assert filtered.json()["data"]["items"] == []

    async def test_non_numeric_bet_cursor_rejected(
        self, client: AsyncClient, wired: Market
    ) -> None:
        resp = await client.get("/api/v1/bets?cursor=abc", headers=_auth("alice"))
        assert resp.status_code == 422

    async def test_owner_open_ignores_supplied_baseline(
        self, client: AsyncClient, wired: Market
    ) -> None:
        await client.post(
            "/api/v1/targets",
            json={"target_id": "co-1", "target_kind": "COMPANY"},
            headers=_auth("owner-1"),
        )
        await client.patch(
            "/api/v1/targets/co-1/active", json={"is_active": False}, headers=_auth("owner-1")
        )
        await client.post(
            "/api/v1/revenue/co-1/mrr",
            json={"mrr_cents": 100000, "observed_at": "2026-11-03T12:00:00Z"},
            headers=COLLABORATOR,
        )
        resp = await client.post(
            "/api/v1/targets/co-1/periods",
            json={"baseline_mrr_cents": 1},
            headers=_auth("owner-1"),
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["baseline_mrr_cents"] == 100000


class TestAdmin:
    async def test_grant_credits_user(self, client: AsyncClient, wired: Market) -> None:
        resp = await client.post(
            "/api/v1/admin/coins/grant",
            json={"user_id": "u1", "amount": 250, "reason": "launch promo"},
            headers=_auth("admin-1"),
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["balance"] == 250
        assert wired.balance("u1") == 250

    async def test_grant_rejects_zero(self, client: AsyncClient, wired: Market) -> None:
        resp = await client.post(
            "/api/v1/admin/coins/grant",
            json={"user_id": "u1", "amount": 0, "reason": "x"},
            headers=_auth("admin-1"),
        )
        assert resp.status_code == 422

    async def test_manual_settlement_run(self, client: AsyncClient, wired: Market) -> None:
        resp = await client.post("/api/v1/admin/settlement/run", headers=_auth("admin-1"))
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["failures"] == 0
        assert set(data) >= {"locked", "claimed", "resumed", "resolved", "won", "lost", "void"}


class TestRequestId:
    async def test_upstream_id_is_echoed(self, client: AsyncClient, wired: Market) -> None:
        resp = await client.get(
            "/api/v1/coins/balance",
            headers={**_auth("u1"), "X-Request-ID": "edge-abc.123"},
        )
        assert resp.headers["X-Request-ID"] == "edge-abc.123"
        assert resp.json()["request_id"] == "edge-abc.123"

    async def test_malformed_id_replaced(self, client: AsyncClient) -> None:
        resp = await client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
        assert resp.headers["X-Request-ID"].startswith("req_")
