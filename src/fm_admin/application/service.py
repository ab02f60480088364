# src/fm_admin/application/service.py
"""Admin application service."""
import logging
from dataclasses import asdict
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_coin.application.service import CoinApplicationService
from src.fm_settlement.application.service import SettlementEngine
from src.fm_settlement.domain.global_invariants import verify_global_invariants

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(
        self,
        engine: SettlementEngine | None = None,
        coins: CoinApplicationService | None = None,
    ) -> None:
        self._engine = engine or SettlementEngine()
        self._coins = coins or CoinApplicationService()

    async def run_settlement(self, operator_id: str) -> dict[str, Any]:
        logger.info("Manual settlement cycle requested by %s", operator_id)
        summary = await self._engine.run_settlement_cycle()
        return asdict(summary)

    async def check_invariants(self, db: AsyncSession) -> dict[str, Any]:
        violations = await verify_global_invariants(db)
        return {"ok": not violations, "violations": violations}

    async def grant_coins(
        self, db: AsyncSession, operator_id: str, user_id: str, amount: int, reason: str
    ) -> dict[str, Any]:
        result = await self._coins.grant(db, operator_id, user_id, amount, reason)
        return result.model_dump()
