"""fm_coin REST API — 4 endpoints, all require a Bearer token."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_coin.application.service import CoinApplicationService
from src.fm_common.database import get_db_session
from src.fm_common.response import ApiResponse, success_response
from src.fm_gateway.auth.dependencies import get_current_user_id

router = APIRouter(prefix="/coins", tags=["coins"])

_service = CoinApplicationService()


@router.get("/balance")
async def get_balance(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, user_id)
    return success_response(data.model_dump(), request)


@router.get("/ledger")
async def list_ledger(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    entry_type: str | None = Query(None, description="Filter by CoinEntryType"),
) -> ApiResponse:
    data = await _service.list_ledger(db, user_id, cursor, limit, entry_type)
    return success_response(data.model_dump(), request)


@router.post("/welcome-bonus")
async def claim_welcome_bonus(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.claim_welcome_bonus(db, user_id)
    return success_response(data.model_dump(), request)


@router.post("/daily-bonus")
async def claim_daily_bonus(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.claim_daily_bonus(db, user_id)
    return success_response(data.model_dump(), request)
