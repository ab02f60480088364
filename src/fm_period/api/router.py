"""Period endpoints, nested under the target they belong to."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.database import get_db_session
from src.fm_common.response import ApiResponse, success_response
from src.fm_gateway.auth.dependencies import get_current_user_id
from src.fm_period.application.service import PeriodApplicationService

router = APIRouter(prefix="/targets/{target_id}/periods", tags=["periods"])

_service = PeriodApplicationService()


@router.post("")
async def open_period(
    target_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    """Owner opens a period; the baseline is the cached verified MRR."""
    data = await _service.open_period(db, target_id, user_id)
    return success_response(data.model_dump(), request)


@router.get("")
async def list_periods(
    target_id: str,
    _user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(20, ge=1, le=100, description="Most recent first"),
) -> ApiResponse:
    periods = await _service.list_periods(db, target_id, limit)
    return success_response({"items": [p.model_dump() for p in periods]}, request)


@router.get("/current")
async def get_current_period(
    target_id: str,
    _user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    period = await _service.get_current_period(db, target_id)
    return success_response(period.model_dump() if period else None, request)
