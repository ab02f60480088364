"""Target endpoints: owner forecasting settings and open-market discovery."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.database import get_db_session
from src.fm_common.enums import TargetKind
from src.fm_common.response import ApiResponse, success_response
from src.fm_gateway.auth.dependencies import get_current_user_id
from src.fm_target.application.schemas import (
    EnableForecastingRequest,
    SetActiveRequest,
    SetStakeBoundsRequest,
)
from src.fm_target.application.service import SettingsApplicationService

router = APIRouter(prefix="/targets", tags=["targets"])

_service = SettingsApplicationService()


@router.post("")
async def enable_forecasting(
    body: EnableForecastingRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.enable_forecasting(
        db, body.target_id, body.target_kind.value, user_id, body.min_stake, body.max_stake
    )
    return success_response(data.model_dump(), request)


@router.get("")
async def list_open_markets(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    target_kind: TargetKind | None = Query(None),
    cursor: str | None = Query(None, description="target_id of the last item on the previous page"),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_open_markets(
        db, user_id, target_kind.value if target_kind else None, cursor, limit
    )
    return success_response(data.model_dump(), request)


@router.get("/{target_id}")
async def get_settings(
    target_id: str,
    _user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_settings(db, target_id)
    return success_response(data.model_dump(), request)


@router.patch("/{target_id}/active")
async def set_active(
    target_id: str,
    body: SetActiveRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.set_active(db, target_id, user_id, body.is_active)
    return success_response(data.model_dump(), request)


@router.patch("/{target_id}/stake-bounds")
async def set_stake_bounds(
    target_id: str,
    body: SetStakeBoundsRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.set_stake_bounds(
        db, target_id, user_id, body.min_stake, body.max_stake
    )
    return success_response(data.model_dump(), request)
