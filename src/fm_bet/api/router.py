"""fm_bet REST API — placement, cancellation, history, stats, per-target activity."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_bet.application.schemas import PlaceBetRequest
from src.fm_bet.application.service import BetApplicationService
from src.fm_common.database import get_db_session
from src.fm_common.enums import BetStatus
from src.fm_common.response import ApiResponse, success_response
from src.fm_gateway.auth.dependencies import get_current_user_id
from src.fm_gateway.middleware.rate_limit import bet_placement_limiter

router = APIRouter(prefix="/bets", tags=["bets"])

_service = BetApplicationService()


@router.post("", dependencies=[Depends(bet_placement_limiter)])
async def place_bet(
    body: PlaceBetRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.place_bet(db, user_id, body)
    return success_response(data.model_dump(), request)


@router.post("/{bet_id}/cancel")
async def cancel_bet(
    bet_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.cancel_bet(db, bet_id, user_id)
    return success_response(data.model_dump(), request)


@router.get("")
async def list_bets(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: BetStatus | None = Query(None),
    target_id: str | None = Query(None, min_length=1, max_length=64),
    cursor: str | None = Query(
        None, pattern=r"^\d{1,20}$", description="Id of the last bet on the previous page"
    ),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_bets(
        db, user_id, status.value if status else None, cursor, limit, target_id=target_id
    )
    return success_response(data.model_dump(), request)


# Static paths are declared before /{bet_id} so they are not captured by it
@router.get("/stats")
async def get_stats(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_stats(db, user_id)
    return success_response(data.model_dump(), request)


@router.get("/leaderboard")
async def leaderboard(
    _user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    entries = await _service.leaderboard(db, limit)
    return success_response({"items": [e.model_dump() for e in entries]}, request)


@router.get("/targets/{target_id}")
async def get_target_market(
    target_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_target_market(db, target_id, user_id)
    return success_response(data.model_dump(), request)


@router.get("/{bet_id}")
async def get_bet(
    bet_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_bet(db, bet_id, user_id)
    return success_response(data.model_dump(), request)
