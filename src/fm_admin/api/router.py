# src/fm_admin/api/router.py
"""Admin REST API — operator-only (ADMIN_USER_IDS)."""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_admin.application.service import AdminService
from src.fm_coin.application.schemas import GrantRequest
from src.fm_common.database import get_db_session
from src.fm_common.response import ApiResponse, success_response
from src.fm_gateway.auth.dependencies import require_admin

router = APIRouter(prefix="/admin", tags=["admin"])
_service = AdminService()


@router.post("/settlement/run")
async def run_settlement(
    operator_id: Annotated[str, Depends(require_admin)],
    request: Request,
) -> ApiResponse:
    result = await _service.run_settlement(operator_id)
    return success_response(result, request)


@router.get("/invariants")
async def check_invariants(
    _operator_id: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.check_invariants(db)
    return success_response(result, request)


@router.post("/coins/grant")
async def grant_coins(
    body: GrantRequest,
    operator_id: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.grant_coins(db, operator_id, body.user_id, body.amount, body.reason)
    return success_response(result, request)
