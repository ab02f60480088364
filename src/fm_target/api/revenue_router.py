"""Revenue-verification collaborator endpoints.

The collaborator authenticates with the shared X-Collaborator-Token header
and pushes verified MRR values and connection changes for a target.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.database import get_db_session
from src.fm_common.response import ApiResponse, success_response
from src.fm_gateway.auth.dependencies import require_collaborator
from src.fm_target.application.schemas import VerifiedMrrRequest
from src.fm_target.application.service import SettingsApplicationService

router = APIRouter(
    prefix="/revenue",
    tags=["revenue"],
    dependencies=[Depends(require_collaborator)],
)

_service = SettingsApplicationService()


@router.post("/{target_id}/mrr")
async def update_verified_mrr(
    target_id: str,
    body: VerifiedMrrRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_verified_mrr(db, target_id, body.mrr_cents, body.observed_at)
    return success_response(data.model_dump(), request)


@router.post("/{target_id}/connect")
async def connect(
    target_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.on_connect(db, target_id)
    return success_response(data.model_dump(), request)


@router.post("/{target_id}/disconnect")
async def disconnect(
    target_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.on_disconnect(db, target_id)
    return success_response(data.model_dump(), request)
