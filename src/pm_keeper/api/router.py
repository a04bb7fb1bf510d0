"""pm_keeper REST endpoints.

POST /keeper/auto-manage    — one keeper poll (external cron / scheduler trigger)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import get_current_operator
from src.pm_keeper.application.schemas import AutoManageResponse
from src.pm_keeper.application.service import AutoManagerService, get_auto_manager

router = APIRouter(prefix="/keeper", tags=["keeper"])


@router.post("/auto-manage")
async def auto_manage(
    request: Request,
    operator: Annotated[str, Depends(get_current_operator)],
    manager: Annotated[AutoManagerService, Depends(get_auto_manager)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await manager.evaluate(db)
    resp = success_response(AutoManageResponse.from_domain(result).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
