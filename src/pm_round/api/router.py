"""pm_round REST endpoints.

POST /contract/init           — initialize the betting contract (idempotent)
POST /contract/start-round    — start a round at the current oracle price
POST /keeper/settle           — settle a round, cooldown, start the next one
GET  /rounds/current          — current round and its derived phase
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.database import get_db_session
from src.pm_common.micro_units import to_micro_units
from src.pm_common.response import ApiResponse, success_response
from src.pm_gateway.auth.dependencies import get_current_operator
from src.pm_round.application.schemas import (
    AdvanceResponse,
    CurrentRoundResponse,
    InitContractResponse,
    SettleRequest,
    StartRoundResponse,
)
from src.pm_round.application.service import (
    RoundLifecycleService,
    RoundQueryService,
    get_round_query_service,
    get_round_service,
)

router = APIRouter(tags=["rounds"])


@router.post("/contract/init")
async def init_contract(
    request: Request,
    operator: Annotated[str, Depends(get_current_operator)],
    service: Annotated[RoundLifecycleService, Depends(get_round_service)],
) -> ApiResponse:
    result = await service.init_contract()
    message = "Contract already initialized" if result.already_initialized else "success"
    resp = success_response(InitContractResponse.from_domain(result).model_dump(), message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/contract/start-round")
async def start_round(
    request: Request,
    operator: Annotated[str, Depends(get_current_operator)],
    service: Annotated[RoundLifecycleService, Depends(get_round_service)],
) -> ApiResponse:
    started = await service.start_round_at_market()
    resp = success_response(StartRoundResponse.from_domain(started).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/keeper/settle")
async def settle_and_advance(
    body: SettleRequest,
    request: Request,
    operator: Annotated[str, Depends(get_current_operator)],
    service: Annotated[RoundLifecycleService, Depends(get_round_service)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await service.advance_to_next_round(db, body.round_id, to_micro_units(body.end_price))
    resp = success_response(AdvanceResponse.from_domain(result).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/rounds/current")
async def get_current_round(
    request: Request,
    service: Annotated[RoundQueryService, Depends(get_round_query_service)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    status = await service.describe_current_round(db)
    resp = success_response(CurrentRoundResponse.from_domain(status).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
