"""pm_claim REST endpoints.

POST /claims                                — claim one round for a user
GET  /claims/{user_address}                 — claimable rounds (last N rounds)
POST /claims/{user_address}/claim-all       — claim every claimable round
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Request

from config.settings import settings
from src.pm_claim.application.schemas import (
    ClaimableSummaryResponse,
    ClaimAllResponse,
    ClaimRequest,
    ClaimResponse,
)
from src.pm_claim.application.service import (
    ClaimService,
    get_claim_query_service,
    get_claim_service,
)
from src.pm_common.enums import ClaimOutcome
from src.pm_common.errors import NoWinningsError
from src.pm_common.response import ApiResponse, success_response

router = APIRouter(prefix="/claims", tags=["claims"])

UserAddress = Annotated[str, Path(pattern=r"^0x[0-9a-fA-F]{1,64}$")]


@router.post("")
async def claim(
    body: ClaimRequest,
    request: Request,
    service: Annotated[ClaimService, Depends(get_claim_service)],
) -> ApiResponse:
    result = await service.claim(body.round_id, body.user_address)
    if result.outcome is ClaimOutcome.NO_WINNINGS:
        raise NoWinningsError(body.round_id, body.user_address)
    resp = success_response(ClaimResponse.from_domain(result).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{user_address}")
async def list_claimable(
    request: Request,
    service: Annotated[ClaimService, Depends(get_claim_query_service)],
    user_address: UserAddress,
    lookback: int = Query(settings.CLAIM_LOOKBACK_ROUNDS, ge=1, le=100),
) -> ApiResponse:
    summary = await service.list_claimable(user_address, lookback)
    resp = success_response(ClaimableSummaryResponse.from_domain(summary).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/{user_address}/claim-all")
async def claim_all(
    request: Request,
    service: Annotated[ClaimService, Depends(get_claim_service)],
    user_address: UserAddress,
    lookback: int = Query(settings.CLAIM_LOOKBACK_ROUNDS, ge=1, le=100),
) -> ApiResponse:
    items = await service.claim_all(user_address, lookback)
    resp = success_response(ClaimAllResponse.from_domain(user_address, items).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
