"""pm_oracle REST endpoints.

GET /price    — current reference price (raw and micro-units)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.pm_common.micro_units import micro_units_to_display
from src.pm_common.response import ApiResponse, success_response
from src.pm_oracle.application.service import PriceOracleService, get_price_oracle

router = APIRouter(tags=["price"])


@router.get("/price")
async def get_current_price(
    request: Request,
    oracle: Annotated[PriceOracleService, Depends(get_price_oracle)],
) -> ApiResponse:
    quote = await oracle.fetch_current_price()
    resp = success_response(
        {
            "price": str(quote.price),
            "price_micro_units": quote.micro_units,
            "price_display": micro_units_to_display(quote.micro_units),
            "publish_time": quote.publish_time,
        }
    )
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
