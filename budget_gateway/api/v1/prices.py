"""GET /api/bitcoin-price and GET /api/bitcoin-history - never fail, may degrade"""

from typing import List

from fastapi import APIRouter, Depends, Response

from budget_gateway.api.v1.schemas import PricePointSchema, PriceResponse
from budget_gateway.api.dependencies import get_price_provider
from budget_gateway.infrastructure.clients.price import PriceProvider

router = APIRouter()

DEGRADED_HEADER = "X-Price-Degraded"


@router.get("/bitcoin-price", response_model=PriceResponse)
async def bitcoin_price(
    response: Response,
    price_provider: PriceProvider = Depends(get_price_provider),
):
    """Current BTC/USD price; `degraded` marks the fixed fallback quote"""
    quote = await price_provider.get_current_price()
    response.headers[DEGRADED_HEADER] = str(quote.degraded).lower()
    return PriceResponse(
        price=quote.price,
        degraded=quote.degraded,
        source=quote.source,
        warning="Could not fetch the Bitcoin price from any source; showing a fallback value"
        if quote.degraded
        else None,
    )


@router.get("/bitcoin-history", response_model=List[PricePointSchema])
async def bitcoin_history(
    response: Response,
    price_provider: PriceProvider = Depends(get_price_provider),
):
    """Seven daily prices; points flagged `synthetic` are not market data"""
    history = await price_provider.get_history()
    response.headers[DEGRADED_HEADER] = str(history.degraded).lower()
    return [PricePointSchema.from_domain(p) for p in history.points]
