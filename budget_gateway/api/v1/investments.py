"""Investment ledger and portfolio analysis endpoints"""

from typing import List

from fastapi import APIRouter, Depends

from budget_gateway.api.v1.schemas import (
    AnalysisResponse,
    InvestmentCreatedResponse,
    InvestmentRequest,
    InvestmentSchema,
)
from budget_gateway.api.dependencies import get_account_service, get_current_user_id, get_price_provider
from budget_gateway.config import settings
from budget_gateway.domain.analysis import analyze
from budget_gateway.domain.models import Ledger
from budget_gateway.infrastructure.clients.price import PriceProvider
from budget_gateway.services.accounts import AccountService

router = APIRouter()


def _investments(ledger: Ledger) -> List[InvestmentSchema]:
    return [InvestmentSchema.from_domain(i) for i in ledger.investments]


@router.get("/investments", response_model=List[InvestmentSchema])
def list_investments(
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    return _investments(service.get_ledger(user_id))


@router.post("/investments", response_model=InvestmentCreatedResponse)
def add_investment(
    request_body: InvestmentRequest,
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    """
    Record an investment funded from self-investment (then emergency).

    A purchase above 10% of the portfolio is committed and comes back with
    a `warning`; it is not rejected.
    """
    ledger, warning = service.record_investment(
        user_id, request_body.amount, request_body.price, request_body.type
    )
    return InvestmentCreatedResponse(investments=_investments(ledger), warning=warning)


@router.delete("/investments/{index}", response_model=List[InvestmentSchema])
def delete_investment(
    index: int,
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    return _investments(service.delete_investment(user_id, index))


@router.get("/investment-analysis", response_model=AnalysisResponse)
async def investment_analysis(
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
    price_provider: PriceProvider = Depends(get_price_provider),
):
    """
    Value the portfolio at the current Bitcoin price.

    Flow:
    1. Load the ledger
    2. Fetch the current price (never fails; may be the degraded fallback)
    3. Revalue price-indexed holdings and evaluate recommendation rules
    """
    ledger = service.get_ledger(user_id)
    quote = await price_provider.get_current_price()
    analysis = analyze(ledger, quote, settings.price_indexed_investment_types)
    return AnalysisResponse.from_domain(analysis)
