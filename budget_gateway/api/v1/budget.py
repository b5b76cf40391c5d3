"""Budget, allocation and account lifecycle endpoints"""

from fastapi import APIRouter, Depends

from budget_gateway.api.v1.schemas import (
    AllocationsSchema,
    BudgetInjectionRequest,
    BudgetResponse,
    InitialBudgetResponse,
    MessageResponse,
)
from budget_gateway.api.dependencies import get_account_service, get_current_user_id
from budget_gateway.services.accounts import AccountService

router = APIRouter()


@router.post("/initial-budget", response_model=BudgetResponse)
def inject_budget(
    request_body: BudgetInjectionRequest,
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    """Add budget; it is split 50/20/15/5/10 across the five allocations"""
    ledger = service.inject_budget(user_id, request_body.initial_budget)
    return BudgetResponse(
        initial_budget=float(ledger.initial_budget),
        allocations=AllocationsSchema.from_ledger(ledger),
    )


@router.get("/initial-budget", response_model=InitialBudgetResponse)
def get_initial_budget(
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    ledger = service.get_ledger(user_id)
    return InitialBudgetResponse(initial_budget=float(ledger.initial_budget))


@router.get("/allocations", response_model=AllocationsSchema)
def get_allocations(
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    return AllocationsSchema.from_ledger(service.get_ledger(user_id))


@router.post("/allocations", response_model=AllocationsSchema)
def set_allocations(
    request_body: AllocationsSchema,
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    """
    Overwrite all five allocation balances.

    Administrative override: initialBudget is not adjusted, so afterwards the
    allocation total may differ from it. No reconciliation is attempted.
    """
    ledger = service.set_allocations(user_id, request_body.to_categories())
    return AllocationsSchema.from_ledger(ledger)


@router.delete("/budget", response_model=MessageResponse)
def reset_budget(
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    """Zero budget and allocations and clear expenses and investments"""
    service.reset_budget(user_id)
    return MessageResponse(message="Budget has been reset")


@router.delete("/account", response_model=MessageResponse)
def delete_account(
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    """Delete the account with all its entries; repeating the call also succeeds"""
    service.delete_account(user_id)
    return MessageResponse(message="Account deleted")
