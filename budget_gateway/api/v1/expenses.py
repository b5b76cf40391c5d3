"""GET/POST /api/expenses and DELETE /api/expenses/{index}"""

from typing import List

from fastapi import APIRouter, Depends

from budget_gateway.api.v1.schemas import ExpenseRequest, ExpenseSchema
from budget_gateway.api.dependencies import get_account_service, get_current_user_id
from budget_gateway.domain.models import Ledger
from budget_gateway.services.accounts import AccountService

router = APIRouter()


def _expenses(ledger: Ledger) -> List[ExpenseSchema]:
    return [ExpenseSchema.from_domain(e) for e in ledger.expenses]


@router.get("/expenses", response_model=List[ExpenseSchema])
def list_expenses(
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    return _expenses(service.get_ledger(user_id))


@router.post("/expenses", response_model=List[ExpenseSchema])
def add_expense(
    request_body: ExpenseRequest,
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    """
    Record an expense against the allocation its category label maps to.

    Returns:
        Full expense list in index order
    """
    ledger = service.record_expense(
        user_id,
        amount=request_body.amount,
        category=request_body.category,
        purpose=request_body.purpose,
        location=request_body.location,
        expense_date=request_body.date,
    )
    return _expenses(ledger)


@router.delete("/expenses/{index}", response_model=List[ExpenseSchema])
def delete_expense(
    index: int,
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_account_service),
):
    """Remove an expense and refund it; later indices shift down by one"""
    return _expenses(service.delete_expense(user_id, index))
