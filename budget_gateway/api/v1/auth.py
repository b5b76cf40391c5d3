"""POST /api/register and POST /api/login"""

from fastapi import APIRouter, Depends

from budget_gateway.api.v1.schemas import CredentialsRequest, LoginResponse, MessageResponse
from budget_gateway.api.dependencies import get_account_service
from budget_gateway.services.accounts import AccountService

router = APIRouter()


@router.post("/register", response_model=MessageResponse, status_code=201)
def register(
    request_body: CredentialsRequest,
    service: AccountService = Depends(get_account_service),
):
    """Create an account with zero budget and empty ledgers"""
    service.register(request_body.username, request_body.password)
    return MessageResponse(message="Registration successful")


@router.post("/login", response_model=LoginResponse)
def login(
    request_body: CredentialsRequest,
    service: AccountService = Depends(get_account_service),
):
    """
    Exchange credentials for a bearer token.

    Returns:
        Token plus the current budget so clients can render without a second call
    """
    token, ledger = service.login(request_body.username, request_body.password)
    return LoginResponse(token=token, initial_budget=float(ledger.initial_budget))
