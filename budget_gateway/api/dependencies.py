"""Dependency injection for FastAPI endpoints"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from budget_gateway.config import settings
from budget_gateway.domain.exceptions import AuthError
from budget_gateway.infrastructure.cache.price_cache import PriceCache
from budget_gateway.infrastructure.clients.price import PriceProvider
from budget_gateway.infrastructure.database.session import get_db
from budget_gateway.infrastructure.security.tokens import TokenService
from budget_gateway.services.accounts import AccountService

bearer_scheme = HTTPBearer(auto_error=False)


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_token_service() -> TokenService:
    """Provide the bearer token signer/verifier"""
    return TokenService(
        secret=settings.jwt_secret,
        issuer=settings.jwt_issuer,
        ttl_seconds=settings.token_ttl_seconds,
    )


def get_account_service(
    request: Request,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> AccountService:
    """Provide the account facade bound to this request's session"""
    return AccountService(db, tokens, request_id=get_request_id(request))


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> str:
    """Resolve the caller's account id from the Authorization header"""
    if credentials is None:
        raise AuthError("Missing bearer token")
    return tokens.verify(credentials.credentials)


def get_price_cache(request: Request) -> PriceCache:
    """Shared cache created once per application"""
    return request.app.state.price_cache


def get_price_provider(cache: PriceCache = Depends(get_price_cache)) -> PriceProvider:
    """Provide Bitcoin price client instance"""
    return PriceProvider(cache)
