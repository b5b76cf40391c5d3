"""Pytest fixtures for testing"""

import pytest
from typing import Callable, Generator, List
import httpx
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from budget_gateway.api.main import create_app
from budget_gateway.api.dependencies import get_price_provider
from budget_gateway.config import Settings, settings as app_settings
from budget_gateway.domain.models import Ledger
from budget_gateway.infrastructure.cache.price_cache import InMemoryPriceCache
from budget_gateway.infrastructure.clients.price import PriceProvider
from budget_gateway.infrastructure.database.models import Base
from budget_gateway.infrastructure.database.session import get_db
from budget_gateway.infrastructure.security.tokens import TokenService
from budget_gateway.services.accounts import AccountService


@pytest.fixture
def test_settings() -> Settings:
    """Settings with fast hashing and no CoinMarketCap key"""
    return Settings(
        password_hash_rounds=4,
        coinmarketcap_api_key=None,
        redis_url="",
    )


@pytest.fixture
def engine(tmp_path) -> Generator[Engine, None, None]:
    """File-backed SQLite so separate sessions see each other's commits"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Create test database session"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(secret="test-secret", issuer="budget-gateway", ttl_seconds=3600)


@pytest.fixture
def make_service(session_factory, token_service, test_settings) -> Callable[..., AccountService]:
    """Build an AccountService on its own session (one per simulated request)"""
    sessions: List[Session] = []

    def _make(**overrides) -> AccountService:
        session = session_factory()
        sessions.append(session)
        settings = test_settings.model_copy(update=overrides) if overrides else test_settings
        return AccountService(session, token_service, settings=settings)

    yield _make
    for session in sessions:
        session.close()


@pytest.fixture
def registered_user(make_service) -> Ledger:
    return make_service().register("alice", "s3cret-pass")


@pytest.fixture
def price_handler() -> Callable[[httpx.Request], httpx.Response]:
    """Upstream stub: CoinGecko answers every request with a fixed price"""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/simple/price"):
            return httpx.Response(200, json={"bitcoin": {"usd": 60000.0}})
        return httpx.Response(503)

    return handler


@pytest.fixture
def client(session_factory, monkeypatch, price_handler, test_settings) -> TestClient:
    """Create FastAPI test client with test database and stubbed price sources"""
    monkeypatch.setattr(app_settings, "password_hash_rounds", 4)
    monkeypatch.setattr(app_settings, "jwt_secret", "test-secret")
    app = create_app()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    async def no_sleep(_: float) -> None:
        return None

    price_cache = InMemoryPriceCache()

    def override_get_price_provider():
        return PriceProvider(
            price_cache,
            settings=test_settings,
            transport=httpx.MockTransport(price_handler),
            sleep=no_sleep,
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_price_provider] = override_get_price_provider
    return TestClient(app)


@pytest.fixture
def auth_headers(client: TestClient) -> dict:
    """Register and log in a user through the API"""
    client.post("/api/register", json={"username": "bob", "password": "hunter22"})
    response = client.post("/api/login", json={"username": "bob", "password": "hunter22"})
    return {"Authorization": f"Bearer {response.json()['token']}"}
