"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.responses import Response

from budget_gateway.api.dependencies import get_price_cache
from budget_gateway.api.errors import register_exception_handlers
from budget_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from budget_gateway.api.v1 import auth, budget, expenses, investments, prices
from budget_gateway.api.v1.schemas import HealthResponse
from budget_gateway.infrastructure.cache.price_cache import PriceCache, build_price_cache
from budget_gateway.infrastructure.database.models import Base
from budget_gateway.infrastructure.database.session import engine, get_db
from budget_gateway.infrastructure.observability.logging import setup_logging
from budget_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level, settings.service_name)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logging.info("Database schema ready")
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Budget Gateway",
        description="Envelope budgeting with expense, investment and Bitcoin price tracking",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.price_cache = build_price_cache(settings)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/api/ping", response_model=HealthResponse)
    async def ping(db: Session = Depends(get_db), cache: PriceCache = Depends(get_price_cache)):
        dependencies = {}
        try:
            db.execute(text("SELECT 1"))
            dependencies["database"] = "ok"
        except SQLAlchemyError as e:
            logging.warning(f"Health check database failure: {e}")
            dependencies["database"] = "unavailable"
        dependencies["cache"] = "ok" if await cache.ping() else "unavailable"

        status = "ok" if dependencies["database"] == "ok" else "degraded"
        return HealthResponse(status=status, service=settings.service_name, dependencies=dependencies)

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(auth.router, prefix="/api", tags=["auth"])
    app.include_router(budget.router, prefix="/api", tags=["budget"])
    app.include_router(expenses.router, prefix="/api", tags=["expenses"])
    app.include_router(investments.router, prefix="/api", tags=["investments"])
    app.include_router(prices.router, prefix="/api", tags=["prices"])

    return app


app = create_app()
