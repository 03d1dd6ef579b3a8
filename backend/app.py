"""FastAPI application entry point for the finance tracker market-data API."""

import logging
import sys
import time
from typing import Callable

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from config import Settings, settings as default_settings
from errors import register_error_handlers
from services.cache import TTLCache
from services.exchange_rates import ExchangeRateGateway
from services.news import NewsGateway
from services.rate_limiter import RateLimiter
from services.saved_articles import SavedArticleStore

# Structured logging: JSON for production, human-readable for local
if default_settings.is_production:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}',
        stream=sys.stdout,
    )
else:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

logger = logging.getLogger(__name__)


def _build_state(
    app: FastAPI,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None,
    clock: Callable[[], float],
) -> None:
    """Composition root: one limiter and one cache per upstream integration."""
    app.state.settings = settings
    app.state.exchange_rates = ExchangeRateGateway(
        api_key=settings.exchange_rate_api_key,
        limiter=RateLimiter("exchange_rates", settings.exchange_rate_daily_limit, clock=clock),
        cache=TTLCache(settings.exchange_rate_ttl_seconds, clock=clock),
        base_url=settings.exchange_rate_api_url,
        timeout=settings.upstream_timeout_seconds,
        transport=transport,
        clock=clock,
    )
    app.state.news = NewsGateway(
        api_key=settings.marketaux_api_key,
        limiter=RateLimiter("news", settings.news_daily_limit, clock=clock),
        cache=TTLCache(
            settings.news_ttl_seconds,
            max_entries=settings.news_cache_max_entries,
            clock=clock,
        ),
        base_url=settings.marketaux_api_url,
        max_limit=settings.news_max_limit,
        timeout=settings.upstream_timeout_seconds,
        transport=transport,
    )
    app.state.saved_articles = SavedArticleStore(clock=clock)


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    settings = settings or default_settings
    app = FastAPI(title="Finance Tracker Market Data API", version="1.0.0")
    _build_state(app, settings, transport, clock)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # Centralized error handlers
    register_error_handlers(app)

    from routes.exchange_rates import router as exchange_rates_router
    from routes.health import router as health_router
    from routes.news import router as news_router

    app.include_router(health_router)
    app.include_router(exchange_rates_router)
    app.include_router(news_router)

    @app.on_event("startup")
    async def _validate_config() -> None:
        missing = settings.validate()
        if missing:
            logger.warning("Missing env vars (serving cached or empty data only): %s", ", ".join(missing))

    return app


app = create_app()
