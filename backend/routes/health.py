"""Health and readiness check routes."""

import logging

from fastapi import APIRouter, Depends, Request

from dependencies import get_exchange_rates, get_news
from services.exchange_rates import ExchangeRateGateway
from services.news import NewsGateway

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/ready")
async def ready(request: Request) -> dict:
    """Lightweight readiness check — no external calls."""
    settings = request.app.state.settings
    return {"status": "ok", "service": "finance-tracker-api", "commit": settings.git_sha}


@router.get("/health")
async def health(
    request: Request,
    exchange_rates: ExchangeRateGateway = Depends(get_exchange_rates),
    news: NewsGateway = Depends(get_news),
) -> dict:
    """Integration status from local state only. Upstream budgets are never spent here."""
    settings = request.app.state.settings
    integrations = {
        "exchange_rates": {
            "configured": exchange_rates.configured,
            "rate_limit": exchange_rates.limiter_status().to_dict(),
        },
        "news": {
            "configured": news.configured,
            "rate_limit": news.limiter_status().to_dict(),
            "cached_queries": len(news.cache),
        },
    }
    degraded = [name for name, info in integrations.items() if not info["configured"]]
    if degraded:
        logger.info("Health check: running without %s", ", ".join(degraded))

    return {
        "status": "degraded" if degraded else "ok",
        "service": "finance-tracker-api",
        "commit": settings.git_sha,
        "integrations": integrations,
    }
