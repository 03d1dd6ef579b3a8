"""Custom exceptions and centralized FastAPI error handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class FinanceTrackerError(Exception):
    """Base exception with HTTP status code."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class InvalidCurrencyError(FinanceTrackerError):
    def __init__(self, code: str | None = None):
        super().__init__("Invalid currency code", status_code=400)
        self.code = code


class RatesUnavailableError(FinanceTrackerError):
    def __init__(self):
        super().__init__("Exchange rate service temporarily unavailable", status_code=503)


class UnauthorizedError(FinanceTrackerError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=401)


class NotFoundError(FinanceTrackerError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, status_code=404)


class ArticleAlreadySavedError(FinanceTrackerError):
    def __init__(self):
        super().__init__("Article already saved", status_code=400)


# Internal signals. Gateways turn these into stale or empty results.


class RateLimitExceeded(Exception):
    def __init__(self, name: str):
        super().__init__(f"{name} daily request budget exhausted")
        self.name = name


class UpstreamUnavailable(Exception):
    """Network error, non-2xx response or malformed payload from a provider."""


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(FinanceTrackerError)
    async def handle_finance_tracker_error(_request: Request, exc: FinanceTrackerError):
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    @app.exception_handler(ValueError)
    async def handle_value_error(_request: Request, exc: ValueError):
        return JSONResponse({"error": str(exc)}, status_code=400)

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            {"error": "Internal server error"},
            status_code=500,
        )
