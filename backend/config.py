"""Centralized configuration — all env vars in one place."""

import os

# Values shipped in .env.example that must not be sent upstream
_PLACEHOLDER_KEYS = {"your_marketaux_api_key_here", "your_exchange_rate_api_key_here"}


def _api_key(env_var: str) -> str | None:
    value = os.getenv(env_var, "").strip()
    if not value or value in _PLACEHOLDER_KEYS:
        return None
    return value


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
        self.git_sha: str = os.getenv("GIT_SHA", "unknown")
        self.environment: str = os.getenv("ENVIRONMENT", "local")

        # Open Exchange Rates
        self.exchange_rate_api_key: str | None = _api_key("EXCHANGE_RATE_API_KEY")
        self.exchange_rate_api_url: str = os.getenv(
            "EXCHANGE_RATE_API_URL", "https://openexchangerates.org/api"
        )
        self.exchange_rate_ttl_seconds: int = int(os.getenv("EXCHANGE_RATE_TTL_SECONDS", "3600"))
        self.exchange_rate_daily_limit: int = int(os.getenv("EXCHANGE_RATE_DAILY_LIMIT", "30"))

        # Marketaux
        self.marketaux_api_key: str | None = _api_key("MARKETAUX_API_KEY")
        self.marketaux_api_url: str = os.getenv("MARKETAUX_API_URL", "https://api.marketaux.com/v1")
        self.news_ttl_seconds: int = int(os.getenv("NEWS_TTL_SECONDS", "900"))
        self.news_daily_limit: int = int(os.getenv("NEWS_DAILY_LIMIT", "80"))
        self.news_max_limit: int = int(os.getenv("NEWS_MAX_LIMIT", "50"))
        self.news_cache_max_entries: int = int(os.getenv("NEWS_CACHE_MAX_ENTRIES", "256"))

        self.upstream_timeout_seconds: float = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "5"))

        # Access tokens are issued by the auth service with this shared secret
        self.jwt_secret: str | None = os.getenv("JWT_SECRET") or None

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def validate(self) -> list[str]:
        """Return list of missing env vars. The app still starts in degraded mode."""
        required = ["EXCHANGE_RATE_API_KEY", "MARKETAUX_API_KEY", "JWT_SECRET"]
        return [var for var in required if not getattr(self, _attr_for(var))]


settings = Settings()


def _attr_for(env_var: str) -> str:
    """Map env var name to Settings attribute name."""
    mapping = {
        "EXCHANGE_RATE_API_KEY": "exchange_rate_api_key",
        "MARKETAUX_API_KEY": "marketaux_api_key",
        "JWT_SECRET": "jwt_secret",
    }
    return mapping.get(env_var, env_var.lower())
