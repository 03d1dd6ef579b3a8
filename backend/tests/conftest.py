import time

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient

from app import create_app
from auth import ALGORITHM
from config import Settings

T0 = 1_700_000_000.0

RATES_PAYLOAD = {
    "disclaimer": "Usage subject to terms",
    "license": "https://openexchangerates.org/license",
    "timestamp": 1_699_999_200,
    "base": "USD",
    "rates": {"USD": 1, "EUR": 0.92, "MYR": 4.47, "GBP": 0.79, "XAU": 0.0005},
}


def create_access_token(secret: str, user_id: int, email: str | None = None, expires_in: int = 900) -> str:
    """Sign a token the way the auth service does."""
    now = int(time.time())
    payload = {"userId": user_id, "email": email, "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def make_article(uuid: str, title: str = "Markets rally") -> dict:
    return {
        "uuid": uuid,
        "title": title,
        "description": "Stocks moved higher.",
        "snippet": "",
        "url": f"https://news.example.com/{uuid}",
        "image_url": None,
        "language": "en",
        "published_at": "2026-10-19T09:00:00.000000Z",
        "source": "news.example.com",
        "categories": ["business"],
        "relevance_score": None,
        "entities": [
            {"symbol": "AAPL", "name": "Apple Inc.", "type": "equity", "industry": "Technology",
             "match_score": 12.5, "sentiment_score": 0.4, "highlights": []},
        ],
    }


def news_payload(*uuids: str, found: int | None = None, page: int = 1, limit: int = 10) -> dict:
    return {
        "meta": {"found": found if found is not None else len(uuids), "returned": len(uuids),
                 "limit": limit, "page": page},
        "data": [make_article(u) for u in uuids],
    }


class FakeClock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstream:
    """Answers both providers; records every request it receives."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.rates = RATES_PAYLOAD
        self.news = news_payload("a-1", "a-2")
        self.fail_with: int | None = None
        self.raise_error: Exception | None = None

    def calls_to(self, path_suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(path_suffix)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_error is not None:
            raise self.raise_error
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, text="upstream error")
        if request.url.path.endswith("/latest.json"):
            return httpx.Response(200, json=self.rates)
        if request.url.path.endswith("/news/all"):
            return httpx.Response(200, json=self.news)
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def settings():
    s = Settings()
    s.environment = "test"
    s.exchange_rate_api_key = "test-app-id"
    s.marketaux_api_key = "test-api-token"
    s.jwt_secret = "test-secret"
    return s


@pytest.fixture
def app(settings, upstream, clock):
    return create_app(settings=settings, transport=upstream.transport, clock=clock)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_headers(settings):
    token = create_access_token(settings.jwt_secret, user_id=7, email="sam@example.com")
    return {"Authorization": f"Bearer {token}"}
