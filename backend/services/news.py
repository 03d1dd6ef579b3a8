"""Marketaux news client with a per-query cache and a daily budget.

Free tier allows 100 requests/day; the limiter keeps us at 80. Results are
cached for 15 minutes per canonical query, so the same filters asked in a
different order never cost a second request.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any

import httpx

from errors import RateLimitExceeded, UpstreamUnavailable
from services.cache import Source, TTLCache
from services.rate_limiter import RateLimiter, RateLimitStatus

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
TOP_FINANCE_INDUSTRIES = ["Financial", "Technology"]


@dataclass(frozen=True)
class NewsFilters:
    search: str | None = None
    symbols: list[str] | None = None
    industries: list[str] | None = None
    countries: list[str] | None = None
    filter_entities: bool = False
    must_have_entities: bool = False
    limit: int = DEFAULT_LIMIT
    page: int = 1
    sort: str = "published_at"
    sort_order: str = "desc"


@dataclass(frozen=True)
class NewsPage:
    articles: list[dict[str, Any]]
    meta: dict[str, int] | None


@dataclass(frozen=True)
class NewsResult:
    articles: list[dict[str, Any]] = field(default_factory=list)
    meta: dict[str, int] | None = None
    from_cache: bool = False


def _joined(values: list[str] | None) -> str:
    return ",".join(sorted(values)) if values else ""


def build_cache_key(filters: NewsFilters) -> str:
    """Canonical key: list order and field order never matter."""
    return json.dumps(
        {
            "search": filters.search or "",
            "symbols": _joined(filters.symbols),
            "industries": _joined(filters.industries),
            "page": filters.page or 1,
            "limit": filters.limit or DEFAULT_LIMIT,
        },
        sort_keys=True,
    )


def _query_params(api_key: str, filters: NewsFilters) -> dict[str, str]:
    params = {"api_token": api_key, "language": "en"}
    if filters.search:
        params["search"] = filters.search
    if filters.symbols:
        params["symbols"] = ",".join(filters.symbols)
    if filters.industries:
        params["industries"] = ",".join(filters.industries)
    if filters.countries:
        params["countries"] = ",".join(filters.countries)
    if filters.filter_entities:
        params["filter_entities"] = "true"
    if filters.must_have_entities:
        params["must_have_entities"] = "true"
    params["limit"] = str(filters.limit)
    params["page"] = str(filters.page)
    params["sort"] = filters.sort
    params["sort_order"] = filters.sort_order
    return params


class NewsGateway:
    def __init__(
        self,
        api_key: str | None,
        limiter: RateLimiter,
        cache: TTLCache[NewsPage],
        base_url: str = "https://api.marketaux.com/v1",
        max_limit: int = 50,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.limiter = limiter
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self.max_limit = max_limit
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _normalize(self, filters: NewsFilters) -> NewsFilters:
        limit = min(max(filters.limit or DEFAULT_LIMIT, 1), self.max_limit)
        page = max(filters.page or 1, 1)
        return replace(filters, limit=limit, page=page)

    async def get_news(self, filters: NewsFilters | None = None) -> NewsResult:
        """Never raises for upstream trouble; an empty result is a valid answer."""
        filters = self._normalize(filters or NewsFilters())
        key = build_cache_key(filters)

        async def refresh() -> NewsPage | None:
            return await self._refresh(filters)

        result = await self.cache.lookup(key, refresh)
        page = result.value

        if result.source is Source.FRESH:
            count = len(page.articles)
            meta = {"found": count, "returned": count, "page": filters.page, "limit": filters.limit}
            return NewsResult(page.articles, meta, from_cache=True)
        if result.source is Source.REFRESHED:
            return NewsResult(page.articles, page.meta, from_cache=False)
        if result.source is Source.STALE:
            return NewsResult(page.articles, None, from_cache=True)
        return NewsResult()

    async def get_top_finance_news(self) -> list[dict[str, Any]]:
        result = await self.get_news(
            NewsFilters(
                industries=list(TOP_FINANCE_INDUSTRIES),
                must_have_entities=True,
                limit=20,
                sort="published_at",
                sort_order="desc",
            )
        )
        return result.articles

    async def get_news_by_symbols(self, symbols: list[str]) -> list[dict[str, Any]]:
        result = await self.get_news(
            NewsFilters(
                symbols=list(symbols),
                filter_entities=True,
                limit=15,
                sort="published_at",
                sort_order="desc",
            )
        )
        return result.articles

    async def search_news(self, query: str, page: int = 1) -> NewsResult:
        return await self.get_news(
            NewsFilters(search=query, limit=20, page=page, sort="published_at", sort_order="desc")
        )

    def limiter_status(self) -> RateLimitStatus:
        return self.limiter.status()

    def clear_cache(self) -> None:
        self.cache.clear()

    async def _refresh(self, filters: NewsFilters) -> NewsPage | None:
        if not self.configured:
            logger.warning("Marketaux API key not configured")
            return None
        try:
            return await self._fetch(filters)
        except RateLimitExceeded as e:
            logger.warning("%s, serving cached news", e)
        except UpstreamUnavailable as e:
            logger.warning("Failed to fetch news: %s", e)
        return None

    async def _fetch(self, filters: NewsFilters) -> NewsPage:
        if not self.limiter.allow_request():
            raise RateLimitExceeded(self.limiter.name)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(
                    f"{self.base_url}/news/all",
                    params=_query_params(self.api_key, filters),
                )
                resp.raise_for_status()
                data = resp.json()
            articles = list(data["data"])
            meta = data.get("meta")
            if meta is not None:
                meta = {k: int(meta[k]) for k in ("found", "returned", "limit", "page")}
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(str(e)) from e
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise UpstreamUnavailable(f"Malformed news payload: {e!r}") from e

        # Only parsed responses count against the budget
        self.limiter.record_request()
        logger.info("Fetched %d articles (page=%d, limit=%d)", len(articles), filters.page, filters.limit)
        return NewsPage(articles=articles, meta=meta)
