"""Market news routes.

Feeds are public; a valid bearer token additionally marks each article
with ``isSaved``. Bookmark routes under /api/news/saved require a user.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field

from auth import CurrentUser, optional_user, require_user
from dependencies import get_news, get_saved_articles
from errors import ArticleAlreadySavedError, NotFoundError
from services.news import NewsFilters, NewsGateway
from services.saved_articles import SavedArticleStore

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_PAGE_SIZE = 50


def _ok(data: Any, message: str | None = None) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


def _split(raw: str | None, upper: bool = False) -> list[str] | None:
    if not raw:
        return None
    values = [v.strip() for v in raw.split(",") if v.strip()]
    if upper:
        values = [v.upper() for v in values]
    return values or None


def _to_int(raw: str | None, default: int) -> int:
    """Zero counts as missing, so the route default applies."""
    try:
        return int(raw or 0) or default
    except ValueError:
        return default


def _annotate(
    articles: list[dict], user: CurrentUser | None, store: SavedArticleStore
) -> list[dict]:
    """Copy each article with isSaved; cached articles are never touched."""
    saved = store.saved_uuids(user.user_id) if user else set()
    return [{**article, "isSaved": article.get("uuid") in saved} for article in articles]


# ---------------------------------------------------------------------------
# Feeds
# ---------------------------------------------------------------------------

@router.get("/api/news")
async def news_feed(
    search: str | None = Query(None),
    symbols: str | None = Query(None),
    industries: str | None = Query(None),
    page: str | None = Query("1"),
    limit: str | None = Query("20"),
    user: CurrentUser | None = Depends(optional_user),
    gateway: NewsGateway = Depends(get_news),
    store: SavedArticleStore = Depends(get_saved_articles),
) -> dict:
    filters = NewsFilters(
        search=search or None,
        symbols=_split(symbols),
        industries=_split(industries),
        page=_to_int(page, 1),
        limit=min(_to_int(limit, 20), MAX_PAGE_SIZE),
        must_have_entities=True,
        sort="published_at",
        sort_order="desc",
    )
    result = await gateway.get_news(filters)
    return _ok({
        "articles": _annotate(result.articles, user, store),
        "meta": result.meta,
        "fromCache": result.from_cache,
    })


@router.get("/api/news/top")
async def top_news(
    user: CurrentUser | None = Depends(optional_user),
    gateway: NewsGateway = Depends(get_news),
    store: SavedArticleStore = Depends(get_saved_articles),
) -> dict:
    articles = await gateway.get_top_finance_news()
    return _ok({"articles": _annotate(articles, user, store)})


@router.get("/api/news/search")
async def search_news(
    q: str | None = Query(None),
    page: str | None = Query("1"),
    user: CurrentUser | None = Depends(optional_user),
    gateway: NewsGateway = Depends(get_news),
    store: SavedArticleStore = Depends(get_saved_articles),
) -> dict:
    if not q:
        raise ValueError("Search query is required")
    result = await gateway.search_news(q, _to_int(page, 1))
    return _ok({"articles": _annotate(result.articles, user, store), "meta": result.meta})


@router.get("/api/news/by-symbols")
async def news_by_symbols(
    symbols: str | None = Query(None),
    user: CurrentUser | None = Depends(optional_user),
    gateway: NewsGateway = Depends(get_news),
    store: SavedArticleStore = Depends(get_saved_articles),
) -> dict:
    symbol_list = _split(symbols, upper=True)
    if not symbol_list:
        raise ValueError("Symbols are required")
    articles = await gateway.get_news_by_symbols(symbol_list)
    return _ok({"articles": _annotate(articles, user, store)})


@router.get("/api/news/rate-limit")
async def news_rate_limit(gateway: NewsGateway = Depends(get_news)) -> dict:
    return _ok(gateway.limiter_status().to_dict())


# ---------------------------------------------------------------------------
# Saved articles
# ---------------------------------------------------------------------------

class SaveArticleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uuid: str
    title: str
    url: str
    published_at: str = Field(alias="publishedAt")
    description: str | None = None
    image_url: str | None = Field(None, alias="imageUrl")
    source: str | None = None
    categories: list[str] | None = None
    tickers: list[str] | None = None


@router.get("/api/news/saved")
async def saved_articles(
    page: str | None = Query("1"),
    limit: str | None = Query("20"),
    is_read: str | None = Query(None, alias="isRead"),
    user: CurrentUser = Depends(require_user),
    store: SavedArticleStore = Depends(get_saved_articles),
) -> dict:
    return _ok(
        store.list_for_user(
            user.user_id,
            page=max(_to_int(page, 1), 1),
            limit=min(max(_to_int(limit, 20), 1), MAX_PAGE_SIZE),
            is_read=None if is_read is None else is_read == "true",
        )
    )


@router.get("/api/news/saved/unread-count")
async def unread_count(
    user: CurrentUser = Depends(require_user),
    store: SavedArticleStore = Depends(get_saved_articles),
) -> dict:
    return _ok({"count": store.unread_count(user.user_id)})


@router.post("/api/news/saved", status_code=201)
async def save_article(
    body: SaveArticleRequest,
    user: CurrentUser = Depends(require_user),
    store: SavedArticleStore = Depends(get_saved_articles),
) -> dict:
    article = store.create(
        user.user_id,
        body.uuid,
        title=body.title,
        url=body.url,
        published_at=body.published_at,
        description=body.description,
        image_url=body.image_url,
        source=body.source,
        categories=body.categories,
        tickers=body.tickers,
    )
    if article is None:
        raise ArticleAlreadySavedError()
    logger.info("User %s saved article %s", user.user_id, body.uuid)
    return _ok(article.to_dict(), "Article saved successfully")


@router.delete("/api/news/saved/{uuid}", status_code=204)
async def remove_saved_article(
    uuid: str,
    user: CurrentUser = Depends(require_user),
    store: SavedArticleStore = Depends(get_saved_articles),
) -> Response:
    if not store.remove(user.user_id, uuid):
        raise NotFoundError("Article not found")
    return Response(status_code=204)


@router.patch("/api/news/saved/{uuid}/read")
async def mark_as_read(
    uuid: str,
    user: CurrentUser = Depends(require_user),
    store: SavedArticleStore = Depends(get_saved_articles),
) -> dict:
    if not store.mark_read(user.user_id, uuid):
        raise NotFoundError("Article not found")
    return _ok({"message": "Article marked as read"})


@router.patch("/api/news/saved/{uuid}/unread")
async def mark_as_unread(
    uuid: str,
    user: CurrentUser = Depends(require_user),
    store: SavedArticleStore = Depends(get_saved_articles),
) -> dict:
    if not store.mark_unread(user.user_id, uuid):
        raise NotFoundError("Article not found")
    return _ok({"message": "Article marked as unread"})
