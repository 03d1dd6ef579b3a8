"""Per-user news bookmarks, kept in process memory."""

import itertools
import math
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable


@dataclass(frozen=True)
class SavedArticle:
    id: int
    user_id: int
    article_uuid: str
    title: str
    url: str
    published_at: str
    saved_at: float
    description: str | None = None
    image_url: str | None = None
    source: str | None = None
    categories: list[str] | None = None
    tickers: list[str] | None = None
    is_read: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "articleUuid": self.article_uuid,
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "imageUrl": self.image_url,
            "source": self.source,
            "publishedAt": self.published_at,
            "categories": self.categories,
            "tickers": self.tickers,
            "savedAt": int(self.saved_at * 1000),
            "isRead": self.is_read,
        }


class SavedArticleStore:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._ids = itertools.count(1)
        self._articles: dict[tuple[int, str], SavedArticle] = {}
        self._lock = threading.Lock()

    def list_for_user(
        self,
        user_id: int,
        page: int = 1,
        limit: int = 20,
        is_read: bool | None = None,
    ) -> dict:
        with self._lock:
            rows = [a for (uid, _), a in self._articles.items() if uid == user_id]
        if is_read is not None:
            rows = [a for a in rows if a.is_read == is_read]
        rows.sort(key=lambda a: (a.saved_at, a.id), reverse=True)

        total = len(rows)
        offset = (page - 1) * limit
        return {
            "data": [a.to_dict() for a in rows[offset : offset + limit]],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": math.ceil(total / limit) if limit else 0,
            },
        }

    def create(self, user_id: int, article_uuid: str, title: str, url: str, published_at: str, **extra) -> SavedArticle | None:
        """Returns None when the user already saved this article."""
        with self._lock:
            key = (user_id, article_uuid)
            if key in self._articles:
                return None
            article = SavedArticle(
                id=next(self._ids),
                user_id=user_id,
                article_uuid=article_uuid,
                title=title,
                url=url,
                published_at=published_at,
                saved_at=self._clock(),
                **extra,
            )
            self._articles[key] = article
            return article

    def remove(self, user_id: int, article_uuid: str) -> bool:
        with self._lock:
            return self._articles.pop((user_id, article_uuid), None) is not None

    def _set_read(self, user_id: int, article_uuid: str, is_read: bool) -> bool:
        with self._lock:
            key = (user_id, article_uuid)
            article = self._articles.get(key)
            if article is None:
                return False
            self._articles[key] = replace(article, is_read=is_read)
            return True

    def mark_read(self, user_id: int, article_uuid: str) -> bool:
        return self._set_read(user_id, article_uuid, True)

    def mark_unread(self, user_id: int, article_uuid: str) -> bool:
        return self._set_read(user_id, article_uuid, False)

    def saved_uuids(self, user_id: int) -> set[str]:
        with self._lock:
            return {uuid for (uid, uuid) in self._articles if uid == user_id}

    def unread_count(self, user_id: int) -> int:
        with self._lock:
            return sum(1 for (uid, _), a in self._articles.items() if uid == user_id and not a.is_read)
