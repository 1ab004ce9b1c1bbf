"""
Boundary to the post/user/comment core.

Analytics treats content and author refs as opaque foreign keys. Everything
it needs to know about them (who wrote a post, site totals, comment and like
activity) comes through a SiteDirectory. Lookups that fail to resolve return
None and the caller simply omits the join.
"""
from collections import Counter
from datetime import datetime
from threading import Lock
from typing import Protocol

from .models import AuthorInfo, ContentInfo, DailyCount, SiteCounts
from .periods import DAILY, bucket_label


class SiteDirectory(Protocol):
    """What analytics asks of the rest of the platform."""

    def content(self, content_ref: str) -> ContentInfo | None:
        ...

    def author(self, author_ref: str) -> AuthorInfo | None:
        ...

    def content_by_author(self, author_ref: str) -> list[str]:
        ...

    def totals(self) -> SiteCounts:
        ...

    def new_users_since(self, since: datetime) -> int:
        ...

    def comments_per_day(self, since: datetime) -> list[DailyCount]:
        ...

    def likes_per_day(self, since: datetime) -> list[DailyCount]:
        ...


class StaticDirectory:
    """In-memory directory for tests, demos and single-process deployments.

    The owning application registers content, authors and activity as it
    happens.
    """

    def __init__(self):
        self._content: dict[str, ContentInfo] = {}
        self._authors: dict[str, AuthorInfo] = {}
        self._users_joined: list[datetime] = []
        self._comments: list[datetime] = []
        self._likes: list[datetime] = []
        self._lock = Lock()

    def add_content(self, content_ref: str, author_ref: str, title: str | None = None,
                    slug: str | None = None) -> ContentInfo:
        info = ContentInfo(content_ref=content_ref, author_ref=author_ref, title=title, slug=slug)
        with self._lock:
            self._content[content_ref] = info
        return info

    def remove_content(self, content_ref: str) -> None:
        with self._lock:
            self._content.pop(content_ref, None)

    def add_author(self, author_ref: str, name: str | None = None,
                   username: str | None = None, avatar: str | None = None,
                   joined_at: datetime | None = None) -> AuthorInfo:
        info = AuthorInfo(author_ref=author_ref, name=name, username=username, avatar=avatar)
        with self._lock:
            self._authors[author_ref] = info
            if joined_at is not None:
                self._users_joined.append(joined_at)
        return info

    def record_comment(self, at: datetime) -> None:
        with self._lock:
            self._comments.append(at)

    def record_like(self, at: datetime) -> None:
        with self._lock:
            self._likes.append(at)

    def content(self, content_ref: str) -> ContentInfo | None:
        with self._lock:
            return self._content.get(content_ref)

    def author(self, author_ref: str) -> AuthorInfo | None:
        with self._lock:
            return self._authors.get(author_ref)

    def content_by_author(self, author_ref: str) -> list[str]:
        with self._lock:
            return [c.content_ref for c in self._content.values() if c.author_ref == author_ref]

    def totals(self) -> SiteCounts:
        with self._lock:
            return SiteCounts(
                posts=len(self._content),
                users=len(self._authors),
                comments=len(self._comments),
            )

    def new_users_since(self, since: datetime) -> int:
        with self._lock:
            return sum(1 for t in self._users_joined if t >= since)

    def comments_per_day(self, since: datetime) -> list[DailyCount]:
        with self._lock:
            stamps = [t for t in self._comments if t >= since]
        return _per_day(stamps)

    def likes_per_day(self, since: datetime) -> list[DailyCount]:
        with self._lock:
            stamps = [t for t in self._likes if t >= since]
        return _per_day(stamps)


def _per_day(stamps: list[datetime]) -> list[DailyCount]:
    counts = Counter(bucket_label(t, DAILY) for t in stamps)
    return [DailyCount(date=d, count=c) for d, c in sorted(counts.items())]
