"""Shared test fixtures for NewsDigest.

Provides a controllable clock, a scripted article source and a service
wired to in-memory stores.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from newsdigest.core.aggregator import NewsAggregator
from newsdigest.core.cache import PerUserArticleCache
from newsdigest.core.errors import FetchError
from newsdigest.core.history import ReadingHistoryEntry
from newsdigest.core.service import NewsDigestService
from newsdigest.fetchers.newsapi import ArticleSource
from newsdigest.storage.memory import InMemoryPreferenceStore, InMemoryReadingHistoryStore
from newsdigest.utils.nlp import CategoryClassifier, KeywordSentimentScorer

BASE_TIME = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = BASE_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeSource(ArticleSource):
    """Article source serving canned batches per topic.

    A batch may be an exception instance, which is raised instead.
    """

    def __init__(self, topics: Optional[Dict[str, Any]] = None, headlines: Any = None):
        self.topics = topics or {}
        self.headline_batch = headlines if headlines is not None else []
        self.calls: List[tuple] = []
        self.closed = False

    async def search(self, topic, language, page_size, since=None):
        self.calls.append(('search', topic, language, page_size, since))
        batch = self.topics.get(topic, [])
        if isinstance(batch, BaseException):
            raise batch
        return [dict(record) for record in batch]

    async def headlines(self, category, country, page_size):
        self.calls.append(('headlines', category, country, page_size))
        if isinstance(self.headline_batch, BaseException):
            raise self.headline_batch
        return [dict(record) for record in self.headline_batch]

    async def close(self):
        self.closed = True


def make_record(slug: str,
                title: Optional[str] = None,
                description: Optional[str] = None,
                hours_old: float = 1,
                url: Optional[str] = None) -> Dict[str, Any]:
    """Build a provider record that passes the quality filter by default."""
    return {
        'title': title if title is not None else f"Story about {slug} today",
        'description': description if description is not None
        else f"A sufficiently long description of {slug}.",
        'content': None,
        'author': 'Reporter',
        'url': url if url is not None else f"https://news.example.com/{slug}",
        'image_url': None,
        'published_at': (BASE_TIME - timedelta(hours=hours_old)).strftime('%Y-%m-%dT%H:%M:%SZ'),
        'source_name': 'Example News',
    }


def make_entry(user_id: int, n: int, category: str = 'technology',
               sentiment: str = 'neutral', read_at: Optional[datetime] = None) -> ReadingHistoryEntry:
    return ReadingHistoryEntry(
        user_id=user_id,
        article_title=f"Article {n}",
        article_url=f"https://news.example.com/read/{n}",
        category=category,
        sentiment=sentiment,
        read_at=read_at or BASE_TIME - timedelta(minutes=n),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> PerUserArticleCache:
    return PerUserArticleCache(max_urls=200, expiry=timedelta(hours=2), clock=clock)


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def aggregator(source, cache, clock) -> NewsAggregator:
    return NewsAggregator(
        source=source,
        scorer=KeywordSentimentScorer(),
        classifier=CategoryClassifier(),
        cache=cache,
        page_size=20,
        lookback_days=3,
        fetch_timeout=1,
        max_concurrent=4,
        clock=clock,
    )


@pytest.fixture
def preference_store() -> InMemoryPreferenceStore:
    return InMemoryPreferenceStore()


@pytest.fixture
def history_store() -> InMemoryReadingHistoryStore:
    return InMemoryReadingHistoryStore()


@pytest.fixture
def service(aggregator, preference_store, history_store, clock) -> NewsDigestService:
    return NewsDigestService(aggregator, preference_store, history_store, clock=clock)
