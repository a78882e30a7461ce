"""
Digest assembly for NewsDigest.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

import async_timeout

from newsdigest.config import get_config
from newsdigest.core.article import REMOVED_PLACEHOLDER, Article
from newsdigest.core.cache import PerUserArticleCache
from newsdigest.core.preferences import UserPreferences
from newsdigest.fetchers.newsapi import ArticleSource
from newsdigest.utils.dates import utc_now
from newsdigest.utils.nlp import CategoryClassifier, SentimentScorer

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def is_quality_article(article: Article,
                       min_title_length: int = 10,
                       min_description_length: int = 20) -> bool:
    """
    Reject removed, untitled or thin articles.

    Title and description must be strictly longer than the minimums.
    """
    if not article.url:
        return False
    if not article.title or article.title == REMOVED_PLACEHOLDER:
        return False
    if not article.description or article.description == REMOVED_PLACEHOLDER:
        return False
    return (len(article.title) > min_title_length
            and len(article.description) > min_description_length)


def dedupe_by_url(articles: Iterable[Article]) -> List[Article]:
    """Keep the first article seen for each URL."""
    seen = set()
    unique = []
    for article in articles:
        if article.url in seen:
            continue
        seen.add(article.url)
        unique.append(article)
    return unique


def filter_by_sentiment(articles: List[Article], sentiment_filter: str) -> List[Article]:
    """Keep articles whose label matches the filter; "all" keeps everything."""
    wanted = (sentiment_filter or 'all').lower()
    if wanted == 'all':
        return list(articles)
    return [a for a in articles if (a.sentiment or '').lower() == wanted]


def rank_by_recency(articles: List[Article]) -> List[Article]:
    """Newest first; undated articles sink to the end in their original order."""
    return sorted(articles, key=lambda a: a.published_at or _OLDEST, reverse=True)


class NewsAggregator:
    """
    Builds a user's digest from per-interest fetches.

    Network fetches run concurrently and outside the user's lock. Filtering
    against the user's shown-article memory, ranking and marking the final
    result as shown happen under that lock, so two racing requests for the
    same user never receive the same article.
    """
    def __init__(self,
                 source: ArticleSource,
                 scorer: SentimentScorer,
                 classifier: Optional[CategoryClassifier] = None,
                 cache: Optional[PerUserArticleCache] = None,
                 page_size: Optional[int] = None,
                 lookback_days: Optional[int] = None,
                 fetch_timeout: Optional[float] = None,
                 max_concurrent: Optional[int] = None,
                 country: Optional[str] = None,
                 headline_category: Optional[str] = None,
                 min_title_length: Optional[int] = None,
                 min_description_length: Optional[int] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.source = source
        self.scorer = scorer
        self.classifier = classifier or CategoryClassifier()
        self.cache = cache or PerUserArticleCache(clock=clock)
        self.page_size = page_size or get_config('digest.page_size', 20)
        self.lookback_days = lookback_days or get_config('newsapi.lookback_days', 3)
        self.fetch_timeout = fetch_timeout or get_config('digest.fetch_timeout_seconds', 30)
        self.country = country or get_config('newsapi.country', 'us')
        self.headline_category = headline_category or get_config('newsapi.headline_category', 'general')
        self.min_title_length = (min_title_length if min_title_length is not None
                                 else get_config('digest.min_title_length', 10))
        self.min_description_length = (min_description_length if min_description_length is not None
                                       else get_config('digest.min_description_length', 20))
        self.semaphore = asyncio.Semaphore(max_concurrent or get_config('http.max_concurrent', 4))
        self._clock = clock

    async def _guarded_fetch(self, label: str, fetch) -> List[Dict[str, Any]]:
        """
        Run one fetch under the concurrency limit and deadline.

        Any failure is logged and turned into an empty batch.
        """
        async with self.semaphore:
            try:
                async with async_timeout.timeout(self.fetch_timeout):
                    records = await fetch()
            except asyncio.CancelledError:
                raise
            except asyncio.TimeoutError:
                logger.warning(f"Fetch for {label!r} timed out after {self.fetch_timeout}s")
                return []
            except Exception as e:
                logger.error(f"Fetch for {label!r} failed: {e}")
                return []
        if not isinstance(records, list):
            logger.error(f"Fetch for {label!r} returned {type(records).__name__}, expected list")
            return []
        return records

    def _to_articles(self, records: List[Dict[str, Any]]) -> List[Article]:
        articles = []
        for record in records:
            if not isinstance(record, dict):
                continue
            try:
                article = Article.from_record(record)
            except (TypeError, ValueError, AttributeError) as e:
                logger.debug(f"Skipping malformed record: {e}")
                continue
            if article is not None and is_quality_article(
                    article, self.min_title_length, self.min_description_length):
                articles.append(article)
        return articles

    async def fetch_batches(self, preferences: UserPreferences) -> List[List[Article]]:
        """
        Fetch and quality-filter one batch per interest, in interest order.
        With no interests, a single headlines batch is fetched.
        """
        if preferences.interests:
            since = self._clock() - timedelta(days=self.lookback_days)
            request_size = self.page_size * 2
            fetches = [
                self._guarded_fetch(
                    topic,
                    lambda topic=topic: self.source.search(topic, preferences.language, request_size, since)
                )
                for topic in preferences.interests
            ]
        else:
            fetches = [
                self._guarded_fetch(
                    'headlines',
                    lambda: self.source.headlines(self.headline_category, self.country, self.page_size * 2)
                )
            ]

        raw_batches = await asyncio.gather(*fetches)
        return [self._to_articles(records) for records in raw_batches]

    def tag(self, articles: List[Article]) -> List[Article]:
        """Attach sentiment label, score and category to each article."""
        for article in articles:
            text = article.analysis_text
            try:
                result = self.scorer.score(text)
                article.sentiment, article.sentiment_score = result.label, result.score
            except Exception as e:
                logger.error(f"Sentiment scoring failed for {article.url}: {e}")
                article.sentiment, article.sentiment_score = 'neutral', 0.5
            article.category = self.classifier.classify(text)
        return articles

    async def fetch_digest(self, user_id: int, preferences: UserPreferences) -> List[Article]:
        """
        Build a ranked, deduplicated, sentiment-filtered digest for a user.

        Never raises: failures degrade to fewer (or zero) articles.

        Args:
            user_id: The requesting user
            preferences: Validated preferences for this request

        Returns:
            At most ``preferences.max_articles`` articles, newest first
        """
        try:
            batches = await self.fetch_batches(preferences)

            async with self.cache.lock(user_id):
                merged = []
                for batch in batches:
                    merged.extend(self.cache.filter_unseen(user_id, batch)[:self.page_size])

                fetched = sum(len(batch) for batch in batches)
                articles = dedupe_by_url(merged)
                logger.info(
                    f"User {user_id}: {fetched} fetched, {len(merged)} unseen, "
                    f"{len(articles)} after dedup"
                )

                self.tag(articles)
                articles = filter_by_sentiment(articles, preferences.sentiment_filter)
                digest = rank_by_recency(articles)[:preferences.max_articles]

                self.cache.mark_shown(user_id, digest)

            logger.info(
                f"User {user_id}: returning {len(digest)} articles "
                f"(sentiment filter {preferences.sentiment_filter!r})"
            )
            return digest
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Digest for user {user_id} failed: {e}")
            return []
