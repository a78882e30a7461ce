"""
Application-facing operations for NewsDigest.
"""
import asyncio
import logging
from collections import Counter, defaultdict
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from newsdigest.config import Config, config as default_config
from newsdigest.core.adaptation import AdjustmentResult, PreferenceAdaptationEngine
from newsdigest.core.aggregator import NewsAggregator
from newsdigest.core.article import Article
from newsdigest.core.cache import PerUserArticleCache
from newsdigest.core.history import AppendResult, ReadingHistoryEntry, ReadingStats
from newsdigest.core.preferences import SENTIMENT_FILTERS, UserPreferences
from newsdigest.fetchers.newsapi import ArticleSource, NewsApiClient
from newsdigest.storage.base import PreferenceStore, ReadingHistoryStore
from newsdigest.storage.memory import InMemoryPreferenceStore, InMemoryReadingHistoryStore
from newsdigest.storage.sqlite import SqliteDatabase, SqlitePreferenceStore, SqliteReadingHistoryStore
from newsdigest.utils.dates import format_timestamp, utc_now
from newsdigest.utils.http import RateLimiter
from newsdigest.utils.nlp import CategoryClassifier, make_sentiment_scorer

logger = logging.getLogger(__name__)

SENTIMENT_LABELS = tuple(f for f in SENTIMENT_FILTERS if f != 'all')


class NewsDigestService:
    """
    Entry point used by the surrounding application (web handlers, CLI).
    """
    def __init__(self,
                 aggregator: NewsAggregator,
                 preferences: PreferenceStore,
                 history: ReadingHistoryStore,
                 adaptation: Optional[PreferenceAdaptationEngine] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.aggregator = aggregator
        self.preferences = preferences
        self.history = history
        self.adaptation = adaptation or PreferenceAdaptationEngine(history, preferences, clock=clock)
        self._clock = clock
        self._history_locks = defaultdict(asyncio.Lock)

    @property
    def cache(self) -> PerUserArticleCache:
        return self.aggregator.cache

    @property
    def classifier(self) -> CategoryClassifier:
        return self.aggregator.classifier

    def get_preferences(self, user_id: int) -> UserPreferences:
        """Stored preferences, or defaults for users who never saved any."""
        stored = self.preferences.get(user_id)
        if stored is None:
            return UserPreferences()
        if not stored.interests:
            stored.interests = UserPreferences().interests
        return stored

    def save_preferences(self, user_id: int,
                         preferences: Union[UserPreferences, Mapping[str, Any]]) -> UserPreferences:
        """
        Validate and persist preferences.

        Raises:
            ValidationError: if the preferences are malformed
        """
        prefs = self._persist(user_id, self._validated(preferences))
        logger.info(f"Saved preferences for user {user_id}: {', '.join(prefs.interests)}")
        return prefs

    def _persist(self, user_id: int, prefs: UserPreferences) -> UserPreferences:
        """
        Store preferences; an empty interest list keeps the stored interests
        (or the defaults) so the saved record always has at least one.
        """
        if not prefs.interests:
            prefs = replace(prefs, interests=list(self.get_preferences(user_id).interests))
        self.preferences.put(user_id, prefs)
        return prefs

    @staticmethod
    def _sentiment_label(label: Optional[str]) -> str:
        """Normalize a client-sent label; anything unrecognised counts as neutral."""
        label = (label or '').strip().lower()
        return label if label in SENTIMENT_LABELS else 'neutral'

    @staticmethod
    def _validated(preferences: Union[UserPreferences, Mapping[str, Any]]) -> UserPreferences:
        if isinstance(preferences, UserPreferences):
            return preferences.validate()
        return UserPreferences.from_payload(preferences)

    async def get_digest(self, user_id: int,
                         preferences: Union[UserPreferences, Mapping[str, Any]],
                         persist: bool = True) -> List[Article]:
        """
        Validate the request's preferences, save them and build the digest.

        Raises:
            ValidationError: if the preferences are malformed; nothing is
                fetched in that case
        """
        prefs = self._validated(preferences)
        if persist:
            self._persist(user_id, prefs)
        return await self.aggregator.fetch_digest(user_id, prefs)

    async def track_read(self, user_id: int, article: Union[Article, Mapping[str, Any]]) -> bool:
        """
        Record that the user opened an article.

        Repeated reads of the same URL are ignored and do not count twice.

        Returns:
            True if a new history entry was recorded
        """
        if isinstance(article, Mapping):
            article = Article(
                title=article.get('title'),
                url=(article.get('url') or '').strip(),
                description=article.get('description'),
                sentiment=article.get('sentiment'),
            )
        if not article.url:
            logger.warning(f"Ignoring read event without URL for user {user_id}")
            return False

        entry = ReadingHistoryEntry(
            user_id=user_id,
            article_title=article.title or 'Unknown',
            article_url=article.url,
            category=self.classifier.classify(article.analysis_text),
            sentiment=self._sentiment_label(article.sentiment),
            read_at=self._clock(),
        )

        async with self._history_locks[user_id]:
            result = self.history.append(entry)
            if result is AppendResult.DUPLICATE:
                logger.info(f"Article already tracked for user {user_id}: {article.url}")
                return False
            self.preferences.increment_read_count(user_id)

        logger.info(
            f"Tracked for user {user_id}: {entry.article_title} | "
            f"Category: {entry.category} | Sentiment: {entry.sentiment}"
        )
        return True

    async def clear_cache(self, user_id: int) -> int:
        """Forget which articles the user has seen; waits for in-flight digests."""
        async with self.cache.lock(user_id):
            return self.cache.clear(user_id)

    async def clear_history(self, user_id: int) -> int:
        async with self._history_locks[user_id]:
            return self.history.delete_all(user_id)

    def auto_adjust(self, user_id: int) -> AdjustmentResult:
        """
        Replace the user's interests and sentiment filter with ones learned
        from reading history. Prior manual choices are overwritten.

        Failures are reported in the result rather than raised.
        """
        try:
            return self.adaptation.auto_adjust(user_id)
        except Exception as e:
            logger.exception(f"Error auto-adjusting preferences for user {user_id}: {e}")
            return AdjustmentResult(changed=False, message="Error adjusting preferences")

    def suggested_interests(self, user_id: int) -> List[str]:
        return self.adaptation.suggest_interests(user_id)

    def reading_history(self, user_id: int, limit: int = 100) -> List[ReadingHistoryEntry]:
        return self.history.query(user_id, limit=limit)

    def get_stats(self, user_id: int) -> ReadingStats:
        """
        Reads today (same UTC date), in the last seven days and overall.
        """
        now = self._clock()
        week_start = now - timedelta(days=7)
        entries = self.history.query(user_id)
        return ReadingStats(
            today=sum(1 for e in entries if e.read_at.date() == now.date()),
            week=sum(1 for e in entries if e.read_at >= week_start),
            total=len(entries),
        )

    def profile_summary(self, user_id: int) -> Dict[str, Any]:
        """
        Lifetime reading profile: favourite category, usual sentiment and a
        per-day read count for the last seven days.
        """
        entries = self.history.query(user_id)
        categories = Counter(e.category for e in entries if e.category)
        sentiments = Counter(e.sentiment for e in entries if e.sentiment)

        today = self._clock().date()
        days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
        per_day = Counter(e.read_at.date() for e in entries)

        return {
            'articles_read': self.preferences.read_count(user_id),
            'interests': self.get_preferences(user_id).interests,
            'favorite_category': categories.most_common(1)[0][0] if categories else 'general',
            'preferred_sentiment': sentiments.most_common(1)[0][0] if sentiments else 'all',
            'chart_labels': [day.strftime('%b %d') for day in days],
            'chart_data': [per_day.get(day, 0) for day in days],
        }

    def export_user_data(self, user_id: int) -> Dict[str, Any]:
        """Everything stored about a user, as JSON-serializable data."""
        prefs = self.get_preferences(user_id)
        return {
            'user_id': user_id,
            'exported_at': format_timestamp(self._clock()),
            'articles_read': self.preferences.read_count(user_id),
            'preferences': prefs.to_dict(),
            'reading_history': [e.to_dict() for e in self.history.query(user_id)],
        }

    async def close(self):
        await self.aggregator.source.close()


def build_service(cfg: Optional[Config] = None,
                  source: Optional[ArticleSource] = None) -> NewsDigestService:
    """
    Wire up a service from configuration.

    Args:
        cfg: Configuration to use; defaults to the global configuration
        source: Article source override; defaults to a NewsApiClient

    Returns:
        A ready NewsDigestService
    """
    cfg = cfg or default_config

    if source is None:
        source = NewsApiClient(
            api_key=cfg.get('newsapi.api_key'),
            base_url=cfg.get('newsapi.base_url'),
            user_agent=cfg.get('newsapi.user_agent'),
            timeout=cfg.get('http.timeout_seconds'),
            max_tries=cfg.get('http.max_tries'),
            rate_limiter=RateLimiter(cfg.get('http.requests_per_second', 5)),
        )

    scorer = make_sentiment_scorer(
        cfg.get('sentiment.backend', 'textblob'),
        cfg.get('sentiment.positive_threshold', 0.6),
        cfg.get('sentiment.negative_threshold', 0.4),
    )
    cache = PerUserArticleCache(
        max_urls=cfg.get('cache.max_urls'),
        expiry=timedelta(hours=cfg.get('cache.expiry_hours', 2)),
    )
    aggregator = NewsAggregator(
        source=source,
        scorer=scorer,
        classifier=CategoryClassifier(cfg.get('categories')),
        cache=cache,
        page_size=cfg.get('digest.page_size'),
        lookback_days=cfg.get('newsapi.lookback_days'),
        fetch_timeout=cfg.get('digest.fetch_timeout_seconds'),
        max_concurrent=cfg.get('http.max_concurrent'),
        country=cfg.get('newsapi.country'),
        headline_category=cfg.get('newsapi.headline_category'),
        min_title_length=cfg.get('digest.min_title_length'),
        min_description_length=cfg.get('digest.min_description_length'),
    )

    backend = cfg.get('storage.backend', 'sqlite')
    if backend == 'sqlite':
        database = SqliteDatabase(cfg.get('storage.database', 'newsdigest.db'))
        preferences = SqlitePreferenceStore(database)
        history = SqliteReadingHistoryStore(database)
    elif backend == 'memory':
        preferences = InMemoryPreferenceStore()
        history = InMemoryReadingHistoryStore()
    else:
        raise ValueError(f"Unknown storage backend: {backend!r}")

    adaptation = PreferenceAdaptationEngine(history, preferences, cfg=cfg)
    return NewsDigestService(aggregator, preferences, history, adaptation=adaptation)
