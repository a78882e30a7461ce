"""
Per-user memory of articles already shown, for NewsDigest.

Memory lives for the lifetime of the process only. Each user's memory is an
insertion-ordered set of URLs; when it grows past ``max_urls`` the oldest
entries are evicted in one batch until half remain, and the whole set is
wiped once ``expiry`` has elapsed since the last clear.
"""
import asyncio
import logging
from collections import OrderedDict, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from newsdigest.config import get_config
from newsdigest.core.article import Article
from newsdigest.utils.dates import utc_now

logger = logging.getLogger(__name__)

DEFAULT_MAX_URLS = 200
DEFAULT_EXPIRY = timedelta(hours=2)


@dataclass
class UserArticleMemory:
    """
    URLs shown to one user, oldest first, and when the set was last wiped.
    """
    last_cleared: datetime
    shown: "OrderedDict[str, None]" = field(default_factory=OrderedDict)

    def __len__(self) -> int:
        return len(self.shown)

    def __contains__(self, url: str) -> bool:
        return url in self.shown


class PerUserArticleCache:
    """
    Tracks which article URLs each user has already been shown.

    The synchronous methods never await, so each one is atomic with respect to
    other coroutines. A request that filters and later marks must hold
    ``lock(user_id)`` across both steps so concurrent requests for the same
    user see each other's marks.
    """
    def __init__(self,
                 max_urls: Optional[int] = None,
                 expiry: Optional[timedelta] = None,
                 clock: Callable[[], datetime] = utc_now):
        """
        Initialize the cache.

        Args:
            max_urls: Size above which the oldest half is evicted
            expiry: Age after which a user's memory is wiped
            clock: Returns the current aware datetime
        """
        self.max_urls = max_urls or get_config('cache.max_urls', DEFAULT_MAX_URLS)
        if expiry is None:
            expiry = timedelta(hours=get_config('cache.expiry_hours', 2))
        self.expiry = expiry
        self.retain_after_eviction = self.max_urls // 2
        self._clock = clock
        self._memories: Dict[int, UserArticleMemory] = {}
        self._locks = defaultdict(asyncio.Lock)

    def lock(self, user_id: int) -> asyncio.Lock:
        """The lock guarding one user's memory."""
        return self._locks[user_id]

    def memory(self, user_id: int) -> UserArticleMemory:
        """
        Get a user's memory, creating it on first use.
        """
        memory = self._memories.get(user_id)
        if memory is None:
            memory = UserArticleMemory(last_cleared=self._clock())
            self._memories[user_id] = memory
        return memory

    def maybe_expire(self, user_id: int) -> bool:
        """
        Wipe the user's memory if it is older than the expiry window.

        Returns:
            True if the memory was wiped
        """
        memory = self.memory(user_id)
        now = self._clock()
        if now - memory.last_cleared > self.expiry:
            count = len(memory)
            memory.shown.clear()
            memory.last_cleared = now
            logger.info(f"Expired {count} shown articles for user {user_id}")
            return True
        return False

    def filter_unseen(self, user_id: int, articles: Iterable[Article]) -> List[Article]:
        """
        Drop articles the user has already been shown. Nothing is marked.

        Args:
            user_id: The user the articles are for
            articles: Candidate articles

        Returns:
            Articles whose URL is not in the user's memory, in input order
        """
        self.maybe_expire(user_id)
        memory = self.memory(user_id)
        return [article for article in articles if article.url not in memory]

    def mark_shown(self, user_id: int, articles: Iterable[Article]) -> int:
        """
        Record articles as delivered to the user.

        A URL that is already recorded keeps its original position, so
        eviction order is first-shown order.

        Returns:
            Number of newly recorded URLs
        """
        memory = self.memory(user_id)
        added = 0
        for article in articles:
            if not article.url or article.url in memory:
                continue
            memory.shown[article.url] = None
            added += 1
            self.enforce_capacity(user_id)
        return added

    def enforce_capacity(self, user_id: int) -> int:
        """
        Evict the oldest URLs once the memory exceeds ``max_urls``.

        Returns:
            Number of evicted URLs
        """
        memory = self.memory(user_id)
        if len(memory) <= self.max_urls:
            return 0

        evicted = 0
        while len(memory) > self.retain_after_eviction:
            memory.shown.popitem(last=False)
            evicted += 1
        logger.info(f"Evicted {evicted} oldest shown articles for user {user_id}")
        return evicted

    def clear(self, user_id: int) -> int:
        """
        Wipe the user's memory on request and restart the expiry clock.

        Returns:
            Number of URLs forgotten
        """
        memory = self.memory(user_id)
        count = len(memory)
        memory.shown.clear()
        memory.last_cleared = self._clock()
        logger.info(f"Manually cleared {count} shown articles for user {user_id}")
        return count

    def size(self, user_id: int) -> int:
        memory = self._memories.get(user_id)
        return len(memory) if memory is not None else 0
