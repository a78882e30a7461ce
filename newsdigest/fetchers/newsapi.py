"""
NewsAPI article source for NewsDigest.
"""
import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import aiohttp
import async_timeout
import backoff

from newsdigest.config import get_config
from newsdigest.core.errors import FetchError, ParseError
from newsdigest.utils.http import RateLimiter, host_of

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100  # provider limit per request


class ArticleSource(ABC):
    """
    A provider of raw article batches.

    Batches are lists of normalized records with the keys ``title``,
    ``description``, ``content``, ``author``, ``url``, ``image_url``,
    ``published_at`` and ``source_name``. Any value may be None.
    Implementations raise FetchError or ParseError on failure.
    """
    @abstractmethod
    async def search(self, topic: str, language: str, page_size: int,
                     since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Fetch articles matching a topic query."""

    @abstractmethod
    async def headlines(self, category: str, country: str, page_size: int) -> List[Dict[str, Any]]:
        """Fetch top headlines for a category."""

    async def close(self):
        """Release any network resources."""


def normalize_record(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Flatten a NewsAPI article object into the normalized record shape.

    Args:
        raw: One element of the provider's ``articles`` array

    Returns:
        Normalized record dict
    """
    source = raw.get('source')
    source_name = source.get('name') if isinstance(source, dict) else source
    return {
        'title': raw.get('title'),
        'description': raw.get('description'),
        'content': raw.get('content'),
        'author': raw.get('author'),
        'url': raw.get('url'),
        'image_url': raw.get('urlToImage'),
        'published_at': raw.get('publishedAt'),
        'source_name': source_name,
    }


def parse_articles(payload: Any) -> List[Dict[str, Any]]:
    """
    Extract normalized records from a decoded NewsAPI response.

    Raises:
        FetchError: if the provider reported an error status
        ParseError: if the payload does not have the expected shape
    """
    if not isinstance(payload, dict):
        raise ParseError(f"Expected a JSON object, got {type(payload).__name__}")

    status = payload.get('status')
    if status == 'error':
        raise FetchError(f"Provider error {payload.get('code')}: {payload.get('message')}")
    if status != 'ok':
        raise ParseError(f"Unexpected response status: {status!r}")

    articles = payload.get('articles')
    if articles is None:
        return []
    if not isinstance(articles, list):
        raise ParseError("'articles' is not a list")

    return [normalize_record(item) for item in articles if isinstance(item, dict)]


def _is_permanent_error(e: Exception) -> bool:
    """Client errors other than rate limiting are not worth retrying."""
    return (
        isinstance(e, aiohttp.ClientResponseError)
        and 400 <= e.status < 500
        and e.status != 429
    )


class NewsApiClient(ArticleSource):
    """
    Fetches article batches from the NewsAPI ``everything`` and
    ``top-headlines`` endpoints.
    """
    def __init__(self,
                 api_key: Optional[str] = None,
                 base_url: Optional[str] = None,
                 user_agent: Optional[str] = None,
                 timeout: Optional[float] = None,
                 max_tries: Optional[int] = None,
                 rate_limiter: Optional[RateLimiter] = None):
        """
        Initialize the NewsApiClient.

        Args:
            api_key: NewsAPI key; falls back to config and then NEWS_API_KEY
            base_url: API root, e.g. https://newsapi.org/v2/
            user_agent: User-Agent header sent with each request
            timeout: Per-request timeout in seconds
            max_tries: Attempts per request, including the first
            rate_limiter: Shared per-host rate limiter
        """
        self.api_key = api_key or get_config('newsapi.api_key') or os.getenv('NEWS_API_KEY', '')
        self.base_url = base_url or get_config('newsapi.base_url', 'https://newsapi.org/v2/')
        if not self.base_url.endswith('/'):
            self.base_url += '/'
        self.timeout = timeout or get_config('http.timeout_seconds', 10)
        self.max_tries = max_tries or get_config('http.max_tries', 3)
        self.rate_limiter = rate_limiter or RateLimiter(get_config('http.requests_per_second', 5))
        self.headers = {
            'User-Agent': user_agent or get_config('newsapi.user_agent', 'NewsDigest/0.1'),
            'Accept': 'application/json',
            'X-Api-Key': self.api_key,
        }
        self._session = None

        if not self.api_key:
            logger.warning("No NewsAPI key configured; requests will be rejected")

    @property
    def session(self):
        """
        Lazy initialization of aiohttp session.

        Returns:
            aiohttp.ClientSession: The HTTP session
        """
        if self._session is None:
            self._session = aiohttp.ClientSession(headers=self.headers)
        return self._session

    async def close(self):
        """Close aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Any:
        """
        GET a URL and decode its JSON body, retrying transient failures.
        """
        retrying = backoff.on_exception(
            backoff.expo,
            (aiohttp.ClientError, asyncio.TimeoutError),
            max_tries=self.max_tries,
            giveup=_is_permanent_error
        )(self._get_json_once)
        return await retrying(url, params)

    async def _get_json_once(self, url: str, params: Dict[str, Any]) -> Any:
        """
        GET a URL and decode its JSON body under the request timeout.
        """
        host = host_of(url)
        await self.rate_limiter.acquire(host)

        try:
            async with async_timeout.timeout(self.timeout):
                async with self.session.get(url, params=params) as response:
                    response.raise_for_status()
                    body = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError):
            self.rate_limiter.report_failure(host)
            raise

        self.rate_limiter.report_success(host)
        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON from {host}: {e}") from e

    async def _fetch(self, endpoint: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        url = urljoin(self.base_url, endpoint)
        logger.info(f"Fetching {endpoint} with {params}")

        try:
            payload = await self._get_json(url, params)
        except aiohttp.ClientResponseError as e:
            if e.status == 401:
                logger.error("Authentication failed. Please check the NewsAPI key")
            raise FetchError(f"{endpoint} returned HTTP {e.status}", status=e.status) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(f"Error fetching {endpoint}: {e!r}") from e

        records = parse_articles(payload)
        logger.info(f"{endpoint} returned {len(records)} articles")
        return records

    async def search(self, topic: str, language: str, page_size: int,
                     since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        params = {
            'q': topic,
            'language': language,
            'pageSize': max(1, min(page_size, MAX_PAGE_SIZE)),
            'sortBy': 'publishedAt',
        }
        if since is not None:
            params['from'] = since.strftime('%Y-%m-%d')
        return await self._fetch('everything', params)

    async def headlines(self, category: str, country: str, page_size: int) -> List[Dict[str, Any]]:
        params = {
            'category': category,
            'country': country,
            'pageSize': max(1, min(page_size, MAX_PAGE_SIZE)),
        }
        return await self._fetch('top-headlines', params)
