"""
Article data model for NewsDigest.
"""
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from bs4 import BeautifulSoup

from newsdigest.utils.dates import format_timestamp, parse_timestamp

REMOVED_PLACEHOLDER = "[Removed]"


def clean_text(value: Any) -> Optional[str]:
    """Collapse provider text to plain text, stripping any embedded HTML."""
    if value is None:
        return None
    text = str(value)
    if '<' in text and '>' in text:
        text = BeautifulSoup(text, 'html.parser').get_text(separator=' ')
    text = ' '.join(text.split())
    return text or None


@dataclass
class Article:
    """
    Represents a fetched news article. The URL is the identity key.
    """
    title: Optional[str]
    url: str
    description: Optional[str] = None
    content: Optional[str] = None
    author: Optional[str] = None
    image_url: Optional[str] = None
    published_at: Optional[datetime] = None
    source: Optional[str] = None
    sentiment: Optional[str] = None
    sentiment_score: Optional[float] = None
    category: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Optional['Article']:
        """
        Build an Article from a normalized provider record.

        Records carry ``title``, ``description``, ``content``, ``author``,
        ``url``, ``image_url``, ``published_at`` and ``source_name``; any of
        them may be missing. Returns None when the record has no URL.
        """
        url = (record.get('url') or '').strip()
        if not url:
            return None
        return cls(
            title=clean_text(record.get('title')),
            url=url,
            description=clean_text(record.get('description')),
            content=clean_text(record.get('content')),
            author=clean_text(record.get('author')),
            image_url=record.get('image_url') or None,
            published_at=parse_timestamp(record.get('published_at')),
            source=clean_text(record.get('source_name')),
        )

    @property
    def analysis_text(self) -> str:
        """Text used for sentiment scoring and categorisation."""
        return f"{self.title or ''} {self.description or ''}".strip()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['published_at'] = format_timestamp(self.published_at)
        return data
