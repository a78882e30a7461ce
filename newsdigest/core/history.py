"""
Reading history records for NewsDigest.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from newsdigest.utils.dates import format_timestamp, utc_now


class AppendResult(enum.Enum):
    """Outcome of appending to a reading history store."""
    APPENDED = 'appended'
    DUPLICATE = 'duplicate'


@dataclass
class ReadingHistoryEntry:
    """One article opened by one user. Unique per (user_id, article_url)."""
    user_id: int
    article_title: str
    article_url: str
    category: str = 'general'
    sentiment: str = 'neutral'
    read_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'article_title': self.article_title,
            'article_url': self.article_url,
            'category': self.category,
            'sentiment': self.sentiment,
            'read_at': format_timestamp(self.read_at),
        }


@dataclass
class ReadingStats:
    """Read counts bucketed against the current time."""
    today: int = 0
    week: int = 0
    total: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {'today': self.today, 'week': self.week, 'total': self.total}
