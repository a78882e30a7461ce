"""
User preference model and payload validation for NewsDigest.
"""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping

from newsdigest.core.errors import ValidationError

SENTIMENT_FILTERS = ('all', 'positive', 'negative', 'neutral')
DEFAULT_INTERESTS = ['technology']
DEFAULT_LANGUAGE = 'en'
DEFAULT_MAX_ARTICLES = 12


@dataclass
class UserPreferences:
    """
    A user's digest settings.

    ``interests`` is ordered: the aggregator fetches topics in this order and
    the first copy of a duplicated article wins.
    """
    interests: List[str] = field(default_factory=lambda: list(DEFAULT_INTERESTS))
    sentiment_filter: str = 'all'
    language: str = DEFAULT_LANGUAGE
    max_articles: int = DEFAULT_MAX_ARTICLES

    def validate(self) -> 'UserPreferences':
        """
        Check the invariants the aggregator relies on.

        Raises:
            ValidationError: if any field is malformed
        """
        if not isinstance(self.interests, list) or not all(
                isinstance(topic, str) for topic in self.interests):
            raise ValidationError("interests must be a list of strings")
        if self.sentiment_filter not in SENTIMENT_FILTERS:
            raise ValidationError(
                f"sentiment_filter must be one of {', '.join(SENTIMENT_FILTERS)}, "
                f"got {self.sentiment_filter!r}"
            )
        if not isinstance(self.language, str) or not self.language.strip():
            raise ValidationError("language must be a non-empty language code")
        # bool is an int subclass, so reject it explicitly
        if (not isinstance(self.max_articles, int) or isinstance(self.max_articles, bool)
                or self.max_articles <= 0):
            raise ValidationError(
                f"max_articles must be a positive integer, got {self.max_articles!r}"
            )
        return self

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> 'UserPreferences':
        """
        Build validated preferences from a client payload.

        Accepts both snake_case and the camelCase keys the web client sends.
        Blank interests are dropped and whitespace trimmed.

        Raises:
            ValidationError: if the payload is malformed
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("preferences payload must be an object")

        def pick(*names, default=None):
            for name in names:
                if name in payload and payload[name] is not None:
                    return payload[name]
            return default

        interests = pick('interests', default=[])
        if isinstance(interests, str):
            interests = interests.split(',')
        if not isinstance(interests, list):
            raise ValidationError("interests must be a list of strings")
        cleaned = []
        for topic in interests:
            if not isinstance(topic, str):
                raise ValidationError("interests must be a list of strings")
            topic = topic.strip()
            if topic and topic not in cleaned:
                cleaned.append(topic)

        sentiment = pick('sentiment_filter', 'sentimentFilter', default='all')
        if not isinstance(sentiment, str):
            raise ValidationError("sentiment_filter must be a string")

        max_articles = pick('max_articles', 'maxArticles', default=DEFAULT_MAX_ARTICLES)
        if isinstance(max_articles, str) and max_articles.strip().lstrip('-').isdigit():
            max_articles = int(max_articles)

        return cls(
            interests=cleaned,
            sentiment_filter=sentiment.strip().lower(),
            language=str(pick('language', default=DEFAULT_LANGUAGE)).strip().lower(),
            max_articles=max_articles,
        ).validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
