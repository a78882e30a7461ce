"""
Preference adaptation for NewsDigest.

Derives suggested interests and a sentiment filter from a user's reading
history, and can rewrite the stored preferences with them.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from newsdigest.config import Config, config as default_config
from newsdigest.core.preferences import SENTIMENT_FILTERS, UserPreferences
from newsdigest.storage.base import PreferenceStore, ReadingHistoryStore
from newsdigest.utils.dates import utc_now

logger = logging.getLogger(__name__)


@dataclass
class AdjustmentResult:
    """
    Outcome of an auto-adjustment run, suitable for showing to the user.
    """
    changed: bool
    message: str
    interests: List[str] = field(default_factory=list)
    sentiment_filter: Optional[str] = None
    previous_interests: List[str] = field(default_factory=list)
    previous_sentiment_filter: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'success': self.changed,
            'message': self.message,
            'interests': self.interests,
            'sentiment_filter': self.sentiment_filter,
        }


class PreferenceAdaptationEngine:
    """
    Learns interests and sentiment preference from reading behaviour.
    """
    def __init__(self,
                 history: ReadingHistoryStore,
                 preferences: PreferenceStore,
                 clock: Callable[[], datetime] = utc_now,
                 cfg: Optional[Config] = None):
        """
        Initialize the engine.

        Args:
            history: Reading history store
            preferences: Preference store that adjustments are written to
            clock: Returns the current aware datetime
            cfg: Configuration holding the ``adaptation`` thresholds;
                defaults to the global configuration
        """
        self.history = history
        self.preferences = preferences
        self._clock = clock

        cfg = cfg or default_config
        self.history_limit = cfg.get('adaptation.history_limit', 50)
        self.max_suggestions = cfg.get('adaptation.max_suggestions', 5)
        self.max_interests = cfg.get('adaptation.max_interests', 4)
        self.window = timedelta(days=cfg.get('adaptation.window_days', 30))
        self.min_recent_entries = cfg.get('adaptation.min_recent_entries', 5)
        self.dominance_percent = cfg.get('adaptation.dominance_percent', 40)
        self.min_total_entries = cfg.get('adaptation.min_total_entries', 10)
        self.default_interests = list(cfg.get('adaptation.default_interests', ['technology', 'business']))

    def suggest_interests(self, user_id: int) -> List[str]:
        """
        Most-read categories among the user's latest history entries.

        Categories are ranked by frequency; equal counts go to the category
        read most recently.

        Args:
            user_id: The user to analyse

        Returns:
            Up to ``max_suggestions`` category names, or the default
            suggestions when the user has no history
        """
        entries = self.history.query(user_id, limit=self.history_limit)
        if not entries:
            logger.info(f"No history for user {user_id}, suggesting defaults")
            return list(self.default_interests)

        counts = Counter()
        latest_position = {}
        # Entries arrive most recent first, so the first position seen is the latest read
        for position, entry in enumerate(entries):
            if not entry.category:
                continue
            counts[entry.category] += 1
            latest_position.setdefault(entry.category, position)

        ranked = sorted(counts, key=lambda c: (-counts[c], latest_position[c]))
        suggested = ranked[:self.max_suggestions]

        logger.info(
            f"Suggested interests for user {user_id}: "
            + ", ".join(f"{c}({counts[c]})" for c in suggested)
        )
        return suggested

    def suggest_sentiment(self, user_id: int) -> str:
        """
        Dominant sentiment among articles read in the recent window.

        Returns:
            The dominant label when it accounts for more than
            ``dominance_percent`` of recent reads, otherwise "all"
        """
        since = self._clock() - self.window
        entries = self.history.query(user_id, since=since)

        if len(entries) < self.min_recent_entries:
            logger.info(
                f"Not enough recent history ({len(entries)} articles) for user {user_id}"
            )
            return 'all'

        # Counter keeps first-seen order, so equal counts favour the most recent label
        counts = Counter(entry.sentiment for entry in entries)
        dominant, dominant_count = counts.most_common(1)[0]
        percentage = dominant_count * 100.0 / len(entries)

        logger.debug(
            f"Sentiment mix for user {user_id}: "
            + ", ".join(f"{label}={n}" for label, n in counts.most_common())
        )

        if percentage > self.dominance_percent and dominant in SENTIMENT_FILTERS:
            logger.info(f"Clear preference for user {user_id}: {dominant} ({percentage:.1f}%)")
            return dominant

        logger.info(f"No clear preference for user {user_id} (highest {percentage:.1f}%)")
        return 'all'

    def auto_adjust(self, user_id: int) -> AdjustmentResult:
        """
        Rewrite the user's stored preferences from reading behaviour.

        This REPLACES the stored interests with the top suggested categories
        and OVERWRITES the sentiment filter; manually chosen interests are
        discarded. Users with too little history are left untouched.

        Returns:
            AdjustmentResult describing what changed
        """
        total = self.history.count(user_id)
        if total < self.min_total_entries:
            logger.info(f"Not enough data for user {user_id}: {total} articles (need {self.min_total_entries}+)")
            return AdjustmentResult(
                changed=False,
                message=f"Read at least {self.min_total_entries} articles to enable auto-adjustment "
                        f"({total} so far).",
            )

        current = self.preferences.get(user_id)
        if current is None:
            logger.info(f"No stored preferences for user {user_id}, adjusting from defaults")
            current = UserPreferences()

        suggested_interests = self.suggest_interests(user_id)
        suggested_sentiment = self.suggest_sentiment(user_id)

        updated = UserPreferences(
            interests=suggested_interests[:self.max_interests] or list(current.interests),
            sentiment_filter=suggested_sentiment,
            language=current.language,
            max_articles=current.max_articles,
        )
        self.preferences.put(user_id, updated)

        logger.info(
            f"Auto-adjusted user {user_id}: interests {current.interests} -> {updated.interests}, "
            f"sentiment {current.sentiment_filter} -> {updated.sentiment_filter}"
        )
        return AdjustmentResult(
            changed=True,
            message="Preferences auto-adjusted based on your reading history!",
            interests=list(updated.interests),
            sentiment_filter=updated.sentiment_filter,
            previous_interests=list(current.interests),
            previous_sentiment_filter=current.sentiment_filter,
        )
