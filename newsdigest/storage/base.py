"""
Storage interfaces for NewsDigest.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from newsdigest.core.history import AppendResult, ReadingHistoryEntry
from newsdigest.core.preferences import UserPreferences


class PreferenceStore(ABC):
    """
    Persists each user's preferences and lifetime read counter.
    """
    @abstractmethod
    def get(self, user_id: int) -> Optional[UserPreferences]:
        """Stored preferences, or None when the user has none."""

    @abstractmethod
    def put(self, user_id: int, preferences: UserPreferences) -> None:
        """Replace the user's stored preferences."""

    @abstractmethod
    def increment_read_count(self, user_id: int) -> int:
        """Add one to the user's read counter and return the new value."""

    @abstractmethod
    def read_count(self, user_id: int) -> int:
        """The user's read counter; 0 for unknown users."""


class ReadingHistoryStore(ABC):
    """
    Append-only log of articles opened by users, unique per (user, URL).
    """
    @abstractmethod
    def append(self, entry: ReadingHistoryEntry) -> AppendResult:
        """Record an entry unless the user already has one for that URL."""

    @abstractmethod
    def query(self, user_id: int, since: Optional[datetime] = None,
              limit: Optional[int] = None) -> List[ReadingHistoryEntry]:
        """Entries for a user, most recent first."""

    @abstractmethod
    def count(self, user_id: int) -> int:
        """Total number of entries for a user."""

    @abstractmethod
    def delete_all(self, user_id: int) -> int:
        """Delete every entry for a user and return how many were removed."""
