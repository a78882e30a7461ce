"""
In-process stores, used for tests and single-run tools.
"""
import copy
import threading
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from newsdigest.core.history import AppendResult, ReadingHistoryEntry
from newsdigest.core.preferences import UserPreferences
from newsdigest.storage.base import PreferenceStore, ReadingHistoryStore


class InMemoryPreferenceStore(PreferenceStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._preferences: Dict[int, UserPreferences] = {}
        self._read_counts: Dict[int, int] = defaultdict(int)

    def get(self, user_id: int) -> Optional[UserPreferences]:
        with self._lock:
            stored = self._preferences.get(user_id)
            return copy.deepcopy(stored) if stored is not None else None

    def put(self, user_id: int, preferences: UserPreferences) -> None:
        with self._lock:
            self._preferences[user_id] = copy.deepcopy(preferences)

    def increment_read_count(self, user_id: int) -> int:
        with self._lock:
            self._read_counts[user_id] += 1
            return self._read_counts[user_id]

    def read_count(self, user_id: int) -> int:
        with self._lock:
            return self._read_counts.get(user_id, 0)


class InMemoryReadingHistoryStore(ReadingHistoryStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[int, List[ReadingHistoryEntry]] = defaultdict(list)

    def append(self, entry: ReadingHistoryEntry) -> AppendResult:
        with self._lock:
            entries = self._entries[entry.user_id]
            if any(existing.article_url == entry.article_url for existing in entries):
                return AppendResult.DUPLICATE
            entries.append(copy.copy(entry))
            return AppendResult.APPENDED

    def query(self, user_id: int, since: Optional[datetime] = None,
              limit: Optional[int] = None) -> List[ReadingHistoryEntry]:
        with self._lock:
            entries = list(self._entries.get(user_id, []))
        # Insertion order breaks read_at ties, newest insert first
        entries.reverse()
        entries.sort(key=lambda e: e.read_at, reverse=True)
        if since is not None:
            entries = [e for e in entries if e.read_at >= since]
        if limit is not None:
            entries = entries[:limit]
        return entries

    def count(self, user_id: int) -> int:
        with self._lock:
            return len(self._entries.get(user_id, []))

    def delete_all(self, user_id: int) -> int:
        with self._lock:
            return len(self._entries.pop(user_id, []))
