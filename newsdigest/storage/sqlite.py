"""
SQLite-backed stores for NewsDigest.
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Union

from newsdigest.core.history import AppendResult, ReadingHistoryEntry
from newsdigest.core.preferences import UserPreferences
from newsdigest.storage.base import PreferenceStore, ReadingHistoryStore

logger = logging.getLogger(__name__)

# Fixed-width UTC format so timestamps compare correctly as text
TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%S.%fZ'


def _to_db(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def _from_db(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


class SqliteDatabase:
    """
    Owns the database file and schema shared by the SQLite stores.
    """
    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_database()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Connection that commits on success and always closes."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def init_database(self):
        """Initialize database with required tables."""
        with self.connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS user_preferences (
                    user_id INTEGER PRIMARY KEY,
                    interests TEXT,  -- JSON array, NULL until first save
                    sentiment_filter TEXT NOT NULL DEFAULT 'all',
                    language TEXT NOT NULL DEFAULT 'en',
                    max_articles INTEGER NOT NULL DEFAULT 12,
                    articles_read INTEGER NOT NULL DEFAULT 0
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS reading_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    article_title TEXT NOT NULL,
                    article_url TEXT NOT NULL,
                    category TEXT,
                    sentiment TEXT,
                    read_at TEXT NOT NULL,
                    UNIQUE (user_id, article_url)
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_reading_history_user_read_at
                ON reading_history(user_id, read_at)
            """)
        logger.info(f"Database initialized at {self.db_path}")


class SqlitePreferenceStore(PreferenceStore):
    def __init__(self, database: SqliteDatabase):
        self.database = database

    def get(self, user_id: int) -> Optional[UserPreferences]:
        with self.database.connect() as conn:
            row = conn.execute(
                """
                SELECT interests, sentiment_filter, language, max_articles
                FROM user_preferences
                WHERE user_id = ?
                """,
                (user_id,)
            ).fetchone()

        if row is None or row['interests'] is None:
            return None

        try:
            interests = json.loads(row['interests'])
        except json.JSONDecodeError:
            logger.error(f"Corrupt interests for user {user_id}, using defaults")
            interests = None
        if not isinstance(interests, list):
            interests = UserPreferences().interests

        return UserPreferences(
            interests=interests,
            sentiment_filter=row['sentiment_filter'],
            language=row['language'],
            max_articles=row['max_articles'],
        )

    def put(self, user_id: int, preferences: UserPreferences) -> None:
        with self.database.connect() as conn:
            conn.execute(
                """
                INSERT INTO user_preferences (user_id, interests, sentiment_filter, language, max_articles)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    interests = excluded.interests,
                    sentiment_filter = excluded.sentiment_filter,
                    language = excluded.language,
                    max_articles = excluded.max_articles
                """,
                (
                    user_id,
                    json.dumps(preferences.interests),
                    preferences.sentiment_filter,
                    preferences.language,
                    preferences.max_articles,
                )
            )

    def increment_read_count(self, user_id: int) -> int:
        with self.database.connect() as conn:
            conn.execute(
                """
                INSERT INTO user_preferences (user_id, articles_read) VALUES (?, 1)
                ON CONFLICT(user_id) DO UPDATE SET articles_read = articles_read + 1
                """,
                (user_id,)
            )
            row = conn.execute(
                "SELECT articles_read FROM user_preferences WHERE user_id = ?", (user_id,)
            ).fetchone()
        return row['articles_read']

    def read_count(self, user_id: int) -> int:
        with self.database.connect() as conn:
            row = conn.execute(
                "SELECT articles_read FROM user_preferences WHERE user_id = ?", (user_id,)
            ).fetchone()
        return row['articles_read'] if row is not None else 0


class SqliteReadingHistoryStore(ReadingHistoryStore):
    def __init__(self, database: SqliteDatabase):
        self.database = database

    def append(self, entry: ReadingHistoryEntry) -> AppendResult:
        with self.database.connect() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO reading_history
                    (user_id, article_title, article_url, category, sentiment, read_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.user_id,
                    entry.article_title,
                    entry.article_url,
                    entry.category,
                    entry.sentiment,
                    _to_db(entry.read_at),
                )
            )
        return AppendResult.APPENDED if cursor.rowcount == 1 else AppendResult.DUPLICATE

    def query(self, user_id: int, since: Optional[datetime] = None,
              limit: Optional[int] = None) -> List[ReadingHistoryEntry]:
        query = """
            SELECT user_id, article_title, article_url, category, sentiment, read_at
            FROM reading_history
            WHERE user_id = ?
        """
        params = [user_id]
        if since is not None:
            query += " AND read_at >= ?"
            params.append(_to_db(since))
        query += " ORDER BY read_at DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self.database.connect() as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            ReadingHistoryEntry(
                user_id=row['user_id'],
                article_title=row['article_title'],
                article_url=row['article_url'],
                category=row['category'] or 'general',
                sentiment=row['sentiment'] or 'neutral',
                read_at=_from_db(row['read_at']),
            )
            for row in rows
        ]

    def count(self, user_id: int) -> int:
        with self.database.connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM reading_history WHERE user_id = ?", (user_id,)
            ).fetchone()
        return row['n']

    def delete_all(self, user_id: int) -> int:
        with self.database.connect() as conn:
            cursor = conn.execute("DELETE FROM reading_history WHERE user_id = ?", (user_id,))
        removed = cursor.rowcount
        logger.info(f"Cleared {removed} history records for user {user_id}")
        return removed
