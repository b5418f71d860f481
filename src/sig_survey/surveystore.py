from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import closing
from datetime import datetime
from typing import TYPE_CHECKING

from .surveymodel import CacheRecord

if TYPE_CHECKING:
    from types import TracebackType
    from typing import Protocol

    class _SurveyConfig(Protocol):
        @property
        def database_path(self) -> str:
            ...

        @property
        def max_is_running_seconds(self) -> int:
            ...


class CacheStore:
    """Database for storing fetched response bodies keyed by uri."""

    logger = logging.getLogger("sig_survey.CacheStore")

    def __init__(
        self,
        database_path: str = ":memory:",
        *,
        max_is_running_age: int = 86400,
    ) -> None:
        """
        Initialize a new CacheStore connected to the given path.

        The connection is shared between threads. Every read-modify-write
        against the database happens while holding the store's lock.

        Use the `with` statement to mark the store as running for the
        duration of a crawl:

            with CacheStore("survey.db") as store:
                ...

        Args:
            database_path: The path to the database file. Defaults to an
                in-memory database.

        Keyword Args:
            max_is_running_age: The maximum age of the is_running flag in
                seconds. If the is_running flag is older than this, it will be
                reset to 0. Defaults to 86400 (one day).
        """
        self.logger.debug("Initializing CacheStore at %s", database_path)
        self._connection = sqlite3.connect(database_path, check_same_thread=False)
        self._lock = threading.Lock()

        self._max_is_running_age = max_is_running_age

        self._create_cache_table()
        self._create_system_table()

        self._save_system_info(database_path)

    @classmethod
    def from_config(cls, config: _SurveyConfig) -> CacheStore:
        """Build a CacheStore from the given configuration."""
        return cls(
            config.database_path,
            max_is_running_age=config.max_is_running_seconds,
        )

    def __enter__(self) -> CacheStore:
        """Enter a context manager."""
        self.start_run()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Exit a context manager."""
        self.stop_run()

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._connection.close()

    def _create_cache_table(self) -> None:
        """Create the cache table if it does not already exist."""
        # One row per uri. The etag is NULL when the origin did not send one.
        self._connection.execute(
            """
            CREATE TABLE IF NOT EXISTS cache (
                uri TEXT PRIMARY KEY,
                body TEXT NOT NULL,
                etag TEXT,
                fetched_at INTEGER NOT NULL
            )
            """
        )
        self.logger.debug("Created cache table")

    def _create_system_table(self) -> None:
        """Create a table to store system information."""
        self._connection.execute(
            """
            CREATE TABLE IF NOT EXISTS system (
                database_path TEXT NOT NULL,
                last_run INTEGER NOT NULL,
                is_running INTEGER NOT NULL,
                created_at INTEGER NOT NULL,
                UNIQUE(database_path)
            )
            """
        )
        self.logger.debug("Created system table")

    def _save_system_info(self, database_path: str) -> None:
        """Save system information to the database. (only at startup)"""
        now = int(datetime.now().timestamp())
        self._connection.execute(
            """
            INSERT OR IGNORE INTO system
            ( database_path, last_run, is_running, created_at )
            VALUES (?, ?, ?, ?)
            """,
            (database_path, 0, 0, now),
        )
        self._connection.commit()
        self.logger.debug("Saved system information")

    def _get_last_run(self) -> tuple[int, int]:
        """Return the last run timestamp and is_running flag."""
        with closing(self._connection.cursor()) as cursor:
            cursor.execute("SELECT last_run, is_running FROM system")
            return cursor.fetchone()

    def start_run(self) -> None:
        """Set the is_running flag to True, raise error if already running."""
        with self._lock:
            last_run, is_running = self._get_last_run()

            if last_run < int(datetime.now().timestamp()) - self._max_is_running_age:
                is_running = False

            if is_running:
                raise RuntimeError(f"Already running (last run {last_run})")

            with closing(self._connection.cursor()) as cursor:
                cursor.execute(
                    "UPDATE system SET is_running = 1, last_run = ?",
                    (int(datetime.now().timestamp()),),
                )
                self._connection.commit()

    def stop_run(self) -> None:
        """Set the is_running flag to False."""
        with self._lock:
            with closing(self._connection.cursor()) as cursor:
                cursor.execute("UPDATE system SET is_running = 0")
                self._connection.commit()

    def get(self, uri: str) -> CacheRecord | None:
        """Return the stored record for the uri, or None."""
        with self._lock:
            with closing(self._connection.cursor()) as cursor:
                cursor.execute(
                    "SELECT uri, body, etag, fetched_at FROM cache WHERE uri = ?",
                    (uri,),
                )
                row = cursor.fetchone()

        # Watch the order of the columns here, must match the model
        return CacheRecord(*row) if row else None

    def save(self, uri: str, body: str, validator: str | None) -> CacheRecord:
        """
        Insert the record for the uri or replace the existing one.

        Lookup and write happen as one unit so concurrent saves of the same
        uri leave exactly one row behind.
        """
        fetched_at = int(datetime.now().timestamp())
        with self._lock:
            with closing(self._connection.cursor()) as cursor:
                cursor.execute("SELECT 1 FROM cache WHERE uri = ?", (uri,))
                exists = cursor.fetchone() is not None

                cursor.execute(
                    """
                    INSERT INTO cache (uri, body, etag, fetched_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(uri) DO UPDATE SET
                        body = excluded.body,
                        etag = excluded.etag,
                        fetched_at = excluded.fetched_at
                    """,
                    (uri, body, validator, fetched_at),
                )
                self._connection.commit()

        self.logger.debug("%s cache row for %s", "Updated" if exists else "Stored", uri)
        return CacheRecord(uri, body, validator, fetched_at)

    def count(self) -> int:
        """Return the number of cached records."""
        with self._lock:
            with closing(self._connection.cursor()) as cursor:
                cursor.execute("SELECT COUNT(*) FROM cache")
                return cursor.fetchone()[0]
