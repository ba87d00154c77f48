"""
SQLite Event Store - Append-only log of ledger events

The event store is the ledger's persistence. It provides:
- Append-only semantics (events never modified or deleted)
- Idempotency via command_id (same operation = same events)
- Optimistic locking via stream versioning
- Deterministic replay on startup
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from grant_ledger.kernel.errors import (
    CommandIdempotencyViolation,
    EventStoreError,
    StreamVersionConflict,
)
from grant_ledger.kernel.events import Event
from grant_ledger.kernel.logging import get_logger
from grant_ledger.kernel.metrics import events_appended_total
from grant_ledger.kernel.retry import retry_on_sqlite_lock

logger = get_logger(__name__)

_EVENT_COLUMNS = (
    "event_id, stream_id, stream_type, version, command_id, "
    "event_type, occurred_at, actor_id, payload_json"
)


class SQLiteEventStore:
    """
    SQLite-based event store in WAL mode

    Schema:
    - events table: append-only event log
    - Unique constraints: (stream_id, version), (stream_id, command_id)
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    event_id TEXT PRIMARY KEY,
                    stream_id TEXT NOT NULL,
                    stream_type TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    command_id TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    occurred_at TEXT NOT NULL,
                    actor_id TEXT,
                    payload_json TEXT NOT NULL,

                    UNIQUE(stream_id, version),
                    UNIQUE(stream_id, command_id)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_stream "
                "ON events(stream_id, version)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_command "
                "ON events(stream_id, command_id)"
            )
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @retry_on_sqlite_lock()
    def append(
        self,
        stream_id: str,
        expected_version: int,
        events: list[Event],
    ) -> list[Event]:
        """
        Append events to a stream with optimistic locking

        Args:
            stream_id: Ledger identifier
            expected_version: Current stream version the caller built on
            events: Events to append (sequential versions)

        Returns:
            The appended events, or the previously stored ones when the
            command_id was already recorded for this stream

        Raises:
            StreamVersionConflict: If stream version doesn't match expected
            CommandIdempotencyViolation: If the command_id collides unexpectedly
            EventStoreError: On other database errors
        """
        if not events:
            return []

        command_id = events[0].command_id
        existing = self.load_by_command_id(stream_id, command_id)
        if existing:
            logger.info(
                "Command already recorded, returning stored events",
                stream_id=stream_id,
                command_id=command_id,
            )
            return existing

        with self._connect() as conn:
            try:
                current_version = self._get_stream_version(conn, stream_id)
                if current_version != expected_version:
                    raise StreamVersionConflict(stream_id, expected_version, current_version)

                for event in events:
                    conn.execute(
                        f"INSERT INTO events ({_EVENT_COLUMNS}) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        (
                            event.event_id,
                            event.stream_id,
                            event.stream_type,
                            event.version,
                            event.command_id,
                            event.event_type,
                            event.occurred_at.isoformat(),
                            event.actor_id,
                            json.dumps(event.payload),
                        ),
                    )
                conn.commit()

            except sqlite3.IntegrityError as e:
                conn.rollback()
                error_msg = str(e).lower()
                if "command_id" in error_msg:
                    raise CommandIdempotencyViolation(command_id) from e
                if "version" in error_msg:
                    current = self._get_stream_version(conn, stream_id)
                    raise StreamVersionConflict(stream_id, expected_version, current) from e
                raise EventStoreError(f"Failed to append events: {e}") from e

        for event in events:
            events_appended_total.labels(event_type=event.event_type).inc()
        return events

    @retry_on_sqlite_lock()
    def load_stream(self, stream_id: str) -> list[Event]:
        """
        Load all events for a stream in version order

        Returns:
            Events in version order (empty if the stream doesn't exist)
        """
        with self._connect() as conn:
            cursor = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events "
                "WHERE stream_id = ? ORDER BY version ASC",
                (stream_id,),
            )
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def load_by_command_id(self, stream_id: str, command_id: str) -> list[Event]:
        """Events a command produced in a stream (for idempotency checks)"""
        with self._connect() as conn:
            cursor = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events "
                "WHERE stream_id = ? AND command_id = ? ORDER BY version ASC",
                (stream_id, command_id),
            )
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def query_events(
        self,
        stream_id: str,
        *,
        event_type: str | None = None,
        actor_id: str | None = None,
        limit: int | None = None,
    ) -> list[Event]:
        """
        Query a stream's events by type and/or actor

        Args:
            stream_id: Ledger identifier
            event_type: Filter by event type (e.g., "Claimed")
            actor_id: Filter by the caller that produced the event
            limit: Maximum number of events to return

        Returns:
            Matching events in version order
        """
        conditions = ["stream_id = ?"]
        params: list = [stream_id]

        if event_type:
            conditions.append("event_type = ?")
            params.append(event_type)

        if actor_id:
            conditions.append("actor_id = ?")
            params.append(actor_id)

        query = (
            f"SELECT {_EVENT_COLUMNS} FROM events "
            f"WHERE {' AND '.join(conditions)} ORDER BY version ASC"
        )
        if limit:
            query += " LIMIT ?"
            params.append(limit)

        with self._connect() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def get_stream_version(self, stream_id: str) -> int:
        """Current version of a stream (0 if it doesn't exist)"""
        with self._connect() as conn:
            return self._get_stream_version(conn, stream_id)

    def _get_stream_version(self, conn: sqlite3.Connection, stream_id: str) -> int:
        cursor = conn.execute(
            "SELECT MAX(version) FROM events WHERE stream_id = ?",
            (stream_id,),
        )
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def _row_to_event(self, row: sqlite3.Row) -> Event:
        return Event(
            event_id=row["event_id"],
            stream_id=row["stream_id"],
            stream_type=row["stream_type"],
            version=row["version"],
            command_id=row["command_id"],
            event_type=row["event_type"],
            occurred_at=datetime.fromisoformat(row["occurred_at"]),
            actor_id=row["actor_id"],
            payload=json.loads(row["payload_json"]),
        )

    def count_events(self) -> int:
        """Total number of events in the store"""
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
