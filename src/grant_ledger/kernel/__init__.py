"""
Kernel - event sourcing and operational infrastructure

Events, the append-only SQLite store, injectable clocks, the in-process
event bus, structured logging, metrics and retries. The grant module builds
on these; nothing here knows about grants.
"""

from grant_ledger.kernel.bus import EventBus
from grant_ledger.kernel.errors import (
    EventStoreError,
    GrantLedgerError,
    StreamVersionConflict,
)
from grant_ledger.kernel.event_store import SQLiteEventStore
from grant_ledger.kernel.events import Event
from grant_ledger.kernel.ids import generate_id
from grant_ledger.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    "generate_id",
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    "Event",
    "EventBus",
    "SQLiteEventStore",
    "GrantLedgerError",
    "EventStoreError",
    "StreamVersionConflict",
]
