"""
Time provider abstraction for the ledger's time gates

The claim-unlock and retrieval-unlock gates compare against "now", so the
clock is injected: production uses the system clock, tests freeze and
advance a fake one.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


class TimeProvider(Protocol):
    """Protocol for time providers"""

    def now(self) -> datetime:
        """Return current UTC datetime"""
        ...


class RealTimeProvider:
    """Production time provider using the system clock"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class TestTimeProvider:
    """
    Controllable clock for deterministic tests

    Time only moves when the test moves it.
    """

    __test__ = False  # not a pytest test class

    def __init__(self, initial_time: datetime | None = None) -> None:
        """
        Args:
            initial_time: Starting time (defaults to Unix epoch, UTC)
        """
        self._current_time = initial_time or datetime(1970, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current_time

    def set_time(self, dt: datetime) -> None:
        self._current_time = dt

    def advance_seconds(self, seconds: int) -> None:
        self._current_time += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        self._current_time += timedelta(days=days)
