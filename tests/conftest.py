"""
Pytest configuration and shared fixtures

Time is always a frozen TestTimeProvider: the ledger's gates only open when
a test advances the clock.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from grant_ledger.grant.commands import CreateGrantLedger
from grant_ledger.grant.handlers import GrantCommandHandlers
from grant_ledger.grant.models import GrantLedgerState, GrantTerms
from grant_ledger.grant.projections import GrantRegistry
from grant_ledger.kernel.event_store import SQLiteEventStore
from grant_ledger.kernel.ids import generate_id
from grant_ledger.kernel.time import TestTimeProvider
from grant_ledger.ledger import GrantLedger
from grant_ledger.token.store import InMemoryTokenStore

ADMIN = "admin"
LEDGER_ACCOUNT = "grant-ledger"
INITIAL_BACKING = 100_000


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    """Database file inside pytest's per-test temporary directory"""
    return tmp_path / "ledger.db"


@pytest.fixture
def event_store(temp_db: Path) -> SQLiteEventStore:
    """Provide a fresh event store for each test"""
    return SQLiteEventStore(temp_db)


@pytest.fixture
def test_time() -> TestTimeProvider:
    """Controllable clock, frozen at 2025-01-15 12:00 UTC"""
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def terms() -> GrantTerms:
    """One-year lock, five-year retrieval"""
    return GrantTerms.from_days(365, 5 * 365)


@pytest.fixture
def token_store() -> InMemoryTokenStore:
    return InMemoryTokenStore(name="Test Token", symbol="TST", decimals=18)


@pytest.fixture
def ledger(
    temp_db: Path,
    token_store: InMemoryTokenStore,
    terms: GrantTerms,
    test_time: TestTimeProvider,
) -> GrantLedger:
    """A ledger administered by "admin" and backed by 100,000 tokens"""
    grant_ledger = GrantLedger(
        temp_db,
        token_store,
        administrator=ADMIN,
        terms=terms,
        ledger_account=LEDGER_ACCOUNT,
        time_provider=test_time,
    )
    token_store.mint(LEDGER_ACCOUNT, INITIAL_BACKING)
    return grant_ledger


@pytest.fixture
def handlers(test_time: TestTimeProvider) -> GrantCommandHandlers:
    return GrantCommandHandlers(test_time)


@pytest.fixture
def registry(handlers: GrantCommandHandlers, terms: GrantTerms) -> GrantRegistry:
    """Registry holding a freshly created ledger (no allocations)"""
    events = handlers.handle_create_grant_ledger(
        CreateGrantLedger(
            ledger_account=LEDGER_ACCOUNT,
            administrator=ADMIN,
            deployer=ADMIN,
            terms=terms,
        ),
        command_id=generate_id(),
        ledger_id="grant-ledger-test",
    )
    projection = GrantRegistry()
    projection.apply_events(events)
    return projection


@pytest.fixture
def state(registry: GrantRegistry) -> GrantLedgerState:
    current = registry.get()
    assert current is not None
    return current
