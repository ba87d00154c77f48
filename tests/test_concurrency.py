"""
Concurrent access to one ledger

Operations are serialized per ledger, so racing callers can never claim
more than an entitlement or allocate more than the backing.
"""

from concurrent.futures import ThreadPoolExecutor

from grant_ledger.kernel.errors import GrantLedgerError, InsufficientBacking
from grant_ledger.kernel.time import TestTimeProvider
from grant_ledger.ledger import GrantLedger
from grant_ledger.token.store import InMemoryTokenStore


def attempt(operation, *args) -> bool:
    try:
        operation(*args)
    except GrantLedgerError:
        return False
    return True


def test_racing_claims_never_exceed_entitlement(
    ledger: GrantLedger, token_store: InMemoryTokenStore, test_time: TestTimeProvider
) -> None:
    ledger.allocate("admin", "alice", 10_000)
    test_time.advance_days(365)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: attempt(ledger.claim, "alice", 1_000), range(25)))

    assert results.count(True) == 10
    assert token_store.balance_of("alice") == 10_000
    assert ledger.entitlement_of("alice") == 0
    assert ledger.is_fully_claimed("alice")
    assert ledger.audit() == []


def test_racing_allocations_never_exceed_backing(
    ledger: GrantLedger, token_store: InMemoryTokenStore
) -> None:
    recipients = [f"recipient-{i}" for i in range(60)]

    def allocate(recipient: str) -> str:
        try:
            ledger.allocate("admin", recipient, 2_000)
        except InsufficientBacking:
            return "rejected"
        return "allocated"

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(allocate, recipients))

    assert outcomes.count("allocated") == 50
    assert outcomes.count("rejected") == 10
    assert ledger.locked_balance() == 100_000
    assert ledger.locked_balance() <= ledger.backing()
    assert sum(a.entitlement for a in ledger.list_accounts()) == 100_000
    assert ledger.audit() == []
