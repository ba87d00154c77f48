"""
Tests for the token-compatible view of a grant ledger
"""

import pytest

from grant_ledger.compat import LegacyTokenFacade
from grant_ledger.kernel.errors import AlreadyClaimed, NotYetUnlocked, Unsupported
from grant_ledger.kernel.time import TestTimeProvider
from grant_ledger.ledger import GrantLedger
from grant_ledger.token.store import InMemoryTokenStore


@pytest.fixture
def facade(ledger: GrantLedger) -> LegacyTokenFacade:
    ledger.allocate("admin", "alice", 10_000)
    ledger.allocate("admin", "bob", 3_000)
    return LegacyTokenFacade(ledger)


def test_reads_mirror_entitlements(facade: LegacyTokenFacade, token_store: InMemoryTokenStore) -> None:
    assert facade.name == "Token Grant"
    assert facade.symbol == "GRANT"
    assert facade.decimals() == token_store.decimals()
    assert facade.total_supply() == 13_000
    assert facade.balance_of("alice") == 10_000
    assert facade.balance_of("carol") == 0
    assert facade.allowance("alice", "bob") == 0


def test_approvals_are_unsupported(facade: LegacyTokenFacade) -> None:
    with pytest.raises(Unsupported) as exc_info:
        facade.approve("alice", "bob", 1)
    assert exc_info.value.code == "UNSUPPORTED"

    with pytest.raises(Unsupported):
        facade.transfer_from("bob", "alice", "bob", 1)


def test_transfer_claims_for_the_caller(
    facade: LegacyTokenFacade,
    token_store: InMemoryTokenStore,
    test_time: TestTimeProvider,
) -> None:
    with pytest.raises(NotYetUnlocked):
        facade.transfer("alice", "bob", 1_000)

    test_time.advance_days(365)

    # The destination is ignored: claimed tokens go to the caller
    assert facade.transfer("alice", "bob", 4_000) is True
    assert token_store.balance_of("alice") == 4_000
    assert token_store.balance_of("bob") == 0
    assert facade.balance_of("alice") == 6_000
    assert facade.total_supply() == 9_000

    facade.transfer("alice", "alice", 6_000)
    with pytest.raises(AlreadyClaimed):
        facade.transfer("alice", "alice", 1)
