"""
Tests for the underlying token stores

Both implementations must behave identically for the ledger: atomic
transfers that fail without side effects.
"""

from pathlib import Path

import pytest

from grant_ledger.kernel.errors import InsufficientFunds, TransferError, UnknownAccount
from grant_ledger.token.store import InMemoryTokenStore, SQLiteTokenStore


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path):
    if request.param == "memory":
        return InMemoryTokenStore(decimals=6)
    return SQLiteTokenStore(tmp_path / "tokens.db", decimals=6)


def test_mint_and_balance(store) -> None:
    store.mint("alice", 1_000)
    store.mint("alice", 500)

    assert store.balance_of("alice") == 1_500
    assert store.balance_of("nobody") == 0
    assert store.total_supply() == 1_500
    assert store.decimals() == 6


def test_transfer_moves_tokens(store) -> None:
    store.mint("alice", 1_000)

    store.transfer("alice", "bob", 400)

    assert store.balance_of("alice") == 600
    assert store.balance_of("bob") == 400
    assert store.total_supply() == 1_000


def test_overdraw_fails_without_side_effects(store) -> None:
    store.mint("alice", 100)

    with pytest.raises(InsufficientFunds) as exc_info:
        store.transfer("alice", "bob", 101)

    assert isinstance(exc_info.value, TransferError)
    assert exc_info.value.balance == 100
    assert store.balance_of("alice") == 100
    assert store.balance_of("bob") == 0


def test_unknown_source_account(store) -> None:
    with pytest.raises(UnknownAccount):
        store.transfer("ghost", "bob", 1)

    with pytest.raises(UnknownAccount):
        store.transfer("", "bob", 1)


def test_negative_amounts_rejected(store) -> None:
    store.mint("alice", 100)

    with pytest.raises(ValueError):
        store.transfer("alice", "bob", -1)
    with pytest.raises(ValueError):
        store.mint("alice", -1)


def test_sqlite_metadata_is_fixed_on_first_open(tmp_path: Path) -> None:
    path = tmp_path / "tokens.db"
    SQLiteTokenStore(path, name="Alpha", symbol="ALP", decimals=8).mint("alice", 5)

    reopened = SQLiteTokenStore(path, name="Beta", symbol="BET", decimals=2)

    assert reopened.name == "Alpha"
    assert reopened.symbol == "ALP"
    assert reopened.decimals() == 8
    assert reopened.balance_of("alice") == 5
