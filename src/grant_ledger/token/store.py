"""
Underlying Token Store - the fungible token a grant ledger pays out in

The ledger treats the token as an opaque accountable store: it reads
balances and issues atomic transfers. Anything with ``balance_of``,
``transfer`` and ``decimals`` satisfies the ``TokenStore`` protocol.

Two implementations ship with the package:
- InMemoryTokenStore: process-local balances (tests, embedding)
- SQLiteTokenStore: durable balances for the CLI, sharing the ledger's db file
"""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Protocol

from grant_ledger.kernel.errors import InsufficientFunds, UnknownAccount
from grant_ledger.kernel.logging import get_logger
from grant_ledger.kernel.retry import retry_on_sqlite_lock

logger = get_logger(__name__)

DEFAULT_DECIMALS = 18


class TokenStore(Protocol):
    """Interface the grant ledger requires from the underlying token"""

    def balance_of(self, account: str) -> int:
        """Balance of an account (0 for accounts never seen)"""
        ...

    def transfer(self, source: str, destination: str, amount: int) -> None:
        """
        Move ``amount`` from source to destination atomically

        Raises:
            InsufficientFunds: If source balance < amount
            UnknownAccount: If source is unknown or an account id is empty
        """
        ...

    def decimals(self) -> int:
        """Display decimals of the token"""
        ...


def _validate_transfer_args(source: str, destination: str, amount: int) -> None:
    if not source:
        raise UnknownAccount(source)
    if not destination:
        raise UnknownAccount(destination)
    if amount < 0:
        raise ValueError(f"Transfer amount must not be negative, got {amount}")


class InMemoryTokenStore:
    """
    Dictionary-backed token store

    Accounts come into existence when they first receive tokens (mint or
    transfer). A transfer from an account that never held tokens fails with
    UnknownAccount; one that would overdraw fails with InsufficientFunds.
    """

    def __init__(
        self,
        name: str = "Token",
        symbol: str = "TKN",
        decimals: int = DEFAULT_DECIMALS,
    ) -> None:
        self.name = name
        self.symbol = symbol
        self._decimals = decimals
        self._balances: dict[str, int] = {}
        self._lock = threading.Lock()

    def decimals(self) -> int:
        return self._decimals

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def total_supply(self) -> int:
        return sum(self._balances.values())

    def mint(self, account: str, amount: int) -> None:
        """Create ``amount`` new tokens in ``account``"""
        if not account:
            raise UnknownAccount(account)
        if amount < 0:
            raise ValueError(f"Mint amount must not be negative, got {amount}")
        with self._lock:
            self._balances[account] = self._balances.get(account, 0) + amount

    def transfer(self, source: str, destination: str, amount: int) -> None:
        _validate_transfer_args(source, destination, amount)
        with self._lock:
            if source not in self._balances:
                raise UnknownAccount(source)
            balance = self._balances[source]
            if balance < amount:
                raise InsufficientFunds(source, balance, amount)
            self._balances[source] = balance - amount
            self._balances[destination] = self._balances.get(destination, 0) + amount


class SQLiteTokenStore:
    """
    SQLite-backed token store

    Balances live in a ``token_balances`` table; a transfer is a single
    ``BEGIN IMMEDIATE`` transaction so concurrent processes serialize on the
    database write lock.
    """

    def __init__(
        self,
        db_path: str | Path,
        name: str = "Token",
        symbol: str = "TKN",
        decimals: int = DEFAULT_DECIMALS,
    ) -> None:
        self.db_path = Path(db_path)
        self._initialize_schema(name, symbol, decimals)
        meta = self._load_meta()
        self.name = meta["name"]
        self.symbol = meta["symbol"]
        self._decimals = int(meta["decimals"])

    def _initialize_schema(self, name: str, symbol: str, decimals: int) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS token_balances (
                    account TEXT PRIMARY KEY,
                    amount INTEGER NOT NULL CHECK (amount >= 0)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS token_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            # First writer wins: reopening never rewrites token metadata
            conn.executemany(
                "INSERT OR IGNORE INTO token_meta (key, value) VALUES (?, ?)",
                [("name", name), ("symbol", symbol), ("decimals", str(decimals))],
            )

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        # Autocommit mode; transactions are opened explicitly
        conn = sqlite3.connect(str(self.db_path), isolation_level=None, timeout=5.0)
        try:
            yield conn
        finally:
            conn.close()

    def _load_meta(self) -> dict[str, str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT key, value FROM token_meta").fetchall()
        return dict(rows)

    def decimals(self) -> int:
        return self._decimals

    @retry_on_sqlite_lock()
    def balance_of(self, account: str) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT amount FROM token_balances WHERE account = ?", (account,)
            ).fetchone()
        return row[0] if row else 0

    def total_supply(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COALESCE(SUM(amount), 0) FROM token_balances").fetchone()
        return row[0]

    def mint(self, account: str, amount: int) -> None:
        """Create ``amount`` new tokens in ``account``"""
        if not account:
            raise UnknownAccount(account)
        if amount < 0:
            raise ValueError(f"Mint amount must not be negative, got {amount}")
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO token_balances (account, amount) VALUES (?, ?) "
                "ON CONFLICT(account) DO UPDATE SET amount = amount + excluded.amount",
                (account, amount),
            )
        logger.info("Tokens minted", account=account, amount=amount)

    def transfer(self, source: str, destination: str, amount: int) -> None:
        _validate_transfer_args(source, destination, amount)
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute(
                    "SELECT amount FROM token_balances WHERE account = ?", (source,)
                ).fetchone()
                if row is None:
                    raise UnknownAccount(source)
                if row[0] < amount:
                    raise InsufficientFunds(source, row[0], amount)

                conn.execute(
                    "UPDATE token_balances SET amount = amount - ? WHERE account = ?",
                    (amount, source),
                )
                conn.execute(
                    "INSERT INTO token_balances (account, amount) VALUES (?, ?) "
                    "ON CONFLICT(account) DO UPDATE SET amount = amount + excluded.amount",
                    (destination, amount),
                )
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise
