"""
Token Module - the underlying fungible token store

The grant ledger only depends on the TokenStore protocol; the two stores
here cover tests and the command-line deployment.
"""

from grant_ledger.token.store import InMemoryTokenStore, SQLiteTokenStore, TokenStore

__all__ = ["TokenStore", "InMemoryTokenStore", "SQLiteTokenStore"]
