"""
Grant Ledger - Event-sourced time-locked token grants

An administrator allocates one-shot grants of an underlying token;
recipients claim them after a lock period while distribution is active, and
unallocated backing returns to the administrator after a retrieval period.
Every change is an event, so the ledger rebuilds exactly from its log.
"""

from grant_ledger.compat import LegacyTokenFacade
from grant_ledger.grant.models import GrantAccount, GrantTerms
from grant_ledger.kernel.errors import GrantLedgerError
from grant_ledger.ledger import GrantLedger
from grant_ledger.token.store import InMemoryTokenStore, SQLiteTokenStore, TokenStore

__version__ = "0.1.0"
__all__ = [
    "GrantLedger",
    "GrantTerms",
    "GrantAccount",
    "GrantLedgerError",
    "LegacyTokenFacade",
    "TokenStore",
    "InMemoryTokenStore",
    "SQLiteTokenStore",
    "__version__",
]
