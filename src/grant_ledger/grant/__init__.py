"""
Grant Module - Time-locked one-shot token grants

Allocation, claim, pause/resume and retrieval of a single grant ledger,
expressed as commands, events, invariants and projections.
"""

from grant_ledger.grant.models import (
    NULL_ACCOUNT,
    DistributionStatus,
    GrantAccount,
    GrantLedgerState,
    GrantTerms,
)

__all__ = [
    "NULL_ACCOUNT",
    "DistributionStatus",
    "GrantAccount",
    "GrantLedgerState",
    "GrantTerms",
]
