"""
Grant Module Events - Domain events of the grant ledger

These payloads are what external indexers and UIs consume. Together with
the GrantLedgerCreated event they are sufficient to rebuild the ledger.
"""

from datetime import datetime

from pydantic import BaseModel

from grant_ledger.grant.models import GrantTerms


class GrantLedgerCreated(BaseModel):
    """
    The ledger was created

    Fixes every immutable parameter: administrator, ledger account and both
    unlock times.
    """

    ledger_id: str
    ledger_account: str
    administrator: str
    deployer: str
    created_at: datetime
    claim_unlock_at: datetime
    retrieval_unlock_at: datetime
    terms: GrantTerms


class AllocationAdded(BaseModel):
    """A recipient was granted ``amount`` tokens, now locked"""

    recipient: str
    amount: int
    allocated_at: datetime
    locked_balance: int  # After this allocation


class Claimed(BaseModel):
    """
    A recipient claimed ``amount`` tokens

    The tokens have already been transferred when this event is recorded.
    """

    account: str
    amount: int
    claimed_at: datetime
    remaining_entitlement: int
    claimed_fully: bool


class DistributionPaused(BaseModel):
    """Claims are suspended until resumed"""

    paused_at: datetime


class DistributionResumed(BaseModel):
    """Claims are allowed again"""

    resumed_at: datetime


class RemainingBalanceRetrieved(BaseModel):
    """Unallocated backing was returned to the administrator"""

    amount: int
    recipient: str
    retrieved_at: datetime


class LockedBalanceMismatchDetected(BaseModel):
    """
    WARNING: locked_balance != sum of entitlements

    This should NEVER happen - it indicates an accounting bug.
    Emitted by the audit, not persisted.
    """

    detected_at: datetime
    locked_balance: int
    total_entitlement: int
    variance: int


class BackingShortfallDetected(BaseModel):
    """
    WARNING: locked entitlements exceed the ledger's token balance

    Could indicate tokens moved out of the ledger account outside the ledger.
    """

    detected_at: datetime
    locked_balance: int
    backing: int
    shortfall: int


GRANT_EVENT_TYPES = {
    "GrantLedgerCreated": GrantLedgerCreated,
    "AllocationAdded": AllocationAdded,
    "Claimed": Claimed,
    "DistributionPaused": DistributionPaused,
    "DistributionResumed": DistributionResumed,
    "RemainingBalanceRetrieved": RemainingBalanceRetrieved,
    "LockedBalanceMismatchDetected": LockedBalanceMismatchDetected,
    "BackingShortfallDetected": BackingShortfallDetected,
}
