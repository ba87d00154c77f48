"""
Grant Domain Models - Core entities of the grant ledger

Key concepts:
- GrantTerms: the lock and retrieval periods fixed at construction
- GrantAccount: one recipient's allocation, remaining entitlement and claims
- GrantLedgerState: the whole ledger - accounts, locked balance, distribution
  flag and the two time gates

Invariants the operations preserve:
- locked_balance == sum of entitlements over all accounts
- locked_balance <= backing (token balance of the ledger account)
- an account is allocated at most once, and never again after a full claim
"""

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, Field

# The all-zero address; treated as "no account" for compatibility with
# tooling that uses it as a null recipient
NULL_ACCOUNT = "0x0000000000000000000000000000000000000000"

SECONDS_PER_DAY = 24 * 60 * 60


class DistributionStatus(str, Enum):
    """
    Distribution state machine: ACTIVE <-> PAUSED

    Starts ACTIVE. Only pause/resume move between the states, and only
    ACTIVE permits claims.
    """

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"


class GrantTerms(BaseModel):
    """
    Construction parameters of a grant ledger

    Both periods are measured from the ledger's creation time. They are
    immutable once the ledger exists.
    """

    lock_period_seconds: int = Field(
        default=365 * SECONDS_PER_DAY,
        ge=0,
        description="Time after creation before recipients may claim",
    )
    retrieval_period_seconds: int = Field(
        default=5 * 365 * SECONDS_PER_DAY,
        ge=0,
        description="Time after creation before unallocated backing is retrievable",
    )
    name: str = Field(default="Token Grant", min_length=1, max_length=100)
    symbol: str = Field(default="GRANT", min_length=1, max_length=20)

    model_config = {"frozen": True}

    @classmethod
    def from_days(
        cls, lock_days: float, retrieval_days: float, **kwargs: str
    ) -> "GrantTerms":
        """Build terms from periods expressed in days"""
        return cls(
            lock_period_seconds=int(lock_days * SECONDS_PER_DAY),
            retrieval_period_seconds=int(retrieval_days * SECONDS_PER_DAY),
            **kwargs,
        )

    @property
    def lock_period(self) -> timedelta:
        return timedelta(seconds=self.lock_period_seconds)

    @property
    def retrieval_period(self) -> timedelta:
        return timedelta(seconds=self.retrieval_period_seconds)


class GrantAccount(BaseModel):
    """
    A recipient's grant record

    Created on first allocation and never removed; after a full claim it
    stays as a historical record with entitlement 0 and claimed_fully set.

    Attributes:
        account: Recipient identifier
        allocated_amount: Original grant size
        entitlement: Amount still claimable
        claimed_amount: Running total already claimed
        claimed_fully: True once entitlement reached zero by claiming
        allocated_at: When the allocation was added
        last_claimed_at: Time of the most recent claim
    """

    account: str
    allocated_amount: int = Field(ge=0)
    entitlement: int = Field(ge=0)
    claimed_amount: int = Field(default=0, ge=0)
    claimed_fully: bool = False
    allocated_at: datetime
    last_claimed_at: datetime | None = None


class GrantLedgerState(BaseModel):
    """
    Complete state of one grant ledger

    Mutated only by the GrantRegistry projection applying events; never
    handed out for direct modification (the façade returns copies).

    Attributes:
        ledger_id: Event stream id of this ledger
        ledger_account: The ledger's account in the token store
        administrator: Identity allowed to allocate, pause, resume, retrieve
        deployer: Identity that created the ledger
        created_at: Creation time
        claim_unlock_at: created_at + lock period
        retrieval_unlock_at: created_at + retrieval period
        terms: Periods and display name/symbol
        status: ACTIVE or PAUSED
        locked_balance: Sum of outstanding entitlements
        accounts: Grant records keyed by account id
        version: Stream version of the last applied event
    """

    ledger_id: str
    ledger_account: str
    administrator: str
    deployer: str
    created_at: datetime
    claim_unlock_at: datetime
    retrieval_unlock_at: datetime
    terms: GrantTerms
    status: DistributionStatus = DistributionStatus.ACTIVE
    locked_balance: int = Field(default=0, ge=0)
    accounts: dict[str, GrantAccount] = Field(default_factory=dict)
    version: int = Field(default=0, ge=0)

    def is_active(self) -> bool:
        return self.status == DistributionStatus.ACTIVE

    def get_account(self, account: str) -> GrantAccount | None:
        return self.accounts.get(account)

    def entitlement_of(self, account: str) -> int:
        record = self.accounts.get(account)
        return record.entitlement if record else 0

    def is_fully_claimed(self, account: str) -> bool:
        record = self.accounts.get(account)
        return record.claimed_fully if record else False

    def total_entitlement(self) -> int:
        """Sum of remaining entitlements across all accounts"""
        return sum(record.entitlement for record in self.accounts.values())

    def total_allocated(self) -> int:
        return sum(record.allocated_amount for record in self.accounts.values())

    def total_claimed(self) -> int:
        return sum(record.claimed_amount for record in self.accounts.values())
