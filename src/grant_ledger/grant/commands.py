"""
Grant Module Commands - Intentions to change ledger state

Commands carry the operation's parameters; the caller identity travels
separately (as actor_id) so the same command can be checked against the
administrator role or the recipient's own account.

Recipients may be None so a missing account reaches the recipient gate.
Amounts are unsigned integers: negatives fail model validation, zero is
accepted here and rejected by the invariants with ZeroAmount.
"""

from pydantic import BaseModel, Field

from grant_ledger.grant.models import GrantTerms


class CreateGrantLedger(BaseModel):
    """
    Create the ledger (first event of the stream)

    The creation time is captured by the handler from the clock; both
    unlock times are derived from it.
    """

    ledger_account: str = Field(..., min_length=1)
    administrator: str = Field(..., min_length=1)
    deployer: str = Field(..., min_length=1)
    terms: GrantTerms = Field(default_factory=GrantTerms)


class AllocateGrant(BaseModel):
    """
    Allocate a one-shot grant to a recipient (administrator only)

    Requirements:
    - Recipient is a real account, never allocated, never fully claimed
    - Unlocked backing covers the amount
    """

    recipient: str | None
    amount: int = Field(..., ge=0)


class ClaimGrant(BaseModel):
    """
    Claim part or all of the caller's remaining entitlement

    Requirements:
    - Distribution ACTIVE
    - Claim-unlock time reached
    - 0 < amount <= remaining entitlement
    """

    amount: int = Field(..., ge=0)


class PauseDistribution(BaseModel):
    """Stop all claims (administrator only, ACTIVE -> PAUSED)"""


class ResumeDistribution(BaseModel):
    """Allow claims again (administrator only, PAUSED -> ACTIVE)"""


class RetrieveRemainingBalance(BaseModel):
    """
    Return unallocated backing to the administrator

    Only after the retrieval-unlock time; locked entitlements stay in place.
    """


GRANT_COMMAND_TYPES = {
    "CreateGrantLedger": CreateGrantLedger,
    "AllocateGrant": AllocateGrant,
    "ClaimGrant": ClaimGrant,
    "PauseDistribution": PauseDistribution,
    "ResumeDistribution": ResumeDistribution,
    "RetrieveRemainingBalance": RetrieveRemainingBalance,
}
