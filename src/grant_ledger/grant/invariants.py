"""
Grant Module Invariants - Precondition gates

These pure functions enforce the preconditions of every ledger operation.
Each raises exactly one GrantLedgerError subclass; handlers call them in a
fixed order so the first failing gate determines the error.

None of them mutates state, and every one of them runs before the token
transfer, so a rejected operation leaves both ledger and token store as they
were.
"""

from datetime import datetime

from grant_ledger.grant.models import NULL_ACCOUNT, GrantAccount, GrantLedgerState, GrantTerms
from grant_ledger.kernel.errors import (
    AlreadyActive,
    AlreadyAllocated,
    AlreadyClaimed,
    AlreadyPaused,
    DistributionPaused,
    InsufficientBacking,
    InsufficientEntitlement,
    InvalidGrantTerms,
    InvalidRecipient,
    NoAllocation,
    NothingToRetrieve,
    NotYetUnlocked,
    Unauthorized,
    ZeroAmount,
)


def validate_grant_terms(terms: GrantTerms) -> None:
    """
    Retrieval must not open before claiming does

    Otherwise the administrator could reclaim unallocated funds while every
    recipient is still locked out. Negative periods are already rejected by
    the model.

    Raises:
        InvalidGrantTerms: If retrieval_period < lock_period
    """
    if terms.retrieval_period_seconds < terms.lock_period_seconds:
        raise InvalidGrantTerms(
            terms.lock_period_seconds, terms.retrieval_period_seconds
        )


def validate_administrator(state: GrantLedgerState, caller: str, operation: str) -> None:
    """
    Gate: caller must be the administrator

    Raises:
        Unauthorized: If caller is anyone else
    """
    if caller != state.administrator:
        raise Unauthorized(caller, operation)


def validate_recipient(state: GrantLedgerState, recipient: str | None) -> None:
    """
    Gate: recipient must be a real account

    Rejected: missing or empty/whitespace ids, the null account, and the
    ledger's own account (tokens "claimed" by the ledger would stay in the
    ledger).

    Raises:
        InvalidRecipient: With the reason the recipient was refused
    """
    if recipient is None or not recipient.strip():
        raise InvalidRecipient(recipient, "account id is empty")
    if recipient.lower() == NULL_ACCOUNT:
        raise InvalidRecipient(recipient, "null account")
    if recipient == state.ledger_account:
        raise InvalidRecipient(recipient, "the ledger's own account")


def validate_positive_amount(amount: int, operation: str) -> None:
    """
    Raises:
        ZeroAmount: If amount is zero
    """
    if amount <= 0:
        raise ZeroAmount(operation)


def validate_not_fully_claimed(record: GrantAccount | None) -> None:
    """
    Gate: a fully claimed account is closed for good

    Raises:
        AlreadyClaimed: If the account claimed its whole grant before
    """
    if record is not None and record.claimed_fully:
        raise AlreadyClaimed(record.account)


def validate_not_allocated(record: GrantAccount | None) -> None:
    """
    Gate: one allocation per account

    Raises:
        AlreadyAllocated: If the account still holds a nonzero entitlement
    """
    if record is not None and record.entitlement > 0:
        raise AlreadyAllocated(record.account, record.entitlement)


def validate_backing(state: GrantLedgerState, backing: int, amount: int) -> None:
    """
    Gate: unlocked backing covers the new allocation

    Keeps locked_balance <= backing after the allocation.

    Raises:
        InsufficientBacking: If backing - locked_balance < amount
    """
    if backing - state.locked_balance < amount:
        raise InsufficientBacking(amount, backing, state.locked_balance)


def validate_distribution_active(state: GrantLedgerState) -> None:
    """
    Raises:
        DistributionPaused: If the administrator paused distribution
    """
    if not state.is_active():
        raise DistributionPaused()


def validate_unlocked(gate: str, unlock_time: datetime, now: datetime) -> None:
    """
    Gate: a time lock has opened

    The boundary is inclusive: at exactly ``unlock_time`` the gate is open.

    Raises:
        NotYetUnlocked: If now < unlock_time
    """
    if now < unlock_time:
        raise NotYetUnlocked(gate, unlock_time, now)


def validate_entitlement(
    account: str, record: GrantAccount | None, amount: int
) -> GrantAccount:
    """
    Gate: the claim fits in the remaining entitlement

    Returns:
        The account record (for the handler to compute the new entitlement)

    Raises:
        NoAllocation: If the account was never allocated
        InsufficientEntitlement: If amount exceeds the remaining entitlement
    """
    if record is None:
        raise NoAllocation(account, amount)
    if amount > record.entitlement:
        raise InsufficientEntitlement(account, amount, record.entitlement)
    return record


def validate_can_pause(state: GrantLedgerState) -> None:
    if not state.is_active():
        raise AlreadyPaused()


def validate_can_resume(state: GrantLedgerState) -> None:
    if state.is_active():
        raise AlreadyActive()


def validate_retrievable(state: GrantLedgerState, backing: int) -> int:
    """
    Gate: unallocated backing exists

    Returns:
        The retrievable amount, backing - locked_balance

    Raises:
        NothingToRetrieve: If nothing beyond the locked balance is held
    """
    available = backing - state.locked_balance
    if available <= 0:
        raise NothingToRetrieve(backing, state.locked_balance)
    return available
