"""
Tests for Grant Module Invariants - Precondition gates

Each gate is a pure function raising exactly one error kind.
"""

from datetime import datetime, timedelta, timezone

import pytest

from grant_ledger.grant.invariants import (
    validate_administrator,
    validate_backing,
    validate_can_pause,
    validate_can_resume,
    validate_distribution_active,
    validate_entitlement,
    validate_grant_terms,
    validate_not_allocated,
    validate_not_fully_claimed,
    validate_positive_amount,
    validate_recipient,
    validate_retrievable,
    validate_unlocked,
)
from grant_ledger.grant.models import (
    NULL_ACCOUNT,
    DistributionStatus,
    GrantAccount,
    GrantLedgerState,
    GrantTerms,
)
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

NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_account(entitlement: int, claimed_fully: bool = False) -> GrantAccount:
    return GrantAccount(
        account="alice",
        allocated_amount=10_000,
        entitlement=entitlement,
        claimed_amount=10_000 - entitlement,
        claimed_fully=claimed_fully,
        allocated_at=NOW,
    )


# Construction


def test_grant_terms_retrieval_may_equal_lock() -> None:
    validate_grant_terms(GrantTerms.from_days(30, 30))


def test_grant_terms_retrieval_before_lock_rejected() -> None:
    terms = GrantTerms.from_days(365, 30)

    with pytest.raises(InvalidGrantTerms) as exc_info:
        validate_grant_terms(terms)

    assert exc_info.value.lock_period_seconds == 365 * 86400
    assert exc_info.value.retrieval_period_seconds == 30 * 86400


def test_grant_terms_negative_period_rejected_by_model() -> None:
    with pytest.raises(ValueError):
        GrantTerms(lock_period_seconds=-1)


# Roles and recipients


def test_administrator_gate(state: GrantLedgerState) -> None:
    validate_administrator(state, "admin", "allocate")

    with pytest.raises(Unauthorized) as exc_info:
        validate_administrator(state, "mallory", "allocate")

    assert exc_info.value.caller == "mallory"
    assert exc_info.value.code == "UNAUTHORIZED"


@pytest.mark.parametrize("recipient", [None, "", "   ", NULL_ACCOUNT])
def test_null_recipients_rejected(state: GrantLedgerState, recipient: str | None) -> None:
    with pytest.raises(InvalidRecipient):
        validate_recipient(state, recipient)


def test_ledger_account_is_not_a_recipient(state: GrantLedgerState) -> None:
    with pytest.raises(InvalidRecipient) as exc_info:
        validate_recipient(state, state.ledger_account)

    assert "ledger" in exc_info.value.reason


def test_regular_recipient_accepted(state: GrantLedgerState) -> None:
    validate_recipient(state, "alice")


# Amounts and allocation


def test_zero_amount_rejected() -> None:
    validate_positive_amount(1, "allocate")

    with pytest.raises(ZeroAmount) as exc_info:
        validate_positive_amount(0, "claim")

    assert exc_info.value.operation == "claim"


def test_fully_claimed_account_is_closed() -> None:
    validate_not_fully_claimed(None)
    validate_not_fully_claimed(make_account(5_000))

    with pytest.raises(AlreadyClaimed, match="no second-time allocation allowed"):
        validate_not_fully_claimed(make_account(0, claimed_fully=True))


def test_outstanding_entitlement_blocks_allocation() -> None:
    validate_not_allocated(None)

    with pytest.raises(AlreadyAllocated) as exc_info:
        validate_not_allocated(make_account(2_500))

    assert exc_info.value.entitlement == 2_500


def test_backing_must_cover_allocation(state: GrantLedgerState) -> None:
    state.locked_balance = 60_000

    # Exactly the unlocked remainder is allowed
    validate_backing(state, 100_000, 40_000)

    with pytest.raises(InsufficientBacking) as exc_info:
        validate_backing(state, 100_000, 40_001)

    assert exc_info.value.backing == 100_000
    assert exc_info.value.locked == 60_000
    assert "available: 40000" in str(exc_info.value)


# Claiming


def test_paused_distribution_blocks(state: GrantLedgerState) -> None:
    validate_distribution_active(state)

    state.status = DistributionStatus.PAUSED
    with pytest.raises(DistributionPaused, match="Distribution is paused"):
        validate_distribution_active(state)


def test_unlock_boundary_is_inclusive() -> None:
    unlock = NOW + timedelta(days=365)

    validate_unlocked("claim", unlock, unlock)
    validate_unlocked("claim", unlock, unlock + timedelta(seconds=1))

    with pytest.raises(NotYetUnlocked) as exc_info:
        validate_unlocked("claim", unlock, unlock - timedelta(seconds=1))

    assert exc_info.value.gate == "claim"
    assert exc_info.value.unlock_time == unlock


def test_entitlement_gate() -> None:
    record = make_account(5_000)

    assert validate_entitlement("alice", record, 5_000) is record

    with pytest.raises(InsufficientEntitlement) as exc_info:
        validate_entitlement("alice", record, 5_001)
    assert exc_info.value.entitlement == 5_000
    assert not isinstance(exc_info.value, NoAllocation)


def test_never_allocated_account_has_no_allocation() -> None:
    with pytest.raises(NoAllocation) as exc_info:
        validate_entitlement("bob", None, 1)

    # Callers handling the parent class still catch it
    assert isinstance(exc_info.value, InsufficientEntitlement)
    assert exc_info.value.code == "NO_ALLOCATION"
    assert str(exc_info.value) == "Account bob has no grant allocation"


# Distribution control and retrieval


def test_pause_resume_gates(state: GrantLedgerState) -> None:
    validate_can_pause(state)
    with pytest.raises(AlreadyActive):
        validate_can_resume(state)

    state.status = DistributionStatus.PAUSED
    validate_can_resume(state)
    with pytest.raises(AlreadyPaused):
        validate_can_pause(state)


def test_retrievable_amount(state: GrantLedgerState) -> None:
    state.locked_balance = 10_000

    assert validate_retrievable(state, 100_000) == 90_000

    with pytest.raises(NothingToRetrieve):
        validate_retrievable(state, 10_000)
