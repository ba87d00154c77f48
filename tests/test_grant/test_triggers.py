"""
Tests for Grant Module Triggers - conservation audit
"""

from grant_ledger.grant.models import GrantAccount, GrantLedgerState
from grant_ledger.grant.triggers import (
    evaluate_backing_trigger,
    evaluate_locked_balance_trigger,
)


def with_alice(state: GrantLedgerState, entitlement: int, locked: int) -> GrantLedgerState:
    state.accounts["alice"] = GrantAccount(
        account="alice",
        allocated_amount=entitlement,
        entitlement=entitlement,
        allocated_at=state.created_at,
    )
    state.locked_balance = locked
    return state


def test_consistent_state_is_silent(state: GrantLedgerState) -> None:
    with_alice(state, 10_000, 10_000)

    assert evaluate_locked_balance_trigger(state, state.created_at) == []
    assert evaluate_backing_trigger(state, 10_000, state.created_at) == []


def test_locked_balance_mismatch_detected(state: GrantLedgerState) -> None:
    with_alice(state, 10_000, 12_000)

    events = evaluate_locked_balance_trigger(state, state.created_at)

    assert len(events) == 1
    event = events[0]
    assert event.event_type == "LockedBalanceMismatchDetected"
    assert event.actor_id == "system"
    assert event.version == state.version + 1
    assert event.payload["locked_balance"] == 12_000
    assert event.payload["total_entitlement"] == 10_000
    assert event.payload["variance"] == 2_000


def test_backing_shortfall_detected(state: GrantLedgerState) -> None:
    with_alice(state, 10_000, 10_000)

    events = evaluate_backing_trigger(state, 4_000, state.created_at)

    assert len(events) == 1
    assert events[0].event_type == "BackingShortfallDetected"
    assert events[0].payload["shortfall"] == 6_000
