"""
Grant Module Triggers - Conservation monitoring

Triggers evaluate ledger state and emit reflex events (warnings). They are
the ledger's self-audit: the operations' gates should make them silent, so
any event they return points at an accounting bug or at tokens moved out of
the ledger account behind its back.
"""

from datetime import datetime

from grant_ledger.grant.events import (
    BackingShortfallDetected,
    LockedBalanceMismatchDetected,
)
from grant_ledger.grant.models import GrantLedgerState
from grant_ledger.kernel.events import Event
from grant_ledger.kernel.ids import generate_id


def _detection_event(
    state: GrantLedgerState, event_type: str, now: datetime, payload: dict
) -> Event:
    return Event(
        event_id=generate_id(),
        stream_id=state.ledger_id,
        version=state.version + 1,
        command_id=generate_id(),
        event_type=event_type,
        occurred_at=now,
        actor_id="system",
        payload=payload,
    )


def evaluate_locked_balance_trigger(
    state: GrantLedgerState,
    now: datetime,
) -> list[Event]:
    """
    Check locked_balance == sum of remaining entitlements

    NOTE: This should NEVER trigger if the projection is correct.

    Args:
        state: Current ledger state
        now: Current time

    Returns:
        List with one LockedBalanceMismatchDetected event, or empty
    """
    total_entitlement = state.total_entitlement()
    if state.locked_balance == total_entitlement:
        return []

    payload = LockedBalanceMismatchDetected(
        detected_at=now,
        locked_balance=state.locked_balance,
        total_entitlement=total_entitlement,
        variance=state.locked_balance - total_entitlement,
    ).model_dump(mode="json")
    return [_detection_event(state, "LockedBalanceMismatchDetected", now, payload)]


def evaluate_backing_trigger(
    state: GrantLedgerState,
    backing: int,
    now: datetime,
) -> list[Event]:
    """
    Check locked_balance <= backing

    A shortfall means recipients could not all claim their entitlements.
    Tokens leaving the ledger account outside of claim/retrieve are the
    usual cause.

    Args:
        state: Current ledger state
        backing: Token balance of the ledger account
        now: Current time

    Returns:
        List with one BackingShortfallDetected event, or empty
    """
    if state.locked_balance <= backing:
        return []

    payload = BackingShortfallDetected(
        detected_at=now,
        locked_balance=state.locked_balance,
        backing=backing,
        shortfall=state.locked_balance - backing,
    ).model_dump(mode="json")
    return [_detection_event(state, "BackingShortfallDetected", now, payload)]
