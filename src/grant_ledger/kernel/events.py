"""
Base Event model for the grant ledger's append-only log

Events are immutable facts: an allocation was added, tokens were claimed,
distribution was paused. Replaying them in version order rebuilds the ledger
exactly, which is what makes the ledger reconstructible after a restart.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class Event(BaseModel):
    """
    Base event envelope - every ledger state change is one of these

    The envelope is generic; the domain-specific fields live in ``payload``
    (produced by the payload models in ``grant.events``).

    stream_id + version give optimistic locking, command_id gives
    idempotency for the operation that produced the event.
    """

    event_id: str = Field(
        ...,
        description="Unique event identifier (time-ordered)",
    )

    stream_id: str = Field(
        ...,
        description="Ledger identifier - one stream per grant ledger",
    )

    stream_type: str = Field(
        default="grant_ledger",
        description="Aggregate type",
    )

    event_type: str = Field(
        ...,
        description="Specific event type: 'AllocationAdded', 'Claimed', etc.",
    )

    occurred_at: datetime = Field(
        ...,
        description="UTC timestamp when event occurred",
    )

    actor_id: str | None = Field(
        default=None,
        description="Caller that triggered this event (None for system events)",
    )

    command_id: str = Field(
        ...,
        description="ID of the operation that caused this event (idempotency key)",
    )

    payload: dict = Field(
        default_factory=dict,
        description="Event-specific data (must be JSON-serializable)",
    )

    version: int = Field(
        ...,
        description="Stream version after this event (monotonically increasing)",
        ge=1,
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "event_id": "01908e9a-3b87-7000-8000-123456789abc",
                    "stream_id": "grant-ledger",
                    "stream_type": "grant_ledger",
                    "event_type": "AllocationAdded",
                    "occurred_at": "2025-01-15T10:30:00Z",
                    "actor_id": "admin",
                    "command_id": "cmd-123",
                    "payload": {"recipient": "alice", "amount": 10000},
                    "version": 2,
                }
            ]
        },
    }


def create_event(
    *,
    event_id: str,
    stream_id: str,
    event_type: str,
    occurred_at: datetime,
    command_id: str,
    version: int,
    actor_id: str | None = None,
    payload: dict | None = None,
    stream_type: str = "grant_ledger",
) -> Event:
    """Factory for events with keyword-only arguments"""
    return Event(
        event_id=event_id,
        stream_id=stream_id,
        stream_type=stream_type,
        event_type=event_type,
        occurred_at=occurred_at,
        actor_id=actor_id,
        command_id=command_id,
        payload=payload or {},
        version=version,
    )
