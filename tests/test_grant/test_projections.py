"""
Tests for Grant Module Projections

The registry must rebuild the same state from the same events, and the
claim log must keep an ordered per-account history.
"""

from grant_ledger.grant.commands import AllocateGrant, ClaimGrant, PauseDistribution
from grant_ledger.grant.handlers import GrantCommandHandlers
from grant_ledger.grant.models import DistributionStatus
from grant_ledger.grant.projections import ClaimLog, GrantRegistry
from grant_ledger.kernel.events import Event, create_event
from grant_ledger.kernel.ids import generate_id
from grant_ledger.kernel.time import TestTimeProvider


def record_history(
    handlers: GrantCommandHandlers, registry: GrantRegistry, test_time: TestTimeProvider
) -> list[Event]:
    """Allocate to alice and bob, claim part of alice's grant, pause"""
    history: list[Event] = []

    def run(events: list[Event]) -> None:
        registry.apply_events(events)
        history.extend(events)

    run(
        handlers.handle_allocate_grant(
            AllocateGrant(recipient="alice", amount=10_000),
            generate_id(), "admin", registry.get(), 100_000,
        )
    )
    run(
        handlers.handle_allocate_grant(
            AllocateGrant(recipient="bob", amount=3_000),
            generate_id(), "admin", registry.get(), 100_000,
        )
    )
    test_time.advance_days(365)
    run(
        handlers.handle_claim_grant(
            ClaimGrant(amount=4_000), generate_id(), "alice", registry.get()
        )
    )
    run(
        handlers.handle_pause_distribution(
            PauseDistribution(), generate_id(), "admin", registry.get()
        )
    )
    return history


def test_registry_tracks_balances(
    handlers: GrantCommandHandlers, registry: GrantRegistry, test_time: TestTimeProvider
) -> None:
    record_history(handlers, registry, test_time)
    state = registry.get()

    assert state.locked_balance == 9_000
    assert state.entitlement_of("alice") == 6_000
    assert state.entitlement_of("bob") == 3_000
    assert state.total_entitlement() == state.locked_balance
    assert state.status == DistributionStatus.PAUSED
    assert state.version == 5

    alice = registry.get_account("alice")
    assert alice.allocated_amount == 10_000
    assert alice.claimed_amount == 4_000
    assert alice.last_claimed_at == test_time.now()
    assert not alice.claimed_fully


def test_registry_rebuild_is_deterministic(
    handlers: GrantCommandHandlers, registry: GrantRegistry, test_time: TestTimeProvider
) -> None:
    creation = create_event(
        event_id=generate_id(),
        stream_id=registry.get().ledger_id,
        event_type="GrantLedgerCreated",
        occurred_at=registry.get().created_at,
        command_id=generate_id(),
        version=1,
        payload={
            "ledger_id": registry.get().ledger_id,
            "ledger_account": registry.get().ledger_account,
            "administrator": "admin",
            "deployer": "admin",
            "created_at": registry.get().created_at.isoformat(),
            "claim_unlock_at": registry.get().claim_unlock_at.isoformat(),
            "retrieval_unlock_at": registry.get().retrieval_unlock_at.isoformat(),
            "terms": registry.get().terms.model_dump(),
        },
    )
    history = record_history(handlers, registry, test_time)

    rebuilt = GrantRegistry()
    rebuilt.apply_events([creation, *history])

    assert rebuilt.get() == registry.get()


def test_registry_ignores_events_before_creation() -> None:
    registry = GrantRegistry()
    registry.apply_event(
        create_event(
            event_id=generate_id(),
            stream_id="ledger",
            event_type="DistributionPaused",
            occurred_at=TestTimeProvider().now(),
            command_id=generate_id(),
            version=1,
            payload={"paused_at": TestTimeProvider().now().isoformat()},
        )
    )

    assert registry.get() is None
    assert registry.list_accounts() == []
    assert registry.get_account("alice") is None


def test_claim_log_history(
    handlers: GrantCommandHandlers, registry: GrantRegistry, test_time: TestTimeProvider
) -> None:
    log = ClaimLog()
    for event in record_history(handlers, registry, test_time):
        log.apply_event(event)

    alice = log.get_by_account("alice")
    assert [entry["kind"] for entry in alice] == ["allocation", "claim"]
    assert alice[0]["allocated_by"] == "admin"
    assert alice[1]["remaining_entitlement"] == 6_000

    assert log.total_claimed() == 4_000
    assert log.total_claimed("bob") == 0
    assert log.get_retrievals() == []
