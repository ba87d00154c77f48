"""
Grant Module Handlers - Command→Event transformation with gate enforcement

Handlers are the decision-making layer. They:
1. Read current state (from the GrantRegistry projection)
2. Validate the operation's gates in their fixed order
3. Generate events if valid
4. Return events for the façade to append after any token transfer

Handlers never touch the token store themselves; the façade passes in the
ledger's current backing where a gate needs it and performs the transfer.
"""

from grant_ledger.grant.commands import (
    AllocateGrant,
    ClaimGrant,
    CreateGrantLedger,
    PauseDistribution,
    ResumeDistribution,
    RetrieveRemainingBalance,
)
from grant_ledger.grant.events import (
    AllocationAdded,
    Claimed,
    DistributionPaused,
    DistributionResumed,
    GrantLedgerCreated,
    RemainingBalanceRetrieved,
)
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
from grant_ledger.grant.models import GrantLedgerState
from grant_ledger.kernel.events import Event, create_event
from grant_ledger.kernel.ids import generate_id
from grant_ledger.kernel.time import TimeProvider


class GrantCommandHandlers:
    """
    Command handlers for the grant module

    Handlers convert commands into events, enforcing every precondition.
    They depend on the projection for current state.
    """

    def __init__(self, time_provider: TimeProvider) -> None:
        """
        Args:
            time_provider: For timestamps and time gates (injectable for testing)
        """
        self.time_provider = time_provider

    def _event(
        self,
        state: GrantLedgerState,
        event_type: str,
        command_id: str,
        actor_id: str,
        payload: dict,
    ) -> Event:
        return create_event(
            event_id=generate_id(),
            stream_id=state.ledger_id,
            event_type=event_type,
            occurred_at=self.time_provider.now(),
            command_id=command_id,
            actor_id=actor_id,
            payload=payload,
            version=state.version + 1,
        )

    def handle_create_grant_ledger(
        self,
        command: CreateGrantLedger,
        command_id: str,
        ledger_id: str,
    ) -> list[Event]:
        """
        Handle CreateGrantLedger command

        Fixes the unlock times relative to the current clock.

        Raises:
            InvalidGrantTerms: If the retrieval period is shorter than the lock period
        """
        validate_grant_terms(command.terms)

        now = self.time_provider.now()
        event_payload = GrantLedgerCreated(
            ledger_id=ledger_id,
            ledger_account=command.ledger_account,
            administrator=command.administrator,
            deployer=command.deployer,
            created_at=now,
            claim_unlock_at=now + command.terms.lock_period,
            retrieval_unlock_at=now + command.terms.retrieval_period,
            terms=command.terms,
        ).model_dump(mode="json")

        event = create_event(
            event_id=generate_id(),
            stream_id=ledger_id,
            event_type="GrantLedgerCreated",
            occurred_at=now,
            command_id=command_id,
            actor_id=command.deployer,
            payload=event_payload,
            version=1,
        )
        return [event]

    def handle_allocate_grant(
        self,
        command: AllocateGrant,
        command_id: str,
        actor_id: str,
        state: GrantLedgerState,
        backing: int,
    ) -> list[Event]:
        """
        Handle AllocateGrant command

        Gates, in order:
        - Caller is the administrator
        - Recipient is a real account
        - Amount is nonzero
        - Recipient never claimed fully
        - Recipient holds no outstanding entitlement
        - Unlocked backing covers the amount

        No time gate: allocations are allowed before and after unlock.

        Args:
            backing: Current token balance of the ledger account

        Raises:
            Unauthorized, InvalidRecipient, ZeroAmount, AlreadyClaimed,
            AlreadyAllocated, InsufficientBacking
        """
        validate_administrator(state, actor_id, "allocate")
        validate_recipient(state, command.recipient)
        validate_positive_amount(command.amount, "allocate")

        record = state.get_account(command.recipient)
        validate_not_fully_claimed(record)
        validate_not_allocated(record)
        validate_backing(state, backing, command.amount)

        event_payload = AllocationAdded(
            recipient=command.recipient,
            amount=command.amount,
            allocated_at=self.time_provider.now(),
            locked_balance=state.locked_balance + command.amount,
        ).model_dump(mode="json")

        return [
            self._event(state, "AllocationAdded", command_id, actor_id, event_payload)
        ]

    def handle_claim_grant(
        self,
        command: ClaimGrant,
        command_id: str,
        actor_id: str,
        state: GrantLedgerState,
    ) -> list[Event]:
        """
        Handle ClaimGrant command

        Gates, in order:
        - Distribution is active
        - Claim-unlock time reached
        - Caller has not already claimed fully
        - Amount is nonzero
        - Amount fits in the remaining entitlement

        The returned Claimed event describes the state after the transfer;
        the façade transfers first and appends only on success.

        Raises:
            DistributionPaused, NotYetUnlocked, AlreadyClaimed, ZeroAmount,
            InsufficientEntitlement (NoAllocation)
        """
        now = self.time_provider.now()

        validate_distribution_active(state)
        validate_unlocked("claim", state.claim_unlock_at, now)

        record = state.get_account(actor_id)
        validate_not_fully_claimed(record)
        validate_positive_amount(command.amount, "claim")
        record = validate_entitlement(actor_id, record, command.amount)

        remaining = record.entitlement - command.amount
        event_payload = Claimed(
            account=actor_id,
            amount=command.amount,
            claimed_at=now,
            remaining_entitlement=remaining,
            claimed_fully=remaining == 0,
        ).model_dump(mode="json")

        return [self._event(state, "Claimed", command_id, actor_id, event_payload)]

    def handle_pause_distribution(
        self,
        command: PauseDistribution,
        command_id: str,
        actor_id: str,
        state: GrantLedgerState,
    ) -> list[Event]:
        """
        Handle PauseDistribution command (ACTIVE → PAUSED)

        Raises:
            Unauthorized: If caller isn't the administrator
            AlreadyPaused: If distribution is already paused
        """
        validate_administrator(state, actor_id, "pause distribution")
        validate_can_pause(state)

        event_payload = DistributionPaused(
            paused_at=self.time_provider.now()
        ).model_dump(mode="json")

        return [
            self._event(state, "DistributionPaused", command_id, actor_id, event_payload)
        ]

    def handle_resume_distribution(
        self,
        command: ResumeDistribution,
        command_id: str,
        actor_id: str,
        state: GrantLedgerState,
    ) -> list[Event]:
        """
        Handle ResumeDistribution command (PAUSED → ACTIVE)

        Raises:
            Unauthorized: If caller isn't the administrator
            AlreadyActive: If distribution is already active
        """
        validate_administrator(state, actor_id, "resume distribution")
        validate_can_resume(state)

        event_payload = DistributionResumed(
            resumed_at=self.time_provider.now()
        ).model_dump(mode="json")

        return [
            self._event(state, "DistributionResumed", command_id, actor_id, event_payload)
        ]

    def handle_retrieve_remaining_balance(
        self,
        command: RetrieveRemainingBalance,
        command_id: str,
        actor_id: str,
        state: GrantLedgerState,
        backing: int,
    ) -> list[Event]:
        """
        Handle RetrieveRemainingBalance command

        Gates, in order: administrator, retrieval-unlock time reached,
        something beyond the locked balance is held. The event's amount is
        what the façade transfers to the administrator.

        Raises:
            Unauthorized, NotYetUnlocked, NothingToRetrieve
        """
        now = self.time_provider.now()

        validate_administrator(state, actor_id, "retrieve remaining balance")
        validate_unlocked("retrieval", state.retrieval_unlock_at, now)
        available = validate_retrievable(state, backing)

        event_payload = RemainingBalanceRetrieved(
            amount=available,
            recipient=state.administrator,
            retrieved_at=now,
        ).model_dump(mode="json")

        return [
            self._event(
                state, "RemainingBalanceRetrieved", command_id, actor_id, event_payload
            )
        ]
