"""
Grant Module Projections - Read Models for Query Operations

Projections are built from events and provide efficient query access.
They are the "read" side of CQRS.

GrantRegistry: Current state of the ledger (main projection)
ClaimLog: Allocations, claims and retrievals for audit queries
"""

from grant_ledger.grant.events import (
    AllocationAdded,
    Claimed,
    GrantLedgerCreated,
    RemainingBalanceRetrieved,
)
from grant_ledger.grant.models import DistributionStatus, GrantAccount, GrantLedgerState
from grant_ledger.kernel.events import Event


class GrantRegistry:
    """
    Main ledger projection - current state of one grant ledger

    Built from events: GrantLedgerCreated, AllocationAdded, Claimed,
                       DistributionPaused, DistributionResumed,
                       RemainingBalanceRetrieved

    Events before GrantLedgerCreated are ignored; replaying the stream from
    version 1 always rebuilds the same state.
    """

    def __init__(self) -> None:
        self.state: GrantLedgerState | None = None

    def apply_event(self, event: Event) -> None:
        """
        Apply an event to update the projection

        Args:
            event: Event to apply
        """
        if event.event_type == "GrantLedgerCreated":
            self._apply_ledger_created(event)
            return

        if self.state is None:
            return

        if event.event_type == "AllocationAdded":
            self._apply_allocation_added(event)
        elif event.event_type == "Claimed":
            self._apply_claimed(event)
        elif event.event_type == "DistributionPaused":
            self.state.status = DistributionStatus.PAUSED
        elif event.event_type == "DistributionResumed":
            self.state.status = DistributionStatus.ACTIVE
        # RemainingBalanceRetrieved only moves unlocked tokens: no state change

        self.state.version = event.version

    def apply_events(self, events: list[Event]) -> None:
        for event in events:
            self.apply_event(event)

    def _apply_ledger_created(self, event: Event) -> None:
        payload = GrantLedgerCreated.model_validate(event.payload)
        self.state = GrantLedgerState(
            ledger_id=payload.ledger_id,
            ledger_account=payload.ledger_account,
            administrator=payload.administrator,
            deployer=payload.deployer,
            created_at=payload.created_at,
            claim_unlock_at=payload.claim_unlock_at,
            retrieval_unlock_at=payload.retrieval_unlock_at,
            terms=payload.terms,
            version=event.version,
        )

    def _apply_allocation_added(self, event: Event) -> None:
        assert self.state is not None
        payload = AllocationAdded.model_validate(event.payload)

        self.state.accounts[payload.recipient] = GrantAccount(
            account=payload.recipient,
            allocated_amount=payload.amount,
            entitlement=payload.amount,
            allocated_at=payload.allocated_at,
        )
        self.state.locked_balance += payload.amount

    def _apply_claimed(self, event: Event) -> None:
        assert self.state is not None
        payload = Claimed.model_validate(event.payload)

        record = self.state.accounts.get(payload.account)
        if record is None:
            return

        record.entitlement -= payload.amount
        record.claimed_amount += payload.amount
        record.last_claimed_at = payload.claimed_at
        if record.entitlement == 0:
            record.claimed_fully = True
        self.state.locked_balance -= payload.amount

    # ========== Query Methods ==========

    def get(self) -> GrantLedgerState | None:
        """
        Get the ledger state

        Returns:
            Current state or None if the ledger was never created
        """
        return self.state

    def get_account(self, account: str) -> GrantAccount | None:
        if self.state is None:
            return None
        return self.state.get_account(account)

    def list_accounts(self) -> list[GrantAccount]:
        """
        List every account ever allocated, in allocation order

        Returns:
            List of account records
        """
        if self.state is None:
            return []
        return list(self.state.accounts.values())


class ClaimLog:
    """
    Token flow audit log

    Built from events: AllocationAdded, Claimed, RemainingBalanceRetrieved

    Query methods: get_by_account, get_retrievals, total_claimed
    """

    def __init__(self) -> None:
        self.allocations: list[dict] = []
        self.claims: list[dict] = []
        self.retrievals: list[dict] = []

    def apply_event(self, event: Event) -> None:
        """
        Apply an event to update the log

        Args:
            event: Event to apply
        """
        if event.event_type == "AllocationAdded":
            payload = AllocationAdded.model_validate(event.payload)
            self.allocations.append(
                {
                    "account": payload.recipient,
                    "amount": payload.amount,
                    "allocated_at": payload.allocated_at,
                    "allocated_by": event.actor_id,
                    "version": event.version,
                }
            )
        elif event.event_type == "Claimed":
            payload = Claimed.model_validate(event.payload)
            self.claims.append(
                {
                    "account": payload.account,
                    "amount": payload.amount,
                    "claimed_at": payload.claimed_at,
                    "remaining_entitlement": payload.remaining_entitlement,
                    "version": event.version,
                }
            )
        elif event.event_type == "RemainingBalanceRetrieved":
            payload = RemainingBalanceRetrieved.model_validate(event.payload)
            self.retrievals.append(
                {
                    "recipient": payload.recipient,
                    "amount": payload.amount,
                    "retrieved_at": payload.retrieved_at,
                    "version": event.version,
                }
            )

    # ========== Query Methods ==========

    def get_by_account(self, account: str) -> list[dict]:
        """
        Allocation and claims of one account, in ledger order

        Args:
            account: Account id

        Returns:
            List of entry dicts with a "kind" of "allocation" or "claim"
        """
        entries = [
            {"kind": "allocation", **entry}
            for entry in self.allocations
            if entry["account"] == account
        ]
        entries.extend(
            {"kind": "claim", **entry}
            for entry in self.claims
            if entry["account"] == account
        )
        return sorted(entries, key=lambda entry: entry["version"])

    def get_retrievals(self) -> list[dict]:
        return self.retrievals

    def total_claimed(self, account: str | None = None) -> int:
        """Sum of claimed amounts, optionally for a single account"""
        return sum(
            claim["amount"]
            for claim in self.claims
            if account is None or claim["account"] == account
        )
