"""
GrantLedger - Main façade class

This is the primary interface of the grant ledger. It hides the event
sourcing behind one object per ledger: operations validate through the
command handlers, move tokens through the token store, persist their events
and update the projections.

Example:
    >>> from grant_ledger import GrantLedger, GrantTerms, InMemoryTokenStore
    >>> tokens = InMemoryTokenStore()
    >>> ledger = GrantLedger("grants.db", tokens, administrator="admin",
    ...                      terms=GrantTerms.from_days(365, 5 * 365))
    >>> tokens.mint(ledger.ledger_account, 100_000)
    >>> ledger.allocate("admin", "alice", 10_000)
    >>> ledger.claim("alice", 5_000)  # after the lock period
"""

import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from grant_ledger.grant.commands import (
    AllocateGrant,
    ClaimGrant,
    CreateGrantLedger,
    PauseDistribution,
    ResumeDistribution,
    RetrieveRemainingBalance,
)
from grant_ledger.grant.handlers import GrantCommandHandlers
from grant_ledger.grant.invariants import validate_administrator
from grant_ledger.grant.models import GrantAccount, GrantLedgerState, GrantTerms
from grant_ledger.grant.projections import ClaimLog, GrantRegistry
from grant_ledger.grant.triggers import (
    evaluate_backing_trigger,
    evaluate_locked_balance_trigger,
)
from grant_ledger.kernel.bus import EventBus
from grant_ledger.kernel.errors import LedgerNotInitialized, LedgerParameterMismatch
from grant_ledger.kernel.event_store import SQLiteEventStore
from grant_ledger.kernel.events import Event
from grant_ledger.kernel.ids import generate_id
from grant_ledger.kernel.logging import LogOperation, get_logger
from grant_ledger.kernel.metrics import (
    invariant_violations_total,
    tokens_allocated_total,
    tokens_claimed_total,
    tokens_retrieved_total,
    track_operation,
    update_ledger_gauges,
)
from grant_ledger.kernel.time import RealTimeProvider, TimeProvider
from grant_ledger.token.store import TokenStore

logger = get_logger(__name__)

DEFAULT_LEDGER_ID = "grant-ledger"


class GrantLedger:
    """
    Grant ledger main façade

    Provides:
    - Allocation of one-shot grants (administrator)
    - Claiming after the lock period (recipients)
    - Pause/resume of distribution (administrator)
    - Retrieval of unallocated backing after the retrieval period
    - Read accessors, audit history and a conservation audit

    Every mutating operation holds the ledger's lock for its whole duration,
    so callers on other threads never observe a half-applied operation.
    """

    def __init__(
        self,
        sqlite_path: str | Path,
        token_store: TokenStore,
        *,
        deployer: str | None = None,
        administrator: str | None = None,
        terms: GrantTerms | None = None,
        ledger_id: str = DEFAULT_LEDGER_ID,
        ledger_account: str | None = None,
        time_provider: TimeProvider | None = None,
        bus: EventBus | None = None,
    ) -> None:
        """
        Open the ledger stored in ``sqlite_path``, creating it if empty

        Args:
            sqlite_path: Path to SQLite database
            token_store: Underlying token the grants are paid in
            deployer: Identity creating the ledger
            administrator: Administrator identity (defaults to the deployer)
            terms: Lock/retrieval periods (defaults to GrantTerms())
            ledger_id: Event stream of this ledger
            ledger_account: The ledger's account in the token store
                (defaults to ledger_id)
            time_provider: Time provider (uses real time if None)
            bus: Event bus for subscribers (a private one if None)

        Raises:
            LedgerNotInitialized: Empty database and no administrator/deployer
            LedgerParameterMismatch: Existing ledger with different parameters
            InvalidGrantTerms: retrieval period shorter than lock period
        """
        self.sqlite_path = Path(sqlite_path)
        self.token_store = token_store
        self.ledger_id = ledger_id
        self.time_provider = time_provider or RealTimeProvider()
        self.bus = bus or EventBus()

        self.event_store = SQLiteEventStore(self.sqlite_path)
        self.handlers = GrantCommandHandlers(self.time_provider)

        self.registry = GrantRegistry()
        self.claim_log = ClaimLog()

        self._lock = threading.RLock()

        with self._lock:
            self._rebuild_projections()
            if self.registry.state is None:
                self._create(deployer, administrator, terms, ledger_account)
            else:
                self._check_parameters(deployer, administrator, terms, ledger_account)
            self._update_gauges()

    def _rebuild_projections(self) -> None:
        """Rebuild projections from the event store"""
        events = self.event_store.load_stream(self.ledger_id)
        for event in events:
            self.registry.apply_event(event)
            self.claim_log.apply_event(event)
        logger.debug(
            "Projections rebuilt", ledger_id=self.ledger_id, events=len(events)
        )

    def _create(
        self,
        deployer: str | None,
        administrator: str | None,
        terms: GrantTerms | None,
        ledger_account: str | None,
    ) -> None:
        deployer = deployer or administrator
        if deployer is None:
            raise LedgerNotInitialized(self.ledger_id)

        command = CreateGrantLedger(
            ledger_account=ledger_account or self.ledger_id,
            administrator=administrator or deployer,
            deployer=deployer,
            terms=terms or GrantTerms(),
        )
        with LogOperation(
            logger, "create_ledger", ledger_id=self.ledger_id, deployer=deployer
        ):
            events = self.handlers.handle_create_grant_ledger(
                command, generate_id(), self.ledger_id
            )
            self._persist(events)
            self._apply(events)

    def _check_parameters(
        self,
        deployer: str | None,
        administrator: str | None,
        terms: GrantTerms | None,
        ledger_account: str | None,
    ) -> None:
        state = self._state()
        supplied = {
            "deployer": (state.deployer, deployer),
            "administrator": (state.administrator, administrator),
            "ledger_account": (state.ledger_account, ledger_account),
            "terms": (state.terms, terms),
        }
        for parameter, (stored, value) in supplied.items():
            if value is not None and value != stored:
                raise LedgerParameterMismatch(parameter, stored, value)

    def _state(self) -> GrantLedgerState:
        state = self.registry.get()
        if state is None:
            raise LedgerNotInitialized(self.ledger_id)
        return state

    def _persist(self, events: list[Event]) -> None:
        for event in events:
            expected_version = event.version - 1
            self.event_store.append(event.stream_id, expected_version, [event])

    def _apply(self, events: list[Event]) -> None:
        """Update projections, then notify subscribers"""
        for event in events:
            self.registry.apply_event(event)
            self.claim_log.apply_event(event)
        self._update_gauges()
        self.bus.publish_events(events)

    def _persist_after_transfer(
        self, events: list[Event], source: str, destination: str, amount: int
    ) -> None:
        """
        Persist events of an operation whose transfer already happened

        If the append fails, the transfer is reversed so the token store
        matches the ledger state again, and the storage error propagates.
        A reversal that fails too is logged as a divergence; the storage
        error still propagates.
        """
        try:
            self._persist(events)
        except Exception as e:
            logger.error(
                "Event append failed after transfer, reversing transfer",
                ledger_id=self.ledger_id,
                source=source,
                destination=destination,
                amount=amount,
                error=str(e),
            )
            try:
                self.token_store.transfer(destination, source, amount)
            except Exception as reversal_error:
                logger.critical(
                    "Transfer reversal failed, token store diverges from ledger",
                    ledger_id=self.ledger_id,
                    source=source,
                    destination=destination,
                    amount=amount,
                    error=str(e),
                    reversal_error=str(reversal_error),
                )
            raise

    def _update_gauges(self) -> None:
        state = self.registry.get()
        if state is not None:
            update_ledger_gauges(self.ledger_id, state.locked_balance, state.is_active())

    # Grant operations

    @track_operation("allocate")
    def allocate(self, caller: str, recipient: str | None, amount: int) -> GrantAccount:
        """
        Allocate a one-shot grant to a recipient

        Args:
            caller: Must be the administrator
            recipient: Account receiving the grant
            amount: Tokens locked for the recipient

        Returns:
            The recipient's new account record

        Raises:
            Unauthorized, InvalidRecipient, ZeroAmount, AlreadyClaimed,
            AlreadyAllocated, InsufficientBacking
        """
        with self._lock, LogOperation(
            logger, "allocate", caller=caller, recipient=recipient, amount=amount
        ):
            state = self._state()
            # Authorization precedes argument validation
            validate_administrator(state, caller, "allocate")
            command = AllocateGrant(recipient=recipient, amount=amount)
            events = self.handlers.handle_allocate_grant(
                command, generate_id(), caller, state, self.backing()
            )

            self._persist(events)
            self._apply(events)
            tokens_allocated_total.inc(amount)

            return self._copy_account(recipient)

    @track_operation("claim")
    def claim(self, caller: str, amount: int) -> int:
        """
        Claim ``amount`` of the caller's remaining entitlement

        The transfer from the ledger account is the last step; a failing
        transfer leaves the ledger untouched.

        Args:
            caller: The recipient claiming
            amount: Tokens to withdraw

        Returns:
            The amount transferred

        Raises:
            DistributionPaused, NotYetUnlocked, AlreadyClaimed, ZeroAmount,
            InsufficientEntitlement (NoAllocation), TransferError
        """
        with self._lock, LogOperation(logger, "claim", caller=caller, amount=amount):
            state = self._state()
            command = ClaimGrant(amount=amount)
            events = self.handlers.handle_claim_grant(
                command, generate_id(), caller, state
            )

            self.token_store.transfer(state.ledger_account, caller, amount)
            self._persist_after_transfer(events, state.ledger_account, caller, amount)
            self._apply(events)
            tokens_claimed_total.inc(amount)

            return amount

    def claim_all(self, caller: str) -> int:
        """
        Claim the caller's whole remaining entitlement

        For an account never allocated (entitlement 0) the claim fails with
        ZeroAmount once the pause and time gates have passed.

        Returns:
            The amount transferred
        """
        with self._lock:
            return self.claim(caller, self.entitlement_of(caller))

    @track_operation("pause")
    def pause(self, caller: str) -> None:
        """
        Pause distribution: no claims until resumed

        Raises:
            Unauthorized, AlreadyPaused
        """
        with self._lock, LogOperation(logger, "pause", caller=caller):
            state = self._state()
            events = self.handlers.handle_pause_distribution(
                PauseDistribution(), generate_id(), caller, state
            )
            self._persist(events)
            self._apply(events)

    @track_operation("resume")
    def resume(self, caller: str) -> None:
        """
        Resume a paused distribution

        Raises:
            Unauthorized, AlreadyActive
        """
        with self._lock, LogOperation(logger, "resume", caller=caller):
            state = self._state()
            events = self.handlers.handle_resume_distribution(
                ResumeDistribution(), generate_id(), caller, state
            )
            self._persist(events)
            self._apply(events)

    @track_operation("retrieve")
    def retrieve_remaining(self, caller: str) -> int:
        """
        Send all unallocated backing to the administrator

        Locked entitlements stay in the ledger account.

        Returns:
            The amount retrieved (backing - locked_balance)

        Raises:
            Unauthorized, NotYetUnlocked, NothingToRetrieve, TransferError
        """
        with self._lock, LogOperation(logger, "retrieve", caller=caller):
            state = self._state()
            events = self.handlers.handle_retrieve_remaining_balance(
                RetrieveRemainingBalance(), generate_id(), caller, state, self.backing()
            )
            amount = events[0].payload["amount"]

            self.token_store.transfer(state.ledger_account, state.administrator, amount)
            self._persist_after_transfer(
                events, state.ledger_account, state.administrator, amount
            )
            self._apply(events)
            tokens_retrieved_total.inc(amount)

            return amount

    # Read accessors

    @property
    def administrator(self) -> str:
        return self._state().administrator

    @property
    def ledger_account(self) -> str:
        return self._state().ledger_account

    @property
    def terms(self) -> GrantTerms:
        return self._state().terms

    def entitlement_of(self, account: str) -> int:
        """Remaining claimable amount of an account (0 if never allocated)"""
        with self._lock:
            return self._state().entitlement_of(account)

    def locked_balance(self) -> int:
        """Sum of all outstanding entitlements"""
        with self._lock:
            return self._state().locked_balance

    def is_distribution_active(self) -> bool:
        with self._lock:
            return self._state().is_active()

    def is_fully_claimed(self, account: str) -> bool:
        with self._lock:
            return self._state().is_fully_claimed(account)

    def claim_unlock_time(self) -> datetime:
        return self._state().claim_unlock_at

    def retrieval_unlock_time(self) -> datetime:
        return self._state().retrieval_unlock_at

    def backing(self) -> int:
        """Token balance held by the ledger account"""
        return self.token_store.balance_of(self._state().ledger_account)

    def available_balance(self) -> int:
        """Backing not locked by any entitlement"""
        with self._lock:
            return self.backing() - self._state().locked_balance

    def decimals(self) -> int:
        return self.token_store.decimals()

    def get_account(self, account: str) -> GrantAccount | None:
        """Copy of an account's grant record, or None if never allocated"""
        with self._lock:
            return self._copy_account(account)

    def list_accounts(self) -> list[GrantAccount]:
        """Copies of every grant record, in allocation order"""
        with self._lock:
            return [record.model_copy() for record in self.registry.list_accounts()]

    def _copy_account(self, account: str) -> GrantAccount | None:
        record = self.registry.get_account(account)
        return record.model_copy() if record is not None else None

    def summary(self) -> dict[str, Any]:
        """
        Snapshot of every public field of the ledger

        Returns:
            JSON-friendly dict (datetimes as ISO strings)
        """
        with self._lock:
            state = self._state()
            backing = self.backing()
            return {
                "ledger_id": state.ledger_id,
                "ledger_account": state.ledger_account,
                "administrator": state.administrator,
                "deployer": state.deployer,
                "name": state.terms.name,
                "symbol": state.terms.symbol,
                "decimals": self.decimals(),
                "created_at": state.created_at.isoformat(),
                "claim_unlock_time": state.claim_unlock_at.isoformat(),
                "retrieval_unlock_time": state.retrieval_unlock_at.isoformat(),
                "distribution_active": state.is_active(),
                "locked_balance": state.locked_balance,
                "backing": backing,
                "available_balance": backing - state.locked_balance,
                "total_allocated": state.total_allocated(),
                "total_claimed": state.total_claimed(),
                "accounts": len(state.accounts),
                "version": state.version,
            }

    def get_events(
        self,
        event_type: str | None = None,
        actor_id: str | None = None,
        limit: int | None = None,
    ) -> list[Event]:
        """
        Audit history of this ledger from the event store

        Args:
            event_type: Filter by event type (e.g., "Claimed")
            actor_id: Filter by caller
            limit: Maximum number of events

        Returns:
            Events in ledger order
        """
        return self.event_store.query_events(
            self.ledger_id, event_type=event_type, actor_id=actor_id, limit=limit
        )

    def account_history(self, account: str) -> list[dict]:
        """Allocation and claims of one account, in ledger order"""
        with self._lock:
            return self.claim_log.get_by_account(account)

    # Audit

    def audit(self) -> list[Event]:
        """
        Evaluate the conservation invariants against live state

        Checks locked_balance == sum of entitlements and
        locked_balance <= backing. Detection events are returned, not
        persisted.

        Returns:
            Detection events (empty for a healthy ledger)
        """
        with self._lock:
            state = self._state()
            now = self.time_provider.now()
            detections = evaluate_locked_balance_trigger(state, now)
            detections += evaluate_backing_trigger(state, self.backing(), now)

        for event in detections:
            invariant_violations_total.labels(check=event.event_type).inc()
            logger.warning(
                "Ledger invariant violated",
                ledger_id=self.ledger_id,
                check=event.event_type,
                **event.payload,
            )

        return detections
