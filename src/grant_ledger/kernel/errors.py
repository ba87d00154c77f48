"""
Custom exceptions for the Grant Ledger

Every rejected precondition maps to exactly one exception class, and every
class carries a stable ``code`` so callers (CLI, HTTP adapters, indexers)
can branch on the error kind without parsing messages.

All checks of an operation run before its first mutation, so a rejected
operation has nothing to unwind.
"""

from datetime import datetime


class GrantLedgerError(Exception):
    """Base exception for all Grant Ledger errors"""

    code = "GRANT_LEDGER_ERROR"


# Authorization


class Unauthorized(GrantLedgerError):
    """Raised when the caller lacks the role an operation requires"""

    code = "UNAUTHORIZED"

    def __init__(self, caller: str, operation: str) -> None:
        self.caller = caller
        self.operation = operation
        super().__init__(f"{caller} is not authorized to {operation}")


class Unsupported(GrantLedgerError):
    """Raised by disabled token-facade operations (approve, transfer_from)"""

    code = "UNSUPPORTED"

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} is not supported by grant tokens")


# Allocation


class InvalidRecipient(GrantLedgerError):
    """Raised when an allocation targets a null or reserved account"""

    code = "INVALID_RECIPIENT"

    def __init__(self, recipient: str | None, reason: str) -> None:
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"Invalid recipient {recipient!r}: {reason}")


class ZeroAmount(GrantLedgerError):
    """Raised when an allocation or claim amount is zero"""

    code = "ZERO_AMOUNT"

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Amount must be greater than zero to {operation}")


class AlreadyAllocated(GrantLedgerError):
    """Raised when the recipient already holds an outstanding grant"""

    code = "ALREADY_ALLOCATED"

    def __init__(self, account: str, entitlement: int) -> None:
        self.account = account
        self.entitlement = entitlement
        super().__init__(
            f"Account {account} was already allocated ({entitlement} outstanding)"
        )


class AlreadyClaimed(GrantLedgerError):
    """
    Raised when an account has fully claimed its grant

    Applies both to claiming again and to re-allocating: a fully claimed
    account is closed for the lifetime of the ledger.
    """

    code = "ALREADY_CLAIMED"

    def __init__(self, account: str) -> None:
        self.account = account
        super().__init__(
            f"Account {account} already claimed its grant, "
            "no second-time allocation allowed"
        )


class InsufficientBacking(GrantLedgerError):
    """Raised when unlocked backing cannot cover a new allocation"""

    code = "INSUFFICIENT_BACKING"

    def __init__(self, amount: int, backing: int, locked: int) -> None:
        self.amount = amount
        self.backing = backing
        self.locked = locked
        super().__init__(
            f"Ledger has insufficient backing, cannot allocate {amount} "
            f"(backing: {backing}, locked: {locked}, available: {backing - locked})"
        )


# Claiming


class InsufficientEntitlement(GrantLedgerError):
    """Raised when a claim exceeds the caller's remaining entitlement"""

    code = "INSUFFICIENT_ENTITLEMENT"

    def __init__(self, account: str, requested: int, entitlement: int) -> None:
        self.account = account
        self.requested = requested
        self.entitlement = entitlement
        super().__init__(
            f"Account {account} requested {requested} but only {entitlement} "
            "remains claimable"
        )


class NoAllocation(InsufficientEntitlement):
    """Raised when the caller was never allocated a grant"""

    code = "NO_ALLOCATION"

    def __init__(self, account: str, requested: int) -> None:
        super().__init__(account, requested, 0)
        self.args = (f"Account {account} has no grant allocation",)


class DistributionPaused(GrantLedgerError):
    """Raised when claiming while the administrator has paused distribution"""

    code = "DISTRIBUTION_PAUSED"

    def __init__(self) -> None:
        super().__init__("Distribution is paused")


class NotYetUnlocked(GrantLedgerError):
    """Raised when a time gate (claim or retrieval) has not opened yet"""

    code = "NOT_YET_UNLOCKED"

    def __init__(self, gate: str, unlock_time: datetime, now: datetime) -> None:
        self.gate = gate
        self.unlock_time = unlock_time
        self.now = now
        super().__init__(
            f"Unlock time not reached for {gate}: opens at "
            f"{unlock_time.isoformat()}, now {now.isoformat()}"
        )


# Distribution control


class AlreadyPaused(GrantLedgerError):
    """Raised when pausing an already paused distribution"""

    code = "ALREADY_PAUSED"

    def __init__(self) -> None:
        super().__init__("Cannot pause inactive distribution")


class AlreadyActive(GrantLedgerError):
    """Raised when resuming an already active distribution"""

    code = "ALREADY_ACTIVE"

    def __init__(self) -> None:
        super().__init__("Cannot resume active distribution")


# Retrieval


class NothingToRetrieve(GrantLedgerError):
    """Raised when no unallocated backing is left to retrieve"""

    code = "NOTHING_TO_RETRIEVE"

    def __init__(self, backing: int, locked: int) -> None:
        self.backing = backing
        self.locked = locked
        super().__init__(
            f"Nothing to retrieve (backing: {backing}, locked: {locked})"
        )


# Underlying token store


class TransferError(GrantLedgerError):
    """Base class for failures reported by the underlying token store"""

    code = "TRANSFER_ERROR"


class InsufficientFunds(TransferError):
    """Raised when the source account cannot cover a transfer"""

    code = "INSUFFICIENT_FUNDS"

    def __init__(self, account: str, balance: int, amount: int) -> None:
        self.account = account
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Account {account} balance {balance} is insufficient for {amount}"
        )


class UnknownAccount(TransferError):
    """Raised when a transfer references an account the store rejects"""

    code = "UNKNOWN_ACCOUNT"

    def __init__(self, account: str) -> None:
        self.account = account
        super().__init__(f"Account {account!r} does not exist")


# Construction & lifecycle


class InvalidGrantTerms(GrantLedgerError):
    """Raised when lock/retrieval periods are inconsistent"""

    code = "INVALID_GRANT_TERMS"

    def __init__(self, lock_period_seconds: int, retrieval_period_seconds: int) -> None:
        self.lock_period_seconds = lock_period_seconds
        self.retrieval_period_seconds = retrieval_period_seconds
        super().__init__(
            f"Retrieval period {retrieval_period_seconds}s must not be shorter "
            f"than lock period {lock_period_seconds}s - otherwise unallocated "
            "funds become retrievable before grants become claimable"
        )


class LedgerNotInitialized(GrantLedgerError):
    """Raised when opening an empty database without construction parameters"""

    code = "LEDGER_NOT_INITIALIZED"

    def __init__(self, ledger_id: str) -> None:
        self.ledger_id = ledger_id
        super().__init__(
            f"Grant ledger {ledger_id} has not been created - "
            "an administrator or deployer is required"
        )


class LedgerParameterMismatch(GrantLedgerError):
    """Raised when reopening a ledger with different immutable parameters"""

    code = "LEDGER_PARAMETER_MISMATCH"

    def __init__(self, parameter: str, stored: object, supplied: object) -> None:
        self.parameter = parameter
        self.stored = stored
        self.supplied = supplied
        super().__init__(
            f"Ledger parameter {parameter} is immutable: stored {stored!r}, "
            f"supplied {supplied!r}"
        )


# Event store


class EventStoreError(GrantLedgerError):
    """Base class for event store errors"""

    code = "EVENT_STORE_ERROR"


class CommandIdempotencyViolation(EventStoreError):
    """Raised when a command_id was already recorded in another stream position"""

    code = "COMMAND_IDEMPOTENCY_VIOLATION"

    def __init__(self, command_id: str) -> None:
        self.command_id = command_id
        super().__init__(f"Command {command_id} already processed")


class StreamVersionConflict(EventStoreError):
    """
    Raised when stream version doesn't match expected (optimistic locking)

    Indicates a second writer appended to the ledger stream; reload and retry.
    """

    code = "STREAM_VERSION_CONFLICT"

    def __init__(
        self, stream_id: str, expected_version: int, actual_version: int
    ) -> None:
        self.stream_id = stream_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stream {stream_id} version mismatch: "
            f"expected {expected_version}, got {actual_version}"
        )
