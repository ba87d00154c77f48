"""
Token-compatible view of a grant ledger

Wallets and explorers that only understand fungible tokens can read a grant
ledger through this facade: balances are remaining entitlements and the
total supply is the locked balance. It is read-only apart from ``transfer``,
which is kept as a claim shim for clients that "send" grant tokens to
withdraw them.
"""

from grant_ledger.kernel.errors import Unsupported
from grant_ledger.ledger import GrantLedger


class LegacyTokenFacade:
    """
    Fungible-token interface over a GrantLedger

    Attributes:
        ledger: The wrapped ledger
    """

    def __init__(self, ledger: GrantLedger) -> None:
        self.ledger = ledger

    @property
    def name(self) -> str:
        return self.ledger.terms.name

    @property
    def symbol(self) -> str:
        return self.ledger.terms.symbol

    def decimals(self) -> int:
        """Forwarded from the underlying token"""
        return self.ledger.decimals()

    def total_supply(self) -> int:
        """Sum of outstanding entitlements"""
        return self.ledger.locked_balance()

    def balance_of(self, account: str) -> int:
        """Remaining entitlement of an account"""
        return self.ledger.entitlement_of(account)

    def allowance(self, owner: str, spender: str) -> int:
        return 0

    def approve(self, caller: str, spender: str, amount: int) -> bool:
        raise Unsupported("approve")

    def transfer_from(self, caller: str, source: str, destination: str, amount: int) -> bool:
        raise Unsupported("transfer_from")

    def transfer(self, caller: str, to: str, amount: int) -> bool:
        """
        Claim shim: withdraws ``amount`` of the caller's entitlement

        ``to`` is ignored - claimed tokens always go to the caller's own
        account in the underlying token. Every claim gate applies.

        Returns:
            True once the claim succeeded
        """
        self.ledger.claim(caller, amount)
        return True
