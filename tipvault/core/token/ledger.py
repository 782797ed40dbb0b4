"""
TokenLedger - fungible token with transfer/approve semantics.

Account-model ledger of a single token (ERC-20 style, no hooks):

- Balances: address -> amount
- Allowances: (owner, spender) -> amount
- Total supply, increased only by the minter

Every state-changing call takes the caller identity explicitly and runs
inside Runtime.atomic(), so a failed transfer leaves both balances as
they were.
"""

from typing import Dict, Tuple

from tipvault.core.arith import checked_add, checked_sub
from tipvault.core.errors import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    NotAuthorizedError,
    ZeroAddressError,
)
from tipvault.core.runtime import Runtime
from tipvault.crypto import ZERO_ADDRESS, short_hex
from tipvault.utils.logger import get_logger

logger = get_logger("token")


class TokenLedger:
    """
    Fungible token ledger.

    Attributes:
        address: Token contract identity
        minter: Identity allowed to mint
        balances: Mapping of address to balance
        allowances: Mapping of (owner, spender) to allowance
        total_supply: Sum of all balances
    """

    def __init__(
        self,
        runtime: Runtime,
        address: bytes,
        minter: bytes,
        symbol: str = "TIP",
        decimals: int = 18,
    ):
        if address == ZERO_ADDRESS:
            raise ZeroAddressError("token")
        if minter == ZERO_ADDRESS:
            raise ZeroAddressError("minter")

        self.runtime = runtime
        self.address = address
        self.minter = minter
        self.symbol = symbol
        self.decimals = decimals

        self.balances: Dict[bytes, int] = {}
        self.allowances: Dict[Tuple[bytes, bytes], int] = {}
        self.total_supply: int = 0

    # =========================================================================
    # Views
    # =========================================================================

    def balance_of(self, address: bytes) -> int:
        return self.balances.get(address, 0)

    def allowance(self, owner: bytes, spender: bytes) -> int:
        return self.allowances.get((owner, spender), 0)

    # =========================================================================
    # Mutations
    # =========================================================================

    def mint(self, caller: bytes, to: bytes, amount: int) -> None:
        """Create `amount` new tokens for `to`. Minter only."""
        with self.runtime.atomic("token.mint"):
            if caller != self.minter:
                raise NotAuthorizedError("Only the minter can mint")
            if to == ZERO_ADDRESS:
                raise ZeroAddressError("to")
            self.runtime.preserve(self, "total_supply")
            self.total_supply = checked_add(self.total_supply, amount)
            self._set_balance(to, self.balance_of(to) + amount)
            logger.debug(f"Minted {amount} {self.symbol} to {short_hex(to)}")

    def transfer(self, caller: bytes, to: bytes, amount: int) -> None:
        """Move `amount` from caller to `to`."""
        with self.runtime.atomic("token.transfer"):
            self._move(caller, to, amount)

    def approve(self, caller: bytes, spender: bytes, amount: int) -> None:
        """Set the allowance of `spender` over caller's tokens."""
        with self.runtime.atomic("token.approve"):
            if spender == ZERO_ADDRESS:
                raise ZeroAddressError("spender")
            self._set_allowance(caller, spender, amount)

    def transfer_from(self, caller: bytes, owner: bytes, to: bytes, amount: int) -> None:
        """Move `amount` from `owner` to `to`, spending caller's allowance."""
        with self.runtime.atomic("token.transfer_from"):
            allowed = self.allowance(owner, caller)
            if allowed < amount:
                raise InsufficientAllowanceError(allowed, amount)
            self._set_allowance(owner, caller, allowed - amount)
            self._move(owner, to, amount)

    def _move(self, sender: bytes, to: bytes, amount: int) -> None:
        if to == ZERO_ADDRESS:
            raise ZeroAddressError("to")
        available = self.balance_of(sender)
        if available < amount:
            raise InsufficientBalanceError(available, amount)
        self._set_balance(sender, checked_sub(available, amount))
        self._set_balance(to, checked_add(self.balance_of(to), amount))
        logger.debug(f"{short_hex(sender)} -> {short_hex(to)}: {amount} {self.symbol}")

    # Journaled writes: only the touched entries are restored on rollback

    def _set_balance(self, address: bytes, amount: int) -> None:
        self.runtime.preserve_item(self.balances, address)
        self.balances[address] = amount

    def _set_allowance(self, owner: bytes, spender: bytes, amount: int) -> None:
        self.runtime.preserve_item(self.allowances, (owner, spender))
        self.allowances[(owner, spender)] = amount

    def stats(self) -> dict:
        """Get token statistics."""
        return {
            "symbol": self.symbol,
            "total_supply": self.total_supply,
            "holders": sum(1 for b in self.balances.values() if b > 0),
        }

    def __repr__(self) -> str:
        return f"TokenLedger({self.symbol}, supply={self.total_supply})"
