"""
Account Registry - one merchant account per merchant.

This module provides:
- Account creation with deterministic addresses
- One-account-per-merchant enforcement
- Platform-controlled default base fee for new accounts

Every account shares one MerchantAccount logic definition; the registry
owns the table of per-merchant AccountState records it operates on.
"""

from typing import Dict, List, Optional

from tipvault.core.account.merchant_account import AccountState, MerchantAccount
from tipvault.core.config import EngineConfig
from tipvault.core.errors import (
    AccountExistsError,
    AccountNotFoundError,
    FeeTooHighError,
    NotPlatformError,
    ZeroAddressError,
)
from tipvault.core.fees import FeeEngine
from tipvault.core.runtime import Runtime
from tipvault.core.staking.facility import StakingFacility
from tipvault.core.token.ledger import TokenLedger
from tipvault.crypto import ZERO_ADDRESS, derive_account_address, short_hex
from tipvault.utils.logger import get_logger

logger = get_logger("registry")


class AccountRegistry:
    """
    Registry of merchant accounts.

    Attributes:
        address: Registry identity (seed of account addresses)
        platform: Platform identity written into every account
        default_base_fee: Base fee given to newly created accounts
        accounts: Merchant -> MerchantAccount
    """

    def __init__(
        self,
        runtime: Runtime,
        token: TokenLedger,
        facility: StakingFacility,
        address: bytes,
        platform: bytes,
        config: Optional[EngineConfig] = None,
    ):
        """
        Initialize the registry.

        Args:
            runtime: Execution environment
            token: Token collected by accounts
            facility: Staking facility used for premium stakes
            address: Registry identity
            platform: Platform identity
            config: Engine configuration
        """
        if platform == ZERO_ADDRESS:
            raise ZeroAddressError("platform")

        self.runtime = runtime
        self.token = token
        self.facility = facility
        self.address = address
        self.platform = platform
        self.config = config or EngineConfig()
        self.fee_engine = FeeEngine(self.config)

        self.default_base_fee: int = self.config.default_base_fee
        self.accounts: Dict[bytes, MerchantAccount] = {}

        logger.info(f"AccountRegistry initialized with default base fee {self.default_base_fee}")

    # =========================================================================
    # Account creation
    # =========================================================================

    def account_address_of(self, merchant: bytes) -> bytes:
        """Address the merchant's account has (or will have)."""
        return derive_account_address(self.address, merchant)

    def create_account(self, merchant: bytes) -> MerchantAccount:
        """
        Create and initialize the account of `merchant`.

        Raises:
            ZeroAddressError: merchant is the zero address
            AccountExistsError: merchant already has an account
        """
        with self.runtime.atomic("registry.create_account"):
            if merchant == ZERO_ADDRESS:
                raise ZeroAddressError("merchant")
            if merchant in self.accounts:
                raise AccountExistsError(f"Merchant {short_hex(merchant)} already has an account")

            account = self._attach(AccountState(address=self.account_address_of(merchant)), merchant)
            account.initialize(
                merchant=merchant,
                platform=self.platform,
                staking_facility=self.facility.address,
                token=self.token.address,
                initial_base_fee=self.default_base_fee,
            )

            self.runtime.emit("AccountCreated", self.address, merchant=merchant, account=account.address)
            logger.info(f"Account {short_hex(account.address)} created for {short_hex(merchant)}")
            return account

    def _attach(self, state: AccountState, merchant: bytes) -> MerchantAccount:
        account = MerchantAccount(
            state,
            self.runtime,
            self.token,
            self.facility,
            config=self.config,
            fee_engine=self.fee_engine,
        )
        self.runtime.preserve_item(self.accounts, merchant)
        self.accounts[merchant] = account
        return account

    def adopt(self, state: AccountState) -> MerchantAccount:
        """Re-attach a persisted, initialized account state."""
        if not state.initialized:
            raise ValueError(f"Cannot adopt uninitialized account {short_hex(state.address)}")
        if state.address != self.account_address_of(state.merchant_owner):
            raise ValueError(f"Account {short_hex(state.address)} was not created by this registry")
        return self._attach(state, state.merchant_owner)

    # =========================================================================
    # Administration
    # =========================================================================

    def set_default_base_fee(self, caller: bytes, fee: int) -> None:
        """Change the base fee of future accounts. Platform only."""
        with self.runtime.atomic("registry.set_default_base_fee"):
            if caller != self.platform:
                raise NotPlatformError(f"{short_hex(caller)} is not the platform")
            if fee > self.config.precision:
                raise FeeTooHighError(fee, self.config.precision)
            self.runtime.preserve(self, "default_base_fee")
            self.default_base_fee = fee
            logger.info(f"Default base fee set to {fee}")

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_account(self, merchant: bytes) -> MerchantAccount:
        """Account of `merchant`."""
        account = self.accounts.get(merchant)
        if account is None:
            raise AccountNotFoundError(f"No account for merchant {short_hex(merchant)}")
        return account

    def has_account(self, merchant: bytes) -> bool:
        return merchant in self.accounts

    def list_accounts(self) -> List[MerchantAccount]:
        return list(self.accounts.values())

    # =========================================================================
    # Statistics
    # =========================================================================

    def stats(self) -> dict:
        """Get registry statistics."""
        now = self.runtime.now
        states = [a.state for a in self.accounts.values()]
        return {
            "total_accounts": len(states),
            "premium_accounts": sum(1 for s in states if self.fee_engine.has_premium(s, now)),
            "active_stakes": sum(1 for s in states if s.active_stake_id is not None),
            "default_base_fee": self.default_base_fee,
            "lowest_base_fee": min((s.base_fee for s in states), default=None),
        }
