"""
Merchant Account - tip collection, premium staking and settlement.

Conceptual Background:
---------------------
Each merchant owns one account. The account logic is a single stateless
definition (MerchantAccount) applied to a per-merchant AccountState held
by the AccountRegistry, instead of one deployed copy per merchant.

Tips:
    payer ──amount──► account ──fee──► platform
                              └──amount - fee──► merchant

    The fee rate comes from the FeeEngine, evaluated on the volume of
    *earlier* tips; a tip's own volume only affects later rates.

Premium staking:
    The merchant locks at least `premium_threshold` tokens with the
    StakingFacility. Until the lock expires the account charges the flat
    premium rate. After expiry `withdraw_stake` collects principal and
    reward and splits the reward:

    platform_cut    = principal * platform_apr * elapsed / (precision * year)
    merchant_reward = max(total_reward - platform_cut, 0)

    The platform never receives more than the facility actually paid.

All operations take the caller identity explicitly and run as one
atomic step of the Runtime.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from tipvault.core.arith import checked_add, checked_mul, checked_sub, mul_div, saturating_sub
from tipvault.core.config import EngineConfig
from tipvault.core.errors import (
    AlreadyInitializedError,
    FeeTooHighError,
    InitializationError,
    InsufficientBalanceError,
    InvalidStakeTypeError,
    LockNotExpiredError,
    NoActiveStakeError,
    NotInitializedError,
    NotMerchantOwnerError,
    StakeAlreadyActiveError,
    StakeBelowMinimumError,
    StakeInactiveError,
    StakeNotFoundError,
    ZeroAddressError,
    ZeroAmountError,
)
from tipvault.core.fees import FeeEngine
from tipvault.core.runtime import Runtime
from tipvault.core.staking.facility import StakingFacility
from tipvault.core.token.ledger import TokenLedger
from tipvault.crypto import ZERO_ADDRESS, bytes_to_hex, hex_to_bytes, short_hex
from tipvault.utils.logger import get_logger

logger = get_logger("account")


# =============================================================================
# State
# =============================================================================


@dataclass
class AccountState:
    """
    Durable state of one merchant account.

    Attributes:
        address: The account's own identity (holds tokens in transit)
        merchant_owner: Identity allowed to withdraw and stake
        platform: Identity receiving fees and yield cuts
        token: Token address
        staking_facility: Staking facility address
        base_fee: Non-premium fee rate (bps of precision)
        total_volume_processed: Tip volume since the last rate evaluation
        active_stake_id: Outstanding stake commitment, if any
        premium_expiry: End of the premium window, if any
        initialized: One-shot initialization guard
    """
    address: bytes
    merchant_owner: bytes = ZERO_ADDRESS
    platform: bytes = ZERO_ADDRESS
    token: bytes = ZERO_ADDRESS
    staking_facility: bytes = ZERO_ADDRESS
    base_fee: int = 0
    total_volume_processed: int = 0
    active_stake_id: Optional[int] = None
    premium_expiry: Optional[int] = None
    initialized: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form (addresses hex-encoded)."""
        record: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            record[f.name] = bytes_to_hex(value) if isinstance(value, bytes) else value
        return record

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "AccountState":
        values = dict(record)
        for name in ("address", "merchant_owner", "platform", "token", "staking_facility"):
            values[name] = hex_to_bytes(values[name])
        return cls(**values)


@dataclass(frozen=True)
class TipReceipt:
    """Breakdown of one tip."""
    payer: bytes
    amount: int
    rate: int
    fee: int
    merchant_amount: int


@dataclass(frozen=True)
class StakeSettlement:
    """Breakdown of one stake withdrawal."""
    stake_id: int
    principal: int
    total_received: int
    total_reward: int
    elapsed: int
    platform_cut: int
    merchant_reward: int

    @property
    def merchant_total(self) -> int:
        return self.principal + self.merchant_reward


# =============================================================================
# Merchant Account
# =============================================================================


class MerchantAccount:
    """
    Account logic bound to one AccountState.

    Collaborators (token, staking facility) are shared by all accounts.
    """

    def __init__(
        self,
        state: AccountState,
        runtime: Runtime,
        token: TokenLedger,
        facility: StakingFacility,
        config: Optional[EngineConfig] = None,
        fee_engine: Optional[FeeEngine] = None,
    ):
        self.state = state
        self.runtime = runtime
        self.token = token
        self.facility = facility
        self.config = config or EngineConfig()
        self.fee_engine = fee_engine or FeeEngine(self.config)

    @property
    def address(self) -> bytes:
        return self.state.address

    # =========================================================================
    # Initialization
    # =========================================================================

    def initialize(
        self,
        merchant: bytes,
        platform: bytes,
        staking_facility: bytes,
        token: bytes,
        initial_base_fee: int,
    ) -> None:
        """
        One-shot setup of the immutable fields and the starting fee.

        Args:
            merchant: Merchant owner identity
            platform: Platform identity
            staking_facility: Facility address (must match the bound facility)
            token: Token address (must match the bound token)
            initial_base_fee: Starting base fee, at most precision
        """
        with self.runtime.atomic("account.initialize"):
            if self.state.initialized:
                raise AlreadyInitializedError(f"Account {short_hex(self.address)} already initialized")
            for name, value in (
                ("merchant", merchant),
                ("platform", platform),
                ("staking_facility", staking_facility),
                ("token", token),
            ):
                if value == ZERO_ADDRESS:
                    raise ZeroAddressError(name)
            if initial_base_fee > self.config.precision:
                raise FeeTooHighError(initial_base_fee, self.config.precision)
            if token != self.token.address:
                raise InitializationError("token does not match the bound token ledger")
            if staking_facility != self.facility.address:
                raise InitializationError("staking_facility does not match the bound facility")

            self._preserve_state(
                "merchant_owner", "platform", "staking_facility", "token", "base_fee", "initialized"
            )
            self.state.merchant_owner = merchant
            self.state.platform = platform
            self.state.staking_facility = staking_facility
            self.state.token = token
            self.state.base_fee = initial_base_fee
            self.state.initialized = True

            logger.info(
                f"Account {short_hex(self.address)} initialized for merchant "
                f"{short_hex(merchant)} with base fee {initial_base_fee}"
            )

    def _require_initialized(self) -> None:
        if not self.state.initialized:
            raise NotInitializedError(f"Account {short_hex(self.address)} is not initialized")

    def _require_owner(self, caller: bytes) -> None:
        self._require_initialized()
        if caller != self.state.merchant_owner:
            raise NotMerchantOwnerError(f"{short_hex(caller)} is not the merchant owner")

    def _preserve_state(self, *names: str) -> None:
        self.runtime.preserve(self.state, *names)

    def _compute_fee_rate(self) -> int:
        self._preserve_state("base_fee", "total_volume_processed")
        return self.fee_engine.compute_fee_rate(self.state, self.runtime.now)

    # =========================================================================
    # Views
    # =========================================================================

    def get_fee_rate(self) -> int:
        """
        Current fee rate.

        Advances the decay state exactly like a tip does.
        """
        with self.runtime.atomic("account.get_fee_rate"):
            self._require_initialized()
            return self._compute_fee_rate()

    def has_premium(self) -> bool:
        return self.fee_engine.has_premium(self.state, self.runtime.now)

    def balance(self) -> int:
        return self.token.balance_of(self.address)

    # =========================================================================
    # Tips
    # =========================================================================

    def tip(self, caller: bytes, amount: int) -> TipReceipt:
        """
        Pay `amount` to the merchant, net of the platform fee.

        The caller must have approved the account for `amount`.
        """
        with self.runtime.atomic("account.tip"):
            self._require_initialized()
            if amount == 0:
                raise ZeroAmountError("Tip amount must be greater than zero")

            self.token.transfer_from(self.address, caller, self.address, amount)

            # Rate reflects only volume from earlier tips
            rate = self._compute_fee_rate()
            fee = self.fee_engine.fee_for(amount, rate)
            merchant_amount = checked_sub(amount, fee)

            if fee:
                self.token.transfer(self.address, self.state.platform, fee)
            self.token.transfer(self.address, self.state.merchant_owner, merchant_amount)

            self.state.total_volume_processed = checked_add(self.state.total_volume_processed, amount)
            self.fee_engine.check_pending_decay(self.state)

            self.runtime.emit("TipReceived", self.address, payer=caller, amount=amount, fee=fee)
            logger.info(f"Tip {amount} from {short_hex(caller)}: rate={rate} fee={fee}")
            return TipReceipt(
                payer=caller,
                amount=amount,
                rate=rate,
                fee=fee,
                merchant_amount=merchant_amount,
            )

    # =========================================================================
    # Premium staking
    # =========================================================================

    def stake_for_premium(self, caller: bytes, amount: int, stake_type: int) -> int:
        """
        Lock capital with the facility to open a premium window.

        The merchant must have approved the account for `amount`.

        Args:
            caller: Must be the merchant owner
            amount: At least premium_threshold
            stake_type: Configured stake type index

        Returns:
            Facility stake id
        """
        with self.runtime.atomic("account.stake_for_premium"):
            self._require_owner(caller)
            if amount < self.config.premium_threshold:
                raise StakeBelowMinimumError(amount, self.config.premium_threshold)
            if not 0 <= stake_type < self.facility.stake_type_count:
                raise InvalidStakeTypeError(stake_type, "out of range")
            stake_config = self.facility.query_stake_type_config(stake_type)
            if not stake_config.is_configured:
                raise InvalidStakeTypeError(stake_type)
            if self.state.active_stake_id is not None:
                raise StakeAlreadyActiveError(
                    f"Stake {self.state.active_stake_id} must be withdrawn first"
                )

            self.token.transfer_from(self.address, caller, self.address, amount)
            self.token.approve(self.address, self.facility.address, amount)
            stake_id = self.facility.commit_stake(self.address, amount, stake_type)

            expiry = checked_add(self.runtime.now, stake_config.duration)
            self._preserve_state("active_stake_id", "premium_expiry")
            self.state.active_stake_id = stake_id
            self.state.premium_expiry = expiry

            self.runtime.emit(
                "PremiumStaked",
                self.address,
                stake_id=stake_id,
                amount=amount,
                stake_type=stake_type,
                premium_expiry=expiry,
            )
            logger.info(f"Premium stake {stake_id}: {amount} (type {stake_type}) until {expiry}")
            return stake_id

    def begin_unbonding(self, caller: bytes) -> int:
        """
        Exit the active stake early.

        Premium ends immediately and the reward is forfeited. The
        principal is collected by withdraw_stake once unbonding is over.

        Returns:
            Time at which withdraw_stake can succeed
        """
        with self.runtime.atomic("account.begin_unbonding"):
            self._require_owner(caller)
            stake_id = self.state.active_stake_id
            if stake_id is None:
                raise NoActiveStakeError("No active stake to unbond")

            unbonding_ends_at = self.facility.unbond(self.address, stake_id)
            self._preserve_state("premium_expiry")
            self.state.premium_expiry = self.runtime.now

            self.runtime.emit(
                "StakeUnbonding",
                self.address,
                stake_id=stake_id,
                unbonding_ends_at=unbonding_ends_at,
            )
            return unbonding_ends_at

    def withdraw_stake(self, caller: bytes) -> StakeSettlement:
        """
        Collect an expired stake and split its reward.

        Returns:
            Settlement breakdown
        """
        with self.runtime.atomic("account.withdraw_stake"):
            self._require_owner(caller)
            stake_id = self.state.active_stake_id
            if stake_id is None:
                raise NoActiveStakeError("No active stake to withdraw")
            if self.runtime.now < self.state.premium_expiry:
                raise LockNotExpiredError(f"Stake {stake_id} locked until {self.state.premium_expiry}")

            stake = self.facility.query_stakes([stake_id])[0]
            if stake is None:
                raise StakeNotFoundError(stake_id)
            if not stake.active:
                raise StakeInactiveError(stake_id)

            balance_before = self.balance()
            if not stake.unbonding:
                self.facility.claim_reward(self.address, stake_id)
            self.facility.claim_principal(self.address, stake_id)
            total_received = checked_sub(self.balance(), balance_before)

            elapsed = checked_sub(stake.lock_end, stake.created_at)
            settlement = self._settle(stake_id, stake.amount, total_received, elapsed)

            self._preserve_state("active_stake_id", "premium_expiry")
            self.state.active_stake_id = None
            self.state.premium_expiry = None

            self.token.transfer(self.address, self.state.merchant_owner, settlement.merchant_total)
            if settlement.platform_cut:
                self.token.transfer(self.address, self.state.platform, settlement.platform_cut)

            self.runtime.emit(
                "StakeWithdrawn",
                self.address,
                stake_id=stake_id,
                principal=settlement.principal,
                merchant_reward=settlement.merchant_reward,
                platform_cut=settlement.platform_cut,
            )
            logger.info(
                f"Stake {stake_id} settled: principal={settlement.principal} "
                f"merchant_reward={settlement.merchant_reward} platform_cut={settlement.platform_cut}"
            )
            return settlement

    def _settle(self, stake_id: int, principal: int, total_received: int, elapsed: int) -> StakeSettlement:
        platform_cut = mul_div(
            checked_mul(principal, self.config.platform_apr),
            elapsed,
            self.config.precision * self.config.seconds_per_year,
        )
        total_reward = checked_sub(total_received, principal)
        platform_cut = min(platform_cut, total_reward)
        return StakeSettlement(
            stake_id=stake_id,
            principal=principal,
            total_received=total_received,
            total_reward=total_reward,
            elapsed=elapsed,
            platform_cut=platform_cut,
            merchant_reward=saturating_sub(total_reward, platform_cut),
        )

    # =========================================================================
    # Withdrawals
    # =========================================================================

    def withdraw(self, caller: bytes, amount: int) -> None:
        """Send `amount` of the account's balance to the merchant."""
        with self.runtime.atomic("account.withdraw"):
            self._require_owner(caller)
            if amount == 0:
                raise ZeroAmountError("Withdrawal amount must be greater than zero")
            available = self.balance()
            if amount > available:
                raise InsufficientBalanceError(available, amount)

            self.token.transfer(self.address, self.state.merchant_owner, amount)
            self.runtime.emit("Withdrawal", self.address, merchant=caller, amount=amount)
            logger.info(f"Withdrawal of {amount} by {short_hex(caller)}")

    def __repr__(self) -> str:
        return (
            f"MerchantAccount({short_hex(self.address)}, base_fee={self.state.base_fee}, "
            f"stake={self.state.active_stake_id})"
        )
