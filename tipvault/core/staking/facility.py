"""
Staking Facility - custody of staked principal and yield.

This module provides:
- Stake-type configuration (reward rate, reward multiplier, lock duration)
- Stake commitments with a reward fixed at commit time
- Reward and principal claims once the lock has expired
- Early exit through unbonding (reward forfeited, principal delayed)

Stake lifecycle:
---------------
    commit ──► locked ──(now >= unlock_at)──► claim_reward ──► claim_principal ──► inactive
                 │
                 └──unbond──► unbonding ──(now >= unbonding_ends_at)──► claim_principal ──► inactive

Rewards are paid from a reserve funded by the facility owner. The reward
of a commitment is reserved when it is made, so a committed stake can
always be paid out.
"""

import copy
from dataclasses import asdict, dataclass, fields
from typing import Dict, List, Optional, Sequence

from tipvault.core.arith import checked_add, checked_mul, checked_sub
from tipvault.core.config import EngineConfig, SECONDS_PER_DAY
from tipvault.core.errors import (
    AlreadyUnbondingError,
    InsufficientRewardReserveError,
    InvalidStakeTypeError,
    NotAuthorizedError,
    NotStakerError,
    RewardAlreadyClaimedError,
    StakeAlreadyUnlockedError,
    StakeInactiveError,
    StakeLockedError,
    StakeNotFoundError,
    UnbondingNotOverError,
    ZeroAmountError,
)
from tipvault.core.runtime import Runtime
from tipvault.core.token.ledger import TokenLedger
from tipvault.crypto import bytes_to_hex, hex_to_bytes, short_hex
from tipvault.utils.logger import get_logger

logger = get_logger("staking")


# =============================================================================
# Constants
# =============================================================================

# Number of stake-type slots; configs outside [0, MAX_STAKE_TYPES) are invalid
MAX_STAKE_TYPES = 4

# Multiplier of 1x in basis points
UNIT_MODIFIER = 10_000


# =============================================================================
# Data Structures
# =============================================================================


@dataclass(frozen=True)
class StakeTypeConfig:
    """
    Reward and lock parameters of one stake type.

    Attributes:
        reward_modifier: Annual reward rate in basis points
        duration_modifier: Reward multiplier in basis points (10000 = 1x)
        duration: Lock duration in seconds (0 = not configured)
    """
    reward_modifier: int = 0
    duration_modifier: int = 0
    duration: int = 0

    @property
    def is_configured(self) -> bool:
        return self.duration > 0


DEFAULT_STAKE_TYPES: Dict[int, StakeTypeConfig] = {
    0: StakeTypeConfig(reward_modifier=500, duration_modifier=UNIT_MODIFIER, duration=30 * SECONDS_PER_DAY),
    1: StakeTypeConfig(reward_modifier=700, duration_modifier=UNIT_MODIFIER, duration=90 * SECONDS_PER_DAY),
    2: StakeTypeConfig(reward_modifier=1000, duration_modifier=UNIT_MODIFIER, duration=180 * SECONDS_PER_DAY),
    3: StakeTypeConfig(reward_modifier=1500, duration_modifier=UNIT_MODIFIER, duration=365 * SECONDS_PER_DAY),
}


@dataclass
class StakeCommitment:
    """
    A lock of capital with the facility.

    Attributes:
        stake_id: Unique id, strictly increasing from 1
        amount: Principal locked
        stake_type: Index into the stake-type table
        staker: Identity that committed (and may claim)
        active: False once principal has been claimed
        unbonding: True after an early exit request
        created_at: Commit time
        unlock_at: End of the lock
        unbonding_started_at: Time of the unbond request (0 if none)
        unbonding_ends_at: Earliest principal claim after unbonding (0 if none)
        reward: Reward fixed at commit time
        claimed_amount: Reward paid out
        claimed_at: Time the reward was claimed (None if unclaimed)
    """
    stake_id: int
    amount: int
    stake_type: int
    staker: bytes
    created_at: int
    unlock_at: int
    reward: int
    active: bool = True
    unbonding: bool = False
    unbonding_started_at: int = 0
    unbonding_ends_at: int = 0
    claimed_amount: int = 0
    claimed_at: Optional[int] = None

    @property
    def reward_claimed(self) -> bool:
        return self.claimed_at is not None

    @property
    def lock_end(self) -> int:
        """When the capital stopped earning: unlock, or the unbond request."""
        return self.unbonding_started_at if self.unbonding else self.unlock_at

    def is_unlocked(self, now: int) -> bool:
        return now >= self.unlock_at

    def to_dict(self) -> dict:
        record = asdict(self)
        record["staker"] = bytes_to_hex(self.staker)
        return record

    @classmethod
    def from_dict(cls, record: dict) -> "StakeCommitment":
        values = dict(record)
        values["staker"] = hex_to_bytes(values["staker"])
        return cls(**values)


STAKE_FIELDS = tuple(f.name for f in fields(StakeCommitment))


# =============================================================================
# Staking Facility
# =============================================================================


class StakingFacility:
    """
    Holds staked principal, computes rewards and pays claims.
    """

    def __init__(
        self,
        runtime: Runtime,
        token: TokenLedger,
        address: bytes,
        owner: bytes,
        config: Optional[EngineConfig] = None,
        stake_types: Optional[Dict[int, StakeTypeConfig]] = None,
    ):
        """
        Initialize the facility.

        Args:
            runtime: Execution environment
            token: Token being staked
            address: Facility identity
            owner: Identity allowed to configure stake types and fund rewards
            config: Engine configuration (precision, year length, unbonding)
            stake_types: Initial stake-type table (defaults to DEFAULT_STAKE_TYPES)
        """
        self.runtime = runtime
        self.token = token
        self.address = address
        self.owner = owner
        self.config = config or EngineConfig()

        self.stake_types: Dict[int, StakeTypeConfig] = dict(
            DEFAULT_STAKE_TYPES if stake_types is None else stake_types
        )
        self.stakes: Dict[int, StakeCommitment] = {}
        self.next_stake_id: int = 1

        # Unreserved tokens available for future rewards
        self.reward_reserve: int = 0
        self.total_staked: int = 0

        logger.info(f"StakingFacility initialized with {len(self.stake_types)} stake types")

    @property
    def stake_type_count(self) -> int:
        return MAX_STAKE_TYPES

    # =========================================================================
    # Administration
    # =========================================================================

    def set_stake_type_config(self, caller: bytes, stake_type: int, stake_config: StakeTypeConfig) -> None:
        """Configure (or clear, with duration 0) a stake type. Owner only."""
        with self.runtime.atomic("staking.set_stake_type_config"):
            self._require_owner(caller)
            if not 0 <= stake_type < MAX_STAKE_TYPES:
                raise InvalidStakeTypeError(stake_type, f"outside [0, {MAX_STAKE_TYPES})")
            self.runtime.preserve_item(self.stake_types, stake_type)
            self.stake_types[stake_type] = stake_config
            logger.info(f"Stake type {stake_type} set to {stake_config}")

    def fund_rewards(self, caller: bytes, amount: int) -> None:
        """Add tokens to the reward reserve. Owner only."""
        with self.runtime.atomic("staking.fund_rewards"):
            self._require_owner(caller)
            if amount == 0:
                raise ZeroAmountError()
            self.token.transfer_from(self.address, caller, self.address, amount)
            self.runtime.preserve(self, "reward_reserve")
            self.reward_reserve = checked_add(self.reward_reserve, amount)
            logger.info(f"Reward reserve funded with {amount}, now {self.reward_reserve}")

    def _require_owner(self, caller: bytes) -> None:
        if caller != self.owner:
            raise NotAuthorizedError("Only the facility owner can do this")

    # =========================================================================
    # Queries
    # =========================================================================

    def query_stake_type_config(self, stake_type: int) -> StakeTypeConfig:
        """Config of a stake type; an all-zero config if unset."""
        return self.stake_types.get(stake_type, StakeTypeConfig())

    def query_stakes(self, stake_ids: Sequence[int]) -> List[Optional[StakeCommitment]]:
        """Stake records in the requested order (None for unknown ids)."""
        return [
            copy.copy(self.stakes[sid]) if sid in self.stakes else None
            for sid in stake_ids
        ]

    def compute_reward(self, amount: int, stake_config: StakeTypeConfig) -> int:
        """
        Reward for locking `amount` under `stake_config`.

        reward = amount * rate * duration * multiplier / (precision * year * 10000)
        """
        numerator = checked_mul(
            checked_mul(amount, stake_config.reward_modifier),
            checked_mul(stake_config.duration, stake_config.duration_modifier),
        )
        return numerator // (self.config.precision * self.config.seconds_per_year * UNIT_MODIFIER)

    # =========================================================================
    # Stake lifecycle
    # =========================================================================

    def commit_stake(self, caller: bytes, amount: int, stake_type: int) -> int:
        """
        Lock `amount` of caller's tokens (requires prior allowance).

        Returns:
            The new stake id
        """
        with self.runtime.atomic("staking.commit_stake"):
            if amount == 0:
                raise ZeroAmountError("Stake amount must be greater than zero")
            if not 0 <= stake_type < MAX_STAKE_TYPES:
                raise InvalidStakeTypeError(stake_type, f"outside [0, {MAX_STAKE_TYPES})")
            stake_config = self.query_stake_type_config(stake_type)
            if not stake_config.is_configured:
                raise InvalidStakeTypeError(stake_type)

            reward = self.compute_reward(amount, stake_config)
            if reward > self.reward_reserve:
                raise InsufficientRewardReserveError(self.reward_reserve, reward)

            self.token.transfer_from(self.address, caller, self.address, amount)

            now = self.runtime.now
            self.runtime.preserve(self, "next_stake_id", "reward_reserve", "total_staked")
            self.runtime.preserve_item(self.stakes, self.next_stake_id)
            stake_id = self.next_stake_id
            self.next_stake_id += 1
            self.stakes[stake_id] = StakeCommitment(
                stake_id=stake_id,
                amount=amount,
                stake_type=stake_type,
                staker=caller,
                created_at=now,
                unlock_at=checked_add(now, stake_config.duration),
                reward=reward,
            )
            self.reward_reserve -= reward
            self.total_staked = checked_add(self.total_staked, amount)

            logger.info(
                f"Stake {stake_id} committed by {short_hex(caller)}: "
                f"{amount} type={stake_type} reward={reward}"
            )
            return stake_id

    def claim_reward(self, caller: bytes, stake_id: int) -> int:
        """Pay the fixed reward of an unlocked stake. Returns amount paid."""
        with self.runtime.atomic("staking.claim_reward"):
            stake = self._get_claimable(caller, stake_id)
            if stake.unbonding:
                raise StakeLockedError(f"Stake {stake_id} is unbonding; reward forfeited")
            if stake.reward_claimed:
                raise RewardAlreadyClaimedError(f"Reward of stake {stake_id} already claimed")
            if not stake.is_unlocked(self.runtime.now):
                raise StakeLockedError(f"Stake {stake_id} locked until {stake.unlock_at}")

            self._preserve_stake(stake)
            stake.claimed_amount = stake.reward
            stake.claimed_at = self.runtime.now
            if stake.reward:
                self.token.transfer(self.address, caller, stake.reward)

            logger.info(f"Stake {stake_id} reward claimed: {stake.reward}")
            return stake.reward

    def claim_principal(self, caller: bytes, stake_id: int) -> int:
        """Return the principal of an unlocked or fully unbonded stake."""
        with self.runtime.atomic("staking.claim_principal"):
            stake = self._get_claimable(caller, stake_id)
            now = self.runtime.now
            if stake.unbonding:
                if now < stake.unbonding_ends_at:
                    raise UnbondingNotOverError(
                        f"Stake {stake_id} unbonding until {stake.unbonding_ends_at}"
                    )
            elif not stake.is_unlocked(now):
                raise StakeLockedError(f"Stake {stake_id} locked until {stake.unlock_at}")

            self._preserve_stake(stake)
            self.runtime.preserve(self, "total_staked", "reward_reserve")
            stake.active = False
            self.total_staked = checked_sub(self.total_staked, stake.amount)
            # Unclaimed rewards of a matured stake go back to the reserve
            if not stake.unbonding and not stake.reward_claimed:
                self.reward_reserve = checked_add(self.reward_reserve, stake.reward)
            self.token.transfer(self.address, caller, stake.amount)

            logger.info(f"Stake {stake_id} principal claimed: {stake.amount}")
            return stake.amount

    def unbond(self, caller: bytes, stake_id: int) -> int:
        """
        Exit a stake before its unlock time.

        The reward is forfeited to the reserve and the principal becomes
        claimable after the unbonding period.

        Returns:
            Time at which the principal can be claimed
        """
        with self.runtime.atomic("staking.unbond"):
            stake = self._get_claimable(caller, stake_id)
            if stake.unbonding:
                raise AlreadyUnbondingError(f"Stake {stake_id} is already unbonding")
            now = self.runtime.now
            if stake.is_unlocked(now):
                raise StakeAlreadyUnlockedError(
                    f"Stake {stake_id} unlocked at {stake.unlock_at}; claim instead"
                )

            self._preserve_stake(stake)
            self.runtime.preserve(self, "reward_reserve")
            stake.unbonding = True
            stake.unbonding_started_at = now
            stake.unbonding_ends_at = checked_add(now, self.config.unbonding_period)
            self.reward_reserve = checked_add(self.reward_reserve, stake.reward)

            logger.info(f"Stake {stake_id} unbonding until {stake.unbonding_ends_at}")
            return stake.unbonding_ends_at

    def _get_claimable(self, caller: bytes, stake_id: int) -> StakeCommitment:
        stake = self.stakes.get(stake_id)
        if stake is None:
            raise StakeNotFoundError(stake_id)
        if stake.staker != caller:
            raise NotStakerError(f"{short_hex(caller)} is not the staker of {stake_id}")
        if not stake.active:
            raise StakeInactiveError(stake_id)
        return stake

    def _preserve_stake(self, stake: StakeCommitment) -> None:
        # Stake records are updated in place
        self.runtime.preserve(stake, *STAKE_FIELDS)

    # =========================================================================
    # Statistics
    # =========================================================================

    def stats(self) -> dict:
        """Get facility statistics."""
        return {
            "total_stakes": len(self.stakes),
            "active_stakes": sum(1 for s in self.stakes.values() if s.active),
            "unbonding_stakes": sum(1 for s in self.stakes.values() if s.active and s.unbonding),
            "total_staked": self.total_staked,
            "reward_reserve": self.reward_reserve,
        }
