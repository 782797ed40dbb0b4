"""
Tests for the staking facility.

Tests cover:
1. Stake-type configuration
2. Reward computation and reservation
3. Reward and principal claims
4. Unbonding
"""

import pytest

from tipvault.core.config import SECONDS_PER_DAY, EngineConfig, tokens
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
from tipvault.core.staking import DEFAULT_STAKE_TYPES, MAX_STAKE_TYPES, StakeCommitment, StakeTypeConfig, StakingFacility
from tipvault.core.token import TokenLedger
from tipvault.crypto import address_from_label

OWNER = address_from_label("owner")
STAKER = address_from_label("staker")
OTHER = address_from_label("other")

THIRTY_DAYS = 30 * SECONDS_PER_DAY


@pytest.fixture
def runtime():
    return Runtime(start_time=1_000)


@pytest.fixture
def token(runtime):
    return TokenLedger(runtime, address_from_label("token"), minter=OWNER)


@pytest.fixture
def facility(runtime, token):
    facility = StakingFacility(runtime, token, address_from_label("facility"), owner=OWNER, config=EngineConfig())
    token.mint(OWNER, OWNER, tokens(1_000_000))
    token.approve(OWNER, facility.address, tokens(1_000_000))
    facility.fund_rewards(OWNER, tokens(1_000_000))
    return facility


def commit(token, facility, amount=tokens(10_000_000), stake_type=0):
    token.mint(OWNER, STAKER, amount)
    token.approve(STAKER, facility.address, amount)
    return facility.commit_stake(STAKER, amount, stake_type)


class TestConfiguration:

    def test_defaults(self, facility):
        assert facility.stake_type_count == MAX_STAKE_TYPES
        assert facility.query_stake_type_config(0) == DEFAULT_STAKE_TYPES[0]
        assert facility.query_stake_type_config(0).duration == THIRTY_DAYS

    def test_unset_type_is_zero(self, runtime, token):
        facility = StakingFacility(runtime, token, address_from_label("f2"), owner=OWNER, stake_types={})
        cfg = facility.query_stake_type_config(2)
        assert cfg == StakeTypeConfig()
        assert not cfg.is_configured

    def test_owner_sets_config(self, facility):
        new = StakeTypeConfig(reward_modifier=100, duration_modifier=20_000, duration=60)
        facility.set_stake_type_config(OWNER, 1, new)
        assert facility.query_stake_type_config(1) == new

    def test_non_owner_rejected(self, facility):
        with pytest.raises(NotAuthorizedError):
            facility.set_stake_type_config(OTHER, 1, StakeTypeConfig(duration=1))

    def test_out_of_range_type(self, facility):
        with pytest.raises(InvalidStakeTypeError):
            facility.set_stake_type_config(OWNER, MAX_STAKE_TYPES, StakeTypeConfig(duration=1))

    def test_fund_zero_rejected(self, facility):
        with pytest.raises(ZeroAmountError):
            facility.fund_rewards(OWNER, 0)


class TestRewards:

    def test_compute_reward(self, facility):
        cfg = StakeTypeConfig(reward_modifier=1000, duration_modifier=10_000, duration=365 * SECONDS_PER_DAY)
        # 10% for a full year at 1x
        assert facility.compute_reward(tokens(1_000), cfg) == tokens(100)

    def test_duration_modifier_scales(self, facility):
        cfg = StakeTypeConfig(reward_modifier=1000, duration_modifier=20_000, duration=365 * SECONDS_PER_DAY)
        assert facility.compute_reward(tokens(1_000), cfg) == tokens(200)

    def test_commit_reserves_reward(self, token, facility):
        reserve = facility.reward_reserve
        stake_id = commit(token, facility)
        stake = facility.query_stakes([stake_id])[0]
        assert stake.reward > 0
        assert facility.reward_reserve == reserve - stake.reward

    def test_commit_beyond_reserve(self, token, facility):
        with pytest.raises(InsufficientRewardReserveError):
            commit(token, facility, amount=tokens(10**12), stake_type=3)
        assert facility.stakes == {}


class TestCommit:

    def test_ids_increase(self, token, facility):
        assert commit(token, facility) == 1
        assert commit(token, facility) == 2

    def test_record(self, runtime, token, facility):
        stake_id = commit(token, facility, amount=tokens(10_000_000))
        stake = facility.query_stakes([stake_id])[0]
        assert stake.staker == STAKER
        assert stake.amount == tokens(10_000_000)
        assert stake.created_at == runtime.now
        assert stake.unlock_at == runtime.now + THIRTY_DAYS
        assert stake.active and not stake.unbonding
        assert token.balance_of(facility.address) >= stake.amount

    def test_query_returns_copies(self, token, facility):
        stake_id = commit(token, facility)
        stake = facility.query_stakes([stake_id])[0]
        stake.active = False
        assert facility.stakes[stake_id].active

    def test_query_unknown(self, facility):
        assert facility.query_stakes([99]) == [None]

    def test_unconfigured_type(self, token, facility):
        facility.set_stake_type_config(OWNER, 2, StakeTypeConfig())
        with pytest.raises(InvalidStakeTypeError):
            commit(token, facility, stake_type=2)

    def test_zero_amount(self, facility):
        with pytest.raises(ZeroAmountError):
            facility.commit_stake(STAKER, 0, 0)


class TestClaims:

    def test_claim_before_unlock(self, token, facility):
        stake_id = commit(token, facility)
        with pytest.raises(StakeLockedError):
            facility.claim_reward(STAKER, stake_id)
        with pytest.raises(StakeLockedError):
            facility.claim_principal(STAKER, stake_id)

    def test_full_cycle(self, runtime, token, facility):
        amount = tokens(10_000_000)
        stake_id = commit(token, facility, amount=amount)
        reward = facility.stakes[stake_id].reward
        runtime.advance(THIRTY_DAYS)

        assert facility.claim_reward(STAKER, stake_id) == reward
        assert facility.claim_principal(STAKER, stake_id) == amount
        assert token.balance_of(STAKER) == amount + reward
        assert not facility.stakes[stake_id].active
        assert facility.total_staked == 0

    def test_no_double_reward(self, runtime, token, facility):
        stake_id = commit(token, facility)
        runtime.advance(THIRTY_DAYS)
        facility.claim_reward(STAKER, stake_id)
        with pytest.raises(RewardAlreadyClaimedError):
            facility.claim_reward(STAKER, stake_id)

    def test_no_double_principal(self, runtime, token, facility):
        stake_id = commit(token, facility)
        runtime.advance(THIRTY_DAYS)
        facility.claim_principal(STAKER, stake_id)
        with pytest.raises(StakeInactiveError):
            facility.claim_principal(STAKER, stake_id)

    def test_unclaimed_reward_returns_to_reserve(self, runtime, token, facility):
        reserve = facility.reward_reserve
        stake_id = commit(token, facility)
        runtime.advance(THIRTY_DAYS)
        facility.claim_principal(STAKER, stake_id)
        assert facility.reward_reserve == reserve

    def test_only_staker(self, runtime, token, facility):
        stake_id = commit(token, facility)
        runtime.advance(THIRTY_DAYS)
        with pytest.raises(NotStakerError):
            facility.claim_reward(OTHER, stake_id)

    def test_unknown_stake(self, facility):
        with pytest.raises(StakeNotFoundError):
            facility.claim_principal(STAKER, 42)


class TestUnbonding:

    def test_unbond_forfeits_reward(self, runtime, token, facility):
        reserve = facility.reward_reserve
        stake_id = commit(token, facility)
        runtime.advance(SECONDS_PER_DAY)
        ends = facility.unbond(STAKER, stake_id)
        assert ends == runtime.now + facility.config.unbonding_period
        assert facility.reward_reserve == reserve
        with pytest.raises(StakeLockedError):
            facility.claim_reward(STAKER, stake_id)

    def test_principal_after_unbonding(self, runtime, token, facility):
        amount = tokens(10_000_000)
        stake_id = commit(token, facility, amount=amount)
        runtime.advance(SECONDS_PER_DAY)
        facility.unbond(STAKER, stake_id)
        with pytest.raises(UnbondingNotOverError):
            facility.claim_principal(STAKER, stake_id)
        runtime.advance(facility.config.unbonding_period)
        assert facility.claim_principal(STAKER, stake_id) == amount
        assert token.balance_of(STAKER) == amount

    def test_lock_end_is_unbond_time(self, runtime, token, facility):
        stake_id = commit(token, facility)
        runtime.advance(5 * SECONDS_PER_DAY)
        facility.unbond(STAKER, stake_id)
        stake = facility.stakes[stake_id]
        assert stake.lock_end - stake.created_at == 5 * SECONDS_PER_DAY

    def test_double_unbond(self, token, facility):
        stake_id = commit(token, facility)
        facility.unbond(STAKER, stake_id)
        with pytest.raises(AlreadyUnbondingError):
            facility.unbond(STAKER, stake_id)

    def test_unbond_after_unlock(self, runtime, token, facility):
        stake_id = commit(token, facility)
        runtime.advance(THIRTY_DAYS)
        with pytest.raises(StakeAlreadyUnlockedError):
            facility.unbond(STAKER, stake_id)


class TestSerialization:

    def test_commitment_dict(self, token, facility):
        stake = facility.stakes[commit(token, facility)]
        record = stake.to_dict()
        assert record["staker"].startswith("0x")
        assert StakeCommitment.from_dict(record) == stake

    def test_stats(self, token, facility):
        commit(token, facility)
        stats = facility.stats()
        assert stats["active_stakes"] == 1
        assert stats["total_staked"] == tokens(10_000_000)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
