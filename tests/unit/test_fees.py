"""
Tests for the fee engine.

Tests cover:
1. Volume decay and its floor (clamp and exact policies)
2. Premium override
3. Mutation rules of compute vs quote
4. Fee amounts and schedule projection
"""

import pytest

from tipvault.core.account.merchant_account import AccountState
from tipvault.core.config import EngineConfig, tokens
from tipvault.core.errors import ArithmeticUnderflowError
from tipvault.core.fees import FeeEngine
from tipvault.crypto import ZERO_ADDRESS


def make_state(base_fee=400, volume=0, premium_expiry=None):
    return AccountState(
        address=ZERO_ADDRESS,
        base_fee=base_fee,
        total_volume_processed=volume,
        premium_expiry=premium_expiry,
    )


@pytest.fixture
def engine():
    return FeeEngine(EngineConfig())


@pytest.fixture
def exact_engine():
    return FeeEngine(EngineConfig(fee_floor_policy="exact"))


class TestDecay:
    """Base fee decay from processed volume."""

    def test_no_volume_no_change(self, engine):
        state = make_state()
        assert engine.compute_fee_rate(state, now=0) == 400
        assert state.base_fee == 400

    def test_one_unit(self, engine):
        state = make_state(volume=tokens(1_000_000))
        assert engine.compute_fee_rate(state, now=0) == 390
        assert state.base_fee == 390
        assert state.total_volume_processed == 0

    def test_partial_unit_is_consumed(self, engine):
        """Volume below a full unit is reset without decaying."""
        state = make_state(volume=tokens(999_999))
        assert engine.compute_fee_rate(state, now=0) == 400
        assert state.total_volume_processed == 0

    def test_several_units(self, engine):
        state = make_state(base_fee=390, volume=tokens(4_000_000))
        assert engine.compute_fee_rate(state, now=0) == 350

    def test_clamped_at_floor(self, engine):
        state = make_state(base_fee=350, volume=tokens(30_000_000))
        assert engine.compute_fee_rate(state, now=0) == 200

    def test_at_floor_stays(self, engine):
        state = make_state(base_fee=200, volume=tokens(50_000_000))
        assert engine.compute_fee_rate(state, now=0) == 200
        assert state.total_volume_processed == 0

    def test_clamp_leaves_fee_below_floor(self, engine):
        """A base fee configured under the floor never rises to it."""
        state = make_state(base_fee=150, volume=tokens(1_000_000))
        assert engine.compute_fee_rate(state, now=0) == 150

    def test_monotonic_non_increasing(self, engine):
        state = make_state()
        previous = state.base_fee
        for volume in (1, 3, 0, 7, 12, 2):
            state.total_volume_processed += tokens(volume * 1_000_000)
            rate = engine.compute_fee_rate(state, now=0)
            assert rate <= previous
            previous = rate


class TestExactFloorPolicy:
    """Reference behavior: the floor only stops decay when hit exactly."""

    def test_exact_landing(self, exact_engine):
        state = make_state(base_fee=350, volume=tokens(15_000_000))
        assert exact_engine.compute_fee_rate(state, now=0) == 200

    def test_overshoot_goes_below_floor(self, exact_engine):
        state = make_state(base_fee=350, volume=tokens(20_000_000))
        assert exact_engine.compute_fee_rate(state, now=0) == 150

    def test_underflow_rejected(self, exact_engine):
        state = make_state(base_fee=350, volume=tokens(36_000_000))
        with pytest.raises(ArithmeticUnderflowError):
            exact_engine.compute_fee_rate(state, now=0)

    def test_pending_decay_check(self, exact_engine):
        exact_engine.check_pending_decay(make_state(base_fee=350, volume=tokens(35_000_000)))
        state = make_state(base_fee=350, volume=tokens(36_000_000))
        with pytest.raises(ArithmeticUnderflowError):
            exact_engine.check_pending_decay(state)
        assert state.base_fee == 350
        assert state.total_volume_processed == tokens(36_000_000)

    def test_pending_decay_check_never_fails_when_clamped(self, engine):
        engine.check_pending_decay(make_state(base_fee=350, volume=tokens(10**9)))


class TestPremium:
    """Premium override."""

    def test_premium_rate(self, engine):
        state = make_state(volume=tokens(5_000_000), premium_expiry=100)
        assert engine.compute_fee_rate(state, now=99) == 100

    def test_premium_does_not_touch_state(self, engine):
        state = make_state(volume=tokens(5_000_000), premium_expiry=100)
        engine.compute_fee_rate(state, now=50)
        assert state.base_fee == 400
        assert state.total_volume_processed == tokens(5_000_000)

    def test_expiry_is_exclusive(self, engine):
        state = make_state(volume=tokens(5_000_000), premium_expiry=100)
        assert engine.compute_fee_rate(state, now=100) == 350

    def test_has_premium(self, engine):
        assert not engine.has_premium(make_state(), now=0)
        assert engine.has_premium(make_state(premium_expiry=10), now=9)
        assert not engine.has_premium(make_state(premium_expiry=10), now=10)


class TestQuote:
    """Side-effect-free evaluation."""

    def test_quote_matches_compute(self, engine):
        state = make_state(volume=tokens(4_000_000))
        quote = engine.quote_fee_rate(state, now=0)
        assert quote.rate == 360
        assert quote.volume_units == 4
        assert state.base_fee == 400
        assert state.total_volume_processed == tokens(4_000_000)
        assert engine.compute_fee_rate(state, now=0) == quote.rate

    def test_quote_premium(self, engine):
        quote = engine.quote_fee_rate(make_state(premium_expiry=5), now=0)
        assert quote.premium
        assert quote.rate == 100


class TestAmounts:

    def test_fee_for_floors(self, engine):
        assert engine.fee_for(tokens(1_000), 400) == tokens(40)
        assert engine.fee_for(99, 100) == 0
        assert engine.fee_for(101, 100) == 1

    def test_project_schedule(self, engine):
        volumes = [tokens(v) for v in (1_000_000, 4_000_000, 15_000_000, 1_000_000)]
        assert engine.project_schedule(400, volumes) == [390, 350, 200, 200]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
