"""
Fee Engine - fee-rate computation for merchant accounts.

Manages:
- Premium override (flat rate while a stake-backed premium is active)
- Volume decay of the base fee, down to a floor
- Fee amounts for tips

Volume decay:
------------
Each rate evaluation outside premium consumes the volume accumulated
since the previous evaluation:

    units     = volume // volume_threshold
    decrement = units * (precision // 1000)
    base_fee  = base_fee - decrement        (bounded by the floor policy)
    volume    = 0

The evaluation is the only way to read the rate: the tip path and the
rate accessor both advance the decay state identically. `quote_fee_rate`
computes the same value without touching state, for reporting only.

Floor policy:
------------
- "clamp": the base fee never goes below the floor once above it.
- "exact": the floor only stops decay when the fee sits exactly on it;
  a decrement that overshoots lands below the floor, and one larger than
  the fee itself is rejected as an underflow.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from tipvault.core.arith import checked_mul, checked_sub, mul_div
from tipvault.core.config import EngineConfig
from tipvault.utils.logger import get_logger

logger = get_logger("fees")


@dataclass
class FeeQuote:
    """Outcome of a rate evaluation."""
    rate: int
    premium: bool
    volume_units: int
    base_fee_before: int
    base_fee_after: int


class FeeEngine:
    """
    Computes fee rates over an account's fee state.

    The state object must expose `base_fee`, `total_volume_processed`
    and `premium_expiry` (Optional[int]).
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    # =========================================================================
    # Premium
    # =========================================================================

    @staticmethod
    def has_premium(state, now: int) -> bool:
        """True while a premium window is open."""
        return state.premium_expiry is not None and now < state.premium_expiry

    # =========================================================================
    # Rate evaluation
    # =========================================================================

    def _evaluate(self, state, now: int) -> FeeQuote:
        if self.has_premium(state, now):
            return FeeQuote(
                rate=self.config.premium_fee,
                premium=True,
                volume_units=0,
                base_fee_before=state.base_fee,
                base_fee_after=state.base_fee,
            )

        units = state.total_volume_processed // self.config.volume_threshold
        base_fee = state.base_fee
        new_fee = self._decay(base_fee, units)
        return FeeQuote(
            rate=new_fee,
            premium=False,
            volume_units=units,
            base_fee_before=base_fee,
            base_fee_after=new_fee,
        )

    def _decay(self, base_fee: int, units: int) -> int:
        floor = self.config.fee_floor
        if base_fee == floor or units == 0:
            return base_fee

        decrement = checked_mul(units, self.config.decay_step)
        if self.config.fee_floor_policy == "exact":
            return checked_sub(base_fee, decrement)

        # clamp
        if base_fee < floor:
            return base_fee
        return max(floor, base_fee - decrement)

    def compute_fee_rate(self, state, now: int) -> int:
        """
        Rate to apply to the next tip; advances the decay state.

        Outside premium, resets the accumulated volume and stores the
        decayed base fee. During premium, returns the premium rate and
        leaves the state untouched.

        Args:
            state: Account fee state (mutated)
            now: Current time

        Returns:
            Fee rate in basis points of precision
        """
        quote = self._evaluate(state, now)
        if quote.premium:
            return quote.rate

        state.total_volume_processed = 0
        state.base_fee = quote.base_fee_after
        if quote.base_fee_after != quote.base_fee_before:
            logger.debug(
                f"Base fee decayed {quote.base_fee_before} -> {quote.base_fee_after} "
                f"({quote.volume_units} volume units)"
            )
        return quote.rate

    def quote_fee_rate(self, state, now: int) -> FeeQuote:
        """Side-effect-free version of compute_fee_rate, for reporting."""
        return self._evaluate(state, now)

    def check_pending_decay(self, state) -> None:
        """
        Raise if the volume held by `state` cannot be applied to its base fee.

        Only the "exact" policy can fail, when the pending decrement is
        larger than the fee. Called after volume is added, so the tip that
        would make every later evaluation fail is the one rejected.

        Raises:
            ArithmeticUnderflowError: pending decrement exceeds base_fee
        """
        units = state.total_volume_processed // self.config.volume_threshold
        self._decay(state.base_fee, units)

    # =========================================================================
    # Amounts
    # =========================================================================

    def fee_for(self, amount: int, rate: int) -> int:
        """Fee charged on `amount` at `rate` (floor division)."""
        return mul_div(amount, rate, self.config.precision)

    def project_schedule(self, base_fee: int, volumes: Iterable[int]) -> List[int]:
        """
        Rates observed after each of a sequence of tip volumes.

        Assumes no premium and one rate evaluation between tips.

        Args:
            base_fee: Starting base fee
            volumes: Tip amounts, in native units

        Returns:
            Rate read after each tip
        """
        rates = []
        for volume in volumes:
            units = volume // self.config.volume_threshold
            base_fee = self._decay(base_fee, units)
            rates.append(base_fee)
        return rates
