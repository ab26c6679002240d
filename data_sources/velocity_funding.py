"""
Velocity Funding Model - Continuous funding-rate extrapolation.

Some venues have no settlement schedule: the funding rate moves
continuously at a velocity driven by the open-interest skew. Only the last
stored rate and its timestamp are published, so the current rate is
reconstructed here:

1. Net exposure in tokens (long - short) and in USD, using the implied
   token price = total collateral OI * collateral price / total token OI.
2. Velocity = min(|net tokens| * skew coefficient, velocity cap), signed
   like the exposure; zero while |net USD| is under the pair threshold.
3. Rate moves linearly from the last value at that velocity and stops at
   the symmetric per-second cap.
4. The per-second rate (already a percentage) is scaled to the 8h interval.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from core.clock import ClockProtocol, get_clock
from core.constants import FUNDING_INTERVAL_SECONDS, SECONDS_PER_YEAR


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VelocityPairParams:
    """Static per-pair funding parameters."""
    skew_coeff_per_year: float
    velocity_cap_per_year: float
    rate_per_second_cap: float
    theta_threshold_usd: float = 0.0


@dataclass(frozen=True)
class VelocityPairState:
    """Last published funding state and current open interest of a pair."""
    last_rate_per_second: float
    last_update_ts: float
    oi_long_token: float
    oi_short_token: float
    oi_long_collateral: float
    oi_short_collateral: float
    collateral_price_usd: float

    @property
    def net_exposure_token(self) -> float:
        return self.oi_long_token - self.oi_short_token

    @property
    def token_price_usd(self) -> float:
        """Implied token price from collateral and token open interest."""
        total_token = self.oi_long_token + self.oi_short_token
        if total_token <= 0:
            return 0.0
        total_collateral = self.oi_long_collateral + self.oi_short_collateral
        return total_collateral * self.collateral_price_usd / total_token

    @property
    def net_exposure_usd(self) -> float:
        return self.net_exposure_token * self.token_price_usd


class VelocityFundingModel:
    """
    Computes the funding rate "as of now" for velocity-based pairs.

    Usage:
        model = VelocityFundingModel()
        rate = model.rate_for_interval(params, state)
        if rate is not None:
            print(f"{rate:.4f}% per 8h")
    """

    def __init__(
        self,
        interval_seconds: int = FUNDING_INTERVAL_SECONDS,
        min_rate: float = 1e-6,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._interval_seconds = interval_seconds
        self._min_rate = min_rate
        self._clock = clock or get_clock()

    def velocity_per_year(self, params: VelocityPairParams, state: VelocityPairState) -> float:
        """Signed rate velocity per year."""
        if abs(state.net_exposure_usd) < params.theta_threshold_usd:
            return 0.0

        net_token = state.net_exposure_token
        magnitude = min(abs(net_token) * params.skew_coeff_per_year, params.velocity_cap_per_year)
        return -magnitude if net_token < 0 else magnitude

    def current_rate_per_second(
        self,
        params: VelocityPairParams,
        state: VelocityPairState,
        now: Optional[float] = None,
    ) -> float:
        """Extrapolate the per-second rate from the last update to now."""
        now = self._clock.timestamp() if now is None else now
        velocity_per_second = self.velocity_per_year(params, state) / SECONDS_PER_YEAR
        last_rate = state.last_rate_per_second

        if velocity_per_second == 0:
            return last_rate

        elapsed = max(0.0, now - state.last_update_ts)
        cap = params.rate_per_second_cap
        if cap <= 0:
            return last_rate + velocity_per_second * elapsed

        target = cap if velocity_per_second > 0 else -cap
        seconds_to_cap = (target - last_rate) / velocity_per_second
        if seconds_to_cap <= elapsed:
            return target

        rate = last_rate + velocity_per_second * elapsed
        return max(-cap, min(cap, rate))

    def rate_for_interval(
        self,
        params: VelocityPairParams,
        state: VelocityPairState,
        now: Optional[float] = None,
    ) -> Optional[float]:
        """
        Funding rate in percent per interval, or None for dormant pairs.

        The per-second figure is already a percentage, so it is only
        multiplied by the interval length.
        """
        rate = self.current_rate_per_second(params, state, now) * self._interval_seconds
        if not math.isfinite(rate) or abs(rate) < self._min_rate:
            return None
        return rate
