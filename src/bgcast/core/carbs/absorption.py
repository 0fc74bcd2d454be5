"""
Carbohydrate absorption curves.

Each model maps a fraction of the absorption time (``percent_time``, 0..1) to
the fraction of carbohydrate absorbed, along with its inverse and its rate.
"""

from __future__ import annotations

import math
from datetime import timedelta
from typing import Dict, Type


class CarbAbsorptionModel:
    def percent_absorption_at_percent_time(self, percent_time: float) -> float:
        raise NotImplementedError

    def percent_time_at_percent_absorption(self, percent_absorption: float) -> float:
        raise NotImplementedError

    def percent_rate_at_percent_time(self, percent_time: float) -> float:
        raise NotImplementedError

    def absorbed_carbs(self, total: float, time: timedelta, absorption_time: timedelta) -> float:
        """Grams absorbed ``time`` after absorption began."""
        if absorption_time.total_seconds() <= 0:
            return total
        percent_time = time.total_seconds() / absorption_time.total_seconds()
        return total * self.percent_absorption_at_percent_time(percent_time)

    def unabsorbed_carbs(self, total: float, time: timedelta, absorption_time: timedelta) -> float:
        return total - self.absorbed_carbs(total, time, absorption_time)

    def absorption_time(self, percent_absorption: float, time: timedelta) -> timedelta:
        """Total absorption time implied by ``percent_absorption`` having been absorbed at ``time``."""
        percent_time = self.percent_time_at_percent_absorption(percent_absorption)
        if percent_time <= 0:
            return timedelta(0)
        return time / percent_time


class LinearAbsorption(CarbAbsorptionModel):
    def percent_absorption_at_percent_time(self, percent_time: float) -> float:
        return min(max(percent_time, 0.0), 1.0)

    def percent_time_at_percent_absorption(self, percent_absorption: float) -> float:
        return min(max(percent_absorption, 0.0), 1.0)

    def percent_rate_at_percent_time(self, percent_time: float) -> float:
        return 1.0 if 0.0 <= percent_time <= 1.0 else 0.0


class ParabolicAbsorption(CarbAbsorptionModel):
    """Scheiner GI curve: a parabolic rise and fall (Think Like a Pancreas, fig 7-8)."""

    def percent_absorption_at_percent_time(self, percent_time: float) -> float:
        if percent_time <= 0:
            return 0.0
        if percent_time <= 0.5:
            return 2.0 * percent_time ** 2
        if percent_time < 1.0:
            return -1.0 + 2.0 * percent_time * (2.0 - percent_time)
        return 1.0

    def percent_time_at_percent_absorption(self, percent_absorption: float) -> float:
        if percent_absorption <= 0:
            return 0.0
        if percent_absorption <= 0.5:
            return math.sqrt(percent_absorption / 2.0)
        if percent_absorption < 1.0:
            return 1.0 - math.sqrt((1.0 - percent_absorption) / 2.0)
        return 1.0

    def percent_rate_at_percent_time(self, percent_time: float) -> float:
        if 0 < percent_time <= 0.5:
            return 4.0 * percent_time
        if 0.5 < percent_time < 1.0:
            return 4.0 - 4.0 * percent_time
        return 0.0


class PiecewiseLinearAbsorption(CarbAbsorptionModel):
    """
    Absorption rate rises linearly until ``percent_end_of_rise``, stays flat,
    then falls linearly from ``percent_start_of_fall`` to zero at the end.
    """

    def __init__(self, percent_end_of_rise: float = 0.15, percent_start_of_fall: float = 0.5) -> None:
        if not 0 < percent_end_of_rise <= percent_start_of_fall < 1:
            raise ValueError("Require 0 < percent_end_of_rise <= percent_start_of_fall < 1")
        self.percent_end_of_rise = percent_end_of_rise
        self.percent_start_of_fall = percent_start_of_fall
        self.scale = 2.0 / (1.0 + percent_start_of_fall - percent_end_of_rise)

    def percent_absorption_at_percent_time(self, percent_time: float) -> float:
        rise, fall, scale = self.percent_end_of_rise, self.percent_start_of_fall, self.scale
        if percent_time <= 0:
            return 0.0
        if percent_time < rise:
            return 0.5 * scale * percent_time ** 2 / rise
        if percent_time < fall:
            return scale * (percent_time - 0.5 * rise)
        if percent_time < 1.0:
            since_fall = percent_time - fall
            return scale * (fall - 0.5 * rise + since_fall * (1.0 - 0.5 * since_fall / (1.0 - fall)))
        return 1.0

    def percent_time_at_percent_absorption(self, percent_absorption: float) -> float:
        rise, fall, scale = self.percent_end_of_rise, self.percent_start_of_fall, self.scale
        if percent_absorption <= 0:
            return 0.0
        if percent_absorption < 0.5 * scale * rise:
            return math.sqrt(2.0 * rise * percent_absorption / scale)
        if percent_absorption < scale * (fall - 0.5 * rise):
            return percent_absorption / scale + 0.5 * rise
        if percent_absorption < 1.0:
            return 1.0 - math.sqrt((1.0 - fall) * (1.0 + fall - rise) * (1.0 - percent_absorption))
        return 1.0

    def percent_rate_at_percent_time(self, percent_time: float) -> float:
        rise, fall, scale = self.percent_end_of_rise, self.percent_start_of_fall, self.scale
        if percent_time <= 0:
            return 0.0
        if percent_time < rise:
            return scale * percent_time / rise
        if percent_time < fall:
            return scale
        if percent_time < 1.0:
            return scale * (1.0 - (percent_time - fall) / (1.0 - fall))
        return 0.0


ABSORPTION_MODELS: Dict[str, Type[CarbAbsorptionModel]] = {
    "linear": LinearAbsorption,
    "parabolic": ParabolicAbsorption,
    "piecewise_linear": PiecewiseLinearAbsorption,
}


def absorption_model_by_name(name: str) -> CarbAbsorptionModel:
    try:
        return ABSORPTION_MODELS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown absorption model '{name}'. Choose from: {', '.join(sorted(ABSORPTION_MODELS))}"
        ) from None
