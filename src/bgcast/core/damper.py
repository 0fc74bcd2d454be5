"""
Negative insulin damper.

When insulin effect wanes (positive insulin deltas) a linear composition can
predict unrealistically fast rises. The damper scales every rise in the
prediction by ``alpha``, which shrinks as the total positive insulin movement
grows: linearly at first, then towards a long-term marginal slope.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from bgcast.core.config import DamperConfig
from bgcast.core.models import GlucoseEffect, PredictedGlucoseValue


class NegativeInsulinDamper:
    def __init__(self, config: Optional[DamperConfig] = None) -> None:
        self.config = config or DamperConfig()

    @property
    def linear_scale_slope(self) -> float:
        return (1.0 - self.config.anchor_alpha) / self.config.anchor_point

    @property
    def transition_point(self) -> float:
        # alpha * s has slope 1 - 2 * linear_scale_slope * s; it meets marginal_slope here.
        return (1.0 - self.config.marginal_slope) / (2.0 * self.linear_scale_slope)

    @staticmethod
    def positive_delta_sum(insulin_effects: Sequence[GlucoseEffect]) -> float:
        return sum(
            max(0.0, current.quantity - previous.quantity)
            for previous, current in zip(insulin_effects, insulin_effects[1:])
        )

    def alpha(self, pos_delta_sum: float) -> float:
        slope = self.linear_scale_slope
        transition_point = self.transition_point
        if pos_delta_sum < transition_point:
            return 1.0 - slope * pos_delta_sum
        transition_value = (1.0 - slope * transition_point) * transition_point
        return (transition_value + self.config.marginal_slope * (pos_delta_sum - transition_point)) / pos_delta_sum

    def apply(
        self,
        prediction: Sequence[PredictedGlucoseValue],
        insulin_effects: Sequence[GlucoseEffect],
    ) -> Tuple[List[PredictedGlucoseValue], List[GlucoseEffect]]:
        """
        Scale rises in ``prediction`` by ``alpha``.

        Returns:
            Tuple of the damped prediction and the per-point damper effect
            (damped minus raw value).
        """
        if not prediction:
            return [], []
        alpha = self.alpha(self.positive_delta_sum(insulin_effects))

        first = prediction[0]
        damped = [first]
        damper_effects = [GlucoseEffect(first.start_date, 0.0)]
        value = first.quantity
        for previous, current in zip(prediction, prediction[1:]):
            delta = current.quantity - previous.quantity
            value += alpha * delta if delta > 0 else delta
            damped.append(PredictedGlucoseValue(current.start_date, value))
            damper_effects.append(GlucoseEffect(current.start_date, value - current.quantity))
        return damped, damper_effects
