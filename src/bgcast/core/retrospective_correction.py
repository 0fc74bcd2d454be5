"""
Retrospective correction: project recent model error forward.

Discrepancies are the part of observed glucose movement that neither insulin
nor modeled carb absorption explains, summed into trailing buckets
(``effects.combined_sums``). A strategy turns the most recent buckets into a
relative correction curve that starts at zero at the starting glucose.
"""

from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import List, Optional, Protocol, Sequence, Tuple

from bgcast.core.effects import decay_effect
from bgcast.core.models import GlucoseChange, GlucoseEffect, GlucoseRange, GlucoseSample
from bgcast.core.timeline import minutes

logger = logging.getLogger("bgcast.retrospective_correction")


class RetrospectiveCorrection(Protocol):
    effect_duration: timedelta

    def compute_effect(
        self,
        starting_glucose: GlucoseSample,
        discrepancies_summed: Sequence[GlucoseChange],
        recency_interval: timedelta,
        insulin_sensitivity: float,
        basal_rate: float,
        correction_range: GlucoseRange,
        grouping_interval: timedelta,
    ) -> List[GlucoseEffect]:
        ...


def _recent_discrepancy(
    starting_glucose: GlucoseSample,
    discrepancies_summed: Sequence[GlucoseChange],
    recency_interval: timedelta,
) -> Optional[GlucoseChange]:
    if not discrepancies_summed:
        return None
    current = discrepancies_summed[-1]
    if current.end_date < starting_glucose.start_date - recency_interval:
        logger.debug("Latest discrepancy ends at %s; too old for correction", current.end_date.isoformat())
        return None
    return current


def _discrepancy_minutes(discrepancy: GlucoseChange, grouping_interval: timedelta) -> float:
    return minutes(max(discrepancy.end_date - discrepancy.start_date, grouping_interval))


class StandardRetrospectiveCorrection:
    """Decays the latest discrepancy linearly to zero over ``effect_duration``."""

    def __init__(self, effect_duration: timedelta = timedelta(minutes=60), delta: timedelta = timedelta(minutes=5)):
        self.effect_duration = effect_duration
        self.delta = delta

    def compute_effect(
        self,
        starting_glucose: GlucoseSample,
        discrepancies_summed: Sequence[GlucoseChange],
        recency_interval: timedelta,
        insulin_sensitivity: float,
        basal_rate: float,
        correction_range: GlucoseRange,
        grouping_interval: timedelta,
    ) -> List[GlucoseEffect]:
        current = _recent_discrepancy(starting_glucose, discrepancies_summed, recency_interval)
        if current is None:
            return []
        velocity = current.quantity / _discrepancy_minutes(current, grouping_interval)
        return decay_effect(starting_glucose.start_date, velocity, self.effect_duration, self.delta)


class IntegralRetrospectiveCorrection:
    """
    Proportional-integral-differential correction over recent discrepancies.

    The integral term is a leaky sum over the unbroken run of recent buckets
    that share the sign of the latest one. Only buckets ending within
    ``retrospection_interval`` of the starting glucose take part. The effect
    duration grows with the run length, and the integral is bounded by limits
    derived from the current glucose, correction range, ISF and basal rate. A
    differential term strengthens corrections while a negative discrepancy is
    getting worse.
    """

    current_discrepancy_gain = 1.0
    persistent_discrepancy_gain = 2.0
    correction_time_constant = timedelta(minutes=60)
    differential_gain = 2.0
    maximum_correction_effect_duration = timedelta(minutes=180)

    def __init__(
        self,
        effect_duration: timedelta = timedelta(minutes=60),
        delta: timedelta = timedelta(minutes=5),
        retrospection_interval: timedelta = timedelta(minutes=180),
    ):
        self.effect_duration = effect_duration
        self.delta = delta
        self.retrospection_interval = retrospection_interval

    @property
    def integral_forget(self) -> float:
        return math.exp(-minutes(self.delta) / minutes(self.correction_time_constant))

    @property
    def integral_gain(self) -> float:
        forget = self.integral_forget
        return ((1 - forget) / forget) * (self.persistent_discrepancy_gain - self.current_discrepancy_gain)

    @property
    def proportional_gain(self) -> float:
        return self.current_discrepancy_gain - self.integral_gain

    def integral_limits(
        self,
        glucose: float,
        insulin_sensitivity: float,
        basal_rate: float,
        correction_range: GlucoseRange,
    ) -> Tuple[float, float]:
        """Return ``(minimum, maximum)`` allowed integral correction in mg/dL."""
        zero_temp_effect = abs(insulin_sensitivity * basal_rate)
        glucose_error = glucose - correction_range.max_value
        maximum = min(max(glucose_error, 0.5 * zero_temp_effect), 4.0 * zero_temp_effect)
        minimum = -max(10.0, glucose - correction_range.min_value)
        return minimum, maximum

    def compute_effect(
        self,
        starting_glucose: GlucoseSample,
        discrepancies_summed: Sequence[GlucoseChange],
        recency_interval: timedelta,
        insulin_sensitivity: float,
        basal_rate: float,
        correction_range: GlucoseRange,
        grouping_interval: timedelta,
    ) -> List[GlucoseEffect]:
        current = _recent_discrepancy(starting_glucose, discrepancies_summed, recency_interval)
        if current is None:
            return []
        current_value = current.quantity
        recent = [
            discrepancy
            for discrepancy in discrepancies_summed
            if discrepancy.end_date > starting_glucose.start_date - self.retrospection_interval
        ]

        integral_correction = 0.0
        effect_duration = self.effect_duration - 2 * self.delta
        run_length = 0
        for discrepancy in reversed(recent):
            if (current_value > 0 and discrepancy.quantity > 0) or (current_value < 0 and discrepancy.quantity < 0):
                run_length += 1
                integral_correction = self.integral_forget * integral_correction + self.integral_gain * discrepancy.quantity
                effect_duration += 2 * self.delta
            else:
                break

        minimum, maximum = self.integral_limits(
            starting_glucose.quantity, insulin_sensitivity, basal_rate, correction_range
        )
        integral_correction = min(max(integral_correction, minimum), maximum)

        differential_correction = 0.0
        if current_value < 0 and len(recent) > 1:
            differential = current_value - recent[-2].quantity
            if differential < 0:
                differential_correction = self.differential_gain * differential

        effect_duration = min(max(effect_duration, self.effect_duration), self.maximum_correction_effect_duration)
        scaled_correction = self.proportional_gain * current_value + integral_correction + differential_correction
        logger.debug(
            "Integral correction: run=%d integral=%.2f differential=%.2f total=%.2f over %s",
            run_length,
            integral_correction,
            differential_correction,
            scaled_correction,
            effect_duration,
        )

        velocity = scaled_correction / _discrepancy_minutes(current, grouping_interval)
        return decay_effect(starting_glucose.start_date, velocity, effect_duration, self.delta)
