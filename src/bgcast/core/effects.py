"""
Composition of glucose effect curves.

Effect curves are cumulative: only the change between consecutive points is
meaningful. ``predict_glucose`` sums those changes per date and accumulates them
on top of the latest glucose sample.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Sequence

import numpy as np

from bgcast.core.models import (
    GlucoseChange,
    GlucoseEffect,
    GlucoseEffectVelocity,
    GlucoseSample,
    PredictedGlucoseValue,
)
from bgcast.core.timeline import ceil_date, date_grid, floor_date, minutes, timestamp


def predict_glucose(
    starting_glucose: GlucoseSample,
    effects: Sequence[Sequence[GlucoseEffect]],
    momentum: Sequence[GlucoseEffect] = (),
) -> List[PredictedGlucoseValue]:
    """
    Accumulate effect changes onto ``starting_glucose``.

    Momentum is blended in linearly: it fully replaces the other effects at the
    first step after the starting glucose and fades to zero at its last point.
    """
    effect_values_at_date: Dict[datetime, float] = defaultdict(float)

    for timeline in effects:
        if not timeline:
            continue
        previous_value = timeline[0].quantity
        for effect in timeline:
            effect_values_at_date[effect.start_date] += effect.quantity - previous_value
            previous_value = effect.quantity

    if len(momentum) > 2:
        previous_value = momentum[0].quantity
        blend_count = len(momentum) - 2
        time_delta = (momentum[1].start_date - momentum[0].start_date).total_seconds()
        # The first momentum point is assumed to fall on or before the starting glucose.
        momentum_offset = (starting_glucose.start_date - momentum[0].start_date).total_seconds()
        blend_slope = 1.0 / blend_count
        blend_offset = momentum_offset / time_delta * blend_slope

        for index, effect in enumerate(momentum):
            value_change = effect.quantity - previous_value
            split = min(1.0, max(0.0, (len(momentum) - index) / blend_count - blend_slope + blend_offset))
            effect_blend = (1.0 - split) * effect_values_at_date.get(effect.start_date, 0.0)
            momentum_blend = split * value_change
            effect_values_at_date[effect.start_date] = effect_blend + momentum_blend
            previous_value = effect.quantity

    prediction = [PredictedGlucoseValue(starting_glucose.start_date, starting_glucose.quantity)]
    for date in sorted(effect_values_at_date):
        if date > starting_glucose.start_date:
            prediction.append(PredictedGlucoseValue(date, prediction[-1].quantity + effect_values_at_date[date]))
    return prediction


def subtract_effects(
    velocities: Sequence[GlucoseEffectVelocity],
    other_effects: Sequence[GlucoseEffect],
    effect_interval: timedelta = timedelta(minutes=5),
) -> List[GlucoseEffect]:
    """
    Subtract the change of ``other_effects`` over each velocity interval.

    Each result is stamped at the velocity's end date and expressed as the mg/dL
    change over ``effect_interval``, so irregular sample spacing does not bias
    later summation. An empty ``other_effects`` curve subtracts nothing.
    """
    if other_effects:
        other_x = np.array([timestamp(effect.start_date) for effect in other_effects])
        other_y = np.array([effect.quantity for effect in other_effects])

    subtracted: List[GlucoseEffect] = []
    for velocity in velocities:
        duration = minutes(velocity.duration)
        if duration <= 0:
            continue
        other_change = 0.0
        if other_effects:
            start_value, end_value = np.interp(
                [timestamp(velocity.start_date), timestamp(velocity.end_date)], other_x, other_y
            )
            other_change = float(end_value - start_value)
        scale = minutes(effect_interval) / duration
        subtracted.append(GlucoseEffect(velocity.end_date, (velocity.effect - other_change) * scale))
    return subtracted


def combined_sums(effects: Sequence[GlucoseEffect], duration: timedelta) -> List[GlucoseChange]:
    """
    Trailing-window sums: each output ends at an effect's date and sums every
    effect dated within ``duration`` before it.
    """
    sums: List[GlucoseChange] = []
    window_start = 0
    for index, effect in enumerate(effects):
        while effects[window_start].start_date < effect.start_date - duration:
            window_start += 1
        window = effects[window_start:index + 1]
        sums.append(
            GlucoseChange(
                start_date=window[0].start_date,
                end_date=effect.start_date,
                quantity=sum(item.quantity for item in window),
            )
        )
    return sums


def decay_effect(
    start_date: datetime,
    rate: float,
    duration: timedelta,
    delta: timedelta = timedelta(minutes=5),
) -> List[GlucoseEffect]:
    """
    A relative effect curve starting at zero whose slope (``rate``, mg/dL per
    minute) decays linearly to zero over ``duration``.
    """
    start = floor_date(start_date, delta)
    end = ceil_date(start_date + duration, delta)
    step_minutes = minutes(delta)
    duration_minutes = minutes(duration)

    values = [GlucoseEffect(start, 0.0)]
    last_value = 0.0
    for date in date_grid(start + delta, end, delta):
        last_value += rate * (1.0 - minutes(date - start) / duration_minutes) * step_minutes
        values.append(GlucoseEffect(date, last_value))
    return values
