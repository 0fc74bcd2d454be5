"""Calculations on raw glucose history: counteraction velocities and momentum."""

from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import List, Sequence

import numpy as np
from scipy.stats import linregress

from bgcast.core.models import GlucoseEffect, GlucoseEffectVelocity, GlucoseSample
from bgcast.core.timeline import ceil_date, date_grid, floor_date, minutes, timestamp

logger = logging.getLogger("bgcast.glucose")

MINIMUM_COUNTERACTION_INTERVAL = timedelta(minutes=4)


def is_continuous(samples: Sequence[GlucoseSample], interval: timedelta = timedelta(minutes=5)) -> bool:
    """True when the samples span less than ``interval`` per sample."""
    if not samples:
        return False
    span = abs(samples[-1].start_date - samples[0].start_date)
    return span < interval * len(samples)


def has_single_provenance(samples: Sequence[GlucoseSample]) -> bool:
    return len({sample.provenance_identifier for sample in samples}) <= 1


def is_calibrated(samples: Sequence[GlucoseSample]) -> bool:
    """User-entered (fingerstick) values are treated as calibrations."""
    return not any(sample.was_user_entered for sample in samples)


def _pair_is_comparable(start: GlucoseSample, end: GlucoseSample) -> bool:
    return (
        start.is_display_only == end.is_display_only
        and start.provenance_identifier == end.provenance_identifier
        and not start.was_user_entered
        and not end.was_user_entered
    )


def counteraction_effects(
    glucose: Sequence[GlucoseSample],
    insulin_effects: Sequence[GlucoseEffect],
) -> List[GlucoseEffectVelocity]:
    """
    Glucose velocity not explained by modeled insulin, per pair of samples.

    Samples four minutes or less after the previous anchor are skipped. The
    insulin effect is linearly interpolated at both ends of each interval; an
    empty insulin curve counts as no modeled change.

    Returns:
        List[GlucoseEffectVelocity]: mg/dL per minute for each compared interval.
    """
    if len(glucose) < 2:
        return []

    if insulin_effects:
        effect_x = np.array([timestamp(effect.start_date) for effect in insulin_effects])
        effect_y = np.array([effect.quantity for effect in insulin_effects])
    else:
        effect_x = effect_y = None

    velocities: List[GlucoseEffectVelocity] = []
    start_sample = glucose[0]
    for end_sample in glucose[1:]:
        interval = end_sample.start_date - start_sample.start_date
        if interval <= MINIMUM_COUNTERACTION_INTERVAL:
            continue
        if not _pair_is_comparable(start_sample, end_sample):
            start_sample = end_sample
            continue

        glucose_change = end_sample.quantity - start_sample.quantity
        effect_change = 0.0
        if effect_x is not None:
            start_effect, end_effect = np.interp(
                [timestamp(start_sample.start_date), timestamp(end_sample.start_date)], effect_x, effect_y
            )
            effect_change = float(end_effect - start_effect)

        velocities.append(
            GlucoseEffectVelocity(
                start_date=start_sample.start_date,
                end_date=end_sample.start_date,
                quantity=(glucose_change - effect_change) / minutes(interval),
            )
        )
        start_sample = end_sample

    return velocities


def linear_momentum_effect(
    samples: Sequence[GlucoseSample],
    duration: timedelta = timedelta(minutes=30),
    delta: timedelta = timedelta(minutes=5),
) -> List[GlucoseEffect]:
    """
    Extrapolate the least-squares trend of recent samples.

    Returns an empty list when there are fewer than two samples, when the
    samples have gaps, mixed provenance or calibrations, or when the fit is
    undefined.
    """
    if len(samples) < 2:
        return []
    if not (is_continuous(samples) and is_calibrated(samples) and has_single_provenance(samples)):
        logger.debug("Skipping momentum: samples are not a continuous single-source run")
        return []

    first, last = samples[0], samples[-1]
    if first.start_date == last.start_date:
        return []

    fit = linregress(
        [minutes(sample.start_date - first.start_date) for sample in samples],
        [sample.quantity for sample in samples],
    )
    slope = float(fit.slope)
    if not math.isfinite(slope):
        return []

    start = floor_date(last.start_date, delta)
    end = ceil_date(last.start_date + duration, delta)
    return [
        GlucoseEffect(start_date=date, quantity=max(0.0, minutes(date - last.start_date)) * slope)
        for date in date_grid(start, end, delta)
    ]
