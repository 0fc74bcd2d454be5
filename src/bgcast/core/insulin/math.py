"""
Dose annotation, insulin glucose effects and insulin on board.

Doses are first annotated against the basal schedule so each basal-type dose
carries the scheduled rate it replaced; the effect of a dose is then measured
relative to that schedule (``DoseEntry.net_basal_units``).
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence

from bgcast.core.insulin.models import InsulinModel, InsulinModelProvider
from bgcast.core.models import DoseEntry, DoseType, GlucoseEffect, InsulinValue
from bgcast.core.schedule import Schedule
from bgcast.core.timeline import date_grid, simulation_date_range

logger = logging.getLogger("bgcast.insulin")

_BASAL_LIKE = (DoseType.BASAL, DoseType.TEMP_BASAL, DoseType.SUSPEND)


def annotate_doses(doses: Iterable[DoseEntry], basal_schedule: Schedule[float]) -> List[DoseEntry]:
    """
    Split basal-like doses at basal schedule boundaries and attach the scheduled rate.

    Raises:
        ValueError: If any dose starts before the first basal schedule entry.
            This is a caller data-assembly defect, not a recoverable condition.
    """
    doses = list(doses)
    if not doses:
        return []
    if not basal_schedule:
        raise ValueError("Missing basal history input.")
    first_dose_start = min(dose.start_date for dose in doses)
    basal_start = basal_schedule.first.start_date
    if basal_start > first_dose_start:
        raise ValueError(
            f"Basal history must cover historic dose range. "
            f"First dose date: {first_dose_start.isoformat()} < {basal_start.isoformat()}"
        )

    annotated: List[DoseEntry] = []
    for dose in doses:
        if dose.type not in _BASAL_LIKE:
            annotated.append(dose)
            continue
        segments = basal_schedule.between(dose.start_date, dose.end_date)
        for segment_start, segment_end, scheduled_rate in segments:
            if segment_end == segment_start and len(segments) > 1:
                continue
            annotated.append(
                replace(dose.trimmed(segment_start, segment_end), scheduled_basal_rate=scheduled_rate)
            )
    return annotated


def _continuous_delivery_effect(dose: DoseEntry, elapsed: float, model: InsulinModel, delta: float) -> float:
    # Integrates the activity curve over the dose in delta-sized slices; returns
    # the fraction of the dose's total effect that has occurred ``elapsed`` seconds in.
    dose_duration = dose.duration.total_seconds()
    delay = model.delay.total_seconds()
    limit = min(math.floor((elapsed + delay) / delta) * delta, dose_duration)
    value = 0.0
    dose_date = 0.0
    while True:
        if dose_duration > 0:
            segment = max(0.0, min(dose_date + delta, dose_duration) - dose_date) / dose_duration
        else:
            segment = 1.0
        value += segment * (1.0 - model.percent_effect_remaining(timedelta(seconds=elapsed - dose_date)))
        dose_date += delta
        if dose_date > limit:
            break
    return value


def _continuous_delivery_insulin_on_board(dose: DoseEntry, elapsed: float, model: InsulinModel, delta: float) -> float:
    dose_duration = dose.duration.total_seconds()
    delay = model.delay.total_seconds()
    limit = min(math.floor((elapsed + delay) / delta) * delta, dose_duration)
    iob = 0.0
    dose_date = 0.0
    while True:
        if dose_duration > 0:
            segment = max(0.0, min(dose_date + delta, dose_duration) - dose_date) / dose_duration
        else:
            segment = 1.0
        iob += segment * model.percent_effect_remaining(timedelta(seconds=elapsed - dose_date))
        dose_date += delta
        if dose_date > limit:
            break
    return iob


def dose_glucose_effect(
    dose: DoseEntry,
    date: datetime,
    model: InsulinModel,
    insulin_sensitivity: float,
    delta: timedelta,
) -> float:
    """Cumulative glucose effect (mg/dL) of one dose at ``date``."""
    elapsed = (date - dose.start_date).total_seconds()
    if elapsed < 0:
        return 0.0
    if dose.duration <= delta * 1.05:
        return dose.net_basal_units * -insulin_sensitivity * (
            1.0 - model.percent_effect_remaining(timedelta(seconds=elapsed))
        )
    return dose.net_basal_units * -insulin_sensitivity * _continuous_delivery_effect(
        dose, elapsed, model, delta.total_seconds()
    )


def dose_insulin_on_board(dose: DoseEntry, date: datetime, model: InsulinModel, delta: timedelta) -> float:
    elapsed = (date - dose.start_date).total_seconds()
    if elapsed < 0:
        return 0.0
    if dose.duration <= delta * 1.05:
        return dose.net_basal_units * model.percent_effect_remaining(timedelta(seconds=elapsed))
    return dose.net_basal_units * _continuous_delivery_insulin_on_board(dose, elapsed, model, delta.total_seconds())


def glucose_effects(
    doses: Sequence[DoseEntry],
    insulin_model_provider: InsulinModelProvider,
    longest_effect_duration: timedelta,
    insulin_sensitivity: Schedule[float],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    delta: timedelta = timedelta(minutes=5),
) -> List[GlucoseEffect]:
    """
    Glucose effect curve of annotated doses on a ``delta`` grid.

    The curve runs from ``start`` (or the earliest dose) to ``end`` (or the last
    dose end plus ``longest_effect_duration``). Each dose uses the insulin
    sensitivity in effect at its start date.

    Raises:
        IncompleteSchedulesError: If no sensitivity value covers a dose.
    """
    date_range = simulation_date_range(
        [dose.start_date for dose in doses],
        [dose.end_date for dose in doses],
        longest_effect_duration,
        delta,
        start=start,
        end=end,
    )
    if date_range is None:
        return []

    prepared = [
        (dose, insulin_model_provider.model(dose.insulin_type), insulin_sensitivity.value_at(dose.start_date))
        for dose in doses
    ]
    effects = [
        GlucoseEffect(
            start_date=date,
            quantity=sum(dose_glucose_effect(dose, date, model, isf, delta) for dose, model, isf in prepared),
        )
        for date in date_grid(date_range[0], date_range[1], delta)
    ]
    logger.debug("Computed %d insulin effect points from %d doses", len(effects), len(prepared))
    return effects


def insulin_on_board(
    doses: Sequence[DoseEntry],
    insulin_model_provider: InsulinModelProvider,
    longest_effect_duration: timedelta,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    delta: timedelta = timedelta(minutes=5),
) -> List[InsulinValue]:
    """Insulin on board (U, relative to scheduled basal) on a ``delta`` grid."""
    date_range = simulation_date_range(
        [dose.start_date for dose in doses],
        [dose.end_date for dose in doses],
        longest_effect_duration,
        delta,
        start=start,
        end=end,
    )
    if date_range is None:
        return []
    prepared = [(dose, insulin_model_provider.model(dose.insulin_type)) for dose in doses]
    return [
        InsulinValue(
            start_date=date,
            value=sum(dose_insulin_on_board(dose, date, model, delta) for dose, model in prepared),
        )
        for date in date_grid(date_range[0], date_range[1], delta)
    ]
