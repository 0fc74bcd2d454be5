"""
Dynamic carbohydrate absorption.

Observed insulin counteraction is attributed to the carb entries that could be
absorbing at the time (``map_carb_entries``). The resulting per-entry absorption
history then drives a glucose effect curve that follows observed absorption and
projects the unabsorbed remainder forward (``dynamic_glucose_effects``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from bgcast.core.carbs.absorption import CarbAbsorptionModel, LinearAbsorption, PiecewiseLinearAbsorption
from bgcast.core.models import CarbEntry, CarbValue, GlucoseEffect, GlucoseEffectVelocity
from bgcast.core.schedule import Schedule
from bgcast.core.timeline import date_grid, simulation_date_range

logger = logging.getLogger("bgcast.carbs")

_EPSILON = 1e-7


@dataclass(frozen=True)
class AbsorbedCarbValue:
    """Absorption summary of one carb entry at the end of its observation window."""

    observed_grams: float
    clamped_grams: float
    total_grams: float
    remaining_grams: float
    observation_start: datetime
    observation_end: datetime
    estimated_time_remaining: timedelta
    time_to_absorb_observed_carbs: timedelta

    @property
    def is_completed(self) -> bool:
        return self.remaining_grams <= _EPSILON


@dataclass(frozen=True)
class CarbStatus:
    """A carb entry together with the absorption observed for it."""

    entry: CarbEntry
    carb_ratio: float
    insulin_sensitivity: float
    initial_absorption_time: timedelta
    max_absorption_time: timedelta
    absorption: Optional[AbsorbedCarbValue] = None
    observed_timeline: Tuple[CarbValue, ...] = ()

    @property
    def carb_sensitivity_factor(self) -> float:
        """mg/dL per gram."""
        return self.insulin_sensitivity / self.carb_ratio

    def dynamic_absorbed_carbs(self, date: datetime, delay: timedelta, model: CarbAbsorptionModel) -> float:
        """Grams absorbed by ``date``: observed inside the observation window, modeled after it."""
        start = self.entry.start_date
        grams = self.entry.grams
        if date < start:
            return 0.0

        absorption = self.absorption
        if absorption is None:
            return model.absorbed_carbs(grams, date - start - delay, self.initial_absorption_time)

        if date <= absorption.observation_end:
            observed = 0.0
            for value in self.observed_timeline:
                if value.end_date <= date:
                    observed += value.grams
                elif value.start_date < date:
                    fraction = (date - value.start_date) / (value.end_date - value.start_date)
                    observed += value.grams * fraction
            return min(observed, grams)

        if absorption.estimated_time_remaining <= timedelta(0):
            return absorption.clamped_grams

        effective_time = date - absorption.observation_end + absorption.time_to_absorb_observed_carbs
        effective_absorption_time = absorption.time_to_absorb_observed_carbs + absorption.estimated_time_remaining
        absorbed = model.absorbed_carbs(grams, effective_time, effective_absorption_time)
        return min(max(absorption.clamped_grams, absorbed), grams)

    def dynamic_carbs_on_board(self, date: datetime, delay: timedelta, model: CarbAbsorptionModel) -> float:
        if date < self.entry.start_date:
            return 0.0
        return max(self.entry.grams - self.dynamic_absorbed_carbs(date, delay, model), 0.0)


class _CarbStatusBuilder:
    def __init__(
        self,
        entry: CarbEntry,
        carb_ratio: float,
        insulin_sensitivity: float,
        initial_absorption_time: timedelta,
        max_absorption_time: timedelta,
        delay: timedelta,
        absorption_model: CarbAbsorptionModel,
    ) -> None:
        self.entry = entry
        self.carb_ratio = carb_ratio
        self.insulin_sensitivity = insulin_sensitivity
        self.initial_absorption_time = initial_absorption_time
        self.max_absorption_time = max_absorption_time
        self.delay = delay
        self.absorption_model = absorption_model

        self.carb_sensitivity_factor = insulin_sensitivity / carb_ratio
        self.entry_effect = entry.grams * self.carb_sensitivity_factor
        self.max_end_date = entry.start_date + max_absorption_time + delay
        self.observed_effect = 0.0
        self.observed_timeline: List[CarbValue] = []
        self.observed_completion_date: Optional[datetime] = None
        self.last_effect_date = entry.start_date

    @property
    def remaining_effect(self) -> float:
        return max(self.entry_effect - self.observed_effect, 0.0)

    @property
    def min_absorption_rate(self) -> float:
        """Grams per minute if the entry absorbed linearly over its maximum time."""
        return self.entry.grams / (self.max_absorption_time.total_seconds() / 60.0)

    @property
    def observed_grams(self) -> float:
        return self.observed_effect / self.carb_sensitivity_factor

    @property
    def min_predicted_grams(self) -> float:
        elapsed = self.last_effect_date - self.entry.start_date - self.delay
        return LinearAbsorption().absorbed_carbs(self.entry.grams, elapsed, self.max_absorption_time)

    @property
    def clamped_grams(self) -> float:
        return min(self.entry.grams, max(self.min_predicted_grams, self.observed_grams))

    @property
    def time_to_absorb_observed_carbs(self) -> timedelta:
        elapsed = self.last_effect_date - self.entry.start_date - self.delay
        return max(timedelta(0), min(elapsed, self.max_absorption_time))

    @property
    def estimated_time_remaining(self) -> timedelta:
        absorbed_time = self.time_to_absorb_observed_carbs
        not_to_exceed = max(self.max_absorption_time - absorbed_time, timedelta(0))
        if not_to_exceed <= timedelta(0) or self.observed_completion_date is not None:
            return timedelta(0)
        if self.entry.grams <= 0:
            return timedelta(0)
        percent_absorbed = self.clamped_grams / self.entry.grams
        if percent_absorbed >= 1.0:
            return timedelta(0)
        if absorbed_time <= timedelta(0) or percent_absorbed <= 0:
            dynamic_remaining = self.initial_absorption_time - absorbed_time
        else:
            total_time = self.absorption_model.absorption_time(percent_absorbed, absorbed_time)
            dynamic_remaining = total_time - absorbed_time
        return max(min(dynamic_remaining, not_to_exceed), timedelta(0))

    def is_active(self, date: datetime) -> bool:
        return self.entry.start_date <= date < self.max_end_date

    def add_next_effect(self, effect: float, start: datetime, end: datetime) -> None:
        if start < self.entry.start_date:
            return
        self.observed_effect += effect
        if self.observed_completion_date is None and self.observed_effect + _EPSILON >= self.entry_effect:
            self.observed_completion_date = end
        self.observed_timeline.append(CarbValue(start, end, effect / self.carb_sensitivity_factor))
        self.last_effect_date = min(max(self.last_effect_date, end), self.max_end_date)

    def result(self) -> CarbStatus:
        absorption = None
        if self.observed_timeline:
            clamped = self.clamped_grams
            absorption = AbsorbedCarbValue(
                observed_grams=self.observed_grams,
                clamped_grams=clamped,
                total_grams=self.entry.grams,
                remaining_grams=max(self.entry.grams - clamped, 0.0),
                observation_start=self.entry.start_date,
                observation_end=self.last_effect_date,
                estimated_time_remaining=self.estimated_time_remaining,
                time_to_absorb_observed_carbs=self.time_to_absorb_observed_carbs,
            )
        return CarbStatus(
            entry=self.entry,
            carb_ratio=self.carb_ratio,
            insulin_sensitivity=self.insulin_sensitivity,
            initial_absorption_time=self.initial_absorption_time,
            max_absorption_time=self.max_absorption_time,
            absorption=absorption,
            observed_timeline=tuple(self.observed_timeline),
        )


def map_carb_entries(
    entries: Sequence[CarbEntry],
    effect_velocities: Sequence[GlucoseEffectVelocity],
    carb_ratio: Schedule[float],
    insulin_sensitivity: Schedule[float],
    default_absorption_time: timedelta = timedelta(hours=3),
    delay: timedelta = timedelta(minutes=10),
    absorption_time_overrun: float = 1.5,
    initial_absorption_time_overrun: float = 1.5,
    absorption_model: Optional[CarbAbsorptionModel] = None,
) -> List[CarbStatus]:
    """
    Attribute counteraction velocities to the carb entries active at the time.

    Each positive velocity is split among active entries in proportion to their
    minimum absorption rate, bounded by each entry's remaining effect; any
    leftover is assigned to the last active entry.

    Raises:
        IncompleteSchedulesError: If carb ratio or sensitivity is missing at an entry.
    """
    absorption_model = absorption_model or PiecewiseLinearAbsorption()
    builders = []
    for entry in entries:
        absorption_time = entry.absorption_time or default_absorption_time
        builders.append(
            _CarbStatusBuilder(
                entry=entry,
                carb_ratio=carb_ratio.value_at(entry.start_date),
                insulin_sensitivity=insulin_sensitivity.value_at(entry.start_date),
                initial_absorption_time=absorption_time * initial_absorption_time_overrun,
                max_absorption_time=absorption_time * absorption_time_overrun,
                delay=delay,
                absorption_model=absorption_model,
            )
        )

    unattributed = 0.0
    for velocity in effect_velocities:
        if velocity.end_date <= velocity.start_date:
            continue
        active = [builder for builder in builders if builder.is_active(velocity.start_date)]

        # Negative velocities usually reflect increased insulin sensitivity, not carbs.
        effect_value = max(0.0, velocity.effect)
        total_rate = sum(builder.min_absorption_rate for builder in active)

        for builder in active:
            partial = 0.0
            if total_rate > 0:
                partial = min(builder.remaining_effect, builder.min_absorption_rate / total_rate * effect_value)
            total_rate -= builder.min_absorption_rate
            effect_value -= partial
            builder.add_next_effect(partial, velocity.start_date, velocity.end_date)

            if effect_value > _EPSILON and builder is active[-1]:
                builder.add_next_effect(effect_value, velocity.start_date, velocity.end_date)
                effect_value = 0.0

        unattributed += effect_value

    if unattributed > _EPSILON:
        logger.debug("%.1f mg/dL of counteraction was not attributed to any carb entry", unattributed)
    return [builder.result() for builder in builders]


def dynamic_glucose_effects(
    statuses: Sequence[CarbStatus],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    delay: timedelta = timedelta(minutes=10),
    delta: timedelta = timedelta(minutes=5),
    absorption_model: Optional[CarbAbsorptionModel] = None,
) -> List[GlucoseEffect]:
    """Glucose effect curve (mg/dL) of carb statuses on a ``delta`` grid."""
    absorption_model = absorption_model or PiecewiseLinearAbsorption()
    date_range = simulation_date_range(
        [status.entry.start_date for status in statuses],
        [status.entry.start_date + status.max_absorption_time + delay for status in statuses],
        timedelta(0),
        delta,
        start=start,
        end=end,
    )
    if date_range is None:
        return []
    return [
        GlucoseEffect(
            start_date=date,
            quantity=sum(
                status.carb_sensitivity_factor * status.dynamic_absorbed_carbs(date, delay, absorption_model)
                for status in statuses
            ),
        )
        for date in date_grid(date_range[0], date_range[1], delta)
    ]


def carbs_on_board(
    statuses: Sequence[CarbStatus],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    delay: timedelta = timedelta(minutes=10),
    delta: timedelta = timedelta(minutes=5),
    absorption_model: Optional[CarbAbsorptionModel] = None,
) -> List[CarbValue]:
    """Unabsorbed grams at each grid date."""
    absorption_model = absorption_model or PiecewiseLinearAbsorption()
    date_range = simulation_date_range(
        [status.entry.start_date for status in statuses],
        [status.entry.start_date + status.max_absorption_time + delay for status in statuses],
        timedelta(0),
        delta,
        start=start,
        end=end,
    )
    if date_range is None:
        return []
    return [
        CarbValue(
            start_date=date,
            end_date=date,
            grams=sum(status.dynamic_carbs_on_board(date, delay, absorption_model) for status in statuses),
        )
        for date in date_grid(date_range[0], date_range[1], delta)
    ]
