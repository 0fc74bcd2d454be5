"""
Glucose forecast orchestration.

``LoopAlgorithm.generate_prediction`` is a pure function of its input: it
models insulin, counteraction, carb, retrospective correction and momentum
effects, composes the enabled ones onto the latest glucose sample, applies the
negative insulin damper and returns the forecast with every intermediate curve.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from bgcast.core.carbs import absorption_model_by_name, dynamic_glucose_effects, map_carb_entries
from bgcast.core.config import AlgorithmConfig
from bgcast.core.damper import NegativeInsulinDamper
from bgcast.core.effects import combined_sums, predict_glucose, subtract_effects
from bgcast.core.errors import IncompleteSchedulesError, MissingGlucoseError
from bgcast.core.glucose_math import counteraction_effects, linear_momentum_effect
from bgcast.core.insulin import (
    DEFAULT_INSULIN_ACTIVITY_DURATION,
    InsulinModelProvider,
    PresetInsulinModelProvider,
    annotate_doses,
    glucose_effects,
)
from bgcast.core.models import (
    CarbEntry,
    DoseEntry,
    GlucoseEffect,
    GlucoseEffectVelocity,
    GlucoseRange,
    GlucoseSample,
    PredictedGlucoseValue,
)
from bgcast.core.retrospective_correction import (
    IntegralRetrospectiveCorrection,
    RetrospectiveCorrection,
    StandardRetrospectiveCorrection,
)
from bgcast.core.schedule import Schedule
from bgcast.core.timeline import filter_date_range, floor_date

logger = logging.getLogger("bgcast.algorithm")


class AlgorithmEffectsOptions(enum.Flag):
    CARBS = 1 << 0
    INSULIN = 1 << 1
    MOMENTUM = 1 << 2
    RETROSPECTION = 1 << 3
    DAMPER = 1 << 4
    ALL = CARBS | INSULIN | MOMENTUM | RETROSPECTION | DAMPER

    @classmethod
    def none(cls) -> "AlgorithmEffectsOptions":
        return cls(0)

    @classmethod
    def from_names(cls, names: Sequence[str]) -> "AlgorithmEffectsOptions":
        """Build a flag set from names such as ``["carbs", "insulin"]``."""
        options = cls(0)
        for name in names:
            key = name.strip().upper()
            if not key:
                continue
            try:
                options |= cls[key]
            except KeyError:
                valid = ", ".join(member.name.lower() for member in cls)
                raise ValueError(f"Unknown effect '{name}'. Choose from: {valid}") from None
        return options


@dataclass(frozen=True)
class LoopAlgorithmSettings:
    basal: Schedule[float]
    sensitivity: Schedule[float]
    carb_ratio: Schedule[float]
    target: Schedule[GlucoseRange]
    insulin_activity_duration: timedelta = DEFAULT_INSULIN_ACTIVITY_DURATION
    delta: timedelta = timedelta(minutes=5)
    algorithm_effects_options: AlgorithmEffectsOptions = AlgorithmEffectsOptions.ALL
    use_integral_retrospective_correction: bool = False
    insulin_model_provider: InsulinModelProvider = field(default_factory=PresetInsulinModelProvider)


@dataclass(frozen=True)
class LoopPredictionInput:
    glucose_history: Sequence[GlucoseSample]
    doses: Sequence[DoseEntry]
    carb_entries: Sequence[CarbEntry]
    settings: LoopAlgorithmSettings
    config: AlgorithmConfig = field(default_factory=AlgorithmConfig)


@dataclass(frozen=True)
class LoopAlgorithmEffects:
    insulin: List[GlucoseEffect]
    negative_insulin_damper: List[GlucoseEffect]
    carbs: List[GlucoseEffect]
    retrospective_correction: List[GlucoseEffect]
    momentum: List[GlucoseEffect]
    insulin_counteraction: List[GlucoseEffectVelocity]


@dataclass(frozen=True)
class LoopPrediction:
    glucose: List[PredictedGlucoseValue]
    effects: LoopAlgorithmEffects


class LoopAlgorithm:
    """Stateless entry point; every method is static or a classmethod."""

    @staticmethod
    def retrospective_correction(settings: LoopAlgorithmSettings, config: AlgorithmConfig) -> RetrospectiveCorrection:
        if settings.use_integral_retrospective_correction:
            return IntegralRetrospectiveCorrection(
                config.retrospective_correction_effect_duration,
                settings.delta,
                retrospection_interval=config.retrospection_interval,
            )
        return StandardRetrospectiveCorrection(config.retrospective_correction_effect_duration, settings.delta)

    @classmethod
    def generate_prediction(cls, input: LoopPredictionInput, start_date: Optional[datetime] = None) -> LoopPrediction:
        """
        Forecast glucose from ``input``.

        Args:
            input: Glucose, dose and carb history with therapy settings.
            start_date: Forecast anchor; defaults to the latest glucose date.

        Raises:
            MissingGlucoseError: If the glucose history is empty.
            IncompleteSchedulesError: If a schedule has no value where one is needed.
            ValueError: If a dose starts before the basal schedule.
        """
        if not input.glucose_history:
            raise MissingGlucoseError()

        settings = input.settings
        config = input.config
        options = settings.algorithm_effects_options
        delta = settings.delta
        latest_glucose = input.glucose_history[-1]
        start = start_date or latest_glucose.start_date

        annotated_doses = annotate_doses(input.doses, settings.basal)

        insulin_effects = glucose_effects(
            annotated_doses,
            settings.insulin_model_provider,
            settings.insulin_activity_duration,
            settings.sensitivity,
            start=floor_date(start - config.maximum_absorption_time, delta),
            delta=delta,
        )

        insulin_counteraction = counteraction_effects(input.glucose_history, insulin_effects)

        absorption_model = absorption_model_by_name(config.absorption_model)
        carb_statuses = map_carb_entries(
            input.carb_entries,
            insulin_counteraction,
            settings.carb_ratio,
            settings.sensitivity,
            default_absorption_time=config.default_absorption_time,
            delay=config.carb_effect_delay,
            absorption_time_overrun=config.absorption_time_overrun,
            initial_absorption_time_overrun=config.initial_absorption_time_overrun,
            absorption_model=absorption_model,
        )
        carb_effects = dynamic_glucose_effects(
            carb_statuses,
            start=start - config.retrospection_interval,
            delay=config.carb_effect_delay,
            delta=delta,
            absorption_model=absorption_model,
        )

        discrepancies = subtract_effects(insulin_counteraction, carb_effects, delta)
        discrepancies_summed = combined_sums(discrepancies, config.retrospective_correction_grouping_interval * 1.01)

        current_sensitivity = settings.sensitivity.closest_prior(start)
        current_basal = settings.basal.closest_prior(start)
        current_target = settings.target.closest_prior(start)
        for schedule, entry in (
            (settings.sensitivity, current_sensitivity),
            (settings.basal, current_basal),
            (settings.target, current_target),
        ):
            if entry is None:
                raise IncompleteSchedulesError(schedule.name, start)

        rc_effects = cls.retrospective_correction(settings, config).compute_effect(
            latest_glucose,
            discrepancies_summed,
            recency_interval=config.retrospective_correction_recency_interval,
            insulin_sensitivity=current_sensitivity.value,
            basal_rate=current_basal.value,
            correction_range=current_target.value,
            grouping_interval=config.retrospective_correction_grouping_interval,
        )

        effects = []
        if AlgorithmEffectsOptions.CARBS in options:
            effects.append(carb_effects)
        if AlgorithmEffectsOptions.INSULIN in options:
            effects.append(insulin_effects)
        if AlgorithmEffectsOptions.RETROSPECTION in options:
            effects.append(rc_effects)

        momentum_effects: List[GlucoseEffect] = []
        if AlgorithmEffectsOptions.MOMENTUM in options:
            momentum_samples = filter_date_range(
                input.glucose_history, start - config.momentum_data_interval, start
            )
            momentum_effects = linear_momentum_effect(momentum_samples, config.momentum_duration, delta)

        prediction = predict_glucose(latest_glucose, effects, momentum_effects)

        damper_effects: List[GlucoseEffect] = []
        if AlgorithmEffectsOptions.DAMPER in options:
            prediction, damper_effects = NegativeInsulinDamper(config.damper).apply(prediction, insulin_effects)

        final_date = latest_glucose.start_date + settings.insulin_activity_duration
        if prediction and prediction[-1].start_date < final_date:
            prediction.append(PredictedGlucoseValue(final_date, prediction[-1].quantity))

        logger.debug(
            "Forecast from %s: %d points (insulin=%d carbs=%d rc=%d momentum=%d)",
            start.isoformat(),
            len(prediction),
            len(insulin_effects),
            len(carb_effects),
            len(rc_effects),
            len(momentum_effects),
        )

        return LoopPrediction(
            glucose=prediction,
            effects=LoopAlgorithmEffects(
                insulin=insulin_effects,
                negative_insulin_damper=damper_effects,
                carbs=carb_effects,
                retrospective_correction=rc_effects,
                momentum=momentum_effects,
                insulin_counteraction=insulin_counteraction,
            ),
        )
