from __future__ import annotations

import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import yaml
from pydantic import ValidationError

from bgcast.core.algorithm import AlgorithmEffectsOptions, LoopAlgorithmSettings, LoopPredictionInput
from bgcast.core.config import AlgorithmConfig, DamperConfig
from bgcast.core.insulin import ExponentialInsulinModelPreset, PresetInsulinModelProvider
from bgcast.core.models import CarbEntry, DoseEntry, DoseType, DoseUnit, GlucoseRange, GlucoseSample
from bgcast.core.schedule import DailyValueSchedule, Schedule
from bgcast.validation.schemas import (
    LATEST_SCHEMA_VERSION,
    AlgorithmConfigModel,
    PredictionInputModel,
    SettingsModel,
)


def _read_document(path: Union[str, Path]) -> Dict[str, Any]:
    document_path = Path(path)
    text = document_path.read_text()
    if document_path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError(f"{document_path} does not contain a mapping")
    return data


def validate_prediction_input_dict(data: Dict[str, Any]) -> PredictionInputModel:
    return PredictionInputModel.model_validate(data)


def load_prediction_input_model(path: Union[str, Path]) -> PredictionInputModel:
    return validate_prediction_input_dict(_read_document(path))


def load_prediction_input(
    path: Union[str, Path],
    config: Optional[AlgorithmConfig] = None,
) -> LoopPredictionInput:
    """Read a JSON or YAML prediction input document and convert it to engine types."""
    return build_prediction_input(load_prediction_input_model(path), config=config)


def validate_algorithm_config_dict(data: Dict[str, Any]) -> AlgorithmConfigModel:
    return AlgorithmConfigModel.model_validate(data or {})


def load_algorithm_config(path: Union[str, Path]) -> AlgorithmConfig:
    config_path = Path(path)
    data = yaml.safe_load(config_path.read_text())
    return build_algorithm_config(validate_algorithm_config_dict(data))


def build_algorithm_config(model: AlgorithmConfigModel) -> AlgorithmConfig:
    return AlgorithmConfig(
        momentum_data_interval=timedelta(minutes=model.momentum_data_interval_minutes),
        momentum_duration=timedelta(minutes=model.momentum_duration_minutes),
        retrospective_correction_grouping_interval=timedelta(
            minutes=model.retrospective_correction_grouping_interval_minutes
        ),
        retrospective_correction_effect_duration=timedelta(
            minutes=model.retrospective_correction_effect_duration_minutes
        ),
        retrospective_correction_recency_interval=timedelta(
            minutes=model.retrospective_correction_recency_interval_minutes
        ),
        retrospection_interval=timedelta(minutes=model.retrospection_interval_minutes),
        maximum_absorption_time=timedelta(minutes=model.maximum_absorption_time_minutes),
        default_absorption_time=timedelta(minutes=model.default_absorption_time_minutes),
        carb_effect_delay=timedelta(minutes=model.carb_effect_delay_minutes),
        absorption_time_overrun=model.absorption_time_overrun,
        initial_absorption_time_overrun=model.initial_absorption_time_overrun,
        absorption_model=model.absorption_model,
        damper=DamperConfig(
            marginal_slope=model.damper.marginal_slope,
            anchor_point=model.damper.anchor_point,
            anchor_alpha=model.damper.anchor_alpha,
        ),
    )


def _input_dates(model: PredictionInputModel) -> List[datetime]:
    dates = [sample.date for sample in model.glucose]
    for dose in model.doses:
        dates.append(dose.start)
        if dose.end is not None:
            dates.append(dose.end)
    dates += [entry.date for entry in model.carb_entries]
    return dates


def _build_schedule(items: Sequence[Any], name: str, value_of, window: Optional[tuple]) -> Schedule:
    if all(item.start is not None for item in items):
        return Schedule([(item.start, value_of(item)) for item in items], name=name)
    if window is None:
        return Schedule([], name=name)
    daily = DailyValueSchedule([(item.time, value_of(item)) for item in items], name=name)
    return daily.timeline(window[0], window[1])


def build_settings(settings: SettingsModel, dates: Sequence[datetime]) -> LoopAlgorithmSettings:
    """
    Convert settings to engine types.

    Daily (``time``) schedules are expanded over the span of ``dates`` padded by
    one day on each side.
    """
    window = None
    if dates:
        window = (min(dates) - timedelta(days=1), max(dates) + timedelta(days=1))

    def plain_value(item: Any) -> float:
        return item.value

    def target_value(item: Any) -> GlucoseRange:
        return GlucoseRange(item.min, item.max)

    preset = ExponentialInsulinModelPreset(settings.insulin_model)
    return LoopAlgorithmSettings(
        basal=_build_schedule(settings.basal, "basal", plain_value, window),
        sensitivity=_build_schedule(settings.sensitivity, "sensitivity", plain_value, window),
        carb_ratio=_build_schedule(settings.carb_ratio, "carb_ratio", plain_value, window),
        target=_build_schedule(settings.target, "target", target_value, window),
        insulin_activity_duration=timedelta(minutes=settings.insulin_activity_minutes),
        delta=timedelta(minutes=settings.delta_minutes),
        algorithm_effects_options=AlgorithmEffectsOptions.from_names(settings.effects),
        use_integral_retrospective_correction=settings.use_integral_retrospective_correction,
        insulin_model_provider=PresetInsulinModelProvider(default_rapid_acting_model=preset.model),
    )


def build_prediction_input(
    model: PredictionInputModel,
    config: Optional[AlgorithmConfig] = None,
) -> LoopPredictionInput:
    glucose = [
        GlucoseSample(
            start_date=sample.date,
            quantity=sample.value,
            provenance_identifier=sample.provenance,
            is_display_only=sample.is_display_only,
            was_user_entered=sample.was_user_entered,
        )
        for sample in sorted(model.glucose, key=lambda sample: sample.date)
    ]
    doses = [
        DoseEntry(
            type=DoseType(dose.type),
            start_date=dose.start,
            end_date=dose.end if dose.end is not None else dose.start,
            value=dose.value,
            unit=DoseUnit(dose.unit),
            delivered_units=dose.delivered_units,
            insulin_type=dose.insulin_type,
        )
        for dose in sorted(model.doses, key=lambda dose: dose.start)
    ]
    carb_entries = [
        CarbEntry(
            start_date=entry.date,
            grams=entry.grams,
            absorption_time=(
                timedelta(minutes=entry.absorption_minutes) if entry.absorption_minutes is not None else None
            ),
        )
        for entry in sorted(model.carb_entries, key=lambda entry: entry.date)
    ]
    return LoopPredictionInput(
        glucose_history=glucose,
        doses=doses,
        carb_entries=carb_entries,
        settings=build_settings(model.settings, _input_dates(model)),
        config=config or AlgorithmConfig(),
    )


def prediction_input_warnings(model: PredictionInputModel) -> List[str]:
    warnings: List[str] = []
    if model.schema_version != LATEST_SCHEMA_VERSION:
        warnings.append(f"schema_version {model.schema_version} differs from {LATEST_SCHEMA_VERSION}")
    if not model.glucose:
        warnings.append("glucose: history is empty; no forecast can be made")
    dates = [sample.date for sample in model.glucose]
    if dates != sorted(dates):
        warnings.append("glucose: samples are not in ascending order and will be sorted")
    for idx, sample in enumerate(model.glucose):
        if sample.value < 40 or sample.value > 400:
            warnings.append(f"glucose[{idx}]: value {sample.value} mg/dL is outside the sensor range 40-400")
    for idx, dose in enumerate(model.doses):
        if dose.type == "bolus" and dose.value > 25:
            warnings.append(f"doses[{idx}]: bolus of {dose.value}U is unusually high")
    for idx, entry in enumerate(model.carb_entries):
        if entry.grams > 200:
            warnings.append(f"carb_entries[{idx}]: {entry.grams}g is unusually high")
        if entry.absorption_minutes is not None and entry.absorption_minutes > 600:
            warnings.append(f"carb_entries[{idx}]: absorption_minutes {entry.absorption_minutes} is unusual")

    basal_starts = [item.start for item in model.settings.basal if item.start is not None]
    if basal_starts and model.doses:
        first_dose = min(dose.start for dose in model.doses)
        if first_dose < min(basal_starts):
            warnings.append("settings.basal: schedule starts after the first dose; prediction will fail")
    return warnings


def format_validation_error(error: ValidationError) -> List[str]:
    lines: List[str] = []
    for entry in error.errors():
        loc = ".".join(str(item) for item in entry.get("loc", []))
        msg = entry.get("msg", "Invalid value")
        lines.append(f"{loc}: {msg}")
    return lines


__all__ = [
    "AlgorithmConfigModel",
    "PredictionInputModel",
    "build_algorithm_config",
    "build_prediction_input",
    "build_settings",
    "format_validation_error",
    "load_algorithm_config",
    "load_prediction_input",
    "load_prediction_input_model",
    "prediction_input_warnings",
    "validate_algorithm_config_dict",
    "validate_prediction_input_dict",
]
