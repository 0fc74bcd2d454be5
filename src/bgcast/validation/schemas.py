from __future__ import annotations

from datetime import datetime, time as dt_time
from typing import Any, List, Literal, Optional

LATEST_SCHEMA_VERSION = "1.0"

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

EFFECT_NAMES = ("carbs", "insulin", "momentum", "retrospection", "damper")


class GlucoseSampleModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: datetime
    value: float = Field(gt=0, le=1000)
    provenance: str = ""
    is_display_only: bool = False
    was_user_entered: bool = False


class DoseModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["bolus", "basal", "temp_basal", "suspend", "resume"]
    start: datetime
    end: Optional[datetime] = None
    value: float = Field(default=0.0, ge=0)
    unit: Literal["U", "U/hour"] = "U"
    delivered_units: Optional[float] = Field(default=None, ge=0)
    insulin_type: Optional[str] = None

    @model_validator(mode="after")
    def _check_interval(self) -> "DoseModel":
        if self.end is not None and self.end < self.start:
            raise ValueError("dose end must not be before start")
        if self.type in {"basal", "temp_basal"} and self.end is None:
            raise ValueError(f"{self.type} doses require an end")
        return self


class CarbEntryModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: datetime
    grams: float = Field(gt=0)
    absorption_minutes: Optional[float] = Field(default=None, gt=0)


class ScheduleItemModel(BaseModel):
    """One schedule item: absolute ``start`` or a daily ``time`` of day."""

    model_config = ConfigDict(extra="forbid")

    start: Optional[datetime] = None
    time: Optional[dt_time] = None
    value: float

    @model_validator(mode="after")
    def _check_anchor(self) -> "ScheduleItemModel":
        if (self.start is None) == (self.time is None):
            raise ValueError("schedule items need exactly one of 'start' or 'time'")
        return self


class TargetItemModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: Optional[datetime] = None
    time: Optional[dt_time] = None
    min: float = Field(gt=0)
    max: float = Field(gt=0)

    @model_validator(mode="after")
    def _check_item(self) -> "TargetItemModel":
        if (self.start is None) == (self.time is None):
            raise ValueError("schedule items need exactly one of 'start' or 'time'")
        if self.min > self.max:
            raise ValueError("target min must not exceed max")
        return self


def _check_single_style(items: List[Any], name: str) -> None:
    styles = {item.start is None for item in items}
    if len(styles) > 1:
        raise ValueError(f"{name} mixes absolute 'start' and daily 'time' items")


class SettingsModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    basal: List[ScheduleItemModel] = Field(min_length=1)
    sensitivity: List[ScheduleItemModel] = Field(min_length=1)
    carb_ratio: List[ScheduleItemModel] = Field(min_length=1)
    target: List[TargetItemModel] = Field(min_length=1)
    insulin_activity_minutes: float = Field(default=370.0, gt=0, le=1440)
    delta_minutes: float = Field(default=5.0, gt=0, le=60)
    effects: List[str] = Field(default_factory=lambda: list(EFFECT_NAMES))
    use_integral_retrospective_correction: bool = False
    insulin_model: Literal["rapid_acting_adult", "rapid_acting_child", "fiasp", "lyumjev", "afrezza"] = "rapid_acting_adult"

    @field_validator("effects", mode="before")
    @classmethod
    def _normalize_effects(cls, value: Any) -> List[str]:
        if value is None:
            return list(EFFECT_NAMES)
        if isinstance(value, str):
            value = [part for part in value.split(",")]
        names = [str(part).strip().lower() for part in value if str(part).strip()]
        if "all" in names:
            return list(EFFECT_NAMES)
        unknown = [name for name in names if name not in EFFECT_NAMES]
        if unknown:
            raise ValueError(f"unknown effects: {', '.join(unknown)}")
        return names

    @model_validator(mode="after")
    def _check_schedules(self) -> "SettingsModel":
        for name in ("basal", "sensitivity", "carb_ratio", "target"):
            _check_single_style(getattr(self, name), name)
        for name in ("sensitivity", "carb_ratio"):
            if any(item.value <= 0 for item in getattr(self, name)):
                raise ValueError(f"{name} values must be > 0")
        if any(item.value < 0 for item in self.basal):
            raise ValueError("basal values must be >= 0")
        return self


class PredictionInputModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: str = Field(default=LATEST_SCHEMA_VERSION, min_length=1)
    description: Optional[str] = None
    glucose: List[GlucoseSampleModel] = Field(default_factory=list)
    doses: List[DoseModel] = Field(default_factory=list)
    carb_entries: List[CarbEntryModel] = Field(default_factory=list)
    settings: SettingsModel

    @field_validator("schema_version", mode="before")
    @classmethod
    def _normalize_schema_version(cls, value: Any) -> str:
        if isinstance(value, (int, float)):
            return str(value)
        if value is None:
            return LATEST_SCHEMA_VERSION
        return str(value)

    @model_validator(mode="after")
    def _check_timezones(self) -> "PredictionInputModel":
        dates = [sample.date for sample in self.glucose]
        dates += [dose.start for dose in self.doses]
        dates += [entry.date for entry in self.carb_entries]
        for items in (self.settings.basal, self.settings.sensitivity, self.settings.carb_ratio, self.settings.target):
            dates += [item.start for item in items if item.start is not None]
        if len({date.tzinfo is None for date in dates}) > 1:
            raise ValueError("all dates must be either timezone-aware or naive")
        return self


class DamperConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    marginal_slope: float = Field(default=0.1, ge=0.0, lt=1.0)
    anchor_point: float = Field(default=50.0, gt=0.0)
    anchor_alpha: float = Field(default=0.8, ge=0.0, lt=1.0)


class AlgorithmConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    momentum_data_interval_minutes: float = Field(default=15.0, gt=0)
    momentum_duration_minutes: float = Field(default=30.0, gt=0)
    retrospective_correction_grouping_interval_minutes: float = Field(default=30.0, gt=0)
    retrospective_correction_effect_duration_minutes: float = Field(default=60.0, gt=0)
    retrospective_correction_recency_interval_minutes: float = Field(default=15.0, gt=0)
    retrospection_interval_minutes: float = Field(default=180.0, gt=0)
    maximum_absorption_time_minutes: float = Field(default=600.0, gt=0)
    default_absorption_time_minutes: float = Field(default=180.0, gt=0)
    carb_effect_delay_minutes: float = Field(default=10.0, ge=0)
    absorption_time_overrun: float = Field(default=1.5, ge=1.0, le=3.0)
    initial_absorption_time_overrun: float = Field(default=1.5, ge=1.0, le=3.0)
    absorption_model: Literal["linear", "parabolic", "piecewise_linear"] = "piecewise_linear"
    damper: DamperConfigModel = Field(default_factory=DamperConfigModel)

    @model_validator(mode="after")
    def _check_absorption(self) -> "AlgorithmConfigModel":
        if self.default_absorption_time_minutes > self.maximum_absorption_time_minutes:
            raise ValueError("default_absorption_time_minutes must not exceed maximum_absorption_time_minutes")
        return self
