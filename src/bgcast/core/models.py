"""Typed value records shared by every stage of the prediction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class GlucoseSample:
    """One glucose measurement (mg/dL)."""

    start_date: datetime
    quantity: float
    provenance_identifier: str = ""
    is_display_only: bool = False
    was_user_entered: bool = False


@dataclass(frozen=True)
class GlucoseRange:
    """Correction (target) range in mg/dL."""

    min_value: float
    max_value: float

    def __post_init__(self) -> None:
        if self.min_value > self.max_value:
            raise ValueError(f"Invalid glucose range: {self.min_value} > {self.max_value}")


class DoseType(Enum):
    BOLUS = "bolus"
    BASAL = "basal"
    TEMP_BASAL = "temp_basal"
    SUSPEND = "suspend"
    RESUME = "resume"


class DoseUnit(Enum):
    UNITS = "U"
    UNITS_PER_HOUR = "U/hour"


@dataclass(frozen=True)
class DoseEntry:
    """
    A single insulin delivery record.

    ``value`` is interpreted according to ``unit``: a total amount for
    ``UNITS`` or a rate for ``UNITS_PER_HOUR``. ``scheduled_basal_rate`` is only
    populated once the dose has been annotated against a basal schedule.
    """

    type: DoseType
    start_date: datetime
    end_date: datetime
    value: float
    unit: DoseUnit = DoseUnit.UNITS
    delivered_units: Optional[float] = None
    insulin_type: Optional[str] = None
    scheduled_basal_rate: Optional[float] = None

    def __post_init__(self) -> None:
        if self.end_date < self.start_date:
            raise ValueError(f"Dose ends before it starts: {self.start_date} > {self.end_date}")

    @property
    def duration(self) -> timedelta:
        return self.end_date - self.start_date

    @property
    def hours(self) -> float:
        return self.duration.total_seconds() / 3600.0

    @property
    def programmed_units(self) -> float:
        if self.unit == DoseUnit.UNITS:
            return self.value
        return self.value * self.hours

    @property
    def units(self) -> float:
        """Units actually delivered, falling back to the programmed amount."""
        return self.delivered_units if self.delivered_units is not None else self.programmed_units

    @property
    def units_per_hour(self) -> float:
        if self.type == DoseType.SUSPEND:
            return 0.0
        if self.unit == DoseUnit.UNITS_PER_HOUR:
            return self.value
        if self.hours <= 0:
            return 0.0
        return self.units / self.hours

    @property
    def net_basal_units_per_hour(self) -> float:
        if self.type in (DoseType.BOLUS, DoseType.BASAL, DoseType.RESUME):
            return 0.0
        if self.scheduled_basal_rate is None:
            return 0.0
        return self.units_per_hour - self.scheduled_basal_rate

    @property
    def net_basal_units(self) -> float:
        """Units delivered relative to what the scheduled basal would have delivered."""
        if self.type == DoseType.BOLUS:
            return self.units
        if self.hours <= 0:
            return 0.0
        return self.net_basal_units_per_hour * self.hours

    def trimmed(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> "DoseEntry":
        """Return the part of a rate-based dose that falls within ``[start, end]``."""
        new_start = max(self.start_date, start) if start is not None else self.start_date
        new_end = min(self.end_date, end) if end is not None else self.end_date
        new_end = max(new_start, new_end)
        fraction = 1.0
        if self.hours > 0:
            fraction = (new_end - new_start).total_seconds() / self.duration.total_seconds()
        value = self.value * fraction if self.unit == DoseUnit.UNITS else self.value
        delivered = self.delivered_units * fraction if self.delivered_units is not None else None
        return replace(self, start_date=new_start, end_date=new_end, value=value, delivered_units=delivered)


@dataclass(frozen=True)
class CarbEntry:
    start_date: datetime
    grams: float
    absorption_time: Optional[timedelta] = None


@dataclass(frozen=True)
class GlucoseEffect:
    """A point on a glucose-effect curve: cumulative mg/dL change at ``start_date``."""

    start_date: datetime
    quantity: float


@dataclass(frozen=True)
class GlucoseEffectVelocity:
    """Average rate of glucose change (mg/dL per minute) over an interval."""

    start_date: datetime
    end_date: datetime
    quantity: float

    @property
    def duration(self) -> timedelta:
        return self.end_date - self.start_date

    @property
    def effect(self) -> float:
        """Total mg/dL change over the interval."""
        return self.quantity * self.duration.total_seconds() / 60.0


@dataclass(frozen=True)
class GlucoseChange:
    """A summed glucose change over ``[start_date, end_date]``."""

    start_date: datetime
    end_date: datetime
    quantity: float


@dataclass(frozen=True)
class PredictedGlucoseValue:
    start_date: datetime
    quantity: float


@dataclass(frozen=True)
class InsulinValue:
    """Insulin on board (U) at ``start_date``."""

    start_date: datetime
    value: float


@dataclass(frozen=True)
class CarbValue:
    """Grams of carbohydrate over ``[start_date, end_date]``."""

    start_date: datetime
    end_date: datetime
    grams: float
