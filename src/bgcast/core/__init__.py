from .algorithm import (
    AlgorithmEffectsOptions,
    LoopAlgorithm,
    LoopAlgorithmEffects,
    LoopAlgorithmSettings,
    LoopPrediction,
    LoopPredictionInput,
)
from .config import AlgorithmConfig, DamperConfig
from .damper import NegativeInsulinDamper
from .errors import AlgorithmError, IncompleteSchedulesError, MissingGlucoseError
from .models import (
    CarbEntry,
    CarbValue,
    DoseEntry,
    DoseType,
    DoseUnit,
    GlucoseChange,
    GlucoseEffect,
    GlucoseEffectVelocity,
    GlucoseRange,
    GlucoseSample,
    InsulinValue,
    PredictedGlucoseValue,
)
from .retrospective_correction import (
    IntegralRetrospectiveCorrection,
    RetrospectiveCorrection,
    StandardRetrospectiveCorrection,
)
from .schedule import DailyValueSchedule, Schedule, ScheduleEntry

__all__ = [
    "AlgorithmConfig",
    "AlgorithmEffectsOptions",
    "AlgorithmError",
    "CarbEntry",
    "CarbValue",
    "DailyValueSchedule",
    "DamperConfig",
    "DoseEntry",
    "DoseType",
    "DoseUnit",
    "GlucoseChange",
    "GlucoseEffect",
    "GlucoseEffectVelocity",
    "GlucoseRange",
    "GlucoseSample",
    "IncompleteSchedulesError",
    "InsulinValue",
    "IntegralRetrospectiveCorrection",
    "LoopAlgorithm",
    "LoopAlgorithmEffects",
    "LoopAlgorithmSettings",
    "LoopPrediction",
    "LoopPredictionInput",
    "MissingGlucoseError",
    "NegativeInsulinDamper",
    "PredictedGlucoseValue",
    "RetrospectiveCorrection",
    "Schedule",
    "ScheduleEntry",
    "StandardRetrospectiveCorrection",
]
