# src/bgcast/__init__.py

__version__ = "0.1.0"

# Prediction engine
from .core import (
    AlgorithmConfig,
    AlgorithmEffectsOptions,
    AlgorithmError,
    CarbEntry,
    DailyValueSchedule,
    DamperConfig,
    DoseEntry,
    DoseType,
    DoseUnit,
    GlucoseEffect,
    GlucoseRange,
    GlucoseSample,
    IncompleteSchedulesError,
    LoopAlgorithm,
    LoopAlgorithmSettings,
    LoopPrediction,
    LoopPredictionInput,
    MissingGlucoseError,
    PredictedGlucoseValue,
    Schedule,
)
from .core.insulin import ExponentialInsulinModel, ExponentialInsulinModelPreset, PresetInsulinModelProvider

# File formats
from .validation import load_algorithm_config, load_prediction_input
from .utils.run_io import prediction_to_dataframe, write_json

__all__ = [
    # Engine
    "LoopAlgorithm",
    "LoopAlgorithmSettings",
    "LoopPredictionInput",
    "LoopPrediction",
    "AlgorithmEffectsOptions",
    "AlgorithmConfig",
    "DamperConfig",
    # Errors
    "AlgorithmError",
    "MissingGlucoseError",
    "IncompleteSchedulesError",
    # Records
    "GlucoseSample",
    "GlucoseRange",
    "GlucoseEffect",
    "PredictedGlucoseValue",
    "DoseEntry",
    "DoseType",
    "DoseUnit",
    "CarbEntry",
    "Schedule",
    "DailyValueSchedule",
    # Insulin models
    "ExponentialInsulinModel",
    "ExponentialInsulinModelPreset",
    "PresetInsulinModelProvider",
    # I/O
    "load_prediction_input",
    "load_algorithm_config",
    "prediction_to_dataframe",
    "write_json",
]
