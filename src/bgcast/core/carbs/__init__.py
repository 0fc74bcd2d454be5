from .absorption import (
    ABSORPTION_MODELS,
    CarbAbsorptionModel,
    LinearAbsorption,
    ParabolicAbsorption,
    PiecewiseLinearAbsorption,
    absorption_model_by_name,
)
from .math import AbsorbedCarbValue, CarbStatus, carbs_on_board, dynamic_glucose_effects, map_carb_entries

__all__ = [
    "ABSORPTION_MODELS",
    "AbsorbedCarbValue",
    "CarbAbsorptionModel",
    "CarbStatus",
    "LinearAbsorption",
    "ParabolicAbsorption",
    "PiecewiseLinearAbsorption",
    "absorption_model_by_name",
    "carbs_on_board",
    "dynamic_glucose_effects",
    "map_carb_entries",
]
