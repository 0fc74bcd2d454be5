from .models import (
    DEFAULT_INSULIN_ACTIVITY_DURATION,
    ExponentialInsulinModel,
    ExponentialInsulinModelPreset,
    InsulinModel,
    InsulinModelProvider,
    PresetInsulinModelProvider,
    StaticInsulinModelProvider,
    WalshInsulinModel,
)
from .math import annotate_doses, glucose_effects, insulin_on_board

__all__ = [
    "DEFAULT_INSULIN_ACTIVITY_DURATION",
    "ExponentialInsulinModel",
    "ExponentialInsulinModelPreset",
    "InsulinModel",
    "InsulinModelProvider",
    "PresetInsulinModelProvider",
    "StaticInsulinModelProvider",
    "WalshInsulinModel",
    "annotate_doses",
    "glucose_effects",
    "insulin_on_board",
]
