from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta


@dataclass(frozen=True)
class DamperConfig:
    """
    Shape of the negative insulin damper.

    Positive prediction deltas are scaled by ``alpha``, which falls linearly
    from 1.0 to ``anchor_alpha`` at ``anchor_point`` mg/dL of summed positive
    insulin effect, then bends to a long-term marginal slope of ``marginal_slope``.
    """
    marginal_slope: float = 0.1
    anchor_point: float = 50.0  # mg/dL
    anchor_alpha: float = 0.8

    def __post_init__(self) -> None:
        if not 0.0 <= self.marginal_slope < 1.0:
            raise ValueError("marginal_slope must be in [0, 1)")
        if self.anchor_point <= 0:
            raise ValueError("anchor_point must be positive")
        if not 0.0 <= self.anchor_alpha < 1.0:
            raise ValueError("anchor_alpha must be in [0, 1)")


@dataclass(frozen=True)
class AlgorithmConfig:
    """
    Central tuning configuration for the prediction engine.
    """
    # Momentum
    momentum_data_interval: timedelta = timedelta(minutes=15)
    momentum_duration: timedelta = timedelta(minutes=30)

    # Retrospective correction
    retrospective_correction_grouping_interval: timedelta = timedelta(minutes=30)
    retrospective_correction_effect_duration: timedelta = timedelta(minutes=60)
    retrospective_correction_recency_interval: timedelta = timedelta(minutes=15)
    retrospection_interval: timedelta = timedelta(minutes=180)

    # Carb absorption
    maximum_absorption_time: timedelta = timedelta(hours=10)
    default_absorption_time: timedelta = timedelta(hours=3)
    carb_effect_delay: timedelta = timedelta(minutes=10)
    absorption_time_overrun: float = 1.5
    initial_absorption_time_overrun: float = 1.5
    absorption_model: str = "piecewise_linear"

    damper: DamperConfig = field(default_factory=DamperConfig)
