from datetime import datetime, timedelta
from pathlib import Path
import sys

import pytest

project_root = Path(__file__).resolve().parents[1]
src_path = project_root / "src"

if src_path.exists():
    sys.path.insert(0, str(src_path))

from bgcast.core.algorithm import AlgorithmEffectsOptions, LoopAlgorithmSettings  # noqa: E402
from bgcast.core.models import GlucoseRange  # noqa: E402
from bgcast.core.schedule import Schedule  # noqa: E402


T0 = datetime(2024, 1, 1, 12, 0)


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def make_settings():
    """Settings with flat schedules starting a day before ``T0``."""

    def _make(
        options=AlgorithmEffectsOptions.ALL,
        schedule_start=T0 - timedelta(days=1),
        sensitivity_start=None,
        isf=50.0,
        basal=1.0,
        carb_ratio=10.0,
        **kwargs,
    ):
        return LoopAlgorithmSettings(
            basal=Schedule([(schedule_start, basal)], name="basal"),
            sensitivity=Schedule([(sensitivity_start or schedule_start, isf)], name="sensitivity"),
            carb_ratio=Schedule([(schedule_start, carb_ratio)], name="carb_ratio"),
            target=Schedule([(schedule_start, GlucoseRange(100.0, 110.0))], name="target"),
            algorithm_effects_options=options,
            **kwargs,
        )

    return _make
