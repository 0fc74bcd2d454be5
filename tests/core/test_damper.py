from datetime import datetime, timedelta

import pytest

from bgcast.core.config import DamperConfig
from bgcast.core.damper import NegativeInsulinDamper
from bgcast.core.models import GlucoseEffect, PredictedGlucoseValue


T0 = datetime(2024, 1, 1, 12, 0)


def _effects(values):
    return [GlucoseEffect(T0 + timedelta(minutes=5 * index), value) for index, value in enumerate(values)]


def _prediction(values):
    return [PredictedGlucoseValue(T0 + timedelta(minutes=5 * index), value) for index, value in enumerate(values)]


def test_default_shape():
    damper = NegativeInsulinDamper()

    assert damper.linear_scale_slope == pytest.approx(0.004)
    assert damper.transition_point == pytest.approx(112.5)


@pytest.mark.parametrize(
    "pos_delta_sum, expected",
    [(0.0, 1.0), (50.0, 0.8), (112.5, 0.55), (200.0, 0.353125)],
)
def test_alpha(pos_delta_sum, expected):
    assert NegativeInsulinDamper().alpha(pos_delta_sum) == pytest.approx(expected)


def test_alpha_is_continuous_at_transition():
    damper = NegativeInsulinDamper()
    point = damper.transition_point

    assert damper.alpha(point - 1e-6) == pytest.approx(damper.alpha(point), abs=1e-6)


def test_positive_delta_sum_counts_rises_only():
    assert NegativeInsulinDamper.positive_delta_sum(_effects([0.0, -5.0, -3.0, -10.0, -8.0])) == pytest.approx(4.0)
    assert NegativeInsulinDamper.positive_delta_sum([]) == 0.0


def test_apply_scales_rises_and_keeps_falls():
    damper = NegativeInsulinDamper()

    damped, effects = damper.apply(_prediction([100.0, 110.0, 105.0]), _effects([0.0, 50.0]))

    assert [value.quantity for value in damped] == pytest.approx([100.0, 108.0, 103.0])
    assert [effect.quantity for effect in effects] == pytest.approx([0.0, -2.0, -2.0])
    assert [value.start_date for value in damped] == [effect.start_date for effect in effects]


def test_apply_without_waning_insulin_is_identity():
    prediction = _prediction([100.0, 110.0, 120.0])

    damped, effects = NegativeInsulinDamper().apply(prediction, _effects([0.0, -10.0, -20.0]))

    assert [value.quantity for value in damped] == pytest.approx([100.0, 110.0, 120.0])
    assert all(effect.quantity == 0.0 for effect in effects)


def test_apply_empty_prediction():
    assert NegativeInsulinDamper().apply([], _effects([0.0, 10.0])) == ([], [])


def test_custom_config():
    damper = NegativeInsulinDamper(DamperConfig(anchor_point=100.0, anchor_alpha=0.5))

    assert damper.transition_point == pytest.approx(90.0)
    assert damper.alpha(50.0) == pytest.approx(0.75)
    assert damper.alpha(100.0) == pytest.approx(0.505)


@pytest.mark.parametrize(
    "kwargs",
    [{"marginal_slope": 1.0}, {"anchor_point": 0.0}, {"anchor_alpha": -0.1}],
)
def test_invalid_damper_config(kwargs):
    with pytest.raises(ValueError):
        DamperConfig(**kwargs)
