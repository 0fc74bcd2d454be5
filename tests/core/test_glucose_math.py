from datetime import datetime, timedelta

import pytest

from bgcast.core.glucose_math import counteraction_effects, is_continuous, linear_momentum_effect
from bgcast.core.models import GlucoseEffect, GlucoseSample


T0 = datetime(2024, 1, 1, 12, 0)


def _samples(values, step_minutes=5, start=T0, **kwargs):
    return [
        GlucoseSample(start + timedelta(minutes=step_minutes * index), value, **kwargs)
        for index, value in enumerate(values)
    ]


# ---------------------------------------------------------------------------
# Counteraction
# ---------------------------------------------------------------------------

def test_counteraction_without_insulin_is_observed_velocity():
    velocities = counteraction_effects(_samples([100, 105, 115]), [])

    assert len(velocities) == 2
    assert velocities[0].quantity == pytest.approx(1.0)
    assert velocities[1].quantity == pytest.approx(2.0)
    assert velocities[1].start_date == T0 + timedelta(minutes=5)
    assert velocities[1].end_date == T0 + timedelta(minutes=10)


def test_counteraction_removes_modeled_insulin_change():
    insulin = [GlucoseEffect(T0 + timedelta(minutes=m), -float(m)) for m in range(0, 20, 5)]

    velocities = counteraction_effects(_samples([100, 100, 100]), insulin)

    assert [velocity.quantity for velocity in velocities] == pytest.approx([1.0, 1.0])


def test_counteraction_skips_samples_too_close_together():
    glucose = [
        GlucoseSample(T0, 100.0),
        GlucoseSample(T0 + timedelta(minutes=3), 130.0),
        GlucoseSample(T0 + timedelta(minutes=5), 110.0),
    ]

    velocities = counteraction_effects(glucose, [])

    assert len(velocities) == 1
    assert velocities[0].start_date == T0
    assert velocities[0].quantity == pytest.approx(2.0)


def test_counteraction_needs_two_samples():
    assert counteraction_effects(_samples([100]), []) == []


def test_counteraction_ignores_user_entered_pairs():
    glucose = _samples([100, 105])
    glucose.append(GlucoseSample(T0 + timedelta(minutes=10), 140.0, was_user_entered=True))

    velocities = counteraction_effects(glucose, [])

    assert len(velocities) == 1


# ---------------------------------------------------------------------------
# Momentum
# ---------------------------------------------------------------------------

def test_momentum_extrapolates_regression_slope():
    effects = linear_momentum_effect(_samples([100, 110, 120]))

    last = T0 + timedelta(minutes=10)
    assert [effect.start_date for effect in effects] == [last + timedelta(minutes=m) for m in range(0, 35, 5)]
    assert [effect.quantity for effect in effects] == pytest.approx([0, 10, 20, 30, 40, 50, 60])


def test_momentum_with_two_samples():
    effects = linear_momentum_effect(_samples([100, 95]))

    assert effects[1].quantity == pytest.approx(-5.0)


def test_momentum_needs_two_samples():
    assert linear_momentum_effect(_samples([100])) == []
    assert linear_momentum_effect([]) == []


def test_momentum_rejects_gaps_calibrations_and_mixed_sources():
    assert linear_momentum_effect(_samples([100, 110], step_minutes=30)) == []
    assert linear_momentum_effect(_samples([100, 105, 110], was_user_entered=True)) == []

    mixed = _samples([100, 105], provenance_identifier="cgm-a") + _samples(
        [110], start=T0 + timedelta(minutes=10), provenance_identifier="cgm-b"
    )
    assert linear_momentum_effect(mixed) == []


def test_is_continuous():
    assert is_continuous(_samples([100, 101, 102]))
    assert not is_continuous(_samples([100, 101, 102], step_minutes=10))
    assert not is_continuous([])
