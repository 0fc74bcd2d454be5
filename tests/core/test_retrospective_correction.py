from datetime import datetime, timedelta

import pytest

from bgcast.core.models import GlucoseChange, GlucoseRange, GlucoseSample
from bgcast.core.retrospective_correction import (
    IntegralRetrospectiveCorrection,
    StandardRetrospectiveCorrection,
)


T0 = datetime(2024, 1, 1, 12, 0)
GROUPING = timedelta(minutes=30)
RECENCY = timedelta(minutes=15)
TARGET = GlucoseRange(100.0, 110.0)


def _buckets(values, end=T0):
    """Discrepancy buckets ending every 5 minutes up to ``end``, oldest first."""
    count = len(values)
    buckets = []
    for index, value in enumerate(values):
        bucket_end = end - timedelta(minutes=5 * (count - 1 - index))
        buckets.append(GlucoseChange(bucket_end - GROUPING, bucket_end, value))
    return buckets


def _compute(rc, buckets, glucose=150.0, isf=50.0, basal=1.0):
    return rc.compute_effect(
        GlucoseSample(T0, glucose),
        buckets,
        recency_interval=RECENCY,
        insulin_sensitivity=isf,
        basal_rate=basal,
        correction_range=TARGET,
        grouping_interval=GROUPING,
    )


# ---------------------------------------------------------------------------
# Standard
# ---------------------------------------------------------------------------

def test_standard_decays_latest_discrepancy():
    effects = _compute(StandardRetrospectiveCorrection(), _buckets([15.0]))

    assert effects[0].start_date == T0
    assert effects[0].quantity == 0.0
    assert effects[-1].start_date == T0 + timedelta(minutes=60)
    # 0.5 mg/dL/min decaying linearly over an hour
    assert effects[-1].quantity == pytest.approx(0.5 * 27.5)


def test_standard_ignores_stale_discrepancy():
    stale = _buckets([15.0], end=T0 - timedelta(minutes=20))

    assert _compute(StandardRetrospectiveCorrection(), stale) == []
    assert _compute(StandardRetrospectiveCorrection(), []) == []


@pytest.mark.parametrize("rc", [StandardRetrospectiveCorrection(), IntegralRetrospectiveCorrection()])
def test_discrepancy_ending_at_recency_boundary_is_used(rc):
    boundary = _buckets([15.0], end=T0 - RECENCY)

    effects = _compute(rc, boundary)

    assert effects
    assert effects[-1].quantity > 0.0


@pytest.mark.parametrize("rc", [StandardRetrospectiveCorrection(), IntegralRetrospectiveCorrection()])
def test_zero_discrepancy_gives_zero_correction(rc):
    effects = _compute(rc, _buckets([0.0, 0.0, 0.0]))

    assert effects
    assert all(effect.quantity == pytest.approx(0.0) for effect in effects)


# ---------------------------------------------------------------------------
# Integral
# ---------------------------------------------------------------------------

def test_integral_gains():
    rc = IntegralRetrospectiveCorrection()

    assert rc.integral_forget == pytest.approx(0.920044, rel=1e-5)
    assert rc.proportional_gain + rc.integral_gain == pytest.approx(1.0)


def test_integral_matches_standard_for_single_bucket():
    buckets = _buckets([15.0])

    integral = _compute(IntegralRetrospectiveCorrection(), buckets, glucose=200.0)
    standard = _compute(StandardRetrospectiveCorrection(), buckets, glucose=200.0)

    assert [effect.quantity for effect in integral] == pytest.approx([effect.quantity for effect in standard])


def test_integral_limits():
    rc = IntegralRetrospectiveCorrection()

    assert rc.integral_limits(100.0, 50.0, 1.0, GlucoseRange(90.0, 110.0)) == (-10.0, 25.0)
    assert rc.integral_limits(400.0, 50.0, 1.0, GlucoseRange(90.0, 110.0)) == (-310.0, 200.0)


def test_integral_effect_duration_grows_with_persistent_discrepancy():
    short = _compute(IntegralRetrospectiveCorrection(), _buckets([5.0]))
    long = _compute(IntegralRetrospectiveCorrection(), _buckets([5.0] * 20))

    assert long[-1].start_date == T0 + timedelta(minutes=180)
    assert short[-1].start_date == T0 + timedelta(minutes=60)
    assert long[-1].quantity > short[-1].quantity


def test_integral_run_stops_at_sign_change():
    mixed = _compute(IntegralRetrospectiveCorrection(), _buckets([5.0] * 10 + [-5.0, 5.0]))
    single = _compute(IntegralRetrospectiveCorrection(), _buckets([5.0]))

    assert [effect.quantity for effect in mixed] == pytest.approx([effect.quantity for effect in single])


def test_integral_differential_strengthens_worsening_negative_discrepancy():
    worsening = _compute(IntegralRetrospectiveCorrection(), _buckets([-5.0, -10.0]))
    steady = _compute(IntegralRetrospectiveCorrection(), _buckets([-10.0, -10.0]))

    assert len(worsening) == len(steady)
    assert worsening[-1].quantity < steady[-1].quantity < 0.0


def test_integral_ignores_buckets_before_retrospection_interval():
    recent = _buckets([2.0] * 36)
    with_history = _buckets([40.0] * 36 + [2.0] * 36)

    baseline = _compute(IntegralRetrospectiveCorrection(), recent)
    extended = _compute(IntegralRetrospectiveCorrection(), with_history)

    assert with_history[0].end_date < T0 - timedelta(minutes=180)
    assert [effect.quantity for effect in extended] == pytest.approx([effect.quantity for effect in baseline])


def test_integral_retrospection_interval_is_configurable():
    buckets = _buckets([5.0] * 20)

    short = _compute(IntegralRetrospectiveCorrection(retrospection_interval=timedelta(minutes=10)), buckets)
    single = _compute(IntegralRetrospectiveCorrection(), _buckets([5.0, 5.0]))

    assert [effect.quantity for effect in short] == pytest.approx([effect.quantity for effect in single])
