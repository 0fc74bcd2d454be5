from datetime import datetime, time, timedelta

import pytest

from bgcast.core.errors import IncompleteSchedulesError
from bgcast.core.schedule import DailyValueSchedule, Schedule


DAY = datetime(2024, 1, 1)


def test_closest_prior_returns_greatest_start_at_or_before_date():
    schedule = Schedule([(DAY + timedelta(hours=6), 2.0), (DAY, 1.0)], name="basal")

    assert schedule.closest_prior(DAY - timedelta(minutes=1)) is None
    assert schedule.closest_prior(DAY).value == 1.0
    assert schedule.closest_prior(DAY + timedelta(hours=5, minutes=59)).value == 1.0
    assert schedule.closest_prior(DAY + timedelta(hours=6)).value == 2.0
    assert schedule.closest_prior(DAY + timedelta(days=3)).value == 2.0


def test_value_at_raises_incomplete_schedules_before_first_entry():
    schedule = Schedule([(DAY, 50.0)], name="sensitivity")

    with pytest.raises(IncompleteSchedulesError) as excinfo:
        schedule.value_at(DAY - timedelta(hours=1))

    assert excinfo.value.schedule_name == "sensitivity"
    assert excinfo.value.date == DAY - timedelta(hours=1)


def test_between_splits_interval_at_schedule_changes():
    schedule = Schedule([(DAY, 1.0), (DAY + timedelta(hours=6), 2.0)])

    segments = schedule.between(DAY + timedelta(hours=5), DAY + timedelta(hours=7))

    assert segments == [
        (DAY + timedelta(hours=5), DAY + timedelta(hours=6), 1.0),
        (DAY + timedelta(hours=6), DAY + timedelta(hours=7), 2.0),
    ]


def test_between_on_empty_schedule_is_empty():
    assert Schedule().between(DAY, DAY + timedelta(hours=1)) == []
    assert not Schedule()


def test_daily_schedule_expands_into_absolute_timeline():
    daily = DailyValueSchedule([(time(6, 0), 1.5), (time(0, 0), 1.0)], name="basal")

    timeline = daily.timeline(DAY + timedelta(hours=4), DAY + timedelta(days=1, hours=4))

    assert [(entry.start_date, entry.value) for entry in timeline] == [
        (DAY + timedelta(hours=4), 1.0),
        (DAY + timedelta(hours=6), 1.5),
        (DAY + timedelta(days=1), 1.0),
    ]
    assert timeline.name == "basal"
    assert timeline.value_at(DAY + timedelta(days=1, hours=3)) == 1.0


def test_daily_schedule_requires_items():
    with pytest.raises(ValueError):
        DailyValueSchedule([])
