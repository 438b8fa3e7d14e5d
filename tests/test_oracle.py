from datetime import date, datetime, timedelta

import pytest
import pytz

from dawnledger.models import SunTimes
from dawnledger.oracle import (
    MOON_PHASE_ICONS,
    MOON_PHASE_NAMES,
    daylight_minutes,
    local_noon,
    phase_name_for,
    timezone_for,
)


@pytest.mark.parametrize(
    "fraction, expected",
    [
        (0.0, "New Moon"),
        (0.029, "New Moon"),
        (0.03, "Waxing Crescent"),
        (0.25, "First Quarter"),
        (0.4, "Waxing Gibbous"),
        (0.5, "Full Moon"),
        (0.53, "Waning Gibbous"),
        (0.75, "Last Quarter"),
        (0.9, "Waning Crescent"),
        (0.97, "New Moon"),
        (0.999, "New Moon"),
        (1.0, "New Moon"),
    ],
)
def test_phase_name_for(fraction, expected):
    assert phase_name_for(fraction) == expected


def test_every_phase_has_an_icon():
    assert len(MOON_PHASE_NAMES) == 8
    assert set(MOON_PHASE_ICONS) == set(MOON_PHASE_NAMES)


def test_daylight_minutes_floors():
    sunrise = datetime(2026, 6, 21, 12, 40, 0, tzinfo=pytz.utc)
    sunset = sunrise + timedelta(hours=14, minutes=30, seconds=59)

    assert daylight_minutes(SunTimes(sunrise=sunrise, sunset=sunset)) == 14 * 60 + 30


def test_daylight_minutes_missing_event():
    sunrise = datetime(2026, 6, 21, 12, 40, tzinfo=pytz.utc)

    assert daylight_minutes(SunTimes(sunrise=sunrise)) is None
    assert daylight_minutes(SunTimes()) is None


def test_local_noon_across_dst_change():
    tz = pytz.timezone("America/Los_Angeles")

    before = local_noon(date(2026, 3, 7), tz)
    after = local_noon(date(2026, 3, 8), tz)

    assert before.hour == after.hour == 12
    assert before.date() == date(2026, 3, 7)
    assert after.utcoffset() - before.utcoffset() == timedelta(hours=1)


def test_timezone_for_known_coordinate():
    assert timezone_for(35.3733, -119.0187).zone == "America/Los_Angeles"
