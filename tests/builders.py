"""Record/snapshot builders and a deterministic fake oracle shared by the tests."""

from datetime import date, datetime, time, timedelta

import pytz

from dawnledger.models import (
    DEFAULT_LOCATION,
    AtmosphereSnapshot,
    CurrentConditions,
    DailyRecord,
    LunarSnapshot,
    MoonIllumination,
    MoonTimes,
    Pattern,
    PatternType,
    SolarSnapshot,
    SunTimes,
)
from dawnledger.oracle import phase_name_for

TZ = pytz.timezone("America/Los_Angeles")
ANCHOR = date(2026, 1, 1)


def local(day: date, hour: int = 12, minute: int = 0) -> datetime:
    return TZ.localize(datetime.combine(day, time(hour, minute)))


def at_minutes(day: date, minutes: int | None) -> datetime | None:
    if minutes is None:
        return None
    return TZ.localize(datetime.combine(day, time.min)) + timedelta(minutes=minutes)


def make_record(
    day: date,
    daylight: int | None = None,
    sunrise: int | None = None,
    sunset: int | None = None,
    phase_name: str | None = None,
    illumination: int | None = None,
) -> DailyRecord:
    """Build a record; sunrise/sunset are minutes after local midnight."""
    return DailyRecord(
        date=day,
        timestamp=local(day),
        location=DEFAULT_LOCATION,
        solar=SolarSnapshot(
            sunrise=at_minutes(day, sunrise),
            sunset=at_minutes(day, sunset),
            daylight_minutes=daylight,
        ),
        lunar=LunarSnapshot(phase_name=phase_name, illumination=illumination),
    )


def daylight_series(start: date, values: list[int | None]) -> list[DailyRecord]:
    return [make_record(start + timedelta(days=i), daylight=v) for i, v in enumerate(values)]


def make_entry(
    timestamp: datetime,
    cloud_cover: float | None = 50,
    visibility: float | None = 20000,
    humidity: float | None = 40,
    score: int | None = 60,
) -> AtmosphereSnapshot:
    return AtmosphereSnapshot(
        timestamp=timestamp,
        current=CurrentConditions(
            cloud_cover=cloud_cover,
            visibility=visibility,
            humidity=humidity,
            observation_score=score,
        ),
    )


def make_pattern(pattern_id: str, confidence: float, **overrides) -> Pattern:
    values = {
        "id": pattern_id,
        "type": PatternType.TREND,
        "title": pattern_id,
        "description": "",
        "confidence": confidence,
    }
    values.update(overrides)
    return Pattern(**values)


class FakeOracle:
    """Linear, date-driven astronomy.

    Relative to ANCHOR: sunrise moves 1 min earlier and sunset 1 min later
    per day (daylight +2 min/day); the moon runs a 29.5-day cycle.
    """

    def __init__(self, fail_on: set[date] | None = None, nan_on: set[date] | None = None):
        self.fail_on = fail_on or set()
        self.nan_on = nan_on or set()
        self.calls: list[tuple[str, datetime]] = []

    def local_timezone(self, lat, lng):
        return TZ

    def _offset(self, instant: datetime) -> int:
        return (instant.astimezone(TZ).date() - ANCHOR).days

    def compute_sun_times(self, instant, lat, lng):
        self.calls.append(("sun", instant))
        day = instant.astimezone(TZ).date()
        if day in self.fail_on:
            raise ValueError("no ephemeris coverage")
        if day in self.nan_on:
            return SunTimes(sunrise=float("nan"), sunset=at_minutes(day, 17 * 60))
        offset = self._offset(instant)
        return SunTimes(
            sunrise=at_minutes(day, 7 * 60 - offset),
            sunset=at_minutes(day, 17 * 60 + offset),
            solar_noon=at_minutes(day, 12 * 60),
            civil_dawn=at_minutes(day, 7 * 60 - offset - 25),
            civil_dusk=at_minutes(day, 17 * 60 + offset + 25),
        )

    def compute_moon_times(self, instant, lat, lng):
        self.calls.append(("moon", instant))
        day = instant.astimezone(TZ).date()
        return MoonTimes(moonrise=at_minutes(day, 20 * 60), moonset=at_minutes(day, 8 * 60))

    def compute_moon_illumination(self, instant):
        self.calls.append(("illumination", instant))
        fraction = (self._offset(instant) % 29.5) / 29.5
        illuminated = 1 - abs(1 - 2 * fraction)
        return MoonIllumination(
            phase_fraction=fraction,
            illuminated_fraction=illuminated,
            phase_name=phase_name_for(fraction),
        )
