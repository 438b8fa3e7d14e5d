"""Data model definitions shared by the oracle, the stores and the detectors."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Location:
    """Observer location snapshot. Immutable once written into a record."""

    name: str  # Display name ("Bakersfield, CA")
    lat: float  # Latitude (decimal degrees)
    lng: float  # Longitude (decimal degrees)


DEFAULT_LOCATION = Location(name="Bakersfield, CA", lat=35.3733, lng=-119.0187)


# --- Oracle outputs ---


@dataclass(frozen=True)
class SunTimes:
    """Solar events for one local calendar day. Any field is None in polar conditions."""

    sunrise: datetime | None = None
    sunset: datetime | None = None
    solar_noon: datetime | None = None
    civil_dawn: datetime | None = None  # Sun 6° below horizon
    civil_dusk: datetime | None = None
    nautical_dawn: datetime | None = None  # Sun 12° below horizon
    nautical_dusk: datetime | None = None
    astronomical_dawn: datetime | None = None  # Sun 18° below horizon
    astronomical_dusk: datetime | None = None


@dataclass(frozen=True)
class MoonTimes:
    """Moonrise/moonset for one local calendar day."""

    moonrise: datetime | None = None
    moonset: datetime | None = None
    always_up: bool = False
    always_down: bool = False


@dataclass(frozen=True)
class MoonIllumination:
    """Lunar phase at an instant."""

    phase_fraction: float  # 0 = new, 0.5 = full, wraps at 1
    illuminated_fraction: float  # 0-1
    phase_name: str  # One of MOON_PHASE_NAMES

    @property
    def percent_illuminated(self) -> int:
        return round(self.illuminated_fraction * 100)


# --- Daily records ---


@dataclass(frozen=True)
class SolarSnapshot:
    sunrise: datetime | None = None
    sunset: datetime | None = None
    solar_noon: datetime | None = None
    civil_dawn: datetime | None = None
    civil_dusk: datetime | None = None
    daylight_minutes: int | None = None  # sunset - sunrise, whole minutes


@dataclass(frozen=True)
class LunarSnapshot:
    phase: float | None = None  # [0, 1)
    phase_name: str | None = None
    illumination: int | None = None  # Percent illuminated, 0-100
    moonrise: datetime | None = None
    moonset: datetime | None = None


@dataclass(frozen=True)
class DailyRecord:
    """One calendar date of astronomical data. Keyed by ``date.isoformat()``."""

    date: date  # Local calendar date (timezone-naive)
    timestamp: datetime  # When the record was computed
    location: Location
    solar: SolarSnapshot
    lunar: LunarSnapshot

    @property
    def key(self) -> str:
        return self.date.isoformat()


@dataclass(frozen=True)
class DaylightStatistics:
    longest: int | None
    longest_date: date | None
    shortest: int | None
    shortest_date: date | None
    average: int | None  # Rounded mean
    current: int | None  # Most recent record's value


@dataclass(frozen=True)
class LunarStatistics:
    phase_distribution: dict[str, int]  # phase name → occurrence count
    full_moon_count: int
    new_moon_count: int
    last_full_moon: date | None
    last_new_moon: date | None


@dataclass(frozen=True)
class RecordStatistics:
    """Aggregate view over every stored record."""

    total_days_tracked: int
    first_record_date: date | None
    last_record_date: date
    daylight: DaylightStatistics
    lunar: LunarStatistics


# --- Atmosphere ---


@dataclass(frozen=True)
class CurrentConditions:
    """Processed current conditions. Visibility in metres, percentages 0-100."""

    cloud_cover: float | None
    visibility: float | None
    humidity: float | None
    temperature: float | None = None  # Apparent temperature (°C)
    precipitation: float | None = None  # mm
    weather_code: int | None = None  # WMO code
    weather_description: str = "Unknown"
    observation_score: int | None = None  # 0-100, see atmosphere.calculate_observation_score


@dataclass(frozen=True)
class HourlySample:
    """One hour of forecast data."""

    time: datetime
    cloud_cover: float | None
    visibility: float | None
    humidity: float | None
    score: int | None = None
    cloud_cover_low: float | None = None
    cloud_cover_mid: float | None = None
    cloud_cover_high: float | None = None
    dew_point: float | None = None
    temperature: float | None = None
    precip_probability: float | None = None
    weather_code: int | None = None


@dataclass(frozen=True)
class ViewingWindow:
    start: datetime
    end: datetime
    score: int


@dataclass(frozen=True)
class ProcessedAtmosphere:
    """Provider output after scoring. The input to AtmosphereHistoryLog.append."""

    current: CurrentConditions | None
    hourly_forecast: tuple[HourlySample, ...]  # Upcoming hours, at most 24
    best_window: ViewingWindow | None
    timestamp: datetime


@dataclass(frozen=True)
class AtmosphereSnapshot:
    """One entry of the atmosphere history log."""

    timestamp: datetime  # Capture instant
    current: CurrentConditions
    hourly_forecast: tuple[HourlySample, ...] = ()  # At most 6, context only


# --- Patterns ---


class PatternType(str, Enum):
    TREND = "trend"  # Increasing/decreasing over time
    CORRELATION = "correlation"  # Two variables move together
    CYCLE = "cycle"  # Repeating pattern
    ANOMALY = "anomaly"  # Unusual deviation
    OPTIMAL = "optimal"  # Best conditions identified
    SEASONAL = "seasonal"  # Season-based pattern


@dataclass(frozen=True)
class Pattern:
    """A detected statistical assertion.

    ``id`` names the kind+subject ("daylight-trend") and is stable across
    detection runs, so repeated scans collapse onto one stored pattern.
    """

    id: str
    type: PatternType
    title: str
    description: str
    confidence: float  # [0, 1]
    data: dict[str, Any] = field(default_factory=dict)
    icon: str = ""
    detected_at: datetime | None = None
