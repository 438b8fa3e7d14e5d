"""Astronomy oracle: skyfield almanac calculations for sun/moon events and lunar phase."""

import logging
import math
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Protocol

from pytz import timezone, utc
from pytz.tzinfo import BaseTzInfo
from skyfield import almanac
from skyfield.api import Loader, wgs84
from timezonefinder import TimezoneFinder

from dawnledger.models import MoonIllumination, MoonTimes, SunTimes

logger = logging.getLogger(__name__)

# Horizon thresholds (degrees) matching standard almanac conventions
SUN_HORIZON = -0.8333  # refraction + upper limb
MOON_HORIZON = 0.125
CIVIL_HORIZON = -6.0
NAUTICAL_HORIZON = -12.0
ASTRONOMICAL_HORIZON = -18.0

# Phase-fraction buckets: [start, end). Quarters are centred on 0.25/0.75,
# where illumination is actually ~50%.
MOON_PHASES: tuple[tuple[str, float, float], ...] = (
    ("New Moon", 0.0, 0.03),
    ("Waxing Crescent", 0.03, 0.22),
    ("First Quarter", 0.22, 0.28),
    ("Waxing Gibbous", 0.28, 0.47),
    ("Full Moon", 0.47, 0.53),
    ("Waning Gibbous", 0.53, 0.72),
    ("Last Quarter", 0.72, 0.78),
    ("Waning Crescent", 0.78, 0.97),
)
MOON_PHASE_NAMES: tuple[str, ...] = tuple(name for name, _, _ in MOON_PHASES)
MOON_PHASE_ICONS: dict[str, str] = dict(
    zip(MOON_PHASE_NAMES, ("🌑", "🌒", "🌓", "🌔", "🌕", "🌖", "🌗", "🌘"))
)

_tf = TimezoneFinder()


class AstronomyOracle(Protocol):
    """Deterministic source of sun/moon events for an instant and coordinate."""

    def local_timezone(self, lat: float, lng: float) -> BaseTzInfo: ...

    def compute_sun_times(self, instant: datetime, lat: float, lng: float) -> SunTimes: ...

    def compute_moon_times(
        self, instant: datetime, lat: float, lng: float
    ) -> MoonTimes: ...

    def compute_moon_illumination(self, instant: datetime) -> MoonIllumination: ...


def phase_name_for(phase_fraction: float) -> str:
    """Map a phase fraction (0 = new, 0.5 = full) to one of the 8 phase names.

    Values at or past 0.97 wrap back to "New Moon".
    """
    fraction = phase_fraction % 1.0
    for name, start, end in MOON_PHASES:
        if start <= fraction < end:
            return name
    return MOON_PHASES[0][0]


def daylight_minutes(sun_times: SunTimes) -> int | None:
    """Whole minutes between sunrise and sunset, or None if either is missing."""
    if sun_times.sunrise is None or sun_times.sunset is None:
        return None
    seconds = (sun_times.sunset - sun_times.sunrise).total_seconds()
    if math.isnan(seconds):
        return None
    return math.floor(seconds / 60)


def timezone_for(lat: float, lng: float) -> BaseTzInfo:
    """Resolve the IANA timezone for a coordinate; UTC over open ocean."""
    tz_str = _tf.timezone_at(lat=lat, lng=lng)
    if tz_str is None:
        logger.warning("timezone_not_found", extra={"lat": lat, "lng": lng})
        return utc
    return timezone(tz_str)


class SkyfieldOracle:
    """AstronomyOracle backed by skyfield's almanac and the DE421 ephemeris.

    The ephemeris is opened on first use, so constructing the oracle never
    touches the network or disk.
    """

    def __init__(self, ephemeris_dir: Path | str = "resources") -> None:
        self._loader = Loader(str(ephemeris_dir))
        self._eph = None
        self._ts = None

    def _ephemeris(self):
        if self._eph is None:
            logger.debug("ephemeris_load", extra={"file": "de421.bsp"})
            self._eph = self._loader("de421.bsp")
            self._ts = self._loader.timescale()
        return self._eph

    def local_timezone(self, lat: float, lng: float) -> BaseTzInfo:
        return timezone_for(lat, lng)

    def _day_window(self, instant: datetime, tz: BaseTzInfo):
        """Skyfield Times bracketing the local calendar day that contains instant."""
        self._ephemeris()
        local_day = _as_utc(instant).astimezone(tz).date()
        start = tz.localize(datetime.combine(local_day, time.min))
        end = tz.localize(datetime.combine(local_day + timedelta(days=1), time.min))
        return self._ts.from_datetime(start), self._ts.from_datetime(end)

    def compute_sun_times(self, instant: datetime, lat: float, lng: float) -> SunTimes:
        """Sun events for the local day containing instant.

        Args:
            instant: Any moment of the wanted day. Naive values are read as UTC.
            lat: Latitude (decimal degrees).
            lng: Longitude (decimal degrees).

        Returns:
            SunTimes in the location's local timezone. Events that do not
            occur that day (polar day/night) are None.
        """
        eph = self._ephemeris()
        tz = self.local_timezone(lat, lng)
        t0, t1 = self._day_window(instant, tz)
        sun = eph["sun"]
        observer = eph["earth"] + wgs84.latlon(latitude_degrees=lat, longitude_degrees=lng)

        def rising(horizon: float) -> datetime | None:
            return _first_event(
                almanac.find_risings(observer, sun, t0, t1, horizon_degrees=horizon), tz
            )

        def setting(horizon: float) -> datetime | None:
            return _first_event(
                almanac.find_settings(observer, sun, t0, t1, horizon_degrees=horizon), tz
            )

        transits = almanac.find_transits(observer, sun, t0, t1)
        solar_noon = transits[0].astimezone(tz) if len(transits) else None

        return SunTimes(
            sunrise=rising(SUN_HORIZON),
            sunset=setting(SUN_HORIZON),
            solar_noon=solar_noon,
            civil_dawn=rising(CIVIL_HORIZON),
            civil_dusk=setting(CIVIL_HORIZON),
            nautical_dawn=rising(NAUTICAL_HORIZON),
            nautical_dusk=setting(NAUTICAL_HORIZON),
            astronomical_dawn=rising(ASTRONOMICAL_HORIZON),
            astronomical_dusk=setting(ASTRONOMICAL_HORIZON),
        )

    def compute_moon_times(self, instant: datetime, lat: float, lng: float) -> MoonTimes:
        """Moonrise/moonset for the local day containing instant.

        When the moon neither rises nor sets, its altitude at local noon
        decides between always_up and always_down.
        """
        eph = self._ephemeris()
        tz = self.local_timezone(lat, lng)
        t0, t1 = self._day_window(instant, tz)
        moon = eph["moon"]
        observer = eph["earth"] + wgs84.latlon(latitude_degrees=lat, longitude_degrees=lng)

        moonrise = _first_event(
            almanac.find_risings(observer, moon, t0, t1, horizon_degrees=MOON_HORIZON), tz
        )
        moonset = _first_event(
            almanac.find_settings(observer, moon, t0, t1, horizon_degrees=MOON_HORIZON), tz
        )
        if moonrise is not None or moonset is not None:
            return MoonTimes(moonrise=moonrise, moonset=moonset)

        noon = self._ts.from_datetime(
            tz.localize(datetime.combine(t0.astimezone(tz).date(), time(12)))
        )
        alt, _, _ = observer.at(noon).observe(moon).apparent().altaz()
        up = alt.degrees > MOON_HORIZON
        return MoonTimes(always_up=up, always_down=not up)

    def compute_moon_illumination(self, instant: datetime) -> MoonIllumination:
        eph = self._ephemeris()
        t = self._ts.from_datetime(_as_utc(instant))
        phase_fraction = (almanac.moon_phase(eph, t).degrees % 360.0) / 360.0
        illuminated = float(almanac.fraction_illuminated(eph, "moon", t))
        return MoonIllumination(
            phase_fraction=phase_fraction,
            illuminated_fraction=illuminated,
            phase_name=phase_name_for(phase_fraction),
        )


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=utc)
    return instant.astimezone(utc)


def _first_event(result, tz: BaseTzInfo) -> datetime | None:
    """First genuine horizon crossing from a find_risings/find_settings result."""
    times, flags = result
    for t, crossed in zip(times, flags):
        if crossed:
            return t.astimezone(tz)
    return None


def local_noon(day: date, tz: BaseTzInfo) -> datetime:
    """12:00 local on day. Backfill anchors here so DST shifts never change the date."""
    return tz.localize(datetime.combine(day, time(12)))
