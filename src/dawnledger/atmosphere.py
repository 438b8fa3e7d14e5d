"""Atmosphere provider: Open-Meteo client plus observation scoring and refresh state."""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

import httpx

from dawnledger.config import OPEN_METEO_URL
from dawnledger.errors import FetchError
from dawnledger.models import (
    CurrentConditions,
    HourlySample,
    ProcessedAtmosphere,
    ViewingWindow,
)

logger = logging.getLogger(__name__)

GOOD_SCORE = 70
REFRESH_INTERVAL = timedelta(minutes=15)

_CURRENT_VARS = (
    "cloud_cover",
    "visibility",
    "relative_humidity_2m",
    "apparent_temperature",
    "precipitation",
    "weather_code",
)
_HOURLY_VARS = (
    "cloud_cover",
    "cloud_cover_low",
    "cloud_cover_mid",
    "cloud_cover_high",
    "visibility",
    "relative_humidity_2m",
    "dew_point_2m",
    "apparent_temperature",
    "precipitation_probability",
    "weather_code",
)

_WMO_DESCRIPTIONS: dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with hail",
    99: "Thunderstorm with heavy hail",
}


class OpenMeteoClient:
    """Thin wrapper over the Open-Meteo forecast endpoint."""

    def __init__(
        self,
        base_url: str = OPEN_METEO_URL,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._client = client

    def fetch(self, lat: float, lng: float) -> dict:
        """Fetch current + hourly conditions for a coordinate.

        Raises:
            FetchError: Network failure or non-2xx response.
        """
        params = {
            "latitude": lat,
            "longitude": lng,
            "current": ",".join(_CURRENT_VARS),
            "hourly": ",".join(_HOURLY_VARS),
            "timezone": "auto",
            "forecast_days": 2,
        }
        try:
            if self._client is not None:
                resp = self._client.get(self.base_url, params=params, timeout=self.timeout)
            else:
                resp = httpx.get(self.base_url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise FetchError(
                f"Failed to fetch atmospheric data: {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise FetchError(f"Failed to fetch atmospheric data: {e}") from e


def calculate_observation_score(
    cloud_cover: float, visibility: float, humidity: float
) -> int:
    """0-100 composite; higher is better for sky observation.

    Cloud cover contributes up to 40 points (0% cloud), visibility up to 35
    (20 km or more), humidity up to 25 (40% or less, zero at 90%).
    """
    cloud_score = max(0.0, 40 - cloud_cover * 0.4)
    visibility_score = min(35.0, visibility / 1000 * 1.75)
    humidity_score = 25.0
    if humidity > 40:
        humidity_score = max(0.0, 25 - (humidity - 40) * 0.5)
    return round(cloud_score + visibility_score + humidity_score)


def observation_rating(score: int) -> str:
    if score >= 85:
        return "Excellent"
    if score >= GOOD_SCORE:
        return "Good"
    if score >= 50:
        return "Fair"
    if score >= 30:
        return "Poor"
    return "Bad"


def transparency_rating(visibility: float, humidity: float) -> str:
    km = visibility / 1000
    if km >= 20 and humidity < 50:
        return "Excellent"
    if km >= 15 and humidity < 60:
        return "Good"
    if km >= 10 and humidity < 75:
        return "Fair"
    return "Poor"


def weather_description(code: int | None) -> str:
    if code is None:
        return "Unknown"
    return _WMO_DESCRIPTIONS.get(code, "Unknown")


def find_best_viewing_window(
    hourly: tuple[HourlySample, ...] | list[HourlySample], now: datetime
) -> ViewingWindow | None:
    """Best run of good hours (score >= 70) within the first 24 slots.

    The window starts where the run holding the highest score began and
    ends at the last good slot seen.
    """
    best_score = -1
    window_start = window_end = run_start = None

    for sample in list(hourly)[:24]:
        if sample.time < now or sample.score is None:
            continue
        if sample.score >= GOOD_SCORE:
            if run_start is None:
                run_start = sample.time
            window_end = sample.time
            if sample.score > best_score:
                best_score = sample.score
                window_start = run_start
        else:
            run_start = None

    if best_score >= GOOD_SCORE and window_start is not None:
        return ViewingWindow(start=window_start, end=window_end, score=best_score)
    return None


def _score_or_none(cloud, visibility, humidity) -> int | None:
    if cloud is None or visibility is None or humidity is None:
        return None
    return calculate_observation_score(cloud, visibility, humidity)


def _column(hourly: dict, name: str, i: int):
    values = hourly.get(name) or []
    return values[i] if i < len(values) else None


def process_atmospheric_data(raw: dict, now: datetime | None = None) -> ProcessedAtmosphere:
    """Turn a raw Open-Meteo payload into scored conditions.

    Hourly times are local wall-clock strings (``timezone=auto``); they are
    stamped with ``now``'s tzinfo so they compare against it.
    """
    now = now or datetime.now().astimezone()
    current_raw = raw.get("current")
    hourly_raw = raw.get("hourly") or {}

    current = None
    if current_raw:
        cloud = current_raw.get("cloud_cover")
        visibility = current_raw.get("visibility")
        humidity = current_raw.get("relative_humidity_2m")
        code = current_raw.get("weather_code")
        current = CurrentConditions(
            cloud_cover=cloud,
            visibility=visibility,
            humidity=humidity,
            temperature=current_raw.get("apparent_temperature"),
            precipitation=current_raw.get("precipitation"),
            weather_code=code,
            weather_description=weather_description(code),
            observation_score=_score_or_none(cloud, visibility, humidity),
        )

    samples: list[HourlySample] = []
    for i, stamp in enumerate(hourly_raw.get("time") or []):
        time = datetime.fromisoformat(stamp)
        if time.tzinfo is None:
            time = time.replace(tzinfo=now.tzinfo)
        if time < now:
            continue
        cloud = _column(hourly_raw, "cloud_cover", i)
        visibility = _column(hourly_raw, "visibility", i)
        humidity = _column(hourly_raw, "relative_humidity_2m", i)
        samples.append(
            HourlySample(
                time=time,
                cloud_cover=cloud,
                visibility=visibility,
                humidity=humidity,
                score=_score_or_none(cloud, visibility, humidity),
                cloud_cover_low=_column(hourly_raw, "cloud_cover_low", i),
                cloud_cover_mid=_column(hourly_raw, "cloud_cover_mid", i),
                cloud_cover_high=_column(hourly_raw, "cloud_cover_high", i),
                dew_point=_column(hourly_raw, "dew_point_2m", i),
                temperature=_column(hourly_raw, "apparent_temperature", i),
                precip_probability=_column(hourly_raw, "precipitation_probability", i),
                weather_code=_column(hourly_raw, "weather_code", i),
            )
        )
        if len(samples) == 24:
            break

    return ProcessedAtmosphere(
        current=current,
        hourly_forecast=tuple(samples),
        best_window=find_best_viewing_window(samples, now),
        timestamp=now,
    )


@dataclass(frozen=True)
class RefreshToken:
    seq: int  # Start order; higher started later
    started_at: datetime


class AtmosphereState:
    """Latest processed conditions plus freshness and error flags.

    Refreshes may overlap. Each one gets a token at start; a result whose
    token started before the last applied success is dropped, so the most
    recently started successful fetch always wins.
    """

    def __init__(
        self,
        data: ProcessedAtmosphere | None = None,
        last_fetch: datetime | None = None,
    ) -> None:
        self.data = data
        self.last_fetch = last_fetch
        self.error: str | None = None
        self.is_loading = False
        self._seq = 0
        self._applied_seq = -1
        self._in_flight = 0
        self._lock = threading.Lock()

    def needs_refresh(self, now: datetime | None = None) -> bool:
        if self.last_fetch is None:
            return True
        now = now or datetime.now().astimezone()
        return now - self.last_fetch > REFRESH_INTERVAL

    @property
    def is_stale(self) -> bool:
        """Last-known data is being shown after a failed refresh."""
        return self.error is not None and self.data is not None

    def begin_refresh(self, now: datetime | None = None) -> RefreshToken:
        with self._lock:
            self._seq += 1
            self._in_flight += 1
            self.is_loading = True
            return RefreshToken(seq=self._seq, started_at=now or datetime.now().astimezone())

    def complete(self, token: RefreshToken, data: ProcessedAtmosphere) -> bool:
        """Apply a successful result. Returns False if a newer fetch already landed."""
        with self._lock:
            self._finish()
            if token.seq < self._applied_seq:
                logger.debug("atmosphere_result_discarded", extra={"seq": token.seq})
                return False
            self._applied_seq = token.seq
            self.data = data
            self.last_fetch = token.started_at
            self.error = None
            return True

    def fail(self, token: RefreshToken, error: Exception) -> None:
        """Record a failed fetch. Last-good data stays in place."""
        with self._lock:
            self._finish()
            if token.seq < self._applied_seq:
                return
            self.error = str(error)

    def _finish(self) -> None:
        self._in_flight = max(0, self._in_flight - 1)
        self.is_loading = self._in_flight > 0

    def refresh(
        self, client: OpenMeteoClient, lat: float, lng: float, now: datetime | None = None
    ) -> ProcessedAtmosphere:
        """Fetch, process, and apply. Re-raises FetchError after recording it."""
        token = self.begin_refresh(now)
        try:
            raw = client.fetch(lat, lng)
        except FetchError as e:
            logger.warning("atmosphere_fetch_failed", extra={"error": str(e)})
            self.fail(token, e)
            raise
        processed = process_atmospheric_data(raw, now=token.started_at)
        self.complete(token, processed)
        return processed

    def clear(self) -> None:
        with self._lock:
            self.data = None
            self.last_fetch = None
            self.error = None
