"""Runtime settings read from the environment.

Entry points call ``load_dotenv()`` first, so values may also come from a
``.env`` file in the working directory.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dawnledger.errors import ConfigError
from dawnledger.models import DEFAULT_LOCATION, Location

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"


@dataclass(frozen=True)
class Settings:
    data_dir: Path  # Snapshot directory
    ephemeris_dir: Path  # skyfield Loader directory (de421.bsp)
    location: Location
    backfill_days: int  # Backfill horizon
    scan_days: int  # Records window handed to the detectors
    min_records: int  # Backfill runs when fewer records than this exist
    open_meteo_url: str
    http_timeout: float  # Seconds


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e
    if value < 0:
        raise ConfigError(f"{name} must be >= 0, got {value}")
    return value


def load_settings(data_dir: str | Path | None = None) -> Settings:
    """Build Settings from environment variables.

    Args:
        data_dir: Overrides DAWNLEDGER_DATA_DIR when given (CLI flag).

    Returns:
        Frozen Settings.

    Raises:
        ConfigError: A numeric variable does not parse or is out of range.
    """
    lat = _env_float("DAWNLEDGER_LAT", DEFAULT_LOCATION.lat)
    lng = _env_float("DAWNLEDGER_LNG", DEFAULT_LOCATION.lng)
    if not -90.0 <= lat <= 90.0:
        raise ConfigError(f"DAWNLEDGER_LAT out of range: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise ConfigError(f"DAWNLEDGER_LNG out of range: {lng}")

    name = os.environ.get("DAWNLEDGER_LOCATION_NAME")
    if not name:
        is_default = (lat, lng) == (DEFAULT_LOCATION.lat, DEFAULT_LOCATION.lng)
        name = DEFAULT_LOCATION.name if is_default else f"{lat:.4f}, {lng:.4f}"

    if data_dir is None:
        data_dir = os.environ.get("DAWNLEDGER_DATA_DIR", "data")

    return Settings(
        data_dir=Path(data_dir),
        ephemeris_dir=Path(os.environ.get("DAWNLEDGER_EPHEMERIS_DIR", "resources")),
        location=Location(name=name, lat=lat, lng=lng),
        backfill_days=_env_int("DAWNLEDGER_BACKFILL_DAYS", 90),
        scan_days=_env_int("DAWNLEDGER_SCAN_DAYS", 90),
        min_records=_env_int("DAWNLEDGER_MIN_RECORDS", 30),
        open_meteo_url=os.environ.get("OPEN_METEO_URL", OPEN_METEO_URL),
        http_timeout=_env_float("DAWNLEDGER_HTTP_TIMEOUT", 10.0),
    )
