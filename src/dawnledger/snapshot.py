"""Versioned JSON snapshots of each store's state.

Layout on disk (one file per blob under the data directory)::

    history.json             {"version": 1, "state": {"daily_records": {...}, "first_record_date": ...}}
    atmosphere_history.json  {"version": 1, "state": {"entries": [...]}}
    patterns.json            {"version": 1, "state": {"patterns": [...], "last_detection": ...}}
    atmosphere.json          {"version": 1, "state": {"data": {...}, "last_fetch": ...}}
"""

import json
import logging
import os
import tempfile
from collections.abc import Callable
from dataclasses import asdict, fields
from datetime import date, datetime
from pathlib import Path
from typing import Any, TypeVar

from dawnledger.errors import SnapshotError
from dawnledger.models import (
    AtmosphereSnapshot,
    CurrentConditions,
    DailyRecord,
    HourlySample,
    Location,
    LunarSnapshot,
    Pattern,
    PatternType,
    ProcessedAtmosphere,
    SolarSnapshot,
    ViewingWindow,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA_VERSION = 1

HISTORY = "history"
ATMOSPHERE_HISTORY = "atmosphere_history"
PATTERNS = "patterns"
ATMOSPHERE = "atmosphere"

# version → function upgrading a state dict from that version to version + 1
MIGRATIONS: dict[int, Callable[[dict], dict]] = {}


class SnapshotStore:
    """Directory of versioned JSON blobs, written atomically."""

    def __init__(self, data_dir: Path | str) -> None:
        self.data_dir = Path(data_dir)

    def _path(self, name: str) -> Path:
        return self.data_dir / f"{name}.json"

    def load(self, name: str) -> dict | None:
        """Return the state stored under name, or None if nothing was saved.

        Raises:
            SnapshotError: The file is not valid JSON, lacks a version tag,
                or was written by a newer schema.
        """
        path = self._path(name)
        if not path.exists():
            return None
        try:
            with path.open(encoding="utf-8") as f:
                blob = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e

        if not isinstance(blob, dict) or not isinstance(blob.get("version"), int):
            raise SnapshotError(f"Snapshot {path} has no version tag")
        version = blob["version"]
        if version > SCHEMA_VERSION:
            raise SnapshotError(
                f"Snapshot {path} has version {version}; this build reads up to {SCHEMA_VERSION}"
            )
        state = blob.get("state") or {}
        while version < SCHEMA_VERSION:
            state = MIGRATIONS[version](state)
            version += 1
        return state

    def load_state(self, name: str, parse: Callable[[dict], T]) -> T:
        """Load name and decode it with parse; a missing file parses as ``{}``.

        Raises:
            SnapshotError: The file is unreadable or its state does not
                decode (missing keys, bad enum values, bad ISO strings).
        """
        state = self.load(name) or {}
        try:
            return parse(state)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise SnapshotError(
                f"Snapshot {self._path(name)} has malformed state: {e!r}"
            ) from e

    def save(self, name: str, state: dict) -> Path:
        path = self._path(name)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.data_dir, prefix=f".{name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"version": SCHEMA_VERSION, "state": state}, f, ensure_ascii=False)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug("snapshot_saved", extra={"snapshot": name, "path": str(path)})
        return path

    def delete(self, name: str) -> None:
        self._path(name).unlink(missing_ok=True)


# --- Encoding helpers ---


def _dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _encode_flat(obj) -> dict[str, Any]:
    """asdict with datetimes rendered as ISO strings (flat dataclasses only)."""
    return {
        k: v.isoformat() if isinstance(v, (datetime, date)) else v
        for k, v in asdict(obj).items()
    }


def _decode_flat(cls, raw: dict, datetime_fields: tuple[str, ...] = ()):
    known = {f.name for f in fields(cls)}
    values = {k: v for k, v in raw.items() if k in known}
    for name in datetime_fields:
        if name in values:
            values[name] = _parse_dt(values[name])
    return cls(**values)


_SOLAR_TIMES = ("sunrise", "sunset", "solar_noon", "civil_dawn", "civil_dusk")
_LUNAR_TIMES = ("moonrise", "moonset")


def encode_record(record: DailyRecord) -> dict[str, Any]:
    return {
        "date": record.key,
        "timestamp": _dt(record.timestamp),
        "location": asdict(record.location),
        "solar": _encode_flat(record.solar),
        "lunar": _encode_flat(record.lunar),
    }


def decode_record(raw: dict) -> DailyRecord:
    return DailyRecord(
        date=date.fromisoformat(raw["date"]),
        timestamp=_parse_dt(raw["timestamp"]),
        location=Location(**raw["location"]),
        solar=_decode_flat(SolarSnapshot, raw.get("solar") or {}, _SOLAR_TIMES),
        lunar=_decode_flat(LunarSnapshot, raw.get("lunar") or {}, _LUNAR_TIMES),
    )


def encode_hourly(sample: HourlySample) -> dict[str, Any]:
    return _encode_flat(sample)


def decode_hourly(raw: dict) -> HourlySample:
    return _decode_flat(HourlySample, raw, ("time",))


def encode_atmosphere_entry(entry: AtmosphereSnapshot) -> dict[str, Any]:
    return {
        "timestamp": _dt(entry.timestamp),
        "current": asdict(entry.current),
        "hourly_forecast": [encode_hourly(s) for s in entry.hourly_forecast],
    }


def decode_atmosphere_entry(raw: dict) -> AtmosphereSnapshot:
    return AtmosphereSnapshot(
        timestamp=_parse_dt(raw["timestamp"]),
        current=_decode_flat(CurrentConditions, raw["current"]),
        hourly_forecast=tuple(decode_hourly(s) for s in raw.get("hourly_forecast") or ()),
    )


def encode_pattern(pattern: Pattern) -> dict[str, Any]:
    return {
        "id": pattern.id,
        "type": pattern.type.value,
        "title": pattern.title,
        "description": pattern.description,
        "confidence": pattern.confidence,
        "data": pattern.data,
        "icon": pattern.icon,
        "detected_at": _dt(pattern.detected_at),
    }


def decode_pattern(raw: dict) -> Pattern:
    return Pattern(
        id=raw["id"],
        type=PatternType(raw["type"]),
        title=raw["title"],
        description=raw["description"],
        confidence=float(raw["confidence"]),
        data=dict(raw.get("data") or {}),
        icon=raw.get("icon", ""),
        detected_at=_parse_dt(raw.get("detected_at")),
    )


def encode_processed(processed: ProcessedAtmosphere) -> dict[str, Any]:
    window = processed.best_window
    return {
        "current": asdict(processed.current) if processed.current else None,
        "hourly_forecast": [encode_hourly(s) for s in processed.hourly_forecast],
        "best_window": _encode_flat(window) if window else None,
        "timestamp": _dt(processed.timestamp),
    }


def decode_processed(raw: dict) -> ProcessedAtmosphere:
    window = raw.get("best_window")
    return ProcessedAtmosphere(
        current=_decode_flat(CurrentConditions, raw["current"]) if raw.get("current") else None,
        hourly_forecast=tuple(decode_hourly(s) for s in raw.get("hourly_forecast") or ()),
        best_window=_decode_flat(ViewingWindow, window, ("start", "end")) if window else None,
        timestamp=_parse_dt(raw["timestamp"]),
    )


# --- Store state ---


def history_state(records: list[DailyRecord], first_record_date: date | None) -> dict:
    return {
        "daily_records": {r.key: encode_record(r) for r in records},
        "first_record_date": first_record_date.isoformat() if first_record_date else None,
    }


def parse_history_state(state: dict) -> tuple[list[DailyRecord], date | None]:
    records = [decode_record(raw) for raw in (state.get("daily_records") or {}).values()]
    return records, _parse_date(state.get("first_record_date"))


def atmosphere_history_state(entries) -> dict:
    return {"entries": [encode_atmosphere_entry(e) for e in entries]}


def parse_atmosphere_history_state(state: dict) -> list[AtmosphereSnapshot]:
    return [decode_atmosphere_entry(raw) for raw in state.get("entries") or ()]


def patterns_state(patterns, last_detection: datetime | None) -> dict:
    return {
        "patterns": [encode_pattern(p) for p in patterns],
        "last_detection": _dt(last_detection),
    }


def parse_patterns_state(state: dict) -> tuple[list[Pattern], datetime | None]:
    patterns = [decode_pattern(raw) for raw in state.get("patterns") or ()]
    return patterns, _parse_dt(state.get("last_detection"))


def atmosphere_state(data: ProcessedAtmosphere | None, last_fetch: datetime | None) -> dict:
    return {
        "data": encode_processed(data) if data else None,
        "last_fetch": _dt(last_fetch),
    }


def parse_atmosphere_state(state: dict) -> tuple[ProcessedAtmosphere | None, datetime | None]:
    data = state.get("data")
    return (decode_processed(data) if data else None), _parse_dt(state.get("last_fetch"))
