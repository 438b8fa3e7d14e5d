"""DailyRecordStore: canonical per-date astronomical dataset with synthetic backfill."""

import logging
import math
import threading
from collections import Counter
from collections.abc import Callable, Iterable
from datetime import date, datetime, timedelta
from typing import TypeVar

from dawnledger.models import (
    DEFAULT_LOCATION,
    DailyRecord,
    DaylightStatistics,
    Location,
    LunarSnapshot,
    LunarStatistics,
    MoonIllumination,
    MoonTimes,
    RecordStatistics,
    SolarSnapshot,
    SunTimes,
)
from dawnledger.oracle import AstronomyOracle, daylight_minutes, local_noon

logger = logging.getLogger(__name__)

T = TypeVar("T")

FULL_MOON = "Full Moon"
NEW_MOON = "New Moon"


def _valid_instant(value: datetime | None) -> datetime | None:
    """Drop instants the oracle could not resolve (None, or a non-datetime NaN marker)."""
    if isinstance(value, datetime):
        return value
    return None


def build_solar(sun_times: SunTimes | None) -> SolarSnapshot:
    if sun_times is None:
        return SolarSnapshot()
    sun_times = SunTimes(
        sunrise=_valid_instant(sun_times.sunrise),
        sunset=_valid_instant(sun_times.sunset),
        solar_noon=_valid_instant(sun_times.solar_noon),
        civil_dawn=_valid_instant(sun_times.civil_dawn),
        civil_dusk=_valid_instant(sun_times.civil_dusk),
    )
    return SolarSnapshot(
        sunrise=sun_times.sunrise,
        sunset=sun_times.sunset,
        solar_noon=sun_times.solar_noon,
        civil_dawn=sun_times.civil_dawn,
        civil_dusk=sun_times.civil_dusk,
        daylight_minutes=daylight_minutes(sun_times),
    )


def build_lunar(
    moon_times: MoonTimes | None, illumination: MoonIllumination | None
) -> LunarSnapshot:
    phase = phase_name = percent = None
    if illumination is not None and not (
        math.isnan(illumination.phase_fraction)
        or math.isnan(illumination.illuminated_fraction)
    ):
        phase = illumination.phase_fraction
        phase_name = illumination.phase_name
        percent = illumination.percent_illuminated
    return LunarSnapshot(
        phase=phase,
        phase_name=phase_name,
        illumination=percent,
        moonrise=_valid_instant(moon_times.moonrise) if moon_times else None,
        moonset=_valid_instant(moon_times.moonset) if moon_times else None,
    )


class DailyRecordStore:
    """Mapping of calendar date → DailyRecord.

    A date holds at most one record, replaced whole by a fresher computation
    and never merged field by field. Records are only removed by ``clear()``.
    """

    def __init__(
        self,
        oracle: AstronomyOracle,
        records: Iterable[DailyRecord] = (),
        first_record_date: date | None = None,
    ) -> None:
        self._oracle = oracle
        self._records: dict[str, DailyRecord] = {r.key: r for r in records}
        self.first_record_date = first_record_date
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, day: date) -> bool:
        return day.isoformat() in self._records

    def get(self, day: date) -> DailyRecord | None:
        with self._lock:
            return self._records.get(day.isoformat())

    def all_records(self) -> list[DailyRecord]:
        """Every record, oldest → newest."""
        with self._lock:
            return [self._records[k] for k in sorted(self._records)]

    def record_today(
        self,
        location: Location,
        sun_times: SunTimes | None,
        moon_times: MoonTimes | None,
        moon_illumination: MoonIllumination | None,
        now: datetime | None = None,
    ) -> DailyRecord:
        """Upsert today's record from live oracle outputs. Last write wins."""
        now = now or datetime.now().astimezone()
        record = DailyRecord(
            date=now.date(),
            timestamp=now,
            location=location,
            solar=build_solar(sun_times),
            lunar=build_lunar(moon_times, moon_illumination),
        )
        with self._lock:
            self._records[record.key] = record
            if self.first_record_date is None:
                self.first_record_date = record.date
        logger.debug("record_today", extra={"date": record.key})
        return record

    def backfill(
        self,
        max_days: int = 90,
        location: Location = DEFAULT_LOCATION,
        today: date | None = None,
    ) -> int:
        """Synthesize records for every missing date from max_days ago through today.

        Each date is computed at local noon of that date at the location,
        which keeps the date key stable across DST transitions. Dates that
        already hold a record are never touched.

        Args:
            max_days: How many days back to cover; 0 means today only.
            location: Observer location to compute for.
            today: Reference date (defaults to the local current date).

        Returns:
            Total number of records now held.
        """
        today = today or date.today()
        tz = self._oracle.local_timezone(location.lat, location.lng)
        added: list[str] = []

        with self._lock:
            for offset in range(max_days, -1, -1):
                day = today - timedelta(days=offset)
                key = day.isoformat()
                if key in self._records:
                    continue
                self._records[key] = self._synthesize(day, location, tz)
                added.append(key)

            if added:
                earliest = date.fromisoformat(min(added))
                if self.first_record_date is None or earliest < self.first_record_date:
                    self.first_record_date = earliest
            total = len(self._records)

        logger.info(
            "backfill_complete",
            extra={"added": len(added), "total": total, "location": location.name},
        )
        return total

    def _synthesize(self, day: date, location: Location, tz) -> DailyRecord:
        noon = local_noon(day, tz)
        sun_times = self._ask_oracle(
            "sun_times",
            day,
            lambda: self._oracle.compute_sun_times(noon, location.lat, location.lng),
        )
        moon_times = self._ask_oracle(
            "moon_times",
            day,
            lambda: self._oracle.compute_moon_times(noon, location.lat, location.lng),
        )
        illumination = self._ask_oracle(
            "moon_illumination", day, lambda: self._oracle.compute_moon_illumination(noon)
        )
        return DailyRecord(
            date=day,
            timestamp=noon,
            location=location,
            solar=build_solar(sun_times),
            lunar=build_lunar(moon_times, illumination),
        )

    @staticmethod
    def _ask_oracle(what: str, day: date, call: Callable[[], T]) -> T | None:
        # A failed computation leaves that part of the record empty; the date is still written.
        try:
            return call()
        except (ArithmeticError, ValueError, OSError) as e:
            logger.warning(
                "oracle_failed", extra={"what": what, "date": day.isoformat(), "error": str(e)}
            )
            return None

    def recent_records(self, n: int = 30, today: date | None = None) -> list[DailyRecord]:
        """Records for the last n calendar days through today, oldest → newest.

        Missing days are skipped, not zero-filled.
        """
        today = today or date.today()
        return self.records_in_range(today - timedelta(days=n - 1), today) if n > 0 else []

    def records_in_range(self, start: date, end: date) -> list[DailyRecord]:
        """Inclusive date-range query, oldest → newest, sparse."""
        records = []
        day = start
        with self._lock:
            while day <= end:
                record = self._records.get(day.isoformat())
                if record is not None:
                    records.append(record)
                day += timedelta(days=1)
        return records

    def statistics(self, today: date | None = None) -> RecordStatistics | None:
        """Aggregate view over every record, or None when the store is empty."""
        records = self.all_records()
        if not records:
            return None

        with_daylight = [r for r in records if r.solar.daylight_minutes is not None]
        longest = shortest = average = None
        if with_daylight:
            # max/min return the first extreme, so ties go to the earliest date
            longest = max(with_daylight, key=lambda r: r.solar.daylight_minutes)
            shortest = min(with_daylight, key=lambda r: r.solar.daylight_minutes)
            average = round(
                sum(r.solar.daylight_minutes for r in with_daylight) / len(with_daylight)
            )

        phase_counts = Counter(
            r.lunar.phase_name for r in records if r.lunar.phase_name is not None
        )
        full_moons = [r for r in records if r.lunar.phase_name == FULL_MOON]
        new_moons = [r for r in records if r.lunar.phase_name == NEW_MOON]

        return RecordStatistics(
            total_days_tracked=len(records),
            first_record_date=self.first_record_date,
            last_record_date=today or date.today(),
            daylight=DaylightStatistics(
                longest=longest.solar.daylight_minutes if longest else None,
                longest_date=longest.date if longest else None,
                shortest=shortest.solar.daylight_minutes if shortest else None,
                shortest_date=shortest.date if shortest else None,
                average=average,
                current=records[-1].solar.daylight_minutes,
            ),
            lunar=LunarStatistics(
                phase_distribution=dict(phase_counts),
                full_moon_count=len(full_moons),
                new_moon_count=len(new_moons),
                last_full_moon=full_moons[-1].date if full_moons else None,
                last_new_moon=new_moons[-1].date if new_moons else None,
            ),
        )

    def clear(self) -> None:
        with self._lock:
            self._records = {}
            self.first_record_date = None
        logger.info("records_cleared")
