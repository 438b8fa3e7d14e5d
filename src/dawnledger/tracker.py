"""DawnTracker wires the stores and detectors into one refresh cycle."""

import logging
from datetime import date, datetime

from dawnledger import snapshot
from dawnledger.atmolog import AtmosphereHistoryLog
from dawnledger.atmosphere import AtmosphereState, OpenMeteoClient
from dawnledger.config import Settings
from dawnledger.errors import FetchError
from dawnledger.models import Pattern
from dawnledger.oracle import AstronomyOracle
from dawnledger.patterns import detect_all
from dawnledger.records import DailyRecordStore
from dawnledger.repository import PatternRepository

logger = logging.getLogger(__name__)

MIN_RECORDS_FOR_SCAN = 7


class DawnTracker:
    """Owns one location's stores and drives them in the order:
    backfill → record today → atmosphere → detect → merge → save.
    """

    def __init__(
        self,
        settings: Settings,
        oracle: AstronomyOracle,
        store: snapshot.SnapshotStore,
        client: OpenMeteoClient | None = None,
    ) -> None:
        self.settings = settings
        self.oracle = oracle
        self.snapshots = store
        self.client = client

        records, first_date = store.load_state(snapshot.HISTORY, snapshot.parse_history_state)
        self.records = DailyRecordStore(oracle, records, first_date)

        entries = store.load_state(
            snapshot.ATMOSPHERE_HISTORY, snapshot.parse_atmosphere_history_state
        )
        self.atmosphere_log = AtmosphereHistoryLog(entries)

        patterns, last_detection = store.load_state(
            snapshot.PATTERNS, snapshot.parse_patterns_state
        )
        self.patterns = PatternRepository(patterns, last_detection)

        data, last_fetch = store.load_state(snapshot.ATMOSPHERE, snapshot.parse_atmosphere_state)
        self.atmosphere = AtmosphereState(data, last_fetch)

    def _now(self, now: datetime | None) -> datetime:
        if now is not None:
            return now
        location = self.settings.location
        return datetime.now(self.oracle.local_timezone(location.lat, location.lng))

    def refresh_day(self, now: datetime | None = None) -> None:
        """Backfill when history is thin, then record today."""
        now = self._now(now)
        location = self.settings.location
        if len(self.records) < self.settings.min_records:
            self.records.backfill(self.settings.backfill_days, location, today=now.date())

        self.records.record_today(
            location,
            self.oracle.compute_sun_times(now, location.lat, location.lng),
            self.oracle.compute_moon_times(now, location.lat, location.lng),
            self.oracle.compute_moon_illumination(now),
            now=now,
        )

    def refresh_atmosphere(self, now: datetime | None = None, force: bool = False) -> bool:
        """Fetch conditions if due and log them. Returns True when a new entry was logged.

        A FetchError leaves the last-good data in place with the error flag set.
        """
        if self.client is None:
            return False
        now = self._now(now)
        if not force and not self.atmosphere.needs_refresh(now):
            return False

        location = self.settings.location
        try:
            processed = self.atmosphere.refresh(self.client, location.lat, location.lng, now=now)
        except FetchError:
            return False
        return self.atmosphere_log.append(processed, now=now) is not None

    def scan(self, now: datetime | None = None) -> list[Pattern]:
        """Detect over the recent window and merge into the repository.

        Returns:
            This run's detections (before deduplication), or [] when fewer
            than 7 records are available.
        """
        now = self._now(now)
        records = self.records.recent_records(self.settings.scan_days, today=now.date())
        if len(records) < MIN_RECORDS_FOR_SCAN:
            logger.info("scan_skipped", extra={"records": len(records)})
            return []

        detected = detect_all(records, self.atmosphere_log.entries(), now=now)
        self.patterns.merge_detected(detected, now=now)
        logger.info(
            "scan_complete",
            extra={"records": len(records), "detected": len(detected)},
        )
        return detected

    def run_cycle(self, now: datetime | None = None) -> list[Pattern]:
        now = self._now(now)
        self.refresh_day(now)
        self.refresh_atmosphere(now)
        detected = self.scan(now)
        self.save()
        return detected

    def save(self) -> None:
        self.snapshots.save(
            snapshot.HISTORY,
            snapshot.history_state(self.records.all_records(), self.records.first_record_date),
        )
        self.snapshots.save(
            snapshot.ATMOSPHERE_HISTORY,
            snapshot.atmosphere_history_state(self.atmosphere_log.entries()),
        )
        self.snapshots.save(
            snapshot.PATTERNS,
            snapshot.patterns_state(self.patterns.patterns, self.patterns.last_detection_at),
        )
        self.snapshots.save(
            snapshot.ATMOSPHERE,
            snapshot.atmosphere_state(self.atmosphere.data, self.atmosphere.last_fetch),
        )

    def statistics(self, today: date | None = None):
        return self.records.statistics(today=today)
