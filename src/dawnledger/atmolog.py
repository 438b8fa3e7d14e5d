"""AtmosphereHistoryLog: bounded, time-ordered log of atmospheric snapshots."""

import logging
import threading
from collections.abc import Iterable
from datetime import datetime, timedelta

from dawnledger.models import AtmosphereSnapshot, ProcessedAtmosphere

logger = logging.getLogger(__name__)

RETENTION = timedelta(days=30)
HOURLY_SAMPLE_LIMIT = 6


def _has_current_conditions(processed: ProcessedAtmosphere | None) -> bool:
    # Individual fields may be None; the detectors skip them per reading.
    return processed is not None and processed.current is not None


class AtmosphereHistoryLog:
    """Append-only log trimmed to the last 30 days on every append.

    Each append is stamped "now", so insertion order is chronological order.
    """

    def __init__(self, entries: Iterable[AtmosphereSnapshot] = ()) -> None:
        self._entries: list[AtmosphereSnapshot] = list(entries)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def append(
        self, processed: ProcessedAtmosphere | None, now: datetime | None = None
    ) -> AtmosphereSnapshot | None:
        """Store processed conditions; malformed input is ignored.

        Returns:
            The stored entry, or None when the input lacked current conditions.
        """
        if not _has_current_conditions(processed):
            logger.debug("atmosphere_snapshot_ignored")
            return None

        now = now or datetime.now().astimezone()
        entry = AtmosphereSnapshot(
            timestamp=now,
            current=processed.current,
            hourly_forecast=tuple(processed.hourly_forecast[:HOURLY_SAMPLE_LIMIT]),
        )
        cutoff = now - RETENTION
        with self._lock:
            self._entries.append(entry)
            self._entries = [e for e in self._entries if e.timestamp > cutoff]
        return entry

    def entries(self) -> tuple[AtmosphereSnapshot, ...]:
        return tuple(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries = []
