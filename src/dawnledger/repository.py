"""PatternRepository: deduplicated, confidence-ranked store of detected patterns."""

import logging
import threading
from collections.abc import Iterable
from datetime import datetime

from dawnledger.models import Pattern, PatternType

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE = 0.85


def _ranked(patterns: dict[str, Pattern]) -> dict[str, Pattern]:
    ranked = sorted(patterns.values(), key=lambda p: p.confidence, reverse=True)
    return {p.id: p for p in ranked}


class PatternRepository:
    """Patterns keyed by id. Re-detection replaces only on strictly higher confidence."""

    def __init__(
        self,
        patterns: Iterable[Pattern] = (),
        last_detection_at: datetime | None = None,
    ) -> None:
        self._patterns = _ranked({p.id: p for p in patterns})
        self.last_detection_at = last_detection_at
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._patterns)

    def __contains__(self, pattern_id: str) -> bool:
        return pattern_id in self._patterns

    @property
    def patterns(self) -> tuple[Pattern, ...]:
        """Stored patterns, highest confidence first."""
        with self._lock:
            return tuple(self._patterns.values())

    def get(self, pattern_id: str) -> Pattern | None:
        with self._lock:
            return self._patterns.get(pattern_id)

    def merge_detected(
        self, detected: Iterable[Pattern], now: datetime | None = None
    ) -> tuple[Pattern, ...]:
        """Fold a detection run into the stored set.

        New ids are inserted; known ids are replaced only when the incoming
        confidence is strictly greater. ``last_detection_at`` is updated
        even when nothing changed.

        Returns:
            The stored patterns after merging.
        """
        changed = 0
        with self._lock:
            merged = dict(self._patterns)
            for pattern in detected:
                existing = merged.get(pattern.id)
                if existing is None or pattern.confidence > existing.confidence:
                    merged[pattern.id] = pattern
                    changed += 1
            self._patterns = _ranked(merged)
            self.last_detection_at = now or datetime.now().astimezone()
        logger.info("patterns_merged", extra={"changed": changed, "stored": len(self)})
        return self.patterns

    def dismiss(self, pattern_id: str) -> bool:
        """Remove a pattern. Unknown ids are ignored; returns whether one was removed."""
        with self._lock:
            removed = self._patterns.pop(pattern_id, None) is not None
        if removed:
            logger.info("pattern_dismissed", extra={"pattern_id": pattern_id})
        return removed

    def clear(self) -> None:
        with self._lock:
            self._patterns = {}
            self.last_detection_at = None

    def by_type(self, pattern_type: PatternType | str) -> list[Pattern]:
        """Patterns of one type; an unknown type string matches nothing."""
        return [p for p in self.patterns if p.type == pattern_type]

    def high_confidence(self, threshold: float = HIGH_CONFIDENCE) -> list[Pattern]:
        return [p for p in self.patterns if p.confidence >= threshold]
