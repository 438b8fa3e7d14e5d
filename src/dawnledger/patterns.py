"""Pattern detection over daily astronomy records and atmosphere history.

Every detector is a pure function of its inputs. Thin data is not an error:
a detector that lacks samples, or whose statistic is degenerate, returns
None (or an empty list) and detect_all simply emits fewer patterns.
"""

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from dawnledger.models import AtmosphereSnapshot, DailyRecord, Pattern, PatternType
from dawnledger.records import FULL_MOON, NEW_MOON
from dawnledger.stats import correlation, linear_regression

GOOD_OBSERVATION_SCORE = 70
GOOD_VISIBILITY_M = 15000
POOR_VISIBILITY_M = 8000


@dataclass(frozen=True)
class ConfidenceLevel:
    level: str
    min: float
    label: str


CONFIDENCE_LOW = ConfidenceLevel(level="low", min=0.5, label="Possible")
CONFIDENCE_MEDIUM = ConfidenceLevel(level="medium", min=0.7, label="Likely")
CONFIDENCE_HIGH = ConfidenceLevel(level="high", min=0.85, label="Strong")


def confidence_level(confidence: float) -> ConfidenceLevel:
    if confidence >= CONFIDENCE_HIGH.min:
        return CONFIDENCE_HIGH
    if confidence >= CONFIDENCE_MEDIUM.min:
        return CONFIDENCE_MEDIUM
    return CONFIDENCE_LOW


def _now(now: datetime | None) -> datetime:
    return now or datetime.now().astimezone()


def detect_daylight_trend(
    records: Sequence[DailyRecord], now: datetime | None = None
) -> Pattern | None:
    """Regression over daylight minutes; needs at least 7 non-null values."""
    if len(records) < 7:
        return None

    minutes = [
        r.solar.daylight_minutes for r in records if r.solar.daylight_minutes is not None
    ]
    if len(minutes) < 7:
        return None

    regression = linear_regression(minutes)
    if regression is None or regression.confidence < 0.5:
        return None

    daily_change = regression.slope
    weekly_change = daily_change * 7
    # Under 30 seconds a day is noise
    if abs(daily_change) < 0.5:
        return None

    increasing = daily_change > 0
    direction = "increasing" if increasing else "decreasing"
    return Pattern(
        id="daylight-trend",
        type=PatternType.TREND,
        title="Daylight Increasing" if increasing else "Daylight Decreasing",
        description=(
            f"Daylight is {direction} by approximately {abs(round(daily_change))} "
            f"minutes per day ({abs(round(weekly_change))} min/week)."
        ),
        confidence=regression.confidence,
        data={
            "daily_change": daily_change,
            "weekly_change": weekly_change,
            "r_squared": regression.r_squared,
        },
        icon="📈" if increasing else "📉",
        detected_at=_now(now),
    )


def _minutes_since_midnight(instant: datetime | None) -> int | None:
    if instant is None:
        return None
    return instant.hour * 60 + instant.minute


def _sun_shift(
    event: str, values: list[int], icon: str, now: datetime | None
) -> Pattern | None:
    if len(values) < 7:
        return None
    regression = linear_regression(values)
    if regression is None or regression.confidence <= 0.6 or abs(regression.slope) <= 0.3:
        return None

    direction = "later" if regression.slope > 0 else "earlier"
    minutes_per_week = abs(regression.slope * 7)
    label = event.capitalize()
    return Pattern(
        id=f"{event}-shift",
        type=PatternType.TREND,
        title=f"{label} Getting {direction.capitalize()}",
        description=(
            f"{label} is shifting {direction} by approximately "
            f"{minutes_per_week:.0f} minutes per week."
        ),
        confidence=regression.confidence,
        data={
            "direction": direction,
            "minutes_per_week": minutes_per_week,
            "slope": regression.slope,
        },
        icon=icon,
        detected_at=_now(now),
    )


def detect_sun_time_shifts(
    records: Sequence[DailyRecord], now: datetime | None = None
) -> list[Pattern]:
    """Sunrise and sunset clock-time drift, each judged independently.

    Clock times are read in the offset each instant was stored with, which
    is the record location's local time.
    """
    if len(records) < 7:
        return []

    sunrises = [_minutes_since_midnight(r.solar.sunrise) for r in records]
    sunsets = [_minutes_since_midnight(r.solar.sunset) for r in records]

    patterns = []
    for event, values, icon in (
        ("sunrise", sunrises, "🌅"),
        ("sunset", sunsets, "🌇"),
    ):
        pattern = _sun_shift(event, [v for v in values if v is not None], icon, now)
        if pattern is not None:
            patterns.append(pattern)
    return patterns


def detect_moon_cycle_patterns(
    records: Sequence[DailyRecord], now: datetime | None = None
) -> list[Pattern]:
    """Average spacing between recorded Full Moon days."""
    if len(records) < 14:
        return []

    full_moons = [r.date for r in records if r.lunar.phase_name == FULL_MOON]
    new_moon_count = sum(1 for r in records if r.lunar.phase_name == NEW_MOON)
    if len(full_moons) < 2:
        return []

    gaps = [(b - a).days for a, b in zip(full_moons, full_moons[1:])]
    avg_cycle = sum(gaps) / len(gaps)

    return [
        Pattern(
            id="moon-cycle",
            type=PatternType.CYCLE,
            title="Lunar Cycle Tracked",
            description=(
                f"Average lunar cycle: {avg_cycle:.1f} days. "
                f"Full moons recorded: {len(full_moons)}. New moons: {new_moon_count}."
            ),
            confidence=min(0.95, 0.5 + len(full_moons) * 0.1),
            data={
                "avg_cycle": avg_cycle,
                "full_moon_count": len(full_moons),
                "new_moon_count": new_moon_count,
            },
            icon="🌕",
            detected_at=_now(now),
        )
    ]


def format_hour(hour: int) -> str:
    period = "PM" if hour >= 12 else "AM"
    return f"{hour % 12 or 12} {period}"


def detect_optimal_conditions(
    atmosphere_log: Sequence[AtmosphereSnapshot], now: datetime | None = None
) -> Pattern | None:
    """Hours of day at which good observation scores (>= 70) recur most."""
    if len(atmosphere_log) < 3:
        return None

    good = [
        a
        for a in atmosphere_log
        if a.current.observation_score is not None
        and a.current.observation_score >= GOOD_OBSERVATION_SCORE
    ]
    if len(good) < 2:
        return None

    hour_counts = Counter(a.timestamp.hour for a in good)
    ranked = sorted(hour_counts.items(), key=lambda item: (-item[1], item[0]))
    best_hours = [hour for hour, _ in ranked[:3]]

    return Pattern(
        id="optimal-viewing",
        type=PatternType.OPTIMAL,
        title="Best Viewing Times Identified",
        description=(
            "Optimal observation conditions most frequently occur around "
            f"{', '.join(format_hour(h) for h in best_hours)}."
        ),
        confidence=min(0.9, 0.5 + len(good) * 0.05),
        data={"best_hours": best_hours, "good_condition_count": len(good)},
        icon="🔭",
        detected_at=_now(now),
    )


def detect_moon_cloud_correlation(
    records: Sequence[DailyRecord],
    atmosphere_log: Sequence[AtmosphereSnapshot],
    now: datetime | None = None,
) -> Pattern | None:
    """Pearson correlation of moon illumination against cloud cover.

    Each record pairs with the first log entry captured on the same
    calendar date, whatever its time of day.
    """
    if len(records) < 14 or len(atmosphere_log) < 7:
        return None

    illumination: list[float] = []
    cloud_cover: list[float] = []
    for record in records:
        entry = next(
            (a for a in atmosphere_log if a.timestamp.date() == record.date), None
        )
        if (
            entry is not None
            and record.lunar.illumination is not None
            and entry.current.cloud_cover is not None
        ):
            illumination.append(record.lunar.illumination)
            cloud_cover.append(entry.current.cloud_cover)

    if len(illumination) < 7:
        return None

    r = correlation(illumination, cloud_cover)
    if r is None or abs(r) < 0.3:
        return None

    return Pattern(
        id="moon-cloud-correlation",
        type=PatternType.CORRELATION,
        title="Moon-Cloud Correlation Detected",
        description=(
            f"Cloud cover tends to be {'higher' if r > 0 else 'lower'} during "
            f"{'fuller' if r > 0 else 'darker'} moon phases "
            f"(correlation: {r * 100:.0f}%)."
        ),
        confidence=abs(r),
        data={"correlation": r, "sample_size": len(illumination)},
        icon="🌥️" if r > 0 else "🌙",
        detected_at=_now(now),
    )


def detect_visibility_patterns(
    atmosphere_log: Sequence[AtmosphereSnapshot], now: datetime | None = None
) -> Pattern | None:
    """Consistently good (>15 km) or frequently poor (<8 km) visibility.

    Good is checked first; the two outcomes never both fire.
    """
    if len(atmosphere_log) < 5:
        return None

    visibilities = [
        a.current.visibility for a in atmosphere_log if a.current.visibility is not None
    ]
    if len(visibilities) < 5:
        return None

    avg_km = sum(visibilities) / len(visibilities) / 1000
    good_fraction = sum(1 for v in visibilities if v > GOOD_VISIBILITY_M) / len(visibilities)
    poor_fraction = sum(1 for v in visibilities if v < POOR_VISIBILITY_M) / len(visibilities)

    if good_fraction > 0.7:
        return Pattern(
            id="good-visibility",
            type=PatternType.OPTIMAL,
            title="Consistently Good Visibility",
            description=(
                f"This location has excellent visibility (>15km) "
                f"{round(good_fraction * 100)}% of the time. Average: {avg_km:.1f}km."
            ),
            confidence=good_fraction,
            data={"avg_visibility": avg_km, "good_percentage": good_fraction},
            icon="👁️",
            detected_at=_now(now),
        )

    if poor_fraction > 0.5:
        return Pattern(
            id="poor-visibility",
            type=PatternType.ANOMALY,
            title="Frequent Low Visibility",
            description=(
                f"This location experiences reduced visibility (<8km) "
                f"{round(poor_fraction * 100)}% of the time. "
                "Consider timing observations carefully."
            ),
            confidence=poor_fraction,
            data={"avg_visibility": avg_km, "poor_percentage": poor_fraction},
            icon="🌫️",
            detected_at=_now(now),
        )

    return None


def detect_all(
    records: Sequence[DailyRecord],
    atmosphere_log: Sequence[AtmosphereSnapshot] = (),
    now: datetime | None = None,
) -> list[Pattern]:
    """Run every detector and rank the results by confidence, highest first.

    Equal confidences keep detector order. Duplicates are left for the
    repository to resolve.
    """
    now = _now(now)
    patterns: list[Pattern] = []

    daylight = detect_daylight_trend(records, now)
    if daylight is not None:
        patterns.append(daylight)
    patterns.extend(detect_moon_cycle_patterns(records, now))
    patterns.extend(detect_sun_time_shifts(records, now))
    optimal = detect_optimal_conditions(atmosphere_log, now)
    if optimal is not None:
        patterns.append(optimal)
    moon_cloud = detect_moon_cloud_correlation(records, atmosphere_log, now)
    if moon_cloud is not None:
        patterns.append(moon_cloud)
    visibility = detect_visibility_patterns(atmosphere_log, now)
    if visibility is not None:
        patterns.append(visibility)

    patterns.sort(key=lambda p: p.confidence, reverse=True)
    return patterns
