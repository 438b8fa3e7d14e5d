"""CLI entry point: record, scan, and inspect patterns from the terminal.

    uv run dawnledger scan
    uv run dawnledger stats --lang ko
    uv run dawnledger patterns --type trend --min-confidence 0.7
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from dawnledger.atmosphere import OpenMeteoClient
from dawnledger.config import Settings, load_settings
from dawnledger.errors import DawnLedgerError
from dawnledger.i18n import t
from dawnledger.models import Pattern, PatternType, RecordStatistics
from dawnledger.oracle import SkyfieldOracle
from dawnledger.patterns import confidence_level
from dawnledger.snapshot import SnapshotStore
from dawnledger.tracker import DawnTracker


def _format_minutes(minutes: int | None) -> str:
    if minutes is None:
        return "--"
    return f"{minutes // 60}h {minutes % 60}m"


def format_pattern(pattern: Pattern, lang: str = "en") -> str:
    level = confidence_level(pattern.confidence)
    label = t(f"confidence_{level.level}", lang)
    return (
        f"{pattern.icon} {pattern.title} [{pattern.type.value}] "
        f"{pattern.confidence:.0%} {label}\n    {pattern.description}"
    )


def format_statistics(stats: RecordStatistics | None, lang: str = "en") -> str:
    if stats is None:
        return t("no_records", lang)
    daylight = stats.daylight
    lunar = stats.lunar
    longest = f"{_format_minutes(daylight.longest)} ({daylight.longest_date or '--'})"
    shortest = f"{_format_minutes(daylight.shortest)} ({daylight.shortest_date or '--'})"
    lines = [
        t("heading_stats", lang),
        f"  {t('days_tracked', lang)}: {stats.total_days_tracked}",
        f"  {t('first_record', lang)}: {stats.first_record_date or '--'}",
        f"  {t('longest_day', lang)}: {longest}",
        f"  {t('shortest_day', lang)}: {shortest}",
        f"  {t('average_daylight', lang)}: {_format_minutes(daylight.average)}",
        f"  {t('current_daylight', lang)}: {_format_minutes(daylight.current)}",
        f"  {t('full_moons', lang)}: {lunar.full_moon_count} ({lunar.last_full_moon or '--'})",
        f"  {t('new_moons', lang)}: {lunar.new_moon_count} ({lunar.last_new_moon or '--'})",
    ]
    for name, count in sorted(lunar.phase_distribution.items()):
        lines.append(f"    {name}: {count}")
    return "\n".join(lines)


def _print_patterns(patterns, lang: str) -> None:
    if not patterns:
        print(t("no_patterns", lang))
        return
    print(t("heading_patterns", lang))
    for pattern in patterns:
        print(format_pattern(pattern, lang))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dawnledger",
        description="dawnledger: astronomical records and sky-condition patterns",
    )
    parser.add_argument(
        "--data-dir", default=None, help="Snapshot directory (env: DAWNLEDGER_DATA_DIR)"
    )
    parser.add_argument("--lang", choices=("en", "ko"), default="en")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Record today, refresh atmosphere, detect patterns")
    scan.add_argument("--offline", action="store_true", help="Skip the atmosphere fetch")

    sub.add_parser("stats", help="Show record statistics")

    patterns = sub.add_parser("patterns", help="List stored patterns")
    patterns.add_argument("--type", choices=[p.value for p in PatternType], default=None)
    patterns.add_argument("--min-confidence", type=float, default=None)

    dismiss = sub.add_parser("dismiss", help="Remove a stored pattern")
    dismiss.add_argument("pattern_id")

    clear = sub.add_parser("clear", help="Clear stored data (all of it when no flag is given)")
    clear.add_argument("--records", action="store_true")
    clear.add_argument("--patterns", action="store_true")
    clear.add_argument("--atmosphere", action="store_true")
    return parser


def _build_tracker(settings: Settings, offline: bool) -> DawnTracker:
    client = None
    if not offline:
        client = OpenMeteoClient(settings.open_meteo_url, timeout=settings.http_timeout)
    return DawnTracker(
        settings,
        SkyfieldOracle(settings.ephemeris_dir),
        SnapshotStore(settings.data_dir),
        client=client,
    )


def run(args: argparse.Namespace) -> int:
    settings = load_settings(args.data_dir)
    lang = args.lang
    tracker = _build_tracker(settings, offline=getattr(args, "offline", True))

    if args.command == "scan":
        detected = tracker.run_cycle()
        if tracker.atmosphere.error:
            print(t("atmosphere_stale", lang, error=tracker.atmosphere.error), file=sys.stderr)
        _print_patterns(detected, lang)
    elif args.command == "stats":
        print(format_statistics(tracker.statistics(), lang))
    elif args.command == "patterns":
        if args.type is None:
            patterns = list(tracker.patterns.patterns)
        else:
            patterns = tracker.patterns.by_type(args.type)
        if args.min_confidence is not None:
            patterns = [p for p in patterns if p.confidence >= args.min_confidence]
        _print_patterns(patterns, lang)
        if tracker.patterns.last_detection_at is not None:
            last = tracker.patterns.last_detection_at
            print(f"{t('last_detection', lang)}: {last:%Y-%m-%d %H:%M}")
    elif args.command == "dismiss":
        if tracker.patterns.dismiss(args.pattern_id):
            tracker.save()
            print(t("dismissed", lang, id=args.pattern_id))
        else:
            print(t("not_found", lang, id=args.pattern_id))
    elif args.command == "clear":
        everything = not (args.records or args.patterns or args.atmosphere)
        cleared = []
        if everything or args.records:
            tracker.records.clear()
            cleared.append("records")
        if everything or args.patterns:
            tracker.patterns.clear()
            cleared.append("patterns")
        if everything or args.atmosphere:
            tracker.atmosphere_log.clear()
            tracker.atmosphere.clear()
            cleared.append("atmosphere")
        tracker.save()
        print(t("cleared", lang, what=", ".join(cleared)))
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    try:
        return run(args)
    except DawnLedgerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
