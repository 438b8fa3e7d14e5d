import threading
from datetime import date

import pytest
from builders import local, make_pattern

from dawnledger.models import PatternType
from dawnledger.repository import PatternRepository

NOW = local(date(2026, 3, 1), 9)


@pytest.fixture
def repo():
    return PatternRepository()


def test_lower_confidence_redetection_is_ignored(repo):
    repo.merge_detected([make_pattern("daylight-trend", 0.6, title="first")], now=NOW)
    repo.merge_detected([make_pattern("daylight-trend", 0.4, title="second")], now=NOW)

    assert repo.get("daylight-trend").title == "first"
    assert repo.get("daylight-trend").confidence == 0.6


def test_equal_confidence_does_not_replace(repo):
    repo.merge_detected([make_pattern("moon-cycle", 0.7, title="first")], now=NOW)
    repo.merge_detected([make_pattern("moon-cycle", 0.7, title="second")], now=NOW)

    assert repo.get("moon-cycle").title == "first"


def test_higher_confidence_replaces_and_resorts(repo):
    repo.merge_detected([make_pattern("a", 0.9), make_pattern("b", 0.5)], now=NOW)
    repo.merge_detected([make_pattern("b", 0.95)], now=NOW)

    assert [p.id for p in repo.patterns] == ["b", "a"]
    assert repo.get("b").confidence == 0.95


def test_merge_ranks_by_confidence(repo):
    stored = repo.merge_detected(
        [make_pattern("low", 0.55), make_pattern("high", 0.9), make_pattern("mid", 0.7)],
        now=NOW,
    )

    assert [p.id for p in stored] == ["high", "mid", "low"]


def test_empty_merge_still_records_detection_time(repo):
    repo.merge_detected([], now=NOW)

    assert repo.last_detection_at == NOW
    assert len(repo) == 0


def test_dismiss_is_idempotent(repo):
    repo.merge_detected([make_pattern("a", 0.9)], now=NOW)

    assert repo.dismiss("a") is True
    assert repo.dismiss("a") is False
    assert repo.dismiss("never-seen") is False
    assert "a" not in repo


def test_dismissed_pattern_can_come_back(repo):
    repo.merge_detected([make_pattern("a", 0.9)], now=NOW)
    repo.dismiss("a")

    repo.merge_detected([make_pattern("a", 0.6)], now=NOW)

    assert repo.get("a").confidence == 0.6


def test_clear(repo):
    repo.merge_detected([make_pattern("a", 0.9)], now=NOW)

    repo.clear()

    assert repo.patterns == ()
    assert repo.last_detection_at is None


def test_filters(repo):
    repo.merge_detected(
        [
            make_pattern("daylight-trend", 0.99),
            make_pattern("moon-cycle", 0.7, type=PatternType.CYCLE),
            make_pattern("good-visibility", 0.85, type=PatternType.OPTIMAL),
        ],
        now=NOW,
    )

    assert [p.id for p in repo.by_type(PatternType.CYCLE)] == ["moon-cycle"]
    assert [p.id for p in repo.by_type("optimal")] == ["good-visibility"]
    assert [p.id for p in repo.high_confidence()] == ["daylight-trend", "good-visibility"]
    assert [p.id for p in repo.high_confidence(0.5)] == [
        "daylight-trend",
        "good-visibility",
        "moon-cycle",
    ]


def test_loaded_patterns_are_ranked():
    repo = PatternRepository([make_pattern("a", 0.5), make_pattern("b", 0.8)], last_detection_at=NOW)

    assert [p.id for p in repo.patterns] == ["b", "a"]
    assert repo.last_detection_at == NOW


def test_unknown_type_matches_nothing(repo):
    repo.merge_detected([make_pattern("a", 0.9)], now=NOW)

    assert repo.by_type("hunch") == []


def test_readers_see_whole_merges_while_another_thread_writes(repo):
    errors = []

    def writer():
        try:
            for i in range(300):
                repo.merge_detected([make_pattern(f"p{i}", (i % 100) / 100)], now=NOW)
        except Exception as e:  # surfaced through the assert below
            errors.append(e)

    thread = threading.Thread(target=writer)
    thread.start()
    while thread.is_alive():
        ranked = repo.high_confidence(0.0)
        assert [p.confidence for p in ranked] == sorted(
            (p.confidence for p in ranked), reverse=True
        )
        repo.by_type(PatternType.TREND)
    thread.join()

    assert errors == []
    assert len(repo) == 300
