import json
from datetime import date, timedelta

import pytest
from builders import FakeOracle, local, make_entry, make_pattern

from dawnledger import snapshot
from dawnledger.atmosphere import process_atmospheric_data
from dawnledger.errors import SnapshotError
from dawnledger.models import PatternType
from dawnledger.records import DailyRecordStore
from dawnledger.snapshot import SCHEMA_VERSION, SnapshotStore

TODAY = date(2026, 3, 1)
NOW = local(TODAY, 21)


@pytest.fixture
def store(tmp_path):
    return SnapshotStore(tmp_path / "data")


def test_missing_snapshot_loads_as_none(store):
    assert store.load(snapshot.HISTORY) is None


def test_save_writes_versioned_blob(store):
    path = store.save(snapshot.PATTERNS, {"patterns": []})

    blob = json.loads(path.read_text(encoding="utf-8"))
    assert blob == {"version": SCHEMA_VERSION, "state": {"patterns": []}}
    assert [p.name for p in store.data_dir.iterdir()] == ["patterns.json"]


def test_newer_schema_is_rejected(store):
    store.data_dir.mkdir(parents=True)
    (store.data_dir / "history.json").write_text(
        json.dumps({"version": SCHEMA_VERSION + 1, "state": {}}), encoding="utf-8"
    )

    with pytest.raises(SnapshotError, match="version"):
        store.load(snapshot.HISTORY)


@pytest.mark.parametrize("content", ["{not json", '{"state": {}}', "[1, 2]"])
def test_unreadable_snapshot_raises(store, content):
    store.data_dir.mkdir(parents=True)
    (store.data_dir / "patterns.json").write_text(content, encoding="utf-8")

    with pytest.raises(SnapshotError):
        store.load(snapshot.PATTERNS)


def test_delete(store):
    store.save(snapshot.ATMOSPHERE, {})

    store.delete(snapshot.ATMOSPHERE)
    store.delete(snapshot.ATMOSPHERE)

    assert store.load(snapshot.ATMOSPHERE) is None


def test_history_survives_a_save_load_cycle(store):
    records = DailyRecordStore(FakeOracle())
    records.backfill(3, today=TODAY)

    store.save(
        snapshot.HISTORY,
        snapshot.history_state(records.all_records(), records.first_record_date),
    )
    loaded, first = snapshot.parse_history_state(store.load(snapshot.HISTORY))

    assert loaded == records.all_records()
    assert first == TODAY - timedelta(days=3)
    assert loaded[-1].solar.sunrise.utcoffset() == timedelta(hours=-8)


def test_patterns_survive_a_save_load_cycle(store):
    pattern = make_pattern(
        "optimal-viewing",
        0.8,
        type=PatternType.OPTIMAL,
        data={"best_hours": [21, 22, 3], "good_condition_count": 6},
        icon="🔭",
        detected_at=NOW,
    )

    store.save(snapshot.PATTERNS, snapshot.patterns_state([pattern], NOW))
    patterns, last = snapshot.parse_patterns_state(store.load(snapshot.PATTERNS))

    assert patterns == [pattern]
    assert last == NOW


def test_atmosphere_survives_a_save_load_cycle(store):
    entries = [make_entry(NOW - timedelta(days=1), score=75), make_entry(NOW, score=None)]
    raw = {
        "current": {"cloud_cover": 5, "visibility": 24000, "relative_humidity_2m": 35},
        "hourly": {
            "time": [(NOW + timedelta(hours=1)).replace(tzinfo=None).isoformat()],
            "cloud_cover": [5],
            "visibility": [24000],
            "relative_humidity_2m": [35],
        },
    }
    processed = process_atmospheric_data(raw, now=NOW)

    store.save(snapshot.ATMOSPHERE_HISTORY, snapshot.atmosphere_history_state(entries))
    store.save(snapshot.ATMOSPHERE, snapshot.atmosphere_state(processed, NOW))

    assert snapshot.parse_atmosphere_history_state(
        store.load(snapshot.ATMOSPHERE_HISTORY)
    ) == entries
    data, last_fetch = snapshot.parse_atmosphere_state(store.load(snapshot.ATMOSPHERE))
    assert data == processed
    assert data.best_window.score == 98
    assert last_fetch == NOW


def test_empty_atmosphere_state():
    assert snapshot.parse_atmosphere_state({}) == (None, None)
    assert snapshot.parse_atmosphere_state(snapshot.atmosphere_state(None, None)) == (None, None)


def test_load_state_of_missing_file_parses_empty(store):
    assert store.load_state(snapshot.PATTERNS, snapshot.parse_patterns_state) == ([], None)


def test_load_state_wraps_decode_failures(store):
    store.save(snapshot.HISTORY, {"daily_records": {"2026-01-01": {"date": "2026-01-01"}}})

    with pytest.raises(SnapshotError, match="malformed state") as exc:
        store.load_state(snapshot.HISTORY, snapshot.parse_history_state)
    assert isinstance(exc.value.__cause__, KeyError)
