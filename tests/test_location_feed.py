"""
Tests for location track reading, throttling and replay.

Run with: pytest tests/test_location_feed.py -v
"""

from datetime import datetime, timezone

import pytest

from county_explorer.data_types import Coordinate
from county_explorer.location_feed import (
    LocationEvent,
    LocationThrottle,
    read_location_csv,
    replay_track,
)
from county_explorer.persistence import MemoryVisitedCells
from county_explorer.progress_store import ProgressStore
from county_explorer.quantize import quantize


UNIT_SQUARE = [(0, 0), (0, 1), (1, 1), (1, 0)]  # (lat, lon)


@pytest.fixture
def store():
    store = ProgressStore(MemoryVisitedCells(), grid_size=10)
    store.initialize_region("0601", "Alpha", "06", UNIT_SQUARE)
    return store


class TestReadLocationCsv:
    """Track file parsing."""

    def test_reads_rows_and_skips_garbage(self, tmp_path, capsys):
        path = tmp_path / "track.csv"
        path.write_text(
            "latitude,longitude,timestamp\n"
            "0.05,0.05,100\n"
            "0.15,0.05,2024-05-01T12:00:00+00:00\n"
            "0.25,0.05\n"
            "not,numbers\n"
            "0.35\n"
            "nan,0.05\n"
            "95.0,0.05\n"
            "0.45,0.05,\n",
            encoding='utf-8',
        )

        events = read_location_csv(path)

        assert [e.coordinate for e in events] == [
            Coordinate(0.05, 0.05), Coordinate(0.15, 0.05),
            Coordinate(0.25, 0.05), Coordinate(0.45, 0.05),
        ]
        assert events[0].timestamp == 100.0
        assert events[1].timestamp == datetime(2024, 5, 1, 12, tzinfo=timezone.utc).timestamp()
        assert events[2].timestamp is None
        assert events[3].timestamp is None
        assert "Skipped 5 unusable rows" in capsys.readouterr().out

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("", encoding='utf-8')

        assert read_location_csv(path) == []


class TestLocationThrottle:
    def test_minimum_interval(self):
        throttle = LocationThrottle(5.0)

        accepted = [t for t in [0.0, 1.0, 4.9, 5.0, 6.0, 10.0, 30.0] if throttle.should_process(t)]

        assert accepted == [0.0, 5.0, 10.0, 30.0]

    def test_missing_timestamps_pass(self):
        throttle = LocationThrottle(5.0)

        assert throttle.should_process(None)
        assert throttle.should_process(0.0)
        assert throttle.should_process(None)
        assert not throttle.should_process(1.0)

    def test_zero_interval_accepts_everything(self):
        throttle = LocationThrottle(0.0)
        assert all(throttle.should_process(t) for t in [1.0, 1.0, 1.0])


class TestReplayTrack:
    """Recorded tracks through the progress store."""

    def test_replay_marks_cells_along_track(self, store):
        events = [
            LocationEvent(Coordinate(0.05, 0.05), 0.0),
            LocationEvent(Coordinate(0.15, 0.05), 1.0),   # throttled
            LocationEvent(Coordinate(0.25, 0.05), 6.0),
            LocationEvent(Coordinate(0.35, 0.05), 20.0),
            LocationEvent(Coordinate(0.35, 0.05), 40.0),  # nothing new
        ]

        result = replay_track(store, events, radius_m=100, min_interval_seconds=5)

        assert result.processed == 4
        assert result.skipped == 1
        assert result.newly_visited_count == 3
        assert result.newly_visited["0601"] == {
            quantize((0.05, 0.05)), quantize((0.25, 0.05)), quantize((0.35, 0.05)),
        }
        assert store.get("0601").visited_cell_count == 3

    def test_replay_saves_once_per_changing_fix(self, store):
        events = [LocationEvent(Coordinate(0.05, 0.05 + 0.1 * i)) for i in range(5)]

        replay_track(store, events, radius_m=100, min_interval_seconds=5)

        assert store.backend.save_count == 5

    def test_replay_outside_all_regions(self, store):
        result = replay_track(store, [LocationEvent(Coordinate(45.0, -100.0), 0.0)])

        assert result.processed == 1
        assert result.newly_visited == {}
        assert store.backend.save_count == 0
