"""
Tests for per-region visited-cell state.

Run with: pytest tests/test_region_progress.py -v
"""

import random

import pytest
from shapely.geometry import box

from county_explorer.data_types import CanonicalKey, Coordinate, GridCell
from county_explorer.grid_geometry import build_grid, planar_distance_m
from county_explorer.quantize import quantize
from county_explorer.region_progress import RegionProgress


UNIT_SQUARE = [(0, 0), (0, 1), (1, 1), (1, 0)]  # (lat, lon)


def make_region(visited_keys=(), grid_size=10, region_id="0601"):
    grid = build_grid(UNIT_SQUARE, grid_size)
    return RegionProgress.from_grid(region_id, "Test County", "06", grid,
                                    visited_keys=visited_keys, boundary=box(0, 0, 1, 1))


@pytest.fixture
def region():
    return make_region()


class TestCounts:
    """Visited and total counters."""

    def test_fresh_region(self, region):
        assert region.total_cell_count == 100
        assert region.visited_cell_count == 0
        assert region.completion == 0.0

    def test_mark_nearest_cell(self, region):
        """Marking (0.05, 0.05) on the unit square gives 1/100 = 0.01."""
        assert region.mark_visited((0.05, 0.05)) is True

        assert region.visited_cell_count == 1
        assert region.total_cell_count == 100
        assert region.completion == pytest.approx(0.01)

    def test_mark_twice_counts_once(self, region):
        """Second mark of the same coordinate changes nothing."""
        assert region.mark_visited((0.45, 0.65)) is True
        assert region.visited_cell_count == 1

        assert region.mark_visited((0.45, 0.65)) is False
        assert region.visited_cell_count == 1

    def test_mark_updates_cell_flag(self, region):
        region.mark_visited(Coordinate(0.15, 0.25))
        cell = region.cell_for((0.15, 0.25))

        assert cell.visited is True
        assert region.is_visited((0.15, 0.25))
        assert sum(1 for c in region.grid_cells if c.visited) == 1

    def test_float_noise_matches_same_cell(self, region):
        """A recomputed center differing in the last bits still hits the cell."""
        assert region.mark_visited((0.05 + 1e-12, 0.05 - 1e-12)) is True
        assert region.is_visited((0.05, 0.05))

    def test_out_of_grid_is_ignored(self, region):
        """Coordinates that match no cell are no-ops, not errors."""
        assert region.mark_visited((5.0, 5.0)) is False
        assert region.mark_visited((0.051, 0.05)) is False

        assert region.visited_cell_count == 0
        assert not region.is_visited((5.0, 5.0))

    def test_empty_region_completion(self):
        empty = RegionProgress("x", "Nowhere", "00", [])

        assert empty.total_cell_count == 0
        assert empty.completion == 0.0
        assert empty.mark_visited((0.0, 0.0)) is False

    def test_counts_never_exceed_total(self, region):
        rng = random.Random(7)
        for _ in range(500):
            if rng.random() < 0.5:
                region.mark_visited((rng.randrange(10) / 10 + 0.05, rng.randrange(10) / 10 + 0.05))
            else:
                region.mark_visited((rng.uniform(-1, 2), rng.uniform(-1, 2)))
            assert 0 <= region.visited_cell_count <= region.total_cell_count

        grid_keys = {c.key for c in region.grid_cells}
        assert region.visited_keys <= grid_keys


class TestRestoredState:
    """Reconciling persisted keys against a fresh grid."""

    def test_restored_keys_set_flags(self):
        region = make_region(visited_keys=[CanonicalKey(50000, 50000), (0.95, 0.95)])

        assert region.visited_cell_count == 2
        assert region.cell_for((0.05, 0.05)).visited
        assert region.cell_for((0.95, 0.95)).visited
        assert sum(1 for c in region.grid_cells if c.visited) == 2

    def test_restored_keys_outside_grid_are_dropped(self):
        """Keys from a different grid size or a stale boundary are ignored."""
        region = make_region(visited_keys=[(0.05, 0.05), (7.0, 7.0), (0.0625, 0.0625)])

        assert region.visited_cell_count == 1
        assert region.visited_keys == frozenset([quantize((0.05, 0.05))])

    def test_cells_are_copied(self):
        """Two regions built from the same cell list do not share visited flags."""
        cells = build_grid(UNIT_SQUARE, 4).cells
        a = RegionProgress("a", "A", "06", cells)
        b = RegionProgress("b", "B", "06", cells)

        a.mark_visited(cells[0].key)

        assert a.grid_cells[0].visited
        assert not b.grid_cells[0].visited
        assert not cells[0].visited


class TestSpatialQueries:
    """Tap lookup, proximity lookup and containment."""

    def test_cell_at_tap_point(self, region):
        cell = region.cell_at(Coordinate(0.12, 0.37))

        assert (cell.row, cell.col) == (1, 3)
        assert cell.key == quantize((0.15, 0.35))

    def test_cell_at_outside(self, region):
        assert region.cell_at(Coordinate(1.5, 0.5)) is None

    def test_cell_at_without_lattice(self):
        cells = build_grid(UNIT_SQUARE, 4).cells
        assert RegionProgress("a", "A", "06", cells).cell_at(Coordinate(0.1, 0.1)) is None

    @pytest.mark.parametrize("location, radius_m", [
        ((0.05, 0.05), 100.0),
        ((0.10, 0.10), 8000.0),
        ((0.50, 0.50), 25000.0),
        ((-0.02, 0.50), 5000.0),
        ((3.00, 3.00), 1000.0),
        ((0.33, 0.71), 0.0),
    ])
    def test_cells_within_matches_brute_force(self, region, location, radius_m):
        """The neighbourhood index finds exactly what a full scan finds."""
        location = Coordinate(*location)
        expected = {
            c.id for c in region.grid_cells
            if planar_distance_m(location, c.coordinate) <= radius_m
        }

        assert {c.id for c in region.cells_within(location, radius_m)} == expected

    def test_cells_within_without_lattice(self):
        cells = build_grid(UNIT_SQUARE, 10).cells
        region = RegionProgress("a", "A", "06", cells)

        found = region.cells_within(Coordinate(0.05, 0.05), 100.0)

        assert [c.key for c in found] == [quantize((0.05, 0.05))]

    def test_contains(self, region):
        assert region.contains(Coordinate(0.5, 0.5))
        assert not region.contains(Coordinate(1.5, 0.5))

    def test_contains_without_boundary(self):
        assert not RegionProgress("a", "A", "06", []).contains(Coordinate(0.0, 0.0))


class TestSnapshot:
    def test_snapshot_fields(self, region):
        region.mark_visited((0.05, 0.05))
        snapshot = region.snapshot()

        assert snapshot["id"] == "0601"
        assert snapshot["parent_code"] == "06"
        assert snapshot["visited_cell_count"] == 1
        assert len(snapshot["cells"]) == 100
        assert snapshot["cells"][0] == {"id": "0:0", "latitude": 0.05, "longitude": 0.05, "visited": True}

    def test_bounds(self, region):
        assert region.bounds == (0.0, 0.0, 1.0, 1.0)
        assert RegionProgress("a", "A", "06", [GridCell("0:0", CanonicalKey(0, 0), 0, 0)]).bounds is None
