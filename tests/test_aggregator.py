"""
Tests for progress aggregation and the console report.

Run with: pytest tests/test_aggregator.py -v
"""

import pytest

from county_explorer.aggregator import ProgressAggregator, ProgressSummary, summarize
from county_explorer.data_types import CanonicalKey, GridCell
from county_explorer.progress_store import ProgressStore
from county_explorer.region_progress import RegionProgress
from county_explorer.report import print_progress_report
from county_explorer.us_states import state_name


def make_cells(total):
    return [GridCell(id=f"0:{i}", key=CanonicalKey(0, i), row=0, col=i) for i in range(total)]


def add_region(store, region_id, name, parent_code, total, visited):
    cells = make_cells(total)
    region = RegionProgress(region_id, name, parent_code, cells,
                            visited_keys=[c.key for c in cells[:visited]])
    return store.add_region(region)


@pytest.fixture
def store():
    store = ProgressStore()
    add_region(store, "06075", "San Francisco", "06", total=100, visited=10)
    add_region(store, "06081", "San Mateo", "06", total=50, visited=5)
    add_region(store, "41051", "Multnomah", "41", total=50, visited=0)
    return store


class TestProgressSummary:
    def test_ratio_and_percent(self):
        summary = ProgressSummary(41, 1372)

        assert summary.ratio == pytest.approx(41 / 1372)
        assert summary.percent == 2

    def test_empty_is_zero(self):
        assert ProgressSummary(0, 0).ratio == 0.0
        assert ProgressSummary(0, 0).percent == 0

    def test_addition(self):
        assert ProgressSummary(1, 10) + ProgressSummary(2, 5) == ProgressSummary(3, 15)

    def test_summarize(self, store):
        assert summarize(store.regions) == ProgressSummary(15, 200)


class TestRatios:
    """Region, state and global completion."""

    def test_region_ratio(self, store):
        aggregator = ProgressAggregator(store)

        assert aggregator.region_ratio("06075") == pytest.approx(0.10)
        assert aggregator.region_ratio("41051") == 0.0
        assert aggregator.region_ratio("nope") == 0.0

    def test_parent_ratio_sums_cells(self, store):
        """(10 + 5) / (100 + 50): weighted by cell count, not averaged per county."""
        aggregator = ProgressAggregator(store)

        assert aggregator.parent_ratio("06") == pytest.approx(0.10)
        assert aggregator.parent_summary("06") == ProgressSummary(15, 150)
        assert aggregator.parent_ratio("99") == 0.0

    def test_global_ratio(self, store):
        aggregator = ProgressAggregator(store)

        assert aggregator.global_ratio() == pytest.approx(15 / 200)
        assert aggregator.global_summary().percent == 7

    def test_empty_store(self):
        aggregator = ProgressAggregator(ProgressStore())

        assert aggregator.global_ratio() == 0.0
        assert aggregator.by_parent() == {}
        assert aggregator.visited_regions() == []

    def test_empty_grids_do_not_divide_by_zero(self):
        store = ProgressStore()
        add_region(store, "x", "Sliver", "06", total=0, visited=0)

        aggregator = ProgressAggregator(store)

        assert aggregator.parent_ratio("06") == 0.0
        assert aggregator.global_ratio() == 0.0

    def test_counts_are_live(self, store):
        """Visits after construction are reflected in later calls."""
        aggregator = ProgressAggregator(store)
        store.get("41051").mark_visited(CanonicalKey(0, 0))

        assert aggregator.parent_summary("41") == ProgressSummary(1, 50)

    def test_reinitialized_region_is_followed(self):
        """A region replaced by initialize_region is read from the store, not a stale copy."""
        store = ProgressStore(grid_size=10)
        square = [(0, 0), (0, 1), (1, 1), (1, 0)]
        store.initialize_region("0601", "Alpha", "06", square)
        aggregator = ProgressAggregator(store)

        store.initialize_region("0601", "Alpha", "06", square)
        store.mark_visited("0601", (0.05, 0.05))

        assert aggregator.region_ratio("0601") == pytest.approx(0.01)
        assert aggregator.parent_summary("06") == ProgressSummary(1, 100)

    def test_regions_added_later_are_included(self, store):
        aggregator = ProgressAggregator(store)
        add_region(store, "41067", "Washington", "41", total=50, visited=25)

        assert aggregator.parent_summary("41") == ProgressSummary(25, 100)
        assert aggregator.global_summary() == ProgressSummary(40, 250)

    def test_grouping_uses_code_not_name(self):
        """Two parent codes with the same display name stay separate."""
        store = ProgressStore()
        add_region(store, "a", "A", "01", total=10, visited=10)
        add_region(store, "b", "B", "02", total=10, visited=0)

        aggregator = ProgressAggregator(store, display_name=lambda code: "Same")

        assert aggregator.parent_ratio("01") == 1.0
        assert aggregator.parent_ratio("02") == 0.0
        assert len(aggregator.by_parent()) == 2


class TestListings:
    def test_state_progress_sorted_by_name(self, store):
        names = [name for name, _ in ProgressAggregator(store).state_progress()]
        assert names == ["California", "Oregon"]

    def test_visited_regions(self, store):
        aggregator = ProgressAggregator(store)

        assert [r.name for r in aggregator.visited_regions()] == ["San Francisco", "San Mateo"]
        assert aggregator.visited_regions("41") == []

    def test_to_dataframe(self, store):
        frame = ProgressAggregator(store).to_dataframe()

        assert list(frame.columns) == ["region_id", "name", "parent_code", "parent_name",
                                       "visited", "total", "ratio"]
        assert list(frame["region_id"]) == ["06075", "06081", "41051"]
        assert list(frame["parent_name"]) == ["California", "California", "Oregon"]
        assert frame["visited"].sum() == 15
        assert frame.loc[0, "ratio"] == pytest.approx(0.10)

    def test_state_name(self):
        assert state_name("06") == "California"
        assert state_name("99") == "99"


class TestReport:
    def test_report_sections(self, store, capsys):
        print_progress_report(ProgressAggregator(store))
        out = capsys.readouterr().out

        assert "EXPLORATION PROGRESS" in out
        assert "United States: 7% explored (15/200 cells)" in out
        assert "California" in out
        assert "Oregon" not in out
        assert "San Francisco" in out and "[06075]" in out

    def test_report_before_any_visit(self, capsys):
        store = ProgressStore()
        add_region(store, "x", "Nowhere", "06", total=10, visited=0)

        print_progress_report(ProgressAggregator(store), country_name="Testland")
        out = capsys.readouterr().out

        assert "Testland: 0% explored (0/10 cells)" in out
        assert "No states visited yet" in out
        assert "No counties visited yet" in out
