"""
Completion ratios derived from the progress store.

Everything here is read-only: on every call the aggregator reads the store's
current regions and sums visited/total cell counts per region, per parent code
(state) and overall. Grouping always uses the stable parent code a region
was initialized with, never a display name.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd

from county_explorer.progress_store import ProgressStore
from county_explorer.region_progress import RegionProgress
from county_explorer.us_states import state_name


@dataclass(frozen=True)
class ProgressSummary:
    """Visited and total cell counts for a group of regions."""
    visited: int
    total: int

    @property
    def ratio(self) -> float:
        return self.visited / self.total if self.total > 0 else 0.0

    @property
    def percent(self) -> int:
        """Whole percent explored, rounded down."""
        return int(self.ratio * 100)

    def __add__(self, other: 'ProgressSummary') -> 'ProgressSummary':
        return ProgressSummary(self.visited + other.visited, self.total + other.total)


EMPTY_SUMMARY = ProgressSummary(0, 0)


def summarize(regions: List[RegionProgress]) -> ProgressSummary:
    """Sum visited and total cells over regions."""
    summary = EMPTY_SUMMARY
    for region in regions:
        summary = summary + ProgressSummary(region.visited_cell_count, region.total_cell_count)
    return summary


class ProgressAggregator:
    """
    Region / state / country progress over the store's current regions.

    Nothing is cached: regions registered or re-initialized after
    construction are reflected in the next call.

    Args:
        store: Progress store to read
        display_name: Maps a parent code to a display name (default: US
                      state names from FIPS codes)
    """

    def __init__(self, store: ProgressStore,
                 display_name: Callable[[str], str] = state_name):
        self._store = store
        self._display_name = display_name

    def region_summary(self, region_id: str) -> ProgressSummary:
        region = self._store.get(region_id)
        if region is None:
            return EMPTY_SUMMARY
        return ProgressSummary(region.visited_cell_count, region.total_cell_count)

    def region_ratio(self, region_id: str) -> float:
        """visited / total for one region (0.0 if unknown or empty)."""
        return self.region_summary(region_id).ratio

    def parent_summary(self, parent_code: str) -> ProgressSummary:
        return summarize([r for r in self._store.regions if r.parent_code == parent_code])

    def parent_ratio(self, parent_code: str) -> float:
        """Summed visited / summed total over regions sharing a parent code."""
        return self.parent_summary(parent_code).ratio

    def global_summary(self) -> ProgressSummary:
        return summarize(self._store.regions)

    def global_ratio(self) -> float:
        """Summed visited / summed total over all regions."""
        return self.global_summary().ratio

    def by_parent(self) -> Dict[str, ProgressSummary]:
        """Summary for every parent code present, keyed by code."""
        groups: Dict[str, ProgressSummary] = {}
        for region in self._store.regions:
            summary = ProgressSummary(region.visited_cell_count, region.total_cell_count)
            groups[region.parent_code] = groups.get(region.parent_code, EMPTY_SUMMARY) + summary
        return groups

    def state_progress(self) -> List[Tuple[str, ProgressSummary]]:
        """(display name, summary) per parent code, sorted by display name."""
        return sorted(
            ((self._display_name(code), summary) for code, summary in self.by_parent().items()),
            key=lambda item: item[0],
        )

    def visited_regions(self, parent_code: Optional[str] = None) -> List[RegionProgress]:
        """Regions with at least one visited cell, sorted by name."""
        regions = [
            r for r in self._store.regions
            if r.visited_cell_count > 0 and (parent_code is None or r.parent_code == parent_code)
        ]
        return sorted(regions, key=lambda r: (r.name, r.id))

    def to_dataframe(self) -> pd.DataFrame:
        """
        Per-region progress table.

        Returns:
            DataFrame with columns region_id, name, parent_code, parent_name,
            visited, total, ratio; sorted by parent_code then name
        """
        rows = [
            {
                "region_id": region.id,
                "name": region.name,
                "parent_code": region.parent_code,
                "parent_name": self._display_name(region.parent_code),
                "visited": region.visited_cell_count,
                "total": region.total_cell_count,
                "ratio": region.completion,
            }
            for region in self._store.regions
        ]
        columns = ["region_id", "name", "parent_code", "parent_name", "visited", "total", "ratio"]
        frame = pd.DataFrame(rows, columns=columns)
        return frame.sort_values(["parent_code", "name"], ignore_index=True)
