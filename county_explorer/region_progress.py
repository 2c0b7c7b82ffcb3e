"""
Per-region visited-cell state.

A RegionProgress holds one county's generated grid and the set of visited
cell keys. The key set is the only authoritative state (it is what gets
persisted); each GridCell's visited flag is derived from it and kept in sync.

Invariants after every mutation:
- visited_cell_count <= total_cell_count
- every visited key is the key of a cell in the grid
"""

from dataclasses import replace
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

import shapely
from shapely.geometry.base import BaseGeometry

from county_explorer.data_types import CanonicalKey, Coordinate, GridCell, GridLattice, RegionGrid
from county_explorer.grid_geometry import planar_distance_m
from county_explorer.quantize import CoordinateLike, quantize


class RegionProgress:
    """
    Grid and visited-cell set for one region (county).

    Args:
        region_id: Stable identifier (e.g. county GEOID '06075')
        name: Display name (e.g. 'San Francisco')
        parent_code: Stable parent identifier used for aggregation
                     (e.g. state FIPS code '06')
        cells: Freshly rasterized grid cells (copied, flags reset)
        visited_keys: Previously visited keys (e.g. restored from disk);
                      keys outside the grid are dropped
        boundary: Region boundary geometry (x=lon, y=lat), optional
        lattice: Lattice the cells were generated on; enables the
                 neighbourhood index for proximity queries
    """

    def __init__(self, region_id: str, name: str, parent_code: str,
                 cells: Iterable[GridCell],
                 visited_keys: Iterable[CoordinateLike] = (),
                 boundary: Optional[BaseGeometry] = None,
                 lattice: Optional[GridLattice] = None):
        self.id = region_id
        self.name = name
        self.parent_code = parent_code
        self.boundary = boundary
        self.lattice = lattice

        self.grid_cells: List[GridCell] = [replace(cell, visited=False) for cell in cells]
        self._cells_by_key: Dict[CanonicalKey, GridCell] = {cell.key: cell for cell in self.grid_cells}
        self._cells_by_index: Dict[Tuple[int, int], GridCell] = {
            (cell.row, cell.col): cell for cell in self.grid_cells
        }

        # Reconcile restored keys against the new grid
        self._visited: Set[CanonicalKey] = set()
        for raw_key in visited_keys:
            key = quantize(raw_key)
            cell = self._cells_by_key.get(key)
            if cell is not None:
                self._visited.add(key)
                cell.visited = True

    @classmethod
    def from_grid(cls, region_id: str, name: str, parent_code: str, grid: RegionGrid,
                  visited_keys: Iterable[CoordinateLike] = (),
                  boundary: Optional[BaseGeometry] = None) -> 'RegionProgress':
        """Build a region from a RegionGrid produced by build_grid()."""
        return cls(region_id, name, parent_code, grid.cells,
                   visited_keys=visited_keys, boundary=boundary, lattice=grid.lattice)

    def __repr__(self) -> str:
        return (f"RegionProgress(id={self.id!r}, name={self.name!r}, parent_code={self.parent_code!r}, "
                f"visited={self.visited_cell_count}/{self.total_cell_count})")

    @property
    def visited_cell_count(self) -> int:
        return len(self._visited)

    @property
    def total_cell_count(self) -> int:
        return len(self.grid_cells)

    @property
    def completion(self) -> float:
        """Fraction of cells visited (0.0 for an empty grid)."""
        if self.total_cell_count == 0:
            return 0.0
        return self.visited_cell_count / self.total_cell_count

    @property
    def visited_keys(self) -> FrozenSet[CanonicalKey]:
        return frozenset(self._visited)

    @property
    def bounds(self) -> Optional[Tuple[float, float, float, float]]:
        """(west, south, east, north) of the grid lattice, if known."""
        return self.lattice.bounds if self.lattice is not None else None

    def mark_visited(self, coordinate: CoordinateLike) -> bool:
        """
        Mark the cell at a coordinate as visited.

        Coordinates that match no grid cell are ignored.

        Returns:
            True if the visited set grew, False otherwise
        """
        key = quantize(coordinate)
        if key in self._visited:
            return False

        cell = self._cells_by_key.get(key)
        if cell is None:
            return False

        self._visited.add(key)
        cell.visited = True
        return True

    def is_visited(self, coordinate: CoordinateLike) -> bool:
        return quantize(coordinate) in self._visited

    def cell_for(self, coordinate: CoordinateLike) -> Optional[GridCell]:
        """The grid cell whose canonical key matches a coordinate."""
        return self._cells_by_key.get(quantize(coordinate))

    def cell_at(self, point: Coordinate) -> Optional[GridCell]:
        """
        The grid cell whose square contains a point (e.g. a map tap).

        Returns:
            GridCell, or None if the point is outside the grid or falls on a
            square whose center was outside the boundary
        """
        if self.lattice is None:
            return None
        index = self.lattice.index_of(Coordinate(*point))
        if index is None:
            return None
        return self._cells_by_index.get(index)

    def cells_within(self, location: Coordinate, radius_m: float) -> List[GridCell]:
        """
        Cells whose center is within radius_m of a location (inclusive).

        With a lattice, only the rows/columns around the location are
        examined, so the cost depends on the radius and not on the grid size.
        Without one (cells supplied by hand) every cell is checked.
        """
        location = Coordinate(*location)

        if self.lattice is None:
            candidates: Iterable[GridCell] = self.grid_cells
        else:
            index_range = self.lattice.index_range(location, radius_m)
            if index_range is None:
                return []
            row_lo, row_hi, col_lo, col_hi = index_range
            candidates = (
                self._cells_by_index[(row, col)]
                for row in range(row_lo, row_hi + 1)
                for col in range(col_lo, col_hi + 1)
                if (row, col) in self._cells_by_index
            )

        return [cell for cell in candidates
                if planar_distance_m(location, cell.coordinate) <= radius_m]

    def contains(self, coordinate: Coordinate) -> bool:
        """Whether a coordinate lies inside the region boundary."""
        if self.boundary is None or self.boundary.is_empty:
            return False
        lat, lon = coordinate
        return bool(shapely.contains_xy(self.boundary, lon, lat))

    def snapshot(self) -> Dict[str, Any]:
        """Plain-data view of the region for presentation layers."""
        return {
            "id": self.id,
            "name": self.name,
            "parent_code": self.parent_code,
            "visited_cell_count": self.visited_cell_count,
            "total_cell_count": self.total_cell_count,
            "completion": self.completion,
            "cells": [
                {
                    "id": cell.id,
                    "latitude": cell.coordinate.latitude,
                    "longitude": cell.coordinate.longitude,
                    "visited": cell.visited,
                }
                for cell in self.grid_cells
            ],
        }
