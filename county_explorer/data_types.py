"""
Data type definitions for the county-explorer project.

DATA FLOW:
    Boundary polygon -> GridLattice (bounding box split into grid_size^2 cells)
         ->
    Cell centers inside the boundary -> GridCell (canonical coordinate)
         ->
    RegionGrid (lattice + ordered cells) -> RegionProgress
         ->
    Visits -> CanonicalKey sets -> VisitEvent notifications

Coordinates are (latitude, longitude) in decimal degrees throughout.
Shapely geometries use (x, y) = (longitude, latitude).
"""

import math
from dataclasses import dataclass, field
from typing import FrozenSet, List, NamedTuple, Optional, Tuple

import numpy as np

from county_explorer.config import METERS_PER_DEGREE, QUANTIZATION_SCALE


Bounds = Tuple[float, float, float, float]  # (west, south, east, north)

# Micro-degree component for NaN or infinite input. Larger than any finite
# float times QUANTIZATION_SCALE, so it never matches a grid cell.
NON_FINITE_E6 = 2 ** 1024


class Coordinate(NamedTuple):
    """A (latitude, longitude) pair in decimal degrees."""
    latitude: float
    longitude: float


def _component_degrees(micro_degrees: int) -> float:
    if micro_degrees == NON_FINITE_E6:
        return math.nan
    return micro_degrees / QUANTIZATION_SCALE


class CanonicalKey(NamedTuple):
    """
    A coordinate quantized to 1e-6 degree, stored as integer micro-degrees.

    Integer storage makes the key exact: two keys are equal only if they name
    the same lattice point, regardless of how the floats were computed.
    """
    lat_e6: int
    lon_e6: int

    @property
    def is_finite(self) -> bool:
        return self.lat_e6 != NON_FINITE_E6 and self.lon_e6 != NON_FINITE_E6

    @property
    def latitude(self) -> float:
        return _component_degrees(self.lat_e6)

    @property
    def longitude(self) -> float:
        return _component_degrees(self.lon_e6)

    def to_coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


@dataclass
class GridCell:
    """
    One trackable sample point of a region's grid.

    The visited flag mirrors the owning region's visited-key set; the set is
    authoritative, the flag is kept in sync for display.
    """
    id: str
    key: CanonicalKey
    row: int
    col: int
    visited: bool = False

    @property
    def coordinate(self) -> Coordinate:
        return self.key.to_coordinate()


@dataclass(frozen=True)
class GridLattice:
    """
    The regular grid a region was rasterized on.

    The bounding box is split into grid_size rows (latitude) and grid_size
    columns (longitude) of equal size in degree space. Row 0 is the
    southernmost row, column 0 the westernmost column.
    """
    west: float
    south: float
    east: float
    north: float
    grid_size: int

    @property
    def bounds(self) -> Bounds:
        return (self.west, self.south, self.east, self.north)

    @property
    def cell_width(self) -> float:
        """Cell width in degrees of longitude."""
        return (self.east - self.west) / self.grid_size

    @property
    def cell_height(self) -> float:
        """Cell height in degrees of latitude."""
        return (self.north - self.south) / self.grid_size

    def center(self, row: int, col: int) -> Coordinate:
        """Center of the cell at (row, col), unquantized."""
        return Coordinate(
            self.south + (row + 0.5) * self.cell_height,
            self.west + (col + 0.5) * self.cell_width,
        )

    def centers(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        All cell centers as two (grid_size, grid_size) arrays.

        Returns:
            Tuple of (latitudes, longitudes), indexed [row, col]
        """
        steps = np.arange(self.grid_size, dtype=np.float64) + 0.5
        lat_centers = self.south + steps * self.cell_height
        lon_centers = self.west + steps * self.cell_width
        lons, lats = np.meshgrid(lon_centers, lat_centers)
        return lats, lons

    def index_of(self, point: Coordinate) -> Optional[Tuple[int, int]]:
        """
        Find the (row, col) of the cell square containing a point.

        Points on the north/east edge belong to the last row/column.

        Returns:
            (row, col), or None if the point is outside the bounding box
        """
        lat, lon = point
        if not (self.south <= lat <= self.north and self.west <= lon <= self.east):
            return None
        if not (self.cell_width > 0 and self.cell_height > 0):
            return None

        row = min(int(math.floor((lat - self.south) / self.cell_height)), self.grid_size - 1)
        col = min(int(math.floor((lon - self.west) / self.cell_width)), self.grid_size - 1)
        return row, col

    def index_range(self, location: Coordinate,
                    radius_m: float) -> Optional[Tuple[int, int, int, int]]:
        """
        Row/column range that can hold cells within radius_m of a location.

        The range is padded by one cell on every side so that cell centers
        shifted by quantization are never missed; callers still apply the
        exact distance test.

        Args:
            location: Query point
            radius_m: Search radius in meters

        Returns:
            (row_lo, row_hi, col_lo, col_hi), inclusive, or None if no cell
            of this lattice can be in range (including a NaN or infinite
            location, or a NaN radius)
        """
        if math.isnan(radius_m) or radius_m < 0 or not (self.cell_width > 0 and self.cell_height > 0):
            return None

        lat, lon = location
        if not (math.isfinite(lat) and math.isfinite(lon)):
            return None
        if math.isinf(radius_m):
            return 0, self.grid_size - 1, 0, self.grid_size - 1
        dlat = radius_m / METERS_PER_DEGREE

        row_lo = max(0, int(math.floor((lat - dlat - self.south) / self.cell_height)) - 1)
        row_hi = min(self.grid_size - 1, int(math.floor((lat + dlat - self.south) / self.cell_height)) + 1)
        if row_lo > row_hi:
            return None

        # Longitude degrees shrink with latitude; use the widest case in the band
        max_abs_lat = min(90.0, max(abs(lat - dlat), abs(lat + dlat)))
        cos_lat = math.cos(math.radians(max_abs_lat))
        if cos_lat < 1e-12:
            return row_lo, row_hi, 0, self.grid_size - 1

        dlon = radius_m / (METERS_PER_DEGREE * cos_lat)
        col_lo = max(0, int(math.floor((lon - dlon - self.west) / self.cell_width)) - 1)
        col_hi = min(self.grid_size - 1, int(math.floor((lon + dlon - self.west) / self.cell_width)) + 1)
        if col_lo > col_hi:
            return None

        return row_lo, row_hi, col_lo, col_hi


@dataclass
class RegionGrid:
    """Result of rasterizing one boundary: the lattice and the cells kept."""
    lattice: Optional[GridLattice]
    cells: List[GridCell] = field(default_factory=list)


@dataclass(frozen=True)
class VisitEvent:
    """
    Change notification emitted by the progress store.

    Attributes:
        region_id: Region whose visited set grew
        keys: Newly visited cell keys
        source: 'selection' (explicit mark) or 'location' (proximity update)
    """
    region_id: str
    keys: FrozenSet[CanonicalKey]
    source: str
