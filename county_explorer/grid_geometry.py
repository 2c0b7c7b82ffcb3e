"""
Grid geometry for region rasterization.

This module handles all grid-related geometric calculations:
- Normalizing boundary input (coordinate rings, shapely geometry, GeoJSON)
- Splitting a boundary's bounding box into a grid_size x grid_size lattice
- Keeping the cells whose center lies inside the boundary
- Planar distance between coordinates

Rasterization is deterministic: the same boundary and grid_size always give
the same ordered list of canonical cell keys, which is what lets persisted
visited keys be matched against a freshly generated grid.
"""

import math
from typing import Any, List, Mapping, Optional

import numpy as np
import shapely
from shapely.geometry import Polygon, shape
from shapely.geometry.base import BaseGeometry

from county_explorer.config import DEFAULT_GRID_SIZE, METERS_PER_DEGREE
from county_explorer.data_types import Coordinate, GridCell, GridLattice, RegionGrid
from county_explorer.quantize import quantize


def boundary_to_geometry(boundary: Any) -> Optional[BaseGeometry]:
    """
    Normalize a region boundary into a shapely geometry (x=lon, y=lat).

    Args:
        boundary: One of
                  - sequence of (latitude, longitude) pairs (a single ring,
                    closed or open)
                  - shapely Polygon / MultiPolygon (already lon/lat)
                  - GeoJSON-like mapping with 'type' and 'coordinates'

    Returns:
        Shapely geometry, or None for rings with fewer than 3 points

    Raises:
        ValueError / TypeError / KeyError / AttributeError / ShapelyError:
            If the input cannot be interpreted at all (e.g. a GeoJSON
            mapping with an unknown or missing type)
    """
    if boundary is None:
        return None

    if isinstance(boundary, BaseGeometry):
        geometry = boundary
    elif isinstance(boundary, Mapping):
        geometry = shape(boundary)
    else:
        ring = [(float(lon), float(lat)) for lat, lon in boundary]
        if len(ring) < 3:
            return None
        geometry = Polygon(ring)

    # Self-intersecting rings: repair instead of failing (may lose coverage)
    if not geometry.is_empty and not geometry.is_valid:
        geometry = shapely.make_valid(geometry)

    return geometry


def build_grid(boundary: Any, grid_size: int = DEFAULT_GRID_SIZE) -> RegionGrid:
    """
    Rasterize a boundary into the cells whose centers lie inside it.

    The bounding box is split into grid_size x grid_size equal cells in
    degree space. Each center is tested with shapely's vectorized
    point-in-polygon; points exactly on the boundary count as outside.

    Multi-part boundaries (MultiPolygon) are rasterized on the single
    lattice spanning all parts, so the result is the union of the parts.

    Args:
        boundary: Anything accepted by boundary_to_geometry()
        grid_size: Cells per side of the bounding box (default 40)

    Returns:
        RegionGrid with the lattice and the cells (row-major order). Zero-area,
        empty or degenerate boundaries give an empty cell list.

    Example:
        Input:  [(0, 0), (0, 1), (1, 1), (1, 0)], grid_size=10
        Output: 100 cells at (0.05 + 0.1*i, 0.05 + 0.1*j)
    """
    geometry = boundary_to_geometry(boundary)
    if geometry is None or geometry.is_empty or grid_size <= 0:
        return RegionGrid(lattice=None)

    west, south, east, north = geometry.bounds
    lattice = GridLattice(west, south, east, north, int(grid_size))

    if geometry.area <= 0:
        return RegionGrid(lattice=lattice)

    lats, lons = lattice.centers()
    inside = shapely.contains_xy(geometry, lons, lats)

    cells: List[GridCell] = []
    for row, col in zip(*np.nonzero(inside)):
        row, col = int(row), int(col)
        key = quantize((float(lats[row, col]), float(lons[row, col])))
        cells.append(GridCell(id=f"{row}:{col}", key=key, row=row, col=col))

    return RegionGrid(lattice=lattice, cells=cells)


def rasterize(boundary: Any, grid_size: int = DEFAULT_GRID_SIZE) -> List[GridCell]:
    """Cells of build_grid(), without the lattice."""
    return build_grid(boundary, grid_size).cells


def planar_distance_m(a: Coordinate, b: Coordinate) -> float:
    """
    Approximate ground distance in meters between two coordinates.

    Equirectangular projection: latitude degrees are METERS_PER_DEGREE long,
    longitude degrees are scaled by cos(mean latitude). Accurate to well
    under a percent at the ~100 m scale this is used for.

    Args:
        a: First coordinate (latitude, longitude)
        b: Second coordinate (latitude, longitude)

    Returns:
        Distance in meters (symmetric in a and b)
    """
    lat_a, lon_a = a
    lat_b, lon_b = b
    mean_lat = math.radians((lat_a + lat_b) / 2.0)
    dx = (lon_b - lon_a) * METERS_PER_DEGREE * math.cos(mean_lat)
    dy = (lat_b - lat_a) * METERS_PER_DEGREE
    return math.hypot(dx, dy)
