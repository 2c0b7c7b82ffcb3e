"""
County exploration progress tracking.

Rasterizes county boundaries into grids of trackable cells, records which
cells have been visited (by selection or by proximity to a location feed),
persists visited cells, and aggregates county/state/country completion.
"""

from county_explorer.data_types import CanonicalKey, Coordinate, GridCell, VisitEvent
from county_explorer.quantize import quantize, format_key, parse_key
from county_explorer.grid_geometry import rasterize, build_grid, planar_distance_m
from county_explorer.region_progress import RegionProgress
from county_explorer.progress_store import ProgressStore
from county_explorer.aggregator import ProgressAggregator, ProgressSummary

__all__ = [
    'CanonicalKey', 'Coordinate', 'GridCell', 'VisitEvent',
    'quantize', 'format_key', 'parse_key',
    'rasterize', 'build_grid', 'planar_distance_m',
    'RegionProgress', 'ProgressStore',
    'ProgressAggregator', 'ProgressSummary',
]
