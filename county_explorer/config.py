"""
Central configuration for the county-explorer project.

This is the single source of truth for default values.
"""
from pathlib import Path

# Grid resolution per region: each county's bounding box is split into
# DEFAULT_GRID_SIZE x DEFAULT_GRID_SIZE cells (40x40 = up to 1600 cells).
# Only cells whose center falls inside the county boundary are kept.
DEFAULT_GRID_SIZE = 40

# A location update marks every cell whose center lies within this distance
DEFAULT_VISIT_RADIUS_METERS = 100.0

# Coordinates are quantized to 1e-6 degree (~0.11 m at the equator)
COORDINATE_PRECISION = 6
QUANTIZATION_SCALE = 10 ** COORDINATE_PRECISION

# Planar distance approximation: 1 degree ~ 111.32 km
METERS_PER_DEGREE = 111_320

# Name of the single persisted entry holding all visited cells
SAVE_KEY = "VisitedCells"

# Where visited-cell state lives (VisitedCells.json + lock file)
PROGRESS_DIR = Path("data/progress")

# Cached county boundaries (pickled GeoDataFrames)
BOUNDARY_CACHE_DIR = Path("data/.cache/boundaries")

# US Census cartographic boundary file (counties, 1:20m)
DEFAULT_BOUNDARIES_URL = "https://www2.census.gov/geo/tiger/GENZ2018/shp/cb_2018_us_county_20m.zip"

# Location feeds are throttled to at most one update per interval
DEFAULT_LOCATION_INTERVAL_SECONDS = 5.0
