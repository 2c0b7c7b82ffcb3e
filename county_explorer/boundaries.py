"""
County boundary loading, caching, and registration.

Boundaries come from a GeoJSON file or shapefile with one feature per county
and these properties (US Census cartographic boundary files use them):
    GEOID   - stable county id, e.g. '06075'
    NAME    - county name, e.g. 'San Francisco'
    STATEFP - state FIPS code, e.g. '06'

Rows missing an id or a name are skipped, not fatal.
"""
import pickle
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Union

import geopandas as gpd
import pandas as pd

from county_explorer.config import BOUNDARY_CACHE_DIR, DEFAULT_BOUNDARIES_URL


@dataclass(frozen=True)
class BoundaryRecord:
    """One region as supplied by the boundary source."""
    region_id: str
    name: str
    parent_code: str
    geometry: Any  # shapely geometry (x=lon, y=lat) or a (lat, lon) ring


def _clean_field(value: Any) -> Optional[str]:
    """String value of a property, or None if missing/blank."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    text = str(value).strip()
    return text or None


class CountyBoundarySource:
    """
    Loads county boundaries with caching.

    Args:
        cache_dir: Directory to cache loaded boundary data
    """

    def __init__(self, cache_dir: Union[str, Path] = BOUNDARY_CACHE_DIR):
        self.cache_dir = Path(cache_dir)
        self._counties: Optional[gpd.GeoDataFrame] = None
        self._source: Optional[str] = None

    def _cache_file(self, source: str) -> Path:
        stem = Path(source.split('?')[0]).stem or "counties"
        return self.cache_dir / f"{stem}.pkl"

    def load_counties(self, source: Optional[Union[str, Path]] = None,
                      force_reload: bool = False) -> gpd.GeoDataFrame:
        """
        Load county boundaries, reprojected to WGS84 (EPSG:4326).

        Args:
            source: Local path or URL readable by geopandas
                    (default: Census 1:20m county file)
            force_reload: Ignore the cache and read the source again

        Returns:
            GeoDataFrame with one row per county
        """
        source = str(source) if source is not None else DEFAULT_BOUNDARIES_URL

        if not force_reload and self._counties is not None and self._source == source:
            return self._counties

        cache_file = self._cache_file(source)
        if not force_reload and cache_file.exists():
            print(f"   - Loading boundaries from cache: {cache_file}")
            try:
                with open(cache_file, 'rb') as f:
                    self._counties = pickle.load(f)
                    self._source = source
                    return self._counties
            except (OSError, pickle.UnpicklingError, EOFError) as e:
                print(f"[!] Ignoring unreadable boundary cache {cache_file}: {e}")

        print(f"   - Reading county boundaries from {source}...")
        counties = gpd.read_file(source)
        if counties.crs is not None and counties.crs.to_epsg() != 4326:
            counties = counties.to_crs(epsg=4326)

        self._counties = counties
        self._source = source

        # Remote sources are slow to fetch; cache them for future use
        if "://" in source:
            try:
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                with open(cache_file, 'wb') as f:
                    pickle.dump(counties, f)
                print(f"   - Cached boundaries to: {cache_file}")
            except OSError as e:
                print(f"WARNING: Could not cache boundaries to {cache_file}: {e}")

        return counties

    def iter_records(self, counties: Optional[gpd.GeoDataFrame] = None,
                     id_field: str = "GEOID", name_field: str = "NAME",
                     parent_field: str = "STATEFP") -> Iterator[BoundaryRecord]:
        """
        Turn boundary rows into BoundaryRecords.

        Args:
            counties: Frame to read (default: the last frame loaded)
            id_field: Column holding the stable region id
            name_field: Column holding the display name
            parent_field: Column holding the parent (state) code

        Yields:
            BoundaryRecord per usable row; malformed rows are skipped
        """
        if counties is None:
            counties = self.load_counties()

        geometry_column = counties.geometry.name
        skipped = 0
        for _, row in counties.iterrows():
            region_id = _clean_field(row.get(id_field))
            name = _clean_field(row.get(name_field))
            if region_id is None or name is None:
                skipped += 1
                continue

            parent_code = _clean_field(row.get(parent_field)) or ""
            yield BoundaryRecord(region_id, name, parent_code, row[geometry_column])

        if skipped:
            print(f"[!] Skipped {skipped} boundary rows without '{id_field}' or '{name_field}'")


def register_boundaries(store, records: Iterable[Any], grid_size: Optional[int] = None) -> int:
    """
    Initialize one region per boundary record.

    Args:
        store: ProgressStore to register regions in
        records: BoundaryRecords, or (region_id, name, parent_code, boundary)
                 tuples
        grid_size: Override the store's grid size

    Returns:
        Number of regions initialized
    """
    loaded = 0
    for record in records:
        try:
            region_id, name, parent_code, boundary = (
                (record.region_id, record.name, record.parent_code, record.geometry)
                if isinstance(record, BoundaryRecord) else record
            )
        except (TypeError, ValueError):
            print(f"[!] Skipping malformed boundary record: {record!r}")
            continue

        region_id = _clean_field(region_id)
        name = _clean_field(name)
        if region_id is None or name is None:
            print(f"[!] Skipping boundary record without id or name: {record!r}")
            continue

        store.initialize_region(region_id, name, _clean_field(parent_code) or "", boundary,
                                grid_size=grid_size)
        loaded += 1

    return loaded
