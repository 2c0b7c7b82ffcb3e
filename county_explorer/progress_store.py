"""
Progress store: owner of all regions and their visited cells.

The store is the single writer for visited-cell state. Two independent
producers feed it:
- selection: a user explicitly marks a cell (mark_visited / mark_visited_at)
- location: a location feed reports a position (apply_location_update)

Every public call runs under one re-entrant lock, so producers on different
threads are serialized. After each call that changed any visited set the
whole mapping is written to the backend once (not once per cell), and
subscribed listeners are told which keys became visited.

Usage:
    from county_explorer.progress_store import ProgressStore
    from county_explorer.persistence import VisitedCellsFile

    store = ProgressStore(VisitedCellsFile())
    store.initialize_region("06075", "San Francisco", "06", boundary_ring)
    store.apply_location_update((37.7749, -122.4194), radius_m=100)
"""

import threading
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set

from shapely.errors import ShapelyError

from county_explorer.config import DEFAULT_GRID_SIZE, DEFAULT_VISIT_RADIUS_METERS
from county_explorer.data_types import CanonicalKey, Coordinate, RegionGrid, VisitEvent
from county_explorer.grid_geometry import boundary_to_geometry, build_grid
from county_explorer.persistence import MemoryVisitedCells, VisitedCellsBackend, encode_visited
from county_explorer.quantize import CoordinateLike
from county_explorer.region_progress import RegionProgress


Listener = Callable[[VisitEvent], None]


class ProgressStore:
    """
    Holds every loaded region and persists visited cells.

    Args:
        backend: Visited-cell storage; defaults to in-memory (nothing on disk)
        grid_size: Default grid size for initialize_region()
        autosave: Write to the backend after every changing call
    """

    def __init__(self, backend: Optional[VisitedCellsBackend] = None,
                 grid_size: int = DEFAULT_GRID_SIZE,
                 autosave: bool = True):
        self.backend = backend if backend is not None else MemoryVisitedCells()
        self.grid_size = grid_size
        self.autosave = autosave

        self._lock = threading.RLock()
        self._regions: Dict[str, RegionProgress] = {}
        self._listeners: List[Listener] = []

        # Restored before any region exists so initialize_region can reconcile
        self._persisted: Dict[str, Set[CanonicalKey]] = self.backend.load()

    # ------------------------------------------------------------------
    # Region registration
    # ------------------------------------------------------------------

    def initialize_region(self, region_id: str, name: str, parent_code: str,
                          boundary: Any, grid_size: Optional[int] = None) -> RegionProgress:
        """
        Rasterize a boundary and register the region.

        Visited keys are seeded from persisted state and from any region
        already registered under the same id, so re-initializing never loses
        visits. An unusable boundary yields a region with an empty grid.

        Args:
            region_id: Stable identifier (e.g. county GEOID)
            name: Display name
            parent_code: Stable parent code used for aggregation (e.g. state FIPS)
            boundary: Ring of (lat, lon) pairs, shapely geometry, or GeoJSON mapping
            grid_size: Override the store's default grid size

        Returns:
            The registered RegionProgress
        """
        size = grid_size if grid_size is not None else self.grid_size

        try:
            geometry = boundary_to_geometry(boundary)
            grid = build_grid(geometry, size)
        except (ValueError, TypeError, KeyError, AttributeError, ShapelyError) as e:
            print(f"[!] Unusable boundary for region {region_id} ({name}): {e}")
            geometry = None
            grid = RegionGrid(lattice=None)

        with self._lock:
            seed: Set[CanonicalKey] = set(self._persisted.get(region_id, ()))
            existing = self._regions.get(region_id)
            if existing is not None:
                seed |= existing.visited_keys

            region = RegionProgress.from_grid(region_id, name, parent_code, grid,
                                              visited_keys=seed, boundary=geometry)
            self._regions[region_id] = region
            return region

    def add_region(self, region: RegionProgress) -> RegionProgress:
        """
        Register a region built elsewhere (e.g. rasterized part by part).

        Persisted keys for the region id are reconciled into it; keys that
        match none of its cells are ignored.
        """
        with self._lock:
            for key in self._persisted.get(region.id, ()):
                region.mark_visited(key)
            self._regions[region.id] = region
            return region

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def mark_visited(self, region_id: str, coordinate: CoordinateLike) -> bool:
        """
        Selection-driven visit of the cell at a coordinate.

        Unknown regions and coordinates outside the grid are ignored.

        Returns:
            True if a new cell was marked
        """
        with self._lock:
            region = self._regions.get(region_id)
            if region is None:
                return False

            cell = region.cell_for(coordinate)
            if cell is None or not region.mark_visited(cell.key):
                return False

            self._record({region_id: frozenset([cell.key])}, source="selection")
            return True

    def mark_visited_at(self, region_id: str, point: Coordinate) -> bool:
        """
        Selection by tap: mark the cell whose square contains a point.

        Returns:
            True if a new cell was marked
        """
        with self._lock:
            region = self._regions.get(region_id)
            if region is None:
                return False

            cell = region.cell_at(point)
            if cell is None:
                return False
            return self.mark_visited(region_id, cell.key)

    def apply_location_update(self, location: Coordinate,
                              radius_m: float = DEFAULT_VISIT_RADIUS_METERS) -> Dict[str, FrozenSet[CanonicalKey]]:
        """
        Mark every unvisited cell within radius_m of a location.

        Each region answers from its neighbourhood index, so regions far from
        the location cost a constant-time range check.

        Args:
            location: Current (latitude, longitude)
            radius_m: Visit radius in meters (inclusive)

        Returns:
            {region_id: newly visited keys} for regions that changed
        """
        location = Coordinate(*location)
        changes: Dict[str, FrozenSet[CanonicalKey]] = {}

        with self._lock:
            for region_id, region in self._regions.items():
                newly_visited = set()
                for cell in region.cells_within(location, radius_m):
                    if not cell.visited and region.mark_visited(cell.key):
                        newly_visited.add(cell.key)
                if newly_visited:
                    changes[region_id] = frozenset(newly_visited)

            if changes:
                self._record(changes, source="location")

        return changes

    def _record(self, changes: Dict[str, FrozenSet[CanonicalKey]], source: str) -> None:
        """Merge changes into persisted state, save, and notify listeners."""
        for region_id, keys in changes.items():
            self._persisted.setdefault(region_id, set()).update(keys)

        if self.autosave:
            self.backend.save(self._persisted)

        for region_id, keys in changes.items():
            self._notify(VisitEvent(region_id=region_id, keys=keys, source=source))

    def save(self) -> bool:
        """Write the current visited mapping to the backend."""
        with self._lock:
            return self.backend.save(self._persisted)

    # ------------------------------------------------------------------
    # Change notifications
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for VisitEvents.

        Returns:
            A function that removes the listener again
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: VisitEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                print(f"[!] Progress listener {listener!r} failed: {e}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, region_id: str) -> Optional[RegionProgress]:
        with self._lock:
            return self._regions.get(region_id)

    @property
    def regions(self) -> List[RegionProgress]:
        with self._lock:
            return list(self._regions.values())

    @property
    def region_ids(self) -> List[str]:
        with self._lock:
            return list(self._regions.keys())

    def __contains__(self, region_id: object) -> bool:
        with self._lock:
            return region_id in self._regions

    def __len__(self) -> int:
        with self._lock:
            return len(self._regions)

    def region_at(self, coordinate: Coordinate) -> Optional[RegionProgress]:
        """The first registered region whose boundary contains a coordinate."""
        with self._lock:
            for region in self._regions.values():
                if region.contains(coordinate):
                    return region
        return None

    def visited_mapping(self) -> Dict[str, list]:
        """
        Serializable snapshot of everything persisted.

        Includes regions that are not loaded in this session.
        """
        with self._lock:
            return encode_visited(self._persisted)

    def persisted_keys(self, region_id: str) -> FrozenSet[CanonicalKey]:
        with self._lock:
            return frozenset(self._persisted.get(region_id, ()))

