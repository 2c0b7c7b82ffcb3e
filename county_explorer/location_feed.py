"""
Location feed adapter.

A location feed delivers (coordinate, timestamp) events at its own cadence.
Each accepted event drives one ProgressStore.apply_location_update() call.
Updates are throttled: an update scans the neighbourhood of every region,
so a chatty GPS source (several fixes per second) is thinned to at most one
update per min_interval_seconds.

Track files are CSV with rows:
    latitude,longitude[,timestamp]
The header row is optional. Timestamps are epoch seconds or ISO 8601.

Usage:
    from county_explorer.location_feed import read_location_csv, replay_track

    events = read_location_csv(Path("tracks/commute.csv"))
    result = replay_track(store, events, radius_m=100, min_interval_seconds=5)
"""

import csv
import math
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from tqdm import tqdm

from county_explorer.config import DEFAULT_LOCATION_INTERVAL_SECONDS, DEFAULT_VISIT_RADIUS_METERS
from county_explorer.data_types import CanonicalKey, Coordinate
from county_explorer.progress_store import ProgressStore


@dataclass(frozen=True)
class LocationEvent:
    """One position fix from the location feed."""
    coordinate: Coordinate
    timestamp: Optional[float] = None  # epoch seconds


@dataclass
class ReplayResult:
    """Outcome of replaying a track through the store."""
    processed: int = 0
    skipped: int = 0
    newly_visited: Dict[str, Set[CanonicalKey]] = field(default_factory=dict)

    @property
    def newly_visited_count(self) -> int:
        return sum(len(keys) for keys in self.newly_visited.values())


def _parse_timestamp(text: str) -> Optional[float]:
    text = text.strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).timestamp()
    except ValueError:
        return None


def read_location_csv(path: Path) -> List[LocationEvent]:
    """
    Read a recorded track.

    Rows that do not hold two finite numbers in the first two columns are
    skipped (this also skips a header row).

    Args:
        path: CSV file

    Returns:
        Events in file order
    """
    events: List[LocationEvent] = []
    skipped = 0

    with open(path, 'r', newline='', encoding='utf-8') as f:
        for row in csv.reader(f):
            if len(row) < 2:
                skipped += 1
                continue
            try:
                lat = float(row[0])
                lon = float(row[1])
            except ValueError:
                skipped += 1
                continue
            if not (math.isfinite(lat) and math.isfinite(lon)) or abs(lat) > 90 or abs(lon) > 180:
                skipped += 1
                continue

            timestamp = _parse_timestamp(row[2]) if len(row) > 2 else None
            events.append(LocationEvent(Coordinate(lat, lon), timestamp))

    if skipped:
        print(f"[!] Skipped {skipped} unusable rows in {path}")

    return events


class LocationThrottle:
    """
    Accept at most one event per min_interval_seconds.

    Events without a timestamp are always accepted.
    """

    def __init__(self, min_interval_seconds: float = DEFAULT_LOCATION_INTERVAL_SECONDS):
        self.min_interval_seconds = min_interval_seconds
        self._last_accepted: Optional[float] = None

    def should_process(self, timestamp: Optional[float]) -> bool:
        if timestamp is None:
            return True
        if self._last_accepted is not None and timestamp - self._last_accepted < self.min_interval_seconds:
            return False
        self._last_accepted = timestamp
        return True


def replay_track(store: ProgressStore, events: Iterable[LocationEvent],
                 radius_m: float = DEFAULT_VISIT_RADIUS_METERS,
                 min_interval_seconds: float = DEFAULT_LOCATION_INTERVAL_SECONDS,
                 show_progress: bool = False) -> ReplayResult:
    """
    Feed recorded events through the store, throttled.

    Args:
        store: Progress store to update
        events: Location events in time order
        radius_m: Visit radius passed to apply_location_update()
        min_interval_seconds: Minimum spacing between processed events
        show_progress: Show a tqdm progress bar

    Returns:
        ReplayResult with counts and the newly visited keys per region
    """
    events = list(events)
    throttle = LocationThrottle(min_interval_seconds)
    result = ReplayResult()

    with tqdm(total=len(events), desc="Replaying track", unit="fix", disable=not show_progress) as pbar:
        for event in events:
            pbar.update(1)
            if not throttle.should_process(event.timestamp):
                result.skipped += 1
                continue

            changes = store.apply_location_update(event.coordinate, radius_m)
            result.processed += 1
            for region_id, keys in changes.items():
                result.newly_visited.setdefault(region_id, set()).update(keys)

    return result
