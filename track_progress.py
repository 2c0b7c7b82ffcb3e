"""
Record county exploration and show progress.

Loads county boundaries, rasterizes each county into a grid of cells,
restores visited cells from data/progress/VisitedCells.json, applies the
requested visit, and prints country / state / county progress.

Usage:
    python track_progress.py --state 06
    python track_progress.py --state 06 --visit 37.7749 -122.4194
    python track_progress.py --state 06 --mark 06075 37.7749 -122.4194
    python track_progress.py --state 06 --where 37.7749 -122.4194
    python track_progress.py --boundaries data/counties.geojson --export-csv progress.csv
"""
import sys
import argparse
from pathlib import Path

from county_explorer.aggregator import ProgressAggregator
from county_explorer.boundaries import CountyBoundarySource, register_boundaries
from county_explorer.data_types import Coordinate
from county_explorer.persistence import VisitedCellsFile
from county_explorer.progress_store import ProgressStore
from county_explorer.report import print_progress_report
from county_explorer.us_states import state_name
from load_settings import get_boundary_source, get_progress_settings


def load_store(boundaries: str, data_dir: Path, grid_size: int, state_code: str = None) -> ProgressStore:
    """Build a store from persisted visits and the boundary source."""
    store = ProgressStore(VisitedCellsFile(data_dir), grid_size=grid_size)

    source = CountyBoundarySource()
    counties = source.load_counties(boundaries)
    if state_code is not None and "STATEFP" in counties.columns:
        counties = counties[counties["STATEFP"] == state_code]

    print(f"   - Rasterizing {len(counties)} counties ({grid_size}x{grid_size} grid)...", flush=True)
    loaded = register_boundaries(store, source.iter_records(counties))
    print(f"   - Loaded {loaded} counties")
    return store


def main():
    progress_settings = get_progress_settings()

    parser = argparse.ArgumentParser(
        description='Record county exploration and show progress',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python track_progress.py --state 06                                  # California progress
    python track_progress.py --state 06 --visit 37.7749 -122.4194        # I am here
    python track_progress.py --state 06 --mark 06075 37.7749 -122.4194  # Tap a cell
    python track_progress.py --export-csv progress.csv                  # Full table
        """
    )
    parser.add_argument('--boundaries', default=None,
                        help='County boundary file or URL (default: settings.json or Census 1:20m counties)')
    parser.add_argument('--state', default=None,
                        help='Only load counties of this state FIPS code (e.g. 06)')
    parser.add_argument('--grid-size', type=int, default=progress_settings['grid_size'],
                        help=f"Grid cells per side (default: {progress_settings['grid_size']})")
    parser.add_argument('--radius', type=float, default=progress_settings['radius_meters'],
                        help=f"Visit radius in meters (default: {progress_settings['radius_meters']:.0f})")
    parser.add_argument('--data-dir', type=Path, default=progress_settings['data_dir'],
                        help=f"Visited cell storage (default: {progress_settings['data_dir']})")
    parser.add_argument('--visit', nargs=2, type=float, metavar=('LAT', 'LON'),
                        help='Apply a location update at LAT LON')
    parser.add_argument('--mark', nargs=3, metavar=('REGION_ID', 'LAT', 'LON'),
                        help='Mark the cell of REGION_ID containing LAT LON')
    parser.add_argument('--where', nargs=2, type=float, metavar=('LAT', 'LON'),
                        help='Show which county contains LAT LON')
    parser.add_argument('--export-csv', type=Path, default=None,
                        help='Write per-county progress to a CSV file')

    args = parser.parse_args()

    boundaries = args.boundaries or get_boundary_source()
    store = load_store(boundaries, args.data_dir, args.grid_size, args.state)

    if args.where:
        point = Coordinate(*args.where)
        region = store.region_at(point)
        if region is None:
            print(f"\n  {point.latitude:.5f}, {point.longitude:.5f} is not inside any loaded county")
        else:
            print(f"\n  {point.latitude:.5f}, {point.longitude:.5f} is in {region.name}, "
                  f"{state_name(region.parent_code)} [{region.id}]")

    if args.visit:
        changes = store.apply_location_update(Coordinate(*args.visit), args.radius)
        marked = sum(len(keys) for keys in changes.values())
        print(f"\n  Location update marked {marked} new cell(s) in {len(changes)} county(ies)")

    if args.mark:
        region_id, lat, lon = args.mark
        try:
            point = Coordinate(float(lat), float(lon))
        except ValueError:
            parser.error(f"--mark needs numeric LAT LON, got {lat} {lon}")
        if region_id not in store:
            print(f"\n[!] County {region_id} is not loaded")
        elif store.mark_visited_at(region_id, point):
            print(f"\n  Marked cell in {store.get(region_id).name}")
        else:
            print("\n  No new cell marked (already visited or outside the county grid)")

    aggregator = ProgressAggregator(store)
    print_progress_report(aggregator, parent_code=args.state)

    if args.export_csv:
        aggregator.to_dataframe().to_csv(args.export_csv, index=False)
        print(f"  Wrote {args.export_csv}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
