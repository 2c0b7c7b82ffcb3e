"""
Replay a recorded location track through the progress store.

Each fix in the track (CSV: latitude,longitude[,timestamp]) becomes one
location update, throttled to the configured interval, exactly as a live
location feed would drive the store.

Usage:
    python replay_locations.py tracks/commute.csv --state 06
    python replay_locations.py tracks/roadtrip.csv --radius 250 --min-interval 10
"""
import sys
import argparse
from pathlib import Path

from county_explorer.aggregator import ProgressAggregator
from county_explorer.location_feed import read_location_csv, replay_track
from county_explorer.report import print_progress_report
from load_settings import get_boundary_source, get_location_feed_settings, get_progress_settings
from track_progress import load_store


def main():
    progress_settings = get_progress_settings()
    feed_settings = get_location_feed_settings()

    parser = argparse.ArgumentParser(
        description='Replay a recorded location track through the progress store'
    )
    parser.add_argument('track', type=Path, help='CSV file with latitude,longitude[,timestamp] rows')
    parser.add_argument('--boundaries', default=None,
                        help='County boundary file or URL (default: settings.json or Census 1:20m counties)')
    parser.add_argument('--state', default=None,
                        help='Only load counties of this state FIPS code (e.g. 06)')
    parser.add_argument('--grid-size', type=int, default=progress_settings['grid_size'],
                        help=f"Grid cells per side (default: {progress_settings['grid_size']})")
    parser.add_argument('--radius', type=float, default=progress_settings['radius_meters'],
                        help=f"Visit radius in meters (default: {progress_settings['radius_meters']:.0f})")
    parser.add_argument('--min-interval', type=float, default=feed_settings['min_interval_seconds'],
                        help=f"Seconds between processed fixes (default: {feed_settings['min_interval_seconds']:.0f})")
    parser.add_argument('--data-dir', type=Path, default=progress_settings['data_dir'],
                        help=f"Visited cell storage (default: {progress_settings['data_dir']})")

    args = parser.parse_args()

    if not args.track.exists():
        print(f" Error: track file not found: {args.track}")
        return 1

    events = read_location_csv(args.track)
    if not events:
        print(f" Error: no usable fixes in {args.track}")
        return 1

    store = load_store(args.boundaries or get_boundary_source(), args.data_dir, args.grid_size, args.state)

    result = replay_track(store, events, radius_m=args.radius,
                          min_interval_seconds=args.min_interval, show_progress=True)

    print(f"\n  Processed {result.processed} fixes ({result.skipped} throttled)")
    print(f"  Newly visited: {result.newly_visited_count} cell(s) in {len(result.newly_visited)} county(ies)")

    print_progress_report(ProgressAggregator(store), parent_code=args.state)
    return 0


if __name__ == "__main__":
    sys.exit(main())
