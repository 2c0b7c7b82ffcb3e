import json
import sys
from pathlib import Path
from typing import Dict, Any

from county_explorer.config import (
    DEFAULT_BOUNDARIES_URL,
    DEFAULT_GRID_SIZE,
    DEFAULT_LOCATION_INTERVAL_SECONDS,
    DEFAULT_VISIT_RADIUS_METERS,
    PROGRESS_DIR,
)


def load_settings(settings_file: str = "settings.json") -> Dict[str, Any]:
    settings_path = Path(settings_file)

    # Settings are optional: every value has a default in county_explorer.config
    if not settings_path.exists():
        return {}

    try:
        with open(settings_path, 'r') as f:
            settings = json.load(f)
    except json.JSONDecodeError as e:
        print(f" Error: Invalid JSON in {settings_file}")
        print(f" {e}")
        sys.exit(1)
    except OSError as e:
        print(f" Error loading {settings_file}: {e}")
        sys.exit(1)

    if not isinstance(settings, dict):
        print(f" Error: {settings_file} must contain a JSON object")
        sys.exit(1)

    return settings


def get_setting(key_path: str, default: Any = None, settings_file: str = "settings.json") -> Any:
    try:
        settings = load_settings(settings_file)
        keys = key_path.split('.')
        value = settings
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


def get_progress_settings(settings_file: str = "settings.json") -> Dict[str, Any]:
    settings = load_settings(settings_file)
    progress = settings.get('progress', {})
    return {
        'grid_size': int(progress.get('grid_size', DEFAULT_GRID_SIZE)),
        'radius_meters': float(progress.get('radius_meters', DEFAULT_VISIT_RADIUS_METERS)),
        'data_dir': Path(progress.get('data_dir', PROGRESS_DIR)),
    }


def get_boundary_source(settings_file: str = "settings.json") -> str:
    return get_setting('boundaries.source', DEFAULT_BOUNDARIES_URL, settings_file)


def get_location_feed_settings(settings_file: str = "settings.json") -> Dict[str, Any]:
    settings = load_settings(settings_file)
    feed = settings.get('location_feed', {})
    return {
        'min_interval_seconds': float(feed.get('min_interval_seconds', DEFAULT_LOCATION_INTERVAL_SECONDS)),
    }


if __name__ == "__main__":
    # Test the settings loader
    print("Testing settings loader...")
    print("\n Progress Settings:")
    print("="*60)
    for key, value in get_progress_settings().items():
        print(f" {key}: {value}")

    print("\n Boundary Source:")
    print(f" {get_boundary_source()}")

    print("\n Location Feed Settings:")
    for key, value in get_location_feed_settings().items():
        print(f" {key}: {value}")

    print("\n Settings loaded successfully!")
