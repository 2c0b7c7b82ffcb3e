"""
Coordinate quantization for stable set membership.

Grid cell centers are recomputed from floating-point math every time a region
is rasterized, so "the same" center is not guaranteed to be bit-identical
across runs. Every comparison or storage of a coordinate therefore goes
through quantize(), which snaps it to a 1e-6 degree lattice.

Key string format (persisted): "<lat>,<lon>" with at most 6 decimals,
trailing zeros trimmed:
    (0.05, 0.05)      -> "0.05,0.05"
    (37.774929, -122.419416) -> "37.774929,-122.419416"
    (1.0, -2.5)       -> "1.0,-2.5"
"""

import math
from typing import Optional, Sequence, Union

from county_explorer.config import COORDINATE_PRECISION, QUANTIZATION_SCALE
from county_explorer.data_types import NON_FINITE_E6, CanonicalKey, Coordinate


CoordinateLike = Union[CanonicalKey, Coordinate, Sequence[float]]


def _round_half_away(value: float) -> int:
    if not math.isfinite(value):
        return NON_FINITE_E6
    # Python's round() is banker's rounding; ties go away from zero here
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def quantize(coordinate: CoordinateLike) -> CanonicalKey:
    """
    Canonicalize a coordinate into a hashable key.

    Args:
        coordinate: CanonicalKey (returned unchanged), Coordinate, or any
                    (latitude, longitude) pair

    Returns:
        CanonicalKey with integer micro-degree components. NaN or infinite
        components give a key that matches no grid cell.
    """
    if isinstance(coordinate, CanonicalKey):
        return coordinate

    lat, lon = coordinate
    return CanonicalKey(
        _round_half_away(float(lat) * QUANTIZATION_SCALE),
        _round_half_away(float(lon) * QUANTIZATION_SCALE),
    )


def _format_component(micro_degrees: int) -> str:
    if micro_degrees == NON_FINITE_E6:
        return "nan"
    text = f"{micro_degrees / QUANTIZATION_SCALE:.{COORDINATE_PRECISION}f}".rstrip('0')
    if text.endswith('.'):
        text += '0'
    if text == "-0.0":
        text = "0.0"
    return text


def format_key(key: CoordinateLike) -> str:
    """Format a coordinate as its persisted "<lat>,<lon>" key string."""
    key = quantize(key)
    return f"{_format_component(key.lat_e6)},{_format_component(key.lon_e6)}"


def parse_key(text: str) -> Optional[CanonicalKey]:
    """
    Parse a "<lat>,<lon>" key string.

    Any float formatting is accepted ("0.05", "0.050000", "5e-2"); the
    result is re-quantized.

    Returns:
        CanonicalKey, or None if the string is malformed
    """
    if not isinstance(text, str):
        return None

    parts = text.split(',')
    if len(parts) != 2:
        return None

    try:
        lat = float(parts[0])
        lon = float(parts[1])
    except ValueError:
        return None

    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None

    return quantize((lat, lon))
