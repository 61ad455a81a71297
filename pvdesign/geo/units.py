"""Length/area unit helpers.

Segment heights and spacings are stored in feet; every geometric computation
runs in meters.
"""

from __future__ import annotations

import math

METERS_TO_FEET = 3.28084
FEET_TO_METERS = 0.3048


def feet_to_meters(feet) -> float:
    """Convert feet to meters; missing or non-finite input maps to 0."""
    try:
        value = float(feet)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value * FEET_TO_METERS


def meters_to_feet(meters: float) -> float:
    return float(meters) * METERS_TO_FEET


def format_distance(meters: float) -> str:
    """Format a ground distance for a label, e.g. ``12.3 ft``."""
    return f"{meters_to_feet(meters):.1f} ft"


def format_area(sq_meters: float) -> str:
    sq_feet = float(sq_meters) * METERS_TO_FEET * METERS_TO_FEET
    return f"{sq_feet:.1f} ft²"
