"""Sun position provider.

Azimuth follows the convention the shadow projector expects: radians measured
from south, positive toward west (so a compass bearing is ``deg(az) + 180``).
Altitude is radians above the horizon.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from astral import Observer
from astral.sun import azimuth as astral_azimuth
from astral.sun import elevation as astral_elevation

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class SunPosition:
    azimuth: float
    altitude: float

    @property
    def compass_bearing(self) -> float:
        """Sun bearing in degrees clockwise from north."""
        return (math.degrees(self.azimuth) + 180.0 + 360.0) % 360.0

    @property
    def altitude_deg(self) -> float:
        return math.degrees(self.altitude)


SunPositionProvider = Callable[[datetime, float, float], SunPosition]


def get_position(when: datetime, lat: float, lng: float) -> SunPosition:
    """Solar azimuth/altitude for an aware datetime at (lat, lng)."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    observer = Observer(latitude=lat, longitude=lng)
    az_deg = astral_azimuth(observer, when)
    alt_deg = astral_elevation(observer, when)
    return SunPosition(azimuth=math.radians(az_deg - 180.0), altitude=math.radians(alt_deg))


def safe_position(
    provider: SunPositionProvider, when: datetime, lat: float, lng: float
) -> SunPosition:
    """Query the provider; any failure yields (0, 0), which casts no shadow."""
    try:
        pos = provider(when, lat, lng)
        az, alt = float(pos.azimuth), float(pos.altitude)
    except Exception:
        logger.debug("sun position lookup failed for %s at (%s, %s)", when, lat, lng, exc_info=True)
        return SunPosition(0.0, 0.0)
    az = az if math.isfinite(az) else 0.0
    alt = alt if math.isfinite(alt) else 0.0
    return SunPosition(az, alt)


def parse_hhmm(text: Optional[str]) -> int:
    """Minutes since midnight for ``HH:mm``, clamped to the day; unparsable hours give 0."""
    parts = (text or "").split(":")
    try:
        hours = int(parts[0])
    except ValueError:
        return 0
    try:
        minutes = int(parts[1]) if len(parts) > 1 else 0
    except ValueError:
        minutes = 0
    return min(MINUTES_PER_DAY - 1, max(0, hours * 60 + minutes))


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def resolve_timezone(name: Optional[str]):
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("unknown timezone %r, falling back to UTC", name)
        return timezone.utc


def local_datetime(day: date, minutes: int, tz_name: Optional[str] = None) -> datetime:
    """Wall-clock time on ``day`` in the project timezone."""
    minutes = max(0, min(int(minutes), 24 * 60 - 1))
    t = time(hour=minutes // 60, minute=minutes % 60)
    return datetime.combine(day, t, tzinfo=resolve_timezone(tz_name))
