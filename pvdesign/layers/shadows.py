"""Sun-driven ground shadows for a segment.

For one instant the shadow set is the footprint itself, the footprint shifted
along the shadow vector (the roof outline on the ground), and one quad per edge
joining the two (the wall sides). Over a time window the sets of every sampled
minute are unioned into a single aggregate footprint.

All shadow polygons lie at ground level (altitude 0).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence, Tuple

from shapely.errors import GEOSException
from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from pvdesign.config import SHADOW_FILL, SHADOW_MAX_LENGTH_M, DesignerConfig
from pvdesign.geo.ring import Point, destination, is_finite_point, open_ring, polygon_parts
from pvdesign.geo.units import feet_to_meters
from pvdesign.sun.position import (
    SunPosition,
    SunPositionProvider,
    format_hhmm,
    get_position,
    local_datetime,
    parse_hhmm,
    safe_position,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstantShadow:
    minutes: int
    sun: SunPosition
    length: float
    bearing: float
    base: Polygon
    roof: Polygon
    walls: Tuple[Polygon, ...]
    fill: str = SHADOW_FILL

    @property
    def time(self) -> str:
        return format_hhmm(self.minutes)

    def polygons(self) -> List[Polygon]:
        return [self.base, self.roof, *self.walls]


@dataclass
class IntervalShadow:
    start_minutes: int
    end_minutes: int
    instants: List[InstantShadow] = field(default_factory=list)
    aggregate: Optional[BaseGeometry] = None
    fill: str = SHADOW_FILL

    @property
    def aggregate_parts(self) -> List[Polygon]:
        return polygon_parts(self.aggregate)

    @property
    def aggregate_area(self) -> float:
        return 0.0 if self.aggregate is None else float(self.aggregate.area)


def obstruction_height_m(surface_ft: float, racking_ft: float, parapet_ft: float) -> float:
    return feet_to_meters(surface_ft) + feet_to_meters(racking_ft) + feet_to_meters(parapet_ft)


def shadow_length(height_m: float, altitude: float, max_length: float) -> float:
    """h / tan(altitude), clamped to [0, max_length]."""
    tan_alt = math.tan(altitude)
    if tan_alt <= 0:
        return max_length
    return max(0.0, min(max_length, height_m / tan_alt))


def shadow_bearing(sun: SunPosition) -> float:
    """Shadows fall opposite the sun."""
    return (sun.compass_bearing + 180.0) % 360.0


def project_shadow(
    ring: Sequence[Point],
    height_m: float,
    sun: SunPosition,
    minutes: int = 0,
    max_length: float = SHADOW_MAX_LENGTH_M,
    grid_offset: float = 0.0,
) -> Optional[InstantShadow]:
    """Shadow set for one sun position, or None when nothing is cast.

    ``grid_offset`` is the planar bearing of true north (see
    `SiteFrame.true_north_bearing`); sun azimuths are measured from true north.
    """
    if sun.altitude <= 0:
        return None
    if not math.isfinite(height_m) or height_m <= 0:
        return None
    pts = [p for p in open_ring(ring) if is_finite_point(p)]
    if len(pts) < 3:
        return None

    length = shadow_length(height_m, sun.altitude, max_length)
    brg = (shadow_bearing(sun) + grid_offset) % 360.0
    shifted = [destination(p, length, brg) for p in pts]

    walls = []
    n = len(pts)
    for i in range(n):
        j = (i + 1) % n
        walls.append(Polygon([pts[i], pts[j], shifted[j], shifted[i]]))

    return InstantShadow(
        minutes=minutes,
        sun=sun,
        length=length,
        bearing=brg,
        base=Polygon(pts),
        roof=Polygon(shifted),
        walls=tuple(walls),
    )


def sample_minutes(start_time: Optional[str], end_time: Optional[str], step: int = 1) -> List[int]:
    """Inclusive minute samples across the window; an inverted window is swapped."""
    start = parse_hhmm(start_time or "10:00")
    end = parse_hhmm(end_time) if end_time else start
    if end < start:
        start, end = end, start
    step = max(1, int(step))
    return list(range(start, end + 1, step))


def _clean(poly: Polygon) -> Optional[BaseGeometry]:
    if poly.is_empty:
        return None
    if not poly.is_valid:
        poly = poly.buffer(0)
    if poly.is_empty or poly.area <= 0:
        return None
    return poly


def union_into(aggregate: Optional[BaseGeometry], polygons: Sequence[Polygon]) -> Optional[BaseGeometry]:
    """Fold polygons into the aggregate; a polygon that fails to union is dropped."""
    for poly in polygons:
        try:
            cleaned = _clean(poly)
            if cleaned is None:
                continue
            aggregate = cleaned if aggregate is None else aggregate.union(cleaned)
        except (GEOSException, ValueError):
            logger.debug("shadow union failed, sample polygon skipped", exc_info=True)
    return aggregate


def _sample_union(polygons: Sequence[Polygon]) -> Optional[BaseGeometry]:
    cleaned = []
    for poly in polygons:
        try:
            c = _clean(poly)
        except (GEOSException, ValueError):
            continue
        if c is not None:
            cleaned.append(c)
    if not cleaned:
        return None
    try:
        return unary_union(cleaned)
    except (GEOSException, ValueError):
        return union_into(None, cleaned)


def shadow_at(
    ring: Sequence[Point],
    height_m: float,
    day: date,
    minutes: int,
    lat: float,
    lng: float,
    tz_name: Optional[str] = None,
    provider: SunPositionProvider = get_position,
    config: Optional[DesignerConfig] = None,
    grid_offset: float = 0.0,
) -> Optional[InstantShadow]:
    cfg = config or DesignerConfig()
    when = local_datetime(day, minutes, tz_name)
    sun = safe_position(provider, when, lat, lng)
    return project_shadow(ring, height_m, sun, minutes, cfg.shadow_max_length_m, grid_offset)


def interval_shadows(
    ring: Sequence[Point],
    height_m: float,
    day: date,
    start_time: Optional[str],
    end_time: Optional[str],
    lat: float,
    lng: float,
    tz_name: Optional[str] = None,
    provider: SunPositionProvider = get_position,
    step_minutes: Optional[int] = None,
    config: Optional[DesignerConfig] = None,
    grid_offset: float = 0.0,
) -> IntervalShadow:
    """Per-sample shadows plus their union across [start_time, end_time]."""
    cfg = config or DesignerConfig()
    step = step_minutes if step_minutes is not None else cfg.shadow_step_minutes
    samples = sample_minutes(start_time, end_time, step)
    result = IntervalShadow(
        start_minutes=samples[0] if samples else 0,
        end_minutes=samples[-1] if samples else 0,
    )
    for minutes in samples:
        instant = shadow_at(ring, height_m, day, minutes, lat, lng, tz_name, provider, cfg, grid_offset)
        if instant is None:
            continue
        result.instants.append(instant)
        merged = _sample_union(instant.polygons())
        if merged is None:
            continue
        try:
            result.aggregate = merged if result.aggregate is None else result.aggregate.union(merged)
        except (GEOSException, ValueError):
            logger.debug("aggregate union failed at %s", format_hhmm(minutes), exc_info=True)
    return result


def segment_shadows(
    segment,
    lat: float,
    lng: float,
    tz_name: Optional[str] = None,
    provider: SunPositionProvider = get_position,
    step_minutes: Optional[int] = None,
    config: Optional[DesignerConfig] = None,
    grid_offset: float = 0.0,
) -> IntervalShadow:
    height = obstruction_height_m(segment.surface_height, segment.racking_height, segment.parapet_height)
    return interval_shadows(
        segment.geometry.ring,
        height,
        segment.analysis_date,
        segment.start_time or segment.time_of_day,
        segment.end_time,
        lat,
        lng,
        tz_name,
        provider,
        step_minutes,
        config,
        grid_offset,
    )
