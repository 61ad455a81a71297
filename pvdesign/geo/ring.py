"""Coordinate and ring helpers (planar meters).

Bearings are compass bearings: degrees clockwise from north (+y).
"""

from __future__ import annotations

import math
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np
from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry


Point = Tuple[float, float]


def is_finite_point(p) -> bool:
    if p is None:
        return False
    try:
        x, y = float(p[0]), float(p[1])
    except (TypeError, ValueError, IndexError):
        return False
    return math.isfinite(x) and math.isfinite(y)


def same_point(a: Point, b: Point) -> bool:
    return a[0] == b[0] and a[1] == b[1]


def _as_point(p) -> Point:
    try:
        return float(p[0]), float(p[1])
    except (TypeError, ValueError, IndexError):
        return math.nan, math.nan


def open_ring(coords: Sequence[Point]) -> List[Point]:
    """Drop the duplicated closing vertex, if any."""
    pts = [_as_point(p) for p in coords]
    if len(pts) > 1 and same_point(pts[0], pts[-1]):
        pts = pts[:-1]
    return pts


def close_ring(coords: Sequence[Point]) -> List[Point]:
    """Return the ring with its first vertex repeated at the end."""
    pts = open_ring(coords)
    if pts:
        pts.append(pts[0])
    return pts


def ring_area(coords: Sequence[Point]) -> float:
    """Shoelace area of a ring; non-finite vertices are ignored."""
    pts = [p for p in open_ring(coords) if is_finite_point(p)]
    if len(pts) < 3:
        return 0.0
    arr = np.asarray(pts, dtype=np.float64)
    x = arr[:, 0] - arr[:, 0].mean()
    y = arr[:, 1] - arr[:, 1].mean()
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))) * 0.5)


def distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def bearing(a: Point, b: Point) -> float:
    """Compass bearing from a to b in [0, 360)."""
    return math.degrees(math.atan2(b[0] - a[0], b[1] - a[1])) % 360.0


def destination(p: Point, dist: float, bearing_deg: float) -> Point:
    """Point reached from p after travelling dist meters along bearing_deg."""
    rad = math.radians(bearing_deg)
    return (p[0] + dist * math.sin(rad), p[1] + dist * math.cos(rad))


def midpoint(a: Point, b: Point) -> Point:
    return ((a[0] + b[0]) * 0.5, (a[1] + b[1]) * 0.5)


def centroid(coords: Sequence[Point]) -> Optional[Point]:
    pts = [p for p in open_ring(coords) if is_finite_point(p)]
    if not pts:
        return None
    if len(pts) < 3:
        arr = np.asarray(pts, dtype=np.float64)
        return float(arr[:, 0].mean()), float(arr[:, 1].mean())
    c = Polygon(pts).centroid
    if c.is_empty:
        return None
    return float(c.x), float(c.y)


def iter_edges(coords: Sequence[Point], closed: bool = True) -> Iterator[Tuple[int, Point, Point]]:
    """Yield (index, a, b) for each drawable edge.

    Edges with a non-finite endpoint or coincident endpoints are skipped; the
    rest of the ring is still yielded.
    """
    pts = open_ring(coords) if closed else [_as_point(p) for p in coords]
    n = len(pts)
    if n < 2:
        return
    last = n if closed else n - 1
    for i in range(last):
        a = pts[i]
        b = pts[(i + 1) % n]
        if not (is_finite_point(a) and is_finite_point(b)):
            continue
        if same_point(a, b):
            continue
        yield i, a, b


def to_polygon(coords: Sequence[Point]) -> Polygon:
    """Shapely polygon from a ring, dropping non-finite vertices."""
    pts = [p for p in open_ring(coords) if is_finite_point(p)]
    return Polygon(pts)


def polygon_parts(geom: Optional[BaseGeometry]) -> List[Polygon]:
    """Flatten a shapely geometry into its non-empty polygons."""
    if geom is None or geom.is_empty:
        return []
    gtype = getattr(geom, "geom_type", "")
    if gtype == "Polygon":
        return [geom]
    if gtype in ("MultiPolygon", "GeometryCollection"):
        out: List[Polygon] = []
        for g in geom.geoms:
            out.extend(polygon_parts(g))
        return out
    # ignore points/lines
    return []


def largest_polygon(geom: Optional[BaseGeometry]) -> Optional[Polygon]:
    parts = polygon_parts(geom)
    if not parts:
        return None
    return max(parts, key=lambda p: p.area)

