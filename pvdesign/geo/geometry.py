"""Canonical segment geometry.

A segment stores either a closed polygon ring or (while a draw is still in
progress) an open line. Both are immutable; every edit builds a new value and
is validated on construction.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple, Union

from shapely.geometry import Polygon

from pvdesign.errors import GeometryValidationError
from pvdesign.geo.ring import Point, close_ring, is_finite_point, open_ring, ring_area, same_point


def _coerce(coords: Sequence[Sequence[float]]) -> Tuple[Point, ...]:
    out: List[Point] = []
    for i, p in enumerate(coords):
        if not is_finite_point(p):
            raise GeometryValidationError(f"vertex {i} is not a finite coordinate pair: {p!r}")
        out.append((float(p[0]), float(p[1])))
    return tuple(out)


@dataclass(frozen=True)
class PolygonGeometry:
    """Closed ring: first == last, >= 3 distinct vertices, no zero-length edge."""

    coordinates: Tuple[Point, ...]
    kind: str = "Polygon"

    def __post_init__(self) -> None:
        pts = _coerce(self.coordinates)
        if pts and not same_point(pts[0], pts[-1]):
            pts = pts + (pts[0],)
        object.__setattr__(self, "coordinates", pts)
        self._validate()

    def _validate(self) -> None:
        pts = self.coordinates
        body = pts[:-1]
        if len(set(body)) < 3:
            raise GeometryValidationError("polygon needs at least 3 distinct vertices")
        for i in range(len(pts) - 1):
            if same_point(pts[i], pts[i + 1]):
                raise GeometryValidationError(f"zero-length edge at vertex {i}")

    @property
    def ring(self) -> List[Point]:
        return list(self.coordinates)

    @property
    def vertices(self) -> List[Point]:
        """Ring without the closing duplicate."""
        return list(self.coordinates[:-1])

    @property
    def area(self) -> float:
        return ring_area(self.coordinates)

    def with_vertex(self, index: int, point: Point) -> "PolygonGeometry":
        verts = self.vertices
        verts[index] = point
        return PolygonGeometry(tuple(verts))

    def to_shapely(self) -> Polygon:
        return Polygon(self.coordinates)

    def to_json(self) -> Dict[str, Any]:
        return {"type": "Polygon", "coordinates": [[list(p) for p in self.coordinates]]}


@dataclass(frozen=True)
class LineStringGeometry:
    coordinates: Tuple[Point, ...]
    kind: str = "LineString"

    def __post_init__(self) -> None:
        pts = _coerce(self.coordinates)
        if len(pts) < 2:
            raise GeometryValidationError("line needs at least 2 vertices")
        object.__setattr__(self, "coordinates", pts)

    @property
    def ring(self) -> List[Point]:
        return list(self.coordinates)

    @property
    def vertices(self) -> List[Point]:
        return list(self.coordinates)

    @property
    def area(self) -> float:
        return 0.0

    def to_json(self) -> Dict[str, Any]:
        return {"type": "LineString", "coordinates": [list(p) for p in self.coordinates]}


SegmentGeometry = Union[PolygonGeometry, LineStringGeometry]


def polygon_from_vertices(vertices: Sequence[Point]) -> PolygonGeometry:
    """Build a closed polygon from an open or closed vertex list."""
    return PolygonGeometry(tuple(close_ring(open_ring(vertices))))


def geometry_from_json(data: Union[str, Dict[str, Any]]) -> SegmentGeometry:
    """Parse the stored GeoJSON-like form (dict or JSON text)."""
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise GeometryValidationError("geometry is not valid JSON") from exc
    if not isinstance(data, dict):
        raise GeometryValidationError(f"unsupported geometry payload: {type(data).__name__}")
    gtype = data.get("type")
    coords = data.get("coordinates")
    if gtype == "Polygon":
        if not coords or not isinstance(coords, (list, tuple)):
            raise GeometryValidationError("polygon has no rings")
        return PolygonGeometry(tuple(tuple(p) for p in coords[0]))
    if gtype == "LineString":
        return LineStringGeometry(tuple(tuple(p) for p in (coords or [])))
    raise GeometryValidationError(f"unsupported geometry type: {gtype!r}")
