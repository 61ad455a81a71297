"""Distance labels and vertex markers derived from a ring.

Labels are regenerated from scratch on every geometry change; nothing here
keeps state between calls.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from pvdesign.config import (
    CLOSE_HINT_TEXT,
    CLOSE_HINT_TEXT_DY,
    DesignerConfig,
    OPEN_LABEL_TEXT_DY,
)
from pvdesign.draw.view import MapView
from pvdesign.geo.ring import (
    Point,
    bearing,
    centroid,
    destination,
    distance,
    is_finite_point,
    iter_edges,
    midpoint,
    open_ring,
)
from pvdesign.geo.units import format_distance


@dataclass(frozen=True)
class MarkerStyle:
    size: float
    fill: str
    line_width: float = 0.0
    line_color: Optional[str] = None


VERTEX_STYLE = MarkerStyle(size=8, fill="#ffffff", line_width=2, line_color="#f97316")
GHOST_STYLE = MarkerStyle(size=10, fill="#22c55e")
GHOST_SNAP_STYLE = MarkerStyle(size=14, fill="#22c55e", line_width=2, line_color="#ffffff")
START_STYLE = MarkerStyle(size=20, fill="none", line_width=3, line_color="#22c55e")
EDIT_HANDLE_STYLE = MarkerStyle(size=10, fill="#22c55e", line_width=2, line_color="#065f46")


@dataclass(frozen=True)
class VertexMarker:
    segment_id: str
    point: Point
    style: MarkerStyle = VERTEX_STYLE
    altitude: float = 0.0


@dataclass(frozen=True)
class DistanceLabel:
    segment_id: str
    text: str
    meters: float
    anchor: Point
    rotation: float
    text_dy: float = 0.0
    altitude: float = 0.0


@dataclass(frozen=True)
class HintLabel:
    text: str
    anchor: Point
    text_dy: float = CLOSE_HINT_TEXT_DY


@dataclass
class LabelSet:
    markers: List[VertexMarker] = field(default_factory=list)
    labels: List[DistanceLabel] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.markers) + len(self.labels)


def label_rotation(a: Point, b: Point, view_bearing: float) -> float:
    """Edge angle de-rotated by the view bearing, folded so text stays upright."""
    angle = math.degrees(math.atan2(b[1] - a[1], b[0] - a[0])) - view_bearing
    if angle > 90:
        angle -= 180
    elif angle < -90:
        angle += 180
    return angle


def segment_labels(
    coords: Sequence[Point],
    segment_id: str,
    view: MapView,
    closed: bool = True,
    altitude: float = 0.0,
    config: Optional[DesignerConfig] = None,
) -> LabelSet:
    """Vertex markers and per-edge distance labels for a ring or open line.

    Closed rings include the closing edge and push each label outward from the
    ring centre; open lines keep labels on the edge with an upward text offset.
    """
    cfg = config or DesignerConfig()
    out = LabelSet()
    pts = open_ring(coords) if closed else list(coords)

    for p in pts:
        if is_finite_point(p):
            out.markers.append(VertexMarker(segment_id, (float(p[0]), float(p[1])), VERTEX_STYLE, altitude))

    if len(pts) < 2:
        return out

    center = centroid(pts) if closed else None
    offset_m = view.pixels_to_meters(cfg.label_offset_px)
    for _, a, b in iter_edges(pts, closed=closed):
        mid = midpoint(a, b)
        if not is_finite_point(mid):
            continue
        if center is not None:
            anchor = destination(mid, offset_m, bearing(center, mid))
            text_dy = 0.0
        else:
            anchor = mid
            text_dy = OPEN_LABEL_TEXT_DY
        meters = distance(a, b)
        out.labels.append(
            DistanceLabel(
                segment_id=segment_id,
                text=format_distance(meters),
                meters=meters,
                anchor=anchor,
                rotation=label_rotation(a, b, view.bearing),
                text_dy=text_dy,
                altitude=altitude,
            )
        )
    return out


def preview_label(last: Point, cursor: Point, view: MapView, segment_id: str = "") -> Optional[DistanceLabel]:
    """Live label between the last committed vertex and the cursor."""
    if not (is_finite_point(last) and is_finite_point(cursor)):
        return None
    meters = distance(last, cursor)
    return DistanceLabel(
        segment_id=segment_id,
        text=format_distance(meters),
        meters=meters,
        anchor=midpoint(last, cursor),
        rotation=label_rotation(last, cursor, view.bearing),
        text_dy=OPEN_LABEL_TEXT_DY,
    )


def close_hint(first: Point) -> HintLabel:
    return HintLabel(CLOSE_HINT_TEXT, (float(first[0]), float(first[1])))
