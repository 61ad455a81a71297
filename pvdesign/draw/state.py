"""Polygon draw/edit state machine.

Modes::

    idle -> drawing -> saving -> idle     (closing a ring hands it to the store)
    idle -> editing -> idle               (dragging vertices of an existing ring)

All transient drawing state lives on one `EditorState` owned by the machine;
renderers read it by reference.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pvdesign.config import DesignerConfig
from pvdesign.draw.view import MapView
from pvdesign.errors import DrawStateError, GeometryValidationError
from pvdesign.geo.geometry import PolygonGeometry, polygon_from_vertices
from pvdesign.geo.ring import Point, distance, is_finite_point, ring_area
from pvdesign.geo.units import format_area
from pvdesign.layers.labels import (
    EDIT_HANDLE_STYLE,
    GHOST_SNAP_STYLE,
    GHOST_STYLE,
    START_STYLE,
    DistanceLabel,
    HintLabel,
    LabelSet,
    VertexMarker,
    close_hint,
    preview_label,
    segment_labels,
)

logger = logging.getLogger(__name__)


class DrawMode(str, Enum):
    IDLE = "idle"
    DRAWING = "drawing"
    SAVING = "saving"
    EDITING = "editingVertices"


class RingStyle(str, Enum):
    DEFAULT = "default"
    CLOSING = "closing"


@dataclass
class EditorState:
    mode: DrawMode = DrawMode.IDLE
    drawing_id: Optional[str] = None
    vertices: List[Point] = field(default_factory=list)
    preview: Optional[Point] = None
    ring_style: RingStyle = RingStyle.DEFAULT
    closing_snap_active: bool = False
    auto_close_latched: bool = False
    modifier_down: bool = False
    current_area: str = format_area(0.0)
    ghost: Optional[VertexMarker] = None
    start_marker: Optional[VertexMarker] = None
    preview_label: Optional[DistanceLabel] = None
    hint: Optional[HintLabel] = None
    labels: LabelSet = field(default_factory=LabelSet)
    editing_segment_id: Optional[str] = None
    editing_vertices: List[Point] = field(default_factory=list)
    edit_handles: List[VertexMarker] = field(default_factory=list)

    def clear_drawing(self) -> None:
        self.drawing_id = None
        self.vertices = []
        self.preview = None
        self.ring_style = RingStyle.DEFAULT
        self.closing_snap_active = False
        self.auto_close_latched = False
        self.ghost = None
        self.start_marker = None
        self.preview_label = None
        self.hint = None
        self.labels = LabelSet()
        self.current_area = format_area(0.0)


@dataclass(frozen=True)
class DrawResult:
    """A ring closed by the user, ready to become a FieldSegment."""

    drawing_id: str
    geometry: PolygonGeometry
    area: float
    labels: LabelSet


@dataclass(frozen=True)
class EditResult:
    segment_id: str
    geometry: PolygonGeometry
    area: float
    labels: LabelSet


class DrawStateMachine:
    def __init__(self, view: Optional[MapView] = None, config: Optional[DesignerConfig] = None) -> None:
        self.view = view or MapView()
        self.config = config or DesignerConfig()
        self.state = EditorState()

    # ------------------------------------------------------------------
    # helpers

    @property
    def mode(self) -> DrawMode:
        return self.state.mode

    @property
    def snap_distance_m(self) -> float:
        return self.view.pixels_to_meters(self.config.snap_distance_px)

    def _within_snap(self, point: Point) -> bool:
        verts = self.state.vertices
        if len(verts) < 3:
            return False
        return distance(point, verts[0]) < self.snap_distance_m

    def _refresh_open_labels(self) -> None:
        st = self.state
        st.labels = segment_labels(st.vertices, st.drawing_id or "", self.view, closed=False, config=self.config)
        st.current_area = format_area(ring_area(st.vertices))

    # ------------------------------------------------------------------
    # drawing

    def start_draw(self) -> bool:
        """Enter drawing mode. Returns False while the modifier key is held."""
        st = self.state
        if st.mode is DrawMode.SAVING:
            raise DrawStateError("a new segment is still being saved")
        if st.mode is DrawMode.EDITING:
            raise DrawStateError("finish vertex editing before drawing")
        if st.modifier_down:
            return False
        if st.mode is DrawMode.DRAWING:
            return True
        st.clear_drawing()
        st.mode = DrawMode.DRAWING
        st.drawing_id = uuid.uuid4().hex
        logger.debug("draw started (%s)", st.drawing_id)
        return True

    def pointer_move(self, point: Point) -> Optional[DrawResult]:
        """Update the preview; may auto-close the ring when snapping to the start."""
        st = self.state
        if st.mode is not DrawMode.DRAWING or not is_finite_point(point):
            return None
        point = (float(point[0]), float(point[1]))
        st.preview_label = None
        closing = self._within_snap(point)

        st.closing_snap_active = closing
        st.ring_style = RingStyle.CLOSING if closing else RingStyle.DEFAULT
        if closing:
            first = st.vertices[0]
            st.preview = first
            st.ghost = VertexMarker(st.drawing_id or "", first, GHOST_SNAP_STYLE)
            st.hint = close_hint(first)
        else:
            st.preview = point
            st.ghost = VertexMarker(st.drawing_id or "", point, GHOST_STYLE)
            st.hint = None
            st.auto_close_latched = False

        if st.vertices:
            st.preview_label = preview_label(st.vertices[-1], st.preview, self.view, st.drawing_id or "")

        if closing and not st.auto_close_latched:
            st.auto_close_latched = True
            return self.finish_draw()
        return None

    def click(self, point: Point) -> Optional[DrawResult]:
        """Commit a vertex; a click within the snap radius of the start closes the ring."""
        st = self.state
        if st.mode is not DrawMode.DRAWING or not is_finite_point(point):
            return None
        point = (float(point[0]), float(point[1]))
        st.preview_label = None
        if self._within_snap(point):
            return self.finish_draw()
        if st.vertices and st.vertices[-1] == point:
            return None
        st.vertices.append(point)
        if len(st.vertices) == 1:
            st.start_marker = VertexMarker(st.drawing_id or "", point, START_STYLE)
        self._refresh_open_labels()
        return None

    def press_start_marker(self) -> Optional[DrawResult]:
        if self.state.mode is DrawMode.DRAWING and len(self.state.vertices) > 2:
            return self.finish_draw()
        return None

    def finish_draw(self) -> Optional[DrawResult]:
        """Close the ring. With fewer than 3 usable vertices the draw is cancelled."""
        st = self.state
        if st.mode is not DrawMode.DRAWING:
            return None
        drawing_id = st.drawing_id or uuid.uuid4().hex
        try:
            geometry = polygon_from_vertices(st.vertices)
        except GeometryValidationError:
            logger.debug("draw %s ended without a valid ring", drawing_id)
            self.cancel_draw()
            return None
        labels = segment_labels(geometry.ring, drawing_id, self.view, closed=True, config=self.config)
        st.clear_drawing()
        st.labels = labels
        st.current_area = format_area(geometry.area)
        st.mode = DrawMode.SAVING
        logger.debug("draw %s closed with %d vertices", drawing_id, len(geometry.vertices))
        return DrawResult(drawing_id, geometry, geometry.area, labels)

    def cancel_draw(self) -> None:
        st = self.state
        if st.mode is DrawMode.DRAWING:
            st.clear_drawing()
            st.mode = DrawMode.IDLE

    def save_settled(self) -> None:
        """The store answered the create call (success or failure)."""
        st = self.state
        if st.mode is DrawMode.SAVING:
            st.labels = LabelSet()
            st.mode = DrawMode.IDLE

    # ------------------------------------------------------------------
    # modifier key

    def key_down(self, modifier: bool = True) -> None:
        if not modifier:
            return
        self.state.modifier_down = True
        self.cancel_draw()

    def key_up(self) -> None:
        self.state.modifier_down = False

    def blur(self) -> None:
        self.state.modifier_down = False

    # ------------------------------------------------------------------
    # vertex editing

    def begin_edit(self, segment_id: str, geometry: PolygonGeometry) -> List[VertexMarker]:
        st = self.state
        if st.mode is not DrawMode.IDLE:
            raise DrawStateError(f"cannot edit vertices while {st.mode.value}")
        st.mode = DrawMode.EDITING
        st.editing_segment_id = segment_id
        st.editing_vertices = geometry.vertices
        self._refresh_handles()
        st.labels = segment_labels(geometry.ring, segment_id, self.view, closed=True, config=self.config)
        return list(st.edit_handles)

    def drag_vertex(self, index: int, point: Point) -> LabelSet:
        """Move one handle; labels are regenerated immediately."""
        st = self.state
        if st.mode is not DrawMode.EDITING:
            raise DrawStateError("no segment is being edited")
        if not 0 <= index < len(st.editing_vertices):
            raise IndexError(index)
        if is_finite_point(point):
            st.editing_vertices[index] = (float(point[0]), float(point[1]))
            self._refresh_handles()
        st.labels = segment_labels(
            st.editing_vertices, st.editing_segment_id or "", self.view, closed=True, config=self.config
        )
        st.current_area = format_area(ring_area(st.editing_vertices))
        return st.labels

    def finish_edit(self) -> EditResult:
        st = self.state
        if st.mode is not DrawMode.EDITING:
            raise DrawStateError("no segment is being edited")
        geometry = polygon_from_vertices(st.editing_vertices)
        segment_id = st.editing_segment_id or ""
        labels = segment_labels(geometry.ring, segment_id, self.view, closed=True, config=self.config)
        self._end_edit()
        return EditResult(segment_id, geometry, geometry.area, labels)

    def cancel_edit(self) -> None:
        if self.state.mode is DrawMode.EDITING:
            self._end_edit()

    def _end_edit(self) -> None:
        st = self.state
        st.mode = DrawMode.IDLE
        st.editing_segment_id = None
        st.editing_vertices = []
        st.edit_handles = []
        st.labels = LabelSet()

    def _refresh_handles(self) -> None:
        st = self.state
        st.edit_handles = [
            VertexMarker(st.editing_segment_id or "", p, EDIT_HANDLE_STYLE) for p in st.editing_vertices
        ]