"""Design editor session.

Owns the canonical segment list of one design and wires the draw state
machine, the layer pipeline and the store together. Local state is updated
first; store calls that fail roll the local change back (create, delete) or
flag the save status (attribute and geometry saves).
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from pvdesign.config import DesignerConfig
from pvdesign.draw.state import DrawMode, DrawResult, DrawStateMachine, EditResult
from pvdesign.draw.view import MapView
from pvdesign.errors import DrawStateError, PersistenceError, SegmentNotFoundError
from pvdesign.geo.geometry import PolygonGeometry
from pvdesign.geo.ring import Point
from pvdesign.layers.labels import LabelSet
from pvdesign.model.modules import ModuleDimensionCache
from pvdesign.model.segment import FieldSegment, attributes_to_row, new_segment_row
from pvdesign.pipeline import DesignPipeline, SegmentLayers
from pvdesign.session.autosave import DebouncedAutoSaver, SaveStatus
from pvdesign.store.protocols import ModuleCatalog, SegmentStore
from pvdesign.sun.position import SunPositionProvider, get_position

logger = logging.getLogger(__name__)


class DesignEditor:
    def __init__(
        self,
        design_id: str,
        store: SegmentStore,
        catalog: ModuleCatalog,
        site=None,
        view: Optional[MapView] = None,
        config: Optional[DesignerConfig] = None,
        sun_provider: SunPositionProvider = get_position,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.design_id = design_id
        self.store = store
        self.config = config or DesignerConfig()
        self.view = view or MapView()
        self.machine = DrawStateMachine(self.view, self.config)
        self.pipeline = DesignPipeline(site, self.view, self.config, sun_provider)
        self.dims = ModuleDimensionCache(catalog, self.config)
        self.autosaver = DebouncedAutoSaver(store, self.config, clock)
        self.segments: List[FieldSegment] = []
        self.selected_id: Optional[str] = None
        self.show_shadows = True
        self.last_error: Optional[Exception] = None

    # ------------------------------------------------------------------
    # segment list

    def load(self) -> List[FieldSegment]:
        rows = self.store.list_by_design(self.design_id)
        self.segments = [FieldSegment.from_row(r) for r in rows]
        self.dims.preload(s.module for s in self.segments)
        logger.info("loaded %d segments for design %s", len(self.segments), self.design_id)
        return list(self.segments)

    def get(self, segment_id: str) -> FieldSegment:
        for seg in self.segments:
            if seg.id == segment_id:
                return seg
        raise SegmentNotFoundError(segment_id)

    def _index(self, segment_id: str) -> int:
        for i, seg in enumerate(self.segments):
            if seg.id == segment_id:
                return i
        raise SegmentNotFoundError(segment_id)

    def _replace(self, segment: FieldSegment) -> None:
        self.segments[self._index(segment.id)] = segment

    def select(self, segment_id: Optional[str]) -> None:
        if segment_id is not None:
            self._index(segment_id)
        self.selected_id = segment_id

    @property
    def save_status(self) -> SaveStatus:
        return self.autosaver.status

    # ------------------------------------------------------------------
    # drawing

    def start_draw(self) -> bool:
        return self.machine.start_draw()

    def pointer_move(self, point: Point) -> Optional[FieldSegment]:
        return self._settle(self.machine.pointer_move(point))

    def click(self, point: Point) -> Optional[FieldSegment]:
        return self._settle(self.machine.click(point))

    def press_start_marker(self) -> Optional[FieldSegment]:
        return self._settle(self.machine.press_start_marker())

    def finish_draw(self) -> Optional[FieldSegment]:
        return self._settle(self.machine.finish_draw())

    def _settle(self, result: Optional[DrawResult]) -> Optional[FieldSegment]:
        if result is None:
            return None
        try:
            return self._create(result)
        finally:
            self.machine.save_settled()

    def _create(self, result: DrawResult) -> Optional[FieldSegment]:
        """Persist a closed ring; the optimistic segment is removed again on failure."""
        row = new_segment_row(self.design_id, result.geometry, len(self.segments) + 1)
        optimistic = FieldSegment.from_row(dict(row, id=result.drawing_id))
        self.segments.append(optimistic)
        try:
            created = self.store.create(row)
        except PersistenceError as exc:
            self.segments = [s for s in self.segments if s.id != optimistic.id]
            self.autosaver.status = SaveStatus.ERROR
            self.last_error = exc
            logger.warning("segment creation failed, local segment rolled back: %s", exc)
            return None
        segment = FieldSegment.from_row(created)
        self.segments[self._index(optimistic.id)] = segment
        self.selected_id = segment.id
        logger.info("created %s (%.1f m2)", segment.description, segment.area)
        return segment

    def cancel_draw(self) -> None:
        self.machine.cancel_draw()

    def key_down(self, modifier: bool = True) -> None:
        self.machine.key_down(modifier)

    def key_up(self) -> None:
        self.machine.key_up()

    # ------------------------------------------------------------------
    # attributes

    def update_attributes(self, segment_id: str, now: Optional[float] = None, **changes: Any) -> FieldSegment:
        """Apply edits locally at once; the store write is debounced."""
        segment = self.get(segment_id).with_changes(**changes)
        self._replace(segment)
        if "module" in changes:
            self.dims.ensure(segment.module)
        self.autosaver.touch(segment_id, attributes_to_row(changes), now)
        return segment

    def tick(self, now: Optional[float] = None) -> List[str]:
        return self.autosaver.flush_due(now)

    def flush(self) -> List[str]:
        return self.autosaver.flush_all()

    # ------------------------------------------------------------------
    # vertex editing

    def begin_edit(self, segment_id: str):
        segment = self.get(segment_id)
        if not isinstance(segment.geometry, PolygonGeometry):
            raise DrawStateError(f"segment {segment_id} has no editable ring")
        return self.machine.begin_edit(segment_id, segment.geometry)

    def drag_vertex(self, index: int, point: Point) -> LabelSet:
        return self.machine.drag_vertex(index, point)

    def finish_edit(self) -> FieldSegment:
        """Commit dragged vertices; geometry and area are written immediately."""
        result: EditResult = self.machine.finish_edit()
        segment = self.get(result.segment_id).with_geometry(result.geometry)
        self._replace(segment)
        try:
            self.store.update_partial(segment.id, {"geometry": result.geometry.to_json(), "area": result.area})
        except PersistenceError as exc:
            self.autosaver.status = SaveStatus.ERROR
            self.last_error = exc
            logger.error("saving geometry of %s failed: %s", segment.id, exc)
        return segment

    def cancel_edit(self) -> None:
        self.machine.cancel_edit()

    # ------------------------------------------------------------------
    # delete

    def delete_segment(self, segment_id: str) -> bool:
        """Remove locally, then in the store; a failed store delete restores the segment."""
        if self.machine.mode is DrawMode.EDITING and self.machine.state.editing_segment_id == segment_id:
            self.machine.cancel_edit()
        index = self._index(segment_id)
        segment = self.segments.pop(index)
        pending = self.autosaver.pending(segment_id)
        self.autosaver.discard(segment_id)
        was_selected = self.selected_id == segment_id
        if was_selected:
            self.selected_id = None
        try:
            self.store.delete(segment_id)
        except PersistenceError as exc:
            self.segments.insert(index, segment)
            if pending:
                self.autosaver.touch(segment_id, pending)
            if was_selected:
                self.selected_id = segment_id
            self.last_error = exc
            logger.warning("delete of %s failed, segment restored: %s", segment_id, exc)
            return False
        logger.info("deleted segment %s", segment_id)
        return True

    # ------------------------------------------------------------------
    # derived layers

    def set_show_shadows(self, show: bool) -> None:
        self.show_shadows = bool(show)

    def layers(self) -> Dict[str, SegmentLayers]:
        self.dims.preload(s.module for s in self.segments)
        return self.pipeline.derive(self.segments, self.dims.snapshot(), self.show_shadows)
