"""Reactive derivation of every visual layer from the canonical segment list.

Each layer (walls, shadows, setback + modules, labels) is a pure function of a
small set of inputs. Results are memoized per segment against the exact input
tuple, so re-running `derive` after an unrelated change only recomputes what
actually changed. Segments missing from the list are evicted, which leaves no
derived artifact behind after a delete.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Tuple

from pvdesign.config import DesignerConfig
from pvdesign.draw.view import MapView
from pvdesign.geo.geometry import PolygonGeometry
from pvdesign.geo.units import feet_to_meters
from pvdesign.layers.extrude import WallPanel, build_walls
from pvdesign.layers.labels import LabelSet, segment_labels
from pvdesign.layers.packer import ModuleLayout, layout_for_segment
from pvdesign.layers.shadows import IntervalShadow, obstruction_height_m, segment_shadows
from pvdesign.model.modules import ModuleDimensions
from pvdesign.model.segment import FieldSegment
from pvdesign.sun.position import SunPositionProvider, get_position

logger = logging.getLogger(__name__)


@dataclass
class SegmentLayers:
    segment_id: str
    surface_altitude: float
    walls: List[WallPanel] = field(default_factory=list)
    shadows: Optional[IntervalShadow] = None
    layout: Optional[ModuleLayout] = None
    labels: LabelSet = field(default_factory=LabelSet)

    @property
    def module_count(self) -> int:
        return 0 if self.layout is None else self.layout.count


class _Memo:
    """One cached value per (layer, segment id), replaced when inputs change."""

    def __init__(self) -> None:
        self._entries: Dict[Tuple[str, str], Tuple[Hashable, Any]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, layer: str, segment_id: str, key: Hashable, compute: Callable[[], Any]) -> Any:
        slot = (layer, segment_id)
        cached = self._entries.get(slot)
        if cached is not None and cached[0] == key:
            self.hits += 1
            return cached[1]
        self.misses += 1
        value = compute()
        self._entries[slot] = (key, value)
        return value

    def evict(self, keep_ids: Iterable[str]) -> int:
        keep = set(keep_ids)
        stale = [slot for slot in self._entries if slot[1] not in keep]
        for slot in stale:
            del self._entries[slot]
        return len(stale)

    def segment_ids(self) -> set:
        return {slot[1] for slot in self._entries}


class DesignPipeline:
    def __init__(
        self,
        site=None,
        view: Optional[MapView] = None,
        config: Optional[DesignerConfig] = None,
        sun_provider: SunPositionProvider = get_position,
        step_minutes: Optional[int] = None,
    ) -> None:
        self.site = site
        self.view = view or MapView()
        self.config = config or DesignerConfig()
        self.sun_provider = sun_provider
        self.step_minutes = step_minutes if step_minutes is not None else self.config.shadow_step_minutes
        self.memo = _Memo()

    def derive(
        self,
        segments: Iterable[FieldSegment],
        dims: Mapping[str, ModuleDimensions],
        show_shadows: bool = True,
    ) -> Dict[str, SegmentLayers]:
        out: Dict[str, SegmentLayers] = {}
        for seg in segments:
            out[seg.id] = self._derive_one(seg, dims.get(seg.module) if seg.module else None, show_shadows)
        evicted = self.memo.evict(out)
        if evicted:
            logger.debug("evicted %d cached layers", evicted)
        return out

    @property
    def grid_offset(self) -> float:
        return float(getattr(self.site, "true_north_bearing", 0.0) or 0.0)

    def _derive_one(self, seg: FieldSegment, dims: Optional[ModuleDimensions], show_shadows: bool) -> SegmentLayers:
        ring = tuple(seg.geometry.ring)
        closed = isinstance(seg.geometry, PolygonGeometry)
        offset = self.grid_offset
        altitude = feet_to_meters(seg.surface_height)
        layers = SegmentLayers(segment_id=seg.id, surface_altitude=altitude)

        layers.walls = self.memo.get(
            "walls", seg.id, (ring, closed, seg.surface_height, seg.parapet_height),
            lambda: build_walls(ring, seg.surface_height, seg.parapet_height, closed),
        )

        view_key = (ring, closed, self.view.resolution, self.view.bearing, altitude)
        layers.labels = self.memo.get(
            "labels", seg.id, view_key,
            lambda: segment_labels(ring, seg.id, self.view, closed=closed, altitude=altitude, config=self.config),
        )

        layout_key = (
            ring, closed, offset, seg.setback, dims, seg.default_orientation, seg.module_spacing, seg.frame_spacing,
            seg.row_spacing, seg.frame_size_up, seg.frame_size_wide, seg.module_azimuth, seg.alignment,
        )
        layers.layout = self.memo.get(
            "layout", seg.id, layout_key, lambda: layout_for_segment(seg, dims, self.config, offset)
        )

        if show_shadows and closed and self.site is not None:
            height = obstruction_height_m(seg.surface_height, seg.racking_height, seg.parapet_height)
            tz = getattr(self.site, "timezone", None)
            shadow_key = (
                ring, height, seg.analysis_date, seg.start_time or seg.time_of_day, seg.end_time,
                self.site.lat, self.site.lng, tz, offset, self.step_minutes, self.sun_provider,
            )
            layers.shadows = self.memo.get(
                "shadows", seg.id, shadow_key,
                lambda: segment_shadows(
                    seg, self.site.lat, self.site.lng, tz, self.sun_provider, self.step_minutes, self.config, offset
                ),
            )
        return layers
