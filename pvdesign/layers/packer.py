"""Automatic module layout.

The buildable region is the segment ring inset by the setback. Frames of
``frame_size_up x frame_size_wide`` modules are tiled on a grid aligned with
the module azimuth (local Y points along the azimuth, local X 90 degrees
clockwise from it), and only modules fully inside the region are kept.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
from shapely.errors import GEOSException
from shapely.geometry import Polygon
from shapely.prepared import prep

from pvdesign.config import DesignerConfig
from pvdesign.geo.geometry import PolygonGeometry
from pvdesign.geo.ring import Point, largest_polygon, to_polygon
from pvdesign.geo.units import feet_to_meters
from pvdesign.model.modules import ModuleDimensions
from pvdesign.model.segment import Alignment

logger = logging.getLogger(__name__)

# containment slack for vertices that land on the region boundary
CONTAIN_TOLERANCE_M = 1e-6


@dataclass(frozen=True)
class PackingParams:
    module_width: float            # along local X (after orientation)
    module_height: float           # along local Y
    frame_size_up: int = 1
    frame_size_wide: int = 1
    module_spacing: float = 0.0    # meters
    frame_spacing: float = 0.0
    row_spacing: float = 0.0
    azimuth: float = 180.0
    alignment: Alignment = Alignment.CENTER

    @property
    def bearing_y(self) -> float:
        return self.azimuth % 360.0

    @property
    def bearing_x(self) -> float:
        return (self.azimuth + 90.0) % 360.0

    @property
    def frame_width(self) -> float:
        return self.frame_size_wide * self.module_width + (self.frame_size_wide - 1) * self.module_spacing

    @property
    def frame_height(self) -> float:
        return self.frame_size_up * self.module_height + (self.frame_size_up - 1) * self.module_spacing

    @property
    def step_x(self) -> float:
        return self.frame_width + self.frame_spacing

    @property
    def step_y(self) -> float:
        return self.frame_height + self.row_spacing

    @classmethod
    def from_segment(
        cls,
        segment,
        dims: ModuleDimensions,
        config: Optional[DesignerConfig] = None,
        grid_offset: float = 0.0,
    ) -> "PackingParams":
        """Derive packing inputs from segment attributes (feet) and module size (meters).

        The module azimuth is a true bearing; ``grid_offset`` turns it into a
        bearing in the planar frame.
        """
        cfg = config or DesignerConfig()
        module_w, module_h = dims.oriented(segment.is_portrait)
        gap_ft = segment.module_spacing
        if gap_ft is None or not math.isfinite(gap_ft) or gap_ft < 0:
            gap_ft = cfg.default_module_gap_ft
        azimuth = segment.module_azimuth if math.isfinite(segment.module_azimuth) else 0.0
        azimuth += grid_offset if math.isfinite(grid_offset) else 0.0
        return cls(
            module_width=module_w,
            module_height=module_h,
            frame_size_up=max(1, int(segment.frame_size_up)),
            frame_size_wide=max(1, int(segment.frame_size_wide)),
            module_spacing=max(0.0, feet_to_meters(gap_ft)),
            frame_spacing=max(0.0, feet_to_meters(segment.frame_spacing)),
            row_spacing=max(0.0, feet_to_meters(segment.row_spacing)),
            azimuth=((azimuth % 360.0) + 360.0) % 360.0,
            alignment=Alignment(segment.alignment),
        )


@dataclass(frozen=True)
class ModuleRect:
    frame_row: int
    frame_col: int
    row: int
    col: int
    center: Point
    corners: Tuple[Point, ...]     # closed ring: tl, tr, br, bl, tl

    @property
    def polygon(self) -> Polygon:
        return Polygon(self.corners)


@dataclass
class ModuleLayout:
    region: Polygon
    modules: List[ModuleRect] = field(default_factory=list)
    width: float = 0.0
    height: float = 0.0
    margin_x: float = 0.0
    frames_tested: int = 0

    @property
    def count(self) -> int:
        return len(self.modules)


def inset_region(ring: Sequence[Point], setback_m: float) -> Polygon:
    """Ring inset by the setback; falls back to the ring when the inset fails.

    A buffer that splits into several pieces keeps only the largest.
    """
    base = to_polygon(ring)
    if not base.is_valid:
        base = largest_polygon(base.buffer(0)) or base
    if not math.isfinite(setback_m) or setback_m <= 0:
        return base
    try:
        inset = largest_polygon(base.buffer(-setback_m))
    except (GEOSException, ValueError):
        logger.debug("setback buffer failed, using the unmodified ring", exc_info=True)
        return base
    if inset is None or inset.is_empty:
        return base
    return inset


def _axis(bearing_deg: float) -> np.ndarray:
    rad = math.radians(bearing_deg)
    return np.array([math.sin(rad), math.cos(rad)])


def oriented_extents(region: Polygon, bearing_x: float, bearing_y: float):
    """Project region boundary vertices onto the local axes around its centroid.

    Returns (origin, min_x, max_x, min_y, max_y).
    """
    c = region.centroid
    origin = np.array([c.x, c.y])
    pts = np.asarray(region.exterior.coords, dtype=np.float64) - origin
    px = pts @ _axis(bearing_x)
    py = pts @ _axis(bearing_y)
    return origin, float(px.min()), float(px.max()), float(py.min()), float(py.max())


def alignment_margin(extent: float, frame_w: float, step_x: float, alignment: Alignment) -> float:
    """Space before the first column along local X."""
    leftover = max(0.0, extent - frame_w)
    if step_x <= 0:
        return 0.0
    remainder = leftover % step_x
    if step_x - remainder < CONTAIN_TOLERANCE_M:
        remainder = 0.0
    if alignment is Alignment.RIGHT:
        return remainder
    if alignment in (Alignment.CENTER, Alignment.JUSTIFY):
        return remainder / 2.0
    return 0.0


def _steps(span: float, first: float, size: float, step: float) -> int:
    """How many grid positions fit: first + k*step + size <= span."""
    room = span - first - size
    if room < -CONTAIN_TOLERANCE_M:
        return 0
    return int(math.floor(max(0.0, room) / step + 1e-9)) + 1


def pack_modules(ring: Sequence[Point], params: PackingParams, setback_m: float = 0.0) -> ModuleLayout:
    region = inset_region(ring, setback_m)
    layout = ModuleLayout(region=region)
    if region.is_empty or params.module_width <= 0 or params.module_height <= 0:
        return layout

    ux = _axis(params.bearing_x)
    uy = _axis(params.bearing_y)
    origin, min_x, max_x, min_y, max_y = oriented_extents(region, params.bearing_x, params.bearing_y)
    width = max(0.0, max_x - min_x)
    height = max(0.0, max_y - min_y)
    layout.width, layout.height = width, height

    frame_w, frame_h = params.frame_width, params.frame_height
    step_x, step_y = params.step_x, params.step_y
    if step_x <= 0 or step_y <= 0:
        return layout

    margin_x = alignment_margin(width, frame_w, step_x, params.alignment)
    layout.margin_x = margin_x
    n_cols = _steps(width, margin_x, frame_w, step_x)
    n_rows = _steps(height, 0.0, frame_h, step_y)

    corner = origin + min_x * ux + min_y * uy
    contains = prep(region.buffer(CONTAIN_TOLERANCE_M))
    mw, mh, ms = params.module_width, params.module_height, params.module_spacing
    half = np.array([mw / 2.0, mh / 2.0])

    for fr in range(n_rows):
        y_off = frame_h / 2.0 + fr * step_y
        for fc in range(n_cols):
            x_off = margin_x + frame_w / 2.0 + fc * step_x
            frame_center = corner + x_off * ux + y_off * uy
            top_left = frame_center - (frame_w / 2.0) * ux + (frame_h / 2.0) * uy
            layout.frames_tested += 1
            for r in range(params.frame_size_up):
                for c in range(params.frame_size_wide):
                    x_in = c * (mw + ms) + mw / 2.0
                    y_in = r * (mh + ms) + mh / 2.0
                    center = top_left + x_in * ux - y_in * uy
                    rect = _rect(center, half, ux, uy)
                    if contains.contains(Polygon(rect)):
                        layout.modules.append(
                            ModuleRect(fr, fc, r, c, (float(center[0]), float(center[1])), rect)
                        )
    return layout


def _rect(center: np.ndarray, half: np.ndarray, ux: np.ndarray, uy: np.ndarray) -> Tuple[Point, ...]:
    dx = half[0] * ux
    dy = half[1] * uy
    tl = center - dx + dy
    tr = center + dx + dy
    br = center + dx - dy
    bl = center - dx - dy
    pts = tuple((float(p[0]), float(p[1])) for p in (tl, tr, br, bl))
    return pts + (pts[0],)


def layout_for_segment(
    segment,
    dims: Optional[ModuleDimensions],
    config: Optional[DesignerConfig] = None,
    grid_offset: float = 0.0,
) -> Optional[ModuleLayout]:
    """Setback overlay plus modules; without module dimensions only the overlay is produced.

    Only polygon segments have a buildable area; anything else yields None.
    """
    if not isinstance(segment.geometry, PolygonGeometry):
        return None
    setback_m = feet_to_meters(segment.setback)
    ring = segment.geometry.ring
    if dims is None:
        return ModuleLayout(region=inset_region(ring, setback_m))
    params = PackingParams.from_segment(segment, dims, config, grid_offset)
    return pack_modules(ring, params, setback_m)
