"""Vertical wall and parapet panels for 3D rendering of a flat footprint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from pvdesign.geo.ring import Point, iter_edges
from pvdesign.geo.units import feet_to_meters

Point3 = Tuple[float, float, float]


@dataclass(frozen=True)
class WallPanel:
    """Closed 3D quad (5 coordinates, first repeated last)."""

    edge_index: int
    kind: str          # "wall" | "parapet"
    coordinates: Tuple[Point3, ...]
    bottom: float
    top: float


def _quad(a: Point, b: Point, bottom: float, top: float) -> Tuple[Point3, ...]:
    return (
        (a[0], a[1], top),
        (b[0], b[1], top),
        (b[0], b[1], bottom),
        (a[0], a[1], bottom),
        (a[0], a[1], top),
    )


def build_walls(
    ring: Sequence[Point],
    surface_height_ft: float,
    parapet_height_ft: float = 0.0,
    closed: bool = True,
) -> List[WallPanel]:
    """One ground-to-roof quad per edge, plus a parapet strip above when set.

    Closed rings include the closing edge; degenerate or non-finite edges are skipped.
    """
    z = feet_to_meters(surface_height_ft)
    para_z = max(0.0, feet_to_meters(parapet_height_ft))
    panels: List[WallPanel] = []
    for i, a, b in iter_edges(ring, closed=closed):
        panels.append(WallPanel(i, "wall", _quad(a, b, 0.0, z), 0.0, z))
        if para_z > 0:
            panels.append(WallPanel(i, "parapet", _quad(a, b, z, z + para_z), z, z + para_z))
    return panels
