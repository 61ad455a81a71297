from __future__ import annotations

from dataclasses import dataclass


@dataclass
class MapView:
    """Current map view as reported by the map provider.

    resolution: ground meters per screen pixel.
    bearing: view rotation in degrees.
    """

    resolution: float = 1.0
    bearing: float = 0.0

    def pixels_to_meters(self, px: float) -> float:
        return float(px) * float(self.resolution)
