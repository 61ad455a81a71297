"""CRS helpers: project-local UTM frame for planar geometry math."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from pyproj import CRS, Transformer

from pvdesign.geo.ring import Point

# latitude step used to trace the local meridian in the planar frame
_MERIDIAN_STEP_DEG = 1e-4


def utm_crs_from_latlon(lat: float, lon: float) -> CRS:
    """Return the UTM CRS whose zone contains (lat, lon)."""
    zone = int((lon + 180) / 6) % 60 + 1
    south = lat < 0
    return CRS.from_dict({"proj": "utm", "zone": zone, "south": south})


@dataclass
class SiteFrame:
    """Planar frame anchored at a project location.

    Segment rings live in this frame (meters, x east / y north). Conversions to
    and from WGS84 go through pyproj.

    UTM grid north only matches true north on the zone's central meridian.
    `true_north_bearing` is the grid bearing of true north at the site; add it
    to a true compass bearing to get the bearing in this frame.
    """

    lat: float
    lng: float
    timezone: str = "UTC"
    crs: CRS = field(init=False, repr=False)
    true_north_bearing: float = field(init=False)

    def __post_init__(self) -> None:
        self.crs = utm_crs_from_latlon(self.lat, self.lng)
        self._to_planar = Transformer.from_crs("EPSG:4326", self.crs, always_xy=True)
        self._to_wgs = Transformer.from_crs(self.crs, "EPSG:4326", always_xy=True)
        self.true_north_bearing = self._meridian_bearing()

    def _meridian_bearing(self) -> float:
        half = _MERIDIAN_STEP_DEG / 2.0
        x0, y0 = self.to_planar(self.lng, self.lat - half)
        x1, y1 = self.to_planar(self.lng, self.lat + half)
        brg = math.degrees(math.atan2(x1 - x0, y1 - y0))
        return brg if math.isfinite(brg) else 0.0

    def to_planar(self, lon: float, lat: float) -> Point:
        x, y = self._to_planar.transform(lon, lat)
        return float(x), float(y)

    def to_wgs84(self, x: float, y: float) -> Point:
        """Return (lon, lat)."""
        lon, lat = self._to_wgs.transform(x, y)
        return float(lon), float(lat)

    def origin(self) -> Point:
        return self.to_planar(self.lng, self.lat)
