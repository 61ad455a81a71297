"""FieldSegment: the single persistent geometric entity of a design.

Stored rows use snake_case column names; the in-memory object uses the same
names as attributes. ``area`` is derived and always recomputed from geometry
when a row is loaded.
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pvdesign.geo.geometry import SegmentGeometry, geometry_from_json


class Orientation(str, Enum):
    LANDSCAPE = "Landscape"
    PORTRAIT = "Portrait"


class Alignment(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    JUSTIFY = "justify"


def default_analysis_date(today: Optional[date] = None) -> date:
    """Dec 22 of the current year (worst-case low sun)."""
    year = (today or date.today()).year
    return date(year, 12, 22)


# Column defaults applied when a stored row omits a field.
DEFAULTS: Dict[str, Any] = {
    "description": "",
    "module": None,
    "racking": "Fixed Tilt Racking",
    "surface_height": 0.0,
    "racking_height": 0.0,
    "parapet_height": 0.0,
    "module_azimuth": 180.0,
    "module_tilt": 10.0,
    "span_rise": 1.4,
    "gcr": 0.81,
    "time_of_day": "10:00",
    "start_time": "10:00",
    "end_time": "16:00",
    "frame_size_up": 1,
    "frame_size_wide": 1,
    "default_orientation": Orientation.LANDSCAPE.value,
    "row_spacing": 2.0,
    "module_spacing": 0.041,
    "frame_spacing": 0.0,
    "setback": 4.0,
    "alignment": Alignment.CENTER.value,
}

# Fields a property panel may edit (everything except identity and shape).
ATTRIBUTE_FIELDS = tuple(DEFAULTS) + ("analysis_date",)


@dataclass(frozen=True)
class FieldSegment:
    id: str
    design_id: str
    geometry: SegmentGeometry
    area: float = 0.0
    description: str = ""
    module: Optional[str] = None
    racking: str = "Fixed Tilt Racking"
    surface_height: float = 0.0
    racking_height: float = 0.0
    parapet_height: float = 0.0
    module_azimuth: float = 180.0
    module_tilt: float = 10.0
    span_rise: float = 1.4
    gcr: float = 0.81
    time_of_day: str = "10:00"
    analysis_date: date = field(default_factory=default_analysis_date)
    start_time: str = "10:00"
    end_time: str = "16:00"
    frame_size_up: int = 1
    frame_size_wide: int = 1
    default_orientation: Orientation = Orientation.LANDSCAPE
    row_spacing: float = 2.0
    module_spacing: float = 0.041
    frame_spacing: float = 0.0
    setback: float = 4.0
    alignment: Alignment = Alignment.CENTER
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self) -> None:
        if self.frame_size_up < 1 or self.frame_size_wide < 1:
            raise ValueError("frame sizes must be >= 1")
        object.__setattr__(self, "default_orientation", Orientation(self.default_orientation))
        object.__setattr__(self, "alignment", Alignment(self.alignment))

    @property
    def is_portrait(self) -> bool:
        return self.default_orientation is Orientation.PORTRAIT

    def with_geometry(self, geometry: SegmentGeometry) -> "FieldSegment":
        """Replace the ring and recompute area."""
        return dataclasses.replace(self, geometry=geometry, area=geometry.area)

    def with_changes(self, **changes: Any) -> "FieldSegment":
        unknown = set(changes) - set(ATTRIBUTE_FIELDS)
        if unknown:
            raise ValueError(f"not editable attributes: {sorted(unknown)}")
        return dataclasses.replace(self, **_coerce_attributes(changes))

    def to_row(self) -> Dict[str, Any]:
        """Serializable row for the segment store."""
        row: Dict[str, Any] = {
            "id": self.id,
            "design_id": self.design_id,
            "geometry": self.geometry.to_json(),
            "area": self.area,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        row.update(attributes_to_row({name: getattr(self, name) for name in ATTRIBUTE_FIELDS}))
        return row

    @classmethod
    def from_row(cls, row: Mapping[str, Any], today: Optional[date] = None) -> "FieldSegment":
        geometry = geometry_from_json(row["geometry"])
        attrs = {name: row.get(name) for name in ATTRIBUTE_FIELDS}
        for name, default in DEFAULTS.items():
            if attrs.get(name) is None:
                attrs[name] = default
        if not attrs.get("analysis_date"):
            attrs["analysis_date"] = default_analysis_date(today)
        return cls(
            id=str(row["id"]),
            design_id=str(row.get("design_id") or ""),
            geometry=geometry,
            area=geometry.area,
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            **_coerce_attributes(attrs),
        )


def new_segment_row(design_id: str, geometry: SegmentGeometry, index: int,
                    today: Optional[date] = None) -> Dict[str, Any]:
    """Row for a freshly drawn segment, before the store assigns an id."""
    row = dict(DEFAULTS)
    row.update({
        "design_id": design_id,
        "geometry": geometry.to_json(),
        "area": geometry.area,
        "description": f"Field Segment {index}",
        "analysis_date": default_analysis_date(today).isoformat(),
    })
    return row


def attributes_to_row(fields_: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name, value in fields_.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, date):
            value = value.isoformat()
        out[name] = value
    return out


_FLOAT_FIELDS = {
    "surface_height", "racking_height", "parapet_height", "module_azimuth", "module_tilt",
    "span_rise", "gcr", "row_spacing", "module_spacing", "frame_spacing", "setback",
}


def _coerce_attributes(attrs: Mapping[str, Any]) -> Dict[str, Any]:
    out = dict(attrs)
    for name in _FLOAT_FIELDS & set(out):
        value = out[name]
        try:
            value = float(value)
        except (TypeError, ValueError):
            value = float(DEFAULTS[name])
        out[name] = value if math.isfinite(value) else float(DEFAULTS[name])
    for name in ("frame_size_up", "frame_size_wide"):
        if name in out:
            try:
                out[name] = max(1, int(math.floor(float(out[name]))))
            except (TypeError, ValueError, OverflowError):
                out[name] = 1
    if isinstance(out.get("analysis_date"), str):
        out["analysis_date"] = date.fromisoformat(out["analysis_date"])
    return out
