"""GeoJSON export of a design.

Accepts shapely geometries in the project's planar frame and writes a
FeatureCollection in EPSG:4326. `design_features` flattens the derived layers
of every segment (footprint, setback region, modules, aggregate shadow) into
one list with a ``layer`` property on each feature.
"""

import json
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pyproj import Transformer
from shapely.geometry import Polygon, mapping
from shapely.ops import transform


def feature_collection(
    geometries: Union[Any, Sequence[Any]],
    src_crs: Any,
    properties: Optional[Union[Dict[str, Any], Sequence[Dict[str, Any]]]] = None,
) -> Dict[str, Any]:
    """Build a FeatureCollection dict in EPSG:4326.

    Args:
        geometries: A single shapely geometry or a list of geometries.
        src_crs: CRS of the input geometries (e.g. a `SiteFrame.crs`).
        properties:
            - None: each feature gets {}.
            - dict: applied to all features.
            - list of dicts: one per geometry.
    """
    if geometries is None:
        raise ValueError("geometries cannot be None")

    if isinstance(geometries, (list, tuple)):
        geoms: List[Any] = list(geometries)
    else:
        geoms = [geometries]

    if properties is None:
        props_list: List[Dict[str, Any]] = [{} for _ in geoms]
    elif isinstance(properties, dict):
        props_list = [properties for _ in geoms]
    else:
        props_list = list(properties)
        if len(props_list) != len(geoms):
            raise ValueError("If properties is a list, it must match geometries length")

    tx = Transformer.from_crs(src_crs, "EPSG:4326", always_xy=True)

    def _proj(x, y, z=None):
        return tx.transform(x, y)

    fc: Dict[str, Any] = {"type": "FeatureCollection", "features": []}
    for geom, props in zip(geoms, props_list):
        if geom is None or geom.is_empty:
            continue
        fc["features"].append(
            {"type": "Feature", "properties": dict(props), "geometry": mapping(transform(_proj, geom))}
        )
    return fc


def design_features(segments: Sequence[Any], layers: Mapping[str, Any]) -> Tuple[List[Any], List[Dict[str, Any]]]:
    """Geometries and per-feature properties for every segment and its derived layers."""
    geoms: List[Any] = []
    props: List[Dict[str, Any]] = []
    for seg in segments:
        base = {"segment_id": seg.id, "description": seg.description}
        geoms.append(seg.geometry.to_shapely() if hasattr(seg.geometry, "to_shapely") else None)
        props.append(dict(base, layer="segment", area_m2=seg.area))
        derived = layers.get(seg.id)
        if derived is None:
            continue
        if derived.layout is not None:
            geoms.append(derived.layout.region)
            props.append(dict(base, layer="setback"))
            for m in derived.layout.modules:
                geoms.append(Polygon(m.corners))
                props.append(dict(base, layer="module", row=m.frame_row, col=m.frame_col))
        if derived.shadows is not None and derived.shadows.aggregate is not None:
            geoms.append(derived.shadows.aggregate)
            props.append(dict(base, layer="shadow", area_m2=derived.shadows.aggregate_area))
    return geoms, props


def export_design(segments: Sequence[Any], layers: Mapping[str, Any], out_path: str, src_crs: Any) -> int:
    """Export a design's segments and derived layers; returns the feature count."""
    geoms, props = design_features(segments, layers)
    fc = feature_collection(geoms, src_crs, props)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(fc, f)
    return len(fc["features"])
