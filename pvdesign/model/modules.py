"""Module catalog entries and physical dimension resolution.

Dimensions resolve through a fallback chain so the packer always has a usable
size: parsed PAN dimensions, then a table of known models, then an estimate
from the module area, then a fixed placeholder.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

from pvdesign.config import DesignerConfig

if TYPE_CHECKING:
    from pvdesign.store.protocols import ModuleCatalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Module:
    id: str
    manufacturer: str
    model: str
    pnom: Optional[float] = None   # W
    vmp: Optional[float] = None    # V
    imp: Optional[float] = None    # A
    voc: Optional[float] = None    # V
    isc: Optional[float] = None    # A
    ns: Optional[int] = None
    np: Optional[int] = None
    area: Optional[float] = None   # m^2

    @property
    def display_name(self) -> str:
        return f"{self.manufacturer} {self.model}".strip()

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Module":
        return cls(
            id=str(row["id"]),
            manufacturer=row.get("manufacturer") or "",
            model=row.get("model") or "",
            pnom=row.get("pnom"),
            vmp=row.get("vmp"),
            imp=row.get("imp"),
            voc=row.get("voc"),
            isc=row.get("isc"),
            ns=row.get("ns"),
            np=row.get("np"),
            area=row.get("area"),
        )


@dataclass(frozen=True)
class ModuleDimensions:
    """Physical module size in meters (width across, height along)."""

    width: float
    height: float

    def oriented(self, portrait: bool) -> Tuple[float, float]:
        """(along X, along Y) for the given orientation."""
        if portrait:
            return max(0.0, self.height), max(0.0, self.width)
        return max(0.0, self.width), max(0.0, self.height)


# (predicate on lower-cased "manufacturer model", width m, height m)
KNOWN_MODELS = [
    (lambda n: "jinko" in n and ("jkm 260p-60" in n or "jkm260p-60" in n), 0.992, 1.65),
]


def _finite(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def resolve_dimensions(
    module: Optional[Module],
    parsed: Optional[Mapping[str, Any]] = None,
    config: Optional[DesignerConfig] = None,
) -> ModuleDimensions:
    cfg = config or DesignerConfig()
    width = (parsed or {}).get("width_m")
    height = (parsed or {}).get("length_m")

    if not (_finite(width) and _finite(height)):
        name = module.display_name.lower() if module else ""
        hit = next(((w, h) for test, w, h in KNOWN_MODELS if name and test(name)), None)
        if hit:
            width, height = hit
        elif module is not None and _finite(module.area) and module.area > 0:
            height = math.sqrt(module.area * cfg.module_aspect_ratio)
            width = module.area / height

    return ModuleDimensions(
        width=float(width) if _finite(width) else cfg.default_module_width_m,
        height=float(height) if _finite(height) else cfg.default_module_height_m,
    )


class ModuleDimensionCache:
    """Lazily resolved dimensions keyed by module id.

    Entries are never invalidated within a session.
    """

    def __init__(self, catalog: ModuleCatalog, config: Optional[DesignerConfig] = None) -> None:
        self._catalog = catalog
        self._config = config or DesignerConfig()
        self._dims: Dict[str, ModuleDimensions] = {}

    def __contains__(self, module_id: str) -> bool:
        return module_id in self._dims

    def get(self, module_id: Optional[str]) -> Optional[ModuleDimensions]:
        if not module_id:
            return None
        return self._dims.get(module_id)

    def ensure(self, module_id: Optional[str]) -> Optional[ModuleDimensions]:
        if not module_id:
            return None
        cached = self._dims.get(module_id)
        if cached is not None:
            return cached
        try:
            dims = self._catalog.get_dimensions(module_id)
        except Exception:
            logger.warning("could not resolve dimensions for module %s, using default", module_id, exc_info=True)
            dims = ModuleDimensions(self._config.default_module_width_m, self._config.default_module_height_m)
        self._dims[module_id] = dims
        return dims

    def preload(self, module_ids) -> None:
        for module_id in dict.fromkeys(m for m in module_ids if m):
            self.ensure(module_id)

    def snapshot(self) -> Dict[str, ModuleDimensions]:
        return dict(self._dims)
