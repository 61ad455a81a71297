"""Designer tunables.

Edit the constants below to change the defaults; `DesignerConfig` bundles them
so collaborators can be handed one object instead of reaching for globals.
Environment overrides use the ``PVDESIGN_`` prefix.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional


# ================================
# Drawing
# ================================

SNAP_DISTANCE_PX = 15.0           # radius around the first vertex that closes a ring
LABEL_OFFSET_PX = 30.0            # closed-ring labels pushed outward by this many px
OPEN_LABEL_TEXT_DY = -30.0        # in-progress labels sit above the edge
CLOSE_HINT_TEXT_DY = -24.0
CLOSE_HINT_TEXT = "Click to close"

# ================================
# Shadows
# ================================

SHADOW_MAX_LENGTH_M = 500.0       # caps near-horizon blow-up
SHADOW_STEP_MINUTES = 1           # sampling resolution for interval aggregation
SHADOW_FILL = "rgba(0,0,0,0.01)"

# ================================
# Modules / layout
# ================================

MODULE_ASPECT_RATIO = 1.66        # typical 60-cell L/W
DEFAULT_MODULE_WIDTH_M = 1.1
DEFAULT_MODULE_HEIGHT_M = 1.7
DEFAULT_MODULE_GAP_FT = 0.02      # used when module_spacing is missing or negative

# ================================
# Persistence
# ================================

AUTOSAVE_DEBOUNCE_S = 1.5

LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class DesignerConfig:
    """Runtime configuration for the design engine."""

    snap_distance_px: float = SNAP_DISTANCE_PX
    label_offset_px: float = LABEL_OFFSET_PX
    shadow_max_length_m: float = SHADOW_MAX_LENGTH_M
    shadow_step_minutes: int = SHADOW_STEP_MINUTES
    module_aspect_ratio: float = MODULE_ASPECT_RATIO
    default_module_width_m: float = DEFAULT_MODULE_WIDTH_M
    default_module_height_m: float = DEFAULT_MODULE_HEIGHT_M
    default_module_gap_ft: float = DEFAULT_MODULE_GAP_FT
    autosave_debounce_s: float = AUTOSAVE_DEBOUNCE_S
    log_level: str = LOG_LEVEL

    def __post_init__(self) -> None:
        if self.snap_distance_px < 0:
            raise ValueError("snap_distance_px must be >= 0")
        if self.shadow_step_minutes < 1:
            raise ValueError("shadow_step_minutes must be >= 1")
        if self.shadow_max_length_m <= 0:
            raise ValueError("shadow_max_length_m must be positive")
        if self.autosave_debounce_s < 0:
            raise ValueError("autosave_debounce_s must be >= 0")

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "DesignerConfig":
        """Build from a plain dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DesignerConfig":
        env = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        if "PVDESIGN_SNAP_PX" in env:
            overrides["snap_distance_px"] = float(env["PVDESIGN_SNAP_PX"])
        if "PVDESIGN_SHADOW_STEP_MINUTES" in env:
            overrides["shadow_step_minutes"] = int(env["PVDESIGN_SHADOW_STEP_MINUTES"])
        if "PVDESIGN_AUTOSAVE_DEBOUNCE_S" in env:
            overrides["autosave_debounce_s"] = float(env["PVDESIGN_AUTOSAVE_DEBOUNCE_S"])
        if "PVDESIGN_LOG_LEVEL" in env:
            overrides["log_level"] = env["PVDESIGN_LOG_LEVEL"].upper()
        return cls.from_dict(overrides)
