import logging
import tempfile
from pathlib import Path

from pvdesign.config import DesignerConfig
from pvdesign.draw.view import MapView
from pvdesign.export.export_geojson import export_design
from pvdesign.geo.crs import SiteFrame
from pvdesign.geo.units import format_area
from pvdesign.model.modules import Module
from pvdesign.session.editor import DesignEditor
from pvdesign.store.memory import InMemoryModuleCatalog, InMemorySegmentStore

# Import matplotlib optionally; without it the demo runs with no visualization.
try:
    import matplotlib.pyplot as plt
    HAS_MPL = True
except Exception:
    plt = None
    HAS_MPL = False

# 1) Project site (Dubai) and a 40 m x 20 m flat roof in the local UTM frame
SITE_LAT = 25.2048
SITE_LNG = 55.2708
SITE_TZ = "Asia/Dubai"
ROOF_W = 40.0
ROOF_H = 20.0

# 2) Segment attributes (feet, like the property panel)
SURFACE_HEIGHT_FT = 12.0
PARAPET_HEIGHT_FT = 3.0
SETBACK_FT = 4.0
SHADOW_STEP_MINUTES = 15   # coarser than the default so the demo runs quickly

config = DesignerConfig.from_env()
logging.basicConfig(level=config.log_level, format="%(levelname)s %(name)s: %(message)s")

site = SiteFrame(SITE_LAT, SITE_LNG, SITE_TZ)
catalog = InMemoryModuleCatalog(config)
catalog.add(Module(id="jinko-260", manufacturer="Jinko", model="JKM260P-60", pnom=260.0, area=1.637))
store = InMemorySegmentStore()
editor = DesignEditor("demo", store, catalog, site=site, view=MapView(resolution=0.1), config=config)
editor.pipeline.step_minutes = SHADOW_STEP_MINUTES

# 3) Draw the roof through the same clicks a user would make
x0, y0 = site.origin()
corners = [(x0, y0), (x0 + ROOF_W, y0), (x0 + ROOF_W, y0 + ROOF_H), (x0, y0 + ROOF_H)]
editor.start_draw()
for corner in corners:
    editor.click(corner)
segment = editor.press_start_marker()
if segment is None:
    raise SystemExit("drawing did not produce a segment")

segment = editor.update_attributes(
    segment.id,
    module="jinko-260",
    surface_height=SURFACE_HEIGHT_FT,
    parapet_height=PARAPET_HEIGHT_FT,
    setback=SETBACK_FT,
)
editor.flush()
layers = editor.layers()[segment.id]


def summary():
    print(f"Segment: {segment.description}")
    print(f"Area: {format_area(segment.area)}")
    print(f"Wall panels: {len(layers.walls)}")
    print(f"Modules: {layers.module_count}")
    if layers.shadows is not None:
        print(f"Shadow samples: {len(layers.shadows.instants)}")
        print(f"Shadowed area: {format_area(layers.shadows.aggregate_area)}")
    out = Path(tempfile.gettempdir()) / "pvdesign_demo.geojson"
    n = export_design(editor.segments, {segment.id: layers}, str(out), site.crs)
    print(f"Exported {n} features to {out}")


def visualize():
    if not HAS_MPL:
        print("matplotlib not available; skipping visualization. Install with: python -m pip install matplotlib")
        return
    fig, ax = plt.subplots()
    if layers.shadows is not None:
        for part in layers.shadows.aggregate_parts:
            x, y = part.exterior.xy
            ax.fill(x, y, color="black", alpha=0.15)

    xs, ys = segment.geometry.to_shapely().exterior.xy
    ax.plot(xs, ys, color="black")

    if layers.layout is not None:
        x, y = layers.layout.region.exterior.xy
        ax.plot(x, y, color="orange", linestyle="--")
        for m in layers.layout.modules:
            x, y = m.polygon.exterior.xy
            ax.fill(x, y, alpha=0.6)

    ax.set_aspect("equal", "box")
    ax.set_title("Field segment layout with interval shadow")
    plt.show()


if __name__ == "__main__":
    summary()
    visualize()
