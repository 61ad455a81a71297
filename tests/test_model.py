from datetime import date

import pytest

from pvdesign.errors import PersistenceError
from pvdesign.geo.geometry import polygon_from_vertices
from pvdesign.model.modules import Module, ModuleDimensionCache, ModuleDimensions, resolve_dimensions
from pvdesign.model.segment import (
    Alignment,
    FieldSegment,
    Orientation,
    default_analysis_date,
    new_segment_row,
)
from pvdesign.store.memory import InMemoryModuleCatalog

JINKO = Module(id="m1", manufacturer="Jinko", model="JKM260P-60", area=1.64)


class TestResolveDimensions:
    def test_parsed_dimensions_win(self):
        dims = resolve_dimensions(JINKO, {"width_m": 1.0, "length_m": 2.0})
        assert dims == ModuleDimensions(1.0, 2.0)

    def test_known_model(self):
        assert resolve_dimensions(JINKO, None) == ModuleDimensions(0.992, 1.65)

    def test_area_estimate(self):
        module = Module(id="m2", manufacturer="Acme", model="X", area=1.66)
        dims = resolve_dimensions(module, {"width_m": None})
        assert dims.height == pytest.approx(1.66)
        assert dims.width == pytest.approx(1.0)

    def test_placeholder(self):
        assert resolve_dimensions(None, None) == ModuleDimensions(1.1, 1.7)
        assert resolve_dimensions(Module(id="m3", manufacturer="", model="", area=0.0)) == ModuleDimensions(1.1, 1.7)


def test_portrait_swaps_dimensions():
    dims = ModuleDimensions(1.0, 2.0)
    assert dims.oriented(False) == (1.0, 2.0)
    assert dims.oriented(True) == (2.0, 1.0)


def test_dimension_cache_loads_once():
    catalog = InMemoryModuleCatalog()
    catalog.add(JINKO)
    cache = ModuleDimensionCache(catalog)
    assert cache.get("m1") is None
    cache.preload(["m1", "m1", None])
    assert "m1" in cache
    assert cache.snapshot() == {"m1": ModuleDimensions(0.992, 1.65)}


def test_dimension_cache_asks_catalog_for_dimensions():
    class SizedCatalog(InMemoryModuleCatalog):
        calls = 0

        def get_dimensions(self, module_id):
            self.calls += 1
            return ModuleDimensions(1.2, 2.4)

    catalog = SizedCatalog()
    catalog.add(JINKO)
    cache = ModuleDimensionCache(catalog)
    assert cache.ensure("m1") == ModuleDimensions(1.2, 2.4)
    assert cache.ensure("m1") == ModuleDimensions(1.2, 2.4)
    assert catalog.calls == 1


def test_dimension_cache_falls_back_on_catalog_error(caplog):
    class BrokenCatalog(InMemoryModuleCatalog):
        def get_dimensions(self, module_id):
            raise PersistenceError("catalog offline")

    cache = ModuleDimensionCache(BrokenCatalog())
    assert cache.ensure("m9") == ModuleDimensions(1.1, 1.7)
    assert "m9" in caplog.text


def test_default_analysis_date():
    assert default_analysis_date(date(2025, 3, 1)) == date(2025, 12, 22)


def test_from_row_applies_defaults_and_recomputes_area():
    geom = polygon_from_vertices([(0, 0), (4, 0), (4, 5), (0, 5)])
    row = {"id": 7, "design_id": "d", "geometry": geom.to_json(), "area": 999.0, "setback": None}
    seg = FieldSegment.from_row(row, today=date(2024, 1, 1))
    assert seg.id == "7"
    assert seg.area == pytest.approx(20.0)
    assert seg.setback == 4.0
    assert seg.module_azimuth == 180.0
    assert seg.gcr == 0.81
    assert seg.default_orientation is Orientation.LANDSCAPE
    assert seg.alignment is Alignment.CENTER
    assert seg.racking == "Fixed Tilt Racking"
    assert seg.analysis_date == date(2024, 12, 22)


def test_row_roundtrip(segment_factory):
    seg = segment_factory(module_tilt=25.0, default_orientation=Orientation.PORTRAIT)
    again = FieldSegment.from_row(seg.to_row())
    assert again == seg
    assert seg.to_row()["default_orientation"] == "Portrait"


def test_with_changes_coerces_values(segment_factory):
    seg = segment_factory()
    changed = seg.with_changes(frame_size_up="2.7", setback="oops", alignment="right", analysis_date="2024-06-21")
    assert changed.frame_size_up == 2
    assert changed.setback == 4.0
    assert changed.alignment is Alignment.RIGHT
    assert changed.analysis_date == date(2024, 6, 21)


def test_with_changes_rejects_identity_fields(segment_factory):
    with pytest.raises(ValueError):
        segment_factory().with_changes(id="other")


def test_frame_size_floor_is_one(segment_factory):
    assert segment_factory().with_changes(frame_size_wide=0).frame_size_wide == 1


def test_new_segment_row():
    geom = polygon_from_vertices([(0, 0), (3, 0), (3, 3)])
    row = new_segment_row("d", geom, 3, today=date(2024, 5, 5))
    assert row["description"] == "Field Segment 3"
    assert row["analysis_date"] == "2024-12-22"
    assert row["area"] == pytest.approx(4.5)
    assert row["end_time"] == "16:00"
