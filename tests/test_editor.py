import pytest

from pvdesign.config import DesignerConfig
from pvdesign.draw.state import DrawMode
from pvdesign.draw.view import MapView
from pvdesign.errors import PersistenceError
from pvdesign.model.modules import Module, ModuleDimensions
from pvdesign.session.autosave import SaveStatus
from pvdesign.session.editor import DesignEditor
from pvdesign.session.library import ModuleLibrary
from pvdesign.store.memory import InMemoryModuleCatalog, InMemorySegmentStore


class FlakyStore(InMemorySegmentStore):
    def __init__(self):
        super().__init__()
        self.fail_create = False
        self.fail_delete = False

    def create(self, row):
        if self.fail_create:
            raise PersistenceError("create refused")
        return super().create(row)

    def delete(self, segment_id):
        if self.fail_delete:
            raise PersistenceError("delete refused")
        return super().delete(segment_id)


@pytest.fixture
def catalog():
    catalog = InMemoryModuleCatalog()
    catalog.add(Module(id="mod", manufacturer="Acme", model="A1"), {"width_m": 1.0, "length_m": 2.0})
    return catalog


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def editor(store, catalog, clock):
    return DesignEditor("d1", store, catalog, view=MapView(resolution=0.1),
                        config=DesignerConfig(autosave_debounce_s=1.5), clock=clock)


def draw_rect(editor, w=20.0, h=10.0):
    editor.start_draw()
    for p in [(0, 0), (w, 0), (w, h), (0, h)]:
        editor.click(p)
    return editor.press_start_marker()


def test_drawing_creates_and_selects_segment(editor, store):
    seg = draw_rect(editor)
    assert seg.description == "Field Segment 1"
    assert seg.area == pytest.approx(200.0)
    assert editor.selected_id == seg.id
    assert editor.machine.mode is DrawMode.IDLE
    assert [r["id"] for r in store.list_by_design("d1")] == [seg.id]
    assert draw_rect(editor).description == "Field Segment 2"


def test_failed_create_rolls_back(editor, store):
    store.fail_create = True
    assert draw_rect(editor) is None
    assert editor.segments == []
    assert editor.save_status is SaveStatus.ERROR
    assert editor.machine.mode is DrawMode.IDLE
    assert editor.start_draw()


def test_load_reads_segments_and_preloads_dimensions(editor, store, catalog, clock):
    seg = draw_rect(editor)
    editor.update_attributes(seg.id, module="mod")
    editor.flush()
    fresh = DesignEditor("d1", store, catalog, clock=clock)
    loaded = fresh.load()
    assert [s.id for s in loaded] == [seg.id]
    assert fresh.dims.get("mod") == ModuleDimensions(1.0, 2.0)


def test_attribute_edits_apply_now_and_save_later(editor, store, clock):
    seg = draw_rect(editor)
    editor.update_attributes(seg.id, setback=0.0)
    editor.update_attributes(seg.id, module="mod")
    assert editor.get(seg.id).setback == 0.0
    assert editor.layers()[seg.id].module_count > 0
    assert store.get(seg.id)["setback"] == 4.0
    assert editor.tick() == []
    clock.advance(2.0)
    assert editor.tick() == [seg.id]
    row = store.get(seg.id)
    assert row["setback"] == 0.0
    assert row["module"] == "mod"
    assert editor.save_status is SaveStatus.SAVED


def test_finish_edit_persists_geometry_immediately(editor, store):
    seg = draw_rect(editor)
    editor.begin_edit(seg.id)
    editor.drag_vertex(2, (30.0, 10.0))
    updated = editor.finish_edit()
    assert updated.area == pytest.approx(250.0)
    assert store.get(seg.id)["area"] == pytest.approx(250.0)
    assert store.get(seg.id)["geometry"]["coordinates"][0][2] == [30.0, 10.0]


def test_delete_evicts_derived_layers(editor):
    seg = draw_rect(editor)
    other = draw_rect(editor, 5.0, 5.0)
    editor.layers()
    assert editor.delete_segment(seg.id)
    layers = editor.layers()
    assert set(layers) == {other.id}
    assert seg.id not in editor.pipeline.memo.segment_ids()
    assert editor.selected_id == other.id


def test_failed_delete_restores_segment(editor, store):
    first = draw_rect(editor)
    second = draw_rect(editor, 5.0, 5.0)
    editor.select(first.id)
    editor.update_attributes(first.id, gcr=0.5)
    store.fail_delete = True
    assert not editor.delete_segment(first.id)
    assert [s.id for s in editor.segments] == [first.id, second.id]
    assert editor.selected_id == first.id
    assert editor.autosaver.pending(first.id) == {"gcr": 0.5}


def test_shadow_toggle(editor):
    editor.set_show_shadows(False)
    assert editor.show_shadows is False


def test_module_library_delete_rolls_back(catalog):
    class RefusingCatalog(InMemoryModuleCatalog):
        def delete(self, module_id):
            raise PersistenceError("in use")

    refusing = RefusingCatalog()
    refusing.add(Module(id="x", manufacturer="Acme", model="B"))
    library = ModuleLibrary(refusing)
    library.load()
    assert library.delete("x") is False
    assert [m.id for m in library.modules] == ["x"]

    library = ModuleLibrary(catalog)
    library.load()
    assert library.delete("mod") is True
    assert library.modules == []
    assert catalog.get("mod") is None
