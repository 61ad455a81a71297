import pytest

from pvdesign.draw.state import DrawMode, DrawStateMachine, RingStyle
from pvdesign.draw.view import MapView
from pvdesign.errors import DrawStateError
from pvdesign.geo.geometry import polygon_from_vertices
from pvdesign.geo.units import format_area
from pvdesign.layers.labels import GHOST_SNAP_STYLE, GHOST_STYLE


@pytest.fixture
def machine():
    return DrawStateMachine(MapView(resolution=1.0))


def draw_triangle(m):
    m.start_draw()
    for p in [(0, 0), (100, 0), (100, 100)]:
        m.click(p)


def test_snap_distance_follows_resolution():
    assert DrawStateMachine(MapView(resolution=0.5)).snap_distance_m == pytest.approx(7.5)


def test_pointer_near_start_closes_ring_once(machine):
    draw_triangle(machine)
    result = machine.pointer_move((5, 5))
    assert result is not None
    assert result.geometry.ring[0] == result.geometry.ring[-1] == (0.0, 0.0)
    assert len(result.geometry.vertices) == 3
    assert result.area == pytest.approx(5000.0)
    assert machine.mode is DrawMode.SAVING
    assert machine.pointer_move((4, 4)) is None
    assert machine.state.auto_close_latched is False


def test_consecutive_draws_each_close_on_hover(machine):
    for _ in range(2):
        draw_triangle(machine)
        result = machine.pointer_move((5, 5))
        assert result is not None
        assert machine.mode is DrawMode.SAVING
        machine.save_settled()


def test_latched_snap_shows_closing_feedback_without_closing(machine):
    draw_triangle(machine)
    machine.state.auto_close_latched = True
    assert machine.pointer_move((5, 5)) is None
    st = machine.state
    assert st.mode is DrawMode.DRAWING
    assert st.closing_snap_active
    assert st.ring_style is RingStyle.CLOSING
    assert st.preview == (0.0, 0.0)
    assert st.ghost.style is GHOST_SNAP_STYLE
    assert st.hint.text == "Click to close"
    assert st.hint.anchor == (0.0, 0.0)
    assert machine.pointer_move((6, 6)) is None


def test_latch_resets_after_leaving_snap_radius(machine):
    draw_triangle(machine)
    machine.state.auto_close_latched = True
    assert machine.pointer_move((5, 5)) is None
    assert machine.pointer_move((50, 50)) is None
    st = machine.state
    assert not st.auto_close_latched
    assert not st.closing_snap_active
    assert st.ring_style is RingStyle.DEFAULT
    assert st.ghost.style is GHOST_STYLE
    assert st.hint is None
    assert machine.pointer_move((5, 5)) is not None


def test_no_snap_with_fewer_than_three_vertices(machine):
    machine.start_draw()
    machine.click((0, 0))
    machine.click((100, 0))
    assert machine.pointer_move((1, 1)) is None
    assert not machine.state.closing_snap_active
    assert machine.state.ring_style is RingStyle.DEFAULT
    assert machine.state.preview == (1.0, 1.0)


def test_click_inside_snap_radius_closes(machine):
    draw_triangle(machine)
    result = machine.click((3, -2))
    assert result is not None
    assert result.geometry.vertices == [(0.0, 0.0), (100.0, 0.0), (100.0, 100.0)]


def test_duplicate_click_is_ignored(machine):
    machine.start_draw()
    machine.click((0, 0))
    machine.click((50, 0))
    machine.click((50, 0))
    assert machine.state.vertices == [(0.0, 0.0), (50.0, 0.0)]


def test_first_click_places_start_marker_and_area_updates(machine):
    draw_triangle(machine)
    st = machine.state
    assert st.start_marker.point == (0.0, 0.0)
    assert st.current_area == format_area(5000.0)
    assert len(st.labels.markers) == 3
    assert all(label.text_dy == -30.0 for label in st.labels.labels)


def test_preview_label_tracks_cursor(machine):
    machine.start_draw()
    machine.click((0, 0))
    machine.pointer_move((30, 40))
    assert machine.state.preview_label.meters == pytest.approx(50.0)


def test_press_start_marker_needs_three_vertices(machine):
    machine.start_draw()
    machine.click((0, 0))
    machine.click((100, 0))
    assert machine.press_start_marker() is None
    machine.click((100, 100))
    assert machine.press_start_marker() is not None


def test_saving_blocks_new_draw_until_settled(machine):
    draw_triangle(machine)
    machine.finish_draw()
    with pytest.raises(DrawStateError):
        machine.start_draw()
    machine.save_settled()
    assert machine.mode is DrawMode.IDLE
    assert machine.start_draw()


def test_finish_with_too_few_vertices_cancels(machine):
    machine.start_draw()
    machine.click((0, 0))
    machine.click((10, 0))
    assert machine.finish_draw() is None
    assert machine.mode is DrawMode.IDLE
    assert machine.state.vertices == []


def test_modifier_key_cancels_and_blocks_start(machine):
    draw_triangle(machine)
    machine.key_down()
    assert machine.mode is DrawMode.IDLE
    assert machine.state.vertices == []
    assert machine.start_draw() is False
    machine.key_up()
    assert machine.start_draw() is True


def test_blur_releases_modifier(machine):
    machine.key_down()
    machine.blur()
    assert machine.start_draw()


def test_non_finite_click_is_ignored(machine):
    machine.start_draw()
    machine.click((float("nan"), 0))
    assert machine.state.vertices == []


class TestVertexEditing:
    def square(self):
        return polygon_from_vertices([(0, 0), (100, 0), (100, 100), (0, 100)])

    def test_drag_updates_labels_live(self, machine):
        handles = machine.begin_edit("seg", self.square())
        assert len(handles) == 4
        labels = machine.drag_vertex(2, (120, 120))
        assert len(labels.markers) == 4
        assert len(labels.labels) == 4
        assert machine.state.edit_handles[2].point == (120.0, 120.0)

    def test_finish_edit_returns_new_area(self, machine):
        machine.begin_edit("seg", self.square())
        machine.drag_vertex(2, (120, 120))
        result = machine.finish_edit()
        assert result.segment_id == "seg"
        assert result.area == pytest.approx(12000.0)
        assert machine.mode is DrawMode.IDLE

    def test_non_finite_drag_is_skipped(self, machine):
        machine.begin_edit("seg", self.square())
        machine.drag_vertex(1, (float("inf"), 0))
        assert machine.state.editing_vertices[1] == (100.0, 0.0)

    def test_edit_requires_idle(self, machine):
        machine.start_draw()
        with pytest.raises(DrawStateError):
            machine.begin_edit("seg", self.square())

    def test_draw_blocked_while_editing(self, machine):
        machine.begin_edit("seg", self.square())
        with pytest.raises(DrawStateError):
            machine.start_draw()
        machine.cancel_edit()
        assert machine.start_draw()
