import math
from datetime import date

import pytest

from pvdesign.layers.shadows import (
    interval_shadows,
    obstruction_height_m,
    project_shadow,
    sample_minutes,
    segment_shadows,
    shadow_length,
)
from pvdesign.sun.position import SunPosition

DAY = date(2024, 12, 22)


def test_no_shadow_when_sun_is_down(square):
    assert project_shadow(square, 10.0, SunPosition(0.0, 0.0)) is None
    assert project_shadow(square, 10.0, SunPosition(0.0, -0.2)) is None


def test_no_shadow_without_height(square):
    assert project_shadow(square, 0.0, SunPosition(0.0, 0.5)) is None


def test_shadow_length_equals_height_at_45_degrees(square):
    shadow = project_shadow(square, 10.0, SunPosition(0.0, math.pi / 4))
    assert shadow.length == pytest.approx(10.0)
    # sun in the south casts shadows to the north
    assert shadow.bearing == pytest.approx(0.0)
    minx, miny, maxx, maxy = shadow.roof.bounds
    assert (minx, miny, maxx, maxy) == pytest.approx((0.0, 10.0, 10.0, 20.0))
    assert len(shadow.walls) == 4


def test_shadow_length_is_clamped_near_horizon():
    assert shadow_length(10.0, 1e-5, 500.0) == 500.0
    shadow = project_shadow([(0, 0), (1, 0), (1, 1)], 10.0, SunPosition(0.0, 1e-5))
    assert shadow.length == 500.0


def test_west_sun_casts_shadow_east(square):
    shadow = project_shadow(square, 5.0, SunPosition(math.pi / 2, math.pi / 4))
    assert shadow.bearing == pytest.approx(90.0)
    assert shadow.roof.bounds[0] == pytest.approx(5.0)


def test_obstruction_height_sums_feet():
    assert obstruction_height_m(10, 2, 3) == pytest.approx(15 * 0.3048)


def test_sample_minutes_inclusive_and_swapped():
    assert sample_minutes("10:00", "10:03") == [600, 601, 602, 603]
    assert sample_minutes("16:00", "10:00", 60) == list(range(600, 961, 60))
    assert sample_minutes("12:00", None) == [720]
    assert sample_minutes("23:58", "25:00") == [1438, 1439]


def test_interval_aggregate_with_constant_sun(square, stub_sun):
    result = interval_shadows(square, 10.0, DAY, "10:00", "10:05", 40.0, -105.0, "UTC", stub_sun)
    assert len(result.instants) == 6
    assert result.aggregate_area == pytest.approx(200.0)
    assert result.fill == "rgba(0,0,0,0.01)"


def test_aggregate_covers_every_instant(square):
    def swinging_sun(when, lat, lng):
        minutes = when.hour * 60 + when.minute
        return SunPosition(azimuth=(minutes - 720) / 240.0, altitude=math.radians(30))

    result = interval_shadows(square, 6.0, DAY, "10:00", "14:00", 40.0, -105.0, "UTC", swinging_sun, step_minutes=30)
    assert len(result.instants) == 9
    for instant in result.instants:
        assert result.aggregate_area >= instant.roof.area - 1e-9
        assert result.aggregate.buffer(1e-6).contains(instant.roof)


def test_failing_provider_yields_no_shadow(square):
    def broken(when, lat, lng):
        raise RuntimeError("no ephemeris")

    result = interval_shadows(square, 10.0, DAY, "10:00", "10:02", 0.0, 0.0, None, broken)
    assert result.instants == []
    assert result.aggregate is None
    assert result.aggregate_parts == []


def test_segment_shadows_uses_segment_attributes(segment_factory, stub_sun):
    seg = segment_factory(surface_height=10.0, racking_height=0.0, parapet_height=0.0,
                          start_time="11:00", end_time="11:01")
    result = segment_shadows(seg, 40.0, -105.0, "UTC", stub_sun)
    assert result.start_minutes == 660
    assert len(result.instants) == 2
    assert result.instants[0].length == pytest.approx(3.048)


def test_grid_offset_rotates_shadow_into_planar_frame(square):
    shadow = project_shadow(square, 10.0, SunPosition(0.0, math.pi / 4), grid_offset=90.0)
    assert shadow.bearing == pytest.approx(90.0)
    minx, miny, maxx, maxy = shadow.roof.bounds
    assert (minx, miny, maxx, maxy) == pytest.approx((10.0, 0.0, 20.0, 10.0))


def test_segment_shadows_pass_grid_offset(segment_factory, stub_sun):
    seg = segment_factory(surface_height=10.0, start_time="11:00", end_time="11:00")
    result = segment_shadows(seg, 25.2, 55.27, "Asia/Dubai", stub_sun, grid_offset=0.75)
    assert result.instants[0].bearing == pytest.approx(0.75)
