import math
from datetime import date

import pytest

from pvdesign.geo.geometry import polygon_from_vertices
from pvdesign.model.segment import FieldSegment
from pvdesign.sun.position import SunPosition


def rect(w, h, x0=0.0, y0=0.0):
    return [(x0, y0), (x0 + w, y0), (x0 + w, y0 + h), (x0, y0 + h)]


def make_segment(vertices=None, segment_id="seg-1", **attrs):
    geometry = polygon_from_vertices(vertices or rect(10.0, 10.0))
    attrs.setdefault("analysis_date", date(2024, 12, 22))
    return FieldSegment(id=segment_id, design_id="design-1", geometry=geometry, area=geometry.area, **attrs)


@pytest.fixture
def square():
    return rect(10.0, 10.0)


@pytest.fixture
def stub_sun():
    """Sun due south at 45 degrees: shadows point north with length == height."""

    def provider(when, lat, lng):
        return SunPosition(azimuth=0.0, altitude=math.pi / 4)

    return provider


@pytest.fixture
def segment_factory():
    return make_segment


class FakeClock:
    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
