import numpy
import pytest

from shapetree.core import winding
from shapetree.core.geometry import Geometry, ShapeType
from shapetree.core.shapefile import ShapeFile

# Counter-clockwise square of side 10 and two counter-clockwise holes.
OUTER = ([0, 10, 10, 0, 0], [0, 0, 10, 10, 0])
HOLE1 = ([2, 4, 4, 2, 2], [2, 2, 4, 4, 2])
HOLE2 = ([6, 8, 8, 6, 6], [6, 6, 8, 8, 6])


def _polygon(*rings, shape_type=ShapeType.POLYGON):
    starts = numpy.cumsum([0] + [len(x) for x, _ in rings[:-1]])
    return Geometry.create(shape_type, part_start=starts,
                           x=numpy.concatenate([x for x, _ in rings]),
                           y=numpy.concatenate([y for _, y in rings]))


def _areas(geometry):
    return [winding.signed_area(geometry.x[a:b], geometry.y[a:b])
            for a, b in geometry.part_ranges()]


def test_signed_area():
    assert winding.signed_area(numpy.array(OUTER[0], dtype=float),
                               numpy.array(OUTER[1], dtype=float)) == 200


def test_point_in_ring():
    x, y = numpy.array(OUTER[0], float), numpy.array(OUTER[1], float)
    assert winding.point_in_ring(5, 5, x, y)
    assert not winding.point_in_ring(15, 5, x, y)
    assert not winding.point_in_ring(5, 15, x, y)


def test_outer_and_two_holes():
    polygon = _polygon(OUTER, HOLE1, HOLE2)
    assert winding.rewind_object(polygon) == 1
    areas = _areas(polygon)
    assert areas[0] < 0
    assert areas[1] > 0 and areas[2] > 0
    numpy.testing.assert_array_equal(polygon.x[:5], [0, 0, 10, 10, 0])


def test_rewind_is_idempotent():
    polygon = _polygon(OUTER, HOLE1, HOLE2)
    polygon.rewind()
    x = polygon.x.copy()
    assert polygon.rewind() == 0
    numpy.testing.assert_array_equal(polygon.x, x)


def test_clockwise_hole_is_reversed():
    hole = (HOLE1[0][::-1], HOLE1[1][::-1])
    polygon = _polygon((OUTER[0][::-1], OUTER[1][::-1]), hole)
    assert winding.rewind_object(polygon) == 1
    assert _areas(polygon)[1] > 0


def test_z_and_m_follow_the_ring():
    polygon = Geometry.create(ShapeType.POLYGONZ, x=OUTER[0], y=OUTER[1],
                              z=[1, 2, 3, 4, 1], m=[5, 6, 7, 8, 5])
    assert winding.rewind_object(polygon) == 1
    numpy.testing.assert_array_equal(polygon.z, [1, 4, 3, 2, 1])
    numpy.testing.assert_array_equal(polygon.m, [5, 8, 7, 6, 5])


@pytest.mark.parametrize('shape_type', [ShapeType.ARC, ShapeType.MULTIPOINT])
def test_other_types_untouched(shape_type):
    geometry = Geometry.create(shape_type, x=OUTER[0], y=OUTER[1])
    assert winding.rewind_object(geometry) == 0
    numpy.testing.assert_array_equal(geometry.x, OUTER[0])


def test_shapefile_rewind(base):
    with ShapeFile.create(base, ShapeType.POLYGON) as shp:
        polygon = _polygon(OUTER)
        assert shp.rewind_object(polygon) == 1
        shp.write_object(-1, polygon)
        got = shp.read_object(0)
    assert _areas(got)[0] < 0
