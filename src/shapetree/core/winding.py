# Copyright (C) 2018 DataStorm
#
# This file is part of ShapeTree.
#
# ShapeTree is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# ShapeTree is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# A copy of the GNU General Public License is available in the LICENSE
# file or at <http://www.gnu.org/licenses/>.
'''
Ring order of polygons.

Outer rings are stored clockwise and holes counter-clockwise. With the
shoelace sum used here, clockwise rings have a negative signed area.
'''
import numpy


def signed_area(x, y):
    """Twice the signed area of the closed ring (x, y)."""
    return float(numpy.sum(x * numpy.roll(y, -1) - y * numpy.roll(x, -1)))


def point_in_ring(test_x, test_y, x, y):
    """
    Even-odd test of (test_x, test_y) against the closed ring (x, y).

    A horizontal ray is cast towards -X and the edges crossing it are
    counted.
    """
    x_next = numpy.roll(x, -1)
    y_next = numpy.roll(y, -1)
    crossing = (((y < test_y) & (y_next >= test_y))
                | ((y_next < test_y) & (y >= test_y)))
    if not crossing.any():
        return False
    x, y = x[crossing], y[crossing]
    x_next, y_next = x_next[crossing], y_next[crossing]
    x_cross = x + (test_y - y) / (y_next - y) * (x_next - x)
    return bool(numpy.count_nonzero(x_cross < test_x) % 2)


def is_inner_ring(geometry, ring, ranges=None):
    """Is the first vertex of `ring` inside an odd number of other rings?"""
    ranges = ranges or list(geometry.part_ranges())
    start = ranges[ring][0]
    test_x, test_y = geometry.x[start], geometry.y[start]
    inner = False
    for other, (first, last) in enumerate(ranges):
        if other == ring or first == last:
            continue
        if point_in_ring(test_x, test_y, geometry.x[first:last],
                         geometry.y[first:last]):
            inner = not inner
    return inner


def rewind_object(geometry):
    """
    Reverse the rings of a polygon that are not in the expected order.

    Args:
        geometry (Geometry): shape to fix in place.

    Returns:
        int: number of rings reversed. Shapes which are not polygons are
        left alone and give 0.
    """
    if not geometry.shape_type.is_polygon:
        return 0

    ranges = list(geometry.part_ranges())
    altered = 0
    for ring, (start, end) in enumerate(ranges):
        if start >= geometry.n_vertices:
            continue
        inner = is_inner_ring(geometry, ring, ranges)
        area = signed_area(geometry.x[start:end], geometry.y[start:end])
        if (area < 0.0 and inner) or (area > 0.0 and not inner):
            altered += 1
            for coords in (geometry.x, geometry.y, geometry.z, geometry.m):
                coords[start:end] = coords[start:end][::-1].copy()
    return altered
