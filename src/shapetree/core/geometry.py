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
In-memory shapes.

A :class:`Geometry` is a plain value: a shape type, a list of parts given by
their first vertex, and parallel X, Y, Z and M arrays. It keeps no reference
to the file it was read from.
'''
import enum

import numpy

from shapetree.core import winding
from shapetree.envelope import Box
from shapetree.errors import InvalidArgumentError


class ShapeType(enum.IntEnum):
    NULL = 0
    POINT = 1
    ARC = 3
    POLYGON = 5
    MULTIPOINT = 8
    POINTZ = 11
    ARCZ = 13
    POLYGONZ = 15
    MULTIPOINTZ = 18
    POINTM = 21
    ARCM = 23
    POLYGONM = 25
    MULTIPOINTM = 28
    MULTIPATCH = 31

    @property
    def has_parts(self):
        return self in _PART_TYPES

    @property
    def has_z(self):
        return self in _Z_TYPES

    @property
    def has_m(self):
        return self in _M_TYPES

    @property
    def is_point(self):
        return self in (ShapeType.POINT, ShapeType.POINTZ, ShapeType.POINTM)

    @property
    def is_multipoint(self):
        return self in (ShapeType.MULTIPOINT, ShapeType.MULTIPOINTZ,
                        ShapeType.MULTIPOINTM)

    @property
    def is_polygon(self):
        return self in (ShapeType.POLYGON, ShapeType.POLYGONZ,
                        ShapeType.POLYGONM)


class PartType(enum.IntEnum):
    """Part types. Everything but MULTIPATCH only uses RING."""
    TRISTRIP = 0
    TRIFAN = 1
    OUTERRING = 2
    INNERRING = 3
    FIRSTRING = 4
    RING = 5


_PART_TYPES = frozenset([
    ShapeType.ARC, ShapeType.ARCZ, ShapeType.ARCM,
    ShapeType.POLYGON, ShapeType.POLYGONZ, ShapeType.POLYGONM,
    ShapeType.MULTIPATCH,
])
_Z_TYPES = frozenset([
    ShapeType.POINTZ, ShapeType.ARCZ, ShapeType.POLYGONZ,
    ShapeType.MULTIPOINTZ, ShapeType.MULTIPATCH,
])
# Z shapes may carry measures too.
_M_TYPES = _Z_TYPES | frozenset([
    ShapeType.POINTM, ShapeType.ARCM, ShapeType.POLYGONM,
    ShapeType.MULTIPOINTM,
])

_TYPE_NAMES = {
    ShapeType.NULL: "NullShape",
    ShapeType.POINT: "Point",
    ShapeType.ARC: "Arc",
    ShapeType.POLYGON: "Polygon",
    ShapeType.MULTIPOINT: "MultiPoint",
    ShapeType.POINTZ: "PointZ",
    ShapeType.ARCZ: "ArcZ",
    ShapeType.POLYGONZ: "PolygonZ",
    ShapeType.MULTIPOINTZ: "MultiPointZ",
    ShapeType.POINTM: "PointM",
    ShapeType.ARCM: "ArcM",
    ShapeType.POLYGONM: "PolygonM",
    ShapeType.MULTIPOINTM: "MultiPointM",
    ShapeType.MULTIPATCH: "MultiPatch",
}

_PART_TYPE_NAMES = {
    PartType.TRISTRIP: "TriangleStrip",
    PartType.TRIFAN: "TriangleFan",
    PartType.OUTERRING: "OuterRing",
    PartType.INNERRING: "InnerRing",
    PartType.FIRSTRING: "FirstRing",
    PartType.RING: "Ring",
}


def type_name(shape_type):
    """Display name of a shape type code, e.g. ``"PolygonZ"``."""
    try:
        return _TYPE_NAMES[ShapeType(shape_type)]
    except ValueError:
        return "UnknownShapeType"


def part_type_name(part_type):
    try:
        return _PART_TYPE_NAMES[PartType(part_type)]
    except ValueError:
        return "UnknownPartType"


def _vertex_array(values, n_vertices, keep):
    if values is None or not keep:
        return numpy.zeros(n_vertices, dtype=numpy.float64)
    arr = numpy.array(values, dtype=numpy.float64).ravel()
    if len(arr) != n_vertices:
        raise InvalidArgumentError(
            "Expected {} vertex values, got {}".format(n_vertices, len(arr)))
    return arr


class Geometry():
    """
    One shape, without attributes.

    Build instances with :meth:`create` or :meth:`create_simple`, or read
    them with :meth:`shapetree.ShapeFile.read_object`.

    Attributes:
        shape_type (ShapeType): type of the shape.
        shape_id (int): record number, -1 until written to a file.
        part_start (1d-int-array): first vertex of each part.
        part_type (1d-int-array): :class:`PartType` of each part.
        x, y, z, m (1d-float-array): vertex coordinates; z and m are all
            zeros when the shape type does not carry them.
        bounds (Box): extents of the vertices in the four dimensions.
    """
    __slots__ = ('shape_type', 'shape_id', 'part_start', 'part_type',
                 'x', 'y', 'z', 'm', 'bounds')

    def __init__(self, shape_type, shape_id=-1, part_start=None,
                 part_type=None, x=None, y=None, z=None, m=None, bounds=None):
        self.shape_type = ShapeType(shape_type)
        self.shape_id = shape_id
        self.part_start = numpy.asarray(
            part_start if part_start is not None else [], dtype=numpy.int32)
        self.part_type = numpy.asarray(
            part_type if part_type is not None else [], dtype=numpy.int32)
        self.x = numpy.asarray(x if x is not None else [], dtype=numpy.float64)
        n_vertices = len(self.x)
        self.y = _vertex_array(y, n_vertices, True)
        self.z = _vertex_array(z, n_vertices, True)
        self.m = _vertex_array(m, n_vertices, True)
        if bounds is None:
            self.compute_extents()
        else:
            self.bounds = bounds

    @classmethod
    def create(cls, shape_type, shape_id=-1, part_start=None, part_type=None,
               x=(), y=(), z=None, m=None):
        """
        Create a shape from vertex arrays.

        Arc, polygon and multipatch shapes always get at least one part: an
        empty `part_start` stands for a single part starting at vertex 0.
        `part_type` defaults to :attr:`PartType.RING` for every part. Z values
        are only kept for types with a Z dimension, and M values for types
        with measures; the other coordinates are zero.
        """
        shape_type = ShapeType(shape_type)
        n_vertices = len(x)
        if len(y) != n_vertices:
            raise InvalidArgumentError(
                "X and Y must have the same length ({} != {})"
                .format(n_vertices, len(y)))

        starts = types = None
        if shape_type.has_parts:
            n_parts = 0 if part_start is None else len(part_start)
            starts = numpy.zeros(max(1, n_parts), dtype=numpy.int32)
            types = numpy.full(len(starts), PartType.RING, dtype=numpy.int32)
            if n_parts:
                starts[:] = part_start
                if part_type is not None:
                    types[:] = part_type

        return cls(
            shape_type, shape_id, starts, types,
            numpy.array(x, dtype=numpy.float64),
            _vertex_array(y, n_vertices, True),
            _vertex_array(z, n_vertices, shape_type.has_z),
            _vertex_array(m, n_vertices, shape_type.has_m),
        )

    @classmethod
    def create_simple(cls, shape_type, x, y, z=None):
        """Single-part shape with no measures."""
        return cls.create(shape_type, -1, None, None, x, y, z, None)

    def __repr__(self):
        return "<Geometry {} id={} parts={} vertices={}>".format(
            type_name(self.shape_type), self.shape_id, self.n_parts,
            self.n_vertices)

    @property
    def n_vertices(self):
        return len(self.x)

    @property
    def n_parts(self):
        return len(self.part_start)

    def part_ranges(self):
        """Yields the (start, end) vertex slice of each part."""
        ends = list(self.part_start[1:]) + [self.n_vertices]
        for start, end in zip(self.part_start, ends):
            yield int(start), int(end)

    def compute_extents(self):
        """Recompute :attr:`bounds` from the vertices."""
        self.bounds = Box.from_coords(self.x, self.y, self.z, self.m)
        return self.bounds

    def rewind(self):
        """
        Fix the ring order of a polygon in place, see
        :func:`shapetree.core.winding.rewind_object`.
        """
        return winding.rewind_object(self)
