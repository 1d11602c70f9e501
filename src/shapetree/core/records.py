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
Binary layout of the 100-byte headers and of the shape records.

A record starts with an 8-byte header (1-based record number and content
length in 16-bit words, both big-endian) followed by the shape type and a
type specific body:

=============================  =============================================
shape types                    body after the shape type
=============================  =============================================
NULL                           nothing
POINT[Z|M]                     X, Y [, Z] [, M]
MULTIPOINT[Z|M]                box, count, XY * count [, Z range, Z * count]
                               [, M range, M * count]
ARC[Z|M], POLYGON[Z|M],        box, part count, point count, part starts
MULTIPATCH                     [, part types], XY * count [, Z range,
                               Z * count] [, M range, M * count]
=============================  =============================================

Boxes are (xmin, ymin, xmax, ymax). Offsets below are from the start of the
record, record header included.
'''
import collections

import numpy

from shapetree.core import byte_codec
from shapetree.core.byte_codec import BIG, LITTLE
from shapetree.core.geometry import Geometry, PartType, ShapeType
from shapetree.envelope import Box
from shapetree.errors import (
    CorruptHeaderError, CorruptRecordError, InvalidArgumentError)

HEADER_SIZE = 100
RECORD_HEADER_SIZE = 8
MAGIC = 0x27
MAGIC_ALTERNATES = (0x0a, 0x0d)
VERSION = 1000

FileHeader = collections.namedtuple(
    'FileHeader', 'file_size shape_type bounds')

# Offsets of the doubles holding the file bounds, in (dimension, min|max).
_HEADER_BOUNDS = (
    (0, 0, 36), (1, 0, 44), (0, 1, 52), (1, 1, 60),
    (2, 0, 68), (2, 1, 76), (3, 0, 84), (3, 1, 92),
)

# Record body offsets.
_TYPE_OFFSET = 8
_BOX_OFFSET = 12
_POINT_OFFSET = 12
_NPARTS_OFFSET = 44
_NPOINTS_OFFSET = 48
_PARTS_OFFSET = 52
_MULTIPOINT_COUNT_OFFSET = 44
_MULTIPOINT_XY_OFFSET = 48
_NULL_SIZE = 12


# =============================  File headers  ================================

def encode_header(file_size, shape_type, bounds):
    """
    Build the 100-byte header shared by the .shp and .shx files.

    Args:
        file_size (int): file length in bytes, stored as 16-bit words.
        shape_type (ShapeType): type of the shapes of the file.
        bounds (Box): extents of the file.
    """
    header = bytearray(HEADER_SIZE)
    header[2] = MAGIC
    header[3] = MAGIC_ALTERNATES[0]
    byte_codec.write_int32(header, 24, file_size // 2, order=BIG)
    byte_codec.write_int32(header, 28, VERSION)
    byte_codec.write_int32(header, 32, int(shape_type))
    for dim, is_max, offset in _HEADER_BOUNDS:
        corner = bounds.maxs if is_max else bounds.mins
        byte_codec.write_double(header, offset, corner[dim])
    return header


def check_magic(header):
    return (len(header) >= HEADER_SIZE
            and header[0] == 0 and header[1] == 0
            and header[2] == MAGIC
            and header[3] in MAGIC_ALTERNATES)


def decode_header(header, name='header'):
    """
    Returns the :class:`FileHeader` of a 100-byte header.

    Raises:
        CorruptHeaderError: for a short header, a bad magic cookie or an
            unknown shape type.
    """
    if not check_magic(header):
        raise CorruptHeaderError("Bad magic cookie in {}".format(name))
    file_size = byte_codec.read_int32(header, 24, order=BIG) * 2
    try:
        shape_type = ShapeType(header[32])
    except ValueError:
        raise CorruptHeaderError(
            "Unknown shape type {} in {}".format(header[32], name)) from None
    bounds = Box()
    for dim, is_max, offset in _HEADER_BOUNDS:
        corner = bounds.maxs if is_max else bounds.mins
        corner[dim] = byte_codec.read_double(header, offset)
    return FileHeader(file_size, shape_type, bounds)


# =============================  Shape records  ===============================

def record_size(geometry):
    """Size in bytes of the encoded record, record header included."""
    shape_type = geometry.shape_type
    n = geometry.n_vertices
    if shape_type == ShapeType.NULL:
        return _NULL_SIZE
    if shape_type.is_point:
        return _POINT_OFFSET + 16 + 8 * shape_type.has_z + 8 * _writes_m(
            shape_type)
    if shape_type.is_multipoint:
        size = _MULTIPOINT_XY_OFFSET + 16 * n
    else:
        size = _PARTS_OFFSET + 4 * geometry.n_parts + 16 * n
        if shape_type == ShapeType.MULTIPATCH:
            size += 4 * geometry.n_parts
    if shape_type.has_z:
        size += 16 + 8 * n
    if _writes_m(shape_type):
        size += 16 + 8 * n
    return size


def _writes_m(shape_type):
    # Measures are never written for multipatches, some readers crash on
    # them.
    return shape_type.has_m and shape_type != ShapeType.MULTIPATCH


def encode_record(geometry, shape_id):
    """
    Encode `geometry` as record number `shape_id` (0-based).

    Returns:
        bytearray: the record, record header included.
    """
    shape_type = geometry.shape_type
    if shape_type.is_point and geometry.n_vertices < 1:
        raise InvalidArgumentError("Point shapes need one vertex")
    record = bytearray(record_size(geometry))
    byte_codec.write_int32(record, 0, shape_id + 1, order=BIG)
    byte_codec.write_int32(record, 4, (len(record) - RECORD_HEADER_SIZE) // 2,
                           order=BIG)
    byte_codec.write_int32(record, _TYPE_OFFSET, int(shape_type))

    if shape_type == ShapeType.NULL:
        return record

    if shape_type.is_point:
        offset = byte_codec.write_doubles(
            record, _POINT_OFFSET, [geometry.x[0], geometry.y[0]])
        if shape_type.has_z:
            offset = byte_codec.write_doubles(record, offset, geometry.z[:1])
        if _writes_m(shape_type):
            byte_codec.write_doubles(record, offset, geometry.m[:1])
        return record

    _write_box(record, geometry.bounds)
    if shape_type.is_multipoint:
        byte_codec.write_int32(record, _MULTIPOINT_COUNT_OFFSET,
                               geometry.n_vertices)
        offset = _MULTIPOINT_XY_OFFSET
    else:
        byte_codec.write_int32(record, _NPARTS_OFFSET, geometry.n_parts)
        byte_codec.write_int32(record, _NPOINTS_OFFSET, geometry.n_vertices)
        offset = byte_codec.write_int32s(record, _PARTS_OFFSET,
                                         geometry.part_start)
        if shape_type == ShapeType.MULTIPATCH:
            offset = byte_codec.write_int32s(record, offset,
                                             geometry.part_type)

    xy = numpy.column_stack([geometry.x, geometry.y]).ravel()
    offset = byte_codec.write_doubles(record, offset, xy)
    if shape_type.has_z:
        offset = _write_range(record, offset, geometry.z,
                              geometry.bounds.mins[2], geometry.bounds.maxs[2])
    if _writes_m(shape_type):
        _write_range(record, offset, geometry.m,
                     geometry.bounds.mins[3], geometry.bounds.maxs[3])
    return record


def _write_box(record, bounds):
    byte_codec.write_doubles(
        record, _BOX_OFFSET,
        [bounds.mins[0], bounds.mins[1], bounds.maxs[0], bounds.maxs[1]])


def _write_range(record, offset, values, vmin, vmax):
    offset = byte_codec.write_doubles(record, offset, [vmin, vmax])
    return byte_codec.write_doubles(record, offset, values)


def measures_present(record_length, offset, n_values, with_range=True):
    """
    Does a record still hold M values after `offset`?

    Measures are not announced by the shape type: like the legacy readers, we
    take them whenever the record is long enough, range included for
    everything but points.

    Args:
        record_length (int): record size in bytes, record header included.
        offset (int): where the measures would start.
        n_values (int): number of vertices.
        with_range (bool): whether an (M min, M max) pair precedes the
            values.
    """
    return record_length >= offset + 16 * with_range + 8 * n_values


def decode_record(record, shape_id):
    """
    Decode a record (record header included) into a :class:`Geometry`.

    Raises:
        CorruptRecordError: if the record is too short for its counts or
            holds an unknown shape type.
    """
    try:
        return _decode(record, shape_id)
    except ValueError as exc:
        raise CorruptRecordError(
            "Cannot decode record {}: {}".format(shape_id, exc)) from exc


def _decode(record, shape_id):
    raw_type = byte_codec.read_int32(record, _TYPE_OFFSET)
    try:
        shape_type = ShapeType(raw_type)
    except ValueError:
        raise CorruptRecordError(
            "Unknown shape type {} in record {}".format(raw_type, shape_id)
        ) from None

    if shape_type == ShapeType.NULL:
        return Geometry(shape_type, shape_id)
    if shape_type.is_point:
        return _decode_point(record, shape_id, shape_type)

    if shape_type.is_multipoint:
        n_points = byte_codec.read_int32(record, _MULTIPOINT_COUNT_OFFSET)
        _check_count(n_points, record)
        part_start = part_type = None
        offset = _MULTIPOINT_XY_OFFSET
    else:
        n_parts = byte_codec.read_int32(record, _NPARTS_OFFSET)
        n_points = byte_codec.read_int32(record, _NPOINTS_OFFSET)
        _check_count(n_parts, record)
        _check_count(n_points, record)
        part_start = byte_codec.read_int32s(record, _PARTS_OFFSET, n_parts)
        offset = _PARTS_OFFSET + 4 * n_parts
        if shape_type == ShapeType.MULTIPATCH:
            part_type = byte_codec.read_int32s(record, offset, n_parts)
            offset += 4 * n_parts
        else:
            part_type = numpy.full(n_parts, PartType.RING, dtype=numpy.int32)

    bounds = Box()
    box = byte_codec.read_doubles(record, _BOX_OFFSET, 4)
    bounds.mins[:2] = box[:2]
    bounds.maxs[:2] = box[2:]

    xy = byte_codec.read_doubles(record, offset, 2 * n_points).reshape(-1, 2)
    offset += 16 * n_points

    z = None
    if shape_type.has_z:
        (bounds.mins[2], bounds.maxs[2]), z, offset = _read_range(
            record, offset, n_points)

    m = None
    if measures_present(len(record), offset, n_points):
        (bounds.mins[3], bounds.maxs[3]), m, offset = _read_range(
            record, offset, n_points)

    return Geometry(shape_type, shape_id, part_start, part_type,
                    xy[:, 0].copy(), xy[:, 1].copy(), z, m, bounds=bounds)


def _decode_point(record, shape_id, shape_type):
    x, y = byte_codec.read_doubles(record, _POINT_OFFSET, 2)
    offset = _POINT_OFFSET + 16
    z = m = 0.0
    if shape_type.has_z:
        z = byte_codec.read_double(record, offset)
        offset += 8
    if measures_present(len(record), offset, 1, with_range=False):
        m = byte_codec.read_double(record, offset)
    # Points store no extents, the vertex is the box.
    return Geometry(shape_type, shape_id, x=[x], y=[y], z=[z], m=[m],
                    bounds=Box([x, y, z, m], [x, y, z, m]))


def _read_range(record, offset, n_values):
    vrange = byte_codec.read_doubles(record, offset, 2)
    values = byte_codec.read_doubles(record, offset + 16, n_values)
    return tuple(vrange), values, offset + 16 + 8 * n_values


def _check_count(count, record):
    if count < 0 or count > len(record):
        raise CorruptRecordError(
            "Implausible count {} in a {} byte record".format(
                count, len(record)))
