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
Reading and writing .shp/.shx file pairs.

The .shp file holds the shape records and the .shx file the offset and
length of each record. The whole record table is kept in memory while the
pair is open and written back, with the headers, on :meth:`ShapeFile.close`.

Example:

    with ShapeFile.create('roads', ShapeType.ARC) as shp:
        shp.write_object(-1, Geometry.create_simple(ShapeType.ARC,
                                                    [0, 1], [0, 1]))
'''
import collections
import logging
import os

import numpy

from shapetree.core import byte_codec, records, winding
from shapetree.core.geometry import ShapeType
from shapetree.envelope import Box
from shapetree.errors import (
    CorruptHeaderError,
    InvalidArgumentError,
    ShapefileIOError,
)

logger = logging.getLogger(__name__)

HEADER_SIZE = records.HEADER_SIZE
# Sanity bound on the record count read from a header. A larger count means
# a corrupt header, not a real limit.
MAX_RECORDS = 256000000
GROWTH_FACTOR = 1.3
GROWTH_INCREMENT = 100

_UPDATE_MODES = ('rb+', 'r+b', 'r+')

ShapeFileInfo = collections.namedtuple(
    'ShapeFileInfo', 'n_records shape_type bounds_min bounds_max')


def basename(path):
    """Strip the extension, if any, from a .shp/.shx path."""
    return os.path.splitext(os.fspath(path))[0]


def _open_either(base, extension, mode):
    last_error = None
    for ext in (extension.lower(), extension.upper()):
        try:
            return open(base + ext, mode)
        except OSError as exc:
            last_error = exc
    raise ShapefileIOError(
        "Unable to open {}{}: {}".format(base, extension, last_error)
    ) from last_error


class ShapeFile():
    """
    An open pair of .shp and .shx files.

    Use :meth:`open` or :meth:`create` rather than the constructor.

    Attributes:
        shape_type (ShapeType): type of every non-NULL shape of the file.
        n_records (int): number of records, ids are 0..n_records-1.
        file_size (int): size of the .shp file in bytes.
        bounds (Box): extents of every vertex written so far.
        updated (bool): whether headers must be rewritten on close.
    """

    def __init__(self, shp, shx, header, offsets, sizes, writable):
        self._shp = shp
        self._shx = shx
        self.writable = writable
        self.shape_type = header.shape_type
        self.file_size = header.file_size
        self.bounds = header.bounds
        self.n_records = len(offsets)
        self.max_records = len(offsets)
        self._offsets = offsets
        self._sizes = sizes
        # Bytes available at each record offset. Shrunk records keep their
        # slot so they can grow back in place.
        self._capacity = sizes.copy()
        self.updated = False
        self.closed = False
        # Files created empty have no extent until their first shape.
        self._has_extent = not header.bounds.is_empty
        # Current record, reused from one read to the next.
        self._record = bytearray()

    # =============================  Opening  =================================

    @classmethod
    def open(cls, path, mode='rb'):
        """
        Open an existing shapefile.

        Args:
            path (str or PathLike): the .shp or .shx file, or the path
                without extension. Lower then upper case extensions are
                tried.
            mode (str): 'rb' for read-only access, 'rb+' (or 'r+b', 'r+')
                for updates.

        Raises:
            ShapefileIOError: if either file cannot be opened or read.
            CorruptHeaderError: if a header or the index table is invalid.
        """
        writable = mode in _UPDATE_MODES
        mode = 'r+b' if writable else 'rb'
        base = basename(path)

        shp = _open_either(base, '.shp', mode)
        try:
            shx = _open_either(base, '.shx', mode)
        except ShapefileIOError:
            shp.close()
            raise
        try:
            header, offsets, sizes = cls._read_headers(base, shp, shx)
        except (CorruptHeaderError, OSError) as exc:
            shp.close()
            shx.close()
            if isinstance(exc, CorruptHeaderError):
                logger.warning("Rejecting %s: %s", base, exc)
                raise
            raise ShapefileIOError(
                "Unable to read {}: {}".format(base, exc)) from exc

        logger.debug("Opened %s (%s, %d records, mode %s)", base,
                     header.shape_type.name, len(offsets), mode)
        return cls(shp, shx, header, offsets, sizes, writable)

    @staticmethod
    def _read_headers(base, shp, shx):
        shp_header = records.decode_header(shp.read(HEADER_SIZE),
                                           base + '.shp')
        shx_header = records.decode_header(shx.read(HEADER_SIZE),
                                           base + '.shx')

        n_records = (shx_header.file_size - HEADER_SIZE) // 8
        if n_records < 0 or n_records > MAX_RECORDS:
            raise CorruptHeaderError(
                "Implausible record count {} in {}.shx".format(n_records,
                                                              base))
        table = shx.read(8 * n_records)
        if len(table) < 8 * n_records:
            raise CorruptHeaderError(
                "{}.shx holds {} bytes of index for {} records".format(
                    base, len(table), n_records))
        offsets, sizes = byte_codec.read_index_table(table, n_records)
        # The file length comes from the .shp header, everything else from
        # the .shx one.
        header = records.FileHeader(
            shp_header.file_size, shx_header.shape_type, shx_header.bounds)
        return header, offsets, sizes

    @classmethod
    def create(cls, path, shape_type):
        """
        Create an empty shapefile pair and open it for update.

        Existing files with the same base name are overwritten.
        """
        shape_type = ShapeType(shape_type)
        base = basename(path)
        header = records.encode_header(HEADER_SIZE, shape_type, Box())
        for extension in ('.shp', '.shx'):
            try:
                with open(base + extension, 'wb') as fp:
                    fp.write(header)
            except OSError as exc:
                raise ShapefileIOError(
                    "Unable to create {}{}: {}".format(base, extension, exc)
                ) from exc
        logger.debug("Created %s for %s shapes", base, shape_type.name)
        return cls.open(base, 'r+b')

    # =============================  Context  =================================

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __len__(self):
        return self.n_records

    def __iter__(self):
        return self.iter_objects()

    def __repr__(self):
        return "<ShapeFile {} records={}{}>".format(
            self.shape_type.name, self.n_records,
            " closed" if self.closed else "")

    # =============================  Queries  =================================

    def info(self):
        """Returns the record count, shape type and extents of the file."""
        return ShapeFileInfo(self.n_records, self.shape_type,
                             tuple(self.bounds.mins.tolist()),
                             tuple(self.bounds.maxs.tolist()))

    @property
    def offsets(self):
        """Byte offset of each record in the .shp file (read-only view)."""
        view = self._offsets[:self.n_records]
        view.flags.writeable = False
        return view

    @property
    def sizes(self):
        """Content length in bytes of each record, record header excluded."""
        view = self._sizes[:self.n_records]
        view.flags.writeable = False
        return view

    def _check_open(self):
        if self.closed:
            raise ShapefileIOError("I/O operation on a closed shapefile")

    def _check_id(self, shape_id):
        if not 0 <= shape_id < self.n_records:
            raise InvalidArgumentError(
                "Shape id {} out of range [0, {})".format(shape_id,
                                                          self.n_records))

    def read_object(self, shape_id):
        """
        Read shape `shape_id` from the file.

        Raises:
            InvalidArgumentError: if there is no such record.
            ShapefileIOError: if the record cannot be read in full.
            CorruptRecordError: if its bytes do not decode.
        """
        self._check_open()
        self._check_id(shape_id)
        length = int(self._sizes[shape_id]) + records.RECORD_HEADER_SIZE
        if length > len(self._record):
            self._record = bytearray(length)
        buf = memoryview(self._record)[:length]
        try:
            self._shp.seek(int(self._offsets[shape_id]))
            n_read = self._shp.readinto(buf)
        except OSError as exc:
            raise ShapefileIOError(
                "Unable to read record {}: {}".format(shape_id, exc)
            ) from exc
        if n_read != length:
            raise ShapefileIOError(
                "Record {} is truncated: read {} of {} bytes".format(
                    shape_id, n_read, length))
        return records.decode_record(buf, shape_id)

    def iter_objects(self):
        """Yields every shape of the file, in record order."""
        for shape_id in range(self.n_records):
            yield self.read_object(shape_id)

    def rewind_object(self, geometry):
        """Fix the ring order of `geometry`, see :mod:`winding`."""
        return winding.rewind_object(geometry)

    # =============================  Updates  =================================

    def _reserve(self, n_records):
        if n_records <= self.max_records:
            return
        self.max_records = int(self.max_records * GROWTH_FACTOR
                               + GROWTH_INCREMENT)
        grow = self.max_records - len(self._offsets)
        self._offsets = numpy.concatenate(
            [self._offsets, numpy.zeros(grow, dtype=self._offsets.dtype)])
        self._sizes = numpy.concatenate(
            [self._sizes, numpy.zeros(grow, dtype=self._sizes.dtype)])
        self._capacity = numpy.concatenate(
            [self._capacity, numpy.zeros(grow, dtype=self._capacity.dtype)])
        logger.debug("Record table grown to %d entries", self.max_records)

    def write_object(self, shape_id, geometry):
        """
        Write `geometry` as record `shape_id`, or append it if -1.

        A rewritten record stays in place when it fits in the bytes first
        used by that record, even if a shorter version was written since. Otherwise it is appended at the end of the .shp file
        and the old bytes are left unused.

        Returns:
            int: the id of the written record.

        Raises:
            InvalidArgumentError: for a read-only file, a shape type other
                than the file's (or NULL), or an unknown id.
            ShapefileIOError: if seeking or writing fails. The record may
                then be partially written.
        """
        self._check_open()
        if not self.writable:
            raise InvalidArgumentError("Shapefile is opened read-only")
        if geometry.shape_type not in (self.shape_type, ShapeType.NULL):
            raise InvalidArgumentError(
                "Cannot write a {} shape to a {} file".format(
                    geometry.shape_type.name, self.shape_type.name))
        if shape_id != -1:
            self._check_id(shape_id)
        record = records.encode_record(
            geometry, self.n_records if shape_id == -1 else shape_id)
        content_size = len(record) - records.RECORD_HEADER_SIZE

        if shape_id == -1 or self._capacity[shape_id] < content_size:
            if shape_id == -1:
                self._reserve(self.n_records + 1)
                shape_id = self.n_records
                self.n_records += 1
            else:
                logger.debug("Record %d no longer fits in %d bytes, moved "
                             "to offset %d", shape_id,
                             self._capacity[shape_id],
                             self.file_size)
            offset = self.file_size
            self._offsets[shape_id] = offset
            self._capacity[shape_id] = content_size
            self.file_size += len(record)
        else:
            offset = int(self._offsets[shape_id])
        self._sizes[shape_id] = content_size
        self.updated = True

        try:
            self._shp.seek(offset)
            self._shp.write(record)
        except OSError as exc:
            raise ShapefileIOError(
                "Unable to write record {}: {}".format(shape_id, exc)
            ) from exc

        self._extend_bounds(geometry)
        return shape_id

    def _extend_bounds(self, geometry):
        if geometry.shape_type == ShapeType.NULL or not geometry.n_vertices:
            return
        shape_bounds = Box.from_coords(geometry.x, geometry.y,
                                       geometry.z, geometry.m)
        if not self._has_extent:
            self.bounds = shape_bounds
            self._has_extent = True
        else:
            self.bounds = Box.merge([self.bounds, shape_bounds])

    # =============================  Closing  =================================

    def _write_headers(self):
        header = records.encode_header(self.file_size, self.shape_type,
                                       self.bounds)
        self._shp.seek(0)
        self._shp.write(header)

        index_size = HEADER_SIZE + 8 * self.n_records
        header = records.encode_header(index_size, self.shape_type,
                                       self.bounds)
        self._shx.seek(0)
        self._shx.write(header)
        self._shx.write(byte_codec.index_table_bytes(self.offsets,
                                                     self.sizes))

    def flush(self):
        """Write the headers and the record table now."""
        self._check_open()
        if self.updated:
            try:
                self._write_headers()
                self._shp.flush()
                self._shx.flush()
            except OSError as exc:
                raise ShapefileIOError(
                    "Unable to write headers: {}".format(exc)) from exc
            self.updated = False

    def close(self):
        """
        Write the headers if anything changed and close both files.

        Closing twice is harmless.
        """
        if self.closed:
            return
        try:
            self.flush()
        finally:
            self._shp.close()
            self._shx.close()
            self.closed = True
            logger.debug("Closed shapefile (%d records, %d bytes)",
                         self.n_records, self.file_size)
