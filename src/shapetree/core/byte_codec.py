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
Endian-aware access to the fixed-size fields of shapefile buffers.

Shapefiles mix two byte orders. The file length, the record numbers, the
record content lengths and the index table are big-endian, everything else
(version, shape type, bounds, counts and coordinates) is little-endian.

Scalar helpers work like the legacy C code: the value is copied in host order
and swapped in place when the stored order differs from the host order.
Array helpers let numpy dtypes carry the byte order instead.
'''
import struct

import numpy
import toolz

LITTLE = 'little'
BIG = 'big'

_DTYPES = {
    (LITTLE, 'i4'): numpy.dtype('<i4'),
    (BIG, 'i4'): numpy.dtype('>i4'),
    (LITTLE, 'f8'): numpy.dtype('<f8'),
    (BIG, 'f8'): numpy.dtype('>f8'),
}


@toolz.memoize
def host_byte_order():
    """Byte order of this machine, worked out once per process."""
    if struct.pack('=i', 1)[0] == 1:
        return LITTLE
    return BIG


def needs_swap(order):
    return order != host_byte_order()


def swap_word(buf, offset, length):
    """Reverse the `length` bytes of `buf` starting at `offset`, in place."""
    if length not in (2, 4, 8):
        raise ValueError("Can only swap 2, 4 or 8 byte words, not {}"
                         .format(length))
    buf[offset:offset + length] = buf[offset:offset + length][::-1]


def _write(fmt, buf, offset, value, order):
    struct.pack_into(fmt, buf, offset, value)
    if needs_swap(order):
        swap_word(buf, offset, struct.calcsize(fmt))


def _read(fmt, buf, offset, order):
    size = struct.calcsize(fmt)
    word = bytearray(buf[offset:offset + size])
    if len(word) < size:
        raise ValueError("Buffer too short to read {} bytes at offset {}"
                         .format(size, offset))
    if needs_swap(order):
        swap_word(word, 0, size)
    return struct.unpack(fmt, word)[0]


def write_int32(buf, offset, value, order=LITTLE):
    _write('=i', buf, offset, int(value), order)


def read_int32(buf, offset, order=LITTLE):
    return _read('=i', buf, offset, order)


def write_double(buf, offset, value, order=LITTLE):
    _write('=d', buf, offset, float(value), order)


def read_double(buf, offset, order=LITTLE):
    return _read('=d', buf, offset, order)


# ===========================  Array helpers  =================================

def read_doubles(buf, offset, count, order=LITTLE):
    """Returns `count` doubles from `buf` as a native float64 array."""
    return _read_array(buf, offset, count, _DTYPES[order, 'f8'], numpy.float64)


def read_int32s(buf, offset, count, order=LITTLE):
    return _read_array(buf, offset, count, _DTYPES[order, 'i4'], numpy.int32)


def _read_array(buf, offset, count, dtype, native):
    if count == 0:
        return numpy.empty(0, dtype=native)
    nbytes = count * dtype.itemsize
    if offset + nbytes > len(buf):
        raise ValueError("Buffer too short to read {} values at offset {}"
                         .format(count, offset))
    # astype copies, so the result never aliases the record buffer.
    return numpy.frombuffer(buf, dtype=dtype, count=count,
                            offset=offset).astype(native)


def write_doubles(buf, offset, values, order=LITTLE):
    """Writes `values` at `offset`, returns the offset just after them."""
    return _write_array(buf, offset, values, _DTYPES[order, 'f8'])


def write_int32s(buf, offset, values, order=LITTLE):
    return _write_array(buf, offset, values, _DTYPES[order, 'i4'])


def _write_array(buf, offset, values, dtype):
    data = numpy.asarray(values).astype(dtype).tobytes()
    buf[offset:offset + len(data)] = data
    return offset + len(data)


def read_index_table(buf, count):
    """
    Decode `count` (offset, length) pairs of an index file.

    Both values are stored as big-endian counts of 16-bit words and are
    returned in bytes.
    """
    table = read_int32s(buf, 0, 2 * count, order=BIG).astype(numpy.int64)
    table = table.reshape(count, 2) * 2
    return table[:, 0].copy(), table[:, 1].copy()


def index_table_bytes(offsets, sizes):
    """Encode byte offsets and lengths as the index file's word table."""
    table = numpy.column_stack([numpy.asarray(offsets, dtype=numpy.int64),
                                numpy.asarray(sizes, dtype=numpy.int64)])
    return (table // 2).astype(_DTYPES[BIG, 'i4']).tobytes()
