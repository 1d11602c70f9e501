"""
Exceptions raised while reading, writing and indexing shapefiles.
"""


class ShapefileError(Exception):
    """Base class of every error raised by shapetree."""


class CorruptHeaderError(ShapefileError):
    """The 100-byte header or the index table cannot be trusted."""


class CorruptRecordError(ShapefileError):
    """A shape record is shorter than its layout or of an unknown type."""


class ShapefileIOError(ShapefileError, OSError):
    """Opening, seeking, reading or writing the underlying files failed."""


class InvalidArgumentError(ShapefileError, ValueError):
    """Rejected request. Raised before any file or index is modified."""
