"""
Reading, writing and spatially indexing ESRI shapefiles.

A shapefile is a pair of files: the `.shp` holds the geometry records and the
`.shx` the offset and length of each record. :class:`ShapeFile` reads and
updates such pairs in place, with numpy arrays for vertices and the record
table.

Shapes are indexed by a quadtree over their bounding boxes,
:class:`ShapeTree`, whose nodes are kept in flat arrays rather than linked
objects. :class:`IndexedShapes` pairs a file with its tree to answer area
queries.
"""
import logging

from .envelope import Box  # noqa: F401
from .errors import (ShapefileError, CorruptHeaderError,  # noqa: F401
                     CorruptRecordError, ShapefileIOError,
                     InvalidArgumentError)
from .core.geometry import (Geometry, ShapeType, PartType,  # noqa: F401
                            type_name, part_type_name)
from .core.shapefile import ShapeFile  # noqa: F401
from .core.spatial_index import ShapeTree  # noqa: F401
from .core.data_providers import IndexedShapes  # noqa: F401

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
