import numpy
import pytest

from shapetree.core.geometry import Geometry, ShapeType
from shapetree.core.shapefile import ShapeFile


@pytest.fixture
def base(tmp_path):
    return str(tmp_path / "shapes")


@pytest.fixture
def point_file(base):
    """A point shapefile holding (1, 2), (3, 4) and (-5, 6)."""
    with ShapeFile.create(base, ShapeType.POINT) as shp:
        for x, y in [(1, 2), (3, 4), (-5, 6)]:
            shp.write_object(-1, Geometry.create_simple(ShapeType.POINT,
                                                        [x], [y]))
    return base


@pytest.fixture
def random_points(base):
    """100 points with coordinates in [0, 100), written to a shapefile."""
    rng = numpy.random.RandomState(42)
    coords = rng.uniform(0, 100, size=(100, 2))
    with ShapeFile.create(base, ShapeType.POINT) as shp:
        for x, y in coords:
            shp.write_object(-1, Geometry.create_simple(ShapeType.POINT,
                                                        [x], [y]))
    return base, coords
