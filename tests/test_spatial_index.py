import numpy
import pytest

from shapetree.core import spatial_index
from shapetree.core.geometry import Geometry, ShapeType
from shapetree.core.shapefile import ShapeFile
from shapetree.core.spatial_index import ShapeTree
from shapetree.envelope import Box
from shapetree.errors import InvalidArgumentError


def _point(shape_id, x, y, z=0.0):
    geometry = Geometry.create_simple(ShapeType.POINTZ, [x], [y], [z])
    geometry.shape_id = shape_id
    return geometry


def _box_geometry(shape_id, mins, maxs):
    geometry = Geometry.create(ShapeType.ARC, x=[mins[0], maxs[0]],
                               y=[mins[1], maxs[1]])
    geometry.shape_id = shape_id
    return geometry


@pytest.fixture
def tree(random_points):
    base, _ = random_points
    with ShapeFile.open(base) as shp:
        return ShapeTree.create(shp, max_depth=3)


def test_random_points_scenario(tree):
    assert len(tree) == 100
    tree.trim_extra_nodes()
    found = tree.find_likely_shapes([0, 0], [100, 100])
    assert found == list(range(100))


def test_node_boxes_contain_their_shapes(tree, random_points):
    _, coords = random_points
    for _, idx in tree.walk():
        bounds = tree.node_bounds(idx)
        for shape_id in tree.shape_ids(idx):
            x, y = coords[shape_id]
            assert bounds.mins[0] <= x <= bounds.maxs[0]
            assert bounds.mins[1] <= y <= bounds.maxs[1]


def test_search_is_complete(tree, random_points):
    _, coords = random_points
    rng = numpy.random.RandomState(0)
    for _ in range(20):
        corner = rng.uniform(0, 90, size=2)
        qmin, qmax = corner, corner + rng.uniform(0, 30, size=2)
        found = set(tree.find_likely_shapes(qmin, qmax))
        inside = ((coords >= qmin) & (coords <= qmax)).all(axis=1)
        assert set(numpy.flatnonzero(inside).tolist()) <= found


def test_depth_is_respected(tree):
    assert max(depth for depth, _ in tree.walk()) <= 2


def test_find_returns_sorted_ints(tree):
    found = tree.find_likely_shapes([0, 0], [50, 50])
    assert found == sorted(found)
    assert all(type(idx) is int for idx in found)


def test_trim_keeps_root():
    tree = ShapeTree.create(bounds_min=[0, 0], bounds_max=[10, 10],
                            max_depth=4)
    tree.add_shape_id(_point(0, 1, 1))
    tree.add_shape_id(_point(1, 9, 9))
    before = tree.node_count
    tree.trim_extra_nodes()
    assert tree.node_count < before
    for _, idx in tree.walk():
        if idx != tree.root:
            assert tree.shape_ids(idx) or tree.children(idx)
    assert tree.find_likely_shapes([0, 0], [10, 10]) == [0, 1]

    empty = ShapeTree.create(bounds_min=[0, 0], bounds_max=[1, 1])
    empty.trim_extra_nodes()
    assert empty.node_count == 1


def test_shape_fitting_no_existing_subnode_stays_at_parent():
    tree = ShapeTree.create(bounds_min=[0, 0], bounds_max=[10, 10],
                            max_depth=3)
    tree.add_shape_id(_point(0, 1, 1))
    tree.trim_extra_nodes()
    tree.add_shape_id(_point(1, 9, 9))
    assert tree.shape_ids(tree.root) == [1]
    assert tree.find_likely_shapes([8, 8], [10, 10]) == [1]


def test_freed_nodes_are_reused():
    tree = ShapeTree.create(bounds_min=[0, 0], bounds_max=[10, 10],
                            max_depth=2)
    tree.add_shape_id(_point(0, 1, 1))
    tree.trim_extra_nodes()
    assert tree.node_count == 2
    size = len(tree._bounds)
    assert tree.insert_node(Box([0, 0], [1, 1])) < size
    assert len(tree._bounds) == size


def test_straddling_shape_stays_at_root():
    tree = ShapeTree.create(bounds_min=[0, 0], bounds_max=[10, 10],
                            max_depth=5)
    tree.add_shape_id(_box_geometry(7, [1, 1], [9, 9]))
    assert tree.shape_ids(tree.root) == [7]
    assert tree.children(tree.root) == []


def test_quadtree_and_binary_splits():
    quad = ShapeTree.create(bounds_min=[0, 0], bounds_max=[10, 10],
                            max_depth=2)
    quad.add_shape_id(_point(0, 1, 1))
    assert len(quad.children(quad.root)) == 4
    binary = ShapeTree.create(bounds_min=[0, 0], bounds_max=[10, 10],
                              max_depth=2, max_subnodes=2)
    binary.add_shape_id(_point(0, 1, 1))
    assert len(binary.children(binary.root)) == 2


def test_split_bounds_overlap():
    quarters = spatial_index.split_bounds(Box([0, 0], [10, 10]))
    assert len(quarters) == 4
    numpy.testing.assert_allclose(quarters[0].mins, [0, 0, 0, 0])
    numpy.testing.assert_allclose(quarters[0].maxs, [5.5, 5.5, 0, 0])
    assert quarters[-1].mins[0] == pytest.approx(4.5)


@pytest.mark.parametrize('count, depth', [
    (0, 0), (4, 0), (5, 1), (8, 1), (9, 2), (100, 5), (1000, 8),
])
def test_auto_depth(count, depth):
    assert spatial_index.auto_depth(count) == depth


def test_auto_depth_from_file(random_points):
    base, _ = random_points
    with ShapeFile.open(base) as shp:
        auto = ShapeTree.create(shp)
    assert auto.max_depth == 5
    assert len(auto) == 100


def test_overlap_and_containment():
    node = Box([0, 0, 0, 0], [10, 10, 10, 10])
    assert spatial_index.check_bounds_overlap(node, Box([10, 10], [12, 12]),
                                              2)
    assert not spatial_index.check_bounds_overlap(
        node, Box([11, 0], [12, 1]), 2)
    inside = Box([1, 1, 1, 1], [2, 2, 2, 2])
    assert spatial_index.check_object_contained(inside, 2, node)
    assert not spatial_index.check_object_contained(
        Box([-1, 1], [2, 2]), 2, node)


def test_z_containment_compares_maxima_backwards():
    node = Box([0, 0, 0], [10, 10, 10])
    assert not spatial_index.check_object_contained(
        Box([1, 1, 1], [2, 2, 2]), 3, node)
    assert spatial_index.check_object_contained(
        Box([1, 1, 1], [2, 2, 10]), 3, node)
    assert spatial_index.check_object_contained(
        Box([1, 1, 1], [2, 2, 12]), 3, node)


def test_three_dimensional_tree_keeps_low_shapes_at_root():
    tree = ShapeTree.create(bounds_min=[0, 0, 0], bounds_max=[10, 10, 10],
                            dimension=3, max_depth=3)
    tree.add_shape_id(_point(0, 1, 1, 5))
    assert tree.shape_ids(tree.root) == [0]
    assert tree.find_likely_shapes([0, 0, 0], [2, 2, 6]) == [0]
    assert tree.find_likely_shapes([0, 0, 11], [2, 2, 12]) == []


def test_invalid_arguments():
    with pytest.raises(InvalidArgumentError):
        ShapeTree.create()
    with pytest.raises(InvalidArgumentError):
        ShapeTree.create(bounds_min=[0, 0], bounds_max=[1, 1], dimension=5)
    with pytest.raises(InvalidArgumentError):
        ShapeTree.create(bounds_min=[0, 0], bounds_max=[1, 1],
                         max_subnodes=3)


def test_shapes_at_a_node_fit_no_child(random_points):
    base, _ = random_points
    with ShapeFile.open(base) as shp:
        tree = ShapeTree.create(shp, max_depth=5)
        shapes = list(shp)
    # Boxes straddling the root's split lines stay above the leaves.
    for shape_id, (mins, maxs) in enumerate(
            [([40, 40], [60, 60]), ([10, 45], [20, 55]), ([1, 1], [30, 3])],
            start=len(shapes)):
        box = _box_geometry(shape_id, mins, maxs)
        tree.add_shape_id(box)
        shapes.append(box)
    tree.trim_extra_nodes()

    for _, idx in tree.walk():
        for shape_id in tree.shape_ids(idx):
            bounds = shapes[shape_id].bounds
            for child in tree.children(idx):
                assert not spatial_index.check_object_contained(
                    bounds, tree.dimension, tree.node_bounds(child))
    assert 100 in tree.shape_ids(tree.root)


def test_query_needs_every_dimension(base):
    with ShapeFile.create(base, ShapeType.POINTZ) as shp:
        for z in (5, 9):
            shp.write_object(-1, Geometry.create_simple(ShapeType.POINTZ,
                                                        [1], [1], [z]))
        tree = ShapeTree.create(shp, dimension=3)
    with pytest.raises(InvalidArgumentError):
        tree.find_likely_shapes([0, 0], [10, 10])
    with pytest.raises(InvalidArgumentError):
        tree.find_likely_shapes([0, 0, 0], [10, 10])
    assert tree.find_likely_shapes([0, 0, 0], [10, 10, 10]) == [0, 1]
