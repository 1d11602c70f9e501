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
Quadtree index of the shapes of a shapefile.

The base data structure is the class :class:`ShapeTree`. Shapes are pushed
down to the deepest node whose box fully contains them; searches return the
ids stored in every node whose box overlaps the area of interest.
'''
import logging

import toolz

from shapetree.envelope import Box
from shapetree.errors import InvalidArgumentError

logger = logging.getLogger(__name__)

# If this is 0.5, nodes are split in half. At 0.55 each subnode covers 55% of
# its parent and siblings overlap by 10%, which keeps small shapes lying on a
# boundary from being stored too high up the tree.
SPLIT_RATIO = 0.55
# 4 for a quadtree, 2 for a binary tree.
MAX_SUBNODES = 4


# ===========================  Box predicates  ================================

def check_bounds_overlap(box1, box2, dimension):
    """Do the two boxes overlap at all on their first `dimension` axes?"""
    return box1.intersects(box2, dimension)


def check_object_contained(bounds, dimension, node_bounds):
    """
    Does a shape with extents `bounds` fit within `node_bounds`?

    Note:
        The Z and M checks compare the shape maximum with `<`, so a shape
        only fits when its maximum reaches the node maximum. X and Y use
        `>`. The legacy index behaves this way and trees built by it are
        expected to have the same shape, so it is kept as is.
    """
    mins, maxs = bounds.mins, bounds.maxs
    nmins, nmaxs = node_bounds.mins, node_bounds.maxs
    if mins[0] < nmins[0] or maxs[0] > nmaxs[0]:
        return False
    if mins[1] < nmins[1] or maxs[1] > nmaxs[1]:
        return False
    if dimension == 2:
        return True
    if mins[2] < nmins[2] or maxs[2] < nmaxs[2]:
        return False
    if dimension == 3:
        return True
    if mins[3] < nmins[3] or maxs[3] < nmaxs[3]:
        return False
    return True


def split_bounds(bounds, max_subnodes=MAX_SUBNODES, ratio=SPLIT_RATIO):
    """
    Boxes of the subnodes of a node.

    The box is split along its longer side, then for a quadtree each half is
    split again.
    """
    halves = bounds.split(ratio)
    if max_subnodes == 2:
        return list(halves)
    return [quarter for half in halves for quarter in half.split(ratio)]


# =========================  ShapeTree Data Structure  ========================

# Nodes are stored in parallel 1d-buffers indexed by non-negative integers:
#   1. The root node has index 0 and is never removed.
#   1. `_bounds[i]` is the box covered by node i.
#   1. `_shape_ids[i]` lists the shapes stored at node i itself, those that
#      did not fit in any of its subnodes.
#   1. `_children[i]` lists the indexes of the subnodes of node i.
#   1. Indexes of removed nodes are recycled through `_free`.

class ShapeTree():
    """
    Quadtree over shape bounding boxes.

    Args:
        bounds (Box): area covered by the root node.
        dimension (int): number of dimensions (X, Y, then Z, then M) used to
            compare boxes, 2, 3 or 4.
        max_depth (int): maximum depth of the tree. Shapes are stored at the
            root only when it is 0 or 1.
        max_subnodes (int): 4 for a quadtree, 2 for a binary tree.
    """

    def __init__(self, bounds, dimension=2, max_depth=0,
                 max_subnodes=MAX_SUBNODES):
        if dimension not in (2, 3, 4):
            raise InvalidArgumentError(
                "Dimension must be 2, 3 or 4, not {}".format(dimension))
        if max_subnodes not in (2, 4):
            raise InvalidArgumentError(
                "Nodes have 2 or 4 subnodes, not {}".format(max_subnodes))
        self.dimension = dimension
        self.max_depth = max_depth
        self.max_subnodes = max_subnodes
        self._clear()
        self.insert_node(bounds)

    @classmethod
    def create(cls, shapefile=None, dimension=2, max_depth=0,
               bounds_min=None, bounds_max=None, max_subnodes=MAX_SUBNODES):
        """
        Build a tree, filled with every shape of `shapefile` if given.

        Args:
            shapefile (ShapeFile, optional): shapes to index.
            dimension (int): 2, 3 or 4.
            max_depth (int): if 0 and a shapefile is given, a depth giving
                around 8 shapes per node is chosen.
            bounds_min, bounds_max (sequence of float, optional): area of
                the root node. Default to the extents of the shapefile.

        Raises:
            InvalidArgumentError: if there is neither a shapefile nor
                bounds.
        """
        if shapefile is None and bounds_min is None:
            raise InvalidArgumentError(
                "Either a shapefile or root bounds are needed")
        if max_depth == 0 and shapefile is not None:
            max_depth = auto_depth(shapefile.n_records)
        if bounds_min is None:
            bounds = shapefile.bounds.copy()
        else:
            bounds = Box(bounds_min, bounds_max)

        tree = cls(bounds, dimension, max_depth, max_subnodes)
        if shapefile is not None:
            for geometry in shapefile.iter_objects():
                tree.add_shape_id(geometry)
            logger.debug("Indexed %d shapes in %d nodes (max depth %d)",
                         shapefile.n_records, tree.node_count, max_depth)
        return tree

    def _clear(self):
        self._bounds = []
        self._shape_ids = []
        self._children = []
        self._free = []

    @property
    def node_count(self):
        return len(self._bounds) - len(self._free)

    @property
    def root(self):
        return 0

    def node_bounds(self, idx=0):
        return self._bounds[idx]

    def shape_ids(self, idx=0):
        """Shapes stored at node `idx` itself."""
        return list(self._shape_ids[idx])

    def children(self, idx=0):
        return list(self._children[idx])

    def walk(self, idx=0, depth=0):
        """Yields (depth, node index) pairs, depth first."""
        yield depth, idx
        for child in self._children[idx]:
            yield from self.walk(child, depth + 1)

    def __len__(self):
        """Number of shape ids stored in the tree."""
        return sum(len(self._shape_ids[idx]) for _, idx in self.walk())

    def insert_node(self, bounds):
        if self._free:
            idx = self._free.pop()
            self._bounds[idx] = bounds
            self._shape_ids[idx] = []
            self._children[idx] = []
            return idx
        self._bounds.append(bounds)
        self._shape_ids.append([])
        self._children.append([])
        return len(self._bounds) - 1

    def remove_node(self, idx):
        """Release node `idx` and its whole subtree for reuse."""
        for child in self._children[idx]:
            self.remove_node(child)
        self._bounds[idx] = None
        self._shape_ids[idx] = []
        self._children[idx] = []
        self._free.append(idx)

    # =============================  Insertion  ===============================

    def add_shape_id(self, geometry):
        """
        Insert the id of `geometry` at the deepest node containing it.

        The geometry itself is not kept, only its id and its bounds are used.
        """
        return self._node_add_shape_id(self.root, geometry.bounds,
                                       geometry.shape_id, self.max_depth)

    def _node_add_shape_id(self, idx, bounds, shape_id, max_depth):
        children = self._children[idx]

        # If there are subnodes, then consider whether the shape fits in
        # one of them.
        if max_depth > 1 and children:
            for child in children:
                if check_object_contained(bounds, self.dimension,
                                          self._bounds[child]):
                    return self._node_add_shape_id(child, bounds, shape_id,
                                                   max_depth - 1)

        # Otherwise, consider creating subnodes if it could fit into one
        # of them, then add it again to this node now that it has subnodes.
        elif max_depth > 1:
            subnodes = split_bounds(self._bounds[idx], self.max_subnodes)
            if any(check_object_contained(bounds, self.dimension, sub)
                   for sub in subnodes):
                children.extend(self.insert_node(sub) for sub in subnodes)
                return self._node_add_shape_id(idx, bounds, shape_id,
                                               max_depth)

        self._shape_ids[idx].append(shape_id)
        return True

    # ==============================  Search  =================================

    def collect_shape_ids(self, bounds, idx=0):
        """Yields the shape ids of every node overlapping `bounds`."""
        if not check_bounds_overlap(self._bounds[idx], bounds,
                                    self.dimension):
            return
        yield from self._shape_ids[idx]
        yield from toolz.concat(self.collect_shape_ids(bounds, child)
                                for child in self._children[idx])

    def find_likely_shapes(self, bounds_min, bounds_max):
        """
        Ids of the shapes which may overlap the given area.

        These are all the shapes stored in tree nodes whose box overlaps the
        area. Some may not overlap it themselves: callers must check the
        shapes again.

        Returns:
            list of int: sorted shape ids.

        Raises:
            InvalidArgumentError: if the corners have fewer coordinates than
                the tree has dimensions.
        """
        for corner in (bounds_min, bounds_max):
            if len(corner) < self.dimension:
                raise InvalidArgumentError(
                    "A {}d tree needs {} coordinates per corner, got {}"
                    .format(self.dimension, self.dimension, len(corner)))
        query = Box(bounds_min, bounds_max)
        return sorted(self.collect_shape_ids(query))

    # ==============================  Trimming  ===============================

    def _node_trim(self, idx):
        children = self._children[idx]
        for child in list(children):
            if self._node_trim(child):
                children.remove(child)
                self.remove_node(child)
        return not children and not self._shape_ids[idx]

    def trim_extra_nodes(self):
        """Remove the nodes without shapes or subnodes. The root is kept."""
        before = self.node_count
        self._node_trim(self.root)
        logger.debug("Trimmed %d empty nodes", before - self.node_count)


def auto_depth(shape_count):
    """A depth giving approximately 8 shapes per node."""
    max_depth = 0
    max_node_count = 1
    while max_node_count * 4 < shape_count:
        max_depth += 1
        max_node_count *= 2
    return max_depth
