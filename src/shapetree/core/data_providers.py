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
"""
A shapefile paired with the quadtree indexing it.

The tree only knows shape ids and node boxes, so its answers are candidates.
:class:`IndexedShapes` reads the candidates back from the file and keeps the
ones whose own box overlaps the query.
"""
from shapetree.core.spatial_index import MAX_SUBNODES, ShapeTree
from shapetree.envelope import Box


class IndexedShapes():
    """
    Spatially indexed shapes of an open shapefile.

    Attributes
    ----------
    shapefile: ShapeFile
        The open file holding the shapes.
    tree: ShapeTree or None
        A spatial index over the ids of `shapefile`, None until
        :meth:`create_index` is called.
    """
    __slots__ = ('shapefile', 'tree')

    def __init__(self, shapefile, tree=None):
        self.shapefile = shapefile
        self.tree = tree

    def __repr__(self):
        return "<{} object at 0x{:x}>".format(self.__class__.__name__,
                                              id(self))

    def __len__(self):
        return len(self.shapefile)

    def __getitem__(self, shape_id):
        return self.shapefile.read_object(shape_id)

    def create_index(self, dimension=2, max_depth=0,
                     max_subnodes=MAX_SUBNODES):
        """Build the tree over every shape of the file, replacing any other.

        Parameters
        ----------
        dimension: int
            Number of dimensions compared, 2, 3 or 4.
        max_depth: int
            Depth of the tree, 0 to pick one from the number of shapes.

        Returns
        -------
        ShapeTree
            The new index.
        """
        self.tree = ShapeTree.create(self.shapefile, dimension, max_depth,
                                     max_subnodes=max_subnodes)
        return self.tree

    def candidates(self, bounds_min, bounds_max):
        """Ids the index returns for the area, without refinement."""
        if self.tree is None:
            self.create_index()
        return self.tree.find_likely_shapes(bounds_min, bounds_max)

    def search(self, bounds_min, bounds_max):
        """Yields the shapes overlapping the given area.

        Parameters
        ----------
        bounds_min, bounds_max: sequence of float
            Corners of the area of interest, X and Y first.

        Yields
        ------
        (int, Geometry)
            Id and geometry of each shape whose box overlaps the area, in
            increasing id order.

        Raises
        ------
        InvalidArgumentError
            If the corners have fewer coordinates than the index has
            dimensions.
        """
        candidates = self.candidates(bounds_min, bounds_max)
        query = Box(bounds_min, bounds_max)
        dimension = self.tree.dimension
        geometries = map(self.__getitem__, candidates)
        for geometry in geometries:
            if geometry.bounds.intersects(query, dimension):
                yield geometry.shape_id, geometry

    def search_ids(self, bounds_min, bounds_max):
        """Ids of the shapes overlapping the given area."""
        return [idx for idx, _ in self.search(bounds_min, bounds_max)]
