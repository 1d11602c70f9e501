"""
Axis-aligned bounding boxes in X, Y, Z and M.

Every box carries the four dimensions, missing ones being padded with 0.
Comparisons take the number of leading dimensions to look at, so the same box
serves 2d, 3d and 4d indexes.
"""
import numpy

NDIMS = 4


def _as_bounds(values):
    arr = numpy.zeros(NDIMS, dtype=numpy.float64)
    if values is not None:
        values = numpy.asarray(values, dtype=numpy.float64).ravel()
        if len(values) > NDIMS:
            raise ValueError(
                "Bounds have at most {} dimensions, got {}"
                .format(NDIMS, len(values))
            )
        arr[:len(values)] = values
    return arr


class Box:
    """
    Minimum and maximum corner of an axis-aligned box.

    Args:
        mins: up to 4 minimum coordinates (X, Y, Z, M).
        maxs: up to 4 maximum coordinates.

    Attributes:
        mins (1d-float-array): minimum corner, always of length 4.
        maxs (1d-float-array): maximum corner, always of length 4.
    """
    __slots__ = ('mins', 'maxs')

    def __init__(self, mins=None, maxs=None):
        self.mins = _as_bounds(mins)
        self.maxs = _as_bounds(maxs)

    @classmethod
    def from_coords(cls, x, y, z=None, m=None):
        """Smallest box holding the given vertices."""
        if len(x) == 0:
            return cls()
        coords = [x, y,
                  z if z is not None else numpy.zeros(len(x)),
                  m if m is not None else numpy.zeros(len(x))]
        arr = numpy.array(coords, dtype=numpy.float64)
        return cls(arr.min(axis=1), arr.max(axis=1))

    @classmethod
    def merge(cls, collection):
        """Smallest box holding every box of `collection`."""
        boxes = list(collection)
        if not boxes:
            return cls()
        return cls(numpy.min([b.mins for b in boxes], axis=0),
                   numpy.max([b.maxs for b in boxes], axis=0))

    def copy(self):
        return self.__class__(self.mins, self.maxs)

    def __eq__(self, other):
        if not isinstance(other, Box):
            return NotImplemented
        return (numpy.array_equal(self.mins, other.mins)
                and numpy.array_equal(self.maxs, other.maxs))

    def __repr__(self):
        return "Box(mins={}, maxs={})".format(
            tuple(self.mins.tolist()), tuple(self.maxs.tolist()))

    @property
    def is_empty(self):
        """True for the all-zero box of a file nothing was written to."""
        return not (self.mins[:2].any() or self.maxs[:2].any())

    def intersects(self, other, ndims=2):
        """
        Do `self` and `other` overlap on their first `ndims` axes?

        Touching boxes overlap: they are only disjoint when one maximum is
        strictly below the other minimum.
        """
        return not (
            (other.maxs[:ndims] < self.mins[:ndims]).any()
            or (self.maxs[:ndims] < other.mins[:ndims]).any()
        )

    def split(self, ratio):
        """
        Cut the box in two along its longer extent of X and Y.

        Each half keeps `ratio` of that extent, so ratios above 0.5 make the
        halves overlap by `2 * ratio - 1` of the parent.
        """
        first, second = self.copy(), self.copy()
        axis = 0 if (self.maxs[0] - self.mins[0]) > (self.maxs[1]
                                                      - self.mins[1]) else 1
        extent = self.maxs[axis] - self.mins[axis]
        first.maxs[axis] = self.mins[axis] + extent * ratio
        second.mins[axis] = self.maxs[axis] - extent * ratio
        return first, second
