'''
Union-find over integer elements
'''

import numpy as np

from .util import ShapeError


class DisjointSets(object):
    """
    A partition of `range(size)` into disjoint sets.

    Each set is identified by a representative element. `find` uses
    path compression; `union` takes two representatives and makes the
    first one the representative of the merged set.

    Parameters
    ----------
    size: int
        number of elements
    """
    def __init__(self, size):
        self._trees = np.arange(size, dtype=np.intp)

    def __len__(self):
        return len(self._trees)

    def find(self, elem):
        "representative of the set holding `elem`"
        trees = self._trees
        root = elem
        while trees[root] != root:
            root = trees[root]
        # compress the path we just walked
        while elem != root:
            parent = trees[elem]
            trees[elem] = root
            elem = parent
        return int(root)

    def union(self, set1, set2):
        """
        Merge the set represented by `set2` into the one represented
        by `set1` (both must be representatives)
        """
        self._trees[set2] = set1

    def union_elements(self, elem1, elem2):
        """
        Merge the sets holding the two elements, if they differ.
        Return the representative of the result
        """
        set1 = self.find(elem1)
        set2 = self.find(elem2)
        if set1 != set2:
            self.union(set1, set2)
        return set1

    def same_set(self, elem1, elem2):
        "True if both elements belong to the same set"
        return self.find(elem1) == self.find(elem2)

    def clear(self):
        "back to singletons"
        self._trees[:] = np.arange(len(self._trees))

    def copy(self):
        "independent copy of this partition"
        res = DisjointSets(0)
        res._trees = self._trees.copy()  # pylint: disable=protected-access
        return res

    def set_equal_to(self, other):
        "overwrite this partition with another one of the same size"
        if len(other) != len(self):
            oops = ("cannot copy a partition over {} elements into one "
                    "over {} elements")
            raise ShapeError(oops.format(len(other), len(self)))
        self._trees[:] = other._trees  # pylint: disable=protected-access

    def groups(self):
        """
        List of sets, each a sorted list of elements, ordered by
        smallest element
        """
        groups = {}
        for elem in range(len(self)):
            groups.setdefault(self.find(elem), []).append(elem)
        return sorted(groups.values())
