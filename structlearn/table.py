"""
Examples: feature encoded inputs and the label structures predicted
for them

Inputs are immutable and hold their features as sparse matrices of
integer feature codes. Outputs are mutable and are always obtained
from the `create_output` method of the input they describe, so that
their shapes agree.
"""

from collections import namedtuple

import numpy as np
import scipy.sparse

from .disjoint import DisjointSets
from .util import ShapeError

# pylint: disable=too-few-public-methods

# pylint: disable=pointless-string-statement
NON_ANNOTATED = -1
"distinguished label/head value for parts of a reference we do not know"
# pylint: enable=pointless-string-statement


def codes_to_matrix(rows, num_columns):
    """
    Build a CSR matrix with one row per list of feature codes
    (repeated codes add up)

    Parameters
    ----------
    rows: [[int]]
    num_columns: int
        vocabulary size; every code must be below it

    Returns
    -------
    matrix: scipy.sparse.csr_matrix(float)
    """
    indptr = [0]
    indices = []
    for codes in rows:
        for code in codes:
            if code < 0 or code >= num_columns:
                oops = "feature code {} out of range [0, {})"
                raise ShapeError(oops.format(code, num_columns))
            indices.append(code)
        indptr.append(len(indices))
    data = np.ones(len(indices))
    indices = np.array(indices, dtype=np.int32)
    indptr = np.array(indptr, dtype=np.int32)
    matrix = scipy.sparse.csr_matrix((data, indices, indptr),
                                     shape=(len(rows), num_columns))
    matrix.sum_duplicates()
    return matrix


def check_same_size(first, second, what="structures"):
    """
    Raise a `ShapeError` if the two objects do not have the same
    `size`
    """
    if first.size != second.size:
        oops = "{} have different sizes ({} vs {})"
        raise ShapeError(oops.format(what, first.size, second.size))


def row_features(matrix, row):
    """
    (codes, values) of the nonzero features of a row of a CSR matrix
    """
    start, end = matrix.indptr[row], matrix.indptr[row + 1]
    return matrix.indices[start:end], matrix.data[start:end]


# ---------------------------------------------------------------------
# sequences
# ---------------------------------------------------------------------


class SequenceInput(namedtuple('SequenceInput', 'features name')):
    """
    A sequence of tokens to label

    Parameters
    ----------
    features: scipy.sparse.csr_matrix
        token by symbol (feature code) matrix
    name: string or None
        identifier for debugging and reports
    """
    @classmethod
    def from_codes(cls, tokens, num_symbols, name=None):
        "build an input from a list of feature codes per token"
        return cls(features=codes_to_matrix(tokens, num_symbols),
                   name=name)

    @property
    def size(self):
        "number of tokens"
        return self.features.shape[0]

    @property
    def num_symbols(self):
        "size of the feature vocabulary"
        return self.features.shape[1]

    def create_output(self):
        "blank labelling for this sequence"
        return SequenceOutput(np.full(self.size, NON_ANNOTATED,
                                      dtype=np.intp))


class SequenceOutput(object):
    """
    One label code per token

    Parameters
    ----------
    labels: array(int)
    """
    def __init__(self, labels):
        self.labels = np.asarray(labels, dtype=np.intp)

    @property
    def size(self):
        "number of tokens"
        return len(self.labels)

    def is_annotated(self, token, sentinel=NON_ANNOTATED):
        "True if the token carries a known label"
        return self.labels[token] != sentinel

    def copy(self):
        "independent copy"
        return SequenceOutput(self.labels.copy())

    def __eq__(self, other):
        return (isinstance(other, SequenceOutput) and
                np.array_equal(self.labels, other.labels))

    def __ne__(self, other):
        return not self == other

    def __repr__(self):
        return 'SequenceOutput({})'.format(self.labels.tolist())


# ---------------------------------------------------------------------
# graphs
# ---------------------------------------------------------------------


class GraphInput(namedtuple('GraphInput',
                            'num_nodes features edges name')):
    """
    A set of nodes with candidate directed edges between them
    (dependency parsing)

    Parameters
    ----------
    num_nodes: int
        number of nodes, including the root
    features: scipy.sparse.csr_matrix
        one row per ordered pair, `head * num_nodes + dependent`
    edges: 2D array(bool)
        `edges[head, dependent]` is True if the edge exists
    name: string or None
    """
    @classmethod
    def from_edge_codes(cls, num_nodes, edge_codes, num_features,
                        name=None):
        """
        Build an input from a dictionary from (head, dependent) pairs
        to the list of feature codes of that edge; pairs missing from
        the dictionary are absent edges
        """
        rows = [[] for _ in range(num_nodes * num_nodes)]
        edges = np.zeros((num_nodes, num_nodes), dtype=bool)
        for (head, dep), codes in edge_codes.items():
            rows[head * num_nodes + dep] = codes
            edges[head, dep] = True
        return cls(num_nodes=num_nodes,
                   features=codes_to_matrix(rows, num_features),
                   edges=edges,
                   name=name)

    @property
    def size(self):
        "number of nodes"
        return self.num_nodes

    def edge_row(self, head, dep):
        "row of the feature matrix for the given edge"
        return head * self.num_nodes + dep

    def edge_features(self, head, dep):
        "(codes, values) of the features of the given edge"
        return row_features(self.features, self.edge_row(head, dep))

    def create_output(self):
        "blank tree for this graph"
        return BranchingOutput(np.full(self.num_nodes, NON_ANNOTATED,
                                       dtype=np.intp))


class CorefInput(GraphInput):
    """
    A graph over mentions (and an artificial root mention) whose
    outputs are clusterings
    """
    def create_output(self):
        return CorefOutput(np.full(self.num_nodes, NON_ANNOTATED,
                                   dtype=np.intp))


class BranchingOutput(object):
    """
    A tree (or forest) over the nodes of a graph

    Parameters
    ----------
    heads: array(int)
        `heads[node]` is the parent of node, or `NON_ANNOTATED` for
        roots and unknown heads
    """
    def __init__(self, heads):
        self.heads = np.asarray(heads, dtype=np.intp)

    @property
    def size(self):
        "number of nodes"
        return len(self.heads)

    def is_annotated(self, node, sentinel=NON_ANNOTATED):
        "True if the node has a known head"
        return self.heads[node] != sentinel

    def copy(self):
        "independent copy"
        return BranchingOutput(self.heads.copy())

    def __eq__(self, other):
        return (isinstance(other, BranchingOutput) and
                np.array_equal(self.heads, other.heads))

    def __ne__(self, other):
        return not self == other

    def __repr__(self):
        return '{}({})'.format(type(self).__name__, self.heads.tolist())


class CorefOutput(BranchingOutput):
    """
    A tree over mentions along with the clustering it induces

    Parameters
    ----------
    heads: array(int)
    clustering: DisjointSets, optional
        defaults to singletons
    """
    def __init__(self, heads, clustering=None):
        super().__init__(heads)
        if clustering is None:
            clustering = DisjointSets(len(self.heads))
        elif len(clustering) != len(self.heads):
            oops = "clustering over {} mentions for a tree over {} nodes"
            raise ShapeError(oops.format(len(clustering), len(self.heads)))
        self.clustering = clustering

    @classmethod
    def from_clusters(cls, size, clusters):
        """
        Reference clustering over `size` mentions (heads unknown);
        mentions not listed in any cluster stay singletons
        """
        res = cls(np.full(size, NON_ANNOTATED, dtype=np.intp))
        for cluster in clusters:
            for mention in cluster[1:]:
                res.clustering.union_elements(cluster[0], mention)
        return res

    def compute_clustering_from_tree(self, root):
        """
        Reset the clustering to the weakly connected components of the
        tree, ignoring edges to or from the artificial root
        """
        self.clustering.clear()
        for child, head in enumerate(self.heads):
            if head < 0 or head == root or child == root:
                continue
            self.clustering.union_elements(head, child)

    def cluster_of(self, mention):
        "representative of the cluster of a mention"
        return self.clustering.find(mention)

    def same_cluster(self, mention1, mention2):
        "True if both mentions belong to the same cluster"
        return self.clustering.same_set(mention1, mention2)

    def copy(self):
        return CorefOutput(self.heads.copy(), self.clustering.copy())

    def __eq__(self, other):
        return (isinstance(other, CorefOutput) and
                np.array_equal(self.heads, other.heads) and
                self.clustering.groups() == other.clustering.groups())


# ---------------------------------------------------------------------
# ranking
# ---------------------------------------------------------------------


class RankInput(namedtuple('RankInput', 'features name')):
    """
    A list of items to rank

    Parameters
    ----------
    features: scipy.sparse.csr_matrix
        item by feature matrix
    name: string or None
    """
    @classmethod
    def from_codes(cls, items, num_features, name=None):
        "build an input from a list of feature codes per item"
        return cls(features=codes_to_matrix(items, num_features),
                   name=name)

    @property
    def size(self):
        "number of items"
        return self.features.shape[0]

    def create_output(self):
        "identity ranking with no relevant item"
        return RankOutput(np.arange(self.size, dtype=np.intp))


class RankOutput(object):
    """
    An ordering of items, along with the set of items which are
    relevant (the latter is only meaningful for references)

    Parameters
    ----------
    order: array(int)
        item indices, best first
    relevant: iterable(int), optional
    """
    def __init__(self, order, relevant=()):
        self.order = np.asarray(order, dtype=np.intp)
        self.relevant = frozenset(relevant)

    @property
    def size(self):
        "number of items"
        return len(self.order)

    def is_relevant(self, item):
        "True if the item is relevant"
        return item in self.relevant

    def average_precision(self):
        """
        Average precision of `order` with respect to `relevant`
        (1 if nothing is relevant)
        """
        if not self.relevant:
            return 1.0
        hits = 0
        total = 0.0
        for rank, item in enumerate(self.order):
            if item in self.relevant:
                hits += 1
                total += hits / (rank + 1)
        return total / len(self.relevant)

    def copy(self):
        "independent copy"
        return RankOutput(self.order.copy(), self.relevant)

    def __eq__(self, other):
        return (isinstance(other, RankOutput) and
                np.array_equal(self.order, other.order) and
                self.relevant == other.relevant)

    def __ne__(self, other):
        return not self == other

    def __repr__(self):
        return 'RankOutput({}, relevant={})'.format(self.order.tolist(),
                                                    sorted(self.relevant))
