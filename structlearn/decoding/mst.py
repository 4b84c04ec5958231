"""
Maximum spanning branchings over dense graphs, and dependency parsing
inference built on them

The solver is Tarjan's version of the Chu-Liu-Edmonds algorithm, with
Camerini et al.'s reconstruction of the tree from the forest of
accepted edges. The graph being dense, each strongly connected
component keeps a plain array of its best incoming edge per source
node instead of a heap.
"""

import logging

import numpy as np

from .interface import Inference
from .util import DecoderException
from ..disjoint import DisjointSets
from ..table import NON_ANNOTATED, check_same_size

# pylint: disable=too-many-locals, too-many-instance-attributes


def _best_source(row):
    """
    Index of the largest non-NaN entry of a row (the first one on
    ties), or -1 if they are all NaN
    """
    filled = np.where(np.isnan(row), -np.inf, row)
    best = int(np.argmax(filled))
    return -1 if filled[best] == -np.inf else best


class MaximumBranching(object):
    """
    Workspace for maximum branching computations, reused from one
    graph to the next

    Parameters
    ----------
    max_nodes: int, optional
        initial capacity (grown as needed)
    check_unique_root: bool, optional
        warn when a branching does not have exactly one root
    only_positive_edges: bool, optional
        ignore edges of negative weight (the result may then be a
        forest)
    logger: logging.Logger, optional
    """
    def __init__(self, max_nodes=0, check_unique_root=True,
                 only_positive_edges=False, logger=None):
        self.check_unique_root = check_unique_root
        self.only_positive_edges = only_positive_edges
        self.logger = logger or logging.getLogger(__name__)
        self.max_nodes = 0
        self.realloc(max_nodes)

    def realloc(self, max_nodes):
        """
        Size the workspace for graphs of up to `max_nodes` nodes
        """
        self.max_nodes = max_nodes
        # candidate edges entering each component: [component, source]
        self._cand_weight = np.empty((max_nodes, max_nodes))
        self._cand_dest = np.empty((max_nodes, max_nodes), dtype=np.intp)
        self._sccs = DisjointSets(max_nodes)
        self._wccs = DisjointSets(max_nodes)

    def find(self, graph, heads=None,
             check_unique_root=None, only_positive_edges=None):
        """
        Maximum branching of a graph

        Parameters
        ----------
        graph: 2D array(float)
            `graph[src, dest]` is the weight of the edge from src to
            dest; NaN for missing edges
        heads: array(int), optional
            array to fill with the parent of each node (-1 for roots)
        check_unique_root: bool, optional
            overrides the workspace setting for this call
        only_positive_edges: bool, optional
            overrides the workspace setting for this call

        Returns
        -------
        weight: float
            total weight of the branching
        heads: array(int)
        """
        graph = np.asarray(graph, dtype=float)
        if graph.ndim != 2 or graph.shape[0] != graph.shape[1]:
            raise DecoderException("expected a square matrix of edge "
                                   "weights, got shape {}".format(graph.shape))
        if check_unique_root is None:
            check_unique_root = self.check_unique_root
        if only_positive_edges is None:
            only_positive_edges = self.only_positive_edges
        size = graph.shape[0]
        if heads is None:
            heads = np.empty(size, dtype=np.intp)
        elif len(heads) != size:
            raise DecoderException("{} heads for a graph of {} nodes"
                                   .format(len(heads), size))
        heads[:] = -1
        if size > self.max_nodes:
            self.realloc(size)

        forest = self._contract(graph, only_positive_edges)
        self._expand(forest, heads)

        children = np.flatnonzero(heads >= 0)
        weight = float(graph[heads[children], children].sum())
        if check_unique_root:
            num_roots = size - len(children)
            if num_roots != 1:
                self.logger.warning("branching over %d nodes has %d roots",
                                    size, num_roots)
        return weight, heads

    def _contract(self, graph, only_positive_edges):
        """
        First phase: greedily pick the best edge entering each root
        component, contracting cycles as they appear.

        Returns the forest of accepted edges: a `_Forest` whose
        `leaf[node]` is the first edge accepted into the node,
        `final_roots` the components left without an incoming edge,
        and `min_node[component]` the node a root component must be
        rooted at
        """
        size = graph.shape[0]
        all_nodes = np.arange(size)
        weights = self._cand_weight[:size, :size]
        dests = self._cand_dest[:size, :size]
        sccs = self._sccs
        wccs = self._wccs
        sccs.clear()
        wccs.clear()

        weights[:] = graph.T
        np.fill_diagonal(weights, np.nan)
        if only_positive_edges:
            weights[weights < 0] = np.nan
        dests[:] = all_nodes[:, np.newaxis]

        forest = _Forest(size)
        # (forest edge, weight) by which each component was entered
        enter = [None] * size
        # forest edges of the cycle each component was contracted from
        cycle = [[] for _ in range(size)]
        roots = list(range(size))

        while roots:
            scc = roots.pop()
            src = _best_source(weights[scc])
            if src < 0:
                forest.final_roots.append(scc)
                continue
            weight = weights[scc, src]
            dest = dests[scc, src]
            weights[scc, src] = np.nan
            src_scc = sccs.find(src)
            if src_scc == scc:
                roots.append(scc)
                continue

            edge = forest.add(src, dest)
            if cycle[scc]:
                forest.adopt(edge, cycle[scc])
            else:
                forest.leaf[dest] = edge

            src_wcc = wccs.find(src)
            dest_wcc = wccs.find(dest)
            if src_wcc != dest_wcc:
                wccs.union(src_wcc, dest_wcc)
                enter[scc] = (edge, weight)
                continue

            # the edge closes a cycle, going back to scc through the
            # edges by which the components on the way were entered
            members = [(scc, edge, weight)]
            cur = src_scc
            while cur != scc:
                cur_edge, cur_weight = enter[cur]
                members.append((cur, cur_edge, cur_weight))
                cur = sccs.find(forest.src[cur_edge])
            min_scc, _, min_weight = members[0]
            for member, _, member_weight in members[1:]:
                if member_weight < min_weight:
                    min_scc, min_weight = member, member_weight

            rows = [member for member, _, _ in members]
            for member, _, member_weight in members:
                weights[member] += min_weight - member_weight
            block = weights[rows]
            block = np.where(np.isnan(block), -np.inf, block)
            best = np.argmax(block, axis=0)
            merged = block[best, all_nodes]
            merged_dests = dests[rows][best, all_nodes]
            for member in rows[1:]:
                sccs.union(scc, member)
            weights[scc] = np.where(merged == -np.inf, np.nan, merged)
            dests[scc] = merged_dests
            inside = [node for node in range(size)
                      if sccs.find(node) == scc]
            weights[scc, inside] = np.nan

            cycle[scc] = [member_edge for _, member_edge, _ in members]
            forest.min_node[scc] = forest.min_node[min_scc]
            enter[scc] = None
            roots.append(scc)
        return forest

    @staticmethod
    def _expand(forest, heads):
        """
        Second phase: walk the forest from its roots, keeping each edge
        met and discarding the edges it supersedes (those entering the
        same node, higher up in the forest)
        """
        for scc in forest.final_roots:
            forest.remove_path(forest.leaf[forest.min_node[scc]])
        while forest.pending:
            edge = forest.pending.pop()
            if forest.removed[edge]:
                continue
            dest = forest.dest[edge]
            heads[dest] = forest.src[edge]
            forest.remove_path(forest.leaf[dest])


class _Forest(object):
    """
    Accepted edges, each forest node being an edge whose children are
    the cycle edges it broke into
    """
    def __init__(self, size):
        self.src = []
        self.dest = []
        self.parent = []
        self.children = []
        self.removed = []
        self.leaf = [None] * size
        self.min_node = list(range(size))
        self.final_roots = []
        self._pending = None

    def add(self, src, dest):
        "new edge, returns its index"
        self.src.append(int(src))
        self.dest.append(int(dest))
        self.parent.append(None)
        self.children.append([])
        self.removed.append(False)
        return len(self.src) - 1

    def adopt(self, edge, children):
        "make `edge` the parent of the given edges"
        for child in children:
            self.parent[child] = edge
        self.children[edge].extend(children)

    @property
    def pending(self):
        "edges to visit (roots of what is left of the forest)"
        if self._pending is None:
            self._pending = [edge for edge in range(len(self.src))
                             if self.parent[edge] is None]
        return self._pending

    def remove_path(self, edge):
        """
        Remove an edge and its ancestors; their other children become
        roots to visit
        """
        pending = self.pending
        while edge is not None and not self.removed[edge]:
            self.removed[edge] = True
            pending.extend(child for child in self.children[edge]
                           if not self.removed[child])
            edge = self.parent[edge]


# ---------------------------------------------------------------------
# dependency parsing
# ---------------------------------------------------------------------


class MaximumBranchingInference(Inference):
    """
    Dependency parsing as a maximum spanning tree rooted at node 0

    Parameters
    ----------
    branching: MaximumBranching, optional
        solver workspace
    sentinel: int, optional
        head of dependents whose head is unknown in partial references
    logger: logging.Logger, optional
    """
    root = 0

    def __init__(self, branching=None, sentinel=NON_ANNOTATED, logger=None):
        self.logger = logger or logging.getLogger(__name__)
        self.branching = branching or MaximumBranching(logger=self.logger)
        self.sentinel = sentinel

    def _graph(self, model, inputs):
        graph = model.edge_scores(inputs)
        graph[:, self.root] = np.nan
        np.fill_diagonal(graph, np.nan)
        return graph

    def _solve(self, graph, inputs, output, check_unique_root=None):
        if output is None:
            output = inputs.create_output()
        check_same_size(inputs, output, "input and output")
        self.branching.find(graph, output.heads,
                            check_unique_root=check_unique_root)
        return output

    def infer(self, model, inputs, output=None):
        return self._solve(self._graph(model, inputs), inputs, output)

    def partial_infer(self, model, inputs, partial, output=None):
        """
        Best tree agreeing with the known heads of `partial`. A known
        head whose edge does not exist is ignored with a warning
        """
        check_same_size(inputs, partial, "input and partial reference")
        graph = self._graph(model, inputs)
        for dep, head in enumerate(partial.heads):
            if dep == self.root or head == self.sentinel:
                continue
            if 0 <= head < inputs.num_nodes and not np.isnan(graph[head, dep]):
                kept = graph[head, dep]
                graph[:, dep] = np.nan
                graph[head, dep] = kept
            else:
                self.logger.warning("ignoring infeasible head %d for token "
                                    "%d of %s", head, dep, inputs.name)
        return self._solve(graph, inputs, output, check_unique_root=False)

    @staticmethod
    def _wrong_edges(reference, size):
        "head x dependent array, 1 for edges not in the reference"
        heads = np.arange(size)
        return (heads[:, np.newaxis] !=
                reference.heads[np.newaxis, :]).astype(float)

    def loss_augmented_infer(self, model, inputs, reference, loss_weight,
                             output=None):
        check_same_size(inputs, reference, "input and reference")
        graph = self._graph(model, inputs)
        graph += loss_weight * self._wrong_edges(reference, inputs.num_nodes)
        return self._solve(graph, inputs, output)

    def loss_augmented_infer_split(self, model, inputs, partial, reference,
                                   weight_annotated, weight_non_annotated,
                                   output=None):
        check_same_size(inputs, reference, "input and reference")
        check_same_size(inputs, partial, "input and partial reference")
        graph = self._graph(model, inputs)
        weights = np.where(partial.heads != self.sentinel,
                           weight_annotated, weight_non_annotated)
        graph += (weights[np.newaxis, :] *
                  self._wrong_edges(reference, inputs.num_nodes))
        return self._solve(graph, inputs, output)
