"""
Coreference resolution as a maximum branching over mentions, the
clusters being the subtrees hanging from an artificial root mention
"""

import logging

import numpy as np

from .interface import Inference
from .mst import MaximumBranching
from ..table import NON_ANNOTATED, check_same_size
from ..util import UnsupportedError


class CoreferenceInference(Inference):
    """
    Parameters
    ----------
    root: int, optional
        index of the artificial root mention
    use_root: bool, optional
        if False, edges to and from the root are ignored (and the
        result may be a forest)
    root_loss_factor: float, optional
        multiplier of the loss weight for edges out of the root; None
        means 1
    branching: MaximumBranching, optional
        solver workspace
    logger: logging.Logger, optional
    """
    def __init__(self, root=0, use_root=True, root_loss_factor=None,
                 branching=None, sentinel=NON_ANNOTATED, logger=None):
        self.root = root
        self.use_root = use_root
        self.root_loss_factor = root_loss_factor
        self.logger = logger or logging.getLogger(__name__)
        self.branching = branching or MaximumBranching(logger=self.logger)
        self.sentinel = sentinel

    def _graph(self, model, inputs):
        graph = model.edge_scores(inputs)
        np.fill_diagonal(graph, np.nan)
        graph[:, self.root] = np.nan
        if not self.use_root:
            graph[self.root, :] = np.nan
        return graph

    def _output(self, inputs, output):
        if output is None:
            output = inputs.create_output()
        check_same_size(inputs, output, "input and output")
        return output

    def _find(self, graph, heads):
        # without the root, each cluster is its own tree
        return self.branching.find(graph, heads,
                                   check_unique_root=self.use_root,
                                   only_positive_edges=not self.use_root)

    def infer(self, model, inputs, output=None):
        output = self._output(inputs, output)
        self._find(self._graph(model, inputs), output.heads)
        output.compute_clustering_from_tree(self.root)
        return output

    def partial_infer(self, model, inputs, partial, output=None):
        """
        Best tree whose edges stay within the reference clusters; each
        cluster hangs from the root. The output clustering is the
        reference one
        """
        check_same_size(inputs, partial, "input and partial reference")
        output = self._output(inputs, output)
        graph = self._graph(model, inputs)
        clusters = np.array([partial.cluster_of(m)
                             for m in range(inputs.num_nodes)])
        graph[clusters[:, np.newaxis] != clusters[np.newaxis, :]] = np.nan
        self.branching.find(graph, output.heads,
                            check_unique_root=False,
                            only_positive_edges=False)
        if self.use_root:
            rootless = output.heads < 0
            rootless[self.root] = False
            output.heads[rootless] = self.root
        output.clustering.set_equal_to(partial.clustering)
        return output

    def loss_augmented_infer(self, model, inputs, reference, loss_weight,
                             output=None):
        """
        Add the loss weight to edges between different reference
        clusters, and to edges out of the root into mentions that are
        not attached to the root in the reference
        """
        check_same_size(inputs, reference, "input and reference")
        output = self._output(inputs, output)
        graph = self._graph(model, inputs)
        size = inputs.num_nodes
        clusters = np.array([reference.cluster_of(m) for m in range(size)])
        loss = (clusters[:, np.newaxis] != clusters[np.newaxis, :])
        loss = loss.astype(float) * loss_weight
        root_weight = loss_weight
        if self.root_loss_factor is not None:
            root_weight *= self.root_loss_factor
        loss[self.root] = np.where(reference.heads != self.root,
                                   root_weight, 0.0)
        graph += loss
        self._find(graph, output.heads)
        output.compute_clustering_from_tree(self.root)
        return output

    def loss_augmented_infer_split(self, model, inputs, partial, reference,
                                   weight_annotated, weight_non_annotated,
                                   output=None):
        raise UnsupportedError("split weight loss augmented coreference "
                               "inference")
