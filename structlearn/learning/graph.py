"""
Edge factored models over graphs: the score of a tree is the sum of
the scores of its edges, the score of an edge being the sum of the
weights of its features.
"""

import logging

import numpy as np

from .averaged import AveragedWeights
from .interface import Model, ModelKind
from ..table import check_same_size


class DependencyModel(Model):
    """
    Edge factored dependency parsing model. Node 0 is the root of
    every tree.

    Parameters
    ----------
    num_features: int
        size of the feature vocabulary
    logger: logging.Logger, optional
    """
    kind = ModelKind.dependency
    root = 0

    def __init__(self, num_features, logger=None):
        self.num_features = num_features
        self.logger = logger or logging.getLogger(__name__)
        self._weights = AveragedWeights(num_features)

    def parameter_blocks(self):
        return [self._weights]

    @property
    def weights(self):
        "array of feature weights"
        return self._weights.weight

    def set_weight(self, code, value):
        "initial value of a feature weight"
        self._weights.set(code, value)

    def edge_score(self, inputs, head, dep):
        "score of an edge, NaN if the edge does not exist"
        if not inputs.edges[head, dep]:
            return np.nan
        codes, values = inputs.edge_features(head, dep)
        return float(np.dot(self._weights.weight[codes], values))

    def edge_scores(self, inputs):
        """
        Head x dependent array of edge scores (NaN for missing edges)
        """
        size = inputs.num_nodes
        scores = inputs.features.dot(self._weights.weight)
        scores = np.asarray(scores).reshape((size, size))
        scores[~inputs.edges] = np.nan
        return scores

    def _update_edge(self, inputs, head, dep, rate):
        codes, values = inputs.edge_features(head, dep)
        self._weights.update(codes, rate * values)

    def update(self, inputs, correct, predicted, rate):
        """
        For every dependent with a wrong head, reward the features of
        the correct edge and penalize those of the predicted one.
        Dependents with an unknown correct head are ignored.

        Returns
        -------
        loss: float
            number of dependents with a wrong head
        """
        check_same_size(inputs, correct, "input and reference")
        check_same_size(correct, predicted, "reference and prediction")
        loss = 0.0
        for dep in range(inputs.num_nodes):
            if dep == self.root:
                continue
            head_c = correct.heads[dep]
            head_p = predicted.heads[dep]
            if head_c == head_p or head_c < 0:
                continue
            self._update_edge(inputs, head_c, dep, rate)
            if head_p < 0:
                self.logger.warning("no predicted head for token %d of %s",
                                    dep, inputs.name)
            else:
                self._update_edge(inputs, head_p, dep, -rate)
            loss += 1
        return loss

    def clone(self):
        res = type(self)(self.num_features, logger=self.logger)
        res.root = self.root
        res._weights = self._weights.copy()
        return res


class CoreferenceModel(DependencyModel):
    """
    Edge factored model over mention trees whose reference is a
    clustering: a predicted edge is only wrong if it links two
    clusters, or attaches a mention to the artificial root while the
    reference tree does not

    Parameters
    ----------
    num_features: int
    root: int, optional
        index of the artificial root mention
    logger: logging.Logger, optional
    """
    kind = ModelKind.coreference

    def __init__(self, num_features, root=0, logger=None):
        super().__init__(num_features, logger=logger)
        self.root = root

    def update(self, inputs, correct, predicted, rate):
        """
        Parameters
        ----------
        correct: CorefOutput
            reference clustering and (latent) tree

        Returns
        -------
        loss: float
            number of wrong edges
        """
        check_same_size(inputs, correct, "input and reference")
        check_same_size(correct, predicted, "reference and prediction")
        root = self.root
        loss = 0.0
        for right in range(inputs.num_nodes):
            if right == root:
                continue
            left_p = predicted.heads[right]
            left_c = correct.heads[right]
            if left_p < 0:
                continue
            if left_p == root:
                error = left_c != root
            else:
                error = not correct.same_cluster(left_p, right)
            if not error:
                continue
            self._update_edge(inputs, left_p, right, -rate)
            if left_c >= 0:
                self._update_edge(inputs, left_c, right, rate)
            loss += 1
        return loss

    def clone(self):
        res = CoreferenceModel(self.num_features, root=self.root,
                               logger=self.logger)
        res._weights = self._weights.copy()
        return res
