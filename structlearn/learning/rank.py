"""
Linear item ranking model
"""

import numpy as np

from .averaged import SparseAveragedWeights
from .interface import Model, ModelKind
from ..table import check_same_size, row_features


class RankModel(Model):
    """
    Scores each item by the sum of its feature weights; feature
    weights are created on first update, so the vocabulary need not be
    known in advance
    """
    kind = ModelKind.ranking

    def __init__(self):
        self._weights = SparseAveragedWeights()

    def parameter_blocks(self):
        return [self._weights]

    def weight(self, code):
        "weight of a feature (0 if never updated)"
        return self._weights.get(code)

    def weights(self):
        "(code, weight) pairs in code order"
        return self._weights.items()

    def set_weight(self, code, value):
        "initial value of a feature weight"
        self._weights.set(code, value)

    def item_score(self, inputs, item):
        "score of a single item"
        codes, values = row_features(inputs.features, item)
        return float(sum(self._weights.get(int(c)) * v
                         for c, v in zip(codes, values)))

    def item_scores(self, inputs):
        "array of item scores"
        matrix = inputs.features
        lookup = np.array([self._weights.get(int(c)) for c in matrix.indices])
        rows = np.repeat(np.arange(inputs.size), np.diff(matrix.indptr))
        return np.bincount(rows, weights=matrix.data * lookup,
                           minlength=inputs.size).astype(float)

    def _update_item(self, inputs, item, rate):
        codes, values = row_features(inputs.features, item)
        for code, value in zip(codes, values):
            self._weights.update(int(code), rate * value)

    def update(self, inputs, correct, predicted, rate):
        """
        Walk down the predicted order: a relevant item is pushed up in
        proportion to the number of irrelevant items ranked above it,
        and an irrelevant item pushed down in proportion to the number
        of relevant items ranked below it.

        Returns
        -------
        loss: float
            1 - average precision of the predicted order
        """
        check_same_size(inputs, predicted, "input and prediction")
        num_relevant = len(correct.relevant)
        num_irrelevant = 0
        avg_prec = 0.0
        for rank, item in enumerate(predicted.order):
            k = rank + 1
            if correct.is_relevant(item):
                avg_prec += (k - num_irrelevant) / k
                if num_irrelevant > 0:
                    self._update_item(inputs, item, rate * num_irrelevant)
            else:
                num_irrelevant += 1
                relevant_below = num_relevant - (k - num_irrelevant)
                if relevant_below > 0:
                    self._update_item(inputs, item, -rate * relevant_below)
        if num_relevant == 0:
            return 0.0
        return 1.0 - avg_prec / num_relevant

    def clone(self):
        res = RankModel()
        res._weights = self._weights.copy()
        return res
