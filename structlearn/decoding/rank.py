"""
Ranking "inference": sorting items by score
"""

import numpy as np

from .interface import Inference
from ..table import check_same_size


class RankInference(Inference):
    """
    Orders items by decreasing score, the lower index first on ties.
    Partial references are not supported
    """
    def _rank(self, scores, inputs, output):
        if output is None:
            output = inputs.create_output()
        check_same_size(inputs, output, "input and output")
        output.order[:] = np.argsort(-scores, kind='stable')
        return output

    def infer(self, model, inputs, output=None):
        return self._rank(model.item_scores(inputs), inputs, output)

    def loss_augmented_infer(self, model, inputs, reference, loss_weight,
                             output=None):
        """
        Rank with `loss_weight` added to the score of every item that
        is not relevant in the reference
        """
        check_same_size(inputs, reference, "input and reference")
        scores = model.item_scores(inputs)
        irrelevant = np.array([not reference.is_relevant(item)
                               for item in range(inputs.size)], dtype=bool)
        scores[irrelevant] += loss_weight
        return self._rank(scores, inputs, output)
