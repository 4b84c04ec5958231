"""
Viterbi inference for sequence labelling (first order HMMs)
"""

import logging

import numpy as np

from .interface import Inference
from ..table import NON_ANNOTATED, check_same_size

# pylint: disable=invalid-name, too-few-public-methods


class ViterbiWorkspace(object):
    """
    Dynamic programming tables, grown to the largest sequence seen and
    reused across calls

    Parameters
    ----------
    max_tokens: int, optional
    num_states: int, optional
    """
    def __init__(self, max_tokens=0, num_states=0):
        self.delta = np.empty((max_tokens, num_states))
        self.psi = np.empty((max_tokens, num_states), dtype=np.intp)

    def tables(self, num_tokens, num_states):
        """
        `(delta, psi)` views over at least `num_tokens x num_states`
        cells (contents undefined)
        """
        rows, cols = self.delta.shape
        if num_tokens > rows or num_states > cols:
            shape = (max(rows, num_tokens), max(cols, num_states))
            self.delta = np.empty(shape)
            self.psi = np.empty(shape, dtype=np.intp)
        return (self.delta[:num_tokens, :num_states],
                self.psi[:num_tokens, :num_states])


class ViterbiInference(Inference):
    """
    Best label sequence under an HMM by dynamic programming.

    Ties are broken in favour of the lowest state index. Scores that
    are not numbers count as minus infinity; if no state at all can
    be reached at some position, `default_state` is given a score of 0
    there so that decoding can carry on.

    Parameters
    ----------
    default_state: int, optional
        state used when every state scores minus infinity
    sentinel: int, optional
        label of tokens whose label is unknown in partial references
    workspace: ViterbiWorkspace, optional
    logger: logging.Logger, optional
    """
    def __init__(self, default_state=0, sentinel=NON_ANNOTATED,
                 workspace=None, logger=None):
        self.default_state = default_state
        self.sentinel = sentinel
        self.workspace = workspace or ViterbiWorkspace()
        self.logger = logger or logging.getLogger(__name__)

    def infer(self, model, inputs, output=None):
        emissions = model.emission_scores(inputs)
        return self._decode(model, inputs, emissions, None, output)

    def partial_infer(self, model, inputs, partial, output=None):
        """
        Complete the unknown labels of `partial`. Known labels are
        kept, and the emission scores of their tokens ignored
        """
        check_same_size(inputs, partial, "input and partial reference")
        emissions = model.emission_scores(inputs)
        fixed = self._fixed_labels(inputs, partial, model.num_states)
        return self._decode(model, inputs, emissions, fixed, output)

    def loss_augmented_infer(self, model, inputs, reference, loss_weight,
                             output=None):
        check_same_size(inputs, reference, "input and reference")
        emissions = model.emission_scores(inputs)
        emissions += loss_weight * self._mismatches(reference,
                                                    model.num_states)
        return self._decode(model, inputs, emissions, None, output)

    def loss_augmented_infer_split(self, model, inputs, partial, reference,
                                   weight_annotated, weight_non_annotated,
                                   output=None):
        check_same_size(inputs, reference, "input and reference")
        check_same_size(inputs, partial, "input and partial reference")
        emissions = model.emission_scores(inputs)
        annotated = partial.labels != self.sentinel
        weights = np.where(annotated, weight_annotated, weight_non_annotated)
        emissions += (weights[:, np.newaxis] *
                      self._mismatches(reference, model.num_states))
        return self._decode(model, inputs, emissions, None, output)

    @staticmethod
    def _mismatches(reference, num_states):
        "token x state array, 1 where the state is not the reference label"
        states = np.arange(num_states)
        return (states[np.newaxis, :] !=
                reference.labels[:, np.newaxis]).astype(float)

    def _fixed_labels(self, inputs, partial, num_states):
        """
        Array of known labels, -1 for unknown ones. Labels that are
        neither the sentinel nor a valid state are dropped with a
        warning
        """
        fixed = np.full(partial.size, -1, dtype=np.intp)
        for tkn, label in enumerate(partial.labels):
            if label == self.sentinel:
                continue
            if 0 <= label < num_states:
                fixed[tkn] = label
            else:
                self.logger.warning("ignoring invalid label %d for token %d "
                                    "of %s", label, tkn, inputs.name)
        return fixed

    def _guard(self, row):
        "give the default state a chance if nothing else is reachable"
        if not np.isfinite(row).any():
            row[:] = -np.inf
            row[self.default_state] = 0.0

    def _decode(self, model, inputs, emissions, fixed, output):
        """
        Fill `output` with the best path, constrained to go through
        the labels of `fixed` (if not None) where they are not -1
        """
        if output is None:
            output = inputs.create_output()
        check_same_size(inputs, output, "input and output")
        T, S = emissions.shape
        if T == 0:
            return output
        emissions = np.where(np.isnan(emissions), -np.inf, emissions)
        initial = model.initial_scores()
        transitions = model.transition_scores()
        if fixed is None:
            fixed = np.full(T, -1, dtype=np.intp)
        delta, psi = self.workspace.tables(T, S)
        all_states = np.arange(S)

        if fixed[0] >= 0:
            delta[0] = -np.inf
            delta[0, fixed[0]] = initial[fixed[0]]
        else:
            delta[0] = initial + emissions[0]
        psi[0] = -1
        self._guard(delta[0])

        for tkn in range(1, T):
            prev = fixed[tkn - 1]
            if prev >= 0:
                # the previous label is known: it is everyone's predecessor
                psi[tkn] = prev
                best = delta[tkn - 1, prev] + transitions[prev]
            else:
                scores = delta[tkn - 1][:, np.newaxis] + transitions
                psi[tkn] = np.argmax(scores, axis=0)
                best = scores[psi[tkn], all_states]
            label = fixed[tkn]
            if label >= 0:
                delta[tkn] = -np.inf
                delta[tkn, label] = best[label]
            else:
                delta[tkn] = best + emissions[tkn]
            self._guard(delta[tkn])

        labels = output.labels
        last = fixed[T - 1]
        labels[T - 1] = last if last >= 0 else np.argmax(delta[T - 1])
        for tkn in range(T - 1, 0, -1):
            labels[tkn - 1] = psi[tkn, labels[tkn]]
        return output
