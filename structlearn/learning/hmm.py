"""
Discriminative hidden Markov models for sequence labelling

The score of a labelling is the sum of an initial state weight, a
transition weight per pair of adjacent labels and, for each token, the
emission weights of its features under its label.
"""

import numpy as np
import scipy.sparse

from .averaged import AveragedWeights, SparseAveragedWeights
from .interface import DualModel, Model, ModelKind
from ..table import check_same_size, row_features
from ..util import ShapeError, UnsupportedError

# pylint: disable=invalid-name


class _HmmBase(Model):
    """
    Initial state and transition weights, and the update procedure
    shared by primal and dual models. Subclasses provide emission
    scores and updates
    """
    kind = ModelKind.hmm

    def __init__(self, num_states):
        self.num_states = num_states
        # initial states first, then transitions (row = from state)
        self._structure = AveragedWeights(num_states + num_states ** 2)

    def initial_scores(self):
        "array of initial state weights"
        return self._structure.weight[:self.num_states]

    def transition_scores(self):
        "from state x to state array of transition weights"
        S = self.num_states
        return self._structure.weight[S:].reshape((S, S))

    def initial(self, state):
        "weight of starting a sequence in the given state"
        return self._structure.weight[state]

    def transition(self, from_state, to_state):
        "weight of going from one state to another"
        S = self.num_states
        return self._structure.weight[S + from_state * S + to_state]

    def set_initial(self, state, value):
        "initial value of an initial state weight"
        self._structure.set(state, value)

    def set_transition(self, from_state, to_state, value):
        "initial value of a transition weight"
        S = self.num_states
        self._structure.set(S + from_state * S + to_state, value)

    def emission_scores(self, inputs):
        """
        Token by state array of emission scores

        Parameters
        ----------
        inputs: SequenceInput
        """
        raise NotImplementedError

    def _update_initial(self, state, rate):
        self._structure.update_one(state, rate)

    def _update_transition(self, from_state, to_state, rate):
        S = self.num_states
        self._structure.update_one(S + from_state * S + to_state, rate)

    def _update_emissions(self, index, inputs, token, state, rate):
        raise NotImplementedError

    def _update(self, index, inputs, correct, predicted, rate):
        """
        Perceptron update: for each token whose label is wrong, reward
        the correct emissions and penalize the predicted ones, along
        with the transitions (or initial state) leading to them.
        Transitions out of a wrong label into a right one are updated
        as well.

        Tokens whose correct label is unknown (negative) contribute
        nothing
        """
        check_same_size(inputs, correct, "input and reference")
        check_same_size(correct, predicted, "reference and prediction")
        loss = 0.0
        prev_c = prev_p = None
        for tkn in range(inputs.size):
            lbl_c = correct.labels[tkn]
            lbl_p = predicted.labels[tkn]
            if lbl_c < 0 or lbl_p < 0:
                prev_c = prev_p = None
                continue
            if lbl_c != lbl_p:
                self._update_emissions(index, inputs, tkn, lbl_c, rate)
                self._update_emissions(index, inputs, tkn, lbl_p, -rate)
                if tkn == 0:
                    self._update_initial(lbl_c, rate)
                    self._update_initial(lbl_p, -rate)
                elif prev_c is not None:
                    self._update_transition(prev_c, lbl_c, rate)
                    self._update_transition(prev_p, lbl_p, -rate)
                loss += 1
            elif prev_c is not None and prev_c != prev_p:
                self._update_transition(prev_c, lbl_c, rate)
                self._update_transition(prev_p, lbl_p, -rate)
            prev_c, prev_p = lbl_c, lbl_p
        return loss


class Hmm(_HmmBase):
    """
    HMM with one weight per (state, symbol) emission

    Parameters
    ----------
    num_states: int
    num_symbols: int
        size of the feature vocabulary
    """
    def __init__(self, num_states, num_symbols):
        super().__init__(num_states)
        self.num_symbols = num_symbols
        self._emissions = AveragedWeights(num_states * num_symbols)

    def parameter_blocks(self):
        return [self._structure, self._emissions]

    def emission_matrix(self):
        "state x symbol array of emission weights"
        return self._emissions.weight.reshape((self.num_states,
                                               self.num_symbols))

    def emission(self, state, symbol):
        "weight of a symbol under a state"
        return self._emissions.weight[state * self.num_symbols + symbol]

    def set_emission(self, state, symbol, value):
        "initial value of an emission weight"
        self._emissions.set(state * self.num_symbols + symbol, value)

    def emission_scores(self, inputs):
        if inputs.num_symbols != self.num_symbols:
            oops = "input over {} symbols for a model over {} symbols"
            raise ShapeError(oops.format(inputs.num_symbols,
                                         self.num_symbols))
        return np.asarray(inputs.features.dot(self.emission_matrix().T))

    def _update_emissions(self, index, inputs, token, state, rate):
        codes, values = row_features(inputs.features, token)
        self._emissions.update(state * self.num_symbols + codes,
                               rate * values)

    def update(self, inputs, correct, predicted, rate):
        return self._update(None, inputs, correct, predicted, rate)

    def clone(self):
        res = Hmm(self.num_states, self.num_symbols)
        res._structure = self._structure.copy()
        res._emissions = self._emissions.copy()
        return res


class DualHmm(_HmmBase, DualModel):
    """
    HMM whose emission weights are kept in dual form: one weight
    (alpha) per training token and state, the emission score of a
    token being the sum over training tokens of their alphas times
    the dot product of their features (linear kernel).

    Parameters
    ----------
    num_states: int
    inputs: [SequenceInput]
        the training sequences, in the order used by `update_example`
    """
    def __init__(self, num_states, inputs):
        super().__init__(num_states)
        self.inputs = inputs
        self._alphas = SparseAveragedWeights()
        # support vectors: (example, token) pairs with an alpha
        self._sv_index = {}
        self._sv_matrix = None

    def parameter_blocks(self):
        return [self._structure, self._alphas]

    @property
    def num_support_vectors(self):
        "number of training tokens with a dual weight"
        return len(self._sv_index)

    def alpha(self, index, token, state):
        "dual weight of a training token for a state"
        return self._alphas.get((index, token, state))

    def _support_vectors(self):
        """
        (feature matrix, alpha matrix) over the support vectors, in
        order of first update
        """
        if self._sv_matrix is None:
            rows = [self.inputs[ex].features[tkn]
                    for ex, tkn in self._sv_index]
            self._sv_matrix = scipy.sparse.vstack(rows).tocsr()
        alphas = np.array([[self._alphas.get((ex, tkn, s))
                            for s in range(self.num_states)]
                           for ex, tkn in self._sv_index])
        return self._sv_matrix, alphas

    def emission_scores(self, inputs):
        if not self._sv_index:
            return np.zeros((inputs.size, self.num_states))
        sv_features, alphas = self._support_vectors()
        kernel = inputs.features.dot(sv_features.T)
        return np.asarray(kernel.dot(alphas))

    def _update_emissions(self, index, inputs, token, state, rate):
        key = (index, token)
        if key not in self._sv_index:
            self._sv_index[key] = len(self._sv_index)
            self._sv_matrix = None
        self._alphas.update((index, token, state), rate)

    def update(self, inputs, correct, predicted, rate):
        raise UnsupportedError("updating a dual model without knowing "
                               "the training example")

    def update_example(self, index, inputs, correct, predicted, rate):
        return self._update(index, inputs, correct, predicted, rate)

    def clone(self):
        res = DualHmm(self.num_states, self.inputs)
        res._structure = self._structure.copy()
        res._alphas = self._alphas.copy()
        res._sv_index = dict(self._sv_index)
        return res
