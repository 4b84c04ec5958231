"""
Common interface(s) to structlearn models.
"""

from abc import ABCMeta, abstractmethod

from ..util import ArgparserEnum


class ModelKind(ArgparserEnum):
    '''
    The family of structures a model scores. Inference engines are
    written against one family
    '''
    hmm = 1
    dependency = 2
    coreference = 3
    ranking = 4


class Model(metaclass=ABCMeta):
    '''
    A linear model over some kind of structure, whose parameters are
    averaged perceptron weights.

    Life cycle: a model is created once per training run, updated
    after every example (`update` followed by `sum_updates`), and
    finally averaged once (`average`).

    Attributes
    ----------
    kind: ModelKind
    '''
    kind = None

    @abstractmethod
    def parameter_blocks(self):
        '''
        The averaged weight containers (`AveragedWeights` or
        `SparseAveragedWeights`) owned by this model
        '''
        raise NotImplementedError

    @abstractmethod
    def update(self, inputs, correct, predicted, rate):
        '''
        Move the weights toward the features of `correct` and away from
        those of `predicted`. The change only becomes visible to
        inference after `sum_updates`

        Parameters
        ----------
        inputs: example input
        correct: example output
        predicted: example output
        rate: float
            learning rate

        Returns
        -------
        loss: float
            loss of `predicted` with respect to `correct`
        '''
        raise NotImplementedError

    def sum_updates(self, iteration):
        '''
        Fold the updates made since the last call into the weights and
        their running sums
        '''
        for block in self.parameter_blocks():
            block.fold(iteration)

    def average(self, num_iterations):
        '''
        Replace each weight by its average over the first
        `num_iterations` iterations. Only valid once per model
        '''
        for block in self.parameter_blocks():
            block.average(num_iterations)

    @property
    def averaged(self):
        "True if the model was averaged"
        return all(block.finalized for block in self.parameter_blocks())

    @abstractmethod
    def clone(self):
        '''
        Deep copy of this model (used to checkpoint or evaluate an
        averaged snapshot in the middle of training)
        '''
        raise NotImplementedError


class DualModel(Model):
    '''
    A model whose updates are attributed to training examples rather
    than features, and which therefore needs to know which example is
    being learned from
    '''
    @abstractmethod
    def update_example(self, index, inputs, correct, predicted, rate):
        '''
        Same as `update` for the `index`-th training example

        Returns
        -------
        loss: float
        '''
        raise NotImplementedError
