'''
Common interface that all inference engines must implement
'''

from abc import ABCMeta, abstractmethod

from ..util import UnsupportedError

# pylint: disable=too-few-public-methods


class Inference(metaclass=ABCMeta):
    '''
    An inference engine finds the best scoring structure for an input
    under a model.

    Beyond plain inference, engines may support

        - **partial inference**: completing a partially labelled
          reference (parts equal to the `sentinel` are unknown) with
          the best scoring structure that agrees with its known parts

        - **loss augmented inference**: finding the structure that
          maximizes its score plus `loss_weight` times its loss with
          respect to a reference (a negative weight favours structures
          close to the reference)

        - **split weight loss augmented inference**: same, but with
          separate loss weights for the parts that are annotated in a
          partial reference and for the parts that are not

    Engines that do not support some of these raise
    `UnsupportedError`.

    Every method takes an optional `output` structure (from
    `inputs.create_output()`) to fill in and return; a fresh one is
    created if not given.

    Attributes
    ----------
    sentinel: int
        label/head value marking unknown parts of partial references
    '''
    sentinel = -1

    @abstractmethod
    def infer(self, model, inputs, output=None):
        '''
        Best scoring structure for the input

        Parameters
        ----------
        model: Model
        inputs: example input

        Returns
        -------
        output: example output
        '''
        raise NotImplementedError

    def partial_infer(self, model, inputs, partial, output=None):
        '''
        Best scoring completion of a partially labelled reference
        '''
        raise UnsupportedError("partial inference with " +
                               type(self).__name__)

    def loss_augmented_infer(self, model, inputs, reference, loss_weight,
                             output=None):
        '''
        Best scoring structure once the score is augmented by
        `loss_weight` per part that differs from `reference`
        '''
        raise UnsupportedError("loss augmented inference with " +
                               type(self).__name__)

    def loss_augmented_infer_split(self, model, inputs, partial, reference,
                                   weight_annotated, weight_non_annotated,
                                   output=None):
        '''
        Loss augmented inference where the loss weight of a part
        depends on whether it is annotated in `partial`
        '''
        raise UnsupportedError("split weight loss augmented inference "
                               "with " + type(self).__name__)
