"""
A set of perceptron-like structured learners.

All of them follow the same protocol: for each example, an inference
engine decodes one or two structures under the current model, the
model is updated toward one and away from the other, and the updates
are folded into the averaged weights. At the end of training the model
weights are replaced by their average.

The learners differ in the pair of structures they contrast:

    - plain: reference vs prediction
    - loss augmented: reference vs loss augmented prediction
    - toward better: negatively loss augmented prediction (a structure
      better than the prediction) vs prediction
    - away from worse: prediction vs positively loss augmented
      prediction (a structure worse than the prediction)
    - dual: as loss augmented, with updates attributed to examples
"""

from collections import namedtuple
from math import sqrt
import logging
import time

from .averaged import ParameterError
from .interface import DualModel
from ..io import save_checkpoint
from ..report import EpochStats, TrainingReport
from ..util import (ArgparserEnum, ShapeError, UnsupportedError,
                    mk_rng, shuffled_indices)

# pylint: disable=too-few-public-methods, too-many-arguments


class LearningRateSchedule(ArgparserEnum):
    '''
    How the learning rate evolves with the number of examples seen
    '''
    constant = 1
    linear = 2
    quadratic = 3
    square_root = 4

    def rate(self, base, iteration):
        '''
        Learning rate at the given (0-based) iteration
        '''
        if self is LearningRateSchedule.constant:
            return base
        elif self is LearningRateSchedule.linear:
            return base / (iteration + 1)
        elif self is LearningRateSchedule.quadratic:
            return base / ((iteration + 1) * (base + 1))
        elif self is LearningRateSchedule.square_root:
            return base / sqrt(iteration + 1)
        else:
            raise ValueError("unknown schedule " + self.name)


class PerceptronArgs(namedtuple('PerceptronArgs',
                                ['epochs',
                                 'learning_rate',
                                 'schedule',
                                 'average',
                                 'shuffle',
                                 'partial',
                                 'random_state',
                                 'logger',
                                 'report_every'])):
    """
    Training loop configuration

    Parameters
    ----------
    epochs: int
        number of passes over the training data
    learning_rate: float
        base learning rate
    schedule: LearningRateSchedule
    average: bool
        average the weights at the end of training
    shuffle: bool
        visit the examples in a new random order at each epoch
    partial: bool
        references are partially labelled; complete them with partial
        inference before each update
    random_state: None, int or numpy.random.RandomState
        seed or generator used for shuffling and pool sampling
    logger: logging.Logger or None
        where to report progress (None for this module's logger)
    report_every: int
        report progress every so many examples (0 to never)
    """
    pass


DEFAULT_PERCEPTRON_ARGS = PerceptronArgs(
    epochs=10,
    learning_rate=1.0,
    schedule=LearningRateSchedule.constant,
    average=True,
    shuffle=True,
    partial=False,
    random_state=None,
    logger=None,
    report_every=0)


class LossArgs(namedtuple('LossArgs',
                          ['weight',
                           'weight_step',
                           'non_annotated_weight',
                           'non_annotated_weight_step'])):
    """
    Loss weights for loss augmented learners

    Parameters
    ----------
    weight: float
        loss weight (for annotated parts when split weights are used)
    weight_step: float
        added to the loss weight after each epoch (never going below 0)
    non_annotated_weight: float
        loss weight for parts that are not annotated in the partial
        reference; negative to use `weight` everywhere
    non_annotated_weight_step: float
        added to the non annotated weight after each epoch (never
        going above the loss weight)
    """
    pass


DEFAULT_LOSS_ARGS = LossArgs(weight=1.0,
                             weight_step=0.0,
                             non_annotated_weight=-1.0,
                             non_annotated_weight_step=0.0)


class TrainingListener(object):
    """
    Hooks called along training. Each returns a boolean, False
    meaning that training should stop (the final averaging still
    happens). The default implementation never stops training
    """
    def before_training(self, trainer):
        "called once, before the first epoch"
        return True

    def before_epoch(self, trainer, epoch):
        "called before each epoch"
        return True

    def after_epoch(self, trainer, epoch, loss, iteration):
        "called after each epoch with its total loss"
        return True

    def progress_report(self, trainer, example, iteration):
        "called every `report_every` examples within an epoch"
        return True

    def after_training(self, trainer, iteration):
        "called once, after averaging"
        return True


class CheckpointListener(TrainingListener):
    """
    Save a copy of the model after each epoch (see
    `structlearn.io.load_checkpoint`)

    Parameters
    ----------
    path_pattern: string
        file name, formatted with the `epoch` number
    average: bool, optional
        save the weights averaged so far rather than the current ones
    """
    def __init__(self, path_pattern, average=True):
        self.path_pattern = path_pattern
        self.average = average

    def after_epoch(self, trainer, epoch, loss, iteration):
        snapshot = trainer.model.clone()
        if self.average and iteration > 0:
            snapshot.average(iteration)
        save_checkpoint(snapshot, self.path_pattern.format(epoch=epoch))
        return True


class Perceptron(object):
    """
    Averaged structured perceptron

    Parameters
    ----------
    inference: Inference
        engine used to decode examples
    model: Model
        model to train (updated in place)
    args: PerceptronArgs, optional
    listener: TrainingListener, optional

    Attributes
    ----------
    iteration: int
        number of examples learned from so far
    history: [EpochStats]
    """
    def __init__(self, inference, model, args=DEFAULT_PERCEPTRON_ARGS,
                 listener=None):
        self.inference = inference
        self.model = model
        self.args = args
        self.listener = listener or TrainingListener()
        self.logger = args.logger or logging.getLogger(__name__)
        self.rng = mk_rng(args.random_state)
        self.iteration = 0
        self.history = []

    def learning_rate(self):
        "learning rate for the current iteration"
        return self.args.schedule.rate(self.args.learning_rate,
                                       self.iteration)

    def report(self):
        "training history so far"
        return TrainingReport(self.history)

    # ------------------------------------------------------------
    # training loops
    # ------------------------------------------------------------

    def train(self, inputs, references):
        """
        Learn from a list of examples

        Parameters
        ----------
        inputs: [example input]
        references: [example output]
            the correct structures (partially labelled if
            `args.partial`)

        Returns
        -------
        self: object
        """
        _check_pool(inputs, references)
        outputs = [x.create_output() for x in inputs]

        def epoch_examples(_):
            "indices of the examples to visit during an epoch"
            if self.args.shuffle:
                order = shuffled_indices(len(inputs), self.rng)
            else:
                order = range(len(inputs))
            for idx in order:
                yield idx, inputs[idx], references[idx], outputs[idx]

        return self._train(epoch_examples, len(inputs))

    def train_two_pools(self, inputs_a, references_a,
                        inputs_b, references_b,
                        weight_a, weight_step=0.0):
        """
        Learn from two lists of examples, the second one (B) being
        given less importance than the first one (A).

        Each epoch draws as many examples as there are in A, each
        from A with probability `epoch_weight_a` and from B otherwise.
        If `weight_step` is positive, that probability starts at 1 and
        decreases by `weight_step` after each epoch until it reaches
        `weight_a`; otherwise it is `weight_a` throughout.

        Within a pool, examples are drawn at random if shuffling,
        or cyclically in order if not
        """
        _check_pool(inputs_a, references_a)
        _check_pool(inputs_b, references_b)
        if not inputs_a or not inputs_b:
            raise ValueError("both example pools must be non empty")
        pools = [(inputs_a, references_a,
                  [x.create_output() for x in inputs_a]),
                 (inputs_b, references_b,
                  [x.create_output() for x in inputs_b])]
        rng = self.rng

        def epoch_examples(epoch):
            "draw the examples to visit during an epoch"
            if weight_step > 0:
                epoch_weight_a = max(weight_a, 1.0 - epoch * weight_step)
            else:
                epoch_weight_a = weight_a
            self.logger.debug("epoch %d: weight of pool A = %f",
                              epoch, epoch_weight_a)
            cursors = [0, 0]
            for _ in range(len(inputs_a)):
                pool = 0 if rng.random_sample() <= epoch_weight_a else 1
                p_inputs, p_refs, p_outputs = pools[pool]
                if self.args.shuffle:
                    idx = rng.randint(len(p_inputs))
                else:
                    idx = cursors[pool] % len(p_inputs)
                    cursors[pool] += 1
                yield idx, p_inputs[idx], p_refs[idx], p_outputs[idx]

        return self._train(epoch_examples, len(inputs_a))

    def _train(self, epoch_examples, epoch_size):
        """
        Main loop

        Parameters
        ----------
        epoch_examples: int -> iterable((int, input, reference, output))
            the examples to visit during the given epoch
        epoch_size: int
            number of examples per epoch
        """
        if self.model.averaged:
            raise ParameterError("cannot train a model that was already "
                                 "averaged")
        args = self.args
        listener = self.listener
        stop = not listener.before_training(self)
        start_time = time.time()
        for epoch in range(args.epochs):
            if stop or not listener.before_epoch(self, epoch):
                break
            epoch_start = time.time()
            loss = 0.0
            count = 0
            for index, inputs, reference, output in epoch_examples(epoch):
                loss += self.train_example(index, inputs, reference, output)
                count += 1
                if args.report_every and count % args.report_every == 0:
                    self.logger.debug("epoch %d: %d/%d examples, "
                                      "iteration %d", epoch, count,
                                      epoch_size, self.iteration)
                    if not listener.progress_report(self, count,
                                                    self.iteration):
                        stop = True
                        break
            self.end_epoch()
            stats = EpochStats(epoch=epoch,
                               loss=loss,
                               examples=count,
                               iterations=self.iteration,
                               seconds=time.time() - epoch_start)
            self.history.append(stats)
            self.logger.info("epoch %d: loss = %.4f (%.4f per example, "
                             "%.2fs)", epoch, loss, stats.mean_loss,
                             stats.seconds)
            if not listener.after_epoch(self, epoch, loss, self.iteration):
                stop = True
        if args.average and self.iteration > 0:
            self.model.average(self.iteration)
        self.logger.info("training done in %.2fs (%d iterations)",
                         time.time() - start_time, self.iteration)
        listener.after_training(self, self.iteration)
        return self

    # ------------------------------------------------------------
    # one example
    # ------------------------------------------------------------

    def end_epoch(self):
        "hook called at the end of each epoch"
        pass

    def complete_reference(self, inputs, reference):
        """
        The reference to learn from: the given one or, when learning
        from partially labelled references, its best completion
        """
        if self.args.partial:
            return self.inference.partial_infer(self.model, inputs,
                                                reference)
        return reference

    def sum_updates(self):
        "fold the updates of the current example and move on"
        self.model.sum_updates(self.iteration)
        self.iteration += 1

    def train_example(self, index, inputs, reference, output):
        """
        Decode one example into `output`, update the model, and return
        the loss

        Parameters
        ----------
        index: int
            position of the example in its pool
        inputs: example input
        reference: example output
            correct (possibly partial) structure
        output: example output
            buffer for the prediction
        """
        reference = self.complete_reference(inputs, reference)
        predicted = self.inference.infer(self.model, inputs, output)
        loss = self.model.update(inputs, reference, predicted,
                                 self.learning_rate())
        self.sum_updates()
        return loss


class LossAugmentedPerceptron(Perceptron):
    """
    Perceptron learning from loss augmented predictions, which gives
    it a margin proportional to the loss weight

    Parameters
    ----------
    inference: Inference
    model: Model
    args: PerceptronArgs, optional
    loss_args: LossArgs, optional
    listener: TrainingListener, optional
    """
    def __init__(self, inference, model, args=DEFAULT_PERCEPTRON_ARGS,
                 loss_args=DEFAULT_LOSS_ARGS, listener=None):
        super().__init__(inference, model, args=args, listener=listener)
        self.loss_weight = loss_args.weight
        self.loss_weight_step = loss_args.weight_step
        self.non_annotated_weight = loss_args.non_annotated_weight
        self.non_annotated_weight_step = loss_args.non_annotated_weight_step

    @property
    def split_weights(self):
        "True if non annotated parts get their own loss weight"
        return self.non_annotated_weight >= 0

    def end_epoch(self):
        self.loss_weight = max(0.0, self.loss_weight + self.loss_weight_step)
        if self.split_weights:
            self.non_annotated_weight = min(
                self.loss_weight,
                self.non_annotated_weight + self.non_annotated_weight_step)

    def loss_augmented(self, inputs, partial, reference, sign, output=None):
        """
        Loss augmented inference with the current loss weight(s)
        times `sign`
        """
        if self.split_weights:
            return self.inference.loss_augmented_infer_split(
                self.model, inputs, partial, reference,
                sign * self.loss_weight,
                sign * self.non_annotated_weight,
                output)
        return self.inference.loss_augmented_infer(
            self.model, inputs, reference, sign * self.loss_weight, output)

    def train_example(self, index, inputs, reference, output):
        partial = reference
        reference = self.complete_reference(inputs, partial)
        predicted = self.loss_augmented(inputs, partial, reference, 1.0,
                                        output)
        loss = self.model.update(inputs, reference, predicted,
                                 self.learning_rate())
        self.sum_updates()
        return loss


class TowardBetterPerceptron(LossAugmentedPerceptron):
    """
    Update toward the best structure once the score is penalized by
    its loss, and away from the plain prediction
    """
    def train_example(self, index, inputs, reference, output):
        partial = reference
        reference = self.complete_reference(inputs, partial)
        predicted = self.inference.infer(self.model, inputs, output)
        better = self.loss_augmented(inputs, partial, reference, -1.0)
        loss = self.model.update(inputs, better, predicted,
                                 self.learning_rate())
        self.sum_updates()
        return loss


class AwayFromWorsePerceptron(LossAugmentedPerceptron):
    """
    Update toward the plain prediction, and away from the best
    structure once the score is rewarded by its loss
    """
    def train_example(self, index, inputs, reference, output):
        partial = reference
        reference = self.complete_reference(inputs, partial)
        worse = self.loss_augmented(inputs, partial, reference, 1.0)
        predicted = self.inference.infer(self.model, inputs, output)
        loss = self.model.update(inputs, predicted, worse,
                                 self.learning_rate())
        self.sum_updates()
        return loss


class DualLossAugmentedPerceptron(LossAugmentedPerceptron):
    """
    Loss augmented perceptron for dual models: each update is
    attributed to the example it comes from
    """
    def __init__(self, inference, model, args=DEFAULT_PERCEPTRON_ARGS,
                 loss_args=DEFAULT_LOSS_ARGS, listener=None):
        if not isinstance(model, DualModel):
            raise UnsupportedError("dual training of a primal model "
                                   "({})".format(type(model).__name__))
        super().__init__(inference, model, args=args, loss_args=loss_args,
                         listener=listener)

    def train_two_pools(self, inputs_a, references_a,
                        inputs_b, references_b,
                        weight_a, weight_step=0.0):
        raise UnsupportedError("dual training over two weighted datasets")

    def train_example(self, index, inputs, reference, output):
        partial = reference
        reference = self.complete_reference(inputs, partial)
        predicted = self.loss_augmented(inputs, partial, reference, 1.0,
                                        output)
        loss = self.model.update_example(index, inputs, reference, predicted,
                                         self.learning_rate())
        self.sum_updates()
        return loss


def _check_pool(inputs, references):
    "inputs and references must go in pairs"
    if len(inputs) != len(references):
        oops = "{} inputs but {} references"
        raise ShapeError(oops.format(len(inputs), len(references)))


class PerceptronKind(ArgparserEnum):
    '''
    Which perceptron variant to train with
    '''
    plain = 1
    loss_augmented = 2
    toward_better = 3
    away_from_worse = 4
    dual = 5


_PERCEPTRONS = {
    PerceptronKind.loss_augmented: LossAugmentedPerceptron,
    PerceptronKind.toward_better: TowardBetterPerceptron,
    PerceptronKind.away_from_worse: AwayFromWorsePerceptron,
    PerceptronKind.dual: DualLossAugmentedPerceptron,
}


def mk_perceptron(kind, inference, model,
                  args=DEFAULT_PERCEPTRON_ARGS,
                  loss_args=DEFAULT_LOSS_ARGS,
                  listener=None):
    '''
    Build a learner of the given kind (`loss_args` is ignored by the
    plain perceptron)
    '''
    if kind is PerceptronKind.plain:
        return Perceptron(inference, model, args=args, listener=listener)
    elif kind in _PERCEPTRONS:
        return _PERCEPTRONS[kind](inference, model, args=args,
                                  loss_args=loss_args, listener=listener)
    else:
        raise ValueError("unknown perceptron kind {}".format(kind))
