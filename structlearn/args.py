"""
Managing command line arguments
"""

from functools import wraps
import sys

from .decoding.coref import CoreferenceInference
from .decoding.mst import MaximumBranching, MaximumBranchingInference
from .decoding.rank import RankInference
from .decoding.viterbi import ViterbiInference
from .learning.interface import ModelKind
from .learning.perceptron import (DEFAULT_LOSS_ARGS,
                                  DEFAULT_PERCEPTRON_ARGS,
                                  LearningRateSchedule,
                                  LossArgs,
                                  PerceptronArgs,
                                  PerceptronKind)
from .table import NON_ANNOTATED

# pylint: disable=too-few-public-methods

DEFAULT_PERCEPTRON_KIND = PerceptronKind.plain
DEFAULT_MODEL_KIND = ModelKind.hmm

# ---------------------------------------------------------------------
# argparse
# ---------------------------------------------------------------------


def add_model_args(psr):
    "the kind of model and learner to train"

    grp = psr.add_argument_group('model')
    grp.add_argument("--model", "-m",
                     type=ModelKind.from_string,
                     default=DEFAULT_MODEL_KIND,
                     help="kind of structure to learn " +
                     ModelKind.help_suffix(DEFAULT_MODEL_KIND))
    grp.add_argument("--perceptron", "-p",
                     type=PerceptronKind.from_string,
                     default=DEFAULT_PERCEPTRON_KIND,
                     help="learning algorithm " +
                     PerceptronKind.help_suffix(DEFAULT_PERCEPTRON_KIND))
    grp.add_argument("--root", metavar="INT",
                     type=int, default=0,
                     help="artificial root mention (coreference)")
    grp.add_argument("--root-loss-factor", metavar="FLOAT",
                     type=float,
                     help="loss weight multiplier for edges out of the "
                     "root (coreference)")


def add_perceptron_args(psr):
    "training loop parameters"

    defaults = DEFAULT_PERCEPTRON_ARGS
    grp = psr.add_argument_group('training')
    grp.add_argument("--epochs", "-n", metavar="INT",
                     type=int, default=defaults.epochs,
                     help="number of passes over the training data "
                     "(default: %(default)s)")
    grp.add_argument("--learning-rate", "-r", metavar="FLOAT",
                     type=float, default=defaults.learning_rate,
                     help="base learning rate (default: %(default)s)")
    grp.add_argument("--schedule",
                     type=LearningRateSchedule.from_string,
                     default=defaults.schedule,
                     help="learning rate schedule " +
                     LearningRateSchedule.help_suffix(defaults.schedule))
    grp.add_argument("--no-average",
                     dest="average", action="store_false",
                     help="keep the final weights instead of averaging")
    grp.add_argument("--no-shuffle",
                     dest="shuffle", action="store_false",
                     help="visit the examples in their original order")
    grp.add_argument("--seed", metavar="INT",
                     type=int,
                     help="random seed (for shuffling)")
    grp.add_argument("--partial", action="store_true",
                     help="references are partially labelled")
    grp.add_argument("--sentinel", metavar="INT",
                     type=int, default=NON_ANNOTATED,
                     help="label of unknown parts in partial references "
                     "(default: %(default)s)")
    grp.add_argument("--report-every", metavar="INT",
                     type=int, default=defaults.report_every,
                     help="report progress every INT examples")


def add_loss_args(psr):
    "loss weights for loss augmented learners"

    defaults = DEFAULT_LOSS_ARGS
    grp = psr.add_argument_group('loss augmentation')
    grp.add_argument("--loss-weight", metavar="FLOAT",
                     type=float, default=defaults.weight,
                     help="loss weight (default: %(default)s)")
    grp.add_argument("--loss-weight-step", metavar="FLOAT",
                     type=float, default=defaults.weight_step,
                     help="added to the loss weight after each epoch")
    grp.add_argument("--non-annotated-weight", metavar="FLOAT",
                     type=float, default=defaults.non_annotated_weight,
                     help="loss weight for parts that are not annotated "
                     "in partial references (negative: same as "
                     "--loss-weight)")
    grp.add_argument("--non-annotated-weight-step", metavar="FLOAT",
                     type=float,
                     default=defaults.non_annotated_weight_step,
                     help="added to the non annotated loss weight after "
                     "each epoch")


def validate_training_args(wrapped):
    """
    Given a function that accepts an argparsed object, check
    the training arguments before carrying on.

    This is meant to be used as a decorator, eg.::

        @validate_training_args
        def main(args):
            blah
    """
    @wraps(wrapped)
    def inner(args):
        "die if training args are out of range"
        if args.epochs < 0:
            sys.exit("arg error: --epochs must not be negative")
        if args.learning_rate <= 0:
            sys.exit("arg error: --learning-rate must be positive")
        if getattr(args, "sentinel", -1) >= 0:
            sys.exit("arg error: --sentinel must be negative (models "
                     "read any negative label or head as unknown)")
        if args.perceptron is PerceptronKind.dual and\
                args.model is not ModelKind.hmm:
            sys.exit("arg error: dual training is only available for "
                     "hmm models")
        non_annotated = getattr(args, 'non_annotated_weight', -1)
        if non_annotated > getattr(args, 'loss_weight', non_annotated):
            sys.exit("arg error: --non-annotated-weight may not exceed "
                     "--loss-weight")
        return wrapped(args)
    return inner

# ---------------------------------------------------------------------
# from arguments to configuration
# ---------------------------------------------------------------------


def args_to_perceptron_args(args, logger=None):
    """
    Training loop configuration from command line arguments
    """
    return PerceptronArgs(epochs=args.epochs,
                          learning_rate=args.learning_rate,
                          schedule=args.schedule,
                          average=args.average,
                          shuffle=args.shuffle,
                          partial=args.partial,
                          random_state=args.seed,
                          logger=logger,
                          report_every=args.report_every)


def args_to_loss_args(args):
    """
    Loss weights from command line arguments
    """
    return LossArgs(weight=args.loss_weight,
                    weight_step=args.loss_weight_step,
                    non_annotated_weight=args.non_annotated_weight,
                    non_annotated_weight_step=args.non_annotated_weight_step)


def args_to_inference(args, logger=None):
    """
    Inference engine for the kind of model selected on the command
    line
    """
    kind = args.model
    if kind is ModelKind.hmm:
        return ViterbiInference(sentinel=args.sentinel, logger=logger)
    elif kind is ModelKind.dependency:
        return MaximumBranchingInference(sentinel=args.sentinel,
                                         logger=logger)
    elif kind is ModelKind.coreference:
        branching = MaximumBranching(logger=logger)
        return CoreferenceInference(root=args.root,
                                    root_loss_factor=args.root_loss_factor,
                                    branching=branching,
                                    sentinel=args.sentinel,
                                    logger=logger)
    elif kind is ModelKind.ranking:
        return RankInference()
    else:
        raise ValueError("unknown model kind {}".format(kind))
