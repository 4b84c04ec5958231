"""
Saving and loading models

Models can be saved in a human readable text format, which only holds
the (averaged) weights, or checkpointed as binary pickles (joblib)
which can be reloaded to resume training.

Text format: a first line `# <kind> model`, followed by one
`labels<TAB>weight` line per parameter. Sequence models have three
sections:

    # initial state
    STATE<TAB>weight
    # transitions
    FROM_STATE TO_STATE<TAB>weight
    # emissions
    STATE SYMBOL<TAB>weight

Graph and ranking models have one `FEATURE<TAB>weight` line per
feature. Labels are written through code -> string sequences and read
back through their inverse; state labels must not contain spaces.
Emission and feature weights of 0 are left out.
"""

import logging
import time
from contextlib import contextmanager

import joblib

from .learning.graph import CoreferenceModel, DependencyModel
from .learning.hmm import Hmm
from .learning.interface import ModelKind
from .learning.rank import RankModel
from .util import UnsupportedError

# pylint: disable=too-few-public-methods

_LOG = logging.getLogger(__name__)


class IoException(Exception):
    """
    Exceptions related to reading/writing data
    """
    def __init__(self, msg):
        super().__init__(msg)

# ---------------------------------------------------------------------
# feedback
# ---------------------------------------------------------------------


@contextmanager
def timed(msg, logger=None):
    """
    Log that we're about to do something, then do it, then log that
    we're done (and how long it took), or that it failed

    Usage: ::

        with timed("doing a slow thing", logger):
            some_slow_thing

    The exception, if any, is propagated.
    """
    logger = logger or _LOG
    start = time.time()
    logger.info("%s...", msg)
    try:
        yield
    except Exception:
        logger.error("%s... ERROR!", msg)
        raise
    ms_elapsed = 1000 * (time.time() - start)
    logger.info("%s... done [%.0f ms]", msg, ms_elapsed)


# ---------------------------------------------------------------------
# text format
# ---------------------------------------------------------------------

_INITIAL = "# initial state"
_TRANSITIONS = "# transitions"
_EMISSIONS = "# emissions"


def _mk_labeler(labels):
    "code -> string"
    if labels is None:
        return str
    return lambda code: labels[code]


def _mk_decoder(labels, what):
    "string -> code"
    if labels is None:
        def decode(label):
            "parse the integer code"
            try:
                return int(label)
            except ValueError:
                raise IoException("bad {} code: {}".format(what, label))
        return decode
    codes = {label: code for code, label in enumerate(labels)}

    def decode(label):
        "look the label up"
        code = codes.get(label)
        if code is None:
            raise IoException("unknown {}: {}".format(what, label))
        return code
    return decode


def _write_hmm(model, stream, state_label, feature_label):
    S = model.num_states  # pylint: disable=invalid-name
    print(_INITIAL, file=stream)
    initial = model.initial_scores()
    for state in range(S):
        print("{}\t{!r}".format(state_label(state), float(initial[state])),
              file=stream)
    print(_TRANSITIONS, file=stream)
    transitions = model.transition_scores()
    for from_state in range(S):
        for to_state in range(S):
            weight = float(transitions[from_state, to_state])
            print("{} {}\t{!r}".format(state_label(from_state),
                                       state_label(to_state),
                                       weight),
                  file=stream)
    print(_EMISSIONS, file=stream)
    emissions = model.emission_matrix()
    for state, symbol in zip(*emissions.nonzero()):
        print("{} {}\t{!r}".format(state_label(state),
                                   feature_label(symbol),
                                   float(emissions[state, symbol])),
              file=stream)


def save_model(model, stream, state_labels=None, feature_labels=None):
    """
    Write a model in text format

    Parameters
    ----------
    model: Model
    stream: file-like
        text stream to write to
    state_labels: [string], optional
        state label for each state code (sequence models only);
        codes are written as is if None
    feature_labels: [string], optional
        feature label for each feature code
    """
    feature_label = _mk_labeler(feature_labels)
    print("# {} model".format(model.kind.name), file=stream)
    if model.kind is ModelKind.hmm:
        if not isinstance(model, Hmm):
            raise UnsupportedError("saving a {} in text format"
                                   .format(type(model).__name__))
        _write_hmm(model, stream, _mk_labeler(state_labels), feature_label)
    elif model.kind in (ModelKind.dependency, ModelKind.coreference):
        weights = model.weights
        for code in weights.nonzero()[0]:
            weight = float(weights[code])
            print("{}\t{!r}".format(feature_label(code), weight),
                  file=stream)
    elif model.kind is ModelKind.ranking:
        for code, weight in model.weights():
            if weight != 0:
                print("{}\t{!r}".format(feature_label(code), float(weight)),
                      file=stream)
    else:
        raise UnsupportedError("saving a {} model".format(model.kind))


def _parse_line(line, lnum):
    "labels, weight"
    labels, sep, weight = line.rpartition("\t")
    if not sep:
        raise IoException("line {}: expected labels<TAB>weight, got {!r}"
                          .format(lnum, line))
    try:
        return labels, float(weight)
    except ValueError:
        raise IoException("line {}: bad weight {!r}".format(lnum, weight))


def _split_pair(labels, lnum):
    "first label, rest"
    first, sep, rest = labels.partition(" ")
    if not sep:
        raise IoException("line {}: expected two labels, got {!r}"
                          .format(lnum, labels))
    return first, rest


def _read_hmm(lines, state_labels, feature_labels, num_states, num_symbols):
    if num_states is None:
        if state_labels is None:
            raise IoException("need state labels or a number of states")
        num_states = len(state_labels)
    if num_symbols is None:
        if feature_labels is None:
            raise IoException("need feature labels or a number of symbols")
        num_symbols = len(feature_labels)
    state_code = _mk_decoder(state_labels, "state")
    feature_code = _mk_decoder(feature_labels, "feature")
    model = Hmm(num_states, num_symbols)
    section = None
    for lnum, line in lines:
        if line in (_INITIAL, _TRANSITIONS, _EMISSIONS):
            section = line
            continue
        labels, weight = _parse_line(line, lnum)
        if section == _INITIAL:
            model.set_initial(state_code(labels), weight)
        elif section == _TRANSITIONS:
            from_state, to_state = _split_pair(labels, lnum)
            model.set_transition(state_code(from_state),
                                 state_code(to_state), weight)
        elif section == _EMISSIONS:
            state, symbol = _split_pair(labels, lnum)
            model.set_emission(state_code(state), feature_code(symbol),
                               weight)
        else:
            raise IoException("line {}: weight outside of any section"
                              .format(lnum))
    return model


def load_model(stream, state_labels=None, feature_labels=None,
               num_states=None, num_features=None, root=0):
    """
    Read a model written by `save_model`

    Parameters
    ----------
    stream: file-like
    state_labels: [string], optional
        as given to `save_model`
    feature_labels: [string], optional
        as given to `save_model`
    num_states: int, optional
        needed if `state_labels` is None (sequence models)
    num_features: int, optional
        needed if `feature_labels` is None (sequence and graph models)
    root: int, optional
        root mention of coreference models

    Returns
    -------
    model: Model
    """
    lines = [(i + 1, l.rstrip("\n")) for i, l in enumerate(stream)]
    lines = [(i, l) for i, l in lines if l.strip()]
    if not lines:
        raise IoException("empty model file")
    _, header = lines[0]
    kind_name = header[1:].strip().split(" ")[0] if header[:1] == "#" else ""
    try:
        kind = ModelKind[kind_name]
    except KeyError:
        raise IoException("line 1: not a model header: {!r}".format(header))
    lines = lines[1:]

    if kind is ModelKind.hmm:
        return _read_hmm(lines, state_labels, feature_labels,
                         num_states, num_features)
    feature_code = _mk_decoder(feature_labels, "feature")
    if kind is ModelKind.ranking:
        model = RankModel()
    else:
        if num_features is None:
            if feature_labels is None:
                raise IoException("need feature labels or a number of "
                                  "features")
            num_features = len(feature_labels)
        if kind is ModelKind.coreference:
            model = CoreferenceModel(num_features, root=root)
        else:
            model = DependencyModel(num_features)
    for lnum, line in lines:
        label, weight = _parse_line(line, lnum)
        model.set_weight(feature_code(label), weight)
    return model


def save_model_file(model, filename, logger=None, **kwargs):
    """
    Write a model in text format to the given path (see `save_model`
    for the keyword arguments)
    """
    with timed("saving model to {}".format(filename), logger):
        with open(filename, "w") as stream:
            save_model(model, stream, **kwargs)


def load_model_file(filename, logger=None, **kwargs):
    """
    Read a text format model from the given path (see `load_model`
    for the keyword arguments)
    """
    with timed("loading model from {}".format(filename), logger):
        with open(filename) as stream:
            return load_model(stream, **kwargs)


# ---------------------------------------------------------------------
# checkpoints
# ---------------------------------------------------------------------


def save_checkpoint(model, filename):
    """
    Dump a model (in any state) so that it can be reloaded with
    `load_checkpoint`
    """
    joblib.dump(model, filename)


def load_checkpoint(filename):
    """
    Reload a model dumped with `save_checkpoint`
    """
    return joblib.load(filename)
