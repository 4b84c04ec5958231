'''
General-purpose classes and functions
'''

from argparse import ArgumentTypeError
import enum

import numpy as np
from sklearn.utils import check_random_state

# pylint: disable=too-few-public-methods


class ShapeError(ValueError):
    """
    Structures of mismatched sizes were combined (eg. a reference and
    a prediction for sequences of different lengths)
    """
    def __init__(self, msg):
        super().__init__(msg)


class ArgparserEnum(enum.Enum):
    '''
    An enumeration whose values we spit out as choices to argparser
    '''
    @classmethod
    def choices_str(cls):
        "available choices in this enumeration"
        return ",".join(sorted(x.name for x in cls))

    @classmethod
    def help_suffix(cls, default):
        "help text suffix showing choices and default"
        if default is None:
            template = "(choices: {{{choices}}})"
            return template.format(choices=cls.choices_str())
        else:
            template = "(choices: {{{choices}}}, default: {default})"
            return template.format(choices=cls.choices_str(),
                                   default=default.name)

    @classmethod
    def from_string(cls, string):
        "from command line arg"
        names = {x.name: x for x in cls}
        value = names.get(string)
        if value is not None:
            return value
        else:
            oops = "invalid choice: {}, choose from {}"
            raise ArgumentTypeError(oops.format(string, cls.choices_str()))


def mk_rng(seed=None):
    """
    Return a numpy random number generator

    Parameters
    ----------
    seed: None, int or RandomState
        an int gives a fresh generator hard-seeded with it, an existing
        generator is returned as is; None gives a fresh generator seeded
        from the operating system (never the numpy global one)
    """
    if seed is None:
        return np.random.RandomState()
    return check_random_state(seed)


def shuffled_indices(size, rng):
    """
    Return a Fisher-Yates permutation of `range(size)` drawn from
    the given generator
    """
    order = list(range(size))
    for i in range(size - 1, 0, -1):
        j = rng.randint(0, i + 1)
        order[i], order[j] = order[j], order[i]
    return order


class UnsupportedError(NotImplementedError):
    """
    A combination of model, inference and training options that is
    not supported
    """
    def __init__(self, msg):
        super().__init__(msg + " is not supported")
