"""
Lazily averaged perceptron parameters.

An averaged perceptron reports the mean of the weights it held at
every iteration. Rather than adding the whole weight vector to a sum
after each example, each parameter keeps the time integral of its
value up to the last iteration it was touched, and pending updates are
folded into it only for the parameters touched during an example.

Two representations are provided: `AveragedParameter`, a single scalar
(for sparse models keyed by feature code), and `AveragedWeights`, an
arena of parameters stored as numpy arrays along with the set of
indices touched since the last fold (for dense models).
"""

import numpy as np


class ParameterError(Exception):
    """
    Averaged parameters were folded out of order or after being
    averaged
    """
    def __init__(self, msg):
        super().__init__(msg)


class AveragedParameter(object):
    """
    A single averaged weight

    Attributes
    ----------
    weight: float
        current value, read by inference
    pending: float
        updates made during the current iteration, not yet visible
    total: float
        sum of `weight` over iterations `[0, last]`
    last: int
        last iteration folded in
    """
    __slots__ = ('weight', 'pending', 'total', 'last', 'finalized')

    def __init__(self, value=0.0):
        self.weight = value
        self.pending = 0.0
        self.total = value
        self.last = 0
        self.finalized = False

    def set(self, value):
        """
        Initial value, held since iteration 0 (only meant for
        initialization, before training starts)
        """
        if self.finalized:
            raise ParameterError("cannot set an averaged parameter")
        self.weight = value
        self.total = value
        self.pending = 0.0
        self.last = 0

    def update(self, delta):
        "add to the pending update"
        self.pending += delta

    def fold(self, iteration):
        """
        Integrate `weight` up to `iteration` and make the pending
        update visible (it counts as the value of this iteration)
        """
        if self.finalized:
            raise ParameterError("cannot fold an averaged parameter")
        if iteration < self.last:
            oops = "folding iteration {} after iteration {}"
            raise ParameterError(oops.format(iteration, self.last))
        self.total += self.weight * (iteration - self.last) + self.pending
        self.weight += self.pending
        self.pending = 0.0
        self.last = iteration

    def average(self, num_iterations):
        """
        Replace the weight with its mean over iterations
        `[0, num_iterations)`. Only valid once
        """
        self.fold(num_iterations - 1)
        self.weight = self.total / num_iterations
        self.finalized = True

    def copy(self):
        "independent copy"
        res = AveragedParameter()
        for slot in self.__slots__:
            setattr(res, slot, getattr(self, slot))
        return res

    def __repr__(self):
        return 'AveragedParameter({})'.format(self.weight)


class AveragedWeights(object):
    """
    A dense block of averaged parameters

    Parameters
    ----------
    size: int
        number of parameters

    Attributes
    ----------
    weight: array(float)
        current values, read by inference (modified in place so that
        views into it stay valid)
    """
    def __init__(self, size):
        self.weight = np.zeros(size)
        self.pending = np.zeros(size)
        self.total = np.zeros(size)
        self.last = np.zeros(size, dtype=np.int64)
        self.finalized = False
        self._touched = set()

    def __len__(self):
        return len(self.weight)

    @property
    def touched(self):
        "indices updated since the last fold"
        return frozenset(self._touched)

    def set(self, indices, values):
        """
        Initial values, held since iteration 0 (only meant for
        initialization, before training starts)
        """
        if self.finalized:
            raise ParameterError("cannot set averaged weights")
        self.weight[indices] = values
        self.total[indices] = values
        self.pending[indices] = 0.0
        self.last[indices] = 0

    def update(self, indices, deltas):
        """
        Add to the pending update of the given parameters (repeated
        indices accumulate)
        """
        indices = np.asarray(indices, dtype=np.intp)
        np.add.at(self.pending, indices, deltas)
        self._touched.update(indices.tolist())

    def update_one(self, index, delta):
        "add to the pending update of a single parameter"
        self.pending[index] += delta
        self._touched.add(int(index))

    def fold(self, iteration):
        """
        Fold the pending updates of every touched parameter, at the
        given iteration
        """
        if self.finalized:
            raise ParameterError("cannot fold averaged weights")
        if not self._touched:
            return
        idx = np.fromiter(self._touched, dtype=np.intp,
                          count=len(self._touched))
        if iteration < self.last[idx].max():
            oops = "folding iteration {} after iteration {}"
            raise ParameterError(oops.format(iteration,
                                             self.last[idx].max()))
        self.total[idx] += (self.weight[idx] * (iteration - self.last[idx]) +
                            self.pending[idx])
        self.weight[idx] += self.pending[idx]
        self.pending[idx] = 0.0
        self.last[idx] = iteration
        self._touched.clear()

    def average(self, num_iterations):
        """
        Replace every weight with its mean over iterations
        `[0, num_iterations)`. Only valid once
        """
        self.fold(num_iterations - 1)
        end = num_iterations - 1
        if np.any(self.last > end):
            raise ParameterError("averaging over fewer iterations than "
                                 "were folded")
        self.total += self.weight * (end - self.last)
        self.last[:] = end
        self.weight[:] = self.total / num_iterations
        self.finalized = True

    def copy(self):
        "independent copy"
        res = AveragedWeights(0)
        res.weight = self.weight.copy()
        res.pending = self.pending.copy()
        res.total = self.total.copy()
        res.last = self.last.copy()
        res.finalized = self.finalized
        res._touched = set(self._touched)  # pylint: disable=protected-access
        return res


class SparseAveragedWeights(object):
    """
    Averaged parameters keyed by arbitrary hashable codes, created on
    first update. Untouched codes weigh 0
    """
    def __init__(self):
        self._params = {}
        self._touched = set()
        self.finalized = False

    def __len__(self):
        return len(self._params)

    def __contains__(self, code):
        return code in self._params

    def get(self, code):
        "current weight of a code"
        param = self._params.get(code)
        return 0.0 if param is None else param.weight

    def items(self):
        "(code, weight) pairs in code order"
        return [(code, self._params[code].weight)
                for code in sorted(self._params)]

    def set(self, code, value):
        "initial value of a code (only meant for initialization)"
        if self.finalized:
            raise ParameterError("cannot set averaged weights")
        self._param(code).set(value)

    def update(self, code, delta):
        "add to the pending update of a code"
        self._param(code).update(delta)
        self._touched.add(code)

    def fold(self, iteration):
        "fold the touched parameters"
        if self.finalized:
            raise ParameterError("cannot fold averaged weights")
        for code in self._touched:
            self._params[code].fold(iteration)
        self._touched.clear()

    def average(self, num_iterations):
        "average every parameter. Only valid once"
        if self.finalized:
            raise ParameterError("weights were already averaged")
        for param in self._params.values():
            param.average(num_iterations)
        self._touched.clear()
        self.finalized = True

    def copy(self):
        "independent copy"
        res = SparseAveragedWeights()
        # pylint: disable=protected-access
        res._params = {k: v.copy() for k, v in self._params.items()}
        res._touched = set(self._touched)
        # pylint: enable=protected-access
        res.finalized = self.finalized
        return res

    def _param(self, code):
        param = self._params.get(code)
        if param is None:
            param = AveragedParameter()
            self._params[code] = param
        return param
