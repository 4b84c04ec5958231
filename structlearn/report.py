"""
Training reports
"""

from collections import namedtuple

from tabulate import tabulate

# pylint: disable=too-few-public-methods


def _sloppy_div(num, den):
    """
    Divide by denominator unless it's zero, in which case just return 0
    """
    return (num / float(den)) if den > 0 else 0


class EpochStats(namedtuple('EpochStats',
                            'epoch loss examples iterations seconds')):
    """
    What happened during one training epoch

    Parameters
    ----------
    epoch: int
    loss: float
        total loss over the epoch
    examples: int
        number of examples seen
    iterations: int
        value of the global iteration counter at the end of the epoch
    seconds: float
        wall time
    """
    @property
    def mean_loss(self):
        "loss per example"
        return _sloppy_div(self.loss, self.examples)

    def table_row(self):
        "Stats as a tabulate table row"
        return [self.epoch, self.loss, self.mean_loss,
                self.examples, self.iterations, self.seconds]

    @staticmethod
    def table_header():
        "Header for tabulate tables of epoch stats"
        return ["epoch", "loss", "loss/ex", "examples", "iterations",
                "time (s)"]


class TrainingReport(object):
    """
    Loss over the epochs of a training run
    """
    def __init__(self, history):
        self.history = list(history)

    def table(self, main_header=None):
        """
        2D tabular output
        """
        headers = EpochStats.table_header()
        if main_header:
            headers[0] = main_header
        rows = [stats.table_row() for stats in self.history]
        return tabulate(rows, headers=headers, floatfmt=".3f")

    def for_json(self):
        """
        JSON-friendly list of dicts
        """
        return [dict(stats._asdict(), mean_loss=stats.mean_loss)
                for stats in self.history]
