"""
structlearn.learning tests
"""

import os
import shutil
import tempfile
import unittest

import numpy as np

from ..decoding.rank import RankInference
from ..decoding.viterbi import ViterbiInference
from ..io import load_checkpoint
from ..table import (BranchingOutput, CorefOutput, GraphInput, RankInput,
                     RankOutput, SequenceInput, SequenceOutput)
from ..util import ShapeError, UnsupportedError
from .averaged import (AveragedParameter, AveragedWeights,
                       ParameterError, SparseAveragedWeights)
from .graph import CoreferenceModel, DependencyModel
from .hmm import DualHmm, Hmm
from .perceptron import (DEFAULT_LOSS_ARGS, DEFAULT_PERCEPTRON_ARGS,
                         AwayFromWorsePerceptron,
                         CheckpointListener,
                         DualLossAugmentedPerceptron,
                         LearningRateSchedule,
                         LossArgs,
                         LossAugmentedPerceptron,
                         Perceptron,
                         PerceptronKind,
                         TowardBetterPerceptron,
                         TrainingListener,
                         mk_perceptron)
from .rank import RankModel

# pylint: disable=too-few-public-methods, no-self-use, invalid-name
# pylint: disable=protected-access

STATE_A = 0
STATE_B = 1


def ab_example():
    """
    Three tokens whose middle one is the only one to carry symbol 2,
    labelled A B A
    """
    inputs = SequenceInput.from_codes([[1], [2], [1]], 3, name='aba')
    reference = SequenceOutput([STATE_A, STATE_B, STATE_A])
    return inputs, reference


def separable_examples(num_examples=20, length=5, seed=0):
    """
    Sequences over two states where each token has a symbol equal to
    its state
    """
    rng = np.random.RandomState(seed)
    inputs = []
    references = []
    for i in range(num_examples):
        labels = rng.randint(0, 2, size=length)
        inputs.append(SequenceInput.from_codes([[l] for l in labels], 2,
                                               name='ex{}'.format(i)))
        references.append(SequenceOutput(labels))
    return inputs, references


def hmm_score(model, inputs, labels):
    "score of a labelling under an HMM"
    emissions = model.emission_scores(inputs)
    score = model.initial(labels[0]) + emissions[0, labels[0]]
    for tkn in range(1, len(labels)):
        score += (model.transition(labels[tkn - 1], labels[tkn]) +
                  emissions[tkn, labels[tkn]])
    return score


def mk_args(**kwargs):
    "perceptron args with no shuffling and no averaging by default"
    kwargs.setdefault('shuffle', False)
    kwargs.setdefault('average', False)
    kwargs.setdefault('random_state', 0)
    return DEFAULT_PERCEPTRON_ARGS._replace(**kwargs)


class AveragedParameterTest(unittest.TestCase):
    """
    Lazy averaging of a scalar
    """
    def test_simulation(self):
        "matches the mean of the value held at each iteration"
        rng = np.random.RandomState(3)
        num_iterations = 20
        update_at = set(rng.choice(num_iterations, 6, replace=False))
        param = AveragedParameter()
        param.set(0.5)
        value = 0.5
        history = []
        for iteration in range(num_iterations):
            if iteration in update_at:
                delta = rng.randn()
                param.update(delta)
                # not visible until folded
                self.assertAlmostEqual(param.weight, value)
                param.fold(iteration)
                value += delta
            self.assertAlmostEqual(param.weight, value)
            history.append(value)
        param.average(num_iterations)
        self.assertAlmostEqual(param.weight, np.mean(history))

    def test_untouched(self):
        "a parameter that never changes averages to its value"
        param = AveragedParameter(2.0)
        param.average(7)
        self.assertAlmostEqual(param.weight, 2.0)

    def test_errors(self):
        "no folding back in time or after averaging"
        param = AveragedParameter()
        param.update(1.0)
        param.fold(3)
        param.update(1.0)
        with self.assertRaises(ParameterError):
            param.fold(2)
        param.average(5)
        with self.assertRaises(ParameterError):
            param.fold(6)
        with self.assertRaises(ParameterError):
            param.average(6)
        with self.assertRaises(ParameterError):
            param.set(1.0)


class AveragedWeightsTest(unittest.TestCase):
    """
    Lazy averaging of dense and sparse blocks
    """
    def test_simulation(self):
        "matches the mean of the vectors held at each iteration"
        rng = np.random.RandomState(5)
        size = 6
        num_iterations = 15
        weights = AveragedWeights(size)
        weights.set([0, 3], [1.0, -2.0])
        value = np.zeros(size)
        value[[0, 3]] = [1.0, -2.0]
        history = []
        for iteration in range(num_iterations):
            if rng.rand() < 0.6:
                indices = rng.randint(0, size, size=3)
                deltas = rng.randn(3)
                weights.update(indices, deltas)
                np.add.at(value, indices, deltas)
                self.assertEqual(weights.touched, frozenset(indices.tolist()))
            weights.fold(iteration)
            self.assertEqual(weights.touched, frozenset())
            np.testing.assert_allclose(weights.weight, value)
            history.append(value.copy())
        weights.average(num_iterations)
        np.testing.assert_allclose(weights.weight, np.mean(history, axis=0))
        self.assertTrue(weights.finalized)

    def test_views(self):
        "weights are updated in place"
        weights = AveragedWeights(4)
        view = weights.weight[1:3]
        weights.update_one(2, 3.0)
        weights.fold(0)
        self.assertEqual(view[1], 3.0)
        weights.average(2)
        self.assertEqual(view[1], 3.0)

    def test_errors(self):
        "no folding back in time or after averaging"
        weights = AveragedWeights(3)
        weights.update_one(0, 1.0)
        weights.fold(4)
        weights.update_one(0, 1.0)
        with self.assertRaises(ParameterError):
            weights.fold(2)
        weights = AveragedWeights(3)
        weights.update_one(1, 1.0)
        weights.fold(4)
        with self.assertRaises(ParameterError):
            weights.average(3)
        weights = AveragedWeights(3)
        weights.average(1)
        with self.assertRaises(ParameterError):
            weights.average(1)
        with self.assertRaises(ParameterError):
            weights.set([0], [1.0])

    def test_set_restarts(self):
        "setting a value starts its history over"
        weights = AveragedWeights(3)
        weights.update_one(1, 1.0)
        weights.fold(4)
        weights.update_one(1, 5.0)
        weights.set([1], [2.0])
        self.assertEqual(weights.last[1], 0)
        self.assertEqual(weights.pending[1], 0.0)
        weights.fold(1)
        weights.average(2)
        self.assertAlmostEqual(weights.weight[1], 2.0)

    def test_copy(self):
        "copies are independent"
        weights = AveragedWeights(2)
        weights.update_one(0, 1.0)
        other = weights.copy()
        other.fold(0)
        self.assertEqual(other.weight[0], 1.0)
        self.assertEqual(weights.weight[0], 0.0)
        self.assertEqual(weights.touched, frozenset([0]))

    def test_sparse(self):
        "keyed by anything hashable, zero by default"
        weights = SparseAveragedWeights()
        self.assertEqual(weights.get('x'), 0.0)
        weights.update(('a', 1), 2.0)
        weights.update(('a', 0), 1.0)
        self.assertEqual(weights.get(('a', 1)), 0.0)
        weights.fold(0)
        weights.update(('a', 1), -2.0)
        weights.fold(1)
        self.assertEqual(weights.items(), [(('a', 0), 1.0), (('a', 1), 0.0)])
        self.assertEqual(len(weights), 2)
        self.assertIn(('a', 0), weights)
        weights.average(4)
        self.assertAlmostEqual(weights.get(('a', 0)), 1.0)
        self.assertAlmostEqual(weights.get(('a', 1)), 0.5)
        with self.assertRaises(ParameterError):
            weights.fold(5)
        with self.assertRaises(ParameterError):
            weights.set(('a', 0), 3.0)


class HmmTest(unittest.TestCase):
    """
    Sequence model updates
    """
    def test_update(self):
        "a wrong middle token moves emissions and both transitions"
        inputs, reference = ab_example()
        model = Hmm(2, 3)
        predicted = SequenceOutput([STATE_A, STATE_A, STATE_A])
        loss = model.update(inputs, reference, predicted, 1.0)
        self.assertEqual(loss, 1)
        # pending until summed
        self.assertEqual(model.emission(STATE_B, 2), 0.0)
        model.sum_updates(0)
        self.assertEqual(model.emission(STATE_B, 2), 1.0)
        self.assertEqual(model.emission(STATE_A, 2), -1.0)
        self.assertEqual(model.emission(STATE_A, 1), 0.0)
        self.assertEqual(model.transition(STATE_A, STATE_B), 1.0)
        self.assertEqual(model.transition(STATE_B, STATE_A), 1.0)
        self.assertEqual(model.transition(STATE_A, STATE_A), -2.0)
        self.assertEqual(model.initial(STATE_A), 0.0)

    def test_update_unknown_labels(self):
        "tokens with unknown labels break the chain of transitions"
        inputs, _ = ab_example()
        model = Hmm(2, 3)
        correct = SequenceOutput([STATE_A, -1, STATE_B])
        predicted = SequenceOutput([STATE_B, STATE_A, STATE_A])
        self.assertEqual(model.update(inputs, correct, predicted, 0.5), 2)
        model.sum_updates(0)
        self.assertEqual(model.initial(STATE_A), 0.5)
        self.assertEqual(model.initial(STATE_B), -0.5)
        self.assertEqual(model.emission(STATE_B, 1), 0.0)
        self.assertFalse(model.transition_scores().any())

    def test_shapes(self):
        "mismatched sizes are rejected"
        inputs, reference = ab_example()
        model = Hmm(2, 3)
        with self.assertRaises(ShapeError):
            model.update(inputs, reference, SequenceOutput([0, 1]), 1.0)
        with self.assertRaises(ShapeError):
            Hmm(2, 4).emission_scores(inputs)

    def test_clone(self):
        "clones are independent"
        inputs, reference = ab_example()
        model = Hmm(2, 3)
        clone = model.clone()
        clone.update(inputs, reference, SequenceOutput([1, 1, 1]), 1.0)
        clone.sum_updates(0)
        self.assertEqual(clone.initial(STATE_A), 1.0)
        self.assertEqual(model.initial(STATE_A), 0.0)

    def test_dual(self):
        "dual models need to know the example"
        inputs, reference = ab_example()
        model = DualHmm(2, [inputs])
        with self.assertRaises(UnsupportedError):
            model.update(inputs, reference, SequenceOutput([0, 0, 0]), 1.0)
        predicted = SequenceOutput([STATE_A, STATE_A, STATE_A])
        self.assertEqual(model.update_example(0, inputs, reference,
                                              predicted, 1.0), 1)
        model.sum_updates(0)
        self.assertEqual(model.num_support_vectors, 1)
        self.assertEqual(model.alpha(0, 1, STATE_B), 1.0)
        self.assertEqual(model.alpha(0, 1, STATE_A), -1.0)
        scores = model.emission_scores(inputs)
        np.testing.assert_allclose(scores, [[0, 0], [-1, 1], [0, 0]])


class GraphModelTest(unittest.TestCase):
    """
    Edge factored model updates
    """
    @staticmethod
    def mk_inputs(size, cls=GraphInput):
        "complete graph, one feature per edge"
        codes = {(h, d): [h * size + d]
                 for h in range(size) for d in range(size) if h != d}
        return cls.from_edge_codes(size, codes, size * size)

    def test_dependency_update(self):
        "each wrong head moves two edges"
        inputs = self.mk_inputs(3)
        model = DependencyModel(9)
        loss = model.update(inputs, BranchingOutput([-1, 0, 1]),
                            BranchingOutput([-1, 2, 0]), 1.0)
        self.assertEqual(loss, 2)
        model.sum_updates(0)
        expected = np.zeros(9)
        expected[[1, 5]] = 1
        expected[[7, 2]] = -1
        np.testing.assert_array_equal(model.weights, expected)
        self.assertEqual(model.edge_score(inputs, 0, 1), 1.0)

    def test_dependency_missing_head(self):
        "unattached predictions are logged"
        inputs = self.mk_inputs(3)
        model = DependencyModel(9)
        with self.assertLogs('structlearn.learning.graph', 'WARNING'):
            loss = model.update(inputs, BranchingOutput([-1, 0, 1]),
                                BranchingOutput([-1, -1, 1]), 1.0)
        self.assertEqual(loss, 1)
        model.sum_updates(0)
        self.assertEqual(model.weights[1], 1.0)
        self.assertEqual(model.weights.sum(), 1.0)

    def test_edge_scores(self):
        "missing edges score NaN"
        codes = {(0, 1): [0, 1], (1, 2): [1]}
        inputs = GraphInput.from_edge_codes(3, codes, 2)
        model = DependencyModel(2)
        model.set_weight(0, 2.0)
        model.set_weight(1, -0.5)
        scores = model.edge_scores(inputs)
        self.assertEqual(scores[0, 1], 1.5)
        self.assertEqual(scores[1, 2], -0.5)
        self.assertTrue(np.isnan(scores[2, 1]))
        self.assertTrue(np.isnan(model.edge_score(inputs, 0, 2)))

    def test_coreference_update(self):
        "only edges across clusters or wrongly to the root count"
        inputs = self.mk_inputs(4)
        model = CoreferenceModel(16)
        correct = CorefOutput([-1, 0, 1, 0])
        correct.compute_clustering_from_tree(0)
        predicted = CorefOutput([-1, 0, 0, 2])
        self.assertEqual(model.update(inputs, correct, predicted, 1.0), 2)
        model.sum_updates(0)
        expected = np.zeros(16)
        expected[[6, 3]] = 1
        expected[[2, 11]] = -1
        np.testing.assert_array_equal(model.weights, expected)
        # a different tree over the same clusters is fine
        model = CoreferenceModel(16)
        correct = CorefOutput([-1, 0, 1, 2])
        correct.compute_clustering_from_tree(0)
        predicted = CorefOutput([-1, 0, 3, 1])
        self.assertEqual(model.update(inputs, correct, predicted, 1.0), 0)


class RankModelTest(unittest.TestCase):
    """
    Ranking updates
    """
    def test_update(self):
        "pairwise pushes weighted by the number of misordered items"
        inputs = RankInput.from_codes([[0], [1], [2], [3]], 4)
        model = RankModel()
        correct = RankOutput(np.arange(4), relevant=[0, 2])
        predicted = RankOutput([1, 0, 3, 2])
        self.assertAlmostEqual(model.update(inputs, correct, predicted, 1.0),
                               0.5)
        model.sum_updates(0)
        self.assertEqual(model.weights(),
                         [(0, 1.0), (1, -2.0), (2, 2.0), (3, -1.0)])
        np.testing.assert_allclose(model.item_scores(inputs),
                                   [1, -2, 2, -1])
        self.assertEqual(model.item_score(inputs, 2), 2.0)

    def test_perfect(self):
        "no update when relevant items come first"
        inputs = RankInput.from_codes([[0], [1]], 2)
        model = RankModel()
        correct = RankOutput([0, 1], relevant=[0])
        self.assertEqual(model.update(inputs, correct, correct, 1.0), 0.0)
        model.sum_updates(0)
        self.assertEqual(model.weights(), [])

    def test_training(self):
        "relevant items end up first"
        inputs = RankInput.from_codes([[0, 3], [1, 3], [2]], 4)
        reference = RankOutput([0, 1, 2], relevant=[2])
        trainer = Perceptron(RankInference(), RankModel(),
                             args=mk_args(epochs=3, average=True))
        trainer.train([inputs], [reference])
        output = RankInference().infer(trainer.model, inputs)
        self.assertEqual(output.order[0], 2)


class ScheduleTest(unittest.TestCase):
    """
    Learning rates
    """
    def test_rates(self):
        "learning rate at various iterations"
        self.assertEqual(LearningRateSchedule.constant.rate(2.0, 5), 2.0)
        self.assertEqual(LearningRateSchedule.linear.rate(2.0, 3), 0.5)
        self.assertEqual(LearningRateSchedule.quadratic.rate(1.0, 1), 0.25)
        self.assertEqual(LearningRateSchedule.square_root.rate(2.0, 3), 1.0)

    def test_from_string(self):
        "for the command line"
        self.assertIs(LearningRateSchedule.from_string('square_root'),
                      LearningRateSchedule.square_root)


class PerceptronTest(unittest.TestCase):
    """
    Training loops
    """
    def test_one_example(self):
        "one update is enough to get the A B A example right"
        inputs, reference = ab_example()
        inference = ViterbiInference()
        trainer = Perceptron(inference, Hmm(2, 3),
                             args=mk_args(epochs=1, average=True))
        trainer.train([inputs], [reference])
        self.assertEqual(trainer.iteration, 1)
        self.assertEqual(trainer.history[0].loss, 1)
        self.assertTrue(trainer.model.averaged)
        self.assertEqual(inference.infer(trainer.model, inputs), reference)
        self.assertAlmostEqual(hmm_score(trainer.model, inputs,
                                         reference.labels), 3.0)
        self.assertAlmostEqual(hmm_score(trainer.model, inputs, [0, 0, 0]),
                               -5.0)

    def test_separable(self):
        "separable data is eventually learned without mistakes"
        inputs, references = separable_examples()
        trainer = Perceptron(ViterbiInference(), Hmm(2, 2),
                             args=mk_args(epochs=30, shuffle=True,
                                          average=True))
        trainer.train(inputs, references)
        self.assertEqual(len(trainer.history), 30)
        self.assertEqual(trainer.history[-1].loss, 0)
        self.assertEqual(trainer.iteration, 30 * len(inputs))
        self.assertTrue(trainer.model.averaged)
        report = trainer.report()
        self.assertEqual(len(report.history), 30)

    def test_unseeded_generators(self):
        "unseeded trainers own their generator and leave numpy's alone"
        inputs, references = separable_examples()
        before = np.random.get_state()
        trainers = [Perceptron(ViterbiInference(), Hmm(2, 2),
                               args=mk_args(epochs=3, shuffle=True,
                                            random_state=None))
                    for _ in range(2)]
        self.assertIsNot(trainers[0].rng, trainers[1].rng)
        for trainer in trainers:
            self.assertIsNot(trainer.rng, np.random.mtrand._rand)
            trainer.train(inputs, references)
        after = np.random.get_state()
        self.assertTrue(np.array_equal(before[1], after[1]))
        self.assertEqual(before[2:], after[2:])

    def test_no_average(self):
        "without averaging the model can be trained further"
        inputs, reference = ab_example()
        model = Hmm(2, 3)
        Perceptron(ViterbiInference(), model,
                   args=mk_args(epochs=1)).train([inputs], [reference])
        self.assertFalse(model.averaged)
        trainer = Perceptron(ViterbiInference(), model,
                             args=mk_args(epochs=1, average=True))
        trainer.train([inputs], [reference])
        self.assertTrue(model.averaged)
        with self.assertRaises(ParameterError):
            trainer.train([inputs], [reference])

    def test_mismatched_pool(self):
        "inputs and references go in pairs"
        inputs, _ = ab_example()
        trainer = Perceptron(ViterbiInference(), Hmm(2, 3))
        with self.assertRaises(ShapeError):
            trainer.train([inputs], [])

    def test_partial(self):
        "partial references are completed before updates"
        inputs, _ = ab_example()
        partial = SequenceOutput([STATE_A, -1, STATE_A])
        trainer = Perceptron(ViterbiInference(), Hmm(2, 3),
                             args=mk_args(epochs=2, partial=True))
        trainer.train([inputs], [partial])
        self.assertEqual(trainer.iteration, 2)
        self.assertEqual([s.loss for s in trainer.history], [0, 0])

    def test_listener_stop(self):
        "listeners can cut training short"
        calls = []

        class StopAfterTwo(TrainingListener):
            "stop after the second epoch"
            def before_training(self, trainer):
                calls.append('start')
                return True

            def after_epoch(self, trainer, epoch, loss, iteration):
                calls.append(epoch)
                return epoch < 1

            def after_training(self, trainer, iteration):
                calls.append('end')
                return True

        inputs, references = separable_examples(num_examples=3)
        trainer = Perceptron(ViterbiInference(), Hmm(2, 2),
                             args=mk_args(epochs=10, average=True),
                             listener=StopAfterTwo())
        trainer.train(inputs, references)
        self.assertEqual(calls, ['start', 0, 1, 'end'])
        self.assertEqual(len(trainer.history), 2)
        self.assertEqual(trainer.iteration, 6)
        self.assertTrue(trainer.model.averaged)

    def test_progress_stop(self):
        "progress reports can cut an epoch short"
        class StopNow(TrainingListener):
            "stop at the first report"
            def progress_report(self, trainer, example, iteration):
                return False

        inputs, references = separable_examples(num_examples=4)
        trainer = Perceptron(ViterbiInference(), Hmm(2, 2),
                             args=mk_args(epochs=3, report_every=2),
                             listener=StopNow())
        trainer.train(inputs, references)
        self.assertEqual(len(trainer.history), 1)
        self.assertEqual(trainer.history[0].examples, 2)

    def test_checkpoints(self):
        "one averaged snapshot per epoch"
        tmpdir = tempfile.mkdtemp()
        try:
            pattern = os.path.join(tmpdir, 'model-{epoch}.pkl')
            inputs, references = separable_examples(num_examples=4)
            trainer = Perceptron(ViterbiInference(), Hmm(2, 2),
                                 args=mk_args(epochs=2),
                                 listener=CheckpointListener(pattern))
            trainer.train(inputs, references)
            self.assertFalse(trainer.model.averaged)
            for epoch in range(2):
                snapshot = load_checkpoint(pattern.format(epoch=epoch))
                self.assertIsInstance(snapshot, Hmm)
                self.assertTrue(snapshot.averaged)
        finally:
            shutil.rmtree(tmpdir)


class _Recorder(Perceptron):
    "remembers the examples it is shown"
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.seen = []

    def train_example(self, index, inputs, reference, output):
        self.seen.append(inputs.name)
        return 0.0


class TwoPoolTest(unittest.TestCase):
    """
    Training over a main and a secondary dataset
    """
    @staticmethod
    def mk_pool(prefix, size):
        "single token examples"
        inputs = [SequenceInput.from_codes([[0]], 2,
                                           name='{}{}'.format(prefix, i))
                  for i in range(size)]
        return inputs, [SequenceOutput([0]) for _ in inputs]

    def test_decreasing_weight(self):
        "starts from pool A only and ends with pool B only"
        inputs_a, refs_a = self.mk_pool('a', 5)
        inputs_b, refs_b = self.mk_pool('b', 3)
        trainer = _Recorder(ViterbiInference(), Hmm(2, 2),
                            args=mk_args(epochs=3, shuffle=True))
        trainer.train_two_pools(inputs_a, refs_a, inputs_b, refs_b,
                                0.0, weight_step=0.5)
        self.assertEqual(len(trainer.seen), 15)
        self.assertTrue(all(n.startswith('a') for n in trainer.seen[:5]))
        self.assertTrue(all(n.startswith('b') for n in trainer.seen[10:]))
        self.assertEqual([s.examples for s in trainer.history], [5, 5, 5])

    def test_cyclic(self):
        "without shuffling each pool is visited in order"
        inputs_a, refs_a = self.mk_pool('a', 3)
        inputs_b, refs_b = self.mk_pool('b', 2)
        trainer = _Recorder(ViterbiInference(), Hmm(2, 2),
                            args=mk_args(epochs=2))
        trainer.train_two_pools(inputs_a, refs_a, inputs_b, refs_b, 1.0)
        self.assertEqual(trainer.seen, ['a0', 'a1', 'a2'] * 2)

    def test_errors(self):
        "empty or mismatched pools"
        inputs_a, refs_a = self.mk_pool('a', 3)
        trainer = Perceptron(ViterbiInference(), Hmm(2, 2))
        with self.assertRaises(ValueError):
            trainer.train_two_pools(inputs_a, refs_a, [], [], 0.5)
        with self.assertRaises(ShapeError):
            trainer.train_two_pools(inputs_a, refs_a[:1],
                                    inputs_a, refs_a, 0.5)


class LossAugmentedTest(unittest.TestCase):
    """
    Variants of the perceptron relying on loss augmented inference
    """
    def test_loss_augmented(self):
        "learns the example with a margin"
        inputs, reference = ab_example()
        inference = ViterbiInference()
        trainer = LossAugmentedPerceptron(inference, Hmm(2, 3),
                                          args=mk_args(epochs=5))
        trainer.train([inputs], [reference])
        self.assertEqual(trainer.history[0].loss, 3)
        self.assertEqual(trainer.history[-1].loss, 0)
        self.assertEqual(inference.infer(trainer.model, inputs), reference)

    def test_weight_steps(self):
        "loss weights move after each epoch and stay in range"
        inputs, reference = ab_example()
        loss_args = LossArgs(weight=1.0, weight_step=-0.4,
                             non_annotated_weight=0.0,
                             non_annotated_weight_step=0.5)
        trainer = LossAugmentedPerceptron(ViterbiInference(), Hmm(2, 3),
                                          args=mk_args(epochs=1),
                                          loss_args=loss_args)
        self.assertTrue(trainer.split_weights)
        trainer.train([inputs], [reference])
        self.assertAlmostEqual(trainer.loss_weight, 0.6)
        self.assertAlmostEqual(trainer.non_annotated_weight, 0.5)
        trainer.end_epoch()
        self.assertAlmostEqual(trainer.loss_weight, 0.2)
        self.assertAlmostEqual(trainer.non_annotated_weight, 0.2)
        trainer.end_epoch()
        self.assertEqual(trainer.loss_weight, 0.0)
        self.assertEqual(trainer.non_annotated_weight, 0.0)

    def test_toward_better(self):
        "the first update goes toward the reference"
        inputs, reference = ab_example()
        inference = ViterbiInference()
        trainer = TowardBetterPerceptron(inference, Hmm(2, 3),
                                         args=mk_args(epochs=1))
        trainer.train([inputs], [reference])
        self.assertEqual(trainer.iteration, 1)
        self.assertEqual(inference.infer(trainer.model, inputs), reference)

    def test_away_from_worse(self):
        "the worst structure falls behind the prediction"
        inputs, reference = ab_example()
        worst = [STATE_B, STATE_A, STATE_B]
        plain = [STATE_A, STATE_A, STATE_A]
        trainer = AwayFromWorsePerceptron(ViterbiInference(), Hmm(2, 3),
                                          args=mk_args(epochs=1))
        trainer.train([inputs], [reference])
        model = trainer.model
        self.assertGreater(hmm_score(model, inputs, plain),
                           hmm_score(model, inputs, worst))

    def test_dual(self):
        "dual training of separable data"
        inputs, references = separable_examples()
        loss_args = DEFAULT_LOSS_ARGS._replace(weight=0.0)
        model = DualHmm(2, inputs)
        trainer = DualLossAugmentedPerceptron(
            ViterbiInference(), model,
            args=mk_args(epochs=30, shuffle=True, average=True),
            loss_args=loss_args)
        trainer.train(inputs, references)
        self.assertEqual(trainer.history[-1].loss, 0)
        self.assertGreater(model.num_support_vectors, 0)
        self.assertTrue(model.averaged)

    def test_dual_unsupported(self):
        "dual training needs a dual model, and one pool"
        inputs, references = separable_examples(num_examples=2)
        with self.assertRaises(UnsupportedError):
            DualLossAugmentedPerceptron(ViterbiInference(), Hmm(2, 2))
        trainer = DualLossAugmentedPerceptron(ViterbiInference(),
                                              DualHmm(2, inputs))
        with self.assertRaises(UnsupportedError):
            trainer.train_two_pools(inputs, references,
                                    inputs, references, 0.5)

    def test_mk_perceptron(self):
        "one learner per kind"
        inference = ViterbiInference()
        expected = {PerceptronKind.plain: Perceptron,
                    PerceptronKind.loss_augmented: LossAugmentedPerceptron,
                    PerceptronKind.toward_better: TowardBetterPerceptron,
                    PerceptronKind.away_from_worse: AwayFromWorsePerceptron}
        for kind, cls in expected.items():
            trainer = mk_perceptron(kind, inference, Hmm(2, 2))
            self.assertIs(type(trainer), cls)
        inputs, _ = separable_examples(num_examples=1)
        trainer = mk_perceptron(PerceptronKind.dual, inference,
                                DualHmm(2, inputs))
        self.assertIsInstance(trainer, DualLossAugmentedPerceptron)
