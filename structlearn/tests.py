"""
structlearn tests
"""

from argparse import ArgumentParser
import io
import os
import shutil
import tempfile
import unittest

import numpy as np

from .args import (add_loss_args, add_model_args, add_perceptron_args,
                   args_to_inference, args_to_loss_args,
                   args_to_perceptron_args, validate_training_args)
from .decoding.coref import CoreferenceInference
from .decoding.mst import MaximumBranchingInference
from .decoding.rank import RankInference
from .decoding.viterbi import ViterbiInference
from .disjoint import DisjointSets
from .io import (IoException, load_checkpoint, load_model, load_model_file,
                 save_checkpoint, save_model, save_model_file)
from .learning.graph import CoreferenceModel, DependencyModel
from .learning.hmm import DualHmm, Hmm
from .learning.interface import ModelKind
from .learning.perceptron import (LearningRateSchedule, PerceptronKind,
                                  mk_perceptron)
from .learning.rank import RankModel
from .report import EpochStats, TrainingReport
from .table import (CorefOutput, RankOutput, SequenceInput,
                    SequenceOutput, codes_to_matrix)
from .util import ShapeError, UnsupportedError, mk_rng, shuffled_indices

# pylint: disable=too-few-public-methods, no-self-use, invalid-name


class DisjointSetsTest(unittest.TestCase):
    """
    Union-find
    """
    def test_union(self):
        "merging sets"
        sets = DisjointSets(6)
        self.assertEqual(sets.groups(), [[0], [1], [2], [3], [4], [5]])
        self.assertEqual(sets.union_elements(1, 3), 1)
        sets.union_elements(3, 5)
        sets.union_elements(0, 4)
        self.assertTrue(sets.same_set(1, 5))
        self.assertFalse(sets.same_set(0, 5))
        self.assertEqual(sets.find(5), 1)
        self.assertEqual(sets.groups(), [[0, 4], [1, 3, 5], [2]])
        sets.union(sets.find(2), sets.find(0))
        self.assertEqual(sets.find(4), 2)

    def test_copy(self):
        "copies, resets and overwrites"
        sets = DisjointSets(4)
        sets.union_elements(0, 1)
        other = sets.copy()
        other.union_elements(2, 3)
        self.assertEqual(sets.groups(), [[0, 1], [2], [3]])
        sets.set_equal_to(other)
        self.assertEqual(sets.groups(), [[0, 1], [2, 3]])
        sets.clear()
        self.assertEqual(len(sets.groups()), 4)
        with self.assertRaises(ShapeError):
            sets.set_equal_to(DisjointSets(3))


class TableTest(unittest.TestCase):
    """
    Inputs and outputs
    """
    def test_codes(self):
        "feature codes to sparse matrix"
        matrix = codes_to_matrix([[0, 2, 2], [], [1]], 3)
        np.testing.assert_array_equal(matrix.toarray(),
                                      [[1, 0, 2], [0, 0, 0], [0, 1, 0]])
        with self.assertRaises(ShapeError):
            codes_to_matrix([[3]], 3)

    def test_sequence(self):
        "blank outputs match their input"
        inputs = SequenceInput.from_codes([[0], [1]], 2, name='x')
        output = inputs.create_output()
        self.assertEqual(output.size, 2)
        self.assertFalse(output.is_annotated(0))
        copy = output.copy()
        copy.labels[0] = 1
        self.assertNotEqual(copy, output)
        self.assertEqual(output, SequenceOutput([-1, -1]))

    def test_coref_clustering(self):
        "clusters are the subtrees below the root"
        output = CorefOutput([-1, 0, 1, 0, 3, 0])
        output.compute_clustering_from_tree(0)
        self.assertEqual(output.clustering.groups(),
                         [[0], [1, 2], [3, 4], [5]])
        self.assertTrue(output.same_cluster(3, 4))
        self.assertEqual(output, output.copy())
        reference = CorefOutput.from_clusters(6, [[1, 2], [3, 4]])
        self.assertEqual(reference.clustering.groups(),
                         output.clustering.groups())
        with self.assertRaises(ShapeError):
            CorefOutput([-1, 0], DisjointSets(3))

    def test_average_precision(self):
        "ranking quality"
        self.assertEqual(RankOutput([0, 1, 2], relevant=[0]
                                    ).average_precision(), 1.0)
        self.assertAlmostEqual(RankOutput([1, 0, 3, 2], relevant=[0, 2]
                                          ).average_precision(), 0.5)
        self.assertEqual(RankOutput([0, 1]).average_precision(), 1.0)


class UtilTest(unittest.TestCase):
    """
    Odds and ends
    """
    def test_shuffle(self):
        "seeded permutations"
        order = shuffled_indices(10, mk_rng(3))
        self.assertEqual(sorted(order), list(range(10)))
        self.assertEqual(order, shuffled_indices(10, mk_rng(3)))

    def test_unseeded_rng(self):
        "unseeded generators are fresh and leave numpy's global state alone"
        before = np.random.get_state()
        rng1 = mk_rng()
        rng2 = mk_rng(None)
        self.assertIsNot(rng1, np.random.mtrand._rand)
        self.assertIsNot(rng1, rng2)
        shuffled_indices(10, rng1)
        after = np.random.get_state()
        self.assertEqual(before[0], after[0])
        self.assertTrue(np.array_equal(before[1], after[1]))
        self.assertEqual(before[2:], after[2:])

    def test_unsupported(self):
        "unsupported features are also not implemented"
        with self.assertRaises(NotImplementedError):
            raise UnsupportedError("that")


class TextModelTest(unittest.TestCase):
    """
    Saving and loading models in text format
    """
    @staticmethod
    def roundtrip(model, **kwargs):
        "save without labels, then load with the given arguments"
        stream = io.StringIO()
        save_model(model, stream)
        stream.seek(0)
        return load_model(stream, **kwargs)

    def test_hmm(self):
        "weights survive with and without labels"
        model = Hmm(2, 3)
        model.set_initial(1, 0.25)
        model.set_transition(0, 1, -1.5)
        model.set_emission(1, 2, 3.0)
        model.set_emission(0, 0, 1e-8)
        stream = io.StringIO()
        save_model(model, stream, state_labels=['N', 'V'],
                   feature_labels=['the', 'dog', 'runs'])
        text = stream.getvalue()
        self.assertTrue(text.startswith('# hmm model\n'))
        self.assertIn('N V\t-1.5\n', text)
        self.assertIn('V runs\t3.0\n', text)
        self.assertNotIn('N dog', text)
        stream.seek(0)
        loaded = load_model(stream, state_labels=['N', 'V'],
                            feature_labels=['the', 'dog', 'runs'])
        for other in [loaded, self.roundtrip(model, num_states=2,
                                             num_features=3)]:
            self.assertIsInstance(other, Hmm)
            np.testing.assert_array_equal(other.initial_scores(),
                                          model.initial_scores())
            np.testing.assert_array_equal(other.transition_scores(),
                                          model.transition_scores())
            np.testing.assert_array_equal(other.emission_matrix(),
                                          model.emission_matrix())

    def test_graph(self):
        "dependency and coreference models"
        for cls in [DependencyModel, CoreferenceModel]:
            model = cls(4)
            model.set_weight(1, 2.5)
            model.set_weight(3, -0.125)
            loaded = self.roundtrip(model, num_features=4)
            self.assertIs(type(loaded), cls)
            np.testing.assert_array_equal(loaded.weights, model.weights)

    def test_ranking(self):
        "sparse weights"
        model = RankModel()
        model.set_weight(7, 0.5)
        model.set_weight(2, -1.0)
        loaded = self.roundtrip(model)
        self.assertEqual(loaded.weights(), model.weights())

    def test_bad_files(self):
        "malformed input"
        with self.assertRaises(IoException):
            load_model(io.StringIO(""))
        with self.assertRaises(IoException):
            load_model(io.StringIO("# tree model\n"))
        with self.assertRaises(IoException):
            load_model(io.StringIO("# ranking model\n3 4\n"))
        with self.assertRaises(IoException):
            load_model(io.StringIO("# ranking model\nfoo\t1.0\n"))
        with self.assertRaises(IoException):
            load_model(io.StringIO("# hmm model\n0\t1.0\n"),
                       num_states=1, num_features=1)
        with self.assertRaises(IoException):
            load_model(io.StringIO("# dependency model\n"))

    def test_dual(self):
        "dual models have no text format"
        inputs = SequenceInput.from_codes([[0]], 1)
        with self.assertRaises(UnsupportedError):
            save_model(DualHmm(1, [inputs]), io.StringIO())


class FileTest(unittest.TestCase):
    """
    Files and checkpoints
    """
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_text_file(self):
        "save and load through a path"
        path = os.path.join(self.tmpdir, 'model.txt')
        model = RankModel()
        model.set_weight(0, 1.0)
        save_model_file(model, path)
        self.assertEqual(load_model_file(path).weights(), [(0, 1.0)])

    def test_file_logging(self):
        "saving and loading are announced on the module logger"
        path = os.path.join(self.tmpdir, 'model.txt')
        model = RankModel()
        with self.assertLogs('structlearn.io', level='INFO') as logs:
            save_model_file(model, path)
        self.assertIn('saving model to ' + path, logs.output[0])
        self.assertIn('done', logs.output[-1])
        missing = os.path.join(self.tmpdir, 'missing.txt')
        with self.assertLogs('structlearn.io', level='INFO') as logs:
            with self.assertRaises(IOError):
                load_model_file(missing)
        self.assertIn('ERROR!', logs.output[-1])

    def test_checkpoint(self):
        "checkpoints keep the training state"
        path = os.path.join(self.tmpdir, 'model.pkl')
        model = Hmm(2, 2)
        model.set_initial(0, 1.0)
        model._emissions.update_one(1, 2.0)  # pylint: disable=protected-access
        save_checkpoint(model, path)
        loaded = load_checkpoint(path)
        self.assertEqual(loaded.initial(0), 1.0)
        loaded.sum_updates(0)
        self.assertEqual(loaded.emission(0, 1), 2.0)


class ArgsTest(unittest.TestCase):
    """
    Command line arguments
    """
    @staticmethod
    def parse(argv):
        "parse with every argument group"
        psr = ArgumentParser()
        add_model_args(psr)
        add_perceptron_args(psr)
        add_loss_args(psr)
        return psr.parse_args(argv)

    def test_defaults(self):
        "default configuration"
        args = self.parse([])
        self.assertIs(args.model, ModelKind.hmm)
        self.assertIs(args.perceptron, PerceptronKind.plain)
        pargs = args_to_perceptron_args(args)
        self.assertEqual(pargs.epochs, 10)
        self.assertTrue(pargs.average)
        self.assertTrue(pargs.shuffle)
        self.assertIsNone(pargs.random_state)
        self.assertEqual(args_to_loss_args(args).non_annotated_weight, -1.0)
        self.assertIsInstance(args_to_inference(args), ViterbiInference)

    def test_options(self):
        "options end up in the configuration"
        args = self.parse(['--model', 'coreference',
                           '--perceptron', 'loss_augmented',
                           '--epochs', '3',
                           '--schedule', 'linear',
                           '--seed', '12',
                           '--no-shuffle', '--no-average',
                           '--loss-weight', '2.0',
                           '--root-loss-factor', '0.5'])
        pargs = args_to_perceptron_args(args)
        self.assertEqual(pargs.epochs, 3)
        self.assertIs(pargs.schedule, LearningRateSchedule.linear)
        self.assertEqual(pargs.random_state, 12)
        self.assertFalse(pargs.shuffle)
        self.assertFalse(pargs.average)
        self.assertEqual(args_to_loss_args(args).weight, 2.0)
        inference = args_to_inference(args)
        self.assertIsInstance(inference, CoreferenceInference)
        self.assertEqual(inference.root_loss_factor, 0.5)
        self.assertIsInstance(args_to_inference(self.parse(['-m',
                                                            'dependency'])),
                              MaximumBranchingInference)
        self.assertIsInstance(args_to_inference(self.parse(['-m',
                                                            'ranking'])),
                              RankInference)

    def test_bad_choice(self):
        "unknown enumeration values are rejected by argparse"
        with self.assertRaises(SystemExit):
            self.parse(['--schedule', 'cubic'])

    def test_validation(self):
        "inconsistent options are fatal"
        @validate_training_args
        def main(args):
            "accept"
            return args

        args = self.parse(['--epochs', '2'])
        self.assertIs(main(args), args)
        self.assertEqual(main(self.parse(['--sentinel=-2'])).sentinel, -2)
        for argv in [['--learning-rate', '0'],
                     ['--sentinel', '0'],
                     ['--perceptron', 'dual', '--model', 'ranking'],
                     ['--loss-weight', '0.5',
                      '--non-annotated-weight', '1.0']]:
            with self.assertRaises(SystemExit):
                main(self.parse(argv))


class ReportTest(unittest.TestCase):
    """
    Training reports
    """
    def test_table(self):
        "one row per epoch"
        history = [EpochStats(0, 4.0, 2, 2, 0.5),
                   EpochStats(1, 0.0, 0, 2, 0.25)]
        self.assertEqual(history[0].mean_loss, 2.0)
        self.assertEqual(history[1].mean_loss, 0)
        report = TrainingReport(history)
        table = report.table(main_header='pass')
        self.assertIn('pass', table.splitlines()[0])
        self.assertIn('loss/ex', table.splitlines()[0])
        self.assertEqual(len(table.splitlines()), 4)
        self.assertEqual(report.for_json()[0]['mean_loss'], 2.0)


class EndToEndTest(unittest.TestCase):
    """
    From command line arguments to a saved model
    """
    def test_training(self):
        "train a sequence labeller and reload it"
        args = ArgsTest.parse(['--epochs', '2', '--seed', '1',
                               '--perceptron', 'loss_augmented'])
        inference = args_to_inference(args)
        model = Hmm(2, 3)
        trainer = mk_perceptron(args.perceptron, inference, model,
                                args=args_to_perceptron_args(args),
                                loss_args=args_to_loss_args(args))
        inputs = SequenceInput.from_codes([[1], [2], [1]], 3)
        reference = SequenceOutput([0, 1, 0])
        trainer.train([inputs], [reference])
        self.assertTrue(model.averaged)
        self.assertEqual(inference.infer(model, inputs), reference)

        stream = io.StringIO()
        save_model(model, stream)
        stream.seek(0)
        loaded = load_model(stream, num_states=2, num_features=3)
        self.assertEqual(inference.infer(loaded, inputs), reference)
