"""
structlearn.decoding tests
"""

import itertools
import logging
import unittest

import numpy as np

from ..learning.graph import CoreferenceModel, DependencyModel
from ..learning.hmm import Hmm
from ..learning.rank import RankModel
from ..table import (CorefInput, CorefOutput, GraphInput,
                     BranchingOutput, RankInput, RankOutput,
                     SequenceInput, SequenceOutput)
from ..util import UnsupportedError
from .coref import CoreferenceInference
from .mst import MaximumBranching, MaximumBranchingInference
from .rank import RankInference
from .util import DecoderException
from .viterbi import ViterbiInference

# pylint: disable=too-few-public-methods, no-self-use, invalid-name


def mk_random_hmm(rng, num_states, num_symbols):
    """
    HMM with random weights everywhere
    """
    model = Hmm(num_states, num_symbols)
    for s in range(num_states):
        model.set_initial(s, rng.randn())
        for s2 in range(num_states):
            model.set_transition(s, s2, rng.randn())
        for sym in range(num_symbols):
            model.set_emission(s, sym, rng.randn())
    return model


def mk_random_sequence(rng, length, num_symbols):
    """
    Sequence of tokens with one or two random features each
    """
    tokens = [list(rng.randint(0, num_symbols, size=rng.randint(1, 3)))
              for _ in range(length)]
    return SequenceInput.from_codes(tokens, num_symbols)


def path_score(model, emissions, labels):
    """
    Score of a label sequence given an array of emission scores
    """
    score = model.initial(labels[0]) + emissions[0, labels[0]]
    for tkn in range(1, len(labels)):
        score += (model.transition(labels[tkn - 1], labels[tkn]) +
                  emissions[tkn, labels[tkn]])
    return score


def brute_force_viterbi(model, emissions, fixed=None):
    """
    Best score over all label sequences (agreeing with the non
    negative entries of `fixed`, if given)
    """
    length, num_states = emissions.shape
    best = -np.inf
    for labels in itertools.product(range(num_states), repeat=length):
        if fixed is not None and any(f >= 0 and f != l
                                     for f, l in zip(fixed, labels)):
            continue
        best = max(best, path_score(model, emissions, labels))
    return best


def is_branching(heads):
    """
    True if following heads from any node never loops
    """
    size = len(heads)
    for node in range(size):
        steps = 0
        while heads[node] >= 0:
            node = heads[node]
            steps += 1
            if steps > size:
                return False
    return True


def brute_force_branching(graph):
    """
    Weight of the best spanning arborescence (exactly one root) of a
    graph, by enumerating every head assignment
    """
    size = graph.shape[0]
    choices = []
    for dep in range(size):
        heads = [-1] + [h for h in range(size)
                        if h != dep and not np.isnan(graph[h, dep])]
        choices.append(heads)
    best = -np.inf
    for heads in itertools.product(*choices):
        if heads.count(-1) != 1 or not is_branching(heads):
            continue
        weight = sum(graph[h, d] for d, h in enumerate(heads) if h >= 0)
        best = max(best, weight)
    return best


def random_graph(rng, size):
    """
    Complete graph with distinct weights (some negative)
    """
    weights = rng.permutation(size * size).astype(float) - size
    weights += rng.rand(size * size) * 0.1
    graph = weights.reshape((size, size))
    np.fill_diagonal(graph, np.nan)
    return graph


class ViterbiTest(unittest.TestCase):
    """
    Sequence labelling
    """
    def setUp(self):
        self.rng = np.random.RandomState(42)

    def test_brute_force(self):
        "viterbi finds the best scoring path"
        inference = ViterbiInference()
        for num_states in range(1, 5):
            for length in range(1, 7):
                model = mk_random_hmm(self.rng, num_states, 5)
                inputs = mk_random_sequence(self.rng, length, 5)
                output = inference.infer(model, inputs)
                emissions = model.emission_scores(inputs)
                self.assertEqual(output.size, length)
                self.assertAlmostEqual(path_score(model, emissions,
                                                  output.labels),
                                       brute_force_viterbi(model, emissions))

    def test_ties(self):
        "the lowest state wins ties"
        model = Hmm(3, 2)
        inputs = SequenceInput.from_codes([[0], [1], [0]], 2)
        output = ViterbiInference().infer(model, inputs)
        self.assertEqual(output.labels.tolist(), [0, 0, 0])

    def test_workspace_reuse(self):
        "a long sequence then a short one"
        inference = ViterbiInference()
        model = mk_random_hmm(self.rng, 3, 4)
        long_input = mk_random_sequence(self.rng, 6, 4)
        short_input = mk_random_sequence(self.rng, 2, 4)
        inference.infer(model, long_input)
        output = inference.infer(model, short_input)
        emissions = model.emission_scores(short_input)
        self.assertAlmostEqual(path_score(model, emissions, output.labels),
                               brute_force_viterbi(model, emissions))

    def test_empty(self):
        "nothing to label"
        model = mk_random_hmm(self.rng, 2, 3)
        inputs = SequenceInput.from_codes([], 3)
        self.assertEqual(ViterbiInference().infer(model, inputs).size, 0)

    def test_partial_all_labelled(self):
        "fully labelled references are left alone"
        inference = ViterbiInference()
        for _ in range(10):
            model = mk_random_hmm(self.rng, 3, 4)
            inputs = mk_random_sequence(self.rng, 5, 4)
            partial = SequenceOutput(self.rng.randint(0, 3, size=5))
            output = inference.partial_infer(model, inputs, partial)
            self.assertEqual(output, partial)

    def test_partial_unlabelled(self):
        "unlabelled references get the plain viterbi path"
        inference = ViterbiInference()
        for _ in range(10):
            model = mk_random_hmm(self.rng, 3, 4)
            inputs = mk_random_sequence(self.rng, 5, 4)
            partial = inputs.create_output()
            output = inference.partial_infer(model, inputs, partial)
            self.assertEqual(output, inference.infer(model, inputs))

    def test_partial_some_labelled(self):
        "known labels are kept and the rest is optimal"
        inference = ViterbiInference()
        for _ in range(10):
            model = mk_random_hmm(self.rng, 3, 4)
            inputs = mk_random_sequence(self.rng, 5, 4)
            fixed = np.where(self.rng.rand(5) < 0.4,
                             self.rng.randint(0, 3, size=5), -1)
            output = inference.partial_infer(model, inputs,
                                             SequenceOutput(fixed))
            for label, known in zip(output.labels, fixed):
                if known >= 0:
                    self.assertEqual(label, known)
            # known tokens do not score their emissions
            emissions = model.emission_scores(inputs)
            emissions[fixed >= 0] = 0
            self.assertAlmostEqual(path_score(model, emissions,
                                              output.labels),
                                   brute_force_viterbi(model, emissions,
                                                       fixed))

    def test_partial_sentinel(self):
        "the unknown label code is configurable"
        inference = ViterbiInference(sentinel=9)
        model = mk_random_hmm(self.rng, 3, 4)
        inputs = mk_random_sequence(self.rng, 4, 4)
        output = inference.partial_infer(model, inputs,
                                         SequenceOutput([9, 2, 9, 9]))
        self.assertEqual(output.labels[1], 2)

    def test_invalid_label(self):
        "out of range labels are ignored with a warning"
        inference = ViterbiInference()
        model = mk_random_hmm(self.rng, 2, 3)
        inputs = mk_random_sequence(self.rng, 3, 3)
        with self.assertLogs('structlearn.decoding.viterbi', 'WARNING'):
            output = inference.partial_infer(model, inputs,
                                             SequenceOutput([5, -1, -1]))
        self.assertEqual(output, inference.infer(model, inputs))

    def test_unreachable_position(self):
        "the default state takes over when nothing else is possible"
        model = mk_random_hmm(self.rng, 3, 3)
        for state in range(3):
            model.set_emission(state, 2, -np.inf)
        inputs = SequenceInput.from_codes([[0], [2], [1]], 3)
        output = ViterbiInference(default_state=1).infer(model, inputs)
        self.assertEqual(output.labels[1], 1)

    def test_nan_emissions(self):
        "not a number counts as impossible"
        model = mk_random_hmm(self.rng, 2, 2)
        model.set_emission(0, 1, np.nan)
        inputs = SequenceInput.from_codes([[1], [1]], 2)
        output = ViterbiInference().infer(model, inputs)
        self.assertEqual(output.labels.tolist(), [1, 1])

    def test_loss_augmented(self):
        "a large loss weight moves away from the reference everywhere"
        inference = ViterbiInference()
        model = mk_random_hmm(self.rng, 3, 4)
        inputs = mk_random_sequence(self.rng, 5, 4)
        reference = inference.infer(model, inputs)
        output = inference.loss_augmented_infer(model, inputs, reference,
                                                1e6)
        self.assertTrue(np.all(output.labels != reference.labels))
        # and a large negative one gets back to it
        output = inference.loss_augmented_infer(model, inputs, reference,
                                                -1e6)
        self.assertEqual(output, reference)

    def test_loss_augmented_split(self):
        "annotated and non annotated tokens get their own weight"
        inference = ViterbiInference()
        model = Hmm(2, 3)
        inputs = SequenceInput.from_codes([[0], [1], [2]], 3)
        reference = SequenceOutput([1, 1, 1])
        partial = SequenceOutput([1, -1, -1])
        output = inference.loss_augmented_infer_split(model, inputs,
                                                      partial, reference,
                                                      1e3, -1e3)
        self.assertEqual(output.labels.tolist(), [0, 1, 1])


class MaximumBranchingTest(unittest.TestCase):
    """
    Maximum spanning arborescences
    """
    def setUp(self):
        self.rng = np.random.RandomState(1234)

    def assertOptimalTree(self, graph, weight, heads):
        "a tree with one root, as heavy as the brute force one"
        self.assertTrue(is_branching(heads))
        self.assertEqual(list(heads).count(-1), 1)
        expected = sum(graph[h, d] for d, h in enumerate(heads) if h >= 0)
        self.assertAlmostEqual(weight, expected)
        self.assertAlmostEqual(weight, brute_force_branching(graph))

    def test_brute_force(self):
        "complete graphs"
        branching = MaximumBranching()
        for size in range(1, 7):
            for _ in range(5):
                graph = random_graph(self.rng, size)
                weight, heads = branching.find(graph)
                self.assertOptimalTree(graph, weight, heads)

    def test_brute_force_rooted(self):
        "graphs with no edge into node 0"
        branching = MaximumBranching(max_nodes=7)
        for _ in range(3):
            graph = random_graph(self.rng, 7)
            graph[:, 0] = np.nan
            weight, heads = branching.find(graph)
            self.assertEqual(heads[0], -1)
            self.assertOptimalTree(graph, weight, heads)

    def test_missing_edges(self):
        "NaN edges are never picked"
        branching = MaximumBranching()
        for _ in range(10):
            graph = random_graph(self.rng, 6)
            graph[:, 0] = np.nan
            graph[self.rng.rand(6, 6) < 0.3] = np.nan
            graph[0, 1:] = np.arange(1, 6) - 100.0
            weight, heads = branching.find(graph)
            for dep, head in enumerate(heads):
                if head >= 0:
                    self.assertFalse(np.isnan(graph[head, dep]))
            self.assertOptimalTree(graph, weight, heads)

    def test_cycle(self):
        "the heaviest cycle is broken at its lightest edge"
        graph = np.full((4, 4), np.nan)
        graph[0, 1] = 5
        graph[0, 2] = 1
        graph[0, 3] = 1
        graph[1, 2] = 10
        graph[2, 3] = 10
        graph[3, 1] = 10
        weight, heads = MaximumBranching().find(graph)
        self.assertEqual(heads.tolist(), [-1, 0, 1, 2])
        self.assertAlmostEqual(weight, 25)

    def test_output_array(self):
        "the heads array passed in is filled"
        graph = random_graph(self.rng, 4)
        heads = np.zeros(4, dtype=int)
        _, result = MaximumBranching().find(graph, heads)
        self.assertIs(result, heads)
        self.assertEqual(list(heads).count(-1), 1)

    def test_only_positive_edges(self):
        "negative edges are left out"
        graph = np.full((3, 3), np.nan)
        graph[0, 1] = 2
        graph[1, 2] = -1
        branching = MaximumBranching(only_positive_edges=True,
                                     check_unique_root=False)
        weight, heads = branching.find(graph)
        self.assertEqual(heads.tolist(), [-1, 0, -1])
        self.assertAlmostEqual(weight, 2)
        weight, heads = branching.find(graph, only_positive_edges=False)
        self.assertEqual(heads.tolist(), [-1, 0, 1])
        self.assertAlmostEqual(weight, 1)

    def test_unique_root_warning(self):
        "isolated nodes make extra roots"
        graph = np.full((3, 3), np.nan)
        graph[0, 1] = 1
        branching = MaximumBranching()
        with self.assertLogs('structlearn.decoding.mst', 'WARNING'):
            _, heads = branching.find(graph)
        self.assertEqual(heads.tolist(), [-1, 0, -1])

    def test_bad_graph(self):
        "graphs must be square"
        with self.assertRaises(DecoderException):
            MaximumBranching().find(np.zeros((2, 3)))
        with self.assertRaises(DecoderException):
            MaximumBranching().find(np.zeros((2, 2)), np.zeros(3, dtype=int))


def mk_dependency_problem(rng, size):
    """
    A complete dependency graph with one feature per edge, and a model
    with random weights for them
    """
    codes = {(h, d): [h * size + d]
             for h in range(size) for d in range(1, size) if h != d}
    inputs = GraphInput.from_edge_codes(size, codes, size * size)
    model = DependencyModel(size * size)
    for code in range(size * size):
        model.set_weight(code, rng.randn())
    return inputs, model


class MaximumBranchingInferenceTest(unittest.TestCase):
    """
    Dependency parsing
    """
    def setUp(self):
        self.rng = np.random.RandomState(7)

    def test_infer(self):
        "best tree rooted at 0"
        inference = MaximumBranchingInference()
        for size in range(2, 6):
            inputs, model = mk_dependency_problem(self.rng, size)
            output = inference.infer(model, inputs)
            self.assertIsInstance(output, BranchingOutput)
            self.assertEqual(output.heads[0], -1)
            graph = model.edge_scores(inputs)
            graph[:, 0] = np.nan
            weight = sum(graph[h, d] for d, h in enumerate(output.heads)
                         if h >= 0)
            self.assertAlmostEqual(weight, brute_force_branching(graph))

    def test_partial(self):
        "known heads are kept"
        inference = MaximumBranchingInference()
        inputs, model = mk_dependency_problem(self.rng, 5)
        partial = BranchingOutput([-1, -1, 3, -1, 0])
        output = inference.partial_infer(model, inputs, partial)
        self.assertEqual(output.heads[2], 3)
        self.assertEqual(output.heads[4], 0)
        self.assertTrue(is_branching(output.heads))

    def test_partial_infeasible(self):
        "a head without an edge is ignored with a warning"
        inference = MaximumBranchingInference()
        inputs, model = mk_dependency_problem(self.rng, 4)
        partial = BranchingOutput([-1, 1, -1, -1])
        with self.assertLogs('structlearn.decoding.mst', 'WARNING'):
            output = inference.partial_infer(model, inputs, partial)
        self.assertEqual(output, inference.infer(model, inputs))

    def test_loss_augmented(self):
        "a large loss weight changes every head"
        inference = MaximumBranchingInference()
        inputs, model = mk_dependency_problem(self.rng, 5)
        reference = BranchingOutput([-1, 0, 1, 2, 3])
        output = inference.loss_augmented_infer(model, inputs, reference,
                                                1e6)
        self.assertTrue(np.all(output.heads[1:] != reference.heads[1:]))
        output = inference.loss_augmented_infer(model, inputs, reference,
                                                -1e6)
        self.assertEqual(output, reference)

    def test_loss_augmented_split(self):
        "annotated dependents use their own loss weight"
        inference = MaximumBranchingInference()
        inputs, model = mk_dependency_problem(self.rng, 4)
        reference = BranchingOutput([-1, 0, 1, 2])
        partial = BranchingOutput([-1, 0, -1, -1])
        output = inference.loss_augmented_infer_split(model, inputs,
                                                      partial, reference,
                                                      -1e6, 1e6)
        self.assertEqual(output.heads[1], 0)
        self.assertTrue(np.all(output.heads[2:] != reference.heads[2:]))


def mk_coref_problem():
    """
    Root mention 0 and mentions 1, 2, 3 whose model prefers the
    clusters {1, 2} and {3}
    """
    size = 4
    codes = {(h, d): [h * size + d]
             for h in range(size) for d in range(1, size) if h != d}
    inputs = CorefInput.from_edge_codes(size, codes, size * size)
    model = CoreferenceModel(size * size)
    for code in range(size * size):
        model.set_weight(code, -1.0)
    model.set_weight(0 * size + 1, 2.0)
    model.set_weight(1 * size + 2, 3.0)
    model.set_weight(0 * size + 3, 1.0)
    return inputs, model


class CoreferenceInferenceTest(unittest.TestCase):
    """
    Coreference resolution
    """
    def test_infer(self):
        "clusters are the subtrees of the root"
        inputs, model = mk_coref_problem()
        output = CoreferenceInference().infer(model, inputs)
        self.assertIsInstance(output, CorefOutput)
        self.assertEqual(output.heads.tolist(), [-1, 0, 1, 0])
        self.assertEqual(output.clustering.groups(), [[0], [1, 2], [3]])

    def test_infer_without_root(self):
        "without the root, only positive edges join mentions"
        inputs, model = mk_coref_problem()
        logger = logging.getLogger('structlearn.decoding.tests.rootless')
        inference = CoreferenceInference(use_root=False, logger=logger)
        with self.assertLogs(logger) as logs:
            logger.info("decoding")
            output = inference.infer(model, inputs)
        self.assertEqual(len(logs.output), 1)
        self.assertEqual(output.heads.tolist(), [-1, -1, 1, -1])
        self.assertEqual(output.clustering.groups(), [[0], [1, 2], [3]])

        for code in range(inputs.num_nodes ** 2):
            model.set_weight(code, -1.0)
        with self.assertLogs(logger) as logs:
            logger.info("decoding")
            output = inference.infer(model, inputs)
        self.assertEqual(len(logs.output), 1)
        self.assertEqual(output.heads.tolist(), [-1, -1, -1, -1])
        self.assertEqual(output.clustering.groups(), [[0], [1], [2], [3]])

    def test_loss_augmented_without_root(self):
        "loss augmented inference may also leave mentions apart"
        inputs, model = mk_coref_problem()
        reference = CorefOutput.from_clusters(4, [[1, 2, 3]])
        inference = CoreferenceInference(use_root=False)
        output = inference.loss_augmented_infer(model, inputs, reference,
                                                0.5)
        self.assertEqual(output.heads.tolist(), [-1, -1, 1, -1])
        self.assertEqual(output.clustering.groups(), [[0], [1, 2], [3]])

    def test_partial(self):
        "latent trees stay within the reference clusters"
        inputs, model = mk_coref_problem()
        partial = CorefOutput.from_clusters(4, [[1, 3]])
        output = CoreferenceInference().partial_infer(model, inputs,
                                                      partial)
        for mention in range(1, 4):
            head = output.heads[mention]
            self.assertTrue(head == 0 or partial.same_cluster(head, mention))
        self.assertEqual(output.heads[2], 0)
        self.assertEqual(output.clustering.groups(), [[0], [1, 3], [2]])

    def test_loss_augmented(self):
        "a large loss weight links different clusters"
        inputs, model = mk_coref_problem()
        inference = CoreferenceInference()
        reference = inference.infer(model, inputs)
        output = inference.loss_augmented_infer(model, inputs, reference,
                                                100.0)
        self.assertNotEqual(output.clustering.groups(),
                            reference.clustering.groups())

    def test_root_loss_factor(self):
        "root edges get their own loss multiplier"
        inputs, model = mk_coref_problem()
        # mention 2 is attached to 1 in the reference: only its root
        # edge is augmented, so a large factor detaches it
        reference = CoreferenceInference().infer(model, inputs)
        inference = CoreferenceInference(root_loss_factor=100.0)
        output = inference.loss_augmented_infer(model, inputs, reference,
                                                0.1)
        self.assertEqual(output.heads[2], 0)
        inference = CoreferenceInference(root_loss_factor=0.0)
        output = inference.loss_augmented_infer(model, inputs, reference,
                                                0.1)
        self.assertEqual(output.heads.tolist(), [-1, 0, 1, 0])

    def test_no_split_weights(self):
        "split weights are not supported"
        inputs, model = mk_coref_problem()
        reference = inputs.create_output()
        with self.assertRaises(UnsupportedError):
            CoreferenceInference().loss_augmented_infer_split(
                model, inputs, reference, reference, 1.0, 1.0)


class RankInferenceTest(unittest.TestCase):
    """
    Ranking
    """
    inputs = RankInput.from_codes([[0], [1], [2], [1]], 3)

    def mk_model(self):
        "weights 1, 3, 2"
        model = RankModel()
        model.set_weight(0, 1.0)
        model.set_weight(1, 3.0)
        model.set_weight(2, 2.0)
        return model

    def test_infer(self):
        "decreasing score, stable on ties"
        output = RankInference().infer(self.mk_model(), self.inputs)
        self.assertEqual(output.order.tolist(), [1, 3, 2, 0])

    def test_loss_augmented(self):
        "irrelevant items get a boost"
        reference = RankOutput(np.arange(4), relevant=[1, 3])
        output = RankInference().loss_augmented_infer(self.mk_model(),
                                                      self.inputs,
                                                      reference, 5.0)
        self.assertEqual(output.order.tolist(), [2, 0, 1, 3])

    def test_no_partial(self):
        "partial rankings are not supported"
        with self.assertRaises(UnsupportedError):
            RankInference().partial_infer(self.mk_model(), self.inputs,
                                          self.inputs.create_output())
