"""Tests for `sklearn_chains.inference`."""
import itertools

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal
from sklearn.dummy import DummyClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.tree import DecisionTreeClassifier

from sklearn_chains.builders import build_nodes, make_chain, make_complete
from sklearn_chains.common import CANCELLED, Trellis
from sklearn_chains.inference import \
    exhaustive_inference, gibbs_inference, greedy_inference, joint_weight, \
    mode, path_confidences, sample_chain
from sklearn_chains.tests.conftest import CountdownToken
from sklearn_chains.tests.datasets import \
    chained_labels, independent_labels, multi_valued_labels, \
    sklearn_multilabel


def _fitted_chain(dataset, estimator, order=None):
    graph = make_chain(dataset.n_labels, order)
    n_values = np.maximum(dataset.y_train.max(axis=0) + 1, 2)
    nodes = build_nodes(graph, dataset.x_train, dataset.y_train, estimator,
                        n_values)
    return nodes, graph, n_values


@pytest.mark.parametrize('order', [None, [2, 0, 1]])
def test_greedy_noise_free(order):
    """A decision tree chain recovers noise free labels exactly."""
    dataset = chained_labels()
    nodes, graph, _ = _fitted_chain(
        dataset, DecisionTreeClassifier(random_state=0), order)
    Y = greedy_inference(nodes, graph, dataset.x_train)
    assert_array_equal(Y, dataset.y_train)
    confidences = path_confidences(nodes, graph, dataset.x_train, Y)
    assert_allclose(joint_weight(confidences), 1)


def test_greedy_needs_acyclic():
    dataset = chained_labels()
    graph = make_complete(3)
    nodes = build_nodes(graph, dataset.x_train, dataset.y_train,
                        DecisionTreeClassifier(), [2, 2, 2])
    with pytest.raises(ValueError, match="cyclic"):
        greedy_inference(nodes, graph, dataset.x_train)
    with pytest.raises(ValueError, match="cyclic"):
        exhaustive_inference(nodes, graph, dataset.x_train, [2, 2, 2])


def test_exhaustive_at_least_greedy():
    """The exhaustive search never finds a less probable assignment than
    the greedy pass.
    """
    dataset = sklearn_multilabel()
    nodes, graph, n_values = _fitted_chain(dataset, LogisticRegression())
    X = dataset.x_test
    greedy = greedy_inference(nodes, graph, X)
    greedy_weight = joint_weight(path_confidences(nodes, graph, X, greedy))
    best, best_confidences = exhaustive_inference(nodes, graph, X, n_values)
    best_weight = joint_weight(best_confidences)
    assert np.all(best_weight >= greedy_weight - 1e-12)
    assert_allclose(best_weight,
                    joint_weight(path_confidences(nodes, graph, X, best)))
    # the most probable assignment out of all 2^5
    assert np.all(best_weight > 1 / 32)


def test_exhaustive_multi_valued_brute_force():
    """Exhaustive inference returns the argmax of the joint probability over
    all mixed-radix assignments, ties going to the one enumerated first.
    """
    dataset = multi_valued_labels()
    nodes, graph, n_values = _fitted_chain(dataset, LogisticRegression())
    assert_array_equal(n_values, [3, 2])
    X = dataset.x_test
    # label 0 is the least significant digit
    candidates = [assignment[::-1] for assignment in
                  itertools.product(*(range(n) for n in n_values[::-1]))]
    weights = np.column_stack([
        joint_weight(path_confidences(nodes, graph, X,
                                      np.tile(candidate, (len(X), 1))))
        for candidate in candidates])
    expected = np.array(candidates)[weights.argmax(axis=1)]

    best, best_confidences = exhaustive_inference(nodes, graph, X, n_values)
    assert_array_equal(best, expected)
    assert_allclose(joint_weight(best_confidences), weights.max(axis=1))


def test_exhaustive_cap():
    dataset = chained_labels()
    nodes, graph, n_values = _fitted_chain(
        dataset, DecisionTreeClassifier(random_state=0))
    X = dataset.x_train
    with pytest.warns(UserWarning, match="stopped after 3 of 8"):
        Y, _ = exhaustive_inference(nodes, graph, X, n_values,
                                    max_combinations=3)
    # only [0,0,0], [1,0,0] and [0,1,0] were tried
    assert set(map(tuple, Y)) <= {(0, 0, 0), (1, 0, 0), (0, 1, 0)}
    with pytest.raises(ValueError):
        exhaustive_inference(nodes, graph, X, n_values, max_combinations=0)


def test_sample_chain():
    dataset = independent_labels(n_samples=500)
    nodes, graph, _ = _fitted_chain(dataset,
                                    DummyClassifier(strategy='prior'))
    X = dataset.x_train
    Y, confidences = sample_chain(nodes, graph, X, random_state=0)
    assert Y.shape == dataset.y_train.shape
    assert_allclose(Y.mean(axis=0), dataset.y_train.mean(axis=0),
                    atol=0.07)
    # confidences are the probabilities of the drawn values
    assert_allclose(confidences,
                    path_confidences(nodes, graph, X, Y))
    Y_again, _ = sample_chain(nodes, graph, X, random_state=0)
    assert_array_equal(Y, Y_again)


def test_gibbs_independent_marginals():
    """Without burn-in and independent labels, the collected marginals
    converge to the label priors.
    """
    dataset = independent_labels()
    graph = make_complete(2)
    nodes = build_nodes(graph, dataset.x_train, dataset.y_train,
                        DummyClassifier(strategy='prior'), [2, 2])
    X = dataset.x_train[:1]
    marginals, counts = gibbs_inference(nodes, graph, X, [2, 2],
                                        n_iterations=10000, n_collect=10000,
                                        random_state=1)
    assert marginals.shape == (1, 2)
    assert_allclose(marginals[0], dataset.y_train.mean(axis=0), atol=0.05)
    assert_allclose(marginals[0], dataset.p, atol=0.05)
    assert_array_equal(counts.sum(axis=2), 10000)
    assert_array_equal(mode(counts), [[0, 1]])


def test_gibbs_trellis():
    dataset = chained_labels()
    graph = Trellis([0, 1, 2], width=2, density=2, directed=False)
    nodes = build_nodes(graph, dataset.x_train, dataset.y_train,
                        DecisionTreeClassifier(random_state=0), [2, 2, 2])
    X = dataset.x_train[:20]
    marginals, counts = gibbs_inference(nodes, graph, X, [2, 2, 2],
                                        n_iterations=50, n_collect=20,
                                        random_state=0)
    assert np.all((0 <= marginals) & (marginals <= 1))
    assert_array_equal(counts.sum(axis=2), 20)
    again, _ = gibbs_inference(nodes, graph, X, [2, 2, 2],
                               n_iterations=50, n_collect=20,
                               random_state=0)
    assert_array_equal(marginals, again)


@pytest.mark.parametrize('n_collect, n_iterations', [(0, 10), (11, 10)])
def test_gibbs_collect_range(n_collect, n_iterations):
    with pytest.raises(ValueError, match="n_collect"):
        gibbs_inference([], make_complete(2), np.zeros((1, 1)), [2, 2],
                        n_iterations, n_collect)


def test_cancelled_inference():
    dataset = chained_labels()
    nodes, graph, n_values = _fitted_chain(
        dataset, DecisionTreeClassifier(random_state=0))
    X = dataset.x_train
    assert greedy_inference(nodes, graph, X, CountdownToken(2)) is CANCELLED
    assert exhaustive_inference(nodes, graph, X, n_values,
                                cancel_token=CountdownToken(5)) is CANCELLED
    assert sample_chain(nodes, graph, X,
                        cancel_token=CountdownToken(2)) is CANCELLED
    complete = make_complete(3)
    complete_nodes = build_nodes(complete, dataset.x_train, dataset.y_train,
                                 DecisionTreeClassifier(), n_values)
    assert gibbs_inference(complete_nodes, complete, X, n_values,
                           n_iterations=10, n_collect=5,
                           cancel_token=CountdownToken(7)) is CANCELLED
