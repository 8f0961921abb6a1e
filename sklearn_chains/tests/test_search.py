"""Tests for `sklearn_chains.search`."""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal
from sklearn.linear_model import LogisticRegression
from sklearn.tree import DecisionTreeClassifier

from sklearn_chains.common import CANCELLED
from sklearn_chains.inference import \
    greedy_inference, joint_weight, path_confidences
from sklearn_chains.search import \
    ChainSearchResult, monte_carlo_inference, propose_swap, \
    search_chain_order
from sklearn_chains.tests.conftest import CountdownToken
from sklearn_chains.tests.datasets import chained_labels, sklearn_multilabel


def test_propose_swap():
    rng = np.random.RandomState(0)
    order = np.arange(5)
    for _ in range(20):
        proposal = propose_swap(order, rng)
        assert sorted(proposal) == list(range(5))
        assert np.count_nonzero(proposal != order) == 2
    assert_array_equal(order, np.arange(5))  # unchanged


def test_search_hill_climbing():
    dataset = sklearn_multilabel()
    n_values = np.full(dataset.n_labels, 2)
    result = search_chain_order(dataset.x_train, dataset.y_train,
                                LogisticRegression(), n_values,
                                n_iterations=6, random_state=0)
    assert isinstance(result, ChainSearchResult)
    assert len(result.trace) == 7
    assert result.history == [payoff for _, payoff, accepted in result.trace
                              if accepted]
    # accepted payoffs strictly increase, the best one is kept
    assert all(a < b for a, b in zip(result.history, result.history[1:]))
    assert result.payoff == result.history[-1]
    assert result.payoff == max(payoff for _, payoff, _ in result.trace)
    accepted_orders = [order for order, _, accepted in result.trace
                       if accepted]
    assert tuple(result.graph.order) == accepted_orders[-1]
    for j, node in enumerate(result.nodes):
        assert_array_equal(node.parents, result.graph.parents_of(j))


def test_search_reproducible():
    dataset = chained_labels()

    def search():
        return search_chain_order(dataset.x_train, dataset.y_train,
                                  DecisionTreeClassifier(max_depth=1,
                                                         random_state=0),
                                  [2, 2, 2], 'random', 4,
                                  payoff='hamming_score', random_state=3)

    assert search().trace == search().trace


def test_search_without_iterations():
    dataset = chained_labels()
    result = search_chain_order(dataset.x_train, dataset.y_train,
                                DecisionTreeClassifier(), [2, 2, 2],
                                order=[1, 2, 0])
    assert_array_equal(result.graph.order, [1, 2, 0])
    assert result.history == [] and result.trace == []
    with pytest.raises(ValueError):
        search_chain_order(dataset.x_train, dataset.y_train,
                           DecisionTreeClassifier(), [2, 2, 2],
                           n_iterations=-1)
    with pytest.raises(ValueError, match="payoff"):
        search_chain_order(dataset.x_train, dataset.y_train,
                           DecisionTreeClassifier(), [2, 2, 2],
                           n_iterations=1, payoff='f1')


def test_search_custom_payoff():
    """A constant payoff never accepts a proposal."""
    dataset = chained_labels()

    def payoff(Y_true, Y_pred):
        return 0.

    result = search_chain_order(dataset.x_train, dataset.y_train,
                                DecisionTreeClassifier(), [2, 2, 2],
                                n_iterations=3, payoff=payoff,
                                random_state=0)
    assert result.history == [0.]
    assert_array_equal(result.graph.order, [0, 1, 2])
    assert [accepted for _, _, accepted in result.trace] \
        == [True, False, False, False]


def test_search_cancelled():
    dataset = chained_labels()
    assert search_chain_order(dataset.x_train, dataset.y_train,
                              DecisionTreeClassifier(), [2, 2, 2],
                              n_iterations=5,
                              cancel_token=CountdownToken(12)) is CANCELLED


def test_monte_carlo_inference():
    dataset = sklearn_multilabel()
    n_values = np.full(dataset.n_labels, 2)
    result = search_chain_order(dataset.x_train, dataset.y_train,
                                LogisticRegression(), n_values)
    nodes, graph = result.nodes, result.graph
    X = dataset.x_test

    greedy = greedy_inference(nodes, graph, X)
    Y, confidences = monte_carlo_inference(nodes, graph, X, n_iterations=0)
    assert_array_equal(Y, greedy)

    Y, confidences = monte_carlo_inference(nodes, graph, X, n_iterations=20,
                                           random_state=0)
    greedy_weight = joint_weight(path_confidences(nodes, graph, X, greedy))
    assert np.all(joint_weight(confidences) >= greedy_weight)
    assert_allclose(joint_weight(confidences),
                    joint_weight(path_confidences(nodes, graph, X, Y)))
    again, _ = monte_carlo_inference(nodes, graph, X, n_iterations=20,
                                     random_state=0)
    assert_array_equal(Y, again)
    assert monte_carlo_inference(nodes, graph, X, 20,
                                 cancel_token=CountdownToken(30)) \
        is CANCELLED
