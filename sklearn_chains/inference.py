"""
Inference over a built graph of `LabelNode`s.

All functions handle a batch of feature vectors `X` at once; every row is
inferred independently. They take a `cancel_token` and return `CANCELLED`
as soon as they observe it set.
"""

import logging
import warnings
from typing import Sequence

import numpy as np
from sklearn.utils import check_random_state

from sklearn_chains.common import \
    CANCELLED, LabelGraph, LabelNode, check_cancel_token
from sklearn_chains.util import increment_counter

logger = logging.getLogger(__name__)

DEFAULT_MAX_COMBINATIONS = 1_000_000


def _require_acyclic(graph: LabelGraph):
    if not graph.acyclic:
        raise ValueError("%r is cyclic, chain inference needs parents that "
                         "precede their children" % (graph,))


def greedy_inference(nodes: Sequence[LabelNode], graph: LabelGraph,
                     X: np.ndarray, cancel_token=None):
    """Single deterministic pass along `graph.order`, each node classifying
    given the values already assigned to its parents.

    :return: Integer assignment of shape `(n_rows, n_labels)`, or
        `CANCELLED`.
    """
    _require_acyclic(graph)
    cancel_token = check_cancel_token(cancel_token)
    Y = np.zeros((len(X), graph.n_labels), dtype=int)
    for j in graph.order:
        if cancel_token.cancelled:
            return CANCELLED
        Y[:, j] = nodes[j].classify(X, Y)
    return Y


def path_confidences(nodes: Sequence[LabelNode], graph: LabelGraph,
                     X: np.ndarray, Y: np.ndarray, cancel_token=None):
    """Force the chain down the given assignment `Y`.

    :return: Array of shape `(n_rows, n_labels)` holding
        `p(y_j = Y[:, j] | x, Y[:, parents_j])`, or `CANCELLED`.
        Its row-wise product is the joint probability of `Y`.
    """
    _require_acyclic(graph)
    cancel_token = check_cancel_token(cancel_token)
    rows = np.arange(len(X))
    confidences = np.zeros(Y.shape)
    for j in graph.order:
        if cancel_token.cancelled:
            return CANCELLED
        confidences[:, j] = nodes[j].distribution(X, Y)[rows, Y[:, j]]
    return confidences


def joint_weight(confidences: np.ndarray) -> np.ndarray:
    """:return: The joint probability of each row's assignment, given its
        per-label confidences (see `path_confidences`).
    """
    return confidences.prod(axis=1)


def sample_chain(nodes: Sequence[LabelNode], graph: LabelGraph,
                 X: np.ndarray, random_state=None, cancel_token=None):
    """Ancestral sampling: draw every label along `graph.order` from its
    conditional distribution given the parents drawn before.

    :return: tuple `(Y, confidences)` with the sampled assignment and the
        probability of each drawn value, or `CANCELLED`.
    """
    _require_acyclic(graph)
    rng = check_random_state(random_state)
    cancel_token = check_cancel_token(cancel_token)
    Y = np.zeros((len(X), graph.n_labels), dtype=int)
    confidences = np.zeros(Y.shape)
    for j in graph.order:
        if cancel_token.cancelled:
            return CANCELLED
        Y[:, j], confidences[:, j] = nodes[j].sample(X, Y, rng)
    return Y, confidences


def exhaustive_inference(nodes: Sequence[LabelNode], graph: LabelGraph,
                         X: np.ndarray, n_values: Sequence[int],
                         max_combinations: int = DEFAULT_MAX_COMBINATIONS,
                         cancel_token=None):
    """Bayes-optimal inference for subset accuracy: enumerate all joint
    assignments and keep, for each row, the one with maximal joint
    probability.

    Assignments are enumerated like a mixed-radix counter, label 0 being the
    least significant digit. Only a strictly higher joint probability
    replaces the best assignment, so ties keep the one enumerated first.
    After `max_combinations` assignments the enumeration stops with a
    warning and the best ones found so far are returned.

    :return: tuple `(Y, confidences)` of the best assignment and its
        `path_confidences`, or `CANCELLED`.
    """
    _require_acyclic(graph)
    if max_combinations < 1:
        raise ValueError("max_combinations must be positive, got %d"
                         % max_combinations)
    cancel_token = check_cancel_token(cancel_token)
    n_rows, n_labels = len(X), graph.n_labels
    n_values = np.asarray(n_values, dtype=int)
    best_Y = np.zeros((n_rows, n_labels), dtype=int)
    best_confidences = np.zeros((n_rows, n_labels))
    best_weight = np.full(n_rows, -1.)

    candidate = np.zeros(n_labels, dtype=int)
    n_tried = 0
    while True:
        if cancel_token.cancelled:
            return CANCELLED
        if n_tried >= max_combinations:
            warnings.warn("exhaustive inference stopped after %d of %d "
                          "assignments" % (n_tried, np.prod(n_values,
                                                            dtype=float)))
            break
        Y = np.tile(candidate, (n_rows, 1))
        confidences = path_confidences(nodes, graph, X, Y, cancel_token)
        if confidences is CANCELLED:
            return CANCELLED
        weight = joint_weight(confidences)
        better = weight > best_weight
        best_Y[better] = candidate
        best_confidences[better] = confidences[better]
        best_weight[better] = weight[better]
        n_tried += 1
        if increment_counter(candidate, n_values):
            break
    logger.debug("tried %d assignments", n_tried)
    return best_Y, best_confidences


def gibbs_inference(nodes: Sequence[LabelNode], graph: LabelGraph,
                    X: np.ndarray, n_values: Sequence[int],
                    n_iterations: int = 1000, n_collect: int = 100,
                    random_state=None, cancel_token=None):
    """Single-site Gibbs sampling, for graphs of any shape.

    Starting from the all-zero assignment, each of the `n_iterations`
    sweeps visits the labels in a new random order and redraws each one
    from its node's distribution given the current values of all other
    labels, including those changed earlier in the same sweep. The first
    `n_iterations - n_collect` sweeps are burn-in; the samples of the last
    `n_collect` sweeps are collected.

    :return: tuple `(marginals, counts)`, or `CANCELLED`.
        `marginals` has shape `(n_rows, n_labels)` and holds the mean
        sampled value of each label (for binary labels the estimated
        probability of 1). `counts` has shape
        `(n_rows, n_labels, max(n_values))` and holds how often each value
        was collected.
    """
    if not 0 < n_collect <= n_iterations:
        raise ValueError("need 0 < n_collect <= n_iterations, got "
                         "n_collect=%d, n_iterations=%d"
                         % (n_collect, n_iterations))
    rng = check_random_state(random_state)
    cancel_token = check_cancel_token(cancel_token)
    n_rows, n_labels = len(X), graph.n_labels
    max_values = int(np.max(n_values))
    rows = np.arange(n_rows)
    Y = np.zeros((n_rows, n_labels), dtype=int)
    counts = np.zeros((n_rows, n_labels, max_values))
    burn_in = n_iterations - n_collect

    for sweep in range(n_iterations):
        if cancel_token.cancelled:
            return CANCELLED
        collect = sweep >= burn_in
        for j in rng.permutation(n_labels):
            if cancel_token.cancelled:
                return CANCELLED
            values, _ = nodes[j].sample(X, Y, rng)
            Y[:, j] = values
            if collect:
                counts[rows, j, values] += 1
    marginals = (counts * np.arange(max_values)).sum(axis=2) / n_collect
    return marginals, counts


def mode(counts: np.ndarray) -> np.ndarray:
    """:return: The most frequently collected value per row and label (ties
        go to the smaller value), given `counts` from `gibbs_inference`.
    """
    return np.argmax(counts, axis=2)
