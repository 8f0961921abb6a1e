"""
Stochastic search for classifier chains: hill climbing over chain orders at
training time, and random search over the output space at prediction time
(Monte Carlo classifier chains).
"""

import logging
from typing import Callable, List, NamedTuple, Sequence, Tuple, Union

import numpy as np
from sklearn.utils import check_random_state

from sklearn_chains.builders import build_nodes, make_chain
from sklearn_chains.common import \
    CANCELLED, ChainGraph, LabelNode, check_cancel_token
from sklearn_chains.inference import \
    greedy_inference, joint_weight, path_confidences, sample_chain
from sklearn_chains.util import get_payoff

logger = logging.getLogger(__name__)


class ChainSearchResult(NamedTuple):
    """Outcome of `search_chain_order`.

    Attributes
    -----
    graph, nodes :
        The best chain found and its fitted nodes.

    payoff : float
        The payoff of the best chain.

    history : List[float]
        Payoff of the initial chain, followed by the payoff of every accepted
        proposal. Non-decreasing.

    trace : List[Tuple[Tuple[int, ...], float, bool]]
        For every proposal its order, payoff, and whether it was accepted.
    """
    graph: ChainGraph
    nodes: List[LabelNode]
    payoff: float
    history: List[float]
    trace: List[Tuple[Tuple[int, ...], float, bool]]


def propose_swap(order: np.ndarray, rng: np.random.RandomState) -> np.ndarray:
    """:return: A copy of `order` with two distinct random positions
        swapped.
    """
    i, j = rng.choice(len(order), size=2, replace=False)
    proposal = order.copy()
    proposal[i], proposal[j] = order[j], order[i]
    return proposal


def evaluate_chain(order: np.ndarray, X: np.ndarray, Y: np.ndarray,
                   estimator, n_values: np.ndarray, payoff: Callable,
                   cancel_token):
    """Build a chain in `order` on `(X, Y)` and rate its greedy predictions
    on that same data.

    :return: tuple `(graph, nodes, payoff)`, or `CANCELLED`.
    """
    graph = make_chain(len(order), order)
    nodes = build_nodes(graph, X, Y, estimator, n_values, cancel_token)
    if nodes is CANCELLED:
        return CANCELLED
    Y_pred = greedy_inference(nodes, graph, X, cancel_token)
    if Y_pred is CANCELLED:
        return CANCELLED
    return graph, nodes, float(payoff(Y, Y_pred))


def search_chain_order(X: np.ndarray, Y: np.ndarray, estimator,
                       n_values: np.ndarray, order=None,
                       n_iterations: int = 0,
                       payoff: Union[str, Callable] = 'exact_match',
                       random_state=None, cancel_token=None):
    """Greedy hill climbing over chain orders.

    Starting from the chain given by `order` (see `make_chain`), propose
    `n_iterations` times a new order by swapping two labels of the current
    best one. A proposal replaces the current best only if its payoff is
    strictly higher; rejected proposals and their models are dropped.

    :param payoff: Name of a payoff in `sklearn_chains.util.PAYOFFS` or a
        callable `payoff(Y_true, Y_pred) -> float`, higher is better.
    :return: `ChainSearchResult`, or `CANCELLED`.
    """
    if n_iterations < 0:
        raise ValueError("n_iterations must not be negative, got %d"
                         % n_iterations)
    payoff = get_payoff(payoff)
    rng = check_random_state(random_state)
    cancel_token = check_cancel_token(cancel_token)
    n_labels = Y.shape[1]

    graph = make_chain(n_labels, order, rng)
    if n_iterations == 0 or n_labels < 2:
        nodes = build_nodes(graph, X, Y, estimator, n_values, cancel_token)
        if nodes is CANCELLED:
            return CANCELLED
        return ChainSearchResult(graph, nodes, np.nan, [], [])

    evaluated = evaluate_chain(graph.order, X, Y, estimator, n_values,
                               payoff, cancel_token)
    if evaluated is CANCELLED:
        return CANCELLED
    graph, nodes, best_payoff = evaluated
    logger.debug("s_0 = %s, payoff %f", graph.order.tolist(), best_payoff)
    history = [best_payoff]
    trace = [(tuple(graph.order.tolist()), best_payoff, True)]

    for t in range(n_iterations):
        if cancel_token.cancelled:
            return CANCELLED
        proposal = propose_swap(np.array(graph.order), rng)
        evaluated = evaluate_chain(proposal, X, Y, estimator, n_values,
                                   payoff, cancel_token)
        if evaluated is CANCELLED:
            return CANCELLED
        accepted = evaluated[2] > best_payoff
        trace.append((tuple(proposal.tolist()), evaluated[2], accepted))
        if accepted:
            graph, nodes, best_payoff = evaluated
            history.append(best_payoff)
            logger.debug("s_%d = %s, payoff %f",
                         t + 1, proposal.tolist(), best_payoff)
    return ChainSearchResult(graph, nodes, best_payoff, history, trace)


def monte_carlo_inference(nodes: Sequence[LabelNode], graph: ChainGraph,
                          X: np.ndarray, n_iterations: int = 10,
                          random_state=None, cancel_token=None):
    """Random search of the output space.

    Start from the greedy assignment and its joint probability. Then
    `n_iterations` times draw a full assignment by ancestral sampling and
    keep it, per row, if its joint probability is strictly higher.

    :return: tuple `(Y, confidences)` of the best assignments and their
        per-label confidences, or `CANCELLED`.
    """
    if n_iterations < 0:
        raise ValueError("n_iterations must not be negative, got %d"
                         % n_iterations)
    rng = check_random_state(random_state)
    cancel_token = check_cancel_token(cancel_token)
    Y = greedy_inference(nodes, graph, X, cancel_token)
    if Y is CANCELLED:
        return CANCELLED
    confidences = path_confidences(nodes, graph, X, Y, cancel_token)
    if confidences is CANCELLED:
        return CANCELLED
    weight = joint_weight(confidences)

    for _ in range(n_iterations):
        if cancel_token.cancelled:
            return CANCELLED
        sampled = sample_chain(nodes, graph, X, rng, cancel_token)
        if sampled is CANCELLED:
            return CANCELLED
        Y_sample, sample_confidences = sampled
        sample_weight = joint_weight(sample_confidences)
        better = sample_weight > weight
        Y[better] = Y_sample[better]
        confidences[better] = sample_confidences[better]
        weight[better] = sample_weight[better]
    return Y, confidences
