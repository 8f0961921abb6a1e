"""
Construction of the label dependency structure: `LabelGraph` instances for
chains, trees, trellises and complete graphs, and the build pass creating
one fitted `LabelNode` per label.
"""

import logging
import math
from collections import deque
from typing import List, Tuple

import numpy as np
from sklearn.utils import check_random_state

from sklearn_chains.common import \
    CANCELLED, ChainGraph, CompleteGraph, LabelNode, MAX_DENSITY, Trellis, \
    TreeGraph, check_cancel_token, trellis_parent_positions
from sklearn_chains.util import check_permutation

logger = logging.getLogger(__name__)


def make_chain(n_labels: int, order=None, random_state=None) -> ChainGraph:
    """Build a full classifier chain.

    :param order: None for the identity order `[0..n_labels)`, 'random' for
        a permutation drawn from `random_state`, or an array-like with a
        permutation of the labels to use as is.
    """
    if order is None:
        order = np.arange(n_labels)
    elif isinstance(order, str):
        if order != 'random':
            raise ValueError("order must be None, 'random' or a permutation,"
                             " got %r" % order)
        order = check_random_state(random_state).permutation(n_labels)
    else:
        order = check_permutation(order, n_labels)
    logger.debug("chain order %s", order.tolist())
    return ChainGraph(order)


def maximum_spanning_tree(dependency: np.ndarray,
                          tie_break: str = 'first',
                          random_state=None) -> List[Tuple[int, int]]:
    """Kruskal's algorithm on the negated `dependency` weights.

    :param tie_break: How to order edges of equal weight: 'first' keeps the
        enumeration order `(0, 1), (0, 2), ..., (1, 2), ...`, 'random'
        shuffles the edges with `random_state` beforehand.
    :return: The `n_labels - 1` tree edges `(j, k)`, in order of selection.
    """
    n_labels = len(dependency)
    edges = [(j, k) for j in range(n_labels) for k in range(j + 1, n_labels)]
    if tie_break == 'random':
        rng = check_random_state(random_state)
        edges = [edges[i] for i in rng.permutation(len(edges))]
    elif tie_break != 'first':
        raise ValueError("tie_break must be 'first' or 'random', got %r"
                         % tie_break)
    weights = np.array([-dependency[j, k] for j, k in edges])

    component = list(range(n_labels))

    def find(j):
        while component[j] != j:
            component[j] = component[component[j]]
            j = component[j]
        return j

    tree = []
    # stable sort: equal weights stay in (possibly shuffled) enumeration order
    for edge_index in np.argsort(weights, kind='stable'):
        j, k = edges[edge_index]
        root_j, root_k = find(j), find(k)
        if root_j != root_k:
            component[root_j] = root_k
            tree.append((j, k))
            if len(tree) == n_labels - 1:
                break
    return tree


def make_tree(dependency: np.ndarray, root: int = 0,
              tie_break: str = 'first', random_state=None) -> TreeGraph:
    """Build a tree over the labels maximizing the summed `dependency` of
    its edges, directed away from `root`.

    The graph `order` is the breadth-first visiting order from `root`,
    neighbours visited by ascending label index.
    """
    dependency = np.asarray(dependency, dtype=float)
    n_labels = len(dependency)
    if dependency.shape != (n_labels, n_labels):
        raise ValueError("dependency must be a square matrix, got shape %s"
                         % (dependency.shape,))
    if not 0 <= root < n_labels:
        raise ValueError("root must be a label index in [0..%d), got %d"
                         % (n_labels, root))

    adjacent = [[] for _ in range(n_labels)]
    for j, k in maximum_spanning_tree(dependency, tie_break, random_state):
        adjacent[j].append(k)
        adjacent[k].append(j)

    tree_parent = np.full(n_labels, -1)
    visited = np.zeros(n_labels, dtype=bool)
    visited[root] = True
    order = []
    queue = deque([root])
    while queue:
        j = queue.popleft()
        order.append(j)
        for k in sorted(adjacent[j]):
            if not visited[k]:
                visited[k] = True
                tree_parent[k] = j
                queue.append(k)
    logger.debug("tree from root %d, order %s, parents %s",
                 root, order, tree_parent.tolist())
    return TreeGraph(order, tree_parent)


def order_trellis(order, width: int, density: int,
                  dependency: np.ndarray, random_state=None,
                  cancel_token=None):
    """Rearrange the labels of a trellis placement guided by `dependency`.

    The first cell gets a random label. Each following cell gets the
    remaining label with the highest summed dependency to the labels already
    placed in the cell's grid parents; ties go to the label found first.

    :return: The new placement order, or `CANCELLED`.
    """
    rng = check_random_state(random_state)
    cancel_token = check_cancel_token(cancel_token)
    density = min(max(density, 0), MAX_DENSITY)
    remaining = list(order)
    n_labels = len(remaining)
    placed = [remaining.pop(rng.randint(n_labels))]
    for position in range(1, n_labels):
        if cancel_token.cancelled:
            return CANCELLED
        parent_positions = trellis_parent_positions(position, width, density,
                                                    n_labels)
        best_label = None
        best_weight = -np.inf
        for candidate in remaining:
            weight = sum(dependency[candidate, placed[p]]
                         for p in parent_positions)
            if weight > best_weight:
                best_label, best_weight = candidate, weight
        remaining.remove(best_label)
        placed.append(best_label)
    return np.array(placed, dtype=int)


def make_trellis(n_labels: int, width: int = -1, density: int = 1,
                 directed: bool = True, dependency: np.ndarray = None,
                 random_state=None, shuffle: bool = True,
                 cancel_token=None):
    """Build a `Trellis`.

    :param width: The trellis width. A negative value selects a square
        trellis (`round(sqrt(n_labels))`), 0 a single row.
    :param dependency: If given, label placement is rearranged with
        `order_trellis`.
    :param shuffle: If True, start with a placement drawn from
        `random_state`, else with the identity.
    :return: The trellis, or `CANCELLED`.
    """
    rng = check_random_state(random_state)
    if width < 0:
        width = max(1, int(round(math.sqrt(n_labels))))
    elif width == 0:
        width = n_labels
    order = rng.permutation(n_labels) if shuffle else np.arange(n_labels)
    if dependency is not None:
        order = order_trellis(order, width, density, dependency, rng,
                              cancel_token)
        if order is CANCELLED:
            return CANCELLED
    trellis = Trellis(order, width, density, directed)
    logger.debug("%r", trellis)
    return trellis


def make_complete(n_labels: int) -> CompleteGraph:
    """Build a fully connected graph."""
    return CompleteGraph(n_labels)


def build_nodes(graph, X: np.ndarray, Y: np.ndarray, estimator,
                n_values: np.ndarray, cancel_token=None):
    """Create and fit one `LabelNode` per label of `graph`, in `graph.order`.

    :return: List of nodes indexed by label, or `CANCELLED`.
    """
    cancel_token = check_cancel_token(cancel_token)
    nodes = [None] * graph.n_labels
    for j in graph.order:
        if cancel_token.cancelled:
            return CANCELLED
        parents = graph.parents_of(j)
        logger.debug("build node h_%d : P(y_%d | x, y_%s)",
                     j, j, parents.tolist())
        nodes[j] = LabelNode(j, parents, n_values[j]).fit(X, Y, estimator)
    return nodes
