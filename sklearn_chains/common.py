"""
Structured label dependency: the per-label `LabelNode`, the `LabelGraph`
topologies connecting them, and cooperative cancellation.

A `LabelGraph` is index based: labels are the integers `[0..n_labels)`,
`order` is a permutation of them and `parents_of(j)` returns an integer
array of other labels. Nodes and graphs never reference each other.
"""

import enum
import threading
import warnings
from typing import Iterable, List, Sequence, Tuple

import numpy as np
from sklearn.base import clone
from sklearn.dummy import DummyClassifier

from sklearn_chains.util import check_permutation, readonly, sample_pmf


class Topology(enum.Enum):
    """Kind of dependency structure imposed among labels."""
    CHAIN = 'chain'
    TREE = 'tree'
    TRELLIS = 'trellis'
    COMPLETE = 'complete'


# Cancellation


class Cancelled:
    """Outcome of an operation that observed a cancelled `CancellationToken`
    and stopped early. There is a single instance, `CANCELLED`.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return 'CANCELLED'


CANCELLED = Cancelled()


class OperationCancelled(RuntimeError):
    """Raised by the estimators when `fit` or a prediction was cancelled
    through its `cancel_token`.
    """


class CancellationToken:
    """Flag to request cancellation of a running fit or inference.

    May be set from any thread. Engine functions check it once per loop
    iteration and return `CANCELLED` when it is set.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def check_cancel_token(cancel_token) -> CancellationToken:
    """:return: `cancel_token`, or a token never cancelled if it is None."""
    if cancel_token is None:
        return CancellationToken()
    if not hasattr(cancel_token, 'cancelled'):
        raise ValueError("cancel_token must provide a 'cancelled' property, "
                         "got %r" % (cancel_token,))
    return cancel_token


# Graphs


class LabelGraph:
    """Static dependency topology among `n_labels` labels.

    Attributes
    -----
    order : np.ndarray of shape (n_labels,)
        Permutation of the label indices, the order in which nodes are built
        and (for acyclic graphs) evaluated.

    topology : Topology

    acyclic : bool
        True iff every label's parents precede it in `order`. Then a single
        pass along `order` can build and evaluate all nodes.
    """

    topology: Topology

    def __init__(self, order, parents: Sequence[Iterable[int]],
                 acyclic: bool):
        self.order = readonly(check_permutation(order, len(parents)))
        self._parents = tuple(readonly(sorted(set(pa))) for pa in parents)
        self.acyclic = acyclic
        for j, pa in enumerate(self._parents):
            if j in pa:
                raise ValueError("label %d is its own parent" % j)
            if np.any((pa < 0) | (pa >= self.n_labels)):
                raise ValueError("parents of label %d out of range: %s"
                                 % (j, pa.tolist()))
        if acyclic:
            position = np.argsort(self.order)
            for j, pa in enumerate(self._parents):
                if np.any(position[pa] >= position[j]):
                    raise ValueError("parents %s of label %d do not precede"
                                     " it in order %s"
                                     % (pa.tolist(), j, self.order.tolist()))

    @property
    def n_labels(self) -> int:
        return len(self.order)

    def parents_of(self, j: int) -> np.ndarray:
        """:return: The (sorted, read-only) parent/neighbour labels of `j`."""
        return self._parents[j]

    def edges(self) -> List[Tuple[int, int]]:
        """:return: All `(parent, child)` pairs, children in `order`."""
        return [(int(k), int(j))
                for j in self.order
                for k in self._parents[j]]

    def export_text(self, label_names: Sequence[str] = None) -> str:
        """:return: One line per label (in `order`) naming its parents."""
        if label_names is None:
            label_names = ['y_%d' % j for j in range(self.n_labels)]
        elif len(label_names) != self.n_labels:
            raise ValueError("label_names must contain %d elements, got %d"
                             % (self.n_labels, len(label_names)))
        return '\n'.join(
            '{} <- ({})'.format(label_names[j],
                                ', '.join(label_names[k]
                                          for k in self._parents[j]))
            for j in self.order)

    def __repr__(self):
        return '{}(order={})'.format(type(self).__name__,
                                     self.order.tolist())


class ChainGraph(LabelGraph):
    """Classifier chain: each label depends on all labels before it."""

    topology = Topology.CHAIN

    def __init__(self, order):
        order = check_permutation(order, len(order))
        parents = [None] * len(order)
        for position, j in enumerate(order):
            parents[j] = order[:position]
        super().__init__(order, parents, acyclic=True)


class TreeGraph(LabelGraph):
    """Tree shaped dependency: each label has at most one parent, the root
    none. `order` must list every label after its parent.
    """

    topology = Topology.TREE

    def __init__(self, order, tree_parent: Sequence[int]):
        """
        :param tree_parent: The parent label for each label, or a negative
            value for the root.
        """
        parents = [[p] if p >= 0 else [] for p in tree_parent]
        if sum(1 for pa in parents if not pa) != 1:
            raise ValueError("tree must have exactly one root, got parents %s"
                             % list(tree_parent))
        super().__init__(order, parents, acyclic=True)

    @property
    def root(self) -> int:
        return int(self.order[0])


# grid offsets (row, column) of a trellis cell's parents, by density
TRELLIS_OFFSETS = ((0, -1),   # left
                   (-1, 0),   # above
                   (-1, -1),  # above left
                   (-1, 1))   # above right
MAX_DENSITY = len(TRELLIS_OFFSETS)


def trellis_parent_positions(position: int, width: int, density: int,
                             n_labels: int) -> List[int]:
    """:return: The grid positions (indices into the trellis placement) that
        are parents of grid cell `position`. They all come before
        `position`.
    """
    row, col = divmod(position, width)
    positions = []
    for d_row, d_col in TRELLIS_OFFSETS[:density]:
        r, c = row + d_row, col + d_col
        if r >= 0 and 0 <= c < width:
            p = r * width + c
            if p < n_labels:
                positions.append(p)
    return positions


class Trellis(LabelGraph):
    """Labels placed row by row on a grid of fixed `width`; each label is
    connected to a bounded number of grid neighbours, independent of how
    many labels there are.

    `density` selects the neighbour pattern, cumulatively: 1 the left cell,
    2 also the cell above, 3 also above-left, 4 also above-right. Cells
    outside the grid are dropped (no wrapping). Density 0 leaves all labels
    unconnected.

    If `directed`, a label's parents are only those neighbours, which are
    all placed before it, so the trellis is acyclic. Otherwise the
    neighbourhood is symmetric: the neighbours and every cell having this
    label as a neighbour.
    """

    topology = Topology.TRELLIS

    def __init__(self, order, width: int, density: int = 1,
                 directed: bool = True):
        order = check_permutation(order, len(order))
        n_labels = len(order)
        if width <= 0 or width > n_labels:
            width = max(n_labels, 1)
        if density < 0 or density > MAX_DENSITY:
            clipped = min(max(density, 0), MAX_DENSITY)
            warnings.warn("trellis density %d not supported, using %d"
                          % (density, clipped))
            density = clipped
        self.width = width
        self.density = density
        self.directed = directed

        parents = [set() for _ in range(n_labels)]
        for position, j in enumerate(order):
            for p in trellis_parent_positions(position, width, density,
                                              n_labels):
                parents[j].add(order[p])
                if not directed:
                    parents[order[p]].add(j)
        super().__init__(order, parents, acyclic=directed)

    @property
    def height(self) -> int:
        return -(-self.n_labels // self.width)

    def grid(self) -> np.ndarray:
        """:return: The placement as 2d array of shape `(height, width)`,
            unused cells of the last row hold -1.
        """
        cells = np.full(self.height * self.width, -1, dtype=int)
        cells[:self.n_labels] = self.order
        return cells.reshape(self.height, self.width)

    def __repr__(self):
        return 'Trellis(width={}, density={}, directed={},\n {!r})'.format(
            self.width, self.density, self.directed, self.grid())


class CompleteGraph(LabelGraph):
    """Fully connected: every label depends on every other label."""

    topology = Topology.COMPLETE

    def __init__(self, n_labels: int):
        labels = np.arange(n_labels)
        super().__init__(labels,
                         [np.delete(labels, j) for j in labels],
                         acyclic=False)


# Nodes


class LabelNode:
    """One label's model, conditioned on the input features and on the
    values of a fixed set of parent labels.

    Rows of the model's input are `[x | y[parents]]`. During training the
    parents' true values are used, during inference their current values
    in the assignment `Y` passed in.

    Attributes
    -----
    index : int
        The label this node predicts.

    parents : np.ndarray
        Read-only, sorted parent label indices, not containing `index`.

    n_values : int
        Number of possible values of the label, i.e. the length of
        `distribution` rows.

    model_ : estimator
        The fitted model, None until `fit`.
    """

    def __init__(self, index: int, parents, n_values: int = 2):
        self.index = int(index)
        self.parents = readonly(parents)
        if self.index in self.parents:
            raise ValueError("label %d is its own parent" % self.index)
        self.n_values = int(n_values)
        self.model_ = None

    def design_matrix(self, X: np.ndarray, Y: np.ndarray) -> np.ndarray:
        """:return: The model input, `X` extended by the parent columns of
            the assignment `Y`.
        """
        return np.hstack((X, Y[:, self.parents]))

    def fit(self, X: np.ndarray, Y: np.ndarray, estimator) -> 'LabelNode':
        """Train a fresh clone of `estimator` to predict `Y[:, index]`.

        A node is built only once. Errors of the estimator are passed on.
        """
        if self.model_ is not None:
            raise RuntimeError("LabelNode %d is already built" % self.index)
        y = Y[:, self.index]
        if np.unique(y).size < 2:
            warnings.warn("label %d has a single value in the training data,"
                          " predicting its prior" % self.index)
            model = DummyClassifier(strategy='prior')
        else:
            model = clone(estimator)
        self.model_ = model.fit(self.design_matrix(X, Y), y)
        return self

    def classify(self, X: np.ndarray, Y: np.ndarray) -> np.ndarray:
        """:return: The single best value for each row."""
        return np.asarray(self.model_.predict(self.design_matrix(X, Y)),
                          dtype=int)

    def distribution(self, X: np.ndarray, Y: np.ndarray) -> np.ndarray:
        """:return: Array of shape `(n_rows, n_values)`, the probability of
            each value of the label, for each row.
        """
        proba = self.model_.predict_proba(self.design_matrix(X, Y))
        P = np.zeros((len(X), self.n_values))
        P[:, np.asarray(self.model_.classes_, dtype=int)] = proba
        return P

    def sample(self, X: np.ndarray, Y: np.ndarray,
               rng: np.random.RandomState) -> Tuple[np.ndarray, np.ndarray]:
        """Draw a value for each row from `distribution`.

        :return: tuple `(values, confidences)`, the drawn values and their
            probability.
        """
        P = self.distribution(X, Y)
        values = sample_pmf(P, rng)
        return values, P[np.arange(len(P)), values]

    def __repr__(self):
        return 'LabelNode({}, parents={}, model={!r})'.format(
            self.index, self.parents.tolist(), self.model_)
