"""
Miscellaneous things not depending on anything else from sklearn_chains.
"""

from typing import Callable, Tuple, Union

import numpy as np

from sklearn.metrics import jaccard_score
from sklearn.utils import check_array


def check_label_matrix(Y, n_values: np.ndarray = None
                       ) -> Tuple[np.ndarray, np.ndarray]:
    """Validate a label matrix of shape `(n_samples, n_labels)`.

    :param Y: array-like of non-negative integers.
    :param n_values: If given, the number of possible values per label as
        learned during `fit`; values of `Y` must not exceed them.
    :return: tuple `(Y, n_values)`, `Y` converted to an integer array and
        `n_values[j] = max(Y[:, j]) + 1`, but at least 2.
    """
    Y = check_array(Y, dtype=None, ensure_2d=True)
    if Y.dtype.kind == 'b':
        Y = Y.astype(int)
    if Y.dtype.kind == 'f':
        if not np.all(np.equal(np.mod(Y, 1), 0)):
            raise ValueError("label matrix must hold integer values, got "
                             "fractional entries")
    elif Y.dtype.kind not in 'iu':
        raise ValueError("label matrix must be numeric, but has dtype %s"
                         % Y.dtype)
    Y = Y.astype(int)
    if np.any(Y < 0):
        raise ValueError("label matrix must not contain negative values")
    if n_values is None:
        n_values = np.maximum(Y.max(axis=0) + 1, 2)
    elif Y.shape[1] != len(n_values):
        raise ValueError("label matrix must have shape (n_samples, %d), "
                         "got %s" % (len(n_values), Y.shape))
    elif np.any(Y >= n_values):
        raise ValueError("label values exceed the ones seen during fit")
    return Y, n_values


def check_permutation(order, n_labels: int) -> np.ndarray:
    """:return: `order` as integer array, if it is a permutation of
        `range(n_labels)`, raise `ValueError` otherwise.
    """
    order = np.array(order, dtype=int).ravel()
    if len(order) != n_labels \
            or not np.array_equal(np.sort(order), np.arange(n_labels)):
        raise ValueError("order must be a permutation of [0..%d), got %s"
                         % (n_labels, order.tolist()))
    return order


def readonly(array) -> np.ndarray:
    """:return: `array` as a copied, non-writeable numpy integer array."""
    array = np.array(array, dtype=int)
    array.setflags(write=False)
    return array


def sample_pmf(P: np.ndarray, rng: np.random.RandomState) -> np.ndarray:
    """Draw one value per row of `P` from the distribution in that row.

    :param P: array of shape `(n_rows, n_values)`, each row summing to 1.
    :return: integer array of shape `(n_rows,)`.
    """
    u = rng.random_sample(len(P))
    cumulative = np.cumsum(P, axis=1)
    drawn = np.count_nonzero(cumulative < u[:, np.newaxis], axis=1)
    # rounding may leave the last cumulative value slightly below 1
    return np.minimum(drawn, P.shape[1] - 1)


def increment_counter(y: np.ndarray, n_values: np.ndarray) -> bool:
    """Advance the mixed-radix counter `y` in place, least significant digit
    first, digit `j` running through `range(n_values[j])`.

    :return: True iff the counter overflowed, i.e. all combinations have
        been visited and `y` is back to all zeros.
    """
    for j in range(len(y)):
        if y[j] < n_values[j] - 1:
            y[j] += 1
            return False
        y[j] = 0
    return True


def confidence_to_probability(Y: np.ndarray, confidences: np.ndarray
                              ) -> np.ndarray:
    """Turn the confidences of a binary assignment into scores for the
    positive value: `p = c * y + (1 - c) * |y - 1|`.
    """
    return confidences * Y + (1. - confidences) * np.abs(Y - 1.)


def exact_match(Y_true, Y_pred) -> float:
    """Fraction of samples with every label predicted correctly (subset
    accuracy). Unlike `sklearn.metrics.accuracy_score`, multi-valued labels
    are supported.
    """
    return float(np.mean(np.all(np.asarray(Y_true) == np.asarray(Y_pred),
                                axis=1)))


def hamming_score(Y_true, Y_pred) -> float:
    """Fraction of correctly predicted labels, `1 - hamming_loss`."""
    return float(np.mean(np.asarray(Y_true) == np.asarray(Y_pred)))


def jaccard_accuracy(Y_true, Y_pred) -> float:
    """Jaccard index of true and predicted label sets, averaged over
    samples. Binary labels only.
    """
    return jaccard_score(Y_true, Y_pred, average='samples', zero_division=1)


PAYOFFS = {
    'exact_match': exact_match,
    'Exact match': exact_match,
    'hamming_score': hamming_score,
    'Hamming score': hamming_score,
    'jaccard': jaccard_accuracy,
    'Accuracy': jaccard_accuracy,
}


def get_payoff(payoff: Union[str, Callable]) -> Callable:
    """:return: The payoff function named `payoff` in `PAYOFFS`, or `payoff`
        itself if it is callable.
    """
    if callable(payoff):
        return payoff
    try:
        return PAYOFFS[payoff]
    except KeyError:
        raise ValueError("Unknown payoff %r, expected a callable or one of %s"
                         % (payoff, sorted(PAYOFFS))) from None
