"""
Pairwise label dependency, used to shape trees and trellises.

All metrics return a symmetric, non-negative `(n_labels, n_labels)` matrix
with zero diagonal; higher values mean stronger dependency.
"""

import logging
from typing import Callable, Union

import numpy as np
from scipy.special import xlogy
from sklearn.base import clone
from sklearn.metrics import mutual_info_score
from sklearn.model_selection import KFold, cross_val_predict
from sklearn.utils import check_random_state

from sklearn_chains.common import CANCELLED, check_cancel_token

logger = logging.getLogger(__name__)


def binary_mutual_information(Y: np.ndarray) -> np.ndarray:
    """Mutual information of each pair of labels, treating every label as
    binary (`y > 0`). Computed from the 2x2 co-occurrence frequencies of all
    pairs at once.
    """
    B = (np.asarray(Y) > 0).astype(float)
    n_samples = len(B)
    p1 = B.mean(axis=0)  # p(y_j = 1)
    p0 = 1. - p1
    p11 = B.T @ B / n_samples
    p10 = p1[:, np.newaxis] - p11
    p01 = p1[np.newaxis, :] - p11
    p00 = 1. - p11 - p10 - p01
    I = np.zeros_like(p11)
    for p_joint, p_a, p_b in ((p11, p1, p1), (p10, p1, p0),
                              (p01, p0, p1), (p00, p0, p0)):
        p_joint = np.clip(p_joint, 0., 1.)
        expected = np.outer(p_a, p_b)
        with np.errstate(divide='ignore', invalid='ignore'):
            ratio = np.where(expected > 0, p_joint / expected, 1.)
        I += xlogy(p_joint, ratio)
    return _finish(I)


def mutual_information(Y: np.ndarray) -> np.ndarray:
    """Mutual information of each pair of labels over all their values."""
    Y = np.asarray(Y)
    n_labels = Y.shape[1]
    I = np.zeros((n_labels, n_labels))
    for j in range(n_labels):
        for k in range(j + 1, n_labels):
            I[j, k] = I[k, j] = mutual_info_score(Y[:, j], Y[:, k])
    return _finish(I)


def correlation(Y: np.ndarray) -> np.ndarray:
    """Absolute Pearson correlation of each pair of labels. Constant labels
    are uncorrelated with everything.
    """
    Y = np.asarray(Y, dtype=float)
    centered = Y - Y.mean(axis=0)
    norm = np.sqrt((centered ** 2).sum(axis=0))
    with np.errstate(divide='ignore', invalid='ignore'):
        C = (centered.T @ centered) / np.outer(norm, norm)
    return _finish(np.abs(np.nan_to_num(C)))


def lead(Y: np.ndarray, X: np.ndarray, estimator,
         random_state=None, n_splits: int = 3, cancel_token=None):
    """LEAD: dependency among the *errors* of independent per-label models.

    Each label is predicted from `X` alone with out-of-fold predictions of
    `estimator`; the mutual information of the resulting error indicators
    estimates dependency that the features do not explain.

    :return: The dependency matrix, or `CANCELLED` if `cancel_token` was
        set before all per-label models were fitted.
    """
    if X is None or estimator is None:
        raise ValueError("dependency metric 'L' needs X and estimator")
    rng = check_random_state(random_state)
    cancel_token = check_cancel_token(cancel_token)
    Y = np.asarray(Y)
    errors = np.zeros_like(Y)
    for j in range(Y.shape[1]):
        if cancel_token.cancelled:
            return CANCELLED
        y = Y[:, j]
        if np.unique(y).size < 2:
            continue  # constant label, never wrong
        cv = KFold(n_splits=min(n_splits, len(y)), shuffle=True,
                   random_state=rng.randint(np.iinfo(np.int32).max))
        predicted = cross_val_predict(clone(estimator), X, y, cv=cv)
        errors[:, j] = predicted != y
    return mutual_information(errors)


def _finish(M: np.ndarray) -> np.ndarray:
    """Symmetrize, clip small negative rounding errors, zero the diagonal."""
    M = np.maximum((M + M.T) / 2, 0.)
    np.fill_diagonal(M, 0.)
    return M


DEPENDENCY_METRICS = {
    'Ibf': binary_mutual_information,
    'I': mutual_information,
    'C': correlation,
}


def dependency_matrix(Y: np.ndarray,
                      metric: Union[str, Callable] = 'Ibf',
                      *, X: np.ndarray = None,
                      estimator=None,
                      random_state=None,
                      cancel_token=None):
    """Compute pairwise label dependency.

    :param Y: Label matrix of shape `(n_samples, n_labels)`.
    :param metric: One of

        - 'Ibf': mutual information of binarized labels (fast).
        - 'I': mutual information over all label values.
        - 'C': absolute correlation.
        - 'L': LEAD, mutual information of the errors of per-label models.
          Requires `X` and `estimator`.
        - a callable `metric(Y)` returning the matrix.
    :param cancel_token: Checked while fitting the models of 'L'.
    :return: np.ndarray of shape `(n_labels, n_labels)`, or `CANCELLED`.
    """
    if callable(metric):
        M = np.asarray(metric(Y), dtype=float)
        n_labels = np.shape(Y)[1]
        if M.shape != (n_labels, n_labels):
            raise ValueError("dependency metric returned shape %s, expected"
                             " %s" % (M.shape, (n_labels, n_labels)))
        return _finish(M)
    if metric == 'L':
        M = lead(Y, X, estimator, random_state, cancel_token=cancel_token)
        if M is CANCELLED:
            return CANCELLED
    elif metric in DEPENDENCY_METRICS:
        M = DEPENDENCY_METRICS[metric](Y)
    else:
        raise ValueError("Unknown dependency metric %r, expected a callable,"
                         " 'L' or one of %s"
                         % (metric, sorted(DEPENDENCY_METRICS)))
    logger.debug("dependency matrix (%s):\n%s", metric, M)
    return M
