"""
Structured multi-label classification: Abstract base estimators.
"""

from typing import List

import numpy as np

from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.linear_model import LogisticRegression
from sklearn.utils import check_X_y, check_array
from sklearn.utils.validation import check_is_fitted, check_random_state

from sklearn_chains.builders import build_nodes
from sklearn_chains.common import \
    CANCELLED, OperationCancelled, check_cancel_token
from sklearn_chains.inference import \
    gibbs_inference, greedy_inference, joint_weight, mode, path_confidences, \
    sample_chain
from sklearn_chains.util import check_label_matrix, confidence_to_probability


# noinspection PyAttributeOutsideInit
class _BaseLabelGraphClassifier(ClassifierMixin, BaseEstimator):
    """Multi-label classification with one model per label, conditioned on
    the features and on the values of other labels, connected by a
    `LabelGraph`. Deferring to subclasses for building the graph
    (`_make_graph`) and for inference (`_infer`).

    Parameters
    -----
    base_estimator : classifier or None
        Prototype of the per-label models, cloned for every label. Needs
        `fit`, `predict` and `predict_proba`. If None, use
        `sklearn.linear_model.LogisticRegression()`.

    random_state : None | int | instance of np.random.RandomState
        RNG for building the graph and for stochastic inference. Value
        passed through `sklearn.utils.check_random_state`, separately for
        `fit` and each prediction, so an integer seed gives reproducible
        predictions.

    Attributes
    -----
    n_labels_ : int
        Number of labels, i.e. columns of the training label matrix `Y`.

    n_values_ : np.ndarray of shape (n_labels_,)
        Number of possible values of each label, `max(Y[:, j]) + 1` but at
        least 2. Binary labels have `n_values_[j] == 2`.

    n_features_in_ : int
        The number of features in (training) data `X`.

    graph_ : LabelGraph
        The dependency structure among labels.

    nodes_ : List[LabelNode]
        The fitted per-label models, indexed by label.

    order_ : np.ndarray of shape (n_labels_,)
        `graph_.order`, the order the nodes were built in.

    Cancellation
    -----
    `fit`, `predict` and `decision_function` accept a `cancel_token`, e.g. a
    `sklearn_chains.common.CancellationToken`. Once it is cancelled (maybe
    from another thread) they stop at the next check point and raise
    `OperationCancelled`. An interrupted `fit` leaves the estimator as it
    was before.
    """

    def __init__(self, base_estimator=None, random_state=None):
        self.base_estimator = base_estimator
        self.random_state = random_state

    def _get_base_estimator(self):
        if self.base_estimator is None:
            return LogisticRegression()
        return self.base_estimator

    def fit(self, X, Y, cancel_token=None):
        """Build the label graph and fit one model per label.

        :param X: array-like of shape `(n_samples, n_features)`.
        :param Y: array-like of shape `(n_samples, n_labels)` holding
            non-negative integers.
        :param cancel_token: See class documentation.
        """
        X, Y = check_X_y(X, Y, multi_output=True)
        Y, n_values = check_label_matrix(Y)
        cancel_token = check_cancel_token(cancel_token)
        rng = check_random_state(self.random_state)

        fitted = self._fit_graph(X, Y, n_values, rng, cancel_token)
        if fitted is CANCELLED:
            raise OperationCancelled("fit was cancelled")
        # commit only after the complete, successful build
        self.n_labels_ = Y.shape[1]
        self.n_values_ = n_values
        self.n_features_in_ = X.shape[1]
        for name, value in fitted.items():
            setattr(self, name, value)
        self.order_ = self.graph_.order
        return self

    def _fit_graph(self, X, Y, n_values, rng, cancel_token):
        """:return: dict of fitted attributes, at least `graph_` and
            `nodes_`, or `CANCELLED`.
        """
        graph = self._make_graph(X, Y, rng, cancel_token)
        if graph is CANCELLED:
            return CANCELLED
        nodes = build_nodes(graph, X, Y, self._get_base_estimator(),
                            n_values, cancel_token)
        if nodes is CANCELLED:
            return CANCELLED
        return {'graph_': graph, 'nodes_': nodes}

    def _make_graph(self, X, Y, rng, cancel_token):
        """:return: The `LabelGraph` to build nodes for, or `CANCELLED`."""
        raise NotImplementedError

    def _infer(self, X, rng, cancel_token):
        """:return: tuple `(Y, scores)` of predicted label matrix and
            `decision_function` values, or `CANCELLED`.
        """
        raise NotImplementedError

    def _check_X(self, X) -> np.ndarray:
        check_is_fitted(self, ['graph_', 'nodes_'])
        X = check_array(X)
        n_features = X.shape[1]
        if self.n_features_in_ != n_features:
            raise ValueError("Number of features of the model must "
                             "match the input. Model n_features is %s and "
                             "input n_features is %s "
                             % (self.n_features_in_, n_features))
        return X

    def _run_inference(self, X, cancel_token):
        X = self._check_X(X)
        result = self._infer(X, check_random_state(self.random_state),
                             check_cancel_token(cancel_token))
        if result is CANCELLED:
            raise OperationCancelled("inference was cancelled")
        return result

    def predict(self, X, cancel_token=None) -> np.ndarray:
        """Predict all labels of each sample in `X`.

        :return: Integer array of shape `(n_samples, n_labels_)`.
        """
        return self._run_inference(X, cancel_token)[0]

    def decision_function(self, X, cancel_token=None) -> np.ndarray:
        """Predict a "soft" score for each sample and label.

        :return: Array of shape `(n_samples, n_labels_)`. For binary labels
            an estimate of the probability of value 1, see the concrete
            estimators for details.
        """
        return self._run_inference(X, cancel_token)[1]

    def score(self, X, Y, sample_weight=None) -> float:
        """:return: Subset accuracy (exact match) of `predict(X)` w.r.t.
            `Y`, the fraction of samples with all labels correct.
        """
        Y, _ = check_label_matrix(Y)
        correct = np.all(self.predict(X) == Y, axis=1)
        return float(np.average(correct, weights=sample_weight))

    def __sklearn_tags__(self):
        tags = super().__sklearn_tags__()
        tags.target_tags.multi_output = True
        tags.target_tags.single_output = False
        return tags

    def export_text(self, label_names: List[str] = None) -> str:
        """Build a text report showing the learned label dependencies, one
        line per label in build order.

        Parameters
        -----
        label_names : list, optional
            A list of length n_labels_ containing the label names. If None,
            generic names will be generated.
        """
        check_is_fitted(self, 'graph_')
        return self.graph_.export_text(label_names)


class _BaseChainClassifier(_BaseLabelGraphClassifier):
    """Label graphs whose parents all precede their children in `order_`
    (chains, trees, directed trellises). Default inference is greedy: a
    single pass along `order_`.

    `decision_function` returns, if all labels are binary, the probability
    of value 1 derived from the confidence of each predicted value on the
    inferred path; for multi-valued labels the predicted values themselves.
    """

    def _infer(self, X, rng, cancel_token):
        Y = greedy_inference(self.nodes_, self.graph_, X, cancel_token)
        if Y is CANCELLED:
            return CANCELLED
        confidences = path_confidences(self.nodes_, self.graph_, X, Y,
                                       cancel_token)
        if confidences is CANCELLED:
            return CANCELLED
        return Y, self._scores(Y, confidences)

    def _scores(self, Y, confidences):
        if np.all(self.n_values_ == 2):
            return confidence_to_probability(Y, confidences)
        return Y.astype(float)

    def path_probability(self, X, Y) -> np.ndarray:
        """:return: The joint probability of assignment `Y[i]` given `X[i]`,
            the product of the per-label conditional probabilities along
            the graph.
        """
        X = self._check_X(X)
        Y, _ = check_label_matrix(Y, self.n_values_)
        if Y.shape != (len(X), self.n_labels_):
            raise ValueError("Y must have shape %s, got %s"
                             % ((len(X), self.n_labels_), Y.shape))
        return joint_weight(path_confidences(self.nodes_, self.graph_, X, Y))

    def sample(self, X) -> np.ndarray:
        """Draw one assignment per sample in `X` by ancestral sampling."""
        X = self._check_X(X)
        Y, _ = sample_chain(self.nodes_, self.graph_, X,
                            check_random_state(self.random_state))
        return Y


class _BaseGibbsClassifier(_BaseLabelGraphClassifier):
    """Label graphs with cycles, inferred by Gibbs sampling.

    `predict` returns each label's most frequently collected value,
    `decision_function` the mean collected value (for binary labels the
    marginal probability of 1).

    Parameters
    -----
    n_iterations : int
        Total number of Gibbs sweeps.

    n_collect : int
        Number of final sweeps whose samples are collected; the first
        `n_iterations - n_collect` are burn-in. Needs
        `0 < n_collect <= n_iterations`.
    """

    n_iterations: int
    n_collect: int

    def _fit_graph(self, X, Y, n_values, rng, cancel_token):
        if not 0 < self.n_collect <= self.n_iterations:
            raise ValueError("need 0 < n_collect <= n_iterations, got "
                             "n_collect=%d, n_iterations=%d"
                             % (self.n_collect, self.n_iterations))
        return super()._fit_graph(X, Y, n_values, rng, cancel_token)

    def _infer(self, X, rng, cancel_token):
        result = gibbs_inference(self.nodes_, self.graph_, X, self.n_values_,
                                 self.n_iterations, self.n_collect, rng,
                                 cancel_token)
        if result is CANCELLED:
            return CANCELLED
        marginals, counts = result
        return mode(counts), marginals

    def collected_counts(self, X, cancel_token=None) -> np.ndarray:
        """:return: How often each value of each label was collected, array
            of shape `(n_samples, n_labels_, max(n_values_))`.
        """
        X = self._check_X(X)
        result = gibbs_inference(self.nodes_, self.graph_, X, self.n_values_,
                                 self.n_iterations, self.n_collect,
                                 check_random_state(self.random_state),
                                 check_cancel_token(cancel_token))
        if result is CANCELLED:
            raise OperationCancelled("inference was cancelled")
        return result[1]
