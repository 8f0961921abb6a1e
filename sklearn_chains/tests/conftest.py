"""pytest fixtures for the test cases in this directory."""
from typing import Type

import numpy as np
import pytest
from numpy.testing import assert_array_equal, assert_raises
from sklearn.tree import DecisionTreeClassifier

from sklearn_chains.abstract import _BaseLabelGraphClassifier
from sklearn_chains.predefined import \
    ClassifierChain, ProbabilisticClassifierChain, MonteCarloClassifierChain, \
    BayesianClassifierChain, ClassifierTrellis, \
    ConditionalDependencyNetwork, ConditionalDependencyTrellis

from .datasets import \
    chained_labels, multi_valued_labels, sklearn_multilabel


def assert_array_unequal(actual, expected, *args):
    """Fail iff arrays are equal. Arguments like `assert_array_equal`."""
    with assert_raises(AssertionError):
        assert_array_equal(actual, expected, *args)


class CountdownToken:
    """Cancellation token reporting `cancelled` after `n` queries.

    Cancels deterministically in the middle of an operation. Every query
    counts, including the one in `check_cancel_token`.
    """

    def __init__(self, n: int):
        self.remaining = n

    @property
    def cancelled(self) -> bool:
        self.remaining -= 1
        return self.remaining < 0


class CountingTree(DecisionTreeClassifier):
    """Decision tree counting calls to `fit` over all its clones in
    `CountingTree.n_fits`. Reset it before use.
    """

    n_fits = 0

    def fit(self, X, y, sample_weight=None, check_input=True):
        type(self).n_fits += 1
        return super().fit(X, y, sample_weight=sample_weight,
                           check_input=check_input)


# keep the sampling estimators quick
FAST_PARAMS = {
    MonteCarloClassifierChain: dict(chain_iterations=3,
                                    inference_iterations=5),
    ClassifierTrellis: dict(inference_iterations=5),
    ConditionalDependencyNetwork: dict(n_iterations=30, n_collect=10),
    ConditionalDependencyTrellis: dict(n_iterations=30, n_collect=10),
}


@pytest.fixture(params=[ClassifierChain,
                        ProbabilisticClassifierChain,
                        MonteCarloClassifierChain,
                        BayesianClassifierChain,
                        ClassifierTrellis,
                        ConditionalDependencyNetwork,
                        ConditionalDependencyTrellis])
def estimator_class(request) -> Type[_BaseLabelGraphClassifier]:
    """Fixture running for each of the pre-defined estimator classes from
    `sklearn_chains.predefined`.

    :return: An estimator class.
    """
    return request.param


@pytest.fixture
def estimator(estimator_class) -> _BaseLabelGraphClassifier:
    """Fixture running for each of the pre-defined estimators from
    `sklearn_chains.predefined`, with a fixed random state and few
    iterations.

    :return: An estimator instance.
    """
    return estimator_class(random_state=0,
                           **FAST_PARAMS.get(estimator_class, {}))


@pytest.fixture(params=[chained_labels,
                        multi_valued_labels,
                        sklearn_multilabel])
def blackbox_test(request):
    return request.param()


@pytest.fixture
def binary_dependency():
    """Dependency among 4 labels, strongest along the path 0-1-2-3."""
    dependency = np.full((4, 4), 0.1)
    dependency[0, 1] = dependency[1, 0] = 0.9
    dependency[1, 2] = dependency[2, 1] = 0.8
    dependency[2, 3] = dependency[3, 2] = 0.7
    np.fill_diagonal(dependency, 0)
    return dependency
