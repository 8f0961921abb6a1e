"""
Structured multi-label classification:
Known instantiations of label graph and inference strategy.
"""

import logging

from sklearn_chains.abstract import \
    _BaseChainClassifier, _BaseGibbsClassifier
from sklearn_chains.builders import \
    make_chain, make_complete, make_tree, make_trellis
from sklearn_chains.common import CANCELLED
from sklearn_chains.dependency import dependency_matrix
from sklearn_chains.inference import \
    DEFAULT_MAX_COMBINATIONS, exhaustive_inference
from sklearn_chains.search import monte_carlo_inference, search_chain_order

logger = logging.getLogger(__name__)


class ClassifierChain(_BaseChainClassifier):
    """Classifier chain (Read et al. 2009): every label conditioned on all
    labels before it in `order`, inferred greedily.

    Parameters
    -----
    order : None or 'random' or array-like of shape (n_labels,)
        None for the identity order, 'random' for a permutation drawn from
        `random_state`, or a permutation of the label indices.
    """

    def __init__(self, base_estimator=None, order=None, random_state=None):
        super().__init__(base_estimator, random_state)
        self.order = order

    def _make_graph(self, X, Y, rng, cancel_token):
        return make_chain(Y.shape[1], self.order, rng)


class ProbabilisticClassifierChain(ClassifierChain):
    """Probabilistic classifier chain (Dembczynski et al. 2010): a classifier
    chain inferred by enumerating all label combinations, which is
    Bayes-optimal for subset accuracy.

    Parameters
    -----
    max_combinations : int
        Stop enumerating after that many combinations with a warning, and
        return the best found so far.
    """

    def __init__(self, base_estimator=None, order=None,
                 max_combinations=DEFAULT_MAX_COMBINATIONS,
                 random_state=None):
        super().__init__(base_estimator, order, random_state)
        self.max_combinations = max_combinations

    def _infer(self, X, rng, cancel_token):
        result = exhaustive_inference(self.nodes_, self.graph_, X,
                                      self.n_values_, self.max_combinations,
                                      cancel_token)
        if result is CANCELLED:
            return CANCELLED
        Y, confidences = result
        return Y, self._scores(Y, confidences)


class _MonteCarloInferenceMixin:
    """Infer by random search of the output space, starting from the greedy
    solution, see `sklearn_chains.search.monte_carlo_inference`.
    """

    inference_iterations: int

    def _infer(self, X, rng, cancel_token):
        result = monte_carlo_inference(self.nodes_, self.graph_, X,
                                       self.inference_iterations, rng,
                                       cancel_token)
        if result is CANCELLED:
            return CANCELLED
        Y, confidences = result
        return Y, self._scores(Y, confidences)


# noinspection PyAttributeOutsideInit
class MonteCarloClassifierChain(_MonteCarloInferenceMixin, ClassifierChain):
    """Monte Carlo classifier chain (Read et al. 2014): the chain order is
    searched at training time, the output space at prediction time.

    Parameters
    -----
    chain_iterations : int
        Number of chain orders proposed during `fit`, each by swapping two
        labels of the best order so far. 0 keeps the initial `order`.

    inference_iterations : int
        Number of assignments sampled per prediction. 0 means greedy
        inference.

    payoff : str or callable
        Rates the training predictions of a chain, higher is better. One of
        the names in `sklearn_chains.util.PAYOFFS` or a callable
        `payoff(Y_true, Y_pred) -> float`.

    Attributes
    -----
    payoff_history_ : List[float]
        Payoff of the initial chain and of each accepted proposal.
        Non-decreasing. Empty if `chain_iterations == 0`.

    search_trace_ : List[Tuple[Tuple[int, ...], float, bool]]
        Every evaluated order, its payoff and whether it was accepted.
    """

    def __init__(self, base_estimator=None, order=None, chain_iterations=0,
                 inference_iterations=10, payoff='exact_match',
                 random_state=None):
        super().__init__(base_estimator, order, random_state)
        self.chain_iterations = chain_iterations
        self.inference_iterations = inference_iterations
        self.payoff = payoff

    def _fit_graph(self, X, Y, n_values, rng, cancel_token):
        result = search_chain_order(X, Y, self._get_base_estimator(),
                                    n_values, self.order,
                                    self.chain_iterations, self.payoff, rng,
                                    cancel_token)
        if result is CANCELLED:
            return CANCELLED
        logger.debug("final chain order %s, payoff %f",
                     result.graph.order.tolist(), result.payoff)
        return {'graph_': result.graph,
                'nodes_': result.nodes,
                'payoff_history_': result.history,
                'search_trace_': result.trace}


class _DependencyMixin:
    """Label dependency as configured by `dependency_metric`, see
    `sklearn_chains.dependency.dependency_matrix`. None if the metric is None,
    `CANCELLED` if `cancel_token` was set while computing it.
    """

    dependency_metric: str

    def _dependency(self, X, Y, rng, cancel_token):
        if self.dependency_metric is None:
            return None
        return dependency_matrix(Y, self.dependency_metric, X=X,
                                 estimator=self._get_base_estimator(),
                                 random_state=rng, cancel_token=cancel_token)


class BayesianClassifierChain(_DependencyMixin, _BaseChainClassifier):
    """Bayesian classifier chain (Zaragoza et al. 2011): every label has at
    most one parent label, given by a maximum spanning tree of the label
    dependency, inferred greedily.

    Parameters
    -----
    dependency_metric : str or callable
        Label dependency the tree maximizes, see
        `sklearn_chains.dependency.dependency_matrix`.

    root : int
        The label at the root of the tree.

    tie_break : 'first' or 'random'
        Selection among edges of equal dependency, see
        `sklearn_chains.builders.maximum_spanning_tree`.
    """

    def __init__(self, base_estimator=None, dependency_metric='Ibf', root=0,
                 tie_break='first', random_state=None):
        super().__init__(base_estimator, random_state)
        self.dependency_metric = dependency_metric
        self.root = root
        self.tie_break = tie_break

    def _make_graph(self, X, Y, rng, cancel_token):
        if self.dependency_metric is None:
            raise ValueError("BayesianClassifierChain needs a "
                             "dependency_metric")
        dependency = self._dependency(X, Y, rng, cancel_token)
        if dependency is CANCELLED:
            return CANCELLED
        return make_tree(dependency, self.root, self.tie_break, rng)


class ClassifierTrellis(_DependencyMixin, _MonteCarloInferenceMixin,
                        _BaseChainClassifier):
    """Classifier trellis (Read et al. 2015): labels placed on a grid, each
    conditioned on a fixed number of grid neighbours placed before it, so
    the cost grows linearly with the number of labels. Inferred by random
    search of the output space.

    Parameters
    -----
    width : int
        Trellis width. Negative for a square trellis, 0 for a single row.

    density : int in [0..4]
        Neighbour pattern: 1 left, 2 also above, 3 also above-left, 4 also
        above-right.

    dependency_metric : None or str or callable
        If not None, the placement of labels is chosen greedily to maximize
        the dependency between grid neighbours, see
        `sklearn_chains.builders.order_trellis`.

    inference_iterations : int
        Number of assignments sampled per prediction. 0 means greedy
        inference.
    """

    def __init__(self, base_estimator=None, width=-1, density=1,
                 dependency_metric='Ibf', inference_iterations=10,
                 random_state=None):
        super().__init__(base_estimator, random_state)
        self.width = width
        self.density = density
        self.dependency_metric = dependency_metric
        self.inference_iterations = inference_iterations

    def _make_graph(self, X, Y, rng, cancel_token):
        dependency = self._dependency(X, Y, rng, cancel_token)
        if dependency is CANCELLED:
            return CANCELLED
        return make_trellis(Y.shape[1], self.width, self.density,
                            directed=True, dependency=dependency,
                            random_state=rng, cancel_token=cancel_token)


class ConditionalDependencyNetwork(_BaseGibbsClassifier):
    """Conditional dependency network (Guo and Gu 2011): every label
    conditioned on all other labels, inferred by Gibbs sampling.

    See `_BaseGibbsClassifier` for `n_iterations` and `n_collect`.
    """

    def __init__(self, base_estimator=None, n_iterations=1000, n_collect=100,
                 random_state=None):
        super().__init__(base_estimator, random_state)
        self.n_iterations = n_iterations
        self.n_collect = n_collect

    def _make_graph(self, X, Y, rng, cancel_token):
        return make_complete(Y.shape[1])


class ConditionalDependencyTrellis(_DependencyMixin, _BaseGibbsClassifier):
    """Conditional dependency trellis: every label conditioned on its
    neighbours in both directions on a trellis grid, inferred by Gibbs
    sampling.

    See `ClassifierTrellis` for `width`, `density` and `dependency_metric`,
    and `_BaseGibbsClassifier` for `n_iterations` and `n_collect`.
    """

    def __init__(self, base_estimator=None, width=-1, density=1,
                 dependency_metric=None, n_iterations=1000, n_collect=100,
                 random_state=None):
        super().__init__(base_estimator, random_state)
        self.width = width
        self.density = density
        self.dependency_metric = dependency_metric
        self.n_iterations = n_iterations
        self.n_collect = n_collect

    def _make_graph(self, X, Y, rng, cancel_token):
        dependency = self._dependency(X, Y, rng, cancel_token)
        if dependency is CANCELLED:
            return CANCELLED
        return make_trellis(Y.shape[1], self.width, self.density,
                            directed=False, dependency=dependency,
                            random_state=rng, cancel_token=cancel_token)
