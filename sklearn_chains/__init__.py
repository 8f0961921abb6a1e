"""Structured multi-label classification with classifier chains, trees,
trellises and dependency networks.

Every label gets one model, conditioned on the features and on the values of
other labels; a label graph decides which ones. Predictions come from greedy,
exhaustive, Monte Carlo or Gibbs sampling inference over that graph.

Limitations / Assumptions
=====

- label values are non-negative integers `[0..n_values_[j])`; values not
  seen during `fit` cannot be predicted
- no sparse input
- no missing values
- no sample weighting during `fit`
- label graphs are fixed after `fit`; no incremental learning
- classification only, no regression
"""

__all__ = ['abstract', 'builders', 'common', 'dependency', 'extra',
           'inference', 'predefined', 'search', 'tests', 'util']
