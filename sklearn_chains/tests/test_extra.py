"""Tests for `sklearn_chains.extra`."""

import matplotlib
matplotlib.use('Agg')  # no display in tests

import pytest
from matplotlib.figure import Figure
from matplotlib.text import Annotation

from sklearn_chains.common import ChainGraph, CompleteGraph, Trellis
from sklearn_chains.extra import \
    label_positions, plot_label_graph, plot_payoff_trace
from sklearn_chains.predefined import MonteCarloClassifierChain
from sklearn_chains.tests.datasets import sklearn_multilabel


def _count_arrows(figure: Figure) -> int:
    return sum(isinstance(text, Annotation)
               for ax in figure.axes for text in ax.texts)


def test_label_positions():
    trellis = Trellis([3, 1, 0, 2], width=2)
    positions = label_positions(trellis)
    assert positions[3].tolist() == [0, 0]
    assert positions[2].tolist() == [1, -1]
    chain = ChainGraph([2, 0, 1])
    assert label_positions(chain)[:, 0].tolist() == [1, 2, 0]


@pytest.mark.parametrize('graph, n_arrows', [
    (ChainGraph([2, 0, 1]), 3),
    (Trellis(range(6), width=3, density=2), 7),
    (Trellis(range(4), width=2, density=1, directed=False), 2),
    (CompleteGraph(4), 6),
])
def test_plot_label_graph(graph, n_arrows):
    figure = plot_label_graph(graph, title=repr(graph))
    assert isinstance(figure, Figure)
    assert _count_arrows(figure) == n_arrows
    with pytest.raises(ValueError):
        plot_label_graph(graph, label_names=['a'])


def test_plot_payoff_trace():
    dataset = sklearn_multilabel()
    est = MonteCarloClassifierChain(chain_iterations=4,
                                    inference_iterations=0, random_state=0)
    est.fit(dataset.x_train, dataset.y_train)
    figure = plot_payoff_trace(est.search_trace_, title="chain search")
    assert isinstance(figure, Figure)

    with pytest.warns(UserWarning, match="Empty trace"):
        plot_payoff_trace([])
