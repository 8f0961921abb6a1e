"""
Structured multi-label classification:
Plots in addition to the estimators in `predefined.py`.
"""

import warnings
from typing import Optional, Sequence, Tuple

import numpy as np
import matplotlib.pyplot as plt
from matplotlib import axes
from matplotlib.figure import Figure  # needed only for type hints

from sklearn_chains.common import LabelGraph, Trellis


def label_positions(graph: LabelGraph) -> np.ndarray:
    """:return: Array of shape `(n_labels, 2)` with the `(x, y)` drawing
        position of each label. Trellis labels sit on their grid cell (first
        row on top), all others on a line in `graph.order`.
    """
    positions = np.zeros((graph.n_labels, 2))
    for position, j in enumerate(graph.order):
        if isinstance(graph, Trellis):
            row, col = divmod(position, graph.width)
            positions[j] = col, -row
        else:
            positions[j] = position, 0
    return positions


def plot_label_graph(graph: LabelGraph,
                     *,
                     label_names: Optional[Sequence[str]] = None,
                     title: Optional[str] = None,
                     figure: Optional[Figure] = None) -> Figure:
    """Draw the labels of `graph` and the dependencies among them.

    Acyclic graphs get arrows from parent to child. For cyclic graphs every
    neighbour pair gets one undirected line.

    :param label_names: Names drawn on the nodes. If None, use `y_j`.
    :param title: string or None. If not None, set as figure title.
    :param figure: If None, use `plt.figure()` to create a figure,
      otherwise draw into this one.
    """
    if label_names is None:
        label_names = ['y_%d' % j for j in range(graph.n_labels)]
    elif len(label_names) != graph.n_labels:
        raise ValueError("label_names must contain %d elements, got %d"
                         % (graph.n_labels, len(label_names)))
    if figure is None:
        figure = plt.figure()
    ax: axes.Axes = figure.add_subplot(1, 1, 1)
    ax.set_axis_off()
    positions = label_positions(graph)
    # chains have long edges on a single line, bend them to stay visible
    bend = 0. if isinstance(graph, Trellis) else 0.4

    drawn = set()
    for parent, child in graph.edges():
        if not graph.acyclic:
            if (child, parent) in drawn:
                continue
            drawn.add((parent, child))
        ax.annotate("", xytext=positions[parent], xy=positions[child],
                    arrowprops={'arrowstyle': '->' if graph.acyclic else '-',
                                'connectionstyle': 'arc3,rad=%s' % bend,
                                'shrinkA': 12, 'shrinkB': 12,
                                'color': 'grey'},
                    zorder=-1)
    for j, (x, y) in enumerate(positions):
        ax.text(x, y, label_names[j], ha='center', va='center',
                bbox={'boxstyle': 'circle', 'facecolor': 'white'})
    ax.set_xlim(positions[:, 0].min() - 1, positions[:, 0].max() + 1)
    ax.set_ylim(positions[:, 1].min() - 1, positions[:, 1].max() + 1)
    if title is not None:
        ax.set_title(title)
    return figure


def plot_payoff_trace(trace: Sequence[Tuple[Tuple[int, ...], float, bool]],
                      *,
                      title: Optional[str] = None,
                      figure: Optional[Figure] = None) -> Figure:
    """Plot the payoff of each chain order evaluated by a chain search.

    :param trace: `search_trace_` of a fitted `MonteCarloClassifierChain`,
      or `ChainSearchResult.trace`.
    :param title: string or None. If not None, set as figure title.
    :param figure: If None, use `plt.figure()` to create a figure,
      otherwise draw into this one.
    """
    if not len(trace):
        # issue a warning, user can decide handling. See module `warnings`
        warnings.warn("Empty trace, useless plot.")
    payoffs = np.array([payoff for _, payoff, _ in trace], dtype=float)
    accepted = np.array([acc for _, _, acc in trace], dtype=bool)
    steps = np.arange(len(trace))

    if figure is None:
        figure = plt.figure()
    ax: axes.Axes = figure.add_subplot(1, 1, 1)
    ax.set_xlabel('proposal')
    ax.set_ylabel('payoff')
    ax.locator_params(axis='x', integer=True)
    ax.plot(steps[~accepted], payoffs[~accepted], '.', color='grey',
            label='rejected')
    ax.plot(steps[accepted], payoffs[accepted], 'o', label='accepted')
    if len(trace):
        # best payoff so far, constant between accepted proposals
        ax.step(steps, np.maximum.accumulate(payoffs), where='post',
                alpha=0.5)
    ax.legend(loc='lower right')
    if title is not None:
        ax.set_title(title)
    return figure
