"""
Measure & plot runtime of fit and predict of the label graph estimators with
various label counts.
"""

import sys
import time
import timeit
from typing import Iterable, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np

import sklearn_chains.predefined


def time_estimator(estimator: str, n_labels: int, method: str
                   ) -> Optional[Sequence[float]]:
    setup = ';\n'.join((
        "import sklearn_chains.predefined",
        "from sklearn_chains.tests import datasets",
        "dataset = datasets.sklearn_multilabel(n_samples=300, n_labels=%d)"
            % n_labels,
        "estimator = sklearn_chains.predefined.%s(random_state=0)"
            % estimator))
    if method == 'fit':
        stmt = "estimator.fit(dataset.x_train, dataset.y_train)"
    else:
        setup += ";\nestimator.fit(dataset.x_train, dataset.y_train)"
        stmt = "estimator.predict(dataset.x_test)"
    timer = timeit.Timer(stmt, setup)
    try:
        ti_number, raw_autorange_timing = timer.autorange()
        raw_timings = timer.repeat(repeat=3, number=ti_number) \
            + [raw_autorange_timing]
    except ValueError:
        return None
    return sorted(timing / ti_number for timing in raw_timings)


def timing_for_labels(estimator: str, max_labels: int = 16) -> Iterable:
    for n_labels in range(2, max_labels + 1, 2):
        for method in ('fit', 'predict'):
            timings = time_estimator(estimator, n_labels, method)
            if timings:
                yield n_labels, method, timings


def plot_timings(timings, title=None, figure=None):
    if figure is None:
        figure: plt.Figure = plt.figure()
    axes = figure.add_subplot(1, 1, 1)
    axes.set_xlabel('n_labels')
    axes.set_ylabel('time[s]')
    axes.set_yscale('log')
    if title is not None:
        axes.set_title(title)
    for method in ('fit', 'predict'):
        rows = [(n, tm[0]) for n, m, tm in timings if m == method]
        if rows:
            n_labels, tm_min = np.array(rows).T
            axes.plot(n_labels, tm_min, '.-', label=method)
    axes.legend()
    axes.grid(True)
    figure.tight_layout()
    return figure


def log(message):
    print("%s %s" % (time.strftime('%Y-%m-%dT%H:%M:%S%z'), message),
          file=sys.stderr)


if __name__ == "__main__":
    estimator = sys.argv[1] if len(sys.argv) > 1 \
        else sklearn_chains.predefined.ClassifierTrellis.__name__
    log("start timing of %s" % estimator)
    print("n_labels, method, timings...")
    all_timings = []
    try:
        for n_labels, method, timings in timing_for_labels(estimator):
            all_timings.append((n_labels, method, timings))
            print('[%d,%s,%s],' % (n_labels, method,
                                   ",".join(str(x) for x in timings)))
    except KeyboardInterrupt:
        pass
    log("stop timing of %s, got %d timings" % (estimator, len(all_timings)))
    if all_timings:
        log("plotting")
        plot_timings(all_timings, 'runtime of %s' % estimator).show()

    input('Press any key to exit.')
