# script fitting classifier chain variants on a synthetic multi-label dataset
# and calculating usual evaluation measures on a held out test set

import logging

from sklearn.datasets import make_multilabel_classification
from sklearn.metrics import classification_report, hamming_loss
from sklearn.model_selection import train_test_split

from sklearn_chains.extra import plot_label_graph, plot_payoff_trace
from sklearn_chains.predefined import \
    BayesianClassifierChain, ClassifierChain, ClassifierTrellis, \
    ConditionalDependencyNetwork, MonteCarloClassifierChain, \
    ProbabilisticClassifierChain

logging.basicConfig(format='%(asctime)s:' + logging.BASIC_FORMAT,
                    level=logging.INFO)
logging.getLogger('sklearn_chains.search').setLevel(logging.DEBUG)
logging.captureWarnings(True)

X, Y = make_multilabel_classification(n_samples=600, n_features=12,
                                      n_classes=6, n_labels=2,
                                      random_state=1)
X_train, X_test, Y_train, Y_test = train_test_split(X, Y, random_state=1)
label_names = ['label_%d' % j for j in range(Y.shape[1])]

estimators = [
    ClassifierChain(),
    ProbabilisticClassifierChain(),
    MonteCarloClassifierChain(chain_iterations=10, inference_iterations=20,
                              random_state=1),
    BayesianClassifierChain(),
    ClassifierTrellis(width=3, density=2, random_state=1),
    ConditionalDependencyNetwork(n_iterations=200, n_collect=100,
                                 random_state=1),
]

for est in estimators:
    est.fit(X_train, Y_train)
    pred = est.predict(X_test)
    print(flush=True)
    print("# %s #" % type(est).__name__)
    print(est.export_text(label_names))
    print("subset accuracy: %.3f, hamming loss: %.3f"
          % (est.score(X_test, Y_test), hamming_loss(Y_test, pred)))

# per label report and plots of the last chain search and trellis
print(classification_report(Y_test, estimators[2].predict(X_test),
                            target_names=label_names, zero_division=0))
plot_payoff_trace(estimators[2].search_trace_,
                  title="MonteCarloClassifierChain order search").show()
plot_label_graph(estimators[4].graph_, label_names=label_names,
                 title="ClassifierTrellis").show()

pass
