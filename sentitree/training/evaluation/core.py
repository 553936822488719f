# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Held-out evaluation.

Accuracy of a model's predictions against gold labels, over every internal
node and over tree roots only. This is a measurement, not a policy: the
trainer logs it at checkpoints when dev trees are supplied and does not use
it to select or stop anything.
"""

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence, runtime_checkable

from sentitree.logging.logger import get_logger
from sentitree.trees.gold import LabeledTree
from sentitree.trees.tree import Tree

logger: logging.Logger = get_logger(__name__)


@runtime_checkable
class Predictor(Protocol):
    def predict(self, tree: Tree) -> dict[Tree, int]: ...


@dataclass(frozen=True)
class EvaluationResult:
    """Counts and accuracies from one evaluation pass."""

    trees: int
    nodes: int
    nodes_correct: int
    roots_correct: int

    @property
    def node_accuracy(self) -> float:
        return self.nodes_correct / self.nodes if self.nodes else 0.0

    @property
    def root_accuracy(self) -> float:
        return self.roots_correct / self.trees if self.trees else 0.0


def evaluate(model: Predictor, trees: Sequence[LabeledTree]) -> EvaluationResult:
    """Score `model` on `trees`."""
    nodes = 0
    nodes_correct = 0
    roots_correct = 0
    scored_trees = 0

    for example in trees:
        predicted = model.predict(example.tree)
        for node, gold in example.gold.items():
            nodes += 1
            if predicted.get(node) == gold:
                nodes_correct += 1
        if example.tree in example.gold:
            scored_trees += 1
            if predicted.get(example.tree) == example.gold[example.tree]:
                roots_correct += 1

    result = EvaluationResult(
        trees=scored_trees,
        nodes=nodes,
        nodes_correct=nodes_correct,
        roots_correct=roots_correct,
    )
    logger.info(
        "Evaluation finished",
        extra={
            "trees": result.trees,
            "node_accuracy": round(result.node_accuracy, 6),
            "root_accuracy": round(result.root_accuracy, 6),
        },
    )
    return result
