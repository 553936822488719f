# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Cost and gradient of the recursive sentiment model.

The loss of a batch is the mean over trees of the summed cross-entropy at
every internal node, plus L2 penalties:

    loss = (1/|batch|) * sum_trees sum_nodes -log p(gold | node)
           + reg_transform/2      * (|W|^2 + |T|^2)
           + reg_classification/2 * |Ws|^2
           + reg_word_vector/2    * |L|^2

Gradients come from torch.autograd on a float64 leaf vector, so they are
exact up to rounding and the finite-difference check can hold them to a
tight tolerance.

Per-tree losses are independent, so with num_workers > 1 each tree is
differentiated on a thread pool and the gradients are summed afterwards in
batch order. The result does not depend on which thread finished first.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Sequence

import torch

from sentitree.config.schema import GradientCheckConfig, TrainConfig
from sentitree.logging.logger import get_logger
from sentitree.model.interfaces import CostAndGradient
from sentitree.model.recursive import DTYPE, RecursiveSentimentModel
from sentitree.trees.gold import LabeledTree
from sentitree.trees.tree import TreeFormatError

logger: logging.Logger = get_logger(__name__)


class TreeCostAndGradient(CostAndGradient):
    """
    Autograd evaluator for a RecursiveSentimentModel.

    The model supplies the parameter layout and the forward pass; the
    parameters themselves always come from the theta passed in, never from
    the model's own tensors.
    """

    def __init__(
        self,
        model: RecursiveSentimentModel,
        reg_transform: float = 0.001,
        reg_classification: float = 0.0001,
        reg_word_vector: float = 0.0001,
        num_workers: int = 1,
        epsilon: float = 1e-6,
        tolerance: float = 1e-5,
        seed: int = 42,
    ) -> None:
        self.model = model
        self.reg_transform = reg_transform
        self.reg_classification = reg_classification
        self.reg_word_vector = reg_word_vector
        self.num_workers = num_workers
        self.epsilon = epsilon
        self.tolerance = tolerance
        self.seed = seed

    @classmethod
    def from_config(
        cls,
        model: RecursiveSentimentModel,
        train_config: TrainConfig,
        seed: int = 42,
    ) -> "TreeCostAndGradient":
        check: GradientCheckConfig = train_config.gradient_check
        return cls(
            model,
            reg_transform=train_config.reg_transform,
            reg_classification=train_config.reg_classification,
            reg_word_vector=train_config.reg_word_vector,
            num_workers=train_config.num_workers,
            epsilon=check.epsilon,
            tolerance=check.tolerance,
            seed=seed,
        )

    # ── loss pieces ──

    def _tree_loss(self, theta: torch.Tensor, example: LabeledTree) -> torch.Tensor:
        params = self.model.split(theta)
        vectors = self.model.node_vectors(example.tree, params)
        num_classes = self.model.config.num_classes
        loss = theta.new_zeros(())
        for node, vector in vectors.items():
            gold = example.gold_class(node)
            if not 0 <= gold < num_classes:
                raise TreeFormatError(
                    f"Gold class {gold} outside [0, {num_classes}) at node {node.label!r}"
                )
            loss = loss - self.model.class_log_probabilities(vector, params)[gold]
        return loss

    def _regularization(self, theta: torch.Tensor) -> torch.Tensor:
        params = self.model.split(theta)
        transform_norm = params["transform"].pow(2).sum()
        if "transform_tensor" in params:
            transform_norm = transform_norm + params["transform_tensor"].pow(2).sum()
        return (
            0.5 * self.reg_transform * transform_norm
            + 0.5 * self.reg_classification * params["classification"].pow(2).sum()
            + 0.5 * self.reg_word_vector * params["word_vectors"].pow(2).sum()
        )

    def value_at(self, theta: torch.Tensor, batch: Sequence[LabeledTree]) -> float:
        """Loss only; no graph is built."""
        if not batch:
            raise ValueError("Cannot evaluate an empty batch")
        with torch.no_grad():
            theta = theta.to(DTYPE)
            total = sum(self._tree_loss(theta, example) for example in batch)
            return float(total / len(batch) + self._regularization(theta))

    def compute(
        self,
        theta: torch.Tensor,
        batch: Sequence[LabeledTree],
    ) -> tuple[float, torch.Tensor]:
        if not batch:
            raise ValueError("Cannot evaluate an empty batch")

        leaf = theta.detach().to(DTYPE).clone().requires_grad_(True)

        if self.num_workers > 1 and len(batch) > 1:
            tree_loss_sum, tree_grad_sum = self._reduce_parallel(leaf, batch)
            regularization = self._regularization(leaf)
            (reg_grad,) = torch.autograd.grad(regularization, leaf)
            loss = tree_loss_sum / len(batch) + float(regularization.detach())
            gradient = tree_grad_sum / len(batch) + reg_grad
            return loss, gradient.detach()

        total = leaf.new_zeros(())
        for example in batch:
            total = total + self._tree_loss(leaf, example)
        objective = total / len(batch) + self._regularization(leaf)
        (gradient,) = torch.autograd.grad(objective, leaf)
        return float(objective.detach()), gradient.detach()

    def _reduce_parallel(
        self,
        leaf: torch.Tensor,
        batch: Sequence[LabeledTree],
    ) -> tuple[float, torch.Tensor]:
        def one_tree(example: LabeledTree) -> tuple[float, torch.Tensor]:
            loss = self._tree_loss(leaf, example)
            (grad,) = torch.autograd.grad(loss, leaf)
            return float(loss.detach()), grad

        with ThreadPoolExecutor(max_workers=self.num_workers) as pool:
            results = list(pool.map(one_tree, batch))

        loss_sum = 0.0
        grad_sum = torch.zeros_like(leaf, dtype=DTYPE)
        for loss, grad in results:
            loss_sum += loss
            grad_sum += grad
        return loss_sum, grad_sum

    # ── finite differences ──

    def _check_indices(
        self,
        parameter_count: int,
        num_checks: int,
        num_random_checks: int,
    ) -> list[int]:
        indices: set[int] = set()
        if num_checks >= parameter_count:
            indices.update(range(parameter_count))
        elif num_checks > 0:
            stride = torch.linspace(0, parameter_count - 1, num_checks, dtype=torch.float64)
            indices.update(int(round(i)) for i in stride.tolist())
        if num_random_checks > 0 and parameter_count > 0:
            generator = torch.Generator().manual_seed(self.seed)
            drawn = torch.randint(0, parameter_count, (num_random_checks,), generator=generator)
            indices.update(drawn.tolist())
        return sorted(indices)

    def gradient_check(
        self,
        batch: Sequence[LabeledTree],
        theta: torch.Tensor,
        num_checks: int,
        num_random_checks: int,
    ) -> bool:
        theta = theta.detach().to(DTYPE)
        _, analytic = self.compute(theta, batch)
        indices = self._check_indices(theta.numel(), num_checks, num_random_checks)

        mismatches = 0
        worst = 0.0
        for index in indices:
            plus = theta.clone()
            plus[index] += self.epsilon
            minus = theta.clone()
            minus[index] -= self.epsilon
            numeric = (self.value_at(plus, batch) - self.value_at(minus, batch)) / (
                2.0 * self.epsilon
            )
            exact = float(analytic[index])
            gap = abs(numeric - exact) / max(1.0, abs(numeric), abs(exact))
            worst = max(worst, gap)
            if not math.isfinite(gap) or gap > self.tolerance:
                mismatches += 1
                logger.warning(
                    "Gradient mismatch",
                    extra={"index": index, "analytic": exact, "numeric": numeric, "gap": gap},
                )

        logger.info(
            "Gradient check finished",
            extra={"checked": len(indices), "mismatches": mismatches, "worst_gap": worst},
        )
        return mismatches == 0
