# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Abstract base classes for the two collaborators the training engine drives.

The engine never looks inside a model. It needs exactly four things from
it: a flat float64 view of every parameter, a way to load such a vector
back, the vector's length, and a way to write the model to disk. Loss and
gradient come from a separate evaluator so the engine can be tested with
stubs that cost nothing to run.

Contracts:
    TrainableModel.flatten() -> 1-D float64 tensor of length parameter_count()
    TrainableModel.unflatten(theta) replaces every parameter from theta
    CostAndGradient.compute(theta, batch) -> (loss, gradient) with
        gradient.shape == theta.shape
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

import torch

from sentitree.trees.gold import LabeledTree


class TrainableModel(ABC):
    """A parameter container the training engine can read, update and save."""

    @abstractmethod
    def flatten(self) -> torch.Tensor:
        """Return a new 1-D float64 tensor holding every parameter."""
        ...

    @abstractmethod
    def unflatten(self, theta: torch.Tensor) -> None:
        """
        Replace every parameter with the values in theta.

        Raises:
            ValueError: If theta does not have parameter_count() entries.
        """
        ...

    @abstractmethod
    def parameter_count(self) -> int:
        ...

    @abstractmethod
    def serialize(self, path: Path) -> None:
        """
        Write the model to path.

        Raises:
            OSError: If the file cannot be written.
        """
        ...


class CostAndGradient(ABC):
    """Loss and gradient of a model's parameters over a batch of trees."""

    @abstractmethod
    def compute(
        self,
        theta: torch.Tensor,
        batch: Sequence[LabeledTree],
    ) -> tuple[float, torch.Tensor]:
        """
        Evaluate the loss at theta and its gradient.

        Args:
            theta: Flat parameter vector, as produced by TrainableModel.flatten().
            batch: The trees to score. Must not be empty.

        Returns:
            (loss, gradient) with gradient.shape == theta.shape.
        """
        ...

    @abstractmethod
    def gradient_check(
        self,
        batch: Sequence[LabeledTree],
        theta: torch.Tensor,
        num_checks: int,
        num_random_checks: int,
    ) -> bool:
        """
        Compare analytic derivatives with finite differences on a sample of
        coordinates.

        Returns:
            True if every sampled coordinate agrees within tolerance.
        """
        ...
