# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Stubs for the training engine tests.

The engine only talks to a TrainableModel and a CostAndGradient, so the
tests drive it with a quadratic bowl instead of a real tree model. Time is
a FakeClock the evaluator advances on every batch.
"""

import logging
import math
from pathlib import Path
from typing import Iterator, Sequence

import pytest
import torch

from sentitree.model.interfaces import CostAndGradient, TrainableModel
from sentitree.trees.gold import LabeledTree


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class VectorModel(TrainableModel):
    """A bare parameter vector. serialize writes it with torch.save."""

    def __init__(self, size: int = 4, fail_serialize: bool = False) -> None:
        self.theta = torch.linspace(1.0, 2.0, size, dtype=torch.float64)
        self.fail_serialize = fail_serialize
        self.serialized: list[Path] = []
        self.unflatten_calls = 0

    def flatten(self) -> torch.Tensor:
        return self.theta.clone()

    def unflatten(self, theta: torch.Tensor) -> None:
        if theta.numel() != self.theta.numel():
            raise ValueError("wrong length")
        self.theta = theta.clone()
        self.unflatten_calls += 1

    def parameter_count(self) -> int:
        return int(self.theta.numel())

    def serialize(self, path: Path) -> None:
        if self.fail_serialize:
            raise PermissionError(13, "Permission denied", str(path))
        path.parent.mkdir(parents=True, exist_ok=True)
        torch.save(self.theta, path)
        self.serialized.append(path)


class QuadraticCost(CostAndGradient):
    """
    Loss 0.5 * ||theta||^2 with gradient theta.

    Every call advances `clock` by `seconds_per_batch`. Calls whose
    1-based number is in `nan_on` return a NaN loss.
    """

    def __init__(
        self,
        clock: FakeClock | None = None,
        seconds_per_batch: float = 0.0,
        nan_on: Sequence[int] = (),
        inf_grad_on: Sequence[int] = (),
    ) -> None:
        self.clock = clock
        self.seconds_per_batch = seconds_per_batch
        self.nan_on = set(nan_on)
        self.inf_grad_on = set(inf_grad_on)
        self.calls = 0
        self.batch_sizes: list[int] = []
        self.check_result = True

    def compute(
        self, theta: torch.Tensor, batch: Sequence[LabeledTree]
    ) -> tuple[float, torch.Tensor]:
        self.calls += 1
        self.batch_sizes.append(len(batch))
        if self.clock is not None:
            self.clock.advance(self.seconds_per_batch)

        grad = theta.clone()
        loss = 0.5 * float(theta.dot(theta))
        if self.calls in self.nan_on:
            loss = math.nan
        if self.calls in self.inf_grad_on:
            grad[0] = math.inf
        return loss, grad

    def gradient_check(
        self,
        batch: Sequence[LabeledTree],
        theta: torch.Tensor,
        num_checks: int,
        num_random_checks: int,
    ) -> bool:
        self.checked_with = (len(batch), num_checks, num_random_checks)
        return self.check_result


class RecordingHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def messages(self, level: int | None = None) -> list[str]:
        return [
            r.getMessage() for r in self.records if level is None or r.levelno == level
        ]


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def record_logs() -> Iterator[RecordingHandler]:
    """Collect records from every sentitree.training logger."""
    handler = RecordingHandler()
    names = [
        "sentitree.training.engine.core",
        "sentitree.training.checkpoint.core",
        "sentitree.training.metrics.core",
        "sentitree.training.gradcheck.core",
        "sentitree.training.evaluation.core",
    ]
    loggers = [logging.getLogger(name) for name in names]
    for logger in loggers:
        logger.addHandler(handler)
    yield handler
    for logger in loggers:
        logger.removeHandler(handler)


@pytest.fixture()
def make_model() -> type[VectorModel]:
    return VectorModel


@pytest.fixture()
def make_cost() -> type[QuadraticCost]:
    return QuadraticCost
