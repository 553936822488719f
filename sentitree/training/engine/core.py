# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Core training engine for sentitree.

The loop is explicit:
  1. Shuffle the training trees and cut them into batches
  2. Loss and gradient of the batch at the current parameters
  3. Numerical health check (non-finite loss or gradient skips the batch)
  4. AdaGrad step on the flat parameter vector
  5. Write the parameters back into the model
  6. Log batch metrics
  7. Stop if the wall-clock budget is spent
  8. Write an intermediate model if a checkpoint is due

States: RUNNING while batches are processed, EPOCH_BOUNDARY between
epochs, then one of the terminal states DONE (all epochs finished) or
TIME_EXCEEDED (budget spent). The time budget is checked after every batch
and after every epoch, and crossing it exits both loops at once. A single
slow batch can still overshoot the budget; there is no way to interrupt a
batch.

Checkpoints are rescheduled from the time the previous one finished
(next = now + interval), not from when it was due. A slow batch can
therefore swallow several intervals, and the schedule drifts later over a
long run. This is the intended cadence.

All run state lives in one TrainingState created per call. Nothing is kept
at module level, so two runs in one process do not interfere.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Sequence

import torch

from sentitree.config.schema import TrainConfig
from sentitree.logging.logger import get_logger
from sentitree.model.interfaces import CostAndGradient, TrainableModel
from sentitree.training.checkpoint.core import save_checkpoint
from sentitree.training.evaluation.core import Predictor, evaluate
from sentitree.training.metrics.core import MetricsTracker
from sentitree.training.optimizer.core import adagrad_update, create_accumulator
from sentitree.training.scheduler.core import batch_count, iter_epoch_batches
from sentitree.trees.gold import LabeledTree

logger: logging.Logger = get_logger(__name__)

Clock = Callable[[], float]


class LoopState(str, Enum):
    RUNNING = "running"
    EPOCH_BOUNDARY = "epoch_boundary"
    TIME_EXCEEDED = "time_exceeded"
    DONE = "done"


@dataclass
class TrainingState:
    """
    Everything a run mutates.

    parameters is replaced after every applied batch; sum_grad_square is
    updated in place and never reset. checkpoint_index only increases.
    """

    parameters: torch.Tensor
    sum_grad_square: torch.Tensor
    next_checkpoint_at: float
    checkpoint_index: int = 0
    epoch: int = 0
    epochs_completed: int = 0
    batches_applied: int = 0
    batches_skipped: int = 0
    last_cost: float = math.nan
    status: LoopState = LoopState.RUNNING
    checkpoints: list[str] = field(default_factory=list)

    @classmethod
    def initial(cls, model: TrainableModel, train_config: TrainConfig) -> "TrainingState":
        parameters = model.flatten().to(torch.float64)
        if parameters.numel() != model.parameter_count():
            raise ValueError(
                f"Model flattened to {parameters.numel()} values but reports "
                f"{model.parameter_count()} parameters"
            )
        return cls(
            parameters=parameters,
            sum_grad_square=create_accumulator(model.parameter_count()),
            next_checkpoint_at=float(train_config.debug_output_seconds),
        )


@dataclass(frozen=True)
class TrainingResult:
    """Final result of a training run."""

    status: LoopState
    epochs_completed: int
    batches_applied: int
    batches_skipped: int
    final_cost: float
    checkpoints: tuple[str, ...]
    elapsed_seconds: float


def execute_one_batch(
    state: TrainingState,
    model: TrainableModel,
    evaluator: CostAndGradient,
    batch: Sequence[LabeledTree],
    learning_rate: float,
) -> tuple[float, float, bool]:
    """
    Evaluate one batch and apply the AdaGrad step.

    Returns:
        (cost, grad_norm, applied). applied is False when the loss or the
        gradient is not finite; in that case neither the parameters nor
        the accumulator change.
    """
    cost, grad = evaluator.compute(state.parameters, batch)
    grad = grad.to(torch.float64)

    if not math.isfinite(cost) or not bool(torch.isfinite(grad).all()):
        return cost, math.nan, False

    state.parameters = adagrad_update(
        state.parameters, grad, state.sum_grad_square, learning_rate
    )
    model.unflatten(state.parameters)
    return cost, float(torch.linalg.vector_norm(grad)), True


def _time_exceeded(train_config: TrainConfig, elapsed: float) -> bool:
    limit = train_config.max_train_time_seconds
    return limit > 0 and elapsed > limit


def _maybe_checkpoint(
    state: TrainingState,
    model: TrainableModel,
    train_config: TrainConfig,
    model_path: Optional[str],
    dev_trees: Optional[Sequence[LabeledTree]],
    elapsed: Callable[[], float],
) -> None:
    interval = train_config.debug_output_seconds
    if interval <= 0 or elapsed() <= state.next_checkpoint_at:
        return

    if model_path is not None:
        written = save_checkpoint(model, model_path, state.checkpoint_index)
        if written is not None:
            state.checkpoints.append(str(written))

    if dev_trees and isinstance(model, Predictor):
        result = evaluate(model, dev_trees)
        logger.info(
            "Dev set accuracy",
            extra={
                "checkpoint": state.checkpoint_index,
                "node_accuracy": round(result.node_accuracy, 6),
                "root_accuracy": round(result.root_accuracy, 6),
            },
        )

    state.checkpoint_index += 1
    state.next_checkpoint_at = elapsed() + interval


def _finish(state: TrainingState, elapsed: float) -> TrainingResult:
    logger.info(
        "Training finished",
        extra={
            "status": state.status.value,
            "epochs_completed": state.epochs_completed,
            "batches_applied": state.batches_applied,
            "batches_skipped": state.batches_skipped,
            "final_cost": state.last_cost,
            "elapsed_seconds": round(elapsed, 3),
        },
    )
    return TrainingResult(
        status=state.status,
        epochs_completed=state.epochs_completed,
        batches_applied=state.batches_applied,
        batches_skipped=state.batches_skipped,
        final_cost=state.last_cost,
        checkpoints=tuple(state.checkpoints),
        elapsed_seconds=elapsed,
    )


def run_training(
    model: TrainableModel,
    evaluator: CostAndGradient,
    trees: Sequence[LabeledTree],
    train_config: TrainConfig,
    model_path: Optional[str] = None,
    dev_trees: Optional[Sequence[LabeledTree]] = None,
    seed: int = 42,
    clock: Clock = time.monotonic,
) -> TrainingResult:
    """
    Train `model` on `trees` with AdaGrad until the epochs or the time run out.

    Args:
        model: Parameters to train; updated after every applied batch.
        evaluator: Loss and gradient for a batch at a parameter vector.
        trees: Training trees with gold labels. Never reordered.
        train_config: Batch size, epochs, learning rate and time budgets.
        model_path: Base path for intermediate models. None disables writing
            them, though the checkpoint schedule still advances.
        dev_trees: Optional held-out trees scored at every checkpoint.
        seed: Seed for the per-epoch shuffles.
        clock: Seconds since an arbitrary origin; time.monotonic by default.

    Returns:
        TrainingResult with the terminal state and counters.
    """
    started = clock()

    def elapsed() -> float:
        return clock() - started

    state = TrainingState.initial(model, train_config)
    generator = torch.Generator().manual_seed(seed)
    tracker = MetricsTracker(log_interval=train_config.log_interval)

    logger.info(
        "Training started",
        extra={
            "trees": len(trees),
            "batches_per_epoch": batch_count(len(trees), train_config.batch_size),
            "epochs": train_config.epochs,
            "parameters": int(state.parameters.numel()),
            "learning_rate": train_config.learning_rate,
            "max_train_time_seconds": train_config.max_train_time_seconds,
            "debug_output_seconds": train_config.debug_output_seconds,
        },
    )

    for epoch in range(train_config.epochs):
        state.epoch = epoch
        state.status = LoopState.RUNNING

        for batch_index, batch in iter_epoch_batches(trees, train_config.batch_size, generator):
            if batch:
                tracker.begin_batch()
                cost, grad_norm, applied = execute_one_batch(
                    state, model, evaluator, batch, train_config.learning_rate
                )
                state.last_cost = cost
                if applied:
                    state.batches_applied += 1
                else:
                    state.batches_skipped += 1
                tracker.end_batch(
                    epoch=epoch,
                    batch=batch_index,
                    trees=len(batch),
                    cost=cost,
                    grad_norm=grad_norm,
                    elapsed_seconds=elapsed(),
                    skipped=not applied,
                )
            else:
                logger.debug("Empty batch, no update", extra={"epoch": epoch, "batch": batch_index})

            if _time_exceeded(train_config, elapsed()):
                state.status = LoopState.TIME_EXCEEDED
                logger.info("Max training time exceeded, exiting", extra={"epoch": epoch})
                return _finish(state, elapsed())

            _maybe_checkpoint(state, model, train_config, model_path, dev_trees, elapsed)

        state.status = LoopState.EPOCH_BOUNDARY
        state.epochs_completed += 1
        logger.info(
            "Epoch finished",
            extra={"epoch": epoch, "elapsed_seconds": round(elapsed(), 3)},
        )

        if _time_exceeded(train_config, elapsed()):
            state.status = LoopState.TIME_EXCEEDED
            logger.info("Max training time exceeded, exiting", extra={"epoch": epoch})
            return _finish(state, elapsed())

    state.status = LoopState.DONE
    return _finish(state, elapsed())
