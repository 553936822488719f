# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Structured batch metrics for sentitree.

One record per applied (or skipped) batch: epoch, batch index, batch size,
cost, gradient norm, wall time, and elapsed training time. Records are
emitted through the JSON logger every `log_interval` batches; skipped
batches are always logged.
"""

import logging
import time
from dataclasses import dataclass, field

from sentitree.logging.logger import get_logger

logger: logging.Logger = get_logger(__name__)


@dataclass
class BatchMetrics:
    """Metrics collected for a single batch."""

    epoch: int = 0
    batch: int = 0
    trees: int = 0
    cost: float = 0.0
    grad_norm: float = 0.0
    batch_seconds: float = 0.0
    elapsed_seconds: float = 0.0
    skipped: bool = False


@dataclass
class MetricsTracker:
    """
    Times batches and logs their metrics.

    Args:
        log_interval: Log metrics every N batches.
    """

    log_interval: int = 1
    batches_seen: int = field(default=0, init=False)
    _batch_start_time: float = field(default=0.0, init=False)

    def begin_batch(self) -> None:
        self._batch_start_time = time.monotonic()

    def end_batch(
        self,
        epoch: int,
        batch: int,
        trees: int,
        cost: float,
        grad_norm: float,
        elapsed_seconds: float,
        skipped: bool = False,
    ) -> BatchMetrics:
        """Finalize one batch's metrics and log them if due."""
        metrics = BatchMetrics(
            epoch=epoch,
            batch=batch,
            trees=trees,
            cost=cost,
            grad_norm=grad_norm,
            batch_seconds=time.monotonic() - self._batch_start_time,
            elapsed_seconds=elapsed_seconds,
            skipped=skipped,
        )
        self.batches_seen += 1

        if skipped or self.batches_seen % self.log_interval == 0:
            self._log_metrics(metrics)
        return metrics

    def _log_metrics(self, metrics: BatchMetrics) -> None:
        log_data = {
            "epoch": metrics.epoch,
            "batch": metrics.batch,
            "trees": metrics.trees,
            "cost": metrics.cost,
            "grad_norm": round(metrics.grad_norm, 6),
            "batch_seconds": round(metrics.batch_seconds, 4),
            "elapsed_seconds": round(metrics.elapsed_seconds, 3),
        }
        if metrics.skipped:
            logger.warning("Batch skipped", extra=log_data)
        else:
            logger.info("Batch finished", extra=log_data)
