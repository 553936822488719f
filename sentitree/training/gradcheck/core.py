# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Pre-flight gradient check.

Run once before a long training run to make sure the analytic gradient
agrees with finite differences. The comparison itself belongs to the
evaluator; this module picks the sample sizes and reports the verdict.
Never called from inside the training loop.
"""

import logging
import time
from typing import Sequence

import torch

from sentitree.logging.logger import get_logger
from sentitree.model.interfaces import CostAndGradient
from sentitree.trees.gold import LabeledTree

logger: logging.Logger = get_logger(__name__)

DEFAULT_NUM_CHECKS = 1000
DEFAULT_NUM_RANDOM_CHECKS = 50


def run_gradient_check(
    evaluator: CostAndGradient,
    trees: Sequence[LabeledTree],
    theta: torch.Tensor,
    num_checks: int = DEFAULT_NUM_CHECKS,
    num_random_checks: int = DEFAULT_NUM_RANDOM_CHECKS,
) -> bool:
    """
    Check the evaluator's gradient at theta over `trees`.

    Args:
        evaluator: Supplies the analytic gradient and the finite-difference check.
        trees: Trees the loss is computed over.
        theta: Parameter vector to check at.
        num_checks: Coordinates spread evenly across theta.
        num_random_checks: Extra coordinates picked at random.

    Returns:
        True if the evaluator reports agreement.
    """
    logger.info(
        "Gradient check started",
        extra={
            "trees": len(trees),
            "parameters": int(theta.numel()),
            "num_checks": num_checks,
            "num_random_checks": num_random_checks,
        },
    )
    started = time.monotonic()
    passed = evaluator.gradient_check(trees, theta, num_checks, num_random_checks)

    log = logger.info if passed else logger.error
    log(
        "Gradient check passed" if passed else "Gradient check failed",
        extra={"seconds": round(time.monotonic() - started, 3)},
    )
    return passed
