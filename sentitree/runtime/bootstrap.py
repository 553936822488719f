# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Runtime bootstrap for sentitree.

One-time setup before any tree is read:
  1. Validate the environment (Python version)
  2. Set deterministic seeds
  3. Initialize the package logger at the configured level

After bootstrap, model initialisation, per-epoch shuffles and the random
coordinates of the gradient check are all reproducible from the seed.
"""

import os
import random
from pathlib import Path

import torch

from sentitree.config.schema import GlobalConfig
from sentitree.logging.logger import get_logger, set_package_log_level
from sentitree.runtime.environment import check_minimum_python, get_system_info


def set_deterministic_seed(seed: int) -> None:
    """
    Lock down all sources of randomness to the given seed.

    Args:
        seed: Integer seed value. Must be >= 0.
    """
    random.seed(seed)
    os.environ["PYTHONHASHSEED"] = str(seed)
    torch.manual_seed(seed)


def bootstrap(config: GlobalConfig) -> None:
    """
    Put the process into a known state: environment checked, seeds set,
    logging configured, startup info logged.

    Args:
        config: The validated global configuration.
    """
    check_minimum_python()
    set_deterministic_seed(config.seed)

    log_file = None
    if config.log_file is not None:
        log_file = Path(config.log_file)

    set_package_log_level(config.log_level)
    logger = get_logger("sentitree.runtime", log_level=config.log_level, log_file=log_file)

    system_info = get_system_info()
    logger.info(
        "sentitree bootstrap complete",
        extra={
            "seed": config.seed,
            "python_version": system_info.python_version,
            "platform": system_info.platform,
            "architecture": system_info.architecture,
            "torch_version": system_info.torch_version,
            "torch_threads": system_info.torch_threads,
        },
    )
