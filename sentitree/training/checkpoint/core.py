# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Intermediate model checkpoints for sentitree.

Checkpoint paths are derived from the final model path and a checkpoint
index that only ever goes up:

    model.ser.gz  + 3  ->  model-0003.ser.gz
    model.gz      + 3  ->  model-0003.ser.gz
    model.bin     + 3  ->  model.bin          (no versioning)

The index is zero-padded to at least four digits; 10000 stays "10000".

A failed checkpoint write never ends a run. A day of training is worth more
than one intermediate file, so OSError is logged as a warning and the
trainer carries on.
"""

import logging
from pathlib import Path

from sentitree.logging.logger import get_logger
from sentitree.model.interfaces import TrainableModel

logger: logging.Logger = get_logger(__name__)

_SER_GZ = ".ser.gz"
_GZ = ".gz"


def derive_checkpoint_path(model_path: str, index: int) -> str:
    """
    Versioned checkpoint path for `index`, as a pure string transform.

    Args:
        model_path: The final model path the run was asked to write.
        index: Checkpoint number, starting at 0.

    Returns:
        The path to serialize this checkpoint to.
    """
    if model_path.endswith(_SER_GZ):
        return f"{model_path[: -len(_SER_GZ)]}-{index:04d}{_SER_GZ}"
    if model_path.endswith(_GZ):
        return f"{model_path[: -len(_GZ)]}-{index:04d}{_SER_GZ}"
    return model_path


def save_checkpoint(model: TrainableModel, model_path: str, index: int) -> Path | None:
    """
    Serialize `model` to the checkpoint path for `index`.

    Returns:
        The path written, or None if serialization failed.
    """
    path = Path(derive_checkpoint_path(model_path, index))
    try:
        model.serialize(path)
    except OSError as err:
        logger.warning(
            "Checkpoint write failed, continuing training",
            extra={"checkpoint": index, "path": str(path), "error": str(err)},
            exc_info=True,
        )
        return None

    logger.info("Checkpoint saved", extra={"checkpoint": index, "path": str(path)})
    return path
