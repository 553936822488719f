# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Environment checks for sentitree.

A training run can last a day. If the interpreter or torch build is wrong we
want to know before the first tree is read, not when the first checkpoint is
written.
"""

import platform
import sys
from typing import NamedTuple

import torch

MINIMUM_PYTHON = (3, 11)


class SystemInfo(NamedTuple):
    """What the startup log line reports about the host."""

    python_version: str
    platform: str
    architecture: str
    torch_version: str
    torch_threads: int


def check_minimum_python(version: tuple[int, ...] | None = None) -> None:
    """
    Refuse to run on an interpreter older than MINIMUM_PYTHON.

    Args:
        version: Version tuple to check; the running interpreter by default.

    Raises:
        RuntimeError: If the version is too old.
    """
    current = tuple(version if version is not None else sys.version_info[:2])
    if current[:2] < MINIMUM_PYTHON:
        wanted = ".".join(str(part) for part in MINIMUM_PYTHON)
        found = ".".join(str(part) for part in current[:2])
        raise RuntimeError(f"sentitree requires Python >= {wanted}, found {found}")


def get_system_info() -> SystemInfo:
    return SystemInfo(
        python_version=platform.python_version(),
        platform=platform.system(),
        architecture=platform.machine(),
        torch_version=torch.__version__,
        torch_threads=torch.get_num_threads(),
    )
