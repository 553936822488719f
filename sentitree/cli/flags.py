# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Single-dash run flags.

After argparse has taken the `--` options, whatever is left is walked here
from left to right:

  -train           enable training
  -gradientcheck   run the gradient check first
  anything else    offered to the model option parser

Flags are matched without regard to case. A flag nobody recognises raises
UnknownArgumentError. This happens before any config or treebank file is
opened.
"""

from dataclasses import dataclass, field

from sentitree.config.exceptions import UnknownArgumentError
from sentitree.config.options import Overrides, set_option


@dataclass
class RunFlags:
    """What the command line asked for."""

    train: bool = False
    gradient_check: bool = False
    overrides: Overrides = field(default_factory=dict)


def parse_run_flags(args: list[str]) -> RunFlags:
    """
    Parse the leftover command-line arguments.

    Raises:
        UnknownArgumentError: For any argument that is neither a run flag
            nor a model option.
    """
    flags = RunFlags()
    index = 0
    while index < len(args):
        argument = args[index].lower()
        if argument == "-train":
            flags.train = True
            index += 1
        elif argument == "-gradientcheck":
            flags.gradient_check = True
            index += 1
        else:
            next_index = set_option(flags.overrides, args, index)
            if next_index == index:
                raise UnknownArgumentError(args[index])
            index = next_index
    return flags
