# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for sentitree.

Double-dash options are ordinary argparse options. Single-dash flags are
the run switches (-train, -gradientcheck) and the model options
(-numHid 25, -batchSize 27, ...); argparse leaves those alone and
sentitree.cli.flags walks them.

Usage:
    sentitree --train-path train.txt --model-path model.ser.gz -train
    sentitree --config configs/train.yaml -gradientcheck -train -epochs 10
    sentitree --train-path debug.txt -gradientcheck -numHid 5
"""

import argparse
import sys
from typing import Optional

from sentitree.cli.commands import handle_run
from sentitree.cli.exit_codes import USER_ERROR
from sentitree.cli.flags import parse_run_flags
from sentitree.config.exceptions import UnknownArgumentError
from sentitree.logging.logger import get_logger


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sentitree",
        description="sentitree: train recursive sentiment models on labeled trees.",
        epilog="Run flags: -train, -gradientcheck. Other single-dash flags set model options.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Override the random seed (takes precedence over config).",
    )
    parser.add_argument(
        "--train-path",
        type=str,
        default=None,
        dest="train_path",
        help="Treebank file to train on.",
    )
    parser.add_argument(
        "--dev-path",
        type=str,
        default=None,
        dest="dev_path",
        help="Held-out treebank scored at every checkpoint.",
    )
    parser.add_argument(
        "--model-path",
        type=str,
        default=None,
        dest="model_path",
        help="Where to write the final model; checkpoints are versioned from it.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        dest="dry_run",
        help="Validate config and flags without reading trees or training.",
    )
    return parser


def run_cli(argv: Optional[list[str]] = None) -> int:
    """Parse argv and run. Returns the exit code."""
    parser = _build_parser()
    args, remaining = parser.parse_known_args(argv)

    try:
        flags = parse_run_flags(remaining)
    except UnknownArgumentError as err:
        logger = get_logger("sentitree.cli", log_level=args.log_level or "INFO")
        logger.error("Unknown argument", extra={"argument": err.argument})
        return USER_ERROR

    return handle_run(args, flags)


def main() -> None:
    """What pyproject.toml's [project.scripts] points to."""
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
