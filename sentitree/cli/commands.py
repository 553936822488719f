# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Command handler for the sentitree CLI.

One run does, in order: load and override config, bootstrap, read the
training (and optional dev) treebank, build the model, check every
tree against it, optionally run the gradient check, optionally train, then
write the final model.

No print() calls. Everything goes through the structured logger.
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

from sentitree.cli.exit_codes import (
    CONFIG_ERROR,
    RUNTIME_ERROR,
    SUCCESS,
    VALIDATION_ERROR,
)
from sentitree.cli.flags import RunFlags
from sentitree.config.exceptions import ConfigError
from sentitree.config.loader import load_config
from sentitree.config.options import Overrides, apply_overrides
from sentitree.config.schema import SentitreeConfig, default_config
from sentitree.logging.logger import get_logger, set_package_log_level
from sentitree.model.cost import TreeCostAndGradient
from sentitree.model.recursive import RecursiveSentimentModel
from sentitree.runtime.bootstrap import bootstrap
from sentitree.training.engine.core import run_training
from sentitree.training.evaluation.core import evaluate
from sentitree.training.gradcheck.core import run_gradient_check
from sentitree.trees.reader import load_treebank
from sentitree.trees.tree import TreeFormatError


def _argument_overrides(args: argparse.Namespace, flags: RunFlags) -> Overrides:
    """Fold the `--` options into the model-option overrides."""
    overrides: Overrides = {section: dict(values) for section, values in flags.overrides.items()}
    if args.seed is not None:
        overrides.setdefault("global", {})["seed"] = args.seed
    if args.log_level is not None:
        overrides.setdefault("global", {})["log_level"] = args.log_level
    for attribute in ("train_path", "dev_path", "model_path"):
        value = getattr(args, attribute)
        if value is not None:
            overrides.setdefault("train", {})[attribute] = value
    return overrides


def _load_and_bootstrap(
    args: argparse.Namespace,
    flags: RunFlags,
    logger: logging.Logger,
) -> tuple[int, Optional[SentitreeConfig]]:
    """
    Load the config file (or defaults), apply overrides, run bootstrap.

    Returns (exit_code, config). If exit_code is not SUCCESS the caller
    should return it immediately.
    """
    try:
        config = load_config(Path(args.config)) if args.config is not None else default_config()
        config = apply_overrides(config, _argument_overrides(args, flags))
    except ConfigError as err:
        logger.error("Configuration error", extra={"error": str(err)})
        return CONFIG_ERROR, None

    bootstrap(config.global_config)
    return SUCCESS, config


def handle_run(args: argparse.Namespace, flags: RunFlags) -> int:
    """Gradient check and/or train, as requested by the run flags."""
    log_level = args.log_level or "INFO"
    set_package_log_level(log_level)
    logger = get_logger("sentitree.cli.run", log_level=log_level)

    exit_code, config = _load_and_bootstrap(args, flags, logger)
    if exit_code != SUCCESS or config is None:
        return exit_code

    train_cfg = config.train
    if config.model is None or train_cfg is None:
        logger.error("Model and training config sections are required")
        return CONFIG_ERROR

    if not flags.train and not flags.gradient_check:
        logger.info("Nothing to do; pass -train and/or -gradientcheck")
        return SUCCESS

    if train_cfg.train_path is None:
        logger.error("A training treebank is required (--train-path or train.train_path)")
        return CONFIG_ERROR

    logger.info(
        "Run started",
        extra={
            "train": flags.train,
            "gradient_check": flags.gradient_check,
            "dry_run": args.dry_run,
            "train_path": train_cfg.train_path,
            "model_path": train_cfg.model_path,
        },
    )

    if args.dry_run:
        logger.info(
            "Dry run, would start",
            extra={
                "batch_size": train_cfg.batch_size,
                "epochs": train_cfg.epochs,
                "learning_rate": train_cfg.learning_rate,
            },
        )
        return SUCCESS

    try:
        training_trees = load_treebank(Path(train_cfg.train_path))
        dev_trees = (
            load_treebank(Path(train_cfg.dev_path)) if train_cfg.dev_path is not None else None
        )
    except (OSError, TreeFormatError) as err:
        logger.error("Could not load treebank", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR

    seed = config.global_config.seed
    model = RecursiveSentimentModel.from_trees(config.model, training_trees, seed=seed)

    try:
        for example in [*training_trees, *(dev_trees or [])]:
            model.check_tree(example)
    except TreeFormatError as err:
        logger.error("Treebank rejected by model", extra={"error": str(err)})
        return RUNTIME_ERROR

    try:
        evaluator = TreeCostAndGradient.from_config(model, train_cfg, seed=seed)

        if flags.gradient_check:
            check = train_cfg.gradient_check
            passed = run_gradient_check(
                evaluator,
                training_trees,
                model.flatten(),
                num_checks=check.num_checks,
                num_random_checks=check.num_random_checks,
            )
            if not passed:
                return VALIDATION_ERROR

        if flags.train:
            result = run_training(
                model,
                evaluator,
                training_trees,
                train_cfg,
                model_path=train_cfg.model_path,
                dev_trees=dev_trees,
                seed=seed,
            )

            if train_cfg.model_path is not None:
                model.serialize(Path(train_cfg.model_path))

            if dev_trees:
                evaluate(model, dev_trees)

            logger.info(
                "Training complete",
                extra={
                    "status": result.status.value,
                    "epochs_completed": result.epochs_completed,
                    "final_cost": result.final_cost,
                    "checkpoints": len(result.checkpoints),
                },
            )
        return SUCCESS

    except (OSError, TreeFormatError, ValueError) as err:
        logger.error("Run failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR
