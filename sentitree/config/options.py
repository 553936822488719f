# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Command-line model options.

Flags like `-numHid 25` or `-simplifiedModel` are not argparse options. They
are walked one at a time by `set_option`, which either consumes the flag
(and its value) and returns the next index, or returns the same index to
signal that it did not recognise the flag. Flag names are matched without
regard to case.

Parsing only builds an override dict. Nothing is applied until
`apply_overrides` merges the overrides into a loaded config and runs the
result back through pydantic, so an unknown flag always fails before any
file is touched.
"""

from dataclasses import dataclass
from typing import Any, Callable

from pydantic import ValidationError

from sentitree.config.exceptions import ConfigValidationError, UnknownArgumentError
from sentitree.config.schema import (
    GlobalConfig,
    ModelConfig,
    SentitreeConfig,
    TrainConfig,
)


@dataclass(frozen=True)
class _ValuedOption:
    section: str
    field: str
    parse: Callable[[str], Any]


_VALUED_OPTIONS: dict[str, _ValuedOption] = {
    "-randomseed": _ValuedOption("global", "seed", int),
    "-numhid": _ValuedOption("model", "num_hid", int),
    "-numclasses": _ValuedOption("model", "num_classes", int),
    "-scalingforinit": _ValuedOption("model", "scaling_for_init", float),
    "-unkword": _ValuedOption("model", "unk_word", str),
    "-batchsize": _ValuedOption("train", "batch_size", int),
    "-epochs": _ValuedOption("train", "epochs", int),
    "-learningrate": _ValuedOption("train", "learning_rate", float),
    "-maxtraintimeseconds": _ValuedOption("train", "max_train_time_seconds", int),
    "-debugoutputseconds": _ValuedOption("train", "debug_output_seconds", int),
    "-regtransform": _ValuedOption("train", "reg_transform", float),
    "-regclassification": _ValuedOption("train", "reg_classification", float),
    "-regwordvector": _ValuedOption("train", "reg_word_vector", float),
    "-numworkers": _ValuedOption("train", "num_workers", int),
}

# flag -> (section, field, value)
_SWITCH_OPTIONS: dict[str, tuple[str, str, bool]] = {
    "-simplifiedmodel": ("model", "simplified_model", True),
    "-nosimplifiedmodel": ("model", "simplified_model", False),
    "-lowercasewords": ("model", "lowercase_words", True),
    "-nolowercasewords": ("model", "lowercase_words", False),
}

Overrides = dict[str, dict[str, Any]]


def set_option(overrides: Overrides, args: list[str], index: int) -> int:
    """
    Try to consume the flag at args[index] into overrides.

    Returns:
        The index of the next unconsumed argument, or `index` unchanged if
        the flag is not a model option.

    Raises:
        UnknownArgumentError: If a valued flag is missing its value or the
            value does not parse.
    """
    flag = args[index].lower()

    if flag in _SWITCH_OPTIONS:
        section, field, value = _SWITCH_OPTIONS[flag]
        overrides.setdefault(section, {})[field] = value
        return index + 1

    option = _VALUED_OPTIONS.get(flag)
    if option is None:
        return index

    if index + 1 >= len(args):
        raise UnknownArgumentError(f"{args[index]} (missing value)")

    raw_value = args[index + 1]
    try:
        value = option.parse(raw_value)
    except ValueError as err:
        raise UnknownArgumentError(f"{args[index]} {raw_value}") from err

    overrides.setdefault(option.section, {})[option.field] = value
    return index + 2


def apply_overrides(config: SentitreeConfig, overrides: Overrides) -> SentitreeConfig:
    """
    Merge command-line overrides into a config and re-validate.

    Missing model/train sections are created from their defaults first so
    overrides always have somewhere to land.

    Raises:
        ConfigValidationError: If an override violates the schema.
    """
    version = config.global_config.config_version
    sections: dict[str, dict[str, Any]] = {
        "global": config.global_config.model_dump(),
        "model": (config.model or ModelConfig(config_version=version)).model_dump(),
        "train": (config.train or TrainConfig(config_version=version)).model_dump(),
    }
    for section, values in overrides.items():
        sections[section].update(values)

    try:
        return SentitreeConfig.model_validate(
            {
                "global": GlobalConfig.model_validate(sections["global"]),
                "model": ModelConfig.model_validate(sections["model"]),
                "train": TrainConfig.model_validate(sections["train"]),
            }
        )
    except ValidationError as err:
        raise ConfigValidationError(f"Invalid command-line option value:\n{err}") from err
