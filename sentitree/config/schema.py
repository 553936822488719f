# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for sentitree.

Every config section gets its own frozen pydantic model. Frozen means once
you create it, you cannot mutate it. Command-line model options do not
patch a config in place; they produce a new, re-validated config instead
(see sentitree.config.options).

The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked

The training defaults are the usual sentiment treebank settings: batches of
27 trees, 400 epochs, AdaGrad at 0.01, a 24 hour wall-clock budget and a
checkpoint every 20 minutes.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class GlobalConfig(BaseModel):
    """
    Cross-cutting settings that apply to the entire system.

    Controls reproducibility (seed) and observability (log_level, log_file).
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    project_name: str = Field(
        default="sentitree", description="Human-readable project identifier"
    )
    seed: int = Field(
        default=42,
        ge=0,
        description="Global random seed for initialisation, shuffling and gradient checks",
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )


class ModelConfig(BaseModel):
    """
    Recursive network architecture.

    With simplified_model=True the composition function is a plain RNN
    (one matrix over the concatenated children). With False it adds the
    bilinear tensor term, which makes it an RNTN.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(description="Schema version")
    num_hid: int = Field(
        default=25,
        ge=1,
        description="Dimension of node vectors and word vectors",
    )
    num_classes: int = Field(
        default=5,
        ge=2,
        description="Number of sentiment classes predicted at every node",
    )
    simplified_model: bool = Field(
        default=True,
        description="Drop the tensor composition term (RNN instead of RNTN)",
    )
    scaling_for_init: float = Field(
        default=1.0,
        gt=0.0,
        description="Multiplier on the uniform initialisation range of composition matrices",
    )
    unk_word: str = Field(
        default="*UNK*",
        description="Vocabulary entry used for words never seen during training",
    )
    lowercase_words: bool = Field(
        default=False,
        description="Lowercase leaf words before vocabulary lookup",
    )


class GradientCheckConfig(BaseModel):
    """Finite-difference gradient check settings."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    num_checks: int = Field(
        default=1000,
        ge=0,
        description="Parameter coordinates checked at an even stride across the vector",
    )
    num_random_checks: int = Field(
        default=50,
        ge=0,
        description="Additional coordinates drawn at random",
    )
    epsilon: float = Field(
        default=1e-6,
        gt=0.0,
        description="Step used for central differences",
    )
    tolerance: float = Field(
        default=1e-5,
        gt=0.0,
        description="Largest acceptable gap between analytic and numeric derivatives",
    )


class TrainConfig(BaseModel):
    """
    Training hyperparameters and schedule.

    max_train_time_seconds and debug_output_seconds are wall-clock budgets
    measured from the start of training; 0 disables either one.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(description="Schema version")
    batch_size: int = Field(
        default=27,
        ge=1,
        description="Trees per AdaGrad update; the final batch takes the remainder",
    )
    epochs: int = Field(
        default=400,
        ge=0,
        description="Full passes over the shuffled training trees",
    )
    learning_rate: float = Field(
        default=0.01,
        gt=0.0,
        description="AdaGrad base learning rate",
    )
    max_train_time_seconds: int = Field(
        default=60 * 60 * 24,
        ge=0,
        description="Stop training once this many seconds have elapsed (0 = unbounded)",
    )
    debug_output_seconds: int = Field(
        default=60 * 20,
        ge=0,
        description="Write an intermediate model every N seconds (0 = never)",
    )
    reg_transform: float = Field(
        default=0.001,
        ge=0.0,
        description="L2 weight on composition matrices and tensors",
    )
    reg_classification: float = Field(
        default=0.0001,
        ge=0.0,
        description="L2 weight on the classification matrix",
    )
    reg_word_vector: float = Field(
        default=0.0001,
        ge=0.0,
        description="L2 weight on word vectors",
    )
    num_workers: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Threads used to reduce per-tree gradients within a batch",
    )
    log_interval: int = Field(
        default=1,
        ge=1,
        description="Log batch metrics every N batches",
    )
    train_path: Optional[str] = Field(
        default=None,
        description="Treebank file with training trees",
    )
    dev_path: Optional[str] = Field(
        default=None,
        description="Treebank file with held-out trees, evaluated at checkpoints",
    )
    model_path: Optional[str] = Field(
        default=None,
        description="Where the final model goes; checkpoints are versioned from it",
    )
    gradient_check: GradientCheckConfig = Field(default_factory=GradientCheckConfig)


class SentitreeConfig(BaseModel):
    """
    Top-level config container.

    A YAML file might contain just `global:`, in which case the model and
    training sections take their defaults when the CLI needs them.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(alias="global")
    model: Optional[ModelConfig] = Field(default=None)
    train: Optional[TrainConfig] = Field(default=None)


def default_config() -> SentitreeConfig:
    """The config used when no --config file is given."""
    return SentitreeConfig.model_validate(
        {
            "global": {"config_version": "1.0.0"},
            "model": {"config_version": "1.0.0"},
            "train": {"config_version": "1.0.0"},
        }
    )
