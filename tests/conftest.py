# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for sentitree tests.

Fixtures here are available to every test file automatically.
We keep them minimal: a tiny treebank and a couple of config files.
"""

import textwrap
from pathlib import Path

import pytest

from sentitree.trees.gold import LabeledTree
from sentitree.trees.reader import iter_trees

TINY_TREEBANK = textwrap.dedent("""\
    (3 (2 It) (4 (2 's) (3 good)))
    (1 (2 The) (1 (1 plot) (0 (0 drags) (2 badly))))
    (2 (2 A) (2 film))
    (4 (3 (2 very) (4 moving)) (2 story))
    (0 (1 not) (0 (0 awful) (2 enough)))
""")


@pytest.fixture()
def treebank_text() -> str:
    return TINY_TREEBANK


@pytest.fixture()
def treebank_file(tmp_path: Path) -> Path:
    """The tiny treebank written to disk."""
    path = tmp_path / "train.txt"
    path.write_text(TINY_TREEBANK, encoding="utf-8")
    return path


@pytest.fixture()
def labeled_trees() -> list[LabeledTree]:
    return [LabeledTree.from_tree(tree) for tree in iter_trees(TINY_TREEBANK)]


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """
    A small but complete config: global, a 4-unit model and a short run.
    """
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          project_name: "sentitree-test"
          seed: 42
          log_level: "DEBUG"
        model:
          config_version: "1.0.0"
          num_hid: 4
          num_classes: 5
        train:
          config_version: "1.0.0"
          batch_size: 2
          epochs: 2
          learning_rate: 0.01
          max_train_time_seconds: 0
          debug_output_seconds: 0
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """A config file that's valid YAML but fails schema validation (missing required field)."""
    config_content = textwrap.dedent("""\
        global:
          project_name: "sentitree-test"
          seed: 42
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file
