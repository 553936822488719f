# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Treebank reader for the bracketed sentiment format.

A file holds any number of trees, normally one per line:

    (3 (2 It) (4 (2 's) (3 good)))

load_treebank reads every tree and attaches gold labels. It is all or
nothing: a malformed tree or a non-integer class label anywhere in the file
raises TreeFormatError and no partially annotated corpus is returned.
"""

import logging
import re
from pathlib import Path
from typing import Iterator

from sentitree.logging.logger import get_logger
from sentitree.trees.gold import LabeledTree
from sentitree.trees.tree import Tree, TreeFormatError
from sentitree.utils.filesystem import safe_read

logger: logging.Logger = get_logger(__name__)

_TOKEN = re.compile(r"\(|\)|[^\s()]+")


def _parse_node(tokens: list[str], pos: int) -> tuple[Tree, int]:
    """Parse one bracketed node starting at tokens[pos] == '('."""
    pos += 1
    if pos >= len(tokens) or tokens[pos] in ("(", ")"):
        raise TreeFormatError("Expected a node label after '('")
    label = tokens[pos]
    pos += 1

    children: list[Tree] = []
    while True:
        if pos >= len(tokens):
            raise TreeFormatError(f"Unbalanced parentheses in tree labelled {label!r}")
        token = tokens[pos]
        if token == ")":
            return Tree(label, tuple(children)), pos + 1
        if token == "(":
            child, pos = _parse_node(tokens, pos)
        else:
            child, pos = Tree(token), pos + 1
        children.append(child)


def iter_trees(text: str) -> Iterator[Tree]:
    """Yield every top-level tree in `text`."""
    tokens = _TOKEN.findall(text)
    pos = 0
    while pos < len(tokens):
        if tokens[pos] != "(":
            raise TreeFormatError(f"Expected '(' at top level, found {tokens[pos]!r}")
        tree, pos = _parse_node(tokens, pos)
        yield tree


def parse_tree(text: str) -> Tree:
    """Parse exactly one tree."""
    trees = list(iter_trees(text))
    if len(trees) != 1:
        raise TreeFormatError(f"Expected exactly one tree, found {len(trees)}")
    return trees[0]


def load_treebank(path: Path) -> list[LabeledTree]:
    """
    Read a treebank file and attach gold labels to every tree.

    Raises:
        FileNotFoundError: If the file does not exist.
        TreeFormatError: If any tree is malformed or carries a non-integer label.
    """
    text = safe_read(path)
    corpus = [LabeledTree.from_tree(tree) for tree in iter_trees(text)]
    logger.info("Treebank loaded", extra={"path": str(path), "trees": len(corpus)})
    return corpus
