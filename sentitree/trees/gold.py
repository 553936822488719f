# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Gold class attachment.

In the sentiment treebank the label of every internal node is its gold class
id; there are no syntactic categories. attach_gold_labels walks a tree
bottom-up and returns a mapping from internal node to integer class. Leaves
(the words) never get an entry.

The tree itself is left untouched: the mapping is a separate value, so the
same tree can sit in several corpora without annotations colliding.
"""

import re
from dataclasses import dataclass, field
from typing import Mapping

from sentitree.trees.tree import Tree, TreeFormatError

GoldLabels = Mapping[Tree, int]

_CLASS_ID = re.compile(r"[+-]?[0-9]+")


def parse_class_id(label: str) -> int:
    """
    Parse a node label as a class id.

    Only an optional sign followed by ASCII digits is accepted; Python's
    int() would also take surrounding whitespace and underscores.

    Raises:
        TreeFormatError: If the label is not an integer.
    """
    if _CLASS_ID.fullmatch(label) is None:
        raise TreeFormatError(f"Node label is not an integer class id: {label!r}")
    return int(label)


def _attach(node: Tree, gold: dict[Tree, int]) -> None:
    if node.is_leaf():
        return
    for child in node.children:
        _attach(child, gold)
    gold[node] = parse_class_id(node.label)


def attach_gold_labels(tree: Tree) -> GoldLabels:
    """
    Map every internal node of `tree` to its gold class, post-order.

    Raises:
        TreeFormatError: If any internal node label is not an integer.
    """
    gold: dict[Tree, int] = {}
    _attach(tree, gold)
    return gold


@dataclass(frozen=True, eq=False)
class LabeledTree:
    """A training example: a tree plus the gold class of each internal node."""

    tree: Tree
    gold: GoldLabels = field(repr=False)

    @classmethod
    def from_tree(cls, tree: Tree) -> "LabeledTree":
        return cls(tree=tree, gold=attach_gold_labels(tree))

    def gold_class(self, node: Tree) -> int:
        return self.gold[node]
