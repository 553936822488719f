# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Immutable labeled constituency trees.

Sentiment treebank trees carry a class id on every internal node and a word
on every leaf:

    (3 (2 It) (4 (2 's) (3 good)))

Trees are frozen and compare by identity (eq=False). Two structurally equal
subtrees are still different nodes, which is what lets GoldLabels key on
nodes without one sentence's annotations leaking into another's.
"""

from dataclasses import dataclass
from typing import Iterator


class TreeFormatError(ValueError):
    """Raised when tree text or a node label does not have the expected shape."""


@dataclass(frozen=True, eq=False)
class Tree:
    """A node: a label plus zero or more children. No children means a leaf."""

    label: str
    children: tuple["Tree", ...] = ()

    def is_leaf(self) -> bool:
        return not self.children

    def is_preterminal(self) -> bool:
        """True for a node whose only child is a leaf, i.e. a tagged word."""
        return len(self.children) == 1 and self.children[0].is_leaf()

    def walk_postorder(self) -> Iterator["Tree"]:
        """Yield every node, children before parents, left to right."""
        for child in self.children:
            yield from child.walk_postorder()
        yield self

    def internal_nodes(self) -> list["Tree"]:
        return [node for node in self.walk_postorder() if not node.is_leaf()]

    def words(self) -> list[str]:
        return [node.label for node in self.walk_postorder() if node.is_leaf()]

    def __str__(self) -> str:
        if self.is_leaf():
            return self.label
        inner = " ".join(str(child) for child in self.children)
        return f"({self.label} {inner})"
