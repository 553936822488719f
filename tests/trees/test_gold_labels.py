# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for gold class attachment.

We verify:
  - every internal node gets its label as an integer class
  - leaves never get an entry
  - a non-integer label fails the whole tree
  - the tree itself is not modified
"""

import pytest

from sentitree.trees.gold import LabeledTree, attach_gold_labels, parse_class_id
from sentitree.trees.reader import parse_tree
from sentitree.trees.tree import Tree, TreeFormatError


class TestAttachGoldLabels:
    def test_all_twos_become_class_two(self) -> None:
        tree = parse_tree("(2 (2 (2 a) (2 b)) (2 c))")
        gold = attach_gold_labels(tree)

        internal = tree.internal_nodes()
        assert len(internal) == 5
        assert all(gold[node] == 2 for node in internal)

    def test_leaves_are_not_annotated(self) -> None:
        tree = parse_tree("(2 (2 (2 a) (2 b)) (2 c))")
        gold = attach_gold_labels(tree)

        leaves = [node for node in tree.walk_postorder() if node.is_leaf()]
        assert len(leaves) == 3
        assert not any(leaf in gold for leaf in leaves)
        assert len(gold) == len(tree.internal_nodes())

    def test_mixed_classes(self) -> None:
        tree = parse_tree("(3 (2 It) (4 (2 's) (3 good)))")
        gold = attach_gold_labels(tree)

        assert gold[tree] == 3
        right = tree.children[1]
        assert gold[right] == 4
        assert gold[right.children[1]] == 3

    def test_non_integer_label_raises(self) -> None:
        tree = parse_tree("(3 (NP (2 a) (2 b)) (2 c))")
        with pytest.raises(TreeFormatError):
            attach_gold_labels(tree)

    def test_leaf_only_tree_has_no_labels(self) -> None:
        assert attach_gold_labels(Tree("word")) == {}

    def test_tree_is_not_modified(self) -> None:
        tree = parse_tree("(1 (1 bad) (2 movie))")
        before = str(tree)
        attach_gold_labels(tree)
        assert str(tree) == before

    def test_equal_subtrees_are_keyed_separately(self) -> None:
        first = parse_tree("(2 (2 a) (2 b))")
        second = parse_tree("(2 (2 a) (2 b))")
        gold = attach_gold_labels(first)

        assert first in gold
        assert second not in gold


class TestParseClassId:
    @pytest.mark.parametrize("label,expected", [("0", 0), ("4", 4), ("+3", 3), ("-1", -1)])
    def test_integers_parse(self, label: str, expected: int) -> None:
        assert parse_class_id(label) == expected

    @pytest.mark.parametrize("label", ["", "NP", "2.0", " 2", "1_0", "two"])
    def test_non_integers_are_rejected(self, label: str) -> None:
        with pytest.raises(TreeFormatError):
            parse_class_id(label)


class TestLabeledTree:
    def test_from_tree_carries_gold(self) -> None:
        tree = parse_tree("(0 (1 not) (0 awful))")
        example = LabeledTree.from_tree(tree)

        assert example.tree is tree
        assert example.gold_class(tree) == 0
        assert example.gold_class(tree.children[0]) == 1
