# -*- coding: utf-8 -*-
"""Expression tree structure tests."""
import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture
def options():
    from evosr.options import Options
    return Options(binary_operators=("+", "^"), unary_operators=("cos",))


@pytest.fixture
def pow_tree():
    """(x1 ^ 2.0) + 1.5"""
    from evosr.tree import Node
    return Node.binary(0, Node.binary(1, Node.var(1), Node.const(2.0)), Node.const(1.5))


def test_feature_indices_are_one_based():
    from evosr.tree import Node

    with pytest.raises(ValueError, match="1-based"):
        Node.var(0)


def test_structural_queries(pow_tree):
    from evosr.tree import count_depth, count_nodes, features_used, get_constants

    assert count_nodes(pow_tree) == 5
    assert count_depth(pow_tree) == 3
    assert len(get_constants(pow_tree)) == 2
    assert features_used(pow_tree) == {1}


def test_constants_pre_order(pow_tree):
    from evosr.tree import get_constants, set_constants

    np.testing.assert_array_equal(get_constants(pow_tree), [2.0, 1.5])
    set_constants(pow_tree, [3.0, -1.0])
    np.testing.assert_array_equal(get_constants(pow_tree), [3.0, -1.0])


def test_copy_is_deep_and_unshared(pow_tree):
    from evosr.tree import fingerprint, set_constants

    clone = pow_tree.copy()
    assert fingerprint(clone) == fingerprint(pow_tree)
    assert not ({id(n) for n in clone} & {id(n) for n in pow_tree})

    set_constants(clone, [9.0, 9.0])
    assert fingerprint(clone) != fingerprint(pow_tree)
    assert pow_tree.l.r.val == 2.0


def test_string_tree(pow_tree, options):
    from evosr.tree import string_tree

    assert string_tree(pow_tree, options) == "((x1 ^ 2.0) + 1.5)"
    assert string_tree(pow_tree, options, variable_names=["t"]) == "((t ^ 2.0) + 1.5)"


def test_string_tree_unary(options):
    from evosr.tree import Node, string_tree

    tree = Node.unary(0, Node.var(2))
    assert string_tree(tree, options) == "cos(x2)"


def test_random_node_filter(pow_tree):
    from evosr.tree import random_node

    rng = np.random.RandomState(0)
    for _ in range(20):
        node = random_node(pow_tree, rng, lambda n: n.degree == 0 and n.constant)
        assert node.constant
    assert random_node(pow_tree, rng, lambda n: n.degree == 1) is None


def test_set_node_in_place(pow_tree):
    from evosr.tree import Node, count_nodes

    pow_tree.l.set_node(Node.var(2))
    assert count_nodes(pow_tree) == 3
    assert pow_tree.l.feature == 2
