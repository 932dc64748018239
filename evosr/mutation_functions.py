# -*- coding: utf-8 -*-
"""
mutation_functions.py - Random tree generation and structural mutations

All functions draw randomness from the ``rng`` they are given (a
``numpy.random.RandomState``) so a seeded search is reproducible. Feature
leaves are drawn from ``features``, a list of allowed 1-based indices.
"""
from typing import Optional, Sequence, Tuple

import numpy as np

from .inverse_functions import Partial, try_approx_inverse
from .tree import Node, count_nodes, random_node


# -----------------------------------------------------------------------------
# Mutation context (plain trees and blueprint expressions)
# -----------------------------------------------------------------------------
def get_contents_for_mutation(expr, rng) -> Tuple[Node, Optional[str]]:
    """Tree to mutate plus a context tag for putting it back."""
    if isinstance(expr, Node):
        return expr, None
    return expr.get_contents_for_mutation(rng)


def with_contents_for_mutation(expr, new_contents: Node, context: Optional[str]):
    if context is None:
        return new_contents
    return expr.with_contents_for_mutation(new_contents, context)


def mutation_features(expr, context: Optional[str], nfeatures: int) -> Sequence[int]:
    """Feature indices a mutation may introduce in ``context``."""
    if context is None:
        return list(range(1, nfeatures + 1))
    return list(expr.variable_mapping[context])


# -----------------------------------------------------------------------------
# Random generation
# -----------------------------------------------------------------------------
def make_random_leaf(features: Sequence[int], rng) -> Node:
    if rng.rand() > 0.5:
        return Node.const(rng.randn())
    return Node.var(features[rng.randint(len(features))])


def _random_op(options, rng, make_new_bin_op=None) -> Tuple[int, int]:
    """Draw ``(degree, op)`` proportional to the size of each operator list."""
    nbin, nuna = options.nbin, options.nuna
    if make_new_bin_op is None:
        make_new_bin_op = rng.rand() < nbin / (nbin + nuna)
    if make_new_bin_op:
        return 2, rng.randint(nbin)
    return 1, rng.randint(nuna)


def _new_op_node(degree, op, child: Node, features, rng, child_on_left=True) -> Node:
    if degree == 1:
        return Node.unary(op, child)
    leaf = make_random_leaf(features, rng)
    if child_on_left:
        return Node.binary(op, child, leaf)
    return Node.binary(op, leaf, child)


def append_random_op(tree: Node, options, features, rng, make_new_bin_op=None) -> Node:
    """Replace a random leaf by an operator applied to fresh leaves."""
    node = random_node(tree, rng, lambda n: n.degree == 0)
    degree, op = _random_op(options, rng, make_new_bin_op)
    if degree == 2:
        new_node = Node.binary(op, make_random_leaf(features, rng), make_random_leaf(features, rng))
    else:
        new_node = Node.unary(op, make_random_leaf(features, rng))
    node.set_node(new_node)
    return tree


def prepend_random_op(tree: Node, options, features, rng) -> Node:
    """Put a random operator above the root."""
    degree, op = _random_op(options, rng)
    return _new_op_node(degree, op, tree, features, rng, child_on_left=rng.rand() < 0.5)


def insert_random_op(tree: Node, options, features, rng) -> Node:
    """Put a random operator above a random node."""
    node = random_node(tree, rng)
    degree, op = _random_op(options, rng)
    node.set_node(_new_op_node(degree, op, node.copy(), features, rng))
    return tree


def delete_random_op(tree: Node, options, features, rng) -> Node:
    """Splice out a random operator, keeping one of its children.

    A leaf picked for deletion is replaced by a fresh random leaf.
    """
    node = random_node(tree, rng)
    if node.degree == 0:
        node.set_node(make_random_leaf(features, rng))
    elif node.degree == 1 or rng.rand() < 0.5:
        node.set_node(node.l)
    else:
        node.set_node(node.r)
    return tree


def gen_random_tree(length: int, options, features, rng) -> Node:
    """Start from a constant and append ``length`` random operators."""
    tree = Node.const(1.0)
    for _ in range(length):
        tree = append_random_op(tree, options, features, rng)
    return tree


def gen_random_tree_fixed_size(node_count: int, options, features, rng) -> Node:
    """Random tree with (up to) ``node_count`` nodes."""
    tree = make_random_leaf(features, rng)
    cur_size = 1
    while cur_size < node_count:
        if cur_size == node_count - 1:
            if options.nuna == 0:
                break
            tree = append_random_op(tree, options, features, rng, make_new_bin_op=False)
        elif options.nuna == 0:
            tree = append_random_op(tree, options, features, rng, make_new_bin_op=True)
        elif options.nbin == 0:
            tree = append_random_op(tree, options, features, rng, make_new_bin_op=False)
        else:
            tree = append_random_op(tree, options, features, rng)
        cur_size = count_nodes(tree)
    return tree


# -----------------------------------------------------------------------------
# Point mutations
# -----------------------------------------------------------------------------
def mutate_constant(tree: Node, temperature: float, options, rng) -> Node:
    """Scale a random constant by up to ``1 + 0.1 + perturbation_factor * T``."""
    node = random_node(tree, rng, lambda n: n.degree == 0 and n.constant)
    if node is None:
        return tree
    bottom = 0.1
    max_change = options.perturbation_factor * temperature + 1 + bottom
    factor = max_change ** rng.rand()
    if rng.rand() > 0.5:
        node.val *= factor
    else:
        node.val /= factor
    if rng.rand() < options.probability_negate_constant:
        node.val *= -1
    return tree


def _apply_inverse_hint(node: Node, options) -> bool:
    """Swap ``node``'s operator for its approximate inverse if it is active."""
    ops = options.operators
    if node.degree == 1:
        inverse = try_approx_inverse(ops.unaops[node.op])
        if inverse is None:
            return False
        idx = ops.index_of(inverse.name, 1)
        if idx < 0:
            return False
        node.op = idx
        return True

    if node.l.degree == 0 and node.l.constant and not (node.r.degree == 0 and node.r.constant):
        side, value, other = "left", node.l.val, node.r
    elif node.r.degree == 0 and node.r.constant and not (node.l.degree == 0 and node.l.constant):
        side, value, other = "right", node.r.val, node.l
    else:
        return False
    with np.errstate(all="ignore"):
        inverse = try_approx_inverse(Partial(ops.binops[node.op], np.float64(value), side))
    if inverse is None or not np.isfinite(inverse.value):
        return False
    idx = ops.index_of(inverse.op.name, 2)
    if idx < 0:
        return False
    node.op = idx
    if inverse.side == "left":
        node.l, node.r = Node.const(inverse.value), other
    else:
        node.l, node.r = other, Node.const(inverse.value)
    return True


def mutate_operator(tree: Node, options, rng) -> Node:
    """Change the operator of a random non-leaf node.

    With probability ``inverse_mutation_probability`` the new operator is the
    approximate inverse of the old one, when that inverse is in the active set.
    """
    node = random_node(tree, rng, lambda n: n.degree != 0)
    if node is None:
        return tree
    if rng.rand() < options.inverse_mutation_probability and _apply_inverse_hint(node, options):
        return tree
    if node.degree == 1:
        node.op = rng.randint(options.nuna)
    else:
        node.op = rng.randint(options.nbin)
    return tree


def swap_operands(tree: Node, rng) -> Node:
    node = random_node(tree, rng, lambda n: n.degree == 2)
    if node is not None:
        node.l, node.r = node.r, node.l
    return tree


def crossover_trees(tree1: Node, tree2: Node, rng) -> Tuple[Node, Node]:
    """Swap a random subtree of ``tree1`` with a random subtree of ``tree2`` (on copies)."""
    tree1 = tree1.copy()
    tree2 = tree2.copy()
    node1 = random_node(tree1, rng)
    node2 = random_node(tree2, rng)
    node1_copy = node1.copy()
    node1.set_node(node2.copy())
    node2.set_node(node1_copy)
    return tree1, tree2


# -----------------------------------------------------------------------------
# Simplification
# -----------------------------------------------------------------------------
def simplify_tree(tree: Node, options) -> Node:
    """Fold operators whose arguments are all constants (when the result is finite)."""
    if tree.degree == 0:
        return tree
    tree.l = simplify_tree(tree.l, options)
    if tree.degree == 2:
        tree.r = simplify_tree(tree.r, options)
    if not all(c.degree == 0 and c.constant for c in tree.children()):
        return tree
    with np.errstate(all="ignore"):
        if tree.degree == 1:
            value = float(options.operators.unaops[tree.op].func(np.float64(tree.l.val)))
        else:
            value = float(options.operators.binops[tree.op].func(np.float64(tree.l.val), np.float64(tree.r.val)))
    if not np.isfinite(value):
        return tree
    return Node.const(value)


def combine_operators(tree: Node, options) -> Node:
    """Merge constants across chains of ``+`` or ``*``: ``c1 + (c2 + x) -> (c1 + c2) + x``."""
    if tree.degree == 0:
        return tree
    tree.l = combine_operators(tree.l, options)
    if tree.degree == 1:
        return tree
    tree.r = combine_operators(tree.r, options)

    for name in ("plus", "mult"):
        op = options.operators.index_of(name, 2)
        if op < 0 or tree.op != op:
            continue
        top_const, inner = _split_const(tree)
        if top_const is None or inner.degree != 2 or inner.op != op:
            continue
        inner_const, rest = _split_const(inner)
        if inner_const is None:
            continue
        func = options.operators.binops[op].func
        with np.errstate(all="ignore"):
            value = float(func(np.float64(top_const.val), np.float64(inner_const.val)))
        if not np.isfinite(value):
            continue
        return Node.binary(op, Node.const(value), rest)
    return tree


def _split_const(node: Node):
    """``(constant_child, other_child)`` of a binary node, or ``(None, None)``."""
    if node.l.degree == 0 and node.l.constant:
        return node.l, node.r
    if node.r.degree == 0 and node.r.constant:
        return node.r, node.l
    return None, None


def simplify_expression(expr, options):
    """``simplify_tree`` then ``combine_operators`` on every tree of ``expr``."""
    def simplify(tree):
        return combine_operators(simplify_tree(tree, options), options)

    if isinstance(expr, Node):
        return simplify(expr)
    return expr.map_trees(simplify)
