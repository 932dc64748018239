# -*- coding: utf-8 -*-
"""
check_constraints.py - Structural limits on candidate expressions

A candidate is accepted when its complexity is within ``maxsize``, its depth
within ``options.maxdepth``, every constrained operator's arguments stay
under their complexity limits, no operator is nested inside another beyond
the configured count, and every feature leaf is in the allowed set.
"""
from typing import Iterable, Optional

from .complexity import compute_complexity
from .tree import Node, count_depth, features_used


def flag_bin_operator_complexity(tree: Node, op: int, cons, options) -> bool:
    """True if some ``op`` node has a left/right argument above its limit."""
    left_max, right_max = cons
    for node in tree:
        if node.degree == 2 and node.op == op:
            if left_max > -1 and compute_complexity(node.l, options) > left_max:
                return True
            if right_max > -1 and compute_complexity(node.r, options) > right_max:
                return True
    return False


def flag_una_operator_complexity(tree: Node, op: int, cons: int, options) -> bool:
    for node in tree:
        if node.degree == 1 and node.op == op and compute_complexity(node.l, options) > cons:
            return True
    return False


def count_max_nestedness(tree: Node, degree: int, op: int) -> int:
    """Largest number of ``op`` nodes on any root-to-leaf path, excluding ``tree`` itself."""
    def count(node):
        here = 1 if (node.degree == degree and node.op == op) else 0
        if node.degree == 0:
            return 0
        if node.degree == 1:
            return here + count(node.l)
        return here + max(count(node.l), count(node.r))

    nestedness = count(tree)
    is_self = tree.degree == degree and tree.op == op
    return nestedness - (1 if is_self else 0)


def flag_illegal_nests(tree: Node, options) -> bool:
    for degree, op, inner in options.nested_constraint_indices:
        for node in tree:
            if node.degree != degree or node.op != op:
                continue
            for nested_degree, nested_op, max_nestedness in inner:
                if count_max_nestedness(node, nested_degree, nested_op) > max_nestedness:
                    return True
    return False


def contains_other_features_than(tree: Node, features: Iterable[int]) -> bool:
    return not features_used(tree) <= set(int(f) for f in features)


def check_constraints(tree, options, maxsize: int, cursize: Optional[int] = None,
                      allowed_features: Optional[Iterable[int]] = None) -> bool:
    """Return True when ``tree`` satisfies every configured limit."""
    if not isinstance(tree, Node):
        return tree.check_constraints(options, maxsize, cursize)
    size = compute_complexity(tree, options) if cursize is None else cursize
    if size > maxsize:
        return False
    if count_depth(tree) > options.maxdepth:
        return False
    for op, cons in enumerate(options.bin_constraints):
        if cons == (-1, -1):
            continue
        if flag_bin_operator_complexity(tree, op, cons, options):
            return False
    for op, cons in enumerate(options.una_constraints):
        if cons == -1:
            continue
        if flag_una_operator_complexity(tree, op, cons, options):
            return False
    if flag_illegal_nests(tree, options):
        return False
    if allowed_features is not None and contains_other_features_than(tree, allowed_features):
        return False
    return True
