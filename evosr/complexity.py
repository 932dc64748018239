# -*- coding: utf-8 -*-
"""complexity.py - Size metric of an expression (weighted node count)."""
from .tree import Node, count_nodes


def compute_complexity(tree, options) -> int:
    """Node count, or the sum of per-node weights when a mapping is configured.

    Weighted sums are rounded to the nearest integer so complexity can index
    the hall of fame. Blueprint expressions sum their inner expressions.
    """
    if not isinstance(tree, Node):
        return sum(compute_complexity(t, options) for t in tree.trees.values())
    if not options.use_complexity_mapping:
        return count_nodes(tree)
    total = 0.0
    for node in tree:
        if node.degree == 0:
            total += options.complexity_of_constants if node.constant else options.complexity_of_variables
        elif node.degree == 1:
            total += options.unaop_complexity[node.op]
        else:
            total += options.binop_complexity[node.op]
    return int(round(total))
