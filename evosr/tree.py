# -*- coding: utf-8 -*-
"""
tree.py - Expression tree nodes and structural utilities

A ``Node`` is a leaf (constant or 1-based feature), a unary operator
application, or a binary operator application. Operator indices point into
``options.operators.unaops`` / ``options.operators.binops``.

Trees are strict: no node is shared between parents or between trees, and
``Node.copy`` is a deep structural clone.
"""
from typing import Iterator, List, Optional, Sequence

import numpy as np


class Node:
    """Node of a binary expression tree."""

    __slots__ = ("degree", "constant", "val", "feature", "op", "l", "r")

    def __init__(self, degree=0, constant=False, val=0.0, feature=0, op=0, l=None, r=None):
        self.degree = degree
        self.constant = constant
        self.val = val
        self.feature = feature
        self.op = op
        self.l = l
        self.r = r

    # -- constructors ---------------------------------------------------------
    @classmethod
    def const(cls, val: float) -> "Node":
        return cls(degree=0, constant=True, val=float(val))

    @classmethod
    def var(cls, feature: int) -> "Node":
        """Leaf reading feature ``feature`` (1-based)."""
        if feature < 1:
            raise ValueError(f"Feature indices are 1-based, got {feature}")
        return cls(degree=0, constant=False, feature=int(feature))

    @classmethod
    def unary(cls, op: int, l: "Node") -> "Node":
        return cls(degree=1, op=op, l=l)

    @classmethod
    def binary(cls, op: int, l: "Node", r: "Node") -> "Node":
        return cls(degree=2, op=op, l=l, r=r)

    # -- structure ------------------------------------------------------------
    def copy(self) -> "Node":
        if self.degree == 0:
            return Node(0, self.constant, self.val, self.feature)
        if self.degree == 1:
            return Node(1, op=self.op, l=self.l.copy())
        return Node(2, op=self.op, l=self.l.copy(), r=self.r.copy())

    def set_node(self, other: "Node"):
        """Overwrite this node in place with the contents of ``other``."""
        self.degree = other.degree
        self.constant = other.constant
        self.val = other.val
        self.feature = other.feature
        self.op = other.op
        self.l = other.l
        self.r = other.r

    def children(self) -> List["Node"]:
        if self.degree == 0:
            return []
        if self.degree == 1:
            return [self.l]
        return [self.l, self.r]

    def __iter__(self) -> Iterator["Node"]:
        """Pre-order traversal (node, left subtree, right subtree)."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            if node.degree == 2:
                stack.append(node.r)
            if node.degree >= 1:
                stack.append(node.l)

    def __repr__(self):
        return f"Node({string_tree(self)})"


# -----------------------------------------------------------------------------
# Structural queries
# -----------------------------------------------------------------------------
def count_nodes(tree: Node) -> int:
    return sum(1 for _ in tree)


def count_depth(tree: Node) -> int:
    if tree.degree == 0:
        return 1
    if tree.degree == 1:
        return 1 + count_depth(tree.l)
    return 1 + max(count_depth(tree.l), count_depth(tree.r))


def has_constants(tree: Node) -> bool:
    return any(node.degree == 0 and node.constant for node in tree)


def get_constants(tree: Node) -> np.ndarray:
    """Constant leaf values in pre-order."""
    return np.array([node.val for node in tree if node.degree == 0 and node.constant], dtype=float)


def set_constants(tree: Node, constants: Sequence[float]):
    """Write ``constants`` into the constant leaves, in the order of ``get_constants``."""
    i = 0
    for node in tree:
        if node.degree == 0 and node.constant:
            node.val = float(constants[i])
            i += 1


def features_used(tree: Node) -> set:
    return {node.feature for node in tree if node.degree == 0 and not node.constant}


def fingerprint(tree: Node) -> tuple:
    """Hashable structural key: pre-order ``(degree, op, feature, val)`` tuples."""
    key = []
    for node in tree:
        if node.degree == 0:
            key.append((0, node.constant, node.val if node.constant else node.feature))
        else:
            key.append((node.degree, node.op))
    return tuple(key)


def random_node(tree: Node, rng, filter_fn=None) -> Optional[Node]:
    """Uniformly random node of ``tree`` satisfying ``filter_fn`` (or None)."""
    nodes = [n for n in tree if filter_fn is None or filter_fn(n)]
    if not nodes:
        return None
    return nodes[rng.randint(len(nodes))]


# -----------------------------------------------------------------------------
# String rendering (diagnostics only)
# -----------------------------------------------------------------------------
def _format_constant(val: float) -> str:
    return repr(float(val))


def string_tree(tree: Node, options=None, variable_names: Optional[Sequence[str]] = None) -> str:
    """Render ``tree`` as an infix string, e.g. ``((x1 ^ 2.0) + 1.5)``."""
    if tree.degree == 0:
        if tree.constant:
            return _format_constant(tree.val)
        if variable_names is not None:
            return str(variable_names[tree.feature - 1])
        return f"x{tree.feature}"
    if options is None:
        if tree.degree == 1:
            return f"unary{tree.op}({string_tree(tree.l, options, variable_names)})"
        return (f"binary{tree.op}({string_tree(tree.l, options, variable_names)}, "
                f"{string_tree(tree.r, options, variable_names)})")
    if tree.degree == 1:
        spec = options.operators.unaops[tree.op]
        return f"{spec.label}({string_tree(tree.l, options, variable_names)})"
    spec = options.operators.binops[tree.op]
    left = string_tree(tree.l, options, variable_names)
    right = string_tree(tree.r, options, variable_names)
    if spec.infix:
        return f"({left} {spec.label} {right})"
    return f"{spec.label}({left}, {right})"
