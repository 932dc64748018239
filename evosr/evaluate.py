# -*- coding: utf-8 -*-
"""
evaluate.py - Evaluate expression trees over a data matrix

``eval_tree_array(tree, cX, options) -> (output, complete)``

``cX`` is features x samples. ``complete`` is False as soon as an infinity or
NaN shows up; the output is then unspecified and callers assign a large
loss instead of raising. The recursion fuses a few common shapes so leaf
rows are read straight from ``cX`` and constants stay scalars:

  - op(op2(x, y)) with x, y leaves
  - op(op2(x)) with x a leaf
  - op(x, y) with x, y leaves
  - op(x, y) with exactly one leaf side

``differentiable_eval_tree_array`` applies operators node by node without
fusion and serves as the reference the fused path must agree with.
"""
from typing import Tuple

import numpy as np

from .tree import Node


def is_good_array(x) -> bool:
    return bool(np.all(np.isfinite(x)))


def _bad(n):
    return np.empty(n), False


def eval_tree_array(tree: Node, cX: np.ndarray, options) -> Tuple[np.ndarray, bool]:
    """Evaluate ``tree`` on every column of ``cX``."""
    n = cX.shape[1]
    with np.errstate(all="ignore"):
        result, complete = _eval_tree_array(tree, cX, options)
    if not complete:
        return result, False
    result = np.asarray(result, dtype=float)
    if result.shape != (n,):
        result = np.broadcast_to(result, (n,)).copy()
    if not is_good_array(result):
        return result, False
    return result, True


def eval_tree_dispatch(tree, cX: np.ndarray, options) -> Tuple[np.ndarray, bool]:
    """Evaluate a plain tree or any expression exposing ``evaluate(cX, options)``."""
    if isinstance(tree, Node):
        return eval_tree_array(tree, cX, options)
    return tree.evaluate(cX, options)


def _eval_tree_array(tree: Node, cX, options):
    if tree.degree == 0:
        return deg0_eval(tree, cX)
    if tree.degree == 1:
        l = tree.l
        if l.degree == 2 and l.l.degree == 0 and l.r.degree == 0:
            return deg1_l2_ll0_lr0_eval(tree, cX, options)
        if l.degree == 1 and l.l.degree == 0:
            return deg1_l1_ll0_eval(tree, cX, options)
        return deg1_eval(tree, cX, options)
    if tree.l.degree == 0 and tree.r.degree == 0:
        return deg2_l0_r0_eval(tree, cX, options)
    if tree.l.degree == 0:
        return deg2_l0_eval(tree, cX, options)
    if tree.r.degree == 0:
        return deg2_r0_eval(tree, cX, options)
    return deg2_eval(tree, cX, options)


def _leaf(node: Node, cX):
    """Scalar for a constant, row view of ``cX`` for a feature."""
    if node.constant:
        return np.float64(node.val)
    return cX[node.feature - 1]


def deg0_eval(tree: Node, cX):
    n = cX.shape[1]
    if tree.constant:
        if not np.isfinite(tree.val):
            return _bad(n)
        return np.full(n, float(tree.val)), True
    return cX[tree.feature - 1].copy(), True


def deg1_eval(tree: Node, cX, options):
    n = cX.shape[1]
    cumulator, complete = _eval_tree_array(tree.l, cX, options)
    if not complete or not is_good_array(cumulator):
        return _bad(n)
    op = options.operators.unaops[tree.op].func
    return op(cumulator), True


def deg2_eval(tree: Node, cX, options):
    n = cX.shape[1]
    cumulator, complete = _eval_tree_array(tree.l, cX, options)
    if not complete or not is_good_array(cumulator):
        return _bad(n)
    array2, complete2 = _eval_tree_array(tree.r, cX, options)
    if not complete2 or not is_good_array(array2):
        return _bad(n)
    op = options.operators.binops[tree.op].func
    return op(cumulator, array2), True


def deg1_l2_ll0_lr0_eval(tree: Node, cX, options):
    """op(op_l(a, b)) with a and b leaves."""
    n = cX.shape[1]
    op = options.operators.unaops[tree.op].func
    op_l = options.operators.binops[tree.l.op].func
    ll, lr = tree.l.l, tree.l.r
    if ll.constant and lr.constant:
        if not (np.isfinite(ll.val) and np.isfinite(lr.val)):
            return _bad(n)
        x_l = float(op_l(np.float64(ll.val), np.float64(lr.val)))
        if not np.isfinite(x_l):
            return _bad(n)
        x = float(op(np.float64(x_l)))
        if not np.isfinite(x):
            return _bad(n)
        return np.full(n, x), True
    if (ll.constant and not np.isfinite(ll.val)) or (lr.constant and not np.isfinite(lr.val)):
        return _bad(n)
    x_l = op_l(_leaf(ll, cX), _leaf(lr, cX))
    if not is_good_array(x_l):
        return _bad(n)
    return op(x_l), True


def deg1_l1_ll0_eval(tree: Node, cX, options):
    """op(op_l(a)) with a a leaf."""
    n = cX.shape[1]
    op = options.operators.unaops[tree.op].func
    op_l = options.operators.unaops[tree.l.op].func
    ll = tree.l.l
    if ll.constant:
        if not np.isfinite(ll.val):
            return _bad(n)
        x_l = float(op_l(np.float64(ll.val)))
        if not np.isfinite(x_l):
            return _bad(n)
        x = float(op(np.float64(x_l)))
        if not np.isfinite(x):
            return _bad(n)
        return np.full(n, x), True
    x_l = op_l(cX[ll.feature - 1])
    if not is_good_array(x_l):
        return _bad(n)
    return op(x_l), True


def deg2_l0_r0_eval(tree: Node, cX, options):
    """op(a, b) with a and b leaves."""
    n = cX.shape[1]
    op = options.operators.binops[tree.op].func
    l, r = tree.l, tree.r
    if (l.constant and not np.isfinite(l.val)) or (r.constant and not np.isfinite(r.val)):
        return _bad(n)
    if l.constant and r.constant:
        x = float(op(np.float64(l.val), np.float64(r.val)))
        if not np.isfinite(x):
            return _bad(n)
        return np.full(n, x), True
    return op(_leaf(l, cX), _leaf(r, cX)), True


def deg2_l0_eval(tree: Node, cX, options):
    """op(a, subtree) with a a leaf."""
    n = cX.shape[1]
    l = tree.l
    if l.constant and not np.isfinite(l.val):
        return _bad(n)
    cumulator, complete = _eval_tree_array(tree.r, cX, options)
    if not complete or not is_good_array(cumulator):
        return _bad(n)
    op = options.operators.binops[tree.op].func
    return op(_leaf(l, cX), cumulator), True


def deg2_r0_eval(tree: Node, cX, options):
    """op(subtree, b) with b a leaf."""
    n = cX.shape[1]
    cumulator, complete = _eval_tree_array(tree.l, cX, options)
    if not complete or not is_good_array(cumulator):
        return _bad(n)
    r = tree.r
    if r.constant and not np.isfinite(r.val):
        return _bad(n)
    op = options.operators.binops[tree.op].func
    return op(cumulator, _leaf(r, cX)), True


# -----------------------------------------------------------------------------
# Reference evaluators
# -----------------------------------------------------------------------------
def differentiable_eval_tree_array(tree: Node, cX: np.ndarray, options) -> Tuple[np.ndarray, bool]:
    """Unfused node-by-node evaluation. Same semantics as ``eval_tree_array``."""
    n = cX.shape[1]
    with np.errstate(all="ignore"):
        if tree.degree == 0:
            if tree.constant:
                out = np.ones(n) * tree.val
            else:
                out = cX[tree.feature - 1].astype(float)
            return out, is_good_array(out)
        left, complete = differentiable_eval_tree_array(tree.l, cX, options)
        if not complete:
            return left, False
        if tree.degree == 1:
            out = np.asarray(options.operators.unaops[tree.op].func(left), dtype=float)
        else:
            right, complete2 = differentiable_eval_tree_array(tree.r, cX, options)
            if not complete2:
                return left, False
            out = np.asarray(options.operators.binops[tree.op].func(left, right), dtype=float)
    out = np.broadcast_to(out, (n,)).copy()
    return out, is_good_array(out)


def eval_tree_array_stack(tree: Node, cX: np.ndarray, options) -> Tuple[np.ndarray, bool]:
    """Iterative post-order evaluation with an explicit result stack."""
    n = cX.shape[1]
    stack = [tree]
    processed = []
    while stack:
        top = stack.pop()
        if top.degree == 2:
            stack.append(top.l)
            stack.append(top.r)
        elif top.degree == 1:
            stack.append(top.l)
        processed.append(top)

    results = []
    with np.errstate(all="ignore"):
        while processed:
            top = processed.pop()
            if top.degree == 0:
                if top.constant:
                    results.append(np.full(n, float(top.val)))
                else:
                    results.append(cX[top.feature - 1].astype(float))
            elif top.degree == 1:
                results[-1] = np.asarray(options.operators.unaops[top.op].func(results[-1]), dtype=float)
            else:
                right = results.pop()
                results[-1] = np.asarray(options.operators.binops[top.op].func(results[-1], right), dtype=float)
            if not is_good_array(results[-1]):
                return results[-1], False
    out = np.broadcast_to(results[0], (n,)).copy()
    return out, True
