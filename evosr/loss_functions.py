# -*- coding: utf-8 -*-
"""
loss_functions.py - Supervised losses and complexity-penalised scores

score = loss / baseline + complexity * parsimony   (lower is better)

An expression whose evaluation is invalid (NaN/Inf) gets a loss of
``INVALID_LOSS`` so the search selects against it without failing.
"""
import threading
from collections import OrderedDict
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from .complexity import compute_complexity
from .evaluate import eval_tree_dispatch
from .tree import Node, fingerprint

INVALID_LOSS = 1e9


# -----------------------------------------------------------------------------
# Elementwise losses: f(residual = prediction - target, **kwargs) -> array
# -----------------------------------------------------------------------------
def l2_dist_loss(r):
    return r * r


def l1_dist_loss(r):
    return np.abs(r)


def lp_dist_loss(r, p=2.0):
    return np.abs(r) ** p


def huber_loss(r, delta=1.0):
    a = np.abs(r)
    return np.where(a <= delta, 0.5 * r * r, delta * (a - 0.5 * delta))


def log_cosh_loss(r):
    # log(cosh(r)) without overflow for large |r|
    a = np.abs(r)
    return a + np.log1p(np.exp(-2.0 * a)) - np.log(2.0)


def l1_epsilon_ins_loss(r, epsilon=1.0):
    return np.maximum(0.0, np.abs(r) - epsilon)


LOSSES: Dict[str, Callable] = {
    "L2DistLoss": l2_dist_loss,
    "L1DistLoss": l1_dist_loss,
    "LPDistLoss": lp_dist_loss,
    "HuberLoss": huber_loss,
    "LogCoshLoss": log_cosh_loss,
    "L1EpsilonInsLoss": l1_epsilon_ins_loss,
}


def loss(prediction: np.ndarray, target: np.ndarray, options, weights: Optional[np.ndarray] = None) -> float:
    """Mean elementwise loss, or ``sum(w * l) / sum(w)`` when weighted.

    ``options.loss`` is either a name in ``LOSSES`` (parameters from
    ``options.loss_kwargs``) or a callable ``f(prediction, target)`` returning
    elementwise losses.
    """
    with np.errstate(all="ignore"):
        if isinstance(options.loss, str):
            values = LOSSES[options.loss](prediction - target, **options.loss_kwargs)
        else:
            values = np.asarray(options.loss(prediction, target), dtype=float)
        if weights is None:
            return float(np.mean(values))
        return float(np.sum(values * weights) / np.sum(weights))


# -----------------------------------------------------------------------------
# Loss cache
# -----------------------------------------------------------------------------
class LossCache:
    """Memoise losses by structural fingerprint of the expression.

    At most ``max_size`` entries are kept; the least recently used entry is
    evicted first. A retained structure (including constant values) is
    never computed twice.
    """

    def __init__(self, max_size: int = 10000):
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self.max_size = max_size
        self._values: "OrderedDict[tuple, float]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self):
        return len(self._values)

    def maybe_get(self, tree, compute: Callable[[], float]) -> float:
        key = _cache_key(tree)
        with self._lock:
            if key in self._values:
                self.hits += 1
                self._values.move_to_end(key)
                return self._values[key]
        value = compute()
        with self._lock:
            self.misses += 1
            if key in self._values:
                self._values.move_to_end(key)
                return self._values[key]
            if len(self._values) >= self.max_size:
                self._values.popitem(last=False)
            self._values[key] = value
            return value


def _cache_key(tree):
    if isinstance(tree, Node):
        return fingerprint(tree)
    return tuple((name, fingerprint(t)) for name, t in tree.trees.items())


# -----------------------------------------------------------------------------
# Scoring
# -----------------------------------------------------------------------------
def eval_loss(tree, dataset, options, cache: Optional[LossCache] = None) -> float:
    """Loss of ``tree`` on the full dataset (``INVALID_LOSS`` when invalid)."""
    def compute():
        prediction, complete = eval_tree_dispatch(tree, dataset.X, options)
        if not complete:
            return INVALID_LOSS
        value = loss(prediction, dataset.y, options, dataset.weights)
        return value if np.isfinite(value) else INVALID_LOSS

    if cache is None:
        return compute()
    return cache.maybe_get(tree, compute)


def loss_to_score(loss_value: float, baseline: float, tree, options,
                  use_baseline: bool = True, complexity: Optional[int] = None) -> float:
    """Normalised loss plus the parsimony penalty.

    The loss is divided by the baseline when it is usable (finite and
    positive), otherwise left unnormalised.
    """
    if use_baseline and np.isfinite(baseline) and baseline > 0:
        normalization = baseline
    else:
        normalization = 1.0
    size = compute_complexity(tree, options) if complexity is None else complexity
    return loss_value / normalization + size * options.parsimony


def score_func(dataset, baseline: float, tree, options,
               cache: Optional[LossCache] = None) -> Tuple[float, float]:
    """Return ``(score, loss)`` of ``tree`` on the full dataset."""
    result_loss = eval_loss(tree, dataset, options, cache=cache)
    score = loss_to_score(result_loss, baseline, tree, options, dataset.use_baseline)
    return score, result_loss


def batch_sample(dataset, options, rng) -> np.ndarray:
    """``batch_size`` sample indices drawn without replacement."""
    size = min(options.batch_size, dataset.n)
    return rng.choice(dataset.n, size=size, replace=False)


def score_func_batch(dataset, baseline: float, tree, options, rng) -> Tuple[float, float]:
    """``score_func`` on a random mini-batch of ``options.batch_size`` samples."""
    idx = batch_sample(dataset, options, rng)
    prediction, complete = eval_tree_dispatch(tree, dataset.X[:, idx], options)
    if not complete:
        return INVALID_LOSS, INVALID_LOSS
    weights = dataset.weights[idx] if dataset.weighted else None
    result_loss = loss(prediction, dataset.y[idx], options, weights)
    if not np.isfinite(result_loss):
        return INVALID_LOSS, INVALID_LOSS
    score = loss_to_score(result_loss, baseline, tree, options, dataset.use_baseline)
    return score, result_loss
