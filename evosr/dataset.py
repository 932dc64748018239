# -*- coding: utf-8 -*-
"""
dataset.py - Immutable container for features, targets and weights

``X`` is stored features x samples so a variable leaf is a contiguous row.
The baseline loss (loss of predicting ``avg_y`` everywhere) is the only
mutable state; it is computed once per loss function under a lock because
several search workers may ask for it at the same time.
"""
import threading
from typing import Optional, Sequence

import numpy as np
from sklearn.utils import check_array, check_consistent_length

from .loss_functions import loss as loss_fn


class Dataset:
    """Features, targets and optional sample weights for one search.

    Parameters
    ----------
    X : array-like (nfeatures, n)
    y : array-like (n,)
    weights : array-like (n,), optional
    variable_names : list[str], optional
        Defaults to ``x1 .. xN``.
    """

    def __init__(self, X, y, weights=None, variable_names: Optional[Sequence[str]] = None):
        X = check_array(X, dtype=float, ensure_2d=True)
        y = np.asarray(y, dtype=float).ravel()
        check_consistent_length(X.T, y)
        if weights is not None:
            weights = np.asarray(weights, dtype=float).ravel()
            check_consistent_length(y, weights)
            if (weights < 0).any() or weights.sum() <= 0:
                raise ValueError("weights must be non-negative with a positive sum")

        self.X = np.ascontiguousarray(X)
        self.y = y
        self.n = X.shape[1]
        self.nfeatures = X.shape[0]
        self.weights = weights
        self.weighted = weights is not None

        if variable_names is None:
            variable_names = [f"x{i}" for i in range(1, self.nfeatures + 1)]
        variable_names = list(variable_names)
        if len(variable_names) != self.nfeatures:
            raise ValueError(
                f"Got {len(variable_names)} variable names for {self.nfeatures} features"
            )
        self.variable_names = variable_names

        if self.weighted:
            self.avg_y = float(np.sum(y * weights) / np.sum(weights))
        else:
            self.avg_y = float(np.mean(y))

        self._baseline_lock = threading.Lock()
        self._baseline_key = None
        self.baseline_loss = 1.0
        self.use_baseline = True

    def __repr__(self):
        return (f"Dataset(n={self.n}, nfeatures={self.nfeatures}, weighted={self.weighted}, "
                f"variable_names={self.variable_names})")

    def baseline(self, options) -> float:
        """Return the cached baseline loss, computing it on first use."""
        update_baseline_loss(self, options)
        return self.baseline_loss


def _loss_key(options):
    return (options.loss, tuple(sorted(options.loss_kwargs.items())))


def update_baseline_loss(dataset: Dataset, options) -> float:
    """Compute the constant-``avg_y`` loss once per loss function.

    A non-finite baseline disables normalisation (``use_baseline=False``).
    """
    key = _loss_key(options)
    if dataset._baseline_key == key:
        return dataset.baseline_loss
    with dataset._baseline_lock:
        if dataset._baseline_key != key:
            prediction = np.full(dataset.n, dataset.avg_y)
            baseline = loss_fn(prediction, dataset.y, options, dataset.weights)
            if np.isfinite(baseline):
                dataset.baseline_loss = float(baseline)
                dataset.use_baseline = True
            else:
                dataset.baseline_loss = 1.0
                dataset.use_baseline = False
            dataset._baseline_key = key
    return dataset.baseline_loss
