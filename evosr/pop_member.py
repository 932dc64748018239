# -*- coding: utf-8 -*-
"""pop_member.py - A scored expression living in a population."""
import itertools
import threading
import time

from .complexity import compute_complexity
from .loss_functions import score_func

_birth_counter = itertools.count(1)
_ref_counter = itertools.count(1)
_counter_lock = threading.Lock()


def get_birth_order(deterministic: bool = False) -> int:
    """Monotonic birth stamp: a global counter when deterministic, else wall-clock ns."""
    if deterministic:
        with _counter_lock:
            return next(_birth_counter)
    return time.perf_counter_ns()


def reset_birth_counter():
    global _birth_counter
    with _counter_lock:
        _birth_counter = itertools.count(1)


def _new_ref() -> int:
    with _counter_lock:
        return next(_ref_counter)


class PopMember:
    """Expression plus its score, loss, birth stamp and lineage."""

    __slots__ = ("tree", "score", "loss", "birth", "ref", "parent", "complexity")

    def __init__(self, tree, score: float, loss: float, options=None,
                 birth=None, parent: int = -1, deterministic: bool = False, complexity=None):
        self.tree = tree
        self.score = float(score)
        self.loss = float(loss)
        self.birth = get_birth_order(deterministic) if birth is None else birth
        self.ref = _new_ref()
        self.parent = parent
        if complexity is None and options is not None:
            complexity = compute_complexity(tree, options)
        self.complexity = complexity

    @classmethod
    def from_dataset(cls, dataset, baseline: float, tree, options, parent: int = -1, cache=None):
        """Score ``tree`` on ``dataset`` and wrap it."""
        score, result_loss = score_func(dataset, baseline, tree, options, cache=cache)
        return cls(tree, score, result_loss, options, parent=parent,
                   deterministic=options.deterministic)

    def copy(self) -> "PopMember":
        new = PopMember.__new__(PopMember)
        new.tree = self.tree.copy()
        new.score = self.score
        new.loss = self.loss
        new.birth = self.birth
        new.ref = self.ref
        new.parent = self.parent
        new.complexity = self.complexity
        return new

    def reset_birth(self, deterministic: bool = False):
        self.birth = get_birth_order(deterministic)

    def recompute_complexity(self, options) -> int:
        self.complexity = compute_complexity(self.tree, options)
        return self.complexity

    def __repr__(self):
        return f"PopMember(tree = {self.tree!r}, loss = {self.loss}, score = {self.score})"
