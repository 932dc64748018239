# -*- coding: utf-8 -*-
"""
hall_of_fame.py - Best expression found at each complexity

The hall of fame keeps one member per complexity ``1 .. maxsize + 2``. An
entry is only replaced by a member with strictly lower loss, so the stored
loss at every complexity never increases over a search. Updates are
compare-then-write under one lock; several population workers may report
into the same instance.
"""
import threading
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from kneed import KneeLocator
from sklearn.metrics import r2_score

from .evaluate import eval_tree_dispatch
from .pop_member import PopMember
from .tree import Node, string_tree

# binary operators can exceed maxsize by up to 2 nodes in one step
MAX_DEGREE = 2


class HallOfFame:
    """Lowest-loss member at every complexity."""

    def __init__(self, options):
        self.capacity = options.maxsize + MAX_DEGREE
        self.members: List[Optional[PopMember]] = [None] * self.capacity
        self._lock = threading.Lock()
        # filled in by equation_search
        self.logbook = None
        self.num_evals = 0.0
        self.stop_reason: Optional[str] = None
        self.populations: Optional[list] = None

    def __len__(self):
        return sum(m is not None for m in self.members)

    def exists(self, complexity: int) -> bool:
        return 0 < complexity <= self.capacity and self.members[complexity - 1] is not None

    def get(self, complexity: int) -> Optional[PopMember]:
        if not 0 < complexity <= self.capacity:
            return None
        return self.members[complexity - 1]

    def existing(self) -> List[PopMember]:
        return [m for m in self.members if m is not None]

    def update(self, member: PopMember, options) -> bool:
        """Store a copy of ``member`` if it beats the entry at its complexity."""
        size = member.complexity
        if size is None:
            size = member.recompute_complexity(options)
        if not 0 < size <= self.capacity or not np.isfinite(member.loss):
            return False
        with self._lock:
            current = self.members[size - 1]
            if current is None or member.loss < current.loss:
                self.members[size - 1] = member.copy()
                return True
        return False

    def merge(self, other: "HallOfFame", options) -> int:
        """Fold ``other`` into this one; returns the number of improved slots."""
        return sum(self.update(m, options) for m in other.existing())

    def pareto_frontier(self) -> List[PopMember]:
        return calculate_pareto_frontier(self)

    def to_dataframe(self, options, variable_names: Optional[Sequence[str]] = None) -> pd.DataFrame:
        """All stored members, one row per complexity."""
        recs = []
        for m in self.existing():
            recs.append({
                "complexity": int(m.complexity),
                "loss": float(m.loss),
                "score": float(m.score),
                "equation": string_expression(m.tree, options, variable_names),
            })
        return pd.DataFrame(recs, columns=["complexity", "loss", "score", "equation"])


def calculate_pareto_frontier(hof: HallOfFame) -> List[PopMember]:
    """Members whose loss is strictly lower than every smaller member's, by complexity."""
    frontier: List[PopMember] = []
    for member in hof.members:
        if member is None:
            continue
        if all(member.loss < smaller.loss for smaller in frontier):
            frontier.append(member.copy())
    return frontier


def string_expression(expr, options, variable_names: Optional[Sequence[str]] = None) -> str:
    if isinstance(expr, Node):
        return string_tree(expr, options, variable_names)
    return expr.string(options, variable_names)


def frontier_dataframe(hof: HallOfFame, dataset, options) -> pd.DataFrame:
    """Pareto frontier with an ``r2`` column computed on ``dataset``."""
    recs = []
    for m in hof.pareto_frontier():
        prediction, complete = eval_tree_dispatch(m.tree, dataset.X, options)
        r2 = float(r2_score(dataset.y, prediction, sample_weight=dataset.weights)) if complete else np.nan
        recs.append({
            "complexity": int(m.complexity),
            "loss": float(m.loss),
            "score": float(m.score),
            "equation": string_expression(m.tree, options, dataset.variable_names),
            "r2": r2,
        })
    return pd.DataFrame(recs, columns=["complexity", "loss", "score", "equation", "r2"])


# -----------------------------------------------------------------------------
# Model selection on the frontier
# -----------------------------------------------------------------------------
def _log_loss_slopes(losses: np.ndarray, complexities: np.ndarray) -> np.ndarray:
    """``-d log(loss) / d complexity`` between neighbours (0 for the first)."""
    log_losses = np.log(np.maximum(losses, np.finfo(float).tiny))
    slopes = np.zeros(len(losses))
    slopes[1:] = -np.diff(log_losses) / np.diff(complexities)
    return slopes


def choose_best(frontier: List[PopMember], model_selection: str = "score") -> PopMember:
    """Pick one member of a Pareto frontier (ordered by complexity).

    - ``"accuracy"``: lowest loss
    - ``"score"``: steepest log-loss drop per unit complexity among members
      with loss at most 1.5x the best
    - ``"knee"``: knee of the loss/complexity curve (``kneed.KneeLocator``)
    """
    if not frontier:
        raise ValueError("Cannot choose from an empty Pareto frontier")
    losses = np.array([m.loss for m in frontier], dtype=float)
    complexities = np.array([m.complexity for m in frontier], dtype=float)

    if model_selection == "accuracy" or len(frontier) == 1:
        return frontier[int(np.argmin(losses))]
    if model_selection == "score":
        slopes = _log_loss_slopes(losses, complexities)
        eligible = losses <= 1.5 * losses.min()
        slopes[~eligible] = -np.inf
        return frontier[int(np.argmax(slopes))]
    if model_selection == "knee":
        if len(frontier) < 3:
            return frontier[int(np.argmin(losses))]
        kl = KneeLocator(complexities.tolist(), losses.tolist(),
                         curve="convex", direction="decreasing")
        knee = kl.knee
        if knee is None:
            knee = float(np.median(complexities))
        return frontier[int(np.argmin(np.abs(complexities - knee)))]
    raise ValueError(f"Unknown model_selection: {model_selection!r}")
