# -*- coding: utf-8 -*-
"""
population.py - A fixed-size list of scored expressions and tournament selection
"""
from typing import Iterator, List, Optional

import numpy as np

from .blueprint import BlueprintExpression
from .complexity import compute_complexity
from .mutation_functions import gen_random_tree
from .pop_member import PopMember


def random_expression(dataset, options, rng, nlength: int = 3):
    """Random plain tree, or random blueprint expression when one is configured.

    ``nlength`` shrinks until the expression fits within ``options.maxsize``.
    """
    features = list(range(1, dataset.nfeatures + 1))
    while True:
        if options.blueprint_structure is not None:
            expr = BlueprintExpression.random(options, rng, nlength=nlength)
        else:
            expr = gen_random_tree(nlength, options, features, rng)
        if nlength == 0 or compute_complexity(expr, options) <= options.maxsize:
            return expr
        nlength -= 1


class Population:
    """Members of one island. Replacement is in place; size never changes."""

    def __init__(self, members: List[PopMember]):
        self.members = list(members)

    @classmethod
    def random(cls, dataset, options, rng, npop: Optional[int] = None,
               nlength: int = 3, cache=None) -> "Population":
        """``npop`` members built from ``nlength``-operator random trees and scored."""
        npop = options.population_size if npop is None else npop
        baseline = dataset.baseline(options)
        return cls([
            PopMember.from_dataset(dataset, baseline, random_expression(dataset, options, rng, nlength),
                                   options, cache=cache)
            for _ in range(npop)
        ])

    @property
    def n(self) -> int:
        return len(self.members)

    def __len__(self):
        return len(self.members)

    def __iter__(self) -> Iterator[PopMember]:
        return iter(self.members)

    def copy(self) -> "Population":
        return Population([m.copy() for m in self.members])

    def oldest_index(self) -> int:
        return int(np.argmin([m.birth for m in self.members]))

    def best(self) -> PopMember:
        return self.members[int(np.argmin([m.score for m in self.members]))]


def sample_pop(pop: Population, options, rng) -> Population:
    """``tournament_selection_n`` members drawn without replacement."""
    n = min(options.tournament_selection_n, pop.n)
    idx = rng.choice(pop.n, size=n, replace=False)
    return Population([pop.members[i] for i in idx])


def best_of_sample(pop: Population, stats, options, rng) -> PopMember:
    """Tournament winner (a copy).

    Candidates are ranked by score, optionally inflated by
    ``exp(adaptive_parsimony_scaling * freq[size])``. The k-th best is picked
    with probability proportional to ``p * (1 - p) ** k``.
    """
    sample = sample_pop(pop, options, rng)
    scores = np.array([m.score for m in sample.members], dtype=float)
    if options.use_frequency_in_tournament and stats is not None:
        scaling = options.adaptive_parsimony_scaling
        freqs = np.array([stats.frequency_of(m.complexity) for m in sample.members])
        with np.errstate(over="ignore"):
            scores = scores * np.exp(scaling * freqs)

    p = options.tournament_selection_p
    if p == 1.0:
        chosen = int(np.argmin(scores))
    else:
        k = np.arange(sample.n)
        weights = p * (1 - p) ** k
        rank = rng.choice(sample.n, p=weights / weights.sum())
        chosen = int(np.argsort(scores, kind="stable")[rank])
    return sample.members[chosen].copy()


def best_sub_pop(pop: Population, topn: int = 10) -> Population:
    """Copies of the ``topn`` lowest-score members."""
    order = np.argsort([m.score for m in pop.members], kind="stable")[:topn]
    return Population([pop.members[i].copy() for i in order])
