# -*- coding: utf-8 -*-
"""
regularized_evolution.py - Evolve one population for one search iteration

reg_evol_cycle         : tournament -> mutate/crossover -> replace the oldest
s_r_cycle              : ``ncycles`` reg_evol_cycles over a temperature schedule
rescore_full_data      : full-dataset scores for members picked on mini-batches
optimize_and_simplify_population : per-iteration clean-up of a population
"""
import math
from typing import Callable, Optional, Tuple

import numpy as np

from .constant_optimization import optimize_constants
from .hall_of_fame import HallOfFame
from .loss_functions import loss_to_score, score_func
from .mutate import crossover_generation, next_generation
from .mutation_functions import simplify_expression
from .population import Population, best_of_sample


def reg_evol_cycle(dataset, pop: Population, temperature: float, curmaxsize: int, stats,
                   options, rng, cache=None) -> Tuple[Population, float]:
    """Run ``ceil(N / tournament_selection_n)`` replacement steps on ``pop``."""
    n_evol_cycles = int(math.ceil(pop.n / options.tournament_selection_n))
    num_evals = 0.0
    for _ in range(n_evol_cycles):
        if rng.rand() > options.crossover_probability:
            allstar = best_of_sample(pop, stats, options, rng)
            baby, accepted, evals = next_generation(dataset, allstar, temperature, curmaxsize,
                                                    stats, options, rng, cache=cache)
            num_evals += evals
            if not accepted and options.skip_mutation_failures:
                continue
            pop.members[pop.oldest_index()] = baby
        else:
            allstar1 = best_of_sample(pop, stats, options, rng)
            allstar2 = best_of_sample(pop, stats, options, rng)
            baby1, baby2, accepted, evals = crossover_generation(allstar1, allstar2, dataset,
                                                                 curmaxsize, options, rng, cache=cache)
            num_evals += evals
            if not accepted and options.skip_mutation_failures:
                continue
            pop.members[pop.oldest_index()] = baby1
            pop.members[pop.oldest_index()] = baby2
    return pop, num_evals


def s_r_cycle(dataset, pop: Population, ncycles: int, curmaxsize: int, stats, options, rng,
              cache=None, stop: Optional[Callable[[float], bool]] = None
              ) -> Tuple[Population, HallOfFame, float]:
    """Evolve ``pop`` for ``ncycles`` cycles.

    Temperatures fall linearly from 1 to 0 when annealing, otherwise stay at 1.
    ``stop(num_evals)`` is consulted once per cycle.

    Returns
    -------
    (pop, best_seen, num_evals) where ``best_seen`` holds the lowest-loss
    member seen at each complexity. With batching, its members carry
    full-dataset losses.
    """
    max_temp = 1.0
    min_temp = 0.0 if options.annealing else max_temp
    temperatures = np.linspace(max_temp, min_temp, max(ncycles, 1))
    best_seen = HallOfFame(options)
    num_evals = 0.0

    for temperature in temperatures:
        pop, evals = reg_evol_cycle(dataset, pop, float(temperature), curmaxsize, stats,
                                    options, rng, cache=cache)
        num_evals += evals
        for member in pop.members:
            best_seen.update(member, options)
        if stop is not None and stop(num_evals):
            break

    if options.batching:
        num_evals += rescore_full_data(dataset, best_seen.existing(), options, cache=cache)
    return pop, best_seen, num_evals


def rescore_full_data(dataset, members, options, cache=None) -> float:
    """Replace mini-batch scores of ``members`` with full-dataset ones."""
    baseline = dataset.baseline(options)
    for member in members:
        member.score, member.loss = score_func(dataset, baseline, member.tree, options, cache=cache)
        member.recompute_complexity(options)
    return float(len(members))


def optimize_and_simplify_population(dataset, pop: Population, options, curmaxsize: int, rng,
                                     cache=None) -> Tuple[Population, float]:
    """Simplify every member and optimise constants with ``optimizer_probability``.

    With batching, every member is rescored on the full dataset afterwards.
    """
    baseline = dataset.baseline(options)
    num_evals = 0.0
    for j, member in enumerate(pop.members):
        if options.should_simplify:
            member.tree = simplify_expression(member.tree, options)
            member.recompute_complexity(options)
            member.score = loss_to_score(member.loss, baseline, member.tree, options,
                                         dataset.use_baseline, complexity=member.complexity)
        if options.should_optimize_constants and rng.rand() < options.optimizer_probability:
            member, evals = optimize_constants(dataset, baseline, member, options, rng, cache=cache)
            num_evals += evals
            pop.members[j] = member

    if options.batching:
        num_evals += rescore_full_data(dataset, pop.members, options, cache=cache)
    return pop, num_evals
