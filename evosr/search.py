# -*- coding: utf-8 -*-
"""
search.py - Island-model symbolic regression driver

equation_search(X, y, options) evolves ``options.populations`` populations
independently for ``niterations`` iterations. Each iteration:

  1. every population runs ``s_r_cycle`` then ``optimize_and_simplify_population``
     (serially, or on a thread pool of ``options.n_jobs`` workers);
  2. barrier: best-seen members are merged into the shared hall of fame and
     the adaptive-parsimony histogram is updated;
  3. migration from the other populations' best members and from the hall
     of fame.

Stopping conditions (``max_evals``, ``timeout_in_seconds``,
``early_stop_condition``) are checked once per cycle inside a population and
once per iteration here.
"""
import contextlib
import logging
import time
from multiprocessing.pool import ThreadPool
from typing import List, Optional, Sequence

import numpy as np
from deap import tools
from tqdm.auto import tqdm

from utils.result_io import output_paths, write_frontier_csv, write_result_json

from .adaptive_parsimony import RunningSearchStatistics
from .dataset import Dataset, update_baseline_loss
from .hall_of_fame import HallOfFame, choose_best, frontier_dataframe, string_expression
from .loss_functions import LossCache
from .migration import migrate
from .options import Options
from .pop_member import reset_birth_counter
from .population import Population, best_sub_pop
from .regularized_evolution import optimize_and_simplify_population, s_r_cycle

logger = logging.getLogger(__name__)

WARMUP_START_SIZE = 3


def get_cur_maxsize(options, fraction_elapsed: float) -> int:
    """Size cap growing linearly from 3 to ``maxsize`` over the warm-up fraction."""
    if options.warmup_maxsize_by <= 0 or fraction_elapsed >= options.warmup_maxsize_by:
        return options.maxsize
    start = min(WARMUP_START_SIZE, options.maxsize)
    grown = start + int((options.maxsize - start) * fraction_elapsed / options.warmup_maxsize_by)
    return min(grown, options.maxsize)


def early_stop_reached(hof: HallOfFame, options) -> bool:
    """True when some frontier member satisfies ``options.early_stop_condition``."""
    condition = options.early_stop_condition
    if condition is None:
        return False
    for member in hof.existing():
        if callable(condition):
            if condition(member.loss, member.complexity):
                return True
        elif member.loss <= condition:
            return True
    return False


class _SearchState:
    """Counters shared by the driver and the per-cycle stop check."""

    def __init__(self, options):
        self.options = options
        self.start_time = time.perf_counter()
        self.num_evals = 0.0
        self.stop_reason: Optional[str] = None

    def elapsed(self) -> float:
        return time.perf_counter() - self.start_time

    def check(self, hof: HallOfFame, pending_evals: float = 0.0) -> Optional[str]:
        options = self.options
        if options.max_evals is not None and self.num_evals + pending_evals >= options.max_evals:
            return "max_evals"
        if options.timeout_in_seconds is not None and self.elapsed() >= options.timeout_in_seconds:
            return "timeout"
        if early_stop_reached(hof, options):
            return "early_stop_condition"
        return None


def _population_rngs(options) -> List[np.random.RandomState]:
    master = np.random.RandomState(options.seed)
    seeds = master.randint(0, 2 ** 31 - 1, size=options.populations)
    return [np.random.RandomState(int(s)) for s in seeds]


def equation_search(X, y, options: Optional[Options] = None, weights=None,
                    variable_names: Optional[Sequence[str]] = None,
                    niterations: int = 10) -> HallOfFame:
    """Search for expressions mapping ``X`` (features x samples) to ``y``.

    Parameters
    ----------
    X : array-like (nfeatures, n)
    y : array-like (n,)
    options : Options, optional
    weights : array-like (n,), optional
    variable_names : list[str], optional
    niterations : int
        Number of island iterations (each is ``ncycles_per_iteration`` cycles).

    Returns
    -------
    HallOfFame
        Lowest-loss expression found at each complexity; use
        ``hof.pareto_frontier()`` for the accuracy/complexity trade-off.
        ``hof.populations`` holds the final populations.
    """
    options = Options() if options is None else options
    if niterations < 1:
        raise ValueError(f"niterations must be >= 1, got {niterations}")
    dataset = Dataset(X, y, weights=weights, variable_names=variable_names)
    baseline = update_baseline_loss(dataset, options)
    if options.deterministic:
        reset_birth_counter()

    logger.info(
        "Starting search: %d populations x %d members, %d iterations, %d threads",
        options.populations, options.population_size, niterations, options.n_jobs,
    )
    logger.debug("Baseline loss %.6g (normalisation %s)", baseline,
                 "on" if dataset.use_baseline else "off")

    rngs = _population_rngs(options)
    cache = LossCache(options.loss_cache_size) if options.use_loss_cache else None
    hof = HallOfFame(options)
    stats = RunningSearchStatistics(options)
    state = _SearchState(options)

    pops = [Population.random(dataset, options, rngs[i], cache=cache) for i in range(options.populations)]
    state.num_evals += options.populations * options.population_size
    for pop in pops:
        for member in pop.members:
            hof.update(member, options)

    member_stats = tools.Statistics(lambda m: m.loss)
    member_stats.register("avg", np.mean)
    member_stats.register("std", np.std)
    member_stats.register("min", np.min)
    member_stats.register("max", np.max)
    logbook = tools.Logbook()
    logbook.header = ["iteration", "nevals", "maxsize", "frontier"] + member_stats.fields

    if options.n_jobs > 1:
        pool_cm = ThreadPool(processes=options.n_jobs)
    else:
        pool_cm = contextlib.nullcontext()

    completed = 0
    with pool_cm as pool:
        mapper = pool.map if options.n_jobs > 1 else map
        iterations = tqdm(range(niterations), desc="equation_search", disable=not options.progress)
        for iteration in iterations:
            state.stop_reason = state.check(hof)
            if state.stop_reason is not None:
                break

            curmaxsize = get_cur_maxsize(options, iteration / niterations)
            stats_snapshot = stats.copy()

            def evolve(i):
                pop, best_seen, evals = s_r_cycle(
                    dataset, pops[i], options.ncycles_per_iteration, curmaxsize, stats_snapshot,
                    options, rngs[i], cache=cache,
                    stop=lambda pending: state.check(hof, pending) is not None,
                )
                pop, opt_evals = optimize_and_simplify_population(
                    dataset, pop, options, curmaxsize, rngs[i], cache=cache)
                return pop, best_seen, evals + opt_evals

            results = list(mapper(evolve, range(options.populations)))

            # barrier: results are folded in population order
            for i, (pop, best_seen, evals) in enumerate(results):
                pops[i] = pop
                state.num_evals += evals
                hof.merge(best_seen, options)
                for member in pop.members:
                    hof.update(member, options)
                for member in best_seen.existing():
                    stats.update_frequencies(member.complexity)
            stats.move_window()
            stats.normalize()

            if options.migration or options.hof_migration:
                best_pops = [best_sub_pop(pop, topn=options.topn) for pop in pops]
                frontier = hof.pareto_frontier()
                for i, pop in enumerate(pops):
                    rng = rngs[i]
                    if options.migration:
                        migrants = [m for j, sub in enumerate(best_pops) if j != i for m in sub.members]
                        migrate(migrants, pop, options, options.fraction_replaced, rng)
                    if options.hof_migration and frontier:
                        migrate(frontier, pop, options, options.fraction_replaced_hof, rng)

            completed = iteration + 1
            all_members = [m for pop in pops for m in pop.members]
            frontier = hof.pareto_frontier()
            record = member_stats.compile(all_members)
            logbook.record(iteration=completed, nevals=int(state.num_evals), maxsize=curmaxsize,
                           frontier=len(frontier), **record)
            if frontier:
                best = min(frontier, key=lambda m: m.loss)
                iterations.set_postfix(best_loss=f"{best.loss:.4g}")
                if options.verbosity > 0:
                    logger.info("Iteration %d/%d: best loss %.6g at complexity %d, %d evals, frontier %d",
                                completed, niterations, best.loss, best.complexity,
                                int(state.num_evals), len(frontier))

        if state.stop_reason is None:
            state.stop_reason = state.check(hof)

    if state.stop_reason is not None:
        logger.info("Stopping after %d iteration(s): %s", completed, state.stop_reason)

    hof.logbook = logbook
    hof.num_evals = state.num_evals
    hof.stop_reason = state.stop_reason
    hof.populations = pops

    frontier = hof.pareto_frontier()
    if not frontier:
        logger.warning("No expression within maxsize=%d was found", options.maxsize)
        return hof
    best = choose_best(frontier, options.model_selection)
    logger.info("Best equation (%s): %s  [loss=%.6g, complexity=%d]", options.model_selection,
                string_expression(best.tree, options, dataset.variable_names), best.loss, best.complexity)

    if options.output_file is not None:
        _write_outputs(hof, dataset, options, best, completed, state)
    return hof


def _write_outputs(hof: HallOfFame, dataset, options, best, completed: int, state: _SearchState):
    csv_path, json_path = output_paths(options.output_file)
    frontier_df = frontier_dataframe(hof, dataset, options)
    write_frontier_csv(csv_path, frontier_df)
    write_result_json(json_path, {
        "best": {
            "equation": string_expression(best.tree, options, dataset.variable_names),
            "loss": best.loss,
            "score": best.score,
            "complexity": best.complexity,
        },
        "model_selection": options.model_selection,
        "iterations_completed": completed,
        "num_evals": state.num_evals,
        "elapsed_seconds": state.elapsed(),
        "stop_reason": state.stop_reason,
        "baseline_loss": dataset.baseline_loss,
        "frontier": frontier_df.to_dict(orient="records"),
    })
    logger.info("Wrote %s and %s", csv_path, json_path)
