# -*- coding: utf-8 -*-
"""
mutate.py - Produce a child from one parent (mutation) or two (crossover)

``next_generation`` picks one mutation kind (weights conditioned on the
parent), retries until the child passes ``check_constraints`` (at most
``MAX_ATTEMPTS`` times), rescores it and applies the acceptance rule:

    p = exp(-(after - before) / (T * alpha))          if annealing
    p *= freq[size(parent)] / freq[size(child)]       if use_frequency

A rejected child is replaced by a copy of the parent with ``accepted=False``.
"""
from typing import Tuple

import numpy as np

from .check_constraints import check_constraints
from .complexity import compute_complexity
from .constant_optimization import expression_constants, optimize_constants
from .loss_functions import loss_to_score, score_func, score_func_batch
from .mutation_functions import (append_random_op, combine_operators, crossover_trees,
                                 delete_random_op, gen_random_tree_fixed_size,
                                 get_contents_for_mutation, insert_random_op,
                                 mutate_constant, mutate_operator, mutation_features,
                                 prepend_random_op, simplify_tree, swap_operands,
                                 with_contents_for_mutation)
from .options import MutationWeights
from .pop_member import PopMember
from .tree import has_constants

MAX_ATTEMPTS = 10
MUTATION_NAMES = MutationWeights.names()
_INDEX = {name: i for i, name in enumerate(MUTATION_NAMES)}


def condition_mutation_weights(weights: np.ndarray, expr, tree, complexity: int,
                               options, curmaxsize: int) -> np.ndarray:
    """Zero out mutation kinds that cannot apply to ``tree``."""
    w = np.array(weights, dtype=float)

    def drop(*names):
        for name in names:
            w[_INDEX[name]] = 0.0

    if tree.degree == 0:
        drop("mutate_operator", "swap_operands", "delete_node", "simplify")
    if not has_constants(tree):
        drop("mutate_constant")
    if len(expression_constants(expr)) == 0 or not options.should_optimize_constants:
        drop("optimize")
    if not any(node.degree == 2 for node in tree):
        drop("swap_operands")
    if complexity >= curmaxsize:
        drop("add_node", "insert_node")
    if not options.should_simplify:
        drop("simplify")
    if w.sum() <= 0:
        w[_INDEX["do_nothing"]] = 1.0
    return w


def _apply_mutation(mutation: str, tree, temperature, curmaxsize, options, features, rng):
    if mutation == "mutate_constant":
        return mutate_constant(tree, temperature, options, rng)
    if mutation == "mutate_operator":
        return mutate_operator(tree, options, rng)
    if mutation == "swap_operands":
        return swap_operands(tree, rng)
    if mutation == "add_node":
        if rng.rand() < 0.5:
            return append_random_op(tree, options, features, rng)
        return prepend_random_op(tree, options, features, rng)
    if mutation == "insert_node":
        return insert_random_op(tree, options, features, rng)
    if mutation == "delete_node":
        return delete_random_op(tree, options, features, rng)
    if mutation == "randomize":
        size = rng.randint(1, max(curmaxsize, 1) + 1)
        return gen_random_tree_fixed_size(size, options, features, rng)
    raise ValueError(f"Unknown mutation: {mutation!r}")


def _acceptance_probability(delta: float, temperature: float, alpha: float) -> float:
    scale = temperature * alpha
    if scale <= 0:
        return 1.0 if delta <= 0 else 0.0
    with np.errstate(over="ignore"):
        return float(np.exp(-delta / scale))


def _score(dataset, expr, options, rng, cache):
    """``(score, loss, num_evals)`` on a mini-batch or on the full data."""
    baseline = dataset.baseline_loss
    if options.batching:
        score, result_loss = score_func_batch(dataset, baseline, expr, options, rng)
        return score, result_loss, min(options.batch_size, dataset.n) / dataset.n
    score, result_loss = score_func(dataset, baseline, expr, options, cache=cache)
    return score, result_loss, 1.0


def next_generation(dataset, member: PopMember, temperature: float, curmaxsize: int,
                    stats, options, rng, cache=None) -> Tuple[PopMember, bool, float]:
    """Mutate ``member`` once.

    Returns
    -------
    (child, accepted, num_evals)
    """
    num_evals = 0.0
    if options.batching:
        before_score, before_loss, evals = _score(dataset, member.tree, options, rng, cache)
        num_evals += evals
    else:
        before_score, before_loss = member.score, member.loss

    expr = member.tree
    complexity = member.complexity
    if complexity is None:
        complexity = compute_complexity(expr, options)
    tree, context = get_contents_for_mutation(expr, rng)
    features = mutation_features(expr, context, dataset.nfeatures)

    weights = condition_mutation_weights(options.mutation_weights.as_array(), expr, tree,
                                         complexity, options, curmaxsize)
    mutation = MUTATION_NAMES[rng.choice(len(MUTATION_NAMES), p=weights / weights.sum())]

    def rejected():
        return PopMember(expr.copy(), before_score, before_loss, options, parent=member.ref,
                         deterministic=options.deterministic, complexity=complexity)

    if mutation == "do_nothing":
        return rejected(), True, num_evals

    if mutation == "simplify":
        simplified = combine_operators(simplify_tree(tree.copy(), options), options)
        new_expr = with_contents_for_mutation(expr, simplified, context)
        new_complexity = compute_complexity(new_expr, options)
        score = loss_to_score(before_loss, dataset.baseline_loss, new_expr, options,
                              dataset.use_baseline, complexity=new_complexity)
        return PopMember(new_expr, score, before_loss, options, parent=member.ref,
                         deterministic=options.deterministic, complexity=new_complexity), True, num_evals

    if mutation == "optimize":
        child = PopMember(expr.copy(), member.score, member.loss, options, parent=member.ref,
                          deterministic=options.deterministic, complexity=complexity)
        child, evals = optimize_constants(dataset, dataset.baseline_loss, child, options, rng, cache=cache)
        return child, True, num_evals + evals

    new_expr = None
    for _ in range(MAX_ATTEMPTS):
        candidate = _apply_mutation(mutation, tree.copy(), temperature, curmaxsize,
                                    options, features, rng)
        candidate_expr = with_contents_for_mutation(expr, candidate, context)
        if check_constraints(candidate_expr, options, curmaxsize):
            new_expr = candidate_expr
            break

    if new_expr is None:
        return rejected(), False, num_evals

    after_score, after_loss, evals = _score(dataset, new_expr, options, rng, cache)
    num_evals += evals
    if np.isnan(after_score):
        return rejected(), False, num_evals

    new_complexity = compute_complexity(new_expr, options)
    prob_change = 1.0
    if options.annealing:
        prob_change *= _acceptance_probability(after_score - before_score, temperature, options.alpha)
    if options.use_frequency:
        prob_change *= stats.frequency_of(complexity) / stats.frequency_of(new_complexity)
    if prob_change < rng.rand():
        return rejected(), False, num_evals

    child = PopMember(new_expr, after_score, after_loss, options, parent=member.ref,
                      deterministic=options.deterministic, complexity=new_complexity)
    return child, True, num_evals


def crossover_generation(member1: PopMember, member2: PopMember, dataset, curmaxsize: int,
                         options, rng, cache=None) -> Tuple[PopMember, PopMember, bool, float]:
    """Swap random subtrees between two parents.

    Returns
    -------
    (child1, child2, accepted, num_evals)
    """
    tree1, context = get_contents_for_mutation(member1.tree, rng)
    tree2 = member2.tree if context is None else member2.tree.trees[context]

    children = None
    for _ in range(MAX_ATTEMPTS):
        child_tree1, child_tree2 = crossover_trees(tree1, tree2, rng)
        expr1 = with_contents_for_mutation(member1.tree, child_tree1, context)
        expr2 = with_contents_for_mutation(member2.tree, child_tree2, context)
        if (check_constraints(expr1, options, curmaxsize)
                and check_constraints(expr2, options, curmaxsize)):
            children = (expr1, expr2)
            break

    if children is None:
        return member1.copy(), member2.copy(), False, 0.0

    num_evals = 0.0
    babies = []
    for expr, parent in zip(children, (member1, member2)):
        score, result_loss, evals = _score(dataset, expr, options, rng, cache)
        num_evals += evals
        babies.append(PopMember(expr, score, result_loss, options, parent=parent.ref,
                                deterministic=options.deterministic))
    return babies[0], babies[1], True, num_evals
