# -*- coding: utf-8 -*-
"""
constant_optimization.py - Fit the numeric constants of one expression

The structure stays fixed; only constant leaves move. One constant uses
BFGS, several use ``options.optimizer_algorithm``. The result is committed
only when the optimiser reports success and the new loss is no worse than
the starting one, so a member never gets worse here.
"""
import logging
import warnings
from typing import Tuple

import numpy as np
from scipy import optimize

from .evaluate import eval_tree_dispatch
from .loss_functions import INVALID_LOSS, loss, score_func
from .pop_member import get_birth_order
from .tree import Node, get_constants, set_constants

logger = logging.getLogger(__name__)

_SCIPY_METHODS = {"BFGS": "BFGS", "NelderMead": "Nelder-Mead"}
# BFGS status 2: stopped on precision loss, i.e. at the optimum to working precision
_CONVERGED_STATUS = {"BFGS": (0, 2), "Nelder-Mead": (0,)}


def expression_constants(expr) -> np.ndarray:
    if isinstance(expr, Node):
        return get_constants(expr)
    return expr.get_constants()


def set_expression_constants(expr, values):
    if isinstance(expr, Node):
        set_constants(expr, values)
    else:
        expr.set_constants(values)


def _objective(expr, dataset, options):
    def f(x):
        set_expression_constants(expr, x)
        prediction, complete = eval_tree_dispatch(expr, dataset.X, options)
        if not complete:
            return INVALID_LOSS
        value = loss(prediction, dataset.y, options, dataset.weights)
        return value if np.isfinite(value) else INVALID_LOSS
    return f


def optimize_constants(dataset, baseline: float, member, options, rng,
                       cache=None) -> Tuple[object, float]:
    """Optimise ``member``'s constants in place.

    Returns
    -------
    (member, num_evals) : the (possibly updated) member and the number of
        objective evaluations spent.
    """
    x0 = expression_constants(member.tree)
    nconst = len(x0)
    if nconst == 0:
        return member, 0.0

    method = "BFGS" if nconst == 1 else _SCIPY_METHODS[options.optimizer_algorithm]
    f = _objective(member.tree, dataset, options)
    start_loss = f(x0)
    num_evals = 1.0

    best_x, best_fun, converged = None, np.inf, False
    starts = [x0] + [x0 * (1 + 0.5 * rng.randn(nconst)) for _ in range(options.optimizer_nrestarts)]
    with warnings.catch_warnings(), np.errstate(all="ignore"):
        warnings.simplefilter("ignore")
        for start in starts:
            result = optimize.minimize(f, start, method=method,
                                       options={"maxiter": options.optimizer_iterations})
            num_evals += result.nfev
            converged_here = result.success or result.status in _CONVERGED_STATUS[method]
            if converged_here and np.isfinite(result.fun) and result.fun < best_fun:
                best_x, best_fun, converged = np.array(result.x, dtype=float), float(result.fun), True

    if converged and best_fun <= start_loss:
        set_expression_constants(member.tree, best_x)
        member.score, member.loss = score_func(dataset, baseline, member.tree, options, cache=cache)
        member.birth = get_birth_order(options.deterministic)
        num_evals += 1
    else:
        logger.debug("Constant optimisation (%s, %d constants) not committed: converged=%s",
                     method, nconst, converged)
        set_expression_constants(member.tree, x0)
    return member, num_evals
