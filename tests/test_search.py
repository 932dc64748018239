# -*- coding: utf-8 -*-
"""End-to-end tests of equation_search (small budgets)."""
import json

import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture
def linear_problem():
    rng = np.random.RandomState(0)
    X = rng.randn(2, 64)
    y = 2.0 * X[0]
    return X, y


def _options(**kwargs):
    from evosr.options import Options

    params = dict(binary_operators=("+", "-", "*"), unary_operators=(),
                  populations=2, population_size=12, tournament_selection_n=6,
                  ncycles_per_iteration=15, maxsize=10, verbosity=0)
    params.update(kwargs)
    return Options(**params)


def test_cur_maxsize_warmup():
    from evosr.search import get_cur_maxsize

    options = _options(maxsize=20, warmup_maxsize_by=0.5)
    assert get_cur_maxsize(options, 0.0) == 3
    assert get_cur_maxsize(options, 0.25) == 11
    assert get_cur_maxsize(options, 0.5) == 20
    assert get_cur_maxsize(options, 0.9) == 20
    assert get_cur_maxsize(_options(maxsize=20), 0.0) == 20


def test_early_stop_reached():
    from evosr.hall_of_fame import HallOfFame
    from evosr.pop_member import PopMember
    from evosr.search import early_stop_reached
    from evosr.tree import Node

    options = _options(early_stop_condition=0.5)
    hof = HallOfFame(options)
    hof.update(PopMember(Node.var(1), 1.0, 1.0, options), options)
    assert not early_stop_reached(hof, options)
    hof.update(PopMember(Node.var(1), 0.4, 0.4, options, complexity=3), options)
    assert early_stop_reached(hof, options)
    assert not early_stop_reached(hof, _options())
    assert early_stop_reached(hof, _options(early_stop_condition=lambda loss, c: c == 3))


def test_finds_linear_relation(linear_problem):
    from evosr.search import equation_search

    X, y = linear_problem
    options = _options(seed=1, deterministic=True)
    hof = equation_search(X, y, options, niterations=4)
    best_loss = min(m.loss for m in hof.pareto_frontier())
    assert best_loss < 0.5 * np.var(y)
    assert len(hof.logbook) == 4
    assert hof.stop_reason is None
    assert hof.num_evals > options.populations * options.population_size


def test_frontier_is_monotone(linear_problem):
    from evosr.search import equation_search

    X, y = linear_problem
    hof = equation_search(X, y, _options(seed=2, deterministic=True), niterations=2)
    frontier = hof.pareto_frontier()
    complexities = [m.complexity for m in frontier]
    losses = [m.loss for m in frontier]
    assert complexities == sorted(complexities)
    assert all(a > b for a, b in zip(losses, losses[1:]))


def test_deterministic_runs_match(linear_problem):
    from evosr.search import equation_search

    X, y = linear_problem
    options = _options(seed=3, deterministic=True)
    first = equation_search(X, y, options, niterations=2).to_dataframe(options)
    second = equation_search(X, y, options, niterations=2).to_dataframe(options)
    assert first.equals(second)


def test_max_evals_stops_search(linear_problem):
    from evosr.search import equation_search

    X, y = linear_problem
    hof = equation_search(X, y, _options(seed=4, max_evals=300), niterations=1000)
    assert hof.stop_reason == "max_evals"
    assert hof.num_evals >= 300
    assert len(hof.logbook) < 1000


@pytest.mark.parametrize("condition", [1e10, lambda loss, complexity: complexity >= 1])
def test_early_stop_before_first_iteration(linear_problem, condition):
    from evosr.search import equation_search

    X, y = linear_problem
    hof = equation_search(X, y, _options(seed=5, early_stop_condition=condition), niterations=50)
    assert hof.stop_reason == "early_stop_condition"
    assert len(hof.logbook) == 0
    assert len(hof.pareto_frontier()) > 0


def test_threaded_search(linear_problem):
    from evosr.search import equation_search

    X, y = linear_problem
    hof = equation_search(X, y, _options(seed=6, n_jobs=2), niterations=2)
    assert len(hof.logbook) == 2
    assert len(hof.pareto_frontier()) > 0


def test_writes_output_files(linear_problem, tmp_path):
    from evosr.search import equation_search

    X, y = linear_problem
    target = tmp_path / "out" / "run.csv"
    equation_search(X, y, _options(seed=7, output_file=str(target)), niterations=1,
                    variable_names=["a", "b"])
    csv_path = tmp_path / "out" / "run.csv"
    json_path = tmp_path / "out" / "run.json"
    assert csv_path.exists() and json_path.exists()

    with open(json_path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    assert payload["iterations_completed"] == 1
    assert payload["model_selection"] == "score"
    assert set(payload["best"]) == {"equation", "loss", "score", "complexity"}
    assert len(payload["frontier"]) >= 1
    assert "x1" not in payload["best"]["equation"]


def test_invalid_arguments(linear_problem):
    from evosr.options import Options
    from evosr.search import equation_search

    X, y = linear_problem
    with pytest.raises(ValueError, match="niterations"):
        equation_search(X, y, _options(), niterations=0)
    with pytest.raises(ValueError):
        equation_search(X, y[:10], _options(), niterations=1)
    with pytest.raises(ValueError, match="n_jobs"):
        Options(deterministic=True, seed=0, n_jobs=2)


def test_batched_search_stores_full_data_losses():
    from evosr.dataset import Dataset
    from evosr.loss_functions import eval_loss
    from evosr.search import equation_search

    rng = np.random.RandomState(8)
    X = rng.randn(2, 400)
    y = np.cos(X[0]) + 0.5 * X[1]
    options = _options(seed=8, deterministic=True, batching=True, batch_size=5,
                       unary_operators=("cos",))
    hof = equation_search(X, y, options, niterations=3)
    dataset = Dataset(X, y)

    stored = hof.existing()
    assert len(stored) > 0
    for member in stored:
        assert member.loss == pytest.approx(eval_loss(member.tree, dataset, options))
    for pop in hof.populations:
        for member in pop.members:
            assert member.loss == pytest.approx(eval_loss(member.tree, dataset, options))


def test_final_populations_respect_size_limits(linear_problem):
    from evosr.check_constraints import check_constraints
    from evosr.complexity import compute_complexity
    from evosr.search import equation_search

    X, y = linear_problem
    options = _options(seed=9, deterministic=True, maxsize=7, warmup_maxsize_by=0.5,
                       unary_operators=("cos",), fraction_replaced=0.5, fraction_replaced_hof=0.5)
    hof = equation_search(X, y, options, niterations=4)

    assert len(hof.populations) == options.populations
    for pop in hof.populations:
        assert pop.n == options.population_size
        for member in pop.members:
            assert compute_complexity(member.tree, options) <= options.maxsize
            assert check_constraints(member.tree, options, options.maxsize)
    for member in hof.existing():
        assert member.complexity <= options.maxsize
        assert check_constraints(member.tree, options, options.maxsize)


def _sum_of_parts(values):
    return values["f"] + values["g"]


def test_blueprint_search_respects_variable_mapping():
    from evosr.blueprint import BlueprintExpression
    from evosr.search import equation_search
    from evosr.tree import features_used

    rng = np.random.RandomState(10)
    X = rng.randn(3, 64)
    y = 2.0 * X[0] + X[1] * X[2]
    mapping = {"f": [1], "g": [2, 3]}
    options = _options(seed=10, deterministic=True, maxsize=12, blueprint_structure=_sum_of_parts,
                       variable_mapping=mapping, fraction_replaced=0.5, fraction_replaced_hof=0.5)
    hof = equation_search(X, y, options, niterations=3)

    members = [m for pop in hof.populations for m in pop.members] + hof.existing()
    for member in members:
        assert isinstance(member.tree, BlueprintExpression)
        assert member.tree.check_constraints(options, options.maxsize)
        for key, tree in member.tree.trees.items():
            assert features_used(tree) <= set(mapping[key])
