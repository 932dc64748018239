# -*- coding: utf-8 -*-
"""Dataset, loss and score tests."""
import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture
def scenario():
    """X = [[1, 2, 3]], y = [2, 3, 4] and the tree (x1 ^ 2.0) + 1.5."""
    from evosr.dataset import Dataset
    from evosr.options import Options
    from evosr.tree import Node

    options = Options(binary_operators=("+", "^"))
    dataset = Dataset(np.array([[1.0, 2.0, 3.0]]), np.array([2.0, 3.0, 4.0]))
    tree = Node.binary(0, Node.binary(1, Node.var(1), Node.const(2.0)), Node.const(1.5))
    return dataset, options, tree


class TestDataset:

    def test_shapes_and_defaults(self):
        from evosr.dataset import Dataset

        ds = Dataset(np.zeros((3, 10)), np.arange(10.0))
        assert ds.n == 10 and ds.nfeatures == 3
        assert ds.variable_names == ["x1", "x2", "x3"]
        assert ds.avg_y == pytest.approx(4.5)
        assert not ds.weighted

    def test_length_mismatch_raises(self):
        from evosr.dataset import Dataset

        with pytest.raises(ValueError):
            Dataset(np.zeros((2, 3)), np.zeros(4))

    def test_bad_variable_names_raise(self):
        from evosr.dataset import Dataset

        with pytest.raises(ValueError, match="variable names"):
            Dataset(np.zeros((2, 3)), np.zeros(3), variable_names=["a"])

    def test_negative_weights_raise(self):
        from evosr.dataset import Dataset

        with pytest.raises(ValueError, match="weights"):
            Dataset(np.zeros((1, 3)), np.zeros(3), weights=[1.0, -1.0, 1.0])

    def test_weighted_average(self):
        from evosr.dataset import Dataset

        ds = Dataset(np.zeros((1, 3)), [2.0, 3.0, 4.0], weights=[1.0, 0.0, 1.0])
        assert ds.avg_y == pytest.approx(3.0)


class TestBaseline:

    def test_baseline_is_constant_mean_loss(self, scenario):
        from evosr.dataset import update_baseline_loss

        dataset, options, _ = scenario
        assert update_baseline_loss(dataset, options) == pytest.approx(2.0 / 3.0)
        assert dataset.use_baseline

    def test_baseline_computed_once_per_loss(self, scenario):
        from evosr.dataset import update_baseline_loss

        dataset, options, _ = scenario
        first = update_baseline_loss(dataset, options)
        dataset.baseline_loss = 123.0  # cached value must be reused
        assert update_baseline_loss(dataset, options) == 123.0
        assert first == pytest.approx(2.0 / 3.0)


class TestLoss:

    def test_pow_plus_scenario_loss(self, scenario):
        from evosr.loss_functions import eval_loss

        dataset, options, tree = scenario
        assert eval_loss(tree, dataset, options) == pytest.approx(16.25)

    def test_score_formula(self, scenario):
        from evosr.dataset import update_baseline_loss
        from evosr.loss_functions import score_func

        dataset, options, tree = scenario
        baseline = update_baseline_loss(dataset, options)
        score, loss = score_func(dataset, baseline, tree, options)
        assert loss == pytest.approx(16.25)
        assert score == pytest.approx(16.25 / (2.0 / 3.0) + 5 * options.parsimony)

    def test_zero_baseline_leaves_loss_unnormalised(self):
        from evosr.dataset import Dataset, update_baseline_loss
        from evosr.loss_functions import score_func
        from evosr.options import Options
        from evosr.tree import Node

        options = Options()
        dataset = Dataset(np.array([[1.0, 2.0, 3.0]]), np.ones(3))
        baseline = update_baseline_loss(dataset, options)
        assert baseline == 0.0
        score, loss = score_func(dataset, baseline, Node.var(1), options)
        assert loss == pytest.approx(5.0 / 3.0)
        assert score == pytest.approx(loss + options.parsimony)

    def test_small_baseline_divides_directly(self):
        from evosr.dataset import Dataset, update_baseline_loss
        from evosr.loss_functions import score_func
        from evosr.options import Options
        from evosr.tree import Node

        # y = 1e-3 * x: baseline 1.25e-6, well below any fixed floor
        options = Options(binary_operators=("+", "*"))
        X = np.array([[-1.5, -0.5, 0.5, 1.5]])
        dataset = Dataset(X, 1e-3 * X[0])
        baseline = update_baseline_loss(dataset, options)
        assert baseline == pytest.approx(1.25e-6)
        tree = Node.binary(1, Node.const(8e-4), Node.var(1))
        score, loss = score_func(dataset, baseline, tree, options)
        assert loss == pytest.approx(4e-8 * 1.25)
        assert score == pytest.approx(loss / baseline + 3 * options.parsimony)
        assert loss / baseline == pytest.approx(0.04)

    def test_weighted_loss(self):
        from evosr.dataset import Dataset
        from evosr.loss_functions import eval_loss
        from evosr.options import Options
        from evosr.tree import Node

        options = Options()
        dataset = Dataset(np.array([[1.0, 2.0, 3.0]]), [1.5, 0.0, 0.0], weights=[1.0, 0.0, 0.0])
        assert eval_loss(Node.var(1), dataset, options) == pytest.approx(0.25)

    def test_callable_loss(self, scenario):
        from evosr.loss_functions import eval_loss
        from evosr.options import Options

        dataset, _, tree = scenario
        options = Options(binary_operators=("+", "^"), loss=lambda p, t: np.abs(p - t))
        assert eval_loss(tree, dataset, options) == pytest.approx(9.5 / 3.0)

    def test_named_losses(self):
        from evosr.loss_functions import huber_loss, l1_epsilon_ins_loss, log_cosh_loss

        np.testing.assert_allclose(huber_loss(np.array([0.5, 3.0]), delta=1.0), [0.125, 2.5])
        r = np.linspace(-3, 3, 13)
        np.testing.assert_allclose(log_cosh_loss(r), np.log(np.cosh(r)), atol=1e-12)
        np.testing.assert_allclose(l1_epsilon_ins_loss(np.array([0.5, -2.0])), [0.0, 1.0])

    def test_invalid_tree_gets_large_loss(self, scenario):
        from evosr.loss_functions import INVALID_LOSS, eval_loss
        from evosr.options import Options
        from evosr.tree import Node

        dataset, _, _ = scenario
        options = Options(unary_operators=("log",))
        tree = Node.unary(0, Node.binary(1, Node.const(0.0), Node.var(1)))  # log(0 - x1)
        assert eval_loss(tree, dataset, options) == INVALID_LOSS


class TestCacheAndBatching:

    def test_cache_computes_each_structure_once(self, scenario):
        from evosr.loss_functions import LossCache, eval_loss

        dataset, options, tree = scenario
        cache = LossCache()
        a = eval_loss(tree, dataset, options, cache=cache)
        b = eval_loss(tree.copy(), dataset, options, cache=cache)
        assert a == b
        assert cache.misses == 1 and cache.hits == 1
        assert len(cache) == 1

    def test_cache_evicts_least_recently_used(self, scenario):
        from evosr.loss_functions import LossCache, eval_loss
        from evosr.tree import Node

        dataset, options, _ = scenario
        cache = LossCache(max_size=2)
        a, b, c = Node.const(1.0), Node.const(2.0), Node.const(3.0)
        for tree in (a, b, a, c):
            eval_loss(tree, dataset, options, cache=cache)
        assert len(cache) == 2
        assert (cache.hits, cache.misses) == (1, 3)

        eval_loss(a, dataset, options, cache=cache)
        assert cache.hits == 2
        eval_loss(b, dataset, options, cache=cache)
        assert cache.misses == 4
        assert len(cache) == 2

        with pytest.raises(ValueError, match="max_size"):
            LossCache(max_size=0)

    def test_batch_score(self):
        from evosr.dataset import Dataset, update_baseline_loss
        from evosr.loss_functions import batch_sample, score_func_batch
        from evosr.options import Options
        from evosr.tree import Node

        options = Options(batching=True, batch_size=10)
        rng = np.random.RandomState(0)
        X = rng.randn(1, 100)
        dataset = Dataset(X, 2 * X[0])
        baseline = update_baseline_loss(dataset, options)
        idx = batch_sample(dataset, options, rng)
        assert len(idx) == 10 and len(set(idx)) == 10
        tree = Node.binary(2, Node.const(2.0), Node.var(1))
        score, loss = score_func_batch(dataset, baseline, tree, options, rng)
        assert loss == pytest.approx(0.0)
        assert score == pytest.approx(3 * options.parsimony)
