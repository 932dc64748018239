# -*- coding: utf-8 -*-
"""Hall of fame, Pareto frontier and model selection tests."""
import threading

import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture
def options():
    from evosr.options import Options
    return Options(binary_operators=("+", "*"), maxsize=10)


def _member(loss, complexity, options):
    from evosr.pop_member import PopMember
    from evosr.tree import Node

    return PopMember(Node.var(1), loss, loss, options, complexity=complexity)


class TestHallOfFame:

    def test_capacity(self, options):
        from evosr.hall_of_fame import HallOfFame

        hof = HallOfFame(options)
        assert hof.capacity == 12
        assert len(hof) == 0
        assert hof.get(0) is None and hof.get(13) is None

    def test_strict_improvement_only(self, options):
        from evosr.hall_of_fame import HallOfFame

        hof = HallOfFame(options)
        first = _member(1.0, 3, options)
        assert hof.update(first, options)
        assert not hof.update(_member(1.0, 3, options), options)
        assert not hof.update(_member(2.0, 3, options), options)
        assert hof.get(3).ref == first.ref
        assert hof.update(_member(0.5, 3, options), options)
        assert hof.get(3).loss == 0.5

    def test_stores_copies(self, options):
        from evosr.hall_of_fame import HallOfFame

        hof = HallOfFame(options)
        member = _member(1.0, 1, options)
        hof.update(member, options)
        member.loss = -5.0
        assert hof.get(1).loss == 1.0
        assert hof.get(1) is not member

    def test_rejects_out_of_range_and_nan(self, options):
        from evosr.hall_of_fame import HallOfFame

        hof = HallOfFame(options)
        assert not hof.update(_member(1.0, 13, options), options)
        assert not hof.update(_member(np.nan, 2, options), options)
        assert len(hof) == 0

    def test_loss_never_increases(self, options):
        from evosr.hall_of_fame import HallOfFame

        hof = HallOfFame(options)
        rng = np.random.RandomState(0)
        best = {}
        for _ in range(200):
            member = _member(float(rng.rand()), int(rng.randint(1, 11)), options)
            hof.update(member, options)
            c = member.complexity
            best[c] = min(best.get(c, np.inf), member.loss)
            assert hof.get(c).loss == best[c]

    def test_concurrent_updates(self, options):
        from evosr.hall_of_fame import HallOfFame

        hof = HallOfFame(options)
        losses = np.random.RandomState(1).rand(4, 250)

        def worker(row):
            for loss in row:
                hof.update(_member(float(loss), 5, options), options)

        threads = [threading.Thread(target=worker, args=(row,)) for row in losses]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert hof.get(5).loss == losses.min()

    def test_merge(self, options):
        from evosr.hall_of_fame import HallOfFame

        a, b = HallOfFame(options), HallOfFame(options)
        a.update(_member(1.0, 1, options), options)
        b.update(_member(0.5, 1, options), options)
        b.update(_member(0.2, 3, options), options)
        assert a.merge(b, options) == 2
        assert [m.loss for m in a.existing()] == [0.5, 0.2]


class TestParetoFrontier:

    def test_dominated_members_are_dropped(self, options):
        from evosr.hall_of_fame import HallOfFame

        hof = HallOfFame(options)
        for loss, complexity in [(1.0, 1), (0.5, 3), (0.7, 4), (0.5, 5), (0.1, 7)]:
            hof.update(_member(loss, complexity, options), options)
        frontier = hof.pareto_frontier()
        assert [m.complexity for m in frontier] == [1, 3, 7]
        losses = [m.loss for m in frontier]
        assert losses == sorted(losses, reverse=True)

    def test_to_dataframe(self, options):
        from evosr.hall_of_fame import HallOfFame

        hof = HallOfFame(options)
        hof.update(_member(1.0, 1, options), options)
        df = hof.to_dataframe(options, variable_names=["a"])
        assert list(df.columns) == ["complexity", "loss", "score", "equation"]
        assert df.iloc[0]["equation"] == "a"

    def test_frontier_dataframe_r2(self, options):
        from evosr.dataset import Dataset
        from evosr.hall_of_fame import HallOfFame, frontier_dataframe
        from evosr.pop_member import PopMember
        from evosr.tree import Node

        X = np.arange(1.0, 6.0).reshape(1, -1)
        dataset = Dataset(X, X[0])
        hof = HallOfFame(options)
        hof.update(PopMember(Node.var(1), 0.0, 0.0, options), options)
        df = frontier_dataframe(hof, dataset, options)
        assert list(df.columns) == ["complexity", "loss", "score", "equation", "r2"]
        assert df.iloc[0]["r2"] == pytest.approx(1.0)


class TestChooseBest:

    def _frontier(self, options):
        return [_member(1.0, 1, options), _member(0.1, 3, options), _member(0.09, 5, options)]

    def test_accuracy(self, options):
        from evosr.hall_of_fame import choose_best
        assert choose_best(self._frontier(options), "accuracy").complexity == 5

    def test_score(self, options):
        from evosr.hall_of_fame import choose_best
        assert choose_best(self._frontier(options), "score").complexity == 3

    def test_knee(self, options):
        from evosr.hall_of_fame import choose_best

        frontier = [_member(loss, c, options) for loss, c in
                    [(10.0, 1), (6.0, 2), (0.5, 3), (0.45, 4), (0.44, 5), (0.43, 6)]]
        assert choose_best(frontier, "knee").complexity == 3

    def test_knee_small_frontier_falls_back(self, options):
        from evosr.hall_of_fame import choose_best

        frontier = [_member(1.0, 1, options), _member(0.5, 3, options)]
        assert choose_best(frontier, "knee").complexity == 3

    def test_empty_frontier_raises(self):
        from evosr.hall_of_fame import choose_best

        with pytest.raises(ValueError, match="empty"):
            choose_best([], "score")
