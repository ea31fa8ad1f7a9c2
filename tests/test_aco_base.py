"""
Pheromone store, tour construction and configuration
"""

import math
import random

import pytest

from colony_tsp import (ACOConfig, InvalidInputError, InvalidParameterError, PheromoneStore,
                        SolverState, TourConstructor, TSPInstance, tour_length)


class FixedRng:
    """Replays preset random() values; choice/randrange pick the last option."""

    def __init__(self, values=()):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)

    def choice(self, seq):
        return seq[-1]

    def randrange(self, n):
        return n - 1


LINE = [[0.0, 1.0, 2.0], [1.0, 0.0, 1.0], [2.0, 1.0, 0.0]]


class TestConfig:

    def test_defaults_are_valid(self):
        assert ACOConfig().validate() is not None

    @pytest.mark.parametrize("changes", [
        {"rho": 0.0}, {"rho": 1.0}, {"n_ants": 0}, {"n_ants": -3}, {"n_ants": 2.5},
        {"q": 0.0}, {"alpha": -1.0}, {"beta": 11.0}, {"alpha": math.nan},
        {"tau0": 0.0}, {"min_pheromone": 0.0},
    ])
    def test_validate_rejects(self, changes):
        with pytest.raises(InvalidParameterError):
            ACOConfig(**changes).validate()

    def test_clamped_bounds(self):
        cfg = ACOConfig().clamped(alpha=50, beta=-2, rho=1.5)
        assert cfg.alpha == 10.0
        assert cfg.beta == 0.0
        assert cfg.rho == 0.99
        assert ACOConfig().clamped(rho=0.0).rho == 0.01

    def test_clamped_returns_copy(self):
        base = ACOConfig()
        cfg = base.clamped(n_ants=5)
        assert cfg.n_ants == 5
        assert base.n_ants == 20

    @pytest.mark.parametrize("changes", [
        {"n_ants": -1}, {"n_ants": 0}, {"q": -5.0}, {"alpha": math.inf},
        {"nope": 1}, {"seed": 3}, {"random_start": True}, {"tau0": 2.0},
    ])
    def test_clamped_rejects(self, changes):
        with pytest.raises(InvalidParameterError):
            ACOConfig().clamped(**changes)


class TestPheromoneStore:

    def test_heuristic_is_inverse_distance(self):
        store = PheromoneStore(LINE)
        assert store.eta[0][1] == pytest.approx(1.0)
        assert store.eta[0][2] == pytest.approx(0.5)
        assert store.eta[1][1] == 0.0

    def test_zero_distance_has_no_heuristic(self):
        store = PheromoneStore([[0.0, 0.0], [0.0, 0.0]])
        assert store.eta == [[0.0, 0.0], [0.0, 0.0]]

    def test_uniform_seed(self):
        store = PheromoneStore(LINE, tau0=1.0)
        for i in range(3):
            for j in range(3):
                assert store.tau[i][j] == (0.0 if i == j else 1.0)

    def test_average_distance_seed(self, square):
        D = square.distance_matrix()
        store = PheromoneStore(D, tau0=None)
        avg = (40.0 + 2 * math.hypot(10, 10)) / 6
        assert store.tau0 == pytest.approx(1.0 / (4 * avg))
        assert store.tau[0][1] == pytest.approx(store.tau0)

    @pytest.mark.parametrize("bad", [[], [[0.0]], [[0.0, 1.0], [1.0]], [[0.0, -1.0], [-1.0, 0.0]]])
    def test_initialize_rejects(self, bad):
        with pytest.raises(InvalidInputError):
            PheromoneStore(bad)

    def test_evaporate(self):
        store = PheromoneStore(LINE, tau0=1.0)
        store.evaporate(0.1)
        assert store.tau[0][1] == pytest.approx(0.9)
        assert store.tau[2][1] == pytest.approx(0.9)

    def test_evaporate_never_below_floor(self):
        store = PheromoneStore(LINE, tau0=1.0, min_pheromone=0.001)
        for _ in range(200):
            store.evaporate(0.5)
        for i in range(3):
            for j in range(3):
                if i != j:
                    assert store.tau[i][j] == 0.001

    def test_deposit_both_directions_with_closing_edge(self, square):
        store = PheromoneStore(square.distance_matrix(), tau0=1.0)
        store.deposit([0, 1, 2, 3], 40.0, 100.0)
        for i, j in [(0, 1), (1, 2), (2, 3), (3, 0)]:
            assert store.tau[i][j] == pytest.approx(3.5)
            assert store.tau[j][i] == pytest.approx(3.5)
        assert store.tau[0][2] == pytest.approx(1.0)
        assert store.tau[1][3] == pytest.approx(1.0)

    @pytest.mark.parametrize("length", [0.0, math.inf, math.nan])
    def test_deposit_skips_degenerate_length(self, length):
        store = PheromoneStore(LINE, tau0=1.0)
        before = store.snapshot()
        store.deposit([0, 1, 2], length, 100.0)
        assert store.tau == before

    def test_snapshot_is_independent(self):
        store = PheromoneStore(LINE, tau0=1.0)
        snap = store.snapshot()
        snap[0][1] = 42.0
        assert store.tau[0][1] == 1.0

    def test_reseed(self):
        store = PheromoneStore(LINE, tau0=1.0)
        store.deposit([0, 1, 2], 4.0, 1.0)
        store.reseed()
        assert store.tau[0][1] == 1.0


class TestTourConstructor:

    def test_roulette_picks_first_to_exceed_draw(self):
        # from 0: weights 1.0 (to 1) and 0.5 (to 2), total 1.5
        store = PheromoneStore(LINE, tau0=1.0)
        tc = TourConstructor(store, FixedRng([0.5]))
        assert tc.choose_next(0, [1, 2], alpha=1.0, beta=1.0) == 1
        tc = TourConstructor(store, FixedRng([0.7]))
        assert tc.choose_next(0, [1, 2], alpha=1.0, beta=1.0) == 2

    def test_zero_draw_skips_zero_weight(self):
        store = PheromoneStore([[0.0, 0.0, 1.0], [0.0, 0.0, 1.0], [1.0, 1.0, 0.0]], tau0=1.0)
        tc = TourConstructor(store, FixedRng([0.0]))
        assert tc.choose_next(0, [1, 2], alpha=1.0, beta=1.0) == 2

    def test_overflowing_weight_dominates(self):
        # eta[0][1] = 1e35, so eta ** 10 overflows a float
        store = PheromoneStore([[0.0, 1e-35, 1.0], [1e-35, 0.0, 1.0], [1.0, 1.0, 0.0]], tau0=1.0)
        tc = TourConstructor(store, random.Random(0))
        for _ in range(5):
            assert tc.choose_next(0, [1, 2], alpha=1.0, beta=10.0) == 1

    def test_several_overflowing_weights_draw_among_them(self):
        store = PheromoneStore([[0.0, 1e-35, 1e-35], [1e-35, 0.0, 1.0], [1e-35, 1.0, 0.0]], tau0=1.0)
        tc = TourConstructor(store, FixedRng())
        assert tc.choose_next(0, [1, 2], alpha=1.0, beta=10.0) == 2

    def test_overflowing_total_is_rescaled(self):
        store = PheromoneStore([[0.0, 1.0, 1.0], [1.0, 0.0, 1.0], [1.0, 1.0, 0.0]], tau0=1.0)
        store.tau[0][1] = store.tau[0][2] = 1e154
        # each weight is 1e308, their sum is inf; rescaled weights are 1.0 each
        tc = TourConstructor(store, FixedRng([0.3]))
        assert tc.choose_next(0, [1, 2], alpha=2.0, beta=1.0) == 1
        tc = TourConstructor(store, FixedRng([0.7]))
        assert tc.choose_next(0, [1, 2], alpha=2.0, beta=1.0) == 2

    def test_all_zero_weights_fall_back_to_uniform(self):
        store = PheromoneStore([[0.0] * 3 for _ in range(3)], tau0=1.0)
        tc = TourConstructor(store, FixedRng())
        tour, length = tc.construct(alpha=1.0, beta=1.0)
        assert tour == [0, 2, 1]
        assert length == 0.0

    def test_fixed_start(self):
        store = PheromoneStore(LINE)
        tc = TourConstructor(store, random.Random(1))
        for _ in range(10):
            assert tc.construct(1.0, 2.0)[0][0] == 0

    def test_random_start(self):
        store = PheromoneStore(LINE)
        tc = TourConstructor(store, FixedRng([0.1, 0.1]), random_start=True)
        tour, _ = tc.construct(1.0, 2.0)
        assert tour[0] == 2

    def test_tours_are_permutations_with_exact_length(self):
        inst = TSPInstance.random_euclidean(9, seed=4)
        D = inst.distance_matrix()
        tc = TourConstructor(PheromoneStore(D), random.Random(11), random_start=True)
        for _ in range(50):
            tour, length = tc.construct(1.0, 2.0)
            assert sorted(tour) == list(range(9))
            assert length == pytest.approx(tour_length(D, tour))

    def test_single_point_is_trivial(self):
        class OnePoint:
            n = 1

        tc = TourConstructor(OnePoint(), random.Random(0))
        assert tc.construct(1.0, 2.0) == ([0], 0.0)


class TestSolverState:

    def test_defaults(self):
        s = SolverState()
        assert s.iteration == 0
        assert s.best_tour == []
        assert s.best_length == math.inf

    def test_as_dict_copies(self):
        s = SolverState(iteration=2, best_tour=[0, 1], best_length=4.0, pheromone_matrix=[[0.0, 1.0], [1.0, 0.0]])
        d = s.as_dict()
        d["pheromone_matrix"][0][1] = 9.0
        d["best_tour"].append(5)
        assert s.pheromone_matrix[0][1] == 1.0
        assert s.best_tour == [0, 1]
        assert d["iteration"] == 2
