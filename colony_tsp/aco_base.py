from __future__ import annotations
import math
import random
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import InvalidParameterError
from .tsp import DistanceMatrix, validate_distance_matrix

# live-tunable parameters and the ranges they are clamped to
ALPHA_RANGE = (0.0, 10.0)
BETA_RANGE = (0.0, 10.0)
RHO_RANGE = (0.01, 0.99)
LIVE_PARAMS = ("alpha", "beta", "rho", "q", "n_ants", "n_iterations")


def _clamp(v: float, lo: float, hi: float) -> float:
    return min(max(v, lo), hi)


def _as_count(name: str, value) -> int:
    if isinstance(value, bool):
        raise InvalidParameterError(f"{name} must be an integer, got {value!r}")
    try:
        n = int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise InvalidParameterError(f"{name} must be an integer, got {value!r}") from exc
    if n != value:
        raise InvalidParameterError(f"{name} must be an integer, got {value!r}")
    if n < 1:
        raise InvalidParameterError(f"{name} must be >= 1, got {n}")
    return n


def _as_real(name: str, value) -> float:
    if isinstance(value, bool):
        raise InvalidParameterError(f"{name} must be a number, got {value!r}")
    try:
        v = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(v):
        raise InvalidParameterError(f"{name} must be finite, got {value!r}")
    return v


@dataclass
class ACOConfig:
    alpha: float = 1.0          # pheromone influence
    beta: float = 2.0           # heuristic influence
    rho: float = 0.1            # evaporation rate
    q: float = 100.0            # pheromone deposit factor
    n_ants: int = 20
    n_iterations: int = 100     # used by ACOEngine.run()
    tau0: Optional[float] = 1.0  # initial pheromone; if None, 1 / (n * avg_dist)
    min_pheromone: float = 0.001
    random_start: bool = False  # False: every ant starts at index 0
    seed: Optional[int] = None

    def validate(self) -> "ACOConfig":
        """Strict check used at configuration time."""
        alpha = _as_real("alpha", self.alpha)
        beta = _as_real("beta", self.beta)
        if not ALPHA_RANGE[0] <= alpha <= ALPHA_RANGE[1]:
            raise InvalidParameterError(f"alpha must be in {list(ALPHA_RANGE)}, got {alpha}")
        if not BETA_RANGE[0] <= beta <= BETA_RANGE[1]:
            raise InvalidParameterError(f"beta must be in {list(BETA_RANGE)}, got {beta}")
        rho = _as_real("rho", self.rho)
        if not 0.0 < rho < 1.0:
            raise InvalidParameterError(f"rho must be in (0, 1), got {rho}")
        if _as_real("q", self.q) <= 0:
            raise InvalidParameterError(f"q must be > 0, got {self.q}")
        _as_count("n_ants", self.n_ants)
        _as_count("n_iterations", self.n_iterations)
        if self.tau0 is not None and _as_real("tau0", self.tau0) <= 0:
            raise InvalidParameterError(f"tau0 must be > 0, got {self.tau0}")
        if _as_real("min_pheromone", self.min_pheromone) <= 0:
            raise InvalidParameterError(f"min_pheromone must be > 0, got {self.min_pheromone}")
        return self

    def clamped(self, **changes: Any) -> "ACOConfig":
        """Copy with live parameter changes applied, clamped into range.

        Values that have no sensible clamp (n_ants < 1, q <= 0, NaN) raise
        InvalidParameterError. Structural settings (tau0, min_pheromone,
        random_start, seed) are fixed for the life of a configuration.
        """
        known = {f.name for f in fields(self)}
        out: Dict[str, Any] = {}
        for name, value in changes.items():
            if name not in known:
                raise InvalidParameterError(f"unknown parameter {name!r}")
            if name not in LIVE_PARAMS:
                raise InvalidParameterError(f"{name!r} cannot be changed live; call configure()")
            if name == "alpha":
                out[name] = _clamp(_as_real(name, value), *ALPHA_RANGE)
            elif name == "beta":
                out[name] = _clamp(_as_real(name, value), *BETA_RANGE)
            elif name == "rho":
                out[name] = _clamp(_as_real(name, value), *RHO_RANGE)
            elif name == "q":
                q = _as_real(name, value)
                if q <= 0:
                    raise InvalidParameterError(f"q must be > 0, got {value!r}")
                out[name] = q
            else:
                out[name] = _as_count(name, value)
        return replace(self, **out)


@dataclass(frozen=True)
class SolverState:
    iteration: int = 0
    best_tour: List[int] = field(default_factory=list)
    best_length: float = math.inf
    pheromone_matrix: List[List[float]] = field(default_factory=list)
    average_length: float = math.inf  # mean ant tour length of the last iteration

    def as_dict(self) -> Dict[str, Any]:
        return {
            "iteration": self.iteration,
            "best_tour": list(self.best_tour),
            "best_length": self.best_length,
            "pheromone_matrix": [list(row) for row in self.pheromone_matrix],
            "average_length": self.average_length,
        }


@dataclass
class ACOResult:
    best_tour: List[int]
    best_length: float
    history_best_lengths: List[float]
    config: ACOConfig
    elapsed_sec: float
    iterations: int = 0


class PheromoneStore:
    """Heuristic (1/d) and pheromone matrices for one distance matrix.

    The diagonal is never read; pheromone is kept at 0 there.
    """

    def __init__(self, dist_matrix: DistanceMatrix, tau0: Optional[float] = 1.0,
                 min_pheromone: float = 0.001):
        self.tau0_setting = tau0
        self.min_pheromone = min_pheromone
        self.initialize(dist_matrix)

    def initialize(self, dist_matrix: DistanceMatrix) -> None:
        D = validate_distance_matrix(dist_matrix)
        self.D = D
        self.n = len(D)

        # heuristic 1/d
        self.eta = [[0.0]*self.n for _ in range(self.n)]
        for i in range(self.n):
            for j in range(self.n):
                if i != j and 0 < D[i][j] < math.inf:
                    self.eta[i][j] = 1.0 / D[i][j]

        self.tau0 = self.tau0_setting if self.tau0_setting is not None else self._default_tau0()
        self.reseed()

    def _default_tau0(self) -> float:
        # tau0 = 1 / (n * avg_dist)
        total = 0.0; count = 0
        for i in range(self.n):
            for j in range(i+1, self.n):
                if math.isfinite(self.D[i][j]):
                    total += self.D[i][j]; count += 1
        avg = total / max(1, count)
        return 1.0 / (self.n * avg) if avg > 0 else 1.0

    def reseed(self) -> None:
        tau0 = self.tau0
        self.tau = [[tau0 if i != j else 0.0 for j in range(self.n)] for i in range(self.n)]

    def evaporate(self, rho: float) -> None:
        floor = self.min_pheromone
        keep = 1.0 - rho
        for i in range(self.n):
            row = self.tau[i]
            for j in range(self.n):
                if i != j:
                    row[j] = max(row[j] * keep, floor)

    def deposit(self, tour: Sequence[int], length: float, q: float) -> None:
        if not math.isfinite(length) or length <= 0:
            return
        dta = q / length
        m = len(tour)
        for k in range(m):
            i, j = tour[k], tour[(k+1) % m]
            if i == j:
                continue
            self.tau[i][j] += dta
            self.tau[j][i] += dta

    def tour_length(self, tour: Sequence[int]) -> float:
        dist = 0.0
        m = len(tour)
        for k in range(m):
            i, j = tour[k], tour[(k+1) % m]
            dist += self.D[i][j]
        return dist

    def snapshot(self) -> List[List[float]]:
        return [list(row) for row in self.tau]


class TourConstructor:
    """Builds one ant's tour with cumulative-weight roulette selection."""

    def __init__(self, store: PheromoneStore, rng: random.Random, random_start: bool = False):
        self.store = store
        self.rng = rng
        self.random_start = random_start

    @staticmethod
    def _power(x: float, p: float) -> float:
        try:
            return x ** p
        except OverflowError:
            return math.inf

    def _weights(self, current: int, candidates: Sequence[int], alpha: float, beta: float):
        tau_row = self.store.tau[current]
        eta_row = self.store.eta[current]
        weights = []
        total = 0.0
        for j in candidates:
            a = self._power(tau_row[j], alpha)
            b = self._power(eta_row[j], beta)
            # a zero factor wins over an overflowed one (0 * inf is NaN)
            w = 0.0 if a == 0.0 or b == 0.0 else a * b
            weights.append((j, w))
            total += w
        return weights, total

    def choose_next(self, current: int, candidates: Sequence[int], alpha: float, beta: float) -> int:
        """`candidates` must be in a deterministic order (ascending index).

        Weights that overflow to infinity dominate: the draw is uniform among
        them. A total that overflows while every weight is finite is rescaled
        by the largest weight before the roulette walk.
        """
        weights, total = self._weights(current, candidates, alpha, beta)
        infinite = [j for j, w in weights if math.isinf(w)]
        if infinite:
            return self.rng.choice(infinite)
        if math.isinf(total):
            top = max(w for _, w in weights)
            weights = [(j, w / top) for j, w in weights]
            total = sum(w for _, w in weights)
        if total <= 0.0 or not math.isfinite(total):
            return self.rng.choice(list(candidates))
        r = self.rng.random() * total
        acc = 0.0
        for j, w in weights:
            acc += w
            if acc > r:
                return j
        # float round-off: last candidate that carries weight
        for j, w in reversed(weights):
            if w > 0:
                return j
        return weights[-1][0]

    def start_city(self) -> int:
        return self.rng.randrange(self.store.n) if self.random_start else 0

    def construct(self, alpha: float, beta: float) -> Tuple[List[int], float]:
        n = self.store.n
        start = self.start_city()
        if n == 1:
            return [start], 0.0
        tour = [start]
        unvisited = [j for j in range(n) if j != start]
        current = start
        while unvisited:
            nxt = self.choose_next(current, unvisited, alpha, beta)
            tour.append(nxt)
            unvisited.remove(nxt)
            current = nxt
        return tour, self.store.tour_length(tour)
