from __future__ import annotations
import enum
import logging
import math
import random
import time
from dataclasses import replace
from typing import Hashable, List, Optional, Sequence, Tuple

from .aco_base import ACOConfig, ACOResult, PheromoneStore, SolverState, TourConstructor
from .errors import InvalidInputError, InvalidParameterError, NotReadyError
from .tsp import DistanceMatrix, DistanceProvider, Point, euclidean_distance_matrix, validate_distance_matrix

logger = logging.getLogger(__name__)

MIN_POINTS = 2


class EngineState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    ITERATING = "iterating"


class ACOEngine:
    """Single-instance Ant System solver driven one iteration at a time.

    The engine owns its matrices exclusively and hands out copies. It owns no
    timer or thread: an external driver calls `run_iteration()` repeatedly and
    stops by no longer calling it.

    Distances come from an injected provider (planar, great-circle, or a
    routing lookup wrapped in `FallbackDistanceProvider`).
    """

    def __init__(self, distance_provider: DistanceProvider = euclidean_distance_matrix,
                 rng: Optional[random.Random] = None):
        self.distance_provider = distance_provider
        self._injected_rng = rng
        self.rng = rng if rng is not None else random.Random()
        self.cfg = ACOConfig()
        self._points: List[Point] = []
        self._store: Optional[PheromoneStore] = None
        self._constructor: Optional[TourConstructor] = None
        self._status = EngineState.UNINITIALIZED
        self._clear_progress()

    # ---- state ------------------------------------------------------------
    @property
    def status(self) -> EngineState:
        return self._status

    @property
    def params(self) -> ACOConfig:
        return replace(self.cfg)

    @property
    def points(self) -> Tuple[Point, ...]:
        return tuple(self._points)

    @property
    def n_cities(self) -> int:
        return len(self._points)

    @property
    def distance_matrix(self) -> DistanceMatrix:
        self._require_ready("distance_matrix")
        return [list(row) for row in self._store.D]

    @property
    def heuristic_matrix(self) -> List[List[float]]:
        self._require_ready("heuristic_matrix")
        return [list(row) for row in self._store.eta]

    @property
    def distance_history(self) -> List[float]:
        return list(self.history_best_lengths)

    def state(self) -> SolverState:
        pher = self._store.snapshot() if self._store is not None else []
        return SolverState(
            iteration=self.iteration,
            best_tour=list(self.best_tour),
            best_length=self.best_length,
            pheromone_matrix=pher,
            average_length=self.last_average_length,
        )

    def _clear_progress(self) -> None:
        self.iteration = 0
        self.best_tour: List[int] = []
        self.best_length = math.inf
        self.last_average_length = math.inf
        self.history_best_lengths: List[float] = []

    def _require_ready(self, op: str) -> None:
        if self._status is EngineState.UNINITIALIZED or self._store is None:
            raise NotReadyError(f"{op}() requires a configured engine with at least {MIN_POINTS} points")

    # ---- configuration ----------------------------------------------------
    def configure(self, points: Sequence[Point], params: Optional[ACOConfig] = None,
                  distance_matrix: Optional[DistanceMatrix] = None) -> SolverState:
        """Validate everything first, then build matrices and go to READY."""
        cfg = replace(params if params is not None else self.cfg).validate()
        pts = self._check_points(points)
        if len(pts) < MIN_POINTS:
            raise InvalidInputError(f"need at least {MIN_POINTS} points, got {len(pts)}")
        D = self._matrix_for(pts, distance_matrix)
        store = PheromoneStore(D, tau0=cfg.tau0, min_pheromone=cfg.min_pheromone)

        self.cfg = cfg
        if self._injected_rng is None:
            self.rng = random.Random(cfg.seed)
        self._points = pts
        self._install(store)
        logger.info("configured %d points (tau0=%.6g)", len(pts), store.tau0)
        return self.state()

    def configure_matrix(self, distance_matrix: DistanceMatrix, params: Optional[ACOConfig] = None) -> SolverState:
        """Configure from a bare matrix; points get ids 0..n-1 and no coordinates."""
        n = len(distance_matrix) if distance_matrix is not None else 0
        return self.configure([Point(i, math.nan, math.nan) for i in range(n)], params,
                              distance_matrix=distance_matrix)

    def _matrix_for(self, pts: List[Point], distance_matrix: Optional[DistanceMatrix] = None) -> DistanceMatrix:
        D = validate_distance_matrix(distance_matrix if distance_matrix is not None else self.distance_provider(pts))
        if len(D) != len(pts):
            raise InvalidInputError(f"distance matrix is {len(D)}x{len(D)} but {len(pts)} points were given")
        return D

    @staticmethod
    def _check_points(points: Sequence[Point]) -> List[Point]:
        if points is None:
            raise InvalidInputError("points are missing")
        pts = list(points)
        for p in pts:
            if not isinstance(p, Point):
                raise InvalidInputError(f"expected Point, got {type(p).__name__}")
        ids = [p.id for p in pts]
        if len(set(ids)) != len(ids):
            raise InvalidInputError("point ids must be unique")
        return pts

    def _install(self, store: Optional[PheromoneStore]) -> None:
        self._store = store
        if store is None:
            self._constructor = None
            self._status = EngineState.UNINITIALIZED
        else:
            self._constructor = TourConstructor(store, self.rng, random_start=self.cfg.random_start)
            self._status = EngineState.READY
        self._clear_progress()

    def set_parameters(self, **changes) -> ACOConfig:
        """Live update; takes effect on the next run_iteration(), history kept."""
        self.cfg = self.cfg.clamped(**changes)
        logger.debug("parameters updated: %s", changes)
        return self.params

    # ---- point set --------------------------------------------------------
    def _rebuild(self, pts: List[Point]) -> None:
        if len(pts) < MIN_POINTS:
            self._points = pts
            self._install(None)
            logger.info("point set has %d point(s); engine uninitialized", len(pts))
            return
        store = PheromoneStore(self._matrix_for(pts), tau0=self.cfg.tau0,
                               min_pheromone=self.cfg.min_pheromone)
        self._points = pts
        self._install(store)
        logger.info("rebuilt matrices for %d points", len(pts))

    def add_point(self, point: Point) -> SolverState:
        pts = self._check_points(self._points + [point])
        self._rebuild(pts)
        return self.state()

    def remove_point(self, point_id: Hashable) -> SolverState:
        pts = [p for p in self._points if p.id != point_id]
        if len(pts) == len(self._points):
            raise InvalidInputError(f"no point with id {point_id!r}")
        self._rebuild(pts)
        return self.state()

    def clear_points(self) -> None:
        self._points = []
        self._install(None)
        logger.info("point set cleared")

    # ---- iteration --------------------------------------------------------
    def reset(self) -> SolverState:
        self._require_ready("reset")
        self._store.reseed()
        self._clear_progress()
        self._status = EngineState.READY
        logger.info("solver reset")
        return self.state()

    def run_iteration(self) -> SolverState:
        self._require_ready("run_iteration")
        self._status = EngineState.ITERATING
        cfg = self.cfg

        tours = [self._constructor.construct(cfg.alpha, cfg.beta) for _ in range(cfg.n_ants)]
        # update global best
        for t, L in tours:
            if L < self.best_length:
                self.best_length = L
                self.best_tour = list(t)

        self._store.evaporate(cfg.rho)
        for t, L in tours:
            self._store.deposit(t, L, cfg.q)

        self.iteration += 1
        self.last_average_length = sum(L for _, L in tours) / len(tours)
        self.history_best_lengths.append(self.best_length)
        logger.debug("iteration %d: best=%.6g avg=%.6g", self.iteration, self.best_length,
                     self.last_average_length)
        return self.state()

    def run(self, n_iterations: Optional[int] = None) -> ACOResult:
        """Convenience batch loop over run_iteration()."""
        self._require_ready("run")
        n_iterations = self.cfg.n_iterations if n_iterations is None else n_iterations
        if n_iterations < 0:
            raise InvalidParameterError(f"n_iterations must be >= 0, got {n_iterations}")
        start = time.time()
        for _ in range(n_iterations):
            self.run_iteration()
        elapsed = time.time() - start
        return ACOResult(best_tour=list(self.best_tour), best_length=self.best_length,
                         history_best_lengths=list(self.history_best_lengths), config=self.params,
                         elapsed_sec=elapsed, iterations=self.iteration)
