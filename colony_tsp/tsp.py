from __future__ import annotations
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Callable, Hashable, List, Optional, Sequence, Tuple

from .errors import InvalidInputError

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371000.0

DistanceMatrix = List[List[float]]


@dataclass(frozen=True)
class Point:
    """A stable identifier plus two coordinates (planar x,y or lat,lng)."""
    id: Hashable
    x: float
    y: float


DistanceProvider = Callable[[Sequence[Point]], DistanceMatrix]


def euclidean_distance_matrix(points: Sequence[Point]) -> DistanceMatrix:
    n = len(points)
    D = [[0.0]*n for _ in range(n)]
    for i in range(n):
        for j in range(i+1, n):
            d = math.hypot(points[i].x - points[j].x, points[i].y - points[j].y)
            D[i][j] = D[j][i] = d
    return D


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in metres between two (lat, lng) pairs given in degrees."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_distance_matrix(points: Sequence[Point]) -> DistanceMatrix:
    """Points are read as (lat, lng) = (x, y)."""
    n = len(points)
    D = [[0.0]*n for _ in range(n)]
    for i in range(n):
        for j in range(i+1, n):
            d = haversine_distance(points[i].x, points[i].y, points[j].x, points[j].y)
            D[i][j] = D[j][i] = d
    return D


def validate_distance_matrix(matrix, min_size: int = 2) -> DistanceMatrix:
    """Return a float copy of `matrix` or raise InvalidInputError."""
    if matrix is None:
        raise InvalidInputError("distance matrix is missing")
    try:
        rows = [[float(x) for x in row] for row in matrix]
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"distance matrix has non-numeric entries: {exc}") from exc
    n = len(rows)
    if n < min_size:
        raise InvalidInputError(f"need at least {min_size} points, got {n}")
    if any(len(r) != n for r in rows):
        raise InvalidInputError("distance matrix must be square")
    for i, row in enumerate(rows):
        for j, d in enumerate(row):
            if math.isnan(d) or d < 0:
                raise InvalidInputError(f"invalid distance {d!r} at ({i}, {j})")
        if row[i] != 0.0:
            raise InvalidInputError(f"distance from point {i} to itself must be 0, got {row[i]!r}")
    return rows


class FallbackDistanceProvider:
    """Calls `primary`; on error or malformed output substitutes `fallback`.

    Typical use wraps a road-distance lookup with the great-circle matrix so a
    failing lookup never fails the configuration step.
    """

    def __init__(self, primary: DistanceProvider,
                 fallback: DistanceProvider = haversine_distance_matrix):
        self.primary = primary
        self.fallback = fallback
        self.last_used_fallback = False

    def __call__(self, points: Sequence[Point]) -> DistanceMatrix:
        n = len(points)
        try:
            D = validate_distance_matrix(self.primary(points), min_size=0)
            if len(D) != n:
                raise InvalidInputError(f"provider returned {len(D)} rows for {n} points")
        except Exception as exc:
            logger.warning("distance provider failed (%s), falling back to %s",
                           exc, getattr(self.fallback, "__name__", type(self.fallback).__name__))
            self.last_used_fallback = True
            return self.fallback(points)
        self.last_used_fallback = False
        return D


def tour_length(D: DistanceMatrix, tour: Sequence[int]) -> float:
    n = len(tour)
    dist = 0.0
    for k in range(n):
        i, j = tour[k], tour[(k + 1) % n]
        dist += D[i][j]
    return dist


def nearest_neighbor_tour(D: DistanceMatrix, start: int = 0) -> List[int]:
    n = len(D)
    tour = [start]
    unvisited = set(range(n))
    unvisited.remove(start)
    cur = start
    while unvisited:
        nxt = min(sorted(unvisited), key=lambda j: D[cur][j])
        tour.append(nxt)
        unvisited.remove(nxt)
        cur = nxt
    return tour


@dataclass
class TSPInstance:
    points: List[Point] = field(default_factory=list)
    name: str = "euclidean_tsp"

    @staticmethod
    def from_coords(coords: Sequence[Tuple[float, float]], name: str = "tsp"):
        return TSPInstance(points=[Point(i, x, y) for i, (x, y) in enumerate(coords)], name=name)

    @staticmethod
    def random_euclidean(n: int, seed: Optional[int] = None, square_size: float = 100.0, name: str = "random_euclidean"):
        rng = random.Random(seed)
        coords = [(rng.uniform(0, square_size), rng.uniform(0, square_size)) for _ in range(n)]
        return TSPInstance.from_coords(coords, name=name)

    @staticmethod
    def random_geographic(n: int, seed: Optional[int] = None, center: Tuple[float, float] = (48.8566, 2.3522),
                          spread_deg: float = 0.1, name: str = "random_geographic"):
        rng = random.Random(seed)
        lat0, lng0 = center
        coords = [(lat0 + rng.uniform(-spread_deg, spread_deg), lng0 + rng.uniform(-spread_deg, spread_deg))
                  for _ in range(n)]
        return TSPInstance.from_coords(coords, name=name)

    @staticmethod
    def square(side: float = 10.0, name: str = "square"):
        return TSPInstance.from_coords([(0.0, 0.0), (side, 0.0), (side, side), (0.0, side)], name=name)

    @property
    def coords(self) -> List[Tuple[float, float]]:
        return [(p.x, p.y) for p in self.points]

    def n_cities(self) -> int:
        return len(self.points)

    def distance_matrix(self, provider: DistanceProvider = euclidean_distance_matrix) -> DistanceMatrix:
        return provider(self.points)

    def tour_length(self, tour: Sequence[int], provider: DistanceProvider = euclidean_distance_matrix) -> float:
        return tour_length(self.distance_matrix(provider), tour)
