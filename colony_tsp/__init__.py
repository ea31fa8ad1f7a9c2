from .errors import ACOError, InvalidInputError, InvalidParameterError, NotReadyError
from .tsp import (Point, TSPInstance, FallbackDistanceProvider, euclidean_distance_matrix,
                  haversine_distance, haversine_distance_matrix, nearest_neighbor_tour, tour_length)
from .aco_base import ACOConfig, ACOResult, PheromoneStore, SolverState, TourConstructor
from .engine import ACOEngine, EngineState
from .experiments import run_parameter_sweep, run_repeated_trials
