import pytest

from colony_tsp import ACOConfig, ACOEngine, TSPInstance


@pytest.fixture
def square():
    """4 points on a 10x10 square, perimeter 40."""
    return TSPInstance.square(10.0)


@pytest.fixture
def square_cfg():
    return ACOConfig(alpha=1.0, beta=2.0, rho=0.1, n_ants=20, q=100.0, seed=7)


@pytest.fixture
def square_engine(square, square_cfg):
    engine = ACOEngine()
    engine.configure(square.points, square_cfg)
    return engine
