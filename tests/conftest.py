import matplotlib

matplotlib.use('Agg')

import matplotlib.pyplot as plt
import pytest

from twobody import HamiltonSystem, kepler_problem


def harmonic_problem(frequency: float = 1.0, tspan=(0.0, 10.0)):
    """x'' = -frequency**2 x with x(0) = 1, x'(0) = 0."""
    return (
        HamiltonSystem()
        .add_coordinate('x', momentum='v')
        .add_constant('w')
        .define('H', 'v**2/2 + w**2 * x**2/2')
        .problem([1.0], [0.0], tspan, constants={'w': frequency})
    )


@pytest.fixture
def kepler():
    return kepler_problem()


@pytest.fixture
def harmonic():
    return harmonic_problem()


@pytest.fixture
def make_harmonic():
    return harmonic_problem


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close('all')
