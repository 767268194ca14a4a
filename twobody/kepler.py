"""
Planar Kepler problem in units where the gravitational parameter is 1.

    H(q, p) = |p|^2 / 2 - 1 / |q|
    L(q, p) = q_1 p_2 - p_1 q_2

The functions accept ``(2,)`` arrays for a single state or ``(2, N)`` arrays
for a whole trajectory.
"""
import numpy as np

from .system import HamiltonSystem
from .problem import DynamicalProblem

INITIAL_POSITION = (0.4, 0.0)
INITIAL_MOMENTUM = (0.0, 2.0)
TIME_SPAN = (0.0, 20.0)

def hamiltonian(q, p):
    return (p[0]**2 + p[1]**2) / 2 - 1 / np.sqrt(q[0]**2 + q[1]**2)

def angular_momentum(q, p):
    return q[0] * p[1] - p[0] * q[1]

# Orbital elements of a bound orbit

def _bound_energy(q, p):
    H = hamiltonian(q, p)
    if np.any(H >= 0):
        raise ValueError(f'Orbit is not bound, H = {H}')
    return H

def semi_major_axis(q, p):
    return -1 / (2 * _bound_energy(q, p))

def eccentricity(q, p):
    H = _bound_energy(q, p)
    L = angular_momentum(q, p)
    return np.sqrt(np.maximum(1 + 2 * H * L**2, 0.0))

def mean_motion(q, p):
    return (-2 * _bound_energy(q, p)) ** 1.5

def orbital_period(q, p):
    return 2 * np.pi / mean_motion(q, p)

# Symbolic system

def kepler_system() -> HamiltonSystem:
    return (
        HamiltonSystem()
        .add_coordinate('q_1 q_2', momentum='p_1 p_2')
        .define('H', '(p_1**2 + p_2**2)/2 - 1/sqrt(q_1**2 + q_2**2)')
        .define('L', 'q_1*p_2 - p_1*q_2')
    )

def kepler_problem(q0=INITIAL_POSITION, p0=INITIAL_MOMENTUM, tspan=TIME_SPAN) -> DynamicalProblem:
    return kepler_system().problem(q0, p0, tspan)
