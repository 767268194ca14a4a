from .system import HamiltonSystem
from .problem import DynamicalProblem
from .integrator import (Integrator, ExplicitRK, Euler, RK2, ImprovedEuler, Heun, RK4, SolveIVP,
                         SymplecticComposition, VelocityVerlet, Yoshida4, Yoshida6, KahanLi6,
                         RungeKuttaNystrom, RKN4, TrigonometricRKN4, DPRKN5)
from .solver import Solution, Solutions, solve
from .kepler import (INITIAL_POSITION, INITIAL_MOMENTUM, TIME_SPAN,
                     hamiltonian, angular_momentum,
                     semi_major_axis, eccentricity, mean_motion, orbital_period,
                     kepler_system, kepler_problem)
from .manifold import (ManifoldProjection,
                       first_integrals_manifold, energy_manifold, angular_manifold)
