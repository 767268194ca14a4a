from typing import Optional, Sequence
from logging import getLogger
import numpy as np
from scipy.integrate import solve_ivp

from .problem import DynamicalProblem

logger = getLogger(__name__)

def _combine(coefficients: Sequence[float], K: Sequence[np.ndarray], like: np.ndarray) -> np.ndarray:
    return sum((a * k for a, k in zip(coefficients, K)), np.zeros_like(like))

class Integrator:
    name: str
    order: int
    adaptive: bool = False

    def __init__(self, dt: Optional[float] = None):
        self.dt = dt
        self.name = self.__class__.__name__

    def check(self, problem: DynamicalProblem):
        pass

    def perform_step(self, problem: DynamicalProblem, t: float,
                     q: np.ndarray, p: np.ndarray, h: float):
        raise NotImplementedError(f'{self.name}.perform_step() is not implemented')

    def __repr__(self) -> str:
        return f'{self.name}(dt={self.dt})'

# Generic Runge-Kutta

class ExplicitRK(Integrator):
    a: tuple[tuple[float, ...], ...]
    b: tuple[float, ...]
    c: tuple[float, ...]

    def perform_step(self, problem, t, q, p, h):
        u = np.concatenate([q, p])
        K: list[np.ndarray] = []
        for a, c in zip(self.a, self.c):
            K.append(problem.rhs(t + c * h, u + h * _combine(a, K, u)))
        return problem.split(u + h * _combine(self.b, K, u))

class Euler(ExplicitRK):
    order = 1
    a = ((),)
    b = (1.0,)
    c = (0.0,)

class RK2(ExplicitRK):
    order = 2
    a = ((), (1.0,))
    b = (0.5, 0.5)
    c = (0.0, 1.0)

ImprovedEuler = RK2
Heun = RK2

class RK4(ExplicitRK):
    order = 4
    a = ((), (0.5,), (0.0, 0.5), (0.0, 0.0, 1.0))
    b = (1/6, 1/3, 1/3, 1/6)
    c = (0.0, 0.5, 0.5, 1.0)

class SolveIVP(Integrator):
    """Adaptive Runge-Kutta methods of ``scipy.integrate.solve_ivp``."""

    adaptive = True

    def __init__(self, method: str = 'RK45', rtol: float = 1e-3, atol: float = 1e-6, **options):
        super().__init__()
        self.method = method
        self.rtol = rtol
        self.atol = atol
        self.options = options
        self.name = f'{self.__class__.__name__}({method})'

    def integrate(self, problem: DynamicalProblem) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        result = solve_ivp(problem.rhs, problem.tspan, problem.state0,
                           method=self.method, rtol=self.rtol, atol=self.atol, **self.options)
        if not result.success:
            raise RuntimeError(f'{self.name} failed: {result.message}')
        logger.info(f'{self.name}: {len(result.t) - 1} steps, {result.nfev} evaluations')
        n = problem.dimension
        return result.t, result.y[:n].T, result.y[n:].T

    def __repr__(self) -> str:
        return f'{self.name}(rtol={self.rtol}, atol={self.atol})'

# Symplectic partitioned methods

class SymplecticComposition(Integrator):
    """Composition of velocity Verlet substeps ``coefficients[i] * h``."""

    coefficients: tuple[float, ...]

    def check(self, problem):
        if not problem.separable:
            raise ValueError(f'{self.name} requires a separable Hamiltonian')

    def perform_step(self, problem, t, q, p, h):
        for gamma in self.coefficients:
            q, p = self.verlet(problem, t, q, p, gamma * h)
            t = t + gamma * h
        return q, p

    @staticmethod
    def verlet(problem, t, q, p, h):
        p = p + h / 2 * problem.dp(q, p, t)
        q = q + h * problem.dq(q, p, t + h / 2)
        p = p + h / 2 * problem.dp(q, p, t + h)
        return q, p

class VelocityVerlet(SymplecticComposition):
    order = 2
    coefficients = (1.0,)

_CBRT2 = 2 ** (1 / 3)

class Yoshida4(SymplecticComposition):
    order = 4
    coefficients = (1 / (2 - _CBRT2), -_CBRT2 / (2 - _CBRT2), 1 / (2 - _CBRT2))

class Yoshida6(SymplecticComposition):
    order = 6
    coefficients = (0.78451361047755726381949763,
                    0.23557321335935813368479318,
                    -1.17767998417887100694641568,
                    1.31518632068391121888424973,
                    -1.17767998417887100694641568,
                    0.23557321335935813368479318,
                    0.78451361047755726381949763)

class KahanLi6(SymplecticComposition):
    """Kahan and Li's 9-stage symmetric composition of order 6."""
    order = 6
    coefficients = (0.39216144400731413927925056,
                    0.33259913678935943859974864,
                    -0.70624617255763935980996482,
                    0.08221359629355080023149045,
                    0.79854399093482996339895035,
                    0.08221359629355080023149045,
                    -0.70624617255763935980996482,
                    0.33259913678935943859974864,
                    0.39216144400731413927925056)

# Runge-Kutta-Nystrom methods for q'' = f(q, t)

class RungeKuttaNystrom(Integrator):
    c: Sequence[float]
    a_bar: Sequence[Sequence[float]]

    def check(self, problem):
        if not problem.second_order:
            raise ValueError(f'{self.name} requires a second order problem (dq/dt = p)')

    def forces(self, problem, t, q, v, h) -> list[np.ndarray]:
        F: list[np.ndarray] = []
        for i, c in enumerate(self.c):
            Q = q + c * h * v + h**2 * _combine(self.a_bar[i][:i], F, q)
            F.append(problem.dp(Q, v, t + c * h))
        return F

class RKN4(RungeKuttaNystrom):
    """Classical three-stage Nystrom method of order 4."""

    order = 4
    c = (0.0, 0.5, 1.0)
    a_bar = ((), (1/8,), (0.0, 0.5))

    def weights(self, h: float) -> tuple[tuple[float, ...], tuple[float, ...]]:
        return (1/6, 1/3, 0.0), (1/6, 2/3, 1/6)

    def perform_step(self, problem, t, q, p, h):
        b_bar, b = self.weights(h)
        F = self.forces(problem, t, q, p, h)
        return (q + h * p + h**2 * _combine(b_bar, F, q),
                p + h * _combine(b, F, p))

def _trig_terms(v: float) -> tuple[float, float, float]:
    """sin(v)/v, (1 - cos(v))/v^2 and (v - sin(v))/v^3"""
    if abs(v) < 0.05:
        v2 = v * v
        return (1 - v2 / 6 + v2**2 / 120 - v2**3 / 5040,
                1 / 2 - v2 / 24 + v2**2 / 720 - v2**3 / 40320,
                1 / 6 - v2 / 120 + v2**2 / 5040 - v2**3 / 362880)
    return (np.sin(v) / v,
            (1 - np.cos(v)) / v**2,
            (v - np.sin(v)) / v**3)

class TrigonometricRKN4(RKN4):
    """
    RKN4 with weights fitted to the frequency ``frequency``.

    The stages are those of ``RKN4``; the update weights depend on
    ``v = frequency * h`` so that ``q'' = -frequency**2 q`` is integrated
    exactly. For ``v -> 0`` the weights reduce to those of ``RKN4``.
    """

    def __init__(self, frequency: float, dt: Optional[float] = None):
        super().__init__(dt)
        if not frequency > 0:
            raise ValueError(f'Frequency must be positive, got {frequency}')
        self.frequency = frequency

    def weights(self, h):
        v = self.frequency * h
        if v >= 2:
            raise ValueError(f'Step {h} too large for frequency {self.frequency} (frequency * h must be < 2)')
        s, c1, c2 = _trig_terms(v)
        b_bar2 = 2 * c2
        b_bar1 = c1 - b_bar2 * (1 - v**2 / 8)
        b2 = 2 / 3
        b3 = (c1 - b2 / 2) / (1 - v**2 / 4)
        b1 = s - b2 * (1 - v**2 / 8) - b3 * (1 - v**2 / 4)**2
        return (b_bar1, b_bar2, 0.0), (b1, b2, b3)

    def __repr__(self) -> str:
        return f'{self.name}(frequency={self.frequency}, dt={self.dt})'

# Dormand-Prince 5(4)
_DP_C = np.array([0.0, 1/5, 3/10, 4/5, 8/9, 1.0, 1.0])
_DP_A = np.array([
    [0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
    [1/5, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
    [3/40, 9/40, 0.0, 0.0, 0.0, 0.0, 0.0],
    [44/45, -56/15, 32/9, 0.0, 0.0, 0.0, 0.0],
    [19372/6561, -25360/2187, 64448/6561, -212/729, 0.0, 0.0, 0.0],
    [9017/3168, -355/33, 46732/5247, 49/176, -5103/18656, 0.0, 0.0],
    [35/384, 0.0, 500/1113, 125/192, -2187/6784, 11/84, 0.0],
])
_DP_B_HIGH = np.array([35/384, 0.0, 500/1113, 125/192, -2187/6784, 11/84, 0.0])
_DP_B_LOW = np.array([5179/57600, 0.0, 7571/16695, 393/640, -92097/339200, 187/2100, 1/40])

class DPRKN5(RungeKuttaNystrom):
    """
    Adaptive Nystrom form of the Dormand-Prince 5(4) pair.

    For ``q'' = f(q)`` the position stages only need ``a_bar = A @ A`` and the
    position weights ``b @ A``, so every step evaluates the force seven times
    and never the velocity field. The embedded 4th order solution controls
    the step size.
    """

    adaptive = True
    order = 5
    c = _DP_C
    a_bar = _DP_A @ _DP_A
    b = _DP_B_HIGH
    b_bar = _DP_B_HIGH @ _DP_A
    b_low = _DP_B_LOW
    b_bar_low = _DP_B_LOW @ _DP_A

    def __init__(self, dt: Optional[float] = None,
                 rtol: float = 1e-3, atol: float = 1e-6,
                 dt_min: float = 1e-12, dt_max: float = np.inf,
                 safety: float = 0.9, factor_min: float = 0.2, factor_max: float = 5.0):
        super().__init__(dt)
        self.rtol = rtol
        self.atol = atol
        self.dt_min = dt_min
        self.dt_max = dt_max
        self.safety = safety
        self.factor_min = factor_min
        self.factor_max = factor_max

    def perform_step(self, problem, t, q, p, h):
        F = self.forces(problem, t, q, p, h)
        q1 = q + h * p + h**2 * _combine(self.b_bar, F, q)
        p1 = p + h * _combine(self.b, F, p)

        error = np.concatenate([h**2 * _combine(self.b_bar - self.b_bar_low, F, q),
                                h    * _combine(self.b     - self.b_low,     F, p)])
        scale = self.atol + self.rtol * np.maximum(np.abs(np.concatenate([q, p])),
                                                   np.abs(np.concatenate([q1, p1])))
        return q1, p1, float(np.sqrt(np.mean((error / scale)**2)))

    def next_step(self, h: float, error: float) -> float:
        if error == 0.0:
            factor = self.factor_max
        else:
            factor = self.safety * error ** (-1 / 5)
        return min(self.dt_max, h * float(np.clip(factor, self.factor_min, self.factor_max)))

    def initial_step(self, problem: DynamicalProblem) -> float:
        t0, t1 = problem.tspan
        u0 = problem.state0
        scale = self.atol + self.rtol * np.abs(u0)
        d0 = np.sqrt(np.mean((u0 / scale)**2))
        d1 = np.sqrt(np.mean((problem.rhs(t0, u0) / scale)**2))
        h0 = 1e-6 if d0 < 1e-5 or d1 < 1e-5 else 0.01 * d0 / d1
        return min(h0, t1 - t0, self.dt_max)

    def __repr__(self) -> str:
        return f'{self.name}(rtol={self.rtol}, atol={self.atol})'
