from typing import Callable, Optional, Iterable, Any
import numpy as np

from .util import as_vector

Field = Callable[[np.ndarray, np.ndarray, float], np.ndarray]
Observable = Callable[[np.ndarray, np.ndarray, Any], Any]

class DynamicalProblem:
    """
    Partitioned initial value problem

        dq/dt = dq(q, p, t)
        dp/dt = dp(q, p, t)

    on the time span ``tspan``. ``separable`` marks ``dq`` as a function of ``p``
    only and ``dp`` as a function of ``q`` only; ``second_order`` marks
    ``dq(q, p, t) == p`` so that the problem reads ``q'' = dp(q, q', t)``.
    Both are off unless the caller asserts them, as ``HamiltonSystem.problem``
    does after checking the Hamiltonian.
    """

    dp: Field
    dq: Field
    q0: np.ndarray
    p0: np.ndarray
    tspan: tuple[float, float]
    observables: dict[str, Observable]

    def __init__(self, dp: Field, dq: Field, q0, p0, tspan,
                 observables: Optional[dict[str, Observable]] = None,
                 coordinate_names: Optional[Iterable[str]] = None,
                 momentum_names: Optional[Iterable[str]] = None,
                 latex_names: Optional[dict[str, str]] = None,
                 separable: bool = False,
                 second_order: bool = False):
        self.dp = dp
        self.dq = dq
        self.q0 = as_vector(q0, 'q0')
        self.p0 = as_vector(p0, 'p0')
        if self.q0.shape != self.p0.shape:
            raise ValueError(f'q0 and p0 must have the same shape, {self.q0.shape} vs {self.p0.shape}')

        t0, t1 = (float(t) for t in tspan)
        if not t1 > t0:
            raise ValueError(f'Time span must be increasing, got {(t0, t1)}')
        self.tspan = (t0, t1)

        n = len(self.q0)
        if coordinate_names is None: coordinate_names = [f'q_{i + 1}' for i in range(n)]
        if momentum_names is None:   momentum_names   = [f'p_{i + 1}' for i in range(n)]
        self.coordinate_names = tuple(coordinate_names)
        self.momentum_names = tuple(momentum_names)
        if len(self.coordinate_names) != n or len(self.momentum_names) != n:
            raise ValueError(f'Expected {n} coordinate and momentum names, '
                             f'got {self.coordinate_names} and {self.momentum_names}')

        self.observables = dict(observables or {})
        self.latex_names = dict(latex_names or {})
        self.separable = separable
        self.second_order = second_order

    @property
    def dimension(self) -> int:
        return len(self.q0)

    @property
    def state0(self) -> np.ndarray:
        return np.concatenate([self.q0, self.p0])

    def split(self, u: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        n = self.dimension
        return u[:n], u[n:]

    def rhs(self, t: float, u: np.ndarray) -> np.ndarray:
        """First-order form on the flat state ``u = (q, p)``."""
        q, p = self.split(u)
        return np.concatenate([self.dq(q, p, t), self.dp(q, p, t)])

    def remake(self, q0=None, p0=None, tspan=None) -> 'DynamicalProblem':
        return DynamicalProblem(self.dp, self.dq,
                                self.q0 if q0 is None else q0,
                                self.p0 if p0 is None else p0,
                                self.tspan if tspan is None else tspan,
                                observables=self.observables,
                                coordinate_names=self.coordinate_names,
                                momentum_names=self.momentum_names,
                                latex_names=self.latex_names,
                                separable=self.separable,
                                second_order=self.second_order)

    def __repr__(self) -> str:
        return (f'DynamicalProblem(q0={self.q0.tolist()}, p0={self.p0.tolist()}, '
                f'tspan={self.tspan})')
