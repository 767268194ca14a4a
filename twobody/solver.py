from typing import Iterable, Iterator, Optional, Callable, Any, Union
from logging import getLogger
import numpy as np
from tqdm import tqdm

from .problem import DynamicalProblem
from .integrator import Integrator, SolveIVP
from .util import python_name

logger = getLogger(__name__)

Callback = Callable[[float, np.ndarray, np.ndarray], tuple[np.ndarray, np.ndarray]]

class Solution:
    """
    Trajectory of a ``DynamicalProblem``.

    Every coordinate, momentum and observable of the problem is stored by name
    and can be read as ``solution['q_1']``, ``solution.q_1`` or evaluated in a
    numpy expression, ``solution('H - H[0]')``.
    """

    t: np.ndarray
    q: np.ndarray
    p: np.ndarray

    def __init__(self, problem: DynamicalProblem,
                 t: np.ndarray, q: np.ndarray, p: np.ndarray,
                 label: Optional[str] = None):
        self.problem = problem
        self.label = label
        self.rejected_steps = 0

        self._dict: dict[str, Any] = {}
        self._builtins = { k: getattr(np, k) for k in dir(np) if not k.startswith('_') }

        self.t = np.asarray(t, dtype=float)
        self.q = np.asarray(q, dtype=float).reshape(len(self.t), problem.dimension)
        self.p = np.asarray(p, dtype=float).reshape(len(self.t), problem.dimension)

        self.set_data('t', self.t)
        for n, name in enumerate(problem.coordinate_names):
            self.set_data(name, self.q[:, n])
        for n, name in enumerate(problem.momentum_names):
            self.set_data(name, self.p[:, n])
        for name, f in problem.observables.items():
            values = np.asarray(f(self.q.T, self.p.T, self.t), dtype=float)
            self.set_data(name, np.broadcast_to(values, self.t.shape).copy())

    def set_data(self, key: Any, value: Any):
        if isinstance(key, str):
            name = python_name(key)
        elif hasattr(key, 'name'):
            name = python_name(key.name)
        else:
            raise TypeError(f'Expected str or Symbol, got {type(key)}: {key}')
        if name in self._dict:
            raise ValueError(f'Key {name} already exists in the solution. ')
        self._dict[name] = value

    # Access

    def __call__(self, expr: str) -> Any:
        return eval(expr, globals() | self._builtins, self._dict)

    def __getattr__(self, name: str) -> np.ndarray:
        if name.startswith('_'): raise AttributeError(name)
        if name in self._dict:   return self._dict[name]
        else:                    raise AttributeError(f'\'{name}\' is not exists')

    def __getitem__(self, name: str) -> np.ndarray:
        name = python_name(name)
        if name in self._dict: return self._dict[name]
        else:                  raise KeyError(f'\'{name}\' is not exists')

    def __contains__(self, name: str) -> bool:
        return python_name(name) in self._dict

    def __len__(self) -> int:
        return len(self.t)

    def drift(self, expr: str) -> np.ndarray:
        """Deviation of ``expr`` from its initial value."""
        values = np.asarray(self(expr), dtype=float)
        return values - values[0]

    def latex(self, expr: str) -> str:
        return self.problem.latex_names.get(python_name(expr), expr)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._dict)

    # For plotting
    def _as_mpl_axes(self) -> Any:
        from .plot import SolutionAxes
        return SolutionAxes, { 'solution': self }

    def __repr__(self) -> str:
        return f'Solution(label={self.label!r}, steps={len(self) - 1}, names={self.names})'

class Solutions:
    def __init__(self, solutions: Iterable[Solution] = ()):
        self.solutions: list[Solution] = []
        for solution in solutions:
            self.append(solution)

    def append(self, solution: Solution):
        self.solutions.append(solution)

    def __getitem__(self, index: int) -> Solution:
        return self.solutions[index]

    def __iter__(self) -> Iterator[Solution]:
        return iter(self.solutions)

    def __len__(self) -> int:
        return len(self.solutions)

    def __call__(self, expr: str) -> list[Any]:
        return [solution(expr) for solution in self.solutions]

    # For plotting
    def _as_mpl_axes(self) -> Any:
        from .plot import SolutionsAxes
        return SolutionsAxes, { 'solutions': self }

    def latex(self, expr: str) -> str:
        for solution in self.solutions:
            if expr in solution:
                return solution.latex(expr)
        return expr

def solve(problem: DynamicalProblem,
          integrator: Integrator,
          dt: Optional[float] = None,
          callback: Optional[Callback] = None,
          progress: bool = False,
          label: Optional[str] = None) -> Solution:
    """
    Integrate ``problem`` over its time span.

    Args:
        problem: The problem to integrate.
        integrator: Fixed step or adaptive integrator.
        dt: Step size. Required for fixed step integrators unless the
            integrator carries its own ``dt``; initial step for adaptive ones.
        callback: ``callback(t, q, p) -> (q, p)`` applied after every accepted step.
        progress: Show a progress bar over the simulated time.
        label: Label of the solution, defaults to the integrator name.

    Returns:
        Solution: The trajectory including every accepted step.
    """
    integrator.check(problem)
    logger.info(f'Solving {problem} with {integrator!r}')

    rejected = 0
    if isinstance(integrator, SolveIVP):
        if callback is not None:
            raise ValueError(f'{integrator.name} does not support step callbacks')
        t, q, p = integrator.integrate(problem)
    elif integrator.adaptive:
        t, q, p, rejected = _solve_adaptive(problem, integrator, dt, callback, progress)
    else:
        t, q, p = _solve_fixed(problem, integrator, dt, callback, progress)

    solution = Solution(problem, t, q, p, label=label or integrator.name)
    solution.rejected_steps = rejected
    logger.info(f'{integrator.name}: {len(solution) - 1} steps, {rejected} rejected')
    return solution

def _solve_fixed(problem, integrator, dt, callback, progress):
    h = dt if dt is not None else integrator.dt
    if h is None:
        raise ValueError(f'{integrator.name} is a fixed step method, dt must be provided')
    if not h > 0:
        raise ValueError(f'dt must be positive, got {h}')

    t0, t1 = problem.tspan
    n_steps = max(1, int(np.ceil((t1 - t0) / h - 1e-9)))

    t, q, p = t0, problem.q0.copy(), problem.p0.copy()
    ts, qs, ps = [t], [q], [p]
    for k in tqdm(range(1, n_steps + 1), disable=not progress, desc=integrator.name):
        t_next = t1 if k == n_steps else t0 + k * h
        q, p = integrator.perform_step(problem, t, q, p, t_next - t)
        if callback is not None:
            q, p = callback(t_next, q, p)
        t = t_next
        ts.append(t)
        qs.append(q)
        ps.append(p)

    return np.array(ts), np.array(qs), np.array(ps)

def _solve_adaptive(problem, integrator, dt, callback, progress):
    t0, t1 = problem.tspan
    eps = 1e-12 * max(1.0, abs(t1))
    h = dt if dt is not None else integrator.dt
    if h is None:
        h = integrator.initial_step(problem)
    elif not h > 0:
        raise ValueError(f'dt must be positive, got {h}')

    t, q, p = t0, problem.q0.copy(), problem.p0.copy()
    ts, qs, ps = [t], [q], [p]
    rejected = 0
    with tqdm(total=t1 - t0, disable=not progress, desc=integrator.name) as bar:
        while t1 - t > eps:
            h = min(h, t1 - t)
            q_new, p_new, error = integrator.perform_step(problem, t, q, p, h)
            if not np.isfinite(error):
                error = np.inf

            if error > 1.0:
                rejected += 1
                logger.debug(f'Rejected step h={h:.3e} at t={t:.6g} (error={error:.3e})')
                h = integrator.next_step(h, error)
                if h < integrator.dt_min:
                    raise RuntimeError(f'{integrator.name}: step size {h:.3e} fell below '
                                       f'dt_min={integrator.dt_min:.3e} at t={t}')
                continue

            h_next = integrator.next_step(h, error)
            t_new = t1 if t1 - (t + h) <= eps else t + h
            if callback is not None:
                q_new, p_new = callback(t_new, q_new, p_new)

            bar.update(t_new - t)
            t, q, p, h = t_new, q_new, p_new, h_next
            ts.append(t)
            qs.append(q)
            ps.append(p)

    return np.array(ts), np.array(qs), np.array(ps), rejected
