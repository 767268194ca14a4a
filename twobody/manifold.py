"""
Manifold projection onto the level sets of first integrals.

A residual function maps the flat state ``u = (q, p)`` of length ``2n`` to a
residual vector of the same length. ``ManifoldProjection`` drives it to zero
with ``scipy.optimize.root`` after each integration step.
"""
from typing import Callable
from logging import getLogger
import numpy as np
from scipy.optimize import root

from .kepler import hamiltonian, angular_momentum
from .util import as_vector

logger = getLogger(__name__)

Residual = Callable[[np.ndarray], np.ndarray]

def _split(u: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    n = len(u) // 2
    return u[:n], u[n:]

def first_integrals_manifold(q0, p0, H=hamiltonian, L=angular_momentum) -> Residual:
    """Residual of both the energy and the angular momentum."""
    q0, p0 = as_vector(q0, 'q0'), as_vector(p0, 'p0')
    n = len(q0)
    H0, L0 = H(q0, p0), L(q0, p0)

    def residual(u: np.ndarray) -> np.ndarray:
        q, p = _split(u)
        return np.concatenate([np.full(n, H0 - H(q, p)), np.full(n, L0 - L(q, p))])

    return residual

def energy_manifold(q0, p0, H=hamiltonian) -> Residual:
    """Residual of the energy only; the angular momentum block is zero."""
    q0, p0 = as_vector(q0, 'q0'), as_vector(p0, 'p0')
    n = len(q0)
    H0 = H(q0, p0)

    def residual(u: np.ndarray) -> np.ndarray:
        q, p = _split(u)
        return np.concatenate([np.full(n, H0 - H(q, p)), np.zeros(n)])

    return residual

def angular_manifold(q0, p0, L=angular_momentum) -> Residual:
    """Residual of the angular momentum only; the energy block is zero."""
    q0, p0 = as_vector(q0, 'q0'), as_vector(p0, 'p0')
    n = len(q0)
    L0 = L(q0, p0)

    def residual(u: np.ndarray) -> np.ndarray:
        q, p = _split(u)
        return np.concatenate([np.zeros(n), np.full(n, L0 - L(q, p))])

    return residual

class ManifoldProjection:
    """
    Step callback projecting the state onto ``residual(u) == 0``.

    Args:
        residual: Residual function of the flat state.
        tol: Maximum residual accepted without a warning.
        method: Method of ``scipy.optimize.root``. The default Levenberg-Marquardt
            handles the rank deficient Jacobians of the broadcast residuals.
        **options: Passed to ``scipy.optimize.root`` as ``options``.
    """

    def __init__(self, residual: Residual, tol: float = 1e-10, method: str = 'lm', **options):
        self.residual = residual
        self.tol = tol
        self.method = method
        self.options = options
        self.failures = 0

    def __call__(self, t: float, q: np.ndarray, p: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        n = len(q)
        u = np.concatenate([q, p])
        before = np.max(np.abs(self.residual(u)))
        if before <= self.tol:
            return q, p

        result = root(self.residual, u, method=self.method, options=self.options or None)
        after = np.max(np.abs(self.residual(result.x)))
        logger.debug(f'Projection at t={t:.6g}: residual {before:.3e} -> {after:.3e} '
                     f'({result.get("nfev", 0)} evaluations)')

        if after > self.tol:
            self.failures += 1
            logger.warning(f'Projection at t={t:.6g} did not converge: '
                           f'residual {after:.3e} > {self.tol:.1e} ({result.message})')
            if after >= before:
                return q, p

        return result.x[:n], result.x[n:]
