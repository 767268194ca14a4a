"""
Tests for the integrators and the solve driver.
"""

import numpy as np
import pytest

from twobody import (
    DPRKN5,
    RK2,
    RK4,
    RKN4,
    DynamicalProblem,
    Euler,
    HamiltonSystem,
    KahanLi6,
    SolveIVP,
    TrigonometricRKN4,
    VelocityVerlet,
    Yoshida4,
    Yoshida6,
    solve,
)


def final_error(problem, integrator, dt, frequency=1.0):
    solution = solve(problem, integrator, dt=dt)
    t = solution.t[-1]
    return abs(solution.q[-1, 0] - np.cos(frequency * t))


@pytest.fixture
def non_separable():
    return (
        HamiltonSystem()
        .add_coordinate('x', momentum='p')
        .define('H', 'x**2 * p**2 / 2')
        .problem([1.0], [1.0], (0.0, 1.0))
    )


@pytest.fixture
def damped():
    """q'' = -q - q', built by hand without structure flags"""
    return DynamicalProblem(dp=lambda q, p, t: -q - p, dq=lambda q, p, t: p,
                            q0=[1.0], p0=[0.0], tspan=(0.0, 5.0))


class TestExplicitRK:
    def test_euler_single_step(self, harmonic) -> None:
        solution = solve(harmonic.remake(tspan=(0.0, 0.1)), Euler(), dt=0.1)
        np.testing.assert_allclose(solution.q[-1], [1.0])
        np.testing.assert_allclose(solution.p[-1], [-0.1])

    def test_rk2_second_order(self, harmonic) -> None:
        ratio = final_error(harmonic, RK2(), 0.1) / final_error(harmonic, RK2(), 0.05)
        assert 3.0 < ratio < 5.0

    def test_rk4_fourth_order(self, harmonic) -> None:
        ratio = final_error(harmonic, RK4(), 0.1) / final_error(harmonic, RK4(), 0.05)
        assert ratio > 12.0

    def test_rk4_accuracy(self, harmonic) -> None:
        assert final_error(harmonic, RK4(), 0.01) < 1e-8


class TestSymplectic:
    @pytest.mark.parametrize('integrator, dt, tolerance', [
        (VelocityVerlet(), 0.1, 5e-3),
        (Yoshida4(), 0.02, 1e-4),
        (Yoshida6(), 0.05, 1e-5),
        (KahanLi6(), 0.05, 1e-6),
    ])
    def test_bounded_energy_error(self, make_harmonic, integrator, dt, tolerance) -> None:
        solution = solve(make_harmonic(tspan=(0.0, 100.0)), integrator, dt=dt)
        assert np.max(np.abs(solution.drift('H'))) < tolerance

    @pytest.mark.parametrize('integrator', [VelocityVerlet(), Yoshida4(), KahanLi6()])
    def test_composition_is_consistent(self, integrator) -> None:
        assert sum(integrator.coefficients) == pytest.approx(1.0)

    def test_kepler_angular_momentum_conserved(self, kepler) -> None:
        """Kicks and drifts of a central force both preserve q x p"""
        solution = solve(kepler, KahanLi6(), dt=0.1)
        assert np.max(np.abs(solution.drift('L'))) < 1e-10

    def test_kepler_energy(self, kepler) -> None:
        solution = solve(kepler, KahanLi6(), dt=0.01)
        assert np.max(np.abs(solution.drift('H'))) < 1e-6

    def test_requires_separable(self, non_separable) -> None:
        with pytest.raises(ValueError, match='separable'):
            solve(non_separable, KahanLi6(), dt=0.1)

    def test_unflagged_problem_raises(self, damped) -> None:
        with pytest.raises(ValueError, match='separable'):
            solve(damped, VelocityVerlet(), dt=0.1)


class TestRungeKuttaNystrom:
    def test_rkn4_fourth_order(self, harmonic) -> None:
        ratio = final_error(harmonic, RKN4(), 0.1) / final_error(harmonic, RKN4(), 0.05)
        assert ratio > 12.0

    @pytest.mark.parametrize('frequency, dt', [(1.0, 0.5), (2.0, 0.3)])
    def test_trigonometric_exact_for_oscillator(self, make_harmonic, frequency, dt) -> None:
        problem = make_harmonic(frequency, tspan=(0.0, 20.0))
        solution = solve(problem, TrigonometricRKN4(frequency), dt=dt)
        np.testing.assert_allclose(solution.x, np.cos(frequency * solution.t), atol=1e-10)
        np.testing.assert_allclose(solution.v, -frequency * np.sin(frequency * solution.t), atol=1e-10)

    def test_trigonometric_reduces_to_rkn4(self) -> None:
        for h in (1e-6, 0.01, 0.049):
            b_bar, b = TrigonometricRKN4(1.0).weights(h)
            b_bar_rkn4, b_rkn4 = RKN4().weights(h)
            np.testing.assert_allclose(b_bar, b_bar_rkn4, atol=h**2)
            np.testing.assert_allclose(b, b_rkn4, atol=h**2)

    def test_trigonometric_weights_continuous(self) -> None:
        """Series and closed form agree around the switch"""
        below = TrigonometricRKN4(1.0).weights(0.0499999)
        above = TrigonometricRKN4(1.0).weights(0.0500001)
        np.testing.assert_allclose(below, above, atol=1e-7)

    def test_trigonometric_invalid_frequency(self) -> None:
        with pytest.raises(ValueError, match='positive'):
            TrigonometricRKN4(0.0)

    def test_trigonometric_step_too_large(self, harmonic) -> None:
        with pytest.raises(ValueError, match='too large'):
            solve(harmonic, TrigonometricRKN4(1.0), dt=3.0)

    def test_requires_second_order(self, non_separable) -> None:
        with pytest.raises(ValueError, match='second order'):
            solve(non_separable, RKN4(), dt=0.1)

    @pytest.mark.parametrize('integrator', [RKN4(), DPRKN5()])
    def test_unflagged_problem_raises(self, damped, integrator) -> None:
        with pytest.raises(ValueError, match='second order'):
            solve(damped, integrator, dt=0.1)

    def test_unflagged_problem_with_generic_rk(self, damped) -> None:
        solution = solve(damped, RK4(), dt=0.01)
        w = np.sqrt(3) / 2
        t = solution.t
        expected = np.exp(-t / 2) * (np.cos(w * t) + np.sin(w * t) / (2 * w))
        np.testing.assert_allclose(solution.q[:, 0], expected, atol=1e-8)


class TestAdaptive:
    def test_dprkn5_returns_after_one_period(self, kepler) -> None:
        problem = kepler.remake(tspan=(0.0, 2 * np.pi))
        solution = solve(problem, DPRKN5(rtol=1e-10, atol=1e-10))
        assert solution.t[-1] == 2 * np.pi
        np.testing.assert_allclose(solution.q[-1], problem.q0, atol=1e-6)
        np.testing.assert_allclose(solution.p[-1], problem.p0, atol=1e-6)

    def test_dprkn5_adapts_step(self, kepler) -> None:
        solution = solve(kepler, DPRKN5(rtol=1e-8, atol=1e-8))
        steps = np.diff(solution.t)
        r = np.hypot(solution.q_1, solution.q_2)[:-1]
        assert steps[np.argmin(r)] < steps[np.argmax(r)]
        assert solution.rejected_steps >= 0

    def test_dprkn5_tolerance_controls_error(self, harmonic) -> None:
        loose = final_error(harmonic, DPRKN5(rtol=1e-4, atol=1e-4), None)
        tight = final_error(harmonic, DPRKN5(rtol=1e-10, atol=1e-10), None)
        assert tight < loose
        assert tight < 1e-7

    def test_dprkn5_step_underflow(self, kepler) -> None:
        with pytest.raises(RuntimeError, match='dt_min'):
            solve(kepler, DPRKN5(rtol=1e-14, atol=1e-14, dt_min=0.5), dt=1.0)

    def test_solve_ivp(self, kepler) -> None:
        problem = kepler.remake(tspan=(0.0, 2 * np.pi))
        solution = solve(problem, SolveIVP('DOP853', rtol=1e-10, atol=1e-12))
        assert solution.label == 'SolveIVP(DOP853)'
        np.testing.assert_allclose(solution.q[-1], problem.q0, atol=1e-6)

    def test_solve_ivp_rejects_callback(self, kepler) -> None:
        with pytest.raises(ValueError, match='callback'):
            solve(kepler, SolveIVP(), callback=lambda t, q, p: (q, p))


class TestSolveDriver:
    def test_fixed_step_requires_dt(self, harmonic) -> None:
        with pytest.raises(ValueError, match='dt must be provided'):
            solve(harmonic, RK4())

    def test_non_positive_dt(self, harmonic) -> None:
        with pytest.raises(ValueError, match='positive'):
            solve(harmonic, RK4(), dt=0.0)

    @pytest.mark.parametrize('dt', [0.0, -0.1])
    def test_adaptive_non_positive_dt(self, kepler, dt) -> None:
        with pytest.raises(ValueError, match='positive'):
            solve(kepler, DPRKN5(), dt=dt)

    def test_integrator_default_dt(self, harmonic) -> None:
        solution = solve(harmonic.remake(tspan=(0.0, 1.0)), RK4(dt=0.3))
        np.testing.assert_allclose(solution.t, [0.0, 0.3, 0.6, 0.9, 1.0])
        assert solution.t[-1] == 1.0

    def test_fixed_step_callback(self, harmonic) -> None:
        calls = []

        def callback(t, q, p):
            calls.append(t)
            return q, p

        solve(harmonic.remake(tspan=(0.0, 1.0)), RK4(), dt=0.25, callback=callback)
        assert calls == pytest.approx([0.25, 0.5, 0.75, 1.0])

    def test_callback_replaces_state(self, harmonic) -> None:
        solution = solve(harmonic.remake(tspan=(0.0, 1.0)), RK4(), dt=0.5,
                         callback=lambda t, q, p: (np.ones_like(q), np.zeros_like(p)))
        np.testing.assert_array_equal(solution.q[1:], [[1.0], [1.0]])
        np.testing.assert_array_equal(solution.p[1:], [[0.0], [0.0]])

    def test_adaptive_callback(self, kepler) -> None:
        calls = []

        def callback(t, q, p):
            calls.append(t)
            return q, p

        solution = solve(kepler.remake(tspan=(0.0, 1.0)), DPRKN5(), callback=callback)
        assert len(calls) == len(solution) - 1
        assert calls[-1] == 1.0

    def test_progress_bar(self, harmonic, capsys) -> None:
        solve(harmonic.remake(tspan=(0.0, 1.0)), RK4(), dt=0.1, progress=True)
        assert 'RK4' in capsys.readouterr().err
