from twobody import *

system = kepler_system()
for f, definition in system.definitions.items():
    print(f, '=', definition)

dq, dp = system.hamilton_equations('H')
print('dq/dt =', dq)
print('dp/dt =', dp)

problem = system.problem(INITIAL_POSITION, INITIAL_MOMENTUM, TIME_SPAN)
q0, p0 = problem.q0, problem.p0
print('H0 =', hamiltonian(q0, p0), ' L0 =', angular_momentum(q0, p0))

from twobody.plot import plot_orbit, plot_first_integrals
import matplotlib.pyplot as plt

solutions = Solutions([
    solve(problem, KahanLi6(), dt=0.1),
    solve(problem, DPRKN5()),
    solve(problem, TrigonometricRKN4(mean_motion(q0, p0)), dt=0.1),
    solve(problem, SolveIVP('RK45')),
])
for solution in solutions:
    print(f'{solution.label:>20}: {len(solution) - 1:5d} steps, '
          f'max |dH| = {abs(solution.drift("H")).max():.2e}, '
          f'max |dL| = {abs(solution.drift("L")).max():.2e}')

plot_orbit(solutions)
plot_first_integrals(solutions)

projected = Solutions([
    solve(problem, RK4(), dt=0.2, label='RK4'),
    solve(problem, RK4(), dt=0.2, label='RK4 + H, L projection',
          callback=ManifoldProjection(first_integrals_manifold(q0, p0))),
    solve(problem, RK4(), dt=0.2, label='RK4 + H projection',
          callback=ManifoldProjection(energy_manifold(q0, p0))),
    solve(problem, RK4(), dt=0.2, label='RK4 + L projection',
          callback=ManifoldProjection(angular_manifold(q0, p0))),
])

plot_orbit(projected)
plot_first_integrals(projected)

ax = plt.figure().add_subplot(projection=projected[1])
ax.plot('q_1', 'q_2')

plt.show()
