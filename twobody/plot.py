from typing import Optional, Sequence, Union
import matplotlib.pyplot as plt
from matplotlib.axes import Axes
import numpy as np

from .solver import Solution, Solutions

def _label(latex: str) -> str:
    return '$' + latex + '$'

class SolutionAxes(Axes):
    def __init__(self, *args, solution: Solution, **kwargs):
        super().__init__(*args, **kwargs)
        self._solution = solution

    def plot(self, *args, **kwargs):
        if not all(isinstance(arg, str) for arg in args):
            return super().plot(*args, **kwargs)

        x_lim = None
        if len(args) == 1:
            x = 't'
            x_lim = (self._solution(x)[0], self._solution(x)[-1])
            y = args[0]
        elif len(args) == 2:
            x = args[0]
            y = args[1]
        else:
            raise ValueError('Invalid number of arguments')

        x_value = self._solution(x)
        y_value = self._solution(y)

        super().set_xlabel(_label(self._solution.latex(x)))
        super().set_ylabel(_label(self._solution.latex(y)))
        if x_lim:
            super().set_xlim(*x_lim)

        kwargs = { 'label': self._solution.label } | kwargs
        return super().plot(x_value, y_value, **kwargs)

class SolutionsAxes(Axes):
    def __init__(self, *args, solutions: Solutions, **kwargs):
        super().__init__(*args, **kwargs)
        self._solutions = solutions

    def plot(self, *args, **kwargs):
        if not all(isinstance(arg, str) for arg in args):
            return super().plot(*args, **kwargs)

        x_lim = None
        if len(args) == 1:
            x = 't'
            x_lim = (np.min([xs[0]  for xs in self._solutions(x)]),
                     np.max([xs[-1] for xs in self._solutions(x)]))
            y = args[0]
        elif len(args) == 2:
            x = args[0]
            y = args[1]
        else:
            raise ValueError('Invalid number of arguments')

        lines = []
        for solution, x_value, y_value in zip(self._solutions, self._solutions(x), self._solutions(y)):
            lines.extend(super().plot(x_value, y_value, **({ 'label': solution.label } | kwargs)))

        super().set_xlabel(_label(self._solutions.latex(x)))
        super().set_ylabel(_label(self._solutions.latex(y)))
        if x_lim:
            super().set_xlim(*x_lim)

        return lines

def _as_solutions(solution: Union[Solution, Solutions, Sequence[Solution]]) -> Solutions:
    if isinstance(solution, Solution):
        return Solutions([solution])
    if isinstance(solution, Solutions):
        return solution
    return Solutions(solution)

def plot_orbit(solution: Union[Solution, Solutions, Sequence[Solution]],
               ax: Optional[Axes] = None, **kwargs) -> Axes:
    """Plot the trajectory in the plane of the first two coordinates."""
    solutions = _as_solutions(solution)
    if ax is None:
        ax = plt.figure().add_subplot()

    x, y = solutions[0].problem.coordinate_names[:2]
    for s in solutions:
        ax.plot(s[x], s[y], **({ 'label': s.label } | kwargs))

    ax.set_xlabel(_label(solutions.latex(x)))
    ax.set_ylabel(_label(solutions.latex(y)))
    ax.set_aspect('equal')
    if len(solutions) > 1:
        ax.legend()
    return ax

def plot_first_integrals(solution: Union[Solution, Solutions, Sequence[Solution]],
                         names: Sequence[str] = ('H', 'L'),
                         axes: Optional[Sequence[Axes]] = None, **kwargs) -> Sequence[Axes]:
    """Plot the drift of each of ``names`` from its initial value against time."""
    solutions = _as_solutions(solution)
    if axes is None:
        _, axes_ = plt.subplots(len(names), 1, sharex=True, squeeze=False)
        axes = list(axes_[:, 0])

    for ax, name in zip(axes, names):
        for s in solutions:
            ax.plot(s.t, s.drift(name), **({ 'label': s.label } | kwargs))
        ax.set_ylabel(_label(r'\Delta ' + solutions.latex(name)))
        if len(solutions) > 1:
            ax.legend()
    axes[-1].set_xlabel(_label(solutions.latex('t')))
    return axes
