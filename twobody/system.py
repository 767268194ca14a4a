from typing import Union, Any, Optional, cast
from typing_extensions import Self
from itertools import product
from logging import getLogger
import numpy as np
import sympy as sp
import sympy.core.containers as spc

from .util import *
from .problem import DynamicalProblem

logger = getLogger(__name__)

class HamiltonSystem:
    _builtins:     dict[str, Any]
    _dict:         dict[str, Any]

    _time:         sp.Symbol
    _coordinates:  list[sp.Symbol]
    _momenta:      list[sp.Symbol]
    _constants:    list[sp.Symbol]
    _placeholders: dict[str, sp.Symbol]
    _definitions:  dict[str, sp.Expr]

    def __init__(self, time: name_type = 't'):

        self._dict = {}
        self._builtins = { k: getattr(sp, k) for k in dir(sp) if not k.startswith('_') }\
                       | { 'diff': self.diff, 'eval': self.eval }

        self._coordinates  = []
        self._momenta      = []
        self._constants    = []
        self._placeholders = {}
        self._definitions  = {}

        self._time = make_symbol(time, real=True)[0]
        self.__register(self._time.name, self._time)

    # Basic declaration

    def add_coordinate(self, name: name_type, momentum: Optional[name_type] = None) -> Self:
        coordinates = make_symbol(name, real=True)
        if momentum is None:
            momenta = tuple(sp.Symbol(f'p_{{{q.name}}}', real=True) for q in coordinates)
        else:
            momenta = make_symbol(momentum, real=True)
        if len(coordinates) != len(momenta):
            raise ValueError(f'Number of coordinates and momenta must be the same, '
                             f'{len(coordinates)} vs {len(momenta)}')

        for q, p in zip(coordinates, momenta):
            self.__register(q.name, q)
            self.__register(p.name, p)
            self._coordinates.append(q)
            self._momenta.append(p)
        return self

    def add_constant(self, name: name_type) -> Self:
        for c in make_symbol(name, real=True):
            self.__register(c.name, c)
            self._constants.append(c)
        return self

    def define(self, name: name_type, expr: expr_type) -> Self:
        symbols = make_symbol(name)
        exprs = cast(tuple[sp.Expr, ...], self(expr, return_as_tuple=True))
        if len(symbols) != len(exprs):
            raise ValueError(f'Number of names and exprs must be the same, {len(symbols)} vs {len(exprs)}')

        for symbol, expr_ in zip(symbols, exprs):
            key = python_name(symbol.name)
            if key in self._definitions:
                raise ValueError(f'Definition \'{symbol.name}\' already exists')
            placeholder = sp.Symbol(symbol.name, real=True)
            self.__register(symbol.name, placeholder)
            self._placeholders[key] = placeholder
            self._definitions[key] = expr_
            logger.debug(f'Defined {symbol.name} = {expr_}')
        return self

    def __register(self, name: name_type, expr: Any):
        name = python_name(name)
        if name in self._dict:
            raise ValueError(f'Name \'{name}\' already exists')
        self._dict[name] = expr

    # Access

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'): raise AttributeError(name)
        if name in self._dict:   return self._dict[name]
        else:                    raise AttributeError(f'\'{name}\' is not exists')

    def __getitem__(self, name: name_type) -> sp.Basic:
        if isinstance(name, str):
            name = python_name(name)
            if name in self._dict: return self._dict[name]
            else:                  raise KeyError(f'\'{name}\' is not exists')
        else:
            return name

    def __contains__(self, name: name_type) -> bool:
        return python_name(name) in self._dict

    def __call__(self, expr: expr_type, *, return_as_tuple: Optional[bool] = None) \
        -> Union[sp.Basic, tuple[sp.Basic, ...]]:
        if isinstance(expr, str):
            expr_ = eval(expr, globals() | self._builtins, dict(self._dict))
        else:
            expr_ = expr
        if isinstance(expr_, (spc.Tuple, tuple, list)):
            expr_ = tuple(sp.sympify(e) for e in expr_)
        else:
            expr_ = sp.sympify(expr_)
        return to_single_or_tuple(expr_, return_as_tuple)

    # Operations

    def eval(self, expr: expr_type) -> Union[sp.Basic, tuple[sp.Basic, ...]]:
        if isinstance(expr, (tuple, list)):
            return tuple(self.eval(e) for e in expr) #type:ignore
        expr_ = self(expr)
        if isinstance(expr_, tuple):
            return tuple(self.eval(e) for e in expr_) #type:ignore
        while True:
            subs = { self._placeholders[key]: definition
                     for key, definition in self._definitions.items()
                     if self._placeholders[key] in expr_.free_symbols }
            if not subs:
                return expr_
            expr_ = expr_.subs(subs)

    def diff(self, expr: expr_type, *args) -> sp.Expr:
        return sp.diff(self.eval(expr), *[self(a, return_as_tuple=False) for a in args])

    def hamilton_equations(self, H: expr_type = 'H') -> tuple[tuple[sp.Expr, ...], tuple[sp.Expr, ...]]:
        """
        Hamilton's equations of motion for the Hamiltonian ``H``.

        Returns:
            (dq, dp): ``dq_i = dH/dp_i`` and ``dp_i = -dH/dq_i``.
        """
        H_ = self.eval(self(H, return_as_tuple=False))
        dq = tuple(sp.diff(H_, p) for p in self._momenta)
        dp = tuple(-sp.diff(H_, q) for q in self._coordinates)
        return dq, dp

    def is_separable(self, H: expr_type = 'H') -> bool:
        H_ = self.eval(self(H, return_as_tuple=False))
        return all(sp.simplify(sp.diff(H_, q, p)) == 0
                   for q, p in product(self._coordinates, self._momenta))

    def is_second_order(self, H: expr_type = 'H') -> bool:
        dq, _ = self.hamilton_equations(H)
        return all(sp.simplify(dq_i - p) == 0 for dq_i, p in zip(dq, self._momenta))

    # Numerical functions

    def lambdify(self, expr: expr_type, constants: Optional[dict[name_type, float]] = None):
        """
        Compile ``expr`` into a numpy function ``f(q, p, t)``.

        ``q`` and ``p`` are unpacked along their first axis, so arrays of shape
        ``(n, N)`` evaluate the expression along a whole trajectory.
        """
        values = self.__constant_values(constants)
        expr_ = self.eval(expr)
        if isinstance(expr_, tuple):
            expr_ = tuple(e.subs(values) for e in expr_)
        else:
            expr_ = expr_.subs(values)
        return sp.lambdify([list(self._coordinates), list(self._momenta), self._time], expr_, modules='numpy')

    def __constant_values(self, constants: Optional[dict[name_type, float]]) -> dict[sp.Symbol, float]:
        values = { self[name]: value for name, value in (constants or {}).items() }
        lack_constants = [c for c in self._constants if c not in values]
        if lack_constants:
            raise ValueError(f'Value of {lack_constants} must be provided in constants')
        return values

    def problem(self, q0, p0, tspan,
                H: expr_type = 'H',
                constants: Optional[dict[name_type, float]] = None) -> DynamicalProblem:
        dq, dp = self.hamilton_equations(H)
        dq_ = self.lambdify(dq, constants)
        dp_ = self.lambdify(dp, constants)

        observables = { key: self.lambdify(placeholder, constants)
                        for key, placeholder in self._placeholders.items() }

        latex_names = { python_name(s.name): sp.latex(s)
                        for s in [self._time, *self._coordinates, *self._momenta,
                                  *self._placeholders.values()] }

        separable = self.is_separable(H)
        second_order = self.is_second_order(H)
        logger.info(f'Hamilton equations: dq = {dq}, dp = {dp} '
                    f'(separable={separable}, second_order={second_order})')

        return DynamicalProblem(
            dp=lambda q, p, t: np.array(dp_(q, p, t), dtype=float),
            dq=lambda q, p, t: np.array(dq_(q, p, t), dtype=float),
            q0=q0, p0=p0, tspan=tspan,
            observables=observables,
            coordinate_names=[python_name(q.name) for q in self._coordinates],
            momentum_names=[python_name(p.name) for p in self._momenta],
            latex_names=latex_names,
            separable=separable,
            second_order=second_order)

    # Printing

    def latex(self, expr: expr_type) -> str:
        return sp.latex(self(expr))

    def show(self, expr: Optional[expr_type] = None, label: str = '', label_str: str = '') -> Self:
        from IPython.display import display, Math #type:ignore
        message = ''
        if label:
            message += label
        elif label_str:
            message += r'\mathrm{' + label_str + '}'
        if (label or label_str) and expr is not None:
            message += ':'
        if expr is not None:
            message += self.latex(expr)
        display(Math(message))
        return self

    def show_all(self) -> Self:
        if self.coordinates:
            self.show(self.coordinates, label_str='Coordinates')
            self.show(self.momenta, label_str='Momenta')

        if self.constants:
            self.show(self.constants, label_str='Constants')

        if self.definitions:
            self.show(label_str='Definitions')
            for f, definition in self.definitions.items():
                self.show(sp.Eq(f, definition))

        return self

    # Properties

    @property
    def time(self) -> sp.Symbol:
        return self._time

    @property
    def coordinates(self) -> tuple[sp.Symbol, ...]:
        return tuple(self._coordinates)

    @property
    def momenta(self) -> tuple[sp.Symbol, ...]:
        return tuple(self._momenta)

    @property
    def constants(self) -> tuple[sp.Symbol, ...]:
        return tuple(self._constants)

    @property
    def definitions(self) -> dict[sp.Symbol, sp.Expr]:
        return { self._placeholders[key]: definition for key, definition in self._definitions.items() }
