import sympy as sp
import numpy as np
from typing import Union, TypeVar

T = TypeVar('T')

name_type = Union[str, sp.Symbol]
tuple_ish = Union[T, tuple[T, ...], list[T]]
single_or_tuple = Union[T, tuple[T, ...]]
expr_type = Union[str, sp.Basic, tuple[sp.Basic, ...], list[sp.Basic]]

def make_symbol(name: name_type, **options) -> tuple[sp.Symbol, ...]:
    if isinstance(name, sp.Symbol):
        return (name,)
    elif isinstance(name, (tuple, list)):
        return sum((make_symbol(n, **options) for n in name), tuple())
    elif name == '':
        return tuple()
    else:
        return to_tuple(sp.symbols(name, **options))

python_name_trans = str.maketrans(
    {'\\': '', '{': '', '}': '', ',': '', ' ': '_', '^': '_', '-': 'm', '\'': 'prime'})

def python_name(name: name_type) -> str:
    name = str(name)
    name = name.translate(python_name_trans)
    if name == 'lambda':
        name = 'lambda_'
    return name

def to_tuple(items: tuple_ish[T]) -> tuple[T, ...]:
    if isinstance(items, tuple):
        return items
    elif isinstance(items, list):
        return tuple(items)
    else:
        return (items,)

def to_single_or_tuple(items: tuple_ish[T], return_as_tuple=None) -> single_or_tuple[T]:
    if isinstance(items, tuple):
        result = items
    elif isinstance(items, list):
        result = tuple(items)
    else:
        result = (items,)

    if return_as_tuple is None:
        if len(result) == 1:
            return result[0]
        else:
            return result
    elif return_as_tuple:
        return result
    else:
        if len(result) == 1:
            return result[0]
        else:
            raise ValueError(f'Expected a single expression, got {len(result)}: {result}')

def as_vector(value, name: str = 'value') -> np.ndarray:
    vector = np.array(value, dtype=float)
    if vector.ndim != 1:
        raise ValueError(f'{name} must be a 1-dimensional vector, got shape {vector.shape}')
    return vector
