# -*- coding: utf-8 -*-
"""
inverse_functions.py - Approximate inverses of operators

``approx_inverse(f)`` returns a function that undoes ``f`` on at least some
small interval of its domain, e.g. ``abs`` is its own approximate inverse.
These are not exact mathematical inverses; they only steer mutation
proposals toward invertible forms.

Binary operators are inverted as partial applications with one argument
fixed (``Partial``): ``x + c`` inverts to ``x - c``, ``c ** x`` to
``log base c``, and so on.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union

from .operators import OperatorSpec, get_operator


class MissingInverseError(NotImplementedError):
    """No approximate inverse is registered for an operator."""


@dataclass(frozen=True)
class Partial:
    """A binary operator with one argument fixed to ``value``.

    ``side="left"`` means ``op(value, x)``; ``side="right"`` means ``op(x, value)``.
    """
    op: OperatorSpec
    value: float
    side: str = "right"

    def __call__(self, x):
        if self.side == "left":
            return self.op.func(self.value, x)
        return self.op.func(x, self.value)


_UNARY_INVERSES: Dict[str, str] = {}
_PARTIAL_INVERSES: Dict[tuple, Callable[[Partial], Partial]] = {}


def register_approx_inverse(name: str, inverse_name: str, symmetric: bool = True):
    """Register ``inverse_name`` as the approximate inverse of unary ``name``."""
    _UNARY_INVERSES[name] = inverse_name
    if symmetric:
        _UNARY_INVERSES[inverse_name] = name


def register_partial_inverse(name: str, side: str, rule: Callable[[Partial], Partial]):
    """Register how to invert ``name`` with its ``side`` argument fixed."""
    _PARTIAL_INVERSES[(name, side)] = rule


for _f, _g in [
    ("sin", "asin"),
    ("cos", "acos"),
    ("tan", "atan"),
    ("sinh", "asinh"),
    ("cosh", "safe_acosh"),
    ("tanh", "atanh_clip"),
    ("square", "safe_sqrt"),
    ("cube", "cbrt"),
    ("exp", "safe_log"),
    ("exp2", "safe_log2"),
    ("exp10", "safe_log10"),
    ("expm1", "safe_log1p"),
]:
    register_approx_inverse(_f, _g)

for _f in ("neg", "inv", "relu", "abs"):
    register_approx_inverse(_f, _f)


def _fix(name, value, side="right"):
    return Partial(get_operator(name, 2), value, side)


# (c + _) and (_ + c) => (_ - c)
register_partial_inverse("plus", "left", lambda p: _fix("sub", p.value))
register_partial_inverse("plus", "right", lambda p: _fix("sub", p.value))
# (c * _) and (_ * c) => (_ / c)
register_partial_inverse("mult", "left", lambda p: _fix("div", p.value))
register_partial_inverse("mult", "right", lambda p: _fix("div", p.value))
# (c - _) is its own inverse; (_ - c) => (_ + c)
register_partial_inverse("sub", "left", lambda p: p)
register_partial_inverse("sub", "right", lambda p: _fix("plus", p.value))
# (c / _) is its own inverse; (_ / c) => (_ * c)
register_partial_inverse("div", "left", lambda p: p)
register_partial_inverse("div", "right", lambda p: _fix("mult", p.value))
# (c ^ _) => log base c; (_ ^ c) => _ ^ (1/c)
register_partial_inverse("safe_pow", "left", lambda p: _fix("safe_logb", p.value, "left"))
register_partial_inverse("safe_pow", "right", lambda p: _fix("safe_pow", 1.0 / p.value))


def _no_inverse(f):
    name = getattr(f, "name", None) or getattr(f, "__name__", repr(f))
    raise MissingInverseError(
        f"Inverse of {name} not yet implemented. "
        f"Please extend `register_approx_inverse`/`register_partial_inverse`."
    )


def approx_inverse(f: Union[OperatorSpec, Partial]):
    """Return the approximate inverse of ``f`` or raise ``MissingInverseError``.

    Unary operators map to another unary ``OperatorSpec``; partial
    applications of binary operators map to another ``Partial``.
    """
    if isinstance(f, Partial):
        rule = _PARTIAL_INVERSES.get((f.op.name, f.side))
        if rule is None:
            _no_inverse(f.op)
        return rule(f)
    if isinstance(f, OperatorSpec) and f.arity == 1:
        inverse_name = _UNARY_INVERSES.get(f.name)
        if inverse_name is None:
            _no_inverse(f)
        return get_operator(inverse_name, 1)
    # A binary operator with two free arguments has no single inverse.
    return _no_inverse(f)


def try_approx_inverse(f: Union[OperatorSpec, Partial]) -> Optional[Union[OperatorSpec, Partial]]:
    """Soft lookup used as a mutation hint.

    Missing unary or partial inverses give ``None``. Asking for the inverse
    of a bare binary operator is a contract violation and still raises.
    """
    if isinstance(f, OperatorSpec) and f.arity == 2:
        return approx_inverse(f)
    try:
        return approx_inverse(f)
    except MissingInverseError:
        return None


__all__ = [
    "MissingInverseError",
    "Partial",
    "approx_inverse",
    "try_approx_inverse",
    "register_approx_inverse",
    "register_partial_inverse",
]
