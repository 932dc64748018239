# -*- coding: utf-8 -*-
"""
operators.py - Operator table for expression trees

Every operator is an ``OperatorSpec`` (name, arity, vectorised function).
Trees store an integer index into ``OperatorSet.binops`` / ``OperatorSet.unaops``,
so dispatch during evaluation is plain indexing plus a call.

Guarded ("safe") variants return NaN outside their domain instead of raising,
which the evaluator turns into ``valid=False``.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Sequence, Tuple, Union

import numpy as np
from scipy import special


# -----------------------------------------------------------------------------
# Binary operators
# -----------------------------------------------------------------------------
def plus(x, y):
    return x + y


def sub(x, y):
    return x - y


def mult(x, y):
    return x * y


def div(x, y):
    return x / y


def safe_pow(x, y):
    """x ** y, NaN where the real power is undefined.

    Integer exponents accept negative bases; a negative exponent on a zero
    base is undefined. Non-integer exponents need x > 0 (x >= 0 for y > 0).
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    is_int = np.equal(np.floor(y), y)
    bad = np.where(
        is_int,
        (y < 0) & (x == 0),
        np.where(y > 0, x < 0, x <= 0),
    )
    out = np.power(np.where(bad, 1.0, x), y)
    return np.where(bad, np.nan, out)


def safe_logb(base, x):
    """Logarithm of ``x`` in base ``base``; NaN outside the domain."""
    base = np.asarray(base, dtype=float)
    x = np.asarray(x, dtype=float)
    return safe_log(x) / safe_log(base)


def greater(x, y):
    return np.where(x > y, 1.0, 0.0)


def logical_or(x, y):
    return np.where((x > 0) | (y > 0), 1.0, 0.0)


def logical_and(x, y):
    return np.where((x > 0) & (y > 0), 1.0, 0.0)


def mod(x, y):
    return np.mod(x, y)


def maximum(x, y):
    return np.maximum(x, y)


def minimum(x, y):
    return np.minimum(x, y)


# -----------------------------------------------------------------------------
# Unary operators
# -----------------------------------------------------------------------------
def neg(x):
    return -x


def square(x):
    return x * x


def cube(x):
    return x * x * x


def inv(x):
    return 1.0 / x


def relu(x):
    return np.maximum(x, 0.0)


def _guard(fn, x, bad):
    x = np.asarray(x, dtype=float)
    return np.where(bad, np.nan, fn(np.where(bad, 1.0, x)))


def safe_log(x):
    return _guard(np.log, x, np.asarray(x) <= 0)


def safe_log2(x):
    return _guard(np.log2, x, np.asarray(x) <= 0)


def safe_log10(x):
    return _guard(np.log10, x, np.asarray(x) <= 0)


def safe_log1p(x):
    return _guard(np.log1p, x, np.asarray(x) <= -1)


def safe_sqrt(x):
    return _guard(np.sqrt, x, np.asarray(x) < 0)


def safe_acosh(x):
    return _guard(np.arccosh, x, np.asarray(x) < 1)


def atanh_clip(x):
    """atanh of ``x`` wrapped into (-1, 1)."""
    x = np.asarray(x, dtype=float)
    return np.arctanh(np.mod(x + 1.0, 2.0) - 1.0)


def exp10(x):
    return np.power(10.0, x)


def expm1(x):
    return np.expm1(x)


def gamma(x):
    return special.gamma(x)


def erf(x):
    return special.erf(x)


def erfc(x):
    return special.erfc(x)


# -----------------------------------------------------------------------------
# Operator descriptors
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class OperatorSpec:
    """One entry of the operator table."""
    name: str
    arity: int
    func: Callable
    display: str = ""
    infix: bool = False

    def __call__(self, *args):
        return self.func(*args)

    @property
    def label(self) -> str:
        return self.display or self.name


_BINARY: Dict[str, OperatorSpec] = {}
_UNARY: Dict[str, OperatorSpec] = {}


def _binary(name, func, display="", infix=False, aliases=()):
    spec = OperatorSpec(name, 2, func, display, infix)
    for key in (name,) + tuple(aliases):
        _BINARY[key] = spec
    return spec


def _unary(name, func, display="", aliases=()):
    spec = OperatorSpec(name, 1, func, display)
    for key in (name,) + tuple(aliases):
        _UNARY[key] = spec
    return spec


_binary("plus", plus, "+", True, aliases=("+", "add"))
_binary("sub", sub, "-", True, aliases=("-", "minus"))
_binary("mult", mult, "*", True, aliases=("*", "mul", "times"))
_binary("div", div, "/", True, aliases=("/",))
_binary("safe_pow", safe_pow, "^", True, aliases=("^", "pow", "**"))
_binary("safe_logb", safe_logb, "logb")
_binary("greater", greater, aliases=(">",))
_binary("logical_or", logical_or)
_binary("logical_and", logical_and)
_binary("mod", mod)
_binary("max", maximum)
_binary("min", minimum)

_unary("neg", neg, "-")
_unary("square", square)
_unary("cube", cube)
_unary("cbrt", np.cbrt)
_unary("safe_sqrt", safe_sqrt, "sqrt", aliases=("sqrt",))
_unary("exp", np.exp)
_unary("exp2", np.exp2)
_unary("exp10", exp10)
_unary("expm1", expm1)
_unary("safe_log", safe_log, "log", aliases=("log",))
_unary("safe_log2", safe_log2, "log2", aliases=("log2",))
_unary("safe_log10", safe_log10, "log10", aliases=("log10",))
_unary("safe_log1p", safe_log1p, "log1p", aliases=("log1p",))
_unary("sin", np.sin)
_unary("cos", np.cos)
_unary("tan", np.tan)
_unary("asin", np.arcsin)
_unary("acos", np.arccos)
_unary("atan", np.arctan)
_unary("sinh", np.sinh)
_unary("cosh", np.cosh)
_unary("tanh", np.tanh)
_unary("asinh", np.arcsinh)
_unary("safe_acosh", safe_acosh, "acosh", aliases=("acosh",))
_unary("atanh_clip", atanh_clip, "atanh", aliases=("atanh",))
_unary("abs", np.abs)
_unary("relu", relu)
_unary("inv", inv)
_unary("sign", np.sign)
_unary("gamma", gamma)
_unary("erf", erf)
_unary("erfc", erfc)


OperatorLike = Union[str, Callable, OperatorSpec]


def resolve_operator(op: OperatorLike, arity: int) -> OperatorSpec:
    """Turn a name, a callable or a spec into an ``OperatorSpec`` of ``arity``."""
    if isinstance(op, OperatorSpec):
        if op.arity != arity:
            raise ValueError(
                f"Operator {op.name!r} has arity {op.arity}, expected {arity}"
            )
        return op
    table = _BINARY if arity == 2 else _UNARY
    if isinstance(op, str):
        if op not in table:
            kind = "binary" if arity == 2 else "unary"
            raise ValueError(
                f"Unknown {kind} operator: {op!r}. Available: {sorted(set(s.name for s in table.values()))}"
            )
        return table[op]
    if callable(op):
        # Built-in functions registered by identity, e.g. np.sin
        for spec in table.values():
            if spec.func is op:
                return spec
        name = getattr(op, "__name__", repr(op))
        return OperatorSpec(name, arity, op)
    raise ValueError(f"Cannot interpret {op!r} as an operator")


def get_operator(name: str, arity: int) -> OperatorSpec:
    table = _BINARY if arity == 2 else _UNARY
    return table[name]


@dataclass(frozen=True)
class OperatorSet:
    """Ordered binary and unary operator descriptors, indexed by integer."""
    binops: Tuple[OperatorSpec, ...]
    unaops: Tuple[OperatorSpec, ...]

    @classmethod
    def build(cls, binary_operators: Sequence[OperatorLike],
              unary_operators: Sequence[OperatorLike]) -> "OperatorSet":
        binops = tuple(resolve_operator(op, 2) for op in binary_operators)
        unaops = tuple(resolve_operator(op, 1) for op in unary_operators)
        return cls(binops, unaops)

    @property
    def nbin(self) -> int:
        return len(self.binops)

    @property
    def nuna(self) -> int:
        return len(self.unaops)

    def index_of(self, name: str, arity: int) -> int:
        """Position of the operator called ``name`` (any alias), or -1."""
        ops = self.binops if arity == 2 else self.unaops
        table = _BINARY if arity == 2 else _UNARY
        target = table.get(name)
        for i, spec in enumerate(ops):
            if spec.name == name or spec is target:
                return i
        return -1
