# -*- coding: utf-8 -*-
"""
options.py - Search configuration

``Options`` is a frozen record: defaults live on the dataclass, overrides are
layered with ``Options.from_hparams`` (defaults < JSON < keyword arguments),
and derived views (resolved operator table, per-operator constraints,
complexity weights) are computed once in ``__post_init__``.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from utils.hparams import merge_hparams

from .loss_functions import LOSSES
from .operators import OperatorSet, resolve_operator

OPTIMIZER_ALGORITHMS = ("BFGS", "NelderMead")
MODEL_SELECTIONS = ("accuracy", "score", "knee")


@dataclass(frozen=True)
class MutationWeights:
    """Relative probabilities of each mutation kind."""
    mutate_constant: float = 0.048
    mutate_operator: float = 0.47
    swap_operands: float = 0.1
    add_node: float = 0.79
    insert_node: float = 5.1
    delete_node: float = 1.7
    simplify: float = 0.0020
    randomize: float = 0.00023
    do_nothing: float = 0.21
    optimize: float = 0.0

    @classmethod
    def names(cls) -> Tuple[str, ...]:
        return tuple(f.name for f in dataclasses.fields(cls))

    def as_array(self) -> np.ndarray:
        return np.array([getattr(self, name) for name in self.names()], dtype=float)


@dataclass(frozen=True)
class Options:
    # Operators and complexity
    binary_operators: Sequence[Any] = ("+", "-", "*", "/")
    unary_operators: Sequence[Any] = ()
    constraints: Optional[Dict[str, Any]] = None
    nested_constraints: Optional[Dict[str, Dict[str, int]]] = None
    complexity_of_operators: Optional[Dict[str, float]] = None
    complexity_of_constants: float = 1
    complexity_of_variables: float = 1
    parsimony: float = 0.0032
    maxsize: int = 20
    maxdepth: Optional[int] = None
    warmup_maxsize_by: float = 0.0

    # Loss
    loss: Union[str, Callable] = "L2DistLoss"
    loss_kwargs: Dict[str, float] = field(default_factory=dict)
    batching: bool = False
    batch_size: int = 50
    use_loss_cache: bool = False
    loss_cache_size: int = 10000

    # Evolution
    populations: int = 15
    population_size: int = 33
    ncycles_per_iteration: int = 550
    tournament_selection_n: int = 12
    tournament_selection_p: float = 0.86
    mutation_weights: MutationWeights = field(default_factory=MutationWeights)
    crossover_probability: float = 0.066
    annealing: bool = False
    alpha: float = 0.1
    perturbation_factor: float = 0.076
    probability_negate_constant: float = 0.01
    inverse_mutation_probability: float = 0.1
    skip_mutation_failures: bool = True
    use_frequency: bool = True
    use_frequency_in_tournament: bool = True
    adaptive_parsimony_scaling: float = 20.0

    # Constant optimisation / simplification
    should_simplify: bool = True
    should_optimize_constants: bool = True
    optimizer_algorithm: str = "BFGS"
    optimizer_nrestarts: int = 2
    optimizer_probability: float = 0.14
    optimizer_iterations: int = 8

    # Migration
    migration: bool = True
    hof_migration: bool = True
    fraction_replaced: float = 0.00036
    fraction_replaced_hof: float = 0.035
    topn: int = 12

    # Stopping
    max_evals: Optional[int] = None
    timeout_in_seconds: Optional[float] = None
    early_stop_condition: Optional[Union[float, Callable[[float, int], bool]]] = None

    # Runtime
    deterministic: bool = False
    seed: Optional[int] = None
    n_jobs: int = 1
    verbosity: int = 1
    progress: bool = False
    model_selection: str = "score"
    output_file: Optional[str] = None

    # Blueprint expressions
    blueprint_structure: Optional[Callable] = None
    variable_mapping: Optional[Dict[str, Sequence[int]]] = None

    # Derived (filled in __post_init__)
    operators: OperatorSet = field(init=False, repr=False, compare=False)
    bin_constraints: Tuple[Tuple[int, int], ...] = field(init=False, repr=False, compare=False)
    una_constraints: Tuple[int, ...] = field(init=False, repr=False, compare=False)
    nested_constraint_indices: Tuple = field(init=False, repr=False, compare=False)
    binop_complexity: Tuple[float, ...] = field(init=False, repr=False, compare=False)
    unaop_complexity: Tuple[float, ...] = field(init=False, repr=False, compare=False)
    use_complexity_mapping: bool = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        setattr_ = object.__setattr__
        if isinstance(self.mutation_weights, dict):
            setattr_(self, "mutation_weights", MutationWeights(**self.mutation_weights))
        if self.maxdepth is None:
            setattr_(self, "maxdepth", self.maxsize)

        self._validate_scalars()

        operators = OperatorSet.build(self.binary_operators, self.unary_operators)
        if operators.nbin + operators.nuna == 0:
            raise ValueError("At least one binary or unary operator is required")
        setattr_(self, "operators", operators)

        bin_cons: List[Tuple[int, int]] = [(-1, -1)] * operators.nbin
        una_cons: List[int] = [-1] * operators.nuna
        for name, cons in (self.constraints or {}).items():
            degree, idx = self._lookup_operator(name, "constraints")
            if degree == 2:
                if not (isinstance(cons, (tuple, list)) and len(cons) == 2):
                    raise ValueError(
                        f"constraints[{name!r}] must be a pair (left, right) for a binary operator, got {cons!r}"
                    )
                bin_cons[idx] = (int(cons[0]), int(cons[1]))
            else:
                if isinstance(cons, (tuple, list)):
                    raise ValueError(
                        f"constraints[{name!r}] must be a single int for a unary operator, got {cons!r}"
                    )
                una_cons[idx] = int(cons)
        setattr_(self, "bin_constraints", tuple(bin_cons))
        setattr_(self, "una_constraints", tuple(una_cons))

        nested = []
        for outer, inner_map in (self.nested_constraints or {}).items():
            degree, idx = self._lookup_operator(outer, "nested_constraints")
            inner = []
            for inner_name, max_nest in inner_map.items():
                inner_degree, inner_idx = self._lookup_operator(inner_name, "nested_constraints")
                inner.append((inner_degree, inner_idx, int(max_nest)))
            nested.append((degree, idx, tuple(inner)))
        setattr_(self, "nested_constraint_indices", tuple(nested))

        binc = [1.0] * operators.nbin
        unac = [1.0] * operators.nuna
        for name, value in (self.complexity_of_operators or {}).items():
            degree, idx = self._lookup_operator(name, "complexity_of_operators")
            if degree == 2:
                binc[idx] = float(value)
            else:
                unac[idx] = float(value)
        setattr_(self, "binop_complexity", tuple(binc))
        setattr_(self, "unaop_complexity", tuple(unac))
        setattr_(self, "use_complexity_mapping", any(
            c != 1 for c in binc + unac + [self.complexity_of_constants, self.complexity_of_variables]
        ))

        if self.variable_mapping is not None:
            if self.blueprint_structure is None:
                raise ValueError("variable_mapping requires blueprint_structure")
            for key, features in self.variable_mapping.items():
                if not features or any(int(f) < 1 for f in features):
                    raise ValueError(
                        f"variable_mapping[{key!r}] must be a non-empty list of 1-based feature indices"
                    )
        elif self.blueprint_structure is not None:
            raise ValueError("blueprint_structure requires variable_mapping")

    def _validate_scalars(self):
        if self.maxsize < 1:
            raise ValueError(f"maxsize must be >= 1, got {self.maxsize}")
        if self.maxdepth < 1:
            raise ValueError(f"maxdepth must be >= 1, got {self.maxdepth}")
        if self.populations < 1 or self.population_size < 1:
            raise ValueError(
                f"populations and population_size must be >= 1, got {self.populations}, {self.population_size}"
            )
        if not 1 <= self.tournament_selection_n <= self.population_size:
            raise ValueError(
                f"tournament_selection_n must be in [1, population_size={self.population_size}], "
                f"got {self.tournament_selection_n}"
            )
        for name in ("tournament_selection_p", "crossover_probability", "optimizer_probability",
                     "probability_negate_constant", "inverse_mutation_probability",
                     "fraction_replaced", "fraction_replaced_hof"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.optimizer_algorithm not in OPTIMIZER_ALGORITHMS:
            raise ValueError(
                f"Unknown optimizer_algorithm: {self.optimizer_algorithm!r}. Available: {list(OPTIMIZER_ALGORITHMS)}"
            )
        if self.model_selection not in MODEL_SELECTIONS:
            raise ValueError(
                f"Unknown model_selection: {self.model_selection!r}. Available: {list(MODEL_SELECTIONS)}"
            )
        if self.batching and self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.use_loss_cache and self.loss_cache_size < 1:
            raise ValueError(f"loss_cache_size must be >= 1, got {self.loss_cache_size}")
        if self.deterministic and self.n_jobs > 1:
            raise ValueError("deterministic=True requires n_jobs=1 (serial search)")
        if self.deterministic and self.seed is None:
            raise ValueError("deterministic=True requires a seed")
        if self.mutation_weights.as_array().sum() <= 0 or (self.mutation_weights.as_array() < 0).any():
            raise ValueError(f"mutation_weights must be non-negative and not all zero: {self.mutation_weights}")
        if not isinstance(self.loss, str) and not callable(self.loss):
            raise ValueError(f"loss must be a loss name or a callable, got {self.loss!r}")
        if isinstance(self.loss, str):
            if self.loss not in LOSSES:
                raise ValueError(f"Unknown loss: {self.loss!r}. Available: {sorted(LOSSES)}")

    def _lookup_operator(self, name, context: str) -> Tuple[int, int]:
        """Return ``(degree, index)`` for an operator named in ``context``."""
        for degree in (2, 1):
            try:
                spec = resolve_operator(name, degree)
            except ValueError:
                continue
            ops = self.operators.binops if degree == 2 else self.operators.unaops
            for i, candidate in enumerate(ops):
                if candidate is spec or candidate == spec:
                    return degree, i
        raise ValueError(f"{context}: operator {name!r} is not in the active operator set")

    @property
    def nbin(self) -> int:
        return self.operators.nbin

    @property
    def nuna(self) -> int:
        return self.operators.nuna

    @classmethod
    def from_hparams(cls, json_overrides: Optional[Union[Dict[str, Any], str]] = None,
                     **cli_overrides) -> "Options":
        """Build options with priority *defaults < json_overrides < cli_overrides*."""
        defaults = {}
        for f in dataclasses.fields(cls):
            if not f.init:
                continue
            if f.default is not dataclasses.MISSING:
                defaults[f.name] = f.default
            else:
                defaults[f.name] = f.default_factory()
        effective = merge_hparams(defaults, json_overrides, cli_overrides, allowed=defaults)
        return cls(**effective)
